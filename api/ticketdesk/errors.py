"""
Error taxonomy surfaced by the saved-filter engine.

Only the validator, the saved filter store and the filter service raise these;
the compiler never raises (it degrades).
"""

from typing import Any, Dict, Optional


class FilterError(Exception):
    """Base class for errors returned to callers of the filter engine."""

    code = "filter_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(FilterError):
    """
    Raised when a filter definition (or saved filter metadata) is structurally invalid.

    group_index/condition_index locate the offending group or condition; field names
    the metadata field when the problem is not inside the definition.
    """

    code = "validation_error"

    def __init__(
        self,
        message: str,
        group_index: Optional[int] = None,
        condition_index: Optional[int] = None,
        field: Optional[str] = None,
    ) -> None:
        self.group_index = group_index
        self.condition_index = condition_index
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update({
            "group_index": self.group_index,
            "condition_index": self.condition_index,
            "field": self.field,
        })
        return body


class NotFoundError(FilterError):
    """Raised for unknown filter ids and for filters the actor may not read."""

    code = "not_found"

    def __init__(self, filter_id: Any = None) -> None:
        self.filter_id = filter_id
        super().__init__("Filter not found")


class PermissionDeniedError(FilterError):
    """Raised when the actor lacks the capability for the scope or action."""

    code = "permission_denied"


class StoreError(FilterError):
    """Persistence failure. Retryable by the caller; never carries internal detail."""

    code = "store_error"

    def __init__(self, message: str = "The filter store is temporarily unavailable") -> None:
        super().__init__(message)

"""
Strict validation of filter definitions before they are saved.

Unlike the compiler this rejects malformed input, pointing at the offending
group/condition index. Only create/update of saved filters call it.
"""

from typing import Optional

from .definitions import FilterDefinition
from .errors import ValidationError


def validate_definition(definition: FilterDefinition) -> None:
    """
    Raise ValidationError if the definition cannot be saved.

    Rules:
        - at least one group
        - every group has at least one condition
        - every condition names a field
    """
    if not definition.groups:
        raise ValidationError("Filter must have at least one group.")

    for group_index, group in enumerate(definition.groups):
        if not group.conditions:
            raise ValidationError(
                f"Group {group_index} must have conditions.",
                group_index=group_index,
            )
        for condition_index, condition in enumerate(group.conditions):
            if not condition.field:
                raise ValidationError(
                    f"Condition {condition_index} in group {group_index} is missing field.",
                    group_index=group_index,
                    condition_index=condition_index,
                )


def validate_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Filter name is required.", field="name")
    return cleaned

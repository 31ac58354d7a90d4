"""
Ticket taxonomy (statuses, priorities, categories) and the field/operator table.

The taxonomy is passed explicitly into the compiler and the preset builder instead
of being read from process-wide state, so it can be swapped per call (and in tests).
"""

from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel
import json
import os

TAXONOMY_FILE = os.environ.get("TAXONOMY_FILE")


# Field classes
SINGLE_SELECT = "select_single"
MULTI_SELECT = "select_multiple"
IDENTITY = "identity"
DATE = "date"
TEXT = "text"

FIELD_CLASSES: Dict[str, str] = {
    "status": SINGLE_SELECT,
    "priority": SINGLE_SELECT,
    "category": SINGLE_SELECT,
    "tags": MULTI_SELECT,
    "assignee": IDENTITY,
    "reporter": IDENTITY,
    "created_date": DATE,
    "modified_date": DATE,
    "text_search": TEXT,
}

CLASS_OPERATORS: Dict[str, Tuple[str, ...]] = {
    SINGLE_SELECT: ("equals", "not_equals"),
    MULTI_SELECT: ("in", "not_in"),
    IDENTITY: ("equals", "not_equals", "in", "not_in", "exists", "not_exists"),
    DATE: ("after", "before", "between", "relative"),
    TEXT: ("contains",),
}

# Priority may also be batched ("high or urgent"), so it takes the multi-select operators too
FIELD_OPERATOR_OVERRIDES: Dict[str, Tuple[str, ...]] = {
    "priority": ("equals", "not_equals", "in", "not_in"),
}


class StatusOption(BaseModel):
    slug: str
    name: str
    is_closed: bool = False


class PriorityOption(BaseModel):
    slug: str
    name: str
    level: Optional[str] = None


class CategoryOption(BaseModel):
    slug: str
    name: str


DEFAULT_STATUSES = [
    StatusOption(slug="open", name="Open"),
    StatusOption(slug="in-progress", name="In Progress"),
    StatusOption(slug="pending", name="Pending"),
    StatusOption(slug="resolved", name="Resolved", is_closed=True),
    StatusOption(slug="closed", name="Closed", is_closed=True),
]

DEFAULT_PRIORITIES = [
    PriorityOption(slug="low", name="Low", level="low"),
    PriorityOption(slug="medium", name="Medium", level="medium"),
    PriorityOption(slug="high", name="High", level="high"),
    PriorityOption(slug="urgent", name="Urgent", level="urgent"),
]

DEFAULT_CATEGORIES = [
    CategoryOption(slug="general", name="General"),
    CategoryOption(slug="billing", name="Billing"),
    CategoryOption(slug="technical", name="Technical"),
]


class TaxonomyProvider:
    """Holds the configured ticket options and answers field/operator questions."""

    def __init__(
        self,
        statuses: Optional[List[StatusOption]] = None,
        priorities: Optional[List[PriorityOption]] = None,
        categories: Optional[List[CategoryOption]] = None,
    ):
        self.statuses = list(statuses if statuses is not None else DEFAULT_STATUSES)
        self.priorities = list(priorities if priorities is not None else DEFAULT_PRIORITIES)
        self.categories = list(categories if categories is not None else DEFAULT_CATEGORIES)

    @classmethod
    def from_dict(cls, data: Dict) -> "TaxonomyProvider":
        statuses = data.get("statuses")
        priorities = data.get("priorities")
        categories = data.get("categories")
        return cls(
            statuses=[StatusOption(**s) for s in statuses] if statuses is not None else None,
            priorities=[PriorityOption(**p) for p in priorities] if priorities is not None else None,
            categories=[CategoryOption(**c) for c in categories] if categories is not None else None,
        )

    # --- field/operator table ---
    def field_class(self, field: Optional[str]) -> Optional[str]:
        if field is None:
            return None
        return FIELD_CLASSES.get(field)

    def operators_for(self, field: Optional[str]) -> Tuple[str, ...]:
        if field in FIELD_OPERATOR_OVERRIDES:
            return FIELD_OPERATOR_OVERRIDES[field]
        field_class = self.field_class(field)
        if field_class is None:
            return ()
        return CLASS_OPERATORS[field_class]

    def allows(self, field: Optional[str], operator: Optional[str]) -> bool:
        return operator in self.operators_for(field)

    def operator_table(self) -> Dict[str, Dict[str, object]]:
        return {
            field: {"class": field_class, "operators": list(self.operators_for(field))}
            for field, field_class in FIELD_CLASSES.items()
        }

    # --- option lookups ---
    def options_for(self, field: str) -> List[BaseModel]:
        if field == "status":
            return self.statuses
        if field == "priority":
            return self.priorities
        if field == "category":
            return self.categories
        return []

    def resolve_slug(self, field: str, value: str) -> str:
        """Map a slug or display name (case-insensitive) to its slug; unknown values pass through."""
        needle = value.strip().lower()
        for option in self.options_for(field):
            if option.slug.lower() == needle or option.name.strip().lower() == needle:
                return option.slug
        return value.strip()

    def closed_statuses(self) -> List[str]:
        return [s.slug for s in self.statuses if s.is_closed]

    def high_priorities(self) -> List[str]:
        out = []
        for p in self.priorities:
            level = (p.level or p.slug).lower()
            if level in ("high", "critical", "urgent"):
                out.append(p.slug)
        return out


def load_taxonomy(path: Optional[str] = None) -> TaxonomyProvider:
    """Build the taxonomy from TAXONOMY_FILE (JSON) when configured, else the defaults."""
    path = path or TAXONOMY_FILE
    if not path:
        return TaxonomyProvider()
    with open(path, "r", encoding="utf-8") as f:
        return TaxonomyProvider.from_dict(json.load(f))

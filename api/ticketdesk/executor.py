"""
Query executor: runs an ExecutionPlan inside a visibility scope and paginates.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional
import math
import os

from .filters import ExecutionPlan
from .visibility import RestrictedTo, VisibilityScope

MAX_PER_PAGE = int(os.environ.get("FILTERS_MAX_PER_PAGE", "200"))
DEFAULT_PER_PAGE = 20


@dataclass(frozen=True)
class PageSpec:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    @classmethod
    def clamp(cls, page: Any = 1, per_page: Any = DEFAULT_PER_PAGE) -> "PageSpec":
        """Bring requested values into range (page >= 1, 1 <= per_page <= MAX_PER_PAGE)."""
        try:
            page = int(page)
        except (TypeError, ValueError):
            page = 1
        try:
            per_page = int(per_page)
        except (TypeError, ValueError):
            per_page = DEFAULT_PER_PAGE
        return cls(page=max(1, page), per_page=min(max(1, per_page), MAX_PER_PAGE))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


@dataclass
class ResultPage:
    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    pages: int = 0
    error: Optional[str] = None


def _scope_is_empty(scope: VisibilityScope) -> bool:
    return isinstance(scope, RestrictedTo) and scope.is_empty


class QueryExecutor:
    """
    Executes plans against a ticket store.

    An empty visibility scope or a match-none plan never reaches the store.
    Results are ordered by the plan's sort with ticket id ascending as tie-break,
    so paging through a fixed data set never repeats or skips a ticket.
    """

    def __init__(self, store):
        self.store = store

    def execute(self, plan: ExecutionPlan, scope: VisibilityScope, page: PageSpec) -> ResultPage:
        if plan.match_none or _scope_is_empty(scope):
            return ResultPage(page=page.page, per_page=page.per_page)

        ids, total = self.store.query(plan, scope, page.offset, page.per_page)
        items = self.store.fetch(ids)
        return ResultPage(
            items=items,
            total=total,
            page=page.page,
            per_page=page.per_page,
            pages=math.ceil(total / page.per_page) if total else 0,
        )

    def count(self, plan: ExecutionPlan, scope: VisibilityScope) -> int:
        if plan.match_none or _scope_is_empty(scope):
            return 0
        return self.store.count(plan, scope)

"""
Filter service: the entry point the HTTP routes call.

preview/apply compile permissively and never validate, so a half-built filter in the
builder still previews; save validates strictly. Persistence failures while previewing
or applying degrade to an empty result carrying a generic error message.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from .access import AccessControl
from .definitions import FilterDefinition
from .errors import StoreError
from .executor import PageSpec, QueryExecutor, ResultPage
from .filters import ExecutionPlan, FilterCompiler
from .models import SavedFilter, User
from .presets import ensure_default_filters
from .saved_filters import SavedFilterStore, saved_definition
from .taxonomy import TaxonomyProvider
from .ticket_store import TicketStore
from .visibility import VisibilityResolver, VisibilityScope

logger = logging.getLogger(__name__)


@dataclass
class PreviewResult:
    count: int = 0
    error: Optional[str] = None


class FilterService:
    """Compiles, scopes, executes and persists filters for one request."""

    def __init__(self, db: Session, taxonomy: Optional[TaxonomyProvider] = None, access: Optional[AccessControl] = None):
        self.db = db
        self.taxonomy = taxonomy or TaxonomyProvider()
        self.access = access or AccessControl(db)
        self.tickets = TicketStore(db)
        self.compiler = FilterCompiler(self.taxonomy)
        self.resolver = VisibilityResolver(self.access, self.tickets)
        self.executor = QueryExecutor(self.tickets)
        self.saved = SavedFilterStore(db, self.access)
        self._scopes: Dict[int, VisibilityScope] = {}

    def _scope(self, actor: User) -> VisibilityScope:
        # Resolved once per actor for the lifetime of this service (one request)
        if actor.id not in self._scopes:
            self._scopes[actor.id] = self.resolver.resolve(actor)
        return self._scopes[actor.id]

    def _compile(self, definition: FilterDefinition) -> ExecutionPlan:
        plan = self.compiler.compile(definition)
        if plan.match_none:
            logger.debug("No usable conditions in a %d-condition filter; matching nothing", definition.condition_count)
        return plan

    # --- query ---
    def preview(self, actor: User, definition: FilterDefinition) -> PreviewResult:
        plan = self._compile(definition)
        try:
            return PreviewResult(count=self.executor.count(plan, self._scope(actor)))
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Ticket store failed during preview")
            return PreviewResult(count=0, error=StoreError().message)

    def apply(self, actor: User, ref: Union[FilterDefinition, int], page: Optional[PageSpec] = None) -> ResultPage:
        """
        Run a filter and return one page of tickets.

        Args:
            actor: Requesting user
            ref: Ad hoc definition, or the id of a saved filter the actor can read
            page: Page request (defaults to the first page)

        Raises:
            NotFoundError: `ref` is a saved filter id the actor cannot read
        """
        page = page or PageSpec()
        if isinstance(ref, FilterDefinition):
            definition = ref
        else:
            definition = saved_definition(self.saved.get(actor, ref))
        plan = self._compile(definition)
        try:
            return self.executor.execute(plan, self._scope(actor), page)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Ticket store failed during apply")
            return ResultPage(page=page.page, per_page=page.per_page, error=StoreError().message)

    # --- saved filters ---
    def save(
        self,
        actor: User,
        definition: Optional[FilterDefinition],
        metadata: Dict[str, Any],
        filter_id: Optional[int] = None,
    ) -> SavedFilter:
        """Create a saved filter, or update `filter_id` when given."""
        if filter_id is None:
            return self.saved.create(actor, definition or FilterDefinition(), metadata)
        return self.saved.update(actor, filter_id, definition, metadata)

    def list_saved_filters(self, actor: User) -> Dict[str, List[SavedFilter]]:
        return {
            "user": self.saved.list_for_user(actor),
            "organization": self.saved.list_for_organization(actor),
        }

    def get_saved_filter(self, actor: User, filter_id: int) -> SavedFilter:
        return self.saved.get(actor, filter_id)

    def delete_saved_filter(self, actor: User, filter_id: int) -> None:
        self.saved.delete(actor, filter_id)

    def set_default(self, actor: User, filter_id: int) -> SavedFilter:
        return self.saved.set_default(actor, filter_id)

    def get_default(self, actor: User) -> Optional[SavedFilter]:
        return self.saved.get_default(actor)

    def ensure_presets(self, actor: User) -> List[SavedFilter]:
        return ensure_default_filters(self.saved, actor, self.taxonomy)

"""
Saved filter store: persistence, permission checks and default election.

Scopes:
    user          owner_id is the user id; visible to the owner (and admins)
    organization  owner_id is the organization id; visible to its members (and admins)

Every write is one transaction. Integrity or database failures roll the session back
and surface as StoreError; the underlying exception is logged, never returned.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import json
import logging

from .access import (
    AccessControl,
    CAP_ORG_CREATE,
    CAP_ORG_DELETE,
    CAP_ORG_EDIT,
    CAP_ORG_VIEW,
    CAP_USER_CREATE,
    CAP_USER_DELETE,
    CAP_USER_EDIT,
)
from .definitions import FilterDefinition, definition_from_dict, definition_to_dict
from .errors import NotFoundError, PermissionDeniedError, StoreError, ValidationError
from .filters import resolve_sort
from .models import SavedFilter, User
from .validation import validate_definition, validate_name

logger = logging.getLogger(__name__)

SCOPE_USER = "user"
SCOPE_ORG = "organization"
SCOPES = (SCOPE_USER, SCOPE_ORG)

# capability per (scope, action)
_CAPABILITIES = {
    (SCOPE_USER, "create"): CAP_USER_CREATE,
    (SCOPE_USER, "edit"): CAP_USER_EDIT,
    (SCOPE_USER, "delete"): CAP_USER_DELETE,
    (SCOPE_ORG, "create"): CAP_ORG_CREATE,
    (SCOPE_ORG, "edit"): CAP_ORG_EDIT,
    (SCOPE_ORG, "delete"): CAP_ORG_DELETE,
}


def saved_definition(row: SavedFilter) -> FilterDefinition:
    """Definition stored on a row, with the row's sort columns applied."""
    try:
        data = json.loads(row.definition_json or "{}")
    except json.JSONDecodeError:
        logger.warning("Saved filter %s has unreadable definition_json", row.id)
        data = {}
    return definition_from_dict(data).with_sort(row.sort_field, row.sort_order)


class SavedFilterStore:
    """CRUD for saved filters on behalf of an actor."""

    def __init__(self, db: Session, access: AccessControl):
        self.db = db
        self.access = access

    # --- permission helpers ---
    def _is_member(self, actor: User, org_id: int) -> bool:
        return actor.id in self.access.members_of(org_id)

    def _can_read(self, actor: User, row: SavedFilter) -> bool:
        if self.access.is_elevated(actor):
            return True
        if row.scope_type == SCOPE_USER:
            return row.owner_id == actor.id
        if row.scope_type == SCOPE_ORG:
            return self._is_member(actor, row.owner_id)
        return False

    def _can_modify(self, actor: User, row: SavedFilter, action: str) -> bool:
        if self.access.is_elevated(actor):
            return True
        capability = _CAPABILITIES.get((row.scope_type, action))
        if capability is None or not self.access.can(actor, capability):
            return False
        if row.scope_type == SCOPE_USER:
            return row.owner_id == actor.id
        return self._is_member(actor, row.owner_id)

    def _load(self, actor: User, filter_id: int) -> SavedFilter:
        row = self.db.get(SavedFilter, filter_id)
        if row is None or not self._can_read(actor, row):
            raise NotFoundError(filter_id)
        return row

    def _load_for(self, actor: User, filter_id: int, action: str) -> SavedFilter:
        row = self._load(actor, filter_id)
        if not self._can_modify(actor, row, action):
            logger.info("User %s denied %s on saved filter %s", actor.id, action, filter_id)
            raise PermissionDeniedError(f"You do not have permission to {action} this filter.")
        return row

    # --- transactions ---
    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.exception("Integrity error while trying to %s saved filter", what)
            raise StoreError() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error while trying to %s saved filter", what)
            raise StoreError() from e

    def _elect_default(self, row: SavedFilter) -> None:
        """Make `row` the only default of its scope (caller commits)."""
        # Lock the scope rows so concurrent elections serialize (no-op on SQLite)
        self.db.query(SavedFilter.id).filter(
            SavedFilter.scope_type == row.scope_type,
            SavedFilter.owner_id == row.owner_id,
        ).with_for_update().all()

        self.db.query(SavedFilter).filter(
            SavedFilter.scope_type == row.scope_type,
            SavedFilter.owner_id == row.owner_id,
            SavedFilter.is_default == True,  # noqa: E712
            SavedFilter.id != row.id,
        ).update({"is_default": False}, synchronize_session="fetch")
        row.is_default = True
        self.db.flush()

    # --- reads ---
    def get(self, actor: User, filter_id: int) -> SavedFilter:
        return self._load(actor, filter_id)

    def list_for_user(self, actor: User) -> List[SavedFilter]:
        return self._ordered(SCOPE_USER, actor.id)

    def list_for_organization(self, actor: User) -> List[SavedFilter]:
        """Filters of the actor's organization; empty without one or without the view capability."""
        org = self.access.organization_of(actor)
        if org is None or not self.access.can(actor, CAP_ORG_VIEW):
            return []
        return self._ordered(SCOPE_ORG, org.id)

    def _ordered(self, scope_type: str, owner_id: int) -> List[SavedFilter]:
        return (
            self.db.query(SavedFilter)
            .filter(SavedFilter.scope_type == scope_type, SavedFilter.owner_id == owner_id)
            .order_by(SavedFilter.display_order.asc(), SavedFilter.name.asc(), SavedFilter.id.asc())
            .all()
        )

    def get_default(self, actor: User) -> Optional[SavedFilter]:
        """Personal default first, then the organization default, else None."""
        personal = self.db.query(SavedFilter).filter(
            SavedFilter.scope_type == SCOPE_USER,
            SavedFilter.owner_id == actor.id,
            SavedFilter.is_default == True,  # noqa: E712
        ).first()
        if personal is not None:
            return personal

        org = self.access.organization_of(actor)
        if org is None or not self.access.can(actor, CAP_ORG_VIEW):
            return None
        return self.db.query(SavedFilter).filter(
            SavedFilter.scope_type == SCOPE_ORG,
            SavedFilter.owner_id == org.id,
            SavedFilter.is_default == True,  # noqa: E712
        ).first()

    # --- writes ---
    def create(self, actor: User, definition: FilterDefinition, metadata: Dict[str, Any]) -> SavedFilter:
        """
        Validate and persist a new saved filter.

        Args:
            actor: Creating user
            definition: Parsed definition (validated strictly here)
            metadata: name, description, scope_type, is_default, display_order,
                sort_field, sort_order

        Raises:
            ValidationError, PermissionDeniedError, StoreError
        """
        scope_type = metadata.get("scope_type") or SCOPE_USER
        if scope_type not in SCOPES:
            raise ValidationError("Invalid scope type.", field="scope_type")

        if not self.access.can(actor, _CAPABILITIES[(scope_type, "create")]):
            logger.info("User %s denied create of %s filter", actor.id, scope_type)
            raise PermissionDeniedError("You do not have permission to create filters in this scope.")

        if scope_type == SCOPE_USER:
            owner_id = actor.id
        else:
            org = self.access.organization_of(actor)
            if org is None:
                raise PermissionDeniedError("You must belong to an organization to create organization filters.")
            owner_id = org.id

        name = validate_name(metadata.get("name"))
        validate_definition(definition)

        sort = resolve_sort(
            metadata.get("sort_field") or definition.sort.field,
            metadata.get("sort_order") or definition.sort.order,
        )
        definition = definition.with_sort(sort.field, sort.order)

        row = SavedFilter(
            name=name,
            description=metadata.get("description"),
            scope_type=scope_type,
            owner_id=owner_id,
            definition_json=json.dumps(definition_to_dict(definition)),
            sort_field=sort.field,
            sort_order=sort.order,
            is_default=False,
            display_order=int(metadata.get("display_order") or 0),
            created_by=actor.id,
        )
        try:
            self.db.add(row)
            self.db.flush()
            if metadata.get("is_default"):
                self._elect_default(row)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error while trying to create saved filter")
            raise StoreError() from e
        self._commit("create")
        self.db.refresh(row)
        logger.info("User %s created %s filter %s", actor.id, scope_type, row.id)
        return row

    def update(
        self,
        actor: User,
        filter_id: int,
        definition: Optional[FilterDefinition],
        metadata: Dict[str, Any],
    ) -> SavedFilter:
        """
        Update a saved filter. Only keys present in `metadata` change; scope_type never does.
        """
        row = self._load_for(actor, filter_id, "edit")

        if "scope_type" in metadata and metadata["scope_type"] not in (None, row.scope_type):
            raise ValidationError("The scope of a saved filter cannot change.", field="scope_type")
        name = validate_name(metadata["name"]) if "name" in metadata else row.name
        if definition is not None:
            validate_definition(definition)

        row.name = name
        if "description" in metadata:
            row.description = metadata["description"]
        if metadata.get("display_order") is not None:
            row.display_order = int(metadata["display_order"])

        current = definition if definition is not None else saved_definition(row)

        if "sort_field" in metadata or "sort_order" in metadata or definition is not None:
            sort = resolve_sort(
                metadata.get("sort_field") or (definition.sort.field if definition is not None else row.sort_field),
                metadata.get("sort_order") or (definition.sort.order if definition is not None else row.sort_order),
            )
            row.sort_field = sort.field
            row.sort_order = sort.order
        row.definition_json = json.dumps(definition_to_dict(current.with_sort(row.sort_field, row.sort_order)))

        try:
            if metadata.get("is_default") is True:
                self._elect_default(row)
            elif metadata.get("is_default") is False:
                row.is_default = False
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error while trying to update saved filter")
            raise StoreError() from e
        self._commit("update")
        self.db.refresh(row)
        return row

    def delete(self, actor: User, filter_id: int) -> None:
        row = self._load_for(actor, filter_id, "delete")
        self.db.delete(row)
        self._commit("delete")
        logger.info("User %s deleted saved filter %s", actor.id, filter_id)

    def set_default(self, actor: User, filter_id: int) -> SavedFilter:
        """Make the filter the single default of its scope."""
        row = self._load_for(actor, filter_id, "edit")
        try:
            self._elect_default(row)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database error while trying to set default saved filter")
            raise StoreError() from e
        self._commit("set default for")
        self.db.refresh(row)
        return row

"""
Default queue filters created for users who have none yet.
"""

from typing import Any, Dict, List, Optional
import logging
import re

from .access import CAP_USER_CREATE
from .filters import legacy_config_to_definition
from .models import SavedFilter, User
from .saved_filters import SCOPE_USER, SavedFilterStore
from .taxonomy import TaxonomyProvider

logger = logging.getLogger(__name__)

_IN_PROGRESS_SLUGS = ("in-progress", "in_progress", "inprogress")
_IN_PROGRESS_NAME = re.compile(r"^in[\s\-_]?progress$", re.IGNORECASE)


def default_filter_configs(taxonomy: TaxonomyProvider) -> List[Dict[str, Any]]:
    """
    The preset list as queue-filter configurations, in display order.

    Status/priority based entries are left out when the taxonomy has nothing for them.
    """
    open_statuses = [
        s.slug for s in taxonomy.statuses
        if s.slug == "open" or s.name.strip().lower() == "open"
    ]
    in_progress = [
        s.slug for s in taxonomy.statuses
        if s.slug in _IN_PROGRESS_SLUGS or _IN_PROGRESS_NAME.match(s.name.strip())
    ]
    closed = taxonomy.closed_statuses()
    high = taxonomy.high_priorities()

    presets: List[Optional[Dict[str, Any]]] = [
        {"name": "Open Tickets", "description": "All tickets with open status",
         "config": {"status": open_statuses}} if open_statuses else None,
        {"name": "In Progress", "description": "All tickets currently in progress",
         "config": {"status": in_progress}} if in_progress else None,
        {"name": "My Tickets", "description": "Tickets assigned to me",
         "config": {"assignee_type": "me"}, "is_default": True},
        {"name": "Unassigned", "description": "Tickets not yet assigned to anyone",
         "config": {"assignee_type": "unassigned"}},
        {"name": "Created Today", "description": "Tickets created today",
         "config": {"date_created": {"operator": "today"}}},
        {"name": "Closed", "description": "All closed tickets",
         "config": {"status": closed}} if closed else None,
        {"name": "High Priority", "description": "High and critical priority tickets",
         "config": {"priority": high}} if high else None,
    ]
    return [p for p in presets if p is not None]


def ensure_default_filters(
    store: SavedFilterStore,
    actor: User,
    taxonomy: TaxonomyProvider,
) -> List[SavedFilter]:
    """
    Create the preset filters for `actor` unless they already have personal filters.

    Returns:
        The filters created (empty when nothing was done).
    """
    if store.list_for_user(actor):
        return []
    if not store.access.can(actor, CAP_USER_CREATE):
        return []

    created: List[SavedFilter] = []
    for display_order, preset in enumerate(default_filter_configs(taxonomy), start=1):
        definition = legacy_config_to_definition(preset["config"], actor_id=actor.id)
        created.append(store.create(actor, definition, {
            "name": preset["name"],
            "description": preset["description"],
            "scope_type": SCOPE_USER,
            "display_order": display_order,
            "is_default": preset.get("is_default", False),
        }))

    logger.info("Created %d default filters for user %s", len(created), actor.id)
    return created

from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, List, Optional

from .definitions import RELATIVE_DATES, FilterDefinition
from .deps import get_current_user, get_filter_service
from .executor import PageSpec
from .filter_service import FilterService
from .filters import legacy_config_to_definition, resolve_sort
from .models import User
from .routes_filters import result_page_out
from .schemas import ResultPageOut

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _legacy_config(
    status: Optional[List[str]],
    priority: Optional[List[str]],
    category: Optional[List[str]],
    assignee: Optional[str],
    reporter: Optional[List[int]],
    organization: Optional[List[int]],
    created: Optional[str],
    created_start: Optional[str],
    created_end: Optional[str],
    search: Optional[str],
) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    if status:
        config["status"] = status
    if priority:
        config["priority"] = priority
    if category:
        config["category"] = category
    if assignee:
        if assignee in ("me", "unassigned"):
            config["assignee_type"] = assignee
        else:
            ids = [int(p) for p in assignee.split(",") if p.strip().isdigit()]
            if ids:
                config["assignee_type"] = "specific"
                config["assignee_ids"] = ids
    if reporter:
        config["reporter_ids"] = reporter
    if organization:
        config["organization_ids"] = organization
    if created in RELATIVE_DATES or created in ("between", "before", "after"):
        config["date_created"] = {"operator": created, "start": created_start, "end": created_end}
    if search:
        config["search_phrase"] = search
    return config


@router.get("", response_model=ResultPageOut)
def list_tickets(
    filter_id: Optional[int] = None,
    status: Optional[List[str]] = Query(None),
    priority: Optional[List[str]] = Query(None),
    category: Optional[List[str]] = Query(None),
    assignee: Optional[str] = None,
    reporter: Optional[List[int]] = Query(None),
    organization: Optional[List[int]] = Query(None),
    created: Optional[str] = None,
    created_start: Optional[str] = None,
    created_end: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """
    Ticket queue.

    Precedence:
        1. filter_id: that saved filter
        2. queue parameters (status, priority, category, assignee, reporter, organization, created, search)
        3. the user's default filter
        4. every ticket the user can see
    """
    page_spec = PageSpec.clamp(page, per_page)

    if filter_id is not None:
        return result_page_out(service.apply(current, filter_id, page_spec), filter_id)

    config = _legacy_config(
        status, priority, category, assignee, reporter, organization, created, created_start, created_end, search
    )
    if config:
        definition = legacy_config_to_definition(
            config,
            actor_id=current.id,
            members_of=service.access.members_of,
            sort_field=sort,
            sort_order=order,
        )
        return result_page_out(service.apply(current, definition, page_spec))

    default = service.get_default(current)
    if default is not None:
        return result_page_out(service.apply(current, default.id, page_spec), default.id)

    spec = resolve_sort(sort, order)
    return result_page_out(service.apply(current, FilterDefinition().with_sort(spec.field, spec.order), page_spec))

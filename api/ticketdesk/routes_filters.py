"""
Queue filter API routes

Preview, apply and CRUD for saved filters. Permission checks and validation live in
the filter service; FilterError subclasses are mapped to HTTP codes in main.py.
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict, List, Optional
import json

from .definitions import FilterDefinition, definition_from_dict
from .deps import get_current_user, get_filter_service, get_taxonomy
from .executor import PageSpec, ResultPage
from .filter_service import FilterService
from .models import SavedFilter, Ticket, User
from .schemas import (
    ApplyRequest,
    FilterDefinitionIn,
    PreviewOut,
    ResultPageOut,
    SavedFilterCreate,
    SavedFilterListOut,
    SavedFilterOut,
    SavedFilterUpdate,
    TicketSummaryOut,
)
from .taxonomy import TaxonomyProvider

router = APIRouter(prefix="/filters", tags=["filters"])


def to_definition(body: Optional[FilterDefinitionIn]) -> FilterDefinition:
    if body is None:
        return FilterDefinition()
    return definition_from_dict(body.model_dump())


def saved_filter_out(row: SavedFilter) -> SavedFilterOut:
    try:
        definition = json.loads(row.definition_json or "{}")
    except json.JSONDecodeError:
        definition = {}
    return SavedFilterOut(
        id=row.id,
        name=row.name,
        description=row.description,
        scope_type=row.scope_type,
        owner_id=row.owner_id,
        definition=definition,
        sort_field=row.sort_field,
        sort_order=row.sort_order,
        is_default=bool(row.is_default),
        display_order=row.display_order or 0,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def ticket_summary_out(t: Ticket) -> TicketSummaryOut:
    return TicketSummaryOut(
        id=t.id,
        title=t.title,
        status=t.status,
        priority=t.priority,
        category=t.category,
        assignee_id=t.assignee_id,
        reporter_id=t.reporter_id,
        created_by=t.created_by,
        created_at=t.created_at,
        modified_at=t.modified_at,
        tags=sorted(tag.tag for tag in t.tags),
    )


def result_page_out(result: ResultPage, filter_id: Optional[int] = None) -> ResultPageOut:
    return ResultPageOut(
        items=[ticket_summary_out(t) for t in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        pages=result.pages,
        error=result.error,
        filter_id=filter_id,
    )


@router.post("/preview", response_model=PreviewOut)
def preview_filter(
    body: FilterDefinitionIn,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """
    Count the tickets an unsaved definition would match.

    Never validates: unusable conditions are dropped.
    """
    result = service.preview(current, to_definition(body))
    return PreviewOut(count=result.count, error=result.error)


@router.post("/apply", response_model=ResultPageOut)
def apply_filter(
    body: ApplyRequest,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """
    Run an ad hoc definition, or a saved filter when filter_id is given.
    """
    page = PageSpec.clamp(body.page, body.per_page)
    if body.filter_id is not None:
        result = service.apply(current, body.filter_id, page)
    else:
        result = service.apply(current, to_definition(body.definition), page)
    return result_page_out(result, body.filter_id)


@router.get("", response_model=SavedFilterListOut)
def list_saved_filters(
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """
    List the current user's personal filters and their organization's filters.

    Each list is ordered by display_order, name, id.
    """
    grouped = service.list_saved_filters(current)
    return SavedFilterListOut(
        user=[saved_filter_out(r) for r in grouped["user"]],
        organization=[saved_filter_out(r) for r in grouped["organization"]],
    )


@router.get("/default", response_model=Optional[SavedFilterOut])
def get_default_filter(
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """Personal default, else organization default, else null."""
    row = service.get_default(current)
    return saved_filter_out(row) if row is not None else None


@router.get("/fields")
def list_filter_fields(
    taxonomy: TaxonomyProvider = Depends(get_taxonomy),
    current: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Field classes, allowed operators and the selectable options per field."""
    fields = taxonomy.operator_table()
    for name in ("status", "priority", "category"):
        fields[name]["options"] = [o.model_dump() for o in taxonomy.options_for(name)]
    return {"fields": fields}


@router.post("/presets", response_model=List[SavedFilterOut])
def create_preset_filters(
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """Create the default queue filters when the user has no personal filters yet."""
    return [saved_filter_out(r) for r in service.ensure_presets(current)]


@router.post("", status_code=201, response_model=SavedFilterOut)
def create_saved_filter(
    body: SavedFilterCreate,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """
    Create new saved filter.

    Validates the definition strictly. If is_default=True, clears any other default
    in the same scope within the same transaction.
    """
    metadata = body.model_dump(exclude={"definition"})
    row = service.save(current, to_definition(body.definition), metadata)
    return saved_filter_out(row)


@router.get("/{filter_id}", response_model=SavedFilterOut)
def get_saved_filter(
    filter_id: int,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    return saved_filter_out(service.get_saved_filter(current, filter_id))


@router.patch("/{filter_id}", response_model=SavedFilterOut)
def update_saved_filter(
    filter_id: int,
    body: SavedFilterUpdate,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """
    Update saved filter.

    Only fields present in the body change; scope_type cannot change.
    """
    metadata = body.model_dump(exclude_unset=True, exclude={"definition"})
    definition = to_definition(body.definition) if body.definition is not None else None
    row = service.save(current, definition, metadata, filter_id=filter_id)
    return saved_filter_out(row)


@router.delete("/{filter_id}")
def delete_saved_filter(
    filter_id: int,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    service.delete_saved_filter(current, filter_id)
    return {"message": "Filter deleted successfully"}


@router.post("/{filter_id}/default", response_model=SavedFilterOut)
def set_default_filter(
    filter_id: int,
    service: FilterService = Depends(get_filter_service),
    current: User = Depends(get_current_user),
):
    """Make this filter the single default of its scope."""
    return saved_filter_out(service.set_default(current, filter_id))

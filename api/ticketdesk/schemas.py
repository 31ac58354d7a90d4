from pydantic import BaseModel, EmailStr, Field
from pydantic import ConfigDict
from typing import Dict, List, Optional
from typing import Any, Literal
from datetime import datetime


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    display_name: Optional[str] = Field(default=None, max_length=120)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: int
    email: EmailStr
    display_name: Optional[str] = None
    role: str
    is_admin: bool

    # Pydantic v2 style config
    model_config = ConfigDict(from_attributes=True)


# --- Filter definitions (parsed permissively by definitions.definition_from_dict) ---
class SortIn(BaseModel):
    field: Optional[str] = None
    order: Optional[str] = None


class FilterDefinitionIn(BaseModel):
    """Loose shape: unknown fields/operators are kept so the compiler can drop them."""
    groups: List[Any] = Field(default_factory=list)
    sort: Optional[SortIn] = None


class SavedFilterCreate(BaseModel):
    name: str = Field(max_length=128)
    description: Optional[str] = None
    scope_type: Literal["user", "organization"] = "user"
    definition: FilterDefinitionIn
    sort_field: Optional[str] = None
    sort_order: Optional[str] = None
    is_default: bool = False
    display_order: int = 0


class SavedFilterUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=128)
    description: Optional[str] = None
    scope_type: Optional[str] = None
    definition: Optional[FilterDefinitionIn] = None
    sort_field: Optional[str] = None
    sort_order: Optional[str] = None
    is_default: Optional[bool] = None
    display_order: Optional[int] = None


class SavedFilterOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    scope_type: str
    owner_id: int
    definition: Dict[str, Any]
    sort_field: str
    sort_order: str
    is_default: bool
    display_order: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SavedFilterListOut(BaseModel):
    user: List[SavedFilterOut]
    organization: List[SavedFilterOut]


class PreviewOut(BaseModel):
    count: int
    error: Optional[str] = None


class ApplyRequest(BaseModel):
    """Either an ad hoc definition or a saved filter id."""
    definition: Optional[FilterDefinitionIn] = None
    filter_id: Optional[int] = None
    page: int = 1
    per_page: int = 20


class TicketSummaryOut(BaseModel):
    id: int
    title: str
    status: str
    priority: str
    category: Optional[str] = None
    assignee_id: Optional[int] = None
    reporter_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)


class ResultPageOut(BaseModel):
    items: List[TicketSummaryOut]
    total: int
    page: int
    per_page: int
    pages: int
    error: Optional[str] = None
    filter_id: Optional[int] = None

"""
Identity/access service: elevation, organization membership, organization policy
and filter capabilities.

Capability resolution order (first match wins):
    1. administrators always have every capability
    2. organization in "custom" access-control mode with an explicit entry
    3. role permissions (ROLE_PERMISSIONS_JSON)
    4. the capability default
"""

from typing import Dict, List, Literal, Optional, Set
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
import json
import logging
import os

from .models import Organization, OrganizationMember, User

logger = logging.getLogger(__name__)

# Filter capabilities
CAP_USER_CREATE = "queue_filters_user_create"
CAP_USER_EDIT = "queue_filters_user_edit"
CAP_USER_DELETE = "queue_filters_user_delete"
CAP_ORG_VIEW = "queue_filters_org_view"
CAP_ORG_CREATE = "queue_filters_org_create"
CAP_ORG_EDIT = "queue_filters_org_edit"
CAP_ORG_DELETE = "queue_filters_org_delete"

FILTER_CAPABILITIES: Dict[str, Dict[str, object]] = {
    CAP_USER_CREATE: {"label": "Create personal filters", "default": True},
    CAP_USER_EDIT: {"label": "Edit personal filters", "default": True},
    CAP_USER_DELETE: {"label": "Delete personal filters", "default": True},
    CAP_ORG_VIEW: {"label": "View organization filters", "default": True},
    CAP_ORG_CREATE: {"label": "Create organization filters", "default": False},
    CAP_ORG_EDIT: {"label": "Edit organization filters", "default": False},
    CAP_ORG_DELETE: {"label": "Delete organization filters", "default": False},
}


def _load_role_permissions() -> Dict[str, Dict[str, bool]]:
    raw = os.environ.get("ROLE_PERMISSIONS_JSON")
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("ROLE_PERMISSIONS_JSON is not valid JSON; using capability defaults")
        return {}
    if not isinstance(data, dict):
        return {}
    return {
        str(role): {str(k): bool(v) for k, v in perms.items()}
        for role, perms in data.items()
        if isinstance(perms, dict)
    }


ROLE_PERMISSIONS = _load_role_permissions()

# Ticket visibility policies
OWN_ONLY = "own"
ORG_WIDE = "organization"
ALL = "all"


class OrganizationPolicy(BaseModel):
    """Typed view of an organization's settings, with defaults for every key."""
    ticket_visibility: Literal["own", "organization", "all"] = OWN_ONLY
    shared_organization_ids: List[int] = Field(default_factory=list)
    access_control_mode: Literal["role", "custom"] = "role"
    access_control: Dict[str, bool] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_settings(cls, settings_json: Optional[str]) -> "OrganizationPolicy":
        if not settings_json:
            return cls()
        try:
            return cls.model_validate_json(settings_json)
        except PydanticValidationError:
            # Unreadable settings fall back to the most restrictive policy
            logger.warning("Organization settings could not be parsed; using defaults")
            return cls()


class AccessControl:
    """Answers who the actor is allowed to be, for one database session."""

    def __init__(self, db: Session, role_permissions: Optional[Dict[str, Dict[str, bool]]] = None):
        self.db = db
        self.role_permissions = ROLE_PERMISSIONS if role_permissions is None else role_permissions

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def is_elevated(self, user: Optional[User]) -> bool:
        return bool(user is not None and user.is_admin)

    def organization_of(self, user: Optional[User]) -> Optional[Organization]:
        if user is None:
            return None
        return (
            self.db.query(Organization)
            .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
            .filter(OrganizationMember.user_id == user.id)
            .order_by(Organization.id.asc())
            .first()
        )

    def organization_policy(self, org: Organization) -> OrganizationPolicy:
        return OrganizationPolicy.from_settings(org.settings_json)

    def members_of(self, org_id: int) -> Set[int]:
        rows = self.db.query(OrganizationMember.user_id).filter(
            OrganizationMember.organization_id == org_id
        ).all()
        return {r[0] for r in rows}

    def can(self, user: Optional[User], capability: str) -> bool:
        if user is None or not user.is_active:
            return False
        if self.is_elevated(user):
            return True

        org = self.organization_of(user)
        if org is not None:
            policy = self.organization_policy(org)
            if policy.access_control_mode == "custom" and capability in policy.access_control:
                return policy.access_control[capability]

        role_perms = self.role_permissions.get(user.role or "", {})
        if capability in role_perms:
            return role_perms[capability]

        return bool(FILTER_CAPABILITIES.get(capability, {}).get("default", False))

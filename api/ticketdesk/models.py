from sqlalchemy import Column, Integer, String, DateTime, func, Boolean, ForeignKey, UniqueConstraint, Text, Index
from sqlalchemy import TIMESTAMP, false, text
from sqlalchemy.orm import relationship
from .db import Base


class User(Base):
    """
    User model for storing helpdesk accounts.

    Attributes:
        id (int): Primary key.
        email (str): User's email address, unique.
        display_name (str): Optional name shown in ticket lists.
        password_hash (str): Hashed password for authentication.
        role (str): Primary role used for capability lookups (e.g. "agent", "customer").
        is_admin (bool): Elevated rights; sees every ticket and edits every filter.
        is_active (bool): Status of the user account.
        created_at (datetime): Timestamp of account creation.
    """
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(120), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="agent", server_default="agent")
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    memberships = relationship("OrganizationMember", back_populates="user", cascade="all, delete-orphan")


# --- Organizations (membership is managed elsewhere; read-only here) ---
class Organization(Base):
    """
    Organization model.

    Attributes:
        id (int): Primary key.
        name (str): Organization name.
        settings_json (str): Serialized OrganizationPolicy (visibility + access control).
        created_at (datetime): Timestamp of creation.
    """
    __tablename__ = "organizations"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    settings_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")


class OrganizationMember(Base):
    __tablename__ = "organization_members"
    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_organization_members_org_user"),
    )


# --- Tickets (attribute storage read by the query engine) ---
class Ticket(Base):
    """
    Ticket model holding the attributes the filter engine queries.

    Attributes:
        id (int): Primary key.
        title (str): Ticket subject.
        body (str): Ticket description.
        status (str): Status slug (e.g. "open", "resolved").
        priority (str): Priority slug (e.g. "low", "high").
        category (str): Optional category slug.
        assignee_id (int): Assigned agent, null when unassigned.
        reporter_id (int): User who reported the issue, may differ from the creator.
        created_by (int): User who created the ticket record.
        created_at (datetime): Creation timestamp.
        modified_at (datetime): Last modification timestamp.
    """
    __tablename__ = "tickets"
    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    status = Column(String(64), nullable=False, index=True)
    priority = Column(String(64), nullable=False, index=True)
    category = Column(String(64), nullable=True, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    modified_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tags = relationship("TicketTag", back_populates="ticket", cascade="all, delete-orphan")


class TicketTag(Base):
    __tablename__ = "ticket_tags"
    id = Column(Integer, primary_key=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String(64), nullable=False, index=True)

    ticket = relationship("Ticket", back_populates="tags")

    __table_args__ = (
        UniqueConstraint("ticket_id", "tag", name="uq_ticket_tags_ticket_tag"),
    )


# --- Saved filters ---
class SavedFilter(Base):
    """
    SavedFilter model for storing named, reusable ticket filters.

    Attributes:
        id (int): Primary key.
        name (str): Name of the filter (duplicates allowed within a scope).
        description (str): Optional description.
        scope_type (str): "user" or "organization"; fixed at creation.
        owner_id (int): User id for user scope, organization id for organization scope.
        definition_json (str): Filter definition (groups, conditions, sort) as JSON string.
        sort_field (str): Sort field applied when the filter is used.
        sort_order (str): "ASC" or "DESC".
        is_default (bool): Whether this is the default filter of its scope.
        display_order (int): Position in filter lists.
        created_by (int): User who created the filter.
        created_at (datetime): Timestamp of creation.
        updated_at (datetime): Timestamp of last update.
    """
    __tablename__ = "saved_filters"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)

    scope_type = Column(String(16), nullable=False)
    owner_id = Column(Integer, nullable=False)

    definition_json = Column(Text, nullable=False)
    sort_field = Column(String(32), nullable=False, default="created_at")
    sort_order = Column(String(4), nullable=False, default="DESC")

    is_default = Column(Boolean, nullable=False, default=False, server_default=false())
    display_order = Column(Integer, nullable=False, default=0)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_saved_filters_scope", "scope_type", "owner_id"),
        # At most one default per scope, enforced by the database as well
        Index(
            "uq_saved_filters_default_scope",
            "scope_type",
            "owner_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

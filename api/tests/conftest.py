import os
import tempfile

# Point the app at a throwaway SQLite file before ticketdesk.db builds its engine
_db_dir = tempfile.mkdtemp(prefix="ticketdesk-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
)
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime
import json
import uuid

import pytest

from ticketdesk.db import Base, SessionLocal, engine
from ticketdesk.models import Organization, OrganizationMember, Ticket, TicketTag, User

Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """Every test starts from empty tables."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield
    SessionLocal.remove()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(email=None, role="agent", is_admin=False, is_active=True):
        user = User(
            email=email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            password_hash="not-a-real-hash",
            role=role,
            is_admin=is_admin,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_org(db):
    def _make(members=(), settings=None, name="Acme"):
        org = Organization(name=name, settings_json=json.dumps(settings) if settings is not None else None)
        db.add(org)
        db.flush()
        for user in members:
            db.add(OrganizationMember(organization_id=org.id, user_id=user.id))
        db.commit()
        db.refresh(org)
        return org
    return _make


@pytest.fixture
def make_ticket(db):
    def _make(
        title="Ticket",
        body=None,
        status="open",
        priority="medium",
        category=None,
        assignee=None,
        reporter=None,
        created_by=None,
        created_at=None,
        modified_at=None,
        tags=(),
    ):
        ticket = Ticket(
            title=title,
            body=body,
            status=status,
            priority=priority,
            category=category,
            assignee_id=assignee.id if assignee is not None else None,
            reporter_id=reporter.id if reporter is not None else None,
            created_by=created_by.id if created_by is not None else None,
            created_at=created_at or datetime.utcnow(),
            modified_at=modified_at or created_at or datetime.utcnow(),
        )
        ticket.tags = [TicketTag(tag=t) for t in tags]
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket
    return _make

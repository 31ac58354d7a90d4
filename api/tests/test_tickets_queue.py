from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from ticketdesk.main import app
from ticketdesk.models import User
import uuid

client = TestClient(app)


def register_and_login():
    email = f"queue_{uuid.uuid4().hex[:8]}@example.com"
    pwd = "S3cretPwd!"
    r = client.post("/auth/register", json={"email": email, "password": pwd})
    user_id = r.json()["id"]
    tok_resp = client.post(
        "/auth/login",
        data={"username": email, "password": pwd},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    token = tok_resp.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}, user_id


def ids(r):
    assert r.status_code == 200, r.text
    return [t["id"] for t in r.json()["items"]]


def test_queue_lists_visible_tickets_newest_first(db, make_user, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    other = make_user()
    old = make_ticket(created_by=me, created_at=datetime(2025, 1, 1))
    new = make_ticket(created_by=other, assignee=me, created_at=datetime(2025, 2, 1))
    make_ticket(created_by=other)

    assert ids(client.get("/tickets", headers=auth)) == [new.id, old.id]


def test_queue_legacy_parameters(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    a = make_ticket(status="open", category="billing", created_by=me)
    b = make_ticket(status="pending", category="billing", created_by=me)
    make_ticket(status="open", category="technical", created_by=me)
    make_ticket(status="closed", category="billing", created_by=me)

    r = client.get("/tickets", params={"status": ["open", "pending"], "category": "billing", "sort": "date", "order": "asc"}, headers=auth)
    assert ids(r) == [a.id, b.id]


def test_queue_assignee_and_search(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    mine = make_ticket(title="Printer", created_by=me, assignee=me)
    make_ticket(title="Printer", created_by=me)

    assert ids(client.get("/tickets", params={"assignee": "me"}, headers=auth)) == [mine.id]
    assert len(ids(client.get("/tickets", params={"assignee": "unassigned", "search": "print"}, headers=auth))) == 1


def test_queue_created_today(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    today = make_ticket(created_by=me)
    make_ticket(created_by=me, created_at=datetime.utcnow() - timedelta(days=3))

    assert ids(client.get("/tickets", params={"created": "today"}, headers=auth)) == [today.id]


def test_queue_by_organization_reporters(db, make_user, make_org, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    member = make_user()
    outsider = make_user()
    org = make_org(members=[member])
    theirs = make_ticket(created_by=me, reporter=member)
    make_ticket(created_by=me, reporter=outsider)

    assert ids(client.get("/tickets", params={"organization": org.id}, headers=auth)) == [theirs.id]


def test_queue_after_excludes_the_named_day(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    make_ticket(created_by=me, created_at=datetime(2025, 3, 10, 12, 0))
    next_day = make_ticket(created_by=me, created_at=datetime(2025, 3, 11, 8, 0))

    params = {"created": "after", "created_start": "2025-03-10"}
    assert ids(client.get("/tickets", params=params, headers=auth)) == [next_day.id]


def test_queue_uses_default_filter(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    open_ticket = make_ticket(status="open", created_by=me)
    make_ticket(status="closed", created_by=me)
    created = client.post("/filters", json={
        "name": "Open",
        "is_default": True,
        "definition": {"groups": [{"conditions": [{"field": "status", "operator": "equals", "value": "open"}]}]},
    }, headers=auth).json()

    r = client.get("/tickets", headers=auth)
    assert ids(r) == [open_ticket.id]
    assert r.json()["filter_id"] == created["id"]

    # explicit parameters win over the default
    assert len(ids(client.get("/tickets", params={"status": "closed"}, headers=auth))) == 1


def test_queue_by_filter_id_and_paging(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    for i in range(5):
        make_ticket(title=f"T{i}", created_by=me)
    created = client.post("/filters", json={
        "name": "All open",
        "sort_field": "title",
        "sort_order": "ASC",
        "definition": {"groups": [{"conditions": [{"field": "status", "operator": "equals", "value": "open"}]}]},
    }, headers=auth).json()

    r = client.get("/tickets", params={"filter_id": created["id"], "page": 2, "per_page": 2}, headers=auth)
    assert r.status_code == 200
    body = r.json()
    assert [t["title"] for t in body["items"]] == ["T2", "T3"]
    assert (body["total"], body["page"], body["per_page"], body["pages"]) == (5, 2, 2, 3)


def test_queue_unknown_filter_id_is_404():
    auth, _ = register_and_login()
    r = client.get("/tickets", params={"filter_id": 987654}, headers=auth)
    assert r.status_code == 404

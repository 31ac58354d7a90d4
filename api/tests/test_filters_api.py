"""
Tests for the queue filter API
"""

from fastapi.testclient import TestClient
from ticketdesk.main import app
from ticketdesk.models import User
import uuid

client = TestClient(app)


def register_and_login():
    """Helper to create a unique user and get auth headers plus the user id"""
    email = f"filtertest_{uuid.uuid4().hex[:8]}@example.com"
    pwd = "TestPwd123!"
    r = client.post("/auth/register", json={"email": email, "password": pwd})
    assert r.status_code == 201, r.text
    user_id = r.json()["id"]
    r = client.post("/auth/login", data={"username": email, "password": pwd})
    token = r.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}, user_id


def open_filter(**extra):
    payload = {
        "name": "Open",
        "definition": {"groups": [{"logic": "AND", "conditions": [
            {"field": "status", "operator": "equals", "value": "open"},
        ]}]},
    }
    payload.update(extra)
    return payload


def test_requires_auth():
    r = client.post("/filters/preview", json={"groups": []})
    assert r.status_code == 401


def test_preview_and_apply(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    make_ticket(status="open", priority="high", created_by=me)
    make_ticket(status="open", priority="low", created_by=me)
    make_ticket(status="closed", priority="high", created_by=me)
    definition = {"groups": [{"logic": "AND", "conditions": [
        {"field": "status", "operator": "between", "value": ["2025-01-01", "2025-02-01"]},
        {"field": "priority", "operator": "equals", "value": "high"},
    ]}]}

    r = client.post("/filters/preview", json=definition, headers=auth)
    assert r.status_code == 200, r.text
    assert r.json() == {"count": 2, "error": None}

    r = client.post("/filters/apply", json={"definition": definition, "per_page": 1}, headers=auth)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total"] == 2
    assert body["pages"] == 2
    assert len(body["items"]) == 1
    assert body["items"][0]["priority"] == "high"


def test_preview_with_only_unusable_conditions_is_zero(db, make_ticket):
    auth, user_id = register_and_login()
    make_ticket(created_by=db.get(User, user_id))
    definition = {"groups": [{"conditions": [{"field": "mood", "operator": "equals", "value": "happy"}]}]}
    r = client.post("/filters/preview", json=definition, headers=auth)
    assert r.json()["count"] == 0


def test_create_list_get_update_delete():
    auth, user_id = register_and_login()

    r = client.post("/filters", json=open_filter(description="Open work"), headers=auth)
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["scope_type"] == "user"
    assert created["owner_id"] == user_id
    assert created["definition"]["groups"][0]["conditions"][0]["value"] == "open"
    assert (created["sort_field"], created["sort_order"]) == ("created_at", "DESC")

    r = client.get("/filters", headers=auth)
    assert r.status_code == 200
    assert [f["id"] for f in r.json()["user"]] == [created["id"]]
    assert r.json()["organization"] == []

    r = client.get(f"/filters/{created['id']}", headers=auth)
    assert r.status_code == 200
    assert r.json()["description"] == "Open work"

    r = client.patch(f"/filters/{created['id']}", json={"name": "Still open", "sort_field": "title"}, headers=auth)
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Still open"
    assert r.json()["sort_field"] == "title"
    assert r.json()["description"] == "Open work"

    r = client.delete(f"/filters/{created['id']}", headers=auth)
    assert r.status_code == 200
    r = client.get(f"/filters/{created['id']}", headers=auth)
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_validation_errors_map_to_422():
    auth, _ = register_and_login()
    payload = open_filter()
    payload["definition"]["groups"].append({"logic": "AND", "conditions": []})
    r = client.post("/filters", json=payload, headers=auth)
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "validation_error"
    assert body["group_index"] == 1

    r = client.post("/filters", json=open_filter(name="  "), headers=auth)
    assert r.status_code == 422
    assert r.json()["field"] == "name"


def test_org_filter_without_permission_is_403():
    auth, _ = register_and_login()
    r = client.post("/filters", json=open_filter(scope_type="organization"), headers=auth)
    assert r.status_code == 403
    assert r.json()["error"] == "permission_denied"


def test_other_users_filter_is_404():
    owner, _ = register_and_login()
    stranger, _ = register_and_login()
    created = client.post("/filters", json=open_filter(), headers=owner).json()

    for method in ("get", "delete"):
        r = getattr(client, method)(f"/filters/{created['id']}", headers=stranger)
        assert r.status_code == 404
    r = client.patch(f"/filters/{created['id']}", json={"name": "mine"}, headers=stranger)
    assert r.status_code == 404


def test_default_election_via_api():
    auth, _ = register_and_login()
    a = client.post("/filters", json=open_filter(name="A", is_default=True), headers=auth).json()
    b = client.post("/filters", json=open_filter(name="B"), headers=auth).json()
    assert client.get("/filters/default", headers=auth).json()["id"] == a["id"]

    r = client.post(f"/filters/{b['id']}/default", headers=auth)
    assert r.status_code == 200
    assert r.json()["is_default"] is True

    listed = client.get("/filters", headers=auth).json()["user"]
    assert [f["name"] for f in listed if f["is_default"]] == ["B"]
    assert client.get("/filters/default", headers=auth).json()["id"] == b["id"]


def test_default_is_null_without_filters():
    auth, _ = register_and_login()
    r = client.get("/filters/default", headers=auth)
    assert r.status_code == 200
    assert r.json() is None


def test_fields_table():
    auth, _ = register_and_login()
    r = client.get("/filters/fields", headers=auth)
    assert r.status_code == 200
    fields = r.json()["fields"]
    assert fields["status"]["operators"] == ["equals", "not_equals"]
    assert fields["priority"]["operators"] == ["equals", "not_equals", "in", "not_in"]
    assert fields["created_date"]["operators"] == ["after", "before", "between", "relative"]
    assert fields["text_search"]["operators"] == ["contains"]
    assert {o["slug"] for o in fields["status"]["options"]} >= {"open", "closed"}


def test_presets_endpoint():
    auth, _ = register_and_login()
    r = client.post("/filters/presets", headers=auth)
    assert r.status_code == 200
    assert "My Tickets" in [f["name"] for f in r.json()]
    assert client.post("/filters/presets", headers=auth).json() == []


def test_apply_saved_filter_by_id(db, make_ticket):
    auth, user_id = register_and_login()
    me = db.get(User, user_id)
    open_ticket = make_ticket(status="open", created_by=me)
    make_ticket(status="closed", created_by=me)
    created = client.post("/filters", json=open_filter(), headers=auth).json()

    r = client.post("/filters/apply", json={"filter_id": created["id"]}, headers=auth)
    assert r.status_code == 200, r.text
    assert [t["id"] for t in r.json()["items"]] == [open_ticket.id]
    assert r.json()["filter_id"] == created["id"]

from fastapi.testclient import TestClient
from ticketdesk.main import app
import uuid

client = TestClient(app)


def make_user_creds():
    email = f"user_{uuid.uuid4().hex[:8]}@example.com"
    return email, "S3cretPwd!"


def test_auth_register_login_me():
    email, password = make_user_creds()

    r = client.post("/auth/register", json={"email": email, "password": password, "display_name": "Sam"})
    assert r.status_code == 201, r.text
    u = r.json()
    assert u["email"] == email
    assert u["display_name"] == "Sam"
    assert u["role"] == "agent"
    assert u["is_admin"] is False

    r2 = client.post(
        "/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r2.status_code == 200, r2.text
    tok = r2.json()
    assert tok["token_type"] == "bearer"
    assert tok["access_token"]

    r3 = client.get("/me", headers={"Authorization": f"Bearer {tok['access_token']}"})
    assert r3.status_code == 200
    me = r3.json()
    assert me["email"] == email


def test_duplicate_registration_rejected():
    email, password = make_user_creds()
    assert client.post("/auth/register", json={"email": email, "password": password}).status_code == 201
    r = client.post("/auth/register", json={"email": email, "password": password})
    assert r.status_code == 400


def test_wrong_password_rejected():
    email, password = make_user_creds()
    client.post("/auth/register", json={"email": email, "password": password})
    r = client.post("/auth/login", data={"username": email, "password": "nope-nope"})
    assert r.status_code == 401


def test_health_and_version():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "version" in client.get("/version").json()

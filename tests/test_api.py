import pytest
from fastapi.testclient import TestClient

from ad_reconciler.ad import Directory, DirectoryError, TransportError
from ad_reconciler.deps import get_directory
from ad_reconciler.main import app, error_status

from .conftest import DOMAIN_DN

GROUPS = f"ou=Groups,{DOMAIN_DN}"


@pytest.fixture
def client(conn):
    app.dependency_overrides[get_directory] = lambda: Directory(conn, DOMAIN_DN)
    # no context manager: startup (log files) is not wanted here
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_group_lifecycle(client, conn):
    body = {"name": "admins", "base_ou": GROUPS, "members": ["alice"]}
    r = client.post("/groups/create", json=body)
    assert r.status_code == 200
    state = r.json()
    assert state["id"] == f"cn=admins,{GROUPS}".lower()
    assert state["members"] == ["alice"]

    r = client.post("/groups/update", json={"old": state, "new": {**body, "members": ["alice", "bob"]}})
    assert r.status_code == 200
    assert r.json()["members"] == ["alice", "bob"]

    r = client.post("/groups/delete", json=body)
    assert r.status_code == 204
    assert client.post("/groups/read", json=body).status_code == 404


def test_unresolved_members_are_422_with_every_name(client, conn):
    r = client.post("/groups/create", json={"name": "admins", "base_ou": GROUPS, "members": ["ghost", "alice", "phantom"]})
    assert r.status_code == 422
    data = r.json()
    assert data["error"] == "UnresolvedMemberError"
    assert data["unresolved"] == ["ghost", "phantom"]
    assert conn.writes == []


def test_delete_of_non_empty_ou_is_409(client, conn):
    r = client.post("/ous/delete", json={"name": "Users", "base_ou": DOMAIN_DN})
    assert r.status_code == 409
    assert r.json()["error"] == "HasChildrenError"


def test_duplicate_computer_name_is_409(client, conn):
    conn.seed(f"ou=Servers,{DOMAIN_DN}", ["organizationalUnit"], ou="Servers")
    assert client.post("/computers/create", json={"name": "srv01", "ou": f"ou=Computers,{DOMAIN_DN}"}).status_code == 200
    r = client.post("/computers/create", json={"name": "srv01", "ou": f"ou=Servers,{DOMAIN_DN}"})
    assert r.status_code == 409


def test_update_of_vanished_ou_is_404(client):
    old = {"id": f"ou=lab,{DOMAIN_DN}", "name": "Lab", "base_ou": DOMAIN_DN, "description": ""}
    r = client.post("/ous/update", json={"old": old, "new": {**old, "description": "x"}})
    assert r.status_code == 404
    assert r.json()["target"] == f"ou=Lab,{DOMAIN_DN}"


def test_transport_failure_is_502(client, conn):
    conn.fail["search"] = 52
    r = client.post("/computers/read", json={"name": "srv01", "ou": f"ou=Computers,{DOMAIN_DN}"})
    assert r.status_code == 502


def test_invalid_body_is_rejected(client):
    assert client.post("/computers/create", json={"name": "", "ou": DOMAIN_DN}).status_code == 422


def test_error_status_fallback():
    assert error_status(DirectoryError("boom")) == 500
    assert error_status(TransportError("down")) == 502


def test_object_lifecycle(client, conn):
    dn = f"cn=printer01,ou=Computers,{DOMAIN_DN}"
    body = {"dn": dn, "object_classes": ["top", "device"], "attributes": {"description": ["lobby"], "l": ["Berlin"]}}
    r = client.post("/objects/create", json=body)
    assert r.status_code == 200
    state = r.json()
    assert state["id"] == dn.lower()

    new = {**body, "attributes": {"description": ["reception"]}}
    r = client.post("/objects/update", json={"old": state, "new": new})
    assert r.status_code == 200
    assert r.json()["attributes"] == {"description": ["reception"]}
    assert "l" not in conn.attrs(dn)

    assert client.post("/objects/delete", json=new).status_code == 204
    assert client.post("/objects/read", json=new).status_code == 404

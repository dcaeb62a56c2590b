import pytest
from fastapi.testclient import TestClient


def test_write_then_read_fast_source(admin_client):
    r = admin_client.post(
        "/cache",
        json={"title": "X", "year": "2024", "source": "s1", "id": "1", "source_name": "S1"},
    )
    assert r.status_code == 200
    assert r.json() == {"ok": True, "stored": True}

    r = admin_client.get("/cache", params={"title": "X", "year": "2024"})
    assert r.status_code == 200
    body = r.json()
    assert body["hit"] is True
    assert body["data"]["source"] == "s1"
    assert body["data"]["id"] == "1"
    assert body["data"]["source_name"] == "S1"
    assert body["data"]["expireAt"] - body["data"]["updateTime"] == 24 * 60 * 60 * 1000


def test_read_is_anonymous_and_year_scoped(client, auth_cookie):
    client.cookies.set("auth", auth_cookie())
    client.post("/cache", json={"title": "X", "year": 2024, "source": "s1", "id": "1"})
    client.cookies.clear()

    assert client.get("/cache", params={"title": "X", "year": "2024"}).json()["hit"] is True
    assert client.get("/cache", params={"title": "X"}).json() == {"hit": False}


def test_batch_check(admin_client):
    admin_client.post("/cache", json={"title": "A", "source": "s1", "id": "1"})

    r = admin_client.post("/cache", json={"items": [{"title": "A"}, {"title": "B"}]})
    assert r.status_code == 200
    assert r.json() == {"results": {"A_": True, "B_": False}}


def test_batch_check_with_years(admin_client):
    admin_client.post("/cache", json={"title": "A", "year": "2020", "source": "s1", "id": "1"})

    r = admin_client.post(
        "/cache", json={"items": [{"title": "A", "year": 2020}, {"title": "A"}]}
    )
    assert r.json() == {"results": {"A_2020": True, "A_": False}}


def test_get_requires_title(client):
    assert client.get("/cache").status_code == 400


def test_write_requires_fields(admin_client):
    r = admin_client.post("/cache", json={"title": "X", "source": "s1"})
    assert r.status_code == 400


def test_write_without_cookie_is_unauthorized(client):
    r = client.post("/cache", json={"title": "X", "source": "s1", "id": "1"})
    assert r.status_code == 401
    assert client.get("/cache", params={"title": "X"}).json() == {"hit": False}


def test_write_with_user_role_is_forbidden(client, auth_cookie):
    client.cookies.set("auth", auth_cookie("bob", "user"))
    r = client.post("/cache", json={"items": [{"title": "A"}]})
    assert r.status_code == 403


def test_admin_list_grants_elevation(client, auth_cookie):
    client.cookies.set("auth", auth_cookie("alice", "user"))
    r = client.post("/cache", json={"title": "X", "source": "s1", "id": "1"})
    assert r.status_code == 200


def test_tampered_cookie_is_rejected(client, auth_cookie):
    forged = auth_cookie("bob", "user").replace("user", "admin")
    client.cookies.set("auth", forged)
    r = client.post("/cache", json={"title": "X", "source": "s1", "id": "1"})
    assert r.status_code == 401


def test_delete_evicts(admin_client):
    admin_client.post("/cache", json={"title": "X", "source": "s1", "id": "1"})

    r = admin_client.delete("/cache", params={"title": "X"})
    assert r.json() == {"ok": True, "removed": True}
    assert admin_client.get("/cache", params={"title": "X"}).json() == {"hit": False}

    r = admin_client.delete("/cache", params={"title": "X"})
    assert r.json() == {"ok": True, "removed": False}


def test_delete_requires_auth(client):
    assert client.delete("/cache", params={"title": "X"}).status_code == 401


def test_year_is_trimmed_on_read_and_delete(admin_client):
    admin_client.post("/cache", json={"title": "X", "year": "2024", "source": "s1", "id": "1"})

    assert admin_client.get("/cache", params={"title": "X", "year": "2024 "}).json()["hit"] is True
    r = admin_client.delete("/cache", params={"title": "X", "year": " 2024"})
    assert r.json() == {"ok": True, "removed": True}


@pytest.fixture
def broken_store_client(app_env, auth_cookie):
    from streamrelay.core.cache import MemoryCacheStore
    from streamrelay.core.errors import CacheUnavailableError
    from streamrelay.main import app

    class BrokenStore(MemoryCacheStore):
        def get(self, namespace, key):
            raise CacheUnavailableError("read failed")

        def set(self, namespace, key, value, ttl_seconds):
            raise CacheUnavailableError("write failed")

        def delete(self, namespace, key):
            raise CacheUnavailableError("delete failed")

    app.state.cache_store = BrokenStore()
    with TestClient(app) as c:
        c.cookies.set("auth", auth_cookie())
        yield c


def test_store_failures_degrade_without_error_status(broken_store_client):
    c = broken_store_client
    r = c.post(
        "/cache",
        json={"title": "X", "year": "2024", "source": "s1", "id": "1", "source_name": "S1"},
    )
    assert r.status_code == 200
    assert r.json() == {"ok": True, "stored": False}

    assert c.get("/cache", params={"title": "X", "year": "2024"}).json() == {"hit": False}
    assert c.delete("/cache", params={"title": "X"}).json() == {"ok": True, "removed": False}

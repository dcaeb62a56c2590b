from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from streamrelay.core.auth import (
    AuthInfo,
    encode_auth_cookie,
    parse_auth_cookie,
    require_elevated,
    sign_identity,
)

SECRET = "s3cret"


def test_cookie_roundtrip():
    raw = encode_auth_cookie("owner", "owner", SECRET)
    assert parse_auth_cookie(raw, SECRET) == AuthInfo("owner", "owner")


def test_signature_depends_on_secret_and_role():
    assert sign_identity("u", "user", SECRET) != sign_identity("u", "admin", SECRET)
    raw = encode_auth_cookie("u", "admin", SECRET)
    assert parse_auth_cookie(raw, "other-secret") is None


def test_malformed_cookies_are_ignored():
    assert parse_auth_cookie(None, SECRET) is None
    assert parse_auth_cookie("not-json", SECRET) is None
    assert parse_auth_cookie("%5B1%2C2%5D", SECRET) is None
    assert parse_auth_cookie(encode_auth_cookie("u", "user", SECRET), "") is None


def test_custom_checker_on_app_state():
    app = FastAPI()

    @app.get("/admin")
    def admin(info: AuthInfo = Depends(require_elevated)):
        return {"user": info.username}

    client = TestClient(app)
    app.state.auth_checker = lambda request: None
    assert client.get("/admin").status_code == 401

    app.state.auth_checker = lambda request: AuthInfo("guest", "user")
    assert client.get("/admin").status_code == 403

    app.state.auth_checker = lambda request: AuthInfo("root", "admin")
    r = client.get("/admin")
    assert r.status_code == 200
    assert r.json() == {"user": "root"}

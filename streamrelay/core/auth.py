from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote, unquote

from fastapi import HTTPException, Request
from loguru import logger

AUTH_COOKIE = "auth"
ELEVATED_ROLES = ("owner", "admin")


@dataclass(frozen=True)
class AuthInfo:
    username: str
    role: str = "user"


AuthChecker = Callable[[Request], Optional[AuthInfo]]


def sign_identity(username: str, role: str, secret: str) -> str:
    """
    Hex HMAC-SHA256 of `"<username>:<role>"` keyed with `secret`.
    """
    msg = f"{username}:{role}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def encode_auth_cookie(username: str, role: str, secret: str) -> str:
    """
    Build the `auth` cookie value for an identity (URL-encoded JSON).
    """
    payload = {
        "username": username,
        "role": role,
        "signature": sign_identity(username, role, secret),
    }
    return quote(json.dumps(payload, separators=(",", ":")), safe="")


def parse_auth_cookie(raw: Optional[str], secret: str) -> Optional[AuthInfo]:
    """
    Decode and verify an `auth` cookie.

    Returns:
        AuthInfo | None: None when the cookie is absent, malformed, or its
        signature does not match.
    """
    if not raw or not secret:
        return None
    try:
        data = json.loads(unquote(raw))
    except ValueError:
        logger.debug("Auth cookie is not valid JSON")
        return None
    if not isinstance(data, dict):
        return None
    username = str(data.get("username") or "").strip()
    role = str(data.get("role") or "user").strip().lower()
    signature = str(data.get("signature") or "")
    if not username or not signature:
        return None
    expected = sign_identity(username, role, secret)
    if not hmac.compare_digest(signature, expected):
        logger.warning("Auth cookie signature mismatch for {}", username)
        return None
    return AuthInfo(username=username, role=role)


def cookie_auth_checker(request: Request) -> Optional[AuthInfo]:
    from streamrelay.config import AUTH_SECRET

    return parse_auth_cookie(request.cookies.get(AUTH_COOKIE), AUTH_SECRET)


def is_elevated(info: Optional[AuthInfo]) -> bool:
    """
    Owner (by username) or any user holding the owner/admin role, from the
    cookie or from ADMIN_USERS.
    """
    from streamrelay.config import ADMIN_USERS, OWNER_USERNAME

    if info is None or not info.username:
        return False
    if OWNER_USERNAME and info.username == OWNER_USERNAME:
        return True
    if info.role in ELEVATED_ROLES:
        return True
    return ADMIN_USERS.get(info.username) in ELEVATED_ROLES


def require_elevated(request: Request) -> AuthInfo:
    """
    FastAPI dependency guarding admin routes.

    Raises:
        HTTPException: 401 without identity, 403 when the role is insufficient.
    """
    checker: AuthChecker = getattr(request.app.state, "auth_checker", cookie_auth_checker)
    info = checker(request)
    if info is None:
        logger.warning("Rejected unauthenticated request to {}", request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not is_elevated(info):
        logger.warning("Rejected {} (role={}) for {}", info.username, info.role, request.url.path)
        raise HTTPException(status_code=403, detail="Forbidden")
    return info

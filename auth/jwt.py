"""
JWT-style token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256 and carry
the user id and the tenant the user acts for.  Secret key is loaded from
``config.jwt_secret`` (env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import NamedTuple, Optional

from config.settings import config
from connectors.exceptions import Unauthenticated


class Principal(NamedTuple):
    user_id: str
    tenant_id: str


def _sign(raw: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(
    user_id: str,
    tenant_id: str,
    *,
    secret: Optional[str] = None,
    expires_in: Optional[int] = None,
) -> str:
    """Create a signed token containing ``user_id``, ``tenant_id`` and expiry."""
    payload = {
        "user_id": user_id,
        "tenant_id": tenant_id,
        "exp": int(time.time()) + (expires_in if expires_in is not None else config.jwt_expiry_seconds),
    }
    raw = json.dumps(payload).encode()
    return b64encode(raw).decode() + "." + _sign(raw, secret or config.jwt_secret)


def verify_token(token: str, *, secret: Optional[str] = None) -> Principal:
    """
    Verify token and return the ``Principal`` it was issued for.

    Raises ``Unauthenticated`` on invalid or expired tokens.
    """
    try:
        parts = token.split(".", 1)
        if len(parts) != 2:
            raise ValueError("bad format")
        raw = b64decode(parts[0])
        expected_sig = _sign(raw, secret or config.jwt_secret)
        if not hmac.compare_digest(parts[1], expected_sig):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        return Principal(user_id=str(payload["user_id"]), tenant_id=str(payload["tenant_id"]))
    except (ValueError, KeyError, TypeError) as exc:
        raise Unauthenticated(f"Invalid or expired token: {exc}") from exc

"""
FastAPI dependencies for authentication.

The OAuth callback arrives as a browser redirect from the provider, so
besides the ``Authorization: Bearer`` header the session token is also
accepted from the ``session_token`` cookie.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.jwt import Principal, verify_token
from connectors.exceptions import Unauthenticated

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    session_token: Optional[str] = Cookie(default=None),
) -> Principal:
    """Authenticated caller, or ``Unauthenticated``."""
    token = credentials.credentials if credentials else session_token
    if not token:
        raise Unauthenticated("Not authenticated")
    return verify_token(token)


def require_tenant(principal: Principal, tenant_id: str) -> None:
    """Callers may only act on their own tenant."""
    if principal.tenant_id != tenant_id:
        raise Unauthenticated(f"Not authenticated for tenant {tenant_id}")


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    session_token: Optional[str] = Cookie(default=None),
) -> Optional[Principal]:
    """Like ``get_principal`` but returns None so the caller can record the failure."""
    try:
        return await get_principal(credentials, session_token)
    except Unauthenticated:
        return None

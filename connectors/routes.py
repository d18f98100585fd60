"""
Integration API routes — configure, OAuth connect/callback, status,
disconnect, metrics and health.

Route prefix: /api/v1/integrations
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from auth.dependencies import get_optional_principal, get_principal, require_tenant
from auth.jwt import Principal
from connectors.catalog import Provider, list_providers, split_scopes
from connectors.container import Services, get_services
from connectors.exceptions import IntegrationError, Unauthenticated

logger = logging.getLogger(__name__)

router = APIRouter(tags=["integrations"])


# ── Request / response schemas ─────────────────────────────────────────


class ConfigureRequest(BaseModel):
    client_id: str = Field(..., min_length=1, max_length=255)
    client_secret: str = Field(..., min_length=1)
    scopes: Optional[str] = None
    redirect_uri: Optional[str] = None


class ConfigurationResponse(BaseModel):
    tenant_id: str
    provider: str
    client_id: str
    redirect_uri: str
    scopes: List[str]


# ── Error mapping ──────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Render every IntegrationError as ``{error, error_description}``."""

    @app.exception_handler(IntegrationError)
    async def integration_error_handler(request: Request, exc: IntegrationError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def get_providers() -> list[dict]:
    """
    List all supported providers with their default scopes.
    No auth required — used by frontend to show available integrations.
    """
    return list_providers()


@router.put("/{tenant_id}/{provider}/configuration", response_model=ConfigurationResponse)
async def configure(
    tenant_id: str,
    provider: Provider,
    req: ConfigureRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Create or update the tenant's OAuth client credentials."""
    require_tenant(principal, tenant_id)
    row = await services.oauth.configure(
        tenant_id,
        provider,
        req.client_id,
        req.client_secret,
        scopes=req.scopes,
        redirect_uri=req.redirect_uri,
    )
    return {
        "tenant_id": row.tenant_id,
        "provider": row.provider,
        "client_id": row.client_id,
        "redirect_uri": row.redirect_uri,
        "scopes": split_scopes(row.scopes),
    }


@router.get("/{tenant_id}/{provider}/authorization-url")
async def get_authorization_url(
    tenant_id: str,
    provider: Provider,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> Dict[str, str]:
    """
    Get the OAuth authorization URL for a provider.

    Frontend should open this URL in a popup window.
    """
    require_tenant(principal, tenant_id)
    url = await services.oauth.generate_oauth_url(tenant_id, provider, principal.user_id)
    return {"url": url, "provider": provider.value}


@router.get("/{tenant_id}/{provider}/callback")
async def oauth_callback(
    tenant_id: str,
    provider: Provider,
    state: str = Query(...),
    code: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    principal: Optional[Principal] = Depends(get_optional_principal),
    services: Services = Depends(get_services),
) -> Dict[str, str]:
    """
    OAuth callback — the provider redirects here after consent.

    Validates state, exchanges the code for tokens and stores them.
    """
    if principal is None or principal.tenant_id != tenant_id:
        services.ledger.record_failure(tenant_id, provider, Unauthenticated.code)
        raise Unauthenticated("Not authenticated")
    await services.oauth.handle_oauth_callback(
        tenant_id,
        provider,
        code,
        state,
        principal.user_id,
        error=error,
        error_description=error_description,
    )
    logger.info("OAuth connected: tenant=%s provider=%s user=%s", tenant_id, provider.value, principal.user_id)
    return {"status": "success"}


@router.get("/{tenant_id}/{provider}/status")
async def check_status(
    tenant_id: str,
    provider: Provider,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> Dict[str, bool]:
    require_tenant(principal, tenant_id)
    return {"connected": await services.oauth.is_connected(tenant_id, provider)}


@router.post("/{tenant_id}/{provider}/disconnect")
async def disconnect(
    tenant_id: str,
    provider: Provider,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Disconnect the integration; repeating the call is not an error."""
    require_tenant(principal, tenant_id)
    removed = await services.oauth.disconnect(tenant_id, provider)
    return {"status": "success", "removed": removed}


@router.get("/{tenant_id}/{provider}/metrics")
async def get_metrics(
    tenant_id: str,
    provider: Provider,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    require_tenant(principal, tenant_id)
    return services.ledger.snapshot(tenant_id, provider).to_dict()


@router.get("/{tenant_id}/{provider}/health")
async def get_health(
    tenant_id: str,
    provider: Provider,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    require_tenant(principal, tenant_id)
    return services.ledger.health(tenant_id, provider)

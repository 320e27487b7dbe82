"""
middleware/tenant.py
--------------------
Runs the tenant resolver on every request and publishes the result.

  request.state.tenant_slug     → resolved slug or None
  request.state.is_root_domain  → True when no tenant was resolved
  x-tenant-slug response header → the slug, for the frontend
  `tenant` cookie               → loopback hosts only, so ?tenant= only has
                                  to be given once during local development

The slug is also bound into structlog's contextvars so every log line of
the request carries it. Admin and health routes skip resolution entirely.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from saaskit.core.config import settings
from saaskit.core.logging import bind_request_context, clear_request_context
from saaskit.core.tenant_resolver import (
    TENANT_PARAM,
    is_local_host,
    resolve_tenant,
    strip_port,
)

TENANT_HEADER = "x-tenant-slug"
SKIP_TENANT_PATHS = ("/admin", "/health", "/docs", "/redoc", "/openapi.json")
DEV_COOKIE_MAX_AGE = 60 * 60 * 24 * 7


class TenantResolutionMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        clear_request_context()
        request.state.tenant_slug = None
        request.state.is_root_domain = True

        if request.url.path.startswith(SKIP_TENANT_PATHS):
            return await call_next(request)

        host = request.headers.get("host", "")
        resolution = resolve_tenant(
            host,
            settings.ROOT_DOMAIN,
            query_params=request.query_params,
            cookies=request.cookies,
        )
        request.state.tenant_slug = resolution.tenant_slug
        request.state.is_root_domain = resolution.is_root_domain
        bind_request_context(tenant_slug=resolution.tenant_slug)

        response = await call_next(request)

        if resolution.tenant_slug:
            response.headers[TENANT_HEADER] = resolution.tenant_slug
            if (
                is_local_host(strip_port(host))
                and request.cookies.get(TENANT_PARAM) != resolution.tenant_slug
            ):
                response.set_cookie(
                    TENANT_PARAM,
                    resolution.tenant_slug,
                    max_age=DEV_COOKIE_MAX_AGE,
                    httponly=True,
                    samesite="lax",
                    path="/",
                )
        return response

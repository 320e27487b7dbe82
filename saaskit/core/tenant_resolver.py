"""
core/tenant_resolver.py
-----------------------
Maps a request hostname to a tenant slug.

resolve_tenant() is pure: same inputs, same answer, no I/O, never raises.
The worst case is TenantResolution(None, True), which callers must treat
as "no tenant" rather than guessing one.

Production:   acme.example.com       → "acme"
              example.com            → root
              www.example.com        → root
              admin.example.com      → root (reserved)
              a.b.example.com        → root (only one subdomain level)
              other-host.net         → root (foreign host)
Local dev:    localhost:8000/?tenant=acme → "acme" (query first, then cookie)
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from saaskit.core.config import settings

RESERVED_SUBDOMAINS = frozenset({"www", "api", "admin", "app", "dashboard"})
TENANT_PARAM = "tenant"


@dataclass(frozen=True)
class TenantResolution:
    tenant_slug: Optional[str]
    is_root_domain: bool


ROOT = TenantResolution(tenant_slug=None, is_root_domain=True)


def strip_port(host: str) -> str:
    return host.split(":", 1)[0].strip().lower()


def is_local_host(hostname: str) -> bool:
    return (
        hostname == "localhost"
        or hostname == "127.0.0.1"
        or hostname.endswith(".localhost")
    )


def is_reserved(label: str) -> bool:
    return label.lower() in RESERVED_SUBDOMAINS


def _dev_slug(
    query_params: Optional[Mapping[str, str]],
    cookies: Optional[Mapping[str, str]],
) -> Optional[str]:
    for source in (query_params, cookies):
        if not source:
            continue
        value = (source.get(TENANT_PARAM) or "").strip().lower()
        if value and not is_reserved(value):
            return value
    return None


def resolve_tenant(
    hostname: Optional[str],
    root_domain: str,
    query_params: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
) -> TenantResolution:
    """Classify a request host as a tenant subdomain or the root domain."""
    if not hostname:
        return ROOT

    host = strip_port(hostname)
    root = strip_port(root_domain)

    if is_local_host(host):
        slug = _dev_slug(query_params, cookies)
        if slug is None:
            return ROOT
        return TenantResolution(tenant_slug=slug, is_root_domain=False)

    if host == root or host == f"www.{root}":
        return ROOT

    suffix = f".{root}"
    if not host.endswith(suffix):
        return ROOT

    subdomain = host[: -len(suffix)]
    if not subdomain or "." in subdomain or is_reserved(subdomain):
        return ROOT

    return TenantResolution(tenant_slug=subdomain, is_root_domain=False)


# ── Public URLs ───────────────────────────────────────────────────────────────

def get_base_url() -> str:
    return f"{settings.PROTOCOL}://{settings.ROOT_DOMAIN}"


def get_tenant_url(slug: str, path: str = "/") -> str:
    """
    Absolute URL for `path` inside a tenant.

    Loopback root domains cannot carry wildcard subdomains reliably, so the
    tenant travels as ?tenant= there instead.
    """
    if not path.startswith("/"):
        path = "/" + path
    if is_local_host(strip_port(settings.ROOT_DOMAIN)):
        separator = "&" if "?" in path else "?"
        return f"{get_base_url()}{path}{separator}{TENANT_PARAM}={slug}"
    return f"{settings.PROTOCOL}://{slug}.{settings.ROOT_DOMAIN}{path}"

"""Tests for hostname → tenant resolution and tenant URL building."""

import pytest

from saaskit.core.config import settings
from saaskit.core.tenant_resolver import (
    ROOT,
    TenantResolution,
    get_tenant_url,
    resolve_tenant,
)


# ── Production hosts ─────────────────────────────────────────────────────────

def test_subdomain_resolves_to_slug():
    """acme.example.com belongs to tenant 'acme'."""
    assert resolve_tenant("acme.example.com", "example.com") == TenantResolution("acme", False)


@pytest.mark.parametrize("host", ["example.com", "www.example.com", "EXAMPLE.com"])
def test_root_and_www_are_root(host):
    assert resolve_tenant(host, "example.com") == ROOT


@pytest.mark.parametrize("label", ["www", "api", "admin", "app", "dashboard"])
def test_reserved_subdomains_are_root(label):
    """Reserved labels never become tenant slugs."""
    assert resolve_tenant(f"{label}.example.com", "example.com") == ROOT


def test_nested_subdomain_is_root():
    assert resolve_tenant("a.b.example.com", "example.com") == ROOT


def test_foreign_host_is_root():
    assert resolve_tenant("acme.other-host.net", "example.com") == ROOT
    assert resolve_tenant("evilexample.com", "example.com") == ROOT


def test_ports_are_ignored_on_both_sides():
    result = resolve_tenant("acme.example.com:8443", "example.com:8443")
    assert result.tenant_slug == "acme"


def test_host_is_case_insensitive():
    assert resolve_tenant("ACME.Example.COM", "example.com").tenant_slug == "acme"


@pytest.mark.parametrize("host", [None, ""])
def test_missing_host_is_root(host):
    assert resolve_tenant(host, "example.com") == ROOT


# ── Local development ────────────────────────────────────────────────────────

def test_localhost_without_hint_is_root():
    assert resolve_tenant("localhost:8000", "localhost:8000") == ROOT


def test_localhost_reads_query_param():
    result = resolve_tenant("localhost:8000", "localhost:8000", query_params={"tenant": "acme"})
    assert result == TenantResolution("acme", False)


def test_localhost_falls_back_to_cookie():
    result = resolve_tenant("127.0.0.1:8000", "localhost:8000", cookies={"tenant": "globex"})
    assert result.tenant_slug == "globex"


def test_query_param_wins_over_cookie():
    result = resolve_tenant(
        "localhost:8000",
        "localhost:8000",
        query_params={"tenant": "acme"},
        cookies={"tenant": "globex"},
    )
    assert result.tenant_slug == "acme"


def test_reserved_query_param_is_ignored():
    assert resolve_tenant("localhost", "localhost", query_params={"tenant": "admin"}) == ROOT


def test_query_param_ignored_on_production_hosts():
    """?tenant= is a loopback-only convenience."""
    result = resolve_tenant("example.com", "example.com", query_params={"tenant": "acme"})
    assert result == ROOT


def test_resolution_is_deterministic():
    first = resolve_tenant("acme.example.com", "example.com")
    assert all(resolve_tenant("acme.example.com", "example.com") == first for _ in range(5))


# ── URLs ─────────────────────────────────────────────────────────────────────

def test_tenant_url_uses_subdomain():
    assert get_tenant_url("acme", "/login") == "http://acme.example.com/login"


def test_tenant_url_adds_leading_slash():
    assert get_tenant_url("acme", "dashboard") == "http://acme.example.com/dashboard"


def test_tenant_url_on_localhost_uses_query(monkeypatch):
    monkeypatch.setattr(settings, "ROOT_DOMAIN", "localhost:8000")
    assert get_tenant_url("acme", "/login") == "http://localhost:8000/login?tenant=acme"
    assert (
        get_tenant_url("acme", "/reset?token=x")
        == "http://localhost:8000/reset?token=x&tenant=acme"
    )


def test_root_domain_with_its_own_subdomain():
    root = "app.example.com"
    assert resolve_tenant("acme.app.example.com", root) == TenantResolution("acme", False)
    assert resolve_tenant("app.example.com", root) == ROOT
    assert resolve_tenant("admin.app.example.com", root) == ROOT

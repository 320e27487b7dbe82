"""HTTP tests for the platform admin panel."""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from saaskit.models.admin import AdminRole, AdminSession
from saaskit.services.admin_session_service import AdminSessionService

from conftest import PASSWORD, login


async def _admin_login(client, email: str, password: str = PASSWORD):
    return await client.post("/admin/auth/login", json={"email": email, "password": password})


@pytest_asyncio.fixture
async def primary(make_admin):
    return await make_admin("root@platform.example.com", AdminRole.primary_admin)


# ── Authentication ───────────────────────────────────────────────────────────

async def test_login_me_logout(client, primary):
    assert (await client.get("/admin/auth/me")).status_code == 401

    response = await _admin_login(client, primary.email)
    assert response.status_code == 200
    assert "admin_session" in response.cookies

    me = await client.get("/admin/auth/me")
    assert me.json()["email"] == primary.email

    out = await client.post("/admin/auth/logout")
    assert out.status_code == 200
    assert (await client.get("/admin/auth/me")).status_code == 401


async def test_logout_deletes_session_row_and_clears_cookie(client, db, primary):
    await _admin_login(client, primary.email)
    out = await client.post("/admin/auth/logout")

    assert 'admin_session=""' in out.headers["set-cookie"]
    assert "Max-Age=0" in out.headers["set-cookie"]
    sessions = await db.scalar(
        select(func.count()).select_from(AdminSession).where(AdminSession.admin_id == primary.id)
    )
    assert sessions == 0


async def test_logout_clears_cookie_even_if_delete_fails(client, primary, monkeypatch):
    await _admin_login(client, primary.email)

    async def broken_logout(db, ctx):
        raise RuntimeError("database went away")

    monkeypatch.setattr(AdminSessionService, "logout", broken_logout)
    out = await client.post("/admin/auth/logout")

    assert out.status_code == 200
    assert "Max-Age=0" in out.headers["set-cookie"]
    assert (await client.get("/admin/auth/me")).status_code == 401


async def test_lockout_returns_423(client, primary):
    for _ in range(5):
        assert (await _admin_login(client, primary.email, "WrongPass1")).status_code == 401
    response = await _admin_login(client, primary.email)
    assert response.status_code == 423


async def test_tenant_session_does_not_open_admin_panel(client, acme_client, make_tenant):
    await make_tenant("acme")
    headers = await login(acme_client, "owner@acme.org")
    response = await client.get("/admin/tenants", headers=headers)
    assert response.status_code == 401


# ── Admin roster ─────────────────────────────────────────────────────────────

async def test_regular_admin_cannot_manage_admins(client, make_admin):
    await make_admin("ops@platform.example.com")
    await _admin_login(client, "ops@platform.example.com")

    response = await client.get("/admin/admins")
    assert response.status_code == 403
    assert response.json()["detail"] == "Primary admin access required"
    assert (await client.get("/admin/tenants")).status_code == 200


async def test_create_admin_and_complete_setup(client, primary, outbox):
    await _admin_login(client, primary.email)
    created = await client.post(
        "/admin/admins", json={"email": "new@platform.example.com", "name": "New Admin"}
    )
    assert created.status_code == 201, created.text
    setup_url = created.json()["setup_url"]
    assert setup_url.startswith("http://example.com/admin/setup?token=")
    assert outbox.sent[-1].to == "new@platform.example.com"
    token = setup_url.split("token=")[1]

    check = await client.get("/admin/auth/setup", params={"token": token})
    assert check.json() == {"valid": True, "email": "new@platform.example.com", "name": "New Admin"}

    payload = {"token": token, "password": "Chosen123", "confirm_password": "Chosen123"}
    assert (await client.post("/admin/auth/setup", json=payload)).status_code == 200
    reused = await client.post("/admin/auth/setup", json=payload)
    assert reused.status_code == 400
    assert reused.json()["detail"] == "This setup link has already been used"

    assert (await _admin_login(client, "new@platform.example.com", "Chosen123")).status_code == 200


async def test_cannot_delete_self(client, primary):
    await _admin_login(client, primary.email)
    response = await client.delete(f"/admin/admins/{primary.id}")
    assert response.status_code == 400


async def test_deactivating_an_admin_ends_their_sessions(client, app, db, primary, make_admin):
    helper = await make_admin("helper@platform.example.com")
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://example.com"
    ) as helper_client:
        assert (await _admin_login(helper_client, helper.email)).status_code == 200
        await _admin_login(client, primary.email)

        response = await client.patch(f"/admin/admins/{helper.id}", json={"is_active": False})
        assert response.status_code == 200, response.text
        assert response.json()["is_active"] is False

        assert (await helper_client.get("/admin/auth/me")).status_code == 401

    sessions = await db.scalar(
        select(func.count()).select_from(AdminSession).where(AdminSession.admin_id == helper.id)
    )
    assert sessions == 0
    audit = await client.get("/admin/audit-logs", params={"action": "admin.update"})
    entry = audit.json()["items"][0]
    assert entry["target_id"] == helper.id
    assert entry["details"]["changes"] == {"is_active": False}


async def test_cannot_demote_self_over_http(client, primary):
    await _admin_login(client, primary.email)
    response = await client.patch(f"/admin/admins/{primary.id}", json={"role": "admin"})
    assert response.status_code == 400


# ── Tenants, users & audit ───────────────────────────────────────────────────

async def test_suspend_tenant_blocks_sign_in_and_is_audited(
    client, acme_client, primary, make_tenant
):
    tenant, _ = await make_tenant("acme")
    await _admin_login(client, primary.email)

    listed = await client.get("/admin/tenants")
    assert listed.json()["total"] == 1
    assert listed.json()["items"][0]["user_count"] == 1

    suspended = await client.patch(f"/admin/tenants/{tenant.id}", json={"is_suspended": True})
    assert suspended.json()["is_suspended"] is True

    response = await acme_client.post(
        "/auth/login", json={"email": "owner@acme.org", "password": PASSWORD}
    )
    assert response.json()["error"] == "TenantSuspended"

    audit = await client.get("/admin/audit-logs", params={"action": "tenant.suspend"})
    entry = audit.json()["items"][0]
    assert entry["target_id"] == tenant.id
    assert entry["admin_email"] == primary.email
    assert entry["details"]["changes"] == {"is_suspended": True}


async def test_delete_tenant_removes_its_users(client, primary, make_tenant):
    tenant, owner = await make_tenant("acme")
    await _admin_login(client, primary.email)

    assert (await client.delete(f"/admin/tenants/{tenant.id}")).status_code == 200
    assert (await client.get(f"/admin/tenants/{tenant.id}")).status_code == 404
    assert (await client.get(f"/admin/users/{owner.id}")).status_code == 404


async def test_user_listing_and_reset_link(client, primary, make_tenant):
    _, owner = await make_tenant("acme")
    await make_tenant("globex")
    await _admin_login(client, primary.email)

    users = await client.get("/admin/users", params={"search": "acme"})
    assert [u["id"] for u in users.json()["items"]] == [owner.id]

    link = await client.post(f"/admin/users/{owner.id}/reset-password")
    assert link.status_code == 200
    assert link.json()["reset_url"].startswith("http://acme.example.com/reset-password?token=")


async def test_dashboard_stats(client, primary, make_tenant):
    await make_tenant("acme")
    await make_tenant("globex")
    await _admin_login(client, primary.email)

    stats = (await client.get("/admin/dashboard/stats")).json()
    assert stats["total_tenants"] == 2
    assert stats["total_users"] == 2
    assert stats["plan_distribution"]["free"] == 2

"""HTTP tests for signup, tenant sign-in and the tenant-scoped todo API.

Requests go to acme.example.com / globex.example.com so the tenant is
resolved from the Host header exactly as in production.
"""

import pytest

from conftest import PASSWORD, login


# ── Signup & login ───────────────────────────────────────────────────────────

async def test_signup_then_login_on_tenant_host(client, acme_client):
    response = await client.post(
        "/auth/signup",
        json={
            "name": "Founder",
            "email": "founder@example.org",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "tenant_name": "Acme Inc",
            "tenant_slug": "acme",
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["tenant_slug"] == "acme"
    assert body["tenant_url"] == "http://acme.example.com/login"
    assert body["user"]["role"] == "owner"

    headers = await login(acme_client, "founder@example.org")
    me = await acme_client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["tenant_slug"] == "acme"
    assert me.json()["has_password"] is True


async def test_signup_taken_slug_is_conflict(client, make_tenant):
    await make_tenant("acme")
    response = await client.post(
        "/auth/signup",
        json={
            "name": "Founder",
            "email": "founder@example.org",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "tenant_name": "Acme Again",
            "tenant_slug": "acme",
        },
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "This URL is already taken"


async def test_signup_validation_errors(client):
    response = await client.post(
        "/auth/signup",
        json={
            "name": "Founder",
            "email": "founder@example.org",
            "password": "weak",
            "confirm_password": "weak",
            "tenant_name": "Acme",
            "tenant_slug": "Not A Slug",
        },
    )
    assert response.status_code == 400
    field_errors = response.json()["field_errors"]
    assert "password" in field_errors
    assert "tenant_slug" in field_errors


async def test_check_slug(client, make_tenant):
    await make_tenant("acme")
    taken = await client.get("/tenants/check-slug", params={"slug": "acme"})
    free = await client.get("/tenants/check-slug", params={"slug": "fresh-co"})
    assert taken.json()["available"] is False
    assert free.json()["available"] is True


@pytest.mark.parametrize("slug", ["www", "api", "admin", "app", "dashboard"])
async def test_check_slug_rejects_reserved_subdomains(client, slug):
    response = await client.get("/tenants/check-slug", params={"slug": slug})
    body = response.json()
    assert body["available"] is False
    assert body["errors"] == [f"Slug '{slug}' is reserved"]


async def test_signup_with_reserved_slug_is_rejected(client):
    response = await client.post(
        "/auth/signup",
        json={
            "name": "Founder",
            "email": "founder@example.org",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "tenant_name": "Admin Co",
            "tenant_slug": "admin",
        },
    )
    assert response.status_code == 400
    assert "tenant_slug" in response.json()["field_errors"]


async def test_login_wrong_password(acme_client, make_tenant):
    await make_tenant("acme")
    response = await acme_client.post(
        "/auth/login", json={"email": "owner@acme.org", "password": "WrongPass1"}
    )
    assert response.status_code == 401
    assert response.json()["error"] == "InvalidCredentials"


async def test_login_uses_host_tenant(globex_client, make_tenant):
    """An acme account cannot sign in on the globex host."""
    await make_tenant("acme")
    await make_tenant("globex")
    response = await globex_client.post(
        "/auth/login", json={"email": "owner@acme.org", "password": PASSWORD}
    )
    assert response.status_code == 401


async def test_tenant_header_is_set(acme_client, make_tenant):
    await make_tenant("acme")
    response = await acme_client.get("/tenants/check-slug", params={"slug": "x-y"})
    assert response.headers["x-tenant-slug"] == "acme"


# ── Session checks ───────────────────────────────────────────────────────────

async def test_requires_authentication(acme_client):
    response = await acme_client.get("/todos")
    assert response.status_code == 401


async def test_token_from_another_tenant_host_is_forbidden(acme_client, globex_client, make_tenant):
    await make_tenant("acme")
    await make_tenant("globex")
    headers = await login(acme_client, "owner@acme.org")

    response = await globex_client.get("/todos", headers=headers)
    assert response.status_code == 403


async def test_suspended_tenant_is_cut_off(db, acme_client, make_tenant):
    tenant, _ = await make_tenant("acme")
    headers = await login(acme_client, "owner@acme.org")

    tenant.is_suspended = True
    await db.commit()

    assert (await acme_client.get("/todos", headers=headers)).status_code == 403
    response = await acme_client.post(
        "/auth/login", json={"email": "owner@acme.org", "password": PASSWORD}
    )
    assert response.status_code == 403
    assert response.json()["error"] == "TenantSuspended"


async def test_deleted_user_is_rejected(db, acme_client, make_tenant, make_user):
    tenant, _ = await make_tenant("acme")
    member = await make_user(tenant, "member@acme.org")
    headers = await login(acme_client, "member@acme.org")

    await db.delete(member)
    await db.commit()

    assert (await acme_client.get("/auth/me", headers=headers)).status_code == 401


# ── Todos ────────────────────────────────────────────────────────────────────

async def test_todo_crud(acme_client, make_tenant):
    await make_tenant("acme")
    headers = await login(acme_client, "owner@acme.org")

    created = await acme_client.post(
        "/todos", json={"title": "Ship v1", "tenant_id": "ignored"}, headers=headers
    )
    assert created.status_code == 201
    todo = created.json()
    assert todo["completed"] is False

    toggled = await acme_client.post(f"/todos/{todo['id']}/toggle", headers=headers)
    assert toggled.json()["completed"] is True

    patched = await acme_client.patch(
        f"/todos/{todo['id']}", json={"title": "Ship v2"}, headers=headers
    )
    assert patched.json()["title"] == "Ship v2"

    listed = await acme_client.get("/todos", headers=headers)
    assert [t["id"] for t in listed.json()] == [todo["id"]]

    deleted = await acme_client.delete(f"/todos/{todo['id']}", headers=headers)
    assert deleted.status_code == 204
    missing = await acme_client.get(f"/todos/{todo['id']}", headers=headers)
    assert missing.status_code == 404


async def test_todo_update_rejects_blank_title(acme_client, make_tenant):
    await make_tenant("acme")
    headers = await login(acme_client, "owner@acme.org")
    todo = (await acme_client.post("/todos", json={"title": "Ship v1"}, headers=headers)).json()

    blank = await acme_client.patch(f"/todos/{todo['id']}", json={"title": "   "}, headers=headers)
    assert blank.status_code == 400
    assert "title" in blank.json()["field_errors"]

    padded = await acme_client.patch(
        f"/todos/{todo['id']}", json={"title": "  Ship v2  "}, headers=headers
    )
    assert padded.json()["title"] == "Ship v2"
    untouched = await acme_client.get(f"/todos/{todo['id']}", headers=headers)
    assert untouched.json()["title"] == "Ship v2"


async def test_cross_tenant_todo_access(acme_client, globex_client, make_tenant):
    await make_tenant("acme")
    await make_tenant("globex")
    acme_headers = await login(acme_client, "owner@acme.org")
    globex_headers = await login(globex_client, "owner@globex.org")

    todo = (await acme_client.post("/todos", json={"title": "Secret"}, headers=acme_headers)).json()

    assert (await globex_client.get("/todos", headers=globex_headers)).json() == []
    for method, path in [
        ("GET", f"/todos/{todo['id']}"),
        ("PATCH", f"/todos/{todo['id']}"),
        ("POST", f"/todos/{todo['id']}/toggle"),
        ("DELETE", f"/todos/{todo['id']}"),
    ]:
        kwargs = {"json": {"title": "pwned"}} if method == "PATCH" else {}
        response = await globex_client.request(method, path, headers=globex_headers, **kwargs)
        assert response.status_code == 403, (method, path)

    still_there = await acme_client.get(f"/todos/{todo['id']}", headers=acme_headers)
    assert still_there.json()["title"] == "Secret"


# ── Tenant settings & profile ────────────────────────────────────────────────

async def test_only_owner_updates_tenant(acme_client, make_tenant, make_user):
    tenant, _ = await make_tenant("acme")
    await make_user(tenant, "member@acme.org")
    owner_headers = await login(acme_client, "owner@acme.org")
    member_headers = await login(acme_client, "member@acme.org")

    denied = await acme_client.patch("/tenant", json={"name": "Hijacked"}, headers=member_headers)
    assert denied.status_code == 403

    renamed = await acme_client.patch("/tenant", json={"name": "Acme Corp"}, headers=owner_headers)
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Acme Corp"
    assert renamed.json()["slug"] == "acme"


async def test_profile_and_password_change(acme_client, make_tenant):
    await make_tenant("acme")
    headers = await login(acme_client, "owner@acme.org")

    profile = await acme_client.patch("/user/profile", json={"name": "New Name"}, headers=headers)
    assert profile.json()["name"] == "New Name"

    wrong = await acme_client.post(
        "/auth/change-password",
        json={"current_password": "WrongPass1", "password": "NewPass123", "confirm_password": "NewPass123"},
        headers=headers,
    )
    assert wrong.status_code == 400

    changed = await acme_client.post(
        "/auth/change-password",
        json={"current_password": PASSWORD, "password": "NewPass123", "confirm_password": "NewPass123"},
        headers=headers,
    )
    assert changed.status_code == 200
    await login(acme_client, "owner@acme.org", "NewPass123")


async def test_forgot_and_reset_password(acme_client, make_tenant, outbox):
    await make_tenant("acme")
    unknown = await acme_client.post("/auth/forgot-password", json={"email": "ghost@acme.org"})
    assert unknown.status_code == 200
    assert unknown.json()["dev_token"] is None

    issued = await acme_client.post("/auth/forgot-password", json={"email": "owner@acme.org"})
    assert issued.json()["message"] == unknown.json()["message"]
    token = issued.json()["dev_token"]
    assert token in outbox.sent[-1].text

    reset = await acme_client.post(
        "/auth/reset-password",
        json={"token": token, "password": "Reset12345", "confirm_password": "Reset12345"},
    )
    assert reset.status_code == 200
    await login(acme_client, "owner@acme.org", "Reset12345")

    reused = await acme_client.post(
        "/auth/reset-password",
        json={"token": token, "password": "Again12345", "confirm_password": "Again12345"},
    )
    assert reused.status_code == 400

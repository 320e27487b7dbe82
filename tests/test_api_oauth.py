"""HTTP tests for the OAuth round trip with a fake provider."""

from urllib.parse import parse_qs, urlparse

from saaskit.core.oauth_state import encode_state


def _state_from(location: str) -> str:
    return parse_qs(urlparse(location).query)["state"][0]


async def test_oauth_round_trip(client, acme_client, make_tenant):
    await make_tenant("acme")

    start = await acme_client.get("/auth/oauth/google/authorize")
    assert start.status_code == 302
    state = _state_from(start.headers["location"])

    done = await client.get("/auth/oauth/google/callback", params={"code": "abc", "state": state})
    assert done.status_code == 302
    assert done.headers["location"] == "http://acme.example.com/dashboard"
    assert "session_token=" in done.headers["set-cookie"]


async def test_oauth_callback_keeps_same_domain_callback(client, acme_client, make_tenant):
    await make_tenant("acme")
    start = await acme_client.get(
        "/auth/oauth/google/authorize", params={"callback_url": "/todos"}
    )
    done = await client.get(
        "/auth/oauth/google/callback",
        params={"code": "abc", "state": _state_from(start.headers["location"])},
    )
    assert done.headers["location"] == "http://acme.example.com/todos"


async def test_oauth_foreign_callback_is_replaced(client, make_tenant):
    await make_tenant("acme")
    state = encode_state("acme", "https://evil.test/steal")
    done = await client.get("/auth/oauth/google/callback", params={"code": "abc", "state": state})
    assert done.headers["location"] == "http://acme.example.com/dashboard"


async def test_oauth_bad_state(client):
    done = await client.get("/auth/oauth/google/callback", params={"code": "abc", "state": "junk"})
    assert done.status_code == 302
    assert done.headers["location"] == "http://example.com/login?error=InvalidState"


async def test_oauth_access_denied(client, make_tenant):
    await make_tenant("acme")
    done = await client.get(
        "/auth/oauth/google/callback",
        params={"error": "access_denied", "state": encode_state("acme")},
    )
    assert done.headers["location"] == "http://acme.example.com/login?error=OAuthAccessDenied"


async def test_oauth_identity_bound_to_first_tenant(client, make_tenant):
    await make_tenant("acme")
    await make_tenant("globex")
    first = await client.get(
        "/auth/oauth/google/callback", params={"code": "abc", "state": encode_state("acme")}
    )
    assert first.headers["location"] == "http://acme.example.com/dashboard"

    second = await client.get(
        "/auth/oauth/google/callback", params={"code": "abc", "state": encode_state("globex")}
    )
    assert second.headers["location"] == (
        "http://globex.example.com/login?error=AccountLinkedToOtherTenant"
    )


async def test_authorize_requires_tenant_host(client):
    response = await client.get("/auth/oauth/google/authorize")
    assert response.status_code == 404


async def test_unknown_provider(acme_client, make_tenant):
    await make_tenant("acme")
    response = await acme_client.get("/auth/oauth/github/authorize")
    assert response.status_code == 404

"""
Tests for the intent gateway API.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from intent_gateway.api.app import app
from intent_gateway.api.dependencies import build_handler
from intent_gateway.config import settings
from intent_gateway.repositories import HttpUpstreamCaller

USERS = {"alice": "alice-pass", "bob": "bob-pass"}


@pytest.fixture
def client(store, embedding_provider, upstream):
    """Create a test client over an in-memory store (lifespan not started)."""
    app.state.gateway_handler = build_handler(store, embedding_provider, upstream, users=USERS)
    yield TestClient(app)
    del app.state.gateway_handler


@pytest.fixture
def token(client):
    response = client.post("/auth/login", json={"user_id": "alice", "password": "alice-pass"})
    assert response.status_code == 200
    return response.json()["token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def add_image_key(client, token, **fields):
    body = {
        "template": "image-gen",
        "api_key": "sk-image-secret",
        "description": "image generation",
        **fields,
    }
    return client.post("/keys", json=body, headers=auth(token))


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == "Intent Gateway API"


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["embedding_model"] == "keyword-charfreq-60"
    assert data["thresholds"] == {
        "cache_similarity": settings.cache_similarity_threshold,
        "cache_max_entries": settings.cache_max_entries,
        "match": settings.match_threshold,
        "conflict": settings.conflict_threshold,
    }


def test_health_reports_store_outage(client, store):
    store.failing.add("ping")
    data = client.get("/health").json()
    assert data["status"] == "unhealthy"
    assert not data["store_healthy"]


def test_login(client):
    response = client.post("/auth/login", json={"user_id": "alice", "password": "alice-pass"})
    assert response.status_code == 200
    data = response.json()
    assert len(data["token"]) == settings.token_length
    assert data["expires_in"] == settings.session_ttl


def test_login_wrong_password(client):
    response = client.post("/auth/login", json={"user_id": "alice", "password": "nope"})
    assert response.status_code == 403
    assert response.json()["error"] == "Invalid credentials"


def test_login_twice_conflicts(client, token):
    response = client.post("/auth/login", json={"user_id": "alice", "password": "alice-pass"})
    assert response.status_code == 409
    data = response.json()
    assert data["error"] == "User already in use"
    assert data["remaining_time"] > 0


def test_login_rejects_bad_user_id(client):
    response = client.post("/auth/login", json={"user_id": "alice smith", "password": "x"})
    assert response.status_code == 422


def test_status_and_logout(client, token):
    status = client.get("/auth/status/alice").json()
    assert status["active"]

    response = client.post("/auth/logout", json={"user_id": "alice"})
    assert response.status_code == 200
    assert not client.get("/auth/status/alice").json()["active"]

    assert client.post("/auth/logout", json={"user_id": "alice"}).status_code == 404


def test_keys_require_token(client):
    response = client.get("/keys")
    assert response.status_code == 401
    assert response.json()["message"] == "Token is required"

    response = client.get("/keys", headers=auth("not-a-session"))
    assert response.status_code == 401


def test_add_and_list_keys(client, token):
    response = add_image_key(client, token, scopes=["images"])
    assert response.status_code == 201
    assert response.json()["ttl_seconds"] == settings.session_ttl

    data = client.get("/keys", headers=auth(token)).json()
    assert data["count"] == 1
    key = data["keys"][0]
    assert key["template"] == "image-gen"
    assert key["scopes"] == ["images"]
    assert "api_key" not in key
    assert "encrypted_key" not in key


def test_add_key_validation(client, token):
    response = add_image_key(client, token, api_key="short")
    assert response.status_code == 422


def test_add_key_conflicts(client, token):
    add_image_key(client, token)

    duplicate = add_image_key(client, token, description="chat completion")
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Template already exists"

    similar = add_image_key(client, token, template="images")
    assert similar.status_code == 409
    assert similar.json()["conflicting_template"] == "image-gen"


def test_update_key(client, token):
    add_image_key(client, token)
    response = client.put(
        "/keys",
        json={"template": "image-gen", "max_requests_per_day": 10},
        headers=auth(token),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["updated_fields"] == ["max_requests_per_day"]
    assert data["limits"]["max_requests_per_day"] == 10


@pytest.mark.parametrize("field", ["max_requests_per_day", "description"])
def test_update_key_with_null_keeps_key_usable(client, token, field):
    add_image_key(client, token)

    response = client.put("/keys", json={"template": "image-gen", field: None}, headers=auth(token))
    assert response.status_code == 200
    assert response.json()["updated_fields"] == []
    assert response.json()["limits"]["max_requests_per_day"] == 1000

    data = client.get("/keys", headers=auth(token)).json()
    assert data["count"] == 1
    assert data["keys"][0]["description"] == "image generation"

    response = client.put("/keys", json={"template": "image-gen", "max_requests_per_day": 10}, headers=auth(token))
    assert response.status_code == 200


def test_delete_key_requires_confirmation(client, token):
    add_image_key(client, token)

    response = client.request("DELETE", "/keys", json={"template": "image-gen"}, headers=auth(token))
    assert response.status_code == 400

    response = client.request(
        "DELETE", "/keys", json={"template": "image-gen", "confirm": True}, headers=auth(token)
    )
    assert response.status_code == 200
    assert client.get("/keys", headers=auth(token)).json()["count"] == 0


def test_sync_ttl(client, token):
    add_image_key(client, token)
    response = client.post("/keys/sync-ttl", headers=auth(token))
    assert response.status_code == 200
    assert response.json()["synced_keys"] == 1


def test_proxy(client, token, upstream):
    """Test routing an intent, then serving the repeat from the cache."""
    add_image_key(client, token)
    body = {"token": token, "intent": "generate an image of a cat", "payload": {"prompt": "a cat"}}

    first = client.post("/proxy", json=body)
    assert first.status_code == 200
    data = first.json()
    assert data["matched_template"] == "image-gen"
    assert not data["cached"]
    assert data["tokens_used"] == 42

    second = client.post("/proxy", json=body)
    assert second.json()["cached"]
    assert len(upstream.calls) == 1


def test_proxy_rewrites_intent(client, token):
    add_image_key(client, token)
    response = client.post("/proxy", json={"token": token, "intent": "Create a Picture of a cat", "payload": {}})
    assert response.status_code == 200
    data = response.json()
    assert data["matched_template"] == "image-gen"
    assert data["notices"] == ["Rewritten intent: generate a image of a cat"]

    notifications = client.get("/notifications", headers=auth(token)).json()
    assert notifications["count"] == 1


def test_proxy_with_malformed_token_count(store, embedding_provider):
    """A successful upstream call with an unusable token count is still served and cached."""
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"text": "hi", "tokens_used": "n/a"}))
    upstream = HttpUpstreamCaller(base_url="http://upstream.test", client=httpx.AsyncClient(transport=transport))
    app.state.gateway_handler = build_handler(store, embedding_provider, upstream, users=USERS)
    try:
        client = TestClient(app)
        token = client.post("/auth/login", json={"user_id": "alice", "password": "alice-pass"}).json()["token"]
        add_image_key(client, token)
        body = {"token": token, "intent": "generate an image of a cat", "payload": {}}

        response = client.post("/proxy", json=body)
        assert response.status_code == 200
        assert response.json()["response"] == {"text": "hi", "tokens_used": "n/a"}
        assert response.json()["tokens_used"] == 0
        assert client.post("/proxy", json=body).json()["cached"]
    finally:
        del app.state.gateway_handler


def test_proxy_without_match(client, token):
    add_image_key(client, token)
    response = client.post("/proxy", json={"token": token, "intent": "what's the weather"})
    assert response.status_code == 404
    assert response.json()["suggestions"][0]["template"] == "image-gen"


def test_proxy_uses_origin_header(client, token):
    add_image_key(client, token, allowed_origins=["*.example.com"])
    body = {"token": token, "intent": "generate an image of a cat", "payload": {}}

    denied = client.post("/proxy", json=body, headers={"Origin": "https://evil.com"})
    assert denied.status_code == 403

    allowed = client.post("/proxy", json=body, headers={"Origin": "https://app.example.com"})
    assert allowed.status_code == 200


def test_proxy_invalid_token(client):
    response = client.post("/proxy", json={"token": "nope", "intent": "anything"})
    assert response.status_code == 401


def test_template_rankings(client, token):
    add_image_key(client, token)

    match = client.post("/templates/match", json={"intent": "generate an image of a cat"}, headers=auth(token))
    assert match.json()["found"]
    assert match.json()["match"]["template"] == "image-gen"

    top = client.post("/templates/top-k", json={"intent": "draw me a cat", "k": 2}, headers=auth(token))
    assert [m["template"] for m in top.json()["matches"]] == ["image-gen"]

    suggestions = client.post("/templates/suggestions", json={"partial_intent": "ima"}, headers=auth(token))
    assert suggestions.status_code == 200


def test_validate_access(client, token):
    add_image_key(client, token, max_payload_kb=1)
    response = client.post(
        "/access/validate",
        json={"template": "image-gen", "payload": {"data": "x" * 2000}},
        headers=auth(token),
    )
    data = response.json()
    assert not data["allowed"]
    assert data["error"].startswith("Payload size")
    assert not data["retryable"]


def test_cache_and_notifications(client, token):
    add_image_key(client, token)
    client.post("/proxy", json={"token": token, "intent": "generate an image of a cat", "payload": {}})

    cache = client.get("/cache", headers=auth(token)).json()
    assert cache["count"] == 1
    assert cache["entries"][0]["matched_template"] == "image-gen"

    cleared = client.delete("/cache", headers=auth(token)).json()
    assert cleared["deleted_count"] == 1

    response = client.get("/notifications", params={"limit": 5}, headers=auth(token))
    assert response.status_code == 200
    assert response.json()["count"] == 0

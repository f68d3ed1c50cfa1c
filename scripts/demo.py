#!/usr/bin/env python3
"""
Demo script for the intent gateway.

Walks through a session against a running API server: login, credential
registration, routing, semantic cache hits, conflict detection and logout.

Start the server first:

    python -m intent_gateway.api.app

The upstream at UPSTREAM_BASE_URL must accept POST /{template}; without one,
routed calls fail with 502 but everything before the upstream call is shown.
"""

import os

import httpx

BASE_URL = os.getenv("GATEWAY_URL", "http://localhost:8000")
USER_ID = os.getenv("DEMO_USER", "demo1")
PASSWORD = os.getenv("DEMO_PASSWORD", "pass1")


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def show_error(response: httpx.Response) -> None:
    body = response.json()
    print(f"  ✗ {response.status_code} {body.get('error')}: {body.get('message')}")


def demo_login(client: httpx.Client) -> str:
    print_section("Login")

    response = client.post("/auth/login", json={"user_id": USER_ID, "password": PASSWORD})
    if response.status_code == 409:
        print("  Session already active, logging out first...")
        client.post("/auth/logout", json={"user_id": USER_ID})
        response = client.post("/auth/login", json={"user_id": USER_ID, "password": PASSWORD})
    response.raise_for_status()

    data = response.json()
    print(f"  ✓ Logged in as {USER_ID}, session expires in {data['expires_in']}s")
    return data["token"]


def demo_register_keys(client: httpx.Client, headers: dict[str, str]) -> None:
    """Register two credentials, then one whose description is too close."""
    print_section("Registering credentials")

    keys = [
        ("image-gen", "sk-demo-image-0000", "image generation"),
        ("chat", "sk-demo-chat-00000", "chat completion"),
        ("images", "sk-demo-image-1111", "Image generation!"),
    ]
    for template, api_key, description in keys:
        response = client.post(
            "/keys",
            json={"template": template, "api_key": api_key, "description": description},
            headers=headers,
        )
        if response.status_code == 201:
            print(f"  ✓ {template}: '{description}' (ttl {response.json()['ttl_seconds']}s)")
        else:
            show_error(response)


def demo_matching(client: httpx.Client, headers: dict[str, str]) -> None:
    print_section("Template matching")

    for intent in ["generate an image of a cat", "draw me a cat", "what's the weather"]:
        match = client.post("/templates/match", json={"intent": intent}, headers=headers).json()
        ranking = client.post("/templates/top-k", json={"intent": intent, "k": 2}, headers=headers).json()
        scores = ", ".join(f"{m['template']}={m['confidence']:.3f}" for m in ranking["matches"])
        verdict = f"→ {match['match']['template']}" if match["found"] else "→ no match"
        print(f"\n  Intent: {intent}")
        print(f"  Scores: {scores}")
        print(f"  {verdict}")


def demo_routing(client: httpx.Client, token: str) -> None:
    """Route the same request twice; the second is served from the cache."""
    print_section("Routing and semantic cache")

    body = {"token": token, "intent": "generate an image of a cat", "payload": {"prompt": "a cat"}}
    for attempt in (1, 2):
        response = client.post("/proxy", json=body)
        if response.status_code != 200:
            show_error(response)
            continue
        data = response.json()
        source = "cache" if data["cached"] else "upstream"
        print(
            f"  Request {attempt}: {data['matched_template']} from {source} "
            f"(confidence {data['confidence']:.3f}, {data['latency_ms']}ms)"
        )


def demo_logout(client: httpx.Client, headers: dict[str, str]) -> None:
    print_section("Logout")

    keys = client.get("/keys", headers=headers).json()
    print(f"  {keys['count']} credentials expire with the session")
    client.post("/auth/logout", json={"user_id": USER_ID})
    print("  ✓ Logged out")


def main() -> None:
    """Run all demos."""
    print("\n" + "=" * 70)
    print("  INTENT GATEWAY DEMO")
    print("=" * 70)

    with httpx.Client(base_url=BASE_URL, timeout=30) as client:
        health = client.get("/health").json()
        print(f"\n  Server: {BASE_URL} ({health['status']}, embeddings: {health['embedding_model']})")

        token = demo_login(client)
        headers = {"Authorization": f"Bearer {token}"}
        demo_register_keys(client, headers)
        demo_matching(client, headers)
        demo_routing(client, token)
        demo_logout(client, headers)

    print("\n" + "=" * 70)
    print("  Demo completed!")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    main()

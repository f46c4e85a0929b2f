#!/usr/bin/env python3
"""
Instaflix Quickstart — password sign-up, login and /me in one script.

Registers a fresh user, logs in with the same credentials and calls the
protected /auth/me endpoint with the session token.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def main():
    run_id = uuid.uuid4().hex[:8]
    email = f"demo-{run_id}@example.com"
    password = "demo-password-123"
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  uvicorn instaflix.main:app --reload --port 8000")
        sys.exit(1)
    health = resp.json()
    print(f"  Status:   {health['status']}")
    print(f"  Database: {health['database']}")

    # ── Register ──────────────────────────────────────────────────
    print("\n1. Registering...")
    resp = client.post("/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    user = resp.json()
    print(f"   User: {user['username']} ({user['id'][:8]}...)")

    # ── Duplicate registration is refused ─────────────────────────
    resp = client.post("/auth/register", json={"email": email, "password": password})
    print(f"   Registering again: {resp.status_code} {resp.json()['detail']}")

    # ── Login ─────────────────────────────────────────────────────
    print("\n2. Logging in...")
    resp = client.post("/auth/login", json={"email": email, "password": "wrong-password"})
    print(f"   Wrong password: {resp.status_code} {resp.json()['detail']}")

    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    session = resp.json()
    print(f"   Token expires in {session['expires_in'] // 86400} days")

    # ── Who am I ──────────────────────────────────────────────────
    print("\n3. Calling /auth/me...")
    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {session['token']}"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    me = resp.json()
    print(f"   {me['email']} (role: {me['role']})")

    resp = client.get("/auth/me")
    print(f"   Without a token: {resp.status_code} {resp.json()['detail']}")

    print("\nDone.")


if __name__ == "__main__":
    main()

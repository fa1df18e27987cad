"""
tests/test_health.py -- Integration tests for GET / and GET /health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against a live store, 'error' when the probe fails
  - No authentication required
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError


def test_root_banner(api_client):
    resp = api_client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Auth API is running"}


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_reports_database_error(api_client, store, monkeypatch):
    def broken_ping():
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    monkeypatch.setattr(store, "ping", broken_ping)
    resp = api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["components"]["database"] == "error"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    resp = api_client.get("/health", headers={})
    assert resp.status_code == 200

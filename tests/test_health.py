"""Tests for the /health endpoint."""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from src.db.database import get_db
from src.main import app


def test_health_returns_ok(client: TestClient) -> None:
    """GET /health should return 200 with status 'ok'."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "connected"}


def test_health_reports_unreachable_database(client: TestClient) -> None:
    broken = MagicMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("locked"))
    previous = app.dependency_overrides[get_db]
    app.dependency_overrides[get_db] = lambda: broken
    try:
        response = client.get("/health")
    finally:
        app.dependency_overrides[get_db] = previous
    assert response.status_code == 200
    assert response.json() == {"status": "error", "database": "disconnected"}

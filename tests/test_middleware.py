"""Middleware tests: request ID, error handling, logging setup."""

import json
import logging

import pytest
import structlog
from httpx import ASGITransport, AsyncClient

from pathwise.config import get_settings
from pathwise.middleware.logging import setup_logging


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_validation_error_shape(learner_client: AsyncClient) -> None:
    """Body validation errors return 422 with the field errors listed."""
    response = await learner_client.post("/api/v1/gamification/reward", json={"action": "teleport"})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"][0]["loc"] == ["body", "action"]


@pytest.mark.asyncio
async def test_500_returns_json() -> None:
    """Unhandled exceptions are caught by the global handler and returned as JSON."""
    from pathwise.main import create_app

    app = create_app()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_json_logging_renders_stdlib_records(capsys) -> None:
    """Service modules log through stdlib; records come out as JSON lines."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(get_settings().model_copy(update={"log_format": "json", "log_level": "INFO"}))
        structlog.contextvars.bind_contextvars(request_id="req-1")
        logging.getLogger("pathwise.test").info("Learner %s leveled up", 7)
        structlog.contextvars.clear_contextvars()

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Learner 7 leveled up"
        assert record["level"] == "info"
        assert record["logger"] == "pathwise.test"
        assert record["request_id"] == "req-1"
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)

"""
Main Application Unit Tests

Tests for application startup, shutdown and the health endpoint with mocked
infrastructure. Runs without Docker.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from supernote.core.exceptions import NoteStoreError
from supernote.main import create_app, run, wait_for_db
from supernote.repositories.notes import NoteRepository


def test_health_check(client) -> None:
    """Verify /health returns the service identity when the database answers."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "database": "connected",
        "service": "supernote-ai-backend",
        "version": "1.0.0",
    }


def test_health_check_database_down(client, note_repository) -> None:
    """Verify 503 without leaking the underlying error."""
    note_repository.fail_with = NoteStoreError("could not connect to server")

    response = client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["database"] == "disconnected"
    assert "could not connect" not in response.text


def test_lifespan_publishes_repository_and_disposes_engine(settings) -> None:
    """
    TestClient triggers the lifespan handler, so engine creation and the
    connectivity checks are mocked.
    """
    engine = MagicMock()
    engine.dispose = AsyncMock()

    with (
        patch("supernote.main.create_engine", return_value=engine),
        patch("supernote.main.wait_for_db", new_callable=AsyncMock) as mock_wait,
        patch("supernote.main.warm_pool", new_callable=AsyncMock) as mock_warm,
        patch("supernote.main.init_schema", new_callable=AsyncMock) as mock_schema,
    ):
        mock_wait.return_value = True
        app = create_app(settings)

        with TestClient(app):
            assert isinstance(app.state.note_repository, NoteRepository)
            mock_warm.assert_awaited_once_with(engine, settings.DB_POOL_MIN_CONNS)
            mock_schema.assert_not_awaited()

        engine.dispose.assert_awaited_once()


def test_lifespan_fails_when_database_unreachable(settings) -> None:
    engine = MagicMock()
    engine.dispose = AsyncMock()

    with (
        patch("supernote.main.create_engine", return_value=engine),
        patch("supernote.main.wait_for_db", new_callable=AsyncMock) as mock_wait,
    ):
        mock_wait.return_value = False
        app = create_app(settings)

        with pytest.raises(RuntimeError, match="Database connection failed"):
            with TestClient(app):
                pass

    engine.dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_wait_for_db_gives_up_after_retries() -> None:
    engine = MagicMock()
    engine.connect.side_effect = OSError("connection refused")

    with patch("supernote.main.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        assert await wait_for_db(engine, retries=3, delay=0) is False

    assert engine.connect.call_count == 3
    assert mock_sleep.await_count == 3


def test_run_exits_without_database_url(monkeypatch) -> None:
    """A missing connection string is a fatal startup condition."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.chdir("/")  # no .env file to fall back on

    with patch("supernote.main.uvicorn.run") as mock_run:
        with pytest.raises(SystemExit) as excinfo:
            run()

    assert excinfo.value.code == 1
    mock_run.assert_not_called()

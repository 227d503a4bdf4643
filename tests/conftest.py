from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import app.workers.fetcher as fetcher_module
from app.main import app
from app.services.metadata.cache import metadata_cache


@pytest.fixture(autouse=True)
def _fresh_process_state():
    """Reset module-level state shared between requests.

    The shared httpx client is dropped so respx can intercept the one
    created inside each test, and the process-wide metadata cache is
    emptied.
    """
    fetcher_module._http_client = None
    metadata_cache.clear()
    yield
    fetcher_module._http_client = None
    metadata_cache.clear()


@pytest.fixture
def client():
    """TestClient with lifespan startup/shutdown hooks fully mocked."""
    with (
        patch(
            "app.core.database.DatabaseManager.connect",
            new_callable=AsyncMock,
        ),
        patch(
            "app.core.database.DatabaseManager.disconnect",
            new_callable=AsyncMock,
        ),
        patch(
            "app.core.database.DatabaseManager.get_collection",
            return_value=MagicMock(),
        ),
        patch("app.core.firebase.FirebaseManager.initialize"),
        patch("app.core.firebase.FirebaseManager.shutdown"),
        patch(
            "app.main.close_http_client",
            new_callable=AsyncMock,
        ),
    ):
        with TestClient(app) as c:
            yield c

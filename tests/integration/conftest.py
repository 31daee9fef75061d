"""Integration test fixtures for VoxNotes.

Provides an async HTTP client over a fresh application that uses the
in-memory durable medium and the scriptable capture backend.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from voxnotes.api.app import create_app
from voxnotes.core.config import Settings


@pytest.fixture
def settings():
    return Settings(_env_file=None, storage_backend="memory", log_level="DEBUG")


@pytest.fixture
def app(settings, backend):
    """Create a fresh FastAPI application instance."""
    return create_app(settings=settings, backend=backend)


@pytest.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def final_output():
    """Engine output as the browser client posts it (camelCase)."""
    return {
        "isBusy": False,
        "text": "Meet at the library at noon",
        "chunks": [
            {"text": " Meet at the library", "timestamp": [0.0, 1.6]},
            {"text": " at noon", "timestamp": [1.6, None]},
        ],
    }

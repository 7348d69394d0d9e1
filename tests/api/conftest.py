"""
Pytest configuration for API integration tests
"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="function")
def client(engine):
    """
    Create a test client with properly initialized app state.
    Each test gets a fresh client to avoid state contamination.
    """
    from magick_bridge.config import Settings
    from magick_bridge.main import app

    # Set in app state
    app.state.engine = engine
    app.state.settings = Settings()

    # Create test client (no context manager, the session fixture owns the engine)
    test_client = TestClient(app, raise_server_exceptions=False)

    yield test_client

    app.state.engine = None
    app.state.settings = None


@pytest.fixture
def upload(png_bytes):
    """Multipart payload carrying the PNG test image"""
    return {"file": ("image.png", png_bytes, "image/png")}

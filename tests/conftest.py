import pytest
from httpx import AsyncClient, ASGITransport
from typing import AsyncGenerator

from src.main import app
from tests.helpers import make_background, make_screenshot, to_data_uri


@pytest.fixture
def screenshot_uri() -> str:
    return to_data_uri(make_screenshot())


@pytest.fixture
def background_uri() -> str:
    return to_data_uri(make_background(), "JPEG")


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()

# tests/test_health.py
import pytest

from mehfil.main import asgi_app


@pytest.mark.asyncio
async def test_health_check(client) -> None:
    """Verify that the health endpoint reports ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_root_describes_the_service(client) -> None:
    response = await client.get("/")
    body = response.json()
    assert body["name"] == "Mehfil"
    assert body["realtime"] == "/mehfil"
    assert body["docs"] == "/docs"


def test_socketio_wraps_the_api() -> None:
    assert asgi_app.other_asgi_app is not None

import numpy as np
import pytest

from src.api.dependencies import get_base_pipeline_config, get_settings
from src.core.config import Settings
from src.engines.overlay.schemas import CanvasConfig, PipelineConfig
from src.main import app
from tests.helpers import from_data_uri, make_background, make_screenshot, to_data_uri


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_root_lists_endpoints(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["overlay"] == "/api/v1/overlay"


@pytest.mark.asyncio
async def test_overlay_success(client, screenshot_uri, background_uri):
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri}
    )
    assert response.status_code == 200
    assert "X-Request-ID" in response.headers
    data = response.json()
    assert data["resultImage"].startswith("data:image/png;base64,")
    image = from_data_uri(data["resultImage"])
    assert image.format == "PNG"
    assert image.size == (1080, 1920)


@pytest.mark.asyncio
async def test_route_lands_at_scaled_position(client):
    # Horizontal mark at y=200 in a 540x960 screenshot; contain-fit doubles it
    screenshot = make_screenshot(line=((100, 200), (400, 200)), width=4)
    response = await client.post(
        "/api/v1/overlay",
        json={
            "stravaImage": to_data_uri(screenshot),
            "baseImage": to_data_uri(make_background(), "PNG"),
        }
    )
    assert response.status_code == 200
    result = np.asarray(from_data_uri(response.json()["resultImage"]).convert("RGB"), dtype=np.int32)

    brightness = result.sum(axis=2)
    # Above the stats region (which starts at 85% of the height)
    lit_rows = np.nonzero(brightness[:1632, 500] > 300)[0]
    assert lit_rows.size > 0
    assert abs(int(lit_rows.mean()) - 400) <= 2

    lit_cols = np.nonzero(brightness[400, :] > 300)[0]
    assert abs(int(lit_cols.min()) - 200) <= 8
    assert abs(int(lit_cols.max()) - 800) <= 8

    # Away from the mark and the stats region the black background survives
    assert brightness[1000, 540] < 30


@pytest.mark.asyncio
async def test_request_id_is_echoed(client, screenshot_uri, background_uri):
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri},
        headers={"X-Request-ID": "req-123"}
    )
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_malformed_payload_returns_error_body(client, background_uri):
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": "data:image/png;base64,@@not-base64@@", "baseImage": background_uri}
    )
    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "Error processing images"
    assert data["details"]
    assert "resultImage" not in data


@pytest.mark.asyncio
async def test_oversized_payload_returns_413(client, screenshot_uri, background_uri):
    app.dependency_overrides[get_settings] = lambda: Settings(INPUT_SIZE_LIMIT_BYTES=1024)
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri}
    )
    assert response.status_code == 413
    assert response.json()["error"] == "Error processing images"


@pytest.mark.asyncio
async def test_unknown_preset_returns_400(client, screenshot_uri, background_uri):
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri, "preset": "neon"}
    )
    assert response.status_code == 400
    assert "neon" in response.json()["details"]


@pytest.mark.asyncio
async def test_preset_is_applied(client, screenshot_uri, background_uri):
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri, "preset": "subtle"}
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_field_is_rejected(client, screenshot_uri):
    response = await client.post("/api/v1/overlay", json={"stravaImage": screenshot_uri})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_configured_canvas_is_used(client, screenshot_uri, background_uri):
    app.dependency_overrides[get_base_pipeline_config] = lambda: PipelineConfig(
        canvas=CanvasConfig(width=540, height=960)
    )
    response = await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri}
    )
    assert response.status_code == 200
    assert from_data_uri(response.json()["resultImage"]).size == (540, 960)


@pytest.mark.asyncio
async def test_legacy_route(client, screenshot_uri, background_uri):
    response = await client.post(
        "/api/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri}
    )
    assert response.status_code == 200
    assert "resultImage" in response.json()


@pytest.mark.asyncio
async def test_config_endpoint(client):
    response = await client.get("/api/v1/overlay/config")
    assert response.status_code == 200
    data = response.json()
    assert data["config"]["canvas"] == {"width": 1080, "height": 1920, "policy": "fixed"}
    assert data["config"]["route"]["threshold"] == 200
    assert "classic" in data["presets"]
    assert data["input_size_limit_bytes"] > 0


@pytest.mark.asyncio
async def test_metrics_endpoint(client, screenshot_uri, background_uri):
    await client.post(
        "/api/v1/overlay",
        json={"stravaImage": screenshot_uri, "baseImage": background_uri}
    )
    response = await client.get("/api/v1/metrics")
    assert response.status_code == 200
    assert "overlay_requests_total" in response.text
    assert "overlay_stage_latency_seconds" in response.text

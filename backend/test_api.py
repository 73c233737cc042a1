"""HTTP tests for the /diagram routes"""

import pytest
from fastapi.testclient import TestClient

from app.api.routes import get_pipeline
from app.main import app
from app.pipeline.controller import DiagramPipeline
from fakes import FakeRenderer, failing_strategy, solid_strategy


STEPS = "Step 1: Ingest email (AI)\nStep 2: Review ticket (Human)"


@pytest.fixture
def client_with():
    def factory(strategies=None, renderer=None):
        pipeline = DiagramPipeline(
            renderer=renderer or FakeRenderer(),
            collaborator=None,
            strategies=strategies or [solid_strategy()],
        )
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()


def test_synthesize_returns_source_svg_and_image(client_with):
    response = client_with().post("/diagram/synthesize", json={"steps": STEPS, "direction": "TD"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["tier"] == 1
    assert body["diagram_source"].startswith("flowchart TD")
    assert "<svg" in body["svg"]
    assert body["image"]["mime_type"] == "image/png"
    assert body["image"]["data_url"].startswith("data:image/png;base64,")


def test_synthesize_without_rasterize(client_with):
    body = client_with().post(
        "/diagram/synthesize",
        json={"steps": STEPS, "rasterize": False},
    ).json()

    assert body["status"] == "success"
    assert "image" not in body


def test_rasterization_failure_keeps_diagram_source(client_with):
    client = client_with(strategies=[failing_strategy(), failing_strategy()])

    body = client.post("/diagram/synthesize", json={"steps": STEPS}).json()

    assert body["status"] == "error"
    assert body["error"] == "RasterizationError"
    assert 'S1["Ingest email (AI)"]' in body["diagram_source"]
    assert len(body["errors"]) == 2


def test_empty_steps_are_reported(client_with):
    body = client_with().post("/diagram/synthesize", json={"steps": ""}).json()

    assert body["status"] == "error"
    assert body["error"] == "EmptyInputError"


def test_fatal_render_reports_fallback_source(client_with):
    client = client_with(renderer=FakeRenderer(accept=lambda source: False))

    body = client.post("/diagram/synthesize", json={"steps": STEPS}).json()

    assert body["status"] == "error"
    assert body["error"] == "FatalRenderError"
    assert body["diagram_source"].startswith("flowchart TD")


def test_invalid_direction_is_rejected(client_with):
    response = client_with().post("/diagram/synthesize", json={"steps": STEPS, "direction": "XY"})
    assert response.status_code == 422


def test_rasterize_endpoint(client_with):
    client = client_with()
    svg = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 300 100"></svg>'

    body = client.post("/diagram/rasterize", json={"svg": svg}).json()
    assert body["status"] == "success"
    assert body["image"]["width"] == (300 + 40) * 2

    body = client.post("/diagram/rasterize", json={"svg": "<not-svg"}).json()
    assert body["status"] == "error"


def test_rerender_endpoint(client_with):
    body = client_with().post("/diagram/rerender", json={"steps": STEPS, "direction": "LR"}).json()

    assert body["status"] == "success"
    assert body["direction"] == "LR"
    assert body["diagram_source"].startswith("flowchart LR")
    assert body["image"]["mime_type"] == "image/png"


def test_validate_endpoint(client_with):
    body = client_with().post("/diagram/validate", json={"source": "A --> B"}).json()

    assert body["status"] == "warning"
    assert body["is_valid"] is False
    assert "MISSING_DIRECTIVE" in [i["code"] for i in body["issues"]]


def test_health(client_with):
    assert client_with().get("/health").json() == {"status": "ok"}

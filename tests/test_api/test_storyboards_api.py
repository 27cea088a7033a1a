"""
Tests for the storyboard HTTP API.

Tests for previz/api/
"""

import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from conftest import make_script, plan_json
from previz.api.main import create_app, status_for
from previz.core.exceptions import (
    CreditsExhaustedError,
    OCRServiceError,
    PlanValidationError,
    ProjectNotFoundError,
    RateLimitError,
    StateConsistencyError,
    UnsupportedFileTypeError,
)
from previz.llm.api_clients import ChatResponse

HEADERS = {"X-User-Id": "user-1"}
OTHER_HEADERS = {"X-User-Id": "user-2"}


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def created(client):
    response = client.post("/api/storyboards", headers=HEADERS, json={
        "script_text": make_script(900),
        "genre": "Drama",
        "tone": "Serious",
        "aspect_ratio": "9:16",
        "characters": [{"name": "Maya", "description": "Woman in a green raincoat"}],
    })
    assert response.status_code == 201
    return response.json()


class TestErrorStatus:
    """Tests for the error-to-status table."""

    @pytest.mark.parametrize("error, status", [
        (UnsupportedFileTypeError("a.docx"), 400),
        (ProjectNotFoundError("p"), 404),
        (StateConsistencyError("orphans", [3]), 409),
        (RateLimitError("image-generation"), 429),
        (CreditsExhaustedError("image-generation"), 402),
        (PlanValidationError("bad plan"), 502),
        (OCRServiceError("timeout"), 502),
    ])
    def test_status_for(self, error, status):
        assert status_for(error) == status


class TestStoryboardsAPI:
    """End-to-end tests through the FastAPI app."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_requires_user_header(self, client):
        assert client.get("/api/storyboards").status_code == 401

    def test_ingest_text(self, client):
        response = client.post("/api/storyboards/ingest/text", headers=HEADERS, json={"text": "FADE IN: INT. HALL"})
        assert response.status_code == 200
        assert response.json()["word_count"] == 4

    def test_unsupported_upload_rejected(self, client, functions):
        response = client.post(
            "/api/storyboards/ingest/file",
            headers=HEADERS,
            files={"file": (
                "draft.docx", b"PK\x03\x04",
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            )},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Unsupported file type. Please upload PDF or text files."
        assert body["type"] == "UnsupportedFileTypeError"
        functions.invoke.assert_not_awaited()

    def test_text_upload(self, client):
        response = client.post(
            "/api/storyboards/ingest/file",
            headers=HEADERS,
            files={"file": ("scene.txt", b"INT. HALL - DAY", "text/plain")},
        )
        assert response.status_code == 200
        assert response.json()["text"] == "INT. HALL - DAY"

    def test_create_and_get(self, client, created):
        assert len(created["shots"]) == 6
        assert [f["status"] for f in created["frames"]] == ["pending"] * 6
        assert created["aspect_ratio"] == "9:16"
        assert created["owner_id"] == "user-1"

        response = client.get(f"/api/storyboards/{created['id']}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["shots"] == created["shots"]

    def test_other_user_gets_not_found(self, client, created):
        response = client.get(f"/api/storyboards/{created['id']}", headers=OTHER_HEADERS)
        assert response.status_code == 404
        assert client.get("/api/storyboards", headers=OTHER_HEADERS).json() == []

    def test_invalid_plan_creates_nothing(self, client, chat):
        chat.complete.return_value = ChatResponse(content=plan_json(7))

        response = client.post("/api/storyboards", headers=HEADERS, json={
            "script_text": make_script(900), "genre": "Drama", "tone": "Serious",
        })

        assert response.status_code == 502
        assert response.json()["error"] == "Invalid plan size: expected 6 shots, received 7"
        assert client.get("/api/storyboards", headers=HEADERS).json() == []

    @pytest.mark.parametrize("reference, status", [
        ("https://cdn.test/leo.png", 200),
        ("data:image/png;base64,iVBORw0KGgo=", 200),
        ("leo.png", 422),
        ("data:image/png,not-base64", 422),
    ])
    def test_character_reference_must_be_an_image_url(self, client, created, reference, status):
        response = client.put(f"/api/storyboards/{created['id']}/characters", headers=HEADERS, json={
            "characters": [{"name": "Leo", "reference_image": reference}],
        })
        assert response.status_code == status

    def test_edit_shot(self, client, created):
        url = f"/api/storyboards/{created['id']}/shots/2"

        response = client.patch(url, headers=HEADERS, json={"updates": {"camera_angle": "Low Angle"}})

        assert response.status_code == 200
        shots = response.json()["shots"]
        assert shots[1]["camera_angle"] == "Low Angle"
        assert shots[0] == created["shots"][0]

        bad = client.patch(url, headers=HEADERS, json={"updates": {"mood": "x"}})
        assert bad.status_code == 400

    def test_insert_remove_and_move(self, client, created):
        base = f"/api/storyboards/{created['id']}/shots"

        inserted = client.post(base, headers=HEADERS, json={"after": 2, "shot": {"description": "Insert"}})
        assert inserted.status_code == 201
        shots = inserted.json()["shots"]
        assert [s["shot_number"] for s in shots] == list(range(1, 8))
        assert shots[2]["description"] == "Insert"

        removed = client.delete(f"{base}/3", headers=HEADERS).json()
        assert len(removed["shots"]) == 6
        assert len(removed["frames"]) == 6

        moved = client.post(f"{base}/1/move", headers=HEADERS, json={"to_position": 6}).json()
        assert moved["shots"][5]["description"] == created["shots"][0]["description"]

    def test_missing_shot(self, client, created):
        response = client.patch(
            f"/api/storyboards/{created['id']}/shots/40", headers=HEADERS, json={"updates": {}}
        )
        assert response.status_code == 404

    def test_generate_all_and_regenerate(self, client, created, images):
        report = client.post(f"/api/storyboards/{created['id']}/frames/generate-all", headers=HEADERS)

        assert report.status_code == 200
        body = report.json()
        assert body["rendered"] == [1, 2, 3, 4, 5, 6]
        assert body["completed"] is True
        assert body["project"]["is_complete"] is True
        assert images.generate.await_args.kwargs["size"] == "1024x1536"

        frame = client.post(f"/api/storyboards/{created['id']}/frames/3/generate", headers=HEADERS)
        assert frame.status_code == 200
        assert frame.json()["status"] == "rendered"

    def test_regenerate_rate_limited_upstream(self, client, created, images):
        images.generate.side_effect = RateLimitError("image-generation")

        response = client.post(f"/api/storyboards/{created['id']}/frames/1/generate", headers=HEADERS)

        assert response.status_code == 429
        stored = client.get(f"/api/storyboards/{created['id']}", headers=HEADERS).json()
        assert stored["frames"][0]["status"] == "errored"

    def test_frame_style_override(self, client, created):
        response = client.put(
            f"/api/storyboards/{created['id']}/frames/2/style",
            headers=HEADERS,
            json={"style_override": "noir"},
        )
        assert response.json()["frames"][1]["style_override"] == "noir"

    def test_style_reference_upload(self, client, created, chat):
        buffer = io.BytesIO()
        Image.new("RGB", (64, 48), (20, 80, 90)).save(buffer, format="PNG")
        chat.complete.return_value = ChatResponse(content="Ink wash, muted teal, heavy shadows.")

        response = client.put(
            f"/api/storyboards/{created['id']}/style/reference",
            headers=HEADERS,
            files={"file": ("look.png", buffer.getvalue(), "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["style_reference_prompt"] == "Ink wash, muted teal, heavy shadows."

    def test_character_portrait(self, client, created, images):
        response = client.post(f"/api/storyboards/{created['id']}/characters/maya/portrait", headers=HEADERS)

        assert response.status_code == 200
        maya = response.json()["character_definitions"][0]
        assert maya["reference_image"] == images.generate.return_value.image_data

        missing = client.post(f"/api/storyboards/{created['id']}/characters/nobody/portrait", headers=HEADERS)
        assert missing.status_code == 400

    def test_export(self, client, created):
        response = client.get(f"/api/storyboards/{created['id']}/export", headers=HEADERS)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.splitlines()[0].startswith("shot_number,shot_type")

        bad = client.get(f"/api/storyboards/{created['id']}/export?format=xml", headers=HEADERS)
        assert bad.status_code == 400

    def test_delete(self, client, created):
        assert client.delete(f"/api/storyboards/{created['id']}", headers=HEADERS).status_code == 204
        assert client.get(f"/api/storyboards/{created['id']}", headers=HEADERS).status_code == 404

    def test_quick_storyboard(self, client, functions):
        functions.invoke.return_value = {"panels": [
            {"shot_id": 1, "description": "Maya waits", "prompt_used": "p", "image_b64": "iVBORw0KGgo="},
        ]}

        response = client.post("/api/storyboards/quick", headers=HEADERS, json={
            "script_text": "FADE IN:", "style": "noir",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["visual_style"] == "noir"
        assert body["frames"][0]["status"] == "rendered"
        assert body["is_complete"] is True

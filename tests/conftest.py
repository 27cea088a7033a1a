"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import json
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from previz.core.user_context import UserContext
from previz.llm.api_clients import ChatCompletionsClient, ChatResponse, ImageGenerationClient, ImageResponse
from previz.llm.edge_functions import EdgeFunctionClient
from previz.ingestion.script_ingestor import ScriptIngestor
from previz.pipelines.batch_render import GenerateAllFrames
from previz.pipelines.frame_renderer import FrameRenderer
from previz.pipelines.render_gate import RenderGate
from previz.pipelines.render_service import FrameRenderService
from previz.pipelines.shot_planner import ShotPlanner
from previz.core.config import PrevizConfig
from previz.services import PrevizServices
from previz.storage.project_store import ProjectStateStore
from previz.storage.record_store import InMemoryRecordStore
from previz.storyboard.models import CharacterDefinition, Shot

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgo="


class StepClock:
    """Deterministic UTC clock that advances one second per call."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_script(words: int) -> str:
    """Script text with exactly ``words`` words."""
    return " ".join(f"word{i}" for i in range(words))


def plan_json(count: int, fenced: bool = False) -> str:
    shots = [
        {
            "shotNumber": i,
            "visualDescription": f"Woman stands center frame in shot {i}",
            "characters": ["Maya"],
            "location": "Kitchen",
            "action": f"Action {i}",
            "emotionalTone": "Tense",
            "shotType": "Medium Shot",
            "cameraAngle": "Eye Level",
            "lighting": "soft window light",
            "keyProps": "mug, letter",
            "dialogue": "None",
        }
        for i in range(1, count + 1)
    ]
    text = json.dumps({"shots": shots})
    return f"```json\n{text}\n```" if fenced else text


def make_shots(count: int) -> List[Shot]:
    return [
        Shot(
            shot_number=i,
            description=f"Shot {i} description",
            camera_angle="Medium Shot",
            characters=["Maya"] if i % 2 else ["Maya", "Leo"],
            visual_elements="soft light",
            duration="3s",
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def user() -> UserContext:
    return UserContext(user_id="user-1", email="director@example.com")


@pytest.fixture
def other_user() -> UserContext:
    return UserContext(user_id="user-2")


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def characters() -> List[CharacterDefinition]:
    return [
        CharacterDefinition(
            name="Maya",
            description="Woman in her 30s, short dark hair, green raincoat",
            traits=["determined"],
            reference_image=PNG_DATA_URL,
        ),
        CharacterDefinition(name="Leo", description="Teenage boy, oversized hoodie"),
    ]


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def store(records, clock) -> ProjectStateStore:
    return ProjectStateStore(records, clock=clock)


@pytest_asyncio.fixture
async def project(store, user, characters):
    """A stored four-shot project with pending frames."""
    return await store.create(
        user,
        script_text="INT. KITCHEN - NIGHT\n\nMAYA\nWhere were you?\n\nLEO\nOut.",
        shots=make_shots(4),
        genre="Drama",
        tone="Serious",
        character_definitions=characters,
    )


@pytest.fixture
def chat() -> AsyncMock:
    client = AsyncMock(spec=ChatCompletionsClient)
    client.complete.return_value = ChatResponse(content=plan_json(6))
    return client


@pytest.fixture
def images() -> AsyncMock:
    client = AsyncMock(spec=ImageGenerationClient)
    client.generate.return_value = ImageResponse(image_data=PNG_DATA_URL, model="test-image")
    return client


@pytest.fixture
def functions() -> AsyncMock:
    return AsyncMock(spec=EdgeFunctionClient)


@pytest.fixture
def sleep() -> AsyncMock:
    """Stands in for asyncio.sleep so tests can see requested delays."""
    return AsyncMock()


@pytest.fixture
def gate(sleep) -> RenderGate:
    return RenderGate(delay_seconds=1.0, sleep=sleep, clock=lambda: 0.0)


@pytest.fixture
def renderer(images, clock) -> FrameRenderer:
    return FrameRenderer(images, clock=clock)


@pytest.fixture
def render_service(store, renderer, gate) -> FrameRenderService:
    return FrameRenderService(store, renderer, gate)


@pytest.fixture
def planner(chat, functions, clock) -> ShotPlanner:
    return ShotPlanner(chat, functions=functions, clock=clock)


@pytest.fixture
def services(store, planner, renderer, render_service) -> PrevizServices:
    return PrevizServices(
        config=PrevizConfig(),
        store=store,
        ingestor=ScriptIngestor(),
        planner=planner,
        renderer=renderer,
        render_service=render_service,
        batch=GenerateAllFrames(render_service, store),
    )

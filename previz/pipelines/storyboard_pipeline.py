"""
Create Storyboard Pipeline

ingest -> plan -> persist. The project is only created after a valid
plan exists, so a failed plan leaves no trace in the state store.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from previz.core.constants import AspectRatio
from previz.core.exceptions import MissingParameterError
from previz.core.user_context import UserContext
from previz.ingestion.script_ingestor import ScriptIngestor, ScriptUpload
from previz.pipelines.base_pipeline import PipelineStep, StepPipeline
from previz.pipelines.shot_planner import ShotPlanner
from previz.storage.project_store import ProjectStateStore
from previz.storyboard.models import CharacterDefinition, Project


@dataclass
class StoryboardRequest:
    """Inputs of the "create storyboard" action. No aspect ratio means the configured default."""
    genre: str
    tone: str
    script_text: Optional[str] = None
    upload: Optional[ScriptUpload] = None
    visual_style: str = "cinematic"
    custom_style: str = ""
    aspect_ratio: Optional[AspectRatio] = None
    character_definitions: List[CharacterDefinition] = field(default_factory=list)
    style_reference_prompt: Optional[str] = None


class CreateStoryboardPipeline(StepPipeline[StoryboardRequest, Project]):
    """
    Builds a project from a script with the detailed breakdown.

    Context keys:
        user: UserContext owning the new project (required)
        on_ingest_progress: optional callback for OCR progress events
    """

    def __init__(
        self,
        ingestor: ScriptIngestor,
        planner: ShotPlanner,
        store: ProjectStateStore,
        default_aspect_ratio: AspectRatio = AspectRatio.WIDE
    ):
        self.ingestor = ingestor
        self.planner = planner
        self.store = store
        self.default_aspect_ratio = default_aspect_ratio
        super().__init__("create_storyboard", [
            PipelineStep("ingest", "Normalize script text", self._ingest),
            PipelineStep("plan", "Break the script into shots", self._plan),
            PipelineStep("persist", "Create the project", self._persist),
        ])

    async def _ingest(self, request: StoryboardRequest, context: Dict[str, Any]) -> Dict[str, Any]:
        if context.get("user") is None:
            raise MissingParameterError("user")
        if not request.genre:
            raise MissingParameterError("genre")
        if not request.tone:
            raise MissingParameterError("tone")
        if request.upload is not None:
            result = await self.ingestor.ingest_file(
                request.upload, context.get("on_ingest_progress")
            )
        else:
            result = self.ingestor.ingest_text(request.script_text)
        return {"request": request, "script_text": result.text}

    async def _plan(self, data: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        request: StoryboardRequest = data["request"]
        plan = await self.planner.detailed_breakdown(data["script_text"], request.genre, request.tone)
        data["shots"] = plan.unwrap()
        return data

    async def _persist(self, data: Dict[str, Any], context: Dict[str, Any]) -> Project:
        user: UserContext = context["user"]
        request: StoryboardRequest = data["request"]
        return await self.store.create(
            user,
            script_text=data["script_text"],
            shots=data["shots"],
            genre=request.genre,
            tone=request.tone,
            visual_style=request.visual_style,
            custom_style=request.custom_style,
            aspect_ratio=request.aspect_ratio or self.default_aspect_ratio,
            character_definitions=request.character_definitions,
            style_reference_prompt=request.style_reference_prompt,
        )

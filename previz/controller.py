"""
Storyboard Controller

Every user action on a storyboard, for one explicitly supplied user.
Projects that do not belong to the user are reported as not found.
"""

from typing import Any, Callable, Dict, List, Optional

from previz.core.constants import AspectRatio
from previz.core.exceptions import InputError, ProjectNotFoundError, ShotNotFoundError
from previz.core.image_utils import normalize_reference_image
from previz.core.logging_config import get_logger
from previz.core.user_context import UserContext
from previz.ingestion.script_ingestor import IngestionProgress, IngestionResult, ScriptUpload
from previz.pipelines.base_pipeline import PipelineProgress
from previz.pipelines.batch_render import BatchProgress, BatchRenderReport
from previz.pipelines.storyboard_pipeline import CreateStoryboardPipeline, StoryboardRequest
from previz.services import PrevizServices
from previz.storyboard.characters import find_character
from previz.storyboard.export import export_shot_list_csv, export_shot_list_json
from previz.storyboard.models import CharacterDefinition, Frame, Project, Shot
from previz.storyboard.shot_list import merge_parsed_prompt
from previz.storyboard.styles import ART_STYLES, CUSTOM_STYLE_ID, style_prompt_for

logger = get_logger("controller")


class StoryboardController:
    """User-facing storyboard actions bound to one user."""

    def __init__(self, user: UserContext, services: PrevizServices):
        self.user = user
        self.services = services
        self.store = services.store

    async def _owned(self, project_id: str) -> Project:
        project = await self.store.get(project_id)
        if not self.user.owns(project.owner_id):
            raise ProjectNotFoundError(project_id)
        return project

    # =========================================================================
    # INGESTION
    # =========================================================================

    def ingest_text(self, text: str) -> IngestionResult:
        return self.services.ingestor.ingest_text(text)

    async def ingest_file(
        self,
        upload: ScriptUpload,
        on_progress: Optional[Callable[[IngestionProgress], None]] = None
    ) -> IngestionResult:
        return await self.services.ingestor.ingest_file(upload, on_progress)

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_storyboard(
        self,
        request: StoryboardRequest,
        on_progress: Optional[Callable[[PipelineProgress], None]] = None,
        on_ingest_progress: Optional[Callable[[IngestionProgress], None]] = None
    ) -> Project:
        """Detailed breakdown. Raises the failing step's error; nothing is stored on failure."""
        pipeline = CreateStoryboardPipeline(
            self.services.ingestor,
            self.services.planner,
            self.store,
            self.services.config.render.default_aspect_ratio,
        )
        result = await pipeline.run(
            request,
            {"user": self.user, "on_ingest_progress": on_ingest_progress},
            on_progress,
        )
        return result.unwrap()

    async def create_quick_storyboard(
        self,
        script_text: str,
        style: str,
        aspect_ratio: Optional[AspectRatio] = None
    ) -> Project:
        """
        Fused plan-and-render; ``style`` is an art-style id or free text.

        Without an aspect ratio the configured default is used.
        """
        if style in ART_STYLES and style != CUSTOM_STYLE_ID:
            visual_style, custom_style = style, ""
        else:
            visual_style, custom_style = CUSTOM_STYLE_ID, style
        style_prompt = style_prompt_for(visual_style, custom_style)
        result = await self.services.planner.quick_storyboard(script_text, style_prompt)
        storyboard = result.unwrap()
        return await self.store.create(
            self.user,
            script_text=script_text,
            shots=storyboard.shots,
            frames=storyboard.frames,
            visual_style=visual_style,
            custom_style=custom_style,
            aspect_ratio=aspect_ratio or self.services.config.render.default_aspect_ratio,
        )

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def get_project(self, project_id: str) -> Project:
        return await self._owned(project_id)

    async def list_projects(self) -> List[Project]:
        return await self.store.list_for_owner(self.user.user_id)

    async def delete_project(self, project_id: str) -> None:
        await self._owned(project_id)
        await self.store.delete(project_id)

    async def update_script(
        self,
        project_id: str,
        script_text: Optional[str] = None,
        genre: Optional[str] = None,
        tone: Optional[str] = None
    ) -> Project:
        await self._owned(project_id)
        if script_text is not None and not script_text.strip():
            raise InputError("Script text cannot be empty")
        return await self.store.update_script(project_id, script_text, genre, tone)

    async def update_style(
        self,
        project_id: str,
        visual_style: Optional[str] = None,
        custom_style: Optional[str] = None,
        aspect_ratio: Optional[AspectRatio] = None,
        style_reference_prompt: Optional[str] = None
    ) -> Project:
        await self._owned(project_id)
        return await self.store.update_style(
            project_id, visual_style, custom_style, aspect_ratio, style_reference_prompt
        )

    async def analyze_style_reference(self, project_id: str, image: bytes) -> Project:
        """Describe an uploaded style image and store it as the style reference."""
        await self._owned(project_id)
        description = (
            await self.services.planner.analyze_style_reference(normalize_reference_image(image))
        ).unwrap()
        return await self.store.update_style(project_id, style_reference_prompt=description)

    async def set_frame_style(
        self,
        project_id: str,
        shot_number: int,
        style_override: Optional[str]
    ) -> Project:
        await self._owned(project_id)
        return await self.store.set_frame_style(project_id, shot_number, style_override)

    # =========================================================================
    # CHARACTERS
    # =========================================================================

    async def update_characters(
        self,
        project_id: str,
        definitions: List[CharacterDefinition]
    ) -> Project:
        await self._owned(project_id)
        return await self.store.merge_characters(project_id, definitions)

    async def set_character_reference(
        self,
        project_id: str,
        name: str,
        image: bytes
    ) -> Project:
        """Attach a reference image to an existing character definition."""
        project = await self._owned(project_id)
        definition = find_character(name, project.character_definitions)
        if definition is None:
            raise InputError(f"No character named '{name}'", {"name": name})
        updated = CharacterDefinition(
            name=definition.name,
            description=definition.description,
            traits=definition.traits,
            reference_image=normalize_reference_image(image),
        )
        return await self.store.merge_characters(project_id, [updated])

    async def generate_character_portrait(self, project_id: str, name: str) -> Project:
        """Render a reference portrait for an existing character."""
        await self._owned(project_id)
        return await self.services.render_service.render_character_portrait(project_id, name)

    # =========================================================================
    # SHOTS
    # =========================================================================

    async def edit_shot(
        self,
        project_id: str,
        shot_number: int,
        updates: Dict[str, Any]
    ) -> Project:
        await self._owned(project_id)
        return await self.store.update_shot(project_id, shot_number, updates)

    async def prompt_edit_shot(self, project_id: str, shot_number: int, prompt: str) -> Project:
        """Apply a free-text edit parsed by the text model."""
        project = await self._owned(project_id)
        shot = project.get_shot(shot_number)
        if shot is None:
            raise ShotNotFoundError(shot_number, len(project.shots))

        updates = (await self.services.planner.parse_shot_prompt(prompt, shot)).unwrap()
        merged = merge_parsed_prompt(shot, updates)
        changed = {
            name: value for name, value in merged.to_dict().items()
            if getattr(shot, name) != value
        }
        if not changed:
            logger.info(f"Prompt edit changed nothing on shot {shot_number}")
            return project
        return await self.store.update_shot(project_id, shot_number, changed)

    async def insert_shot(
        self,
        project_id: str,
        after: int,
        shot: Optional[Shot] = None
    ) -> Project:
        await self._owned(project_id)
        project, _ = await self.store.insert_shot(project_id, after, shot)
        return project

    async def remove_shot(self, project_id: str, shot_number: int) -> Project:
        await self._owned(project_id)
        return await self.store.remove_shot(project_id, shot_number)

    async def move_shot(self, project_id: str, shot_number: int, to_position: int) -> Project:
        await self._owned(project_id)
        return await self.store.move_shot(project_id, shot_number, to_position)

    # =========================================================================
    # FRAMES
    # =========================================================================

    async def regenerate_frame(self, project_id: str, shot_number: int) -> Frame:
        """Render one shot now. Works for pending, rendered and errored shots."""
        await self._owned(project_id)
        return await self.services.render_service.render_shot(project_id, shot_number)

    async def generate_all_frames(
        self,
        project_id: str,
        on_progress: Optional[Callable[[BatchProgress], None]] = None
    ) -> BatchRenderReport:
        await self._owned(project_id)
        return await self.services.batch.run(project_id, on_progress)

    # =========================================================================
    # EXPORT
    # =========================================================================

    async def export_shot_list(self, project_id: str, fmt: str = "csv") -> str:
        project = await self._owned(project_id)
        if fmt == "csv":
            return export_shot_list_csv(project)
        if fmt == "json":
            return export_shot_list_json(project)
        raise InputError(f"Unknown export format: {fmt}", {"format": fmt})

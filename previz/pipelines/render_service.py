"""
Frame render service.

Renders a single shot of a stored project through the shared RenderGate
and merges the result into the project state store. Both individual
regenerations and the generate-all batch go through here, and character
portraits wait at the same gate.
"""

from dataclasses import replace
from typing import Optional

from previz.core.constants import FrameStatus
from previz.core.exceptions import (
    FrameRenderError,
    InputError,
    ShotNotFoundError,
    UpstreamServiceError,
)
from previz.core.logging_config import get_logger
from previz.pipelines.frame_renderer import FrameRenderer, RenderRequest
from previz.pipelines.render_gate import RenderGate
from previz.storage.project_store import ProjectStateStore
from previz.storyboard.characters import find_character
from previz.storyboard.models import Frame, Project
from previz.storyboard.styles import resolve_style_prompt

logger = get_logger("pipelines.render_service")


class FrameRenderService:
    """Render-and-store for one shot at a time."""

    def __init__(
        self,
        store: ProjectStateStore,
        renderer: FrameRenderer,
        gate: Optional[RenderGate] = None
    ):
        self.store = store
        self.renderer = renderer
        self.gate = gate or RenderGate(renderer.config.delay_seconds)

    async def render_shot(self, project_id: str, shot_number: int) -> Frame:
        """
        Render ``shot_number`` and store the outcome.

        A degraded render is stored as an errored frame with its fallback
        image and returned normally. Any other failure is stored as an
        errored frame and then raised as FrameRenderError, so a shot never
        stays in the generating state.
        """
        project = await self.store.get(project_id)
        shot = project.get_shot(shot_number)
        if shot is None:
            raise ShotNotFoundError(shot_number, len(project.shots))

        request = self.renderer.build_request(project, shot)
        await self.store.merge_frame(project_id, Frame(
            shot_number=shot_number,
            status=FrameStatus.GENERATING,
            style_override=request.style_override,
        ))

        async with self.gate.slot():
            try:
                outcome = await self.renderer.render(shot, request)
            except UpstreamServiceError as e:
                error = e
                if not isinstance(e, FrameRenderError):
                    error = FrameRenderError(shot_number, e.reason, e.status_code)
                await self._store_failure(project_id, shot_number, request, error)
                raise error
            except Exception as e:
                logger.exception(f"Shot {shot_number} failed unexpectedly")
                error = FrameRenderError(shot_number, str(e) or type(e).__name__)
                await self._store_failure(project_id, shot_number, request, error)
                raise error from e

        updated = await self.store.merge_frame(project_id, outcome.to_frame(request.style_override))
        frame = updated.get_frame(shot_number)
        logger.info(f"Project {project_id}: shot {shot_number} {frame.status.value}")
        return frame

    async def _store_failure(
        self,
        project_id: str,
        shot_number: int,
        request: RenderRequest,
        error: FrameRenderError
    ) -> None:
        await self.store.merge_frame(project_id, Frame(
            shot_number=shot_number,
            status=FrameStatus.ERRORED,
            error=error.reason,
            style_override=request.style_override,
        ))

    async def render_character_portrait(self, project_id: str, name: str) -> Project:
        """
        Render a reference portrait for the named character and store it as
        the character's reference image.

        The request takes its turn at the same gate as frame renders.
        """
        project = await self.store.get(project_id)
        character = find_character(name, project.character_definitions)
        if character is None:
            raise InputError(f"No character named '{name}'", {"name": name})

        async with self.gate.slot():
            portrait = await self.renderer.render_portrait(
                character,
                style_prompt=resolve_style_prompt(project.visual_style, project.custom_style),
                genre=project.genre,
                style_reference=project.style_reference_prompt,
            )

        logger.info(f"Project {project_id}: portrait stored for {character.name}")
        return await self.store.merge_characters(
            project_id, [replace(character, reference_image=portrait)]
        )

"""
Frame Renderer

Renders one image for one shot. A refusal from the image service (for
example a content-policy rejection) degrades to a placeholder image with
the service's message attached. Anything that leaves nothing to fall
back from (no response, a 2xx reply without an image, a rate limit or
exhausted credits) is a hard failure.
"""

import base64
import html
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from previz.core.config import RenderConfig
from previz.core.constants import AspectRatio, FrameStatus
from previz.core.exceptions import (
    CreditsExhaustedError,
    FrameRenderError,
    RateLimitError,
    UpstreamServiceError,
)
from previz.core.logging_config import get_logger
from previz.llm.api_clients import ImageGenerationClient
from previz.storyboard.characters import ResolvedCharacter, resolve_characters
from previz.storyboard.models import CharacterDefinition, Frame, Project, Shot, utc_now
from previz.storyboard.prompts import build_frame_prompt, build_portrait_prompt
from previz.storyboard.styles import image_size_for, resolve_style_prompt, visual_style_for

logger = get_logger("pipelines.frame_renderer")

HARD_FAILURES = (RateLimitError, CreditsExhaustedError)
PORTRAIT_IMAGE_SIZE = "1024x1536"


@dataclass
class RenderRequest:
    """Everything about the project that shapes one frame."""
    style_prompt: str
    aspect_ratio: AspectRatio = AspectRatio.WIDE
    characters: List[ResolvedCharacter] = field(default_factory=list)
    genre: str = ""
    tone: str = ""
    style_reference: Optional[str] = None
    style_override: Optional[str] = None

    @property
    def reference_images(self) -> List[str]:
        return [
            c.definition.reference_image for c in self.characters
            if c.definition is not None and c.definition.reference_image
        ]


@dataclass
class RenderOutcome:
    """Image and timestamp, or a fallback image with an error message."""
    shot_number: int
    image_data: str
    generated_at: datetime
    prompt: str = ""
    error: Optional[str] = None
    is_fallback: bool = False
    generation_time_ms: int = 0

    def to_frame(self, style_override: Optional[str] = None) -> Frame:
        return Frame(
            shot_number=self.shot_number,
            image_data=self.image_data,
            generated_at=self.generated_at,
            error=self.error,
            status=FrameStatus.ERRORED if self.is_fallback else FrameStatus.RENDERED,
            is_fallback=self.is_fallback,
            style_override=style_override,
            image_prompt=self.prompt,
        )


def fallback_image(shot: Shot, reason: str) -> str:
    """A plain SVG placeholder naming the shot and why it was not drawn."""
    description = shot.visual_description or shot.description
    if len(description) > 80:
        description = description[:80] + "..."
    svg = (
        '<svg width="400" height="300" xmlns="http://www.w3.org/2000/svg">'
        '<rect width="400" height="300" fill="#f3f4f6"/>'
        '<text x="200" y="120" text-anchor="middle" font-family="Arial" font-size="14" fill="#6b7280">'
        f'Storyboard Frame {shot.shot_number}</text>'
        '<text x="200" y="140" text-anchor="middle" font-family="Arial" font-size="12" fill="#6b7280">'
        f'{html.escape(shot.camera_angle)}</text>'
        '<text x="200" y="170" text-anchor="middle" font-family="Arial" font-size="10" fill="#9ca3af">'
        f'{html.escape(description)}</text>'
        '<text x="200" y="190" text-anchor="middle" font-family="Arial" font-size="10" fill="#9ca3af">'
        f'{html.escape(reason[:80])}</text>'
        '</svg>'
    )
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")


class FrameRenderer:
    """Produces one rendered image per call."""

    def __init__(
        self,
        images: ImageGenerationClient,
        config: Optional[RenderConfig] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.images = images
        self.config = config or RenderConfig()
        self._clock = clock

    def build_request(self, project: Project, shot: Shot) -> RenderRequest:
        """Resolve style and characters for ``shot`` from its project."""
        frame = project.get_frame(shot.shot_number)
        override = frame.style_override if frame else None
        return RenderRequest(
            style_prompt=resolve_style_prompt(project.visual_style, project.custom_style, override),
            aspect_ratio=project.aspect_ratio,
            characters=resolve_characters(shot.characters, project.character_definitions),
            genre=project.genre,
            tone=project.tone,
            style_reference=project.style_reference_prompt,
            style_override=override,
        )

    async def render(self, shot: Shot, request: RenderRequest) -> RenderOutcome:
        """
        Render one frame.

        Raises:
            FrameRenderError: the request could not complete at all
        """
        prompt = build_frame_prompt(
            shot,
            style_prompt=request.style_prompt,
            aspect_ratio=request.aspect_ratio,
            characters=request.characters,
            visual_mood=visual_style_for(request.genre, request.tone),
            genre=request.genre,
            style_reference=request.style_reference,
        )
        references = request.reference_images[:self.config.max_reference_images]
        logger.info(
            f"Rendering shot {shot.shot_number} "
            f"({request.aspect_ratio.value}, {len(references)} reference image(s))"
        )
        start = time.monotonic()

        try:
            image = await self.images.generate(
                prompt=prompt,
                model=self.config.model,
                size=image_size_for(request.aspect_ratio),
                quality=self.config.quality,
                reference_images=references or None,
            )
        except HARD_FAILURES as e:
            logger.error(f"Shot {shot.shot_number} failed: {e.reason}")
            raise FrameRenderError(shot.shot_number, e.reason, e.status_code)
        except UpstreamServiceError as e:
            # transport failures and unusable 2xx replies have nothing to fall back from
            if e.status_code is None or e.status_code < 400:
                logger.error(f"Shot {shot.shot_number} failed: {e.reason}")
                raise FrameRenderError(shot.shot_number, e.reason, e.status_code)
            logger.warning(f"Shot {shot.shot_number} degraded to fallback: {e.reason}")
            return RenderOutcome(
                shot_number=shot.shot_number,
                image_data=fallback_image(shot, e.reason),
                generated_at=self._clock(),
                prompt=prompt,
                error=e.reason,
                is_fallback=True,
                generation_time_ms=int((time.monotonic() - start) * 1000),
            )

        return RenderOutcome(
            shot_number=shot.shot_number,
            image_data=image.image_data,
            generated_at=self._clock(),
            prompt=prompt,
            generation_time_ms=image.generation_time_ms,
        )

    async def render_portrait(
        self,
        character: CharacterDefinition,
        style_prompt: str = "",
        genre: str = "",
        style_reference: Optional[str] = None
    ) -> str:
        """
        Render a reference portrait for ``character``.

        An existing reference image is sent along to keep the likeness.
        Failures are raised as they come from the image client; there is
        no fallback portrait.

        Returns:
            The portrait as a data URL
        """
        prompt = build_portrait_prompt(character, style_prompt, genre, style_reference)
        references = [character.reference_image] if character.reference_image else None
        logger.info(f"Rendering portrait for {character.name}")
        image = await self.images.generate(
            prompt=prompt,
            model=self.config.model,
            size=PORTRAIT_IMAGE_SIZE,
            quality=self.config.quality,
            reference_images=references,
        )
        return image.image_data

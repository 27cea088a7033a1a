"""
Shot Planner

Converts script text into a structured shot list. The detailed breakdown
asks the text model for an exact number of shots and rejects any other
count; the quick storyboard calls the fused plan-and-render service once.
Neither path writes project state and neither retries.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from previz.core.config import PlannerConfig
from previz.core.constants import FrameStatus
from previz.core.exceptions import (
    EmptyScriptError,
    MissingConfigError,
    MissingParameterError,
    PlanValidationError,
    UpstreamServiceError,
)
from previz.core.image_utils import b64_to_data_url
from previz.core.logging_config import get_logger
from previz.core.result import Result
from previz.llm.api_clients import ChatCompletionsClient, strip_code_fences
from previz.llm.edge_functions import EdgeFunctionClient
from previz.pipelines.schemas import (
    QuickStoryboardPayload,
    ShotPayload,
    ShotPlanPayload,
    ShotPromptPayload,
)
from previz.storyboard.models import Frame, Shot, utc_now
from previz.storyboard.prompts import (
    PLANNER_SYSTEM_PROMPT,
    SHOT_PROMPT_SYSTEM_PROMPT,
    SHOT_PROMPT_TOOL,
    build_planner_prompt,
    build_shot_prompt_request,
    build_style_analysis_messages,
)

logger = get_logger("pipelines.shot_planner")

QUICK_STORYBOARD_FUNCTION = "generate-storyboard-simple"
DEFAULT_SHOT_DURATION = "3s"
STYLE_ANALYSIS_MAX_TOKENS = 500


def word_count(text: str) -> int:
    return len(text.split())


def target_shot_count(
    script_text: str,
    words_per_shot: int = 150,
    min_shots: int = 6,
    max_shots: int = 24
) -> int:
    """
    One shot per ``words_per_shot`` words, clamped to [min_shots, max_shots].

    Halves round up, so 1125 words at 150 per shot plans 8 shots and 1275
    words plans 9.
    """
    proposed = math.floor(word_count(script_text) / words_per_shot + 0.5)
    return max(min_shots, min(max_shots, proposed))


@dataclass
class QuickStoryboard:
    """Shots and already-rendered frames from the fused call."""
    shots: List[Shot] = field(default_factory=list)
    frames: List[Frame] = field(default_factory=list)


def shot_from_payload(payload: ShotPayload, shot_number: int) -> Shot:
    return Shot(
        shot_number=shot_number,
        description=payload.action or payload.visual_description,
        camera_angle=payload.camera_angle,
        characters=payload.characters,
        visual_elements=", ".join(v for v in (payload.lighting, payload.emotional_tone) if v),
        duration=payload.duration or DEFAULT_SHOT_DURATION,
        shot_type=payload.shot_type,
        visual_description=payload.visual_description,
        action=payload.action,
        location=payload.location,
        lighting=payload.lighting,
        emotional_tone=payload.emotional_tone,
        key_props=payload.key_props,
        dialogue="" if payload.dialogue.strip().lower() == "none" else payload.dialogue,
    )


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class ShotPlanner:
    """Turns script text into shots via the text model."""

    def __init__(
        self,
        chat: ChatCompletionsClient,
        config: Optional[PlannerConfig] = None,
        functions: Optional[EdgeFunctionClient] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.chat = chat
        self.config = config or PlannerConfig()
        self.functions = functions
        self._clock = clock

    def target_shot_count(self, script_text: str) -> int:
        return target_shot_count(
            script_text,
            self.config.words_per_shot,
            self.config.min_shots,
            self.config.max_shots,
        )

    # =========================================================================
    # DETAILED BREAKDOWN
    # =========================================================================

    async def detailed_breakdown(self, script_text: str, genre: str, tone: str) -> Result[List[Shot]]:
        """
        Plan exactly ``target_shot_count(script_text)`` detailed shots.

        Raises InputError for empty script or missing genre/tone before any
        request. Every other failure comes back as a failed Result.
        """
        if not script_text or not script_text.strip():
            raise EmptyScriptError()
        if not genre:
            raise MissingParameterError("genre")
        if not tone:
            raise MissingParameterError("tone")

        shot_count = self.target_shot_count(script_text)
        logger.info(f"Planning {shot_count} shots ({word_count(script_text)} words, {genre}/{tone})")

        try:
            response = await self.chat.complete(
                messages=[
                    {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
                    {"role": "user", "content": build_planner_prompt(script_text, genre, tone, shot_count)},
                ],
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except UpstreamServiceError as e:
            logger.error(f"Shot planning request failed: {e.reason}")
            return Result.from_exception(e, expected_shots=shot_count)

        return self.parse_plan(response.content, shot_count)

    def parse_plan(self, content: str, expected: int) -> Result[List[Shot]]:
        """Validate a raw model reply as a plan of exactly ``expected`` shots."""
        try:
            plan = ShotPlanPayload.model_validate_json(strip_code_fences(content or ""))
        except ValidationError as e:
            reason = f"Model returned an invalid shot plan ({_first_error(e)})"
            logger.warning(reason)
            return Result.from_exception(PlanValidationError(reason, expected=expected), expected_shots=expected)

        received = len(plan.shots)
        if received != expected:
            reason = f"Invalid plan size: expected {expected} shots, received {received}"
            logger.warning(reason)
            return Result.from_exception(
                PlanValidationError(reason, expected=expected, received=received),
                expected_shots=expected,
            )

        shots = [shot_from_payload(payload, i) for i, payload in enumerate(plan.shots, start=1)]
        return Result.ok(shots, expected_shots=expected)

    # =========================================================================
    # QUICK STORYBOARD
    # =========================================================================

    async def quick_storyboard(self, script_text: str, style: str) -> Result[QuickStoryboard]:
        """Plan and render in one call to the fused storyboard service."""
        if not script_text or not script_text.strip():
            raise EmptyScriptError()
        if not style or not style.strip():
            raise MissingParameterError("style")
        if self.functions is None:
            raise MissingConfigError("No storyboard service configured for quick storyboards")

        logger.info("Requesting quick storyboard")
        try:
            data = await self.functions.invoke(
                QUICK_STORYBOARD_FUNCTION,
                {"scene_text": script_text, "style": style},
            )
        except UpstreamServiceError as e:
            logger.error(f"Quick storyboard failed: {e.reason}")
            return Result.from_exception(e)

        try:
            payload = QuickStoryboardPayload.model_validate(data)
        except ValidationError as e:
            reason = f"Storyboard service returned an invalid reply ({_first_error(e)})"
            return Result.from_exception(PlanValidationError(reason))

        generated_at = self._clock()
        storyboard = QuickStoryboard()
        panels = sorted(payload.panels, key=lambda p: p.shot_id)
        for number, panel in enumerate(panels, start=1):
            storyboard.shots.append(Shot(
                shot_number=number,
                description=panel.description,
                visual_description=panel.description,
                duration=DEFAULT_SHOT_DURATION,
            ))
            if panel.image_b64:
                storyboard.frames.append(Frame(
                    shot_number=number,
                    image_data=b64_to_data_url(panel.image_b64),
                    generated_at=generated_at,
                    status=FrameStatus.RENDERED,
                    image_prompt=panel.prompt_used or None,
                ))
            else:
                storyboard.frames.append(Frame(
                    shot_number=number,
                    status=FrameStatus.ERRORED,
                    error="No image returned for this panel",
                    image_prompt=panel.prompt_used or None,
                ))

        return Result.ok(storyboard)

    # =========================================================================
    # AI SHOT EDIT
    # =========================================================================

    async def parse_shot_prompt(self, prompt: str, shot: Shot) -> Result[Dict[str, object]]:
        """Turn a free-text note about one shot into a partial field update."""
        if not prompt or not prompt.strip():
            raise MissingParameterError("prompt")

        try:
            response = await self.chat.complete(
                messages=[
                    {"role": "system", "content": SHOT_PROMPT_SYSTEM_PROMPT},
                    {"role": "user", "content": build_shot_prompt_request(prompt, shot)},
                ],
                model=self.config.model,
                tools=[SHOT_PROMPT_TOOL],
                tool_choice={"type": "function", "function": {"name": "update_shot"}},
            )
        except UpstreamServiceError as e:
            return Result.from_exception(e)

        if response.tool_arguments is None:
            return Result.from_exception(PlanValidationError("Model did not return shot updates"))

        try:
            updates = ShotPromptPayload.model_validate(response.tool_arguments).updates()
        except ValidationError as e:
            return Result.from_exception(PlanValidationError(f"Invalid shot updates ({_first_error(e)})"))

        return Result.ok(updates)

    # =========================================================================
    # STYLE REFERENCE
    # =========================================================================

    async def analyze_style_reference(self, image_data: str) -> Result[str]:
        """
        Describe the visual style of a reference image as prompt text.

        Args:
            image_data: Image as a data URL

        Returns:
            Result holding a one-paragraph style description
        """
        if not image_data:
            raise MissingParameterError("image")

        logger.info("Analyzing style reference image")
        try:
            response = await self.chat.complete(
                messages=build_style_analysis_messages(image_data),
                model=self.config.model,
                max_tokens=STYLE_ANALYSIS_MAX_TOKENS,
            )
        except UpstreamServiceError as e:
            logger.error(f"Style analysis failed: {e.reason}")
            return Result.from_exception(e)

        description = strip_code_fences(response.content or "")
        if not description:
            return Result.from_exception(PlanValidationError("Model returned no style description"))
        return Result.ok(description)

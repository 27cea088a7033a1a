"""
Tests for the frame renderer, render gate and render service.
"""

import asyncio
from unittest.mock import call

import pytest

from conftest import PNG_DATA_URL, make_shots
from previz.core.config import RenderConfig
from previz.core.constants import AspectRatio, FrameStatus
from previz.core.exceptions import (
    CreditsExhaustedError,
    FrameRenderError,
    ImageGenerationError,
    RateLimitError,
    ShotNotFoundError,
)
from previz.pipelines.frame_renderer import FrameRenderer, RenderRequest, fallback_image
from previz.pipelines.render_gate import RenderGate
from previz.storyboard.characters import resolve_characters


class TestFrameRenderer:
    """Tests for FrameRenderer."""

    @pytest.mark.asyncio
    async def test_success(self, renderer, images):
        shot = make_shots(1)[0]

        outcome = await renderer.render(shot, RenderRequest(style_prompt="cinematic photograph"))

        assert outcome.image_data == PNG_DATA_URL
        assert outcome.error is None
        assert not outcome.is_fallback
        assert outcome.to_frame().status == FrameStatus.RENDERED
        kwargs = images.generate.await_args.kwargs
        assert kwargs["size"] == "1536x1024"
        assert kwargs["reference_images"] is None
        assert "STYLE: cinematic photograph" in kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_character_references_passed(self, renderer, images, characters):
        shot = make_shots(2)[1]
        request = RenderRequest(
            style_prompt="",
            aspect_ratio=AspectRatio.TALL,
            characters=resolve_characters(shot.characters, characters),
        )

        await renderer.render(shot, request)

        kwargs = images.generate.await_args.kwargs
        assert kwargs["reference_images"] == [PNG_DATA_URL]
        assert kwargs["size"] == "1024x1536"

    @pytest.mark.asyncio
    async def test_reference_images_capped(self, images, characters):
        renderer = FrameRenderer(images, config=RenderConfig(max_reference_images=0))
        shot = make_shots(1)[0]
        await renderer.render(shot, RenderRequest("", characters=resolve_characters(["Maya"], characters)))
        assert images.generate.await_args.kwargs["reference_images"] is None

    @pytest.mark.asyncio
    async def test_refusal_degrades_to_fallback(self, renderer, images):
        images.generate.side_effect = ImageGenerationError("image-generation", "Content policy violation", 400)
        shot = make_shots(1)[0]

        outcome = await renderer.render(shot, RenderRequest("x"))

        assert outcome.is_fallback
        assert outcome.error == "Content policy violation"
        assert outcome.image_data.startswith("data:image/svg+xml;base64,")
        frame = outcome.to_frame()
        assert frame.status == FrameStatus.ERRORED
        assert frame.is_fallback

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        RateLimitError("image-generation"),
        CreditsExhaustedError("image-generation"),
        ImageGenerationError("image-generation", "Request failed: timed out"),
        ImageGenerationError("image-generation", "Image response contained no image", 200),
    ])
    async def test_hard_failures_raise(self, renderer, images, error):
        images.generate.side_effect = error
        with pytest.raises(FrameRenderError) as exc_info:
            await renderer.render(make_shots(1)[0], RenderRequest("x"))
        assert exc_info.value.reason == error.reason
        assert exc_info.value.status_code == error.status_code

    @pytest.mark.asyncio
    async def test_build_request_prefers_frame_override(self, renderer, store, project):
        await store.update_style(project.id, visual_style="watercolor")
        updated = await store.set_frame_style(project.id, 2, "noir")

        request = renderer.build_request(updated, updated.get_shot(2))
        other = renderer.build_request(updated, updated.get_shot(1))

        assert request.style_prompt.startswith("film noir aesthetic")
        assert request.style_override == "noir"
        assert other.style_prompt.startswith("watercolor painting")
        assert [c.name for c in request.characters] == ["Maya", "Leo"]

    def test_fallback_image_escapes_text(self):
        shot = make_shots(1)[0]
        shot.description = "<script>"
        assert fallback_image(shot, "bad & worse").startswith("data:image/svg+xml;base64,")


class TestRenderGate:
    """Tests for RenderGate."""

    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self, gate, sleep):
        async with gate.slot():
            pass
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_spacing_between_requests(self, gate, sleep):
        for _ in range(3):
            async with gate.slot():
                pass
        assert sleep.await_args_list == [call(1.0), call(1.0)]

    @pytest.mark.asyncio
    async def test_elapsed_time_counts_toward_delay(self, sleep):
        now = [0.0]
        gate = RenderGate(1.0, sleep=sleep, clock=lambda: now[0])
        async with gate.slot():
            pass
        now[0] = 0.75
        async with gate.slot():
            pass
        assert sleep.await_args == call(0.25)

    @pytest.mark.asyncio
    async def test_one_request_at_a_time(self):
        gate = RenderGate(0.0)
        active = []
        peak = []

        async def worker():
            async with gate.slot():
                active.append(1)
                peak.append(len(active))
                await asyncio.sleep(0)
                active.pop()

        await asyncio.gather(*(worker() for _ in range(4)))
        assert max(peak) == 1

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            RenderGate(-1)


class TestFrameRenderService:
    """Tests for FrameRenderService."""

    @pytest.mark.asyncio
    async def test_render_and_store(self, render_service, store, project):
        frame = await render_service.render_shot(project.id, 1)

        assert frame.status == FrameStatus.RENDERED
        assert frame.image_data == PNG_DATA_URL
        stored = await store.get(project.id)
        assert stored.get_frame(1).is_rendered
        assert stored.get_frame(2).status == FrameStatus.PENDING

    @pytest.mark.asyncio
    async def test_regenerating_replaces_frame(self, render_service, store, project, images):
        first = await render_service.render_shot(project.id, 1)
        images.generate.return_value.image_data = "data:image/png;base64,U0VDT05E"
        second = await render_service.render_shot(project.id, 1)

        stored = await store.get(project.id)
        assert len([f for f in stored.frames if f.shot_number == 1]) == 1
        assert second.image_data == "data:image/png;base64,U0VDT05E"
        assert second.generated_at > first.generated_at

    @pytest.mark.asyncio
    async def test_hard_failure_stored_then_raised(self, render_service, store, project, images):
        images.generate.side_effect = CreditsExhaustedError("image-generation")

        with pytest.raises(FrameRenderError):
            await render_service.render_shot(project.id, 2)

        frame = (await store.get(project.id)).get_frame(2)
        assert frame.status == FrameStatus.ERRORED
        assert frame.error == "Credits depleted. Please add credits to continue."

    @pytest.mark.asyncio
    async def test_degraded_render_returned(self, render_service, project, images):
        images.generate.side_effect = ImageGenerationError("image-generation", "Content policy violation", 400)

        frame = await render_service.render_shot(project.id, 3)

        assert frame.status == FrameStatus.ERRORED
        assert frame.is_fallback
        assert frame.image_data.startswith("data:image/svg+xml")

    @pytest.mark.asyncio
    async def test_missing_shot(self, render_service, project, images):
        with pytest.raises(ShotNotFoundError):
            await render_service.render_shot(project.id, 9)
        images.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_regenerations_share_the_gate(self, render_service, project, sleep):
        await render_service.render_shot(project.id, 1)
        await render_service.render_shot(project.id, 2)
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_unexpected_error_leaves_no_shot_generating(self, render_service, store, project, images):
        images.generate.side_effect = AttributeError("'NoneType' object has no attribute 'get'")

        with pytest.raises(FrameRenderError) as exc_info:
            await render_service.render_shot(project.id, 2)

        assert isinstance(exc_info.value.__cause__, AttributeError)
        frame = (await store.get(project.id)).get_frame(2)
        assert frame.status == FrameStatus.ERRORED
        assert "NoneType" in frame.error

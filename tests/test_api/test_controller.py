"""
Tests for StoryboardController.
"""

import io

import pytest
from PIL import Image

from conftest import PNG_DATA_URL
from previz.controller import StoryboardController
from previz.core.constants import AspectRatio
from previz.core.exceptions import CreditsExhaustedError, InputError, ProjectNotFoundError, RateLimitError
from previz.core.image_utils import image_size, parse_data_url
from previz.llm.api_clients import ChatResponse, ImageResponse
from previz.pipelines.storyboard_pipeline import StoryboardRequest


def png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def controller(user, services):
    return StoryboardController(user, services)


@pytest.fixture
def intruder(other_user, services):
    return StoryboardController(other_user, services)


class TestOwnership:
    """Projects of other users are invisible."""

    @pytest.mark.asyncio
    async def test_other_user_cannot_read_or_edit(self, intruder, project):
        with pytest.raises(ProjectNotFoundError):
            await intruder.get_project(project.id)
        with pytest.raises(ProjectNotFoundError):
            await intruder.edit_shot(project.id, 1, {"description": "x"})
        with pytest.raises(ProjectNotFoundError):
            await intruder.generate_all_frames(project.id)

    @pytest.mark.asyncio
    async def test_list_projects(self, controller, intruder, project):
        assert [p.id for p in await controller.list_projects()] == [project.id]
        assert await intruder.list_projects() == []


class TestControllerActions:
    """Tests for controller actions not covered through the API."""

    @pytest.mark.asyncio
    async def test_blank_script_rejected(self, controller, project):
        with pytest.raises(InputError):
            await controller.update_script(project.id, script_text="   ")

    @pytest.mark.asyncio
    async def test_prompt_edit_writes_changed_fields(self, controller, project, chat):
        chat.complete.return_value = ChatResponse(tool_arguments={"lighting": "harsh neon", "cameraAngle": ""})

        updated = await controller.prompt_edit_shot(project.id, 1, "make it neon")

        assert updated.get_shot(1).lighting == "harsh neon"
        assert updated.get_shot(1).camera_angle == "Medium Shot"
        assert updated.frames == project.frames

    @pytest.mark.asyncio
    async def test_prompt_edit_without_changes(self, controller, project, chat):
        chat.complete.return_value = ChatResponse(tool_arguments={"cameraAngle": "Medium Shot"})
        updated = await controller.prompt_edit_shot(project.id, 1, "keep it")
        assert updated.shots == project.shots

    @pytest.mark.asyncio
    async def test_character_reference_normalized(self, controller, project):
        updated = await controller.set_character_reference(project.id, "leo", png_bytes(2048, 1024))

        leo = updated.character_definitions[1]
        mime, _ = parse_data_url(leo.reference_image)
        assert mime == "image/png"
        assert image_size(leo.reference_image) == (1024, 512)

    @pytest.mark.asyncio
    async def test_character_reference_unknown_name(self, controller, project):
        with pytest.raises(InputError):
            await controller.set_character_reference(project.id, "Nobody", png_bytes(10, 10))

    @pytest.mark.asyncio
    async def test_character_reference_not_an_image(self, controller, project):
        with pytest.raises(InputError):
            await controller.set_character_reference(project.id, "Leo", b"not an image")

    @pytest.mark.asyncio
    async def test_quick_storyboard_with_free_text_style(self, controller, functions):
        functions.invoke.return_value = {"panels": [{"shot_id": 1, "description": "x", "image_b64": "AAAA"}]}

        project = await controller.create_quick_storyboard("FADE IN:", "ink wash, muted teal")

        assert project.visual_style == "custom"
        assert project.custom_style == "ink wash, muted teal"
        assert functions.invoke.await_args.args[1]["style"] == "ink wash, muted teal"

    @pytest.mark.asyncio
    async def test_style_reference_analyzed_and_stored(self, controller, project, chat):
        chat.complete.return_value = ChatResponse(content="Washed-out pastels, soft diffused light, gouache texture.")

        updated = await controller.analyze_style_reference(project.id, png_bytes(2048, 1024))

        assert updated.style_reference_prompt == "Washed-out pastels, soft diffused light, gouache texture."
        sent = chat.complete.await_args.kwargs["messages"][1]["content"][1]["image_url"]["url"]
        assert image_size(sent) == (1024, 512)
        assert updated.shots == project.shots

    @pytest.mark.asyncio
    async def test_style_reference_failure_keeps_previous(self, controller, project, chat):
        await controller.update_style(project.id, style_reference_prompt="charcoal sketch")
        chat.complete.side_effect = RateLimitError("text-generation")

        with pytest.raises(RateLimitError):
            await controller.analyze_style_reference(project.id, png_bytes(10, 10))

        assert (await controller.get_project(project.id)).style_reference_prompt == "charcoal sketch"

    @pytest.mark.asyncio
    async def test_portrait_becomes_reference_image(self, controller, project, images, sleep):
        images.generate.return_value = ImageResponse(image_data="data:image/png;base64,TEVP", model="test-image")

        updated = await controller.generate_character_portrait(project.id, "leo")

        leo = updated.character_definitions[1]
        assert leo.reference_image == "data:image/png;base64,TEVP"
        assert leo.description == "Teenage boy, oversized hoodie"
        kwargs = images.generate.await_args.kwargs
        assert kwargs["size"] == "1024x1536"
        assert kwargs["reference_images"] is None
        assert "Leo" in kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_portrait_keeps_likeness_and_shares_the_gate(self, controller, project, images, sleep):
        await controller.regenerate_frame(project.id, 1)

        await controller.generate_character_portrait(project.id, "Maya")

        assert images.generate.await_args.kwargs["reference_images"] == [PNG_DATA_URL]
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_portrait_unknown_name(self, controller, project, images):
        with pytest.raises(InputError):
            await controller.generate_character_portrait(project.id, "Nobody")
        images.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_portrait_failure_leaves_characters(self, controller, project, images):
        images.generate.side_effect = CreditsExhaustedError("image-generation")

        with pytest.raises(CreditsExhaustedError):
            await controller.generate_character_portrait(project.id, "Leo")

        stored = await controller.get_project(project.id)
        assert stored.character_definitions == project.character_definitions

    @pytest.mark.asyncio
    async def test_configured_default_aspect_ratio(self, controller, services, functions):
        services.config.render.default_aspect_ratio = AspectRatio.TALL
        functions.invoke.return_value = {"panels": [{"shot_id": 1, "description": "x", "image_b64": "AAAA"}]}

        quick = await controller.create_quick_storyboard("FADE IN:", "cinematic")
        detailed = await controller.create_storyboard(
            StoryboardRequest(genre="Drama", tone="Serious", script_text="FADE IN: INT. HALL")
        )

        assert quick.aspect_ratio == AspectRatio.TALL
        assert detailed.aspect_ratio == AspectRatio.TALL

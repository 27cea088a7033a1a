"""
Tests for the project state store.

Tests for previz/storage/project_store.py
"""

from datetime import datetime, timezone

import pytest

from conftest import PNG_DATA_URL, make_shots
from previz.core.constants import AspectRatio, FrameStatus
from previz.core.exceptions import (
    InvalidShotUpdateError,
    ProjectNotFoundError,
    ShotNotFoundError,
    StateConsistencyError,
)
from previz.storage.project_store import align_frames
from previz.storyboard.models import CharacterDefinition, Frame, Shot


def rendered(shot_number: int, image: str = PNG_DATA_URL, at: datetime = None) -> Frame:
    return Frame(
        shot_number=shot_number,
        image_data=image,
        generated_at=at or datetime(2024, 1, 1, tzinfo=timezone.utc),
        status=FrameStatus.RENDERED,
    )


class TestAlignFrames:
    """Tests for align_frames."""

    def test_one_frame_per_shot(self):
        frames = align_frames(make_shots(3), [rendered(2), rendered(9)])
        assert [f.shot_number for f in frames] == [1, 2, 3]
        assert frames[0].status == FrameStatus.PENDING
        assert frames[1].status == FrameStatus.RENDERED


class TestCreateAndRead:
    """Tests for create, get, list and delete."""

    @pytest.mark.asyncio
    async def test_create_initializes_pending_frames(self, project):
        assert [s.shot_number for s in project.shots] == [1, 2, 3, 4]
        assert [f.status for f in project.frames] == [FrameStatus.PENDING] * 4
        assert project.character_count == 2
        assert project.is_complete is False
        assert project.owner_id == "user-1"

    @pytest.mark.asyncio
    async def test_create_renumbers_shots(self, store, user):
        shots = [Shot(shot_number=5, description="a"), Shot(shot_number=9, description="b")]
        created = await store.create(user, "text", shots)
        assert [s.shot_number for s in created.shots] == [1, 2]

    @pytest.mark.asyncio
    async def test_get_round_trip(self, store, project):
        loaded = await store.get(project.id)
        assert loaded.shots == project.shots
        assert loaded.character_definitions == project.character_definitions

    @pytest.mark.asyncio
    async def test_list_for_owner(self, store, project, other_user):
        await store.create(other_user, "theirs", make_shots(1))
        owned = await store.list_for_owner("user-1")
        assert [p.id for p in owned] == [project.id]

    @pytest.mark.asyncio
    async def test_missing_project(self, store):
        with pytest.raises(ProjectNotFoundError):
            await store.get("nope")
        with pytest.raises(ProjectNotFoundError):
            await store.delete("nope")

    @pytest.mark.asyncio
    async def test_delete(self, store, project, records):
        await store.delete(project.id)
        assert len(records) == 0


class TestProjectUpdates:
    """Tests for script, style and character updates."""

    @pytest.mark.asyncio
    async def test_update_script_recounts_characters(self, store, project):
        updated = await store.update_script(project.id, script_text="ANA\nHi.\nBO\nYo.\nCY\nHey.")
        assert updated.character_count == 3
        assert updated.genre == "Drama"

    @pytest.mark.asyncio
    async def test_update_style(self, store, project):
        updated = await store.update_style(project.id, visual_style="noir", aspect_ratio="9:16")
        assert updated.visual_style == "noir"
        assert updated.aspect_ratio == AspectRatio.TALL
        assert updated.frames == project.frames

    @pytest.mark.asyncio
    async def test_merge_characters(self, store, project):
        updated = await store.merge_characters(project.id, [CharacterDefinition(name="Ada")])
        assert [c.name for c in updated.character_definitions] == ["Maya", "Leo", "Ada"]


class TestShotEdits:
    """Tests for shot list mutations and their effect on frames."""

    @pytest.mark.asyncio
    async def test_edit_shot_leaves_everything_else_alone(self, store, project):
        await store.merge_frame(project.id, rendered(1))
        before = await store.get(project.id)

        after = await store.update_shot(project.id, 2, {"description": "Leo slams the door"})

        assert after.get_shot(2).description == "Leo slams the door"
        assert after.get_shot(2).camera_angle == before.get_shot(2).camera_angle
        assert [s for s in after.shots if s.shot_number != 2] == [
            s for s in before.shots if s.shot_number != 2
        ]
        assert after.frames == before.frames

    @pytest.mark.asyncio
    async def test_edit_rejects_unknown_field(self, store, project):
        with pytest.raises(InvalidShotUpdateError):
            await store.update_shot(project.id, 1, {"mood_board": "x"})

    @pytest.mark.asyncio
    async def test_edit_missing_shot(self, store, project):
        with pytest.raises(ShotNotFoundError):
            await store.update_shot(project.id, 10, {"description": "x"})

    @pytest.mark.asyncio
    async def test_insert_moves_frames_with_shots(self, store, project):
        await store.merge_frame(project.id, rendered(3, image="data:image/png;base64,AAA="))

        updated, new_number = await store.insert_shot(project.id, after=2)

        assert new_number == 3
        assert [s.shot_number for s in updated.shots] == [1, 2, 3, 4, 5]
        assert updated.get_shot(4).description == "Shot 3 description"
        assert updated.get_frame(4).image_data == "data:image/png;base64,AAA="
        assert updated.get_frame(3).status == FrameStatus.PENDING

    @pytest.mark.asyncio
    async def test_remove_deletes_frame_of_removed_shot(self, store, project):
        await store.merge_frame(project.id, rendered(2, image="data:image/png;base64,TWO="))
        await store.merge_frame(project.id, rendered(3, image="data:image/png;base64,THREE="))

        updated = await store.remove_shot(project.id, 2)

        assert [f.shot_number for f in updated.frames] == [1, 2, 3]
        assert updated.get_frame(2).image_data == "data:image/png;base64,THREE="
        assert all(f.image_data != "data:image/png;base64,TWO=" for f in updated.frames)

    @pytest.mark.asyncio
    async def test_move_shot(self, store, project):
        updated = await store.move_shot(project.id, 1, 4)
        assert updated.get_shot(4).description == "Shot 1 description"
        assert [s.shot_number for s in updated.shots] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_renumbering_is_reported_to_watchers(self, store, project):
        seen = []
        unwatch = store.watch_renumbering(project.id, seen.append)

        await store.insert_shot(project.id, after=1)
        await store.update_shot(project.id, 1, {"description": "edited"})
        await store.remove_shot(project.id, 3)
        unwatch()
        await store.move_shot(project.id, 1, 2)

        assert seen == [
            {1: 1, 2: 3, 3: 4, 4: 5},
            {1: 1, 2: 2, 4: 3, 5: 4, 3: None},
        ]

    @pytest.mark.asyncio
    async def test_replace_shots_drops_orphaned_frames(self, store, project):
        await store.merge_frame(project.id, rendered(4))
        updated = await store.replace_shots(project.id, make_shots(2))
        assert [f.shot_number for f in updated.frames] == [1, 2]


class TestFrames:
    """Tests for frame merging and replacement."""

    @pytest.mark.asyncio
    async def test_merge_frame_twice_keeps_one_frame_with_later_timestamp(self, store, project):
        at = datetime(2024, 6, 1, tzinfo=timezone.utc)
        first = await store.merge_frame(project.id, rendered(2, at=at))
        second = await store.merge_frame(project.id, rendered(2, image="data:image/png;base64,NEW=", at=at))

        assert len([f for f in second.frames if f.shot_number == 2]) == 1
        assert second.get_frame(2).image_data == "data:image/png;base64,NEW="
        assert second.get_frame(2).generated_at > first.get_frame(2).generated_at

    @pytest.mark.asyncio
    async def test_merge_frame_leaves_other_frames(self, store, project):
        await store.merge_frame(project.id, rendered(1))
        updated = await store.merge_frame(project.id, rendered(3))
        assert updated.get_frame(1).is_rendered
        assert updated.get_frame(3).is_rendered
        assert updated.get_frame(2).status == FrameStatus.PENDING

    @pytest.mark.asyncio
    async def test_generating_keeps_previous_image(self, store, project):
        await store.merge_frame(project.id, rendered(1))
        updated = await store.merge_frame(
            project.id, Frame(shot_number=1, status=FrameStatus.GENERATING)
        )
        assert updated.get_frame(1).status == FrameStatus.GENERATING
        assert updated.get_frame(1).image_data == PNG_DATA_URL

    @pytest.mark.asyncio
    async def test_merge_frame_for_missing_shot(self, store, project):
        with pytest.raises(ShotNotFoundError):
            await store.merge_frame(project.id, rendered(7))

    @pytest.mark.asyncio
    async def test_all_rendered_marks_complete(self, store, project):
        for n in range(1, 5):
            updated = await store.merge_frame(project.id, rendered(n))
        assert updated.is_complete is True

    @pytest.mark.asyncio
    async def test_replace_frames_rejects_orphans(self, store, project):
        with pytest.raises(StateConsistencyError) as exc_info:
            await store.replace_frames(project.id, [rendered(1), rendered(6)])
        assert exc_info.value.details["orphaned_shot_numbers"] == [6]

    @pytest.mark.asyncio
    async def test_replace_frames_rejects_duplicates(self, store, project):
        with pytest.raises(StateConsistencyError):
            await store.replace_frames(project.id, [rendered(1), rendered(1)])

    @pytest.mark.asyncio
    async def test_initialize_frames(self, store, project):
        await store.merge_frame(project.id, rendered(1))
        updated = await store.initialize_frames(project.id)
        assert all(f.status == FrameStatus.PENDING and f.image_data is None for f in updated.frames)

    @pytest.mark.asyncio
    async def test_set_frame_style(self, store, project):
        updated = await store.set_frame_style(project.id, 2, "noir")
        assert updated.get_frame(2).style_override == "noir"
        cleared = await store.set_frame_style(project.id, 2, "")
        assert cleared.get_frame(2).style_override is None

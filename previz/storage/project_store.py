"""
Project State Store

Single source of truth for in-progress storyboard projects. Every mutation
re-reads the stored project, changes only what it owns and writes back only
the fields it changed, so editing a shot never discards frames and merging
a frame never discards shot edits.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from previz.core.constants import AspectRatio, FrameStatus
from previz.core.exceptions import (
    ProjectNotFoundError,
    ShotNotFoundError,
    StateConsistencyError,
)
from previz.core.logging_config import get_logger
from previz.core.user_context import UserContext
from previz.storage.record_store import RecordStore
from previz.storyboard import shot_list
from previz.storyboard.characters import merge_character_definitions
from previz.storyboard.models import (
    CharacterDefinition,
    Frame,
    Project,
    Shot,
    count_speaking_characters,
    utc_now,
)

logger = get_logger("storage.project_store")

TIMESTAMP_STEP = timedelta(microseconds=1)

RenumberWatcher = Callable[[shot_list.NumberMapping], None]


def align_frames(shots: List[Shot], frames: List[Frame]) -> List[Frame]:
    """
    One frame per shot, in shot order.

    Frames for missing shot numbers are dropped; shots without a frame get
    an empty pending frame.
    """
    by_number = {frame.shot_number: frame for frame in frames}
    return [
        by_number.get(shot.shot_number) or Frame(shot_number=shot.shot_number)
        for shot in shots
    ]


def _frames_payload(frames: List[Frame]) -> List[Dict[str, Any]]:
    return [frame.to_dict() for frame in frames]


def _shots_payload(shots: List[Shot]) -> List[Dict[str, Any]]:
    return [shot.to_dict() for shot in shots]


def _all_rendered(frames: List[Frame]) -> bool:
    return bool(frames) and all(frame.status == FrameStatus.RENDERED for frame in frames)


class ProjectStateStore:
    """
    Read-modify-write access to projects in a RecordStore.

    Mutations of one project are serialized by a per-project lock within
    this process; across processes the record store's last writer wins.
    """

    def __init__(self, records: RecordStore, clock: Callable[[], datetime] = utc_now):
        self.records = records
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._renumber_watchers: Dict[str, List[RenumberWatcher]] = {}

    def _lock(self, project_id: str) -> asyncio.Lock:
        if project_id not in self._locks:
            self._locks[project_id] = asyncio.Lock()
        return self._locks[project_id]

    def watch_renumbering(self, project_id: str, watcher: RenumberWatcher) -> Callable[[], None]:
        """
        Call ``watcher`` with the old -> new mapping whenever this project's
        shots are renumbered.

        Returns:
            A function that stops the watch
        """
        watchers = self._renumber_watchers.setdefault(project_id, [])
        watchers.append(watcher)

        def unwatch() -> None:
            if watcher in watchers:
                watchers.remove(watcher)
            if not watchers:
                self._renumber_watchers.pop(project_id, None)

        return unwatch

    async def _read(self, project_id: str) -> Project:
        record = await self.records.fetch(project_id)
        if record is None:
            raise ProjectNotFoundError(project_id)
        return Project.from_dict(record)

    async def _write(self, project_id: str, fields: Dict[str, Any]) -> Project:
        fields["updated_at"] = self._clock().isoformat()
        record = await self.records.update(project_id, fields)
        return Project.from_dict(record)

    # =========================================================================
    # CREATE / READ / DELETE
    # =========================================================================

    async def create(
        self,
        owner: UserContext,
        script_text: str,
        shots: List[Shot],
        genre: str = "",
        tone: str = "",
        visual_style: str = "cinematic",
        custom_style: str = "",
        aspect_ratio: AspectRatio = AspectRatio.WIDE,
        character_definitions: Optional[List[CharacterDefinition]] = None,
        style_reference_prompt: Optional[str] = None,
        frames: Optional[List[Frame]] = None
    ) -> Project:
        """Persist a new project from planner output."""
        shots, _ = shot_list.renumber(shots)
        frames = align_frames(shots, frames or [])
        now = self._clock()
        project = Project(
            id="",
            owner_id=owner.user_id,
            script_text=script_text,
            genre=genre,
            tone=tone,
            visual_style=visual_style,
            custom_style=custom_style,
            aspect_ratio=aspect_ratio,
            character_definitions=list(character_definitions or []),
            style_reference_prompt=style_reference_prompt,
            character_count=count_speaking_characters(script_text),
            is_complete=_all_rendered(frames),
            shots=shots,
            frames=frames,
            created_at=now,
            updated_at=now,
        )
        record = project.to_dict()
        record.pop("id")
        stored = await self.records.insert(record)
        created = Project.from_dict(stored)
        logger.info(f"Created project {created.id} with {len(shots)} shots")
        return created

    async def get(self, project_id: str) -> Project:
        return await self._read(project_id)

    async def list_for_owner(self, owner_id: str) -> List[Project]:
        return [Project.from_dict(r) for r in await self.records.fetch_by_owner(owner_id)]

    async def delete(self, project_id: str) -> None:
        async with self._lock(project_id):
            if not await self.records.delete(project_id):
                raise ProjectNotFoundError(project_id)
        self._locks.pop(project_id, None)
        self._renumber_watchers.pop(project_id, None)
        logger.info(f"Deleted project {project_id}")

    # =========================================================================
    # PROJECT-LEVEL UPDATES
    # =========================================================================

    async def update_script(
        self,
        project_id: str,
        script_text: Optional[str] = None,
        genre: Optional[str] = None,
        tone: Optional[str] = None
    ) -> Project:
        async with self._lock(project_id):
            await self._read(project_id)
            fields: Dict[str, Any] = {}
            if script_text is not None:
                fields["script_text"] = script_text
                fields["character_count"] = count_speaking_characters(script_text)
            if genre is not None:
                fields["genre"] = genre
            if tone is not None:
                fields["tone"] = tone
            return await self._write(project_id, fields)

    async def update_style(
        self,
        project_id: str,
        visual_style: Optional[str] = None,
        custom_style: Optional[str] = None,
        aspect_ratio: Optional[AspectRatio] = None,
        style_reference_prompt: Optional[str] = None
    ) -> Project:
        async with self._lock(project_id):
            await self._read(project_id)
            fields: Dict[str, Any] = {}
            if visual_style is not None:
                fields["visual_style"] = visual_style
            if custom_style is not None:
                fields["custom_style"] = custom_style
            if aspect_ratio is not None:
                fields["aspect_ratio"] = AspectRatio.parse(aspect_ratio).value
            if style_reference_prompt is not None:
                fields["style_reference_prompt"] = style_reference_prompt or None
            return await self._write(project_id, fields)

    async def merge_characters(
        self,
        project_id: str,
        definitions: List[CharacterDefinition]
    ) -> Project:
        async with self._lock(project_id):
            project = await self._read(project_id)
            merged = merge_character_definitions(project.character_definitions, definitions)
            return await self._write(
                project_id,
                {"character_definitions": [c.to_dict() for c in merged]},
            )

    # =========================================================================
    # SHOT LIST
    # =========================================================================

    async def replace_shots(
        self,
        project_id: str,
        shots: List[Shot],
        mapping: Optional[shot_list.NumberMapping] = None
    ) -> Project:
        """
        Replace the whole shot list.

        Shots are renumbered 1..N. With ``mapping`` (old -> new numbers)
        frames follow their shots; without it frames stay on their numbers.
        Frames left without a shot are deleted either way.
        """
        async with self._lock(project_id):
            project = await self._read(project_id)
            return await self._store_shots(project, shots, mapping)

    async def _store_shots(
        self,
        project: Project,
        shots: List[Shot],
        mapping: Optional[shot_list.NumberMapping]
    ) -> Project:
        if not shot_list.is_dense(shots):
            shots, renumbered = shot_list.renumber(shots)
            if mapping is None:
                mapping = renumbered
            else:
                mapping = {
                    old: renumbered.get(new) if new is not None else None
                    for old, new in mapping.items()
                }
        frames = project.frames
        if mapping is not None:
            frames = shot_list.remap_frames(frames, mapping)
        aligned = align_frames(shots, frames)

        kept = {f.shot_number for f in frames} & {s.shot_number for s in shots}
        dropped = len(project.frames) - len(kept)
        if dropped > 0:
            logger.info(f"Project {project.id}: removed {dropped} orphaned frame(s)")

        updated = await self._write(project.id, {
            "shots": _shots_payload(shots),
            "storyboard_frames": _frames_payload(aligned),
            "is_complete": _all_rendered(aligned),
        })
        if mapping is not None:
            for watcher in list(self._renumber_watchers.get(project.id, [])):
                watcher(mapping)
        return updated

    async def update_shot(
        self,
        project_id: str,
        shot_number: int,
        updates: Dict[str, Any]
    ) -> Project:
        """Edit fields of one shot. Frames are not touched."""
        async with self._lock(project_id):
            project = await self._read(project_id)
            shot = project.get_shot(shot_number)
            if shot is None:
                raise ShotNotFoundError(shot_number, len(project.shots))
            edited = shot_list.apply_shot_update(shot, updates)
            shots = [edited if s.shot_number == shot_number else s for s in project.shots]
            return await self._write(project_id, {"shots": _shots_payload(shots)})

    async def insert_shot(
        self,
        project_id: str,
        after: int,
        shot: Optional[Shot] = None
    ) -> Tuple[Project, int]:
        """Insert a shot after ``after``; returns the project and the new shot's number."""
        async with self._lock(project_id):
            project = await self._read(project_id)
            shots, mapping, new_number = shot_list.insert_shot(project.shots, after, shot)
            updated = await self._store_shots(project, shots, mapping)
            logger.info(f"Project {project_id}: inserted shot {new_number}")
            return updated, new_number

    async def remove_shot(self, project_id: str, shot_number: int) -> Project:
        """Remove a shot and its frame, then close the gap."""
        async with self._lock(project_id):
            project = await self._read(project_id)
            shots, mapping = shot_list.remove_shot(project.shots, shot_number)
            updated = await self._store_shots(project, shots, mapping)
            logger.info(f"Project {project_id}: removed shot {shot_number}")
            return updated

    async def move_shot(self, project_id: str, shot_number: int, to_position: int) -> Project:
        async with self._lock(project_id):
            project = await self._read(project_id)
            shots, mapping = shot_list.move_shot(project.shots, shot_number, to_position)
            return await self._store_shots(project, shots, mapping)

    # =========================================================================
    # FRAMES
    # =========================================================================

    async def replace_frames(self, project_id: str, frames: List[Frame]) -> Project:
        """Replace the whole frame list. Every frame must name an existing shot."""
        async with self._lock(project_id):
            project = await self._read(project_id)
            existing = {shot.shot_number for shot in project.shots}
            numbers = [frame.shot_number for frame in frames]
            orphaned = sorted({n for n in numbers if n not in existing})
            if orphaned:
                raise StateConsistencyError(
                    f"Frames reference nonexistent shots: {orphaned}", orphaned
                )
            if len(numbers) != len(set(numbers)):
                duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
                raise StateConsistencyError(f"Duplicate frames for shots: {duplicates}")
            aligned = align_frames(project.shots, frames)
            return await self._write(project_id, {
                "storyboard_frames": _frames_payload(aligned),
                "is_complete": _all_rendered(aligned),
            })

    async def initialize_frames(self, project_id: str) -> Project:
        """Reset every frame to empty pending."""
        async with self._lock(project_id):
            project = await self._read(project_id)
            frames = [Frame(shot_number=shot.shot_number) for shot in project.shots]
            return await self._write(project_id, {
                "storyboard_frames": _frames_payload(frames),
                "is_complete": False,
            })

    async def merge_frame(self, project_id: str, frame: Frame) -> Project:
        """
        Replace the frame for ``frame.shot_number`` and leave the others alone.

        A new generation timestamp is moved forward if needed so it is
        always strictly later than the one it replaces.
        """
        async with self._lock(project_id):
            project = await self._read(project_id)
            if project.get_shot(frame.shot_number) is None:
                raise ShotNotFoundError(frame.shot_number, len(project.shots))

            previous = project.get_frame(frame.shot_number)
            if previous is not None and frame.generated_at is None and frame.status == FrameStatus.GENERATING:
                # keep the last image visible while a new one is generated
                frame = replace(
                    frame,
                    image_data=previous.image_data,
                    generated_at=previous.generated_at,
                )
            elif (
                previous is not None
                and previous.generated_at is not None
                and frame.generated_at is not None
                and frame.generated_at <= previous.generated_at
            ):
                frame = replace(frame, generated_at=previous.generated_at + TIMESTAMP_STEP)

            frames = align_frames(project.shots, project.frames)
            frames = [frame if f.shot_number == frame.shot_number else f for f in frames]
            return await self._write(project_id, {
                "storyboard_frames": _frames_payload(frames),
                "is_complete": _all_rendered(frames),
            })

    async def set_frame_style(
        self,
        project_id: str,
        shot_number: int,
        style_override: Optional[str]
    ) -> Project:
        """Set or clear the per-frame style override for one shot."""
        async with self._lock(project_id):
            project = await self._read(project_id)
            if project.get_shot(shot_number) is None:
                raise ShotNotFoundError(shot_number, len(project.shots))
            frames = [
                replace(f, style_override=style_override or None) if f.shot_number == shot_number else f
                for f in align_frames(project.shots, project.frames)
            ]
            return await self._write(project_id, {"storyboard_frames": _frames_payload(frames)})

"""
Shot list editing.

Pure functions over ordered shot lists. Every function that adds, removes
or reorders shots returns the renumbered list together with a mapping of
old shot numbers to new ones, so frames can follow their shots.
"""

from dataclasses import fields, replace
from typing import Any, Dict, List, Optional, Tuple

from previz.core.exceptions import InvalidShotUpdateError, ShotNotFoundError
from previz.storyboard.models import Frame, Shot

# old shot number -> new shot number (None when the shot was removed)
NumberMapping = Dict[int, Optional[int]]

LIST_FIELDS = {"characters", "key_props"}
EDITABLE_FIELDS = {f.name for f in fields(Shot)} - {"shot_number"}


def is_dense(shots: List[Shot]) -> bool:
    """True when shot numbers are exactly 1..N in order."""
    return [s.shot_number for s in shots] == list(range(1, len(shots) + 1))


def _renumber(ordered: List[Tuple[Optional[int], Shot]]) -> Tuple[List[Shot], NumberMapping]:
    shots = []
    mapping: NumberMapping = {}
    for index, (old_number, shot) in enumerate(ordered, start=1):
        shots.append(replace(shot, shot_number=index))
        if old_number is not None:
            mapping[old_number] = index
    return shots, mapping


def renumber(shots: List[Shot]) -> Tuple[List[Shot], NumberMapping]:
    """Renumber shots 1..N keeping their current order."""
    return _renumber([(s.shot_number, s) for s in shots])


def _index_of(shots: List[Shot], shot_number: int) -> int:
    for index, shot in enumerate(shots):
        if shot.shot_number == shot_number:
            return index
    raise ShotNotFoundError(shot_number, len(shots))


def blank_shot() -> Shot:
    """An empty shot as created by "insert shot"."""
    return Shot(shot_number=0, duration="3s")


def insert_shot(
    shots: List[Shot],
    after: int,
    new_shot: Shot = None
) -> Tuple[List[Shot], NumberMapping, int]:
    """
    Insert a shot after shot number ``after`` (0 inserts at the front).

    Returns:
        (renumbered shots, old->new mapping, number of the inserted shot)
    """
    if after < 0 or after > len(shots):
        raise ShotNotFoundError(after, len(shots))

    ordered: List[Tuple[Optional[int], Shot]] = [(s.shot_number, s) for s in shots]
    ordered.insert(after, (None, new_shot or blank_shot()))
    renumbered, mapping = _renumber(ordered)
    return renumbered, mapping, after + 1


def remove_shot(shots: List[Shot], shot_number: int) -> Tuple[List[Shot], NumberMapping]:
    """Remove one shot and close the gap."""
    index = _index_of(shots, shot_number)
    ordered = [(s.shot_number, s) for i, s in enumerate(shots) if i != index]
    renumbered, mapping = _renumber(ordered)
    mapping[shot_number] = None
    return renumbered, mapping


def move_shot(
    shots: List[Shot],
    shot_number: int,
    to_position: int
) -> Tuple[List[Shot], NumberMapping]:
    """Move a shot so it ends up numbered ``to_position``."""
    index = _index_of(shots, shot_number)
    if to_position < 1 or to_position > len(shots):
        raise ShotNotFoundError(to_position, len(shots))

    ordered = [(s.shot_number, s) for s in shots]
    entry = ordered.pop(index)
    ordered.insert(to_position - 1, entry)
    return _renumber(ordered)


def remap_frames(frames: List[Frame], mapping: NumberMapping) -> List[Frame]:
    """
    Move frames to their shots' new numbers.

    Frames whose shot was removed, or that are absent from the mapping,
    are dropped.
    """
    remapped = []
    for frame in frames:
        new_number = mapping.get(frame.shot_number)
        if new_number is None:
            continue
        remapped.append(replace(frame, shot_number=new_number))
    return sorted(remapped, key=lambda f: f.shot_number)


def _coerce(field_name: str, value: Any) -> Any:
    if field_name in LIST_FIELDS:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(v) for v in value]
    return "" if value is None else str(value)


def apply_shot_update(shot: Shot, updates: Dict[str, Any]) -> Shot:
    """Return a copy of ``shot`` with the given fields replaced."""
    unknown = set(updates) - EDITABLE_FIELDS
    if unknown:
        raise InvalidShotUpdateError(list(unknown))
    return replace(shot, **{name: _coerce(name, value) for name, value in updates.items()})


def merge_parsed_prompt(shot: Shot, parsed: Dict[str, Any]) -> Shot:
    """Apply an AI-parsed partial update, ignoring empty and unknown values."""
    updates = {
        name: value for name, value in parsed.items()
        if name in EDITABLE_FIELDS and value not in (None, "", [])
    }
    return apply_shot_update(shot, updates) if updates else shot

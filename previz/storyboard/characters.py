"""
Character references.

Shots name characters as free text. Names resolve to definitions by
case-insensitive match; names without a definition resolve to None.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from previz.storyboard.models import CharacterDefinition


@dataclass
class ResolvedCharacter:
    """A name from a shot and the definition it resolved to, if any."""
    name: str
    definition: Optional[CharacterDefinition] = None

    @property
    def resolved(self) -> bool:
        return self.definition is not None


def _index(definitions: Iterable[CharacterDefinition]) -> Dict[str, CharacterDefinition]:
    index: Dict[str, CharacterDefinition] = {}
    for definition in definitions:
        index.setdefault(definition.key, definition)
    return index


def find_character(
    name: str,
    definitions: Iterable[CharacterDefinition]
) -> Optional[CharacterDefinition]:
    return _index(definitions).get(name.strip().casefold())


def resolve_characters(
    names: Iterable[str],
    definitions: Iterable[CharacterDefinition]
) -> List[ResolvedCharacter]:
    """Resolve every non-blank name, keeping shot order."""
    index = _index(definitions)
    return [
        ResolvedCharacter(name=name.strip(), definition=index.get(name.strip().casefold()))
        for name in names
        if name and name.strip()
    ]


def merge_character_definitions(
    existing: List[CharacterDefinition],
    incoming: List[CharacterDefinition]
) -> List[CharacterDefinition]:
    """
    Merge incoming definitions into existing ones by name.

    A matching name replaces the old definition in place, except that an
    incoming definition without a reference image keeps the old image.
    New names are appended.
    """
    merged = list(existing)
    positions = {definition.key: i for i, definition in enumerate(merged)}
    for definition in incoming:
        if not definition.name.strip():
            continue
        position = positions.get(definition.key)
        if position is None:
            positions[definition.key] = len(merged)
            merged.append(definition)
            continue
        previous = merged[position]
        if definition.reference_image is None and previous.reference_image:
            definition = CharacterDefinition(
                name=definition.name,
                description=definition.description,
                traits=definition.traits,
                reference_image=previous.reference_image,
            )
        merged[position] = definition
    return merged

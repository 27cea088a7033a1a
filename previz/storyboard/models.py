"""
Storyboard Models

Dataclasses for projects, shots, frames and character definitions, with
dict conversion for the record store. ``from_dict`` also accepts the
camelCase keys written by older clients.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from previz.core.constants import AspectRatio, FrameStatus

SPEAKER_CUE_RE = re.compile(r"^[A-Z][A-Z\s]+$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _pick(data: dict, key: str, alt: str = None, default: Any = None) -> Any:
    if key in data and data[key] is not None:
        return data[key]
    if alt and alt in data and data[alt] is not None:
        return data[alt]
    return default


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(item) for item in value]


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def count_speaking_characters(script_text: str) -> int:
    """Count all-caps speaker cue lines (``MARCUS``, ``DR ELENA``)."""
    return sum(
        1 for line in script_text.splitlines()
        if SPEAKER_CUE_RE.match(line.strip())
    )


@dataclass
class CharacterDefinition:
    """A reusable named visual anchor referenced from shots by name."""
    name: str
    description: str = ""
    traits: List[str] = field(default_factory=list)
    reference_image: Optional[str] = None

    @property
    def key(self) -> str:
        return self.name.strip().casefold()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "traits": list(self.traits),
            "reference_image": self.reference_image,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharacterDefinition":
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            traits=_as_list(data.get("traits")),
            reference_image=_pick(data, "reference_image", "referenceImage"),
        )


@dataclass
class Shot:
    """One planned storyboard panel."""
    shot_number: int
    description: str = ""
    camera_angle: str = ""
    characters: List[str] = field(default_factory=list)
    visual_elements: str = ""
    duration: str = ""

    # Populated by the detailed breakdown
    shot_type: str = ""
    visual_description: str = ""
    action: str = ""
    location: str = ""
    lighting: str = ""
    emotional_tone: str = ""
    key_props: List[str] = field(default_factory=list)
    dialogue: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shot_number": self.shot_number,
            "description": self.description,
            "camera_angle": self.camera_angle,
            "characters": list(self.characters),
            "visual_elements": self.visual_elements,
            "duration": self.duration,
            "shot_type": self.shot_type,
            "visual_description": self.visual_description,
            "action": self.action,
            "location": self.location,
            "lighting": self.lighting,
            "emotional_tone": self.emotional_tone,
            "key_props": list(self.key_props),
            "dialogue": self.dialogue,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shot":
        visual_elements = _pick(data, "visual_elements", "visualElements", "")
        if isinstance(visual_elements, list):
            visual_elements = ", ".join(str(v) for v in visual_elements if v)
        return cls(
            shot_number=int(_pick(data, "shot_number", "shotNumber", 0)),
            description=data.get("description", "") or "",
            camera_angle=_pick(data, "camera_angle", "cameraAngle", ""),
            characters=_as_list(data.get("characters")),
            visual_elements=visual_elements,
            duration=str(data.get("duration", "") or ""),
            shot_type=_pick(data, "shot_type", "shotType", ""),
            visual_description=_pick(data, "visual_description", "visualDescription", ""),
            action=data.get("action", "") or "",
            location=data.get("location", "") or "",
            lighting=data.get("lighting", "") or "",
            emotional_tone=_pick(data, "emotional_tone", "emotionalTone", ""),
            key_props=_as_list(_pick(data, "key_props", "keyProps")),
            dialogue=data.get("dialogue", "") or "",
        )


@dataclass
class Frame:
    """The rendered image for one shot number."""
    shot_number: int
    image_data: Optional[str] = None
    generated_at: Optional[datetime] = None
    error: Optional[str] = None
    status: FrameStatus = FrameStatus.PENDING
    is_fallback: bool = False
    style_override: Optional[str] = None
    image_prompt: Optional[str] = None

    @property
    def is_rendered(self) -> bool:
        return self.status == FrameStatus.RENDERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shot_number": self.shot_number,
            "image_data": self.image_data,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "error": self.error,
            "status": self.status.value,
            "is_fallback": self.is_fallback,
            "style_override": self.style_override,
            "image_prompt": self.image_prompt,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Frame":
        image_data = _pick(data, "image_data", "imageUrl")
        error = data.get("error")
        status = data.get("status")
        if status:
            status = FrameStatus(status)
        elif error:
            status = FrameStatus.ERRORED
        elif image_data:
            status = FrameStatus.RENDERED
        else:
            status = FrameStatus.PENDING
        return cls(
            shot_number=int(_pick(data, "shot_number", "shotNumber", 0)),
            image_data=image_data,
            generated_at=parse_timestamp(_pick(data, "generated_at", "generatedAt")),
            error=error,
            status=status,
            is_fallback=bool(data.get("is_fallback", False)),
            style_override=_pick(data, "style_override", "styleOverride"),
            image_prompt=_pick(data, "image_prompt", "imagePrompt"),
        )


@dataclass
class Project:
    """The unit of persistence for one storyboarding session."""
    id: str
    owner_id: str
    script_text: str = ""
    genre: str = ""
    tone: str = ""
    visual_style: str = "cinematic"
    custom_style: str = ""
    aspect_ratio: AspectRatio = AspectRatio.WIDE
    character_definitions: List[CharacterDefinition] = field(default_factory=list)
    style_reference_prompt: Optional[str] = None
    character_count: int = 0
    is_complete: bool = False
    shots: List[Shot] = field(default_factory=list)
    frames: List[Frame] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_shot(self, shot_number: int) -> Optional[Shot]:
        for shot in self.shots:
            if shot.shot_number == shot_number:
                return shot
        return None

    def get_frame(self, shot_number: int) -> Optional[Frame]:
        for frame in self.frames:
            if frame.shot_number == shot_number:
                return frame
        return None

    def frame_status(self, shot_number: int) -> FrameStatus:
        frame = self.get_frame(shot_number)
        return frame.status if frame else FrameStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "script_text": self.script_text,
            "genre": self.genre,
            "tone": self.tone,
            "visual_style": self.visual_style,
            "custom_style": self.custom_style,
            "aspect_ratio": self.aspect_ratio.value,
            "character_definitions": [c.to_dict() for c in self.character_definitions],
            "style_reference_prompt": self.style_reference_prompt,
            "character_count": self.character_count,
            "is_complete": self.is_complete,
            "shots": [s.to_dict() for s in self.shots],
            "storyboard_frames": [f.to_dict() for f in self.frames],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=str(data["id"]),
            owner_id=str(_pick(data, "user_id", "owner_id", "")),
            script_text=data.get("script_text", "") or "",
            genre=data.get("genre", "") or "",
            tone=data.get("tone", "") or "",
            visual_style=data.get("visual_style") or "cinematic",
            custom_style=data.get("custom_style", "") or "",
            aspect_ratio=AspectRatio.parse(data.get("aspect_ratio") or AspectRatio.WIDE),
            character_definitions=[
                CharacterDefinition.from_dict(c)
                for c in data.get("character_definitions") or []
            ],
            style_reference_prompt=data.get("style_reference_prompt"),
            character_count=data.get("character_count", 0) or 0,
            is_complete=bool(data.get("is_complete", False)),
            shots=[Shot.from_dict(s) for s in data.get("shots") or []],
            frames=[Frame.from_dict(f) for f in data.get("storyboard_frames") or []],
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )

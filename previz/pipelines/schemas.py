"""
Expected shapes of model and edge-function replies.

Model output is untrusted: it is validated here before anything else
sees it.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _split_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        if value.strip().lower() in ("", "none", "n/a"):
            return []
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    raise ValueError("expected a list or comma separated string")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    return str(value)


class ShotPayload(BaseModel):
    """One shot as returned by the text model."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    shot_number: Optional[int] = Field(default=None, alias="shotNumber")
    visual_description: str = Field(default="", alias="visualDescription")
    characters: List[str] = Field(default_factory=list)
    location: str = ""
    action: str = ""
    emotional_tone: str = Field(default="", alias="emotionalTone")
    shot_type: str = Field(default="", alias="shotType")
    camera_angle: str = Field(default="", alias="cameraAngle")
    lighting: str = ""
    key_props: List[str] = Field(default_factory=list, alias="keyProps")
    dialogue: str = ""
    duration: str = ""

    @field_validator("characters", "key_props", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> List[str]:
        return _split_list(value)

    @field_validator(
        "visual_description", "location", "action", "emotional_tone", "shot_type",
        "camera_angle", "lighting", "dialogue", "duration",
        mode="before",
    )
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _text(value)

    @model_validator(mode="after")
    def _has_content(self) -> "ShotPayload":
        if not (self.visual_description.strip() or self.action.strip()):
            raise ValueError("shot has neither visualDescription nor action")
        return self


class ShotPlanPayload(BaseModel):
    """The detailed-breakdown reply: ``{"shots": [...]}``."""
    model_config = ConfigDict(extra="ignore")

    shots: List[ShotPayload]


class QuickPanelPayload(BaseModel):
    """One panel of the fused quick-storyboard reply."""
    model_config = ConfigDict(extra="ignore")

    shot_id: int
    description: str = ""
    prompt_used: str = ""
    image_b64: Optional[str] = None


class QuickStoryboardPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    panels: List[QuickPanelPayload] = Field(min_length=1)


class ShotPromptPayload(BaseModel):
    """Tool-call arguments for an AI edit of one shot. Every field optional."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    visual_description: Optional[str] = Field(default=None, alias="visualDescription")
    location: Optional[str] = None
    action: Optional[str] = None
    shot_type: Optional[str] = Field(default=None, alias="shotType")
    camera_angle: Optional[str] = Field(default=None, alias="cameraAngle")
    lighting: Optional[str] = None
    emotional_tone: Optional[str] = Field(default=None, alias="emotionalTone")
    key_props: Optional[List[str]] = Field(default=None, alias="keyProps")
    characters: Optional[List[str]] = None
    dialogue: Optional[str] = None
    duration: Optional[str] = None

    @field_validator("key_props", "characters", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Optional[List[str]]:
        return None if value is None else _split_list(value)

    def updates(self) -> Dict[str, Any]:
        """Non-empty fields, keyed by shot attribute name."""
        return {
            name: value for name, value in self.model_dump().items()
            if value not in (None, "", [])
        }

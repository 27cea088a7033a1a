"""Request and response models for the storyboard API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from previz.core.constants import AspectRatio
from previz.core.image_utils import is_image_url
from previz.ingestion.script_ingestor import IngestionResult
from previz.pipelines.batch_render import BatchRenderReport
from previz.storyboard.models import CharacterDefinition, Frame, Project


class CharacterModel(BaseModel):
    name: str
    description: str = ""
    traits: List[str] = Field(default_factory=list)
    reference_image: Optional[str] = None

    @field_validator("reference_image")
    @classmethod
    def check_reference_image(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_image_url(value):
            raise ValueError("reference_image must be a base64 data URL or an http(s) URL")
        return value or None

    def to_definition(self) -> CharacterDefinition:
        return CharacterDefinition.from_dict(self.model_dump())


class ShotModel(BaseModel):
    shot_number: int = 0
    description: str = ""
    camera_angle: str = ""
    characters: List[str] = Field(default_factory=list)
    visual_elements: str = ""
    duration: str = ""
    shot_type: str = ""
    visual_description: str = ""
    action: str = ""
    location: str = ""
    lighting: str = ""
    emotional_tone: str = ""
    key_props: List[str] = Field(default_factory=list)
    dialogue: str = ""


class FrameModel(BaseModel):
    shot_number: int
    image_data: Optional[str] = None
    generated_at: Optional[str] = None
    error: Optional[str] = None
    status: str
    is_fallback: bool = False
    style_override: Optional[str] = None
    image_prompt: Optional[str] = None

    @classmethod
    def from_frame(cls, frame: Frame) -> "FrameModel":
        return cls(**frame.to_dict())


class ProjectResponse(BaseModel):
    id: str
    owner_id: str
    script_text: str
    genre: str
    tone: str
    visual_style: str
    custom_style: str
    aspect_ratio: str
    character_definitions: List[CharacterModel]
    style_reference_prompt: Optional[str] = None
    character_count: int
    is_complete: bool
    shots: List[ShotModel]
    frames: List[FrameModel]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        data = project.to_dict()
        data["owner_id"] = data.pop("user_id")
        data["frames"] = data.pop("storyboard_frames")
        return cls(**data)


class ProjectSummary(BaseModel):
    id: str
    genre: str
    tone: str
    shot_count: int
    rendered_count: int
    is_complete: bool
    updated_at: Optional[str] = None

    @classmethod
    def from_project(cls, project: Project) -> "ProjectSummary":
        return cls(
            id=project.id,
            genre=project.genre,
            tone=project.tone,
            shot_count=len(project.shots),
            rendered_count=sum(1 for f in project.frames if f.is_rendered),
            is_complete=project.is_complete,
            updated_at=project.updated_at.isoformat() if project.updated_at else None,
        )


class IngestTextRequest(BaseModel):
    text: str


class IngestResponse(BaseModel):
    text: str
    source: str
    file_name: Optional[str] = None
    cached: bool = False
    word_count: int

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestResponse":
        return cls(
            text=result.text,
            source=result.source,
            file_name=result.file_name,
            cached=result.cached,
            word_count=result.word_count,
        )


class CreateStoryboardRequest(BaseModel):
    script_text: str
    genre: str
    tone: str
    visual_style: str = "cinematic"
    custom_style: str = ""
    aspect_ratio: Optional[AspectRatio] = None
    characters: List[CharacterModel] = Field(default_factory=list)
    style_reference_prompt: Optional[str] = None


class QuickStoryboardRequest(BaseModel):
    script_text: str
    style: str
    aspect_ratio: Optional[AspectRatio] = None


class UpdateScriptRequest(BaseModel):
    script_text: Optional[str] = None
    genre: Optional[str] = None
    tone: Optional[str] = None


class UpdateStyleRequest(BaseModel):
    visual_style: Optional[str] = None
    custom_style: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None
    style_reference_prompt: Optional[str] = None


class ShotUpdateRequest(BaseModel):
    updates: Dict[str, Any]


class PromptEditRequest(BaseModel):
    prompt: str


class InsertShotRequest(BaseModel):
    after: int
    shot: Optional[ShotModel] = None


class MoveShotRequest(BaseModel):
    to_position: int


class FrameStyleRequest(BaseModel):
    style_override: Optional[str] = None


class CharactersRequest(BaseModel):
    characters: List[CharacterModel]


class BatchReportResponse(BaseModel):
    project_id: str
    rendered: List[int]
    errored: Dict[str, str]
    skipped: List[int]
    attempted: int
    completed: bool
    duration_seconds: float
    project: ProjectResponse

    @classmethod
    def from_report(cls, report: BatchRenderReport) -> "BatchReportResponse":
        return cls(project=ProjectResponse.from_project(report.project), **report.to_dict())

"""Storyboards router."""

from typing import List

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse

from previz.api.deps import get_controller, limiter, render_rate_limit
from previz.api.schemas import (
    BatchReportResponse,
    CharactersRequest,
    CreateStoryboardRequest,
    FrameModel,
    FrameStyleRequest,
    IngestResponse,
    IngestTextRequest,
    InsertShotRequest,
    MoveShotRequest,
    ProjectResponse,
    ProjectSummary,
    PromptEditRequest,
    QuickStoryboardRequest,
    ShotUpdateRequest,
    UpdateScriptRequest,
    UpdateStyleRequest,
)
from previz.controller import StoryboardController
from previz.core.logging_config import get_logger
from previz.ingestion.script_ingestor import ScriptUpload
from previz.pipelines.storyboard_pipeline import StoryboardRequest
from previz.storyboard.models import Shot

logger = get_logger("api.storyboards")

router = APIRouter()


# =============================================================================
# INGESTION
# =============================================================================

@router.post("/ingest/text", response_model=IngestResponse)
async def ingest_text(
    body: IngestTextRequest,
    controller: StoryboardController = Depends(get_controller)
):
    return IngestResponse.from_result(controller.ingest_text(body.text))


@router.post("/ingest/file", response_model=IngestResponse)
async def ingest_file(
    file: UploadFile = File(...),
    last_modified: int = Form(default=0),
    controller: StoryboardController = Depends(get_controller)
):
    upload = ScriptUpload(
        name=file.filename or "upload",
        data=await file.read(),
        mime_type=file.content_type or "",
        last_modified=last_modified,
    )
    return IngestResponse.from_result(await controller.ingest_file(upload))


# =============================================================================
# PROJECTS
# =============================================================================

@router.post("", response_model=ProjectResponse, status_code=201)
async def create_storyboard(
    body: CreateStoryboardRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.create_storyboard(StoryboardRequest(
        script_text=body.script_text,
        genre=body.genre,
        tone=body.tone,
        visual_style=body.visual_style,
        custom_style=body.custom_style,
        aspect_ratio=body.aspect_ratio,
        character_definitions=[c.to_definition() for c in body.characters],
        style_reference_prompt=body.style_reference_prompt,
    ))
    logger.info(f"Created storyboard {project.id} for {controller.user.user_id}")
    return ProjectResponse.from_project(project)


@router.post("/quick", response_model=ProjectResponse, status_code=201)
async def create_quick_storyboard(
    body: QuickStoryboardRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.create_quick_storyboard(body.script_text, body.style, body.aspect_ratio)
    return ProjectResponse.from_project(project)


@router.get("", response_model=List[ProjectSummary])
async def list_storyboards(controller: StoryboardController = Depends(get_controller)):
    return [ProjectSummary.from_project(p) for p in await controller.list_projects()]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_storyboard(project_id: str, controller: StoryboardController = Depends(get_controller)):
    return ProjectResponse.from_project(await controller.get_project(project_id))


@router.delete("/{project_id}", status_code=204)
async def delete_storyboard(project_id: str, controller: StoryboardController = Depends(get_controller)):
    await controller.delete_project(project_id)


@router.patch("/{project_id}/script", response_model=ProjectResponse)
async def update_script(
    project_id: str,
    body: UpdateScriptRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.update_script(project_id, body.script_text, body.genre, body.tone)
    return ProjectResponse.from_project(project)


@router.patch("/{project_id}/style", response_model=ProjectResponse)
async def update_style(
    project_id: str,
    body: UpdateStyleRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.update_style(
        project_id,
        body.visual_style,
        body.custom_style,
        body.aspect_ratio,
        body.style_reference_prompt,
    )
    return ProjectResponse.from_project(project)


@router.put("/{project_id}/style/reference", response_model=ProjectResponse)
async def analyze_style_reference(
    project_id: str,
    file: UploadFile = File(...),
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.analyze_style_reference(project_id, await file.read())
    return ProjectResponse.from_project(project)


@router.put("/{project_id}/characters", response_model=ProjectResponse)
async def update_characters(
    project_id: str,
    body: CharactersRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.update_characters(
        project_id, [c.to_definition() for c in body.characters]
    )
    return ProjectResponse.from_project(project)


@router.put("/{project_id}/characters/{name}/reference", response_model=ProjectResponse)
async def set_character_reference(
    project_id: str,
    name: str,
    file: UploadFile = File(...),
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.set_character_reference(project_id, name, await file.read())
    return ProjectResponse.from_project(project)


@router.post("/{project_id}/characters/{name}/portrait", response_model=ProjectResponse)
@limiter.limit(render_rate_limit)
async def generate_character_portrait(
    request: Request,
    project_id: str,
    name: str,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.generate_character_portrait(project_id, name)
    return ProjectResponse.from_project(project)


# =============================================================================
# SHOTS
# =============================================================================

@router.patch("/{project_id}/shots/{shot_number}", response_model=ProjectResponse)
async def edit_shot(
    project_id: str,
    shot_number: int,
    body: ShotUpdateRequest,
    controller: StoryboardController = Depends(get_controller)
):
    return ProjectResponse.from_project(await controller.edit_shot(project_id, shot_number, body.updates))


@router.post("/{project_id}/shots/{shot_number}/prompt", response_model=ProjectResponse)
async def prompt_edit_shot(
    project_id: str,
    shot_number: int,
    body: PromptEditRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.prompt_edit_shot(project_id, shot_number, body.prompt)
    return ProjectResponse.from_project(project)


@router.post("/{project_id}/shots", response_model=ProjectResponse, status_code=201)
async def insert_shot(
    project_id: str,
    body: InsertShotRequest,
    controller: StoryboardController = Depends(get_controller)
):
    shot = Shot.from_dict(body.shot.model_dump()) if body.shot else None
    return ProjectResponse.from_project(await controller.insert_shot(project_id, body.after, shot))


@router.delete("/{project_id}/shots/{shot_number}", response_model=ProjectResponse)
async def remove_shot(
    project_id: str,
    shot_number: int,
    controller: StoryboardController = Depends(get_controller)
):
    return ProjectResponse.from_project(await controller.remove_shot(project_id, shot_number))


@router.post("/{project_id}/shots/{shot_number}/move", response_model=ProjectResponse)
async def move_shot(
    project_id: str,
    shot_number: int,
    body: MoveShotRequest,
    controller: StoryboardController = Depends(get_controller)
):
    return ProjectResponse.from_project(
        await controller.move_shot(project_id, shot_number, body.to_position)
    )


# =============================================================================
# FRAMES
# =============================================================================

@router.put("/{project_id}/frames/{shot_number}/style", response_model=ProjectResponse)
async def set_frame_style(
    project_id: str,
    shot_number: int,
    body: FrameStyleRequest,
    controller: StoryboardController = Depends(get_controller)
):
    project = await controller.set_frame_style(project_id, shot_number, body.style_override)
    return ProjectResponse.from_project(project)


@router.post("/{project_id}/frames/{shot_number}/generate", response_model=FrameModel)
@limiter.limit(render_rate_limit)
async def regenerate_frame(
    request: Request,
    project_id: str,
    shot_number: int,
    controller: StoryboardController = Depends(get_controller)
):
    return FrameModel.from_frame(await controller.regenerate_frame(project_id, shot_number))


@router.post("/{project_id}/frames/generate-all", response_model=BatchReportResponse)
@limiter.limit(render_rate_limit)
async def generate_all_frames(
    request: Request,
    project_id: str,
    controller: StoryboardController = Depends(get_controller)
):
    return BatchReportResponse.from_report(await controller.generate_all_frames(project_id))


# =============================================================================
# EXPORT
# =============================================================================

@router.get("/{project_id}/export", response_class=PlainTextResponse)
async def export_shot_list(
    project_id: str,
    fmt: str = Query(default="csv", alias="format"),
    controller: StoryboardController = Depends(get_controller)
):
    content = await controller.export_shot_list(project_id, fmt)
    media_type = "text/csv" if fmt == "csv" else "application/json"
    return PlainTextResponse(content, media_type=media_type)

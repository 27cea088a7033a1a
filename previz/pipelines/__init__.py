"""Storyboard pipelines: planning, rendering and batch orchestration."""

from previz.pipelines.base_pipeline import (
    PipelineProgress,
    PipelineResult,
    PipelineStatus,
    PipelineStep,
    StepPipeline,
)
from previz.pipelines.batch_render import BatchRenderReport, GenerateAllFrames
from previz.pipelines.frame_renderer import FrameRenderer, RenderOutcome, RenderRequest
from previz.pipelines.render_gate import RenderGate
from previz.pipelines.render_service import FrameRenderService
from previz.pipelines.shot_planner import QuickStoryboard, ShotPlanner, target_shot_count
from previz.pipelines.storyboard_pipeline import CreateStoryboardPipeline, StoryboardRequest

__all__ = [
    "BatchRenderReport",
    "CreateStoryboardPipeline",
    "FrameRenderService",
    "FrameRenderer",
    "GenerateAllFrames",
    "PipelineProgress",
    "PipelineResult",
    "PipelineStatus",
    "PipelineStep",
    "QuickStoryboard",
    "RenderGate",
    "RenderOutcome",
    "RenderRequest",
    "ShotPlanner",
    "StepPipeline",
    "StoryboardRequest",
    "target_shot_count",
]

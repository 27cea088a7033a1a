"""
Generate All Frames

Renders every pending shot of a project, one request at a time. The
worklist holds the shots pending when the run starts and follows them
through renumbering; each is checked again just before it is rendered,
so a shot rendered or errored in the meantime is skipped. A failing shot
is recorded and the loop moves on.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional

from previz.core.constants import FrameStatus
from previz.core.exceptions import PrevizError
from previz.core.logging_config import get_logger
from previz.pipelines.render_service import FrameRenderService
from previz.storage.project_store import ProjectStateStore
from previz.storyboard.models import Project
from previz.storyboard.shot_list import NumberMapping

logger = get_logger("pipelines.batch_render")


@dataclass
class BatchProgress:
    """Reported after each shot finishes."""
    shot_number: int
    status: FrameStatus
    completed: int
    total: int
    error: Optional[str] = None

    @property
    def percent(self) -> float:
        return self.completed / self.total * 100 if self.total else 100.0


@dataclass
class BatchRenderReport:
    """Outcome of one generate-all run."""
    project_id: str
    rendered: List[int] = field(default_factory=list)
    errored: Dict[int, str] = field(default_factory=dict)
    skipped: List[int] = field(default_factory=list)
    project: Optional[Project] = None
    started_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    @property
    def attempted(self) -> int:
        return len(self.rendered) + len(self.errored)

    @property
    def completed(self) -> bool:
        """The run always completes; per-shot errors never abort it."""
        return True

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "rendered": self.rendered,
            "errored": {str(k): v for k, v in self.errored.items()},
            "skipped": self.skipped,
            "attempted": self.attempted,
            "completed": self.completed,
            "duration_seconds": self.duration_seconds,
        }


class GenerateAllFrames:
    """Single-consumer worklist over a project's pending shots."""

    def __init__(self, service: FrameRenderService, store: ProjectStateStore):
        self.service = service
        self.store = store

    async def run(
        self,
        project_id: str,
        on_progress: Optional[Callable[[BatchProgress], None]] = None
    ) -> BatchRenderReport:
        started = datetime.now()
        report = BatchRenderReport(project_id=project_id, started_at=started)

        project = await self.store.get(project_id)
        worklist: Deque[int] = deque()
        for shot in project.shots:
            if project.frame_status(shot.shot_number) == FrameStatus.PENDING:
                worklist.append(shot.shot_number)
            else:
                report.skipped.append(shot.shot_number)

        total = len(worklist)
        logger.info(f"Generate all for {project_id}: {total} pending, {len(report.skipped)} skipped")

        def follow(mapping: NumberMapping) -> None:
            # queued shots keep their identity across inserts, removals and moves
            moved = [mapping.get(number) for number in worklist]
            worklist.clear()
            worklist.extend(number for number in moved if number is not None)

        unwatch = self.store.watch_renumbering(project_id, follow)
        try:
            while worklist:
                shot_number = worklist.popleft()

                current = await self.store.get(project_id)
                if current.frame_status(shot_number) != FrameStatus.PENDING:
                    logger.info(f"Shot {shot_number} is no longer pending, skipping")
                    report.skipped.append(shot_number)
                    continue

                try:
                    frame = await self.service.render_shot(project_id, shot_number)
                except PrevizError as e:
                    logger.warning(f"Shot {shot_number} failed, continuing: {e.message}")
                    report.errored[shot_number] = e.message
                    status = FrameStatus.ERRORED
                except Exception as e:
                    logger.error(f"Shot {shot_number} failed, continuing: {e}")
                    report.errored[shot_number] = str(e) or type(e).__name__
                    status = FrameStatus.ERRORED
                else:
                    if frame.status == FrameStatus.RENDERED:
                        report.rendered.append(shot_number)
                    else:
                        report.errored[shot_number] = frame.error or "Generation failed"
                    status = frame.status

                if on_progress:
                    on_progress(BatchProgress(
                        shot_number=shot_number,
                        status=status,
                        completed=report.attempted,
                        total=total,
                        error=report.errored.get(shot_number),
                    ))
        finally:
            unwatch()

        # re-read for edits made while the batch ran
        report.project = await self.store.get(project_id)
        report.duration_seconds = (datetime.now() - started).total_seconds()
        logger.info(
            f"Generate all finished for {project_id}: "
            f"{len(report.rendered)} rendered, {len(report.errored)} errored"
        )
        return report

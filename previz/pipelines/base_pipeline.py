"""
Step Pipeline

Runs a fixed sequence of async steps. Each step receives the previous
step's output plus a shared context dict. The first step that raises ends
the run: later steps never execute and the exception is kept on the result
unchanged, so callers can re-raise exactly what went wrong.

A pipeline object holds no per-run state and can be shared between
concurrent runs.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from previz.core.logging_config import get_logger

logger = get_logger("pipelines.base")

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')

StepHandler = Callable[[Any, Dict[str, Any]], Awaitable[Any]]


class PipelineStatus(Enum):
    """Outcome of a pipeline run."""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineStep:
    """One named stage and the coroutine that performs it."""
    name: str
    description: str
    handler: StepHandler


@dataclass
class PipelineProgress:
    """Emitted as each step starts."""
    pipeline: str
    step: str
    current: int
    total: int

    @property
    def percent(self) -> float:
        return self.current / self.total * 100 if self.total else 100.0


@dataclass
class PipelineResult(Generic[OutputT]):
    """Output of the last step, or the step that failed and why."""
    status: PipelineStatus
    output: Optional[OutputT] = None
    exception: Optional[Exception] = None
    failed_step: Optional[str] = None
    steps_completed: int = 0
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.COMPLETED

    @property
    def error(self) -> Optional[str]:
        if self.exception is None:
            return None
        return getattr(self.exception, "message", None) or str(self.exception)

    def unwrap(self) -> OutputT:
        """Return the output, or raise the failing step's exception."""
        if not self.success:
            raise self.exception
        return self.output


class StepPipeline(Generic[InputT, OutputT]):
    """Ordered async steps with fail-fast semantics."""

    def __init__(self, name: str, steps: List[PipelineStep]):
        if not steps:
            raise ValueError(f"Pipeline {name} has no steps")
        self.name = name
        self._steps = list(steps)

    @property
    def steps(self) -> List[PipelineStep]:
        return self._steps.copy()

    async def run(
        self,
        input_data: InputT,
        context: Optional[Dict[str, Any]] = None,
        on_progress: Optional[Callable[[PipelineProgress], None]] = None
    ) -> PipelineResult[OutputT]:
        """
        Run every step in order.

        Args:
            input_data: Input for the first step
            context: Shared values visible to every step
            on_progress: Called with a PipelineProgress as each step starts

        Returns:
            PipelineResult with the last step's output, or the failing step
        """
        context = context if context is not None else {}
        start_time = datetime.now()
        total = len(self._steps)
        logger.info(f"Starting pipeline: {self.name}")

        current_data: Any = input_data
        for index, step in enumerate(self._steps):
            if on_progress:
                on_progress(PipelineProgress(self.name, step.name, index + 1, total))
            logger.debug(f"Executing step: {step.name}")
            try:
                current_data = await step.handler(current_data, context)
            except Exception as e:
                logger.error(f"Pipeline {self.name} failed at {step.name}: {e}")
                return PipelineResult(
                    status=PipelineStatus.FAILED,
                    exception=e,
                    failed_step=step.name,
                    steps_completed=index,
                    duration_seconds=self._elapsed(start_time),
                )

        return PipelineResult(
            status=PipelineStatus.COMPLETED,
            output=current_data,
            steps_completed=total,
            duration_seconds=self._elapsed(start_time),
        )

    @staticmethod
    def _elapsed(start_time: datetime) -> float:
        return (datetime.now() - start_time).total_seconds()

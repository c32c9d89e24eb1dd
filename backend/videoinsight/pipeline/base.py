"""
Pipeline Base Module
====================
Defines the base class for all pipeline stages.

Each stage:
- Has a name, description and orchestrator state
- Owns one step of the progress schedule (step index, start %, end %)
- Invokes exactly one collaborator or sub-component
- Takes a PipelineContext and writes its outputs into it
"""

import logging
import time
from abc import ABC, abstractmethod

from .context import PipelineContext
from ..exceptions import StageExecutionError
from ..logging_config import log_stage_complete, log_stage_error, log_stage_start
from ..models import PipelineState

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """
    Abstract base class for pipeline stages.

    Subclasses must implement:
    - name: Stage identifier
    - description: Human-readable description
    - state: The orchestrator state this stage runs in
    - step, start_progress, end_progress: Progress schedule entry
    - _execute(): The actual stage logic

    The base class handles:
    - State transitions
    - Start and completion progress events
    - Timing and logging
    - Wrapping collaborator failures in StageExecutionError
    """

    step: int = 0
    start_progress: float = 0
    end_progress: float = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this stage."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this stage does."""
        pass

    @property
    @abstractmethod
    def state(self) -> PipelineState:
        """Orchestrator state entered when the stage starts."""
        pass

    @abstractmethod
    def _execute(self, context: PipelineContext) -> None:
        """
        Execute the stage logic.

        This method should modify the context in place, adding its outputs
        to the appropriate context fields.

        Raises:
            Any exception on failure (wrapped by run())
        """
        pass

    def _prepare(self, context: PipelineContext) -> None:
        """Hook run before the start event, for values the start message needs."""
        pass

    def start_message(self, context: PipelineContext) -> str:
        return f"{self.description}..."

    def completion_message(self, context: PipelineContext) -> str:
        return f"{self.name} complete"

    def _get_output_summary(self, context: PipelineContext) -> str:
        """
        Get a summary of what this stage produced.

        Override in subclasses for meaningful summaries.
        """
        return "completed"

    def run(self, context: PipelineContext) -> None:
        """
        Run this pipeline stage.

        Raises:
            StageExecutionError: If the stage's collaborator fails; the
                context is left in the FAILED state
        """
        context.transition(self.state)
        log_stage_start(self.name, context.session_id)
        start_time = time.time()

        try:
            self._prepare(context)
            context.emit(self.step, self.start_message(context), self.start_progress)
            self._execute(context)
        except Exception as e:
            duration = time.time() - start_time
            error_msg = str(e) or e.__class__.__name__
            logger.exception(f"Stage {self.name} failed: {error_msg}")
            log_stage_error(self.name, context.session_id, error_msg, duration)
            context.record_stage(self.name, success=False, duration=duration, error=error_msg)
            context.transition(PipelineState.FAILED)
            raise StageExecutionError(self.name, error_msg) from e

        duration = time.time() - start_time
        summary = self._get_output_summary(context)
        context.record_stage(self.name, success=True, duration=duration, summary=summary)
        log_stage_complete(self.name, context.session_id, duration, summary)
        context.emit(self.step, self.completion_message(context), self.end_progress)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"

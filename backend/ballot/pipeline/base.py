"""
Pipeline Base Module
====================
Defines the base class for all analysis stages.

Each stage:
- Has a name and description
- Takes an AnalysisContext and modifies it
- May settle the request early by setting context.response
- Tracks execution time and status

A stage that raises is recorded as failed and the request is finished with
the stage's error type; nothing escapes run().
"""

import logging
import time
from abc import ABC, abstractmethod

from ..logging_config import log_stage_start, log_stage_complete, log_stage_error
from ..models import ErrorType
from .context import AnalysisContext

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """
    Abstract base class for analysis stages.

    Subclasses must implement:
    - name: Stage identifier
    - description: Human-readable description
    - _execute(): The actual stage logic

    Subclasses may override:
    - error_type: ErrorType reported when the stage raises
    - _error_message(): Caller-facing message for a raised exception
    """

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
    def error_type(self) -> ErrorType:
        return ErrorType.MODEL_ERROR

    @abstractmethod
    def _execute(self, context: AnalysisContext) -> None:
        """
        Execute the stage logic, writing outputs to the context.

        Raises:
            Any exception on failure (will be caught by run())
        """
        pass

    def _get_output_summary(self, context: AnalysisContext) -> str:
        return "completed"

    def _error_message(self, error: Exception) -> str:
        return f"Analysis failed: {str(error)}"

    def run(self, context: AnalysisContext) -> bool:
        """
        Run this stage.

        Handles timing, logging and error handling.

        Returns:
            True if the stage completed successfully, False otherwise
        """
        log_stage_start(self.name, context.request_id)
        start_time = time.time()

        try:
            self._execute(context)
        except Exception as e:
            duration = time.time() - start_time
            error_msg = str(e)
            logger.exception(f"Stage {self.name} failed: {error_msg}")
            log_stage_error(self.name, context.request_id, error_msg, duration)
            context.record_stage(self.name, success=False, duration=duration, error=error_msg)
            context.fail(self.error_type, self._error_message(e))
            return False

        duration = time.time() - start_time
        summary = self._get_output_summary(context)
        log_stage_complete(self.name, context.request_id, duration, summary)
        context.record_stage(self.name, success=True, duration=duration, summary=summary)
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"


class ConditionalStage(PipelineStage):
    """
    A stage that only runs if a condition is met.
    """

    @abstractmethod
    def should_run(self, context: AnalysisContext) -> bool:
        pass

    def run(self, context: AnalysisContext) -> bool:
        """Run the stage only if condition is met."""
        if not self.should_run(context):
            logger.info(f"Skipping stage {self.name}: condition not met")
            context.record_stage(
                self.name,
                success=True,
                duration=0.0,
                summary="skipped (condition not met)"
            )
            return True

        return super().run(context)

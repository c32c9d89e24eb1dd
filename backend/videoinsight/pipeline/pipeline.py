"""
Analysis Pipeline Module
========================
The stage orchestrator: validates a request, branches into the demo engine
or runs the real stages in order, assembles the result and always cleans
up the upload and working directory.

Usage:
    from videoinsight.pipeline import AnalysisPipeline, AnalysisRequest, SessionRegistry

    pipeline = AnalysisPipeline(registry=SessionRegistry())
    result = pipeline.run(AnalysisRequest(
        video_path="uploads/abc.mp4",
        original_filename="clip.mp4",
        mime_type="video/mp4",
        credential="sk-...",
        session_id="session_123",
    ))
"""

import logging
import os
import time
from typing import Callable, List, Optional

from .base import PipelineStage
from .context import AnalysisRequest, PipelineContext
from .demo import DEMO_COMPLETE_EVENT, DEMO_PROGRESS_SCHEDULE, DemoEngine
from .progress import SessionRegistry
from .stages import default_stages
from ..config import AppConfig, get_config
from ..exceptions import InputValidationError, StageExecutionError
from ..logging_config import get_pipeline_logger, log_pipeline_decision
from ..models import AnalysisResult, PipelineState, utc_timestamp
from ..utils.video_utils import allowed_file, allowed_mime_type, remove_path

logger = logging.getLogger(__name__)

COMPLETE_EVENT = (6, "Processing complete! 🎉", 100)

BACKEND_LABELS = {"openai": "OpenAI", "gemini": "Gemini"}


def _default_collaborator_factory(credential: str, config: AppConfig):
    from ..services import build_collaborators

    return build_collaborators(credential, config)


class AnalysisPipeline:
    """
    Stage orchestrator for one processing request at a time.

    A single instance may serve concurrent requests: every run() gets its
    own PipelineContext, and the only shared state is the injected
    SessionRegistry.
    """

    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        config: Optional[AppConfig] = None,
        collaborator_factory: Optional[Callable] = None,
        sleep: Callable[[float], None] = time.sleep,
        demo_engine: Optional[DemoEngine] = None,
        stages: Optional[List[PipelineStage]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            registry: Session registry progress events are pushed to
            config: Configuration to use. If None, uses global config.
            collaborator_factory: callable(credential, config) -> Collaborators
            sleep: Delay function used between synthetic demo events
            demo_engine: Demo result generator
            stages: Stage instances to run. If None, uses default stages.
        """
        self.registry = registry
        self.config = config or get_config()
        self.collaborator_factory = collaborator_factory or _default_collaborator_factory
        self.sleep = sleep
        self.demo_engine = demo_engine or DemoEngine()
        self.stages = stages if stages is not None else default_stages()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def is_demo_request(self, request: AnalysisRequest) -> bool:
        """Demo when explicitly flagged or when the credential is a sentinel (case-sensitive)."""
        return bool(request.demo) or request.credential in self.config.demo.sentinels

    def validate_media(self, request: AnalysisRequest) -> None:
        """
        Check the uploaded payload.

        Raises:
            InputValidationError: Missing file, wrong type or too large
        """
        video_config = self.config.video

        if not request.video_path or not os.path.isfile(request.video_path):
            raise InputValidationError("No video file uploaded", field_name="video")

        if not allowed_mime_type(request.mime_type, video_config):
            raise InputValidationError("Only MP4 files are allowed", field_name="video")

        if not allowed_file(request.display_name, video_config):
            raise InputValidationError("Only MP4 files are allowed", field_name="video")

        size_bytes = request.size_bytes
        if size_bytes is None:
            size_bytes = os.path.getsize(request.video_path)
        if size_bytes > video_config.max_file_size_bytes:
            max_mb = video_config.max_file_size_bytes // (1024 * 1024)
            raise InputValidationError(
                f"File too large. Maximum size is {max_mb}MB.", field_name="video"
            )

    def validate_credential(self, request: AnalysisRequest) -> None:
        """
        Check the credential shape for the configured backend.

        Raises:
            InputValidationError: Empty or wrongly prefixed credential
        """
        inference = self.config.inference
        credential = request.credential
        if not isinstance(credential, str) or not credential or not credential.startswith(inference.key_prefix):
            label = BACKEND_LABELS.get(inference.backend, inference.backend)
            raise InputValidationError(
                f'Invalid {label} API key. Use "demo" for demo mode without API calls.',
                field_name="apiKey",
            )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def run(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Process one request.

        Returns:
            The assembled AnalysisResult

        Raises:
            InputValidationError: Request rejected before any stage ran
            StageExecutionError: A collaborator failed; cleanup already ran
        """
        context = PipelineContext(request=request, config=self.config, registry=self.registry)
        log = get_pipeline_logger(context.session_id)
        log.info(f"Processing request for {request.display_name or '<no file>'}")

        try:
            try:
                self.validate_media(request)
                demo = self.is_demo_request(request)
                if not demo:
                    self.validate_credential(request)
            except InputValidationError as e:
                log.warning(f"Rejected request: {e.message}")
                context.transition(PipelineState.FAILED)
                raise

            if demo:
                result = self._run_demo(context)
            else:
                result = self._run_stages(context)
        except (InputValidationError, StageExecutionError):
            self._close_session(context)
            raise
        finally:
            self._cleanup(context)

        context.transition(PipelineState.COMPLETED)
        step, message, progress = DEMO_COMPLETE_EVENT if result.is_demo else COMPLETE_EVENT
        context.emit(step, message, progress)
        self._close_session(context)

        log.info(f"Processing completed in {context.processing_time}")
        return result

    def _run_demo(self, context: PipelineContext) -> AnalysisResult:
        """Play back the synthetic schedule and return the canned result."""
        context.transition(PipelineState.DEMO)
        log_pipeline_decision(
            "demo_branch",
            {
                'explicit_flag': bool(context.request.demo),
                'sentinel_credential': context.request.credential in self.config.demo.sentinels,
            },
            session_id=context.session_id,
        )

        delay = self.config.demo.step_delay_seconds
        for step, message, progress in DEMO_PROGRESS_SCHEDULE:
            context.emit(step, message, progress)
            if delay > 0:
                self.sleep(delay)

        result = self.demo_engine.generate(
            context.request.display_name,
            processed_at=utc_timestamp(),
            session_id=context.session_id,
        )
        context.analysis_result = result
        return result

    def _run_stages(self, context: PipelineContext) -> AnalysisResult:
        """Run every stage in order, then assemble the result."""
        try:
            context.collaborators = self.collaborator_factory(context.request.credential, self.config)
            context.create_work_dir()
        except Exception as e:
            logger.exception(f"Failed to prepare pipeline run: {e}")
            context.transition(PipelineState.FAILED)
            raise StageExecutionError("setup", str(e) or e.__class__.__name__) from e

        for stage in self.stages:
            stage.run(context)

        context.transition(PipelineState.ASSEMBLING)
        try:
            return context.finalize()
        except Exception as e:
            logger.exception(f"Failed to assemble result: {e}")
            context.transition(PipelineState.FAILED)
            raise StageExecutionError("assembling", str(e)) from e

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    def _cleanup(self, context: PipelineContext) -> None:
        """Remove the upload and the working directory; never raises."""
        for path in (context.request.video_path, context.work_dir):
            if not path:
                continue
            try:
                if remove_path(path):
                    logger.debug(f"Removed {path}")
            except Exception as e:
                logger.error(f"Cleanup error for {path}: {e}")

    def _close_session(self, context: PipelineContext) -> None:
        if self.registry is not None:
            self.registry.close(context.session_id)

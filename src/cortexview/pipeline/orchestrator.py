"""The capture -> gate -> analyze -> store pipeline.

One call to :meth:`AnalysisOrchestrator.run_pipeline` performs exactly
one request/response cycle and always yields one
:class:`AnalysisResponse`. The only exception it raises is
:class:`PipelineValidationError`, for caller mistakes detected before
any I/O happens.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from cortexview.analysis.base import AnalysisProvider
from cortexview.capture.base import CaptureError, WindowCaptureSource
from cortexview.detection.change import ChangeDetector
from cortexview.domain.models import (
    AnalysisRequest,
    AnalysisResponse,
    AuditEntry,
    Persona,
    PipelineStage,
)
from cortexview.storage.audit import AuditLog
from cortexview.storage.local import LocalStorage

logger = logging.getLogger(__name__)

EMPTY_CAPTURE_MESSAGE = "Screenshot capture returned empty data."
CANCELLED_MESSAGE = "Analysis was cancelled."
NO_PREVIOUS_CAPTURE_MESSAGE = "No previous capture to retry."


class PipelineValidationError(ValueError):
    """Raised when run_pipeline is called with invalid arguments."""


class AnalysisOrchestrator:
    """Coordinates capture, change gating, analysis and storage.

    Runs are serialized: scheduled and manual invocations share one
    :class:`ChangeDetector`, so only one run may touch it at a time.
    Each run accepts an optional :class:`asyncio.Event`; setting it
    aborts that run only.

    Example usage::

        orchestrator = AnalysisOrchestrator(capture, ChangeDetector(), provider, storage)
        response = await orchestrator.run_pipeline(
            hwnd, "Visual Studio Code", persona, sensitivity_threshold=0.10,
        )
    """

    def __init__(
        self,
        capture: WindowCaptureSource,
        detector: ChangeDetector,
        analyzer: AnalysisProvider,
        storage: LocalStorage,
        audit: AuditLog | None = None,
        analysis_timeout: float | None = 120.0,
    ) -> None:
        self._capture = capture
        self._detector = detector
        self._analyzer = analyzer
        self._storage = storage
        self._audit = audit
        self._analysis_timeout = analysis_timeout
        self._run_lock = asyncio.Lock()
        self._stage = PipelineStage.IDLE
        self._last_capture: tuple[bytes, str] | None = None

    @property
    def stage(self) -> PipelineStage:
        """Stage of the current (or most recent) run."""
        return self._stage

    @property
    def storage(self) -> LocalStorage:
        return self._storage

    @property
    def is_busy(self) -> bool:
        return self._run_lock.locked()

    @property
    def has_last_capture(self) -> bool:
        return self._last_capture is not None

    async def run_pipeline(
        self,
        window_handle: int,
        window_title: str,
        persona: Persona | None,
        sensitivity_threshold: float,
        force: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> AnalysisResponse:
        """Capture the window and, if warranted, analyze and store it.

        Args:
            window_handle: Platform window handle to capture.
            window_title: Title of the window; must not be blank.
            persona: Persona whose prompt and sampling parameters are used.
            sensitivity_threshold: Changed fraction (0-1) at or above which
                the capture is analyzed.
            force: Skip change detection entirely (the detector is not
                consulted, so its state is left untouched).
            cancel: Optional event that aborts this run when set.

        Returns:
            The analysis response, or a failure response describing why
            no analysis happened.

        Raises:
            PipelineValidationError: If persona or title are missing or
                invalid, or the threshold is outside [0, 1].
        """
        _validate_persona(persona)
        if not window_title or not window_title.strip():
            raise PipelineValidationError("window_title must not be blank")
        if not 0.0 <= sensitivity_threshold <= 1.0:
            raise PipelineValidationError(
                f"sensitivity_threshold must be within [0, 1], got {sensitivity_threshold}"
            )

        async with self._run_lock:
            self._stage = PipelineStage.IDLE
            return await self._run_cancellable(
                self._capture_and_analyze(
                    window_handle, window_title, persona, sensitivity_threshold, force
                ),
                cancel,
            )

    async def reanalyze_last(
        self,
        persona: Persona | None,
        cancel: asyncio.Event | None = None,
    ) -> AnalysisResponse:
        """Analyze the last successfully analyzed capture again.

        Re-enters the pipeline at the request-building stage with the
        cached image and window title, bypassing capture and gating.
        Useful for asking for another suggestion, possibly with a
        different persona.
        """
        _validate_persona(persona)

        async with self._run_lock:
            if self._last_capture is None:
                return self._fail(NO_PREVIOUS_CAPTURE_MESSAGE)
            image_data, window_title = self._last_capture
            self._stage = PipelineStage.IDLE

            async def steps() -> AnalysisResponse:
                return await self._guarded(
                    self._analyze_and_store(image_data, window_title, persona)
                )

            return await self._run_cancellable(steps(), cancel)

    async def _capture_and_analyze(
        self,
        window_handle: int,
        window_title: str,
        persona: Persona,
        threshold: float,
        force: bool,
    ) -> AnalysisResponse:
        async def steps() -> AnalysisResponse:
            self._enter(PipelineStage.CAPTURING)
            image_data = await self._capture.capture_window(window_handle)
            if not image_data:
                return self._fail(EMPTY_CAPTURE_MESSAGE)

            if not force:
                self._enter(PipelineStage.GATE_CHECK)
                fraction = self._detector.compute_changed_fraction(image_data)
                if not self._detector.is_significant_change(fraction, threshold):
                    return self._fail(
                        f"No significant change detected ({fraction:.1%} < {threshold:.1%})."
                    )
                logger.debug("Change %.1f%% >= %.1f%%, analyzing", fraction * 100, threshold * 100)

            return await self._analyze_and_store(image_data, window_title, persona)

        return await self._guarded(steps())

    async def _analyze_and_store(
        self,
        image_data: bytes,
        window_title: str,
        persona: Persona,
    ) -> AnalysisResponse:
        self._enter(PipelineStage.BUILDING)
        ocr_text = self._detector.try_extract_ocr_text(image_data)
        request = AnalysisRequest.for_persona(image_data, window_title, persona, ocr_text)

        self._enter(PipelineStage.ANALYZING)
        analysis = self._analyzer.analyze_image(request)
        if self._analysis_timeout is None:
            response = await analysis
        else:
            try:
                response = await asyncio.wait_for(analysis, timeout=self._analysis_timeout)
            except asyncio.TimeoutError:
                return self._fail(f"Analysis timed out after {self._analysis_timeout:g}s.")

        if not response.is_success:
            self._stage = PipelineStage.FAILED
            logger.info("Analysis failed: %s", response.error_message)
            return response

        self._last_capture = (image_data, window_title)
        self._enter(PipelineStage.PERSISTING)
        image_path = await self._persist(image_data, window_title, persona, response)

        self._enter(PipelineStage.DONE)
        logger.info(
            "Analysis complete for %r (persona=%s, tokens=%d)",
            window_title, persona.name, response.token_usage,
        )
        return response.with_image_path(image_path)

    async def _persist(
        self,
        image_data: bytes,
        window_title: str,
        persona: Persona,
        response: AnalysisResponse,
    ) -> str | None:
        """Store the capture and append an audit entry, both best-effort."""
        image_path = None
        try:
            image_path = await self._storage.save_screenshot(image_data, persona.name)
        except Exception as e:
            logger.warning("Storing capture failed: %s", e)

        if self._audit is not None:
            entry = AuditEntry(
                persona=persona.name,
                image_path=image_path,
                token_usage=response.token_usage,
                request_context=window_title,
            )
            try:
                await self._audit.log_interaction(entry)
            except Exception as e:
                logger.warning("Writing audit entry failed: %s", e)

        return image_path

    async def _guarded(self, steps: Awaitable[AnalysisResponse]) -> AnalysisResponse:
        """Convert runtime faults inside a run into failure responses."""
        try:
            return await steps
        except CaptureError as e:
            return self._fail(f"Capture failed: {e}")
        except Exception as e:
            logger.exception("Unexpected pipeline error")
            return self._fail(f"Unexpected error: {e}")

    async def _run_cancellable(
        self,
        steps: Awaitable[AnalysisResponse],
        cancel: asyncio.Event | None,
    ) -> AnalysisResponse:
        """Run ``steps``, returning a cancellation failure if ``cancel`` fires first.

        Cancellation of the calling task, or a CancelledError raised by a
        collaborator, is reported the same way instead of propagating.
        """
        if cancel is not None and cancel.is_set():
            steps.close()
            return self._fail(CANCELLED_MESSAGE)

        task = asyncio.ensure_future(steps)
        waiters: set[asyncio.Future] = {task}
        cancel_waiter = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            if task not in done:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                return self._fail(CANCELLED_MESSAGE)
            return task.result()
        except asyncio.CancelledError:
            task.cancel()
            return self._fail(CANCELLED_MESSAGE)
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

    def _enter(self, stage: PipelineStage) -> None:
        logger.debug("Pipeline stage: %s -> %s", self._stage.value, stage.value)
        self._stage = stage

    def _fail(self, message: str) -> AnalysisResponse:
        logger.info("Pipeline run failed at %s: %s", self._stage.value, message)
        self._stage = PipelineStage.FAILED
        return AnalysisResponse.failure(message)


def _validate_persona(persona: Persona | None) -> None:
    if persona is None:
        raise PipelineValidationError("persona is required")
    if not persona.is_valid():
        raise PipelineValidationError(f"persona {persona.name!r} is not valid")

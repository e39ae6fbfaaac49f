"""Tests for the AnalysisOrchestrator pipeline."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from cortexview.capture.base import CaptureError
from cortexview.detection.change import ChangeDetector
from cortexview.domain.models import (
    CONTEXT_PREAMBLE,
    AnalysisRequest,
    AnalysisResponse,
    DetectorState,
    Persona,
    PipelineStage,
)
from cortexview.pipeline.orchestrator import (
    CANCELLED_MESSAGE,
    NO_PREVIOUS_CAPTURE_MESSAGE,
    AnalysisOrchestrator,
    PipelineValidationError,
)


@pytest.fixture
def orchestrator(
    mock_capture: MagicMock,
    detector: ChangeDetector,
    mock_analyzer: MagicMock,
    mock_storage: MagicMock,
    mock_audit: MagicMock,
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        capture=mock_capture,
        detector=detector,
        analyzer=mock_analyzer,
        storage=mock_storage,
        audit=mock_audit,
    )


async def _run(orchestrator: AnalysisOrchestrator, persona: Persona, **kwargs) -> AnalysisResponse:
    kwargs.setdefault("sensitivity_threshold", 0.10)
    return await orchestrator.run_pipeline(1234, "Visual Studio Code", persona, **kwargs)


class TestValidation:
    """Caller mistakes are raised before any I/O happens."""

    @pytest.mark.asyncio
    async def test_missing_persona(self, orchestrator, mock_capture) -> None:
        with pytest.raises(PipelineValidationError):
            await orchestrator.run_pipeline(1, "Editor", None, 0.1)
        mock_capture.capture_window.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_persona(self, orchestrator, mock_capture) -> None:
        persona = Persona(name="Broken", system_prompt="   ")
        with pytest.raises(PipelineValidationError):
            await orchestrator.run_pipeline(1, "Editor", persona, 0.1)
        mock_capture.capture_window.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   "])
    async def test_blank_title(self, orchestrator, mock_capture, sample_persona, title) -> None:
        with pytest.raises(PipelineValidationError):
            await orchestrator.run_pipeline(1, title, sample_persona, 0.1)
        mock_capture.capture_window.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threshold", [-0.01, 1.5])
    async def test_threshold_out_of_range(self, orchestrator, sample_persona, threshold) -> None:
        with pytest.raises(PipelineValidationError):
            await orchestrator.run_pipeline(1, "Editor", sample_persona, threshold)


class TestSuccessfulRun:
    """A significant change is analyzed, stored and audited."""

    @pytest.mark.asyncio
    async def test_first_capture_is_analyzed(
        self, orchestrator, sample_persona, mock_analyzer, mock_storage
    ) -> None:
        response = await _run(orchestrator, sample_persona)

        assert response.is_success
        assert response.suggestion_text == "Looks good."
        assert response.token_usage == 7
        assert response.image_path == "/captures/shot.png"
        mock_analyzer.analyze_image.assert_awaited_once()
        mock_storage.save_screenshot.assert_awaited_once()
        assert orchestrator.stage is PipelineStage.DONE

    @pytest.mark.asyncio
    async def test_request_carries_persona_and_context(
        self, orchestrator, sample_persona, mock_analyzer, black_png
    ) -> None:
        await _run(orchestrator, sample_persona)

        request: AnalysisRequest = mock_analyzer.analyze_image.call_args.args[0]
        assert request.image_data == black_png
        assert request.window_title == "Visual Studio Code"
        assert request.system_prompt == sample_persona.system_prompt
        assert request.temperature == 0.3
        assert request.top_p == 0.9
        assert request.max_tokens == 512
        assert request.user_prompt == CONTEXT_PREAMBLE
        assert request.ocr_text == ""

    @pytest.mark.asyncio
    async def test_ocr_text_is_forwarded(
        self, mock_capture, mock_analyzer, mock_storage, sample_persona
    ) -> None:
        engine = MagicMock()
        engine.extract_text.return_value = "print('hi')"
        orchestrator = AnalysisOrchestrator(
            mock_capture, ChangeDetector(ocr_engine=engine), mock_analyzer, mock_storage
        )

        await _run(orchestrator, sample_persona)

        request = mock_analyzer.analyze_image.call_args.args[0]
        assert request.ocr_text == "print('hi')"

    @pytest.mark.asyncio
    async def test_storage_uses_persona_name(
        self, orchestrator, sample_persona, mock_storage, black_png
    ) -> None:
        await _run(orchestrator, sample_persona)
        mock_storage.save_screenshot.assert_awaited_once_with(black_png, "Code Reviewer")

    @pytest.mark.asyncio
    async def test_audit_entry_written(self, orchestrator, sample_persona, mock_audit) -> None:
        await _run(orchestrator, sample_persona)

        entry = mock_audit.log_interaction.call_args.args[0]
        assert entry.persona == "Code Reviewer"
        assert entry.image_path == "/captures/shot.png"
        assert entry.token_usage == 7
        assert entry.request_context == "Visual Studio Code"

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(
        self, orchestrator, sample_persona, mock_storage, mock_audit
    ) -> None:
        mock_storage.save_screenshot.side_effect = OSError("disk full")

        response = await _run(orchestrator, sample_persona)

        assert response.is_success
        assert response.image_path is None
        mock_audit.log_interaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_audit_failure_is_swallowed(
        self, orchestrator, sample_persona, mock_audit
    ) -> None:
        mock_audit.log_interaction.side_effect = RuntimeError("audit broken")
        response = await _run(orchestrator, sample_persona)
        assert response.is_success

    @pytest.mark.asyncio
    async def test_storage_disabled_returns_no_path(
        self, orchestrator, sample_persona, mock_storage
    ) -> None:
        mock_storage.save_screenshot.return_value = None
        response = await _run(orchestrator, sample_persona)
        assert response.is_success
        assert response.image_path is None


class TestGating:
    """Change detection decides whether to analyze."""

    @pytest.mark.asyncio
    async def test_unchanged_capture_is_not_analyzed(
        self, orchestrator, sample_persona, mock_analyzer, mock_storage
    ) -> None:
        await _run(orchestrator, sample_persona)
        mock_analyzer.analyze_image.reset_mock()
        mock_storage.save_screenshot.reset_mock()

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert "no significant change" in response.error_message.lower()
        assert "0.0%" in response.error_message
        assert "10.0%" in response.error_message
        mock_analyzer.analyze_image.assert_not_called()
        mock_storage.save_screenshot.assert_not_called()
        assert orchestrator.stage is PipelineStage.FAILED

    @pytest.mark.asyncio
    async def test_identical_four_byte_capture_twice(
        self, mock_capture, detector, mock_analyzer, mock_storage, sample_persona
    ) -> None:
        mock_capture.capture_window.return_value = b"\x01\x02\x03\x04"
        orchestrator = AnalysisOrchestrator(mock_capture, detector, mock_analyzer, mock_storage)

        first = await _run(orchestrator, sample_persona)
        second = await _run(orchestrator, sample_persona)

        assert first.is_success
        assert not second.is_success
        assert "no significant change" in second.error_message.lower()
        assert mock_analyzer.analyze_image.await_count == 1

    @pytest.mark.asyncio
    async def test_change_at_threshold_is_analyzed(
        self, mock_capture, mock_analyzer, mock_storage, sample_persona
    ) -> None:
        detector = MagicMock(spec=ChangeDetector)
        detector.compute_changed_fraction.return_value = 0.25
        detector.is_significant_change.side_effect = lambda f, t: f >= t
        detector.try_extract_ocr_text.return_value = None
        orchestrator = AnalysisOrchestrator(mock_capture, detector, mock_analyzer, mock_storage)

        response = await _run(orchestrator, sample_persona, sensitivity_threshold=0.25)

        assert response.is_success
        mock_analyzer.analyze_image.assert_awaited_once()
        mock_storage.save_screenshot.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_force_never_consults_detector(
        self, mock_capture, mock_analyzer, mock_storage, sample_persona
    ) -> None:
        detector = MagicMock(spec=ChangeDetector)
        detector.try_extract_ocr_text.return_value = None
        orchestrator = AnalysisOrchestrator(mock_capture, detector, mock_analyzer, mock_storage)

        response = await _run(orchestrator, sample_persona, force=True)

        assert response.is_success
        detector.compute_changed_fraction.assert_not_called()
        detector.is_significant_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_forced_run_leaves_detector_state(
        self, orchestrator, detector, sample_persona, mock_analyzer
    ) -> None:
        await _run(orchestrator, sample_persona, force=True)
        assert detector.state == DetectorState()

        # The following scheduled run still sees a fresh detector.
        response = await _run(orchestrator, sample_persona)
        assert response.is_success
        assert mock_analyzer.analyze_image.await_count == 2


class TestFailures:
    """Runtime faults become failure responses."""

    @pytest.mark.asyncio
    async def test_empty_capture(self, orchestrator, sample_persona, mock_capture, mock_analyzer) -> None:
        mock_capture.capture_window.return_value = b""

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert "empty" in response.error_message
        mock_analyzer.analyze_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_capture_error(self, orchestrator, sample_persona, mock_capture) -> None:
        mock_capture.capture_window.side_effect = CaptureError("Invalid window dimensions: 0x0")

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert response.error_message == "Capture failed: Invalid window dimensions: 0x0"

    @pytest.mark.asyncio
    async def test_backend_failure_passes_through(
        self, orchestrator, sample_persona, mock_analyzer, mock_storage, mock_audit
    ) -> None:
        mock_analyzer.analyze_image.return_value = AnalysisResponse.failure("backend error")

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert response.error_message == "backend error"
        mock_storage.save_screenshot.assert_not_called()
        mock_audit.log_interaction.assert_not_called()
        assert not orchestrator.has_last_capture

    @pytest.mark.asyncio
    async def test_unexpected_error(self, orchestrator, sample_persona, mock_analyzer) -> None:
        mock_analyzer.analyze_image.side_effect = RuntimeError("boom")

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert response.error_message == "Unexpected error: boom"
        assert orchestrator.stage is PipelineStage.FAILED

    @pytest.mark.asyncio
    async def test_analysis_timeout(
        self, mock_capture, detector, mock_analyzer, mock_storage, sample_persona
    ) -> None:
        async def slow(request):
            await asyncio.sleep(5)

        mock_analyzer.analyze_image.side_effect = slow
        orchestrator = AnalysisOrchestrator(
            mock_capture, detector, mock_analyzer, mock_storage, analysis_timeout=0.05
        )

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert response.error_message == "Analysis timed out after 0.05s."
        mock_storage.save_screenshot.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [None, 120.0])
    async def test_capture_timeout_is_not_an_analysis_timeout(
        self, mock_capture, detector, mock_analyzer, mock_storage, sample_persona, timeout
    ) -> None:
        mock_capture.capture_window.side_effect = TimeoutError("socket read timed out")
        orchestrator = AnalysisOrchestrator(
            mock_capture, detector, mock_analyzer, mock_storage, analysis_timeout=timeout
        )

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert response.error_message == "Unexpected error: socket read timed out"
        mock_analyzer.analyze_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_timeout_configured(
        self, mock_capture, detector, mock_analyzer, mock_storage, sample_persona
    ) -> None:
        orchestrator = AnalysisOrchestrator(
            mock_capture, detector, mock_analyzer, mock_storage, analysis_timeout=None
        )

        response = await _run(orchestrator, sample_persona)

        assert response.is_success


class TestCancellation:
    """Cancellation yields a failure response, never an exception."""

    @pytest.mark.asyncio
    async def test_cancel_during_capture(self, orchestrator, sample_persona, mock_capture, mock_analyzer) -> None:
        cancel = asyncio.Event()

        async def slow_capture(handle):
            cancel.set()
            await asyncio.sleep(5)

        mock_capture.capture_window.side_effect = slow_capture

        response = await _run(orchestrator, sample_persona, cancel=cancel)

        assert not response.is_success
        assert response.error_message == CANCELLED_MESSAGE
        mock_analyzer.analyze_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_collaborator_raises_cancelled(self, orchestrator, sample_persona, mock_capture) -> None:
        mock_capture.capture_window.side_effect = asyncio.CancelledError()

        response = await _run(orchestrator, sample_persona)

        assert not response.is_success
        assert "cancelled" in response.error_message

    @pytest.mark.asyncio
    async def test_cancel_during_analysis(
        self, orchestrator, sample_persona, mock_analyzer, mock_storage
    ) -> None:
        cancel = asyncio.Event()

        async def slow(request):
            cancel.set()
            await asyncio.sleep(5)

        mock_analyzer.analyze_image.side_effect = slow

        response = await _run(orchestrator, sample_persona, cancel=cancel)

        assert response.error_message == CANCELLED_MESSAGE
        mock_storage.save_screenshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_cancelled(self, orchestrator, sample_persona, mock_capture) -> None:
        cancel = asyncio.Event()
        cancel.set()

        response = await _run(orchestrator, sample_persona, cancel=cancel)

        assert response.error_message == CANCELLED_MESSAGE
        mock_capture.capture_window.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_only_affects_its_run(self, orchestrator, sample_persona) -> None:
        cancel = asyncio.Event()
        cancel.set()
        await _run(orchestrator, sample_persona, cancel=cancel)

        response = await _run(orchestrator, sample_persona)
        assert response.is_success


class TestSerialization:
    """Concurrent invocations never overlap."""

    @pytest.mark.asyncio
    async def test_runs_do_not_overlap(self, orchestrator, sample_persona, mock_analyzer) -> None:
        active = 0
        peak = 0

        async def tracked(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return AnalysisResponse.success("ok")

        mock_analyzer.analyze_image.side_effect = tracked

        await asyncio.gather(*(_run(orchestrator, sample_persona, force=True) for _ in range(3)))

        assert peak == 1
        assert mock_analyzer.analyze_image.await_count == 3


class TestReanalyzeLast:
    """Retrying the last capture skips capture and gating."""

    @pytest.mark.asyncio
    async def test_no_previous_capture(self, orchestrator, sample_persona) -> None:
        response = await orchestrator.reanalyze_last(sample_persona)
        assert response.error_message == NO_PREVIOUS_CAPTURE_MESSAGE

    @pytest.mark.asyncio
    async def test_reuses_cached_capture(
        self, orchestrator, sample_persona, mock_capture, mock_analyzer, black_png
    ) -> None:
        await _run(orchestrator, sample_persona)
        other = Persona(name="Explainer", system_prompt="Explain the code.")

        response = await orchestrator.reanalyze_last(other)

        assert response.is_success
        assert mock_capture.capture_window.await_count == 1
        request = mock_analyzer.analyze_image.call_args.args[0]
        assert request.image_data == black_png
        assert request.system_prompt == "Explain the code."
        assert request.window_title == "Visual Studio Code"

    @pytest.mark.asyncio
    async def test_requires_persona(self, orchestrator) -> None:
        with pytest.raises(PipelineValidationError):
            await orchestrator.reanalyze_last(None)

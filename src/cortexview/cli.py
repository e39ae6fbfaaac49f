"""Command-line interface for cortexview.

Provides the main entry point for one-off captures, scheduled
monitoring of a window, and storage/persona housekeeping.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def _fraction(value: str) -> float:
    number = float(value)
    if not 0.0 <= number <= 1.0:
        raise argparse.ArgumentTypeError(f"must be within [0, 1], got {value}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="cortexview",
        description="Change-gated window capture and multimodal analysis",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/cortexview.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    window = argparse.ArgumentParser(add_help=False)
    window.add_argument(
        "--window-handle", type=int, default=0,
        help="Platform window handle to capture (ignored for file capture)",
    )
    window.add_argument(
        "--window-title", type=str, default="Untitled window",
        help="Window title sent as context with the capture",
    )
    window.add_argument(
        "--persona", type=str, default=None,
        help="Persona name (default: first persona found)",
    )

    subparsers.add_parser("capture", parents=[window], help="Capture and analyze once (no change gating)")
    monitor_parser = subparsers.add_parser(
        "monitor", parents=[window], help="Capture periodically and analyze significant changes",
    )
    monitor_parser.add_argument(
        "--interval", type=_positive_float, default=None,
        help="Seconds between captures (default: monitoring.interval_seconds)",
    )
    monitor_parser.add_argument(
        "--sensitivity", type=_fraction, default=None,
        help="Changed fraction (0-1) that triggers analysis (default: monitoring.sensitivity)",
    )
    monitor_parser.add_argument(
        "--duration", type=_positive_float, default=None,
        help="Stop after this many seconds (default: run until Ctrl-C)",
    )

    subparsers.add_parser("personas", help="List available personas")
    subparsers.add_parser("cleanup", help="Delete stored captures older than the retention period")
    subparsers.add_parser("purge", help="Delete all stored captures")

    return parser.parse_args(argv)


def build_provider(settings):
    """Build the analysis provider selected in the configuration."""
    analysis = settings.analysis

    if analysis.provider == "mock":
        from cortexview.analysis.mock import MockAnalysisProvider
        return MockAnalysisProvider(delay_seconds=analysis.mock_delay_seconds)

    if analysis.provider == "openai":
        from cortexview.analysis.openai import OpenAIProvider
        api_key = settings.openai_api_key.get_secret_value()
        base_url = analysis.base_url
        # If OpenRouter key is set, use it
        or_key = settings.openrouter_api_key.get_secret_value()
        if or_key:
            api_key = or_key
            if not base_url:
                base_url = OPENROUTER_BASE_URL
        return OpenAIProvider(api_key=api_key, model=analysis.model, base_url=base_url)

    from cortexview.analysis.anthropic import AnthropicProvider
    if analysis.provider == "bedrock":
        return AnthropicProvider(model=analysis.model, aws_region=analysis.aws_region)
    return AnthropicProvider(
        api_key=settings.anthropic_api_key.get_secret_value(),
        model=analysis.model,
    )


def build_capture(settings):
    """Build the capture source selected in the configuration."""
    if settings.capture.source == "file":
        from cortexview.capture.file import ImageFileCapture
        if not settings.capture.image_path:
            raise SystemExit("capture.image_path is required when capture.source is 'file'")
        return ImageFileCapture(settings.capture.image_path)

    from cortexview.capture.screen import ScreenWindowCapture
    return ScreenWindowCapture()


def build_storage(settings):
    from cortexview.storage.local import LocalStorage
    return LocalStorage(
        directory=Path(settings.storage.path).expanduser(),
        enabled=settings.storage.enabled,
        retention_days=settings.storage.retention_days,
    )


def build_orchestrator(settings):
    """Wire capture, detection, analysis and storage into an orchestrator."""
    from cortexview.detection.change import ChangeDetector
    from cortexview.pipeline.orchestrator import AnalysisOrchestrator
    from cortexview.storage.audit import AuditLog

    storage = build_storage(settings)
    audit = AuditLog(storage.directory) if storage.enabled else None
    return AnalysisOrchestrator(
        capture=build_capture(settings),
        detector=ChangeDetector(),
        analyzer=build_provider(settings),
        storage=storage,
        audit=audit,
        analysis_timeout=settings.analysis.timeout_seconds,
    )


def _select_persona(settings, name: str | None):
    from cortexview.prompts.library import PersonaLibrary

    library = PersonaLibrary(settings.prompts.directory)
    if name is None:
        return library.load_personas()[0]
    persona = library.get(name)
    if persona is None:
        raise SystemExit(f"Unknown persona: {name}")
    return persona


def _print_response(response) -> None:
    print()
    if response.is_success:
        print(response.suggestion_text)
        print(f"\nTokens used: {response.token_usage}")
        if response.image_path:
            print(f"Saved capture: {response.image_path}")
    else:
        print(f"[{response.timestamp:%H:%M:%S}] {response.error_message}")


async def _capture_once(settings, args) -> None:
    """Run one forced capture + analysis."""
    persona = _select_persona(settings, args.persona)
    orchestrator = build_orchestrator(settings)
    response = await orchestrator.run_pipeline(
        args.window_handle,
        args.window_title,
        persona,
        settings.monitoring.sensitivity,
        force=True,
    )
    _print_response(response)


async def _monitor(settings, args) -> None:
    """Run scheduled monitoring until interrupted or ``--duration`` elapses."""
    from cortexview.pipeline.monitor import MonitoringSession

    persona = _select_persona(settings, args.persona)
    interval = (
        args.interval if args.interval is not None else settings.monitoring.interval_seconds
    )
    sensitivity = (
        args.sensitivity if args.sensitivity is not None else settings.monitoring.sensitivity
    )
    orchestrator = build_orchestrator(settings)
    await orchestrator.storage.cleanup_old_files()

    session = MonitoringSession(
        orchestrator,
        args.window_handle,
        args.window_title,
        persona,
        sensitivity=sensitivity,
        interval=interval,
        on_result=_print_response,
    )
    print(f"Monitoring '{args.window_title}' every {interval:g}s with persona '{persona.name}'")
    print("Press Ctrl-C to stop.")
    session.start()
    try:
        if args.duration is not None:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        session.close()
        await session.wait_idle()
        print(f"\nCompleted runs: {session.completed_runs}, skipped ticks: {session.skipped_ticks}")


def _list_personas(settings) -> None:
    from cortexview.prompts.library import PersonaLibrary

    library = PersonaLibrary(settings.prompts.directory)
    for persona in library.load_personas():
        print(
            f"{persona.name}  (temperature={persona.temperature}, "
            f"top_p={persona.top_p}, max_tokens={persona.max_tokens})"
        )


async def _cleanup(settings) -> None:
    removed = await build_storage(settings).cleanup_old_files()
    print(f"Removed {removed} capture(s) older than {settings.storage.retention_days} day(s)")


async def _purge(settings) -> None:
    storage = build_storage(settings)
    await storage.purge_all()
    print(f"Purged all captures in {storage.directory}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the cortexview CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from cortexview.config.settings import load_settings
    from cortexview.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    try:
        if args.command == "capture":
            logger.info("Capturing window %r", args.window_title)
            asyncio.run(_capture_once(settings, args))

        elif args.command == "monitor":
            logger.info("Starting monitoring of %r", args.window_title)
            asyncio.run(_monitor(settings, args))

        elif args.command == "personas":
            _list_personas(settings)

        elif args.command == "cleanup":
            asyncio.run(_cleanup(settings))

        elif args.command == "purge":
            asyncio.run(_purge(settings))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)


if __name__ == "__main__":
    main()

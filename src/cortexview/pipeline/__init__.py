"""Analysis pipeline for cortexview.

Contains the orchestrator that runs one capture -> gate -> analyze ->
store cycle, the thread-safe periodic scheduler, and the monitoring
session that drives the orchestrator from scheduler ticks.

Public API:
    AnalysisOrchestrator -- Single pipeline run
    MonitoringScheduler -- Periodic trigger
    MonitoringSession -- Scheduled + manual runs for one window
"""

from cortexview.pipeline.monitor import MonitoringSession
from cortexview.pipeline.orchestrator import AnalysisOrchestrator, PipelineValidationError
from cortexview.pipeline.scheduler import MonitoringScheduler, SchedulerClosedError

__all__ = [
    "AnalysisOrchestrator",
    "MonitoringScheduler",
    "MonitoringSession",
    "PipelineValidationError",
    "SchedulerClosedError",
]

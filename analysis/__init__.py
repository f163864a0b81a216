"""Frame-sampling analysis pipeline exports."""

from analysis.report import ReportExporter
from analysis.scheduler import FrameScheduler, SchedulerSettings
from analysis.session import AnalysisSession, SessionListener, SessionStatus

__all__ = [
    "AnalysisSession",
    "FrameScheduler",
    "ReportExporter",
    "SchedulerSettings",
    "SessionListener",
    "SessionStatus",
]

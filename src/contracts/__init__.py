"""
Canonical contracts shared by the offline pack manager and the offline analyzer.

- `errors`: the failure taxonomy raised by stage code
- `progress`: best-effort progress events consumed by a UI sink
- `report`: the validated automation-opportunity report

Stage code should consume/produce these contract objects (not ad-hoc dicts).
"""

from .errors import (
    ConfigurationMissing,
    DownloadFailed,
    ExtractionFailed,
    ExtractionInsufficient,
    InferenceFailed,
    IntegrityCheckFailed,
    InvalidModelOutput,
    InvalidPackFormat,
    ManifestUnavailable,
    OfflineError,
)
from .progress import AnalysisStage, PackStatus, ProgressCallback, ProgressEvent
from .report import (
    AnalysisReport,
    AutomationOpportunity,
    CurrentState,
    DetailedAnalysis,
    ExecutiveSummary,
    ImplementationPhase,
    Rating,
    SopReference,
    TechnicalRequirements,
)

__all__ = [
    "OfflineError",
    "ManifestUnavailable",
    "DownloadFailed",
    "IntegrityCheckFailed",
    "InvalidPackFormat",
    "ConfigurationMissing",
    "InferenceFailed",
    "ExtractionFailed",
    "ExtractionInsufficient",
    "InvalidModelOutput",
    "AnalysisStage",
    "PackStatus",
    "ProgressCallback",
    "ProgressEvent",
    "AnalysisReport",
    "AutomationOpportunity",
    "CurrentState",
    "DetailedAnalysis",
    "ExecutiveSummary",
    "ImplementationPhase",
    "Rating",
    "SopReference",
    "TechnicalRequirements",
]

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AnalysisStage(str, Enum):
    EXTRACTING = "extracting"
    OCR = "ocr"
    PROMPT = "prompt"
    MODEL = "model"
    PARSING = "parsing"
    DONE = "done"
    ERROR = "error"


class PackStatus(str, Enum):
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """
    Best-effort progress notification for a UI sink.

    `stage` is an `AnalysisStage` value for analysis runs or a `PackStatus`
    value for install/update runs. `percent` is clamped into [0, 100].
    """

    stage: str
    percent: float
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "percent": self.percent, **self.fields}


ProgressCallback = Callable[[ProgressEvent], None]


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def emit(on_progress: ProgressCallback | None, stage: str, percent: float, **fields: Any) -> None:
    """
    Deliver a progress event. Sink failures never abort the operation being reported.
    """

    if on_progress is None:
        return
    try:
        on_progress(ProgressEvent(stage=stage, percent=clamp_percent(percent), fields=dict(fields)))
    except Exception:  # noqa: BLE001 - progress sinks are UI collaborators
        logger.debug("progress sink raised; event dropped", exc_info=True)

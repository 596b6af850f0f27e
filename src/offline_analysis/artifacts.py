from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from .contracts import AnalysisResult


def serialize_analysis_result(result: AnalysisResult) -> str:
    payload: dict[str, Any] = result.to_dict()
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n"


def write_analysis_result_json(*, result: AnalysisResult, out_file: Path) -> None:
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(serialize_analysis_result(result), encoding="utf-8")


def result_filename(file_path: str) -> str:
    """
    Deterministic, filesystem-safe `<stem>.analysis.json` name for a source PDF.
    """
    s = file_path.replace("\\", "/").split("/")[-1]
    if s.lower().endswith(".pdf"):
        s = s[: -len(".pdf")]
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    return f"{s or 'pdf'}.analysis.json"

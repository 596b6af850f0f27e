from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class Page:
    page_number: int  # 1-indexed
    text: str  # whitespace-collapsed, trimmed


@dataclass(frozen=True, slots=True)
class InferenceConfig:
    """
    llama.cpp sampling and scheduling parameters.

    `threads=None` means "cpu_count - 1, at least 1". `timeout_s=None` waits
    for the process indefinitely; the progress ramp is driven by
    `expected_duration_s` either way.
    """

    ctx_size: int = 4096
    n_predict: int = 1536
    temperature: float = 0.2
    top_p: float = 0.9
    repeat_penalty: float = 1.1
    threads: int | None = None
    timeout_s: float | None = None
    expected_duration_s: float = 120.0
    progress_interval_s: float = 1.0

    def __post_init__(self) -> None:
        if self.ctx_size <= 0 or self.n_predict <= 0:
            raise ValueError("ctx_size and n_predict must be positive")
        if self.threads is not None and self.threads < 1:
            raise ValueError("threads must be >= 1")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        if self.expected_duration_s <= 0 or self.progress_interval_s <= 0:
            raise ValueError("expected_duration_s and progress_interval_s must be > 0")

    def resolved_threads(self) -> int:
        if self.threads is not None:
            return self.threads
        return max(1, (os.cpu_count() or 4) - 1)


@dataclass(frozen=True, slots=True)
class AnalysisConfig:
    """
    Offline analysis configuration.

    `resources_dir` is the writable, user-installed pack location;
    `fallback_resources_dir` is an optional read-only pack shipped with the
    application. Both are passed in explicitly; no environment variable reads.
    """

    resources_dir: Path
    platform_key: str
    fallback_resources_dir: Path | None = None
    min_text_chars: int = 500
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    ocr_timeout_s: float = 600.0

    def __post_init__(self) -> None:
        if not isinstance(self.resources_dir, Path):
            raise TypeError("resources_dir must be pathlib.Path")
        if self.fallback_resources_dir is not None and not isinstance(self.fallback_resources_dir, Path):
            raise TypeError("fallback_resources_dir must be pathlib.Path")
        if self.min_text_chars < 0:
            raise ValueError("min_text_chars must be >= 0")
        if self.ocr_timeout_s <= 0:
            raise ValueError("ocr_timeout_s must be > 0")

    def resource_dirs(self) -> list[Path]:
        """Search order for model and binaries: user install first, then the bundled fallback."""

        dirs = [self.resources_dir]
        if self.fallback_resources_dir is not None:
            dirs.append(self.fallback_resources_dir)
        return dirs


@dataclass(frozen=True, slots=True)
class AnalysisError:
    code: str
    message: str
    detail: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    ok: bool
    file_path: str
    report: dict[str, Any] | None  # camelCase report payload, validated
    errors: list[AnalysisError]
    meta: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

from __future__ import annotations

from typing import Any


class OfflineError(Exception):
    """
    Base class for every failure raised by the offline pack and analysis stages.

    `code` is a stable identifier copied into result records and CLI output;
    `detail` carries machine-readable context (paths, exit codes, counts).
    """

    code = "OFFLINE_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ManifestUnavailable(OfflineError):
    """Remote manifest could not be fetched or parsed. Callers fall back to a full-pack install."""

    code = "MANIFEST_UNAVAILABLE"


class DownloadFailed(OfflineError):
    code = "DOWNLOAD_FAILED"


class IntegrityCheckFailed(OfflineError):
    code = "INTEGRITY_CHECK_FAILED"


class InvalidPackFormat(OfflineError):
    code = "INVALID_PACK_FORMAT"


class ConfigurationMissing(OfflineError):
    code = "CONFIGURATION_MISSING"


class InferenceFailed(OfflineError):
    code = "INFERENCE_FAILED"

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
        detail: dict[str, Any] | None = None,
    ) -> None:
        merged = {"returncode": returncode, "stderr": stderr[-4000:]}
        merged.update(detail or {})
        super().__init__(message, detail=merged)
        self.returncode = returncode
        self.stderr = stderr


class ExtractionFailed(OfflineError):
    """The PDF could not be opened or its text layer could not be read."""

    code = "EXTRACTION_FAILED"


class ExtractionInsufficient(OfflineError):
    code = "EXTRACTION_INSUFFICIENT"

    def __init__(
        self,
        message: str,
        *,
        total_chars: int,
        non_empty_pages: int,
        page_count: int,
        ocr_attempted: bool,
    ) -> None:
        super().__init__(
            message,
            detail={
                "total_chars": total_chars,
                "non_empty_pages": non_empty_pages,
                "page_count": page_count,
                "ocr_attempted": ocr_attempted,
            },
        )
        self.total_chars = total_chars
        self.non_empty_pages = non_empty_pages
        self.page_count = page_count
        self.ocr_attempted = ocr_attempted


class InvalidModelOutput(OfflineError):
    code = "INVALID_MODEL_OUTPUT"

    def __init__(self, message: str, *, snippet: str = "", detail: dict[str, Any] | None = None) -> None:
        merged = {"snippet": snippet}
        merged.update(detail or {})
        super().__init__(message, detail=merged)
        self.snippet = snippet

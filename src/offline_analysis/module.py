from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any, Sequence

from contracts.errors import ExtractionInsufficient, OfflineError
from contracts.progress import AnalysisStage, ProgressCallback, ProgressEvent, emit
from offline_pack.layout import Capabilities, ResourceLayout, probe_capabilities

from .contracts import AnalysisConfig, AnalysisError, AnalysisResult, Page
from .engines import TextExtractionEngine
from .inference import InferenceRunner, LlamaCliRunner
from .ocr_runner import OcrMyPdfRunner, OcrRunner
from .prompt import TRUNCATION_MARKER, build_prompt
from .report_schema import validate_report
from .response import extract_json
from .text_extractor import extract, is_insufficient, text_yield

logger = logging.getLogger(__name__)

# Progress bands per stage; the model band (35..95) is owned by the inference runner.
EXTRACT_END = 25.0
OCR_START = 25.0
PROMPT_START = 30.0
MODEL_START = 35.0
PARSING_START = 97.0


def insufficient_text_message(*, total_chars: int, non_empty_pages: int, page_count: int, ocr_attempted: bool) -> str:
    base = [
        "Offline analysis could not extract readable text from this PDF.",
        f"Extracted text: {total_chars} characters across {non_empty_pages}/{page_count} pages.",
        "This usually means the PDF is scanned (image-only) or otherwise has no selectable text layer.",
    ]
    if ocr_attempted:
        nxt = [
            "An OCR attempt was made using `ocrmypdf`, but the resulting text was still too small.",
            "Fix options: (1) Use Online mode for this document, or (2) run OCR externally to create a"
            " searchable PDF, then retry Offline mode.",
        ]
    else:
        nxt = [
            "Fix options: (1) Use Online mode for this document, or (2) install an OCR tool and retry.",
            "To enable automatic offline OCR fallback, install `ocrmypdf` and ensure it is on PATH, then retry.",
        ]
    return " ".join(base + nxt)


def _failed(file_path: str, code: str, message: str, detail: dict[str, Any] | None, meta: dict[str, Any]) -> AnalysisResult:
    return AnalysisResult(
        ok=False,
        file_path=file_path,
        report=None,
        errors=[AnalysisError(code=code, message=message, detail=detail)],
        meta=meta,
    )


def _extract_with_progress(
    pdf_file: Path, *, engine: TextExtractionEngine | None, on_progress: ProgressCallback | None, stage: str, start: float, end: float
) -> list[Page]:
    def _on_page(page_number: int, total_pages: int) -> None:
        frac = page_number / total_pages if total_pages else 1.0
        emit(on_progress, stage, start + (end - start) * frac, pageNumber=page_number, totalPages=total_pages)

    return extract(pdf_file, on_progress=_on_page, engine=engine)


def _default_ocr_runner(config: AnalysisConfig, capabilities: Capabilities | None) -> OcrRunner:
    if capabilities is None:
        capabilities = probe_capabilities(ResourceLayout(base_dir=config.resources_dir, platform_key=config.platform_key))
    return OcrMyPdfRunner(capabilities, timeout_s=config.ocr_timeout_s)


def _run_pipeline(
    pdf_file: Path,
    *,
    config: AnalysisConfig,
    runner: InferenceRunner,
    ocr_runner: OcrRunner,
    engine: TextExtractionEngine | None,
    on_progress: ProgressCallback | None,
    meta: dict[str, Any],
) -> dict[str, Any]:
    emit(on_progress, AnalysisStage.EXTRACTING.value, 0)
    pages = _extract_with_progress(
        pdf_file, engine=engine, on_progress=on_progress, stage=AnalysisStage.EXTRACTING.value, start=0, end=EXTRACT_END
    )

    ocr_attempted = False
    if is_insufficient(pages, config.min_text_chars):
        if ocr_runner.available():
            ocr_attempted = True
            emit(on_progress, AnalysisStage.OCR.value, OCR_START)
            with tempfile.TemporaryDirectory(prefix="sop-analyzer-ocr-") as work:
                ocr_pdf = ocr_runner.run(pdf_file, work_dir=Path(work))
                if ocr_pdf is not None:
                    pages = _extract_with_progress(
                        ocr_pdf,
                        engine=engine,
                        on_progress=on_progress,
                        stage=AnalysisStage.OCR.value,
                        start=OCR_START,
                        end=PROMPT_START,
                    )
                    meta["ocr_used"] = True

        if is_insufficient(pages, config.min_text_chars):
            total_chars, non_empty = text_yield(pages)
            raise ExtractionInsufficient(
                insufficient_text_message(
                    total_chars=total_chars, non_empty_pages=non_empty, page_count=len(pages), ocr_attempted=ocr_attempted
                ),
                total_chars=total_chars,
                non_empty_pages=non_empty,
                page_count=len(pages),
                ocr_attempted=ocr_attempted,
            )

    total_chars, non_empty = text_yield(pages)
    meta.update({"page_count": len(pages), "total_chars": total_chars, "non_empty_pages": non_empty})

    emit(on_progress, AnalysisStage.PROMPT.value, PROMPT_START)
    prompt = build_prompt(pages, ctx_size=config.inference.ctx_size, predict_tokens=config.inference.n_predict)
    meta["prompt_chars"] = len(prompt)
    meta["prompt_truncated"] = TRUNCATION_MARKER in prompt

    emit(on_progress, AnalysisStage.MODEL.value, MODEL_START)
    raw = runner.run(prompt, on_progress=on_progress)

    emit(on_progress, AnalysisStage.PARSING.value, PARSING_START)
    payload = extract_json(raw)
    report = validate_report(payload, page_count=len(pages))
    return report.to_dict()


def analyze_pdf(
    file_path: Path,
    *,
    config: AnalysisConfig,
    capabilities: Capabilities | None = None,
    runner: InferenceRunner | None = None,
    ocr_runner: OcrRunner | None = None,
    engine: TextExtractionEngine | None = None,
    on_progress: ProgressCallback | None = None,
) -> AnalysisResult:
    """
    Analyze one PDF fully offline: extract text (OCR fallback), build a bounded
    prompt, run the local model, extract and validate the JSON report.

    Stage failures are returned as coded errors on the result, not raised.
    """

    file_str = str(file_path)
    meta: dict[str, Any] = {"ocr_used": False}

    if file_path.suffix.lower() != ".pdf":
        return _failed(
            file_str,
            "ANALYSIS_INPUT_NOT_PDF",
            "Offline analysis only accepts PDFs (by .pdf extension)",
            {"file_path": file_str},
            meta,
        )
    if not file_path.is_file():
        return _failed(file_str, "ANALYSIS_INPUT_NOT_FOUND", "Input PDF not found", {"file_path": file_str}, meta)

    runner = runner or LlamaCliRunner(config.resource_dirs(), config.platform_key, config.inference)
    ocr_runner = ocr_runner or _default_ocr_runner(config, capabilities)

    try:
        report = _run_pipeline(
            file_path,
            config=config,
            runner=runner,
            ocr_runner=ocr_runner,
            engine=engine,
            on_progress=on_progress,
            meta=meta,
        )
    except OfflineError as e:
        logger.warning("Offline analysis of %s failed: %s: %s", file_path.name, e.code, e.message)
        emit(on_progress, AnalysisStage.ERROR.value, 100, code=e.code)
        return _failed(file_str, e.code, e.message, e.detail, meta)

    emit(on_progress, AnalysisStage.DONE.value, 100)
    return AnalysisResult(ok=True, file_path=file_str, report=report, errors=[], meta=meta)


def _with_batch_fields(on_progress: ProgressCallback | None, *, file_index: int, total_files: int) -> ProgressCallback | None:
    if on_progress is None:
        return None

    def _forward(event: ProgressEvent) -> None:
        on_progress(
            ProgressEvent(
                stage=event.stage,
                percent=event.percent,
                fields={**event.fields, "fileIndex": file_index, "totalFiles": total_files},
            )
        )

    return _forward


def analyze_pdf_paths(
    file_paths: Sequence[Any],
    *,
    config: AnalysisConfig,
    capabilities: Capabilities | None = None,
    runner: InferenceRunner | None = None,
    ocr_runner: OcrRunner | None = None,
    engine: TextExtractionEngine | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[AnalysisResult]:
    """
    Analyze several PDFs strictly one after another. A failing file never
    stops the batch; each entry gets its own result, in input order.
    """

    if ocr_runner is None:
        ocr_runner = _default_ocr_runner(config, capabilities)

    results: list[AnalysisResult] = []
    total = len(file_paths)
    for idx, entry in enumerate(file_paths, start=1):
        if not isinstance(entry, (str, Path)) or str(entry).strip() == "":
            results.append(
                _failed(
                    str(entry),
                    "ANALYSIS_INVALID_PATH",
                    "Batch entry is not a file path",
                    {"index": idx - 1, "type": type(entry).__name__},
                    {},
                )
            )
            continue

        path = Path(entry)
        try:
            result = analyze_pdf(
                path,
                config=config,
                runner=runner,
                ocr_runner=ocr_runner,
                engine=engine,
                on_progress=_with_batch_fields(on_progress, file_index=idx, total_files=total),
            )
        except Exception as e:
            logger.exception("Unexpected failure analyzing %s", path)
            result = _failed(
                str(path), "ANALYSIS_UNEXPECTED_ERROR", "Offline analysis failed unexpectedly", {"error": repr(e)}, {}
            )
        results.append(result)
    return results

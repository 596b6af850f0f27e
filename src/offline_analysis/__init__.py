"""
Offline SOP analysis (PDF -> validated automation-opportunity report, no network).

Pipeline:
- extract the PDF text layer per page (pypdfium2), OCR fallback via `ocrmypdf`
- build a context-window-bounded prompt with `--- PAGE N ---` markers
- run the bundled llama.cpp CLI on the bundled GGUF model
- recover the JSON object from the model output and validate it against the report schema

Model, binary and OCR tools come from a resource directory managed by `offline_pack`.
"""

from .contracts import AnalysisConfig, AnalysisError, AnalysisResult, InferenceConfig, Page
from .inference import InferenceRunner, LlamaCliRunner
from .module import analyze_pdf, analyze_pdf_paths
from .ocr_runner import OcrMyPdfRunner, OcrRunner
from .prompt import build_prompt, prompt_char_budget
from .report_schema import REPORT_SCHEMA, validate_report
from .response import extract_json, extract_json_text
from .text_extractor import extract, is_insufficient, text_yield

__all__ = [
    "AnalysisConfig",
    "AnalysisError",
    "AnalysisResult",
    "InferenceConfig",
    "InferenceRunner",
    "LlamaCliRunner",
    "OcrMyPdfRunner",
    "OcrRunner",
    "Page",
    "REPORT_SCHEMA",
    "analyze_pdf",
    "analyze_pdf_paths",
    "build_prompt",
    "extract",
    "extract_json",
    "extract_json_text",
    "is_insufficient",
    "prompt_char_budget",
    "text_yield",
    "validate_report",
]

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable

from contracts.errors import ExtractionFailed

from .contracts import Page
from .engines import Pypdfium2TextEngine, TextExtractionEngine

logger = logging.getLogger(__name__)

PageProgress = Callable[[int, int], None]  # (page_number, total_pages)

_WS_RE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def extract(
    file_path: Path,
    on_progress: PageProgress | None = None,
    engine: TextExtractionEngine | None = None,
) -> list[Page]:
    """
    Extract the text layer of every page, in order.

    Raises `ExtractionFailed` when the document cannot be opened or read; an
    image-only PDF is NOT a failure here (it yields pages with empty text).
    """

    engine = engine or Pypdfium2TextEngine()
    pages: list[Page] = []
    try:
        for page_number, total_pages, raw in engine.iter_page_text(pdf_file=file_path):
            if on_progress is not None:
                on_progress(page_number, total_pages)
            pages.append(Page(page_number=page_number, text=normalize_whitespace(raw or "")))
    except ExtractionFailed:
        raise
    except Exception as e:
        raise ExtractionFailed(
            f"Could not read PDF text: {e}",
            detail={"file_path": str(file_path), "backend": engine.backend_id(), "error": repr(e)},
        ) from e

    logger.debug("Extracted %d pages from %s via %s", len(pages), file_path, engine.backend_id())
    return pages


def text_yield(pages: list[Page]) -> tuple[int, int]:
    """Return `(total_chars, non_empty_pages)`."""

    total_chars = sum(len(p.text) for p in pages)
    non_empty = sum(1 for p in pages if p.text.strip())
    return total_chars, non_empty


def is_insufficient(pages: list[Page], min_chars: int = 500) -> bool:
    total_chars, non_empty = text_yield(pages)
    return non_empty == 0 or total_chars < min_chars

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator


class TextExtractionEngine(ABC):
    """
    PDF text-layer extraction engine abstraction.

    Engines must:
    - Yield every page, in document order, 1-indexed
    - Return the raw text layer only (no OCR, no layout inference)
    - Raise on unreadable input rather than yielding empty pages
    """

    @abstractmethod
    def backend_id(self) -> str:
        raise NotImplementedError

    def backend_version(self) -> str | None:
        return None

    @abstractmethod
    def iter_page_text(self, *, pdf_file: Path) -> Iterator[tuple[int, int, str]]:
        """
        Yield `(page_number, total_pages, raw_text)` for each page.
        """

        raise NotImplementedError

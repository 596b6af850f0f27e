from __future__ import annotations

from pathlib import Path
from typing import Iterator

from .base import TextExtractionEngine


class Pypdfium2TextEngine(TextExtractionEngine):
    def backend_id(self) -> str:
        return "pypdfium2"

    def backend_version(self) -> str | None:
        try:
            import pypdfium2 as pdfium  # type: ignore

            return getattr(pdfium, "__version__", None)
        except Exception:
            return None

    def _require_pdfium(self):
        try:
            import pypdfium2 as pdfium  # type: ignore

            return pdfium
        except ImportError as e:
            raise RuntimeError(
                "Missing dependency: pypdfium2 is required for PDF text extraction."
            ) from e

    def iter_page_text(self, *, pdf_file: Path) -> Iterator[tuple[int, int, str]]:
        pdfium = self._require_pdfium()
        doc = pdfium.PdfDocument(str(pdf_file))
        try:
            page_count = len(doc)
            for idx in range(page_count):
                page = doc[idx]
                textpage = page.get_textpage()
                try:
                    text = textpage.get_text_range()
                finally:
                    textpage.close()
                    page.close()
                yield idx + 1, page_count, text
        finally:
            doc.close()

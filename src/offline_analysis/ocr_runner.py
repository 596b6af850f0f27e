from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from offline_pack.layout import Capabilities

logger = logging.getLogger(__name__)

OCRMYPDF_ARGS = ("--skip-text", "--optimize", "0", "--output-type", "pdf")


class OcrRunner(ABC):
    """
    Best-effort conversion of an image-only PDF into a searchable PDF.

    `run` returns the path of the OCR'd PDF, or None when OCR is unavailable
    or failed. It never raises for tool failures.
    """

    @abstractmethod
    def available(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def run(self, input_pdf: Path, *, work_dir: Path) -> Path | None:
        raise NotImplementedError


class OcrMyPdfRunner(OcrRunner):
    """`ocrmypdf` subprocess, bundled toolchain first, then PATH."""

    def __init__(self, capabilities: Capabilities, *, timeout_s: float = 600.0) -> None:
        self._caps = capabilities
        self._timeout_s = timeout_s

    def available(self) -> bool:
        return self._caps.ocr_available and self._caps.ocr_entrypoint is not None

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self._caps.ocr_search_dirs:
            prefix = os.pathsep.join(str(d) for d in self._caps.ocr_search_dirs)
            env["PATH"] = prefix + os.pathsep + env.get("PATH", "")
        return env

    def run(self, input_pdf: Path, *, work_dir: Path) -> Path | None:
        if not self.available():
            return None

        creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if os.name == "nt" else 0
        logger.info("Running OCR fallback on %s", input_pdf.name)
        try:
            ocr_dir = Path(tempfile.mkdtemp(prefix="ocr-", dir=str(work_dir)))
            # ocrmypdf reads from a private copy: the caller's file is never touched.
            source = ocr_dir / "input.pdf"
            shutil.copyfile(input_pdf, source)
            output = ocr_dir / "ocr.pdf"

            cmd = [str(self._caps.ocr_entrypoint), *OCRMYPDF_ARGS, str(source), str(output)]
            proc = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self._timeout_s,
                env=self._env(),
                creationflags=creationflags,
            )
        except FileNotFoundError:
            logger.warning("OCR entrypoint not found: %s", self._caps.ocr_entrypoint)
            return None
        except subprocess.TimeoutExpired:
            logger.warning("OCR timed out after %.0fs on %s", self._timeout_s, input_pdf.name)
            return None
        except OSError as e:
            logger.warning("OCR could not run on %s: %s", input_pdf.name, e)
            return None

        if proc.returncode != 0 or not output.is_file():
            logger.warning("ocrmypdf exited with %s: %s", proc.returncode, proc.stderr[-2000:])
            return None
        return output

from __future__ import annotations

import platform
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .contracts import InstalledManifest
from .manifest_store import read_local

MODEL_FILENAME = "model-8b-q4.gguf"

_LLAMA_BINARY_NAMES = ("llama", "llama-cli", "main")


def current_platform_key() -> str:
    """
    Platform key used in the pack layout and the remote manifest, e.g. `win-x64`, `mac-arm64`.
    """

    machine = platform.machine().lower()
    arch = "arm64" if machine in ("arm64", "aarch64") else "x64" if machine in ("x86_64", "amd64") else machine
    if sys.platform == "darwin":
        return "mac-arm64" if arch == "arm64" else "mac-x64"
    if sys.platform == "win32":
        return "win-x64"
    return f"{sys.platform}-{arch}"


def is_windows_key(platform_key: str) -> bool:
    return platform_key.startswith("win")


@dataclass(frozen=True, slots=True)
class ResourceLayout:
    """
    Expected on-disk locations of pack artifacts for one platform:

        models/<model-file>
        llama/<platform>/<llama|llama-cli|main>[.exe]
        ocr/<platform>/ocrmypdf[.exe]
        ocr/<platform>/tesseract/tesseract[.exe]
        ocr/<platform>/ghostscript/bin/<gs|gswin64c.exe>
    """

    base_dir: Path
    platform_key: str

    @property
    def _exe(self) -> str:
        return ".exe" if is_windows_key(self.platform_key) else ""

    @property
    def model_path(self) -> Path:
        return self.base_dir / "models" / MODEL_FILENAME

    @property
    def llama_dir(self) -> Path:
        return self.base_dir / "llama" / self.platform_key

    def llama_candidates(self) -> list[Path]:
        return [self.llama_dir / f"{name}{self._exe}" for name in _LLAMA_BINARY_NAMES]

    def find_llama_binary(self) -> Path | None:
        for candidate in self.llama_candidates():
            if candidate.is_file():
                return candidate
        return None

    @property
    def ocr_dir(self) -> Path:
        return self.base_dir / "ocr" / self.platform_key

    @property
    def ocrmypdf_path(self) -> Path:
        return self.ocr_dir / f"ocrmypdf{self._exe}"

    @property
    def tesseract_path(self) -> Path:
        return self.ocr_dir / "tesseract" / f"tesseract{self._exe}"

    @property
    def ghostscript_path(self) -> Path:
        name = "gswin64c.exe" if is_windows_key(self.platform_key) else "gs"
        return self.ocr_dir / "ghostscript" / "bin" / name

    def missing_required(self) -> list[Path]:
        """Model and inference binary; the OCR toolchain is optional."""

        missing: list[Path] = []
        if not self.model_path.is_file():
            missing.append(self.model_path)
        if self.find_llama_binary() is None:
            missing.append(self.llama_candidates()[0])
        return missing

    def executable_paths(self) -> list[Path]:
        return [*self.llama_candidates(), self.ocrmypdf_path, self.tesseract_path, self.ghostscript_path]


@dataclass(frozen=True, slots=True)
class ResourceDirectory:
    """
    Explicit handle on a local resource tree: its path plus the install record loaded from it.

    Passed into every installer/updater/analyzer call instead of resolving a
    per-user data location implicitly.
    """

    base_dir: Path
    manifest: InstalledManifest | None = None

    @staticmethod
    def load(base_dir: Path) -> "ResourceDirectory":
        base = base_dir.expanduser().resolve()
        return ResourceDirectory(base_dir=base, manifest=read_local(base))

    def reload(self) -> "ResourceDirectory":
        return ResourceDirectory.load(self.base_dir)

    def layout(self, platform_key: str) -> ResourceLayout:
        return ResourceLayout(base_dir=self.base_dir, platform_key=platform_key)


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Optional local tooling, probed once per session and passed into the analysis pipeline."""

    ocr_available: bool
    ocr_entrypoint: Path | None = None
    ocr_search_dirs: tuple[Path, ...] = ()


def probe_capabilities(
    layout: ResourceLayout, *, which: Callable[[str], str | None] = shutil.which
) -> Capabilities:
    """
    OCR counts as available only when the entrypoint AND its runtime
    dependencies (OCR engine + rasterizer) are present. The bundled toolchain
    wins over tools found on PATH.
    """

    bundled = (layout.ocrmypdf_path, layout.tesseract_path, layout.ghostscript_path)
    if all(p.is_file() for p in bundled):
        return Capabilities(
            ocr_available=True,
            ocr_entrypoint=layout.ocrmypdf_path,
            ocr_search_dirs=(layout.ocr_dir, layout.tesseract_path.parent, layout.ghostscript_path.parent),
        )

    entry = which("ocrmypdf")
    engine = which("tesseract")
    rasterizer = which("gs") or which("gswin64c")
    if entry and engine and rasterizer:
        return Capabilities(ocr_available=True, ocr_entrypoint=Path(entry))

    return Capabilities(ocr_available=False)

from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path

from contracts.errors import InvalidPackFormat

from .data_access import resolve_under_base_dir
from .layout import ResourceLayout

logger = logging.getLogger(__name__)


def extract_zip(zip_path: Path, dest_dir: Path) -> list[Path]:
    """
    Extract every member of `zip_path` under `dest_dir` (merging with existing content).

    Members that would land outside `dest_dir` make the whole archive invalid;
    nothing is written in that case.
    """

    dest_dir.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(zip_path) as zf:
            members = zf.infolist()
            for info in members:
                resolve_under_base_dir(base_dir=dest_dir, relpath=info.filename)
            written: list[Path] = []
            for info in members:
                target = resolve_under_base_dir(base_dir=dest_dir, relpath=info.filename)
                zf.extract(info, path=dest_dir)
                # Keep POSIX permission bits recorded by the archiver (e.g. +x on binaries).
                mode = (info.external_attr >> 16) & 0o777
                if mode and not info.is_dir() and os.name != "nt":
                    target.chmod(mode)
                written.append(target)
    except zipfile.BadZipFile as e:
        raise InvalidPackFormat(f"Not a valid zip archive: {zip_path.name}", detail={"zip": str(zip_path)}) from e

    logger.debug("Extracted %d members from %s into %s", len(written), zip_path, dest_dir)
    return written


def mark_executables(layout: ResourceLayout) -> None:
    """chmod 0755 on every pack binary that exists (no-op on Windows)."""

    if os.name == "nt":
        return
    for path in layout.executable_paths():
        if not path.is_file():
            continue
        try:
            path.chmod(0o755)
        except OSError as e:
            logger.warning("Could not mark %s executable: %r", path, e)

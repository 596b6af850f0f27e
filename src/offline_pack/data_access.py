from __future__ import annotations

import hashlib
from pathlib import Path

from contracts.errors import InvalidPackFormat


class DataAccessError(InvalidPackFormat):
    code = "PACK_PATH_OUTSIDE_BASE_DIR"


def resolve_under_base_dir(*, base_dir: Path, relpath: str) -> Path:
    """
    Resolve a manifest- or archive-supplied relative path under the resource directory.

    Absolute paths, drive-letter paths and `..` traversal are rejected so a
    malformed manifest or archive can never write outside `base_dir`.
    """

    if relpath.startswith(("/", "\\")) or (":" in relpath and "\\" in relpath) or relpath[1:3] == ":/":
        raise DataAccessError(f"Expected a relative path under base_dir, got: {relpath!r}")

    root = base_dir.expanduser().resolve()
    candidate = (root / relpath).resolve()

    if not candidate.is_relative_to(root):
        raise DataAccessError(f"Path traversal or external reference detected: relpath={relpath!r}")

    return candidate


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from contracts.errors import DownloadFailed, IntegrityCheckFailed, ManifestUnavailable

from .contracts import InstalledManifest, ResourceManifest
from .data_access import resolve_under_base_dir
from .download import client_scope, fetch_json

logger = logging.getLogger(__name__)

LOCAL_MANIFEST_NAME = ".offline-pack.manifest.json"


def local_manifest_path(base_dir: Path) -> Path:
    return base_dir / LOCAL_MANIFEST_NAME


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def serialize_installed_manifest(manifest: InstalledManifest) -> str:
    payload: dict[str, Any] = manifest.to_dict()
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n"


def read_local(base_dir: Path) -> InstalledManifest | None:
    """
    Load the install record. A missing or corrupt file reads as "nothing recorded".
    """

    path = local_manifest_path(base_dir)
    if not path.is_file():
        return None
    try:
        return InstalledManifest.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("Ignoring unreadable install manifest %s: %r", path, e)
        return None


def write_local(base_dir: Path, manifest: InstalledManifest) -> None:
    """
    Overwrite the install record atomically.

    Every component path is checked on disk before anything is written, so the
    record can never claim an artifact that is not present.
    """

    missing: list[str] = []
    for comp in manifest.components.values():
        target = resolve_under_base_dir(base_dir=base_dir, relpath=comp.path)
        if not target.exists():
            missing.append(comp.path)
    if missing:
        raise IntegrityCheckFailed(
            "Refusing to record components that are not on disk",
            detail={"missing": sorted(missing)},
        )

    base_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".offline-pack.", suffix=".tmp", dir=str(base_dir))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(serialize_installed_manifest(manifest))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, local_manifest_path(base_dir))
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def parse_remote_manifest(payload: Any) -> ResourceManifest:
    try:
        return ResourceManifest.from_dict(payload)
    except ValueError as e:
        raise ManifestUnavailable(f"Invalid offline pack manifest format: {e}") from e


def fetch_remote(
    manifest_url: str,
    *,
    client: httpx.Client | None = None,
    timeout_s: float = 60.0,
    max_redirects: int = 5,
) -> ResourceManifest:
    """
    Fetch and parse the remote manifest. Any failure is `ManifestUnavailable`,
    which callers treat as "fall back to a full-pack install", never "up to date".
    """

    try:
        with client_scope(client, timeout_s=timeout_s, max_redirects=max_redirects) as c:
            payload = fetch_json(manifest_url, client=c)
    except DownloadFailed as e:
        raise ManifestUnavailable(
            f"Failed to fetch offline pack manifest: {e.message}", detail={"url": manifest_url, **e.detail}
        ) from e
    except ValueError as e:
        raise ManifestUnavailable(
            f"Offline pack manifest is not valid JSON: {e}", detail={"url": manifest_url}
        ) from e

    return parse_remote_manifest(payload)

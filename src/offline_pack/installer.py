from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

import httpx

from contracts.errors import InvalidPackFormat
from contracts.progress import PackStatus, ProgressCallback, emit

from .archives import extract_zip, mark_executables
from .contracts import PackConfig, ResourceStatus
from .download import client_scope, download_to_file
from .layout import ResourceDirectory, probe_capabilities

logger = logging.getLogger(__name__)

PACK_ROOT_DIRNAME = "resources"


def get_status(resources: ResourceDirectory, config: PackConfig) -> ResourceStatus:
    """
    Derive install status from what is on disk: the model file and the inference
    binary must both exist; OCR is reported separately.
    """

    layout = resources.layout(config.platform_key)
    missing = layout.missing_required()
    manifest = resources.manifest
    return ResourceStatus(
        installed=not missing,
        missing=[str(p) for p in missing],
        ocr_available=probe_capabilities(layout).ocr_available,
        installed_pack_version=None if manifest is None else manifest.version,
        base_dir=str(resources.base_dir),
        pack_url=config.pack_url,
        manifest_url=config.manifest_url,
    )


def _replace_tree(extracted_root: Path, dest_dir: Path) -> None:
    # Wholesale replace: a previous partial install must not leave stale files behind.
    if dest_dir.exists():
        shutil.rmtree(dest_dir)
    dest_dir.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(extracted_root, dest_dir)


def _install_pack_zip(zip_path: Path, resources: ResourceDirectory, config: PackConfig, work_dir: Path) -> None:
    extract_dir = work_dir / "extract"
    extract_zip(zip_path, extract_dir)

    extracted_root = extract_dir / PACK_ROOT_DIRNAME
    if not extracted_root.is_dir():
        raise InvalidPackFormat(
            f"Offline pack zip must contain a top-level {PACK_ROOT_DIRNAME}/ folder.",
            detail={"zip": str(zip_path)},
        )

    logger.info("Replacing %s with pack contents from %s", resources.base_dir, zip_path.name)
    _replace_tree(extracted_root, resources.base_dir)
    mark_executables(resources.layout(config.platform_key))


def install(
    resources: ResourceDirectory,
    config: PackConfig,
    *,
    on_progress: ProgressCallback | None = None,
    client: httpx.Client | None = None,
    force: bool = False,
) -> ResourceStatus:
    """
    Download the full pack and install it into `resources.base_dir`.

    Returns immediately when the pack is already installed (unless `force`).
    """

    status = get_status(resources, config)
    if status.installed and not force:
        logger.info("Offline pack already installed at %s", resources.base_dir)
        return status

    work_dir = Path(tempfile.mkdtemp(prefix="offline-pack-"))
    try:
        zip_path = work_dir / "offline-pack.zip"

        def _on_bytes(received: int, total: int | None) -> None:
            pct = (received / total) * 100 if total else 0.0
            emit(on_progress, PackStatus.DOWNLOADING.value, min(99.0, pct), component="pack", receivedBytes=received)

        emit(on_progress, PackStatus.DOWNLOADING.value, 0, component="pack")
        with client_scope(client, timeout_s=config.timeout_s, max_redirects=config.max_redirects) as c:
            download_to_file(config.pack_url, zip_path, client=c, on_bytes=_on_bytes)

        emit(on_progress, PackStatus.INSTALLING.value, 99, component="pack")
        _install_pack_zip(zip_path, resources, config, work_dir)
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    emit(on_progress, PackStatus.DONE.value, 100)
    return get_status(resources.reload(), config)


def install_from_zip(resources: ResourceDirectory, config: PackConfig, zip_path: Path) -> ResourceStatus:
    """Install a pack archive that is already on local disk (sideloaded pack)."""

    if not zip_path.is_file():
        raise FileNotFoundError(f"Offline pack zip not found: {zip_path}")

    work_dir = Path(tempfile.mkdtemp(prefix="offline-pack-"))
    try:
        _install_pack_zip(zip_path, resources, config, work_dir)
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    return get_status(resources.reload(), config)

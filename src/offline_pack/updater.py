from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

import httpx

from contracts.errors import IntegrityCheckFailed, ManifestUnavailable
from contracts.progress import PackStatus, ProgressCallback, emit

from .archives import extract_zip, mark_executables
from .contracts import (
    ComponentSpec,
    ComponentType,
    InstalledComponent,
    InstalledManifest,
    PackConfig,
    ResourceManifest,
    UpdateCheck,
    UpdateMode,
    UpdateResult,
)
from .data_access import DataAccessError, resolve_under_base_dir, sha256_file
from .download import client_scope, download_to_file
from .installer import get_status, install
from .layout import ResourceDirectory
from .manifest_store import fetch_remote, utc_timestamp, write_local

logger = logging.getLogger(__name__)


def _needs_update(spec: ComponentSpec, local: InstalledManifest | None, base_dir: Path) -> bool:
    if local is None:
        return True
    have = local.components.get(spec.name)
    if have is None or not have.matches(spec):
        return True
    # A recorded component whose files were removed is reinstalled even when its metadata is unchanged.
    try:
        return not resolve_under_base_dir(base_dir=base_dir, relpath=spec.target_relpath).exists()
    except DataAccessError:
        return True


def diff_components(
    remote: ResourceManifest, local: InstalledManifest | None, platform_key: str, base_dir: Path
) -> list[ComponentSpec]:
    return [c for c in remote.components_for(platform_key) if _needs_update(c, local, base_dir)]


def _build_check(remote: ResourceManifest, resources: ResourceDirectory, platform_key: str) -> UpdateCheck:
    local = resources.manifest
    installed_version = None if local is None else local.version
    pending = diff_components(remote, local, platform_key, resources.base_dir)
    return UpdateCheck(
        installed_version=installed_version,
        remote_version=remote.version,
        # Components can be patched without a top-level version bump.
        update_available=installed_version != remote.version or bool(pending),
        components_to_update=pending,
    )


def check_for_update(
    resources: ResourceDirectory, config: PackConfig, *, client: httpx.Client | None = None
) -> UpdateCheck:
    """
    Compare the remote manifest with the local install record.

    Raises `ManifestUnavailable` when the remote manifest cannot be fetched.
    """

    remote = fetch_remote(
        config.manifest_url, client=client, timeout_s=config.timeout_s, max_redirects=config.max_redirects
    )
    return _build_check(remote, resources, config.platform_key)


def _install_component(spec: ComponentSpec, downloaded: Path, base_dir: Path, staging: Path) -> None:
    target = resolve_under_base_dir(base_dir=base_dir, relpath=spec.target_relpath)
    if spec.type == ComponentType.ZIP:
        # Merge-extract: sibling components live under the same base dir.
        unpacked = staging / f"unpacked-{spec.name}"
        extract_zip(downloaded, unpacked)
        target.mkdir(parents=True, exist_ok=True)
        shutil.copytree(unpacked, target, dirs_exist_ok=True)
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    os.replace(downloaded, target)


def _full_reinstall(
    resources: ResourceDirectory,
    config: PackConfig,
    *,
    on_progress: ProgressCallback | None,
    client: httpx.Client | None,
    reason: str,
) -> UpdateResult:
    logger.warning("Falling back to a full offline pack reinstall: %s", reason)
    status = install(resources, config, on_progress=on_progress, client=client, force=True)
    return UpdateResult(
        mode=UpdateMode.FULL,
        version=status.installed_pack_version,
        downloaded=["pack"],
        status=status,
    )


def apply_update(
    resources: ResourceDirectory,
    config: PackConfig,
    *,
    on_progress: ProgressCallback | None = None,
    client: httpx.Client | None = None,
) -> UpdateResult:
    """
    Download and install only the components whose metadata changed or whose files
    are missing, then commit a new install record.

    Each component is downloaded to an isolated staging file and its SHA-256
    verified before anything under the base dir is touched. A mismatch aborts
    the whole update and leaves the install record unchanged.
    """

    with client_scope(client, timeout_s=config.timeout_s, max_redirects=config.max_redirects) as c:
        try:
            remote = fetch_remote(config.manifest_url, client=c)
        except ManifestUnavailable as e:
            return _full_reinstall(resources, config, on_progress=on_progress, client=c, reason=e.message)

        if not remote.describes_components(config.platform_key):
            return _full_reinstall(
                resources,
                config,
                on_progress=on_progress,
                client=c,
                reason=f"manifest {remote.version} lists no components for {config.platform_key}",
            )

        check = _build_check(remote, resources, config.platform_key)
        pending = check.components_to_update
        base_dir = resources.base_dir
        base_dir.mkdir(parents=True, exist_ok=True)

        installed: dict[str, InstalledComponent] = (
            {} if resources.manifest is None else dict(resources.manifest.components)
        )
        downloaded: list[str] = []

        if pending:
            staging = Path(tempfile.mkdtemp(prefix=".offline-pack-update-", dir=str(base_dir)))
            try:
                # Every component is downloaded and verified before the first one is installed:
                # a failure here leaves the base dir and its install record untouched.
                share = 100.0 / len(pending)
                staged: list[tuple[ComponentSpec, Path]] = []
                for i, spec in enumerate(pending):
                    base_pct = i * share
                    emit(on_progress, PackStatus.DOWNLOADING.value, base_pct, component=spec.name)

                    def _on_bytes(received: int, total: int | None, *, _base: float = base_pct, _name: str = spec.name) -> None:
                        frac = (received / total) if total else 0.0
                        emit(on_progress, PackStatus.DOWNLOADING.value, _base + share * min(1.0, frac), component=_name)

                    part = staging / f"{spec.name}.download"
                    download_to_file(spec.url, part, client=c, on_bytes=_on_bytes)
                    downloaded.append(spec.name)

                    if spec.sha256:
                        digest = sha256_file(part)
                        if digest != spec.sha256:
                            raise IntegrityCheckFailed(
                                f"Offline pack update failed integrity check for {spec.name}",
                                detail={"component": spec.name, "expected": spec.sha256, "actual": digest},
                            )
                    staged.append((spec, part))

                for i, (spec, part) in enumerate(staged):
                    emit(on_progress, PackStatus.INSTALLING.value, (i + 1) * share, component=spec.name)
                    _install_component(spec, part, base_dir, staging)
                    installed[spec.name] = InstalledComponent.from_spec(spec)
                    logger.info("Installed component %s (%s)", spec.name, spec.version or spec.sha256 or "unversioned")
            finally:
                shutil.rmtree(staging, ignore_errors=True)

            mark_executables(resources.layout(config.platform_key))

        if pending or check.update_available:
            write_local(
                base_dir,
                InstalledManifest(version=remote.version, installed_at=utc_timestamp(), components=installed),
            )

    emit(on_progress, PackStatus.DONE.value, 100)
    status = get_status(resources.reload(), config)
    return UpdateResult(mode=UpdateMode.DELTA, version=remote.version, downloaded=downloaded, status=status)

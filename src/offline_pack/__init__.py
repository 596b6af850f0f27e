"""
Offline resource pack lifecycle: install, status, update check, delta update.

The pack holds everything offline analysis needs on the local machine:

- `models/model-8b-q4.gguf` (quantized language model)
- `llama/<platform>/` (llama.cpp CLI binary and its sibling libraries)
- `ocr/<platform>/` (optional OCR toolchain: ocrmypdf, tesseract, ghostscript)

A small install record (`.offline-pack.manifest.json`) under the resource
directory remembers which component versions are on disk, so updates only
download what changed.
"""

from .contracts import (
    ComponentSpec,
    ComponentType,
    InstalledComponent,
    InstalledManifest,
    PackConfig,
    ResourceManifest,
    ResourceStatus,
    UpdateCheck,
    UpdateMode,
    UpdateResult,
)
from .installer import get_status, install, install_from_zip
from .layout import Capabilities, ResourceDirectory, ResourceLayout, current_platform_key, probe_capabilities
from .manifest_store import fetch_remote, read_local, write_local
from .updater import apply_update, check_for_update

__all__ = [
    "Capabilities",
    "ComponentSpec",
    "ComponentType",
    "InstalledComponent",
    "InstalledManifest",
    "PackConfig",
    "ResourceDirectory",
    "ResourceLayout",
    "ResourceManifest",
    "ResourceStatus",
    "UpdateCheck",
    "UpdateMode",
    "UpdateResult",
    "apply_update",
    "check_for_update",
    "current_platform_key",
    "fetch_remote",
    "get_status",
    "install",
    "install_from_zip",
    "probe_capabilities",
    "read_local",
    "write_local",
]

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ComponentType(str, Enum):
    FILE = "file"
    ZIP = "zip"


@dataclass(frozen=True, slots=True)
class ComponentSpec:
    """
    One independently downloadable piece of the pack, as described by the remote manifest.

    `name` is the merge key between the remote manifest and the local install record.
    For zip components `extract_to` is the base-dir-relative directory the archive
    contents land in; it falls back to `path` when the manifest omits it.
    """

    name: str
    type: ComponentType
    url: str
    path: str
    extract_to: str | None = None
    version: str | None = None
    sha256: str | None = None

    @property
    def target_relpath(self) -> str:
        if self.type == ComponentType.ZIP:
            return self.extract_to or self.path
        return self.path

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "ComponentSpec":
        name = d.get("name")
        if not isinstance(name, str) or name.strip() == "":
            raise ValueError("component.name must be a non-empty string")
        url = d.get("url")
        if not isinstance(url, str):
            raise ValueError(f"component {name!r}: url must be a string")
        raw_type = d.get("type", ComponentType.FILE.value)
        try:
            ctype = ComponentType(raw_type)
        except ValueError as e:
            raise ValueError(f"component {name!r}: unsupported type {raw_type!r}") from e
        path = d.get("path") or d.get("extractTo")
        if not isinstance(path, str) or path.strip() == "":
            raise ValueError(f"component {name!r}: path (or extractTo) is required")
        extract_to = d.get("extractTo")
        version = d.get("version")
        sha256 = d.get("sha256")
        return ComponentSpec(
            name=name,
            type=ctype,
            url=url,
            path=path.replace("\\", "/"),
            extract_to=None if not extract_to else str(extract_to).replace("\\", "/"),
            version=None if version is None else str(version),
            sha256=None if not sha256 else str(sha256).lower(),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "url": self.url,
            "path": self.path,
            "version": self.version,
            "sha256": self.sha256,
        }
        if self.extract_to is not None:
            out["extractTo"] = self.extract_to
        return out


@dataclass(frozen=True, slots=True)
class ResourceManifest:
    """Remote, versioned description of the pack."""

    version: str
    common: list[ComponentSpec]
    platform: dict[str, list[ComponentSpec]]

    def components_for(self, platform_key: str) -> list[ComponentSpec]:
        """
        `common` plus the components for `platform_key`, keyed by name.

        A platform entry replaces a common entry of the same name.
        """

        merged: dict[str, ComponentSpec] = {}
        for c in self.common:
            merged[c.name] = c
        for c in self.platform.get(platform_key, []):
            merged[c.name] = c
        return list(merged.values())

    def describes_components(self, platform_key: str) -> bool:
        return len(self.components_for(platform_key)) > 0

    @staticmethod
    def from_dict(d: Any) -> "ResourceManifest":
        if not isinstance(d, dict):
            raise ValueError("manifest must be a JSON object")
        version = d.get("version")
        if not isinstance(version, str) or version.strip() == "":
            raise ValueError("manifest.version must be a non-empty string")

        components = d.get("components") or {}
        if not isinstance(components, dict):
            raise ValueError("manifest.components must be an object")

        common_raw = components.get("common") or []
        platform_raw = components.get("platform") or {}
        if not isinstance(common_raw, list) or not isinstance(platform_raw, dict):
            raise ValueError("manifest.components must hold common[] and platform{}")

        platform: dict[str, list[ComponentSpec]] = {}
        for key in sorted(platform_raw.keys()):
            entries = platform_raw[key]
            if not isinstance(entries, list):
                raise ValueError(f"manifest.components.platform[{key!r}] must be a list")
            platform[str(key)] = [ComponentSpec.from_dict(e) for e in entries]

        return ResourceManifest(
            version=version,
            common=[ComponentSpec.from_dict(e) for e in common_raw],
            platform=platform,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "components": {
                "common": [c.to_dict() for c in self.common],
                "platform": {k: [c.to_dict() for c in v] for k, v in sorted(self.platform.items())},
            },
        }


@dataclass(frozen=True, slots=True)
class InstalledComponent:
    name: str
    url: str
    path: str  # base-dir-relative file (file) or directory (zip)
    type: ComponentType
    version: str | None
    sha256: str | None

    @staticmethod
    def from_spec(spec: ComponentSpec) -> "InstalledComponent":
        return InstalledComponent(
            name=spec.name,
            url=spec.url,
            path=spec.target_relpath,
            type=spec.type,
            version=spec.version,
            sha256=spec.sha256,
        )

    def matches(self, spec: ComponentSpec) -> bool:
        return (
            self.name == spec.name
            and self.url == spec.url
            and self.sha256 == spec.sha256
            and self.version == spec.version
        )

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "InstalledComponent":
        return InstalledComponent(
            name=str(d["name"]),
            url=str(d.get("url") or ""),
            path=str(d.get("path") or ""),
            type=ComponentType(d.get("type", ComponentType.FILE.value)),
            version=None if d.get("version") is None else str(d.get("version")),
            sha256=None if not d.get("sha256") else str(d.get("sha256")).lower(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "path": self.path,
            "type": self.type.value,
            "version": self.version,
            "sha256": self.sha256,
        }


@dataclass(frozen=True, slots=True)
class InstalledManifest:
    """
    Local record of what is physically present under the resource directory.

    Only the installer/updater writes it, and only after every referenced
    artifact is on disk.
    """

    version: str | None
    installed_at: str  # ISO-8601 UTC
    components: dict[str, InstalledComponent] = field(default_factory=dict)

    @staticmethod
    def from_dict(d: Any) -> "InstalledManifest":
        if not isinstance(d, dict):
            raise ValueError("installed manifest must be a JSON object")
        comps_raw = d.get("components") or {}
        if not isinstance(comps_raw, dict):
            raise ValueError("installed manifest components must be an object")
        components: dict[str, InstalledComponent] = {}
        for name, entry in comps_raw.items():
            if not isinstance(entry, dict):
                raise ValueError(f"installed component {name!r} must be an object")
            components[str(name)] = InstalledComponent.from_dict({"name": name, **entry})
        version = d.get("version")
        return InstalledManifest(
            version=None if version is None else str(version),
            installed_at=str(d.get("installedAt") or ""),
            components=components,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "installedAt": self.installed_at,
            "components": {k: v.to_dict() for k, v in sorted(self.components.items())},
        }


@dataclass(frozen=True, slots=True)
class ResourceStatus:
    installed: bool
    missing: list[str]
    ocr_available: bool
    installed_pack_version: str | None
    base_dir: str
    pack_url: str | None = None
    manifest_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class UpdateCheck:
    installed_version: str | None
    remote_version: str
    update_available: bool
    components_to_update: list[ComponentSpec]

    def to_dict(self) -> dict[str, Any]:
        return {
            "installedVersion": self.installed_version,
            "remoteVersion": self.remote_version,
            "updateAvailable": self.update_available,
            "componentsToUpdate": [c.to_dict() for c in self.components_to_update],
        }


class UpdateMode(str, Enum):
    DELTA = "delta"
    FULL = "full"


@dataclass(frozen=True, slots=True)
class UpdateResult:
    mode: UpdateMode
    version: str | None
    downloaded: list[str]  # component names, in download order
    status: ResourceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "version": self.version,
            "downloaded": list(self.downloaded),
            "status": self.status.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class PackConfig:
    """
    Install/update configuration.

    URLs are passed in explicitly by the caller; this package reads no
    environment variables.
    """

    pack_url: str
    manifest_url: str
    platform_key: str
    timeout_s: float = 60.0
    max_redirects: int = 5

    def __post_init__(self) -> None:
        if not self.pack_url or not self.manifest_url:
            raise ValueError("pack_url and manifest_url are required")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        if self.max_redirects < 0:
            raise ValueError("max_redirects must be >= 0")

from __future__ import annotations

import hashlib
import io
import tempfile
import unittest
import zipfile
from collections import Counter
from pathlib import Path
from unittest.mock import patch

import httpx

from contracts.errors import IntegrityCheckFailed
from offline_pack.contracts import (
    ComponentSpec,
    ComponentType,
    InstalledComponent,
    InstalledManifest,
    PackConfig,
    ResourceStatus,
    UpdateMode,
)
from offline_pack.layout import ResourceDirectory
from offline_pack.manifest_store import read_local, write_local
from offline_pack.updater import apply_update, check_for_update

MANIFEST_URL = "https://packs.example.test/offline-pack.manifest.json"
PACK_URL = "https://packs.example.test/offline-pack.zip"
MODEL_URL = "https://packs.example.test/components/model-8b-q4.gguf"
LLAMA_URL = "https://packs.example.test/components/llama-win-x64.zip"

MODEL_BYTES = b"GGUF-model-weights"
MODEL_SHA = hashlib.sha256(MODEL_BYTES).hexdigest()
OLD_LLAMA_SHA = "1" * 64


def _llama_zip() -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("llama.exe", b"new-llama-build")
        zf.writestr("ggml.dll", b"new-ggml")
    return buf.getvalue()


def _remote_manifest(*, version: str, llama_sha: str, model_sha: str = MODEL_SHA, model_version: str = "8b-q4") -> dict:
    return {
        "version": version,
        "components": {
            "common": [
                {
                    "name": "model",
                    "type": "file",
                    "url": MODEL_URL,
                    "path": "models/model-8b-q4.gguf",
                    "version": model_version,
                    "sha256": model_sha,
                }
            ],
            "platform": {
                "win-x64": [
                    {
                        "name": "llama-win-x64",
                        "type": "zip",
                        "url": LLAMA_URL,
                        "path": "llama/win-x64",
                        "extractTo": "llama/win-x64",
                        "version": "b3000",
                        "sha256": llama_sha,
                    }
                ]
            },
        },
    }


class _PackServer:
    def __init__(self, manifest: dict | None, llama_zip: bytes, *, model_bytes: bytes = MODEL_BYTES) -> None:
        self.manifest = manifest
        self.llama_zip = llama_zip
        self.model_bytes = model_bytes
        self.requests: Counter[str] = Counter()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] += 1
        if url == MANIFEST_URL:
            if self.manifest is None:
                return httpx.Response(503)
            return httpx.Response(200, json=self.manifest)
        if url == LLAMA_URL:
            return httpx.Response(200, content=self.llama_zip)
        if url == MODEL_URL:
            return httpx.Response(200, content=self.model_bytes)
        return httpx.Response(404)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self), follow_redirects=True)


class TestDeltaUpdate(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name).resolve()
        self.config = PackConfig(pack_url=PACK_URL, manifest_url=MANIFEST_URL, platform_key="win-x64")

        (self.base / "models").mkdir()
        self.model_file = self.base / "models" / "model-8b-q4.gguf"
        self.model_file.write_bytes(MODEL_BYTES)
        llama_dir = self.base / "llama" / "win-x64"
        llama_dir.mkdir(parents=True)
        (llama_dir / "llama.exe").write_bytes(b"old-llama-build")

        write_local(
            self.base,
            InstalledManifest(
                version="2024.05",
                installed_at="2024-05-01T00:00:00Z",
                components={
                    "model": InstalledComponent(
                        name="model",
                        url=MODEL_URL,
                        path="models/model-8b-q4.gguf",
                        type=ComponentType.FILE,
                        version="8b-q4",
                        sha256=MODEL_SHA,
                    ),
                    "llama-win-x64": InstalledComponent(
                        name="llama-win-x64",
                        url=LLAMA_URL,
                        path="llama/win-x64",
                        type=ComponentType.ZIP,
                        version="b3000",
                        sha256=OLD_LLAMA_SHA,
                    ),
                },
            ),
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _resources(self) -> ResourceDirectory:
        return ResourceDirectory.load(self.base)

    def test_check_reports_only_changed_component(self) -> None:
        llama_zip = _llama_zip()
        server = _PackServer(_remote_manifest(version="2024.06", llama_sha=hashlib.sha256(llama_zip).hexdigest()), llama_zip)

        with server.client() as client:
            check = check_for_update(self._resources(), self.config, client=client)

        self.assertTrue(check.update_available)
        self.assertEqual(check.installed_version, "2024.05")
        self.assertEqual(check.remote_version, "2024.06")
        self.assertEqual([c.name for c in check.components_to_update], ["llama-win-x64"])

    def test_up_to_date_iff_every_component_matches(self) -> None:
        server = _PackServer(_remote_manifest(version="2024.05", llama_sha=OLD_LLAMA_SHA), b"")

        with server.client() as client:
            check = check_for_update(self._resources(), self.config, client=client)
            self.assertFalse(check.update_available)
            self.assertEqual(check.components_to_update, [])

            # Same top-level version, one component patched: still an update.
            server.manifest = _remote_manifest(version="2024.05", llama_sha="2" * 64)
            check = check_for_update(self._resources(), self.config, client=client)
            self.assertTrue(check.update_available)

    def test_changed_component_only_is_downloaded_and_recorded(self) -> None:
        llama_zip = _llama_zip()
        new_sha = hashlib.sha256(llama_zip).hexdigest()
        server = _PackServer(_remote_manifest(version="2024.06", llama_sha=new_sha), llama_zip)
        model_stat_before = self.model_file.stat()
        events: list[dict] = []

        with server.client() as client:
            result = apply_update(self._resources(), self.config, on_progress=lambda e: events.append(e.to_dict()), client=client)

        self.assertEqual(result.mode, UpdateMode.DELTA)
        self.assertEqual(result.downloaded, ["llama-win-x64"])
        self.assertEqual(server.requests[LLAMA_URL], 1)
        self.assertEqual(server.requests[MODEL_URL], 0)

        self.assertEqual(self.model_file.read_bytes(), MODEL_BYTES)
        self.assertEqual(self.model_file.stat().st_mtime_ns, model_stat_before.st_mtime_ns)
        self.assertEqual((self.base / "llama" / "win-x64" / "llama.exe").read_bytes(), b"new-llama-build")
        self.assertTrue((self.base / "llama" / "win-x64" / "ggml.dll").is_file())

        local = read_local(self.base)
        assert local is not None
        self.assertEqual(local.version, "2024.06")
        self.assertEqual(local.components["llama-win-x64"].sha256, new_sha)
        self.assertEqual(local.components["model"].sha256, MODEL_SHA)

        self.assertEqual(events[-1]["stage"], "done")
        self.assertTrue(any(e["stage"] == "downloading" and e.get("component") == "llama-win-x64" for e in events))
        self.assertTrue(any(e["stage"] == "installing" for e in events))
        # No staging directories survive.
        self.assertEqual([p for p in self.base.iterdir() if p.name.startswith(".offline-pack-update-")], [])

    def test_second_apply_downloads_nothing(self) -> None:
        llama_zip = _llama_zip()
        server = _PackServer(_remote_manifest(version="2024.06", llama_sha=hashlib.sha256(llama_zip).hexdigest()), llama_zip)

        with server.client() as client:
            apply_update(self._resources(), self.config, client=client)
            second = apply_update(self._resources(), self.config, client=client)

        self.assertEqual(second.downloaded, [])
        self.assertEqual(server.requests[LLAMA_URL], 1)
        self.assertEqual(server.requests[MODEL_URL], 0)

    def test_hash_mismatch_aborts_without_commit(self) -> None:
        server = _PackServer(_remote_manifest(version="2024.06", llama_sha="f" * 64), _llama_zip())
        before = read_local(self.base)

        with server.client() as client:
            with self.assertRaises(IntegrityCheckFailed):
                apply_update(self._resources(), self.config, client=client)

        self.assertEqual(read_local(self.base), before)
        self.assertEqual((self.base / "llama" / "win-x64" / "llama.exe").read_bytes(), b"old-llama-build")
        self.assertFalse((self.base / "llama" / "win-x64" / "ggml.dll").exists())

    def test_later_hash_mismatch_leaves_earlier_components_uninstalled(self) -> None:
        new_model = b"GGUF-model-weights-v2"
        server = _PackServer(
            _remote_manifest(
                version="2024.06",
                llama_sha="f" * 64,
                model_sha=hashlib.sha256(new_model).hexdigest(),
                model_version="8b-q4-r2",
            ),
            _llama_zip(),
            model_bytes=new_model,
        )
        before = read_local(self.base)

        with server.client() as client:
            with self.assertRaises(IntegrityCheckFailed) as ctx:
                apply_update(self._resources(), self.config, client=client)

        self.assertEqual(ctx.exception.detail["component"], "llama-win-x64")
        self.assertEqual(server.requests[MODEL_URL], 1)
        self.assertEqual(self.model_file.read_bytes(), MODEL_BYTES)
        self.assertEqual((self.base / "llama" / "win-x64" / "llama.exe").read_bytes(), b"old-llama-build")

        local = read_local(self.base)
        self.assertEqual(local, before)
        assert local is not None
        self.assertEqual(local.components["model"].sha256, hashlib.sha256(self.model_file.read_bytes()).hexdigest())
        self.assertEqual([p for p in self.base.iterdir() if p.name.startswith(".offline-pack-update-")], [])

    def test_deleted_component_is_reinstalled_on_version_bump(self) -> None:
        self.model_file.unlink()
        server = _PackServer(_remote_manifest(version="2024.06", llama_sha=OLD_LLAMA_SHA), b"")

        with server.client() as client:
            check = check_for_update(self._resources(), self.config, client=client)
            result = apply_update(self._resources(), self.config, client=client)

        self.assertEqual([c.name for c in check.components_to_update], ["model"])
        self.assertEqual(result.downloaded, ["model"])
        self.assertEqual(server.requests[LLAMA_URL], 0)
        self.assertEqual(self.model_file.read_bytes(), MODEL_BYTES)

        local = read_local(self.base)
        assert local is not None
        self.assertEqual(local.version, "2024.06")
        self.assertEqual(local.components["model"].sha256, MODEL_SHA)

    def test_unreachable_manifest_falls_back_to_full_install(self) -> None:
        server = _PackServer(None, b"")
        status = ResourceStatus(
            installed=True,
            missing=[],
            ocr_available=False,
            installed_pack_version=None,
            base_dir=str(self.base),
        )

        with server.client() as client, patch("offline_pack.updater.install", return_value=status) as install:
            result = apply_update(self._resources(), self.config, client=client)

        self.assertEqual(result.mode, UpdateMode.FULL)
        self.assertTrue(install.call_args.kwargs["force"])

    def test_manifest_without_platform_components_falls_back_to_full_install(self) -> None:
        server = _PackServer({"version": "2024.06", "components": {"common": [], "platform": {}}}, b"")
        status = ResourceStatus(
            installed=True, missing=[], ocr_available=False, installed_pack_version=None, base_dir=str(self.base)
        )

        with server.client() as client, patch("offline_pack.updater.install", return_value=status) as install:
            result = apply_update(self._resources(), self.config, client=client)

        self.assertEqual(result.mode, UpdateMode.FULL)
        install.assert_called_once()


class TestComponentMerge(unittest.TestCase):
    def test_platform_entry_overrides_common_entry(self) -> None:
        from offline_pack.contracts import ResourceManifest

        manifest = ResourceManifest.from_dict(
            {
                "version": "1",
                "components": {
                    "common": [{"name": "ocr", "type": "zip", "url": "https://x/common.zip", "path": "ocr"}],
                    "platform": {"mac-arm64": [{"name": "ocr", "type": "zip", "url": "https://x/mac.zip", "path": "ocr"}]},
                },
            }
        )

        merged = manifest.components_for("mac-arm64")
        self.assertEqual(merged, [ComponentSpec(name="ocr", type=ComponentType.ZIP, url="https://x/mac.zip", path="ocr")])
        self.assertEqual(manifest.components_for("win-x64")[0].url, "https://x/common.zip")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import os
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from offline_analysis.ocr_runner import OcrMyPdfRunner
from offline_pack.layout import Capabilities, ResourceLayout, probe_capabilities


class TestProbeCapabilities(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.layout = ResourceLayout(base_dir=Path(self._tmp.name), platform_key="linux-x64")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_bundled_toolchain_wins(self) -> None:
        for p in (self.layout.ocrmypdf_path, self.layout.tesseract_path, self.layout.ghostscript_path):
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(b"bin")

        caps = probe_capabilities(self.layout, which=lambda name: None)

        self.assertTrue(caps.ocr_available)
        self.assertEqual(caps.ocr_entrypoint, self.layout.ocrmypdf_path)
        self.assertIn(self.layout.tesseract_path.parent, caps.ocr_search_dirs)

    def test_entrypoint_without_dependencies_is_not_available(self) -> None:
        self.layout.ocrmypdf_path.parent.mkdir(parents=True)
        self.layout.ocrmypdf_path.write_bytes(b"bin")
        on_path = {"ocrmypdf": "/usr/bin/ocrmypdf"}

        caps = probe_capabilities(self.layout, which=on_path.get)

        self.assertFalse(caps.ocr_available)

    def test_system_toolchain_on_path(self) -> None:
        on_path = {"ocrmypdf": "/usr/bin/ocrmypdf", "tesseract": "/usr/bin/tesseract", "gs": "/usr/bin/gs"}

        caps = probe_capabilities(self.layout, which=on_path.get)

        self.assertTrue(caps.ocr_available)
        self.assertEqual(caps.ocr_entrypoint, Path("/usr/bin/ocrmypdf"))


class TestOcrMyPdfRunner(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.pdf = self.root / "scan.pdf"
        self.pdf.write_bytes(b"%PDF-SCAN%")
        self.caps = Capabilities(
            ocr_available=True,
            ocr_entrypoint=Path("/opt/ocr/ocrmypdf"),
            ocr_search_dirs=(Path("/opt/ocr/tesseract"),),
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_invokes_ocrmypdf_on_a_copy(self) -> None:
        seen: dict = {}

        def fake_run(cmd, **kwargs):
            seen["cmd"] = cmd
            seen["env"] = kwargs["env"]
            Path(cmd[-1]).write_bytes(b"%PDF-OCR%")
            return subprocess.CompletedProcess(cmd, 0, "", "")

        with patch("offline_analysis.ocr_runner.subprocess.run", side_effect=fake_run):
            out = OcrMyPdfRunner(self.caps).run(self.pdf, work_dir=self.root)

        assert out is not None
        self.assertEqual(out.read_bytes(), b"%PDF-OCR%")
        cmd = seen["cmd"]
        self.assertEqual(cmd[:6], ["/opt/ocr/ocrmypdf", "--skip-text", "--optimize", "0", "--output-type", "pdf"])
        self.assertNotEqual(cmd[6], str(self.pdf))
        self.assertTrue(seen["env"]["PATH"].startswith("/opt/ocr/tesseract" + os.pathsep))
        self.assertEqual(self.pdf.read_bytes(), b"%PDF-SCAN%")

    def test_failure_returns_none(self) -> None:
        failed = subprocess.CompletedProcess([], 2, "", "tesseract: error")
        with patch("offline_analysis.ocr_runner.subprocess.run", return_value=failed):
            self.assertIsNone(OcrMyPdfRunner(self.caps).run(self.pdf, work_dir=self.root))

        with patch(
            "offline_analysis.ocr_runner.subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="ocrmypdf", timeout=1)
        ):
            self.assertIsNone(OcrMyPdfRunner(self.caps, timeout_s=1).run(self.pdf, work_dir=self.root))

    def test_os_errors_return_none(self) -> None:
        with patch("offline_analysis.ocr_runner.subprocess.run", side_effect=PermissionError("denied")):
            self.assertIsNone(OcrMyPdfRunner(self.caps).run(self.pdf, work_dir=self.root))

        with patch("offline_analysis.ocr_runner.shutil.copyfile", side_effect=OSError("disk full")), patch(
            "offline_analysis.ocr_runner.subprocess.run"
        ) as run:
            self.assertIsNone(OcrMyPdfRunner(self.caps).run(self.pdf, work_dir=self.root))
        run.assert_not_called()

    def test_unavailable_toolchain_is_not_run(self) -> None:
        with patch("offline_analysis.ocr_runner.subprocess.run") as run:
            self.assertIsNone(OcrMyPdfRunner(Capabilities(ocr_available=False)).run(self.pdf, work_dir=self.root))
        run.assert_not_called()


if __name__ == "__main__":
    unittest.main()

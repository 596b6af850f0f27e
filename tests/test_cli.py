from __future__ import annotations

import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from offline_analysis import cli as analyze_cli
from offline_analysis.contracts import AnalysisError, AnalysisResult
from offline_pack import cli as pack_cli


class TestPackCli(unittest.TestCase):
    def test_status_prints_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, patch("sys.stdout", new_callable=io.StringIO) as out:
            rc = pack_cli.main(
                [
                    "--resources-dir",
                    tmp,
                    "--pack-url",
                    "https://packs.example.test/pack.zip",
                    "--manifest-url",
                    "https://packs.example.test/manifest.json",
                    "--platform-key",
                    "linux-x64",
                    "status",
                ]
            )

        self.assertEqual(rc, 0)
        payload = json.loads(out.getvalue())
        self.assertFalse(payload["installed"])
        self.assertEqual(len(payload["missing"]), 2)

    def test_missing_urls_is_a_usage_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", {}, clear=True), patch(
            "sys.stderr", new_callable=io.StringIO
        ):
            rc = pack_cli.main(["--resources-dir", tmp, "status"])
        self.assertEqual(rc, 2)


class TestAnalyzeCli(unittest.TestCase):
    def test_writes_one_result_per_file_and_reports_failure(self) -> None:
        results = [
            AnalysisResult(ok=True, file_path="a.pdf", report={"executiveSummary": {}}, errors=[], meta={}),
            AnalysisResult(
                ok=False,
                file_path="b.pdf",
                report=None,
                errors=[AnalysisError(code="EXTRACTION_INSUFFICIENT", message="no text")],
                meta={},
            ),
        ]
        with tempfile.TemporaryDirectory() as tmp, patch.object(
            analyze_cli, "analyze_pdf_paths", return_value=results
        ), patch("sys.stdout", new_callable=io.StringIO) as out:
            out_dir = Path(tmp) / "out"
            rc = analyze_cli.main(["a.pdf", "b.pdf", "--resources-dir", tmp, "--out-dir", str(out_dir)])
            written = sorted(p.name for p in out_dir.iterdir())

        self.assertEqual(rc, 2)
        self.assertEqual(written, ["a.analysis.json", "b.analysis.json"])
        self.assertIn("EXTRACTION_INSUFFICIENT", out.getvalue())


if __name__ == "__main__":
    unittest.main()

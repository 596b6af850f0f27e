from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from contracts.progress import ProgressEvent
from offline_pack.layout import current_platform_key

from .artifacts import result_filename, write_analysis_result_json
from .contracts import AnalysisConfig, InferenceConfig
from .module import analyze_pdf_paths

ENV_RESOURCES_DIR = "OFFLINE_RESOURCES_DIR"


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sop-offline-analyze",
        description="Analyze SOP PDFs offline with the local model and write one JSON result per file.",
    )
    p.add_argument("pdfs", nargs="+", type=Path, help="PDF files to analyze (processed in order).")
    p.add_argument(
        "--resources-dir",
        type=Path,
        default=os.environ.get(ENV_RESOURCES_DIR),
        help=f"Installed offline pack directory (default: ${ENV_RESOURCES_DIR}).",
    )
    p.add_argument(
        "--fallback-resources-dir",
        type=Path,
        default=None,
        help="Read-only pack bundled with the application, searched after --resources-dir.",
    )
    p.add_argument("--platform-key", default=None, help="Override the detected platform key, e.g. win-x64.")
    p.add_argument("--out-dir", type=Path, default=None, help="Write <name>.analysis.json files here.")
    p.add_argument("--ctx-size", type=int, default=4096, help="Model context window in tokens.")
    p.add_argument("--n-predict", type=int, default=1536, help="Max tokens the model may generate.")
    p.add_argument("--threads", type=int, default=None, help="Inference threads (default: cpu_count - 1).")
    p.add_argument("--timeout-s", type=float, default=None, help="Wall-clock limit for one model run.")
    p.add_argument("--min-text-chars", type=int, default=500, help="Below this, try OCR before giving up.")
    p.add_argument("--progress", action="store_true", help="Print progress events as JSON lines on stderr.")
    p.add_argument("--log-level", default="WARNING", help="Python logging level (DEBUG, INFO, ...).")
    return p


def _print_progress(event: ProgressEvent) -> None:
    sys.stderr.write(json.dumps(event.to_dict(), sort_keys=True) + "\n")


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.resources_dir is None:
        sys.stderr.write(f"--resources-dir (or ${ENV_RESOURCES_DIR}) is required\n")
        return 2

    config = AnalysisConfig(
        resources_dir=Path(args.resources_dir).expanduser().resolve(),
        platform_key=args.platform_key or current_platform_key(),
        fallback_resources_dir=args.fallback_resources_dir,
        min_text_chars=args.min_text_chars,
        inference=InferenceConfig(
            ctx_size=args.ctx_size,
            n_predict=args.n_predict,
            threads=args.threads,
            timeout_s=args.timeout_s,
        ),
    )

    results = analyze_pdf_paths(
        args.pdfs,
        config=config,
        on_progress=_print_progress if args.progress else None,
    )

    for result in results:
        if result.ok:
            sys.stdout.write(f"OK    {result.file_path}\n")
        else:
            err = result.errors[0]
            sys.stdout.write(f"FAIL  {result.file_path}  {err.code}: {err.message}\n")
        if args.out_dir is not None:
            write_analysis_result_json(result=result, out_file=args.out_dir / result_filename(result.file_path))

    return 0 if all(r.ok for r in results) else 2


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from contracts.errors import OfflineError
from contracts.progress import ProgressEvent

from .contracts import PackConfig
from .installer import get_status, install, install_from_zip
from .layout import ResourceDirectory, current_platform_key
from .updater import apply_update, check_for_update

ENV_PACK_URL = "OFFLINE_PACK_PUBLIC_URL"
ENV_MANIFEST_URL = "OFFLINE_PACK_MANIFEST_URL"
ENV_RESOURCES_DIR = "OFFLINE_RESOURCES_DIR"


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sop-offline-pack",
        description="Install, inspect and delta-update the offline resource pack (model + llama.cpp + OCR).",
    )
    p.add_argument(
        "--resources-dir",
        type=Path,
        default=os.environ.get(ENV_RESOURCES_DIR),
        help=f"Resource directory (default: ${ENV_RESOURCES_DIR}).",
    )
    p.add_argument(
        "--pack-url",
        default=os.environ.get(ENV_PACK_URL),
        help=f"Full pack zip URL (default: ${ENV_PACK_URL}).",
    )
    p.add_argument(
        "--manifest-url",
        default=os.environ.get(ENV_MANIFEST_URL),
        help=f"Remote manifest URL (default: ${ENV_MANIFEST_URL}).",
    )
    p.add_argument("--platform-key", default=None, help="Override the detected platform key, e.g. win-x64.")
    p.add_argument("--timeout-s", type=float, default=60.0, help="HTTP timeout per request.")
    p.add_argument("--progress", action="store_true", help="Print progress events as JSON lines on stderr.")
    p.add_argument("--log-level", default="WARNING", help="Python logging level (DEBUG, INFO, ...).")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Report what is installed.")
    install_p = sub.add_parser("install", help="Download and install the full pack.")
    install_p.add_argument("--force", action="store_true", help="Reinstall even when already installed.")
    zip_p = sub.add_parser("install-zip", help="Install a pack zip from local disk.")
    zip_p.add_argument("zip_path", type=Path)
    sub.add_parser("check", help="Compare the remote manifest with the local install record.")
    sub.add_parser("update", help="Download only changed components (full reinstall as fallback).")
    return p


def _print_progress(event: ProgressEvent) -> None:
    sys.stderr.write(json.dumps(event.to_dict(), sort_keys=True) + "\n")


def _emit_json(payload: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n")


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.resources_dir is None:
        sys.stderr.write(f"--resources-dir (or ${ENV_RESOURCES_DIR}) is required\n")
        return 2

    resources = ResourceDirectory.load(Path(args.resources_dir))
    try:
        config = PackConfig(
            pack_url=args.pack_url or "",
            manifest_url=args.manifest_url or "",
            platform_key=args.platform_key or current_platform_key(),
            timeout_s=args.timeout_s,
        )
    except ValueError as e:
        sys.stderr.write(f"{e} (set --pack-url/--manifest-url or ${ENV_PACK_URL}/${ENV_MANIFEST_URL})\n")
        return 2

    on_progress = _print_progress if args.progress else None

    try:
        if args.command == "status":
            _emit_json(get_status(resources, config).to_dict())
        elif args.command == "install":
            _emit_json(install(resources, config, on_progress=on_progress, force=args.force).to_dict())
        elif args.command == "install-zip":
            _emit_json(install_from_zip(resources, config, args.zip_path).to_dict())
        elif args.command == "check":
            _emit_json(check_for_update(resources, config).to_dict())
        elif args.command == "update":
            _emit_json(apply_update(resources, config, on_progress=on_progress).to_dict())
    except OfflineError as e:
        _emit_json({"ok": False, "error": {"code": e.code, "message": e.message, "detail": e.detail}})
        return 2
    except FileNotFoundError as e:
        _emit_json({"ok": False, "error": {"code": "FILE_NOT_FOUND", "message": str(e), "detail": {}}})
        return 2

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

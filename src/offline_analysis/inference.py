from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from contracts.errors import ConfigurationMissing, InferenceFailed
from contracts.progress import AnalysisStage, ProgressCallback, emit
from offline_pack.layout import ResourceLayout, is_windows_key

from .contracts import InferenceConfig

logger = logging.getLogger(__name__)

RAMP_START_PERCENT = 35.0
RAMP_SPAN_PERCENT = 60.0

# STATUS_DLL_NOT_FOUND, as reported by Windows for a process whose imports cannot be resolved.
WINDOWS_DLL_NOT_FOUND = 0xC0000135


def missing_dll_message(llama_dir: Path) -> str:
    return " ".join(
        [
            "llama.cpp failed to start (missing DLL dependencies).",
            "This usually means the offline pack only contained the EXE but not the required adjacent DLLs,"
            " or it was a CUDA build missing CUDA runtime DLLs.",
            f"Fix: regenerate/reinstall the offline pack so `{llama_dir}` includes the EXE"
            " *and* all sibling .dll files from the llama.cpp release zip, then retry.",
        ]
    )


def ramp_percent(elapsed_s: float, expected_s: float) -> float:
    """Time-based model progress: 35% at start, 95% at `expected_s`, capped there."""

    return RAMP_START_PERCENT + min(RAMP_SPAN_PERCENT, (elapsed_s / expected_s) * RAMP_SPAN_PERCENT)


class InferenceRunner(ABC):
    """Runs a local model on a prompt and returns its raw text output."""

    @abstractmethod
    def run(self, prompt: str, *, on_progress: ProgressCallback | None = None) -> str:
        raise NotImplementedError


class _ProgressTicker:
    def __init__(self, on_progress: ProgressCallback | None, *, expected_s: float, interval_s: float) -> None:
        self._on_progress = on_progress
        self._expected_s = expected_s
        self._interval_s = interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "_ProgressTicker":
        if self._on_progress is not None:
            self._thread = threading.Thread(target=self._loop, name="llama-progress", daemon=True)
            self._thread.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()

    def _loop(self) -> None:
        start = time.monotonic()
        while not self._stop.wait(self._interval_s):
            pct = ramp_percent(time.monotonic() - start, self._expected_s)
            emit(self._on_progress, AnalysisStage.MODEL.value, pct)


class LlamaCliRunner(InferenceRunner):
    """
    llama.cpp CLI subprocess (`llama`, `llama-cli` or `main`).

    The binary and the model are looked up in each resource dir in order; the
    first dir that has them wins.
    """

    def __init__(self, resource_dirs: list[Path], platform_key: str, config: InferenceConfig | None = None) -> None:
        if not resource_dirs:
            raise ValueError("at least one resource dir is required")
        self._layouts = [ResourceLayout(base_dir=d, platform_key=platform_key) for d in resource_dirs]
        self._platform_key = platform_key
        self._config = config or InferenceConfig()

    def find_binary(self) -> Path:
        for layout in self._layouts:
            found = layout.find_llama_binary()
            if found is not None:
                return found
        raise ConfigurationMissing(
            "Offline analysis is not configured: missing llama.cpp binary. "
            f"Expected under: {self._layouts[0].llama_dir}",
            detail={"searched": [str(layout.llama_dir) for layout in self._layouts]},
        )

    def find_model(self) -> Path:
        for layout in self._layouts:
            if layout.model_path.is_file():
                return layout.model_path
        raise ConfigurationMissing(
            f"Offline analysis is not configured: missing GGUF model. Expected at: {self._layouts[0].model_path}",
            detail={"searched": [str(layout.model_path) for layout in self._layouts]},
        )

    def build_command(self, *, binary: Path, model: Path, prompt_file: Path) -> list[str]:
        cfg = self._config
        return [
            str(binary),
            "-m",
            str(model),
            "-f",
            str(prompt_file),
            "--ctx-size",
            str(cfg.ctx_size),
            "--n-predict",
            str(cfg.n_predict),
            "-t",
            str(cfg.resolved_threads()),
            "--temp",
            str(cfg.temperature),
            "--top-p",
            str(cfg.top_p),
            "--repeat-penalty",
            str(cfg.repeat_penalty),
            "--no-display-prompt",
        ]

    def _is_missing_dll_exit(self, returncode: int) -> bool:
        return is_windows_key(self._platform_key) and (returncode & 0xFFFFFFFF) == WINDOWS_DLL_NOT_FOUND

    def run(self, prompt: str, *, on_progress: ProgressCallback | None = None) -> str:
        binary = self.find_binary()
        model = self.find_model()
        bin_dir = binary.parent

        env = dict(os.environ)
        # Sibling shared libraries (DLLs on Windows) must resolve from the binary dir.
        env["PATH"] = str(bin_dir) + os.pathsep + env.get("PATH", "")
        creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if os.name == "nt" else 0
        timeout_s = self._config.timeout_s

        with tempfile.TemporaryDirectory(prefix="sop-analyzer-") as tmp:
            # Prompt goes through a file: command lines have length limits on Windows.
            prompt_file = Path(tmp) / "prompt.txt"
            prompt_file.write_text(prompt, encoding="utf-8")
            cmd = self.build_command(binary=binary, model=model, prompt_file=prompt_file)
            logger.info("Starting %s (ctx=%d, n_predict=%d)", binary.name, self._config.ctx_size, self._config.n_predict)

            started = time.monotonic()
            with _ProgressTicker(
                on_progress,
                expected_s=self._config.expected_duration_s,
                interval_s=self._config.progress_interval_s,
            ):
                try:
                    proc = subprocess.Popen(
                        cmd,
                        cwd=str(bin_dir),
                        env=env,
                        stdin=subprocess.DEVNULL,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.PIPE,
                        text=True,
                        encoding="utf-8",
                        errors="replace",
                        creationflags=creationflags,
                    )
                except OSError as e:
                    raise InferenceFailed(
                        f"llama.cpp could not be started: {e}", detail={"binary": str(binary)}
                    ) from e

                try:
                    stdout, stderr = proc.communicate(timeout=timeout_s)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    stdout, stderr = proc.communicate()
                    raise InferenceFailed(
                        f"llama.cpp did not finish within {timeout_s:.0f}s",
                        returncode=proc.returncode,
                        stderr=stderr or "",
                        detail={"timeout_s": timeout_s},
                    )

        returncode = proc.returncode
        logger.info("%s exited with %s after %.1fs", binary.name, returncode, time.monotonic() - started)

        if returncode != 0:
            if self._is_missing_dll_exit(returncode):
                raise InferenceFailed(missing_dll_message(bin_dir), returncode=returncode, stderr=stderr or "")
            raise InferenceFailed(
                f"llama.cpp exited with code {returncode}. {(stderr or '').strip()[-2000:]}".strip(),
                returncode=returncode,
                stderr=stderr or "",
            )

        emit(on_progress, AnalysisStage.MODEL.value, 100)
        return stdout or ""

"""Apply driver: runs the IaC engine against a materialized project."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from pmp.engines.base import Engine
from pmp.errors import (
    ApplyEngineError,
    EngineNotInstalledError,
    PmpError,
    ProjectLockedError,
)
from pmp.projects.base import ProjectHandle
from pmp.projects.manifest import LOCK_FILE, save_outputs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of one engine invocation."""

    command: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    log_path: Path | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def get_logs_path() -> Path:
    """Get path to session logs: ./.pmp/logs/."""
    return Path.cwd() / ".pmp" / "logs"


class ApplyDriver:
    """Invokes init/plan/apply/output for one engine.

    Engine runs on the same environment directory are serialized through a
    lock file. A failing run raises ApplyEngineError; nothing is retried.
    """

    def __init__(
        self,
        engine: Engine,
        lock_timeout: float = 10.0,
        logs_dir: Path | None = None,
    ) -> None:
        self.engine = engine
        self.lock_timeout = lock_timeout
        self._logs_dir = logs_dir

    def _check_installed(self) -> None:
        if not self.engine.is_installed():
            raise EngineNotInstalledError(self.engine.name, self.engine.install_info)

    @contextmanager
    def _locked(self, handle: ProjectHandle) -> Iterator[None]:
        lock = FileLock(str(handle.path / LOCK_FILE), timeout=self.lock_timeout)
        try:
            lock.acquire()
        except Timeout as e:
            raise ProjectLockedError(handle.path) from e
        try:
            yield
        finally:
            lock.release()

    def _write_log(self, action: str, result: ApplyResult) -> Path:
        """Write one engine run to .pmp/logs/<timestamp>_<action>.log."""
        logs_dir = self._logs_dir or get_logs_path()
        logs_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = logs_dir / f"{timestamp}_{action}.log"
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"$ {' '.join(result.command)}\n")
            f.write(result.stdout)
            if result.stderr:
                f.write("\n--- stderr ---\n")
                f.write(result.stderr)
            f.write(f"\n--- exit code {result.exit_code} ---\n")
        return log_path

    def _run(self, handle: ProjectHandle, action: str, args: Sequence[str]) -> ApplyResult:
        command = (self.engine.cli_command, *args)
        logger.debug("Running %s in %s", " ".join(command), handle.path)
        try:
            completed = subprocess.run(
                list(command),
                cwd=handle.path,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise EngineNotInstalledError(
                self.engine.name, self.engine.install_info
            ) from e

        result = ApplyResult(
            command=command,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        log_path = self._write_log(action, result)
        result = replace(result, log_path=log_path)
        if not result.success:
            raise ApplyEngineError(result)
        return result

    def _ensure_init(self, handle: ProjectHandle) -> ApplyResult | None:
        if (handle.path / self.engine.state_dir).exists():
            return None
        return self._run(handle, "init", ["init", "-input=false"])

    def init(self, handle: ProjectHandle) -> ApplyResult:
        """Run ``<cli> init`` unconditionally."""
        self._check_installed()
        with self._locked(handle):
            return self._run(handle, "init", ["init", "-input=false"])

    def plan(
        self, handle: ProjectHandle, extra_args: Sequence[str] = ()
    ) -> ApplyResult:
        """Run ``<cli> plan``, initializing the working directory first if needed."""
        self._check_installed()
        with self._locked(handle):
            self._ensure_init(handle)
            return self._run(handle, "plan", ["plan", "-input=false", *extra_args])

    def apply(
        self,
        handle: ProjectHandle,
        auto_approve: bool = False,
        extra_args: Sequence[str] = (),
    ) -> ApplyResult:
        """Run ``<cli> apply``, initializing the working directory first if needed.

        Raises:
            EngineNotInstalledError: The engine binary is not on PATH.
            ProjectLockedError: Another process holds the project lock.
            ApplyEngineError: init or apply exited non-zero.
        """
        self._check_installed()
        args = ["apply", "-input=false"]
        if auto_approve:
            args.append("-auto-approve")
        args.extend(extra_args)
        with self._locked(handle):
            self._ensure_init(handle)
            return self._run(handle, "apply", args)

    def output(self, handle: ProjectHandle) -> dict[str, Any]:
        """Read ``<cli> output -json`` and record the values for dependents."""
        self._check_installed()
        with self._locked(handle):
            result = self._run(handle, "output", ["output", "-json"])

        command = " ".join(result.command)
        try:
            raw = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise PmpError(f"Cannot parse output of '{command}': {e}") from e
        if not isinstance(raw, dict):
            raise PmpError(f"Unexpected output of '{command}'")

        outputs = {
            name: entry.get("value") if isinstance(entry, dict) else entry
            for name, entry in raw.items()
        }
        save_outputs(handle.path, outputs)
        return outputs

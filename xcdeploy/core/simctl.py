"""External command execution and the ``xcrun simctl`` wrapper.

Commands are described as ProcessRequest values and run synchronously. There
is deliberately no timeout: a hung simctl hangs the deployment.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional

from ..errors import ExternalToolError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessRequest:
    program: str
    args: tuple[str, ...] = ()
    cwd: Optional[str] = None

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


Runner = Callable[[ProcessRequest], ProcessResult]


def run_process(request: ProcessRequest) -> ProcessResult:
    """Run a command to completion, capturing its output as text."""
    logger.debug("Running: %s (cwd=%s)", request, request.cwd)
    try:
        result = subprocess.run(
            request.argv,
            cwd=request.cwd,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise ExternalToolError(
            f"Command not found: {request.program}. Is Xcode installed?",
            command=request.argv,
        )
    return ProcessResult(result.returncode, result.stdout, result.stderr)


def check(result: ProcessResult, request: ProcessRequest, message: str) -> ProcessResult:
    """Raise ExternalToolError carrying captured output if the command failed."""
    if not result.ok:
        raise ExternalToolError(
            message,
            command=request.argv,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


class Simctl:
    """Thin wrapper over ``xcrun simctl`` subcommands."""

    def __init__(self, runner: Optional[Runner] = None):
        self.runner = runner or run_process

    def _run(self, *args: str, cwd: Optional[str] = None, error: str) -> ProcessResult:
        request = ProcessRequest("xcrun", ("simctl", *args), cwd)
        return check(self.runner(request), request, error)

    def list_devices(self, platform: str = "iOS") -> str:
        """Return the raw JSON device listing for a platform."""
        return self._run(
            "list", "devices", platform, "--json",
            error=f"Failed to get {platform} simulators list",
        ).stdout

    def install(self, udid: str, bundle_path: str, cwd: Optional[str] = None):
        self._run("install", udid, bundle_path, cwd=cwd, error="Failed to install app")

    def launch(self, udid: str, bundle_id: str):
        self._run("launch", udid, bundle_id, error="Failed to run app")

    def boot(self, udid: str):
        self._run("boot", udid, error=f"Failed to boot simulator with id: {udid}")

    def open_simulator_app(self):
        request = ProcessRequest("open", ("-a", "Simulator.app"))
        check(self.runner(request), request, "Failed to open Simulator.app")

    def version(self) -> str:
        """Return the Xcode version line, used by ``doctor``."""
        request = ProcessRequest("xcrun", ("xcodebuild", "-version"))
        result = check(self.runner(request), request, "xcodebuild is not available")
        return result.stdout.splitlines()[0] if result.stdout else ""

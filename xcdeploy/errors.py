"""Error types raised by the deployment pipeline.

Every failure that reaches a caller is a DeployError subclass, so the CLI and
the MCP server can report them uniformly.
"""

from __future__ import annotations

from typing import Sequence


class DeployError(Exception):
    """Base class for all xcdeploy failures."""
    pass


class ConfigError(DeployError):
    """No usable target could be resolved from configuration or environment."""
    pass


class NotFoundError(DeployError):
    """A named device is absent, or a local bundle path is missing."""
    pass


class UntrustedDeviceError(DeployError):
    """The device is reachable but has not trusted this computer."""

    def __init__(self, device_id: str | None = None):
        self.device_id = device_id
        who = f"Device {device_id}" if device_id else "Device"
        super().__init__(
            f"{who} is not paired. Unlock it and tap 'Trust This Computer', "
            "or run 'xcdeploy pair'."
        )


class NativeProtocolError(DeployError):
    """Non-zero status returned by the device management service."""

    def __init__(self, code: int, reason: str, context: str | None = None):
        self.code = code & 0xFFFFFFFF
        self.reason = reason
        self.context = context
        message = f"{context}: {reason}" if context else reason
        super().__init__(message)


class ExternalToolError(DeployError):
    """An external command exited with failure."""

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        details = [message]
        if stdout.strip():
            details.append(f"stdout:\n{stdout.rstrip()}")
        if stderr.strip():
            details.append(f"stderr:\n{stderr.rstrip()}")
        super().__init__("\n".join(details))

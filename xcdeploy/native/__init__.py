"""Boundary to the physical device management service.

Every native call is an explicit NativeCall value executed synchronously by a
DeviceService backend, which answers with a NativeResult carrying the raw
status code. Backends never raise for a non-zero status; callers decide what a
status means via ``codes.translate``.

Device handles returned by enumeration are borrowed: they are only valid until
the next enumeration and must never be stored in a device record.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ConfigError, NotFoundError

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    ENUMERATE_HANDLES = "enumerate-handles"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    COPY_IDENTIFIER = "copy-identifier"
    COPY_VALUE = "copy-value"
    GET_INTERFACE_TYPE = "get-interface-type"
    IS_PAIRED = "is-paired"
    PAIR = "pair"
    VALIDATE_PAIRING = "validate-pairing"
    START_SESSION = "start-session"
    STOP_SESSION = "stop-session"
    SECURE_TRANSFER_PATH = "secure-transfer-path"
    SECURE_INSTALL_APPLICATION = "secure-install-application"


# Values reported by get-interface-type
INTERFACE_USB = 1
INTERFACE_NETWORK = 2

# Option set passed to both install phases
INSTALL_OPTIONS = {"PackageType": "Developer"}


@dataclass(frozen=True)
class NativeCall:
    """A single request to the device management service."""
    operation: Operation
    handle: Any = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NativeResult:
    status: int = 0
    value: Any = None

    @property
    def ok(self) -> bool:
        return (self.status & 0xFFFFFFFF) == 0


class DeviceService:
    """Base class for device management backends.

    Subclasses implement one method per Operation, named after the enum
    member in lower case (``connect``, ``copy_value``...). Each method takes
    the handle plus the call params and returns a NativeResult.
    """

    name = "base"

    def execute(self, call: NativeCall) -> NativeResult:
        method = getattr(self, call.operation.name.lower())
        logger.debug("%s %s %s", self.name, call.operation.value, call.params or "")
        if call.operation is Operation.ENUMERATE_HANDLES:
            return method()
        return method(call.handle, **call.params)

    def call(self, operation: Operation, handle: Any = None, **params) -> NativeResult:
        return self.execute(NativeCall(operation, handle, params))

    # -- Operations, overridden by backends --

    def enumerate_handles(self) -> NativeResult:
        raise NotImplementedError

    def connect(self, handle) -> NativeResult:
        raise NotImplementedError

    def disconnect(self, handle) -> NativeResult:
        raise NotImplementedError

    def copy_identifier(self, handle) -> NativeResult:
        raise NotImplementedError

    def copy_value(self, handle, key: str, domain: str | None = None) -> NativeResult:
        raise NotImplementedError

    def get_interface_type(self, handle) -> NativeResult:
        raise NotImplementedError

    def is_paired(self, handle) -> NativeResult:
        raise NotImplementedError

    def pair(self, handle) -> NativeResult:
        raise NotImplementedError

    def validate_pairing(self, handle) -> NativeResult:
        raise NotImplementedError

    def start_session(self, handle) -> NativeResult:
        raise NotImplementedError

    def stop_session(self, handle) -> NativeResult:
        raise NotImplementedError

    def secure_transfer_path(self, handle, path: str, options: dict) -> NativeResult:
        raise NotImplementedError

    def secure_install_application(self, handle, path: str, options: dict) -> NativeResult:
        raise NotImplementedError


def lookup_handle(service: DeviceService, identifier: str):
    """Find the current handle for a device identifier.

    The device may have gone away since it was enumerated; that surfaces as
    NotFoundError rather than a stale handle.
    """
    handles = service.call(Operation.ENUMERATE_HANDLES).value or []
    for handle in handles:
        result = service.call(Operation.COPY_IDENTIFIER, handle)
        if result.ok and result.value == identifier:
            return handle
    raise NotFoundError(f"Failed to find a connected device with id {identifier}")


BACKENDS = ("auto", "framework", "usbmux")


def get_service(backend: str = "auto") -> DeviceService:
    """Create the device service backend named by ``backend``."""
    backend = (backend or "auto").lower()
    if backend not in BACKENDS:
        raise ConfigError(
            f"Unknown backend '{backend}'. Choose one of: {', '.join(BACKENDS)}"
        )

    if backend == "auto":
        from .framework import find_framework
        backend = "framework" if find_framework() else "usbmux"
        logger.debug("Selected %s backend", backend)

    if backend == "framework":
        from .framework import MobileDeviceFramework
        return MobileDeviceFramework()

    from .usbmux import UsbmuxService
    return UsbmuxService(usbmux_address=os.environ.get("USBMUXD_SOCKET_ADDRESS"))

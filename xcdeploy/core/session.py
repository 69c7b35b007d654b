"""Scoped session with one physical device.

A session goes NotConnected -> Connected -> PairValidated -> Active and is
used for exactly one logical operation. Once it has reached Connected, closing
it always attempts stop-session then disconnect, and never raises.

    with DeviceSession.open(service, handle, device_id) as session:
        session.call(Operation.SECURE_TRANSFER_PATH, path=..., options=...)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from ..errors import UntrustedDeviceError
from ..native import DeviceService, NativeResult, Operation
from ..native.codes import translate

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    NOT_CONNECTED = "not-connected"
    CONNECTED = "connected"
    PAIR_VALIDATED = "pair-validated"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


class DeviceSession:
    """Single-use session bound to one device handle."""

    def __init__(self, service: DeviceService, handle: Any, device_id: Optional[str] = None):
        self.service = service
        self.handle = handle
        self.device_id = device_id
        self.state = SessionState.NOT_CONNECTED

    @classmethod
    def open(cls, service: DeviceService, handle: Any, device_id: Optional[str] = None) -> DeviceSession:
        """Connect, check trust, validate pairing and start a session.

        If any step fails the partially opened session is torn down before
        the error propagates.
        """
        session = cls(service, handle, device_id)
        try:
            session._establish()
        except BaseException:
            session.close()
            raise
        return session

    def _establish(self):
        logger.debug("Starting session with device %s", self.device_id)
        translate(self.service.call(Operation.CONNECT, self.handle).status, "start_session.connect")
        self.state = SessionState.CONNECTED

        paired = self.service.call(Operation.IS_PAIRED, self.handle)
        if not paired.ok or not paired.value:
            raise UntrustedDeviceError(self.device_id)

        translate(
            self.service.call(Operation.VALIDATE_PAIRING, self.handle).status,
            "start_session.validate_pairing",
        )
        self.state = SessionState.PAIR_VALIDATED

        translate(
            self.service.call(Operation.START_SESSION, self.handle).status,
            "start_session.start_session",
        )
        self.state = SessionState.ACTIVE

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def call(self, operation: Operation, **params) -> NativeResult:
        if not self.active:
            raise RuntimeError(f"Session is {self.state.value}, not active")
        return self.service.call(operation, self.handle, **params)

    def close(self):
        """Stop the session and disconnect, swallowing any failure."""
        if self.state in (SessionState.NOT_CONNECTED, SessionState.DISCONNECTED):
            return
        for operation in (Operation.STOP_SESSION, Operation.DISCONNECT):
            try:
                result = self.service.call(operation, self.handle)
                if not result.ok:
                    logger.debug("%s returned 0x%x", operation.value, result.status & 0xFFFFFFFF)
            except Exception as e:
                logger.debug("%s failed: %s", operation.value, e)
        self.state = SessionState.DISCONNECTED

    def __enter__(self) -> DeviceSession:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

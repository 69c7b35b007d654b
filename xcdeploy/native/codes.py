"""Status codes returned by the device management service.

Native calls return a signed 32-bit integer; 0 means success. Only a handful
of codes show up in practice during install, the rest are reported raw.
"""

from __future__ import annotations

import logging

from ..errors import NativeProtocolError

logger = logging.getLogger(__name__)


SUCCESS = 0x00000000
NOT_FOUND = 0xE8000008
NOT_CONNECTED = 0xE800000B
MUX_CONNECT = 0xE8000065
MISSING_PROVISIONING_PROFILE = 0xE8008015
APP_COUNT_LIMIT = 0xE8008021
UNDEFINED = 0xE8000001

REASONS: dict[int, str] = {
    NOT_FOUND: "The file could not be found. kAMDNotFoundError",
    MISSING_PROVISIONING_PROFILE: (
        "A valid provisioning profile for this executable was not found."
    ),
    MUX_CONNECT: "Could not connect to the device. kAMDMuxConnectError",
    NOT_CONNECTED: "Not connected to the device. kAMDNotConnectedError",
    APP_COUNT_LIMIT: (
        "The maximum number of apps for free development profiles has been reached."
    ),
}


def normalize(code: int) -> int:
    """Fold a signed native status into its unsigned 32-bit form."""
    return code & 0xFFFFFFFF


def translate(code: int, context: str | None = None) -> None:
    """Raise NativeProtocolError for any non-zero status.

    Known codes get a descriptive reason; anything else is reported as an
    unknown error with the raw code in hex.
    """
    code = normalize(code)
    if code == SUCCESS:
        return
    reason = REASONS.get(code)
    if reason is None:
        logger.error("Unknown error code: 0x%x", code)
        reason = f"Unknown error code: 0x{code:x}"
    raise NativeProtocolError(code, reason, context)

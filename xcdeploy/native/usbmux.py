"""Device service backed by pymobiledevice3 (usbmuxd + lockdown).

Works anywhere usbmuxd runs (macOS, or Linux with usbmuxd installed).
pymobiledevice3 reports failures as exceptions; they are folded back into the
same status codes MobileDevice.framework uses so callers never need to know
which backend is active.

The secure transfer uploads the bundle to the PublicStaging area over AFC, and
the secure install asks installation_proxy to install from there.

pymobiledevice3 is asyncio based. Its connections are bound to the loop that
opened them, so the service owns one event loop on a daemon thread and every
library coroutine runs there, whichever thread (or running loop) calls in.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import posixpath
import threading
from typing import Optional

from . import DeviceService, NativeResult, INTERFACE_NETWORK, INTERFACE_USB
from .codes import (
    MISSING_PROVISIONING_PROFILE,
    MUX_CONNECT,
    NOT_CONNECTED,
    NOT_FOUND,
    SUCCESS,
    UNDEFINED,
)

logger = logging.getLogger(__name__)


STAGING_DIR = "PublicStaging"
INSTALLATION_PROXY = "com.apple.mobile.installation_proxy"

INSTALL_ERRORS = {
    "ApplicationVerificationFailed": MISSING_PROVISIONING_PROFILE,
}


def status_for_exception(exc: Exception) -> int:
    """Map a pymobiledevice3 (or socket) failure onto a native status code."""
    from pymobiledevice3.exceptions import (
        ConnectionFailedError,
        DeviceNotFoundError,
        MuxException,
        NoDeviceConnectedError,
    )

    if isinstance(exc, (NoDeviceConnectedError, DeviceNotFoundError)):
        return NOT_CONNECTED
    if isinstance(exc, (ConnectionFailedError, MuxException, ConnectionError)):
        return MUX_CONNECT
    return UNDEFINED


async def _settle(value):
    """Await ``value`` when the library handed back a coroutine."""
    if inspect.isawaitable(value):
        return await value
    return value


class UsbmuxService(DeviceService):
    """DeviceService over usbmuxd, one lockdown client per connected handle."""

    name = "usbmux"

    def __init__(self, usbmux_address: Optional[str] = None):
        self.usbmux_address = usbmux_address
        self._clients: dict[str, object] = {}
        self._sessions: set[str] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _run(self, coro):
        """Run a library coroutine on the service loop and wait for its result."""
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
            threading.Thread(
                target=self._loop.run_forever, name="usbmux-loop", daemon=True
            ).start()
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def _client(self, handle):
        return self._clients.get(handle.serial)

    def _staging_path(self, path: str) -> str:
        return posixpath.join(STAGING_DIR, os.path.basename(os.path.normpath(path)))

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def enumerate_handles(self) -> NativeResult:
        from pymobiledevice3.usbmux import list_devices

        try:
            devices = self._run(list_devices(usbmux_address=self.usbmux_address))
        except Exception as e:
            logger.warning("usbmuxd device listing failed: %s", e)
            return NativeResult(status_for_exception(e), [])
        return NativeResult(value=list(devices))

    def copy_identifier(self, handle) -> NativeResult:
        return NativeResult(value=handle.serial)

    def get_interface_type(self, handle) -> NativeResult:
        kind = str(handle.connection_type).lower()
        if kind == "usb":
            return NativeResult(value=INTERFACE_USB)
        if kind == "network":
            return NativeResult(value=INTERFACE_NETWORK)
        return NativeResult(value=0)

    # ------------------------------------------------------------------
    # Connection and pairing
    # ------------------------------------------------------------------

    def connect(self, handle) -> NativeResult:
        if self._client(handle) is not None:
            return NativeResult()
        from pymobiledevice3.lockdown import create_using_usbmux

        try:
            self._clients[handle.serial] = self._run(create_using_usbmux(
                serial=handle.serial,
                autopair=False,
                connection_type=handle.connection_type,
                usbmux_address=self.usbmux_address,
            ))
        except Exception as e:
            logger.debug("lockdown connect to %s failed: %s", handle.serial, e)
            return NativeResult(status_for_exception(e))
        return NativeResult()

    def disconnect(self, handle) -> NativeResult:
        self._sessions.discard(handle.serial)
        client = self._clients.pop(handle.serial, None)
        if client is None:
            return NativeResult(NOT_CONNECTED)
        try:
            self._run(_settle(client.close()))
        except Exception as e:
            logger.debug("lockdown close for %s failed: %s", handle.serial, e)
            return NativeResult(status_for_exception(e))
        return NativeResult()

    def copy_value(self, handle, key: str, domain: str | None = None) -> NativeResult:
        client = self._client(handle)
        if client is None:
            return NativeResult(NOT_CONNECTED)
        try:
            value = self._run(client.get_value(domain=domain, key=key))
        except Exception as e:
            return NativeResult(status_for_exception(e))
        if value is None:
            logger.error("Value from property `%s` is null", key)
            return NativeResult(NOT_FOUND)
        return NativeResult(value=str(value))

    def is_paired(self, handle) -> NativeResult:
        client = self._client(handle)
        if client is None:
            return NativeResult(NOT_CONNECTED)
        return NativeResult(value=bool(client.paired))

    def pair(self, handle) -> NativeResult:
        client = self._client(handle)
        if client is None:
            return NativeResult(NOT_CONNECTED)
        try:
            self._run(client.pair())
        except Exception as e:
            logger.error("Pairing with %s failed: %s", handle.serial, e)
            return NativeResult(status_for_exception(e))
        return NativeResult()

    def validate_pairing(self, handle) -> NativeResult:
        client = self._client(handle)
        if client is None:
            return NativeResult(NOT_CONNECTED)
        try:
            valid = self._run(client.validate_pairing())
        except Exception as e:
            return NativeResult(status_for_exception(e))
        return NativeResult() if valid else NativeResult(UNDEFINED)

    def start_session(self, handle) -> NativeResult:
        # validate_pairing leaves lockdown with a running session
        if self._client(handle) is None:
            return NativeResult(NOT_CONNECTED)
        self._sessions.add(handle.serial)
        return NativeResult()

    def stop_session(self, handle) -> NativeResult:
        if handle.serial not in self._sessions:
            return NativeResult(NOT_CONNECTED)
        self._sessions.discard(handle.serial)
        return NativeResult()

    # ------------------------------------------------------------------
    # Transfer and install
    # ------------------------------------------------------------------

    def secure_transfer_path(self, handle, path: str, options: dict) -> NativeResult:
        if handle.serial not in self._sessions:
            return NativeResult(NOT_CONNECTED)
        if not os.path.isdir(path):
            return NativeResult(NOT_FOUND)
        try:
            self._run(self._upload(self._client(handle), path))
        except Exception as e:
            logger.error("Transfer of %s failed: %s", path, e)
            return NativeResult(status_for_exception(e))
        return NativeResult()

    async def _upload(self, client, path: str):
        from pymobiledevice3.services.afc import AfcService

        remote_root = self._staging_path(path)
        afc = AfcService(lockdown=client)
        try:
            await afc.makedirs(STAGING_DIR)
            await afc.rm(remote_root, force=True)
            for dirpath, _dirnames, filenames in os.walk(path):
                rel = os.path.relpath(dirpath, path)
                remote_dir = remote_root if rel == "." else posixpath.join(
                    remote_root, *rel.split(os.sep)
                )
                await afc.makedirs(remote_dir)
                for filename in filenames:
                    with open(os.path.join(dirpath, filename), "rb") as f:
                        await afc.set_file_contents(posixpath.join(remote_dir, filename), f.read())
        finally:
            await _settle(afc.close())

    def secure_install_application(self, handle, path: str, options: dict) -> NativeResult:
        if handle.serial not in self._sessions:
            return NativeResult(NOT_CONNECTED)
        try:
            return NativeResult(self._run(self._install(self._client(handle), path, options)))
        except Exception as e:
            logger.error("Install of %s failed: %s", path, e)
            return NativeResult(status_for_exception(e))

    async def _install(self, client, path: str, options: dict) -> int:
        """Drive installation_proxy until it reports completion or an error."""
        service = await _settle(client.start_lockdown_service(INSTALLATION_PROXY))
        try:
            await service.send_plist({
                "Command": "Install",
                "ClientOptions": dict(options),
                "PackagePath": self._staging_path(path),
            })
            while True:
                response = await service.recv_plist()
                if not response:
                    return UNDEFINED
                if "Error" in response:
                    logger.error(
                        "installation_proxy: %s %s",
                        response["Error"], response.get("ErrorDescription", ""),
                    )
                    return INSTALL_ERRORS.get(response["Error"], UNDEFINED)
                logger.debug(
                    "installation_proxy: %s %s%%",
                    response.get("Status"), response.get("PercentComplete", ""),
                )
                if response.get("Status") == "Complete":
                    return SUCCESS
        finally:
            await _settle(service.close())

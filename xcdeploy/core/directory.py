"""Discovery of connected devices and iOS simulators."""

from __future__ import annotations

import json
import logging
from typing import Optional

from ..errors import DeployError, ExternalToolError
from ..native import (
    DeviceService,
    INTERFACE_NETWORK,
    INTERFACE_USB,
    Operation,
    get_service,
)
from ..native.codes import translate
from . import ConnectionType, PhysicalDevice, SimulatorDevice, SimulatorState
from .simctl import Simctl

logger = logging.getLogger(__name__)


IDENTITY_KEYS = {
    "name": "DeviceName",
    "cpu_architecture": "CPUArchitecture",
    "device_class": "DeviceClass",
    "os_version": "ProductVersion",
    "model": "HardwareModel",
}

INTERFACE_TYPES = {
    INTERFACE_USB: ConnectionType.USB,
    INTERFACE_NETWORK: ConnectionType.NETWORK,
}

IOS_RUNTIME_MARKER = ".iOS"


def parse_simulator_listing(output: str) -> list[SimulatorDevice]:
    """Extract iOS simulators from ``simctl list devices --json`` output.

    Runtime keys are matched by the ``.iOS`` substring. Devices keep the
    order of their runtime key, and keys keep listing order. A malformed
    device under a matching key fails the whole listing.
    """
    try:
        listing = json.loads(output)
    except json.JSONDecodeError as e:
        raise ExternalToolError(
            f"Failed to create typed device list from output: {e}", stdout=output
        )
    runtimes = listing.get("devices") if isinstance(listing, dict) else None
    if not isinstance(runtimes, dict):
        raise ExternalToolError(
            "Simulator listing has no 'devices' mapping", stdout=output
        )

    devices = []
    for key, raw_devices in runtimes.items():
        if IOS_RUNTIME_MARKER not in key:
            continue
        try:
            devices.extend(_parse_simulator(raw) for raw in raw_devices)
        except (TypeError, KeyError, ValueError) as e:
            raise ExternalToolError(
                f"Failed to parse raw_devices under {key}: {e!r}",
                stdout=json.dumps(raw_devices),
            )
    return devices


def _parse_simulator(raw: dict) -> SimulatorDevice:
    udid, name = raw["udid"], raw["name"]
    if not isinstance(udid, str) or not isinstance(name, str):
        raise TypeError("udid and name must be strings")
    return SimulatorDevice(udid=udid, name=name, state=SimulatorState(raw["state"]))


class DeviceDirectory:
    """Snapshot queries for physical devices and simulators.

    Nothing is cached between calls; a device listed here may be gone by the
    time it is used.
    """

    def __init__(self, service: Optional[DeviceService] = None, simctl: Optional[Simctl] = None):
        self._service = service
        self.simctl = simctl or Simctl()

    @property
    def service(self) -> DeviceService:
        if self._service is None:
            self._service = get_service()
        return self._service

    # ------------------------------------------------------------------
    # Physical devices
    # ------------------------------------------------------------------

    def list_physical_devices(self) -> list[PhysicalDevice]:
        """Return every connected device whose identity fully resolves.

        A device that fails to connect or to report any attribute is logged
        and left out; enumeration itself never fails.
        """
        try:
            handles = self.service.call(Operation.ENUMERATE_HANDLES).value or []
        except Exception as e:
            logger.warning("Device enumeration failed: %s", e)
            return []
        devices = []
        for handle in handles:
            try:
                devices.append(self._read_device(handle))
            except Exception as e:
                logger.warning("Skipping device: %s", e)
        return devices

    def find_physical_device(self, identifier: str) -> Optional[PhysicalDevice]:
        for device in self.list_physical_devices():
            if device.identifier == identifier:
                return device
        return None

    def _read_device(self, handle) -> PhysicalDevice:
        service = self.service
        translate(service.call(Operation.CONNECT, handle).status, "MobileDevice.connect")
        try:
            identifier = service.call(Operation.COPY_IDENTIFIER, handle)
            translate(identifier.status, "MobileDevice.copy_identifier")

            interface = service.call(Operation.GET_INTERFACE_TYPE, handle)
            # 0 = unknown, 3 = companion proxy
            connection_type = INTERFACE_TYPES.get(interface.value)
            if connection_type is None:
                raise DeployError(f"Unknown device interface type: {interface.value}")

            values = {}
            for field, key in IDENTITY_KEYS.items():
                result = service.call(Operation.COPY_VALUE, handle, key=key)
                if not result.ok or result.value is None:
                    raise DeployError(
                        f"Device {identifier.value}: value from property `{key}` is null"
                    )
                values[field] = result.value
        finally:
            self._disconnect(handle)

        return PhysicalDevice(
            identifier=identifier.value,
            connection_type=connection_type,
            **values,
        )

    def _disconnect(self, handle):
        try:
            result = self.service.call(Operation.DISCONNECT, handle)
        except Exception as e:
            logger.debug("disconnect failed: %s", e)
            return
        if not result.ok:
            logger.debug("disconnect returned 0x%x", result.status & 0xFFFFFFFF)

    # ------------------------------------------------------------------
    # Simulators
    # ------------------------------------------------------------------

    def list_simulator_devices(self) -> list[SimulatorDevice]:
        """Return iOS simulators, failing as a whole on any listing problem."""
        return parse_simulator_listing(self.simctl.list_devices("iOS"))

    def booted_simulators(self) -> list[SimulatorDevice]:
        return [d for d in self.list_simulator_devices() if d.booted]

"""Device records and deployment targets.

Physical devices come from the device management service, simulators from
``xcrun simctl``. A deployment run resolves exactly one Target, which is
either a DeviceTarget or a SimulatorTarget.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Union

from ..errors import ConfigError


class ConnectionType(str, Enum):
    USB = "usb"
    NETWORK = "network"


class SimulatorState(str, Enum):
    SHUTDOWN = "Shutdown"
    BOOTED = "Booted"


@dataclass(frozen=True)
class PhysicalDevice:
    """A connected device with every identity attribute resolved."""
    identifier: str
    name: str
    connection_type: ConnectionType
    cpu_architecture: str
    device_class: str
    os_version: str
    model: str

    def to_dict(self) -> dict:
        d = asdict(self)
        d["connection_type"] = self.connection_type.value
        return d


@dataclass(frozen=True)
class SimulatorDevice:
    udid: str
    name: str
    state: SimulatorState

    @property
    def booted(self) -> bool:
        return self.state is SimulatorState.BOOTED

    def to_dict(self) -> dict:
        return {"udid": self.udid, "name": self.name, "state": self.state.value}


@dataclass(frozen=True)
class DeviceTarget:
    device: PhysicalDevice

    kind = "device"

    @property
    def identifier(self) -> str:
        return self.device.identifier


@dataclass(frozen=True)
class SimulatorTarget:
    udid: str

    kind = "simulator"

    @property
    def identifier(self) -> str:
        return self.udid


Target = Union[DeviceTarget, SimulatorTarget]


class BuildType(str, Enum):
    DEBUG = "Debug"
    RELEASE = "Release"

    @property
    def configuration(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | BuildType) -> BuildType:
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        raise ConfigError(f"Unknown build type '{value}'. Use debug or release.")

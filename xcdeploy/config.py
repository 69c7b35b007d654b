"""Deployment configuration.

The CLI builds a DeployConfig from its options (each of which falls back to
an XCDEPLOY_* environment variable); SDK users can call ``from_env``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .core import BuildType
from .errors import ConfigError

logger = logging.getLogger(__name__)


ENV_DEVICE_ID = "XCDEPLOY_DEVICE_ID"
ENV_DEVICE_TYPE = "XCDEPLOY_DEVICE_TYPE"
ENV_BUNDLE_PREFIX = "XCDEPLOY_BUNDLE_PREFIX"
ENV_BACKEND = "XCDEPLOY_BACKEND"

DEFAULT_BUNDLE_PREFIX = "com.rust"


class DeviceType(str, Enum):
    DEVICE = "device"
    SIMULATOR = "simulator"

    @classmethod
    def parse(cls, value: Optional[str | DeviceType]) -> Optional[DeviceType]:
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigError(
                f"Unknown device type '{value}'. Use 'device' or 'simulator'."
            )


@dataclass
class DeployConfig:
    device_id: Optional[str] = None
    device_type: Optional[DeviceType] = None
    bundle_id_prefix: str = DEFAULT_BUNDLE_PREFIX
    app_name: Optional[str] = None
    project_dir: Optional[str] = None
    build_type: BuildType = BuildType.DEBUG
    backend: str = "auto"

    def __post_init__(self):
        self.device_type = DeviceType.parse(self.device_type)
        self.build_type = BuildType.parse(self.build_type)
        if bool(self.device_id) != bool(self.device_type):
            logger.info(
                "Ignoring partial device override (device_id=%s, device_type=%s)",
                self.device_id, self.device_type and self.device_type.value,
            )

    @property
    def explicit_target(self) -> bool:
        """True when both a device id and a device type were given."""
        return bool(self.device_id and self.device_type)

    @classmethod
    def from_env(cls, **overrides) -> DeployConfig:
        values = {
            "device_id": os.environ.get(ENV_DEVICE_ID) or None,
            "device_type": os.environ.get(ENV_DEVICE_TYPE) or None,
            "bundle_id_prefix": os.environ.get(ENV_BUNDLE_PREFIX) or DEFAULT_BUNDLE_PREFIX,
            "backend": os.environ.get(ENV_BACKEND) or "auto",
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

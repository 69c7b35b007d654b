"""Choosing which device a deployment run targets."""

from __future__ import annotations

import logging

from ..config import DeployConfig, DeviceType
from ..errors import ConfigError, ExternalToolError, NotFoundError
from . import DeviceTarget, SimulatorTarget, Target
from .directory import DeviceDirectory

logger = logging.getLogger(__name__)


def select_target(config: DeployConfig, directory: DeviceDirectory) -> Target:
    """Resolve the single target for this run.

    An explicit id + type in the config wins. A simulator id is taken on
    faith (no existence or boot check); a device id must match a connected
    device. Otherwise the first connected device is used, then the first
    booted simulator.
    """
    logger.debug("Finding device")
    if config.explicit_target:
        logger.info("Device is specified in configuration: %s", config.device_id)
        if config.device_type is DeviceType.SIMULATOR:
            return SimulatorTarget(udid=config.device_id)
        device = directory.find_physical_device(config.device_id)
        if device is None:
            raise NotFoundError(
                f"Failed to find a connected device with specified id {config.device_id}"
            )
        return DeviceTarget(device=device)

    connected = directory.list_physical_devices()
    if connected:
        return DeviceTarget(device=connected[0])

    logger.info("Failed to find connected device. Searching a booted simulator")
    try:
        simulators = directory.list_simulator_devices()
    except ExternalToolError as e:
        logger.warning("Could not list simulators: %s", e)
        raise ConfigError("No connected device or booted simulator found") from e

    for simulator in simulators:
        if simulator.booted:
            return SimulatorTarget(udid=simulator.udid)
    raise ConfigError("No connected device or booted simulator found")

"""High-level deployment SDK.

Usage:
    from xcdeploy import Deployer

    deployer = Deployer()
    deployer.devices()
    deployer.deploy("target/xcodegen/my_app", "my_app")
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from .config import DeployConfig
from .core import BuildType, Target
from .core.directory import DeviceDirectory
from .core.installer import Installer, build_app_path, bundle_identifier
from .core.selector import select_target
from .core.simctl import Simctl
from .errors import ConfigError
from .native import DeviceService, Operation, get_service, lookup_handle
from .native.codes import translate

logger = logging.getLogger(__name__)


class Deployer:
    """Select a target and put an app on it."""

    def __init__(
        self,
        config: Optional[DeployConfig] = None,
        service: Optional[DeviceService] = None,
        simctl: Optional[Simctl] = None,
    ):
        self.config = config or DeployConfig.from_env()
        self.service = service or get_service(self.config.backend)
        self.simctl = simctl or Simctl()
        self.directory = DeviceDirectory(self.service, self.simctl)
        self.installer = Installer(self.service, self.simctl)

    # -- Discovery --

    def devices(self) -> dict:
        """Connected devices and booted simulators."""
        return {
            "devices": [d.to_dict() for d in self.directory.list_physical_devices()],
            "simulators": [s.to_dict() for s in self.directory.booted_simulators()],
        }

    def select_target(self) -> Target:
        return select_target(self.config, self.directory)

    # -- Install / launch --

    def install(self, bundle_path: str, bundle_id: Optional[str] = None) -> dict:
        """Install an already-built bundle on the selected target.

        Simulators also need ``bundle_id`` so the app can be launched.
        """
        target = self.select_target()
        if target.kind == "simulator" and not bundle_id:
            raise ConfigError("A bundle id is required to launch on a simulator")
        return self.installer.deploy(target, bundle_path, bundle_id or "")

    def launch(self, bundle_id: str, udid: Optional[str] = None) -> dict:
        """Launch an installed app on a simulator."""
        if udid is None:
            target = self.select_target()
            if target.kind != "simulator":
                raise ConfigError("Launching is only supported on simulators")
            udid = target.identifier
        self.installer.launch_on_simulator(udid, bundle_id)
        return {"udid": udid, "bundle_id": bundle_id, "launched": True}

    def deploy(
        self,
        project_dir: Optional[str] = None,
        app_name: Optional[str] = None,
        build_type: Optional[BuildType | str] = None,
        bundle_prefix: Optional[str] = None,
    ) -> dict:
        """Install the built app from ``project_dir`` and launch it if possible."""
        project_dir = project_dir or self.config.project_dir
        app_name = app_name or self.config.app_name
        if not project_dir or not app_name:
            raise ConfigError("Both a project directory and an app name are required")
        build_type = BuildType.parse(build_type or self.config.build_type)

        target = self.select_target()
        bundle_path = build_app_path(target, build_type, app_name)
        bundle_id = bundle_identifier(bundle_prefix or self.config.bundle_id_prefix, app_name)
        logger.debug("%s path: %s", bundle_id, bundle_path)
        return self.installer.deploy(
            target, bundle_path, bundle_id, cwd=os.path.abspath(project_dir)
        )

    # -- Device management --

    def boot(self, udid: str) -> dict:
        """Boot a simulator and bring up Simulator.app."""
        self.simctl.boot(udid)
        self.simctl.open_simulator_app()
        return {"udid": udid, "status": "booted"}

    def pair(self, device_id: str) -> dict:
        """Pair with a device (shows the trust dialog on it)."""
        handle = lookup_handle(self.service, device_id)
        translate(self.service.call(Operation.CONNECT, handle).status, "pair.connect")
        try:
            translate(self.service.call(Operation.PAIR, handle).status, "pair.pair")
        finally:
            try:
                self.service.call(Operation.DISCONNECT, handle)
            except Exception as e:
                logger.debug("disconnect after pair failed: %s", e)
        return {"status": "paired", "udid": device_id}

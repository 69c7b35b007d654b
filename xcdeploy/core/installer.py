"""Installing built app bundles onto devices and simulators.

Physical devices use the two-phase secure protocol: transfer the bundle, then
install it, each phase inside its own DeviceSession. Simulators go through
``simctl install`` and ``simctl launch``.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..errors import NotFoundError
from ..native import DeviceService, INSTALL_OPTIONS, Operation, get_service, lookup_handle
from ..native.codes import translate
from . import BuildType, DeviceTarget, PhysicalDevice, SimulatorTarget, Target
from .session import DeviceSession
from .simctl import Simctl

logger = logging.getLogger(__name__)


PRODUCTS_DIR = "build/Build/Products"


def bundle_identifier(prefix: str, app_name: str) -> str:
    """Fully-qualified bundle id: ``<prefix>.<app-name>``."""
    return f"{prefix}.{app_name.replace('_', '-')}"


def build_app_path(target: Target, build_type: BuildType, app_name: str) -> str:
    """Location of the built .app, relative to the generated project dir."""
    match target:
        case DeviceTarget():
            sdk = "iphoneos"
        case SimulatorTarget():
            sdk = "iphonesimulator"
        case _:
            raise TypeError(f"Unknown target: {target!r}")
    return f"{PRODUCTS_DIR}/{build_type.configuration}-{sdk}/{app_name}.app"


class Installer:
    """Installs bundles onto the selected target."""

    def __init__(self, service: Optional[DeviceService] = None, simctl: Optional[Simctl] = None):
        self._service = service
        self.simctl = simctl or Simctl()

    @property
    def service(self) -> DeviceService:
        if self._service is None:
            self._service = get_service()
        return self._service

    # ------------------------------------------------------------------
    # Physical device
    # ------------------------------------------------------------------

    def install_to_device(self, device: PhysicalDevice, bundle_path: str):
        """Transfer then install a bundle, one fresh session per phase."""
        logger.debug("Installing app: %s to device %s", bundle_path, device.identifier)
        if not os.path.isdir(bundle_path):
            raise NotFoundError(f"AppPath is not a dir or not exists: {bundle_path}")
        path = os.path.abspath(bundle_path)

        self._secure_phase(
            device, Operation.SECURE_TRANSFER_PATH, path, "install_app.secure_transfer_path"
        )
        self._secure_phase(
            device, Operation.SECURE_INSTALL_APPLICATION, path, "install_app.secure_install_application"
        )
        logger.info("Installed %s on device %s", bundle_path, device.identifier)

    def _secure_phase(self, device: PhysicalDevice, operation: Operation, path: str, context: str):
        handle = lookup_handle(self.service, device.identifier)
        with DeviceSession.open(self.service, handle, device.identifier) as session:
            logger.debug("%s...", operation.value)
            result = session.call(operation, path=path, options=dict(INSTALL_OPTIONS))
            translate(result.status, context)

    # ------------------------------------------------------------------
    # Simulator
    # ------------------------------------------------------------------

    def install_to_simulator(self, udid: str, bundle_path: str, cwd: Optional[str] = None):
        logger.info("Installing app %s on simulator %s", bundle_path, udid)
        self.simctl.install(udid, bundle_path, cwd=cwd)

    def launch_on_simulator(self, udid: str, bundle_id: str):
        logger.info("Running app %s on simulator %s", bundle_id, udid)
        self.simctl.launch(udid, bundle_id)

    # ------------------------------------------------------------------
    # Target dispatch
    # ------------------------------------------------------------------

    def deploy(
        self,
        target: Target,
        bundle_path: str,
        bundle_id: str,
        cwd: Optional[str] = None,
    ) -> dict:
        """Install on the target; simulators are also launched.

        ``bundle_path`` is resolved against ``cwd`` when relative. A failed
        launch does not undo the install.
        """
        match target:
            case DeviceTarget(device=device):
                full_path = os.path.join(cwd, bundle_path) if cwd else bundle_path
                self.install_to_device(device, full_path)
                launched = False
            case SimulatorTarget(udid=udid):
                self.install_to_simulator(udid, bundle_path, cwd=cwd)
                self.launch_on_simulator(udid, bundle_id)
                launched = True
            case _:
                raise TypeError(f"Unknown target: {target!r}")

        return {
            "target": target.kind,
            "id": target.identifier,
            "bundle_path": bundle_path,
            "bundle_id": bundle_id,
            "launched": launched,
        }

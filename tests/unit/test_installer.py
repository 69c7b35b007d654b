"""
Unit tests for bundle installation on devices and simulators
"""

import os

import pytest

from xcdeploy.core import BuildType, ConnectionType, DeviceTarget, PhysicalDevice, SimulatorTarget
from xcdeploy.core.installer import Installer, build_app_path, bundle_identifier
from xcdeploy.core.simctl import ProcessResult
from xcdeploy.errors import ExternalToolError, NativeProtocolError, NotFoundError
from xcdeploy.native import INSTALL_OPTIONS, Operation
from xcdeploy.native.codes import APP_COUNT_LIMIT, MISSING_PROVISIONING_PROFILE, NOT_FOUND


def _device(identifier="00008030-AAAA"):
    return PhysicalDevice(
        identifier=identifier,
        name="Test iPhone",
        connection_type=ConnectionType.USB,
        cpu_architecture="arm64e",
        device_class="iPhone",
        os_version="15.2",
        model="D79AP",
    )


class TestNaming:
    """Tests for bundle_identifier and build_app_path"""

    def test_bundle_identifier_replaces_underscores(self):
        assert bundle_identifier("com.rust", "my_app") == "com.rust.my-app"

    def test_bundle_identifier_plain_name(self):
        assert bundle_identifier("org.example", "game") == "org.example.game"

    @pytest.mark.parametrize("target,build_type,expected", [
        (DeviceTarget(_device()), BuildType.DEBUG,
         "build/Build/Products/Debug-iphoneos/my_app.app"),
        (DeviceTarget(_device()), BuildType.RELEASE,
         "build/Build/Products/Release-iphoneos/my_app.app"),
        (SimulatorTarget("ABC"), BuildType.DEBUG,
         "build/Build/Products/Debug-iphonesimulator/my_app.app"),
    ])
    def test_build_app_path(self, target, build_type, expected):
        assert build_app_path(target, build_type, "my_app") == expected


class TestInstallToDevice:
    """Tests for the two-phase secure install"""

    def test_missing_bundle_makes_no_native_calls(self, service, simctl, tmp_path):
        installer = Installer(service, simctl)
        with pytest.raises(NotFoundError, match="AppPath is not a dir or not exists"):
            installer.install_to_device(_device(), str(tmp_path / "missing.app"))
        assert service.calls == []

    def test_bundle_that_is_a_file_is_rejected(self, service, simctl, tmp_path):
        path = tmp_path / "file.app"
        path.write_text("")
        with pytest.raises(NotFoundError):
            Installer(service, simctl).install_to_device(_device(), str(path))
        assert service.calls == []

    def test_two_sessions_transfer_then_install(self, service, simctl, app_bundle):
        Installer(service, simctl).install_to_device(_device(), str(app_bundle))

        assert service.count(Operation.START_SESSION) == 2
        assert service.count(Operation.STOP_SESSION) == 2
        assert service.count(Operation.DISCONNECT) == 2
        secure = [
            c for c in service.calls
            if c.operation in (Operation.SECURE_TRANSFER_PATH, Operation.SECURE_INSTALL_APPLICATION)
        ]
        assert [c.operation for c in secure] == [
            Operation.SECURE_TRANSFER_PATH,
            Operation.SECURE_INSTALL_APPLICATION,
        ]
        for call in secure:
            assert call.params["path"] == os.path.abspath(str(app_bundle))
            assert call.params["options"] == INSTALL_OPTIONS

    def test_transfer_failure_aborts_before_install(self, service, simctl, app_bundle):
        service.statuses[Operation.SECURE_TRANSFER_PATH] = NOT_FOUND
        with pytest.raises(NativeProtocolError) as exc:
            Installer(service, simctl).install_to_device(_device(), str(app_bundle))
        assert exc.value.context == "install_app.secure_transfer_path"
        assert service.count(Operation.SECURE_INSTALL_APPLICATION) == 0
        assert service.count(Operation.START_SESSION) == 1
        assert service.count(Operation.STOP_SESSION) == 1
        assert service.count(Operation.DISCONNECT) == 1

    @pytest.mark.parametrize("code", [MISSING_PROVISIONING_PROFILE, APP_COUNT_LIMIT])
    def test_install_failure_is_translated(self, service, simctl, app_bundle, code):
        service.statuses[Operation.SECURE_INSTALL_APPLICATION] = code
        with pytest.raises(NativeProtocolError) as exc:
            Installer(service, simctl).install_to_device(_device(), str(app_bundle))
        assert exc.value.code == code
        assert exc.value.context == "install_app.secure_install_application"
        assert service.count(Operation.DISCONNECT) == 2

    def test_device_gone_before_install(self, service, simctl, app_bundle):
        with pytest.raises(NotFoundError):
            Installer(service, simctl).install_to_device(_device("OTHER"), str(app_bundle))
        assert service.count(Operation.CONNECT) == 0


class TestSimulator:
    """Tests for simctl install and launch"""

    def test_deploy_installs_then_launches(self, service, simctl, runner):
        result = Installer(service, simctl).deploy(
            SimulatorTarget("SIM-1"), "build/my_app.app", "com.rust.my-app", cwd="/proj",
        )
        assert runner.subcommands() == ["install", "launch"]
        install, launch = runner.requests
        assert install.argv == ["xcrun", "simctl", "install", "SIM-1", "build/my_app.app"]
        assert install.cwd == "/proj"
        assert launch.argv == ["xcrun", "simctl", "launch", "SIM-1", "com.rust.my-app"]
        assert result == {
            "target": "simulator",
            "id": "SIM-1",
            "bundle_path": "build/my_app.app",
            "bundle_id": "com.rust.my-app",
            "launched": True,
        }
        assert service.calls == []

    def test_install_failure_skips_launch(self, service, simctl, runner):
        runner.responses["install"] = ProcessResult(1, "", "Invalid device")
        with pytest.raises(ExternalToolError, match="Failed to install app"):
            Installer(service, simctl).deploy(SimulatorTarget("SIM-1"), "x.app", "com.a.b")
        assert runner.subcommands() == ["install"]

    def test_launch_failure(self, service, simctl, runner):
        runner.responses["launch"] = ProcessResult(4, "", "not installed")
        with pytest.raises(ExternalToolError, match="Failed to run app"):
            Installer(service, simctl).deploy(SimulatorTarget("SIM-1"), "x.app", "com.a.b")


class TestDeployToDevice:
    """Tests for Installer.deploy with a physical target"""

    def test_path_is_joined_with_cwd(self, service, simctl, app_bundle, runner):
        result = Installer(service, simctl).deploy(
            DeviceTarget(_device()), app_bundle.name, "com.rust.my-app", cwd=str(app_bundle.parent),
        )
        assert result["launched"] is False
        assert result["target"] == "device"
        assert result["id"] == "00008030-AAAA"
        assert runner.requests == []
        transfer = next(c for c in service.calls if c.operation is Operation.SECURE_TRANSFER_PATH)
        assert transfer.params["path"] == os.path.abspath(str(app_bundle))

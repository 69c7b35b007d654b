"""
Shared pytest fixtures: an in-memory device service and a scripted process
runner, so nothing here needs a device or Xcode.
"""

import json

import pytest

from xcdeploy.core.simctl import ProcessResult, Simctl
from xcdeploy.native import DeviceService, NativeResult, Operation
from xcdeploy.native.codes import NOT_FOUND


def make_device(identifier, name="iPhone", interface=1, paired=True, **overrides):
    """Build a fake device entry with every identity value present."""
    values = {
        "DeviceName": name,
        "CPUArchitecture": "arm64e",
        "DeviceClass": "iPhone",
        "ProductVersion": "15.2",
        "HardwareModel": "D79AP",
    }
    values.update(overrides)
    return {
        "identifier": identifier,
        "interface": interface,
        "paired": paired,
        "values": {k: v for k, v in values.items() if v is not None},
    }


class FakeDeviceService(DeviceService):
    """Records every call; statuses can be forced per operation."""

    name = "fake"

    def __init__(self, devices=None):
        self.devices = dict(devices or {})
        self.statuses = {}
        self.raises = {}
        self.calls = []

    def execute(self, call):
        self.calls.append(call)
        if call.operation in self.raises:
            raise self.raises[call.operation]
        if call.operation in self.statuses:
            return NativeResult(self.statuses[call.operation])
        return super().execute(call)

    def count(self, operation):
        return sum(1 for c in self.calls if c.operation is operation)

    def operations(self):
        return [c.operation for c in self.calls]

    def enumerate_handles(self):
        return NativeResult(value=list(self.devices))

    def connect(self, handle):
        return NativeResult()

    def disconnect(self, handle):
        return NativeResult()

    def copy_identifier(self, handle):
        return NativeResult(value=self.devices[handle]["identifier"])

    def copy_value(self, handle, key, domain=None):
        value = self.devices[handle]["values"].get(key)
        if value is None:
            return NativeResult(NOT_FOUND)
        return NativeResult(value=value)

    def get_interface_type(self, handle):
        return NativeResult(value=self.devices[handle]["interface"])

    def is_paired(self, handle):
        return NativeResult(value=self.devices[handle]["paired"])

    def pair(self, handle):
        return NativeResult()

    def validate_pairing(self, handle):
        return NativeResult()

    def start_session(self, handle):
        return NativeResult()

    def stop_session(self, handle):
        return NativeResult()

    def secure_transfer_path(self, handle, path, options):
        return NativeResult()

    def secure_install_application(self, handle, path, options):
        return NativeResult()


class FakeRunner:
    """Scripted stand-in for run_process, keyed by simctl subcommand."""

    def __init__(self):
        self.requests = []
        self.responses = {}

    def __call__(self, request):
        self.requests.append(request)
        key = request.args[1] if request.args[:1] == ("simctl",) else request.program
        return self.responses.get(key, ProcessResult(0))

    def subcommands(self):
        return [
            r.args[1] if r.args[:1] == ("simctl",) else r.program
            for r in self.requests
        ]


def simulator_listing(*runtimes):
    """JSON listing from (runtime_key, [devices]) pairs, in order."""
    return json.dumps({"devices": {key: devices for key, devices in runtimes}})


IOS_RUNTIME = "com.apple.CoreSimulator.SimRuntime.iOS-15-2"
TVOS_RUNTIME = "com.apple.CoreSimulator.SimRuntime.tvOS-15-2"
WATCHOS_RUNTIME = "com.apple.CoreSimulator.SimRuntime.watchOS-8-3"


@pytest.fixture
def service():
    return FakeDeviceService({"h1": make_device("00008030-AAAA", name="Test iPhone")})


@pytest.fixture
def empty_service():
    return FakeDeviceService()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def simctl(runner):
    return Simctl(runner)


@pytest.fixture
def app_bundle(tmp_path):
    """A minimal built .app directory."""
    bundle = tmp_path / "my_app.app"
    bundle.mkdir()
    (bundle / "Info.plist").write_text("<plist/>")
    (bundle / "my_app").write_bytes(b"\xcf\xfa\xed\xfe")
    return bundle

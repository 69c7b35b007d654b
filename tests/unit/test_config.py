"""
Unit tests for DeployConfig and enum parsing
"""

import logging

import pytest

from xcdeploy.config import (
    DEFAULT_BUNDLE_PREFIX,
    ENV_BACKEND,
    ENV_BUNDLE_PREFIX,
    ENV_DEVICE_ID,
    ENV_DEVICE_TYPE,
    DeployConfig,
    DeviceType,
)
from xcdeploy.core import BuildType
from xcdeploy.errors import ConfigError


@pytest.fixture
def clean_env(monkeypatch):
    for name in (ENV_DEVICE_ID, ENV_DEVICE_TYPE, ENV_BUNDLE_PREFIX, ENV_BACKEND):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDeployConfig:
    """Tests for DeployConfig"""

    def test_defaults(self):
        config = DeployConfig()
        assert config.bundle_id_prefix == DEFAULT_BUNDLE_PREFIX == "com.rust"
        assert config.build_type is BuildType.DEBUG
        assert config.backend == "auto"
        assert not config.explicit_target

    def test_enums_parsed_from_strings(self):
        config = DeployConfig(device_id="X", device_type="Simulator", build_type="release")
        assert config.device_type is DeviceType.SIMULATOR
        assert config.build_type is BuildType.RELEASE
        assert config.explicit_target

    def test_bad_device_type(self):
        with pytest.raises(ConfigError, match="phone"):
            DeployConfig(device_type="phone")

    def test_bad_build_type(self):
        with pytest.raises(ConfigError):
            DeployConfig(build_type="profile")

    @pytest.mark.parametrize("device_id,device_type", [("X", None), (None, "device")])
    def test_partial_override_is_not_explicit(self, device_id, device_type):
        assert not DeployConfig(device_id=device_id, device_type=device_type).explicit_target

    def test_partial_override_logged_once(self, caplog):
        with caplog.at_level(logging.INFO, logger="xcdeploy.config"):
            config = DeployConfig(device_id="X")
            for _ in range(3):
                assert not config.explicit_target
        assert caplog.text.count("Ignoring partial device override") == 1


class TestFromEnv:
    """Tests for DeployConfig.from_env"""

    def test_reads_environment(self, clean_env):
        clean_env.setenv(ENV_DEVICE_ID, "SIM-1")
        clean_env.setenv(ENV_DEVICE_TYPE, "simulator")
        clean_env.setenv(ENV_BUNDLE_PREFIX, "org.example")
        clean_env.setenv(ENV_BACKEND, "usbmux")
        config = DeployConfig.from_env()
        assert config.device_id == "SIM-1"
        assert config.device_type is DeviceType.SIMULATOR
        assert config.bundle_id_prefix == "org.example"
        assert config.backend == "usbmux"

    def test_empty_values_are_unset(self, clean_env):
        clean_env.setenv(ENV_DEVICE_ID, "")
        clean_env.setenv(ENV_BUNDLE_PREFIX, "")
        config = DeployConfig.from_env()
        assert config.device_id is None
        assert config.bundle_id_prefix == DEFAULT_BUNDLE_PREFIX

    def test_overrides_win(self, clean_env):
        clean_env.setenv(ENV_DEVICE_ID, "FROM-ENV")
        config = DeployConfig.from_env(device_id="OVERRIDE", app_name="my_app", project_dir=None)
        assert config.device_id == "OVERRIDE"
        assert config.app_name == "my_app"
        assert config.project_dir is None


class TestBuildType:
    """Tests for BuildType.parse"""

    @pytest.mark.parametrize("value,expected", [
        ("debug", BuildType.DEBUG),
        ("Release", BuildType.RELEASE),
        (BuildType.RELEASE, BuildType.RELEASE),
    ])
    def test_parse(self, value, expected):
        assert BuildType.parse(value) is expected

    def test_configuration(self):
        assert BuildType.DEBUG.configuration == "Debug"

"""
Unit tests for process execution and the simctl wrapper
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from xcdeploy.core.simctl import ProcessRequest, ProcessResult, Simctl, run_process
from xcdeploy.errors import ExternalToolError


class TestRunProcess:
    """Tests for run_process"""

    @patch("xcdeploy.core.simctl.subprocess.run")
    def test_captures_output(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="out", stderr="err")
        result = run_process(ProcessRequest("xcrun", ("simctl", "list"), cwd="/tmp"))
        assert result == ProcessResult(0, "out", "err")
        mock_run.assert_called_once_with(
            ["xcrun", "simctl", "list"], cwd="/tmp", capture_output=True, text=True,
        )

    @patch("xcdeploy.core.simctl.subprocess.run")
    def test_non_zero_exit_is_returned(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess([], 3, "", "bad")
        result = run_process(ProcessRequest("false"))
        assert not result.ok
        assert result.returncode == 3

    @patch("xcdeploy.core.simctl.subprocess.run", side_effect=FileNotFoundError)
    def test_missing_program(self, mock_run):
        with pytest.raises(ExternalToolError, match="Command not found: xcrun"):
            run_process(ProcessRequest("xcrun"))


class TestSimctl:
    """Tests for the Simctl wrapper"""

    def test_boot(self, simctl, runner):
        simctl.boot("SIM-1")
        assert runner.requests[0].argv == ["xcrun", "simctl", "boot", "SIM-1"]

    def test_boot_failure_names_udid(self, simctl, runner):
        runner.responses["boot"] = ProcessResult(149, "", "Unable to boot device in current state: Booted")
        with pytest.raises(ExternalToolError) as exc:
            simctl.boot("SIM-1")
        assert "Failed to boot simulator with id: SIM-1" in str(exc.value)
        assert "current state: Booted" in str(exc.value)
        assert exc.value.command == ["xcrun", "simctl", "boot", "SIM-1"]

    def test_open_simulator_app(self, simctl, runner):
        simctl.open_simulator_app()
        assert runner.requests[0].argv == ["open", "-a", "Simulator.app"]

    def test_version_first_line(self, simctl, runner):
        runner.responses["xcrun"] = ProcessResult(0, "Xcode 15.0\nBuild version 15A240d\n")
        assert simctl.version() == "Xcode 15.0"

    def test_default_runner(self):
        with patch("xcdeploy.core.simctl.run_process") as mock_run:
            mock_run.return_value = ProcessResult(0)
            Simctl().launch("SIM-1", "com.a.b")
        mock_run.assert_called_once()

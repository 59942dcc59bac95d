"""Unit tests for the cross-build driver."""

import os
import subprocess
from unittest.mock import patch

import pytest

from crosspack.build.cross_build import (
    BuildMode,
    CrossBuildDriver,
    CrossBuildError,
)
from crosspack.config import TargetTriple
from crosspack.packages import Toolchain


class TestCrossBuildDriver:
    """Tests for CrossBuildDriver."""

    @pytest.fixture
    def driver(self, toolchain):
        return CrossBuildDriver(toolchain)

    def test_build_command_release(self, driver):
        assert driver.build_command("release") == [
            "cargo",
            "zigbuild",
            "--release",
            "--target",
            "aarch64-unknown-linux-musl",
        ]

    def test_build_command_debug(self, driver):
        assert "--release" not in driver.build_command("debug")

    def test_output_dir_is_target_scoped(self, tmp_path, toolchain):
        x86 = Toolchain(
            path=toolchain.path,
            version=toolchain.version,
            target=TargetTriple.parse("x86_64-unknown-linux-musl"),
        )

        arm_out = CrossBuildDriver(toolchain).output_dir(tmp_path / "target", "release")
        x86_out = CrossBuildDriver(x86).output_dir(tmp_path / "target", "release")

        assert arm_out == tmp_path / "target" / "aarch64-unknown-linux-musl" / "release"
        assert arm_out != x86_out

    @patch("crosspack.build.cross_build.subprocess.run")
    def test_build_success(self, mock_run, driver, tmp_path):
        mock_run.return_value = subprocess.CompletedProcess(
            [], 0, stdout="", stderr="   Compiling ops v0.1.0\n    Finished release"
        )

        result = driver.build(tmp_path, BuildMode.FULL, "release", tmp_path / "target")

        assert result.mode is BuildMode.FULL
        assert result.output_dir == (
            tmp_path / "target" / "aarch64-unknown-linux-musl" / "release"
        )

        kwargs = mock_run.call_args.kwargs
        assert kwargs["cwd"] == tmp_path
        assert kwargs["env"]["CARGO_TARGET_DIR"] == str(tmp_path / "target")
        assert kwargs["env"]["PATH"].startswith(str(driver.toolchain.path))

    @patch("crosspack.build.cross_build.subprocess.run")
    def test_build_does_not_touch_process_env(self, mock_run, driver, tmp_path, monkeypatch):
        monkeypatch.delenv("CARGO_TARGET_DIR", raising=False)
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout="", stderr="")

        driver.build(tmp_path, BuildMode.DEPENDENCIES, "release", tmp_path / "target")

        assert "CARGO_TARGET_DIR" not in os.environ
        assert not os.environ.get("PATH", "").startswith(str(driver.toolchain.path))

    @patch("crosspack.build.cross_build.subprocess.run")
    def test_build_failure_carries_diagnostics(self, mock_run, driver, tmp_path):
        stderr = "error[E0425]: cannot find value `x` in this scope"
        mock_run.return_value = subprocess.CompletedProcess(
            [], 101, stdout="", stderr=stderr
        )

        with pytest.raises(CrossBuildError) as exc_info:
            driver.build(tmp_path, BuildMode.FULL, "release", tmp_path / "target")

        assert exc_info.value.returncode == 101
        assert exc_info.value.stderr == stderr
        assert stderr in str(exc_info.value)

    @patch("crosspack.build.cross_build.subprocess.run")
    def test_build_tool_missing(self, mock_run, driver, tmp_path):
        mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "cargo")

        with pytest.raises(CrossBuildError, match="Failed to run cargo zigbuild"):
            driver.build(tmp_path, BuildMode.FULL, "release", tmp_path / "target")

    @patch("crosspack.build.cross_build.subprocess.run")
    def test_build_is_not_retried(self, mock_run, driver, tmp_path):
        mock_run.return_value = subprocess.CompletedProcess([], 1, stdout="", stderr="")

        with pytest.raises(CrossBuildError):
            driver.build(tmp_path, BuildMode.FULL, "release", tmp_path / "target")

        assert mock_run.call_count == 1

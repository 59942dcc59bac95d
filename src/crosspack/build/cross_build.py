"""Cross-Build Driver.

This module wraps ``cargo zigbuild`` so that compilation targets the
configured triple and links through the provisioned Zig toolchain rather
than the host's native one.

Design:
    - One driver per Toolchain; the target triple comes from the toolchain
    - Output always lands in <target_dir>/<triple>/<profile>
    - Tool failures are raised verbatim as CrossBuildError, never retried
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List

from ..packages.toolchain import Toolchain

logger = logging.getLogger(__name__)


class CrossBuildError(Exception):
    """Raised when the cross build tool fails or cannot be started."""

    def __init__(self, message: str, returncode: int = -1, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class BuildMode(Enum):
    """What a cross build invocation is expected to produce."""

    # Stub program; only the compiled dependencies matter
    DEPENDENCIES = "dependencies"
    # Real program; the executable is required
    FULL = "full"


@dataclass(frozen=True)
class CrossBuildResult:
    """Result of a successful cross build invocation."""

    mode: BuildMode
    output_dir: Path
    stdout: str
    stderr: str


class CrossBuildDriver:
    """Runs cargo builds for a foreign target triple.

    Example usage:
        driver = CrossBuildDriver(toolchain)
        result = driver.build(workspace, BuildMode.FULL, "release", target_dir)
        binary = result.output_dir / "ops"
    """

    def __init__(self, toolchain: Toolchain, verbose: bool = False):
        """Initialize the driver.

        Args:
            toolchain: Provisioned cross toolchain
            verbose: Echo tool output after each build
        """
        self.toolchain = toolchain
        self.verbose = verbose

    @property
    def target(self) -> str:
        return str(self.toolchain.target)

    def output_dir(self, target_dir: Path, profile: str) -> Path:
        """Get the target-scoped output directory.

        Args:
            target_dir: CARGO_TARGET_DIR of the build
            profile: 'release' or 'debug'

        Returns:
            Directory where cargo places artifacts for this triple
        """
        return target_dir / self.target / profile

    def build_command(self, profile: str) -> List[str]:
        """Build the cargo command line for a profile."""
        cmd = ["cargo", "zigbuild"]
        if profile == "release":
            cmd.append("--release")
        cmd.extend(["--target", self.target])
        return cmd

    def build(
        self,
        workspace: Path,
        mode: BuildMode,
        profile: str,
        target_dir: Path,
    ) -> CrossBuildResult:
        """Run a cross build in a workspace.

        Args:
            workspace: Directory containing Cargo.toml
            mode: Dependency-only or full build
            profile: 'release' or 'debug'
            target_dir: Directory to use as CARGO_TARGET_DIR

        Returns:
            CrossBuildResult

        Raises:
            CrossBuildError: If cargo cannot be started or exits non-zero
        """
        cmd = self.build_command(profile)
        env = self.toolchain.env()
        env["CARGO_TARGET_DIR"] = str(target_dir)

        logger.info("Running %s in %s (%s)", " ".join(cmd), workspace, mode.value)

        try:
            result = subprocess.run(
                cmd,
                cwd=workspace,
                env=env,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise CrossBuildError(f"Failed to run {' '.join(cmd)}: {e}") from e

        if self.verbose and result.stderr:
            print(result.stderr)

        if result.returncode != 0:
            raise CrossBuildError(
                f"{' '.join(cmd)} failed with exit code {result.returncode}\n"
                + f"stderr: {result.stderr}\n"
                + f"stdout: {result.stdout}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        return CrossBuildResult(
            mode=mode,
            output_dir=self.output_dir(target_dir, profile),
            stdout=result.stdout,
            stderr=result.stderr,
        )

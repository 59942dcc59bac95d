"""
Pipeline configuration.

Settings are resolved in increasing order of precedence:
    1. Built-in defaults
    2. The [crosspack] section of crosspack.ini in the project directory
    3. Environment variables (CROSSPACK_TARGET, ZIG_VERSION, CROSSPACK_PROFILE)
    4. Explicit overrides (command-line flags)

Example crosspack.ini:
    [crosspack]
    target = aarch64-unknown-linux-musl
    toolchain_version = 0.12.0
    profile = release
    binary = ops
    default_args = env
"""

import configparser
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .target_triple import TargetTriple, TargetTripleError

CONFIG_FILE_NAME = "crosspack.ini"
CONFIG_SECTION = "crosspack"

DEFAULT_TARGET = "aarch64-unknown-linux-musl"
DEFAULT_TOOLCHAIN_VERSION = "0.12.0"
DEFAULT_PROFILE = "release"
DEFAULT_ARGS = ("env",)
DEFAULT_TRUST_BUNDLE = Path("/etc/ssl/certs/ca-certificates.crt")

PROFILES = ("release", "debug")

# Environment variable -> config key
ENV_OVERRIDES = {
    "CROSSPACK_TARGET": "target",
    "ZIG_VERSION": "toolchain_version",
    "CROSSPACK_PROFILE": "profile",
}

KNOWN_KEYS = {
    "target",
    "toolchain_version",
    "toolchain_checksum",
    "profile",
    "binary",
    "entrypoint",
    "default_args",
    "trust_bundle",
    "output",
}


class ConfigError(Exception):
    """Exception raised for invalid pipeline configuration."""

    pass


@dataclass(frozen=True)
class PipelineConfig:
    """Resolved settings for a single pipeline run."""

    target: TargetTriple
    toolchain_version: str = DEFAULT_TOOLCHAIN_VERSION
    toolchain_checksum: Optional[str] = None
    profile: str = DEFAULT_PROFILE
    binary_name: Optional[str] = None
    entrypoint: Optional[str] = None
    default_args: Tuple[str, ...] = DEFAULT_ARGS
    trust_bundle: Path = DEFAULT_TRUST_BUNDLE
    output: Optional[Path] = None


class PipelineConfigLoader:
    """Loads PipelineConfig from defaults, crosspack.ini, environment and overrides."""

    @staticmethod
    def read_ini(project_dir: Path) -> Dict[str, str]:
        """
        Read the [crosspack] section of crosspack.ini, if present.

        Args:
            project_dir: Project directory

        Returns:
            Dictionary of raw string settings (empty if no file)

        Raises:
            ConfigError: If the file cannot be parsed or has unknown keys
        """
        ini_path = project_dir / CONFIG_FILE_NAME
        if not ini_path.exists():
            return {}

        parser = configparser.ConfigParser(
            interpolation=configparser.ExtendedInterpolation()
        )
        try:
            parser.read(ini_path, encoding="utf-8")
            if not parser.has_section(CONFIG_SECTION):
                return {}
            values = dict(parser.items(CONFIG_SECTION))
        except configparser.Error as e:
            raise ConfigError(f"Failed to parse {ini_path}: {e}") from e

        unknown = sorted(set(values) - KNOWN_KEYS)
        if unknown:
            raise ConfigError(
                f"Unknown setting(s) in {ini_path}: {', '.join(unknown)}"
            )
        return values

    @classmethod
    def load(
        cls,
        project_dir: Path,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> PipelineConfig:
        """
        Resolve the pipeline configuration for a project.

        Args:
            project_dir: Project directory
            overrides: Highest-precedence values; None entries are ignored

        Returns:
            PipelineConfig

        Raises:
            ConfigError: If any resolved value is invalid
        """
        values: Dict[str, Any] = cls.read_ini(Path(project_dir))

        for env_var, key in ENV_OVERRIDES.items():
            env_value = os.environ.get(env_var)
            if env_value:
                values[key] = env_value

        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value

        return cls._build(values)

    @staticmethod
    def _build(values: Dict[str, Any]) -> PipelineConfig:
        try:
            target = TargetTriple.parse(str(values.get("target", DEFAULT_TARGET)))
        except TargetTripleError as e:
            raise ConfigError(str(e)) from e

        profile = str(values.get("profile", DEFAULT_PROFILE)).lower()
        if profile not in PROFILES:
            raise ConfigError(
                f"Invalid profile '{profile}' (expected one of: {', '.join(PROFILES)})"
            )

        default_args = values.get("default_args", DEFAULT_ARGS)
        if isinstance(default_args, str):
            try:
                default_args = shlex.split(default_args)
            except ValueError as e:
                raise ConfigError(f"Invalid default_args '{default_args}': {e}") from e
        default_args = tuple(default_args)

        output = values.get("output")

        return PipelineConfig(
            target=target,
            toolchain_version=str(
                values.get("toolchain_version", DEFAULT_TOOLCHAIN_VERSION)
            ),
            toolchain_checksum=values.get("toolchain_checksum") or None,
            profile=profile,
            binary_name=values.get("binary") or None,
            entrypoint=values.get("entrypoint") or None,
            default_args=default_args,
            trust_bundle=Path(values.get("trust_bundle", DEFAULT_TRUST_BUNDLE)),
            output=Path(output) if output else None,
        )

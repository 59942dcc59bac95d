"""Unit tests for pipeline configuration loading."""

from pathlib import Path

import pytest

from crosspack.config.pipeline_config import (
    DEFAULT_TRUST_BUNDLE,
    ConfigError,
    PipelineConfigLoader,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("CROSSPACK_TARGET", "ZIG_VERSION", "CROSSPACK_PROFILE"):
        monkeypatch.delenv(var, raising=False)


def _write_ini(project_dir: Path, body: str) -> None:
    (project_dir / "crosspack.ini").write_text("[crosspack]\n" + body)


class TestPipelineConfigLoader:
    """Tests for PipelineConfigLoader."""

    def test_defaults(self, tmp_path):
        config = PipelineConfigLoader.load(tmp_path)

        assert str(config.target) == "aarch64-unknown-linux-musl"
        assert config.toolchain_version == "0.12.0"
        assert config.toolchain_checksum is None
        assert config.profile == "release"
        assert config.binary_name is None
        assert config.entrypoint is None
        assert config.default_args == ("env",)
        assert config.trust_bundle == DEFAULT_TRUST_BUNDLE
        assert config.output is None

    def test_ini_values(self, tmp_path):
        _write_ini(
            tmp_path,
            "target = x86_64-unknown-linux-musl\n"
            "toolchain_version = 0.11.0\n"
            "profile = debug\n"
            "binary = opsd\n"
            "entrypoint = /bin/opsd\n"
            "default_args = --listen 0.0.0.0:8080\n"
            "output = dist/opsd.tar\n",
        )

        config = PipelineConfigLoader.load(tmp_path)

        assert str(config.target) == "x86_64-unknown-linux-musl"
        assert config.toolchain_version == "0.11.0"
        assert config.profile == "debug"
        assert config.binary_name == "opsd"
        assert config.entrypoint == "/bin/opsd"
        assert config.default_args == ("--listen", "0.0.0.0:8080")
        assert config.output == Path("dist/opsd.tar")

    def test_env_overrides_ini(self, tmp_path, monkeypatch):
        _write_ini(tmp_path, "toolchain_version = 0.11.0\n")
        monkeypatch.setenv("ZIG_VERSION", "0.13.0")
        monkeypatch.setenv("CROSSPACK_TARGET", "x86_64-unknown-linux-musl")

        config = PipelineConfigLoader.load(tmp_path)

        assert config.toolchain_version == "0.13.0"
        assert str(config.target) == "x86_64-unknown-linux-musl"

    def test_overrides_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CROSSPACK_PROFILE", "debug")

        config = PipelineConfigLoader.load(
            tmp_path, overrides={"profile": "release", "target": None}
        )

        assert config.profile == "release"
        assert str(config.target) == "aarch64-unknown-linux-musl"

    def test_section_missing(self, tmp_path):
        (tmp_path / "crosspack.ini").write_text("[other]\nkey = value\n")
        assert PipelineConfigLoader.read_ini(tmp_path) == {}

    def test_unknown_key(self, tmp_path):
        _write_ini(tmp_path, "targte = aarch64-unknown-linux-musl\n")

        with pytest.raises(ConfigError, match="targte"):
            PipelineConfigLoader.load(tmp_path)

    def test_malformed_ini(self, tmp_path):
        (tmp_path / "crosspack.ini").write_text("target = no section header\n")

        with pytest.raises(ConfigError, match="Failed to parse"):
            PipelineConfigLoader.load(tmp_path)

    def test_bad_interpolation(self, tmp_path):
        _write_ini(tmp_path, "default_args = echo $HOME\n")

        with pytest.raises(ConfigError, match="Failed to parse"):
            PipelineConfigLoader.load(tmp_path)

    def test_unbalanced_quotes_in_default_args(self, tmp_path):
        _write_ini(tmp_path, "default_args = serve \"--port 80\n")

        with pytest.raises(ConfigError, match="Invalid default_args"):
            PipelineConfigLoader.load(tmp_path)

    def test_invalid_target(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid target triple"):
            PipelineConfigLoader.load(tmp_path, overrides={"target": "aarch64"})

    def test_invalid_profile(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid profile"):
            PipelineConfigLoader.load(tmp_path, overrides={"profile": "fast"})

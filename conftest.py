"""
Pytest configuration for crosspack test suite.

Integration tests run the real toolchain (network, cargo, zig) and are
skipped unless the --full flag is given. Shared fixtures describe a small
Cargo project and a fake cargo driver that writes the files a real
cross build would.
"""

from pathlib import Path

import pytest

from crosspack.build.cross_build import BuildMode, CrossBuildError, CrossBuildResult
from crosspack.config import TargetTriple
from crosspack.packages import Cache, Toolchain


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--full",
        action="store_true",
        default=False,
        help="Run full test suite including integration tests (slow)",
    )


def pytest_configure(config):
    """Register the integration marker."""
    config.addinivalue_line(
        "markers", "integration: needs network access and a Rust toolchain"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --full was given."""
    if config.getoption("--full"):
        return

    skip_integration = pytest.mark.skip(reason="integration test (use --full)")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


TARGET = "aarch64-unknown-linux-musl"

CARGO_TOML = """[package]
name = "ops"
version = "0.1.0"
edition = "2021"

[dependencies]
d = "1.0.0"
"""

CARGO_LOCK = """# This file is automatically @generated by Cargo.
# It is not intended for manual editing.
version = 3

[[package]]
name = "d"
version = "1.0.3"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "5f2c1f9a4d0c5e3b7a6d8e9f0a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6e7f8a9b"

[[package]]
name = "ops"
version = "0.1.0"
dependencies = [
 "d",
]
"""

MAIN_RS = """fn main() {
    println!("ops");
}
"""

TRUST_BUNDLE = """-----BEGIN CERTIFICATE-----
MIIBfakecertificatedata
-----END CERTIFICATE-----
"""


class FakeCargo:
    """Stands in for CrossBuildDriver and writes the files cargo would.

    Every build "compiles" the dependency into the target-scoped deps
    directory before failing (if told to), so a failed dependency build
    still leaves compiled dependencies behind, like a stub link failure.
    """

    def __init__(self, toolchain, fail_modes=(), produce_binary=True, binary="ops"):
        self.toolchain = toolchain
        self.fail_modes = set(fail_modes)
        self.produce_binary = produce_binary
        self.binary = binary
        self.calls = []

    def output_dir(self, target_dir: Path, profile: str) -> Path:
        return target_dir / str(self.toolchain.target) / profile

    def build(self, workspace, mode, profile, target_dir):
        out = self.output_dir(target_dir, profile)
        self.calls.append(
            {
                "mode": mode,
                "profile": profile,
                "workspace": workspace,
                "target_dir": target_dir,
                "manifest": (workspace / "Cargo.toml").read_text(),
                "main_rs": (workspace / "src" / "main.rs").read_text(),
                "deps_warm": (out / "deps" / "libd-1.0.3.rlib").exists(),
            }
        )

        (out / "deps").mkdir(parents=True, exist_ok=True)
        (out / "deps" / "libd-1.0.3.rlib").write_bytes(b"rlib")

        if mode in self.fail_modes:
            raise CrossBuildError(
                "cargo zigbuild failed with exit code 101\nerror: linking failed",
                returncode=101,
                stderr="error: linking failed",
            )

        if mode is BuildMode.FULL and self.produce_binary:
            (out / self.binary).write_bytes(b"\x7fELF static ops binary")

        return CrossBuildResult(mode=mode, output_dir=out, stdout="", stderr="")


@pytest.fixture
def target():
    return TargetTriple.parse(TARGET)


@pytest.fixture
def cargo_project(tmp_path):
    """Create a minimal Cargo project with one locked dependency."""
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "Cargo.toml").write_text(CARGO_TOML)
    (project / "Cargo.lock").write_text(CARGO_LOCK)
    (project / "src" / "main.rs").write_text(MAIN_RS)
    return project


@pytest.fixture
def cache(tmp_path, monkeypatch, cargo_project):
    """Cache with its host-wide root inside the test directory."""
    monkeypatch.setenv("CROSSPACK_CACHE_DIR", str(tmp_path / "host-cache"))
    return Cache(cargo_project)


@pytest.fixture
def toolchain(tmp_path, target):
    return Toolchain(path=tmp_path / "zig", version="0.12.0", target=target)


@pytest.fixture
def trust_bundle(tmp_path):
    bundle = tmp_path / "ca-certificates.crt"
    bundle.write_text(TRUST_BUNDLE)
    return bundle


@pytest.fixture
def cargo_toml():
    return CARGO_TOML


@pytest.fixture
def cargo_lock():
    return CARGO_LOCK


@pytest.fixture
def fake_cargo(toolchain):
    """Factory for FakeCargo drivers, bound to the test toolchain by default."""

    def make(bound=None, **kwargs):
        return FakeCargo(bound or toolchain, **kwargs)

    return make

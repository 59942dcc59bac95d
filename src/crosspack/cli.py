"""
Command-line interface for crosspack.

This module provides the `crosspack` CLI tool for cross-compiling Cargo
projects into single-binary container images.
"""

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from crosspack import __version__
from crosspack.build import PipelineOrchestrator, read_layer_entries
from crosspack.build.packager import PackagingError
from crosspack.cli_utils import ErrorFormatter, PathValidator, setup_logging
from crosspack.config import (
    BuildContext,
    ConfigError,
    ManifestError,
    PipelineConfigLoader,
    cache_key,
)
from crosspack.packages import Cache


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    target: Optional[str] = None
    toolchain_version: Optional[str] = None
    toolchain_checksum: Optional[str] = None
    profile: Optional[str] = None
    binary: Optional[str] = None
    output: Optional[Path] = None
    verbose: bool = False


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path
    all: bool = False


def build_command(args: BuildArgs) -> None:
    """Cross-compile a project and package it as a runtime image.

    Examples:
        crosspack build                                   # Build current project
        crosspack build path/to/project                   # Build specific project
        crosspack build -t x86_64-unknown-linux-musl      # Build for another triple
        crosspack build --profile debug                   # Unoptimized build
        crosspack build -o ops.tar                        # Choose image path
    """
    print(f"crosspack v{__version__}")
    print()

    setup_logging(args.verbose)

    try:
        config = PipelineConfigLoader.load(
            args.project_dir,
            overrides={
                "target": args.target,
                "toolchain_version": args.toolchain_version,
                "toolchain_checksum": args.toolchain_checksum,
                "profile": args.profile,
                "binary": args.binary,
                "output": args.output,
            },
        )

        if args.verbose:
            print(f"Building project: {args.project_dir}")
            print(f"Target: {config.target}")
            print()
        else:
            print(f"Building for {config.target}...")

        orchestrator = PipelineOrchestrator(verbose=args.verbose)
        result = orchestrator.run(args.project_dir, config)

        if result.success and result.image is not None:
            ErrorFormatter.print_success("Build successful!")
            print()
            print(f"Image:  {result.image.path}")
            print(f"Tag:    {result.image.tag}")
            print(f"Digest: {result.image.digest}")
            for entry in result.image.entries:
                print(f"  /{entry}")
            print()
            print(f"Build time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Build failed!", result.message)
            sys.exit(1)

    except ConfigError as e:
        ErrorFormatter.print_error("Invalid configuration", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def cache_key_command(project_dir: Path) -> None:
    """Print the dependency cache key of a project.

    The key ignores the crate's own version, so it only changes when
    dependencies (Cargo.toml requirements or Cargo.lock pins) change.
    """
    try:
        manifest = BuildContext(project_dir).load_dependency_manifest()
    except ManifestError as e:
        ErrorFormatter.print_error("Cannot compute cache key", str(e))
        sys.exit(1)

    print(cache_key(manifest))
    sys.exit(0)


def clean_command(args: CleanArgs) -> None:
    """Remove build workspaces (and with --all, dependency cache layers)."""
    cache = Cache(args.project_dir)
    cache.clean_build()
    print(f"Removed {cache.build_root}")

    if args.all:
        cache.clean_layers()
        print(f"Removed {cache.layers_dir}")

    sys.exit(0)


def inspect_command(image_path: Path) -> None:
    """List the files contained in a runtime image."""
    try:
        entries = read_layer_entries(image_path)
    except PackagingError as e:
        ErrorFormatter.print_error("Cannot read image", str(e))
        sys.exit(1)

    for entry in entries:
        print(f"/{entry}")
    sys.exit(0)


def _add_project_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )


def main() -> None:
    """crosspack - reproducible cross-compilation into minimal images."""
    parser = argparse.ArgumentParser(
        prog="crosspack",
        description="crosspack - cross-compile Cargo projects into single-binary images",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"crosspack {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Cross-compile and package a runtime image",
    )
    _add_project_dir(build_parser)
    build_parser.add_argument(
        "-t",
        "--target",
        default=None,
        help="Target triple (default: aarch64-unknown-linux-musl)",
    )
    build_parser.add_argument(
        "--toolchain-version",
        default=None,
        help="Pinned zig version (default: 0.12.0)",
    )
    build_parser.add_argument(
        "--toolchain-checksum",
        default=None,
        help="SHA256 of the zig archive for this host",
    )
    build_parser.add_argument(
        "--profile",
        choices=["release", "debug"],
        default=None,
        help="Build profile (default: release)",
    )
    build_parser.add_argument(
        "--binary",
        default=None,
        help="Executable name (default: from Cargo.toml)",
    )
    build_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Image archive path (default: .crosspack/images/<binary>-<target>.tar)",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )

    # Cache key command
    cache_key_parser = subparsers.add_parser(
        "cache-key",
        help="Print the dependency cache key",
    )
    _add_project_dir(cache_key_parser)

    # Clean command
    clean_parser = subparsers.add_parser(
        "clean",
        help="Remove build workspaces",
    )
    _add_project_dir(clean_parser)
    clean_parser.add_argument(
        "--all",
        action="store_true",
        help="Also remove dependency cache layers",
    )

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="List the files in a runtime image",
    )
    inspect_parser.add_argument("image", type=Path, help="Image archive")

    parsed_args = parser.parse_args()

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if hasattr(parsed_args, "project_dir"):
        PathValidator.validate_project_dir(parsed_args.project_dir)

    if parsed_args.command == "build":
        build_args = BuildArgs(
            project_dir=parsed_args.project_dir,
            target=parsed_args.target,
            toolchain_version=parsed_args.toolchain_version,
            toolchain_checksum=parsed_args.toolchain_checksum,
            profile=parsed_args.profile,
            binary=parsed_args.binary,
            output=parsed_args.output,
            verbose=parsed_args.verbose,
        )
        build_command(build_args)
    elif parsed_args.command == "cache-key":
        cache_key_command(parsed_args.project_dir)
    elif parsed_args.command == "clean":
        clean_command(CleanArgs(project_dir=parsed_args.project_dir, all=parsed_args.all))
    elif parsed_args.command == "inspect":
        inspect_command(parsed_args.image)


if __name__ == "__main__":
    main()

"""Entrypoint configuration for runtime images."""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, List, Tuple

DEFAULT_ARGS = ("env",)


class EntrypointError(Exception):
    """Raised for an invalid entrypoint path or argument list."""

    pass


@dataclass(frozen=True)
class EntrypointConfig:
    """
    The image's default process.

    ``path`` is where the executable is placed in the image and what the
    container runs. ``default_args`` are used when the caller passes no
    arguments; the default asks the binary for its environment report.
    """

    path: str
    default_args: Tuple[str, ...] = DEFAULT_ARGS

    def __post_init__(self):
        pure = PurePosixPath(self.path)
        if not pure.is_absolute() or self.path.endswith("/"):
            raise EntrypointError(
                f"Entrypoint must be an absolute file path, got '{self.path}'"
            )
        if ".." in pure.parts:
            raise EntrypointError(f"Entrypoint may not contain '..': '{self.path}'")
        if not self.default_args:
            raise EntrypointError("At least one default argument is required")
        if not all(isinstance(arg, str) and arg for arg in self.default_args):
            raise EntrypointError(
                f"Default arguments must be non-empty strings: {self.default_args!r}"
            )

    @classmethod
    def for_binary(
        cls, binary_name: str, default_args: Tuple[str, ...] = DEFAULT_ARGS
    ) -> "EntrypointConfig":
        """Place the binary at the image root, e.g. ``/ops``."""
        return cls(path=f"/{binary_name}", default_args=tuple(default_args))

    @property
    def layer_path(self) -> str:
        """Entry name of the executable inside the layer archive."""
        return str(PurePosixPath(self.path)).lstrip("/")

    def to_oci_config(self) -> Dict[str, List[str]]:
        return {
            "Entrypoint": [self.path],
            "Cmd": list(self.default_args),
        }

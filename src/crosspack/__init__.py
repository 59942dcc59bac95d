"""crosspack - cross-compile Cargo projects into single-binary container images."""

__version__ = "0.1.0"

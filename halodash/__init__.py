"""halodash package initialization."""

from __future__ import annotations

from importlib import metadata

try:
    __version__ = metadata.version("halodash")
except metadata.PackageNotFoundError:
    # Package isn't installed (e.g., running from a source checkout)
    __version__ = "0.0.0"

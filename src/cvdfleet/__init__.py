"""cvdfleet package bootstrap.

Creation and fleet-wide inventory of remotely hosted Cuttlefish virtual
devices (CVDs). The public surface lives in :mod:`cvdfleet.creator`,
:mod:`cvdfleet.inventory` and :mod:`cvdfleet.runtime`.
"""
from __future__ import annotations

__all__ = ["__version__", "get_version"]

# NOTE: The version is duplicated in ``pyproject.toml`` and managed by Hatch.
__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__

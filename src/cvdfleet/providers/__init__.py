"""Provider interfaces for cvdfleet."""
from __future__ import annotations

from .connections import (
    ConnectionRegistry,
    ConnectionStatusLoad,
    ConnectionStatusLoadError,
    ConnectionStatusSource,
)
from .service import RemoteCallError, Service, call_service

__all__ = [
    "ConnectionRegistry",
    "ConnectionStatusLoad",
    "ConnectionStatusLoadError",
    "ConnectionStatusSource",
    "RemoteCallError",
    "Service",
    "call_service",
]

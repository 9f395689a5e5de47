"""Interface to the cloud orchestration service.

The transport lives outside this package; callers hand in any object that
satisfies :class:`Service`. Every call made through :func:`call_service` is
wrapped so failures name the operation and host that produced them.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

from ..models import CreateCVDRequest, FetchArtifactsRequest, RawCVD

T = TypeVar("T")


class RemoteCallError(RuntimeError):
    """Raised when a call to the orchestration service fails."""

    def __init__(self, operation: str, host: str | None, cause: BaseException) -> None:
        where = f" for host {host!r}" if host is not None else ""
        super().__init__(f"{operation} failed{where}: {cause}")
        self.operation = operation
        self.host = host


class Service(Protocol):
    """Operations the orchestration service exposes to this package."""

    def root_uri(self) -> str:
        """Return the service root endpoint used to stamp CVD identities."""
        ...

    def list_hosts(self) -> Sequence[str]:
        ...

    def list_cvds(self, host: str) -> Sequence[RawCVD]:
        ...

    def create_upload(self, host: str) -> str:
        """Create an upload directory on *host* and return its identifier."""
        ...

    def upload_files(self, host: str, upload_dir: str, files: Sequence[str]) -> None:
        ...

    def fetch_artifacts(self, host: str, request: FetchArtifactsRequest) -> None:
        ...

    def create_cvd(self, host: str, request: CreateCVDRequest) -> Sequence[RawCVD]:
        """Create the requested CVDs and return their records."""
        ...


def call_service(
    operation: str,
    host: str | None,
    func: Callable[..., T],
    *args: object,
) -> T:
    """Invoke *func* and wrap any failure in :class:`RemoteCallError`."""
    try:
        return func(*args)
    except RemoteCallError:
        raise
    except Exception as exc:
        raise RemoteCallError(operation, host, exc) from exc


__all__ = ["RemoteCallError", "Service", "call_service"]

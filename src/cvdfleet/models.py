"""Value objects shared by the creation and inventory workflows."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True, slots=True)
class CVD:
    """Identity of a CVD: the service it lives on, its host and its name.

    Instances are hashable and compare by value so they can key the
    connection-status mapping directly.
    """

    service_root_endpoint: str
    host: str
    name: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "service_root_endpoint": self.service_root_endpoint,
            "host": self.host,
            "name": self.name,
        }


@dataclass(frozen=True, slots=True)
class ForwarderState:
    """State of a local port forwarder (e.g. ADB) attached to a CVD."""

    state: str
    port: int

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"state": self.state, "port": self.port}


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Locally tracked connection state for a CVD."""

    adb: ForwarderState

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"adb": self.adb.to_dict()}


@dataclass(frozen=True, slots=True)
class RawCVD:
    """CVD record exactly as returned by the remote service."""

    name: str
    status: str = ""
    displays: tuple[str, ...] = ()


@dataclass(slots=True)
class CVDInfo:
    """A CVD plus its remote status and optional local connection state."""

    cvd: CVD
    status: str
    displays: list[str] = field(default_factory=list)
    connection_status: ConnectionStatus | None = None

    @classmethod
    def from_raw(cls, service_root_endpoint: str, host: str, raw: RawCVD) -> CVDInfo:
        """Wrap a service record with the identity it was listed under."""
        return cls(
            cvd=CVD(service_root_endpoint=service_root_endpoint, host=host, name=raw.name),
            status=raw.status,
            displays=list(raw.displays),
        )

    @property
    def name(self) -> str:
        return self.cvd.name

    @property
    def host(self) -> str:
        return self.cvd.host

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        payload = self.cvd.to_dict()
        payload["status"] = self.status
        payload["displays"] = list(self.displays)
        payload["connection_status"] = (
            self.connection_status.to_dict() if self.connection_status else None
        )
        return payload


@dataclass(frozen=True, slots=True)
class AndroidCIBuild:
    """Coordinates of a build produced by Android CI."""

    branch: str = ""
    build_id: str = ""
    target: str = ""

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when no coordinate has been supplied."""
        return not (self.branch.strip() or self.build_id.strip() or self.target.strip())

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"branch": self.branch, "build_id": self.build_id, "target": self.target}


class BundleType(str, Enum):
    """Artifact bundle kinds the service knows how to fetch."""

    MAIN = "main"
    KERNEL = "kernel"
    BOOTLOADER = "bootloader"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class AndroidCIBundle:
    """A CI build together with the bundle kind to fetch from it."""

    build: AndroidCIBuild
    type: BundleType = BundleType.MAIN


@dataclass(frozen=True, slots=True)
class FetchArtifactsRequest:
    """Request asking a host to pre-fetch CI artifacts."""

    android_ci_bundle: AndroidCIBundle


@dataclass(frozen=True, slots=True)
class UserBuildSource:
    """Images uploaded by the user into a host-side artifacts directory."""

    artifacts_dir: str


@dataclass(frozen=True, slots=True)
class AndroidCIBuildSource:
    """Images fetched from Android CI; each optional slot is ``None`` when absent."""

    main_build: AndroidCIBuild
    kernel_build: AndroidCIBuild | None = None
    bootloader_build: AndroidCIBuild | None = None
    system_image_build: AndroidCIBuild | None = None


BuildSource = UserBuildSource | AndroidCIBuildSource


@dataclass(frozen=True, slots=True)
class CreateCVDRequest:
    """Request creating one CVD plus ``additional_instances_num`` siblings."""

    build_source: BuildSource
    additional_instances_num: int = 0


def _present(build: AndroidCIBuild | None) -> AndroidCIBuild | None:
    if build is None or build.is_empty:
        return None
    return build


@dataclass(frozen=True, slots=True)
class CreateOptions:
    """Caller supplied options for creating CVDs on a host.

    Empty :class:`AndroidCIBuild` descriptors are normalised to ``None`` so
    downstream code only has to check for presence.
    """

    host: str
    main_build: AndroidCIBuild | None = None
    kernel_build: AndroidCIBuild | None = None
    bootloader_build: AndroidCIBuild | None = None
    system_image_build: AndroidCIBuild | None = None
    local_image: bool = False
    num_instances: int = 1

    def __post_init__(self) -> None:
        """Normalise empty build descriptors and validate the instance count."""
        if self.num_instances < 0:
            raise ValueError(f"num_instances must be non-negative. Got {self.num_instances}.")
        for name in ("main_build", "kernel_build", "bootloader_build", "system_image_build"):
            object.__setattr__(self, name, _present(getattr(self, name)))

    @property
    def additional_instances_num(self) -> int:
        """Extra instances requested beyond the first one."""
        return max(self.num_instances - 1, 0)


@dataclass(slots=True)
class ListResult:
    """Instances collected by a listing call plus any aggregated failures.

    ``error`` being set does not mean ``instances`` is empty: hosts that
    answered are always reported.
    """

    instances: list[CVDInfo] = field(default_factory=list)
    error: ExceptionGroup | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def errors(self) -> Sequence[Exception]:
        """Return the individual failures carried by :attr:`error`."""
        if self.error is None:
            return ()
        return tuple(self.error.exceptions)


__all__ = [
    "AndroidCIBuild",
    "AndroidCIBuildSource",
    "AndroidCIBundle",
    "BuildSource",
    "BundleType",
    "CVD",
    "CVDInfo",
    "ConnectionStatus",
    "CreateCVDRequest",
    "CreateOptions",
    "FetchArtifactsRequest",
    "ForwarderState",
    "ListResult",
    "RawCVD",
    "UserBuildSource",
]

"""Read-only view of locally tracked CVD connection state.

Connection agents (ADB forwarders and the like) drop one YAML file per
connection into the control directory. Each file names the CVD it serves
and the state of its forwarders::

    cvd:
      service_root_endpoint: https://cloud.example/v1
      host: h1
      name: cvd-1
    status:
      adb:
        state: running
        port: 6520

Every field shown is required. Loading is best effort: a bad file, an
undecodable one included, is reported but never hides the others, and a
control directory that cannot be listed is reported rather than read as empty.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

try:  # PyYAML is a runtime dependency declared in pyproject.toml
    import yaml
except Exception as exc:  # pragma: no cover - import failure handled in tests
    raise RuntimeError(
        "PyYAML is required to read connection state. Install with `pip install cvdfleet`."
    ) from exc

from ..models import CVD, ConnectionStatus, ForwarderState


class ConnectionStatusLoadError(RuntimeError):
    """Raised (or collected) when connection state cannot be loaded."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


@dataclass(slots=True)
class ConnectionStatusLoad:
    """Statuses keyed by CVD identity plus the failure that hit loading, if any."""

    statuses: dict[CVD, ConnectionStatus] = field(default_factory=dict)
    error: ConnectionStatusLoadError | None = None


class ConnectionStatusSource(Protocol):
    """Anything able to report local connection state."""

    def load(self, host: str | None = None) -> ConnectionStatusLoad:
        """Return statuses for every host, or only *host* when given."""
        ...


@dataclass(frozen=True)
class ConnectionRegistry:
    """File-backed :class:`ConnectionStatusSource` rooted at a control directory."""

    root: Path
    pattern: str = "*.yml"

    def __post_init__(self) -> None:
        """Normalise the root path after initialisation."""
        object.__setattr__(self, "root", self.root.expanduser())

    def load(self, host: str | None = None) -> ConnectionStatusLoad:
        """Load every connection file, optionally keeping only *host* entries."""
        result = ConnectionStatusLoad()
        try:
            if not self.root.exists():
                return result
            paths = sorted(
                path
                for path in self.root.iterdir()
                if path.match(self.pattern) and path.is_file()
            )
        except OSError as exc:
            result.error = ConnectionStatusLoadError(
                f"Failed to scan connection directory {self.root}: {exc}",
                path=self.root,
            )
            return result

        failures: list[ConnectionStatusLoadError] = []
        for path in paths:
            try:
                cvd, status = self._read_entry(path)
            except ConnectionStatusLoadError as exc:
                failures.append(exc)
                continue
            if host is not None and cvd.host != host:
                continue
            result.statuses[cvd] = status

        if len(failures) == 1:
            result.error = failures[0]
        elif failures:
            joined = "; ".join(str(failure) for failure in failures)
            result.error = ConnectionStatusLoadError(
                f"Failed to load {len(failures)} connection files: {joined}"
            )
        return result

    def _read_entry(self, path: Path) -> tuple[CVD, ConnectionStatus]:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise ConnectionStatusLoadError(
                f"Failed to read connection file {path}: {exc}", path=path
            ) from exc
        if not isinstance(data, Mapping):
            raise ConnectionStatusLoadError(
                f"Connection file {path} must contain a mapping at the top level.",
                path=path,
            )
        return _parse_cvd(data.get("cvd"), path), _parse_status(data.get("status"), path)


def _parse_cvd(value: object, path: Path) -> CVD:
    if not isinstance(value, Mapping):
        raise ConnectionStatusLoadError(f"Connection file {path} is missing 'cvd'.", path=path)
    fields: dict[str, str] = {}
    for key in ("service_root_endpoint", "host", "name"):
        item = value.get(key)
        if not isinstance(item, str) or not item.strip():
            raise ConnectionStatusLoadError(
                f"Connection file {path}: cvd.{key} must be a non-empty string.",
                path=path,
            )
        fields[key] = item.strip()
    return CVD(**fields)


def _parse_status(value: object, path: Path) -> ConnectionStatus:
    if not isinstance(value, Mapping):
        raise ConnectionStatusLoadError(
            f"Connection file {path} is missing 'status'.", path=path
        )
    adb = value.get("adb")
    if not isinstance(adb, Mapping):
        raise ConnectionStatusLoadError(
            f"Connection file {path}: status.adb must be a mapping.", path=path
        )
    if "state" not in adb or "port" not in adb:
        raise ConnectionStatusLoadError(
            f"Connection file {path}: status.adb needs both 'state' and 'port'.",
            path=path,
        )
    state = adb["state"]
    port = adb["port"]
    if not isinstance(state, str):
        raise ConnectionStatusLoadError(
            f"Connection file {path}: status.adb.state must be a string.", path=path
        )
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConnectionStatusLoadError(
            f"Connection file {path}: status.adb.port must be an integer.", path=path
        )
    return ConnectionStatus(adb=ForwarderState(state=state, port=port))


__all__ = [
    "ConnectionRegistry",
    "ConnectionStatusLoad",
    "ConnectionStatusLoadError",
    "ConnectionStatusSource",
]

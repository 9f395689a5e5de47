"""Per-command runtime wiring.

:class:`FleetRuntime` bundles the collaborators a command needs and records
each create or list call in the structured operations log. It keeps no state
between calls beyond those collaborators.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .config import AppConfig
from .creator import CreateCVDError, create_cvds
from .inventory import list_all_cvds, list_host_cvds
from .logging import OperationScope, StructuredLogger
from .models import CreateOptions, CVDInfo, ListResult
from .providers.connections import ConnectionRegistry, ConnectionStatusSource
from .providers.service import RemoteCallError, Service


@dataclass
class FleetRuntime:
    """Aggregated runtime objects shared by fleet operations."""

    config: AppConfig
    service: Service
    connections: ConnectionStatusSource
    logger: StructuredLogger

    @classmethod
    def from_config(cls, config: AppConfig, service: Service) -> FleetRuntime:
        """Build the connection registry and logger described by *config*."""
        return cls(
            config=config,
            service=service,
            connections=ConnectionRegistry(
                config.control_dir,
                pattern=config.connections.pattern,
            ),
            logger=StructuredLogger(config.logs_dir),
        )

    def create(
        self,
        options: CreateOptions,
        *,
        env: Mapping[str, str] | None = None,
    ) -> list[CVDInfo]:
        """Create CVDs per *options*; raises :class:`CreateCVDError` on failure."""
        args = {
            "host": options.host,
            "local_image": options.local_image,
            "num_instances": options.num_instances,
            "main_build": options.main_build.to_dict() if options.main_build else None,
        }
        with self.logger.operation(
            "cvd create",
            args=args,
            target={"kind": "host", "name": options.host},
        ) as op:
            try:
                created = create_cvds(self.service, options, env=env)
            except CreateCVDError as exc:
                op.error(str(exc), errors=_error_chain(exc))
                raise
            op.success(
                f"Created {len(created)} CVD(s) on host {options.host}.",
                changed=len(created),
                context={"cvds": [info.name for info in created]},
            )
            return created

    def list_all(self) -> ListResult:
        """List every host; raises :class:`RemoteCallError` if hosts cannot be enumerated."""
        with self.logger.operation("cvd list", target={"kind": "fleet"}) as op:
            try:
                result = list_all_cvds(self.service, self.connections)
            except RemoteCallError as exc:
                op.error(str(exc))
                raise
            _record_listing(op, result)
            return result

    def list_host(self, host: str) -> ListResult:
        """List a single host."""
        with self.logger.operation(
            "cvd list",
            args={"host": host},
            target={"kind": "host", "name": host},
        ) as op:
            result = list_host_cvds(self.service, self.connections, host)
            _record_listing(op, result)
            return result


def _error_chain(exc: BaseException) -> list[str]:
    messages: list[str] = []
    current: BaseException | None = exc
    while current is not None:
        messages.append(str(current))
        current = current.__cause__
    return messages


def _record_listing(op: OperationScope, result: ListResult) -> None:
    context = {"count": len(result.instances)}
    if result.error is None:
        op.success(f"Listed {len(result.instances)} CVD(s).", context=context)
        return
    op.warning(
        str(result.error),
        errors=[str(error) for error in result.errors()],
        context=context,
    )


__all__ = ["FleetRuntime"]

"""Fleet-wide CVD inventory.

Listing never gives up on the fleet because one host misbehaves: each host is
listed on its own thread, every thread is waited for, and failures are
collected into an :class:`ExceptionGroup` returned next to the instances that
were listed successfully.
"""
from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .models import CVD, CVDInfo, ConnectionStatus, ListResult
from .providers.connections import ConnectionStatusSource
from .providers.service import RemoteCallError, Service, call_service

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _HostListing:
    host: str
    instances: list[CVDInfo]
    error: Exception | None = None


def _list_host_cvds(
    service: Service,
    host: str,
    statuses: Mapping[CVD, ConnectionStatus],
) -> list[CVDInfo]:
    """List *host* and attach any known connection status; raises on remote failure."""
    raw_cvds = call_service("list cvds", host, service.list_cvds, host)
    root_uri = call_service("root uri", host, service.root_uri)
    infos: list[CVDInfo] = []
    for raw in raw_cvds:
        info = CVDInfo.from_raw(root_uri, host, raw)
        info.connection_status = statuses.get(info.cvd)
        infos.append(info)
    return infos


def _run_host_listing(
    service: Service,
    host: str,
    statuses: Mapping[CVD, ConnectionStatus],
) -> _HostListing:
    try:
        instances = _list_host_cvds(service, host, statuses)
    except RemoteCallError as exc:
        return _HostListing(host=host, instances=[], error=exc)
    except Exception as exc:
        wrapped = RemoteCallError("list cvds", host, exc)
        wrapped.__cause__ = exc
        return _HostListing(host=host, instances=[], error=wrapped)
    return _HostListing(host=host, instances=instances)


def _aggregate(
    errors: Sequence[Exception],
    failed_hosts: Sequence[str],
) -> ExceptionGroup | None:
    if not errors:
        return None
    if failed_hosts:
        message = "Failed to list CVDs for host(s): " + ", ".join(failed_hosts)
    else:
        message = "Failed to load local connection status"
    return ExceptionGroup(message, list(errors))


def list_host_cvds(
    service: Service,
    connections: ConnectionStatusSource,
    host: str,
) -> ListResult:
    """List the CVDs of a single host.

    A connection-status load failure is reported in the result but does not
    stop the listing.
    """
    loaded = connections.load(host)
    errors: list[Exception] = []
    if loaded.error is not None:
        errors.append(loaded.error)

    listing = _run_host_listing(service, host, loaded.statuses)
    failed_hosts: list[str] = []
    if listing.error is not None:
        errors.append(listing.error)
        failed_hosts.append(host)
    return ListResult(instances=listing.instances, error=_aggregate(errors, failed_hosts))


def list_all_cvds(
    service: Service,
    connections: ConnectionStatusSource,
) -> ListResult:
    """List the CVDs of every host known to the service.

    Raises :class:`RemoteCallError` only when the host list itself cannot be
    fetched. Per-host failures end up in ``ListResult.error`` while the
    instances of every other host are still returned, in host order.
    """
    hosts = list(call_service("list hosts", None, service.list_hosts))
    loaded = connections.load()
    errors: list[Exception] = []
    if loaded.error is not None:
        errors.append(loaded.error)
    if not hosts:
        return ListResult(instances=[], error=_aggregate(errors, []))

    LOGGER.debug("Listing CVDs on %d hosts", len(hosts))
    listings: list[_HostListing | None] = [None] * len(hosts)
    with concurrent.futures.ThreadPoolExecutor(max_workers=len(hosts)) as executor:
        future_to_index: dict[concurrent.futures.Future[_HostListing], int] = {}
        for index, host in enumerate(hosts):
            future = executor.submit(_run_host_listing, service, host, loaded.statuses)
            future_to_index[future] = index

        for future in concurrent.futures.as_completed(future_to_index):
            index = future_to_index[future]
            listings[index] = future.result()

    instances: list[CVDInfo] = []
    failed_hosts: list[str] = []
    for listing in listings:
        if listing is None:  # pragma: no cover - every future fills its slot
            continue
        if listing.error is not None:
            LOGGER.debug("Listing host %s failed: %s", listing.host, listing.error)
            errors.append(listing.error)
            failed_hosts.append(listing.host)
        instances.extend(listing.instances)
    return ListResult(instances=instances, error=_aggregate(errors, failed_hosts))


__all__ = ["list_all_cvds", "list_host_cvds"]

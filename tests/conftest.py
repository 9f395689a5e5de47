"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from cvdfleet.models import CreateCVDRequest, FetchArtifactsRequest, RawCVD

ROOT_URI = "https://cloud.example/v1"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip expensive tests during mutation runs."""
    if not os.environ.get("MUTANT_UNDER_TEST"):
        return
    skip_marker = pytest.mark.skip(reason="Skipped during mutation run to avoid timeouts.")
    for item in items:
        if "mutation_timeout" in item.keywords:
            item.add_marker(skip_marker)


class FakeService:
    """In-memory orchestration service recording every call it receives."""

    def __init__(
        self,
        *,
        hosts: Sequence[str] = (),
        cvds: Mapping[str, Sequence[RawCVD]] | None = None,
        failures: Mapping[str, Exception] | None = None,
        created: Sequence[RawCVD] = (RawCVD(name="cvd-1", status="Running"),),
    ) -> None:
        self.hosts = list(hosts)
        self.cvds = {host: list(items) for host, items in (cvds or {}).items()}
        self.failures = dict(failures or {})
        self.created = list(created)
        self.calls: list[tuple[object, ...]] = []
        self._lock = threading.Lock()

    def _record(self, *call: object) -> None:
        with self._lock:
            self.calls.append(call)

    def _maybe_fail(self, key: str) -> None:
        failure = self.failures.get(key)
        if failure is not None:
            raise failure

    def call_names(self) -> list[object]:
        return [call[0] for call in self.calls]

    def root_uri(self) -> str:
        return ROOT_URI

    def list_hosts(self) -> list[str]:
        self._record("list_hosts")
        self._maybe_fail("list_hosts")
        return list(self.hosts)

    def list_cvds(self, host: str) -> list[RawCVD]:
        self._record("list_cvds", host)
        self._maybe_fail(f"list_cvds:{host}")
        return list(self.cvds.get(host, []))

    def create_upload(self, host: str) -> str:
        self._record("create_upload", host)
        self._maybe_fail("create_upload")
        return "upload-123"

    def upload_files(self, host: str, upload_dir: str, files: Sequence[str]) -> None:
        self._record("upload_files", host, upload_dir, list(files))
        self._maybe_fail("upload_files")

    def fetch_artifacts(self, host: str, request: FetchArtifactsRequest) -> None:
        self._record("fetch_artifacts", host, request)
        self._maybe_fail("fetch_artifacts")

    def create_cvd(self, host: str, request: CreateCVDRequest) -> list[RawCVD]:
        self._record("create_cvd", host, request)
        self._maybe_fail("create_cvd")
        return list(self.created)


@pytest.fixture()
def make_service() -> Callable[..., FakeService]:
    """Return a factory building :class:`FakeService` instances."""
    return FakeService


@pytest.fixture()
def android_tree(tmp_path: Path) -> dict[str, str]:
    """Create a minimal Android build tree and return its environment variables."""
    build_top = tmp_path / "aosp"
    product_out = tmp_path / "out" / "product"
    host_out = tmp_path / "out" / "host"
    manifest = build_top / "device" / "google" / "cuttlefish" / "required_images"
    manifest.parent.mkdir(parents=True)
    manifest.write_text("boot.img\nsuper.img\n", encoding="utf-8")
    product_out.mkdir(parents=True)

    package_dir = host_out / "cvd-host_package"
    package_dir.mkdir(parents=True)
    archive = host_out / "cvd-host_package.tar.gz"
    archive.write_bytes(b"archive")
    os.utime(package_dir, ns=(1_000_000_000, 1_000_000_000))
    os.utime(archive, ns=(2_000_000_000, 2_000_000_000))

    return {
        "ANDROID_BUILD_TOP": str(build_top),
        "ANDROID_PRODUCT_OUT": str(product_out),
        "ANDROID_HOST_OUT": str(host_out),
    }

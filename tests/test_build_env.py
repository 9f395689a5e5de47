"""Tests for local build tree resolution and validation."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from cvdfleet.build_env import (
    REQUIRED_ENV_VARS,
    BuildEnvironment,
    HostPackageError,
    HostPackageMissingError,
    HostPackageStaleError,
    ManifestReadError,
    MissingEnvironmentVariableError,
    collect_local_image_files,
    list_required_image_files,
    verify_host_package,
)

FULL_ENV = {
    "ANDROID_BUILD_TOP": "/aosp",
    "ANDROID_PRODUCT_OUT": "/po",
    "ANDROID_HOST_OUT": "/ho",
}


def _write_manifest(build_top: Path, content: str) -> None:
    manifest = build_top / "device" / "google" / "cuttlefish" / "required_images"
    manifest.parent.mkdir(parents=True, exist_ok=True)
    manifest.write_text(content, encoding="utf-8")


def test_from_env_reads_all_variables() -> None:
    """All three variables map onto the environment record."""
    env = BuildEnvironment.from_env(FULL_ENV)

    assert env.build_top == Path("/aosp")
    assert env.product_out == Path("/po")
    assert env.host_out == Path("/ho")


@pytest.mark.parametrize("missing", REQUIRED_ENV_VARS)
def test_from_env_reports_the_missing_variable(missing: str) -> None:
    """Removing any one variable fails with exactly that variable's name."""
    env = {key: value for key, value in FULL_ENV.items() if key != missing}

    with pytest.raises(MissingEnvironmentVariableError) as excinfo:
        BuildEnvironment.from_env(env)

    assert excinfo.value.name == missing
    others = [name for name in REQUIRED_ENV_VARS if name != missing]
    assert all(name not in str(excinfo.value) for name in others)


def test_from_env_reports_first_missing_in_fixed_order() -> None:
    """With several variables missing, the build top is reported first."""
    with pytest.raises(MissingEnvironmentVariableError) as excinfo:
        BuildEnvironment.from_env({"ANDROID_HOST_OUT": "/ho"})

    assert excinfo.value.name == "ANDROID_BUILD_TOP"


def test_from_env_defaults_to_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """os.environ is used when no mapping is supplied."""
    for key, value in FULL_ENV.items():
        monkeypatch.setenv(key, value)

    assert BuildEnvironment.from_env().product_out == Path("/po")


def test_required_images_are_prefixed_with_product_out(tmp_path: Path) -> None:
    """Each manifest line becomes a product-out path, in file order."""
    _write_manifest(tmp_path, "a.img\nb.img\n")
    env = BuildEnvironment(build_top=tmp_path, product_out=Path("/po"), host_out=tmp_path)

    assert list_required_image_files(env) == ["/po/a.img", "/po/b.img"]


def test_required_images_without_trailing_newline(tmp_path: Path) -> None:
    """A manifest lacking a trailing newline is read the same way."""
    _write_manifest(tmp_path, "b.img\na.img")
    env = BuildEnvironment(build_top=tmp_path, product_out=Path("/po"), host_out=tmp_path)

    assert list_required_image_files(env) == ["/po/b.img", "/po/a.img"]


def test_empty_manifest_yields_empty_list(tmp_path: Path) -> None:
    """Blank content after trimming produces no files."""
    _write_manifest(tmp_path, "\n")
    env = BuildEnvironment(build_top=tmp_path, product_out=Path("/po"), host_out=tmp_path)

    assert list_required_image_files(env) == []


def test_missing_manifest_is_an_error(tmp_path: Path) -> None:
    """An absent manifest is reported, not treated as an empty list."""
    env = BuildEnvironment(build_top=tmp_path, product_out=Path("/po"), host_out=tmp_path)

    with pytest.raises(ManifestReadError, match="required images"):
        list_required_image_files(env)


def test_undecodable_manifest_is_an_error(tmp_path: Path) -> None:
    """A manifest that is not valid UTF-8 is reported as unreadable."""
    manifest = tmp_path / "device" / "google" / "cuttlefish" / "required_images"
    manifest.parent.mkdir(parents=True)
    manifest.write_bytes(b"boot.img\n\xff\xfe.img\n")
    env = BuildEnvironment(build_top=tmp_path, product_out=Path("/po"), host_out=tmp_path)

    with pytest.raises(ManifestReadError, match="required images"):
        list_required_image_files(env)


def _host_out(tmp_path: Path, *, archive_ns: int | None, dir_ns: int | None) -> Path:
    host_out = tmp_path / "host"
    host_out.mkdir()
    if dir_ns is not None:
        package_dir = host_out / "cvd-host_package"
        package_dir.mkdir()
        os.utime(package_dir, ns=(dir_ns, dir_ns))
    if archive_ns is not None:
        archive = host_out / "cvd-host_package.tar.gz"
        archive.write_bytes(b"tar")
        os.utime(archive, ns=(archive_ns, archive_ns))
    return host_out


def test_verify_host_package_accepts_newer_archive(tmp_path: Path) -> None:
    """An archive newer than its directory is fresh."""
    host_out = _host_out(tmp_path, archive_ns=2_000_000_000, dir_ns=1_000_000_000)

    assert verify_host_package(host_out) == host_out / "cvd-host_package.tar.gz"


def test_verify_host_package_accepts_equal_timestamps(tmp_path: Path) -> None:
    """Equal timestamps count as fresh."""
    host_out = _host_out(tmp_path, archive_ns=1_500_000_000, dir_ns=1_500_000_000)

    verify_host_package(host_out)


def test_verify_host_package_rejects_stale_archive(tmp_path: Path) -> None:
    """An archive older than its directory must be rebuilt."""
    host_out = _host_out(tmp_path, archive_ns=1_000_000_000, dir_ns=2_000_000_000)

    with pytest.raises(HostPackageStaleError, match="m hosttar"):
        verify_host_package(host_out)


def test_verify_host_package_rejects_missing_archive(tmp_path: Path) -> None:
    """A missing archive asks the user to rebuild it."""
    host_out = _host_out(tmp_path, archive_ns=None, dir_ns=1_000_000_000)

    with pytest.raises(HostPackageMissingError, match="not found"):
        verify_host_package(host_out)


def test_verify_host_package_requires_directory(tmp_path: Path) -> None:
    """A missing package directory is a distinct failure."""
    host_out = _host_out(tmp_path, archive_ns=1_000_000_000, dir_ns=None)

    with pytest.raises(HostPackageError) as excinfo:
        verify_host_package(host_out)

    assert not isinstance(excinfo.value, (HostPackageMissingError, HostPackageStaleError))
    assert "directory" in str(excinfo.value)


def test_collect_local_image_files_appends_host_package(android_tree: dict[str, str]) -> None:
    """The host package archive follows the required images."""
    env = BuildEnvironment.from_env(android_tree)
    product_out = android_tree["ANDROID_PRODUCT_OUT"]

    assert collect_local_image_files(env) == [
        f"{product_out}/boot.img",
        f"{product_out}/super.img",
        str(Path(android_tree["ANDROID_HOST_OUT"]) / "cvd-host_package.tar.gz"),
    ]

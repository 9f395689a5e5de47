"""Local Android build tree helpers used when creating CVDs from local images.

The local-image workflow needs three environment variables exported by the
Android ``lunch`` tooling, the list of images the device requires, and a
freshly packaged ``cvd-host_package.tar.gz``. Everything here runs before any
remote call so a broken build tree fails fast.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

ANDROID_BUILD_TOP = "ANDROID_BUILD_TOP"
ANDROID_PRODUCT_OUT = "ANDROID_PRODUCT_OUT"
ANDROID_HOST_OUT = "ANDROID_HOST_OUT"

# Checked in this order; the first missing one is reported.
REQUIRED_ENV_VARS: tuple[str, ...] = (
    ANDROID_BUILD_TOP,
    ANDROID_PRODUCT_OUT,
    ANDROID_HOST_OUT,
)

REQUIRED_IMAGES_FILENAME = "device/google/cuttlefish/required_images"
HOST_PACKAGE_NAME = "cvd-host_package.tar.gz"
HOST_PACKAGE_DIR_NAME = "cvd-host_package"


class BuildEnvError(RuntimeError):
    """Base class for local build tree failures."""


class MissingEnvironmentVariableError(BuildEnvError):
    """Raised when a required Android build variable is not exported."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing environment variable: {name!r}")
        self.name = name


class ManifestReadError(BuildEnvError):
    """Raised when the required images list cannot be opened or read."""


class HostPackageError(BuildEnvError):
    """Base class for host package validation failures."""


class HostPackageMissingError(HostPackageError):
    """Raised when the host package archive has not been built."""


class HostPackageStaleError(HostPackageError):
    """Raised when the host package archive is older than its source directory."""


@dataclass(frozen=True, slots=True)
class BuildEnvironment:
    """Paths exported by the Android build environment."""

    build_top: Path
    product_out: Path
    host_out: Path

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BuildEnvironment:
        """Resolve the build environment from *env* (``os.environ`` by default)."""
        resolved = os.environ if env is None else env
        for name in REQUIRED_ENV_VARS:
            if name not in resolved:
                raise MissingEnvironmentVariableError(name)
        return cls(
            build_top=Path(resolved[ANDROID_BUILD_TOP]),
            product_out=Path(resolved[ANDROID_PRODUCT_OUT]),
            host_out=Path(resolved[ANDROID_HOST_OUT]),
        )

    @property
    def required_images_path(self) -> Path:
        return self.build_top / REQUIRED_IMAGES_FILENAME

    @property
    def host_package_path(self) -> Path:
        return self.host_out / HOST_PACKAGE_NAME

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "build_top": str(self.build_top),
            "product_out": str(self.product_out),
            "host_out": str(self.host_out),
        }


def list_required_image_files(env: BuildEnvironment) -> list[str]:
    """Return the product-out paths of every image listed in ``required_images``.

    Order follows the manifest. A manifest that is empty once trailing
    newlines are stripped yields an empty list; a manifest that cannot be read
    is an error, never an empty list.
    """
    manifest = env.required_images_path
    try:
        content = manifest.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestReadError(
            f"Error reading the required images list file {manifest}: {exc}"
        ) from exc

    content = content.rstrip("\n")
    if not content.strip():
        return []
    return [f"{env.product_out}/{line}" for line in content.split("\n")]


def verify_host_package(host_out: Path) -> Path:
    """Ensure the host package archive exists and is not older than its directory.

    Returns the archive path on success.
    """
    archive = host_out / HOST_PACKAGE_NAME
    try:
        archive_stat = archive.stat()
    except FileNotFoundError as exc:
        raise HostPackageMissingError(
            f"{HOST_PACKAGE_NAME!r} not found in {host_out}. Please run `m hosttar`."
        ) from exc
    except OSError as exc:
        raise HostPackageError(f"Failed reading {archive}: {exc}") from exc

    package_dir = host_out / HOST_PACKAGE_DIR_NAME
    try:
        dir_stat = package_dir.stat()
    except OSError as exc:
        raise HostPackageError(
            f"Failed getting cvd host package directory info for {package_dir}: {exc}"
        ) from exc

    if archive_stat.st_mtime_ns < dir_stat.st_mtime_ns:
        raise HostPackageStaleError(
            f"{HOST_PACKAGE_NAME!r} is out of date. Please run `m hosttar`."
        )
    return archive


def collect_local_image_files(env: BuildEnvironment) -> list[str]:
    """Return every file the local-image workflow must upload.

    The required images come first, followed by the host package archive.
    """
    files = list_required_image_files(env)
    archive = verify_host_package(env.host_out)
    files.append(str(archive))
    return files


__all__ = [
    "ANDROID_BUILD_TOP",
    "ANDROID_HOST_OUT",
    "ANDROID_PRODUCT_OUT",
    "BuildEnvError",
    "BuildEnvironment",
    "HOST_PACKAGE_DIR_NAME",
    "HOST_PACKAGE_NAME",
    "HostPackageError",
    "HostPackageMissingError",
    "HostPackageStaleError",
    "ManifestReadError",
    "MissingEnvironmentVariableError",
    "REQUIRED_ENV_VARS",
    "REQUIRED_IMAGES_FILENAME",
    "collect_local_image_files",
    "list_required_image_files",
    "verify_host_package",
]

"""Create CVDs from either a local build tree or Android CI artifacts."""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from .build_env import BuildEnvError, BuildEnvironment, collect_local_image_files
from .models import (
    AndroidCIBuildSource,
    AndroidCIBundle,
    BundleType,
    CreateCVDRequest,
    CreateOptions,
    CVDInfo,
    FetchArtifactsRequest,
    RawCVD,
    UserBuildSource,
)
from .providers.service import RemoteCallError, Service, call_service

LOGGER = logging.getLogger(__name__)


class CreateCVDError(RuntimeError):
    """Raised when a creation call fails; nothing is returned on failure."""


class CVDCreator:
    """Resolve the build source for *options* and issue the creation request."""

    def __init__(
        self,
        service: Service,
        options: CreateOptions,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Store the collaborators; *env* defaults to ``os.environ``."""
        self._service = service
        self._options = options
        self._env = env

    def create(self) -> list[RawCVD]:
        if self._options.local_image:
            return self._create_from_local_build()
        return self._create_from_android_ci()

    def _create_from_local_build(self) -> list[RawCVD]:
        host = self._options.host
        # Resolve and validate everything locally before touching the network.
        build_env = BuildEnvironment.from_env(self._env)
        files = collect_local_image_files(build_env)

        upload_dir = call_service(
            "create upload", host, self._service.create_upload, host
        )
        LOGGER.debug("Uploading %d files to %s on host %s", len(files), upload_dir, host)
        call_service(
            "upload files", host, self._service.upload_files, host, upload_dir, files
        )
        request = CreateCVDRequest(
            build_source=UserBuildSource(artifacts_dir=upload_dir),
            additional_instances_num=self._options.additional_instances_num,
        )
        return self._create(request)

    def _create_from_android_ci(self) -> list[RawCVD]:
        options = self._options
        if options.main_build is None:
            raise CreateCVDError("A main build is required when not using a local image.")

        fetch_request = FetchArtifactsRequest(
            android_ci_bundle=AndroidCIBundle(build=options.main_build, type=BundleType.MAIN)
        )
        call_service(
            "fetch artifacts",
            options.host,
            self._service.fetch_artifacts,
            options.host,
            fetch_request,
        )
        request = CreateCVDRequest(
            build_source=AndroidCIBuildSource(
                main_build=options.main_build,
                kernel_build=options.kernel_build,
                bootloader_build=options.bootloader_build,
                system_image_build=options.system_image_build,
            ),
            additional_instances_num=options.additional_instances_num,
        )
        return self._create(request)

    def _create(self, request: CreateCVDRequest) -> list[RawCVD]:
        host = self._options.host
        created: Sequence[RawCVD] = call_service(
            "create cvd", host, self._service.create_cvd, host, request
        )
        return list(created)


def create_cvds(
    service: Service,
    options: CreateOptions,
    *,
    env: Mapping[str, str] | None = None,
) -> list[CVDInfo]:
    """Create CVDs on ``options.host`` and return their summaries.

    The call is all or nothing: any failure raises :class:`CreateCVDError`
    with the original exception chained.
    """
    creator = CVDCreator(service, options, env=env)
    try:
        created = creator.create()
        root_uri = call_service("root uri", None, service.root_uri)
    except (CreateCVDError, BuildEnvError, RemoteCallError) as exc:
        raise CreateCVDError(f"Failed to create instance: {exc}") from exc
    return [CVDInfo.from_raw(root_uri, options.host, raw) for raw in created]


__all__ = ["CVDCreator", "CreateCVDError", "create_cvds"]

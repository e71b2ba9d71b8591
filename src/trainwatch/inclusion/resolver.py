"""Source version resolution.

A deployment record only names its *owner*, an opaque integer that is either
a pipeline build or a classic release. The resolver turns that into a concrete
source revision:

1. Look the owner up as a build. A build with a source revision resolves directly.
2. Otherwise look it up as a release and inspect its primary artifact:

   * a full commit hash is used as-is;
   * a numeric build id is looked up as a build, exactly once. Releases are
     never chained.

Anything else, including every lookup failure, yields :class:`UnresolvedSource`.
The resolver never raises.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from trainwatch.inclusion.models import (
    ResolutionPath,
    ResolvedSourceVersion,
    SourceResolution,
    UnresolvedSource,
)

if TYPE_CHECKING:
    from trainwatch.connectors.base import BuildMetadataSource, ReleaseMetadataSource
    from trainwatch.connectors.models import BuildInfo, ReleaseInfo

logger = structlog.get_logger()

_FULL_REVISION_RE = re.compile(r"^(?:[0-9a-fA-F]{40}|[0-9a-fA-F]{64})$")
_BUILD_ID_RE = re.compile(r"^\d+$")


def is_full_revision(value: str) -> bool:
    return bool(_FULL_REVISION_RE.match(value))


def is_build_reference(value: str) -> bool:
    return bool(_BUILD_ID_RE.match(value))


class SourceVersionResolver:
    """Resolve deployment owners (builds or releases) to source revisions."""

    def __init__(self, builds: BuildMetadataSource, releases: ReleaseMetadataSource) -> None:
        self._builds = builds
        self._releases = releases

    async def resolve(self, owner_id: int) -> SourceResolution:
        build = await self._fetch_build(owner_id)
        if build is not None and build.source_version:
            return ResolvedSourceVersion(
                owner_id=owner_id,
                path=ResolutionPath.BUILD,
                revision_id=build.source_version,
                observed_at=build.observed_at,
                web_link=build.web_link,
                origin_repository_name=build.repository_name,
            )

        release = await self._fetch_release(owner_id)
        if release is None:
            return UnresolvedSource(owner_id=owner_id, reason="owner is neither a build nor a release")

        artifact = release.primary_artifact
        if artifact is None or not artifact.version_reference:
            return UnresolvedSource(owner_id=owner_id, reason="release has no artifact version")

        reference = artifact.version_reference.strip()
        if is_full_revision(reference):
            return ResolvedSourceVersion(
                owner_id=owner_id,
                path=ResolutionPath.RELEASE,
                revision_id=reference,
                observed_at=release.observed_at,
                web_link=release.web_link,
            )

        if is_build_reference(reference):
            return await self._resolve_release_build(owner_id, release, int(reference))

        return UnresolvedSource(
            owner_id=owner_id,
            reason=f"unrecognised artifact version reference '{reference}'",
        )

    async def _resolve_release_build(
        self, owner_id: int, release: ReleaseInfo, build_id: int
    ) -> SourceResolution:
        # One hop only: the nested reference is looked up as a build, never as a release.
        build = await self._fetch_build(build_id)
        if build is None or not build.source_version:
            return UnresolvedSource(
                owner_id=owner_id,
                reason=f"release artifact build {build_id} has no source revision",
            )
        return ResolvedSourceVersion(
            owner_id=owner_id,
            path=ResolutionPath.RELEASE_BUILD,
            revision_id=build.source_version,
            observed_at=build.observed_at or release.observed_at,
            web_link=release.web_link or build.web_link,
            origin_repository_name=build.repository_name,
        )

    async def _fetch_build(self, build_id: int) -> BuildInfo | None:
        try:
            return await self._builds.get_build(build_id)
        except Exception as exc:
            logger.warning("resolver.build_lookup_failed", build_id=build_id, error=str(exc))
            return None

    async def _fetch_release(self, release_id: int) -> ReleaseInfo | None:
        try:
            return await self._releases.get_release(release_id)
        except Exception as exc:
            logger.warning("resolver.release_lookup_failed", release_id=release_id, error=str(exc))
            return None

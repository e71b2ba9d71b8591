"""Factory for creating deployment sources from application settings."""

from dataclasses import dataclass

import structlog

from trainwatch.config.settings import Settings
from trainwatch.connectors.azure_devops.client import AzureDevOpsClient
from trainwatch.connectors.base import (
    AncestryQuerySource,
    BuildMetadataSource,
    DeploymentHistorySource,
    PullRequestSource,
    ReleaseMetadataSource,
)

logger = structlog.get_logger()


@dataclass
class DeploymentSources:
    """Container for the collaborators the inclusion engine consumes."""

    history: DeploymentHistorySource
    builds: BuildMetadataSource
    releases: ReleaseMetadataSource
    ancestry: AncestryQuerySource
    pull_requests: PullRequestSource

    async def close_all(self) -> None:
        """Close underlying httpx clients (each distinct source once)."""
        seen: set[int] = set()
        for source in (self.history, self.builds, self.releases, self.ancestry, self.pull_requests):
            if id(source) in seen:
                continue
            seen.add(id(source))
            close = getattr(source, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                logger.warning(
                    "deployment_source_close_error",
                    source=type(source).__name__,
                    error=str(exc),
                )


def create_deployment_sources(settings: Settings, organization: str | None = None) -> DeploymentSources:
    """Create deployment sources backed by a single Azure DevOps client.

    ``organization`` overrides ``settings.organization`` (e.g. when it was
    taken from a pull request URL).
    """
    org = organization or settings.organization
    if not org:
        raise ValueError("An Azure DevOps organization is required (set TRAINWATCH_ORGANIZATION).")

    client = AzureDevOpsClient(
        organization=org,
        project=settings.project,
        personal_access_token=settings.personal_access_token,
        api_version=settings.api_version,
        deployment_records_api_version=settings.deployment_records_api_version,
        timeout=settings.request_timeout,
    )
    logger.info(
        "deployment_sources_initialized",
        source="azure_devops",
        organization=org,
        project=settings.project,
        authenticated=bool(settings.personal_access_token),
    )
    return DeploymentSources(
        history=client,
        builds=client,
        releases=client,
        ancestry=client,
        pull_requests=client,
    )

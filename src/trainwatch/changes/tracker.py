"""Pull request deployment tracker.

Ties a pull request URL to the inclusion engine: parses the URL, fetches the
pull request, checks that its repository is one we know how to track, and
reconciles its merge commit against every configured environment.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field

from trainwatch.changes.url_parser import ParsedPullRequestUrl, parse_pull_request_url
from trainwatch.config.environments import EnvironmentRegistry
from trainwatch.connectors.base import PullRequestSource
from trainwatch.connectors.models import PullRequestInfo
from trainwatch.inclusion.models import DeploymentStatus, EnvironmentVerdict, RepositoryIdentity
from trainwatch.inclusion.reconciler import EnvironmentReconciler

logger = structlog.get_logger()

NOT_MERGED_MESSAGE = "Pull request is not merged yet."


class TrackingReport(BaseModel):
    """Deployment status of one pull request across environments."""

    pull_request: PullRequestInfo
    parsed_url: ParsedPullRequestUrl
    supported_repository: bool = True
    message: str = ""
    verdicts: list[EnvironmentVerdict] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ChangeTracker:
    """Resolve a pull request URL to per-environment deployment verdicts."""

    def __init__(
        self,
        *,
        reconciler: EnvironmentReconciler,
        pull_requests: PullRequestSource,
        registry: EnvironmentRegistry,
        supported_repositories: Sequence[str] = (),
        default_repository_id: str = "",
    ) -> None:
        self._reconciler = reconciler
        self._pull_requests = pull_requests
        self._registry = registry
        self._supported = {r.lower() for r in supported_repositories}
        self._default_repository_id = default_repository_id

    def is_supported(self, repository: str) -> bool:
        """An empty allow-list means every repository is tracked."""
        return not self._supported or repository.lower() in self._supported

    async def track(
        self,
        url: str,
        *,
        environment_ids: list[str] | None = None,
        now: datetime | None = None,
    ) -> TrackingReport:
        parsed = parse_pull_request_url(url)
        pull_request = await self._pull_requests.get_pull_request(
            parsed.project, parsed.repository, parsed.pull_request_id
        )
        logger.info(
            "pull_request_fetched",
            pull_request_id=pull_request.id,
            repository=parsed.repository,
            status=pull_request.status,
        )

        if not self.is_supported(parsed.repository):
            return TrackingReport(
                pull_request=pull_request,
                parsed_url=parsed,
                supported_repository=False,
                message=f"Repository '{parsed.repository}' is not supported yet.",
            )

        environments = self._registry.select(environment_ids)

        merge_commit_id = pull_request.merge_commit_id
        if not pull_request.is_merged or not merge_commit_id:
            return TrackingReport(
                pull_request=pull_request,
                parsed_url=parsed,
                message=NOT_MERGED_MESSAGE,
                verdicts=[
                    EnvironmentVerdict(environment=env, status=DeploymentStatus.NOT_DEPLOYED_YET)
                    for env in environments
                ],
            )

        merged_at = pull_request.closed_at or now or datetime.now(UTC)
        repository = RepositoryIdentity(
            name=pull_request.repository_name or parsed.repository,
            id=pull_request.repository_id or self._default_repository_id,
        )
        verdicts = await self._reconciler.reconcile(
            merge_commit_id,
            merged_at,
            repository,
            environments,
            now=now,
        )
        return TrackingReport(pull_request=pull_request, parsed_url=parsed, verdicts=verdicts)

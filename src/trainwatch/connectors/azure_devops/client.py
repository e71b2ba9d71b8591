"""Azure DevOps REST connector.

Implements every deployment source interface on top of a single
``httpx.AsyncClient``:

* environment deployment records (pipeline environments)
* pipeline builds
* classic releases (served from the ``vsrm`` host)
* merge-base queries against the git history graph
* pull request metadata
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from trainwatch.connectors.azure_devops._response import json_body
from trainwatch.connectors.azure_devops.exceptions import NotFoundError
from trainwatch.connectors.base import (
    AncestryQuerySource,
    BuildMetadataSource,
    DeploymentHistorySource,
    PullRequestSource,
    ReleaseMetadataSource,
)
from trainwatch.connectors.models import BuildInfo, PullRequestInfo, ReleaseArtifact, ReleaseInfo
from trainwatch.inclusion.models import AttemptResult, DeploymentAttempt

logger = structlog.get_logger()

_DEFAULT_HOST = "https://dev.azure.com"
_DEFAULT_RELEASE_HOST = "https://vsrm.dev.azure.com"
_DEFAULT_TIMEOUT = 30.0

# Azure DevOps emits 7 fractional digits; datetime accepts at most 6.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an Azure DevOps ISO-8601 timestamp, returning ``None`` if absent or invalid."""
    if not value or not isinstance(value, str):
        return None
    text = _FRACTION_RE.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("ado_timestamp_unparseable", value=value)
        return None


def parse_attempt_result(value: Any) -> AttemptResult | None:
    if not value:
        return None
    try:
        return AttemptResult(str(value).lower())
    except ValueError:
        return AttemptResult.OTHER


def _web_link(payload: dict[str, Any]) -> str | None:
    link = ((payload.get("_links") or {}).get("web") or {}).get("href")
    return link or None


class AzureDevOpsClient(
    DeploymentHistorySource,
    BuildMetadataSource,
    ReleaseMetadataSource,
    AncestryQuerySource,
    PullRequestSource,
):
    """Async client for the Azure DevOps REST API, scoped to one organization and project.

    Usage::

        async with AzureDevOpsClient(organization="contoso", project="Web", personal_access_token="...") as ado:
            attempts = await ado.list_deployment_attempts(172, limit=30)
    """

    def __init__(
        self,
        *,
        organization: str,
        project: str,
        personal_access_token: str = "",
        api_version: str = "7.1",
        deployment_records_api_version: str = "7.1-preview.1",
        timeout: float = _DEFAULT_TIMEOUT,
        host: str = _DEFAULT_HOST,
        release_host: str = _DEFAULT_RELEASE_HOST,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.organization = organization
        self.project = project
        self._api_version = api_version
        self._records_api_version = deployment_records_api_version
        self._host = host.rstrip("/")
        self._release_host = release_host.rstrip("/")

        if http is None:
            auth = httpx.BasicAuth("", personal_access_token) if personal_access_token else None
            http = httpx.AsyncClient(
                auth=auth,
                headers={"Accept": "application/json", "User-Agent": "trainwatch/0.1.0"},
                timeout=timeout,
            )
        self._http = http

    # -- Async context manager --------------------------------------------

    async def __aenter__(self) -> AzureDevOpsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP transport."""
        await self._http.aclose()

    # -- URL helpers --------------------------------------------------------

    def _project_url(self, project: str | None = None) -> str:
        return f"{self._host}/{quote(self.organization)}/{quote(project or self.project)}"

    def _release_url(self) -> str:
        return f"{self._release_host}/{quote(self.organization)}/{quote(self.project)}"

    async def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._http.get(url, params=params)
        return json_body(response)

    # -- DeploymentHistorySource -------------------------------------------

    async def list_deployment_attempts(
        self, environment_external_id: int, limit: int
    ) -> list[DeploymentAttempt]:
        url = (
            f"{self._project_url()}/_apis/distributedtask/environments/"
            f"{environment_external_id}/environmentdeploymentrecords"
        )
        body = await self._get(url, {"top": limit, "api-version": self._records_api_version})

        attempts: list[DeploymentAttempt] = []
        for record in body.get("value") or []:
            owner = record.get("owner") or {}
            if not owner.get("id"):
                continue
            attempts.append(
                DeploymentAttempt(
                    owner_id=int(owner["id"]),
                    owner_name=owner.get("name") or "",
                    result=parse_attempt_result(record.get("result")),
                    queued_at=parse_timestamp(record.get("queueTime")),
                    started_at=parse_timestamp(record.get("startTime")),
                    finished_at=parse_timestamp(record.get("finishTime")),
                    web_link=_web_link(owner),
                )
            )
        logger.debug(
            "ado_deployment_records_fetched",
            environment_id=environment_external_id,
            count=len(attempts),
        )
        return attempts

    # -- BuildMetadataSource ------------------------------------------------

    async def get_build(self, build_id: int) -> BuildInfo | None:
        url = f"{self._project_url()}/_apis/build/builds/{build_id}"
        try:
            body = await self._get(url, {"api-version": self._api_version})
        except NotFoundError:
            return None

        repository = body.get("repository") or {}
        return BuildInfo(
            id=int(body.get("id", build_id)),
            build_number=body.get("buildNumber") or "",
            source_version=body.get("sourceVersion") or "",
            observed_at=(
                parse_timestamp(body.get("finishTime"))
                or parse_timestamp(body.get("startTime"))
                or parse_timestamp(body.get("queueTime"))
            ),
            web_link=_web_link(body),
            repository_name=repository.get("name") or None,
        )

    # -- ReleaseMetadataSource ----------------------------------------------

    async def get_release(self, release_id: int) -> ReleaseInfo | None:
        url = f"{self._release_url()}/_apis/release/releases/{release_id}"
        try:
            body = await self._get(url, {"api-version": self._api_version})
        except NotFoundError:
            return None

        artifacts = [
            ReleaseArtifact(
                alias=artifact.get("alias") or "",
                is_primary=bool(artifact.get("isPrimary", False)),
                version_reference=str(
                    ((artifact.get("definitionReference") or {}).get("version") or {}).get("id") or ""
                ),
            )
            for artifact in body.get("artifacts") or []
        ]
        return ReleaseInfo(
            id=int(body.get("id", release_id)),
            name=body.get("name") or "",
            artifacts=artifacts,
            observed_at=parse_timestamp(body.get("createdOn")),
            web_link=_web_link(body),
        )

    # -- AncestryQuerySource ------------------------------------------------

    async def merge_base(self, repository: str, revision_a: str, revision_b: str) -> list[str]:
        url = (
            f"{self._project_url()}/_apis/git/repositories/{quote(repository)}"
            f"/commits/{revision_a}/mergebases"
        )
        body = await self._get(
            url, {"otherCommitId": revision_b, "api-version": self._api_version}
        )
        return [mb["commitId"] for mb in body.get("value") or [] if mb.get("commitId")]

    # -- PullRequestSource --------------------------------------------------

    async def get_pull_request(
        self, project: str, repository: str, pull_request_id: int
    ) -> PullRequestInfo:
        url = (
            f"{self._project_url(project)}/_apis/git/repositories/{quote(repository)}"
            f"/pullRequests/{pull_request_id}"
        )
        body = await self._get(url, {"api-version": self._api_version})

        repo = body.get("repository") or {}
        return PullRequestInfo(
            id=int(body.get("pullRequestId", pull_request_id)),
            title=body.get("title") or "",
            status=body.get("status") or "",
            source_ref_name=body.get("sourceRefName") or "",
            target_ref_name=body.get("targetRefName") or "",
            repository_id=repo.get("id") or "",
            repository_name=repo.get("name") or repository,
            created_by=(body.get("createdBy") or {}).get("displayName") or "",
            created_at=parse_timestamp(body.get("creationDate")),
            closed_at=parse_timestamp(body.get("closedDate")),
            merge_commit_id=(body.get("lastMergeCommit") or {}).get("commitId"),
            url=(
                f"{self._project_url(project)}/_git/{quote(repository)}"
                f"/pullrequest/{pull_request_id}"
            ),
        )

"""Tests for the pull request ChangeTracker."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from trainwatch.changes.tracker import NOT_MERGED_MESSAGE, ChangeTracker
from trainwatch.changes.url_parser import InvalidPullRequestUrlError
from trainwatch.config.environments import load_environment_registry
from trainwatch.connectors.models import PullRequestInfo
from trainwatch.inclusion.models import DeploymentStatus, UnmatchedPolicy
from trainwatch.inclusion.reconciler import EnvironmentReconciler
from tests.integration.fakes import FakeDeploymentBackend, make_attempt, rev

PR_URL = "https://dev.azure.com/contoso/PowerBIClients/_git/PowerBIClients/pullrequest/101"
CLOSED_AT = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)
NOW = datetime(2024, 5, 15, 18, 0, tzinfo=UTC)


def _pull_request(**overrides: object) -> PullRequestInfo:
    defaults: dict[str, object] = {
        "id": 101,
        "title": "Fix tooltip",
        "status": "completed",
        "repository_id": "repo-guid",
        "repository_name": "PowerBIClients",
        "closed_at": CLOSED_AT,
        "merge_commit_id": rev("c"),
    }
    defaults.update(overrides)
    return PullRequestInfo(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def backend() -> FakeDeploymentBackend:
    b = FakeDeploymentBackend()
    b.add_commit(rev("c"))
    b.add_commit(rev("d"), parent=rev("c"))
    b.pull_requests[101] = _pull_request()
    return b


def _tracker(backend: FakeDeploymentBackend, supported: tuple[str, ...] = ("PowerBIClients",)) -> ChangeTracker:
    reconciler = EnvironmentReconciler(
        history=backend,
        builds=backend,
        releases=backend,
        ancestry=backend,
        policy=UnmatchedPolicy.STRICT,
    )
    return ChangeTracker(
        reconciler=reconciler,
        pull_requests=backend,
        registry=load_environment_registry(),
        supported_repositories=supported,
    )


class TestTrack:
    @pytest.mark.asyncio
    async def test_merged_pull_request_is_reconciled(self, backend: FakeDeploymentBackend) -> None:
        backend.add_build(2, rev("d"))
        backend.set_history(172, [make_attempt(2)])

        report = await _tracker(backend).track(PR_URL, now=NOW)

        assert report.supported_repository is True
        assert report.message == ""
        assert len(report.verdicts) == 6
        edog = report.verdicts[0]
        assert edog.environment.id == "edog"
        assert edog.status == DeploymentStatus.DEPLOYED
        assert all(v.status == DeploymentStatus.NOT_DEPLOYED_YET for v in report.verdicts[1:])
        assert ("merge_base", (rev("c"), rev("d"))) in backend.calls

    @pytest.mark.asyncio
    async def test_environment_subset(self, backend: FakeDeploymentBackend) -> None:
        report = await _tracker(backend).track(PR_URL, environment_ids=["msit"], now=NOW)
        assert [v.environment.id for v in report.verdicts] == ["msit"]

    @pytest.mark.asyncio
    async def test_unmerged_pull_request(self, backend: FakeDeploymentBackend) -> None:
        backend.pull_requests[101] = _pull_request(status="active", merge_commit_id=None, closed_at=None)

        report = await _tracker(backend).track(PR_URL, now=NOW)

        assert report.message == NOT_MERGED_MESSAGE
        assert len(report.verdicts) == 6
        assert all(v.status == DeploymentStatus.NOT_DEPLOYED_YET for v in report.verdicts)
        assert not any(call[0] == "history" for call in backend.calls)

    @pytest.mark.asyncio
    async def test_completed_without_merge_commit_is_not_reconciled(
        self, backend: FakeDeploymentBackend
    ) -> None:
        backend.pull_requests[101] = _pull_request(merge_commit_id=None)

        report = await _tracker(backend).track(PR_URL, now=NOW)

        assert report.message == NOT_MERGED_MESSAGE
        assert all(v.status == DeploymentStatus.NOT_DEPLOYED_YET for v in report.verdicts)
        assert not any(call[0] in ("history", "merge_base") for call in backend.calls)

    @pytest.mark.asyncio
    async def test_unsupported_repository(self, backend: FakeDeploymentBackend) -> None:
        url = "https://dev.azure.com/contoso/PowerBI/_git/powerbi/pullrequest/101"

        report = await _tracker(backend).track(url, now=NOW)

        assert report.supported_repository is False
        assert "not supported" in report.message
        assert report.verdicts == []

    @pytest.mark.asyncio
    async def test_empty_allow_list_tracks_everything(self, backend: FakeDeploymentBackend) -> None:
        url = "https://dev.azure.com/contoso/PowerBI/_git/powerbi/pullrequest/101"
        report = await _tracker(backend, supported=()).track(url, now=NOW)
        assert report.supported_repository is True

    @pytest.mark.asyncio
    async def test_invalid_url(self, backend: FakeDeploymentBackend) -> None:
        with pytest.raises(InvalidPullRequestUrlError):
            await _tracker(backend).track("https://example.com/nope")

"""End-to-end: pull request URL -> per-environment verdicts over the fake backend."""

from datetime import UTC, datetime, timedelta

import pytest

from tests.integration.fakes import FakeDeploymentBackend
from tests.integration.fakes.deployment_fake import BASE_TIME
from tests.integration.fakes.scenario import AFTER2, CHANGE, PR_URL
from trainwatch.changes.tracker import ChangeTracker
from trainwatch.config.environments import load_environment_registry
from trainwatch.config.settings import Settings
from trainwatch.connectors.factory import DeploymentSources
from trainwatch.inclusion.factory import create_reconciler
from trainwatch.inclusion.models import (
    AncestryMethod,
    DeploymentStatus,
    RepositoryIdentity,
    ResolutionPath,
    UnmatchedPolicy,
)

NOW = BASE_TIME + timedelta(days=1)


def _sources(backend: FakeDeploymentBackend) -> DeploymentSources:
    return DeploymentSources(
        history=backend,
        builds=backend,
        releases=backend,
        ancestry=backend,
        pull_requests=backend,
    )


def _tracker(backend: FakeDeploymentBackend, **settings_overrides: object) -> ChangeTracker:
    settings = Settings(**settings_overrides)  # type: ignore[arg-type]
    return ChangeTracker(
        reconciler=create_reconciler(settings, _sources(backend)),
        pull_requests=backend,
        registry=load_environment_registry(),
        supported_repositories=settings.supported_repositories,
        default_repository_id=settings.repository_id,
    )


class TestTrackPullRequest:
    @pytest.mark.asyncio
    async def test_full_report(self, backend: FakeDeploymentBackend) -> None:
        report = await _tracker(backend).track(PR_URL, now=NOW)
        by_env = {v.environment.id: v for v in report.verdicts}

        assert list(by_env) == ["edog", "daily", "dxt", "msit", "canary1", "canary2"]

        edog = by_env["edog"]
        assert edog.status == DeploymentStatus.DEPLOYED
        assert edog.matched_attempt is not None
        assert edog.matched_attempt.owner_id == 12
        assert edog.method == AncestryMethod.MERGE_BASE

        daily = by_env["daily"]
        assert daily.status == DeploymentStatus.DEPLOYED
        assert daily.matched_attempt is not None
        assert daily.matched_attempt.representative.is_succeeded

        dxt = by_env["dxt"]
        assert dxt.status == DeploymentStatus.WAITING_FOR_SCHEDULE
        # fork Thu 2024-05-16 22:00 PDT, +4 days
        assert dxt.expected_date == datetime(2024, 5, 21, 5, 0, tzinfo=UTC)
        assert not dxt.expected_overdue

        msit = by_env["msit"]
        assert msit.status == DeploymentStatus.IN_PROGRESS
        assert msit.source is not None
        assert msit.source.path == ResolutionPath.RELEASE_BUILD
        assert msit.source.revision_id == AFTER2
        assert msit.source.web_link == "https://ado.test/release/500"

        assert by_env["canary1"].expected_date == datetime(2024, 5, 31, 5, 0, tzinfo=UTC)
        assert by_env["canary2"].expected_date == datetime(2024, 6, 3, 5, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_strict_policy_reports_not_yet(self, backend: FakeDeploymentBackend) -> None:
        report = await _tracker(backend, unmatched_policy="strict").track(PR_URL, now=NOW)
        statuses = {v.environment.id: v.status for v in report.verdicts}
        assert statuses["dxt"] == DeploymentStatus.NOT_DEPLOYED_YET
        assert statuses["canary1"] == DeploymentStatus.NOT_DEPLOYED_YET
        assert statuses["edog"] == DeploymentStatus.DEPLOYED

    @pytest.mark.asyncio
    async def test_sequential_scan_matches_fan_out(self, backend: FakeDeploymentBackend) -> None:
        fan_out = await _tracker(backend).track(PR_URL, now=NOW)
        sequential = await _tracker(backend, fan_out_candidates=False).track(PR_URL, now=NOW)
        assert [v.status for v in fan_out.verdicts] == [v.status for v in sequential.verdicts]
        assert [
            v.matched_attempt.owner_id if v.matched_attempt else None for v in fan_out.verdicts
        ] == [v.matched_attempt.owner_id if v.matched_attempt else None for v in sequential.verdicts]

    @pytest.mark.asyncio
    async def test_unreachable_environment_is_isolated(self, backend: FakeDeploymentBackend) -> None:
        backend.failing_environments.add(191)

        report = await _tracker(backend).track(PR_URL, now=NOW)
        by_env = {v.environment.id: v for v in report.verdicts}

        assert by_env["dxt"].status == DeploymentStatus.UNKNOWN
        assert "191" in by_env["dxt"].error
        assert by_env["edog"].status == DeploymentStatus.DEPLOYED

    @pytest.mark.asyncio
    async def test_merge_base_outage_skips_candidates(self, backend: FakeDeploymentBackend) -> None:
        backend.merge_base_error = ConnectionError("git service down")

        report = await _tracker(backend, unmatched_policy="strict").track(PR_URL, now=NOW)

        assert all(v.status == DeploymentStatus.NOT_DEPLOYED_YET for v in report.verdicts)

    @pytest.mark.asyncio
    async def test_overdue_estimate(self, backend: FakeDeploymentBackend) -> None:
        report = await _tracker(backend).track(PR_URL, now=BASE_TIME + timedelta(days=60))
        canary2 = next(v for v in report.verdicts if v.environment.id == "canary2")
        assert canary2.status == DeploymentStatus.WAITING_FOR_SCHEDULE
        assert canary2.expected_overdue


class TestStreamingVerdicts:
    @pytest.mark.asyncio
    async def test_iter_verdicts_yields_every_environment(self, backend: FakeDeploymentBackend) -> None:
        reconciler = create_reconciler(Settings(), _sources(backend), policy=UnmatchedPolicy.STRICT)
        environments = load_environment_registry().environments

        seen = [
            verdict.environment.id
            async for verdict in reconciler.iter_verdicts(
                CHANGE,
                BASE_TIME,
                RepositoryIdentity(name="PowerBIClients"),
                environments,
                now=NOW,
            )
        ]

        assert sorted(seen) == sorted(e.id for e in environments)

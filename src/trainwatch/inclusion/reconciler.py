"""Per-environment deployment inclusion reconciliation.

For each requested environment, independently and concurrently:

1. fetch the environment's recent deployment attempts;
2. collapse them to one representative per build/release owner;
3. scan up to ``max_candidates`` representatives newest first, resolving each
   owner to a source revision and asking the ancestry oracle whether the
   tracked change is contained in it;
4. the first positive verdict in scan order is the match. If nothing matches,
   report ``not_deployed_yet`` or, under the ``estimate`` policy, a schedule
   estimate. Under ``estimate`` a matched verdict also carries the schedule
   estimate so it can be shown next to the observed time.

Candidates may be checked concurrently; the match is still the first positive
verdict in newest-first scan order, never the earliest deployment by time.

Every failure is contained: a broken candidate is skipped and a broken
environment reports ``unknown``. ``reconcile`` always returns one verdict per
requested environment.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from trainwatch.config.environments import Environment
from trainwatch.inclusion.ancestry import AncestryOracle, same_repository
from trainwatch.inclusion.grouping import group_attempts
from trainwatch.inclusion.models import (
    AncestryVerdict,
    DeploymentAttemptGroup,
    DeploymentStatus,
    EnvironmentVerdict,
    ReconcileRequest,
    RepositoryIdentity,
    ResolvedSourceVersion,
    UnmatchedPolicy,
)
from trainwatch.inclusion.resolver import SourceVersionResolver
from trainwatch.inclusion.schedule import TrainScheduleEstimator

if TYPE_CHECKING:
    from trainwatch.connectors.base import (
        AncestryQuerySource,
        BuildMetadataSource,
        DeploymentHistorySource,
        ReleaseMetadataSource,
    )

logger = structlog.get_logger()


def _utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(UTC)
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class CandidateEvaluation(BaseModel):
    """Outcome of checking one deployment owner against the tracked change."""

    group: DeploymentAttemptGroup
    source: ResolvedSourceVersion
    verdict: AncestryVerdict


def status_for_match(group: DeploymentAttemptGroup) -> DeploymentStatus:
    representative = group.representative
    if representative.is_succeeded:
        return DeploymentStatus.DEPLOYED
    if representative.is_in_progress:
        return DeploymentStatus.IN_PROGRESS
    return DeploymentStatus.UNKNOWN


class EnvironmentReconciler:
    """Reconcile a tracked change against environment deployment histories.

    Parameters
    ----------
    history, builds, releases, ancestry:
        External collaborators (see :mod:`trainwatch.connectors.base`).
    history_limit:
        Number of raw deployment attempts fetched per environment.
    max_candidates:
        Upper bound on grouped candidates examined per environment.
    fan_out:
        Check candidates concurrently (bounded by ``concurrency``) instead of
        one at a time with early exit. Selection is identical either way.
    policy:
        What to report when no candidate matches.
    """

    def __init__(
        self,
        *,
        history: DeploymentHistorySource,
        builds: BuildMetadataSource,
        releases: ReleaseMetadataSource,
        ancestry: AncestryQuerySource,
        history_limit: int = 30,
        max_candidates: int = 10,
        fan_out: bool = True,
        concurrency: int = 5,
        policy: UnmatchedPolicy = UnmatchedPolicy.ESTIMATE,
        estimator: TrainScheduleEstimator | None = None,
    ) -> None:
        if max_candidates < 1:
            raise ValueError("max_candidates must be at least 1")
        self._history = history
        self._resolver = SourceVersionResolver(builds, releases)
        self._oracle = AncestryOracle(ancestry)
        self._history_limit = history_limit
        self._max_candidates = max_candidates
        self._fan_out = fan_out
        self._concurrency = max(1, concurrency)
        self._policy = policy
        self._estimator = estimator or TrainScheduleEstimator()

    # -- Public API ---------------------------------------------------------

    async def reconcile(
        self,
        change_id: str,
        merged_at: datetime,
        repository: RepositoryIdentity,
        environments: Sequence[Environment],
        *,
        now: datetime | None = None,
    ) -> list[EnvironmentVerdict]:
        """Return one verdict per environment, in the order requested."""
        request = ReconcileRequest(change_id=change_id, merged_at=merged_at, repository=repository)
        now = _utc(now)
        logger.info(
            "reconcile.started",
            change_id=change_id,
            repository=repository.name,
            environments=[e.id for e in environments],
        )
        verdicts = await asyncio.gather(
            *(self._reconcile_safely(request, env, now) for env in environments)
        )
        logger.info(
            "reconcile.completed",
            change_id=change_id,
            statuses={v.environment.id: v.status.value for v in verdicts},
        )
        return list(verdicts)

    async def iter_verdicts(
        self,
        change_id: str,
        merged_at: datetime,
        repository: RepositoryIdentity,
        environments: Sequence[Environment],
        *,
        now: datetime | None = None,
    ) -> AsyncIterator[EnvironmentVerdict]:
        """Yield verdicts as each environment finishes, without waiting for the slowest."""
        request = ReconcileRequest(change_id=change_id, merged_at=merged_at, repository=repository)
        now = _utc(now)
        tasks = [asyncio.ensure_future(self._reconcile_safely(request, env, now)) for env in environments]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for task in tasks:
                task.cancel()

    async def reconcile_environment(
        self,
        request: ReconcileRequest,
        environment: Environment,
        *,
        now: datetime | None = None,
    ) -> EnvironmentVerdict:
        """Reconcile a single environment. May raise; see :meth:`reconcile`."""
        now = _utc(now)
        attempts = await self._history.list_deployment_attempts(
            environment.external_id, self._history_limit
        )
        groups = group_attempts(attempts)
        candidates = groups[: self._max_candidates]

        match = await self._find_match(request, candidates)
        if match is not None:
            status = status_for_match(match.group)
            logger.info(
                "inclusion.candidate_matched",
                change_id=request.change_id,
                environment=environment.id,
                owner_id=match.group.owner_id,
                method=match.verdict.method.value,
                status=status.value,
            )
            return EnvironmentVerdict(
                environment=environment,
                status=status,
                matched_attempt=match.group,
                source=match.source,
                method=match.verdict.method,
                timestamp=match.group.representative.timestamp,
                # informational only; a matched verdict is never overdue
                expected_date=self._expected_date(request, environment, groups, now),
            )

        logger.info(
            "inclusion.no_match",
            change_id=request.change_id,
            environment=environment.id,
            attempts=len(attempts),
            candidates=len(candidates),
            capped=len(groups) > len(candidates),
        )
        return self._unmatched_verdict(request, environment, groups, now)

    # -- Candidate scan -----------------------------------------------------

    async def _find_match(
        self,
        request: ReconcileRequest,
        candidates: list[DeploymentAttemptGroup],
    ) -> CandidateEvaluation | None:
        if not self._fan_out:
            for group in candidates:
                evaluation = await self._evaluate(request, group)
                if evaluation is not None and evaluation.verdict.is_ancestor:
                    return evaluation
            return None

        sem = asyncio.Semaphore(self._concurrency)

        async def _bounded(group: DeploymentAttemptGroup) -> CandidateEvaluation | None:
            async with sem:
                return await self._evaluate(request, group)

        evaluations = await asyncio.gather(*(_bounded(g) for g in candidates))
        # gather preserves input order, so this is the first match in scan order
        for evaluation in evaluations:
            if evaluation is not None and evaluation.verdict.is_ancestor:
                return evaluation
        return None

    async def _evaluate(
        self,
        request: ReconcileRequest,
        group: DeploymentAttemptGroup,
    ) -> CandidateEvaluation | None:
        resolution = await self._resolver.resolve(group.owner_id)
        if not isinstance(resolution, ResolvedSourceVersion):
            logger.debug(
                "inclusion.candidate_unresolved",
                owner_id=group.owner_id,
                reason=resolution.reason,
            )
            return None

        verdict = await self._oracle.check(
            request.change_id,
            resolution,
            same_repository=same_repository(resolution.origin_repository_name, request.repository.name),
            merged_at=request.merged_at,
            repository=request.repository.ref,
        )
        return CandidateEvaluation(group=group, source=resolution, verdict=verdict)

    # -- Schedule -----------------------------------------------------------

    def _expected_date(
        self,
        request: ReconcileRequest,
        environment: Environment,
        groups: list[DeploymentAttemptGroup],
        now: datetime,
    ) -> datetime | None:
        if self._policy == UnmatchedPolicy.STRICT:
            return None
        history = [
            g.representative.timestamp
            for g in groups
            if g.representative.is_succeeded and g.representative.timestamp is not None
        ]
        return self._estimator.estimate(
            environment, request.merged_at, deployment_history=history, now=now
        )

    # -- No match -----------------------------------------------------------

    def _unmatched_verdict(
        self,
        request: ReconcileRequest,
        environment: Environment,
        groups: list[DeploymentAttemptGroup],
        now: datetime,
    ) -> EnvironmentVerdict:
        if self._policy == UnmatchedPolicy.STRICT:
            return EnvironmentVerdict(environment=environment, status=DeploymentStatus.NOT_DEPLOYED_YET)

        expected = self._expected_date(request, environment, groups, now)
        if expected is None:
            return EnvironmentVerdict(environment=environment, status=DeploymentStatus.NOT_DEPLOYED_YET)

        return EnvironmentVerdict(
            environment=environment,
            status=DeploymentStatus.WAITING_FOR_SCHEDULE,
            expected_date=expected,
            expected_overdue=expected <= now,
        )

    async def _reconcile_safely(
        self,
        request: ReconcileRequest,
        environment: Environment,
        now: datetime,
    ) -> EnvironmentVerdict:
        try:
            return await self.reconcile_environment(request, environment, now=now)
        except Exception as exc:
            logger.warning(
                "reconcile.environment_failed",
                change_id=request.change_id,
                environment=environment.id,
                error=str(exc),
            )
            return EnvironmentVerdict(
                environment=environment,
                status=DeploymentStatus.UNKNOWN,
                error=str(exc) or type(exc).__name__,
            )

"""Factory for building an EnvironmentReconciler from application settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from trainwatch.config.settings import Settings
from trainwatch.inclusion.models import UnmatchedPolicy
from trainwatch.inclusion.reconciler import EnvironmentReconciler
from trainwatch.inclusion.schedule import FixedCadenceEstimator, TrainScheduleEstimator

if TYPE_CHECKING:
    from trainwatch.connectors.factory import DeploymentSources


def create_reconciler(
    settings: Settings,
    sources: DeploymentSources,
    policy: UnmatchedPolicy | None = None,
) -> EnvironmentReconciler:
    estimator = TrainScheduleEstimator(
        fixed=FixedCadenceEstimator(
            weekday=settings.fork_weekday,
            hour=settings.fork_hour,
            timezone=settings.fork_timezone,
        )
    )
    return EnvironmentReconciler(
        history=sources.history,
        builds=sources.builds,
        releases=sources.releases,
        ancestry=sources.ancestry,
        history_limit=settings.deployment_history_limit,
        max_candidates=settings.max_candidates,
        fan_out=settings.fan_out_candidates,
        concurrency=settings.candidate_concurrency,
        policy=policy or UnmatchedPolicy(settings.unmatched_policy),
        estimator=estimator,
    )

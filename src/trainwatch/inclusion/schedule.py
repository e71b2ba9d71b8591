"""Train schedule estimation.

Pure functions, no I/O. Used when no deployment in an environment's history
contains the tracked change, to give a forward-looking arrival estimate.

Two strategies:

* **Fixed weekly cadence** -- the release train forks every week at a fixed
  instant (Thursday 22:00 Pacific by default). A change merged before the fork
  rides that week's train, otherwise the next one. Each environment lands a
  fixed number of days after its train forks.
* **Observed-frequency extrapolation** -- for continuously deployed
  environments: the mean interval between recent successful deployments,
  projected forward from the latest one until it lands in the future.

Estimates are never authoritative and are reported with their own status.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from trainwatch.config.environments import DeploymentCadence, Environment

THURSDAY = 3
DEFAULT_FORK_HOUR = 22
DEFAULT_FORK_TIMEZONE = "America/Los_Angeles"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def fork_instant_for(
    merged_at: datetime,
    *,
    weekday: int = THURSDAY,
    hour: int = DEFAULT_FORK_HOUR,
    timezone: str = DEFAULT_FORK_TIMEZONE,
) -> datetime:
    """Return the first fork instant strictly after ``merged_at`` (in the fork time zone)."""
    zone = ZoneInfo(timezone)
    local = _aware(merged_at).astimezone(zone)
    fork_date = local.date() + timedelta(days=(weekday - local.weekday()) % 7)
    fork = datetime.combine(fork_date, time(hour), tzinfo=zone)
    if fork <= local:
        fork = datetime.combine(fork_date + timedelta(days=7), time(hour), tzinfo=zone)
    return fork


class FixedCadenceEstimator:
    """Expected arrival from a weekly fork instant plus a per-environment offset."""

    def __init__(
        self,
        *,
        weekday: int = THURSDAY,
        hour: int = DEFAULT_FORK_HOUR,
        timezone: str = DEFAULT_FORK_TIMEZONE,
    ) -> None:
        if not 0 <= weekday <= 6:
            raise ValueError(f"weekday must be 0-6, got {weekday}")
        if not 0 <= hour <= 23:
            raise ValueError(f"hour must be 0-23, got {hour}")
        self.weekday = weekday
        self.hour = hour
        self.timezone = timezone

    def fork_instant(self, merged_at: datetime) -> datetime:
        return fork_instant_for(merged_at, weekday=self.weekday, hour=self.hour, timezone=self.timezone)

    def expected_date(self, merged_at: datetime, offset_days: int) -> datetime:
        fork = self.fork_instant(merged_at)
        # Date arithmetic keeps the local wall-clock hour across DST changes.
        expected = datetime.combine(fork.date() + timedelta(days=offset_days), fork.timetz())
        return expected.astimezone(UTC)


class ObservedFrequencyEstimator:
    """Extrapolate the next deployment from the mean interval of recent ones."""

    def __init__(self, min_samples: int = 2) -> None:
        if min_samples < 2:
            raise ValueError("at least two samples are needed to measure an interval")
        self.min_samples = min_samples

    def mean_interval(self, timestamps: Iterable[datetime]) -> timedelta | None:
        ordered = sorted((_aware(t) for t in timestamps), reverse=True)
        if len(ordered) < self.min_samples:
            return None
        interval = (ordered[0] - ordered[-1]) / (len(ordered) - 1)
        return interval if interval > timedelta(0) else None

    def expected_date(self, timestamps: Iterable[datetime], now: datetime) -> datetime | None:
        samples = [_aware(t) for t in timestamps]
        interval = self.mean_interval(samples)
        if interval is None:
            return None
        now = _aware(now)
        expected = max(samples) + interval
        if expected <= now:
            expected += interval * ((now - expected) // interval + 1)
        return expected.astimezone(UTC)


class TrainScheduleEstimator:
    """Choose an estimation strategy by the environment's deployment cadence."""

    def __init__(
        self,
        fixed: FixedCadenceEstimator | None = None,
        observed: ObservedFrequencyEstimator | None = None,
    ) -> None:
        self.fixed = fixed or FixedCadenceEstimator()
        self.observed = observed or ObservedFrequencyEstimator()

    def estimate(
        self,
        environment: Environment,
        merged_at: datetime,
        *,
        deployment_history: Iterable[datetime] = (),
        now: datetime,
    ) -> datetime | None:
        if environment.cadence == DeploymentCadence.CONTINUOUS:
            return self.observed.expected_date(deployment_history, now)
        if environment.schedule_offset_days is None:
            return None
        return self.fixed.expected_date(merged_at, environment.schedule_offset_days)

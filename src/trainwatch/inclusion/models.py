"""Data models for deployment inclusion reconciliation."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

from trainwatch.config.environments import Environment

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class AttemptResult(StrEnum):
    """Outcome reported by the deployment history for a single attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    RUNNING = "running"
    OTHER = "other"


class ResolutionPath(StrEnum):
    """How an owner reference was mapped to a source revision."""

    BUILD = "build"
    RELEASE = "release"
    RELEASE_BUILD = "release_build"


class AncestryMethod(StrEnum):
    """Method used to decide ancestry.

    ``merge_base`` is authoritative. ``timestamp`` compares the candidate's
    observed time with the merge time and is only an approximation: a later
    build does not guarantee inclusion and an earlier one does not guarantee
    exclusion when changes propagate across repositories with a delay.
    """

    MERGE_BASE = "merge_base"
    TIMESTAMP = "timestamp"


class DeploymentStatus(StrEnum):
    DEPLOYED = "deployed"
    IN_PROGRESS = "in_progress"
    NOT_DEPLOYED_YET = "not_deployed_yet"
    UNKNOWN = "unknown"
    WAITING_FOR_SCHEDULE = "waiting_for_schedule"


class UnmatchedPolicy(StrEnum):
    """What to report for an environment with no matching deployment."""

    STRICT = "strict"
    ESTIMATE = "estimate"


# ---------------------------------------------------------------------------
# Deployment history
# ---------------------------------------------------------------------------


class DeploymentAttempt(BaseModel):
    """One raw record from an environment's deployment history."""

    owner_id: int
    owner_name: str = ""
    result: AttemptResult | None = None
    queued_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    web_link: str | None = None

    @property
    def is_succeeded(self) -> bool:
        return self.result == AttemptResult.SUCCEEDED

    @property
    def is_in_progress(self) -> bool:
        """Started, not finished, and without a terminal result."""
        return (
            self.started_at is not None
            and self.finished_at is None
            and self.result in (None, AttemptResult.RUNNING)
        )

    @property
    def timestamp(self) -> datetime | None:
        return self.finished_at or self.started_at


class DeploymentAttemptGroup(BaseModel):
    """Attempts sharing one owner, collapsed to a single representative."""

    owner_id: int
    representative: DeploymentAttempt
    attempts: list[DeploymentAttempt] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Source resolution
# ---------------------------------------------------------------------------


class ResolvedSourceVersion(BaseModel):
    kind: Literal["resolved"] = "resolved"
    owner_id: int
    path: ResolutionPath
    revision_id: str
    observed_at: datetime | None = None
    web_link: str | None = None
    origin_repository_name: str | None = None


class UnresolvedSource(BaseModel):
    kind: Literal["unresolved"] = "unresolved"
    owner_id: int
    reason: str


SourceResolution = Annotated[
    ResolvedSourceVersion | UnresolvedSource,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------


class AncestryVerdict(BaseModel):
    """Whether a tracked revision is contained in a candidate revision."""

    is_ancestor: bool
    method: AncestryMethod
    error: str = ""


class RepositoryIdentity(BaseModel):
    """The repository the tracked change was merged into."""

    name: str
    id: str = ""

    @property
    def ref(self) -> str:
        """Identifier used for history-graph queries (id when known, else name)."""
        return self.id or self.name


class ReconcileRequest(BaseModel):
    change_id: str
    merged_at: datetime
    repository: RepositoryIdentity

    @field_validator("merged_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class EnvironmentVerdict(BaseModel):
    """The reconciled deployment status of one environment for one change."""

    environment: Environment
    status: DeploymentStatus
    matched_attempt: DeploymentAttemptGroup | None = None
    source: ResolvedSourceVersion | None = None
    method: AncestryMethod | None = None
    timestamp: datetime | None = None
    expected_date: datetime | None = None
    expected_overdue: bool = False
    error: str = ""

"""Abstract interfaces for the external systems the inclusion engine reads from.

The engine never talks to a concrete API; it consumes these interfaces so that
pipeline builds, classic releases and the history graph can be served by any
backend (or by in-memory fakes in tests).
"""

from abc import ABC, abstractmethod

from trainwatch.connectors.models import BuildInfo, PullRequestInfo, ReleaseInfo
from trainwatch.inclusion.models import DeploymentAttempt


class DeploymentHistorySource(ABC):
    @abstractmethod
    async def list_deployment_attempts(
        self, environment_external_id: int, limit: int
    ) -> list[DeploymentAttempt]:
        """Return the most recent deployment attempts for an environment, newest first."""


class BuildMetadataSource(ABC):
    @abstractmethod
    async def get_build(self, build_id: int) -> BuildInfo | None:
        """Return build metadata, or ``None`` if no such build exists."""


class ReleaseMetadataSource(ABC):
    @abstractmethod
    async def get_release(self, release_id: int) -> ReleaseInfo | None:
        """Return release metadata, or ``None`` if no such release exists."""


class AncestryQuerySource(ABC):
    @abstractmethod
    async def merge_base(self, repository: str, revision_a: str, revision_b: str) -> list[str]:
        """Return the merge base(s) of two revisions in a repository."""


class PullRequestSource(ABC):
    @abstractmethod
    async def get_pull_request(
        self, project: str, repository: str, pull_request_id: int
    ) -> PullRequestInfo:
        """Return pull request metadata (raises on lookup failure)."""

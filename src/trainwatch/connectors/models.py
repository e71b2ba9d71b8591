"""Metadata records returned by deployment source connectors."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BuildInfo(BaseModel):
    """A pipeline build and the source revision it was built from."""

    id: int
    build_number: str = ""
    source_version: str = ""
    observed_at: datetime | None = None
    web_link: str | None = None
    repository_name: str | None = None


class ReleaseArtifact(BaseModel):
    alias: str = ""
    is_primary: bool = False
    version_reference: str = ""  # commit hash or build id, depending on artifact type


class ReleaseInfo(BaseModel):
    """A classic release; its artifacts point at what was deployed."""

    id: int
    name: str = ""
    artifacts: list[ReleaseArtifact] = Field(default_factory=list)
    observed_at: datetime | None = None
    web_link: str | None = None

    @property
    def primary_artifact(self) -> ReleaseArtifact | None:
        for artifact in self.artifacts:
            if artifact.is_primary:
                return artifact
        return self.artifacts[0] if self.artifacts else None


class PullRequestInfo(BaseModel):
    id: int
    title: str = ""
    status: str = ""
    source_ref_name: str = ""
    target_ref_name: str = ""
    repository_id: str = ""
    repository_name: str = ""
    created_by: str = ""
    created_at: datetime | None = None
    closed_at: datetime | None = None
    merge_commit_id: str | None = None
    url: str = ""

    @property
    def is_merged(self) -> bool:
        return self.status.lower() == "completed" and bool(self.merge_commit_id)

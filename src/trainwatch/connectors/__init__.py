"""Deployment source connector abstraction layer."""

from trainwatch.connectors.base import (
    AncestryQuerySource,
    BuildMetadataSource,
    DeploymentHistorySource,
    PullRequestSource,
    ReleaseMetadataSource,
)

__all__ = [
    "AncestryQuerySource",
    "BuildMetadataSource",
    "DeploymentHistorySource",
    "PullRequestSource",
    "ReleaseMetadataSource",
]

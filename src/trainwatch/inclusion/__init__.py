"""Deployment Inclusion Reconciliation Engine.

Determines, per deployment environment, whether a merged change has been
deployed, combining merge-base ancestry evidence with timestamp and
train-schedule fallbacks.
"""

from trainwatch.inclusion.models import (
    AncestryMethod,
    AncestryVerdict,
    AttemptResult,
    DeploymentAttempt,
    DeploymentAttemptGroup,
    DeploymentStatus,
    EnvironmentVerdict,
    RepositoryIdentity,
    ResolvedSourceVersion,
    UnmatchedPolicy,
    UnresolvedSource,
)
from trainwatch.inclusion.reconciler import EnvironmentReconciler

__all__ = [
    "AncestryMethod",
    "AncestryVerdict",
    "AttemptResult",
    "DeploymentAttempt",
    "DeploymentAttemptGroup",
    "DeploymentStatus",
    "EnvironmentReconciler",
    "EnvironmentVerdict",
    "RepositoryIdentity",
    "ResolvedSourceVersion",
    "UnmatchedPolicy",
    "UnresolvedSource",
]

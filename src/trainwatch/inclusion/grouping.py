"""Deployment record grouping.

Multi-job and multi-stage deployments emit one history record per job, all
sharing the same owner (build or release). The reconciler wants one candidate
per owner, so records are collapsed using a simple precedence rule:

    succeeded  >  in progress (started, unfinished)  >  anything else

Groups whose best record falls in the last bucket are dropped entirely; an
owner whose deployments all failed is never a candidate.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from trainwatch.inclusion.models import DeploymentAttempt, DeploymentAttemptGroup

logger = structlog.get_logger()


def select_representative(attempts: list[DeploymentAttempt]) -> DeploymentAttempt | None:
    """Pick the attempt that stands for a group, or ``None`` if the group is dropped."""
    for attempt in attempts:
        if attempt.is_succeeded:
            return attempt
    for attempt in attempts:
        if attempt.is_in_progress:
            return attempt
    return None


def group_attempts(attempts: Iterable[DeploymentAttempt]) -> list[DeploymentAttemptGroup]:
    """Collapse raw attempts into one representative per owner.

    Order of first appearance is preserved, so newest-first input gives
    newest-first groups.
    """
    by_owner: dict[int, list[DeploymentAttempt]] = {}
    for attempt in attempts:
        by_owner.setdefault(attempt.owner_id, []).append(attempt)

    groups: list[DeploymentAttemptGroup] = []
    dropped = 0
    for owner_id, members in by_owner.items():
        representative = select_representative(members)
        if representative is None:
            dropped += 1
            continue
        groups.append(
            DeploymentAttemptGroup(owner_id=owner_id, representative=representative, attempts=members)
        )

    logger.debug("inclusion.attempts_grouped", groups=len(groups), dropped=dropped)
    return groups

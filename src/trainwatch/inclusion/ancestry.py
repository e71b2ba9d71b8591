"""Ancestry oracle: is the tracked revision contained in a candidate revision?

Two methods are available:

* ``merge_base`` (authoritative): ask the history graph for the merge base of
  the two revisions. The tracked revision is an ancestor of the candidate
  exactly when it *is* that merge base.
* ``timestamp`` (heuristic): used when the candidate was built from a
  different repository, where the history graph cannot answer. The candidate
  counts as including the change iff it was observed strictly after the merge.
  Lower confidence: a later build does not guarantee inclusion and an earlier
  one does not guarantee exclusion when changes propagate across repositories.

Neither method raises; failures are reported as ``is_ancestor=False`` with the
error text attached.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from trainwatch.inclusion.models import AncestryMethod, AncestryVerdict, ResolvedSourceVersion

if TYPE_CHECKING:
    from trainwatch.connectors.base import AncestryQuerySource

logger = structlog.get_logger()

SHORT_REVISION_LENGTH = 7
_FULL_LENGTHS = (40, 64)


def revisions_match(a: str, b: str) -> bool:
    """Compare two revision ids, tolerating abbreviated forms.

    Full-length ids are compared exactly. The 7-character prefix comparison is
    only used when at least one side is abbreviated.
    """
    a, b = a.strip().lower(), b.strip().lower()
    if not a or not b:
        return False
    if a == b:
        return True
    if len(a) in _FULL_LENGTHS and len(b) in _FULL_LENGTHS:
        return False
    if len(a) < SHORT_REVISION_LENGTH or len(b) < SHORT_REVISION_LENGTH:
        return False
    return a[:SHORT_REVISION_LENGTH] == b[:SHORT_REVISION_LENGTH]


def observed_after(candidate: ResolvedSourceVersion, merged_at: datetime) -> bool:
    """Timestamp heuristic: strictly later than the merge counts as included."""
    observed = candidate.observed_at
    if observed is None:
        return False
    if observed.tzinfo is None:
        observed = observed.replace(tzinfo=UTC)
    if merged_at.tzinfo is None:
        merged_at = merged_at.replace(tzinfo=UTC)
    return observed > merged_at


def same_repository(origin: str | None, tracked: str) -> bool:
    """Case-insensitive substring match in either direction; unknown origin is ``False``."""
    if not origin or not tracked:
        return False
    origin, tracked = origin.lower(), tracked.lower()
    return origin in tracked or tracked in origin


class AncestryOracle:
    def __init__(self, source: AncestryQuerySource) -> None:
        self._source = source

    async def check(
        self,
        target: str,
        candidate: ResolvedSourceVersion,
        *,
        same_repository: bool,
        merged_at: datetime,
        repository: str,
    ) -> AncestryVerdict:
        if not same_repository:
            return AncestryVerdict(
                is_ancestor=observed_after(candidate, merged_at),
                method=AncestryMethod.TIMESTAMP,
            )

        return await self.check_merge_base(target, candidate.revision_id, repository)

    async def check_merge_base(self, target: str, candidate_revision: str, repository: str) -> AncestryVerdict:
        try:
            bases = await self._source.merge_base(repository, target, candidate_revision)
            is_ancestor = any(revisions_match(base, target) for base in bases)
        except Exception as exc:
            logger.warning(
                "ancestry.merge_base_failed",
                target=target,
                candidate=candidate_revision,
                error=str(exc),
            )
            return AncestryVerdict(is_ancestor=False, method=AncestryMethod.MERGE_BASE, error=str(exc))

        return AncestryVerdict(is_ancestor=is_ancestor, method=AncestryMethod.MERGE_BASE)

"""Tests for deployment record grouping and representative selection."""

from __future__ import annotations

from trainwatch.inclusion.grouping import group_attempts, select_representative
from trainwatch.inclusion.models import AttemptResult
from tests.integration.fakes import make_attempt


class TestSelectRepresentative:
    def test_succeeded_wins_over_in_progress(self) -> None:
        running = make_attempt(1, None, finished=False)
        done = make_attempt(1, AttemptResult.SUCCEEDED)
        assert select_representative([running, done]) is done

    def test_in_progress_wins_over_failed(self) -> None:
        failed = make_attempt(1, AttemptResult.FAILED)
        running = make_attempt(1, None, finished=False)
        assert select_representative([failed, running]) is running

    def test_running_result_counts_as_in_progress(self) -> None:
        running = make_attempt(1, AttemptResult.RUNNING, finished=False)
        assert select_representative([running]) is running

    def test_all_failed_group_is_dropped(self) -> None:
        attempts = [make_attempt(1, AttemptResult.FAILED), make_attempt(1, AttemptResult.CANCELED)]
        assert select_representative(attempts) is None

    def test_finished_without_result_is_not_in_progress(self) -> None:
        assert select_representative([make_attempt(1, None, finished=True)]) is None


class TestGroupAttempts:
    def test_groups_by_owner_preserving_first_appearance(self) -> None:
        attempts = [
            make_attempt(30),
            make_attempt(20),
            make_attempt(30, AttemptResult.FAILED),
            make_attempt(10),
        ]
        groups = group_attempts(attempts)
        assert [g.owner_id for g in groups] == [30, 20, 10]
        assert len(groups[0].attempts) == 2

    def test_failed_owner_never_surfaces(self) -> None:
        attempts = [make_attempt(2, AttemptResult.FAILED), make_attempt(1)]
        groups = group_attempts(attempts)
        assert [g.owner_id for g in groups] == [1]

    def test_multi_stage_owner_picks_succeeded_stage(self) -> None:
        stage_a = make_attempt(5, AttemptResult.FAILED)
        stage_b = make_attempt(5, AttemptResult.SUCCEEDED)
        (group,) = group_attempts([stage_a, stage_b])
        assert group.representative is stage_b

    def test_empty_history(self) -> None:
        assert group_attempts([]) == []

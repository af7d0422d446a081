"""Commit-to-deployment mapping for trunk-based delivery.

In trunk-based development every commit lands on the main branch and the CI
workflow is the deployment. A commit's delivery outcome is the FIRST resolved
run of that workflow that started at or after the commit was authored:

- first run succeeded -> commit is SUCCESS
- first run failed    -> commit is FAILURE
- no run yet          -> commit is PENDING

Lead time is measured to the first SUCCESSFUL run after the commit, which may be
a later run than the first one when the nearest run failed. Cycle time equals
lead time because there is no separate coding phase on trunk.
"""

from bisect import bisect_left
from typing import List, Optional, Sequence

from .records import Commit, DeploymentResult, MappedCommit, Run, RunStatus, minutes_between


class RunTimeline:
    """Resolved runs in start-time order, indexed for "first run at or after t" lookups.

    Runs with equal start times keep their input order (stable sort), which is
    the only tie-break applied.
    """

    def __init__(self, runs: Sequence[Run]):
        self.runs: List[Run] = sorted((r for r in runs if r.is_resolved), key=lambda r: r.started_at)
        self._starts = [r.started_at for r in self.runs]

        # _next_success[i] = index of the first SUCCESS run at position >= i
        self._next_success: List[Optional[int]] = [None] * (len(self.runs) + 1)
        for i in range(len(self.runs) - 1, -1, -1):
            if self.runs[i].status == RunStatus.SUCCESS:
                self._next_success[i] = i
            else:
                self._next_success[i] = self._next_success[i + 1]

    def __len__(self) -> int:
        return len(self.runs)

    def first_index_at_or_after(self, commit: Commit) -> int:
        return bisect_left(self._starts, commit.authored_at)

    def first_run(self, commit: Commit) -> Optional[Run]:
        index = self.first_index_at_or_after(commit)
        return self.runs[index] if index < len(self.runs) else None

    def first_success(self, commit: Commit) -> Optional[Run]:
        index = self._next_success[self.first_index_at_or_after(commit)]
        return self.runs[index] if index is not None else None


def map_commit(commit: Commit, timeline: RunTimeline) -> MappedCommit:
    first_run = timeline.first_run(commit)
    if first_run is None:
        return MappedCommit(commit=commit, deployment_result=DeploymentResult.PENDING)

    first_success = timeline.first_success(commit)
    lead_time = None
    if first_success is not None and first_success.completed_at is not None:
        lead_time = minutes_between(commit.authored_at, first_success.completed_at)

    return MappedCommit(
        commit=commit,
        deployment_result=DeploymentResult(first_run.status.value),
        first_run=first_run,
        first_success=first_success,
        lead_time_minutes=lead_time,
        cycle_time_minutes=lead_time,
    )


def map_commits(commits: Sequence[Commit], runs: Sequence[Run]) -> List[MappedCommit]:
    """Map every commit (merge commits included) to its first deployment run."""
    timeline = runs if isinstance(runs, RunTimeline) else RunTimeline(runs)
    return [map_commit(commit, timeline) for commit in commits]

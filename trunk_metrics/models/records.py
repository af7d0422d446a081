"""Canonical records used by the trunk metrics engine.

Every record is immutable. Derived values (``MappedCommit``, ``Incident``) are
built fresh on each analysis call and never mutated in place.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class RunStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNKNOWN = "UNKNOWN"


class DeploymentResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    PENDING = "PENDING"


class Rating(str, Enum):
    """Four ordered quality tiers, best first."""

    ELITE = "ELITE"
    GOOD = "GOOD"
    FAIR = "FAIR"
    NEEDS_FOCUS = "NEEDS_FOCUS"

    @property
    def tier(self) -> int:
        """1 (best) .. 4 (worst)"""
        return _TIERS[self]

    @property
    def score(self) -> int:
        """4 (best) .. 1 (worst), used for the overall average"""
        return 5 - self.tier

    @property
    def label(self) -> str:
        """DORA wording: Elite / High / Medium / Low"""
        return _LABELS[self]

    @property
    def level(self) -> str:
        """Lowercase DORA label, used as a badge class by the dashboard"""
        return _LABELS[self].lower()

    @classmethod
    def from_score(cls, average: float) -> "Rating":
        if average >= 3.5:
            return cls.ELITE
        if average >= 2.5:
            return cls.GOOD
        if average >= 1.5:
            return cls.FAIR
        return cls.NEEDS_FOCUS


_TIERS = {Rating.ELITE: 1, Rating.GOOD: 2, Rating.FAIR: 3, Rating.NEEDS_FOCUS: 4}
_LABELS = {Rating.ELITE: "Elite", Rating.GOOD: "High", Rating.FAIR: "Medium", Rating.NEEDS_FOCUS: "Low"}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60.0


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


@dataclass(frozen=True)
class Commit:
    sha: str
    authored_at: datetime
    author: str
    author_name: str = ""
    message: str = ""
    is_merge: bool = False
    lines_added: int = 0
    lines_deleted: int = 0
    files_changed: int = 0

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def batch_size(self) -> int:
        return self.lines_added + self.lines_deleted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "short_sha": self.short_sha,
            "message": self.message,
            "author": self.author,
            "author_name": self.author_name or self.author,
            "authored_at": _iso(self.authored_at),
            "is_merge": self.is_merge,
            "lines_added": self.lines_added,
            "lines_deleted": self.lines_deleted,
            "files_changed": self.files_changed,
        }


@dataclass(frozen=True)
class Run:
    run_id: int
    workflow_name: str
    status: RunStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    conclusion: Optional[str] = None
    head_sha: str = ""
    html_url: str = ""
    event: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status in (RunStatus.SUCCESS, RunStatus.FAILURE)

    @property
    def duration_minutes(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return minutes_between(self.started_at, self.completed_at)

    @property
    def bucket_time(self) -> datetime:
        """Timestamp used to place the run on a day: completion, else start."""
        return self.completed_at or self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "workflow_name": self.workflow_name,
            "status": self.status.value,
            "conclusion": self.conclusion,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "duration_minutes": self.duration_minutes,
            "head_sha": self.head_sha,
            "html_url": self.html_url,
            "event": self.event,
        }


@dataclass(frozen=True)
class MappedCommit:
    """A commit together with the CI run that represents its delivery outcome."""

    commit: Commit
    deployment_result: DeploymentResult
    first_run: Optional[Run] = None
    first_success: Optional[Run] = None
    lead_time_minutes: Optional[float] = None
    cycle_time_minutes: Optional[float] = None

    @property
    def is_merge(self) -> bool:
        return self.commit.is_merge

    @property
    def author(self) -> str:
        return self.commit.author

    @property
    def time_to_deploy_minutes(self) -> Optional[float]:
        """Pipeline duration of the mapped run, only for successful commits."""
        if self.deployment_result != DeploymentResult.SUCCESS or self.first_run is None:
            return None
        return self.first_run.duration_minutes

    def to_dict(self) -> Dict[str, Any]:
        data = self.commit.to_dict()
        run = self.first_run
        data.update(
            {
                "first_run_id": run.run_id if run else None,
                "first_run_status": run.status.value if run else None,
                "first_run_conclusion": run.conclusion if run else None,
                "first_run_started_at": _iso(run.started_at) if run else None,
                "first_run_completed_at": _iso(run.completed_at) if run else None,
                "first_run_url": run.html_url if run else None,
                "first_success_run_id": self.first_success.run_id if self.first_success else None,
                "lead_time_minutes": self.lead_time_minutes,
                "cycle_time_minutes": self.cycle_time_minutes,
                "deployment_result": self.deployment_result.value,
            }
        )
        return data


@dataclass(frozen=True)
class Incident:
    """One outage: the first failure of a streak and the success that ended it."""

    first_failure: Run
    recovery_success: Run

    @property
    def recovered_at(self) -> datetime:
        return self.recovery_success.completed_at  # type: ignore[return-value]

    @property
    def duration_hours(self) -> float:
        return hours_between(self.first_failure.completed_at, self.recovery_success.completed_at)  # type: ignore[arg-type]


@dataclass(frozen=True)
class PullRequest:
    number: int
    author: str
    created_at: datetime
    merged_at: Optional[datetime] = None
    first_commit_at: Optional[datetime] = None
    first_review_at: Optional[datetime] = None
    first_approval_at: Optional[datetime] = None
    additions: int = 0
    deletions: int = 0
    title: str = ""
    repository: str = ""

    @property
    def size(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class MetricValue:
    value: float
    unit: str
    display_value: str
    rating: Rating

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit,
            "display_value": self.display_value,
            "rating": self.rating.value,
            "level": self.rating.level,
        }

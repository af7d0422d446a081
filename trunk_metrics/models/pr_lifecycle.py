"""Pull-request lifecycle metrics.

Phases of a merged pull request, all in hours:

    coding   first commit  -> PR opened
    pickup   PR opened     -> first review
    approve  first review  -> first approval
    merge    first approval -> merged
    review   PR opened     -> merged
    cycle    first commit  -> merged

A phase is None when either endpoint is missing or the end precedes the start;
negative durations are never clamped to zero.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from trunk_metrics.utils.date_ranges import AnalysisWindow
from trunk_metrics.utils.logging import get_logger

from .ratings import PR_THRESHOLDS, RatingEngine
from .records import MetricValue, PullRequest, _iso, hours_between

out = get_logger("trunk_metrics.models.pr_lifecycle")

PHASES = ("coding_time", "pickup_time", "approve_time", "merge_time", "review_time", "cycle_time")


def _phase(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    hours = hours_between(start, end)
    return hours if hours >= 0 else None


def coding_time(pr: PullRequest) -> Optional[float]:
    return _phase(pr.first_commit_at, pr.created_at)


def pickup_time(pr: PullRequest) -> Optional[float]:
    return _phase(pr.created_at, pr.first_review_at)


def approve_time(pr: PullRequest) -> Optional[float]:
    return _phase(pr.first_review_at, pr.first_approval_at)


def merge_time(pr: PullRequest) -> Optional[float]:
    return _phase(pr.first_approval_at, pr.merged_at)


def review_time(pr: PullRequest) -> Optional[float]:
    return _phase(pr.created_at, pr.merged_at)


def cycle_time(pr: PullRequest) -> Optional[float]:
    return _phase(pr.first_commit_at, pr.merged_at)


_PHASE_FUNCS = {
    "coding_time": coding_time,
    "pickup_time": pickup_time,
    "approve_time": approve_time,
    "merge_time": merge_time,
    "review_time": review_time,
    "cycle_time": cycle_time,
}


def phase_durations(pr: PullRequest) -> Dict[str, Optional[float]]:
    """All six phase durations of one PR, keyed by phase name."""
    return {name: func(pr) for name, func in _PHASE_FUNCS.items()}


def _or_zero(value) -> float:
    return 0.0 if pd.isna(value) else float(value)


def pull_requests_frame(pull_requests: Sequence[PullRequest]) -> pd.DataFrame:
    """One row per PR with its phase durations in hours and a lowercased ``login``"""
    columns = ["pull_request", "number", "login", "merged_at", "size", *PHASES]
    df = pd.DataFrame(
        [
            {
                "pull_request": pr,
                "number": pr.number,
                "login": pr.author.lower(),
                "merged_at": pr.merged_at,
                "size": pr.size,
                **phase_durations(pr),
            }
            for pr in pull_requests
        ],
        columns=columns,
    )
    df[list(PHASES)] = df[list(PHASES)].astype("float64")
    df["size"] = df["size"].astype("float64")
    df["merged_at"] = pd.to_datetime(df["merged_at"], utc=True)
    return df


@dataclass(frozen=True)
class PRDetail:
    pull_request: PullRequest
    phases: Dict[str, Optional[float]]

    def to_dict(self) -> Dict[str, Any]:
        pr = self.pull_request
        data = {
            "number": pr.number,
            "title": pr.title,
            "author": pr.author,
            "repository": pr.repository,
            "created_at": _iso(pr.created_at),
            "merged_at": _iso(pr.merged_at),
            "first_commit_at": _iso(pr.first_commit_at),
            "first_review_at": _iso(pr.first_review_at),
            "first_approval_at": _iso(pr.first_approval_at),
            "additions": pr.additions,
            "deletions": pr.deletions,
            "pr_size": pr.size,
        }
        data.update({f"{name}_hours": value for name, value in self.phases.items()})
        return data


@dataclass(frozen=True)
class PRMetricSet:
    """Rated phase averages, merge frequency and PR size for a group of PRs."""

    metrics: Dict[str, MetricValue]
    total_prs: int

    def __getitem__(self, name: str) -> MetricValue:
        return self.metrics[name]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: value.to_dict() for name, value in self.metrics.items()}
        data["total_prs"] = self.total_prs
        return data


@dataclass(frozen=True)
class DeveloperPRMetrics:
    developer: str
    metrics: PRMetricSet
    pull_requests: List[PRDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "developer": self.developer,
            "nickname": f"@{self.developer}",
            **self.metrics.to_dict(),
            "pull_requests": [p.to_dict() for p in self.pull_requests],
        }


@dataclass(frozen=True)
class PRWeeklyTrend:
    week: str
    start_date: str
    end_date: str
    pr_count: int
    cycle_time: float
    review_time: float

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class PRLifecycleReport:
    window: AnalysisWindow
    team_metrics: PRMetricSet
    total_developers: int
    developer_metrics: List[DeveloperPRMetrics]
    weekly_trend: List[PRWeeklyTrend]

    def to_dict(self) -> Dict[str, Any]:
        team = self.team_metrics.to_dict()
        team["total_developers"] = self.total_developers
        return {
            "period": self.window.to_dict(),
            "team_metrics": team,
            "developer_metrics": [d.to_dict() for d in self.developer_metrics],
            "weekly_trend": [w.to_dict() for w in self.weekly_trend],
        }


class PRLifecycleCalculator:
    """Team, per-developer and weekly PR lifecycle metrics for merged PRs in a window."""

    def __init__(self, pull_requests: Sequence[PullRequest], window: AnalysisWindow):
        self.window = window
        self.pull_requests = [
            pr for pr in pull_requests if pr.merged_at is not None and window.contains(pr.merged_at)
        ]
        excluded = len(pull_requests) - len(self.pull_requests)
        if excluded:
            out.info(f"Excluded {excluded} PRs not merged in {window.description}", indent=2)

        self.df = pull_requests_frame(self.pull_requests)

    def _metric_set(self, df: pd.DataFrame, merge_frequency: float) -> PRMetricSet:
        values = {name: _or_zero(df[name].mean()) for name in PHASES}
        values["merge_frequency"] = merge_frequency
        values["pr_size"] = _or_zero(df["size"].mean())

        metrics = {
            name: RatingEngine.create_metric_value(value, name, PR_THRESHOLDS) for name, value in values.items()
        }
        return PRMetricSet(metrics=metrics, total_prs=len(df))

    @property
    def total_developers(self) -> int:
        return int(self.df["login"].nunique())

    def calculate_team_metrics(self) -> PRMetricSet:
        developers = self.total_developers
        weeks = self.window.weeks_in_range
        merge_frequency = len(self.df) / developers / weeks if developers else 0.0
        return self._metric_set(self.df, merge_frequency)

    def calculate_developer_metrics(self) -> List[DeveloperPRMetrics]:
        """Per-developer metrics (login compared case-insensitively), most PRs first."""
        weeks = self.window.weeks_in_range
        developers = []
        for login, group in self.df.groupby("login", sort=False):
            developers.append(
                DeveloperPRMetrics(
                    developer=login,
                    metrics=self._metric_set(group, len(group) / weeks),
                    pull_requests=[PRDetail(pr, phase_durations(pr)) for pr in group["pull_request"]],
                )
            )
        return sorted(developers, key=lambda d: d.metrics.total_prs, reverse=True)

    def calculate_weekly_trend(self) -> List[PRWeeklyTrend]:
        """Monday-aligned weeks covering the window, labelled by ISO week."""
        df = self.df.assign(week=self.df["merged_at"].dt.tz_localize(None).dt.to_period("W"))
        weekly = df.groupby("week").agg(
            pr_count=("number", "count"),
            cycle_time=("cycle_time", "mean"),
            review_time=("review_time", "mean"),
        )
        periods = pd.period_range(pd.Timestamp(self.window.start_date), pd.Timestamp(self.window.end_date), freq="W")
        weekly = weekly.reindex(periods)

        trend = []
        for period, row in weekly.iterrows():
            start = period.start_time.date()
            iso_year, iso_week, _ = start.isocalendar()
            trend.append(
                PRWeeklyTrend(
                    week=f"{iso_year}-W{iso_week:02d}",
                    start_date=start.isoformat(),
                    end_date=period.end_time.date().isoformat(),
                    pr_count=int(_or_zero(row["pr_count"])),
                    cycle_time=_or_zero(row["cycle_time"]),
                    review_time=_or_zero(row["review_time"]),
                )
            )
        return trend

    def analyze(self) -> PRLifecycleReport:
        out.info(f"Analyzing {len(self.pull_requests)} merged PRs", emoji="🔀")
        return PRLifecycleReport(
            window=self.window,
            team_metrics=self.calculate_team_metrics(),
            total_developers=self.total_developers,
            developer_metrics=self.calculate_developer_metrics(),
            weekly_trend=self.calculate_weekly_trend(),
        )

"""Response shapes produced by the trunk metrics engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from trunk_metrics.utils.date_ranges import AnalysisWindow

from .incidents import MTTRResult
from .records import MappedCommit, MetricValue, Rating, Run


@dataclass(frozen=True)
class DailyStat:
    date: str
    commits: int
    action_runs: int
    successful_runs: int
    failed_runs: int
    avg_lead_time_minutes: Optional[float]
    avg_cycle_time_minutes: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class WeeklyTrend:
    week: str
    iso_week: str
    start_date: str
    end_date: str
    commits: int
    deployments: int
    successful_deploys: int
    failed_deploys: int
    avg_lead_time_hours: Optional[float]
    avg_cycle_time_hours: Optional[float]
    deployment_frequency: float
    change_failure_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class AuthorStats:
    author: str
    author_name: str
    total_commits: int
    successful_commits: int
    failed_commits: int
    pending_commits: int
    commit_success_rate: float
    avg_lead_time_minutes: Optional[float]
    avg_cycle_time_minutes: Optional[float]
    avg_time_to_deploy_minutes: Optional[float]
    avg_batch_size: float
    total_lines_added: int
    total_lines_deleted: int
    deployment_frequency: float
    commits: List[MappedCommit] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in self.__dict__.items() if k != "commits"}
        data["commits"] = [c.to_dict() for c in self.commits]
        return data


@dataclass(frozen=True)
class TeamSummary:
    """Headline scalars before rating."""

    deployment_frequency: float
    lead_time_hours: float
    cycle_time_hours: float
    change_failure_rate: float
    commit_frequency: float
    avg_batch_size: float
    avg_pipeline_duration_minutes: float
    deploy_success_rate: float
    successful_deploys: int
    failed_deploys: int


@dataclass(frozen=True)
class TrunkRatings:
    deployment_frequency: Rating
    lead_time: Rating
    cycle_time: Rating
    change_failure_rate: Rating
    mttr: Rating
    commit_frequency: Rating
    batch_size: Rating
    time_to_deploy: Rating
    overall: Rating

    def to_dict(self) -> Dict[str, str]:
        return {name: rating.label for name, rating in self.__dict__.items()}


@dataclass(frozen=True)
class TeamMetrics:
    deployment_frequency: MetricValue
    lead_time: MetricValue
    cycle_time: MetricValue
    change_failure_rate: MetricValue
    mttr: MetricValue
    commit_frequency: MetricValue
    batch_size: MetricValue
    time_to_deploy: MetricValue
    deploy_success_rate: MetricValue
    total_commits: int
    total_developers: int

    def to_dict(self) -> Dict[str, Any]:
        return {k: (v.to_dict() if isinstance(v, MetricValue) else v) for k, v in self.__dict__.items()}


@dataclass(frozen=True)
class TrunkMetricsReport:
    window: AnalysisWindow
    workflow_name: str

    total_commits: int
    merge_commits: int
    total_action_runs: int
    successful_commits: int
    failed_commits: int
    pending_commits: int

    summary: TeamSummary
    mttr: MTTRResult
    team_metrics: TeamMetrics
    ratings: TrunkRatings

    commits: List[MappedCommit]
    action_runs: List[Run]
    daily_stats: List[DailyStat]
    weekly_trend: List[WeeklyTrend]
    author_stats: List[AuthorStats]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict; identical inputs always give an identical dict."""
        summary = self.summary
        return {
            "period": self.window.to_dict(),
            "workflow_name": self.workflow_name,
            "counts": {
                "total_commits": self.total_commits,
                "merge_commits": self.merge_commits,
                "total_action_runs": self.total_action_runs,
                "successful_commits": self.successful_commits,
                "failed_commits": self.failed_commits,
                "pending_commits": self.pending_commits,
                "successful_deploys": summary.successful_deploys,
                "failed_deploys": summary.failed_deploys,
            },
            "deployment_frequency": summary.deployment_frequency,
            "lead_time_for_changes_hours": summary.lead_time_hours,
            "cycle_time_hours": summary.cycle_time_hours,
            "change_failure_rate": summary.change_failure_rate,
            "mean_time_to_recovery_hours": self.mttr.mttr_hours,
            "commit_frequency": summary.commit_frequency,
            "avg_batch_size": summary.avg_batch_size,
            "avg_pipeline_duration_minutes": summary.avg_pipeline_duration_minutes,
            "deploy_success_rate": summary.deploy_success_rate,
            "mttr": self.mttr.to_dict(),
            "team_metrics": self.team_metrics.to_dict(),
            "ratings": self.ratings.to_dict(),
            "commits": [c.to_dict() for c in self.commits],
            "action_runs": [r.to_dict() for r in self.action_runs],
            "daily_stats": [d.to_dict() for d in self.daily_stats],
            "weekly_trend": [w.to_dict() for w in self.weekly_trend],
            "author_stats": [a.to_dict() for a in self.author_stats],
        }

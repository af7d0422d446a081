"""Trunk metrics orchestration.

``TrunkMetricsCalculator`` wires the engine together: it restricts inputs to the
analysis window, maps commits to runs, detects incidents, builds rollups and
rates everything. It never fetches, caches or retries; the same inputs always
produce the same report.
"""

from typing import Dict, Optional, Sequence

from trunk_metrics.utils.date_ranges import AnalysisWindow
from trunk_metrics.utils.logging import get_logger

from .deployment_mapping import RunTimeline, map_commits
from .incidents import calculate_mttr
from .ratings import OVERALL_METRICS, RatingEngine
from .records import Commit, Run
from .reports import TeamMetrics, TrunkMetricsReport, TrunkRatings
from .rollups import build_author_stats, build_daily_stats, build_weekly_trend, summarize_team

out = get_logger("trunk_metrics.models.metrics")


class TrunkMetricsCalculator:
    """Calculates trunk-based DORA metrics for one workflow over one window.

    Args:
        commits: Commits on the trunk branch; only those authored inside the
            window are analyzed
        runs: Runs of the deployment workflow; runs started inside the window
            are counted as deployments
        window: Analysis window
        mapping_runs: Runs for ``[start, end + lookahead)`` used to map commits;
            derived from ``runs`` when omitted
        recovery_runs: Runs for ``[start - lookback, end + lookahead)`` used for
            MTTR; derived from ``runs`` when omitted
        lookback_days: Days before the window searched for incident starts
        lookahead_days: Days after the window searched for runs and recoveries
    """

    def __init__(
        self,
        commits: Sequence[Commit],
        runs: Sequence[Run],
        window: AnalysisWindow,
        mapping_runs: Optional[Sequence[Run]] = None,
        recovery_runs: Optional[Sequence[Run]] = None,
        lookback_days: int = 7,
        lookahead_days: int = 7,
    ):
        if lookback_days < 0 or lookahead_days < 0:
            raise ValueError("lookback_days and lookahead_days must be non-negative")

        self.window = window
        self.lookback_days = lookback_days
        self.lookahead_days = lookahead_days

        self.commits = [c for c in commits if window.contains(c.authored_at)]
        self.runs = [r for r in runs if r.is_resolved and window.contains(r.started_at)]

        if mapping_runs is None:
            since, until = window.mapping_fetch_range(lookahead_days)
            mapping_runs = [r for r in runs if since <= r.started_at < until]
        if recovery_runs is None:
            since, until = window.recovery_fetch_range(lookback_days, lookahead_days)
            recovery_runs = [r for r in runs if since <= r.started_at < until]

        self.mapping_runs = list(mapping_runs)
        self.recovery_runs = list(recovery_runs)

    @property
    def workflow_name(self) -> str:
        runs = self.runs or self.recovery_runs
        return runs[0].workflow_name if runs else ""

    def analyze(self) -> TrunkMetricsReport:
        """Run the full analysis.

        Returns:
            TrunkMetricsReport; call ``to_dict()`` for a JSON-ready dict
        """
        window = self.window
        out.section(f"Trunk metrics: {window.description}")
        out.info(
            f"{len(self.commits)} commits, {len(self.runs)} runs in range "
            f"({len(self.mapping_runs)} for mapping, {len(self.recovery_runs)} for MTTR)",
            emoji="📊",
        )

        mapped = map_commits(self.commits, RunTimeline(self.mapping_runs))
        non_merge = [mc for mc in mapped if not mc.is_merge]
        merge_count = len(mapped) - len(non_merge)
        if merge_count:
            out.info(f"Excluding {merge_count} merge commits from rate metrics", indent=2)

        counts = self._result_counts(non_merge)
        out.info(
            f"Mapped {len(non_merge)} commits: {counts['success']} success, "
            f"{counts['failure']} failure, {counts['pending']} pending",
            emoji="🔗",
            indent=2,
        )

        mttr = calculate_mttr(self.recovery_runs, window)
        summary = summarize_team(mapped, self.runs, window)

        values = {
            "deployment_frequency": summary.deployment_frequency,
            "lead_time": summary.lead_time_hours,
            "cycle_time": summary.cycle_time_hours,
            "change_failure_rate": summary.change_failure_rate,
            "mttr": mttr.mttr_hours,
            "commit_frequency": summary.commit_frequency,
            "batch_size": summary.avg_batch_size,
            "time_to_deploy": summary.avg_pipeline_duration_minutes,
            "deploy_success_rate": summary.deploy_success_rate,
        }
        metric_values = {name: RatingEngine.create_metric_value(value, name) for name, value in values.items()}

        team_metrics = TeamMetrics(
            **metric_values,
            total_commits=len(non_merge),
            total_developers=len({mc.author for mc in non_merge}),
        )
        ratings = TrunkRatings(
            **{name: metric_values[name].rating for name in OVERALL_METRICS},
            overall=RatingEngine.overall_rating(metric_values[name].rating for name in OVERALL_METRICS),
        )

        out.success(
            f"Deploy frequency {summary.deployment_frequency:.2f}/day, "
            f"CFR {summary.change_failure_rate:.1f}%, MTTR {mttr.mttr_hours:.2f}h, "
            f"overall {ratings.overall.label}"
        )

        return TrunkMetricsReport(
            window=window,
            workflow_name=self.workflow_name,
            total_commits=len(mapped),
            merge_commits=merge_count,
            total_action_runs=len(self.runs),
            successful_commits=counts["success"],
            failed_commits=counts["failure"],
            pending_commits=counts["pending"],
            summary=summary,
            mttr=mttr,
            team_metrics=team_metrics,
            ratings=ratings,
            commits=non_merge,
            action_runs=list(self.runs),
            daily_stats=build_daily_stats(mapped, self.runs, window),
            weekly_trend=build_weekly_trend(mapped, self.runs, window),
            author_stats=build_author_stats(mapped, window),
        )

    @staticmethod
    def _result_counts(mapped) -> Dict[str, int]:
        counts = {"success": 0, "failure": 0, "pending": 0}
        for mc in mapped:
            counts[mc.deployment_result.value.lower()] += 1
        return counts

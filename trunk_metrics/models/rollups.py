"""Rollup aggregation: daily, weekly, per-author and team summaries.

Mapped commits and runs are loaded into DataFrames and grouped by day, by
7-day bucket or by author. Merge commits count toward the raw ``commits``
totals of daily and weekly rows but are excluded from every rate and average.
Deployment counts always come from the runs themselves, never from the commit
mapping.
"""

from datetime import timedelta
from typing import List, Optional, Sequence

import pandas as pd

from trunk_metrics.utils.date_ranges import AnalysisWindow

from .records import DeploymentResult, MappedCommit, Run, RunStatus
from .reports import AuthorStats, DailyStat, TeamSummary, WeeklyTrend

COMMIT_COLUMNS = [
    "mapped",
    "sha",
    "day",
    "author",
    "author_name",
    "is_merge",
    "result",
    "lead_time",
    "cycle_time",
    "time_to_deploy",
    "first_run_id",
    "batch_size",
    "lines_added",
    "lines_deleted",
]
RUN_COLUMNS = ["run_id", "day", "status", "duration"]
COUNT_COLUMNS = ["commits", "action_runs", "successful_runs", "failed_runs"]

SUCCESS = RunStatus.SUCCESS.value
FAILURE = RunStatus.FAILURE.value


def commits_frame(mapped_commits: Sequence[MappedCommit]) -> pd.DataFrame:
    """One row per mapped commit; ``day`` is the UTC authored date, durations in minutes"""
    df = pd.DataFrame(
        [
            {
                "mapped": mc,
                "sha": mc.commit.sha,
                "day": mc.commit.authored_at.date(),
                "author": mc.author,
                "author_name": mc.commit.author_name or mc.author,
                "is_merge": mc.is_merge,
                "result": mc.deployment_result.value,
                "lead_time": mc.lead_time_minutes,
                "cycle_time": mc.cycle_time_minutes,
                "time_to_deploy": mc.time_to_deploy_minutes,
                "first_run_id": mc.first_run.run_id if mc.first_run is not None else None,
                "batch_size": mc.commit.batch_size,
                "lines_added": mc.commit.lines_added,
                "lines_deleted": mc.commit.lines_deleted,
            }
            for mc in mapped_commits
        ],
        columns=COMMIT_COLUMNS,
    )
    df["day"] = pd.to_datetime(df["day"])
    df["is_merge"] = df["is_merge"].astype(bool)
    df[["lead_time", "cycle_time", "time_to_deploy", "first_run_id"]] = df[
        ["lead_time", "cycle_time", "time_to_deploy", "first_run_id"]
    ].astype("float64")
    df[["batch_size", "lines_added", "lines_deleted"]] = df[["batch_size", "lines_added", "lines_deleted"]].astype(
        "int64"
    )
    return df


def runs_frame(runs: Sequence[Run]) -> pd.DataFrame:
    """One row per run, placed on the UTC date it completed (else started)"""
    df = pd.DataFrame(
        [
            {
                "run_id": run.run_id,
                "day": run.bucket_time.date(),
                "status": run.status.value,
                "duration": run.duration_minutes,
            }
            for run in runs
        ],
        columns=RUN_COLUMNS,
    )
    df["day"] = pd.to_datetime(df["day"])
    df["duration"] = df["duration"].astype("float64")
    return df


def _value(value) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def _minutes_to_hours(value: Optional[float]) -> Optional[float]:
    return value / 60.0 if value is not None else None


def _percent(part: int, whole: int) -> float:
    return part / whole * 100.0 if whole else 0.0


def _bucket_stats(commits: pd.DataFrame, runs: pd.DataFrame, key: str) -> pd.DataFrame:
    """Commit/run counts and non-merge lead and cycle averages per ``key`` value"""
    non_merge = commits[~commits["is_merge"]]
    return pd.DataFrame(
        {
            "commits": commits.groupby(key).size(),
            "action_runs": runs.groupby(key).size(),
            "successful_runs": runs[runs["status"] == SUCCESS].groupby(key).size(),
            "failed_runs": runs[runs["status"] == FAILURE].groupby(key).size(),
            "avg_lead_time": non_merge.groupby(key)["lead_time"].mean(),
            "avg_cycle_time": non_merge.groupby(key)["cycle_time"].mean(),
        }
    )


def _fill_counts(stats: pd.DataFrame) -> pd.DataFrame:
    stats[COUNT_COLUMNS] = stats[COUNT_COLUMNS].fillna(0).astype("int64")
    return stats


def build_daily_stats(
    mapped_commits: Sequence[MappedCommit], runs: Sequence[Run], window: AnalysisWindow
) -> List[DailyStat]:
    """One row per calendar day of the window, empty days included.

    Args:
        mapped_commits: All mapped commits in range, merges included
        runs: Runs in range
        window: Analysis window

    Returns:
        Rows ordered by date
    """
    days = pd.date_range(window.start_date, window.end_date, freq="D")
    daily = _fill_counts(_bucket_stats(commits_frame(mapped_commits), runs_frame(runs), "day").reindex(days))

    return [
        DailyStat(
            date=day.date().isoformat(),
            commits=int(row["commits"]),
            action_runs=int(row["action_runs"]),
            successful_runs=int(row["successful_runs"]),
            failed_runs=int(row["failed_runs"]),
            avg_lead_time_minutes=_value(row["avg_lead_time"]),
            avg_cycle_time_minutes=_value(row["avg_cycle_time"]),
        )
        for day, row in daily.iterrows()
    ]


def _week_buckets(window: AnalysisWindow):
    """Consecutive 7-day (start, end) pairs from the window start, last one clipped."""
    start = window.start_date
    while start <= window.end_date:
        end = min(start + timedelta(days=6), window.end_date)
        yield start, end
        start = end + timedelta(days=1)


def _with_week(frame: pd.DataFrame, window: AnalysisWindow) -> pd.DataFrame:
    """Rows inside the window, tagged with their 0-based 7-day bucket"""
    offsets = (frame["day"] - pd.Timestamp(window.start_date)).dt.days
    inside = (offsets >= 0) & (offsets <= (window.end_date - window.start_date).days)
    return frame[inside].assign(week=offsets[inside] // 7)


def build_weekly_trend(
    mapped_commits: Sequence[MappedCommit], runs: Sequence[Run], window: AnalysisWindow
) -> List[WeeklyTrend]:
    """Weekly rows labelled W1, W2, ... with the ISO week of each bucket start."""
    buckets = list(_week_buckets(window))
    weekly = _bucket_stats(
        _with_week(commits_frame(mapped_commits), window), _with_week(runs_frame(runs), window), "week"
    )
    weekly = _fill_counts(weekly.reindex(range(len(buckets))))

    rows = []
    for index, (start, end) in enumerate(buckets):
        row = weekly.loc[index]
        successful = int(row["successful_runs"])
        failed = int(row["failed_runs"])
        days = max((end - start).days + 1, 1)
        iso_year, iso_week, _ = start.isocalendar()

        rows.append(
            WeeklyTrend(
                week=f"W{index + 1}",
                iso_week=f"{iso_year}-W{iso_week:02d}",
                start_date=start.isoformat(),
                end_date=end.isoformat(),
                commits=int(row["commits"]),
                deployments=successful + failed,
                successful_deploys=successful,
                failed_deploys=failed,
                avg_lead_time_hours=_minutes_to_hours(_value(row["avg_lead_time"])),
                avg_cycle_time_hours=_minutes_to_hours(_value(row["avg_cycle_time"])),
                deployment_frequency=successful / days,
                change_failure_rate=_percent(failed, successful + failed),
            )
        )
    return rows


def build_author_stats(mapped_commits: Sequence[MappedCommit], window: AnalysisWindow) -> List[AuthorStats]:
    """Per-author statistics over non-merge commits, busiest author first.

    Authors with equal commit counts keep the order in which they first appear.
    """
    df = commits_frame(mapped_commits)
    non_merge = df[~df["is_merge"]]
    if non_merge.empty:
        return []

    grouped = non_merge.groupby("author", sort=False)
    summary = grouped.agg(
        author_name=("author_name", "first"),
        total_commits=("sha", "count"),
        avg_lead_time=("lead_time", "mean"),
        avg_cycle_time=("cycle_time", "mean"),
        avg_time_to_deploy=("time_to_deploy", "mean"),
        avg_batch_size=("batch_size", "mean"),
        total_lines_added=("lines_added", "sum"),
        total_lines_deleted=("lines_deleted", "sum"),
    )
    results = (
        grouped["result"]
        .value_counts()
        .unstack(fill_value=0)
        .reindex(index=summary.index, columns=[r.value for r in DeploymentResult], fill_value=0)
    )
    deploys = (
        non_merge[non_merge["result"] == DeploymentResult.SUCCESS.value]
        .groupby("author")["first_run_id"]
        .nunique()
        .reindex(summary.index, fill_value=0)
    )
    commits_by_author = {author: list(group["mapped"]) for author, group in grouped}

    stats = []
    for author, row in summary.sort_values("total_commits", ascending=False, kind="stable").iterrows():
        successful = int(results.at[author, DeploymentResult.SUCCESS.value])
        failed = int(results.at[author, DeploymentResult.FAILURE.value])
        stats.append(
            AuthorStats(
                author=author,
                author_name=row["author_name"],
                total_commits=int(row["total_commits"]),
                successful_commits=successful,
                failed_commits=failed,
                pending_commits=int(results.at[author, DeploymentResult.PENDING.value]),
                commit_success_rate=_percent(successful, successful + failed),
                avg_lead_time_minutes=_value(row["avg_lead_time"]),
                avg_cycle_time_minutes=_value(row["avg_cycle_time"]),
                avg_time_to_deploy_minutes=_value(row["avg_time_to_deploy"]),
                avg_batch_size=_value(row["avg_batch_size"]) or 0.0,
                total_lines_added=int(row["total_lines_added"]),
                total_lines_deleted=int(row["total_lines_deleted"]),
                deployment_frequency=int(deploys[author]) / window.days_in_range,
                commits=commits_by_author[author],
            )
        )
    return stats


def summarize_team(
    mapped_commits: Sequence[MappedCommit], runs: Sequence[Run], window: AnalysisWindow
) -> TeamSummary:
    """Headline team scalars.

    Args:
        mapped_commits: Mapped commits in range (merge commits are skipped here)
        runs: Runs in range
        window: Analysis window

    Returns:
        TeamSummary with lead and cycle time in hours (0.0 when unavailable)
    """
    commits = commits_frame(mapped_commits)
    non_merge = commits[~commits["is_merge"]]
    run_df = runs_frame(runs)

    successful = int((run_df["status"] == SUCCESS).sum())
    failed = int((run_df["status"] == FAILURE).sum())
    resolved = successful + failed

    change_failure_rate = _percent(failed, resolved)
    lead_time = _value(non_merge["lead_time"].mean())
    cycle_time = _value(non_merge["cycle_time"].mean())
    pipeline = _value(run_df.loc[run_df["status"].isin([SUCCESS, FAILURE]), "duration"].mean())

    return TeamSummary(
        deployment_frequency=successful / window.days_in_range,
        lead_time_hours=lead_time / 60.0 if lead_time is not None else 0.0,
        cycle_time_hours=cycle_time / 60.0 if cycle_time is not None else 0.0,
        change_failure_rate=change_failure_rate,
        commit_frequency=len(non_merge) / window.days_in_range,
        avg_batch_size=_value(non_merge["batch_size"].mean()) or 0.0,
        avg_pipeline_duration_minutes=pipeline or 0.0,
        deploy_success_rate=100.0 - change_failure_rate if resolved else 0.0,
        successful_deploys=successful,
        failed_deploys=failed,
    )

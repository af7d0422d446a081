"""End-to-end trunk metrics analysis from raw GitHub payloads to the report dict"""

import json
from datetime import date

import pytest

from tests.fixtures.sample_data import completed_run, make_commit, make_run, raw_github_commit, raw_workflow_run, ts
from trunk_metrics.models.metrics import TrunkMetricsCalculator
from trunk_metrics.models.normalizer import normalize_commits, normalize_runs
from trunk_metrics.models.records import Rating
from trunk_metrics.utils.date_ranges import AnalysisWindow


@pytest.fixture
def report(sample_commits, sample_runs, two_week_window):
    return TrunkMetricsCalculator(sample_commits, sample_runs, two_week_window).analyze()


class TestReport:
    def test_counts(self, report):
        data = report.to_dict()["counts"]

        assert data["total_commits"] == 5
        assert data["merge_commits"] == 1
        assert data["total_action_runs"] == 4
        assert (data["successful_commits"], data["failed_commits"], data["pending_commits"]) == (3, 1, 0)
        assert (data["successful_deploys"], data["failed_deploys"]) == (3, 1)

    def test_commit_list_excludes_merges(self, report):
        assert [c["sha"] for c in report.to_dict()["commits"]] == ["c1", "c2", "c3", "c4"]

    def test_team_metrics_are_rated(self, report):
        team = report.to_dict()["team_metrics"]

        assert team["change_failure_rate"]["value"] == pytest.approx(25.0)
        assert team["change_failure_rate"]["rating"] == Rating.FAIR.value
        assert team["time_to_deploy"]["display_value"] == "10.0 min"
        assert team["total_commits"] == 4
        assert team["total_developers"] == 2

    def test_ratings_include_overall(self, report):
        ratings = report.to_dict()["ratings"]
        assert set(ratings) == {
            "deployment_frequency", "lead_time", "cycle_time", "change_failure_rate",
            "mttr", "commit_frequency", "batch_size", "time_to_deploy", "overall",
        }

    def test_mttr_detail(self, report):
        """Test the single F->S pair in the sample (102 at 12:10 -> 103 next day 10:10) is counted"""
        mttr = report.to_dict()["mttr"]

        assert mttr["incident_count"] == 1
        assert mttr["mttr_hours"] == pytest.approx(22.0)

    def test_report_is_json_serializable(self, report):
        json.dumps(report.to_dict())

    def test_deterministic(self, sample_commits, sample_runs, two_week_window):
        """Test identical inputs give identical reports"""
        first = TrunkMetricsCalculator(sample_commits, sample_runs, two_week_window).analyze().to_dict()
        second = TrunkMetricsCalculator(list(sample_commits), list(sample_runs), two_week_window).analyze().to_dict()
        assert first == second


class TestMergeExclusion:
    def test_merges_count_in_daily_totals_only(self, report):
        data = report.to_dict()

        assert data["daily_stats"][0]["commits"] == 3
        assert data["weekly_trend"][0]["commits"] == 5
        # rate uses the 4 non-merge commits over 13 days
        assert data["commit_frequency"] == pytest.approx(4 / 13)
        assert data["avg_batch_size"] == pytest.approx(45.0)


class TestDeploymentFrequency:
    def test_independent_of_commits(self, sample_runs, two_week_window):
        """Test removing every commit leaves deployment frequency unchanged"""
        with_commits = TrunkMetricsCalculator([make_commit("x", ts(0, 1))], sample_runs, two_week_window).analyze()
        without = TrunkMetricsCalculator([], sample_runs, two_week_window).analyze()

        assert with_commits.summary.deployment_frequency == without.summary.deployment_frequency == pytest.approx(3 / 13)

    def test_runs_outside_window_not_counted(self, two_week_window):
        runs = [make_run(1, ts(-1, 10)), make_run(2, ts(0, 10)), make_run(3, ts(14, 10))]
        report = TrunkMetricsCalculator([], runs, two_week_window).analyze()
        assert report.total_action_runs == 1


class TestWidenedRuns:
    def test_commit_on_last_day_maps_to_lookahead_run(self, two_week_window):
        """Test a commit late on the final day is deployed by a run after the window"""
        commit = make_commit("late", ts(13, 23))
        runs = [make_run(1, ts(14, 1))]
        report = TrunkMetricsCalculator([commit], runs, two_week_window).analyze()

        assert report.commits[0].first_run.run_id == 1
        assert report.total_action_runs == 0

    def test_lookahead_zero_leaves_commit_pending(self, two_week_window):
        commit = make_commit("late", ts(13, 23))
        runs = [make_run(1, ts(14, 1))]
        report = TrunkMetricsCalculator([commit], runs, two_week_window, lookahead_days=0).analyze()
        assert report.pending_commits == 1

    def test_lookback_failure_counts_toward_mttr(self, two_week_window):
        runs = [completed_run(1, ts(-1, 22), "FAILURE"), completed_run(2, ts(0, 2), "SUCCESS")]
        report = TrunkMetricsCalculator([], runs, two_week_window).analyze()

        assert report.mttr.incident_count == 1
        assert report.mttr.mttr_hours == pytest.approx(4.0)

    def test_explicit_run_sets(self, two_week_window):
        """Test caller-supplied mapping and recovery runs are used as given"""
        commit = make_commit("a", ts(0, 9))
        in_range = [make_run(1, ts(0, 10))]
        report = TrunkMetricsCalculator([commit], in_range, two_week_window, mapping_runs=[], recovery_runs=[]).analyze()

        assert report.pending_commits == 1
        assert report.mttr.incident_count == 0
        assert report.summary.successful_deploys == 1

    def test_negative_lookahead_rejected(self, two_week_window):
        with pytest.raises(ValueError):
            TrunkMetricsCalculator([], [], two_week_window, lookahead_days=-1)


class TestFromRawPayloads:
    def test_raw_github_records(self):
        """Test normalizing raw REST payloads and analyzing them end to end"""
        window = AnalysisWindow(date(2025, 1, 6), date(2025, 1, 7))
        commits = normalize_commits(
            [
                raw_github_commit("a1", "2025-01-06T09:00:00Z"),
                raw_github_commit("a2", "2025-01-06T09:30:00Z", login="bob", parents=2),
                raw_github_commit("bad", "garbage"),
            ]
        )
        runs = normalize_runs(
            [
                raw_workflow_run(1, "2025-01-06T10:00:00Z", "2025-01-06T10:05:00Z", conclusion="timed_out"),
                raw_workflow_run(2, "2025-01-06T11:00:00Z", "2025-01-06T11:10:00Z"),
                raw_workflow_run(3, "2025-01-06T11:00:00Z", "2025-01-06T11:01:00Z", name="Lint"),
                raw_workflow_run(4, "2025-01-06T12:00:00Z", "2025-01-06T12:10:00Z", conclusion="skipped"),
            ],
            "CI",
        )

        data = TrunkMetricsCalculator(commits, runs, window).analyze().to_dict()

        assert data["counts"]["total_commits"] == 2
        assert data["counts"]["merge_commits"] == 1
        assert data["counts"]["total_action_runs"] == 2
        assert data["commits"][0]["deployment_result"] == "FAILURE"
        # 09:00 -> 11:10
        assert data["commits"][0]["lead_time_minutes"] == pytest.approx(130.0)
        assert data["change_failure_rate"] == pytest.approx(50.0)
        assert data["mean_time_to_recovery_hours"] == pytest.approx(65 / 60)
        assert data["workflow_name"] == "CI"

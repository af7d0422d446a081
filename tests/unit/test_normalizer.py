"""Tests for event normalization of raw GitHub payloads"""

from datetime import datetime, timedelta, timezone

import pytest

from tests.fixtures.sample_data import raw_github_commit, raw_pull_request, raw_workflow_run
from trunk_metrics.models.normalizer import (
    classify_conclusion,
    dedupe_runs,
    normalize_commit,
    normalize_commits,
    normalize_pull_request,
    normalize_pull_requests,
    normalize_run,
    normalize_runs,
    parse_timestamp,
)
from trunk_metrics.models.records import RunStatus


class TestParseTimestamp:
    def test_parses_zulu_timestamp_as_utc(self):
        """Test GitHub's Z-suffixed timestamps become aware UTC datetimes"""
        assert parse_timestamp("2025-01-06T09:30:00Z") == datetime(2025, 1, 6, 9, 30, tzinfo=timezone.utc)

    def test_converts_offsets_to_utc(self):
        """Test offset timestamps are normalized to UTC"""
        assert parse_timestamp("2025-01-06T11:30:00+02:00") == datetime(2025, 1, 6, 9, 30, tzinfo=timezone.utc)

    def test_returns_none_for_garbage(self):
        """Test unparsable and missing values return None"""
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None

    def test_naive_datetime_treated_as_utc(self):
        """Test naive datetimes get UTC attached"""
        assert parse_timestamp(datetime(2025, 1, 6)).tzinfo == timezone.utc

    @pytest.mark.parametrize("value", ["now", "today", "1/2/2025", "Jan 5 2025", "2025-01-06 tomorrow"])
    def test_rejects_non_iso_text(self, value):
        """Test relative words and locale formats are dropped instead of parsed"""
        assert parse_timestamp(value) is None

    def test_same_input_parses_identically(self):
        assert parse_timestamp("2025-01-06T09:30:00.250Z") == parse_timestamp("2025-01-06T09:30:00.250Z")

    def test_aware_datetime_converted_to_utc(self):
        """Test an aware datetime in another zone keeps its instant and its UTC date"""
        tokyo = timezone(timedelta(hours=9))
        parsed = parse_timestamp(datetime(2025, 1, 7, 2, 0, tzinfo=tokyo))

        assert parsed.tzinfo == timezone.utc
        assert parsed == datetime(2025, 1, 6, 17, 0, tzinfo=timezone.utc)
        assert parsed.date().isoformat() == "2025-01-06"


class TestClassifyConclusion:
    def test_success(self):
        assert classify_conclusion("success") == RunStatus.SUCCESS

    def test_failure_family(self):
        """Test failure, timed_out and cancelled all count as FAILURE"""
        for conclusion in ("failure", "timed_out", "cancelled"):
            assert classify_conclusion(conclusion) == RunStatus.FAILURE

    def test_everything_else_unknown(self):
        for conclusion in ("skipped", "neutral", "action_required", None):
            assert classify_conclusion(conclusion) == RunStatus.UNKNOWN


class TestNormalizeCommit:
    def test_extracts_fields(self):
        """Test login, name, first message line and merge flag are extracted"""
        commit = normalize_commit(raw_github_commit("abcdef123", "2025-01-06T09:00:00Z", parents=2))

        assert commit.sha == "abcdef123"
        assert commit.short_sha == "abcdef1"
        assert commit.author == "alice"
        assert commit.author_name == "Alice Developer"
        assert commit.message == "Add feature"
        assert commit.is_merge is True

    def test_missing_login_falls_back_to_unknown(self):
        """Test commits without a linked GitHub user get author 'unknown'"""
        commit = normalize_commit(raw_github_commit("abc", "2025-01-06T09:00:00Z", login=None))
        assert commit.author == "unknown"

    def test_reads_stats_when_present(self):
        """Test stats and changed_files added by enrichment are read"""
        raw = raw_github_commit("abc", "2025-01-06T09:00:00Z")
        raw["stats"] = {"additions": 12, "deletions": 3}
        raw["changed_files"] = 4

        commit = normalize_commit(raw)

        assert commit.lines_added == 12
        assert commit.lines_deleted == 3
        assert commit.batch_size == 15
        assert commit.files_changed == 4

    def test_unparsable_date_dropped(self):
        assert normalize_commit(raw_github_commit("abc", "yesterday")) is None

    def test_batch_keeps_good_records(self):
        """Test one bad commit does not fail the batch"""
        raws = [
            raw_github_commit("good1", "2025-01-06T09:00:00Z"),
            raw_github_commit("bad", "garbage"),
            raw_github_commit("good2", "2025-01-06T10:00:00Z"),
        ]
        assert [c.sha for c in normalize_commits(raws)] == ["good1", "good2"]

    def test_wrong_field_types_dropped_not_raised(self):
        """Test commits with mistyped fields are dropped while the rest of the batch survives"""
        mistyped_commit = {"sha": "b" * 40, "commit": "oops"}
        int_parents = raw_github_commit("intparents", "2025-01-06T09:00:00Z")
        int_parents["parents"] = 2
        raws = [
            raw_github_commit("good1", "2025-01-06T09:00:00Z"),
            mistyped_commit,
            "not-an-object",
            int_parents,
        ]

        commits = normalize_commits(raws)

        assert [c.sha for c in commits] == ["good1", "intparents"]
        assert commits[1].is_merge is False

    def test_relative_date_dropped(self):
        assert normalize_commit(raw_github_commit("abc", "now")) is None


class TestNormalizeRun:
    def test_workflow_name_match_is_case_insensitive(self):
        raw = raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", name="ci")
        assert normalize_run(raw, "CI") is not None

    def test_other_workflows_dropped(self):
        raw = raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", name="Lint")
        assert normalize_run(raw, "CI") is None

    def test_unknown_conclusion_dropped(self):
        raw = raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", conclusion="skipped")
        assert normalize_run(raw, "CI") is None

    def test_started_at_falls_back_to_created_at(self):
        """Test missing run_started_at uses created_at"""
        raw = raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", run_started_at=None)
        run = normalize_run(raw, "CI")
        assert run.started_at == datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def test_completed_at_falls_back_to_created_at(self):
        """Test missing updated_at uses created_at"""
        raw = raw_workflow_run(1, "2025-01-06T09:00:00Z", None, created_at="2025-01-06T08:59:00Z")
        run = normalize_run(raw, "CI")
        assert run.completed_at == datetime(2025, 1, 6, 8, 59, tzinfo=timezone.utc)

    def test_duration(self):
        run = normalize_run(raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:12:30Z"), "CI")
        assert run.duration_minutes == 12.5

    def test_runs_sorted_by_start(self):
        raws = [
            raw_workflow_run(2, "2025-01-06T10:00:00Z", "2025-01-06T10:10:00Z"),
            raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", conclusion="failure"),
        ]
        runs = normalize_runs(raws, "CI")
        assert [r.run_id for r in runs] == [1, 2]
        assert runs[0].status == RunStatus.FAILURE

    def test_dedupe_keeps_first_occurrence(self):
        raw = raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z")
        runs = normalize_runs([raw, dict(raw)], "CI")
        assert len(dedupe_runs(runs)) == 1

    def test_wrong_field_types_dropped_not_raised(self):
        """Test runs with a non-string name or a non-object entry are dropped from the batch"""
        good = raw_workflow_run(1, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z")
        numeric_name = raw_workflow_run(2, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", name=5)
        list_conclusion = raw_workflow_run(3, "2025-01-06T09:00:00Z", "2025-01-06T09:10:00Z", conclusion=["success"])

        runs = normalize_runs([good, numeric_name, list_conclusion, None], "CI")

        assert [r.run_id for r in runs] == [1]


class TestNormalizePullRequest:
    def test_camel_case_keys(self):
        pr = normalize_pull_request(raw_pull_request(7, author="bob"))

        assert pr.number == 7
        assert pr.author == "bob"
        assert pr.merged_at == datetime(2025, 1, 7, 9, tzinfo=timezone.utc)
        assert pr.first_approval_at == datetime(2025, 1, 6, 12, tzinfo=timezone.utc)
        assert pr.size == 100

    def test_snake_case_keys(self):
        pr = normalize_pull_request(
            {"number": 3, "author": "carol", "created_at": "2025-01-06T09:00:00Z", "merged_at": None}
        )
        assert pr.author == "carol"
        assert pr.merged_at is None
        assert pr.first_review_at is None

    def test_missing_created_at_dropped(self):
        assert normalize_pull_request({"number": 3, "author": "carol"}) is None

    def test_non_string_author_falls_back_to_unknown(self):
        pr = normalize_pull_request({"number": 3, "author": 42, "created_at": "2025-01-06T09:00:00Z"})
        assert pr.author == "unknown"

    def test_non_object_dropped(self):
        assert normalize_pull_requests(["oops", {"number": 4, "created_at": "2025-01-06T09:00:00Z"}])[0].number == 4

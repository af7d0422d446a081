"""Tests for the analyze_trunk command-line runner"""

import json
from unittest.mock import MagicMock, patch

import pytest

import analyze_trunk
from tests.fixtures.sample_data import make_commit, make_run, ts
from trunk_metrics.collectors.github_actions_collector import CollectedData, GitHubAPIError
from trunk_metrics.utils.date_ranges import AnalysisWindow


@pytest.fixture(autouse=True)
def no_log_files():
    with patch("analyze_trunk.setup_logging"):
        yield


@pytest.fixture
def config():
    return MagicMock(
        github_token="t", github_owner="acme", github_repo="service", github_branch="main",
        workflow_name="CI", github_api_url="https://api.github.com",
        dora_config={"lookback_days": 7, "lookahead_days": 7},
        logging_config={"level": "DEBUG", "file": "logs/custom.log", "config_file": "config/logging.yaml"},
    )


class TestArguments:
    def test_log_level_flags(self):
        parser = analyze_trunk.build_parser()

        assert analyze_trunk.resolve_log_level(parser.parse_args(["-q"])) == "WARNING"
        assert analyze_trunk.resolve_log_level(parser.parse_args(["-vv"])) == "DEBUG"
        assert analyze_trunk.resolve_log_level(parser.parse_args([])) == "INFO"

    def test_logging_settings_come_from_config(self, config):
        """Test the config's logging section sets level and file when no flags are given"""
        settings = analyze_trunk.logging_settings(analyze_trunk.build_parser().parse_args([]), config)

        assert settings["log_level"] == "DEBUG"
        assert settings["log_file"] == "logs/custom.log"
        assert settings["config_file"] == "config/logging.yaml"

    def test_logging_flags_override_config(self, config):
        args = analyze_trunk.build_parser().parse_args(["-q", "--log-file", "other.log"])
        settings = analyze_trunk.logging_settings(args, config)

        assert settings["log_level"] == "WARNING"
        assert settings["log_file"] == "other.log"
        assert settings["quiet"] is True

    def test_main_passes_config_logging_to_setup(self, config):
        with patch("analyze_trunk.Config", return_value=config), \
                patch("analyze_trunk.setup_logging") as setup:
            analyze_trunk.main(["--date-range", "Q9-2025"])

        assert setup.call_args.kwargs["log_level"] == "DEBUG"
        assert setup.call_args.kwargs["log_file"] == "logs/custom.log"

    def test_invalid_date_range_exits_1(self):
        assert analyze_trunk.main(["--date-range", "Q9-2025"]) == 1

    def test_negative_lookback_exits_1(self, config):
        with patch("analyze_trunk.Config", return_value=config):
            assert analyze_trunk.main(["--lookback-days", "-2"]) == 1


class TestRun:
    def test_writes_report(self, config, tmp_path):
        window = AnalysisWindow.from_strings("2025-01-06", "2025-01-12")
        data = CollectedData(window=window, commits=[make_commit("a", ts(0, 9))], runs=[make_run(1, ts(0, 10))])
        output = tmp_path / "out" / "report.json"

        with patch("analyze_trunk.Config", return_value=config), \
                patch("analyze_trunk.GitHubActionsCollector") as collector_cls:
            collector_cls.return_value.collect.return_value = data
            code = analyze_trunk.main(
                ["--date-range", "2025-01-06:2025-01-12", "--workflow", "Deploy", "--lookahead-days", "1",
                 "-o", str(output)]
            )

        assert code == 0
        report = json.loads(output.read_text())
        assert report["counts"]["successful_commits"] == 1
        assert collector_cls.call_args.kwargs["workflow_name"] == "Deploy"
        assert collector_cls.return_value.collect.call_args.kwargs == {"lookback_days": 7, "lookahead_days": 1}

    def test_collection_failure_exits_1(self, config):
        with patch("analyze_trunk.Config", return_value=config), \
                patch("analyze_trunk.GitHubActionsCollector") as collector_cls:
            collector_cls.return_value.collect.side_effect = GitHubAPIError("Bad credentials", 401)
            assert analyze_trunk.main(["--date-range", "30d"]) == 1

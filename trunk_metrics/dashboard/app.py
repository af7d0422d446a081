"""JSON API over the trunk metrics engine"""

from flask import Flask, jsonify, request

from trunk_metrics.collectors.github_actions_collector import GitHubActionsCollector, GitHubAPIError
from trunk_metrics.config import Config
from trunk_metrics.models.metrics import TrunkMetricsCalculator
from trunk_metrics.models.normalizer import dedupe_runs, normalize_commits, normalize_pull_requests, normalize_runs
from trunk_metrics.models.pr_lifecycle import PRLifecycleCalculator
from trunk_metrics.utils.date_ranges import AnalysisWindow, parse_date_range
from trunk_metrics.utils.logging import get_logger

DEFAULT_DATE_RANGE = "90d"

app = Flask(__name__)
out = get_logger("trunk_metrics.dashboard")


class RequestError(ValueError):
    """Invalid or incomplete request body"""


def get_config():
    """Load configuration, or None when no config file exists"""
    try:
        return Config()
    except FileNotFoundError:
        return None


def _body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise RequestError("Request body must be a JSON object")
    return body


def _window_from(body):
    """Window from ``start_date``/``end_date`` or a ``date_range`` spec (default 90d)"""
    if body.get("start_date") or body.get("end_date"):
        if not (body.get("start_date") and body.get("end_date")):
            raise RequestError("start_date and end_date must be given together")
        return AnalysisWindow.from_strings(body["start_date"], body["end_date"])
    return parse_date_range(body.get("date_range") or DEFAULT_DATE_RANGE)


def _records(body, key):
    records = body.get(key) or []
    if not isinstance(records, list):
        raise RequestError(f"{key} must be a list")
    return records


def _days(body, key, default):
    value = body.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise RequestError(f"{key} must be a non-negative integer")
    return value


def _dora_defaults(config):
    if config is None:
        return {"lookback_days": 7, "lookahead_days": 7}
    return config.dora_config


def _github_settings(body, config):
    """Resolve owner/repo/branch/workflow/token from the body, then the config file"""

    def pick(key, config_attr, default=None):
        if body.get(key):
            return body[key]
        if config is not None:
            return getattr(config, config_attr) or default
        return default

    settings = {
        "token": pick("token", "github_token"),
        "owner": pick("owner", "github_owner"),
        "repo": pick("repo", "github_repo"),
        "branch": pick("branch", "github_branch", "main"),
        "workflow_name": pick("workflow_name", "workflow_name"),
        "api_url": pick("api_url", "github_api_url", "https://api.github.com"),
    }
    missing = [k for k in ("token", "owner", "repo", "workflow_name") if not settings[k]]
    if missing:
        raise RequestError(f"Missing required fields: {', '.join(missing)}")
    return settings


@app.errorhandler(ValueError)
def handle_value_error(e):
    # DateRangeError and RequestError are both ValueErrors
    out.warning(f"Rejected request: {e}")
    return jsonify({"error": str(e)}), 400


@app.errorhandler(GitHubAPIError)
def handle_github_error(e):
    out.error(f"GitHub request failed: {e}")
    return jsonify({"error": str(e), "status_code": e.status_code}), 502


@app.route("/health")
def health():
    return jsonify({"status": "ok"})


@app.route("/api/trunk-metrics", methods=["POST"])
def api_trunk_metrics():
    """Collect from GitHub and analyze"""
    body = _body()
    config = get_config()
    window = _window_from(body)
    defaults = _dora_defaults(config)
    lookback = _days(body, "lookback_days", defaults["lookback_days"])
    lookahead = _days(body, "lookahead_days", defaults["lookahead_days"])

    collector = GitHubActionsCollector(**_github_settings(body, config))
    data = collector.collect(window, lookback_days=lookback, lookahead_days=lookahead)

    report = TrunkMetricsCalculator(
        data.commits, data.runs, window, lookback_days=lookback, lookahead_days=lookahead
    ).analyze()
    return jsonify(report.to_dict())


@app.route("/api/trunk-metrics/analyze", methods=["POST"])
def api_trunk_metrics_analyze():
    """Analyze caller-supplied raw GitHub commits and workflow runs"""
    body = _body()
    workflow_name = body.get("workflow_name")
    if not workflow_name:
        raise RequestError("Missing required fields: workflow_name")
    if not isinstance(workflow_name, str):
        raise RequestError("workflow_name must be a string")

    window = _window_from(body)
    lookback = _days(body, "lookback_days", 7)
    lookahead = _days(body, "lookahead_days", 7)

    commits = normalize_commits(_records(body, "commits"))
    runs = dedupe_runs(normalize_runs(_records(body, "runs"), workflow_name))

    report = TrunkMetricsCalculator(commits, runs, window, lookback_days=lookback, lookahead_days=lookahead).analyze()
    return jsonify(report.to_dict())


@app.route("/api/pr-metrics/analyze", methods=["POST"])
def api_pr_metrics_analyze():
    """PR lifecycle metrics for caller-supplied pull requests"""
    body = _body()
    window = _window_from(body)
    pull_requests = normalize_pull_requests(_records(body, "pull_requests"))
    return jsonify(PRLifecycleCalculator(pull_requests, window).analyze().to_dict())


@app.route("/api/workflows")
def api_workflows():
    """List workflows of ``owner``/``repo`` (query string, falling back to config)"""
    config = get_config()
    params = request.args.to_dict()
    params.setdefault("workflow_name", "*")
    settings = _github_settings(params, config)
    collector = GitHubActionsCollector(**settings)
    return jsonify({"workflows": collector.list_workflows()})


def main():
    config = get_config()
    dashboard_config = config.dashboard_config if config else {"port": 5001, "debug": False}

    app.run(
        debug=dashboard_config.get("debug", False),
        port=dashboard_config.get("port", 5001),
        host="0.0.0.0",
    )


if __name__ == "__main__":
    main()

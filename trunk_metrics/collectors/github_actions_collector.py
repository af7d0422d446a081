"""
GitHub Actions Collector - commits and workflow runs for trunk metrics

Fetches trunk commits and workflow runs over REST, and enriches commit line
stats through GraphQL in aliased batches (one query per 50 commits instead of
one REST call per commit).

The collector honours the widened-window contract of the metrics engine:
commits are fetched for the analysis window only, runs for
``[start - lookback, end + lookahead]`` so late deployments and incidents that
span the window boundary are visible.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import requests

from trunk_metrics.models.normalizer import dedupe_runs, normalize_commits, normalize_runs
from trunk_metrics.models.records import Commit, Run
from trunk_metrics.utils.date_ranges import AnalysisWindow, format_date_for_github
from trunk_metrics.utils.logging import get_logger

PER_PAGE = 100
MAX_PAGES = 20
STATS_BATCH_SIZE = 50
TRANSIENT_STATUS_CODES = (429, 502, 503, 504)


class GitHubAPIError(Exception):
    """Raised when GitHub returns a permanent error or retries are exhausted"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CollectedData:
    """Normalized records returned by ``GitHubActionsCollector.collect``"""

    window: AnalysisWindow
    commits: List[Commit]
    runs: List[Run]


class GitHubActionsCollector:
    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        workflow_name: str,
        branch: str = "main",
        api_url: str = "https://api.github.com",
        max_retries: int = 3,
        timeout: int = 30,
    ):
        """Initialize GitHub Actions collector

        Args:
            token: GitHub personal access token
            owner: Repository owner (user or organization)
            repo: Repository name
            workflow_name: Workflow whose runs count as deployments
            branch: Trunk branch (default: main)
            api_url: REST API root; GraphQL is served at ``{api_url}/graphql``
            max_retries: Attempts per request for transient errors
            timeout: Per-request timeout in seconds
        """
        self.owner = owner
        self.repo = repo
        self.workflow_name = workflow_name
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.graphql_url = f"{self.api_url}/graphql"
        self.max_retries = max_retries
        self.timeout = timeout

        self.out = get_logger("trunk_metrics.collectors.github")

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

        adapter = requests.adapters.HTTPAdapter(max_retries=0)  # retries handled in _request
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    @property
    def repo_path(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}"

    def _request(self, method: str, url: str, **kwargs) -> Any:
        """Send a request with retry logic for transient errors and return the JSON body

        Raises:
            GitHubAPIError: On permanent errors or when retries are exhausted
        """
        for attempt in range(self.max_retries):
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)

                # Transient errors - retry with exponential backoff
                if response.status_code in TRANSIENT_STATUS_CODES:
                    if attempt < self.max_retries - 1:
                        sleep_time = 2**attempt  # 1s, 2s, 4s
                        self.out.warning(
                            f"{response.status_code} error, retrying in {sleep_time}s... "
                            f"(attempt {attempt+1}/{self.max_retries})",
                            indent=4,
                        )
                        time.sleep(sleep_time)
                        continue
                    raise GitHubAPIError(
                        f"Max retries ({self.max_retries}) exceeded: {response.status_code}", response.status_code
                    )

                # Permanent errors - don't retry
                if response.status_code >= 400:
                    raise GitHubAPIError(
                        f"GitHub request failed: {response.status_code} - {response.text[:200]}", response.status_code
                    )

                return response.json()

            except requests.exceptions.Timeout:
                if attempt < self.max_retries - 1:
                    self.out.warning(f"Timeout, retrying... (attempt {attempt+1}/{self.max_retries})", indent=4)
                    time.sleep(2**attempt)
                    continue
                raise GitHubAPIError("Request timeout after max retries")

            except requests.exceptions.ConnectionError:
                if attempt < self.max_retries - 1:
                    self.out.warning(f"Connection error, retrying... (attempt {attempt+1}/{self.max_retries})", indent=4)
                    time.sleep(2**attempt)
                    continue
                raise GitHubAPIError("Connection error after max retries")

        raise GitHubAPIError("Request failed after max retries")

    def fetch_commits(self, since: datetime, until: datetime) -> List[Dict]:
        """Fetch raw commit objects on the trunk branch, newest first

        Args:
            since: Inclusive lower bound
            until: Upper bound

        Returns:
            Raw GitHub commit dicts with ``stats`` and ``changed_files`` filled in
        """
        commits: List[Dict] = []
        for page in range(1, MAX_PAGES + 1):
            batch = self._request(
                "GET",
                f"{self.repo_path}/commits",
                params={
                    "sha": self.branch,
                    "since": format_date_for_github(since),
                    "until": format_date_for_github(until),
                    "per_page": PER_PAGE,
                    "page": page,
                },
            )
            if not batch:
                break
            commits.extend(batch)
            if len(batch) < PER_PAGE:
                break

        self.out.info(f"Fetched {len(commits)} commits on {self.branch}", emoji="📝", indent=2)
        return self.enrich_commit_stats(commits)

    def enrich_commit_stats(self, commits: List[Dict]) -> List[Dict]:
        """Fill additions, deletions and changed files through aliased GraphQL queries

        A failed batch leaves its commits at zero and logs a warning.
        """
        for start in range(0, len(commits), STATS_BATCH_SIZE):
            batch = commits[start : start + STATS_BATCH_SIZE]
            aliases = "\n".join(
                f'c{i}: object(oid: "{c["sha"]}") {{ ... on Commit {{ additions deletions changedFilesIfAvailable }} }}'
                for i, c in enumerate(batch)
            )
            query = f'query {{ repository(owner: "{self.owner}", name: "{self.repo}") {{ {aliases} }} }}'

            try:
                result = self._request("POST", self.graphql_url, json={"query": query})
                if result.get("errors"):
                    raise GitHubAPIError(f"GraphQL errors: {result['errors']}")
                repository = (result.get("data") or {}).get("repository") or {}
            except GitHubAPIError as e:
                self.out.warning(f"Commit stats enrichment failed for batch {start // STATS_BATCH_SIZE}: {e}", indent=4)
                continue

            for i, commit in enumerate(batch):
                stats = repository.get(f"c{i}") or {}
                commit["stats"] = {"additions": stats.get("additions") or 0, "deletions": stats.get("deletions") or 0}
                commit["changed_files"] = stats.get("changedFilesIfAvailable") or 0

        return commits

    def fetch_workflow_runs(self, since: datetime, until: datetime) -> List[Dict]:
        """Fetch raw completed runs on the trunk branch created between ``since`` and ``until``

        Returns:
            Raw run dicts; filtering by workflow name happens during normalization
        """
        created = f"{since.date().isoformat()}..{until.date().isoformat()}"
        runs: List[Dict] = []
        for page in range(1, MAX_PAGES + 1):
            body = self._request(
                "GET",
                f"{self.repo_path}/actions/runs",
                params={
                    "branch": self.branch,
                    "status": "completed",
                    "created": created,
                    "per_page": PER_PAGE,
                    "page": page,
                },
            )
            batch = body.get("workflow_runs") or []
            if not batch:
                break
            runs.extend(batch)
            if len(batch) < PER_PAGE:
                break

        self.out.info(f"Fetched {len(runs)} completed runs ({created})", emoji="⚙️", indent=2)
        return runs

    def list_workflows(self) -> List[Dict[str, str]]:
        """List the repository's workflows as ``{"name", "state", "path"}`` dicts"""
        body = self._request("GET", f"{self.repo_path}/actions/workflows", params={"per_page": PER_PAGE})
        workflows = []
        for wf in body.get("workflows") or []:
            if not wf.get("name"):
                continue
            workflows.append({"name": wf["name"], "state": wf.get("state") or "unknown", "path": wf.get("path") or ""})
        return workflows

    def collect(self, window: AnalysisWindow, lookback_days: int = 7, lookahead_days: int = 7) -> CollectedData:
        """Collect and normalize everything one analysis needs

        Args:
            window: Analysis window
            lookback_days: Days before the window to fetch runs for MTTR
            lookahead_days: Days after the window to fetch runs for mapping and MTTR

        Returns:
            CollectedData with window commits and one widened run superset
        """
        self.out.section(f"Collecting {self.owner}/{self.repo} ({self.workflow_name}) for {window.description}")

        raw_commits = self.fetch_commits(window.start_instant, window.end_instant - timedelta(seconds=1))
        since, until = window.recovery_fetch_range(lookback_days, lookahead_days)
        raw_runs = self.fetch_workflow_runs(since, until)

        commits = normalize_commits(raw_commits)
        runs = dedupe_runs(normalize_runs(raw_runs, self.workflow_name))
        self.out.success(f"Collected {len(commits)} commits and {len(runs)} '{self.workflow_name}' runs")

        return CollectedData(window=window, commits=commits, runs=runs)

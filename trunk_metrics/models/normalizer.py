"""Event normalization: raw GitHub commit and workflow-run payloads to records.

Anything that cannot be normalized (unparsable timestamp, missing id, a field of
the wrong type, a run of another workflow or with an unrecognized conclusion)
is dropped on its own; a single bad record never fails the batch.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from trunk_metrics.utils.logging import get_logger

from .records import Commit, PullRequest, Run, RunStatus

out = get_logger("trunk_metrics.models.normalizer")

FAILURE_CONCLUSIONS = frozenset({"failure", "timed_out", "cancelled"})

# Date, optional time with optional fraction, optional Z or numeric offset
ISO_8601 = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?(Z|[+-]\d{2}(:?\d{2})?)?$")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Returns None for missing input and for anything that is not ISO-8601,
    including relative words like "now". Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not ISO_8601.match(value.strip()):
        return None

    parsed = pd.to_datetime(value.strip(), utc=True, format="ISO8601", errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def classify_conclusion(conclusion: Optional[str]) -> RunStatus:
    if not isinstance(conclusion, str):
        return RunStatus.UNKNOWN
    if conclusion == "success":
        return RunStatus.SUCCESS
    if conclusion in FAILURE_CONCLUSIONS:
        return RunStatus.FAILURE
    return RunStatus.UNKNOWN


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def normalize_commit(raw: Dict[str, Any]) -> Optional[Commit]:
    """Build a Commit from a GitHub REST commit object.

    Expected keys: ``sha``, ``commit.author.{name,date}``, ``author.login``,
    ``parents``; ``stats.{additions,deletions}`` and ``files`` when present.
    Nested blocks of the wrong type are treated as missing.
    """
    if not isinstance(raw, dict):
        out.debug(f"Dropping commit: expected an object, got {type(raw).__name__}")
        return None

    sha = raw.get("sha")
    if not sha or not isinstance(sha, str):
        return None

    commit_data = raw.get("commit")
    if not isinstance(commit_data, dict):
        out.debug(f"Dropping commit {sha[:7]}: missing commit block")
        return None
    author_block = _dict(commit_data.get("author"))
    top_author = _dict(raw.get("author"))

    authored_at = parse_timestamp(author_block.get("date"))
    if authored_at is None:
        out.debug(f"Dropping commit {sha[:7]}: unparsable author date {author_block.get('date')!r}")
        return None

    login = _str(top_author.get("login")) or "unknown"
    message = _str(commit_data.get("message")).splitlines()
    stats = _dict(raw.get("stats"))

    return Commit(
        sha=sha,
        authored_at=authored_at,
        author=login,
        author_name=_str(author_block.get("name")) or login,
        message=message[0] if message else "",
        is_merge=len(_list(raw.get("parents"))) > 1,
        lines_added=_int(stats.get("additions")),
        lines_deleted=_int(stats.get("deletions")),
        files_changed=len(_list(raw.get("files"))) or _int(raw.get("changed_files")),
    )


def normalize_commits(raws: Iterable[Dict[str, Any]]) -> List[Commit]:
    raws = list(raws)
    commits = [c for c in (normalize_commit(r) for r in raws) if c is not None]
    dropped = len(raws) - len(commits)
    if dropped:
        out.warning(f"Dropped {dropped} of {len(raws)} malformed commits (missing sha or unparsable date)", indent=2)
    return commits


def normalize_run(raw: Dict[str, Any], workflow_name: str) -> Optional[Run]:
    """Build a Run from a GitHub Actions workflow-run object.

    Returns None when the run is not an object, belongs to another workflow
    (case-insensitive name match), resolves to UNKNOWN status, or carries
    unparsable timestamps.
    """
    if not isinstance(raw, dict):
        out.debug(f"Dropping run: expected an object, got {type(raw).__name__}")
        return None

    name = raw.get("name")
    if not isinstance(name, str) or name.lower() != workflow_name.lower():
        return None

    run_id = raw.get("id")
    if run_id is None:
        return None

    status = classify_conclusion(raw.get("conclusion"))
    if status == RunStatus.UNKNOWN:
        return None

    created_raw = raw.get("created_at")
    started_raw = raw.get("run_started_at") or created_raw
    completed_raw = raw.get("updated_at") or created_raw

    started_at = parse_timestamp(started_raw)
    completed_at = parse_timestamp(completed_raw)
    if started_at is None or (completed_raw and completed_at is None):
        out.debug(f"Dropping run {run_id}: unparsable timestamps ({started_raw!r}, {completed_raw!r})")
        return None

    return Run(
        run_id=_int(run_id),
        workflow_name=name,
        status=status,
        started_at=started_at,
        completed_at=completed_at,
        conclusion=raw["conclusion"],
        head_sha=_str(raw.get("head_sha")),
        html_url=_str(raw.get("html_url")),
        event=_str(raw.get("event")) or None,
    )


def normalize_runs(raws: Iterable[Dict[str, Any]], workflow_name: str) -> List[Run]:
    """Normalize runs and return them stably sorted by start time."""
    raws = list(raws)
    runs = [r for r in (normalize_run(raw, workflow_name) for raw in raws) if r is not None]
    out.debug(f"Normalized {len(runs)} of {len(raws)} runs for workflow '{workflow_name}'")
    return sorted(runs, key=lambda r: r.started_at)


def dedupe_runs(runs: Iterable[Run]) -> List[Run]:
    """Drop repeated run ids (overlapping fetch pages), keeping first occurrence."""
    seen = set()
    unique = []
    for run in runs:
        if run.run_id in seen:
            continue
        seen.add(run.run_id)
        unique.append(run)
    return unique


def _pick(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def normalize_pull_request(raw: Dict[str, Any]) -> Optional[PullRequest]:
    """Build a PullRequest from a flat dict (snake_case or GraphQL camelCase keys)."""
    if not isinstance(raw, dict):
        return None

    number = _pick(raw, "number", "pr_number")
    created_at = parse_timestamp(_pick(raw, "created_at", "createdAt"))
    if number is None or created_at is None:
        return None

    author = _pick(raw, "author", "author_login")
    if isinstance(author, dict):
        author = author.get("login")

    return PullRequest(
        number=_int(number),
        author=_str(author) or "unknown",
        created_at=created_at,
        merged_at=parse_timestamp(_pick(raw, "merged_at", "mergedAt")),
        first_commit_at=parse_timestamp(_pick(raw, "first_commit_at", "firstCommitTime")),
        first_review_at=parse_timestamp(_pick(raw, "first_review_at", "firstReviewTime")),
        first_approval_at=parse_timestamp(_pick(raw, "first_approval_at", "firstApprovalTime")),
        additions=_int(raw.get("additions")),
        deletions=_int(raw.get("deletions")),
        title=_str(raw.get("title")),
        repository=_str(_pick(raw, "repository", "repo")),
    )


def normalize_pull_requests(raws: Iterable[Dict[str, Any]]) -> List[PullRequest]:
    return [pr for pr in (normalize_pull_request(r) for r in raws) if pr is not None]

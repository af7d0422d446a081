"""
Shared pytest fixtures for trunk metrics tests
"""

from datetime import date

import pytest

from tests.fixtures.sample_data import completed_run, make_commit, make_run, ts
from trunk_metrics.utils.date_ranges import AnalysisWindow


@pytest.fixture
def two_week_window():
    """2025-01-06 (Mon) .. 2025-01-19 (Sun): 13 days between start and end"""
    return AnalysisWindow(date(2025, 1, 6), date(2025, 1, 19))


@pytest.fixture
def sample_commits():
    """Four commits by two authors plus one merge commit"""
    return [
        make_commit("c1", ts(0, 9), author="alice", added=20, deleted=10),
        make_commit("c2", ts(0, 11), author="bob", added=100, deleted=0),
        make_commit("m1", ts(0, 12), author="alice", is_merge=True, added=500, deleted=500),
        make_commit("c3", ts(1, 9), author="alice", added=30, deleted=10),
        make_commit("c4", ts(2, 9), author="alice", added=5, deleted=5),
    ]


@pytest.fixture
def sample_runs():
    """Runs on days 0-2: success, failure, success, success (10 min each)"""
    return [
        make_run(101, ts(0, 10), "SUCCESS"),
        make_run(102, ts(0, 12), "FAILURE"),
        make_run(103, ts(1, 10), "SUCCESS"),
        make_run(104, ts(2, 10), "SUCCESS"),
    ]


@pytest.fixture
def incident_runs():
    """F1, F2, F3, S1, F4, F5, S2 completing an hour apart on day 3"""
    statuses = ["FAILURE", "FAILURE", "FAILURE", "SUCCESS", "FAILURE", "FAILURE", "SUCCESS"]
    return [completed_run(200 + i, ts(3, 1 + i), status) for i, status in enumerate(statuses)]

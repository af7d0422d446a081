"""Incident detection and Mean Time To Recovery.

Runs are walked in completion order through a two-state machine:

    NO_OPEN_INCIDENT --FAILURE--> INCIDENT_OPEN   (this failure starts the incident)
    INCIDENT_OPEN    --FAILURE--> INCIDENT_OPEN   (same outage, ignored)
    INCIDENT_OPEN    --SUCCESS--> NO_OPEN_INCIDENT (recovery, incident closed)
    NO_OPEN_INCIDENT --SUCCESS--> NO_OPEN_INCIDENT

Example: F1, F2, F3, S1, F4, F5, S2 gives two incidents, F1->S1 and F4->S2.

An incident still open when the data ends is unrecovered and contributes
nothing; the window end is never used as a synthetic recovery time.

Runs are expected to come from a widened fetch (lookback before the window and
lookahead after it). An incident counts toward MTTR only if its recovering
success completed inside ``[window start, window end)``, so a failure from the
lookback period that is fixed inside the window is counted, while incidents
resolved before the window or only after it are not.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import pandas as pd

from trunk_metrics.utils.date_ranges import AnalysisWindow
from trunk_metrics.utils.logging import get_logger

from .records import Incident, Run, RunStatus

out = get_logger("trunk_metrics.models.incidents")


class RecoveryState(Enum):
    NO_OPEN_INCIDENT = "no_open_incident"
    INCIDENT_OPEN = "incident_open"


class IncidentTracker:
    """Feed runs in completion order; closed incidents collect in ``incidents``."""

    def __init__(self):
        self.state = RecoveryState.NO_OPEN_INCIDENT
        self.first_failure: Optional[Run] = None
        self.incidents: List[Incident] = []

    def observe(self, run: Run) -> Optional[Incident]:
        """Advance the state machine by one run; returns the incident it closed, if any."""
        if run.status == RunStatus.FAILURE:
            if self.state == RecoveryState.NO_OPEN_INCIDENT:
                self.state = RecoveryState.INCIDENT_OPEN
                self.first_failure = run
            return None

        if run.status == RunStatus.SUCCESS and self.state == RecoveryState.INCIDENT_OPEN:
            incident = Incident(first_failure=self.first_failure, recovery_success=run)  # type: ignore[arg-type]
            self.incidents.append(incident)
            self.state = RecoveryState.NO_OPEN_INCIDENT
            self.first_failure = None
            return incident

        return None

    @property
    def has_open_incident(self) -> bool:
        return self.state == RecoveryState.INCIDENT_OPEN


def completed_in_order(runs: Sequence[Run]) -> List[Run]:
    """Resolved runs with a completion time, stably sorted by completion."""
    return sorted(
        (r for r in runs if r.is_resolved and r.completed_at is not None),
        key=lambda r: r.completed_at,  # type: ignore[arg-type, return-value]
    )


def find_incidents(runs: Sequence[Run]) -> List[Incident]:
    """Return every recovered incident in ``runs``, in order."""
    tracker = IncidentTracker()
    for run in completed_in_order(runs):
        tracker.observe(run)
    return tracker.incidents


@dataclass(frozen=True)
class MTTRResult:
    mttr_hours: float
    incident_count: int
    has_unrecovered_incident: bool
    recovery_times_hours: List[float] = field(default_factory=list)

    @property
    def note(self) -> Optional[str]:
        # 0.0 with no incidents is ambiguous (healthy pipeline vs. missing run data)
        if self.incident_count == 0:
            return "No recovered incidents in period"
        return None

    def to_dict(self) -> dict:
        return {
            "mttr_hours": self.mttr_hours,
            "incident_count": self.incident_count,
            "has_unrecovered_incident": self.has_unrecovered_incident,
            "recovery_times_hours": list(self.recovery_times_hours),
            "note": self.note,
        }


def calculate_mttr(runs: Sequence[Run], window: AnalysisWindow) -> MTTRResult:
    """Mean time from first failure to recovering success, in hours.

    Args:
        runs: Runs fetched with lookback before and lookahead after ``window``
        window: Analysis window; recoveries must complete in [start, end)

    Returns:
        MTTRResult with ``mttr_hours`` 0.0 when no incident is counted
    """
    tracker = IncidentTracker()
    for run in completed_in_order(runs):
        tracker.observe(run)

    recovery_times = []
    for incident in tracker.incidents:
        hours = incident.duration_hours
        if hours > 0 and window.contains(incident.recovered_at):
            recovery_times.append(hours)
            out.debug(
                f"MTTR incident: F({incident.first_failure.completed_at.isoformat()}) -> "  # type: ignore[union-attr]
                f"S({incident.recovered_at.isoformat()}) = {hours:.2f}h"
            )

    mttr = float(pd.Series(recovery_times, dtype="float64").mean()) if recovery_times else 0.0
    out.info(f"MTTR: {len(recovery_times)} incidents counted, recovery times: {[round(h, 2) for h in recovery_times]}", indent=3)

    return MTTRResult(
        mttr_hours=mttr,
        incident_count=len(recovery_times),
        has_unrecovered_incident=tracker.has_open_incident,
        recovery_times_hours=recovery_times,
    )

"""Rating engine: numeric metric -> quality tier.

Each metric has a fixed threshold triple ``(t0, t1, t2)`` and a polarity.
Lower-is-better metrics rate ``value <= t0`` as ELITE, ``<= t1`` GOOD,
``<= t2`` FAIR, otherwise NEEDS_FOCUS; higher-is-better metrics use ``>=``.
The overall rating is the plain average of tier scores, with no weighting, so
every rating can be checked by hand against the tables below.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple

from .records import MetricValue, Rating


@dataclass(frozen=True)
class Thresholds:
    elite: float
    good: float
    fair: float
    higher_is_better: bool = False
    unit: str = ""

    @property
    def triple(self) -> Tuple[float, float, float]:
        return (self.elite, self.good, self.fair)


# Trunk-based DORA thresholds (hours unless stated)
TRUNK_THRESHOLDS: Mapping[str, Thresholds] = MappingProxyType(
    {
        "deployment_frequency": Thresholds(1.0, 0.14, 0.03, higher_is_better=True, unit="deploys/day"),
        "lead_time": Thresholds(1.0, 24.0, 168.0, unit="hours"),
        "cycle_time": Thresholds(1.0, 24.0, 168.0, unit="hours"),
        "change_failure_rate": Thresholds(5.0, 15.0, 30.0, unit="%"),
        "mttr": Thresholds(1.0, 24.0, 168.0, unit="hours"),
        "commit_frequency": Thresholds(5.0, 2.0, 0.5, higher_is_better=True, unit="commits/day"),
        "batch_size": Thresholds(50.0, 150.0, 400.0, unit="lines"),
        "time_to_deploy": Thresholds(5.0, 15.0, 30.0, unit="minutes"),
        # Reported alongside the others but not part of the overall score
        "deploy_success_rate": Thresholds(95.0, 85.0, 70.0, higher_is_better=True, unit="%"),
    }
)

# Metrics that make up the overall trunk rating
OVERALL_METRICS = (
    "deployment_frequency",
    "lead_time",
    "cycle_time",
    "change_failure_rate",
    "mttr",
    "commit_frequency",
    "batch_size",
    "time_to_deploy",
)

# Pull-request lifecycle thresholds, kept separate from the trunk table
PR_THRESHOLDS: Mapping[str, Thresholds] = MappingProxyType(
    {
        "coding_time": Thresholds(0.9, 4.0, 23.0, unit="hours"),
        "pickup_time": Thresholds(1.0, 4.0, 16.0, unit="hours"),
        "approve_time": Thresholds(10.0, 22.0, 42.0, unit="hours"),
        "merge_time": Thresholds(1.0, 3.0, 16.0, unit="hours"),
        "review_time": Thresholds(3.0, 14.0, 24.0, unit="hours"),
        "cycle_time": Thresholds(25.0, 72.0, 161.0, unit="hours"),
        "merge_frequency": Thresholds(2.0, 1.2, 0.66, higher_is_better=True, unit="PRs/dev/week"),
        "pr_size": Thresholds(100.0, 155.0, 228.0, unit="lines"),
    }
)


class RatingEngine:
    """Static helpers for rating and formatting metric values."""

    @staticmethod
    def rate(value: float, thresholds: Thresholds) -> Rating:
        """Map ``value`` to a tier using ``thresholds``.

        Args:
            value: Metric value
            thresholds: Threshold triple and polarity for the metric

        Returns:
            Rating tier
        """
        t0, t1, t2 = thresholds.triple
        if thresholds.higher_is_better:
            if value >= t0:
                return Rating.ELITE
            if value >= t1:
                return Rating.GOOD
            if value >= t2:
                return Rating.FAIR
            return Rating.NEEDS_FOCUS

        if value <= t0:
            return Rating.ELITE
        if value <= t1:
            return Rating.GOOD
        if value <= t2:
            return Rating.FAIR
        return Rating.NEEDS_FOCUS

    @staticmethod
    def overall_rating(ratings: Iterable[Rating]) -> Rating:
        """Average tier scores (4 best .. 1 worst) and map back to a tier."""
        scores = [r.score for r in ratings]
        if not scores:
            return Rating.NEEDS_FOCUS
        return Rating.from_score(sum(scores) / len(scores))

    @staticmethod
    def format_value(value: float, unit: str) -> str:
        """Human-readable rendering of a metric value for its unit."""
        if unit == "hours":
            if value < 1.0:
                return f"{value * 60:.0f} min"
            if value < 24.0:
                return f"{value:.1f} hrs"
            return f"{value / 24.0:.1f} days"
        if unit == "%":
            return f"{value:.1f}%"
        if unit == "minutes":
            return f"{value:.1f} min"
        if unit == "lines":
            return f"{value:.0f}"
        return f"{value:.2f}"

    @staticmethod
    def create_metric_value(value: float, name: str, table: Mapping[str, Thresholds] = TRUNK_THRESHOLDS) -> MetricValue:
        """Rate ``value`` against ``table[name]`` and wrap it as a MetricValue."""
        thresholds = table[name]
        return MetricValue(
            value=value,
            unit=thresholds.unit,
            display_value=RatingEngine.format_value(value, thresholds.unit),
            rating=RatingEngine.rate(value, thresholds),
        )

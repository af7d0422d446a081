"""Tests for the rating engine and threshold tables"""

import pytest

from trunk_metrics.models.ratings import OVERALL_METRICS, PR_THRESHOLDS, TRUNK_THRESHOLDS, RatingEngine, Thresholds
from trunk_metrics.models.records import Rating


class TestRate:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, Rating.ELITE), (1.0, Rating.ELITE), (1.01, Rating.GOOD), (24.0, Rating.GOOD),
         (100.0, Rating.FAIR), (168.0, Rating.FAIR), (168.1, Rating.NEEDS_FOCUS)],
    )
    def test_lower_is_better_boundaries(self, value, expected):
        """Test lead time thresholds are inclusive (<=)"""
        assert RatingEngine.rate(value, TRUNK_THRESHOLDS["lead_time"]) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(2.0, Rating.ELITE), (1.0, Rating.ELITE), (0.5, Rating.GOOD), (0.14, Rating.GOOD),
         (0.03, Rating.FAIR), (0.01, Rating.NEEDS_FOCUS), (0.0, Rating.NEEDS_FOCUS)],
    )
    def test_higher_is_better_boundaries(self, value, expected):
        """Test deployment frequency thresholds are inclusive (>=)"""
        assert RatingEngine.rate(value, TRUNK_THRESHOLDS["deployment_frequency"]) == expected

    def test_monotonic_for_every_metric(self):
        """Test moving a value in the 'better' direction never worsens the tier"""
        for name, thresholds in TRUNK_THRESHOLDS.items():
            values = sorted({0.0, *thresholds.triple, *(t * 1.5 for t in thresholds.triple), 1000.0})
            if thresholds.higher_is_better:
                values.reverse()
            tiers = [RatingEngine.rate(v, thresholds).tier for v in values]
            assert tiers == sorted(tiers), name


class TestOverall:
    def test_all_elite(self):
        assert RatingEngine.overall_rating([Rating.ELITE] * 8) == Rating.ELITE

    def test_average_maps_back_to_tier(self):
        """Test scores 4,4,3,3 average to 3.5 -> ELITE and 4,3,2,1 to 2.5 -> GOOD"""
        assert RatingEngine.overall_rating([Rating.ELITE, Rating.ELITE, Rating.GOOD, Rating.GOOD]) == Rating.ELITE
        assert RatingEngine.overall_rating([Rating.ELITE, Rating.GOOD, Rating.FAIR, Rating.NEEDS_FOCUS]) == Rating.GOOD

    def test_low_average(self):
        assert RatingEngine.overall_rating([Rating.FAIR, Rating.NEEDS_FOCUS, Rating.NEEDS_FOCUS]) == Rating.NEEDS_FOCUS

    def test_empty_is_needs_focus(self):
        assert RatingEngine.overall_rating([]) == Rating.NEEDS_FOCUS

    def test_overall_metrics_exclude_deploy_success_rate(self):
        assert len(OVERALL_METRICS) == 8
        assert "deploy_success_rate" not in OVERALL_METRICS


class TestFormatValue:
    def test_hours(self):
        assert RatingEngine.format_value(0.5, "hours") == "30 min"
        assert RatingEngine.format_value(5.5, "hours") == "5.5 hrs"
        assert RatingEngine.format_value(36.0, "hours") == "1.5 days"

    def test_other_units(self):
        assert RatingEngine.format_value(12.345, "%") == "12.3%"
        assert RatingEngine.format_value(7.0, "minutes") == "7.0 min"
        assert RatingEngine.format_value(149.6, "lines") == "150"
        assert RatingEngine.format_value(0.4286, "deploys/day") == "0.43"


class TestCreateMetricValue:
    def test_wraps_value_rating_and_display(self):
        metric = RatingEngine.create_metric_value(12.0, "change_failure_rate")

        assert metric.value == 12.0
        assert metric.unit == "%"
        assert metric.display_value == "12.0%"
        assert metric.rating == Rating.GOOD
        assert metric.to_dict()["level"] == "high"

    def test_pr_table_is_separate(self):
        """Test the PR cycle time scale differs from the trunk one"""
        assert PR_THRESHOLDS is not TRUNK_THRESHOLDS
        assert RatingEngine.create_metric_value(20.0, "cycle_time", PR_THRESHOLDS).rating == Rating.ELITE
        assert RatingEngine.create_metric_value(20.0, "cycle_time").rating == Rating.GOOD

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            TRUNK_THRESHOLDS["lead_time"] = Thresholds(0, 0, 0)  # type: ignore[index]


class TestRatingLabels:
    def test_labels_and_scores(self):
        assert [r.label for r in Rating] == ["Elite", "High", "Medium", "Low"]
        assert [r.score for r in Rating] == [4, 3, 2, 1]

"""Tests for the synthetic lifecycle metric generators."""

from datetime import date

import pytest

from lifecycle_attribution.cohorts import build_cohort
from lifecycle_attribution.foundation import AVAILABLE_CHANNELS, QueryKey
from lifecycle_attribution.synthetic import SYNTHETIC_GENERATORS, generate_metric

ALL = QueryKey.from_parts(date(2024, 3, 1), date(2024, 3, 31), AVAILABLE_CHANNELS, "All")


def test_generators_cover_metric_catalog():
    assert set(SYNTHETIC_GENERATORS) == {
        "sankey",
        "assistedRevenue",
        "holdoutLift",
        "incrementalityScoreboard",
        "funnelMetrics",
        "behaviorConversion",
        "ltvBySource",
        "productLTVMatrix",
        "churnRisk",
        "repeatRateForecast",
    }


@pytest.mark.parametrize("metric", sorted(SYNTHETIC_GENERATORS))
def test_same_key_same_dataset(metric):
    """Test output is deterministic per query key."""
    first = generate_metric(metric, ALL)
    assert isinstance(first, list)
    assert first
    assert generate_metric(metric, ALL) == first


def test_different_key_changes_numbers():
    other = QueryKey.from_parts(ALL.start, ALL.end, AVAILABLE_CHANNELS, "High Value")
    assert generate_metric("churnRisk", other) != generate_metric("churnRisk", ALL)


def test_channel_selection_restricts_channel_datasets():
    key = QueryKey.from_parts(ALL.start, ALL.end, ["Meta", "Email"], "All")
    assisted = generate_metric("assistedRevenue", key)
    assert {row["channel"] for row in assisted} == {"Meta", "Email"}

    entry_links = [row for row in generate_metric("sankey", key) if row["target"] == "Product View"]
    assert {row["source"] for row in entry_links} == {"Meta", "Email"}


def test_no_channels_gives_empty_channel_datasets():
    key = QueryKey.from_parts(ALL.start, ALL.end, [], "All")
    assert generate_metric("sankey", key) == []
    assert generate_metric("assistedRevenue", key) == []
    assert generate_metric("ltvBySource", key) == []


def test_ltv_dates_stay_inside_range():
    key = QueryKey.from_parts(date(2024, 3, 25), date(2024, 3, 31), ["Email"], "All")
    rows = generate_metric("ltvBySource", key)
    assert len(rows) == 7
    assert min(r["date"] for r in rows) == "2024-03-25"
    assert max(r["date"] for r in rows) == "2024-03-31"


def test_repeat_rate_forecast_covers_twelve_months():
    rows = generate_metric("repeatRateForecast", ALL)
    assert [r["cohortMonth"] for r in rows][-1] == "2024-03"
    assert [r["cohortMonth"] for r in rows][0] == "2023-04"


def test_generated_rows_feed_cohort_builders():
    """Test a click on any generated heatmap cell builds a cohort."""
    churn = generate_metric("churnRisk", ALL)
    cell = churn[7]
    cohort = build_cohort(
        "churn_risk", {"segment": cell["segment"], "recency": cell["recency"]}, churn
    )
    assert cohort.risk_score == cell["riskScore"]
    assert cohort.customers == cell["customers"]

    scoreboard = generate_metric("incrementalityScoreboard", ALL)
    positions = {build_cohort("incrementality", row, scoreboard).position for row in scoreboard}
    assert positions == set(range(1, len(scoreboard) + 1))


def test_unknown_metric_rejected():
    with pytest.raises(ValueError, match="No synthetic generator"):
        generate_metric("pieChart", ALL)

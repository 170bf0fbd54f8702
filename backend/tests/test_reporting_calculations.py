"""
Tests for rate calculators, date presets and budget pacing.
"""

from datetime import date

import pytest

from ppc_dashboard.services.reporting_service import (
    calculate_acos,
    calculate_aov,
    calculate_budget_pacing,
    calculate_conversion_rate,
    calculate_cpc,
    calculate_ctr,
    calculate_percentage_change,
    calculate_projected_monthly_spend,
    calculate_roas,
    compute_deltas,
    compute_metrics,
    get_budget_pacing_status,
    get_comparison_range,
    get_date_range,
    summarize_budget,
)


def test_rate_formulas():
    assert calculate_acos(25, 100) == pytest.approx(25.0)
    assert calculate_roas(100, 25) == pytest.approx(4.0)
    assert calculate_ctr(5, 1000) == pytest.approx(0.5)
    assert calculate_cpc(10, 20) == pytest.approx(0.5)
    assert calculate_conversion_rate(3, 30) == pytest.approx(10.0)
    assert calculate_aov(90, 3) == pytest.approx(30.0)
    assert calculate_budget_pacing(45, 50) == pytest.approx(90.0)
    assert calculate_projected_monthly_spend(10) == 300


def test_zero_denominators():
    assert calculate_acos(10, 0) == 0
    assert calculate_roas(10, 0) == 0
    assert calculate_ctr(1, 0) == 0
    assert calculate_cpc(1, 0) == 0
    assert calculate_conversion_rate(1, 0) == 0
    assert calculate_aov(1, 0) == 0
    assert calculate_budget_pacing(1, 0) == 0


def test_percentage_change():
    assert calculate_percentage_change(150, 100) == pytest.approx(50.0)
    assert calculate_percentage_change(50, 100) == pytest.approx(-50.0)
    assert calculate_percentage_change(5, 0) == 100
    assert calculate_percentage_change(0, 0) == 0


def test_pacing_status():
    # Noon: expected pace 50%, tolerance 15 points either side
    assert get_budget_pacing_status(50, 12) == "on-track"
    assert get_budget_pacing_status(65, 12) == "on-track"
    assert get_budget_pacing_status(66, 12) == "over-pacing"
    assert get_budget_pacing_status(34, 12) == "under-pacing"


def test_date_presets():
    today = date(2026, 3, 15)
    assert get_date_range("today", today) == (today, today)
    assert get_date_range("yesterday", today) == (date(2026, 3, 14), date(2026, 3, 14))
    assert get_date_range("last_7_days", today) == (date(2026, 3, 9), today)
    assert get_date_range("last_30_days", today) == (date(2026, 2, 14), today)
    assert get_date_range("this_month", today) == (date(2026, 3, 1), today)
    assert get_date_range("last_month", today) == (date(2026, 2, 1), date(2026, 2, 28))
    assert get_date_range("year_to_date", today) == (date(2026, 1, 1), today)
    assert get_date_range("nonsense", today) == (date(2026, 3, 9), today)


def test_comparison_ranges():
    today = date(2026, 3, 15)
    assert get_comparison_range("last_7_days", today) == (date(2026, 3, 2), date(2026, 3, 8))
    assert get_comparison_range("today", today) == (date(2026, 3, 14), date(2026, 3, 14))
    assert get_comparison_range("last_month", today) == (date(2026, 1, 1), date(2026, 1, 31))
    assert get_comparison_range("year_to_date", today) == (date(2025, 1, 1), date(2025, 3, 15))


def test_year_to_date_comparison_on_leap_day():
    leap_day = date(2028, 2, 29)
    assert get_comparison_range("year_to_date", leap_day) == (date(2027, 1, 1), date(2027, 2, 28))


def test_compute_metrics_and_deltas():
    current = compute_metrics([
        {"impressions": 1000, "clicks": 40, "cost": 20.0, "sales": 80.0, "orders": 4},
        {"impressions": 1000, "clicks": 10, "cost": 5.0, "sales": None, "orders": 0},
    ])
    assert current["cost"] == 25.0
    assert current["sales"] == 80.0
    assert current["acos"] == pytest.approx(31.25, abs=0.01)
    assert current["roas"] == pytest.approx(3.2)
    assert current["cpc"] == pytest.approx(0.5)

    previous = compute_metrics([{"impressions": 1000, "clicks": 25, "cost": 12.5, "sales": 40.0, "orders": 2}])
    deltas = compute_deltas(current, previous)
    assert deltas["cost"] == pytest.approx(100.0)
    assert deltas["sales"] == pytest.approx(100.0)


def test_summarize_budget():
    summary = summarize_budget(daily_budget=100.0, spend_today=80.0, hour_of_day=12)
    assert summary["pace_percentage"] == 80.0
    assert summary["status"] == "over-pacing"
    assert summary["projected_monthly_spend"] == 2400.0

from __future__ import annotations

from datetime import date

import pytest

from paintops.config import default_config
from paintops.targets import (
    MONTHLY_ACTUAL_FIELDS,
    MONTHLY_GOAL_FIELDS,
    achievement_pct,
    achievement_status,
    business_days_in_month,
    calculate_goals,
    conversion_rates,
    cumulative_rollup,
    daily_goal,
    default_curve_rows,
    generate_monthly_targets,
    goals_for_period,
    progress_pct,
    yearly_rollup,
)

GOALS = {"leads": 1200, "sales": 360, "revenue": 1_200_000, "gross_profit": 480_000, "reviews": 120, "marketing_spend": 60000}


def _curves() -> list[dict]:
    cfg = default_config()
    return default_curve_rows(2025, cfg.seasonal_weights, cfg.seasonal_metrics)


def test_twelve_months_with_quarters() -> None:
    targets = generate_monthly_targets(2025, GOALS, _curves())
    assert [t.month for t in targets] == list(range(1, 13))
    assert [t.quarter for t in targets] == [1, 1, 1, 2, 2, 2, 3, 3, 3, 4, 4, 4]
    assert all(t.year == 2025 for t in targets)


def test_goals_follow_seasonal_weights() -> None:
    targets = generate_monthly_targets(2025, GOALS, _curves())
    may = targets[4]
    assert may.leads_goal == 127  # 1200 * 0.106 = 127.2
    assert may.revenue_goal == 127200
    assert may.sales_goal == 38  # 360 * 0.106 = 38.16


def test_gross_profit_uses_revenue_curve_and_reviews_use_sales_curve() -> None:
    curves = {("revenue", 1): 0.5, ("sales", 1): 0.25, ("leads", 1): 0.1}
    jan = generate_monthly_targets(2025, GOALS, curves)[0]
    assert jan.gross_profit_goal == 240000
    assert jan.reviews_goal == 30


def test_missing_weight_falls_back_to_even_split() -> None:
    targets = generate_monthly_targets(2025, {"leads": 1200}, [])
    assert all(t.leads_goal == 100 for t in targets)


def test_marketing_spend_ignores_curves() -> None:
    targets = generate_monthly_targets(2025, {"marketing_spend": 50000}, _curves())
    # 50000 / 12 = 4166.67
    assert {t.marketing_spend_goal for t in targets} == {4167}


def test_goal_rounding_is_half_up() -> None:
    curves = {("leads", m): 0.125 for m in range(1, 13)}
    targets = generate_monthly_targets(2025, {"leads": 4}, curves)
    assert targets[0].leads_goal == 1  # 0.5 rounds up


def test_generation_is_deterministic() -> None:
    first = generate_monthly_targets(2025, GOALS, _curves())
    second = generate_monthly_targets(2025, GOALS, _curves())
    assert first == second


def test_default_curve_rows_cover_each_metric_month() -> None:
    rows = _curves()
    assert len(rows) == 36
    assert {r["metric"] for r in rows} == {"leads", "sales", "revenue"}
    jan_leads = next(r for r in rows if r["metric"] == "leads" and r["month"] == 1)
    assert jan_leads == {"year": 2025, "metric": "leads", "month": 1, "weight": 0.053}


def test_cumulative_rollup_sorts_and_accumulates() -> None:
    rows = [
        {"month": 3, "leads_goal": 30, "leads_actual": 20},
        {"month": 1, "leads_goal": 10, "leads_actual": 12},
        {"month": 10, "leads_goal": 100, "leads_actual": None},
        {"month": 2, "leads_goal": 20, "leads_actual": 18},
    ]
    out = cumulative_rollup(rows, ["leads_goal"], ["leads_actual"], "month")
    assert [r["month"] for r in out] == [1, 2, 3, 10]
    assert [r["leads_goal"] for r in out] == [10, 30, 60, 160]
    assert [r["leads_actual"] for r in out] == [12, 30, 50, 50]
    # input rows are not modified
    assert rows[0]["leads_goal"] == 30


def test_cumulative_rollup_by_date() -> None:
    rows = [
        {"date": date(2025, 6, 3), "sales_goal": 1, "sales_actual": 0},
        {"date": date(2025, 6, 2), "sales_goal": 1, "sales_actual": 2},
    ]
    out = cumulative_rollup(rows, ["sales_goal"], ["sales_actual"], "date")
    assert [r["date"] for r in out] == [date(2025, 6, 2), date(2025, 6, 3)]
    assert out[-1]["sales_goal"] == 2
    assert out[-1]["sales_actual"] == 2


def test_cumulative_rollup_empty() -> None:
    assert cumulative_rollup([], ["leads_goal"], ["leads_actual"], "month") == []


def test_yearly_rollup_sums_every_field() -> None:
    targets = [t.to_dict() for t in generate_monthly_targets(2025, GOALS, _curves())]
    targets[0]["revenue_actual"] = 50000
    targets[1]["revenue_actual"] = 70000
    totals = yearly_rollup(targets)
    assert set(totals) == set(MONTHLY_GOAL_FIELDS) | set(MONTHLY_ACTUAL_FIELDS)
    assert totals["revenue_actual"] == 120000
    assert totals["leads_actual"] == 0
    assert totals["marketing_spend_goal"] == 60000
    assert totals["revenue_goal"] == pytest.approx(1_200_000, rel=0.01)


def test_business_days_and_daily_goal() -> None:
    # June 2025: 21 weekdays
    assert business_days_in_month(2025, 6) == 21
    assert business_days_in_month(2025, 12) == 23
    assert daily_goal(42000, 2025, 6) == pytest.approx(2000)
    assert daily_goal(None, 2025, 6) == 0


@pytest.mark.parametrize(
    "actual,goal,pct,status",
    [
        (95, 100, 95, "on_track"),
        (90, 100, 90, "on_track"),
        (70, 100, 70, "at_risk"),
        (69, 100, 69, "behind"),
        (5, 0, 0, "behind"),
    ],
)
def test_achievement(actual, goal, pct, status) -> None:
    got = achievement_pct(actual, goal)
    assert got == pytest.approx(pct)
    assert achievement_status(got) == status


class TestGoalFormula:
    def test_million_dollar_target(self) -> None:
        goals = calculate_goals(1_000_000)
        assert goals["annual"] == {"revenue": 1_000_000, "jobs": 105, "estimates": 350, "leads": 412, "marketing": 80000}
        assert goals["monthly"] == {"revenue": 83333, "jobs": 9, "estimates": 29, "leads": 34, "marketing": 6667}
        assert goals["weekly"] == {"revenue": 28571, "jobs": 3.0, "estimates": 10, "leads": 12, "marketing": 1538}
        assert goals["quarterly"] == {"revenue": 250000, "jobs": 26, "estimates": 88, "leads": 103, "marketing": 20000}

    def test_formula_overrides(self) -> None:
        goals = calculate_goals(500_000, {"avg_ticket": 5000, "closing_rate": 50, "production_weeks": 40})
        assert goals["annual"]["jobs"] == 100
        assert goals["annual"]["estimates"] == 200
        assert goals["weekly"]["jobs"] == 2.5

    def test_zero_rates_give_zero_goals(self) -> None:
        goals = calculate_goals(1_000_000, {"closing_rate": 0, "production_weeks": 0})
        assert goals["annual"]["estimates"] == 0
        assert goals["annual"]["leads"] == 0
        assert goals["weekly"]["revenue"] == 0

    @pytest.mark.parametrize(
        "period,key", [("week", "weekly"), ("month", "monthly"), ("quarter", "quarterly"), ("year", "annual"), ("fortnight", "monthly")]
    )
    def test_goals_for_period(self, period, key) -> None:
        goals = calculate_goals(1_000_000)
        assert goals_for_period(goals, period) == goals[key]


def test_conversion_rates() -> None:
    assert conversion_rates(200, 100, 30) == {"lead_to_estimate": 50, "estimate_to_sale": 30, "lead_to_sale": 15}
    assert conversion_rates(0, 0, 0) == {"lead_to_estimate": 0, "estimate_to_sale": 0, "lead_to_sale": 0}


@pytest.mark.parametrize("current,goal,pct", [(50, 200, 25), (300, 200, 100), (5, 0, 0), (5, -10, 0), (1, 3, 33)])
def test_progress_pct(current, goal, pct) -> None:
    assert progress_pct(current, goal) == pct

"""Monthly goal generation from seasonal curves, plus goal/actual rollups."""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from .amounts import coerce_amount, round_half_up, safe_div
from .config import GoalFormula
from .types import MonthlyTarget

DEFAULT_WEIGHT = 1 / 12
DEFAULT_BUSINESS_DAYS = 22

# metric -> seasonal curve it is distributed with. gross_profit and reviews
# have no curve of their own and follow revenue and sales.
CURVE_FOR_METRIC: dict[str, str] = {
    "leads": "leads",
    "sales": "sales",
    "revenue": "revenue",
    "gross_profit": "revenue",
    "reviews": "sales",
}

GOAL_METRICS: tuple[str, ...] = ("leads", "sales", "revenue", "gross_profit", "reviews", "marketing_spend")

MONTHLY_GOAL_FIELDS: tuple[str, ...] = tuple(f"{m}_goal" for m in GOAL_METRICS)
MONTHLY_ACTUAL_FIELDS: tuple[str, ...] = (
    "leads_actual",
    "appointments_actual",
    "sales_actual",
    "revenue_actual",
    "reviews_actual",
)
DAILY_GOAL_FIELDS: tuple[str, ...] = (
    "leads_goal",
    "appointments_goal",
    "sales_goal",
    "revenue_goal",
    "reviews_goal",
)
DAILY_ACTUAL_FIELDS: tuple[str, ...] = tuple(f.replace("_goal", "_actual") for f in DAILY_GOAL_FIELDS)

CurveWeights = Mapping[tuple[str, int], float]


def curve_weights(curves: Iterable[Mapping[str, Any]] | CurveWeights) -> dict[tuple[str, int], float]:
    """Normalise curve rows ({metric, month, weight}) into a (metric, month) lookup."""
    if isinstance(curves, Mapping):
        return {(str(k[0]), int(k[1])): float(v) for k, v in curves.items()}
    return {(str(c["metric"]), int(c["month"])): float(c["weight"]) for c in curves}


def generate_monthly_targets(
    year: int,
    annual_goals: Mapping[str, Any],
    curves: Iterable[Mapping[str, Any]] | CurveWeights,
) -> list[MonthlyTarget]:
    weights = curve_weights(curves)
    goals = {m: coerce_amount(annual_goals.get(m)) for m in GOAL_METRICS}
    marketing_monthly = round_half_up(goals["marketing_spend"] / 12)

    targets: list[MonthlyTarget] = []
    for month in range(1, 13):
        values = {
            metric: round_half_up(goals[metric] * weights.get((curve, month), DEFAULT_WEIGHT))
            for metric, curve in CURVE_FOR_METRIC.items()
        }
        targets.append(
            MonthlyTarget(
                year=int(year),
                month=month,
                quarter=math.ceil(month / 3),
                leads_goal=values["leads"],
                sales_goal=values["sales"],
                revenue_goal=values["revenue"],
                gross_profit_goal=values["gross_profit"],
                reviews_goal=values["reviews"],
                marketing_spend_goal=marketing_monthly,
            )
        )
    return targets


def default_curve_rows(year: int, weights: Mapping[int, float], metrics: Sequence[str]) -> list[dict[str, Any]]:
    return [
        {"year": int(year), "metric": metric, "month": month, "weight": float(weights[month])}
        for metric in metrics
        for month in range(1, 13)
    ]


def _sort_value(value: Any) -> tuple[int, Any]:
    return (1, 0) if value is None else (0, value)


def cumulative_rollup(
    records: Iterable[Mapping[str, Any]],
    goal_fields: Sequence[str],
    actual_fields: Sequence[str],
    order_by: str | Sequence[str],
) -> list[dict[str, Any]]:
    """Running totals of every goal and actual field, period by period.

    Records are sorted by ``order_by`` first; each output row carries the sum
    of all periods up to and including its own. Missing values count as 0.
    """
    keys = [order_by] if isinstance(order_by, str) else list(order_by)
    rows = sorted((dict(r) for r in records), key=lambda r: tuple(_sort_value(r.get(k)) for k in keys))
    if not rows:
        return []
    fields = list(goal_fields) + list(actual_fields)
    df = pd.DataFrame({col: [r.get(col) for r in rows] for col in fields})
    running = df.apply(lambda s: pd.to_numeric(s, errors="coerce").fillna(0.0).cumsum())
    for i, row in enumerate(rows):
        for col in fields:
            row[col] = float(running.at[i, col])
    return rows


def yearly_rollup(
    monthly_targets: Iterable[Mapping[str, Any]],
    goal_fields: Sequence[str] = MONTHLY_GOAL_FIELDS,
    actual_fields: Sequence[str] = MONTHLY_ACTUAL_FIELDS,
) -> dict[str, float]:
    df = pd.DataFrame([dict(r) for r in monthly_targets])
    totals: dict[str, float] = {}
    for col in list(goal_fields) + list(actual_fields):
        totals[col] = float(pd.to_numeric(df[col], errors="coerce").fillna(0.0).sum()) if col in df.columns else 0.0
    return totals


def business_days_in_month(year: int, month: int) -> int:
    start = np.datetime64(date(year, month, 1))
    end = np.datetime64(date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1))
    return int(np.busday_count(start, end))


def daily_goal(monthly_value: Any, year: int, month: int) -> float:
    """Spread a monthly goal evenly over the month's weekdays."""
    days = business_days_in_month(year, month) or DEFAULT_BUSINESS_DAYS
    return coerce_amount(monthly_value) / days


def achievement_pct(actual: Any, goal: Any) -> float:
    return safe_div(coerce_amount(actual), coerce_amount(goal)) * 100


def achievement_status(pct: float) -> str:
    if pct >= 90:
        return "on_track"
    if pct >= 70:
        return "at_risk"
    return "behind"


def calculate_goals(annual_target: Any, formula: GoalFormula | Mapping[str, Any] | None = None) -> dict[str, dict[str, float]]:
    """Annual, monthly, weekly and quarterly goals from an annual revenue target.

    Jobs follow from the average ticket; estimates from jobs at the closing
    rate; leads from estimates at the lead conversion rate. Weekly figures are
    spread over the production weeks, weekly marketing over all 52.
    """
    if not isinstance(formula, GoalFormula):
        formula = GoalFormula.from_mapping(formula or {})
    target = coerce_amount(annual_target)
    weeks = coerce_amount(formula.production_weeks)
    jobs = round_half_up(safe_div(target, coerce_amount(formula.avg_ticket)))
    estimates = round_half_up(safe_div(jobs, coerce_amount(formula.closing_rate) / 100))
    leads = round_half_up(safe_div(estimates, coerce_amount(formula.lead_conversion_rate) / 100))
    marketing = target * coerce_amount(formula.marketing_percent) / 100

    def _split(parts: int) -> dict[str, float]:
        return {
            "revenue": round_half_up(target / parts),
            "jobs": round_half_up(jobs / parts),
            "estimates": round_half_up(estimates / parts),
            "leads": round_half_up(leads / parts),
            "marketing": round_half_up(marketing / parts),
        }

    return {
        "annual": {"revenue": target, "jobs": jobs, "estimates": estimates, "leads": leads, "marketing": marketing},
        "monthly": _split(12),
        "weekly": {
            "revenue": round_half_up(safe_div(target, weeks)),
            # one decimal place
            "jobs": round_half_up(safe_div(jobs, weeks) * 10) / 10,
            "estimates": round_half_up(safe_div(estimates, weeks)),
            "leads": round_half_up(safe_div(leads, weeks)),
            "marketing": round_half_up(marketing / 52),
        },
        "quarterly": _split(4),
    }


_PERIOD_KEYS = {"week": "weekly", "month": "monthly", "quarter": "quarterly", "year": "annual"}


def goals_for_period(goals: Mapping[str, Mapping[str, float]], period: str) -> Mapping[str, float]:
    """Goals for ``week``, ``month``, ``quarter`` or ``year``; anything else is monthly."""
    return goals[_PERIOD_KEYS.get(period, "monthly")]


def conversion_rates(leads: Any, estimates: Any, sales: Any) -> dict[str, int]:
    leads, estimates, sales = coerce_amount(leads), coerce_amount(estimates), coerce_amount(sales)
    return {
        "lead_to_estimate": round_half_up(safe_div(estimates, leads) * 100),
        "estimate_to_sale": round_half_up(safe_div(sales, estimates) * 100),
        "lead_to_sale": round_half_up(safe_div(sales, leads) * 100),
    }


def progress_pct(current: Any, goal: Any) -> int:
    """Whole-percent progress towards ``goal``, capped at 100; 0 without a goal."""
    goal = coerce_amount(goal)
    if goal <= 0:
        return 0
    return min(round_half_up(coerce_amount(current) / goal * 100), 100)

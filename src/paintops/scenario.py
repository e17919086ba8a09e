"""What-if projection of a painting business from its funnel and cost assumptions.

Percentages here are fractions (0.32 = 32%), unlike job settings which are
stored 0-100.
"""

from __future__ import annotations

from typing import Any, Mapping

from .amounts import coerce_amount, round_half_up, safe_div
from .types import ScenarioDifferences, ScenarioResults

ASSUMPTION_FIELDS: tuple[str, ...] = (
    "leads_count",
    "issue_rate",
    "closing_rate",
    "average_sale",
    "markup_ratio",
    "marketing_spend",
    "cogs_labor_pct",
    "cogs_materials_pct",
    "cogs_other_pct",
    "sales_commission_pct",
    "pm_commission_pct",
    "owner_salary",
    "production_salary",
    "sales_salary",
    "admin_salary",
    "other_overhead",
)

OVERHEAD_FIELDS: tuple[str, ...] = (
    "owner_salary",
    "production_salary",
    "sales_salary",
    "admin_salary",
    "other_overhead",
)


def assumptions_from(scenario: Mapping[str, Any], defaults: Mapping[str, float] | None = None) -> dict[str, float]:
    """Coerced assumption values; ``defaults`` fill fields the scenario omits."""
    defaults = defaults or {}
    out: dict[str, float] = {}
    for name in ASSUMPTION_FIELDS:
        raw = scenario.get(name)
        out[name] = coerce_amount(defaults.get(name) if raw is None else raw)
    return out


def calculate_scenario_results(scenario: Mapping[str, Any]) -> ScenarioResults:
    s = assumptions_from(scenario)

    # Counts are whole before they feed revenue: you cannot sell part of a job.
    appointments = round_half_up(s["leads_count"] * s["issue_rate"])
    sales = round_half_up(appointments * s["closing_rate"])
    revenue = sales * s["average_sale"]

    cogs_labor = revenue * s["cogs_labor_pct"]
    cogs_materials = revenue * s["cogs_materials_pct"]
    cogs_other = revenue * s["cogs_other_pct"]
    total_cogs = cogs_labor + cogs_materials + cogs_other

    gross_profit = revenue - total_cogs
    gross_margin_pct = safe_div(gross_profit, revenue) * 100

    sales_commission = revenue * s["sales_commission_pct"]
    pm_commission = revenue * s["pm_commission_pct"]
    total_commissions = sales_commission + pm_commission
    contribution_profit = gross_profit - total_commissions

    total_overhead = sum(s[name] for name in OVERHEAD_FIELDS)
    total_expenses = total_commissions + s["marketing_spend"] + total_overhead

    net_profit = gross_profit - total_expenses
    net_margin_pct = safe_div(net_profit, revenue) * 100

    return ScenarioResults(
        appointments=appointments,
        sales=sales,
        nsli=safe_div(revenue, s["leads_count"]),
        revenue=revenue,
        cogs_labor=cogs_labor,
        cogs_materials=cogs_materials,
        cogs_other=cogs_other,
        total_cogs=total_cogs,
        gross_profit=gross_profit,
        gross_margin_pct=gross_margin_pct,
        contribution_profit=contribution_profit,
        sales_commission=sales_commission,
        pm_commission=pm_commission,
        total_commissions=total_commissions,
        total_overhead=total_overhead,
        total_expenses=total_expenses,
        net_profit=net_profit,
        net_margin_pct=net_margin_pct,
        cpl=safe_div(s["marketing_spend"], s["leads_count"]),
        roi=safe_div(revenue, s["marketing_spend"]),
        owner_take_home=net_profit + s["owner_salary"],
    )


def build_scenario_row(
    scenario: Mapping[str, Any], defaults: Mapping[str, float] | None = None
) -> tuple[dict[str, Any], ScenarioResults]:
    """Columns to persist for a scenario, cached results recomputed from its assumptions."""
    assumptions = assumptions_from(scenario, defaults)
    results = calculate_scenario_results(assumptions)
    row: dict[str, Any] = {k: scenario[k] for k in ("name", "description", "is_baseline") if k in scenario}
    row.update(assumptions)
    row.update(results.cached_columns())
    return row, results


def _delta(baseline: float, candidate: float) -> tuple[float, float]:
    diff = candidate - baseline
    return diff, safe_div(diff, baseline) * 100


def compare_results(baseline: ScenarioResults, candidate: ScenarioResults) -> ScenarioDifferences:
    revenue, revenue_pct = _delta(baseline.revenue, candidate.revenue)
    gross_profit, gross_profit_pct = _delta(baseline.gross_profit, candidate.gross_profit)
    net_profit, net_profit_pct = _delta(baseline.net_profit, candidate.net_profit)
    take_home, take_home_pct = _delta(baseline.owner_take_home, candidate.owner_take_home)
    return ScenarioDifferences(
        revenue=revenue,
        revenue_pct=revenue_pct,
        gross_profit=gross_profit,
        gross_profit_pct=gross_profit_pct,
        net_profit=net_profit,
        net_profit_pct=net_profit_pct,
        owner_take_home=take_home,
        owner_take_home_pct=take_home_pct,
        cpl=candidate.cpl - baseline.cpl,
        roi=candidate.roi - baseline.roi,
    )


def compare_scenarios(baseline: Mapping[str, Any], candidate: Mapping[str, Any]) -> dict[str, Any]:
    """Results of both scenarios plus the candidate-minus-baseline differences."""
    base_results = calculate_scenario_results(baseline)
    cand_results = calculate_scenario_results(candidate)
    return {
        "baseline": {"scenario": dict(baseline), "results": base_results.to_dict()},
        "comparison": {"scenario": dict(candidate), "results": cand_results.to_dict()},
        "differences": compare_results(base_results, cand_results).to_dict(),
    }

from __future__ import annotations

import dataclasses
import math

import pytest

from paintops.scenario import (
    assumptions_from,
    build_scenario_row,
    calculate_scenario_results,
    compare_results,
    compare_scenarios,
)


def _scenario(**overrides) -> dict:
    s = {
        "leads_count": 600,
        "issue_rate": 0.75,
        "closing_rate": 0.40,
        "average_sale": 4000,
        "marketing_spend": 48000,
        "cogs_labor_pct": 0.32,
        "cogs_materials_pct": 0.21,
        "cogs_other_pct": 0.02,
        "sales_commission_pct": 0.10,
        "pm_commission_pct": 0.03,
        "owner_salary": 90000,
        "production_salary": 45000,
        "sales_salary": 40000,
        "admin_salary": 30000,
        "other_overhead": 36000,
    }
    s.update(overrides)
    return s


class TestPipeline:
    def test_reference_scenario(self) -> None:
        r = calculate_scenario_results(_scenario())
        assert r.appointments == 450
        assert r.sales == 180
        assert r.revenue == pytest.approx(720000)
        assert r.total_cogs == pytest.approx(720000 * 0.55)
        assert r.gross_profit == pytest.approx(324000)
        assert r.gross_margin_pct == pytest.approx(45)
        assert r.total_commissions == pytest.approx(93600)
        assert r.contribution_profit == pytest.approx(324000 - 93600)
        assert r.total_overhead == pytest.approx(241000)
        assert r.total_expenses == pytest.approx(93600 + 48000 + 241000)
        assert r.net_profit == pytest.approx(324000 - 382600)
        assert r.cpl == pytest.approx(80)
        assert r.roi == pytest.approx(15)
        assert r.nsli == pytest.approx(1200)
        assert r.owner_take_home == pytest.approx(r.net_profit + 90000)

    def test_counts_round_half_up_before_revenue(self) -> None:
        # 5 * 0.5 = 2.5 -> 3 appointments; 3 * 0.5 = 1.5 -> 2 sales
        r = calculate_scenario_results(_scenario(leads_count=5, issue_rate=0.5, closing_rate=0.5, average_sale=1000))
        assert r.appointments == 3
        assert r.sales == 2
        assert r.revenue == 2000

    def test_counts_round_down_below_half(self) -> None:
        r = calculate_scenario_results(_scenario(leads_count=10, issue_rate=0.24, closing_rate=1))
        assert r.appointments == 2
        assert r.sales == 2

    def test_empty_scenario_is_all_zero(self) -> None:
        r = calculate_scenario_results({})
        for value in dataclasses.asdict(r).values():
            assert value == 0
            assert not math.isnan(value)

    def test_no_leads_and_no_spend_do_not_divide_by_zero(self) -> None:
        r = calculate_scenario_results(_scenario(leads_count=0, marketing_spend=0))
        assert r.cpl == 0
        assert r.roi == 0
        assert r.nsli == 0
        assert r.gross_margin_pct == 0
        assert r.net_margin_pct == 0

    def test_negative_inputs_clamp_to_zero(self) -> None:
        r = calculate_scenario_results(_scenario(leads_count=-100))
        assert r.appointments == 0
        assert r.revenue == 0


def test_assumptions_fill_from_defaults() -> None:
    out = assumptions_from({"leads_count": 100, "issue_rate": None}, {"issue_rate": 0.75, "average_sale": 4000})
    assert out["leads_count"] == 100
    assert out["issue_rate"] == 0.75
    assert out["average_sale"] == 4000
    assert out["owner_salary"] == 0


def test_build_scenario_row_caches_results() -> None:
    row, results = build_scenario_row({"name": "Base", "is_baseline": True, **_scenario()})
    assert row["name"] == "Base"
    assert row["is_baseline"] is True
    assert row["calculated_revenue"] == pytest.approx(720000)
    assert row["calculated_roi"] == pytest.approx(15)
    assert row["calculated_owner_take_home"] == pytest.approx(results.owner_take_home)
    assert "description" not in row


class TestCompare:
    def test_revenue_difference_and_pct(self) -> None:
        # 100 leads all issued; 25 vs 30 sales at 4000
        base = _scenario(leads_count=100, issue_rate=1, closing_rate=0.25)
        cand = _scenario(leads_count=100, issue_rate=1, closing_rate=0.30)
        out = compare_scenarios(base, cand)
        assert out["baseline"]["results"]["revenue"] == pytest.approx(100000)
        assert out["comparison"]["results"]["revenue"] == pytest.approx(120000)
        assert out["differences"]["revenue"] == pytest.approx(20000)
        assert out["differences"]["revenue_pct"] == pytest.approx(20)

    def test_pct_is_zero_when_baseline_not_positive(self) -> None:
        base = calculate_scenario_results(_scenario())
        assert base.net_profit < 0
        cand = dataclasses.replace(base, net_profit=base.net_profit + 10000)
        diff = compare_results(base, cand)
        assert diff.net_profit == pytest.approx(10000)
        assert diff.net_profit_pct == 0

    def test_cpl_and_roi_are_raw_deltas(self) -> None:
        base = calculate_scenario_results(_scenario())
        cand = calculate_scenario_results(_scenario(marketing_spend=96000))
        diff = compare_results(base, cand)
        assert diff.cpl == pytest.approx(80)
        assert diff.roi == pytest.approx(7.5 - 15)
        assert diff.revenue == 0
        assert diff.revenue_pct == 0

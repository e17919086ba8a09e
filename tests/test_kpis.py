from __future__ import annotations

import pytest

from paintops.kpis import calculate_kpis, filter_jobs_by_payment_status, job_value_by_status

JOBS = [
    {
        "status": "completed",
        "job_value": 10000,
        "gross_profit": 4000,
        "sales_commission_amount": 500,
        "sales_commission_paid": True,
        "pm_commission_amount": 300,
        "pm_commission_paid": False,
        "subcontractor_price": 6000,
        "subcontractor_paid": True,
        "deposit_paid": True,
        "job_paid": True,
    },
    {
        "status": "scheduled",
        "job_value": 5000,
        "gross_profit": 2000,
        "sales_commission_amount": 250,
        "sales_commission_paid": False,
        "pm_commission_amount": None,
        "pm_commission_paid": None,
        "subcontractor_price": 3000,
        "subcontractor_paid": False,
        "deposit_paid": True,
        "job_paid": False,
    },
    {"status": "lead", "job_value": 3000, "gross_profit": 1200},
]


def test_kpis_totals_and_splits() -> None:
    k = calculate_kpis(JOBS)
    assert k["job_count"] == 3
    assert k["total_job_value"] == pytest.approx(18000)
    assert k["average_job_value"] == pytest.approx(6000)
    assert k["total_gross_profit"] == pytest.approx(7200)
    assert k["sales_commissions_paid"] == pytest.approx(500)
    assert k["sales_commissions_pending"] == pytest.approx(250)
    assert k["pm_commissions_pending"] == pytest.approx(300)
    assert k["pm_commissions_paid"] == 0
    assert k["subcontractor_paid"] == pytest.approx(6000)
    assert k["subcontractor_pending"] == pytest.approx(3000)


def test_kpis_of_no_jobs_are_zero() -> None:
    k = calculate_kpis([])
    assert k["job_count"] == 0
    assert k["average_job_value"] == 0
    assert k["total_job_value"] == 0


def test_value_by_status_keeps_pipeline_order() -> None:
    out = job_value_by_status(JOBS)
    assert [r["status"] for r in out] == ["Lead", "Got the Job", "Scheduled", "Completed"]
    assert out[0] == {"status": "Lead", "value": 3000.0, "count": 1}
    assert out[1] == {"status": "Got the Job", "value": 0.0, "count": 0}
    assert out[3]["value"] == pytest.approx(10000)


@pytest.mark.parametrize(
    "payment_status,expected",
    [
        ("deposit_pending", [3000]),
        ("job_unpaid", [5000]),
        ("fully_paid", [10000]),
        ("all", [10000, 5000, 3000]),
    ],
)
def test_payment_status_filter(payment_status: str, expected: list[int]) -> None:
    out = filter_jobs_by_payment_status(JOBS, payment_status)
    assert [j["job_value"] for j in out] == expected

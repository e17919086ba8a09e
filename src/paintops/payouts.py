"""Subcontractor side of a job: crew labor cost, materials, profit on the payout."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Mapping

from .amounts import coerce_amount, safe_div
from .types import PaymentStatus, SubcontractorJobFinancials


def labor_cost(time_entries: Iterable[Mapping[str, Any]], hourly_rates: Mapping[str, Any]) -> tuple[float, float]:
    """Total (hours, cost) of the entries; an employee without a rate costs 0."""
    hours = 0.0
    cost = 0.0
    for entry in time_entries:
        worked = coerce_amount(entry.get("hours_worked"))
        hours += worked
        cost += worked * coerce_amount(hourly_rates.get(str(entry.get("employee_id"))))
    return hours, cost


def payment_status(final_payout: float, paid_amount: float) -> PaymentStatus:
    if paid_amount >= final_payout:
        return "paid"
    if paid_amount > 0:
        return "partial"
    return "pending"


def subcontractor_job_financials(
    final_payout: Any,
    time_entries: Iterable[Mapping[str, Any]],
    hourly_rates: Mapping[str, Any],
    material_cost: Any = 0,
    payments: Iterable[Mapping[str, Any]] = (),
) -> SubcontractorJobFinancials:
    """What the subcontractor keeps from one job.

    Only payments with status ``paid`` count towards the paid amount.
    """
    payout = coerce_amount(final_payout)
    materials = coerce_amount(material_cost)
    hours, labor = labor_cost(time_entries, hourly_rates)
    profit = payout - labor - materials
    paid = sum(coerce_amount(p.get("amount")) for p in payments if p.get("status", "paid") == "paid")
    return SubcontractorJobFinancials(
        earnings=payout,
        labor_hours=hours,
        labor_cost=labor,
        material_cost=materials,
        profit=profit,
        profit_margin_pct=safe_div(profit, payout) * 100,
        paid_amount=paid,
        payment_status=payment_status(payout, paid),
    )


def subcontractor_summary(jobs: Iterable[SubcontractorJobFinancials]) -> dict[str, float]:
    """Earned (fully paid) vs. pending payouts across jobs, with average profit."""
    jobs = list(jobs)
    earned = sum(j.earnings for j in jobs if j.payment_status == "paid")
    pending = sum(j.earnings for j in jobs if j.payment_status != "paid")
    return {
        "total_earnings": earned,
        "total_pending": pending,
        "total_paid": sum(j.paid_amount for j in jobs),
        "job_count": len(jobs),
        "avg_profit_per_job": safe_div(sum(j.profit for j in jobs), len(jobs)),
    }


def subcontractor_report(
    jobs: Iterable[Mapping[str, Any]],
    time_entries: Iterable[Mapping[str, Any]],
    hourly_rates: Mapping[str, Any],
    material_costs: Mapping[Any, Any] | None = None,
    payments: Mapping[Any, Iterable[Mapping[str, Any]]] | None = None,
) -> dict[str, Any]:
    """Per-job financials and the summary for a subcontractor's jobs.

    The payout is the job's ``subcontractor_price``. Without explicit payments
    a job counts as paid in full when ``subcontractor_paid`` is set.
    """
    material_costs = material_costs or {}
    payments = payments or {}
    entries_by_job: dict[Any, list[Mapping[str, Any]]] = defaultdict(list)
    for entry in time_entries:
        entries_by_job[entry.get("job_id")].append(entry)

    rows: list[dict[str, Any]] = []
    results: list[SubcontractorJobFinancials] = []
    for job in jobs:
        job_id = job.get("id")
        payout = coerce_amount(job.get("subcontractor_price"))
        if job_id in payments:
            job_payments = list(payments[job_id])
        else:
            job_payments = [{"amount": payout, "status": "paid"}] if job.get("subcontractor_paid") else []
        result = subcontractor_job_financials(
            payout, entries_by_job.get(job_id, []), hourly_rates, material_costs.get(job_id, 0), job_payments
        )
        results.append(result)
        rows.append(
            {
                "job_id": job_id,
                "job_number": job.get("job_number"),
                "client_name": job.get("client_name"),
                "address": job.get("address"),
                "completed_date": job.get("actual_end_date"),
                **result.to_dict(),
            }
        )
    return {"summary": subcontractor_summary(results), "jobs": rows}

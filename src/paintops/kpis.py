"""Portfolio-level KPIs over job rows."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import pandas as pd

from .types import JOB_STATUSES

_KPI_COLUMNS = {
    "job_value": 0.0,
    "gross_profit": 0.0,
    "sales_commission_amount": 0.0,
    "pm_commission_amount": 0.0,
    "subcontractor_price": 0.0,
    "sales_commission_paid": False,
    "pm_commission_paid": False,
    "subcontractor_paid": False,
    "deposit_paid": False,
    "job_paid": False,
}

STATUS_LABELS = {
    "lead": "Lead",
    "got_the_job": "Got the Job",
    "scheduled": "Scheduled",
    "completed": "Completed",
}


def _jobs_frame(jobs: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame([dict(j) for j in jobs])
    for col, default in _KPI_COLUMNS.items():
        if col not in df.columns:
            df[col] = default
        if isinstance(default, bool):
            df[col] = df[col].fillna(False).astype(bool)
        else:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
    return df


def calculate_kpis(jobs: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    df = _jobs_frame(jobs)
    count = len(df.index)
    total_value = float(df["job_value"].sum())

    def _split(amount_col: str, paid_col: str) -> tuple[float, float]:
        paid = df[paid_col]
        return float(df.loc[~paid, amount_col].sum()), float(df.loc[paid, amount_col].sum())

    sales_pending, sales_paid = _split("sales_commission_amount", "sales_commission_paid")
    pm_pending, pm_paid = _split("pm_commission_amount", "pm_commission_paid")
    sub_pending, sub_paid = _split("subcontractor_price", "subcontractor_paid")

    return {
        "total_job_value": total_value,
        "average_job_value": total_value / count if count > 0 else 0.0,
        "job_count": count,
        "total_gross_profit": float(df["gross_profit"].sum()),
        "sales_commissions_pending": sales_pending,
        "sales_commissions_paid": sales_paid,
        "pm_commissions_pending": pm_pending,
        "pm_commissions_paid": pm_paid,
        "subcontractor_pending": sub_pending,
        "subcontractor_paid": sub_paid,
    }


def job_value_by_status(jobs: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Value and count per status, always in pipeline order."""
    df = _jobs_frame(jobs)
    if "status" not in df.columns:
        df["status"] = None
    grouped = df.groupby("status")["job_value"].agg(["sum", "count"])
    out: list[dict[str, Any]] = []
    for status in JOB_STATUSES:
        value = float(grouped.loc[status, "sum"]) if status in grouped.index else 0.0
        count = int(grouped.loc[status, "count"]) if status in grouped.index else 0
        out.append({"status": STATUS_LABELS[status], "value": value, "count": count})
    return out


def filter_jobs_by_payment_status(jobs: list[dict[str, Any]], payment_status: str) -> list[dict[str, Any]]:
    if payment_status == "deposit_pending":
        return [j for j in jobs if not j.get("deposit_paid")]
    if payment_status == "job_unpaid":
        return [j for j in jobs if j.get("deposit_paid") and not j.get("job_paid")]
    if payment_status == "fully_paid":
        return [j for j in jobs if j.get("deposit_paid") and j.get("job_paid")]
    return jobs

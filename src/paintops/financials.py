"""Job and estimate financial breakdowns, commissions and the recompute-on-write job update."""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Any, Iterable, Mapping

import pandas as pd

from .amounts import coerce_amount, pct_of, safe_div
from .config import FinancialDefaults
from .types import BusinessSettings, EstimateTotals, FinancialBreakdown, ProfitFlag

SETTINGS_FIELDS: tuple[str, ...] = (
    "sub_payout_pct",
    "sub_materials_pct",
    "sub_labor_pct",
    "min_gross_profit_per_job",
    "target_gross_margin_pct",
    "default_deposit_pct",
)

# Fields a caller may set directly on a job. Everything derived from
# job_value or a commission percentage is written only by build_job_update.
JOB_EDITABLE_FIELDS: frozenset[str] = frozenset(
    {
        "client_name",
        "address",
        "city",
        "project_type",
        "status",
        "job_date",
        "scheduled_start_date",
        "scheduled_end_date",
        "actual_start_date",
        "actual_end_date",
        "job_value",
        "deposit_paid",
        "job_paid",
        "invoice_date",
        "payment_received_date",
        "sales_commission_pct",
        "sales_commission_paid",
        "pm_commission_pct",
        "pm_commission_paid",
        "subcontractor_paid",
        "notes",
        "sales_rep_id",
        "project_manager_id",
        "subcontractor_id",
        "latitude",
        "longitude",
    }
)

# Root inputs of the recompute-on-write rule.
RECOMPUTE_INPUTS: tuple[str, ...] = ("job_value", "sales_commission_pct", "pm_commission_pct")

FIRST_DOCUMENT_NUMBER = 1001


def settings_from_row(row: Mapping[str, Any] | None, defaults: FinancialDefaults | None = None) -> BusinessSettings:
    """Build calculation settings, falling back per field to the defaults."""
    defaults = defaults or FinancialDefaults()
    row = row or {}
    values = {}
    for name in SETTINGS_FIELDS:
        raw = row.get(name)
        values[name] = coerce_amount(getattr(defaults, name) if raw is None else raw)
    return BusinessSettings(**values)


def _profit_flag(gross_profit: float, gross_margin_pct: float, settings: BusinessSettings) -> ProfitFlag:
    if gross_profit < settings.min_gross_profit_per_job:
        return "RAISE_PRICE"
    if gross_margin_pct < settings.target_gross_margin_pct:
        return "FIX_SCOPE"
    return "OK"


def calculate_job_financials(job_value: Any, settings: BusinessSettings | Mapping[str, Any] | None) -> FinancialBreakdown:
    if not isinstance(settings, BusinessSettings):
        settings = settings_from_row(settings)
    value = coerce_amount(job_value)

    sub_materials = pct_of(value, settings.sub_materials_pct)
    sub_labor = pct_of(value, settings.sub_labor_pct)
    sub_total = sub_materials + sub_labor
    gross_profit = value - sub_total
    gross_margin_pct = safe_div(gross_profit, value) * 100
    deposit_required = pct_of(value, settings.default_deposit_pct)

    return FinancialBreakdown(
        sub_materials=sub_materials,
        sub_labor=sub_labor,
        sub_total=sub_total,
        gross_profit=gross_profit,
        gross_margin_pct=gross_margin_pct,
        deposit_required=deposit_required,
        balance_due=value - deposit_required,
        subcontractor_price=pct_of(value, settings.sub_payout_pct),
        meets_min_gp=gross_profit >= settings.min_gross_profit_per_job,
        meets_target_gm=gross_margin_pct >= settings.target_gross_margin_pct,
        profit_flag=_profit_flag(gross_profit, gross_margin_pct, settings),
    )


def calculate_commissions(job_value: Any, sales_commission_pct: Any, pm_commission_pct: Any) -> dict[str, float]:
    value = coerce_amount(job_value)
    return {
        "sales_commission_amount": pct_of(value, coerce_amount(sales_commission_pct)),
        "pm_commission_amount": pct_of(value, coerce_amount(pm_commission_pct)),
    }


def line_item_total(item: Mapping[str, Any]) -> float:
    """An explicit line total wins; otherwise quantity (1 when missing) times unit price."""
    explicit = coerce_amount(item.get("line_total"))
    if explicit:
        return explicit
    quantity = coerce_amount(item.get("quantity")) or 1.0
    return quantity * coerce_amount(item.get("unit_price"))


def calculate_estimate(
    line_items: Iterable[Mapping[str, Any]],
    discount_amount: Any,
    settings: BusinessSettings | Mapping[str, Any] | None,
) -> EstimateTotals:
    subtotal = sum(line_item_total(item) for item in line_items)
    discount = coerce_amount(discount_amount)
    total_price = coerce_amount(subtotal - discount)
    breakdown = calculate_job_financials(total_price, settings)
    return EstimateTotals(
        subtotal=subtotal,
        discount_amount=discount,
        total_price=total_price,
        sub_materials=breakdown.sub_materials,
        sub_labor=breakdown.sub_labor,
        sub_total=breakdown.sub_total,
        gross_profit=breakdown.gross_profit,
        gross_margin_pct=breakdown.gross_margin_pct,
        meets_min_gp=breakdown.meets_min_gp,
        meets_target_gm=breakdown.meets_target_gm,
    )


def _timestamp(value: Any) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def days_to_collect(invoice_date: Any, payment_received_date: Any) -> int:
    """Whole days from invoice to payment, floored."""
    elapsed = _timestamp(payment_received_date) - _timestamp(invoice_date)
    return int(math.floor(elapsed.total_seconds() / 86400))


def build_job_update(
    current: Mapping[str, Any],
    patch: Mapping[str, Any],
    settings: BusinessSettings,
) -> dict[str, Any]:
    """Merge ``patch`` onto ``current`` and recompute every derived field it touches.

    ``patch`` holds only the fields the caller sent. A new ``job_value``
    recomputes the whole financial breakdown and both commissions; a new
    commission percentage recomputes that commission against the effective
    job value. A ``None`` for ``job_value`` or a commission percentage keeps
    the stored value. The returned mapping is the column update to persist.
    """
    patch = {k: v for k, v in patch.items() if not (v is None and k in RECOMPUTE_INPUTS)}
    update: dict[str, Any] = {k: v for k, v in patch.items() if k in JOB_EDITABLE_FIELDS}

    value_changed = "job_value" in patch
    job_value = coerce_amount(patch["job_value"] if value_changed else current.get("job_value"))
    if value_changed:
        update["job_value"] = job_value
        update.update(calculate_job_financials(job_value, settings).to_dict())

    for role in ("sales", "pm"):
        pct_field = f"{role}_commission_pct"
        if value_changed or pct_field in patch:
            pct = coerce_amount(patch[pct_field] if pct_field in patch else current.get(pct_field))
            if pct_field in patch:
                update[pct_field] = pct
            update[f"{role}_commission_amount"] = pct_of(job_value, pct)

    if patch.get("payment_received_date") and current.get("invoice_date"):
        update["days_to_collect"] = days_to_collect(current["invoice_date"], patch["payment_received_date"])

    return update


def _next_number(last_number: str | None, prefix: str) -> str:
    number = FIRST_DOCUMENT_NUMBER
    if last_number:
        match = re.search(rf"{prefix}-(\d+)", last_number)
        if match:
            number = int(match.group(1)) + 1
    return f"{prefix}-{number}"


def next_job_number(last_job_number: str | None) -> str:
    return _next_number(last_job_number, "JOB")


def next_estimate_number(last_estimate_number: str | None) -> str:
    return _next_number(last_estimate_number, "EST")


def build_new_job(
    payload: Mapping[str, Any],
    settings: BusinessSettings,
    default_commission_pct: float,
    job_number: str,
    today: date | None = None,
) -> dict[str, Any]:
    """Row for a freshly created job, derived fields included.

    A commission is only earned when its assignee is set; the percentage then
    falls back to ``default_commission_pct``.
    """
    row: dict[str, Any] = {k: v for k, v in payload.items() if k in JOB_EDITABLE_FIELDS}
    job_value = coerce_amount(payload.get("job_value"))
    row["job_number"] = job_number
    row["job_value"] = job_value
    row["status"] = payload.get("status") or "lead"
    row["project_type"] = payload.get("project_type") or "interior"
    row["city"] = payload.get("city") or ""
    row["job_date"] = payload.get("job_date") or (today or date.today())
    row.update(calculate_job_financials(job_value, settings).to_dict())

    for role, assignee in (("sales", "sales_rep_id"), ("pm", "project_manager_id")):
        pct_field = f"{role}_commission_pct"
        pct = 0.0
        amount = 0.0
        if payload.get(assignee):
            raw = payload.get(pct_field)
            pct = coerce_amount(default_commission_pct if raw is None else raw)
            amount = pct_of(job_value, pct)
        row[pct_field] = pct
        row[f"{role}_commission_amount"] = amount
    return row

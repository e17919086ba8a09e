from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import matplotlib.ticker as mtick
import pandas as pd
from openpyxl import Workbook
from openpyxl.utils.dataframe import dataframe_to_rows

from .io import frame_from_rows
from .kpis import calculate_kpis, job_value_by_status
from .targets import MONTHLY_ACTUAL_FIELDS, MONTHLY_GOAL_FIELDS, cumulative_rollup

JOB_REPORT_COLUMNS = [
    "job_number",
    "client_name",
    "status",
    "job_date",
    "scheduled_start_date",
    "scheduled_end_date",
    "job_value",
    "sub_total",
    "gross_profit",
    "gross_margin_pct",
    "deposit_required",
    "balance_due",
    "subcontractor_price",
    "profit_flag",
    "sales_commission_amount",
    "pm_commission_amount",
    "deposit_paid",
    "job_paid",
    "days_to_collect",
]

TARGET_REPORT_COLUMNS = ["year", "month", "quarter", *MONTHLY_GOAL_FIELDS, *MONTHLY_ACTUAL_FIELDS]


def write_excel_pack(
    path: str | Path,
    jobs: list[dict[str, Any]],
    monthly_targets: list[dict[str, Any]] | None = None,
    scenarios: list[dict[str, Any]] | None = None,
) -> Path:
    """Workbook with Jobs, KPIs and (when given) Targets, Cumulative and Scenarios sheets."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)

    _add_df_sheet(wb, "Jobs", frame_from_rows(jobs, JOB_REPORT_COLUMNS))

    kpis = calculate_kpis(jobs)
    kpi_df = pd.DataFrame({"KPI": list(kpis.keys()), "Value": list(kpis.values())})
    _add_df_sheet(wb, "KPIs", kpi_df)
    _add_df_sheet(wb, "By Status", pd.DataFrame(job_value_by_status(jobs)))

    if monthly_targets:
        _add_df_sheet(wb, "Targets", frame_from_rows(monthly_targets, TARGET_REPORT_COLUMNS))
        cumulative = cumulative_rollup(monthly_targets, MONTHLY_GOAL_FIELDS, MONTHLY_ACTUAL_FIELDS, "month")
        _add_df_sheet(wb, "Cumulative", frame_from_rows(cumulative, TARGET_REPORT_COLUMNS))

    if scenarios:
        _add_df_sheet(wb, "Scenarios", pd.DataFrame(scenarios))

    wb.save(path)
    return path


def save_target_chart(
    out_dir: str | Path,
    monthly_targets: Iterable[Mapping[str, Any]],
    metric: str = "revenue",
) -> Path:
    """Monthly goal bars with the running goal and running actual overlaid."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    monthly_targets = list(monthly_targets)
    goal_col, actual_col = f"{metric}_goal", f"{metric}_actual"
    actual_fields = [actual_col] if actual_col in MONTHLY_ACTUAL_FIELDS else []
    rows = cumulative_rollup(monthly_targets, [goal_col], actual_fields, "month")
    raw = sorted((dict(r) for r in monthly_targets), key=lambda r: r.get("month") or 0)

    months = [int(r["month"]) for r in rows]
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(months, [float(r.get(goal_col) or 0) for r in raw], color="#9ecae1", label="Monthly goal")
    ax.plot(months, [r[goal_col] for r in rows], color="#3182bd", label="Cumulative goal")
    if actual_fields:
        ax.plot(months, [r[actual_col] for r in rows], color="#e6550d", linestyle="--", label="Cumulative actual")
    ax.set_xticks(range(1, 13))
    ax.set_xlabel("Month")
    ax.set_title(f"{metric.replace('_', ' ').title()} goals")
    ax.yaxis.set_major_formatter(mtick.StrMethodFormatter("{x:,.0f}"))
    ax.grid(True, alpha=0.25)
    ax.legend()
    p = out_dir / f"targets_{_safe_filename(metric)}.png"
    fig.tight_layout()
    fig.savefig(p, dpi=160)
    plt.close(fig)
    return p


def _add_df_sheet(wb: Workbook, title: str, df: pd.DataFrame) -> None:
    df = _excel_safe_df(df)
    ws = wb.create_sheet(title=title[:31])
    for r in dataframe_to_rows(df, index=False, header=True):
        ws.append(r)
    ws.freeze_panes = "A2"


def _safe_filename(s: str) -> str:
    return "".join(ch if ch.isalnum() or ch in ("-", "_") else "_" for ch in s).strip("_")


def _excel_safe_df(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for col in out.columns:
        # Object columns may hold Decimals, tz-aware datetimes or dicts from the DB.
        if out[col].dtype == "object":
            out[col] = out[col].map(lambda v: v if v is None or isinstance(v, (str, int, float, bool)) else str(v))
    # Missing cells stay blank instead of NaN.
    return out.astype(object).where(out.notna(), None)

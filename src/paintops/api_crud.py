"""FastAPI APIRouter with organization-scoped endpoints for jobs, scenarios, targets and schedules."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, time, timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field, NonNegativeFloat, field_validator

from . import db
from .config import get_config
from .errors import NotFoundError, ValidationError
from .financials import (
    build_job_update,
    build_new_job,
    calculate_estimate,
    line_item_total,
    next_estimate_number,
    next_job_number,
    settings_from_row,
)
from .kpis import calculate_kpis, filter_jobs_by_payment_status, job_value_by_status
from .payouts import subcontractor_report
from .scenario import build_scenario_row, calculate_scenario_results, compare_scenarios
from .scheduling import (
    PERIODS,
    filter_jobs,
    hours_worked,
    jobs_on_date,
    mappable_jobs,
    month_grid_range,
    month_view,
    week_start,
    week_view,
)
from .targets import (
    DAILY_ACTUAL_FIELDS,
    DAILY_GOAL_FIELDS,
    MONTHLY_ACTUAL_FIELDS,
    MONTHLY_GOAL_FIELDS,
    achievement_pct,
    achievement_status,
    cumulative_rollup,
    daily_goal,
    default_curve_rows,
    generate_monthly_targets,
    yearly_rollup,
)
from .types import BusinessSettings, JobStatus

router = APIRouter(prefix="/api")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _conn():
    return db.get_connection()


def _404(item: str):
    raise NotFoundError(item)


def get_current_org(request: Request) -> str | None:
    """Extract organization ID from X-Organization-ID header (set by the upstream gateway)."""
    return request.headers.get("X-Organization-ID") or None


def require_org(request: Request) -> str:
    """Raise 401 if no organization is attached to the request."""
    org_id = get_current_org(request)
    if not org_id:
        raise HTTPException(status_code=401, detail="Organization required")
    return org_id


def _settings(conn, org_id: str) -> BusinessSettings:
    return settings_from_row(db.get_business_settings(conn, org_id), get_config().financials)


def _check_period(period: str) -> str:
    if period not in PERIODS:
        raise ValidationError(f"period must be one of {', '.join(PERIODS)}")
    return period


def _check_job(conn, org_id: str, job_id: int) -> dict[str, Any]:
    job = db.get_job(conn, org_id, job_id)
    if not job:
        _404("Job")
    return job


def _check_scenario(conn, org_id: str, scenario_id: int) -> dict[str, Any]:
    scenario = db.get_scenario(conn, org_id, scenario_id)
    if not scenario:
        _404("Scenario")
    return scenario


def _with_results(scenario: dict[str, Any]) -> dict[str, Any]:
    return {**scenario, "results": calculate_scenario_results(scenario).to_dict()}


# ---------------------------------------------------------------------------
# Pydantic request models
# ---------------------------------------------------------------------------

class BusinessSettingsUpdate(BaseModel):
    sub_payout_pct: float | None = Field(default=None, ge=0, le=100)
    sub_materials_pct: float | None = Field(default=None, ge=0, le=100)
    sub_labor_pct: float | None = Field(default=None, ge=0, le=100)
    min_gross_profit_per_job: float | None = Field(default=None, ge=0)
    target_gross_margin_pct: float | None = Field(default=None, ge=0, le=100)
    default_deposit_pct: float | None = Field(default=None, ge=0, le=100)


class JobCreate(BaseModel):
    client_name: str
    address: str = ""
    city: str = ""
    project_type: str = "interior"
    status: JobStatus = "lead"
    job_date: date | None = None
    scheduled_start_date: date | None = None
    scheduled_end_date: date | None = None
    job_value: float = Field(default=0, ge=0)
    sales_commission_pct: float | None = Field(default=None, ge=0, le=100)
    pm_commission_pct: float | None = Field(default=None, ge=0, le=100)
    sales_rep_id: str | None = None
    project_manager_id: str | None = None
    subcontractor_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    notes: str = ""


NON_NULL_JOB_FIELDS: tuple[str, ...] = (
    "client_name",
    "address",
    "city",
    "project_type",
    "status",
    "job_value",
    "sales_commission_pct",
    "pm_commission_pct",
    "sales_commission_paid",
    "pm_commission_paid",
    "deposit_paid",
    "job_paid",
    "subcontractor_paid",
    "notes",
)


class JobUpdate(BaseModel):
    client_name: str | None = None
    address: str | None = None
    city: str | None = None
    project_type: str | None = None
    status: JobStatus | None = None
    job_date: date | None = None
    scheduled_start_date: date | None = None
    scheduled_end_date: date | None = None
    actual_start_date: date | None = None
    actual_end_date: date | None = None
    job_value: float | None = Field(default=None, ge=0)
    sales_commission_pct: float | None = Field(default=None, ge=0, le=100)
    pm_commission_pct: float | None = Field(default=None, ge=0, le=100)
    sales_commission_paid: bool | None = None
    pm_commission_paid: bool | None = None
    deposit_paid: bool | None = None
    job_paid: bool | None = None
    subcontractor_paid: bool | None = None
    invoice_date: date | None = None
    payment_received_date: date | None = None
    sales_rep_id: str | None = None
    project_manager_id: str | None = None
    subcontractor_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None

    @field_validator(*NON_NULL_JOB_FIELDS, mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Omitted is fine; an explicit null on a NOT NULL column is not.
        if value is None:
            raise ValueError("may not be null")
        return value


class ScenarioAssumptions(BaseModel):
    leads_count: float | None = Field(default=None, ge=0)
    issue_rate: float | None = Field(default=None, ge=0)
    closing_rate: float | None = Field(default=None, ge=0)
    average_sale: float | None = Field(default=None, ge=0)
    markup_ratio: float | None = Field(default=None, ge=0)
    marketing_spend: float | None = Field(default=None, ge=0)
    cogs_labor_pct: float | None = Field(default=None, ge=0)
    cogs_materials_pct: float | None = Field(default=None, ge=0)
    cogs_other_pct: float | None = Field(default=None, ge=0)
    sales_commission_pct: float | None = Field(default=None, ge=0)
    pm_commission_pct: float | None = Field(default=None, ge=0)
    owner_salary: float | None = Field(default=None, ge=0)
    production_salary: float | None = Field(default=None, ge=0)
    sales_salary: float | None = Field(default=None, ge=0)
    admin_salary: float | None = Field(default=None, ge=0)
    other_overhead: float | None = Field(default=None, ge=0)


class ScenarioCreate(ScenarioAssumptions):
    name: str
    description: str = ""
    is_baseline: bool = False


class ScenarioUpdate(ScenarioAssumptions):
    name: str | None = None
    description: str | None = None
    is_baseline: bool | None = None


class ScenarioCompare(BaseModel):
    baseline_id: int
    comparison_id: int


class SeasonalCurveUpsert(BaseModel):
    year: int
    metric: str
    month: int = Field(ge=1, le=12)
    weight: float = Field(ge=0)


class SeasonalDefaults(BaseModel):
    year: int


class AnnualGoals(BaseModel):
    leads: float = Field(default=0, ge=0)
    sales: float = Field(default=0, ge=0)
    revenue: float = Field(default=0, ge=0)
    gross_profit: float = Field(default=0, ge=0)
    reviews: float = Field(default=0, ge=0)
    marketing_spend: float = Field(default=0, ge=0)


class MonthlyTargetsGenerate(BaseModel):
    year: int
    annual_goals: AnnualGoals


class MonthlyActualsUpdate(BaseModel):
    leads_actual: float | None = Field(default=None, ge=0)
    appointments_actual: float | None = Field(default=None, ge=0)
    sales_actual: float | None = Field(default=None, ge=0)
    revenue_actual: float | None = Field(default=None, ge=0)
    reviews_actual: float | None = Field(default=None, ge=0)


class DailyTargetUpsert(BaseModel):
    day: date = Field(alias="date")
    leads_goal: float | None = Field(default=None, ge=0)
    appointments_goal: float | None = Field(default=None, ge=0)
    sales_goal: float | None = Field(default=None, ge=0)
    revenue_goal: float | None = Field(default=None, ge=0)
    reviews_goal: float | None = Field(default=None, ge=0)
    leads_actual: float | None = Field(default=None, ge=0)
    appointments_actual: float | None = Field(default=None, ge=0)
    sales_actual: float | None = Field(default=None, ge=0)
    revenue_actual: float | None = Field(default=None, ge=0)
    reviews_actual: float | None = Field(default=None, ge=0)


class TimeEntryUpsert(BaseModel):
    employee_id: str
    job_id: int
    work_date: date
    start_time: time
    end_time: time
    notes: str | None = None


class EstimateLineItem(BaseModel):
    description: str = ""
    quantity: float | None = Field(default=None, ge=0)
    unit_price: float = Field(default=0, ge=0)
    line_total: float | None = Field(default=None, ge=0)


class EstimateCreate(BaseModel):
    client_name: str = ""
    address: str = ""
    status: str = "draft"
    estimate_date: date | None = None
    valid_until: date | None = None
    discount_amount: float = Field(default=0, ge=0)
    notes: str = ""
    line_items: list[EstimateLineItem] = Field(default_factory=list)


class SubcontractorPayment(BaseModel):
    amount: float = Field(ge=0)
    status: str = "paid"


class SubcontractorFinancialsRequest(BaseModel):
    hourly_rates: dict[str, NonNegativeFloat] = Field(default_factory=dict)
    material_costs: dict[int, NonNegativeFloat] = Field(default_factory=dict)
    payments: dict[int, list[SubcontractorPayment]] | None = None


# ---------------------------------------------------------------------------
# Business settings
# ---------------------------------------------------------------------------

@router.get("/settings/business")
def get_business_settings(request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        row = db.get_business_settings(conn, org_id)
        settings = settings_from_row(row, get_config().financials)
        return {"organization_id": org_id, "is_default": row is None, **asdict(settings)}
    finally:
        conn.close()


@router.put("/settings/business")
def update_business_settings(body: BusinessSettingsUpdate, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        return db.upsert_business_settings(conn, org_id, **body.model_dump(exclude_none=True))
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

@router.get("/jobs/kpis")
def job_kpis(request: Request, payment_status: str | None = None):
    org_id = require_org(request)
    conn = _conn()
    try:
        jobs, _ = db.list_jobs(conn, org_id)
        if payment_status:
            jobs = filter_jobs_by_payment_status(jobs, payment_status)
        return {"kpis": calculate_kpis(jobs), "by_status": job_value_by_status(jobs)}
    finally:
        conn.close()


@router.get("/jobs")
def list_jobs(
    request: Request,
    status: str | None = None,
    subcontractor_id: str | None = None,
    period: str = "all",
    payment_status: str | None = None,
    search: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    org_id = require_org(request)
    _check_period(period)
    status = None if status == "all" else status
    subcontractor_id = None if subcontractor_id == "all" else subcontractor_id
    conn = _conn()
    try:
        if period == "all" and not payment_status:
            jobs, total = db.list_jobs(
                conn, org_id, status=status, subcontractor_id=subcontractor_id, search=search, limit=limit, offset=offset
            )
            return {"jobs": jobs, "total": total, "limit": limit, "offset": offset}
        jobs, _ = db.list_jobs(conn, org_id, status=status, subcontractor_id=subcontractor_id, search=search)
        jobs = filter_jobs(jobs, period=period)
        if payment_status:
            jobs = filter_jobs_by_payment_status(jobs, payment_status)
        return {"jobs": jobs[offset:offset + limit], "total": len(jobs), "limit": limit, "offset": offset}
    finally:
        conn.close()


@router.post("/jobs", status_code=201)
def create_job(body: JobCreate, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        settings = _settings(conn, org_id)
        job_number = next_job_number(db.get_last_job_number(conn, org_id))
        row = build_new_job(body.model_dump(), settings, get_config().default_commission_pct, job_number)
        return db.create_job(conn, org_id, row)
    finally:
        conn.close()


@router.get("/jobs/{job_id}")
def get_job(job_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        return _check_job(conn, org_id, job_id)
    finally:
        conn.close()


@router.patch("/jobs/{job_id}")
def update_job(job_id: int, body: JobUpdate, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        current = _check_job(conn, org_id, job_id)
        update = build_job_update(current, body.model_dump(exclude_unset=True), _settings(conn, org_id))
        updated = db.update_job(conn, org_id, job_id, update)
        if not updated:
            _404("Job")
        return updated
    finally:
        conn.close()


@router.delete("/jobs/{job_id}")
def delete_job(job_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        if not db.delete_job(conn, org_id, job_id):
            _404("Job")
        return {"ok": True}
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Schedule (calendar & map)
# ---------------------------------------------------------------------------

@router.get("/schedule/day")
def schedule_day(
    request: Request,
    day: date = Query(alias="date"),
    status: str = "all",
    subcontractor_id: str = "all",
):
    org_id = require_org(request)
    conn = _conn()
    try:
        jobs = db.list_scheduled_jobs(conn, org_id, start=day, end=day)
        jobs = filter_jobs(jobs, status=status, subcontractor_id=subcontractor_id)
        return {"date": day, "jobs": jobs_on_date(jobs, day)}
    finally:
        conn.close()


@router.get("/schedule/week")
def schedule_week(
    request: Request,
    day: date = Query(alias="date"),
    status: str = "all",
    subcontractor_id: str = "all",
):
    org_id = require_org(request)
    first = week_start(day)
    conn = _conn()
    try:
        jobs = db.list_scheduled_jobs(conn, org_id, start=first, end=first + timedelta(days=6))
        jobs = filter_jobs(jobs, status=status, subcontractor_id=subcontractor_id)
        return {"week_start": first, "days": week_view(jobs, day)}
    finally:
        conn.close()


@router.get("/schedule/month")
def schedule_month(
    request: Request,
    year: int,
    month: int = Query(ge=1, le=12),
    status: str = "all",
    subcontractor_id: str = "all",
):
    org_id = require_org(request)
    conn = _conn()
    try:
        first, last = month_grid_range(year, month)
        jobs = db.list_scheduled_jobs(conn, org_id, start=first, end=last)
        jobs = filter_jobs(jobs, status=status, subcontractor_id=subcontractor_id)
        return {"year": year, "month": month, "weeks": month_view(jobs, year, month)}
    finally:
        conn.close()


@router.get("/schedule/map")
def schedule_map(
    request: Request,
    status: str = "all",
    subcontractor_id: str = "all",
    period: str = "all",
):
    org_id = require_org(request)
    _check_period(period)
    conn = _conn()
    try:
        jobs = db.list_scheduled_jobs(conn, org_id)
        return {"jobs": mappable_jobs(filter_jobs(jobs, status, subcontractor_id, period))}
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

@router.get("/scenarios")
def list_scenarios(request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        return [_with_results(s) for s in db.list_scenarios(conn, org_id)]
    finally:
        conn.close()


@router.post("/scenarios", status_code=201)
def create_scenario(body: ScenarioCreate, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        row, results = build_scenario_row(body.model_dump(), get_config().scenario_defaults)
        created = db.create_scenario(conn, org_id, row)
        return {**created, "results": results.to_dict()}
    finally:
        conn.close()


# Registered before /scenarios/{scenario_id} so "compare" is not read as an id.
@router.post("/scenarios/compare")
def compare(body: ScenarioCompare, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        baseline = db.get_scenario(conn, org_id, body.baseline_id)
        comparison = db.get_scenario(conn, org_id, body.comparison_id)
        if not baseline or not comparison:
            _404("One or both scenarios")
        return compare_scenarios(baseline, comparison)
    finally:
        conn.close()


@router.get("/scenarios/{scenario_id}")
def get_scenario(scenario_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        return _with_results(_check_scenario(conn, org_id, scenario_id))
    finally:
        conn.close()


@router.put("/scenarios/{scenario_id}")
def update_scenario(scenario_id: int, body: ScenarioUpdate, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        current = _check_scenario(conn, org_id, scenario_id)
        patch = body.model_dump(exclude_none=True)
        row, results = build_scenario_row({**current, **patch})
        # Only touch the baseline flag when the caller sent it.
        if "is_baseline" not in patch:
            row.pop("is_baseline", None)
        updated = db.update_scenario(conn, org_id, scenario_id, row)
        return {**updated, "results": results.to_dict()}
    finally:
        conn.close()


@router.delete("/scenarios/{scenario_id}")
def delete_scenario(scenario_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        if not db.delete_scenario(conn, org_id, scenario_id):
            _404("Scenario")
        return {"ok": True}
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Seasonal curves
# ---------------------------------------------------------------------------

@router.get("/seasonal-curves")
def list_seasonal_curves(request: Request, year: int, metric: str | None = None):
    org_id = require_org(request)
    conn = _conn()
    try:
        return db.list_seasonal_curves(conn, org_id, year, metric=metric)
    finally:
        conn.close()


@router.post("/seasonal-curves", status_code=201)
def upsert_seasonal_curve(body: SeasonalCurveUpsert, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        return db.upsert_seasonal_curve(conn, org_id, body.year, body.metric, body.month, body.weight)
    finally:
        conn.close()


@router.put("/seasonal-curves/defaults")
def init_default_curves(body: SeasonalDefaults, request: Request):
    org_id = require_org(request)
    cfg = get_config()
    conn = _conn()
    try:
        rows = default_curve_rows(body.year, cfg.seasonal_weights, cfg.seasonal_metrics)
        inserted = db.insert_default_curves(conn, org_id, rows)
        return {"inserted": inserted, "curves": db.list_seasonal_curves(conn, org_id, body.year)}
    finally:
        conn.close()


@router.delete("/seasonal-curves/{curve_id}")
def delete_seasonal_curve(curve_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        if not db.delete_seasonal_curve(conn, org_id, curve_id):
            _404("Seasonal curve")
        return {"ok": True}
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------

@router.post("/targets/monthly/generate")
def generate_targets(body: MonthlyTargetsGenerate, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        curves = db.list_seasonal_curves(conn, org_id, body.year)
        if not curves:
            _404(f"Seasonal curves for {body.year}")
        targets = generate_monthly_targets(body.year, body.annual_goals.model_dump(), curves)
        saved = db.upsert_monthly_targets(conn, org_id, [t.to_dict() for t in targets])
        return {"year": body.year, "targets": saved}
    finally:
        conn.close()


@router.get("/targets/monthly")
def list_monthly_targets(request: Request, year: int):
    org_id = require_org(request)
    conn = _conn()
    try:
        return {"year": year, "targets": db.list_monthly_targets(conn, org_id, year)}
    finally:
        conn.close()


@router.get("/targets/monthly/rollup")
def monthly_rollup(request: Request, year: int):
    org_id = require_org(request)
    conn = _conn()
    try:
        rows = db.list_monthly_targets(conn, org_id, year)
        return {
            "year": year,
            "cumulative": cumulative_rollup(rows, MONTHLY_GOAL_FIELDS, MONTHLY_ACTUAL_FIELDS, "month"),
            "totals": yearly_rollup(rows),
        }
    finally:
        conn.close()


@router.patch("/targets/monthly/{year}/{month}")
def update_monthly_actuals(year: int, month: int, body: MonthlyActualsUpdate, request: Request):
    org_id = require_org(request)
    fields = body.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError("No actual values supplied")
    conn = _conn()
    try:
        updated = db.update_monthly_actuals(conn, org_id, year, month, **fields)
        if not updated:
            _404("Monthly target")
        return updated
    finally:
        conn.close()


@router.get("/targets/daily/suggested")
def suggested_daily_goals(request: Request, year: int, month: int = Query(ge=1, le=12)):
    org_id = require_org(request)
    conn = _conn()
    try:
        monthly = next((t for t in db.list_monthly_targets(conn, org_id, year) if t["month"] == month), None)
        if not monthly:
            _404("Monthly target")
        goals = {
            f: daily_goal(monthly.get(f), year, month)
            for f in DAILY_GOAL_FIELDS
            if f in monthly
        }
        return {"year": year, "month": month, "daily_goals": goals}
    finally:
        conn.close()


@router.put("/targets/daily")
def upsert_daily_target(body: DailyTargetUpsert, request: Request):
    org_id = require_org(request)
    fields = body.model_dump(exclude_none=True)
    day = fields.pop("day")
    conn = _conn()
    try:
        return db.upsert_daily_target(conn, org_id, day, **fields)
    finally:
        conn.close()


@router.get("/targets/daily/cumulative")
def daily_cumulative(request: Request, start: date, end: date):
    org_id = require_org(request)
    if end < start:
        raise ValidationError("end must not be before start")
    conn = _conn()
    try:
        rows = db.list_daily_targets(conn, org_id, start, end)
    finally:
        conn.close()
    cumulative = cumulative_rollup(rows, DAILY_GOAL_FIELDS, DAILY_ACTUAL_FIELDS, "date")
    achievement: dict[str, dict[str, Any]] = {}
    if cumulative:
        last = cumulative[-1]
        for goal_field, actual_field in zip(DAILY_GOAL_FIELDS, DAILY_ACTUAL_FIELDS):
            pct = achievement_pct(last[actual_field], last[goal_field])
            achievement[goal_field.removesuffix("_goal")] = {"pct": pct, "status": achievement_status(pct)}
    return {"start": start, "end": end, "cumulative": cumulative, "achievement": achievement}


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------

@router.get("/time-entries")
def list_time_entries(
    request: Request,
    job_id: int | None = None,
    employee_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
):
    org_id = require_org(request)
    conn = _conn()
    try:
        return db.list_time_entries(conn, org_id, job_id=job_id, employee_id=employee_id, start=start, end=end)
    finally:
        conn.close()


@router.post("/time-entries", status_code=201)
def upsert_time_entry(body: TimeEntryUpsert, request: Request):
    org_id = require_org(request)
    hours = hours_worked(body.work_date, body.start_time, body.end_time)
    conn = _conn()
    try:
        _check_job(conn, org_id, body.job_id)
        return db.upsert_time_entry(conn, org_id, body.employee_id, body.job_id, body.work_date, hours, body.notes)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Estimates
# ---------------------------------------------------------------------------

@router.get("/estimates")
def list_estimates(request: Request, status: str | None = None):
    org_id = require_org(request)
    conn = _conn()
    try:
        return db.list_estimates(conn, org_id, status=status)
    finally:
        conn.close()


@router.post("/estimates", status_code=201)
def create_estimate(body: EstimateCreate, request: Request):
    org_id = require_org(request)
    items = [
        {
            "description": item.description,
            "quantity": item.quantity or 1.0,
            "unit_price": item.unit_price,
            "line_total": line_item_total(item.model_dump()),
        }
        for item in body.line_items
    ]
    estimate_date = body.estimate_date or date.today()
    conn = _conn()
    try:
        totals = calculate_estimate(items, body.discount_amount, _settings(conn, org_id))
        row = {
            **body.model_dump(exclude={"line_items"}),
            **totals.to_dict(),
            "estimate_number": next_estimate_number(db.get_last_estimate_number(conn, org_id)),
            "estimate_date": estimate_date,
            "valid_until": body.valid_until or estimate_date + timedelta(days=30),
        }
        return db.create_estimate(conn, org_id, row, items)
    finally:
        conn.close()


@router.get("/estimates/{estimate_id}")
def get_estimate(estimate_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        estimate = db.get_estimate(conn, org_id, estimate_id)
        if not estimate:
            _404("Estimate")
        return estimate
    finally:
        conn.close()


@router.delete("/estimates/{estimate_id}")
def delete_estimate(estimate_id: int, request: Request):
    org_id = require_org(request)
    conn = _conn()
    try:
        if not db.delete_estimate(conn, org_id, estimate_id):
            _404("Estimate")
        return {"ok": True}
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Subcontractor payouts
# ---------------------------------------------------------------------------

@router.post("/subcontractors/{subcontractor_id}/financials")
def subcontractor_financials(subcontractor_id: str, body: SubcontractorFinancialsRequest, request: Request):
    """Labor, materials and profit on each payout for one subcontractor's jobs."""
    org_id = require_org(request)
    conn = _conn()
    try:
        jobs, _ = db.list_jobs(conn, org_id, subcontractor_id=subcontractor_id)
        job_ids = {job["id"] for job in jobs}
        entries = [e for e in db.list_time_entries(conn, org_id) if e.get("job_id") in job_ids]
    finally:
        conn.close()
    payments = None
    if body.payments is not None:
        payments = {job_id: [p.model_dump() for p in rows] for job_id, rows in body.payments.items()}
    report = subcontractor_report(jobs, entries, body.hourly_rates, body.material_costs, payments)
    return {"subcontractor_id": subcontractor_id, **report}

from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import asdict

import psycopg2
from fastapi import FastAPI, Request
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .api_crud import BusinessSettingsUpdate, EstimateLineItem, ScenarioAssumptions, router as crud_router
from .config import GoalFormula, get_config
from .db import get_connection, init_db
from .errors import NotFoundError, ValidationError
from .financials import (
    calculate_commissions,
    calculate_estimate,
    calculate_job_financials,
    line_item_total,
    settings_from_row,
)
from .scenario import assumptions_from, calculate_scenario_results, compare_results
from .targets import calculate_goals, goals_for_period


# ---------------------------------------------------------------------------
# Rate limiter key: organization from header if present, else remote IP
# ---------------------------------------------------------------------------

def _rate_key(request: Request) -> str:
    org_id = request.headers.get("X-Organization-ID")
    return f"org:{org_id}" if org_id else f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=_rate_key)
logger = logging.getLogger("paintops.api")

app = FastAPI(title="PaintOps API", version="0.1.0")
app.state.limiter = limiter


def _request_id_from_request(request: Request) -> str:
    return getattr(request.state, "request_id", "") or request.headers.get("X-Request-ID", "")


def _http_error_code(status_code: int) -> str:
    return {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        409: "conflict",
        422: "validation_error",
        429: "rate_limited",
        500: "internal_error",
        503: "service_unavailable",
    }.get(status_code, "http_error")


def _error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    detail: object,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error": {
                "code": code,
                "message": message,
                "request_id": _request_id_from_request(request),
            },
        },
    )


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_exception_handler(request: Request, _: RateLimitExceeded) -> JSONResponse:
    return _error_response(
        request,
        status_code=429,
        code="rate_limited",
        message="Rate limit exceeded",
        detail="Rate limit exceeded",
    )


@app.exception_handler(NotFoundError)
async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(request, status_code=404, code="not_found", message=str(exc), detail=str(exc))


@app.exception_handler(ValidationError)
async def _domain_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(request, status_code=400, code="bad_request", message=str(exc), detail=str(exc))


@app.exception_handler(psycopg2.IntegrityError)
async def _integrity_error_handler(request: Request, exc: psycopg2.IntegrityError) -> JSONResponse:
    constraint = getattr(getattr(exc, "diag", None), "constraint_name", None)
    logger.warning("Integrity conflict rid=%s constraint=%s", _request_id_from_request(request), constraint)
    if constraint == "scenarios_one_baseline_per_org":
        message = "Another scenario became the baseline concurrently; retry the request"
    else:
        message = "Conflicting write rejected by the database"
    return _error_response(request, status_code=409, code="conflict", message=message, detail=message)


@app.exception_handler(HTTPException)
async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = str(detail.get("message") or detail.get("detail") or "Request failed")
    else:
        message = str(detail)
    return _error_response(
        request,
        status_code=exc.status_code,
        code=_http_error_code(exc.status_code),
        message=message,
        detail=detail,
    )


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        request,
        status_code=422,
        code="validation_error",
        message="Request validation failed",
        detail=exc.errors(),
    )


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled server exception rid=%s method=%s path=%s",
        _request_id_from_request(request),
        request.method,
        request.url.path,
    )
    return _error_response(
        request,
        status_code=500,
        code="internal_error",
        message="Internal server error",
        detail="Internal server error",
    )


@app.middleware("http")
async def _request_context_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    response.headers["X-Request-ID"] = request.state.request_id
    logger.info(
        "%s %s -> %s in %.2fms rid=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.state.request_id,
    )
    return response


@app.on_event("startup")
def startup():
    """Initialize database tables on startup."""
    try:
        init_db()
    except Exception:
        logger.exception(
            "DB init failed during startup; DB-backed endpoints may fail until database is reachable"
        )


# ALLOWED_ORIGINS: comma-separated list of allowed origins, e.g.
#   ALLOWED_ORIGINS=https://app.example.com,http://localhost:3000
_default_origins = "http://localhost:3000,http://127.0.0.1:3000"
_origins_env = os.environ.get("ALLOWED_ORIGINS", _default_origins)
_allowed_origins = [o.strip() for o in _origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(crud_router)


@app.get("/")
def root():
    return {"ok": True}


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/readyz")
def readyz():
    conn = None
    try:
        conn = get_connection()
        return {"ok": True}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc.__class__.__name__}") from exc
    finally:
        if conn is not None:
            conn.close()


# ---------------------------------------------------------------------------
# Rate limit helpers
# ---------------------------------------------------------------------------

def _guest_limit() -> str:
    return "20/minute"


def _org_limit() -> str:
    return "120/minute"


def _get_limit(key: str) -> str:
    return _org_limit() if key.startswith("org:") else _guest_limit()


# ---------------------------------------------------------------------------
# Stateless calculators
# ---------------------------------------------------------------------------

class JobFinancialsRequest(BaseModel):
    job_value: float = Field(ge=0)
    settings: BusinessSettingsUpdate | None = None
    sales_commission_pct: float = Field(default=0, ge=0, le=100)
    pm_commission_pct: float = Field(default=0, ge=0, le=100)


class ScenarioCalcRequest(ScenarioAssumptions):
    baseline: ScenarioAssumptions | None = None


@app.post("/calculate/job-financials")
@limiter.limit(_get_limit)
def calculate_job(request: Request, body: JobFinancialsRequest):
    overrides = body.settings.model_dump(exclude_none=True) if body.settings else {}
    settings = settings_from_row(overrides, get_config().financials)
    breakdown = calculate_job_financials(body.job_value, settings)
    return {
        "job_value": body.job_value,
        "settings": asdict(settings),
        **breakdown.to_dict(),
        **calculate_commissions(body.job_value, body.sales_commission_pct, body.pm_commission_pct),
    }


@app.post("/calculate/scenario")
@limiter.limit(_get_limit)
def calculate_scenario(request: Request, body: ScenarioCalcRequest):
    defaults = get_config().scenario_defaults
    candidate = assumptions_from(body.model_dump(exclude={"baseline"}), defaults)
    results = calculate_scenario_results(candidate)
    out: dict[str, object] = {"assumptions": candidate, "results": results.to_dict()}
    if body.baseline is not None:
        base_results = calculate_scenario_results(assumptions_from(body.baseline.model_dump(), defaults))
        out["baseline_results"] = base_results.to_dict()
        out["differences"] = compare_results(base_results, results).to_dict()
    return out


class EstimateCalcRequest(BaseModel):
    line_items: list[EstimateLineItem] = Field(default_factory=list)
    discount_amount: float = Field(default=0, ge=0)
    settings: BusinessSettingsUpdate | None = None


class GoalFormulaOverrides(BaseModel):
    avg_ticket: float | None = Field(default=None, ge=0)
    lead_conversion_rate: float | None = Field(default=None, ge=0, le=100)
    closing_rate: float | None = Field(default=None, ge=0, le=100)
    marketing_percent: float | None = Field(default=None, ge=0, le=100)
    production_weeks: float | None = Field(default=None, ge=0)


class GoalsCalcRequest(BaseModel):
    annual_target: float = Field(ge=0)
    formula: GoalFormulaOverrides | None = None
    period: str | None = None


@app.post("/calculate/estimate")
@limiter.limit(_get_limit)
def calculate_estimate_totals(request: Request, body: EstimateCalcRequest):
    overrides = body.settings.model_dump(exclude_none=True) if body.settings else {}
    settings = settings_from_row(overrides, get_config().financials)
    items = [item.model_dump() for item in body.line_items]
    totals = calculate_estimate(items, body.discount_amount, settings)
    return {
        "line_items": [{**item, "line_total": line_item_total(item)} for item in items],
        **totals.to_dict(),
    }


@app.post("/calculate/goals")
@limiter.limit(_get_limit)
def calculate_goal_breakdown(request: Request, body: GoalsCalcRequest):
    overrides = body.formula.model_dump(exclude_none=True) if body.formula else {}
    formula = GoalFormula.from_mapping({**asdict(get_config().goal_formula), **overrides})
    goals = calculate_goals(body.annual_target, formula)
    out: dict[str, object] = {"formula": asdict(formula), "goals": goals}
    if body.period:
        out["period_goals"] = goals_for_period(goals, body.period)
    return out

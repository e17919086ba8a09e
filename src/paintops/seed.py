"""Seed and clear demo data for development.

Populates one organization with business settings, a season of jobs spread
across the calendar, a baseline and a growth scenario, default seasonal
curves and the monthly targets generated from them.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Any

from . import db
from .config import AppConfig, get_config
from .financials import build_new_job, next_job_number, settings_from_row
from .scenario import build_scenario_row
from .targets import default_curve_rows, generate_monthly_targets

DEMO_ORG = "demo-org"

CLIENTS = [
    ("Harper Residence", "12 Maple St", "Springfield", "interior"),
    ("Oakview HOA", "400 Oakview Dr", "Springfield", "exterior"),
    ("Lopez Family", "88 Birch Ln", "Shelbyville", "interior"),
    ("Main St Dental", "1501 Main St", "Springfield", "commercial"),
    ("Chen Residence", "7 Cedar Ct", "Capital City", "exterior"),
    ("Riverside Apartments", "220 River Rd", "Shelbyville", "commercial"),
    ("Nguyen Residence", "19 Elm St", "Springfield", "cabinets"),
    ("Patel Residence", "63 Walnut Ave", "Capital City", "interior"),
]

SUBCONTRACTORS = ["sub-ace-painting", "sub-brightline"]
SALES_REPS = ["rep-jordan", "rep-sam"]
PROJECT_MANAGERS = ["pm-alex"]

SCENARIOS = [
    {
        "name": "Current Year",
        "description": "Where the business is today",
        "is_baseline": True,
        "leads_count": 600,
        "marketing_spend": 48000,
        "owner_salary": 90000,
        "production_salary": 45000,
        "sales_salary": 40000,
        "admin_salary": 30000,
        "other_overhead": 36000,
    },
    {
        "name": "Double Marketing",
        "description": "Twice the spend, better closing",
        "is_baseline": False,
        "leads_count": 1100,
        "closing_rate": 0.42,
        "marketing_spend": 96000,
        "owner_salary": 90000,
        "production_salary": 60000,
        "sales_salary": 55000,
        "admin_salary": 30000,
        "other_overhead": 40000,
    },
]

ANNUAL_GOALS = {
    "leads": 600,
    "sales": 180,
    "revenue": 720000,
    "gross_profit": 288000,
    "reviews": 60,
    "marketing_spend": 48000,
}

# Around Springfield, for the map view
_BASE_LAT, _BASE_LNG = 39.78, -89.65


def seed_demo_data(
    conn,
    organization_id: str = DEMO_ORG,
    today: date | None = None,
    config: AppConfig | None = None,
) -> dict[str, Any]:
    """Seed the organization with demo data.

    Returns a summary dict with counts of created items.
    """
    today = today or date.today()
    cfg = config or get_config()
    rng = random.Random(42)

    if db.list_jobs(conn, organization_id, limit=1)[1]:
        return {"error": f"Organization '{organization_id}' already has jobs. Clear first."}

    # 1. Business settings (stored explicitly so the UI shows them)
    settings_row = db.upsert_business_settings(
        conn, organization_id, **{k: getattr(cfg.financials, k) for k in cfg.financials.__dataclass_fields__}
    )
    settings = settings_from_row(settings_row, cfg.financials)

    # 2. Jobs: a few done, a few on the calendar, the rest in the pipeline
    statuses = ["completed", "completed", "scheduled", "scheduled", "scheduled", "got_the_job", "lead", "lead"]
    last_number: str | None = db.get_last_job_number(conn, organization_id)
    for i, (client, address, city, project_type) in enumerate(CLIENTS):
        status = statuses[i % len(statuses)]
        start = today + timedelta(days=rng.randint(-30, -5) if status == "completed" else rng.randint(0, 40))
        payload: dict[str, Any] = {
            "client_name": client,
            "address": address,
            "city": city,
            "project_type": project_type,
            "status": status,
            "job_date": start - timedelta(days=rng.randint(7, 21)),
            "job_value": float(rng.randrange(3500, 18000, 250)),
            "sales_rep_id": SALES_REPS[i % len(SALES_REPS)],
            "project_manager_id": PROJECT_MANAGERS[0] if i % 2 == 0 else None,
        }
        if status in ("scheduled", "completed"):
            payload.update(
                scheduled_start_date=start,
                scheduled_end_date=start + timedelta(days=rng.randint(0, 4)),
                subcontractor_id=SUBCONTRACTORS[i % len(SUBCONTRACTORS)],
                latitude=round(_BASE_LAT + rng.uniform(-0.08, 0.08), 5),
                longitude=round(_BASE_LNG + rng.uniform(-0.08, 0.08), 5),
            )
        if status == "completed":
            payload.update(deposit_paid=True, job_paid=i == 0, invoice_date=start + timedelta(days=5))
        last_number = next_job_number(last_number)
        row = build_new_job(payload, settings, cfg.default_commission_pct, last_number, today=today)
        db.create_job(conn, organization_id, row)

    # 3. Scenarios
    for scenario in SCENARIOS:
        row, _ = build_scenario_row(scenario, cfg.scenario_defaults)
        db.create_scenario(conn, organization_id, row)

    # 4. Seasonal curves and the targets generated from them
    curve_rows = default_curve_rows(today.year, cfg.seasonal_weights, cfg.seasonal_metrics)
    curve_count = db.insert_default_curves(conn, organization_id, curve_rows)
    targets = generate_monthly_targets(today.year, ANNUAL_GOALS, curve_rows)
    db.upsert_monthly_targets(conn, organization_id, [t.to_dict() for t in targets])

    return {
        "organization_id": organization_id,
        "jobs": len(CLIENTS),
        "scenarios": len(SCENARIOS),
        "seasonal_curves": curve_count,
        "monthly_targets": len(targets),
    }


def clear_demo_data(conn, organization_id: str = DEMO_ORG) -> dict[str, int]:
    """Remove every row belonging to the demo organization."""
    return db.clear_organization(conn, organization_id)

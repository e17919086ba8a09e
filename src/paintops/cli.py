from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig, get_config
from .financials import calculate_commissions, calculate_job_financials, settings_from_row
from .io import load_curves_csv, load_yaml_mapping
from .scenario import assumptions_from, calculate_scenario_results, compare_results
from .targets import default_curve_rows, generate_monthly_targets

app = typer.Typer(add_completion=False, help="Painting contractor back office: job math, scenarios and targets.")
console = Console()


def _load_config(config: Optional[Path]) -> AppConfig:
    return AppConfig.from_yaml(config) if config else get_config()


def _money(value: float) -> str:
    return f"${value:,.2f}"


@app.command(name="init-db")
def init_db_cmd():
    """Create the PostgreSQL tables (idempotent). Uses DATABASE_URL."""
    from .db import init_db

    init_db()
    console.print("Database initialized")


@app.command()
def job(
    value: float = typer.Option(..., min=0, help="Job value (price to the client)."),
    sales_pct: float = typer.Option(0.0, min=0, max=100, help="Sales commission percentage (0-100)."),
    pm_pct: float = typer.Option(0.0, min=0, max=100, help="Project manager commission percentage (0-100)."),
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Config YAML (default uses packaged config)."),
):
    """Print the financial breakdown of a job."""
    cfg = _load_config(config)
    settings = settings_from_row(None, cfg.financials)
    breakdown = calculate_job_financials(value, settings)
    commissions = calculate_commissions(value, sales_pct, pm_pct)

    table = Table(title=f"Job value {_money(value)}")
    table.add_column("Field")
    table.add_column("Value", justify="right")
    for name, amount in {**breakdown.to_dict(), **commissions}.items():
        if isinstance(amount, bool) or isinstance(amount, str):
            shown = str(amount)
        elif name.endswith("_pct"):
            shown = f"{amount:.1f}%"
        else:
            shown = _money(amount)
        table.add_row(name, shown)
    console.print(table)


@app.command()
def scenario(
    assumptions: Path = typer.Argument(..., exists=True, dir_okay=False, help="Scenario assumptions YAML."),
    compare: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Baseline YAML to compare against."),
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Config YAML (default uses packaged config)."),
):
    """Project a scenario and optionally diff it against a baseline."""
    cfg = _load_config(config)
    candidate = calculate_scenario_results(assumptions_from(load_yaml_mapping(assumptions), cfg.scenario_defaults))

    table = Table(title=f"Scenario: {assumptions.stem}")
    table.add_column("Result")
    table.add_column("Value", justify="right")
    for name, amount in candidate.to_dict().items():
        table.add_row(name, f"{amount:,.2f}")
    console.print(table)

    if compare is not None:
        baseline = calculate_scenario_results(assumptions_from(load_yaml_mapping(compare), cfg.scenario_defaults))
        diff = compare_results(baseline, candidate)
        dtable = Table(title=f"Difference vs {compare.stem}")
        dtable.add_column("Metric")
        dtable.add_column("Delta", justify="right")
        for name, amount in diff.to_dict().items():
            dtable.add_row(name, f"{amount:+,.2f}")
        console.print(dtable)


@app.command()
def targets(
    goals: Path = typer.Argument(..., exists=True, dir_okay=False, help="Annual goals YAML (leads, sales, revenue, ...)."),
    year: int = typer.Option(..., help="Target year."),
    curves: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Seasonal curves CSV (Metric,Month,Weight)."),
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Config YAML (default uses packaged config)."),
):
    """Distribute annual goals over the months of a year."""
    cfg = _load_config(config)
    curve_rows = (
        load_curves_csv(curves)
        if curves
        else default_curve_rows(year, cfg.seasonal_weights, cfg.seasonal_metrics)
    )
    monthly = generate_monthly_targets(year, load_yaml_mapping(goals), curve_rows)

    table = Table(title=f"Monthly targets {year}")
    columns = ["month", "quarter", "leads_goal", "sales_goal", "revenue_goal", "gross_profit_goal", "reviews_goal", "marketing_spend_goal"]
    for col in columns:
        table.add_column(col, justify="right")
    for t in monthly:
        row = asdict(t)
        table.add_row(*(f"{row[c]:,}" for c in columns))
    console.print(table)


@app.command()
def report(
    out: Path = typer.Option(..., help="Output directory for the workbook and chart."),
    org: str = typer.Option(..., help="Organization ID."),
    year: int = typer.Option(..., help="Target year for the goals sheet and chart."),
):
    """Write an Excel pack and a revenue goal chart from the database."""
    from . import db
    from .reporting import save_target_chart, write_excel_pack

    conn = db.get_connection()
    try:
        jobs, _ = db.list_jobs(conn, org)
        monthly = db.list_monthly_targets(conn, org, year)
        scenarios = db.list_scenarios(conn, org)
    finally:
        conn.close()

    out.mkdir(parents=True, exist_ok=True)
    xlsx = write_excel_pack(out / f"paintops_{org}_{year}.xlsx", jobs, monthly, scenarios)
    console.print(f"Wrote workbook to {xlsx}")
    if monthly:
        chart = save_target_chart(out, monthly)
        console.print(f"Wrote chart to {chart}")
    else:
        console.print(f"No monthly targets for {year}; chart skipped.")


@app.command()
def seed(
    org: str = typer.Option("demo-org", help="Organization ID to seed."),
    clear: bool = typer.Option(False, "--clear", help="Remove the organization's data instead."),
):
    """Seed (or clear) demo data for an organization."""
    from . import db
    from .seed import clear_demo_data, seed_demo_data

    conn = db.get_connection()
    try:
        summary = clear_demo_data(conn, org) if clear else seed_demo_data(conn, org)
    finally:
        conn.close()
    if "error" in summary:
        console.print(f"[red]{summary['error']}[/red]")
        raise typer.Exit(code=1)
    for key, value in summary.items():
        console.print(f"{key}: {value}")


def _find_available_port(host: str, preferred: int) -> int:
    """Return *preferred* if free, otherwise try fallbacks then let the OS pick."""
    import socket

    candidates = [preferred] + [p for p in (8000, 8001, 8080, 8888) if p != preferred]
    for port in candidates:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((host, port))
                return port
            except OSError:
                continue
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind (use 0.0.0.0 for LAN)."),
    port: int = typer.Option(8000, help="Port to serve the API on."),
):
    """Start the API server."""
    import uvicorn

    actual_port = _find_available_port(host, port)
    if actual_port != port:
        console.print(f"Port {port} is in use, using port {actual_port} instead.")
    uvicorn.run("paintops.server:app", host=host, port=actual_port, reload=False)

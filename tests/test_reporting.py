from datetime import date

from openpyxl import load_workbook

from paintops.reporting import save_target_chart, write_excel_pack
from paintops.targets import generate_monthly_targets

JOBS = [
    {
        "job_number": "JOB-1001",
        "client_name": "Harper Residence",
        "status": "completed",
        "job_date": date(2025, 5, 1),
        "job_value": 10000.0,
        "gross_profit": 4000.0,
        "sales_commission_amount": 500.0,
        "sales_commission_paid": True,
        "profit_flag": "OK",
    },
    {
        "job_number": "JOB-1002",
        "client_name": "Oakview HOA",
        "status": "lead",
        "job_value": 5000.0,
        "gross_profit": 2000.0,
    },
]


def _monthly():
    goals = {"leads": 1200, "sales": 360, "revenue": 1200000, "marketing_spend": 60000}
    rows = [t.to_dict() for t in generate_monthly_targets(2025, goals, {})]
    rows[0]["revenue_actual"] = 90000
    return rows


def test_excel_pack_sheets(tmp_path):
    out = write_excel_pack(tmp_path / "pack" / "paintops.xlsx", JOBS, _monthly(), [{"name": "Current Year", "leads_count": 600}])
    assert out.exists()
    wb = load_workbook(out)
    assert wb.sheetnames == ["Jobs", "KPIs", "By Status", "Targets", "Cumulative", "Scenarios"]

    jobs = wb["Jobs"]
    assert jobs["A1"].value == "job_number"
    assert jobs.max_row == 3

    kpis = {row[0]: row[1] for row in wb["KPIs"].iter_rows(min_row=2, values_only=True)}
    assert kpis["total_job_value"] == 15000
    assert kpis["sales_commissions_paid"] == 500

    cumulative = wb["Cumulative"]
    header = [c.value for c in cumulative[1]]
    last = [c.value for c in cumulative[cumulative.max_row]]
    assert last[header.index("marketing_spend_goal")] == 60000
    assert last[header.index("revenue_actual")] == 90000


def test_excel_pack_without_targets(tmp_path):
    out = write_excel_pack(tmp_path / "jobs.xlsx", JOBS)
    assert load_workbook(out).sheetnames == ["Jobs", "KPIs", "By Status"]


def test_target_chart(tmp_path):
    p = save_target_chart(tmp_path, iter(_monthly()))
    assert p.name == "targets_revenue.png"
    assert p.stat().st_size > 0


def test_chart_for_metric_without_actuals(tmp_path):
    p = save_target_chart(tmp_path, _monthly(), metric="marketing_spend")
    assert p.name == "targets_marketing_spend.png"

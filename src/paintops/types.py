from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

ProfitFlag = Literal["OK", "RAISE_PRICE", "FIX_SCOPE"]
JobStatus = Literal["lead", "got_the_job", "scheduled", "completed"]
PaymentStatus = Literal["paid", "partial", "pending"]

JOB_STATUSES: tuple[str, ...] = ("lead", "got_the_job", "scheduled", "completed")


@dataclass(frozen=True)
class BusinessSettings:
    sub_payout_pct: float
    sub_materials_pct: float
    sub_labor_pct: float
    min_gross_profit_per_job: float
    target_gross_margin_pct: float
    default_deposit_pct: float


@dataclass(frozen=True)
class FinancialBreakdown:
    sub_materials: float
    sub_labor: float
    sub_total: float
    gross_profit: float
    gross_margin_pct: float
    deposit_required: float
    balance_due: float
    subcontractor_price: float
    meets_min_gp: bool
    meets_target_gm: bool
    profit_flag: ProfitFlag

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScenarioResults:
    appointments: int
    sales: int
    nsli: float
    revenue: float
    cogs_labor: float
    cogs_materials: float
    cogs_other: float
    total_cogs: float
    gross_profit: float
    gross_margin_pct: float
    contribution_profit: float
    sales_commission: float
    pm_commission: float
    total_commissions: float
    total_overhead: float
    total_expenses: float
    net_profit: float
    net_margin_pct: float
    cpl: float
    roi: float
    owner_take_home: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def cached_columns(self) -> dict[str, float]:
        """Result values persisted alongside the scenario row."""
        return {
            "calculated_revenue": self.revenue,
            "calculated_gross_profit": self.gross_profit,
            "calculated_net_profit": self.net_profit,
            "calculated_cpl": self.cpl,
            "calculated_roi": self.roi,
            "calculated_owner_take_home": self.owner_take_home,
        }


@dataclass(frozen=True)
class ScenarioDifferences:
    revenue: float
    revenue_pct: float
    gross_profit: float
    gross_profit_pct: float
    net_profit: float
    net_profit_pct: float
    owner_take_home: float
    owner_take_home_pct: float
    cpl: float
    roi: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyTarget:
    year: int
    month: int
    quarter: int
    leads_goal: int
    sales_goal: int
    revenue_goal: int
    gross_profit_goal: int
    reviews_goal: int
    marketing_spend_goal: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EstimateTotals:
    subtotal: float
    discount_amount: float
    total_price: float
    sub_materials: float
    sub_labor: float
    sub_total: float
    gross_profit: float
    gross_margin_pct: float
    meets_min_gp: bool
    meets_target_gm: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SubcontractorJobFinancials:
    earnings: float
    labor_hours: float
    labor_cost: float
    material_cost: float
    profit: float
    profit_margin_pct: float
    paid_amount: float
    payment_status: PaymentStatus

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import importlib.resources
import os
from pathlib import Path
from typing import Any, Mapping

import yaml


@dataclass(frozen=True)
class FinancialDefaults:
    sub_payout_pct: float = 60.0
    sub_materials_pct: float = 15.0
    sub_labor_pct: float = 45.0
    min_gross_profit_per_job: float = 900.0
    target_gross_margin_pct: float = 40.0
    default_deposit_pct: float = 30.0

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "FinancialDefaults":
        base = FinancialDefaults()
        return FinancialDefaults(
            **{name: float(raw.get(name, getattr(base, name))) for name in base.__dataclass_fields__}
        )


@dataclass(frozen=True)
class GoalFormula:
    """Inputs of the annual-target goal formula; rates are 0-100."""

    avg_ticket: float = 9500.0
    lead_conversion_rate: float = 85.0
    closing_rate: float = 30.0
    marketing_percent: float = 8.0
    production_weeks: float = 35.0

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "GoalFormula":
        base = GoalFormula()
        return GoalFormula(
            **{name: float(raw.get(name, getattr(base, name))) for name in base.__dataclass_fields__}
        )


@dataclass(frozen=True)
class AppConfig:
    financials: FinancialDefaults
    scenario_defaults: dict[str, float]
    default_commission_pct: float = 5.0
    seasonal_weights: dict[int, float] = field(default_factory=dict)
    # e.g. {1: 0.053, 2: 0.063, ...}
    seasonal_metrics: list[str] = field(default_factory=lambda: ["leads", "sales", "revenue"])
    goal_formula: GoalFormula = field(default_factory=GoalFormula)

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "AppConfig":
        financials = FinancialDefaults.from_mapping(raw.get("financials", {}) or {})
        scenario_defaults = {str(k): float(v) for k, v in (raw.get("scenario", {}) or {}).items()}
        weights_raw: Mapping[Any, Any] = raw.get("seasonal_weights", {}) or {}
        seasonal_weights = {int(month): float(w) for month, w in weights_raw.items()}
        metrics = [str(m) for m in (raw.get("seasonal_metrics") or ["leads", "sales", "revenue"])]
        return AppConfig(
            financials=financials,
            scenario_defaults=scenario_defaults,
            default_commission_pct=float(raw.get("default_commission_pct", 5.0)),
            seasonal_weights=seasonal_weights,
            seasonal_metrics=metrics,
            goal_formula=GoalFormula.from_mapping(raw.get("goal_formula", {}) or {}),
        )

    @staticmethod
    def from_yaml(path: str | Path) -> "AppConfig":
        path = Path(path)
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        return AppConfig.from_mapping(raw or {})


def default_config() -> AppConfig:
    text = importlib.resources.files("paintops.resources").joinpath("defaults.yaml").read_text(encoding="utf-8")
    return AppConfig.from_mapping(yaml.safe_load(text))


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Process-wide config: PAINTOPS_CONFIG when set, else the packaged defaults."""
    path = os.environ.get("PAINTOPS_CONFIG")
    return AppConfig.from_yaml(path) if path else default_config()

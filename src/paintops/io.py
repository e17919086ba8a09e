from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd
import yaml


def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing required input: {path}")
    return pd.read_csv(path)


def load_yaml_mapping(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing required input: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return raw


def load_curves_csv(path: str | Path) -> list[dict[str, Any]]:
    """Seasonal weights from a CSV with Metric, Month and Weight columns."""
    df = _read_csv(Path(path))
    missing = {"Metric", "Month", "Weight"} - set(df.columns)
    if missing:
        raise ValueError(f"Missing required column(s): {', '.join(sorted(missing))}")
    df = df.dropna(subset=["Metric", "Month", "Weight"])
    return [
        {"metric": str(r.Metric).strip(), "month": int(r.Month), "weight": float(r.Weight)}
        for r in df.itertuples(index=False)
    ]


def frame_from_rows(rows: list[dict[str, Any]], columns: list[str] | None = None) -> pd.DataFrame:
    df = pd.DataFrame(rows)
    if columns is not None:
        for col in columns:
            if col not in df.columns:
                df[col] = None
        df = df[columns]
    return df

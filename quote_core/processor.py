"""Data processing utilities for quote plans."""
from __future__ import annotations

import math
import re
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .models import QuotePlan

_AMOUNT_PATTERN = re.compile(r"\d[\d,]*(?:\.\d+)?")


def price_amount(price: Optional[str]) -> Optional[float]:
    """Numeric part of a price string such as ``"USD 1,045.00"``."""

    match = _AMOUNT_PATTERN.search(price or "")
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def plans_to_dataframe(plans: Iterable[QuotePlan]) -> pd.DataFrame:
    """Convert parsed plans into a :class:`~pandas.DataFrame`, one row per plan."""

    records: List[Dict[str, object]] = []
    for position, plan in enumerate(plans):
        amount = price_amount(plan.price)
        records.append(
            {
                "position": position,
                "plan_id": plan.plan_id,
                "name": plan.name,
                "product": plan.product,
                "coverage": plan.coverage,
                "price": plan.price,
                "amount": amount if amount is not None else math.nan,
            }
        )
    return pd.DataFrame.from_records(
        records, columns=["position", "plan_id", "name", "product", "coverage", "price", "amount"]
    )


def deduplicate_plans(df: pd.DataFrame) -> pd.DataFrame:
    """Keep the first card for every plan ID, in page order."""

    if df.empty:
        return df
    return df.drop_duplicates(subset=["plan_id"], keep="first").sort_values("position")  # type: ignore[return-value]


def prepare_plans(plans: Iterable[QuotePlan]) -> List[QuotePlan]:
    """Full processing pipeline returning the plans to present."""

    df = deduplicate_plans(plans_to_dataframe(plans))
    if df.empty:
        return []
    return [
        QuotePlan(plan_id=str(row["plan_id"]), name=str(row["name"]), price=str(row["price"]))
        for row in df.to_dict("records")
    ]


def summarise_plans(plans: Iterable[QuotePlan]) -> Dict[str, float]:
    """Return simple statistics across plans with a readable price."""

    df = plans_to_dataframe(plans)
    prices = df["amount"].dropna() if not df.empty else pd.Series(dtype=float)
    if prices.empty:
        return {"count": 0, "average_price": 0.0, "min_price": 0.0}
    return {
        "count": int(prices.count()),
        "average_price": float(prices.mean()),
        "min_price": float(prices.min()),
    }

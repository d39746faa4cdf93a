from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Sequence, Tuple

import pandas as pd

from catalog.coercion import coerce, is_absent, is_number
from catalog.items import CatalogItem
from catalog.queries import GroupKey, display_text, group_by_field


AggregateOp = Literal["sum", "avg", "min", "max", "count"]


@dataclass(frozen=True)
class ValueRange:
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass(frozen=True)
class Statistics:
    count: int = 0
    total: float = 0.0
    average: float = 0.0
    range: ValueRange = field(default_factory=ValueRange)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _plain(value: object) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    out = float(value)  # type: ignore[arg-type]
    return int(out) if out.is_integer() else out


def numeric_series(items: Sequence[CatalogItem], key: str) -> pd.Series:
    """Numeric values of ``key`` as a float Series; NaN marks non-numeric entries."""
    raw = [v if is_number(v) else None for v in (item.get_field(key) for item in items)]
    return pd.to_numeric(pd.Series(raw, dtype=object), errors="coerce").astype(float)


def calculate_status_stats(items: Sequence[CatalogItem], numeric_field: str, range_field: str) -> Statistics:
    count = len(items)
    if count == 0:
        return Statistics()

    numbers = numeric_series(items, numeric_field)
    defined = int(numbers.notna().sum())
    total = float(numbers.sum(skipna=True)) if defined else 0.0
    average = total / defined if defined else 0.0

    ranged = numeric_series(items, range_field).dropna()
    value_range = ValueRange(min=_plain(ranged.min()), max=_plain(ranged.max())) if not ranged.empty else ValueRange()
    return Statistics(count=count, total=total, average=average, range=value_range)


def numeric_summary(items: Sequence[CatalogItem], key: str) -> Dict[str, float]:
    values = numeric_series(items, key).dropna()
    if values.empty:
        return {"count": 0, "sum": 0.0, "avg": 0.0, "min": 0.0, "max": 0.0}
    return {
        "count": int(values.count()),
        "sum": float(values.sum()),
        "avg": float(values.mean()),
        "min": float(values.min()),
        "max": float(values.max()),
    }


def aggregate_by_field(
    items: Sequence[CatalogItem],
    group_field: str,
    value_field: str,
    operation: AggregateOp = "sum",
    field_type: Optional[str] = None,
) -> Dict[GroupKey, float]:
    results: Dict[GroupKey, float] = {}
    for key, group_items in group_by_field(items, group_field, field_type).items():
        values = numeric_series(group_items, value_field).dropna()
        if operation == "count":
            results[key] = int(values.count())
        elif values.empty:
            results[key] = 0.0
        elif operation == "avg":
            results[key] = float(values.mean())
        elif operation == "min":
            results[key] = float(values.min())
        elif operation == "max":
            results[key] = float(values.max())
        else:
            results[key] = float(values.sum())
    return results


def most_common(items: Sequence[CatalogItem], key: str) -> Any:
    counts: Dict[Any, int] = {}
    best, best_count = None, 0
    for item in items:
        value = item.get_field(key)
        if is_absent(value):
            continue
        k = display_text(value) if isinstance(value, Mapping) else value
        counts[k] = counts.get(k, 0) + 1
        if counts[k] > best_count:
            best, best_count = value, counts[k]
    return best


def date_range(items: Sequence[CatalogItem], key: str) -> Optional[Tuple[str, str]]:
    dates = [coerce(item.get_field(key), "date") for item in items]
    valid = sorted(d for d in dates if isinstance(d, str))
    if not valid:
        return None
    return valid[0], valid[-1]


def catalog_totals(items: Sequence[CatalogItem], numeric_field: str, range_field: str) -> Dict[str, Any]:
    stats = calculate_status_stats(items, numeric_field, range_field)
    return {
        **stats.to_dict(),
        "valid_numeric_count": int(numeric_series(items, numeric_field).notna().sum()) if items else 0,
        "valid_range_count": int(numeric_series(items, range_field).notna().sum()) if items else 0,
    }

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class RangeFilter:
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_bounded(self) -> bool:
        return self.min is not None or self.max is not None


FilterValue = Union[str, int, float, bool, List[Any], RangeFilter, None]


@dataclass(frozen=True)
class SortState:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class FilterDefinition:
    field: str
    type: str = "select"
    label: str = ""
    enabled: bool = True
    options: Tuple[str, ...] = ()


FILTER_TYPES = ("select", "checkbox", "range", "text")


def _as_float(value: object) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def normalize_filter_value(value: object) -> FilterValue:
    if isinstance(value, RangeFilter):
        return value
    if isinstance(value, Mapping):
        if "min" in value or "max" in value:
            return RangeFilter(min=_as_float(value.get("min")), max=_as_float(value.get("max")))
        return None
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if v is not None and v != ""]
    if isinstance(value, str):
        return value.strip()
    return value  # type: ignore[return-value]


def is_unconstrained(value: FilterValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, list):
        return not value
    if isinstance(value, RangeFilter):
        return not value.is_bounded
    return False


def normalize_filters(raw: Optional[Mapping[str, Any]]) -> Dict[str, FilterValue]:
    """Turn raw filter input (HTTP body, stored settings) into a filter state.

    Keys whose value leaves the field unconstrained are dropped.
    """
    out: Dict[str, FilterValue] = {}
    for key, value in (raw or {}).items():
        normalized = normalize_filter_value(value)
        if is_unconstrained(normalized):
            continue
        out[str(key)] = normalized
    return out


def normalize_sort(raw_field: Optional[str], descending: object = False, *, default_field: Optional[str] = None) -> Optional[SortState]:
    name = (raw_field or default_field or "").strip()
    if not name:
        return None
    if isinstance(descending, str):
        descending = descending.strip().lower() in {"true", "1", "desc", "yes"}
    return SortState(field=name, descending=bool(descending))


def normalize_filter_definitions(raw: Optional[Iterable[Any]]) -> List[FilterDefinition]:
    defs: List[FilterDefinition] = []
    for entry in raw or []:
        if isinstance(entry, FilterDefinition):
            defs.append(entry)
            continue
        if not isinstance(entry, Mapping) or not entry.get("field"):
            continue
        ftype = str(entry.get("type") or "select").lower()
        if ftype not in FILTER_TYPES:
            ftype = "select"
        defs.append(
            FilterDefinition(
                field=str(entry["field"]),
                type=ftype,
                label=str(entry.get("label") or entry["field"]),
                enabled=bool(entry.get("enabled", True)),
                options=tuple(str(x) for x in (entry.get("options") or []) if x is not None),
            )
        )
    return defs

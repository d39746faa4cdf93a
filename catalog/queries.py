"""Query primitives over sequences of catalog items.

Every function here is pure: inputs are never mutated and a fresh list (or
dict) is returned. Unknown field keys degrade to empty or all-null results
rather than raising, since saved filter configuration can outlive the fields
it refers to.
"""

from __future__ import annotations

import math
import unicodedata
from datetime import date
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from catalog.coercion import CoercionError, FieldValue, coerce_date, is_absent, is_number
from catalog.filters import FilterDefinition, FilterValue, RangeFilter, SortState, is_unconstrained
from catalog.items import CatalogItem
from catalog.schema import SCALAR_TYPES, CatalogSchema


GroupKey = Optional[Hashable]
GroupResult = Dict[GroupKey, List[CatalogItem]]


def display_text(value: FieldValue) -> str:
    """Stringify a field value the way it is shown and searched."""
    if is_absent(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, tuple):
        return ", ".join(display_text(v) for v in value)
    if isinstance(value, Mapping):
        return ", ".join(f"{k}: {display_text(v)}" for k, v in value.items())
    return str(value)


def _values_equal(value: Any, target: Any) -> bool:
    if is_absent(value):
        return False
    if isinstance(value, bool) or isinstance(target, bool):
        return value is target or (isinstance(target, str) and display_text(value) == target.strip().lower())
    if value == target:
        return True
    if isinstance(value, str) != isinstance(target, str):
        return display_text(value) == display_text(target)
    return False


def _matches(value: FieldValue, target: Any) -> bool:
    if isinstance(value, tuple):
        return any(_values_equal(v, target) for v in value)
    return _values_equal(value, target)


def filter_by_field(items: Sequence[CatalogItem], key: str, value: Any) -> List[CatalogItem]:
    if value is None:
        return [item for item in items if not item.has_field(key)]
    return [item for item in items if _matches(item.get_field(key), value)]


def filter_by_any(items: Sequence[CatalogItem], key: str, values: Iterable[Any]) -> List[CatalogItem]:
    wanted = list(values)
    if not wanted:
        return list(items)
    return [item for item in items if any(_matches(item.get_field(key), v) for v in wanted)]


def filter_by_text(items: Sequence[CatalogItem], key: str, substring: Optional[str]) -> List[CatalogItem]:
    needle = (substring or "").casefold()
    if not needle:
        return list(items)
    out = []
    for item in items:
        value = item.get_field(key)
        if is_absent(value):
            continue
        if needle in display_text(value).casefold():
            out.append(item)
    return out


def filter_by_range(
    items: Sequence[CatalogItem],
    key: str,
    bounds: Optional[RangeFilter] = None,
    *,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> List[CatalogItem]:
    lo = bounds.min if bounds is not None else minimum
    hi = bounds.max if bounds is not None else maximum
    if lo is None and hi is None:
        return list(items)
    out = []
    for item in items:
        value = item.get_field(key)
        if not is_number(value):
            continue
        if lo is not None and value < lo:
            continue
        if hi is not None and value > hi:
            continue
        out.append(item)
    return out


def _as_date(value: Any) -> Optional[date]:
    try:
        iso = coerce_date(value)
    except CoercionError:
        return None
    return date.fromisoformat(iso) if iso else None


def _date_bound(value: Any) -> Optional[date]:
    if value is None:
        return None
    iso = coerce_date(value)
    return date.fromisoformat(iso) if iso else None


def filter_by_date_range(
    items: Sequence[CatalogItem],
    key: str,
    start: Any = None,
    end: Any = None,
) -> List[CatalogItem]:
    """Keep items whose date in ``key`` lies within ``start``..``end`` inclusive.

    Bounds may be dates or ISO strings; a bound of ``None`` is open. Items
    without a parseable date are dropped. An unparseable bound raises
    :class:`~catalog.coercion.CoercionError`.
    """
    lo = _date_bound(start)
    hi = _date_bound(end)
    out = []
    for item in items:
        when = _as_date(item.get_field(key))
        if when is None:
            continue
        if lo is not None and when < lo:
            continue
        if hi is not None and when > hi:
            continue
        out.append(item)
    return out


def filter_where(items: Sequence[CatalogItem], predicate: Callable[[CatalogItem], bool]) -> List[CatalogItem]:
    return [item for item in items if predicate(item)]


def exclude_where(items: Sequence[CatalogItem], predicate: Callable[[CatalogItem], bool]) -> List[CatalogItem]:
    return [item for item in items if not predicate(item)]


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _sort_key(value: FieldValue, field_type: Optional[str]) -> Tuple[Any, ...]:
    # absent values rank below everything else
    if is_absent(value):
        return (0,)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, float(value))
    if field_type == "number":
        text = display_text(value)
        try:
            num = float(text)
        except ValueError:
            return (3, _fold(text), text)
        return (0,) if math.isnan(num) else (1, num)
    text = display_text(value)
    if not text:
        return (0,)
    return (3, _fold(text), text)


def sort_by_field(
    items: Sequence[CatalogItem],
    key: str,
    descending: bool = False,
    field_type: Optional[str] = None,
) -> List[CatalogItem]:
    return sorted(items, key=lambda item: _sort_key(item.get_field(key), field_type), reverse=descending)


def sort_items(items: Sequence[CatalogItem], sort: Optional[SortState], schema: CatalogSchema) -> List[CatalogItem]:
    if sort is None:
        return list(items)
    f = schema.field(sort.field)
    if f is None or not f.sortable:
        return list(items)
    return sort_by_field(items, sort.field, sort.descending, f.type)


def sort_by_multiple(
    items: Sequence[CatalogItem],
    sorts: Iterable[SortState],
    schema: Optional[CatalogSchema] = None,
) -> List[CatalogItem]:
    """Sort by several fields; earlier entries take precedence.

    Each key is applied as a stable sort, last entry first.
    """
    result = list(items)
    for sort in reversed(list(sorts)):
        f = schema.field(sort.field) if schema is not None else None
        result = sort_by_field(result, sort.field, sort.descending, f.type if f is not None else None)
    return result


def _group_key(value: Any) -> GroupKey:
    if is_absent(value):
        return None
    try:
        hash(value)
    except TypeError:
        return display_text(value)
    return value


def group_by_field(
    items: Sequence[CatalogItem],
    key: str,
    field_type: Optional[str] = None,
) -> GroupResult:
    """Partition ``items`` by the value of ``key``.

    Absent values collect under ``None``. A sequence value places the item in
    one group per element unless ``field_type`` declares a scalar field, in
    which case the whole value is the key. Keys keep first-seen order.
    """
    groups: GroupResult = {}
    scalar = field_type in SCALAR_TYPES
    for item in items:
        value = item.get_field(key)
        if isinstance(value, tuple) and not scalar:
            keys = list(dict.fromkeys(_group_key(v) for v in value)) or [None]
        else:
            keys = [_group_key(value)]
        for k in keys:
            groups.setdefault(k, []).append(item)
    return groups


def get_unique_values(items: Sequence[CatalogItem], key: str) -> List[Any]:
    seen: Dict[GroupKey, None] = {}
    for item in items:
        value = item.get_field(key)
        values = value if isinstance(value, tuple) else (value,)
        for v in values:
            k = _group_key(v)
            if k is not None and k not in seen:
                seen[k] = None
    return list(seen)


def count_by_field(items: Sequence[CatalogItem], key: str, field_type: Optional[str] = None) -> Dict[GroupKey, int]:
    return {k: len(v) for k, v in group_by_field(items, key, field_type).items()}


def group_by_date_month(items: Sequence[CatalogItem], key: str) -> Dict[Optional[str], List[CatalogItem]]:
    """Group items by the ``YYYY-MM`` month of a date field.

    Absent dates collect under ``None``; unparseable dates are left out.
    """
    groups: Dict[Optional[str], List[CatalogItem]] = {}
    for item in items:
        value = item.get_field(key)
        if is_absent(value):
            groups.setdefault(None, []).append(item)
            continue
        when = _as_date(value)
        if when is None:
            continue
        groups.setdefault(f"{when.year:04d}-{when.month:02d}", []).append(item)
    return groups


def flatten_groups(groups: Mapping[Any, Sequence[CatalogItem]]) -> List[CatalogItem]:
    out: List[CatalogItem] = []
    for members in groups.values():
        out.extend(members)
    return out


def group_keys(groups: Mapping[Any, Sequence[CatalogItem]], descending: bool = False) -> List[Any]:
    # the None group always comes last
    keys = sorted((k for k in groups if k is not None), key=lambda k: _sort_key(k, None), reverse=descending)
    if None in groups:
        keys.append(None)
    return keys


def paginate(items: Sequence[CatalogItem], page_size: int, page_index: int) -> List[CatalogItem]:
    if page_size <= 0 or page_index < 0:
        return []
    start = page_index * page_size
    return list(items[start : start + page_size])


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0 or total <= 0:
        return 0
    return -(-total // page_size)


def apply_filters(
    items: Sequence[CatalogItem],
    filters: Mapping[str, FilterValue],
    schema: CatalogSchema,
    definitions: Iterable[FilterDefinition] = (),
) -> List[CatalogItem]:
    """Apply every constrained entry of a filter state (logical AND)."""
    text_fields = {d.field for d in definitions if d.type == "text"}
    result = list(items)
    for key, value in filters.items():
        if is_unconstrained(value):
            continue
        f = schema.field(key)
        if f is None or not f.filterable:
            continue
        if isinstance(value, RangeFilter):
            result = filter_by_range(result, key, value)
        elif isinstance(value, list):
            result = filter_by_any(result, key, value)
        elif key in text_fields:
            result = filter_by_text(result, key, str(value))
        else:
            result = filter_by_field(result, key, value)
    return result

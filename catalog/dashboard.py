from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from catalog.charts import group_totals_chart, status_counts_chart
from catalog.coercion import is_absent
from catalog.filters import FilterValue, SortState, normalize_sort
from catalog.groups import group_label, sort_status_groups
from catalog.items import CatalogItem, CatalogSnapshot
from catalog.queries import (
    apply_filters,
    display_text,
    get_unique_values,
    group_by_field,
    page_count,
    paginate,
    sort_by_field,
    sort_items,
)
from catalog.schema import CatalogSchema
from catalog.settings import CatalogSettings, filter_definitions
from catalog.stats import calculate_status_stats, catalog_totals, numeric_summary


def _group_value(key: Any) -> Any:
    if key is None or isinstance(key, (str, int, float, bool)):
        return key
    return display_text(key)


def _filtered(settings: CatalogSettings, snapshot: CatalogSnapshot, filters: Optional[Mapping[str, FilterValue]]) -> List[CatalogItem]:
    return apply_filters(snapshot.items, filters or {}, settings.schema, settings.filter_bar)


def compute_status_dashboard(
    settings: CatalogSettings,
    snapshot: CatalogSnapshot,
    filters: Optional[Mapping[str, FilterValue]] = None,
    *,
    group_by: Optional[str] = None,
    sort_by: Optional[str] = None,
) -> Dict[str, Any]:
    schema = settings.schema
    cfg = settings.status_dashboard
    group_field = group_by or settings.status_field
    if not group_field:
        raise ValueError(f"Catalog '{schema.catalog_name}' has no status field to group by")

    items = _filtered(settings, snapshot, filters)
    mode = sort_by or cfg.sort_by
    groups = group_by_field(items, group_field, schema.field_type(group_field))

    group_rows: List[Dict[str, Any]] = []
    for key, members in sort_status_groups(groups, mode):
        stats = calculate_status_stats(members, cfg.numeric_field, cfg.range_field)
        group_rows.append({"value": _group_value(key), "label": group_label(key), "stats": stats.to_dict()})

    gf = schema.field(group_field)
    nf = schema.field(cfg.numeric_field)
    numeric_label = nf.label if nf is not None else cfg.numeric_field
    return {
        "revision": snapshot.revision,
        "group_field": group_field,
        "group_label": gf.label if gf is not None else group_field,
        "sort_by": mode,
        "numeric_field": cfg.numeric_field,
        "range_field": cfg.range_field,
        "groups": group_rows,
        "totals": catalog_totals(items, cfg.numeric_field, cfg.range_field) if cfg.show_total_stats else None,
        "charts": {
            "status_counts": status_counts_chart(group_rows),
            "group_totals": group_totals_chart(group_rows, numeric_label),
        },
    }


def _columns(schema: CatalogSchema) -> List[Dict[str, Any]]:
    return [
        {"key": f.key, "label": f.label, "type": f.type, "sortable": f.sortable, "filterable": f.filterable}
        for f in schema.visible_fields()
    ]


def compute_works_table(
    settings: CatalogSettings,
    snapshot: CatalogSnapshot,
    filters: Optional[Mapping[str, FilterValue]] = None,
    sort: Optional[SortState] = None,
    page: int = 0,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    ui = settings.ui
    if sort is None:
        sort = normalize_sort(None, ui.default_sort_desc, default_field=ui.default_sort_column)
    size = page_size if page_size is not None else ui.items_per_page

    items = sort_items(_filtered(settings, snapshot, filters), sort, settings.schema)
    rows = [{"id": item.id, "source_file": item.source_file, **item.to_object()} for item in paginate(items, size, page)]
    return {
        "revision": snapshot.revision,
        "columns": _columns(settings.schema),
        "rows": rows,
        "total": len(items),
        "page": page,
        "page_size": size,
        "page_count": page_count(len(items), size),
        "sort": {"field": sort.field, "descending": sort.descending} if sort is not None else None,
    }


def _option_values(items: Sequence[CatalogItem], key: str) -> List[Any]:
    values = get_unique_values(items, key)
    return sorted((_group_value(v) for v in values), key=lambda v: display_text(v).casefold())


def compute_filter_options(settings: CatalogSettings, snapshot: CatalogSnapshot) -> Dict[str, Any]:
    out: List[Dict[str, Any]] = []
    for d in filter_definitions(settings):
        entry: Dict[str, Any] = {"field": d.field, "type": d.type, "label": d.label}
        if d.type == "range":
            summary = numeric_summary(snapshot.items, d.field)
            entry["min"] = summary["min"] if summary["count"] else None
            entry["max"] = summary["max"] if summary["count"] else None
        elif d.type in ("select", "checkbox"):
            entry["options"] = list(d.options) or _option_values(snapshot.items, d.field)
        out.append(entry)
    return {"revision": snapshot.revision, "filters": out}


def _cell(value: Any) -> Any:
    if is_absent(value):
        return None
    if isinstance(value, (tuple, Mapping)):
        return display_text(value)
    return value


def items_frame(items: Sequence[CatalogItem], schema: CatalogSchema) -> pd.DataFrame:
    """Tabular view of ``items`` with one column per visible field, for export."""
    keys = [f.key for f in schema.visible_fields()]
    records = [{"id": item.id, **{k: _cell(item.get_field(k)) for k in keys}} for item in items]
    return pd.DataFrame.from_records(records, columns=["id", *keys])


def export_frame(
    settings: CatalogSettings,
    snapshot: CatalogSnapshot,
    filters: Optional[Mapping[str, FilterValue]] = None,
    sort: Optional[SortState] = None,
) -> pd.DataFrame:
    items = _filtered(settings, snapshot, filters)
    if sort is not None:
        items = sort_items(items, sort, settings.schema)
    else:
        items = sort_by_field(items, settings.schema.core_fields.title_field, field_type="string")
    return items_frame(items, settings.schema)

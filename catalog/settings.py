from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from catalog.filters import FilterDefinition, normalize_filter_definitions
from catalog.groups import DEFAULT_GROUP_SORT, GROUP_SORT_MODES
from catalog.schema import CatalogSchema, SchemaError, schema_from_dict, schema_to_dict


logger = logging.getLogger(__name__)

SETTINGS_ENV = "CATALOG_SETTINGS"
CATALOG_PATH_ENV = "CATALOG_PATH"
LOG_LEVEL_ENV = "CATALOG_LOG_LEVEL"
DEFAULT_SETTINGS_FILE = "catalog.yaml"


@dataclass(frozen=True)
class UiPreferences:
    items_per_page: int = 50
    default_sort_column: str = "title"
    default_sort_desc: bool = False
    compact_mode: bool = False


@dataclass(frozen=True)
class StatusDashboardConfig:
    group_by_field: Optional[str] = None
    sort_by: str = DEFAULT_GROUP_SORT
    numeric_field: str = "word-count"
    range_field: str = "year"
    show_total_stats: bool = True


@dataclass(frozen=True)
class CatalogSettings:
    schema: CatalogSchema
    catalog_path: str = "works"
    ui: UiPreferences = field(default_factory=UiPreferences)
    status_dashboard: StatusDashboardConfig = field(default_factory=StatusDashboardConfig)
    filter_bar: Tuple[FilterDefinition, ...] = ()
    log_level: str = "INFO"

    @property
    def status_field(self) -> Optional[str]:
        return self.status_dashboard.group_by_field or self.schema.core_fields.status_field


PULP_FICTION_SCHEMA: Dict[str, Any] = {
    "catalogName": "Pulp Fiction Works",
    "fields": [
        {"key": "title", "label": "Title", "type": "string", "visible": True, "filterable": True, "sortable": True, "sortOrder": 1},
        {"key": "authors", "label": "Authors", "type": "reference-array", "visible": True, "filterable": True, "sortOrder": 2, "arrayItemType": "wikilink"},
        {"key": "year-published", "label": "Year Published", "type": "number", "visible": True, "filterable": True, "sortable": True, "sortOrder": 3},
        {"key": "word-count", "label": "Word Count", "type": "number", "category": "content", "visible": True, "filterable": True, "sortable": True, "sortOrder": 4},
        {"key": "catalog-status", "label": "Status", "type": "string", "category": "status", "visible": True, "filterable": True, "sortable": True, "sortOrder": 5},
        {"key": "publication", "label": "Publication", "type": "string", "visible": True, "filterable": True, "sortable": True, "sortOrder": 6},
        {"key": "genres", "label": "Genres", "type": "array", "category": "content", "visible": True, "filterable": True, "sortOrder": 7, "arrayItemType": "string"},
        {"key": "date-cataloged", "label": "Date Cataloged", "type": "date", "category": "workflow", "visible": False, "sortable": True, "sortOrder": 8},
        {"key": "bp-candidate", "label": "BP Candidate", "type": "boolean", "category": "status", "visible": False, "filterable": True, "sortable": True, "sortOrder": 9},
        {"key": "content-metadata", "label": "Content Metadata", "type": "object", "category": "custom", "visible": False, "sortOrder": 10},
    ],
    "coreFields": {"titleField": "title", "statusField": "catalog-status"},
}

GENERAL_LIBRARY_SCHEMA: Dict[str, Any] = {
    "catalogName": "General Library",
    "fields": [
        {"key": "title", "label": "Title", "type": "string", "filterable": True, "sortable": True, "sortOrder": 1},
        {"key": "author", "label": "Author", "type": "reference-array", "filterable": True, "sortOrder": 2},
        {"key": "genre", "label": "Genre", "type": "string", "filterable": True, "sortable": True, "sortOrder": 3},
        {"key": "status", "label": "Status", "type": "string", "category": "status", "filterable": True, "sortable": True, "sortOrder": 4},
        {"key": "year", "label": "Year", "type": "number", "filterable": True, "sortable": True, "sortOrder": 5},
        {"key": "rating", "label": "Rating", "type": "number", "category": "content", "filterable": True, "sortable": True, "sortOrder": 6},
    ],
    "coreFields": {"titleField": "title", "statusField": "status"},
}

PRESETS: Dict[str, Dict[str, Any]] = {
    "pulp-fiction": {
        "catalogPath": "pulp-fiction/works",
        "schema": PULP_FICTION_SCHEMA,
        "ui": {"itemsPerPage": 50, "defaultSortColumn": "title"},
        "dashboards": {
            "statusDashboard": {"groupByField": "catalog-status", "numericField": "word-count", "rangeField": "year-published"},
            "filterBar": {
                "filters": [
                    {"field": "catalog-status", "type": "select", "label": "Status"},
                    {"field": "year-published", "type": "range", "label": "Year"},
                    {"field": "title", "type": "text", "label": "Title"},
                    {"field": "authors", "type": "checkbox", "label": "Authors"},
                ]
            },
        },
    },
    "general-library": {
        "catalogPath": "library/books",
        "schema": GENERAL_LIBRARY_SCHEMA,
        "ui": {"itemsPerPage": 25, "defaultSortColumn": "title"},
        "dashboards": {
            "statusDashboard": {"groupByField": "status", "numericField": "rating", "rangeField": "year", "sortBy": "alphabetical"},
            "filterBar": {
                "filters": [
                    {"field": "status", "type": "select", "label": "Status"},
                    {"field": "genre", "type": "select", "label": "Genre"},
                    {"field": "year", "type": "range", "label": "Year"},
                ]
            },
        },
    },
}


def _pick(raw: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return default


def _as_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1", "on"}
    return bool(value)


def normalize_ui(raw: Optional[Mapping[str, Any]]) -> UiPreferences:
    raw = raw or {}
    per_page = _pick(raw, "itemsPerPage", "items_per_page", default=50)
    try:
        per_page = int(per_page)
    except (TypeError, ValueError):
        per_page = 50
    per_page = max(1, min(500, per_page))
    return UiPreferences(
        items_per_page=per_page,
        default_sort_column=str(_pick(raw, "defaultSortColumn", "default_sort_column", default="title")),
        default_sort_desc=_as_bool(_pick(raw, "defaultSortDesc", "default_sort_desc"), False),
        compact_mode=_as_bool(_pick(raw, "compactMode", "compact_mode"), False),
    )


def normalize_status_dashboard(raw: Optional[Mapping[str, Any]]) -> StatusDashboardConfig:
    raw = raw or {}
    sort_by = str(_pick(raw, "sortBy", "sort_by", default=DEFAULT_GROUP_SORT))
    if sort_by not in GROUP_SORT_MODES:
        logger.warning("Unknown status dashboard sortBy %r, using %s", sort_by, DEFAULT_GROUP_SORT)
        sort_by = DEFAULT_GROUP_SORT
    return StatusDashboardConfig(
        group_by_field=_pick(raw, "groupByField", "group_by_field"),
        sort_by=sort_by,
        numeric_field=str(_pick(raw, "numericField", "wordCountField", "numeric_field", default="word-count")),
        range_field=str(_pick(raw, "rangeField", "yearField", "range_field", default="year")),
        show_total_stats=_as_bool(_pick(raw, "showTotalStats", "show_total_stats"), True),
    )


def normalize_settings(raw: Mapping[str, Any]) -> CatalogSettings:
    """Build settings from a raw mapping.

    Display preferences are coerced leniently; an inconsistent schema raises
    :class:`SchemaError`, as does a dashboard referring to undefined fields.
    """
    if not isinstance(raw, Mapping):
        raise SchemaError("Settings must be a mapping")
    schema_raw = raw.get("schema")
    if schema_raw is None:
        raise SchemaError("Settings do not define a catalog schema")
    schema = schema_raw if isinstance(schema_raw, CatalogSchema) else schema_from_dict(schema_raw)

    dashboards = raw.get("dashboards") or {}
    status = normalize_status_dashboard(dashboards.get("statusDashboard", dashboards.get("status_dashboard")))
    if status.group_by_field and schema.field(status.group_by_field) is None:
        raise SchemaError(f"Status dashboard groups by undefined field '{status.group_by_field}'")

    filter_bar_raw = dashboards.get("filterBar", dashboards.get("filter_bar")) or {}
    definitions = normalize_filter_definitions(filter_bar_raw.get("filters") if isinstance(filter_bar_raw, Mapping) else filter_bar_raw)
    for d in definitions:
        if schema.field(d.field) is None:
            raise SchemaError(f"Filter '{d.label}' references undefined field '{d.field}'")

    return CatalogSettings(
        schema=schema,
        catalog_path=str(_pick(raw, "catalogPath", "catalog_path", default="works")),
        ui=normalize_ui(raw.get("ui")),
        status_dashboard=status,
        filter_bar=tuple(definitions),
        log_level=str(_pick(raw, "logLevel", "log_level", default="INFO")).upper(),
    )


def get_preset(name: str) -> CatalogSettings:
    try:
        return normalize_settings(PRESETS[name])
    except KeyError:
        raise KeyError(f"Unknown settings preset '{name}' (available: {', '.join(sorted(PRESETS))})") from None


def _read_mapping(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SchemaError(f"Settings file {path} must contain a mapping")
    return data


def _apply_env(settings: CatalogSettings) -> CatalogSettings:
    changes: Dict[str, Any] = {}
    if os.environ.get(CATALOG_PATH_ENV):
        changes["catalog_path"] = os.environ[CATALOG_PATH_ENV]
    if os.environ.get(LOG_LEVEL_ENV):
        changes["log_level"] = os.environ[LOG_LEVEL_ENV].upper()
    return replace(settings, **changes) if changes else settings


def load_settings(path: Optional[str | Path] = None) -> CatalogSettings:
    """Load settings from YAML/JSON, falling back to the pulp-fiction preset."""
    settings_path = Path(path or os.environ.get(SETTINGS_ENV, DEFAULT_SETTINGS_FILE))
    if settings_path.exists():
        raw = _read_mapping(settings_path)
        preset = raw.get("preset")
        if preset and "schema" not in raw:
            merged = dict(PRESETS.get(str(preset)) or {})
            merged.update({k: v for k, v in raw.items() if k != "preset"})
            raw = merged
        settings = normalize_settings(raw)
        base = settings_path.parent.resolve()
        if not Path(settings.catalog_path).is_absolute():
            settings = replace(settings, catalog_path=str(base / settings.catalog_path))
        logger.info("Loaded settings from %s", settings_path)
    else:
        settings = get_preset("pulp-fiction")
        logger.info("Using pulp-fiction preset (no settings file at %s)", settings_path)
    return _apply_env(settings)


def settings_to_dict(settings: CatalogSettings) -> Dict[str, Any]:
    return {
        "catalogPath": settings.catalog_path,
        "schema": schema_to_dict(settings.schema),
        "ui": {
            "itemsPerPage": settings.ui.items_per_page,
            "defaultSortColumn": settings.ui.default_sort_column,
            "defaultSortDesc": settings.ui.default_sort_desc,
            "compactMode": settings.ui.compact_mode,
        },
        "dashboards": {
            "statusDashboard": {
                "groupByField": settings.status_dashboard.group_by_field,
                "sortBy": settings.status_dashboard.sort_by,
                "numericField": settings.status_dashboard.numeric_field,
                "rangeField": settings.status_dashboard.range_field,
                "showTotalStats": settings.status_dashboard.show_total_stats,
            },
            "filterBar": {
                "filters": [
                    {"field": d.field, "type": d.type, "label": d.label, "enabled": d.enabled, "options": list(d.options)}
                    for d in settings.filter_bar
                ]
            },
        },
        "logLevel": settings.log_level,
    }


def with_schema(settings: CatalogSettings, schema: CatalogSchema) -> CatalogSettings:
    return replace(settings, schema=schema)


def with_ui(settings: CatalogSettings, **changes: Any) -> CatalogSettings:
    return replace(settings, ui=replace(settings.ui, **changes))


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def filter_definitions(settings: CatalogSettings, *, enabled_only: bool = True) -> List[FilterDefinition]:
    return [d for d in settings.filter_bar if d.enabled or not enabled_only]

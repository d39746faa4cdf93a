from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


FIELD_TYPES = ("string", "number", "date", "boolean", "array", "reference-array", "object")
SCALAR_TYPES = frozenset({"string", "number", "date", "boolean"})
SEQUENCE_TYPES = frozenset({"array", "reference-array"})
FIELD_CATEGORIES = ("metadata", "status", "workflow", "content", "custom")

TYPE_ALIASES = {"wikilink-array": "reference-array", "text": "string", "bool": "boolean"}


class SchemaError(ValueError):
    """Raised when a catalog schema is internally inconsistent."""


def normalize_field_type(value: object) -> str:
    name = str(value or "string").strip().lower()
    name = TYPE_ALIASES.get(name, name)
    if name not in FIELD_TYPES:
        raise SchemaError(f"Unknown field type '{value}'")
    return name


@dataclass(frozen=True)
class SchemaField:
    key: str
    label: str = ""
    type: str = "string"
    category: str = "metadata"
    visible: bool = True
    filterable: bool = False
    sortable: bool = False
    sort_order: int = 0
    array_item_type: Optional[str] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.key or not str(self.key).strip():
            raise SchemaError("Schema field key must not be empty")
        object.__setattr__(self, "type", normalize_field_type(self.type))
        if not self.label:
            object.__setattr__(self, "label", self.key)
        if self.category not in FIELD_CATEGORIES:
            object.__setattr__(self, "category", "custom")

    @property
    def is_scalar(self) -> bool:
        return self.type in SCALAR_TYPES

    @property
    def is_sequence(self) -> bool:
        return self.type in SEQUENCE_TYPES


@dataclass(frozen=True)
class CoreFields:
    title_field: str
    id_field: Optional[str] = None
    status_field: Optional[str] = None


@dataclass(frozen=True)
class CatalogSchema:
    """Ordered field definitions shared by every item of one catalog.

    Construction validates the schema: keys are unique and every core field
    names a defined field. Lookups by key never raise; unknown keys resolve to
    ``None`` so queries over stale configuration degrade instead of failing.
    """

    catalog_name: str
    fields: Tuple[SchemaField, ...]
    core_fields: CoreFields
    _by_key: Mapping[str, SchemaField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        by_key: Dict[str, SchemaField] = {}
        for f in self.fields:
            if f.key in by_key:
                raise SchemaError(f"Duplicate schema field key '{f.key}'")
            by_key[f.key] = f
        object.__setattr__(self, "_by_key", by_key)
        self.validate()

    def validate(self) -> None:
        by_key = self._by_key
        core = self.core_fields
        if core.title_field not in by_key:
            raise SchemaError(f"titleField '{core.title_field}' is not defined in schema '{self.catalog_name}'")
        if core.id_field is not None and core.id_field not in by_key:
            raise SchemaError(f"idField '{core.id_field}' is not defined in schema '{self.catalog_name}'")
        if core.status_field is not None and core.status_field not in by_key:
            raise SchemaError(f"statusField '{core.status_field}' is not defined in schema '{self.catalog_name}'")

    def field(self, key: str) -> Optional[SchemaField]:
        return self._by_key.get(key)

    def field_type(self, key: str) -> Optional[str]:
        f = self._by_key.get(key)
        return f.type if f is not None else None

    def keys(self) -> List[str]:
        return [f.key for f in self.fields]

    def visible_fields(self) -> List[SchemaField]:
        return _ordered(f for f in self.fields if f.visible)

    def filterable_fields(self) -> List[SchemaField]:
        return _ordered(f for f in self.fields if f.filterable)

    def sortable_fields(self) -> List[SchemaField]:
        return _ordered(f for f in self.fields if f.sortable)

    def fields_by_category(self, category: str) -> List[SchemaField]:
        return _ordered(f for f in self.fields if f.category == category)


def _ordered(fields: Iterable[SchemaField]) -> List[SchemaField]:
    return sorted(fields, key=lambda f: f.sort_order)


def _as_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1", "on"}
    return bool(value)


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def field_from_dict(raw: Mapping[str, Any], *, position: int = 0) -> SchemaField:
    if not isinstance(raw, Mapping):
        raise SchemaError(f"Schema field definition must be a mapping, got {type(raw).__name__}")
    return SchemaField(
        key=str(raw.get("key") or "").strip(),
        label=str(raw.get("label") or ""),
        type=raw.get("type", "string"),
        category=str(raw.get("category") or "metadata"),
        visible=_as_bool(raw.get("visible"), True),
        filterable=_as_bool(raw.get("filterable"), False),
        sortable=_as_bool(raw.get("sortable"), False),
        sort_order=_as_int(raw.get("sortOrder", raw.get("sort_order")), position),
        array_item_type=raw.get("arrayItemType", raw.get("array_item_type")),
        description=str(raw.get("description") or ""),
    )


def schema_from_dict(raw: Mapping[str, Any]) -> CatalogSchema:
    """Build a validated schema from its configuration mapping.

    Accepts both the camelCase keys used by stored settings (``catalogName``,
    ``coreFields.titleField``) and snake_case equivalents.
    """
    if not isinstance(raw, Mapping):
        raise SchemaError("Catalog schema must be a mapping")
    raw_fields = raw.get("fields") or []
    if not isinstance(raw_fields, (list, tuple)):
        raise SchemaError("Catalog schema 'fields' must be a list")
    fields = tuple(field_from_dict(f, position=i + 1) for i, f in enumerate(raw_fields))

    core = raw.get("coreFields", raw.get("core_fields")) or {}
    title_field = core.get("titleField", core.get("title_field"))
    if not title_field:
        raise SchemaError("Catalog schema must declare coreFields.titleField")
    return CatalogSchema(
        catalog_name=str(raw.get("catalogName", raw.get("catalog_name")) or "Catalog"),
        fields=fields,
        core_fields=CoreFields(
            title_field=str(title_field),
            id_field=core.get("idField", core.get("id_field")),
            status_field=core.get("statusField", core.get("status_field")),
        ),
    )


def schema_to_dict(schema: CatalogSchema) -> Dict[str, Any]:
    return {
        "catalogName": schema.catalog_name,
        "fields": [
            {
                "key": f.key,
                "label": f.label,
                "type": f.type,
                "category": f.category,
                "visible": f.visible,
                "filterable": f.filterable,
                "sortable": f.sortable,
                "sortOrder": f.sort_order,
                "arrayItemType": f.array_item_type,
                "description": f.description,
            }
            for f in schema.fields
        ],
        "coreFields": {
            "titleField": schema.core_fields.title_field,
            "idField": schema.core_fields.id_field,
            "statusField": schema.core_fields.status_field,
        },
    }

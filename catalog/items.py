from __future__ import annotations

import logging
import math
import re
import threading
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from catalog.coercion import CoercionError, FieldValue, coerce_strict, is_absent
from catalog.schema import CatalogSchema


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogItem:
    """One typed record derived from a single source document.

    Items are immutable snapshots: the field mapping is read-only and a reload
    always produces new items instead of updating existing ones.
    """

    id: str
    source_file: str
    fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {k: (tuple(v) if isinstance(v, list) else v) for k, v in dict(self.fields).items()}
        object.__setattr__(self, "fields", MappingProxyType(frozen))

    def __hash__(self) -> int:
        return hash((self.id, self.source_file))

    def get_field(self, key: str) -> FieldValue:
        return self.fields.get(key)

    def has_field(self, key: str) -> bool:
        return key in self.fields and not is_absent(self.fields[key])

    def field_keys(self) -> List[str]:
        return list(self.fields.keys())

    def with_fields(self, **changes: FieldValue) -> "CatalogItem":
        """Return a copy with ``changes`` applied; ``self`` is left unchanged."""
        merged = dict(self.fields)
        merged.update(changes)
        return CatalogItem(id=self.id, source_file=self.source_file, fields=merged)

    def to_object(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in self.fields.items():
            if is_absent(value):
                out[key] = None
            elif isinstance(value, tuple):
                out[key] = list(value)
            elif isinstance(value, Mapping):
                out[key] = dict(value)
            else:
                out[key] = value
        return out


def slugify_identity(identity: str) -> str:
    return re.sub(r"\s+", "-", identity.strip().lower())


def derive_item_id(raw: Mapping[str, Any], source_file: str, schema: CatalogSchema) -> str:
    id_field = schema.core_fields.id_field
    if id_field:
        value = raw.get(id_field)
        if value is not None and not (isinstance(value, float) and math.isnan(value)):
            text = str(value).strip()
            if text:
                return text
    return slugify_identity(source_file)


def build_catalog_item(raw: Mapping[str, Any], source_file: str, schema: CatalogSchema) -> CatalogItem:
    """Coerce every declared field of ``raw`` and assemble a new item.

    A field that cannot be coerced is left absent and logged; the document is
    still returned so one malformed header never drops a record.
    """
    values: Dict[str, FieldValue] = {}
    for f in schema.fields:
        raw_value = raw.get(f.key)
        try:
            value = coerce_strict(raw_value, f.type, item_type=f.array_item_type)
        except (CoercionError, TypeError, ValueError, OverflowError) as exc:
            logger.warning("Could not coerce field '%s' in %s: %s", f.key, source_file, exc)
            continue
        if value is None:
            continue
        values[f.key] = value

    title_field = schema.core_fields.title_field
    if not values.get(title_field):
        values[title_field] = PurePosixPath(source_file).stem

    item_id = derive_item_id(values, source_file, schema)
    return CatalogItem(id=item_id, source_file=source_file, fields=values)


@dataclass(frozen=True)
class CatalogSnapshot:
    revision: int
    items: Tuple[CatalogItem, ...] = ()

    def __len__(self) -> int:
        return len(self.items)


class CatalogItemStore:
    """Holds the published ``(revision, items)`` pair for one catalog.

    The pair lives in a single immutable :class:`CatalogSnapshot`, so readers
    always see a revision together with the items it was published with.
    """

    def __init__(self, items: Iterable[CatalogItem] = ()) -> None:
        self._cond = threading.Condition()
        self._snapshot = CatalogSnapshot(revision=0, items=tuple(items))

    @property
    def revision(self) -> int:
        return self._snapshot.revision

    @property
    def items(self) -> Tuple[CatalogItem, ...]:
        return self._snapshot.items

    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    def replace(self, items: Sequence[CatalogItem]) -> CatalogSnapshot:
        new_items = tuple(items)
        with self._cond:
            snap = CatalogSnapshot(revision=self._snapshot.revision + 1, items=new_items)
            self._snapshot = snap
            self._cond.notify_all()
        return snap

    def wait_for_revision(self, revision: int, timeout: Optional[float] = None) -> Optional[CatalogSnapshot]:
        """Block until a snapshot newer than or equal to ``revision`` is published."""
        with self._cond:
            ok = self._cond.wait_for(lambda: self._snapshot.revision >= revision, timeout=timeout)
            return self._snapshot if ok else None

    def get(self, item_id: str) -> Optional[CatalogItem]:
        for item in self._snapshot.items:
            if item.id == item_id:
                return item
        return None

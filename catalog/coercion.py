from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Mapping, Optional, Tuple, Union

import pandas as pd


FieldValue = Union[str, int, float, bool, Tuple[Any, ...], Mapping[str, Any], None]

NAN = float("nan")

_WIKILINK = re.compile(r"^\[\[(?P<target>[^\]|]+)(?:\|[^\]]*)?\]\]$")
# pandas resolves these against the clock, so they never name a fixed date
_RELATIVE_DATES = frozenset({"now", "today", "tomorrow", "yesterday"})


class CoercionError(ValueError):
    """A raw value could not be converted to its declared field type."""


def is_absent(value: object) -> bool:
    """Return ``True`` for the nil field value and the not-a-number sentinel."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not is_absent(value)


def _to_python_number(value: object) -> Union[int, float]:
    if hasattr(value, "item"):
        value = value.item()  # numpy scalar
    return value  # type: ignore[return-value]


def coerce_number(raw: object) -> Union[int, float]:
    if raw is None or isinstance(raw, (list, tuple, dict)):
        return NAN
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw).strip()
    if not text:
        return NAN
    parsed = pd.to_numeric(text, errors="coerce")
    if pd.isna(parsed):
        return NAN
    return _to_python_number(parsed)


def coerce_boolean(raw: object) -> bool:
    if raw is True:
        return True
    if isinstance(raw, str):
        return raw.strip().lower() == "true"
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return raw == 1
    return False


def coerce_date(raw: object) -> Optional[str]:
    """Normalise ``raw`` to an ISO ``YYYY-MM-DD`` string.

    Raises :class:`CoercionError` for input that does not name a calendar date.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    if isinstance(raw, bool) or isinstance(raw, (list, tuple, dict)):
        raise CoercionError(f"Cannot interpret {raw!r} as a date")
    text = str(raw).strip()
    if not text:
        return None
    if text.lower() in _RELATIVE_DATES:
        raise CoercionError(f"Relative date {raw!r} is not a calendar date")
    if re.fullmatch(r"\d{4}", text):
        text = f"{text}-01-01"
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        raise CoercionError(f"Cannot interpret {raw!r} as a date")
    return parsed.date().isoformat()


def reference_text(value: object) -> Optional[str]:
    """Flatten one reference-array element to its display text.

    YAML reads an unquoted ``[[Target]]`` link as a nested list, so nested
    single-element lists are unwrapped before ``[[...|alias]]`` brackets are
    stripped.
    """
    while isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0] if len(value) == 1 else ", ".join(str(v) for v in value)
    if value is None:
        return None
    text = str(value).strip()
    match = _WIKILINK.match(text)
    if match:
        text = match.group("target").strip()
    return text or None


def coerce_array(raw: object, *, item_type: Optional[str] = None) -> Tuple[Any, ...]:
    if raw is None:
        return ()
    values = tuple(raw) if isinstance(raw, (list, tuple)) else (raw,)
    if item_type == "string":
        return tuple(coerce_string(v) for v in values if v is not None)
    return values


def coerce_reference_array(raw: object) -> Tuple[str, ...]:
    if raw is None:
        return ()
    values = raw if isinstance(raw, (list, tuple)) else [raw]
    out = []
    for v in values:
        text = reference_text(v)
        if text is not None:
            out.append(text)
    return tuple(out)


def coerce_object(raw: object) -> Optional[Mapping[str, Any]]:
    if isinstance(raw, Mapping):
        return dict(raw)
    return None


def coerce_string(raw: object) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, (datetime, date)):
        return raw.isoformat()
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw)


def coerce_strict(raw: object, field_type: str, *, item_type: Optional[str] = None) -> FieldValue:
    if field_type == "number":
        return coerce_number(raw)
    if field_type == "boolean":
        return coerce_boolean(raw)
    if field_type == "date":
        return coerce_date(raw)
    if field_type == "array":
        return coerce_array(raw, item_type=item_type)
    if field_type == "reference-array":
        return coerce_reference_array(raw)
    if field_type == "object":
        return coerce_object(raw)
    return coerce_string(raw)


def coerce(raw: object, field_type: str, *, item_type: Optional[str] = None) -> FieldValue:
    """Convert ``raw`` to ``field_type``; unparseable input becomes absent."""
    try:
        return coerce_strict(raw, field_type, item_type=item_type)
    except (CoercionError, TypeError, ValueError, OverflowError):
        return None

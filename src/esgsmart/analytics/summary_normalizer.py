from __future__ import annotations

import logging
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from esgsmart.config import SCHEMA_DIR, load_yaml
from esgsmart.types import CanonicalSummary
from esgsmart.utils.numeric_parser import format_number, to_number

logger = logging.getLogger(__name__)

# Wrapper the extraction endpoint sometimes nests the fields under
NESTED_KEY = "json_schema"


@lru_cache(maxsize=1)
def load_field_table() -> Dict[str, Any]:
    """The versioned canonical-field → candidate-keys table."""
    table = load_yaml(SCHEMA_DIR / "summary_fields.yaml")
    logger.debug("Loaded summary field table version %s", table.get("version"))
    return table


# -------------------------------------------------------------------
# Alias resolution
# -------------------------------------------------------------------


def pick(record: Mapping[str, Any], keys: List[str], default: Any = None) -> Any:
    """
    First present, non-null value among `keys`, else `default`.

    Keys are tried at the top level first, then inside a nested
    `json_schema` mapping if the record has one.
    """
    sources = [record]
    nested = record.get(NESTED_KEY)
    if isinstance(nested, Mapping):
        sources.append(nested)

    for source in sources:
        for key in keys:
            value = source.get(key)
            if value is not None:
                return value
    return default


def _coerce(kind: str, value: Any, default: Any) -> Any:
    if kind == "number":
        n = to_number(value)
        return n if n is not None else default
    if kind == "list":
        if not isinstance(value, list):
            return list(default or [])
        return [v for v in value if v]
    if kind == "text":
        return value if isinstance(value, str) else str(value)
    return value


def normalize_summary(record: Optional[Mapping[str, Any]]) -> CanonicalSummary:
    """
    Map a loosely keyed summary record onto CanonicalSummary.

    Never raises: a missing, null or wrongly typed input yields defaults.
    """
    if not isinstance(record, Mapping):
        record = {}

    fields: Dict[str, Any] = load_field_table().get("fields", {})
    values: Dict[str, Any] = {}

    for name, entry in fields.items():
        default = entry.get("default")
        kind = entry.get("kind", "text")
        raw = pick(record, entry.get("keys", []), None)
        if raw is None:
            values[name] = list(default or []) if kind == "list" else default
        else:
            values[name] = _coerce(kind, raw, default)

    return CanonicalSummary(**values)


# -------------------------------------------------------------------
# Derived views
# -------------------------------------------------------------------


def _join(value: Any) -> Any:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:,.0f}" if value.is_integer() else f"{value:,}"


def key_cards(summary: CanonicalSummary) -> List[Dict[str, Any]]:
    revenue = summary.revenue
    if isinstance(revenue, (int, float)) and not isinstance(revenue, bool):
        revenue = f"${format_number(float(revenue))}"

    return [
        {"label": "Company", "value": summary.company_name},
        {"label": "Sector", "value": summary.sector},
        {"label": "Country", "value": summary.country},
        {"label": "Region", "value": summary.region},
        {"label": "Year", "value": summary.year},
        {"label": "Employees", "value": summary.employees},
        {"label": "Revenue", "value": revenue},
        {"label": "Framework", "value": _join(summary.framework)},
        {"label": "Future Framework", "value": _join(summary.future_framework)},
    ]


def summary_bullets(summary: CanonicalSummary) -> List[str]:
    bullets: List[str] = []

    def with_unit(text: str, unit: str) -> str:
        return f"{text} {unit}" if unit else text

    if summary.scope_1 is not None:
        bullets.append(with_unit(f"Scope 1 {_fmt(summary.scope_1)}", summary.scope_1_unit))
    if summary.scope_2 is not None:
        bullets.append(with_unit(f"Scope 2 {_fmt(summary.scope_2)}", summary.scope_2_unit))
    if summary.electricity:
        bullets.append(with_unit(f"Electricity {summary.electricity}", summary.electricity_unit))
    if summary.water:
        bullets.append(with_unit(f"Water {summary.water}", summary.water_unit))
    if summary.un_sdg:
        bullets.append("UN SDGs " + ", ".join(str(s) for s in summary.un_sdg))
    if summary.materiality_topics:
        bullets.append("Material topics " + ", ".join(str(m) for m in summary.materiality_topics))

    return bullets


def chart_data(summary: CanonicalSummary) -> List[Dict[str, Any]]:
    """Scope 1 / Scope 2 bars; a value that did not parse charts as 0."""
    return [
        {"label": "Scope 1", "value": summary.scope_1 if summary.scope_1 is not None else 0.0},
        {"label": "Scope 2", "value": summary.scope_2 if summary.scope_2 is not None else 0.0},
    ]


def summary_view(record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    summary = normalize_summary(record)
    return {
        "fields": asdict(summary),
        "cards": key_cards(summary),
        "bullets": summary_bullets(summary),
        "chart": chart_data(summary),
    }

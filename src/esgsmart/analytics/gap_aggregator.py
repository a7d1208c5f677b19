from __future__ import annotations

import logging
import re
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional

from esgsmart.config import SCHEMA_DIR, load_json
from esgsmart.types import (
    SEVERITY_LABELS,
    SEVERITY_LEGEND,
    SEVERITY_LEVELS,
    CategoryBreakdown,
    GapFinding,
    GapSummary,
)

logger = logging.getLogger(__name__)

TOP_CATEGORIES = 15
OTHER_CATEGORY = "Other"

# "GRI 305-1", "GRI-2:7", "305-1", "3:1" -> family before the separator
_FAMILY_WITH_SEPARATOR = re.compile(r"(?:GRI[- ])?(\d+)[-:]")
# "305" -> bare leading code
_FAMILY_LEADING = re.compile(r"^(\d+)")


@lru_cache(maxsize=1)
def gri_topics() -> Dict[str, str]:
    return load_json(SCHEMA_DIR / "gri_topics.json")


# -------------------------------------------------------------------
# Parsing
# -------------------------------------------------------------------


def parse_finding(raw: Any) -> GapFinding:
    r = raw if isinstance(raw, Mapping) else {}
    return GapFinding(
        source_code=r.get("source_question_code") or "",
        value=r.get("value"),
        framework_code=r.get("framework_question_code") or "",
        framework_name=r.get("framework_question_name") or "",
        framework_status=r.get("framework_status") or "",
        sector_code=r.get("sector_question_code") or "",
        sector_name=r.get("sector_question_name") or "",
        sector_status=r.get("sector_status") or "",
        severity=r.get("severity"),
    )


def parse_findings(raw: Any) -> List[GapFinding]:
    if not isinstance(raw, list):
        return []
    return [parse_finding(r) for r in raw]


def category_of(framework_code: Any) -> str:
    """
    "GRI <family>" for a code we can read a family number from, else "Other".
    """
    code = framework_code if isinstance(framework_code, str) else ""
    m = _FAMILY_WITH_SEPARATOR.search(code) or _FAMILY_LEADING.match(code)
    return f"GRI {m.group(1)}" if m else OTHER_CATEGORY


# -------------------------------------------------------------------
# Aggregation
# -------------------------------------------------------------------


def aggregate_gaps(
    findings: Iterable[GapFinding],
    top_n: int = TOP_CATEGORIES,
) -> GapSummary:
    """
    Severity distribution and per-category breakdown.

    Percentages use only findings with a known severity (0-3) as the
    denominator. Categories are ranked by total count; ties keep the order
    in which each category first appeared.
    """
    findings = list(findings)
    counts = {s: 0 for s in SEVERITY_LEVELS}
    unknown = 0
    groups: Dict[str, CategoryBreakdown] = {}

    for f in findings:
        level = f.severity_level
        if level is None:
            unknown += 1
        else:
            counts[level] += 1

        category = category_of(f.framework_code)
        group = groups.get(category)
        if group is None:
            family = category.replace("GRI ", "") if category != OTHER_CATEGORY else None
            group = CategoryBreakdown(
                category=category,
                topic=gri_topics().get(family) if family else None,
            )
            groups[category] = group

        if level is None:
            group.unknown += 1
        else:
            group.counts[level] += 1

    known_total = sum(counts.values())
    percentages = {
        s: (counts[s] / known_total * 100 if known_total else 0.0) for s in SEVERITY_LEVELS
    }

    # dict preserves first-seen order and sorted() is stable
    ranked = sorted(groups.values(), key=lambda g: g.total, reverse=True)

    if unknown:
        logger.warning("%d gap finding(s) with unknown severity", unknown)

    return GapSummary(
        total=len(findings),
        known_total=known_total,
        counts=counts,
        percentages=percentages,
        unknown=unknown,
        categories=ranked[:top_n],
        category_count=len(ranked),
    )


# -------------------------------------------------------------------
# Display helpers
# -------------------------------------------------------------------


_REPORTED_VALUE_RULES = [
    (re.compile(r"financ|financial|accounts|accounting"), "Available in financial records"),
    (re.compile(r"hr|human\s*resources|personnel"), "Available in HR records"),
    (re.compile(r"governance|board|minutes|corporate"), "Available in governance documentation"),
    (re.compile(r"procure|supplier|vendor|purchasing"), "Available in procurement/supplier records"),
    (re.compile(r"ops|operation|facility|bms|ems|plant"), "Available in operational systems"),
    (re.compile(r"sustainability\s*report|esg\s*report|annual\s*report"), "Disclosed in sustainability report"),
    (re.compile(r"available|yes|disclosed|reported"), "Disclosed in sustainability report"),
    (re.compile(r"not\s*available|no|missing|none"), "Not disclosed"),
]


def clean_reported_value(value: Any) -> str:
    """
    Map a free-text "where is this data" answer onto a standard phrase.

    Rules are plain substring matches tried in order, so "Not available"
    hits the "available" rule first.
    """
    if value is None or value == "None" or value == "":
        return "Not disclosed"
    v = str(value).lower()
    for pattern, phrase in _REPORTED_VALUE_RULES:
        if pattern.search(v):
            return phrase
    return str(value)


def title_case_code(code: Any) -> str:
    """sourceQuestionCode / source_question_code -> Source Question Code"""
    if not code:
        return "—"
    s = str(code).replace("_", " ")
    s = re.sub(r"([a-z])([A-Z])", r"\1 \2", s)
    return " ".join(w[:1].upper() + w[1:].lower() for w in s.split(" ") if w)


def severity_label(finding: GapFinding) -> str:
    level = finding.severity_level
    if level is not None:
        return SEVERITY_LABELS[level]
    return "—" if finding.severity is None else str(finding.severity)


def table_rows(findings: Iterable[GapFinding]) -> List[Dict[str, Any]]:
    """Full mapping table, one row per finding, unknown severities included."""
    return [
        {
            "Reported Standard": title_case_code(f.source_code),
            "Reported Value": clean_reported_value(f.value),
            "Main Framework Code": f.framework_code or "—",
            "Main Framework Question": f.framework_name or "—",
            "Main Framework Status": f.framework_status or "—",
            "Sector Framework Code": f.sector_code or "—",
            "Sector Framework Question": f.sector_name or "—",
            "Sector Status": f.sector_status or "—",
            "Severity": severity_label(f),
        }
        for f in findings
    ]


def gap_view(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, list):
        return None

    findings = parse_findings(raw)
    summary = aggregate_gaps(findings)

    return {
        "total": summary.total,
        "missing": summary.missing,
        "present": summary.present,
        "unknown": summary.unknown,
        "distribution": [
            {
                "severity": s,
                "label": SEVERITY_LABELS[s],
                "legend": SEVERITY_LEGEND[s],
                "count": summary.counts[s],
                "percent": round(summary.percentages[s]),
            }
            for s in SEVERITY_LEVELS
        ],
        "categories": [
            {**asdict(c), "total": c.total} for c in summary.categories
        ],
        "category_count": summary.category_count,
        "rows": table_rows(findings),
    }

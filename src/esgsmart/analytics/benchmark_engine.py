from __future__ import annotations

import logging
from dataclasses import asdict
from statistics import median as _median
from typing import Any, Dict, Iterable, List, Mapping, Optional

from esgsmart.types import (
    Ambition,
    CompanyEmissionsProfile,
    DerivedTargets,
    PeerRow,
    PeerStatistics,
    TrajectoryPoint,
    TrajectorySeries,
)
from esgsmart.utils.numeric_parser import format_percent, to_fraction, to_number, to_year

logger = logging.getLogger(__name__)

# One percentage point: closer than this to a median counts as "in line"
AMBITION_EPSILON = 0.01

AVERAGE_LABEL = "Average"
MEDIAN_LABEL = "Median"

SERIES_NAMES = ("Scope 1", "Scope 2", "Scope 1+2")

# Target spans beyond this many years are treated as missing years
MAX_TRAJECTORY_YEARS = 200


# ---------------------------------------------------------------------
# Company profile and target derivation
# ---------------------------------------------------------------------


def _reduction_number(value: Any) -> Optional[float]:
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    return to_number(value)


def parse_company(raw: Optional[Mapping[str, Any]]) -> CompanyEmissionsProfile:
    c = raw if isinstance(raw, Mapping) else {}
    return CompanyEmissionsProfile(
        company_name=str(c.get("company_name") or ""),
        start_year=to_year(c.get("sbti_start_year")),
        target_year=to_year(c.get("sbti_target_year")),
        scope_1=to_number(c.get("scope_1")),
        scope_2=to_number(c.get("scope_2")),
        scope_1_2=to_number(c.get("sbti_scope_1_2")),
        scope_1_target=to_number(c.get("sbti_scope_1_target")),
        scope_2_target=to_number(c.get("sbti_scope_2_target")),
        scope_1_2_target=to_number(c.get("sbti_scope_1_2_target")),
        reduction_raw=_reduction_number(c.get("sbti_scope_1_2_reduction_pct")),
    )


def derive_targets(company: CompanyEmissionsProfile) -> DerivedTargets:
    """
    Fill in whichever baseline/target values can be derived.

    Steps run in order, each only when its inputs exist and its output is
    still missing:
      1. combined baseline = scope 1 + scope 2
      2. reduction > 1 is a percentage, otherwise a fraction
      3. combined target = combined baseline * (1 - reduction)
      4. split the combined target by baseline share into scope targets
      5. combined target = scope 1 target + scope 2 target
    """
    d = DerivedTargets(
        s1b=company.scope_1,
        s2b=company.scope_2,
        s12b=company.scope_1_2,
        s1t=company.scope_1_target,
        s2t=company.scope_2_target,
        s12t=company.scope_1_2_target,
    )

    if d.s12b is None and d.s1b is not None and d.s2b is not None:
        d.s12b = d.s1b + d.s2b

    red = company.reduction_raw
    if red is not None:
        d.reduction = red / 100 if red > 1 else red

    if d.s12t is None and d.reduction is not None and d.s12b is not None:
        d.s12t = d.s12b * (1 - d.reduction)

    if (
        d.s12t is not None
        and (d.s1t is None or d.s2t is None)
        and d.s1b is not None
        and d.s2b is not None
        and d.s1b + d.s2b > 0
    ):
        base = d.s1b + d.s2b
        if d.s1t is None:
            d.s1t = d.s12t * (d.s1b / base)
        if d.s2t is None:
            d.s2t = d.s12t * (d.s2b / base)

    if d.s12t is None and d.s1t is not None and d.s2t is not None:
        d.s12t = d.s1t + d.s2t

    return d


# ---------------------------------------------------------------------
# Trajectories
# ---------------------------------------------------------------------


def interpolate(
    baseline: Optional[float],
    target: Optional[float],
    start_year: int,
    end_year: int,
) -> List[TrajectoryPoint]:
    """One point per year from start to end inclusive; [] if either end is missing."""
    if baseline is None or target is None:
        return []
    span = end_year - start_year
    if span <= 0 or span > MAX_TRAJECTORY_YEARS:
        return []
    points = []
    for y in range(start_year, end_year + 1):
        t = (y - start_year) / span
        # (1 - t) * a + t * b hits both endpoints exactly
        points.append(TrajectoryPoint(year=y, value=baseline * (1 - t) + target * t))
    return points


def build_trajectories(
    company: CompanyEmissionsProfile,
    derived: Optional[DerivedTargets] = None,
) -> List[TrajectorySeries]:
    sy, ty = company.start_year, company.target_year
    if sy is None or ty is None or ty <= sy:
        return []
    if ty - sy > MAX_TRAJECTORY_YEARS:
        logger.warning("build_trajectories: span %s-%s too long, no trajectories", sy, ty)
        return []

    d = derived or derive_targets(company)
    pairs = ((d.s1b, d.s1t), (d.s2b, d.s2t), (d.s12b, d.s12t))
    return [
        TrajectorySeries(name=name, points=interpolate(b, t, sy, ty))
        for name, (b, t) in zip(SERIES_NAMES, pairs)
    ]


# ---------------------------------------------------------------------
# Peers
# ---------------------------------------------------------------------


def median(values: Iterable[float]) -> Optional[float]:
    vals = list(values)
    if not vals:
        return None
    return float(_median(vals))


def _year_text(value: Any) -> str:
    y = to_year(value)
    return str(y) if y is not None else "n/a"


def _pct_text(pct: Optional[float]) -> str:
    return "" if pct is None else f"{pct:.1f}%"


def _peer_row(raw: Any) -> PeerRow:
    r = raw if isinstance(raw, Mapping) else {}
    frac = to_fraction(r.get("sbti_scope_1_2_reduction_pct"))
    pct = None if frac is None else frac * 100
    return PeerRow(
        company=str(r.get("company_name") or ""),
        sector=str(r.get("sector") or ""),
        country=str(r.get("main_country") or ""),
        region=str(r.get("main_region") or ""),
        base_year=_year_text(r.get("sbti_start_year")),
        target_year=_year_text(r.get("sbti_target_year")),
        reduction_display=_pct_text(pct),
        reduction_pct=pct,
    )


def peer_statistics(raw_peers: Any) -> PeerStatistics:
    """
    Peer table with synthetic Average and Median rows, sorted by reduction
    descending. Peers whose reduction does not parse sort last and are left
    out of both aggregates.
    """
    peers = [_peer_row(r) for r in raw_peers] if isinstance(raw_peers, list) else []
    parsed = [p.reduction_pct for p in peers if p.reduction_pct is not None]

    mean_pct = sum(parsed) / len(parsed) if parsed else None
    median_pct = median(parsed)

    rows = peers + [
        PeerRow(
            company=AVERAGE_LABEL,
            reduction_pct=mean_pct,
            reduction_display=_pct_text(mean_pct),
            synthetic=True,
        ),
        PeerRow(
            company=MEDIAN_LABEL,
            reduction_pct=median_pct,
            reduction_display=_pct_text(median_pct),
            synthetic=True,
        ),
    ]
    rows.sort(key=lambda p: (p.reduction_pct is None, -(p.reduction_pct or 0.0)))

    return PeerStatistics(
        rows=rows,
        mean_pct=mean_pct,
        median_pct=median_pct,
        parsed_count=len(parsed),
    )


# ---------------------------------------------------------------------
# Ambition
# ---------------------------------------------------------------------


def classify_ambition(
    company_fraction: Optional[float],
    country_median: Optional[float],
    region_median: Optional[float],
    eps: float = AMBITION_EPSILON,
) -> Ambition:
    """All three values are fractions (0.42 == 42%)."""
    if company_fraction is None:
        return Ambition.UNCLEAR

    above_country = country_median is not None and company_fraction >= country_median + eps
    above_region = region_median is not None and company_fraction >= region_median + eps
    below_country = country_median is not None and company_fraction <= country_median - eps
    below_region = region_median is not None and company_fraction <= region_median - eps

    if above_country and above_region:
        return Ambition.MORE_THAN_BOTH
    if below_country and below_region:
        return Ambition.LESS_THAN_BOTH
    if above_country and below_region:
        return Ambition.ABOVE_COUNTRY_BELOW_REGION
    if above_region and below_country:
        return Ambition.ABOVE_REGION_BELOW_COUNTRY
    return Ambition.IN_LINE


def insight_text(
    company: CompanyEmissionsProfile,
    company_fraction: Optional[float],
    country_median: Optional[float],
    region_median: Optional[float],
    ambition: Ambition,
) -> str:
    name = company.company_name or "the company"
    sy, ty = company.start_year, company.target_year
    years = f"{ty - sy + 1} years" if sy is not None and ty is not None else "n/a"

    return (
        f"If {name} sets a near-term target of its Scope 1+2 reduction by {ty or 'n/a'}, "
        f"it will aim for a {format_percent(company_fraction)} reduction from its "
        f"{sy or 'n/a'} baseline, over {years}. Compared with the same country's median "
        f"({format_percent(country_median)}) and same region's median "
        f"({format_percent(region_median)}) companies validated by SBTi, "
        f"this target is {ambition.value}."
    )


# ---------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------


def _peer_dict(row: PeerRow) -> Dict[str, Any]:
    return {
        "Company": row.company,
        "Sector": row.sector,
        "Country": row.country,
        "Region": row.region,
        "Base Year": row.base_year,
        "Target Year": row.target_year,
        "% Reduction": row.reduction_display,
        "synthetic": row.synthetic,
    }


def analyze_benchmark(benchmark: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Full benchmark view: derived targets, trajectories, peer tables,
    medians, ambition and the insight sentence.
    """
    bench = benchmark if isinstance(benchmark, Mapping) else {}
    company = parse_company(bench.get("company"))
    derived = derive_targets(company)
    series = build_trajectories(company, derived)

    country = peer_statistics(bench.get("peers_country") or [])
    region = peer_statistics(bench.get("peers_region") or [])

    company_fraction = to_fraction(company.reduction_raw)
    country_median = None if country.median_pct is None else country.median_pct / 100
    region_median = None if region.median_pct is None else region.median_pct / 100

    ambition = classify_ambition(company_fraction, country_median, region_median)
    logger.debug(
        "Ambition for %s: company=%s country=%s region=%s -> %s",
        company.company_name, company_fraction, country_median, region_median, ambition.name,
    )

    return {
        "company": asdict(company),
        "derived": asdict(derived),
        "trajectories": [
            {"name": s.name, "points": [{"year": p.year, "value": p.value} for p in s.points]}
            for s in series
        ],
        "peers_country": [_peer_dict(r) for r in country.rows],
        "peers_region": [_peer_dict(r) for r in region.rows],
        "company_reduction": company_fraction,
        "country_median": country_median,
        "region_median": region_median,
        "ambition": ambition.value,
        "insight": insight_text(company, company_fraction, country_median, region_median, ambition),
    }

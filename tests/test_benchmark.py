# tests/test_benchmark.py
import pytest

from esgsmart.analytics.benchmark_engine import (
    MAX_TRAJECTORY_YEARS,
    analyze_benchmark,
    build_trajectories,
    classify_ambition,
    derive_targets,
    interpolate,
    median,
    parse_company,
    peer_statistics,
)
from esgsmart.types import Ambition
from esgsmart.utils.numeric_parser import to_fraction


COMPANY = {
    "company_name": "Acme REIT",
    "sbti_start_year": 2020,
    "sbti_target_year": 2030,
    "scope_1": 100,
    "scope_2": 50,
    "sbti_scope_1_2_reduction_pct": 42,
}


def peers(*values, country="Singapore"):
    return [
        {
            "company_name": f"Peer {i}",
            "sector": "Real Estate",
            "main_country": country,
            "main_region": "Asia",
            "sbti_start_year": 2019,
            "sbti_target_year": 2030,
            "sbti_scope_1_2_reduction_pct": v,
        }
        for i, v in enumerate(values)
    ]


# ---------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------


def test_derivation_chain():
    d = derive_targets(parse_company(COMPANY))

    assert d.s12b == 150
    assert d.reduction == pytest.approx(0.42)
    assert d.s12t == pytest.approx(87)
    assert d.s1t == pytest.approx(58)
    assert d.s2t == pytest.approx(29)


def test_fraction_reduction_is_not_rescaled():
    d = derive_targets(parse_company({**COMPANY, "sbti_scope_1_2_reduction_pct": 0.42}))
    assert d.s12t == pytest.approx(87)


def test_reduction_string_with_percent_sign():
    d = derive_targets(parse_company({**COMPANY, "sbti_scope_1_2_reduction_pct": "42%"}))
    assert d.reduction == pytest.approx(0.42)


def test_existing_targets_are_kept():
    d = derive_targets(
        parse_company({**COMPANY, "sbti_scope_1_target": 60, "sbti_scope_2_target": 20,
                       "sbti_scope_1_2_reduction_pct": None})
    )
    assert d.s1t == 60
    assert d.s2t == 20
    # step 5: combined target from the split targets
    assert d.s12t == 80


def test_no_split_when_baselines_sum_to_zero():
    d = derive_targets(parse_company({**COMPANY, "scope_1": 0, "scope_2": 0}))
    assert d.s12t == 0
    assert d.s1t is None
    assert d.s2t is None


# ---------------------------------------------------------------------
# Trajectories
# ---------------------------------------------------------------------


def test_interpolation_endpoints_and_monotonic():
    points = interpolate(150.0, 87.0, 2020, 2030)

    assert len(points) == 11
    assert points[0].year == 2020 and points[0].value == 150.0
    assert points[-1].year == 2030 and points[-1].value == 87.0
    values = [p.value for p in points]
    assert all(a >= b for a, b in zip(values, values[1:]))


def test_interpolation_missing_end_is_empty():
    assert interpolate(None, 87.0, 2020, 2030) == []
    assert interpolate(150.0, None, 2020, 2030) == []


def test_interpolation_refuses_implausible_span():
    assert interpolate(150.0, 87.0, 2020, 10**9) == []
    assert len(interpolate(150.0, 87.0, 2020, 2020 + MAX_TRAJECTORY_YEARS)) == MAX_TRAJECTORY_YEARS + 1


def test_three_series_for_valid_years():
    series = build_trajectories(parse_company(COMPANY))
    assert [s.name for s in series] == ["Scope 1", "Scope 2", "Scope 1+2"]
    assert all(len(s.points) == 11 for s in series)


@pytest.mark.parametrize(
    "start, target",
    [(2030, 2030), (2030, 2020), (None, 2030), ("soon", 2030)],
)
def test_no_series_for_bad_years(start, target):
    company = parse_company({**COMPANY, "sbti_start_year": start, "sbti_target_year": target})
    assert build_trajectories(company) == []


def test_no_series_for_implausible_target_year():
    company = parse_company({**COMPANY, "sbti_target_year": 1e9})
    assert build_trajectories(company) == []

    result = analyze_benchmark({"company": {**COMPANY, "sbti_target_year": 1e9}})
    assert result["trajectories"] == []


def test_series_with_missing_baseline_is_empty():
    company = parse_company({**COMPANY, "scope_2": None, "sbti_scope_1_2": 150})
    by_name = {s.name: s for s in build_trajectories(company)}
    assert by_name["Scope 2"].points == []
    assert by_name["Scope 1+2"].points[-1].value == pytest.approx(87)


# ---------------------------------------------------------------------
# Peers
# ---------------------------------------------------------------------


def test_percentage_normalization_shared_rule():
    assert to_fraction(50) == to_fraction(0.5) == 0.5
    assert to_fraction(to_fraction(0.3)) == 0.3


def test_median():
    assert median([10, 20, 30, 40]) == 25
    assert median([10, 20, 30]) == 20
    assert median([]) is None


def test_peer_statistics_sorted_with_synthetic_rows():
    stats = peer_statistics(peers(10, "20%", 0.5, 40))

    assert stats.mean_pct == 30
    assert stats.median_pct == 30
    assert stats.parsed_count == 4

    names = [r.company for r in stats.rows]
    assert names == ["Peer 2", "Peer 3", "Average", "Median", "Peer 1", "Peer 0"]
    assert stats.rows[0].reduction_display == "50.0%"
    assert [r.synthetic for r in stats.rows].count(True) == 2


def test_unparsed_peers_sort_last_and_are_excluded():
    stats = peer_statistics(peers(None, 30, "n/a", 10))

    assert stats.parsed_count == 2
    assert stats.mean_pct == pytest.approx(20)
    # stable: the two unparsed peers keep their input order at the end
    assert [r.company for r in stats.rows][-2:] == ["Peer 0", "Peer 2"]
    assert stats.rows[-1].reduction_display == ""


def test_peer_value_of_exactly_one_is_full_reduction():
    stats = peer_statistics(peers(1))
    assert stats.rows[0].reduction_pct == 100.0


def test_peer_years_missing_show_na():
    stats = peer_statistics([{"company_name": "X", "sbti_scope_1_2_reduction_pct": 20}])
    row = next(r for r in stats.rows if r.company == "X")
    assert row.base_year == "n/a"
    assert row.target_year == "n/a"


def test_no_peers():
    stats = peer_statistics([])
    assert stats.mean_pct is None
    assert stats.median_pct is None
    assert [r.company for r in stats.rows] == ["Average", "Median"]


# ---------------------------------------------------------------------
# Ambition
# ---------------------------------------------------------------------


@pytest.mark.parametrize(
    "company, country, region, expected",
    [
        (0.50, 0.30, 0.40, Ambition.MORE_THAN_BOTH),
        (0.20, 0.30, 0.40, Ambition.LESS_THAN_BOTH),
        (0.35, 0.30, 0.40, Ambition.ABOVE_COUNTRY_BELOW_REGION),
        (0.35, 0.40, 0.30, Ambition.ABOVE_REGION_BELOW_COUNTRY),
        (0.305, 0.30, 0.40, Ambition.IN_LINE),
        (0.50, None, None, Ambition.IN_LINE),
        (None, 0.30, 0.40, Ambition.UNCLEAR),
    ],
)
def test_classify_ambition(company, country, region, expected):
    assert classify_ambition(company, country, region) is expected


def test_analyze_benchmark_end_to_end():
    result = analyze_benchmark(
        {
            "company": COMPANY,
            "peers_country": peers(10, 20, 30),
            "peers_region": peers(20, 30, 40, 50, country="Malaysia"),
        }
    )

    assert result["company_reduction"] == pytest.approx(0.42)
    assert result["country_median"] == pytest.approx(0.20)
    assert result["region_median"] == pytest.approx(0.35)
    assert result["ambition"] == Ambition.MORE_THAN_BOTH.value
    assert result["derived"]["s12t"] == pytest.approx(87)
    assert len(result["trajectories"]) == 3

    assert result["peers_country"][0]["Company"] == "Peer 2"
    assert result["peers_country"][0]["% Reduction"] == "30.0%"

    insight = result["insight"]
    assert "Acme REIT" in insight
    assert "42.0%" in insight
    assert "11 years" in insight
    assert "20.0%" in insight and "35.0%" in insight


def test_analyze_benchmark_tolerates_empty_payload():
    result = analyze_benchmark({})
    assert result["ambition"] == Ambition.UNCLEAR.value
    assert result["trajectories"] == []

# tests/test_numeric_parser.py
import math

import pytest

from esgsmart.utils.numeric_parser import (
    format_number,
    format_percent,
    to_fraction,
    to_number,
    to_percent,
    to_year,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1234, 1234.0),
        (12.5, 12.5),
        ("1,234", 1234.0),
        ("1 234.5", 1234.5),
        ("1 234", 1234.0),
        ("  42  ", 42.0),
    ],
)
def test_to_number_parses_loose_formats(raw, expected):
    assert to_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "n/a", "abc", True, False, float("nan"), "inf"])
def test_to_number_rejects_non_numbers(raw):
    assert to_number(raw) is None


def test_to_fraction_treats_percent_and_fraction_alike():
    assert to_fraction(50) == 0.5
    assert to_fraction(0.5) == 0.5
    assert to_fraction("42%") == pytest.approx(0.42)
    assert to_fraction("0") == 0.0


def test_to_fraction_boundary_one_is_a_fraction():
    # Exactly 1 is read as 100%, not 1%
    assert to_fraction(1) == 1.0
    assert to_fraction(100) == 1.0


@pytest.mark.parametrize("raw", [-5, 150, "lots", None])
def test_to_fraction_out_of_range(raw):
    assert to_fraction(raw) is None


def test_to_percent_and_year():
    assert to_percent(0.25) == 25.0
    assert to_year("2030") == 2030
    assert to_year(2019.0) == 2019
    assert to_year(None) is None


def test_formatting():
    assert format_number(2_500_000_000) == "2.5B"
    assert format_number(3_400_000) == "3.4M"
    assert format_number(5_600) == "5.6k"
    assert format_number(None) == "n/a"
    assert format_number(math.inf) == "n/a"
    assert format_percent(0.421) == "42.1%"
    assert format_percent(None) == "n/a"

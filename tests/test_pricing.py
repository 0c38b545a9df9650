"""Tests for the estimation engine and display formatting."""

import pytest

from schemas import RateTable
from services.pricing import (
    EstimateResult,
    Selection,
    describe_estimate,
    estimate,
    format_currency,
    format_timeline,
)
from tests.conftest import SAMPLE_RATES

RATES = RateTable.model_validate(SAMPLE_RATES)


def test_estimate_sums_selected_options():
    """Hours add up across project, design and modules."""
    selection = Selection("corporate", "custom", frozenset({"seo", "blog"}))
    result = estimate(selection, RATES)
    assert result.total_hours == 60 + 40 + 8 + 12
    assert result.total_cost == result.total_hours * 50


def test_estimate_empty_selection():
    """Nothing selected costs nothing."""
    assert estimate(Selection(), RATES) == EstimateResult(0, 0)


def test_estimate_unknown_keys_contribute_zero():
    """Identifiers missing from the table never raise."""
    selection = Selection("spaceship", "baroque", frozenset({"seo", "teleport"}))
    result = estimate(selection, RATES)
    assert result.total_hours == 8
    assert result.total_cost == 400


def test_estimate_with_sparse_stored_table():
    """A stored table missing whole categories still estimates."""
    rates = RateTable.from_store({"hourlyRate": 80, "project": {"landing": 10}})
    result = estimate(Selection("landing", "custom", frozenset({"seo"})), rates)
    assert result == EstimateResult(10, 800)


def test_estimate_is_deterministic():
    """Identical inputs give identical outputs."""
    selection = Selection("shop", "template", frozenset({"crm", "seo", "blog"}))
    assert estimate(selection, RATES) == estimate(selection, RATES)


@pytest.mark.parametrize(
    "hours, expected",
    [
        (0, "< 1 week"),
        (20, "< 1 week"),
        (40, "1 week"),
        (60, "1-2 weeks"),
        (80, "2 weeks"),
        (130, "3-4 weeks"),
    ],
)
def test_format_timeline(hours, expected):
    assert format_timeline(hours) == expected


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0, "$0"),
        (999.4, "$999"),
        (1234.6, "$1,235"),
        (2.5, "$3"),
        (1500000, "$1,500,000"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected


def test_describe_estimate():
    assert describe_estimate(EstimateResult(60, 3000)) == ("$3,000", "1-2 weeks")


def test_selection_dict_form():
    """Selections serialize to the stored camelCase shape."""
    selection = Selection("landing", None, frozenset({"seo", "blog"}))
    assert selection.to_dict() == {
        "projectType": "landing",
        "designType": None,
        "modules": ["blog", "seo"],
    }
    assert Selection.from_dict(selection.to_dict()) == selection


def test_selection_from_dict_rejects_bad_shapes():
    with pytest.raises(ValueError):
        Selection.from_dict({"modules": "seo"})
    with pytest.raises(ValueError):
        Selection.from_dict({"projectType": 5})

"""Unit tests for routing budget unit conversions."""

from __future__ import annotations

import pytest

from trailmap.services import units


def test_miles_to_feet() -> None:
    assert units.miles_to_feet(1) == 5280
    assert units.miles_to_feet(2.5) == 13200


def test_miles_to_metres() -> None:
    assert units.miles_to_metres(1) == pytest.approx(1609.344)
    assert units.miles_to_metres(0.5) == pytest.approx(804.672)


@pytest.mark.parametrize(
    ("dist_unit", "expected"),
    [
        ("m", 3218.688),
        ("deg", 3218.688),
        ("us-ft", 10560.0),
        ("ft", 2.0),
        (None, 2.0),
    ],
)
def test_convert_distance(dist_unit: str | None, expected: float) -> None:
    """Test conversion into each table distance unit."""
    assert units.convert_distance(2.0, dist_unit) == pytest.approx(expected)


def test_apply_time_units() -> None:
    """Test that minute budgets are scaled by the fixed factor."""
    assert units.apply_time_units(1000.0, "mins") == pytest.approx(50.0)
    assert units.apply_time_units(1000.0, "miles") == 1000.0
    assert units.MILES_TO_MINUTES_FACTOR == 0.05

"""Distance unit conversions for routing budgets.

Routing requests express their budget in miles (or minutes). Tables store
geometry in their SRID's native unit, so the budget is converted before it
is compared against geometry lengths.

Example:
    >>> from trailmap.services import units
    >>> units.convert_distance(2.0, "us-ft")
    10560.0
    >>> units.apply_time_units(10560.0, "mins")
    528.0
"""

from __future__ import annotations

FEET_PER_MILE = 5280
METRES_PER_MILE = 1609.344

# Scales a "minutes" budget after unit conversion. Kept as the fixed factor
# existing clients depend on; it is not a speed model.
MILES_TO_MINUTES_FACTOR = 0.05


def miles_to_feet(miles: float) -> float:
    return miles * FEET_PER_MILE


def miles_to_metres(miles: float) -> float:
    return miles * METRES_PER_MILE


def convert_distance(miles: float, dist_unit: str | None) -> float:
    """Convert a distance in miles into a table's native distance unit.

    "deg" tables are compared as geography, which measures in metres, so
    they receive metres as well. Unknown units pass through unchanged.

    Args:
        miles: Distance in miles.
        dist_unit: The table's distance unit.

    Returns:
        Distance expressed in ``dist_unit``.
    """
    if dist_unit in ("m", "deg"):
        return miles_to_metres(miles)
    if dist_unit == "us-ft":
        return miles_to_feet(miles)
    return miles


def apply_time_units(distance: float, units: str) -> float:
    """Scale an already converted distance when the budget is in minutes."""
    if units == "mins":
        return distance * MILES_TO_MINUTES_FACTOR
    return distance

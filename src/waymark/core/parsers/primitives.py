"""
Leaf-value readers and writers: colors, coordinates, numbers, booleans,
strings, URIs, anchor vectors and timestamps.

Readers take raw text (or an element for attribute-based values) and
return None when the text is malformed; the caller then falls back to its
default. Writers return the text to place in an element.
"""

import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from waymark.models.geometry import GeometryLayout
from waymark.models.style import Color, IconAnchorUnits, IconOrigin

_NUMBER = r"([+\-]?\d*\.?\d+(?:e[+\-]?\d+)?)"

_COLOR_RE = re.compile(r"^\s*#?\s*([0-9A-Fa-f]{8})\s*$")
_COORDINATE_TUPLE_RE = re.compile(
    rf"\s*{_NUMBER}\s*,\s*{_NUMBER}(?:\s*,\s*{_NUMBER})?\s*", re.IGNORECASE | re.ASCII
)
_DECIMAL_RE = re.compile(rf"^\s*{_NUMBER}\s*$", re.IGNORECASE | re.ASCII)
_BOOLEAN_RE = re.compile(r"^\s*(?:(true|1)|(false|0))\s*$")
_LEADING_FLOAT_RE = re.compile(r"^\s*([+\-]?(?:\d+\.?\d*|\.\d+)(?:e[+\-]?\d+)?)", re.I | re.ASCII)

_GX_NUMBER = r"([+\-]?\d+(?:\.\d*)?(?:e[+\-]?\d*)?)"
_GX_COORD_RE = re.compile(
    rf"^\s*{_GX_NUMBER}\s+{_GX_NUMBER}\s+{_GX_NUMBER}\s*$", re.IGNORECASE | re.ASCII
)

# Placeholder vertex for a gx:coord that does not parse.
GX_COORD_FALLBACK = (0.0, 0.0, 0.0)

ICON_ANCHOR_UNITS_MAP = {
    "fraction": IconAnchorUnits.FRACTION,
    "pixels": IconAnchorUnits.PIXELS,
    "insetPixels": IconAnchorUnits.PIXELS,
}


@dataclass(frozen=True)
class Vec2:
    """
    An anchor position as written in a hotSpot element.

    Attributes:
        x: Horizontal component
        y: Vertical component
        x_units: Units of x
        y_units: Units of y
        origin: Corner the position is measured from
    """

    x: float
    y: float
    x_units: IconAnchorUnits = IconAnchorUnits.FRACTION
    y_units: IconAnchorUnits = IconAnchorUnits.FRACTION
    origin: IconOrigin = IconOrigin.BOTTOM_LEFT


def format_number(value: float) -> str:
    """Shortest text form of a number; integral values have no fraction."""
    number = float(value)
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def read_color(text: str) -> Optional[Color]:
    """
    Read an ``aabbggrr`` hex color.

    Args:
        text: Eight hex digits, optionally preceded by '#'

    Returns:
        (r, g, b, a) with channels 0-255 and alpha 0-1, or None if malformed
    """
    match = _COLOR_RE.match(text)
    if not match:
        return None
    hex_string = match.group(1)
    return (
        int(hex_string[6:8], 16),
        int(hex_string[4:6], 16),
        int(hex_string[2:4], 16),
        int(hex_string[0:2], 16) / 255,
    )


def _color_channel(value: float) -> str:
    channel = min(255, max(0, math.floor(value + 0.5)))
    return f"{channel:02x}"


def write_color(color: Sequence[float]) -> str:
    """Write (r, g, b, a) as ``aabbggrr``; a missing alpha counts as opaque."""
    red, green, blue = color[0], color[1], color[2]
    alpha = color[3] if len(color) > 3 else 1
    return "".join(
        _color_channel(value) for value in (alpha * 255, blue, green, red)
    )


def read_flat_coordinates(text: str) -> Optional[List[float]]:
    """
    Read whitespace-separated ``x,y[,z]`` tuples into flat XYZ values.

    A missing z reads as 0. Commas may be surrounded by whitespace.

    Returns:
        Flat coordinates (three per vertex), or None if any text remains
        that is not a tuple
    """
    flat_coordinates: List[float] = []
    position = 0
    while True:
        match = _COORDINATE_TUPLE_RE.match(text, position)
        if not match:
            break
        x, y, z = match.groups()
        flat_coordinates.extend((float(x), float(y), float(z) if z else 0.0))
        position = match.end()
    if text[position:].strip():
        return None
    return flat_coordinates


def write_coordinates(
    flat_coordinates: Sequence[float], layout: GeometryLayout
) -> str:
    """
    Write flat coordinates as ``x,y[,z]`` tuples separated by spaces.

    Two components per vertex are written for XY and XYM layouts, three
    otherwise; measures are never written.
    """
    stride = layout.stride
    dimension = layout.dimension
    tuples = []
    for offset in range(0, len(flat_coordinates), stride):
        tuples.append(
            ",".join(
                format_number(value)
                for value in flat_coordinates[offset : offset + dimension]
            )
        )
    return " ".join(tuples)


def read_decimal(text: str) -> Optional[float]:
    match = _DECIMAL_RE.match(text)
    if not match:
        return None
    return float(match.group(1))


def read_boolean(text: str) -> Optional[bool]:
    """Read ``true``/``1`` or ``false``/``0``; anything else is None."""
    match = _BOOLEAN_RE.match(text)
    if not match:
        return None
    return match.group(1) is not None


def write_boolean(value: bool) -> str:
    return "1" if value else "0"


def read_string(text: str) -> str:
    return text.strip()


def write_scale(value: float) -> str:
    """Write a scale rounded to six decimal places."""
    return format_number(round(value * 1e6) / 1e6)


def read_uri(text: str, base_uri: Optional[str] = None) -> str:
    """
    Resolve trimmed text against a base URI.

    Without a base the trimmed text is returned unchanged.
    """
    reference = text.strip()
    if base_uri:
        return urljoin(base_uri, reference)
    return reference


def _parse_float(value: Optional[str]) -> Optional[float]:
    """Leading number of an attribute value, like a lenient float parse."""
    if value is None:
        return None
    match = _LEADING_FLOAT_RE.match(value)
    return float(match.group(1)) if match else None


def read_vec2(node: ET.Element) -> Vec2:
    """
    Read a hotSpot-style element from its x, y, xunits and yunits attributes.

    ``insetPixels`` units measure from the right (x) or top (y) edge, which
    is expressed through the origin; missing units default to fractions.
    """
    x_units_attr = node.get("xunits")
    y_units_attr = node.get("yunits")
    if x_units_attr != "insetPixels":
        origin = (
            IconOrigin.BOTTOM_LEFT if y_units_attr != "insetPixels" else IconOrigin.TOP_LEFT
        )
    else:
        origin = (
            IconOrigin.BOTTOM_RIGHT if y_units_attr != "insetPixels" else IconOrigin.TOP_RIGHT
        )
    x = _parse_float(node.get("x"))
    y = _parse_float(node.get("y"))
    return Vec2(
        x=x if x is not None else 0.0,
        y=y if y is not None else 0.0,
        x_units=ICON_ANCHOR_UNITS_MAP.get(x_units_attr, IconAnchorUnits.FRACTION),
        y_units=ICON_ANCHOR_UNITS_MAP.get(y_units_attr, IconAnchorUnits.FRACTION),
        origin=origin,
    )


def vec2_units_attributes(vec2: Vec2) -> Tuple[str, str]:
    """Inverse of the units mapping in ``read_vec2``: (xunits, yunits)."""
    x_inset = vec2.origin in (IconOrigin.BOTTOM_RIGHT, IconOrigin.TOP_RIGHT)
    y_inset = vec2.origin in (IconOrigin.TOP_LEFT, IconOrigin.TOP_RIGHT)
    return (
        _units_attribute(vec2.x_units, x_inset),
        _units_attribute(vec2.y_units, y_inset),
    )


def _units_attribute(units: IconAnchorUnits, inset: bool) -> str:
    if units == IconAnchorUnits.FRACTION:
        return "fraction"
    return "insetPixels" if inset else "pixels"


_PARTIAL_DATE_FORMATS = ("%Y-%m", "%Y")


def read_timestamp(text: str) -> Optional[int]:
    """
    Read an ISO 8601 date or date-time as milliseconds since the epoch.

    Values without an offset are taken as UTC. Returns None when the text
    is not a date.
    """
    value = text.strip()
    if not value:
        return None
    if value[-1:] in ("Z", "z"):
        value = value[:-1] + "+00:00"
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        for date_format in _PARTIAL_DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, date_format)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(round(parsed.timestamp() * 1000))


def read_gx_coord(text: str) -> Tuple[float, float, float]:
    """Read a space-separated ``x y z`` track coordinate, or the fallback vertex."""
    match = _GX_COORD_RE.match(text)
    if not match:
        return GX_COORD_FALLBACK
    x, y, z = match.groups()
    try:
        return (float(x), float(y), float(z))
    except ValueError:
        # The exponent group tolerates a bare "e".
        return GX_COORD_FALLBACK

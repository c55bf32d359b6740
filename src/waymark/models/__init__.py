"""
Data models: geometries, styles, features and descriptors.
"""

from .feature import Feature, StyleFunction
from .geometry import (
    Geometry,
    GeometryCollection,
    GeometryLayout,
    GeometryType,
    LinearRing,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    geometry_from_shapely,
)
from .region import LevelOfDetail, NetworkLink, Region
from .style import (
    DEFAULT_STYLES,
    Color,
    DefaultStyles,
    Fill,
    Icon,
    IconAnchorUnits,
    IconOrigin,
    Stroke,
    Style,
    Text,
    build_default_styles,
)

__all__ = [
    # Features
    "Feature",
    "StyleFunction",
    # Geometry
    "Geometry",
    "GeometryCollection",
    "GeometryLayout",
    "GeometryType",
    "LinearRing",
    "LineString",
    "MultiLineString",
    "MultiPoint",
    "MultiPolygon",
    "Point",
    "Polygon",
    "geometry_from_shapely",
    # Descriptors
    "LevelOfDetail",
    "NetworkLink",
    "Region",
    # Styles
    "DEFAULT_STYLES",
    "Color",
    "DefaultStyles",
    "Fill",
    "Icon",
    "IconAnchorUnits",
    "IconOrigin",
    "Stroke",
    "Style",
    "Text",
    "build_default_styles",
]

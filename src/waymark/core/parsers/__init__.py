"""
KML reading and writing for Waymark.

The codec decodes KML documents into features (geometry, properties and a
style function) and encodes features back into KML.
"""

from .context import ParseContext, SharedStyleRegistry, WriteContext
from .geometry import homogenize_geometries
from .kml import KML, load_root, parse_kml_string, write_kml_string
from .primitives import Vec2, read_color, read_flat_coordinates, write_color, write_coordinates
from .style import create_name_style, find_style

__all__ = [
    # Codec
    "KML",
    "load_root",
    "parse_kml_string",
    "write_kml_string",
    # Context
    "ParseContext",
    "SharedStyleRegistry",
    "WriteContext",
    # Primitives
    "Vec2",
    "read_color",
    "read_flat_coordinates",
    "write_color",
    "write_coordinates",
    # Geometry and styles
    "homogenize_geometries",
    "create_name_style",
    "find_style",
]

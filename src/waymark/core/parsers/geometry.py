"""
Geometry decoding and encoding.

Reads Point, LineString, LinearRing, Polygon, MultiGeometry and the gx
Track/MultiTrack extensions into the geometry models, and writes them back.
Multi-geometries are homogenised: members of a single kind become the
matching Multi* geometry, anything else a GeometryCollection.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Sequence

from waymark.core.errors import InvariantError
from waymark.models.geometry import (
    MEMBER_PROPERTY_NAMES,
    Geometry,
    GeometryCollection,
    GeometryLayout,
    GeometryType,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)

from .context import ParseContext, WriteContext
from .primitives import (
    read_boolean,
    read_flat_coordinates,
    read_gx_coord,
    read_string,
    read_timestamp,
    write_boolean,
    write_coordinates,
)
from .xml_structure import (
    GX_NAMESPACE_URIS,
    KML_NAMESPACE_URIS,
    get_all_text_content,
    make_array_pusher,
    make_property_setter,
    make_simple_node_factory,
    make_structure_ns,
    make_sequence,
    namespace_of,
    object_property_node_factory,
    push_parse_and_pop,
    qualify,
    serialize_sequence,
    text_reader,
    write_text,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_geometry_properties(node: ET.Element, context: ParseContext) -> Dict[str, Any]:
    """Read the extrude, tessellate and altitudeMode children of a geometry."""
    return push_parse_and_pop({}, GEOMETRY_PROPERTY_PARSERS, node, context)


def read_flat_coordinates_from_node(
    node: ET.Element, context: ParseContext
) -> Optional[List[float]]:
    """Flat XYZ coordinates of the last coordinates child, or None."""
    return push_parse_and_pop({}, FLAT_COORDINATES_PARSERS, node, context).get(
        "coordinates"
    )


def read_point(node: ET.Element, context: ParseContext) -> Optional[Point]:
    flat_coordinates = read_flat_coordinates_from_node(node, context)
    if flat_coordinates is None or len(flat_coordinates) < 3:
        logger.debug("Skipping Point without a coordinate")
        return None
    return Point(
        flat_coordinates[:3],
        layout=GeometryLayout.XYZ,
        properties=read_geometry_properties(node, context),
    )


def read_line_string(node: ET.Element, context: ParseContext) -> Optional[LineString]:
    flat_coordinates = read_flat_coordinates_from_node(node, context)
    if flat_coordinates is None:
        return None
    return LineString(
        flat_coordinates,
        layout=GeometryLayout.XYZ,
        properties=read_geometry_properties(node, context),
    )


def read_linear_ring(node: ET.Element, context: ParseContext) -> Optional[Polygon]:
    """A standalone LinearRing reads as a single-ring Polygon."""
    flat_coordinates = read_flat_coordinates_from_node(node, context)
    if flat_coordinates is None:
        return None
    return Polygon(
        flat_coordinates,
        layout=GeometryLayout.XYZ,
        ends=[len(flat_coordinates)] if flat_coordinates else [],
        properties=read_geometry_properties(node, context),
    )


def _outer_boundary_parser(
    node: ET.Element, rings: List[Optional[List[float]]], context: ParseContext
) -> None:
    # The first declared outer boundary wins.
    if rings[0] is not None:
        return
    ring = push_parse_and_pop({}, LINEAR_RING_PARSERS, node, context).get("ring")
    if ring is not None:
        rings[0] = ring


def _inner_boundary_parser(
    node: ET.Element, rings: List[Optional[List[float]]], context: ParseContext
) -> None:
    ring = push_parse_and_pop({}, LINEAR_RING_PARSERS, node, context).get("ring")
    if ring:
        rings.append(ring)


def read_polygon(node: ET.Element, context: ParseContext) -> Optional[Polygon]:
    """
    Read a Polygon; rings are stored outer boundary first.

    Returns:
        The polygon, or None when there is no usable outer boundary
    """
    rings: List[Optional[List[float]]] = [None]
    push_parse_and_pop(rings, POLYGON_PARSERS, node, context)
    if not rings[0]:
        logger.debug("Skipping Polygon without an outer boundary")
        return None

    flat_coordinates: List[float] = []
    ends: List[int] = []
    for ring in rings:
        flat_coordinates.extend(ring)
        ends.append(len(flat_coordinates))
    return Polygon(
        flat_coordinates,
        layout=GeometryLayout.XYZ,
        ends=ends,
        properties=read_geometry_properties(node, context),
    )


def _common_member_properties(geometries: Sequence[Geometry]) -> Dict[str, Any]:
    """Per-member property arrays, kept only when some member has a value."""
    properties: Dict[str, Any] = {}
    for name in MEMBER_PROPERTY_NAMES:
        values = [geometry.get(name) for geometry in geometries]
        if any(value is not None for value in values):
            properties[name] = values
    return properties


def homogenize_geometries(geometries: Sequence[Geometry]) -> Geometry:
    """
    Combine the members of a MultiGeometry.

    Points become a MultiPoint, line strings a MultiLineString and polygons
    a MultiPolygon, each carrying the members' side properties as parallel
    arrays. Mixed members, and members that are themselves collections,
    become a GeometryCollection.

    Raises:
        InvariantError: For a member kind a multi-geometry cannot hold
    """
    if not geometries:
        return GeometryCollection([])

    geometry_type = geometries[0].type
    if any(geometry.type != geometry_type for geometry in geometries):
        return GeometryCollection(geometries)

    if geometry_type == GeometryType.POINT:
        flat_coordinates: List[float] = []
        for point in geometries:
            flat_coordinates.extend(point.flat_coordinates)
        return MultiPoint(
            flat_coordinates,
            layout=geometries[0].layout,
            properties=_common_member_properties(geometries),
        )
    if geometry_type == GeometryType.LINE_STRING:
        return MultiLineString(
            geometries, properties=_common_member_properties(geometries)
        )
    if geometry_type == GeometryType.POLYGON:
        return MultiPolygon(geometries, properties=_common_member_properties(geometries))
    if geometry_type in _COLLECTION_TYPES:
        return GeometryCollection(geometries)

    raise InvariantError("Unexpected geometry in MultiGeometry", value=geometry_type)


_COLLECTION_TYPES = (
    GeometryType.MULTI_POINT,
    GeometryType.MULTI_LINE_STRING,
    GeometryType.MULTI_POLYGON,
    GeometryType.GEOMETRY_COLLECTION,
)


def read_multi_geometry(node: ET.Element, context: ParseContext) -> Geometry:
    geometries: List[Geometry] = push_parse_and_pop(
        [], MULTI_GEOMETRY_PARSERS, node, context
    )
    return homogenize_geometries(geometries)


def _when_parser(node: ET.Element, track: Dict[str, List[Any]], context: ParseContext) -> None:
    timestamp = read_timestamp(get_all_text_content(node))
    track["whens"].append(timestamp if timestamp is not None else 0)


def _gx_coord_parser(
    node: ET.Element, track: Dict[str, List[Any]], context: ParseContext
) -> None:
    track["coords"].append(read_gx_coord(get_all_text_content(node)))


def read_gx_track(node: ET.Element, context: ParseContext) -> LineString:
    """
    Read a gx:Track as an XYZM line string with the timestamp as measure.

    Coordinates and timestamps are paired in order; surplus entries of the
    longer list are dropped.
    """
    track = push_parse_and_pop({"coords": [], "whens": []}, GX_TRACK_PARSERS, node, context)
    coords, whens = track["coords"], track["whens"]
    if len(coords) != len(whens):
        logger.debug(
            f"gx:Track has {len(coords)} coordinates and {len(whens)} timestamps"
        )
    flat_coordinates: List[float] = []
    for (x, y, z), when in zip(coords, whens):
        flat_coordinates.extend((x, y, z, float(when)))
    return LineString(flat_coordinates, layout=GeometryLayout.XYZM)


def read_gx_multi_track(node: ET.Element, context: ParseContext) -> MultiLineString:
    line_strings: List[LineString] = push_parse_and_pop(
        [], GX_MULTI_TRACK_PARSERS, node, context
    )
    return MultiLineString(line_strings)


GEOMETRY_PROPERTY_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "extrude": make_property_setter(text_reader(read_boolean)),
        "tessellate": make_property_setter(text_reader(read_boolean)),
        "altitudeMode": make_property_setter(text_reader(read_string)),
    },
)

FLAT_COORDINATES_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"coordinates": make_property_setter(text_reader(read_flat_coordinates))},
)

LINEAR_RING_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"LinearRing": make_property_setter(read_flat_coordinates_from_node, "ring")},
)

POLYGON_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "innerBoundaryIs": _inner_boundary_parser,
        "outerBoundaryIs": _outer_boundary_parser,
    },
)

MULTI_GEOMETRY_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "LineString": make_array_pusher(read_line_string),
        "LinearRing": make_array_pusher(read_linear_ring),
        "MultiGeometry": make_array_pusher(read_multi_geometry),
        "Point": make_array_pusher(read_point),
        "Polygon": make_array_pusher(read_polygon),
    },
)

GX_TRACK_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"when": _when_parser},
    make_structure_ns(GX_NAMESPACE_URIS, {"coord": _gx_coord_parser}),
)

GX_MULTI_TRACK_PARSERS = make_structure_ns(
    GX_NAMESPACE_URIS, {"Track": make_array_pusher(read_gx_track)}
)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

GEOMETRY_TYPE_TO_NODE_NAME = {
    GeometryType.POINT: "Point",
    GeometryType.LINE_STRING: "LineString",
    GeometryType.LINEAR_RING: "LinearRing",
    GeometryType.POLYGON: "Polygon",
    GeometryType.MULTI_POINT: "MultiGeometry",
    GeometryType.MULTI_LINE_STRING: "MultiGeometry",
    GeometryType.MULTI_POLYGON: "MultiGeometry",
    GeometryType.GEOMETRY_COLLECTION: "MultiGeometry",
}

GEOMETRY_PROPERTY_SEQUENCE = ("extrude", "tessellate", "altitudeMode")
PRIMITIVE_GEOMETRY_SEQUENCE = GEOMETRY_PROPERTY_SEQUENCE + ("coordinates",)


def geometry_node_factory(
    parent: ET.Element, geometry: Geometry, node_name: Optional[str] = None
) -> ET.Element:
    """
    Create the element for a geometry, in the parent's namespace.

    Raises:
        InvariantError: If the geometry kind has no element
    """
    name = GEOMETRY_TYPE_TO_NODE_NAME.get(getattr(geometry, "type", None))
    if name is None:
        raise InvariantError(
            "Cannot encode geometry", value=type(geometry).__name__
        )
    return ET.Element(qualify(namespace_of(parent), name))


def _write_boolean_text(node: ET.Element, value: bool, context: WriteContext) -> None:
    write_text(node, write_boolean(value))


def _write_string_text(node: ET.Element, value: Any, context: WriteContext) -> None:
    write_text(node, str(value))


def _write_coordinates_text(node: ET.Element, geometry: Geometry, context: WriteContext) -> None:
    write_text(node, write_coordinates(geometry.flat_coordinates, geometry.layout))


def _geometry_property_values(geometry: Geometry) -> Dict[str, Any]:
    return {name: geometry.get(name) for name in GEOMETRY_PROPERTY_SEQUENCE}


def write_primitive_geometry(node: ET.Element, geometry: Geometry, context: WriteContext) -> None:
    """Write the side properties and coordinates of a Point, LineString or LinearRing."""
    properties = _geometry_property_values(geometry)
    properties["coordinates"] = geometry
    serialize_sequence(
        node,
        PRIMITIVE_GEOMETRY_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, PRIMITIVE_GEOMETRY_SEQUENCE),
        context,
        PRIMITIVE_GEOMETRY_SEQUENCE,
    )


def _write_boundary(node: ET.Element, ring: Geometry, context: WriteContext) -> None:
    serialize_sequence(
        node,
        BOUNDARY_SERIALIZERS,
        make_simple_node_factory("LinearRing"),
        [ring],
        context,
    )


def write_polygon(node: ET.Element, polygon: Polygon, context: WriteContext) -> None:
    """Write a polygon's side properties, its outer boundary, then its holes."""
    serialize_sequence(
        node,
        PRIMITIVE_GEOMETRY_SERIALIZERS,
        object_property_node_factory,
        make_sequence(_geometry_property_values(polygon), GEOMETRY_PROPERTY_SEQUENCE),
        context,
        GEOMETRY_PROPERTY_SEQUENCE,
    )
    rings = polygon.linear_rings
    if not rings:
        return
    serialize_sequence(
        node,
        POLYGON_SERIALIZERS,
        make_simple_node_factory("outerBoundaryIs"),
        rings[:1],
        context,
    )
    serialize_sequence(
        node,
        POLYGON_SERIALIZERS,
        make_simple_node_factory("innerBoundaryIs"),
        rings[1:],
        context,
    )


def write_multi_geometry(node: ET.Element, geometry: Geometry, context: WriteContext) -> None:
    """
    Write the members of a multi-geometry.

    Multi* members are written as their single-geometry element; MultiPoint
    members carry their entries of the per-member property arrays.
    """
    geometry_type = geometry.type
    if geometry_type == GeometryType.GEOMETRY_COLLECTION:
        members: Sequence[Geometry] = geometry.geometries
        factory = geometry_node_factory
    elif geometry_type == GeometryType.MULTI_POINT:
        members = geometry.points
        factory = make_simple_node_factory("Point")
    elif geometry_type == GeometryType.MULTI_LINE_STRING:
        members = geometry.line_strings
        factory = make_simple_node_factory("LineString")
    elif geometry_type == GeometryType.MULTI_POLYGON:
        members = geometry.polygons
        factory = make_simple_node_factory("Polygon")
    else:
        raise InvariantError("Not a multi-geometry", value=geometry_type)
    serialize_sequence(node, MULTI_GEOMETRY_SERIALIZERS, factory, members, context)


PRIMITIVE_GEOMETRY_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "extrude": _write_boolean_text,
        "tessellate": _write_boolean_text,
        "altitudeMode": _write_string_text,
        "coordinates": _write_coordinates_text,
    },
)

BOUNDARY_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"LinearRing": write_primitive_geometry}
)

POLYGON_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "outerBoundaryIs": _write_boundary,
        "innerBoundaryIs": _write_boundary,
    },
)

MULTI_GEOMETRY_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "LinearRing": write_primitive_geometry,
        "LineString": write_primitive_geometry,
        "MultiGeometry": write_multi_geometry,
        "Point": write_primitive_geometry,
        "Polygon": write_polygon,
    },
)

# Geometry elements a feature may contain, for the placemark writer.
GEOMETRY_SERIALIZERS = MULTI_GEOMETRY_SERIALIZERS

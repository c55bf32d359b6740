"""
Tests for geometry decoding and encoding.

Tests cover:
- Point, LineString, LinearRing and Polygon decoding
- Side properties (extrude, tessellate, altitudeMode)
- MultiGeometry homogenization
- gx:Track and gx:MultiTrack
- Geometry encoding, including Multi* expansion
"""

import xml.etree.ElementTree as ET

import pytest

from waymark.core.errors import InvariantError
from waymark.core.parsers.context import ParseContext, WriteContext
from waymark.core.parsers.geometry import (
    GEOMETRY_SERIALIZERS,
    geometry_node_factory,
    homogenize_geometries,
    read_gx_multi_track,
    read_gx_track,
    read_line_string,
    read_linear_ring,
    read_multi_geometry,
    read_point,
    read_polygon,
)
from waymark.core.parsers.xml_structure import KML_NS, serialize_sequence
from waymark.models.geometry import (
    GeometryCollection,
    GeometryLayout,
    GeometryType,
    LineString,
    LinearRing,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)

NS = f' xmlns="{KML_NS}" xmlns:gx="http://www.google.com/kml/ext/2.2"'


def parse(fragment: str) -> ET.Element:
    """Parse a fragment whose root tag gets the KML and gx namespaces."""
    tag_end = fragment.index(">")
    if fragment[tag_end - 1] == "/":
        tag_end -= 1
    return ET.fromstring(fragment[:tag_end] + NS + fragment[tag_end:])


def encode(geometry) -> ET.Element:
    """Encode a geometry under a KML Placemark and return its element."""
    parent = ET.Element(f"{{{KML_NS}}}Placemark")
    serialize_sequence(parent, GEOMETRY_SERIALIZERS, geometry_node_factory, [geometry], WriteContext())
    return parent[0]


def child_text(node: ET.Element, path: str) -> str:
    return node.find(path, {"k": KML_NS}).text


class TestPrimitiveDecoding:
    """Tests for Point, LineString and LinearRing."""

    def test_point(self):
        """Test a point with side properties."""
        point = read_point(
            parse(
                "<Point><extrude>1</extrude><altitudeMode>absolute</altitudeMode>"
                "<coordinates>1,2,3</coordinates></Point>"
            ),
            ParseContext(),
        )
        assert point.type == GeometryType.POINT
        assert point.flat_coordinates == (1, 2, 3)
        assert point.layout == GeometryLayout.XYZ
        assert point.properties == {"extrude": True, "altitudeMode": "absolute"}

    def test_point_without_z(self):
        """Test that a missing altitude reads as 0."""
        point = read_point(parse("<Point><coordinates>1,2</coordinates></Point>"), ParseContext())
        assert point.flat_coordinates == (1, 2, 0)
        assert point.properties == {}

    def test_point_without_coordinates(self):
        """Test that a point without coordinates is absent."""
        assert read_point(parse("<Point/>"), ParseContext()) is None
        assert read_point(parse("<Point><coordinates/></Point>"), ParseContext()) is None

    def test_point_with_garbage_coordinates(self):
        """Test that unparsable coordinates make the point absent."""
        assert read_point(parse("<Point><coordinates>a,b</coordinates></Point>"), ParseContext()) is None

    def test_line_string(self):
        """Test a line string."""
        line = read_line_string(
            parse("<LineString><tessellate>0</tessellate><coordinates>0,0 1,1,5</coordinates></LineString>"),
            ParseContext(),
        )
        assert line.flat_coordinates == (0, 0, 0, 1, 1, 5)
        assert line.get("tessellate") is False

    def test_linear_ring_reads_as_polygon(self):
        """Test that a standalone ring becomes a single-ring polygon."""
        polygon = read_linear_ring(
            parse("<LinearRing><coordinates>0,0 1,0 1,1 0,0</coordinates></LinearRing>"),
            ParseContext(),
        )
        assert isinstance(polygon, Polygon)
        assert polygon.ends == (12,)


class TestPolygonDecoding:
    """Tests for Polygon."""

    def test_outer_and_inner_rings(self):
        """Test ring order and ends."""
        polygon = read_polygon(
            parse(
                "<Polygon>"
                "<innerBoundaryIs><LinearRing><coordinates>2,2 2,3 3,3 2,2</coordinates></LinearRing></innerBoundaryIs>"
                "<outerBoundaryIs><LinearRing><coordinates>0,0 0,9 9,9 0,0</coordinates></LinearRing></outerBoundaryIs>"
                "<innerBoundaryIs><LinearRing><coordinates>5,5 5,6 6,6 5,5</coordinates></LinearRing></innerBoundaryIs>"
                "</Polygon>"
            ),
            ParseContext(),
        )
        assert polygon.ends == (12, 24, 36)
        rings = polygon.linear_rings
        assert rings[0].flat_coordinates[:3] == (0, 0, 0)
        assert rings[1].flat_coordinates[:3] == (2, 2, 0)
        assert rings[2].flat_coordinates[:3] == (5, 5, 0)

    def test_first_outer_boundary_wins(self):
        """Test that only the first outer boundary is used."""
        polygon = read_polygon(
            parse(
                "<Polygon>"
                "<outerBoundaryIs><LinearRing><coordinates>0,0 0,1 1,1 0,0</coordinates></LinearRing></outerBoundaryIs>"
                "<outerBoundaryIs><LinearRing><coordinates>7,7 7,8 8,8 7,7</coordinates></LinearRing></outerBoundaryIs>"
                "</Polygon>"
            ),
            ParseContext(),
        )
        assert polygon.ends == (12,)
        assert polygon.flat_coordinates[:3] == (0, 0, 0)

    def test_missing_outer_boundary(self):
        """Test that a polygon without an outer boundary is absent."""
        polygon = read_polygon(
            parse(
                "<Polygon><innerBoundaryIs><LinearRing><coordinates>0,0 0,1 1,1 0,0"
                "</coordinates></LinearRing></innerBoundaryIs></Polygon>"
            ),
            ParseContext(),
        )
        assert polygon is None

    def test_polygon_side_properties(self):
        """Test extrude on a polygon."""
        polygon = read_polygon(
            parse(
                "<Polygon><extrude>true</extrude><outerBoundaryIs><LinearRing>"
                "<coordinates>0,0 0,1 1,1 0,0</coordinates></LinearRing></outerBoundaryIs></Polygon>"
            ),
            ParseContext(),
        )
        assert polygon.get("extrude") is True


class TestHomogenization:
    """Tests for MultiGeometry decoding."""

    def test_three_points_become_multi_point(self):
        """Test a homogeneous point collection."""
        geometry = read_multi_geometry(
            parse(
                "<MultiGeometry>"
                "<Point><coordinates>0,0</coordinates></Point>"
                "<Point><coordinates>1,1</coordinates></Point>"
                "<Point><coordinates>2,2</coordinates></Point>"
                "</MultiGeometry>"
            ),
            ParseContext(),
        )
        assert isinstance(geometry, MultiPoint)
        assert len(geometry.points) == 3
        assert geometry.properties == {}

    def test_mixed_members_become_collection(self):
        """Test a point and a line string."""
        geometry = read_multi_geometry(
            parse(
                "<MultiGeometry>"
                "<Point><coordinates>0,0</coordinates></Point>"
                "<LineString><coordinates>0,0 1,1</coordinates></LineString>"
                "</MultiGeometry>"
            ),
            ParseContext(),
        )
        assert isinstance(geometry, GeometryCollection)
        assert [g.type for g in geometry.geometries] == [
            GeometryType.POINT,
            GeometryType.LINE_STRING,
        ]

    def test_member_properties_become_arrays(self):
        """Test per-member arrays when some member has a value."""
        geometry = read_multi_geometry(
            parse(
                "<MultiGeometry>"
                "<LineString><extrude>1</extrude><coordinates>0,0 1,1</coordinates></LineString>"
                "<LineString><coordinates>2,2 3,3</coordinates></LineString>"
                "</MultiGeometry>"
            ),
            ParseContext(),
        )
        assert isinstance(geometry, MultiLineString)
        assert geometry.properties == {"extrude": [True, None]}

    def test_rings_and_polygons_become_multi_polygon(self):
        """Test that LinearRing members homogenize with polygons."""
        geometry = read_multi_geometry(
            parse(
                "<MultiGeometry>"
                "<LinearRing><coordinates>0,0 0,1 1,1 0,0</coordinates></LinearRing>"
                "<Polygon><outerBoundaryIs><LinearRing><coordinates>5,5 5,6 6,6 5,5"
                "</coordinates></LinearRing></outerBoundaryIs></Polygon>"
                "</MultiGeometry>"
            ),
            ParseContext(),
        )
        assert isinstance(geometry, MultiPolygon)
        assert len(geometry.polygons) == 2

    def test_nested_multi_geometries(self):
        """Test that nested multi-geometries fall back to a collection."""
        geometry = read_multi_geometry(
            parse(
                "<MultiGeometry>"
                "<MultiGeometry><Point><coordinates>0,0</coordinates></Point></MultiGeometry>"
                "<MultiGeometry><Point><coordinates>1,1</coordinates></Point></MultiGeometry>"
                "</MultiGeometry>"
            ),
            ParseContext(),
        )
        assert isinstance(geometry, GeometryCollection)
        assert all(isinstance(g, MultiPoint) for g in geometry.geometries)

    def test_empty_multi_geometry(self):
        """Test an empty collection."""
        geometry = read_multi_geometry(parse("<MultiGeometry/>"), ParseContext())
        assert isinstance(geometry, GeometryCollection)
        assert geometry.geometries == ()

    def test_invalid_members_skipped(self):
        """Test that members without coordinates are dropped."""
        geometry = read_multi_geometry(
            parse(
                "<MultiGeometry><Point/><Point><coordinates>1,1</coordinates></Point></MultiGeometry>"
            ),
            ParseContext(),
        )
        assert isinstance(geometry, MultiPoint)
        assert geometry.flat_coordinates == (1, 1, 0)

    def test_unknown_member_kind_is_an_invariant_error(self):
        """Test that a kind outside the multi-geometry switch fails hard."""
        with pytest.raises(InvariantError):
            homogenize_geometries([LinearRing([0, 0, 0]), LinearRing([1, 1, 1])])


class TestTracks:
    """Tests for gx:Track and gx:MultiTrack."""

    TRACK = (
        "<gx:Track>"
        "<when>2010-05-28T02:02:09Z</when>"
        "<when>not a date</when>"
        "<when>2010-05-28T02:02:56Z</when>"
        "<gx:coord>-122.2 37.3 156</gx:coord>"
        "<gx:coord>garbage</gx:coord>"
        "</gx:Track>"
    )

    def test_track(self):
        """Test zipping timestamps and coordinates into XYZM."""
        line = read_gx_track(parse(self.TRACK), ParseContext())
        assert line.layout == GeometryLayout.XYZM
        assert line.coordinates == [
            (-122.2, 37.3, 156.0, 1275012129000.0),
            (0.0, 0.0, 0.0, 0.0),
        ]

    def test_multi_track(self):
        """Test a multi-track of two tracks."""
        geometry = read_gx_multi_track(
            parse(f"<gx:MultiTrack>{self.TRACK}{self.TRACK}</gx:MultiTrack>"),
            ParseContext(),
        )
        assert isinstance(geometry, MultiLineString)
        assert len(geometry.line_strings) == 2


class TestGeometryEncoding:
    """Tests for writing geometries."""

    def test_point(self):
        """Test a point with side properties in schema order."""
        node = encode(Point([1, 2.5, 3], properties={"altitudeMode": "absolute", "extrude": False}))
        assert node.tag == f"{{{KML_NS}}}Point"
        assert [child.tag.split("}")[1] for child in node] == [
            "extrude",
            "altitudeMode",
            "coordinates",
        ]
        assert child_text(node, "k:extrude") == "0"
        assert child_text(node, "k:coordinates") == "1,2.5,3"

    def test_xy_line_string(self):
        """Test two components per tuple for XY."""
        node = encode(LineString([0, 0, 1, 1], layout=GeometryLayout.XY))
        assert child_text(node, "k:coordinates") == "0,0 1,1"

    def test_polygon_outer_ring_first(self):
        """Test that the outer boundary precedes the holes."""
        polygon = Polygon(
            [0, 0, 0, 0, 9, 0, 9, 9, 0, 0, 0, 0, 2, 2, 0, 2, 3, 0, 3, 3, 0, 2, 2, 0],
            ends=[12, 24],
        )
        node = encode(polygon)
        assert [child.tag.split("}")[1] for child in node] == [
            "outerBoundaryIs",
            "innerBoundaryIs",
        ]
        assert (
            child_text(node, "k:outerBoundaryIs/k:LinearRing/k:coordinates")
            == "0,0,0 0,9,0 9,9,0 0,0,0"
        )

    def test_multi_point_expands_with_member_properties(self):
        """Test that MultiPoint members get their property entries back."""
        multi_point = MultiPoint([0, 0, 0, 1, 1, 1], properties={"extrude": [True, False]})
        node = encode(multi_point)
        assert node.tag == f"{{{KML_NS}}}MultiGeometry"
        points = node.findall("k:Point", {"k": KML_NS})
        assert len(points) == 2
        assert child_text(points[0], "k:extrude") == "1"
        assert child_text(points[1], "k:extrude") == "0"

    def test_collection_expands_by_member_type(self):
        """Test a mixed collection with a nested multi-geometry."""
        collection = GeometryCollection(
            [
                Point([0, 0, 0]),
                MultiLineString([LineString([0, 0, 0, 1, 1, 1])]),
            ]
        )
        node = encode(collection)
        assert [child.tag.split("}")[1] for child in node] == ["Point", "MultiGeometry"]
        assert node[1][0].tag == f"{{{KML_NS}}}LineString"

    def test_decode_encode_polygon(self):
        """Test that an encoded polygon decodes to the same rings."""
        polygon = Polygon(
            [0, 0, 1, 0, 9, 1, 9, 9, 1, 0, 0, 1, 2, 2, 1, 2, 3, 1, 3, 3, 1, 2, 2, 1],
            ends=[12, 24],
        )
        decoded = read_polygon(encode(polygon), ParseContext())
        assert decoded == polygon
        assert decoded.ends == polygon.ends

    def test_unknown_geometry_is_an_invariant_error(self):
        """Test that encoding a foreign object fails hard."""
        with pytest.raises(InvariantError):
            encode(object())

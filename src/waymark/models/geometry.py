"""
Geometry variant used by the codec.

Every geometry stores its vertices as a flat coordinate sequence plus a
layout that fixes the stride. Polygons additionally keep the running end
offset of each ring. Multi-geometries keep their members and may carry
per-member ``extrude``/``tessellate``/``altitudeMode`` arrays in their
properties. Instances are immutable once constructed; invalid states are
rejected by ``__post_init__``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Sequence, Tuple, Union

from shapely import geometry as sg
from shapely.geometry.base import BaseGeometry

from waymark.core.errors import GeometryError, InvariantError

# Per-member properties a multi-geometry may carry as parallel arrays.
MEMBER_PROPERTY_NAMES = ("extrude", "tessellate", "altitudeMode")


class GeometryType(str, Enum):
    """The closed set of geometry shapes."""

    POINT = "Point"
    LINE_STRING = "LineString"
    LINEAR_RING = "LinearRing"
    POLYGON = "Polygon"
    MULTI_POINT = "MultiPoint"
    MULTI_LINE_STRING = "MultiLineString"
    MULTI_POLYGON = "MultiPolygon"
    GEOMETRY_COLLECTION = "GeometryCollection"


class GeometryLayout(str, Enum):
    """Per-vertex dimensionality."""

    XY = "XY"
    XYZ = "XYZ"
    XYM = "XYM"
    XYZM = "XYZM"

    @property
    def stride(self) -> int:
        """Number of flat-array slots per vertex."""
        return _STRIDES[self]

    @property
    def dimension(self) -> int:
        """Number of spatial components per vertex (measures excluded)."""
        return _DIMENSIONS[self]


_STRIDES = {
    GeometryLayout.XY: 2,
    GeometryLayout.XYZ: 3,
    GeometryLayout.XYM: 3,
    GeometryLayout.XYZM: 4,
}

_DIMENSIONS = {
    GeometryLayout.XY: 2,
    GeometryLayout.XYZ: 3,
    GeometryLayout.XYM: 2,
    GeometryLayout.XYZM: 3,
}


class Geometry(ABC):
    """Base of the geometry variant; dispatch on ``type``."""

    type: ClassVar[GeometryType]
    properties: Dict[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        """Return a side property such as ``extrude`` or ``altitudeMode``."""
        return self.properties.get(name, default)

    @abstractmethod
    def to_shapely(self) -> BaseGeometry:
        """Convert to the equivalent shapely geometry (measures dropped)."""


def _freeze_coordinates(values: Sequence[float]) -> Tuple[float, ...]:
    return tuple(float(v) for v in values)


def _chunk(
    flat_coordinates: Sequence[float], stride: int, dimension: int
) -> List[Tuple[float, ...]]:
    return [
        tuple(flat_coordinates[i : i + dimension])
        for i in range(0, len(flat_coordinates), stride)
    ]


@dataclass(frozen=True)
class SimpleGeometry(Geometry):
    """
    A geometry backed directly by one flat coordinate sequence.

    Attributes:
        flat_coordinates: Vertex components, ``stride`` values per vertex
        layout: Per-vertex dimensionality
        properties: Side properties (extrude, tessellate, altitudeMode)
    """

    flat_coordinates: Tuple[float, ...] = ()
    layout: GeometryLayout = GeometryLayout.XYZ
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "flat_coordinates", _freeze_coordinates(self.flat_coordinates)
        )
        object.__setattr__(self, "layout", GeometryLayout(self.layout))
        if len(self.flat_coordinates) % self.stride != 0:
            raise GeometryError(
                f"{len(self.flat_coordinates)} coordinates do not fit "
                f"layout {self.layout.value}",
                geometry_type=self.type.value,
            )

    @property
    def stride(self) -> int:
        return self.layout.stride

    @property
    def coordinates(self) -> List[Tuple[float, ...]]:
        """Vertices as tuples of ``stride`` values."""
        return _chunk(self.flat_coordinates, self.stride, self.stride)

    def _spatial_coordinates(self) -> List[Tuple[float, ...]]:
        return _chunk(self.flat_coordinates, self.stride, self.layout.dimension)


@dataclass(frozen=True)
class Point(SimpleGeometry):
    type: ClassVar[GeometryType] = GeometryType.POINT

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.flat_coordinates and len(self.flat_coordinates) != self.stride:
            raise GeometryError(
                "A point holds exactly one vertex", geometry_type=self.type.value
            )

    def to_shapely(self) -> BaseGeometry:
        coordinates = self._spatial_coordinates()
        return sg.Point(coordinates[0]) if coordinates else sg.Point()


@dataclass(frozen=True)
class LineString(SimpleGeometry):
    type: ClassVar[GeometryType] = GeometryType.LINE_STRING

    def to_shapely(self) -> BaseGeometry:
        return sg.LineString(self._spatial_coordinates())


@dataclass(frozen=True)
class LinearRing(SimpleGeometry):
    type: ClassVar[GeometryType] = GeometryType.LINEAR_RING

    def to_shapely(self) -> BaseGeometry:
        return sg.LinearRing(self._spatial_coordinates())


@dataclass(frozen=True)
class Polygon(SimpleGeometry):
    """
    A polygon; ring ``i`` spans ``flat_coordinates[ends[i-1]:ends[i]]``.

    The first ring is the outer boundary, the rest are holes.
    """

    type: ClassVar[GeometryType] = GeometryType.POLYGON

    ends: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "ends", tuple(int(e) for e in self.ends))
        previous = 0
        for end in self.ends:
            if end <= previous or end % self.stride != 0:
                raise GeometryError(
                    f"Ring ends {self.ends} must strictly increase in whole vertices",
                    geometry_type=self.type.value,
                )
            previous = end
        if previous != len(self.flat_coordinates):
            raise GeometryError(
                "The last ring end must equal the coordinate count",
                geometry_type=self.type.value,
                details={"ends": list(self.ends), "length": len(self.flat_coordinates)},
            )

    @property
    def linear_rings(self) -> List[LinearRing]:
        """Rings in order, outer boundary first."""
        rings = []
        offset = 0
        for end in self.ends:
            rings.append(
                LinearRing(self.flat_coordinates[offset:end], layout=self.layout)
            )
            offset = end
        return rings

    def to_shapely(self) -> BaseGeometry:
        rings = [ring._spatial_coordinates() for ring in self.linear_rings]
        if not rings:
            return sg.Polygon()
        return sg.Polygon(rings[0], rings[1:])


def _member_properties(properties: Dict[str, Any], index: int) -> Dict[str, Any]:
    member = {}
    for name in MEMBER_PROPERTY_NAMES:
        values = properties.get(name)
        if isinstance(values, (list, tuple)) and index < len(values):
            if values[index] is not None:
                member[name] = values[index]
    return member


@dataclass(frozen=True)
class MultiPoint(SimpleGeometry):
    type: ClassVar[GeometryType] = GeometryType.MULTI_POINT

    @property
    def points(self) -> List[Point]:
        """Member points, each carrying its entry of the per-member arrays."""
        stride = self.stride
        return [
            Point(
                self.flat_coordinates[i : i + stride],
                layout=self.layout,
                properties=_member_properties(self.properties, i // stride),
            )
            for i in range(0, len(self.flat_coordinates), stride)
        ]

    def to_shapely(self) -> BaseGeometry:
        return sg.MultiPoint(self._spatial_coordinates())


@dataclass(frozen=True)
class MultiLineString(Geometry):
    type: ClassVar[GeometryType] = GeometryType.MULTI_LINE_STRING

    line_strings: Tuple[LineString, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "line_strings", tuple(self.line_strings))
        _check_members(self, self.line_strings, LineString)

    @property
    def layout(self) -> GeometryLayout:
        return self.line_strings[0].layout if self.line_strings else GeometryLayout.XYZ

    def to_shapely(self) -> BaseGeometry:
        return sg.MultiLineString(
            [line._spatial_coordinates() for line in self.line_strings]
        )


@dataclass(frozen=True)
class MultiPolygon(Geometry):
    type: ClassVar[GeometryType] = GeometryType.MULTI_POLYGON

    polygons: Tuple[Polygon, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "polygons", tuple(self.polygons))
        _check_members(self, self.polygons, Polygon)

    @property
    def layout(self) -> GeometryLayout:
        return self.polygons[0].layout if self.polygons else GeometryLayout.XYZ

    def to_shapely(self) -> BaseGeometry:
        return sg.MultiPolygon([polygon.to_shapely() for polygon in self.polygons])


@dataclass(frozen=True)
class GeometryCollection(Geometry):
    type: ClassVar[GeometryType] = GeometryType.GEOMETRY_COLLECTION

    geometries: Tuple[Geometry, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "geometries", tuple(self.geometries))
        _check_members(self, self.geometries, Geometry)

    def to_shapely(self) -> BaseGeometry:
        return sg.GeometryCollection([g.to_shapely() for g in self.geometries])


def _check_members(owner: Geometry, members: Sequence[Any], member_class: type) -> None:
    for member in members:
        if not isinstance(member, member_class):
            raise GeometryError(
                f"{owner.type.value} cannot hold {type(member).__name__}",
                geometry_type=owner.type.value,
            )


AnyGeometry = Union[
    Point,
    LineString,
    LinearRing,
    Polygon,
    MultiPoint,
    MultiLineString,
    MultiPolygon,
    GeometryCollection,
]


def _flat(coords: Sequence[Sequence[float]]) -> List[float]:
    return [value for coordinate in coords for value in coordinate]


def _layout_of(shape: BaseGeometry) -> GeometryLayout:
    return GeometryLayout.XYZ if shape.has_z else GeometryLayout.XY


def geometry_from_shapely(shape: BaseGeometry) -> Geometry:
    """
    Convert a shapely geometry into the codec's geometry variant.

    Args:
        shape: Any shapely geometry

    Returns:
        The equivalent Geometry, XYZ when the shape has Z values, else XY

    Raises:
        InvariantError: If the shapely type has no counterpart
    """
    layout = _layout_of(shape)
    geom_type = shape.geom_type

    if geom_type == "Point":
        return Point(_flat(shape.coords), layout=layout)
    if geom_type == "LineString":
        return LineString(_flat(shape.coords), layout=layout)
    if geom_type == "LinearRing":
        return LinearRing(_flat(shape.coords), layout=layout)
    if geom_type == "Polygon":
        return _polygon_from_shapely(shape, layout)
    if geom_type == "MultiPoint":
        return MultiPoint(
            _flat(point.coords[0] for point in shape.geoms), layout=layout
        )
    if geom_type == "MultiLineString":
        return MultiLineString(
            [LineString(_flat(line.coords), layout=layout) for line in shape.geoms]
        )
    if geom_type == "MultiPolygon":
        return MultiPolygon(
            [_polygon_from_shapely(polygon, layout) for polygon in shape.geoms]
        )
    if geom_type == "GeometryCollection":
        return GeometryCollection([geometry_from_shapely(g) for g in shape.geoms])

    raise InvariantError("Unsupported shapely geometry type", value=geom_type)


def _polygon_from_shapely(shape: BaseGeometry, layout: GeometryLayout) -> Polygon:
    if shape.is_empty:
        return Polygon(layout=layout)
    flat_coordinates: List[float] = []
    ends: List[int] = []
    for ring in [shape.exterior, *shape.interiors]:
        flat_coordinates.extend(_flat(ring.coords))
        ends.append(len(flat_coordinates))
    return Polygon(flat_coordinates, layout=layout, ends=ends)


"""
KML parsing module.

Assembles features from Placemarks and walks Document/Folder containers,
registering shared styles as they are met. Also extracts document names,
network links and regions without decoding features.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from waymark.models.feature import Feature
from waymark.models.region import LevelOfDetail, NetworkLink, Region

from .context import ParseContext
from .geometry import (
    read_gx_multi_track,
    read_gx_track,
    read_line_string,
    read_linear_ring,
    read_multi_geometry,
    read_point,
    read_polygon,
)
from .primitives import read_boolean, read_decimal, read_string
from .style import (
    create_feature_style_function,
    read_style,
    read_style_map_value,
    read_uri_node,
    register_shared_style,
    register_shared_style_map,
)
from .xml_structure import (
    GX_NAMESPACE_URIS,
    KML_NAMESPACE_URIS,
    element_children,
    get_all_text_content,
    is_kml_element,
    make_array_extender,
    make_array_pusher,
    make_property_setter,
    make_structure_ns,
    parse_node,
    push_parse_and_pop,
    split_tag,
    text_reader,
)

logger = logging.getLogger(__name__)

CONTAINER_NAMES = ("Document", "Folder")

# Placemark slots for the decoded geometry and inline style. ExtendedData
# names are arbitrary strings and can never collide with these keys.
GEOMETRY_KEY = object()
STYLE_KEY = object()


# ---------------------------------------------------------------------------
# Extended data
# ---------------------------------------------------------------------------


def _data_parser(node: ET.Element, properties: Dict[str, Any], context: ParseContext) -> None:
    """Data entry keyed by its name attribute, else by its displayName."""
    entry = push_parse_and_pop({}, DATA_PARSERS, node, context)
    name = node.get("name")
    if name is None:
        name = entry.get("displayName")
    if name is not None:
        properties[name] = entry.get("value")


def _schema_data_parser(node: ET.Element, properties: Dict[str, Any], context: ParseContext) -> None:
    parse_node(SCHEMA_DATA_PARSERS, node, properties, context)


def _simple_data_parser(node: ET.Element, properties: Dict[str, Any], context: ParseContext) -> None:
    name = node.get("name")
    if name is not None:
        properties[name] = read_string(get_all_text_content(node))


def extended_data_parser(node: ET.Element, properties: Dict[str, Any], context: ParseContext) -> None:
    """Merge ExtendedData entries into properties; later entries overwrite."""
    parse_node(EXTENDED_DATA_PARSERS, node, properties, context)


# ---------------------------------------------------------------------------
# Regions and network links
# ---------------------------------------------------------------------------


def _lat_lon_alt_box_parser(node: ET.Element, region: Dict[str, Any], context: ParseContext) -> None:
    box = push_parse_and_pop({}, LAT_LON_ALT_BOX_PARSERS, node, context)
    region["extent"] = (
        box.get("west"),
        box.get("south"),
        box.get("east"),
        box.get("north"),
    )
    for key in ("altitude_mode", "min_altitude", "max_altitude"):
        if key in box:
            region[key] = box[key]


def _lod_parser(node: ET.Element, region: Dict[str, Any], context: ParseContext) -> None:
    region["lod"] = LevelOfDetail(**push_parse_and_pop({}, LOD_PARSERS, node, context))


def read_region(node: ET.Element, context: ParseContext) -> Region:
    """Read a Region; values missing from the source are None."""
    return Region(**push_parse_and_pop({}, REGION_PARSERS, node, context))


def _link_parser(node: ET.Element, link: Dict[str, Any], context: ParseContext) -> None:
    parse_node(LINK_PARSERS, node, link, context)


def _network_link_extended_data_parser(
    node: ET.Element, link: Dict[str, Any], context: ParseContext
) -> None:
    extended_data_parser(node, link.setdefault("properties", {}), context)


def read_network_link(node: ET.Element, context: ParseContext) -> NetworkLink:
    return NetworkLink(**push_parse_and_pop({}, NETWORK_LINK_PARSERS, node, context))


# ---------------------------------------------------------------------------
# Placemarks and containers
# ---------------------------------------------------------------------------


def _placemark_style_parser(node: ET.Element, placemark: Dict[str, Any], context: ParseContext) -> None:
    if context.extract_styles:
        placemark[STYLE_KEY] = read_style(node, context)


def _placemark_style_map_parser(
    node: ET.Element, placemark: Dict[str, Any], context: ParseContext
) -> None:
    if not context.extract_styles:
        return
    value = read_style_map_value(node, context)
    if not value:
        return
    if isinstance(value, str):
        placemark["styleUrl"] = value
    else:
        placemark[STYLE_KEY] = value


def read_placemark(node: ET.Element, context: ParseContext) -> Feature:
    """
    Assemble a Feature from a Placemark.

    The last geometry child wins. Inline Style (or an inline StyleMap's
    normal style) takes precedence over styleUrl when styles are resolved,
    which happens here against the shared styles registered so far.
    """
    placemark: Dict[Any, Any] = push_parse_and_pop({}, PLACEMARK_PARSERS, node, context)
    geometry = placemark.pop(GEOMETRY_KEY, None)
    style = placemark.pop(STYLE_KEY, None)

    style_function = None
    if context.extract_styles:
        style_function = create_feature_style_function(
            style, placemark.get("styleUrl"), context
        )

    return Feature(
        id=node.get("id"),
        geometry=geometry,
        properties=placemark,
        style_function=style_function,
    )


def read_document_or_folder(node: ET.Element, context: ParseContext) -> List[Feature]:
    """
    Read the features of a Document or Folder.

    Shared styles are registered first, then placemarks are read in document
    order, then nested containers are descended into. A styleUrl can
    therefore reference a style defined later in the same container but not
    one defined in a later sibling container.
    """
    features: List[Feature] = []
    if context.extract_styles:
        parse_node(SHARED_STYLE_PARSERS, node, features, context)
    parse_node(CONTAINER_PLACEMARK_PARSERS, node, features, context)
    parse_node(NESTED_CONTAINER_PARSERS, node, features, context)
    return features


def read_features_from_node(node: ET.Element, context: ParseContext) -> List[Feature]:
    """
    Read features from a kml, Document, Folder or Placemark element.

    Elements outside the KML namespaces, and other element names, yield no
    features.
    """
    namespace, name = split_tag(node.tag)
    if namespace not in KML_NAMESPACE_URIS:
        logger.debug(f"Ignoring element in foreign namespace {namespace}")
        return []
    if name in CONTAINER_NAMES:
        return read_document_or_folder(node, context)
    if name == "Placemark":
        return [read_placemark(node, context)]
    if name == "kml":
        features: List[Feature] = []
        for child in element_children(node):
            features.extend(read_features_from_node(child, context))
        return features
    return []


def read_feature_from_node(node: ET.Element, context: ParseContext) -> Optional[Feature]:
    """Read a Placemark element, or the first feature found under node."""
    if is_kml_element(node, "Placemark"):
        return read_placemark(node, context)
    features = read_features_from_node(node, context)
    return features[0] if features else None


def read_name_from_node(node: ET.Element) -> Optional[str]:
    """
    The first name found: a direct name child, else the first non-empty
    name of a nested container, placemark or kml element.
    """
    for child in element_children(node):
        if is_kml_element(child, "name"):
            return read_string(get_all_text_content(child))
    for child in element_children(node):
        if is_kml_element(child, "Document", "Folder", "Placemark", "kml"):
            name = read_name_from_node(child)
            if name:
                return name
    return None


def read_network_links_from_node(node: ET.Element, context: ParseContext) -> List[NetworkLink]:
    """All NetworkLinks, direct children first, then those of nested containers."""
    links: List[NetworkLink] = []
    for child in element_children(node):
        if is_kml_element(child, "NetworkLink"):
            links.append(read_network_link(child, context))
    for child in element_children(node):
        if is_kml_element(child, "Document", "Folder", "kml"):
            links.extend(read_network_links_from_node(child, context))
    return links


def read_regions_from_node(node: ET.Element, context: ParseContext) -> List[Region]:
    """All Regions, direct children first, then those of nested containers."""
    regions: List[Region] = []
    for child in element_children(node):
        if is_kml_element(child, "Region"):
            regions.append(read_region(child, context))
    for child in element_children(node):
        if is_kml_element(child, "Document", "Folder", "kml"):
            regions.extend(read_regions_from_node(child, context))
    return regions


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

DATA_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "displayName": make_property_setter(text_reader(read_string)),
        "value": make_property_setter(text_reader(read_string)),
    },
)

SCHEMA_DATA_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"SimpleData": _simple_data_parser}
)

EXTENDED_DATA_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Data": _data_parser,
        "SchemaData": _schema_data_parser,
    },
)

LAT_LON_ALT_BOX_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "altitudeMode": make_property_setter(text_reader(read_string), "altitude_mode"),
        "minAltitude": make_property_setter(text_reader(read_decimal), "min_altitude"),
        "maxAltitude": make_property_setter(text_reader(read_decimal), "max_altitude"),
        "north": make_property_setter(text_reader(read_decimal)),
        "south": make_property_setter(text_reader(read_decimal)),
        "east": make_property_setter(text_reader(read_decimal)),
        "west": make_property_setter(text_reader(read_decimal)),
    },
)

LOD_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "minLodPixels": make_property_setter(text_reader(read_decimal), "min_lod_pixels"),
        "maxLodPixels": make_property_setter(text_reader(read_decimal), "max_lod_pixels"),
        "minFadeExtent": make_property_setter(text_reader(read_decimal), "min_fade_extent"),
        "maxFadeExtent": make_property_setter(text_reader(read_decimal), "max_fade_extent"),
    },
)

REGION_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "LatLonAltBox": _lat_lon_alt_box_parser,
        "Lod": _lod_parser,
    },
)

LINK_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"href": make_property_setter(read_uri_node)}
)

NETWORK_LINK_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "ExtendedData": _network_link_extended_data_parser,
        "Link": _link_parser,
        "Region": make_property_setter(read_region, "region"),
        "Url": _link_parser,
        "address": make_property_setter(text_reader(read_string)),
        "description": make_property_setter(text_reader(read_string)),
        "name": make_property_setter(text_reader(read_string)),
        "open": make_property_setter(text_reader(read_boolean)),
        "phoneNumber": make_property_setter(text_reader(read_string), "phone_number"),
        "visibility": make_property_setter(text_reader(read_boolean)),
    },
)

PLACEMARK_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "ExtendedData": extended_data_parser,
        "Region": make_property_setter(read_region, "region"),
        "MultiGeometry": make_property_setter(read_multi_geometry, GEOMETRY_KEY),
        "LineString": make_property_setter(read_line_string, GEOMETRY_KEY),
        "LinearRing": make_property_setter(read_linear_ring, GEOMETRY_KEY),
        "Point": make_property_setter(read_point, GEOMETRY_KEY),
        "Polygon": make_property_setter(read_polygon, GEOMETRY_KEY),
        "Style": _placemark_style_parser,
        "StyleMap": _placemark_style_map_parser,
        "address": make_property_setter(text_reader(read_string)),
        "description": make_property_setter(text_reader(read_string)),
        "name": make_property_setter(text_reader(read_string)),
        "open": make_property_setter(text_reader(read_boolean)),
        "phoneNumber": make_property_setter(text_reader(read_string)),
        "styleUrl": make_property_setter(read_uri_node),
        "visibility": make_property_setter(text_reader(read_boolean)),
    },
    make_structure_ns(
        GX_NAMESPACE_URIS,
        {
            "MultiTrack": make_property_setter(read_gx_multi_track, GEOMETRY_KEY),
            "Track": make_property_setter(read_gx_track, GEOMETRY_KEY),
        },
    ),
)

SHARED_STYLE_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Style": register_shared_style,
        "StyleMap": register_shared_style_map,
    },
)

CONTAINER_PLACEMARK_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"Placemark": make_array_pusher(read_placemark)}
)

NESTED_CONTAINER_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Document": make_array_extender(read_document_or_folder),
        "Folder": make_array_extender(read_document_or_folder),
    },
)

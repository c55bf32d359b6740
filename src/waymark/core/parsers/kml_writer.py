"""
KML writing module.

Builds a ``kml`` element tree from features: one feature becomes a
Placemark, several a Document of Placemarks. Element order follows the
KML 2.2 schema.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Sequence

from waymark.models.feature import Feature

from .context import WriteContext
from .geometry import (
    GEOMETRY_SERIALIZERS,
    geometry_node_factory,
)
from .primitives import write_boolean
from .style import write_style
from .xml_structure import (
    GX_NS,
    KML_NAMESPACE_URIS,
    KML_NS,
    SCHEMA_LOCATION,
    XSI_NS,
    declare_namespace,
    make_simple_node_factory,
    make_structure_ns,
    make_sequence,
    object_property_node_factory,
    qualify,
    serialize_sequence,
    write_text,
)

logger = logging.getLogger(__name__)

PLACEMARK_SEQUENCE = (
    "name",
    "open",
    "visibility",
    "address",
    "phoneNumber",
    "description",
    "styleUrl",
    "Style",
)

# Properties written as elements of their own, never as ExtendedData.
RESERVED_PROPERTY_NAMES = frozenset(
    {
        "address",
        "description",
        "name",
        "open",
        "phoneNumber",
        "styleUrl",
        "visibility",
        "region",
    }
)

KML_SEQUENCE = ("Document", "Placemark")


def _write_string_text(node: ET.Element, value: Any, context: WriteContext) -> None:
    write_text(node, str(value))


def _write_boolean_text(node: ET.Element, value: bool, context: WriteContext) -> None:
    write_text(node, write_boolean(value))


def _write_data(node: ET.Element, entry: Any, context: WriteContext) -> None:
    """
    Write a Data element for a (name, value) pair.

    A dict value may carry ``displayName`` and ``value``; anything else is
    written as the value text.
    """
    name, value = entry
    node.set("name", str(name))
    if isinstance(value, dict):
        properties = {
            "displayName": value.get("displayName"),
            "value": value.get("value"),
        }
    else:
        properties = {"value": value}
    serialize_sequence(
        node,
        DATA_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, DATA_SEQUENCE),
        context,
        DATA_SEQUENCE,
    )


def write_extended_data(node: ET.Element, entries: Sequence[Any], context: WriteContext) -> None:
    serialize_sequence(
        node,
        EXTENDED_DATA_SERIALIZERS,
        make_simple_node_factory("Data"),
        entries,
        context,
    )


def write_placemark(node: ET.Element, feature: Feature, context: WriteContext) -> None:
    """
    Write a feature into a Placemark element.

    ExtendedData comes first, holding every property without an element of
    its own in sorted key order. The first resolved style is written inline
    when style writing is enabled, and a style carrying label text replaces
    the name.
    """
    if feature.id is not None:
        node.set("id", str(feature.id))

    properties = feature.properties
    extended_keys = sorted(
        key for key in properties if key not in RESERVED_PROPERTY_NAMES
    )
    scalars: Dict[str, Any] = {
        key: value for key, value in properties.items() if key in RESERVED_PROPERTY_NAMES
    }
    if extended_keys:
        entries = [(key, properties[key]) for key in extended_keys]
        serialize_sequence(
            node,
            PLACEMARK_SERIALIZERS,
            make_simple_node_factory("ExtendedData"),
            [entries],
            context,
        )

    styles = feature.get_styles(0)
    if styles:
        style = styles[0]
        if context.write_styles:
            scalars["Style"] = style
        if style.text is not None and style.text.text:
            scalars["name"] = style.text.text

    serialize_sequence(
        node,
        PLACEMARK_SERIALIZERS,
        object_property_node_factory,
        make_sequence(scalars, PLACEMARK_SEQUENCE),
        context,
        PLACEMARK_SEQUENCE,
    )
    serialize_sequence(
        node,
        GEOMETRY_SERIALIZERS,
        geometry_node_factory,
        [feature.geometry],
        context,
    )


def write_document(node: ET.Element, features: Sequence[Feature], context: WriteContext) -> None:
    serialize_sequence(
        node,
        DOCUMENT_SERIALIZERS,
        make_simple_node_factory("Placemark"),
        features,
        context,
    )


def write_features_node(features: Sequence[Feature], context: WriteContext) -> ET.Element:
    """
    Build the ``kml`` root for features.

    Args:
        features: Features to write
        context: Write options

    Returns:
        A kml element in the KML 2.2 namespace declaring the gx and xsi
        namespaces and the schema location
    """
    kml = ET.Element(qualify(KML_NS, "kml"))
    kml.set(qualify(XSI_NS, "schemaLocation"), SCHEMA_LOCATION)

    properties: Dict[str, Any] = {}
    if len(features) > 1:
        properties["Document"] = list(features)
    elif len(features) == 1:
        properties["Placemark"] = features[0]

    serialize_sequence(
        kml,
        KML_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, KML_SEQUENCE),
        context,
        KML_SEQUENCE,
    )
    declare_namespace(kml, "gx", GX_NS)
    logger.debug(f"Encoded {len(features)} features")
    return kml


def write_features(features: Sequence[Feature], context: WriteContext) -> str:
    """Serialize features to KML text, without an XML declaration."""
    return ET.tostring(write_features_node(features, context), encoding="unicode")


DATA_SEQUENCE = ("displayName", "value")

DATA_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "displayName": _write_string_text,
        "value": _write_string_text,
    },
)

EXTENDED_DATA_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"Data": _write_data}
)

PLACEMARK_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "ExtendedData": write_extended_data,
        "Style": write_style,
        "address": _write_string_text,
        "description": _write_string_text,
        "name": _write_string_text,
        "open": _write_boolean_text,
        "phoneNumber": _write_string_text,
        "styleUrl": _write_string_text,
        "visibility": _write_boolean_text,
    },
)

DOCUMENT_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"Placemark": write_placemark}
)

KML_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Document": write_document,
        "Placemark": write_placemark,
    },
)

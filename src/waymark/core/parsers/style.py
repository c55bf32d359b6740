"""
Style decoding, resolution and encoding.

A Style element is read into a one-element style list whose missing
sub-styles fall back to the codec defaults. StyleMaps contribute only their
``normal`` pair. Shared styles are registered under ``base#id`` and looked
up when a placemark references them through styleUrl.
"""

import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Union

from waymark.models.feature import Feature, StyleFunction
from waymark.models.geometry import GeometryType
from waymark.models.style import (
    DefaultStyles,
    Fill,
    Icon,
    IconAnchorUnits,
    IconOrigin,
    Stroke,
    Style,
    Text,
)

from .context import ParseContext, SharedStyleRegistry, WriteContext
from .primitives import (
    Vec2,
    format_number,
    read_boolean,
    read_color,
    read_decimal,
    read_uri,
    read_vec2,
    read_string,
    vec2_units_attributes,
    write_color,
    write_scale,
)
from .xml_structure import (
    GX_NAMESPACE_URIS,
    GX_NS,
    KML_NAMESPACE_URIS,
    get_all_text_content,
    make_property_setter,
    make_structure_ns,
    make_sequence,
    object_property_node_factory,
    push_parse_and_pop,
    serialize_sequence,
    text_reader,
    write_text,
)

logger = logging.getLogger(__name__)

# Marks an IconStyle whose Icon element is present but empty: draw no image.
NO_IMAGE = object()

_GOOGLE_MAPS_ICON_RE = re.compile(r"^https?://maps\.(?:google|gstatic)\.com/")


def read_uri_node(node: ET.Element, context: ParseContext) -> str:
    return read_uri(get_all_text_content(node), context.effective_base_uri)


def read_color_node(node: ET.Element, context: ParseContext) -> Optional[Any]:
    return read_color(get_all_text_content(node))


def read_vec2_node(node: ET.Element, context: ParseContext) -> Vec2:
    return read_vec2(node)


# ---------------------------------------------------------------------------
# Sub-styles
# ---------------------------------------------------------------------------


def read_icon(node: ET.Element, context: ParseContext) -> Dict[str, Any]:
    """Read an Icon element: href plus the gx sprite x, y, w and h."""
    return push_parse_and_pop({}, ICON_PARSERS, node, context)


def _icon_style_parser(node: ET.Element, style_object: Dict[str, Any], context: ParseContext) -> None:
    """
    Build the image sub-style.

    An IconStyle without an Icon child draws the default icon; one whose
    Icon child has no href draws nothing.
    """
    defaults = context.defaults
    icon_style = push_parse_and_pop({}, ICON_STYLE_PARSERS, node, context)
    icon_object = icon_style.get("Icon", {})
    draw_icon = "Icon" not in icon_style or "href" in icon_object
    if not draw_icon:
        style_object["image_style"] = NO_IMAGE
        return

    src = icon_object.get("href") or defaults.image_src

    anchor = None
    anchor_x_units = IconAnchorUnits.FRACTION
    anchor_y_units = IconAnchorUnits.FRACTION
    anchor_origin = IconOrigin.BOTTOM_LEFT
    hot_spot: Optional[Vec2] = icon_style.get("hotSpot")
    if hot_spot is not None:
        anchor = (hot_spot.x, hot_spot.y)
        anchor_x_units = hot_spot.x_units
        anchor_y_units = hot_spot.y_units
        anchor_origin = hot_spot.origin
    elif src == defaults.image_src:
        anchor = defaults.image_anchor
        anchor_x_units = defaults.image_anchor_x_units
        anchor_y_units = defaults.image_anchor_y_units
    elif _GOOGLE_MAPS_ICON_RE.match(src):
        anchor = (0.5, 0.0)

    offset = None
    if "x" in icon_object and "y" in icon_object:
        offset = (icon_object["x"], icon_object["y"])

    size = None
    if "w" in icon_object and "h" in icon_object:
        size = (icon_object["w"], icon_object["h"])

    rotation = None
    if "heading" in icon_style:
        rotation = math.radians(icon_style["heading"])

    scale = icon_style.get("scale")
    if src == defaults.image_src:
        size = defaults.image_size
        if scale is None:
            scale = defaults.image_scale

    style_object["image_style"] = Icon(
        src=src,
        anchor=anchor,
        anchor_x_units=anchor_x_units,
        anchor_y_units=anchor_y_units,
        anchor_origin=anchor_origin,
        size=size,
        scale=scale,
        rotation=rotation,
        offset=offset,
        offset_origin=IconOrigin.BOTTOM_LEFT,
    )


def _label_style_parser(node: ET.Element, style_object: Dict[str, Any], context: ParseContext) -> None:
    label_style = push_parse_and_pop({}, LABEL_STYLE_PARSERS, node, context)
    style_object["text_style"] = Text(
        fill=Fill(color=label_style.get("color", context.defaults.color)),
        scale=label_style.get("scale"),
    )


def _line_style_parser(node: ET.Element, style_object: Dict[str, Any], context: ParseContext) -> None:
    line_style = push_parse_and_pop({}, LINE_STYLE_PARSERS, node, context)
    style_object["stroke_style"] = Stroke(
        color=line_style.get("color", context.defaults.color),
        width=line_style.get("width", 1),
    )


def _poly_style_parser(node: ET.Element, style_object: Dict[str, Any], context: ParseContext) -> None:
    poly_style = push_parse_and_pop({}, POLY_STYLE_PARSERS, node, context)
    style_object["fill_style"] = Fill(
        color=poly_style.get("color", context.defaults.color)
    )
    if "fill" in poly_style:
        style_object["fill"] = poly_style["fill"]
    if "outline" in poly_style:
        style_object["outline"] = poly_style["outline"]


def read_style(node: ET.Element, context: ParseContext) -> List[Style]:
    """
    Read a Style element into a one-element style list.

    Sub-styles the element does not define take the defaults. PolyStyle's
    fill and outline flags, when false, remove the fill and the stroke.
    """
    defaults = context.defaults
    style_object = push_parse_and_pop({}, STYLE_PARSERS, node, context)

    fill = style_object.get("fill_style", defaults.fill)
    if style_object.get("fill") is False:
        fill = None

    image = style_object.get("image_style", defaults.image)
    if image is NO_IMAGE:
        image = None

    text = style_object.get("text_style", defaults.text)

    stroke = style_object.get("stroke_style", defaults.stroke)
    if style_object.get("outline") is False:
        stroke = None

    return [Style(fill=fill, stroke=stroke, image=image, text=text)]


def _pair_parser(node: ET.Element, style_map: Dict[str, Any], context: ParseContext) -> None:
    pair = push_parse_and_pop({}, PAIR_PARSERS, node, context)
    if pair.get("key") != "normal":
        return
    # An inline Style wins over a styleUrl in the same pair.
    if "Style" in pair:
        style_map["value"] = pair["Style"]
    elif "styleUrl" in pair:
        style_map["value"] = pair["styleUrl"]


def read_style_map_value(
    node: ET.Element, context: ParseContext
) -> Optional[Union[List[Style], str]]:
    """The ``normal`` pair of a StyleMap: a style list, a URL, or None."""
    return push_parse_and_pop({}, STYLE_MAP_PARSERS, node, context).get("value")


# ---------------------------------------------------------------------------
# Shared styles
# ---------------------------------------------------------------------------


def shared_style_uri(style_id: str, context: ParseContext) -> str:
    """Registry key of a shared style: ``#id`` resolved against the base URI."""
    return read_uri(f"#{style_id}", context.effective_base_uri)


def register_shared_style(node: ET.Element, target: Any, context: ParseContext) -> None:
    """Register a Style with an id attribute; others are ignored."""
    style_id = node.get("id")
    if style_id is None:
        return
    uri = shared_style_uri(style_id, context)
    context.registry.register(uri, read_style(node, context))
    logger.debug(f"Registered shared style {uri}")


def register_shared_style_map(node: ET.Element, target: Any, context: ParseContext) -> None:
    """Register the normal value of a StyleMap with an id attribute."""
    style_id = node.get("id")
    if style_id is None:
        return
    value = read_style_map_value(node, context)
    if not value:
        return
    context.registry.register(shared_style_uri(style_id, context), value)


def find_style(
    style_value: Optional[Union[Sequence[Style], str]],
    default_style: Sequence[Style],
    registry: SharedStyleRegistry,
) -> List[Style]:
    """
    Resolve an inline style list or a style URL to a style list.

    Args:
        style_value: Style list, URL (with or without '#'), or None
        default_style: Fallback for missing values and unresolved URLs
        registry: Shared styles to look URLs up in

    Returns:
        The resolved style list
    """
    if style_value is None:
        return list(default_style)
    if isinstance(style_value, str):
        return registry.resolve(style_value, default_style)
    return list(style_value)


def create_name_style(found_style: Style, name: str, defaults: DefaultStyles) -> Style:
    """
    Build a label style carrying ``name``.

    The label copies the found style's text (missing font, scale, fill and
    halo taken from the defaults). With an icon it is left-aligned and
    offset by half the icon's scaled size; without one it is centred.
    """
    offset_x = 0.0
    offset_y = 0.0
    text_align = "center"

    image = found_style.image
    if image is not None:
        size = image.size or defaults.image_size
        scale = image.scale if image.scale is not None else 1
        offset_x = scale * size[0] / 2
        offset_y = -scale * size[1] / 2
        text_align = "left"

    found_text = found_style.text
    if found_text is not None:
        text = replace(
            found_text,
            font=found_text.font or defaults.text.font,
            scale=found_text.scale or defaults.text.scale,
            fill=found_text.fill or defaults.text.fill,
            stroke=found_text.stroke or defaults.text_stroke,
        )
    else:
        text = defaults.text

    return Style(
        text=replace(
            text,
            text=name,
            text_align=text_align,
            offset_x=offset_x,
            offset_y=offset_y,
        )
    )


def create_feature_style_function(
    style: Optional[Sequence[Style]],
    style_url: Optional[str],
    context: ParseContext,
) -> StyleFunction:
    """
    Resolve a placemark's styles and wrap them in a style function.

    The inline style wins over styleUrl, which wins over the default style.
    Resolution happens now, against the shared styles registered so far.
    When point names are shown, a named Point feature additionally gets a
    label style built from its current ``name`` property.
    """
    if style:
        resolved = list(style)
    else:
        resolved = find_style(style_url, context.default_style, context.registry)
    show_point_names = context.show_point_names
    defaults = context.defaults

    def style_function(feature: Feature, resolution: float) -> List[Style]:
        geometry = feature.geometry
        if show_point_names and geometry is not None and geometry.type == GeometryType.POINT:
            name = feature.get("name")
            if name:
                found = resolved[0] if resolved else Style()
                return resolved + [create_name_style(found, str(name), defaults)]
        return list(resolved)

    return style_function


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

STYLE_SEQUENCE = ("IconStyle", "LabelStyle", "LineStyle", "PolyStyle")
ICON_STYLE_SEQUENCE = ("scale", "heading", "Icon", "hotSpot")
ICON_SEQUENCE = ("href",)
GX_ICON_SEQUENCE = ("x", "y", "w", "h")
LABEL_STYLE_SEQUENCE = ("color", "scale")
LINE_STYLE_SEQUENCE = ("color", "width")
POLY_STYLE_SEQUENCE = ("color",)


def _write_color_text(node: ET.Element, color: Any, context: WriteContext) -> None:
    write_text(node, write_color(color))


def _write_number_text(node: ET.Element, value: float, context: WriteContext) -> None:
    write_text(node, format_number(value))


def _write_scale_text(node: ET.Element, value: float, context: WriteContext) -> None:
    write_text(node, write_scale(value))


def _write_string_text(node: ET.Element, value: Any, context: WriteContext) -> None:
    write_text(node, str(value))


def _write_vec2(node: ET.Element, vec2: Vec2, context: WriteContext) -> None:
    x_units, y_units = vec2_units_attributes(vec2)
    node.set("x", format_number(vec2.x))
    node.set("y", format_number(vec2.y))
    node.set("xunits", x_units)
    node.set("yunits", y_units)


def _gx_node_factory(parent: ET.Element, value: Any, node_name: Optional[str]) -> ET.Element:
    return ET.Element(f"{{{GX_NS}}}{node_name}")


def write_icon(node: ET.Element, icon: Dict[str, Any], context: WriteContext) -> None:
    """Write an Icon element: href, then the gx sprite rectangle."""
    serialize_sequence(
        node,
        ICON_SERIALIZERS,
        object_property_node_factory,
        make_sequence(icon, ICON_SEQUENCE),
        context,
        ICON_SEQUENCE,
    )
    serialize_sequence(
        node,
        ICON_SERIALIZERS,
        _gx_node_factory,
        make_sequence(icon, GX_ICON_SEQUENCE),
        context,
        GX_ICON_SEQUENCE,
    )


def write_icon_style(node: ET.Element, image: Icon, context: WriteContext) -> None:
    """
    Write an IconStyle.

    Rotation is written as a heading in degrees. The anchor becomes a
    hotSpot whose units encode the anchor origin.
    """
    icon: Dict[str, Any] = {"href": image.src}
    if image.offset is not None:
        icon["x"], icon["y"] = image.offset
    if image.size is not None:
        icon["w"], icon["h"] = image.size

    properties: Dict[str, Any] = {"Icon": icon}
    if image.scale is not None and image.scale != 1:
        properties["scale"] = image.scale
    if image.rotation:
        properties["heading"] = math.degrees(image.rotation)
    if image.anchor is not None:
        properties["hotSpot"] = Vec2(
            x=image.anchor[0],
            y=image.anchor[1],
            x_units=image.anchor_x_units,
            y_units=image.anchor_y_units,
            origin=image.anchor_origin,
        )

    serialize_sequence(
        node,
        ICON_STYLE_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, ICON_STYLE_SEQUENCE),
        context,
        ICON_STYLE_SEQUENCE,
    )


def write_label_style(node: ET.Element, text: Text, context: WriteContext) -> None:
    properties: Dict[str, Any] = {}
    if text.fill is not None and text.fill.color is not None:
        properties["color"] = text.fill.color
    if text.scale and text.scale != 1:
        properties["scale"] = text.scale
    serialize_sequence(
        node,
        LABEL_STYLE_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, LABEL_STYLE_SEQUENCE),
        context,
        LABEL_STYLE_SEQUENCE,
    )


def write_line_style(node: ET.Element, stroke: Stroke, context: WriteContext) -> None:
    properties = {"color": stroke.color, "width": stroke.width}
    serialize_sequence(
        node,
        LINE_STYLE_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, LINE_STYLE_SEQUENCE),
        context,
        LINE_STYLE_SEQUENCE,
    )


def write_poly_style(node: ET.Element, fill: Fill, context: WriteContext) -> None:
    serialize_sequence(
        node,
        POLY_STYLE_SERIALIZERS,
        object_property_node_factory,
        make_sequence({"color": fill.color}, POLY_STYLE_SEQUENCE),
        context,
        POLY_STYLE_SEQUENCE,
    )


def write_style(node: ET.Element, style: Style, context: WriteContext) -> None:
    """Write the sub-styles of a Style that are present, in schema order."""
    properties: Dict[str, Any] = {}
    if isinstance(style.image, Icon):
        properties["IconStyle"] = style.image
    if style.text is not None:
        properties["LabelStyle"] = style.text
    if style.stroke is not None:
        properties["LineStyle"] = style.stroke
    if style.fill is not None:
        properties["PolyStyle"] = style.fill
    serialize_sequence(
        node,
        STYLE_SERIALIZERS,
        object_property_node_factory,
        make_sequence(properties, STYLE_SEQUENCE),
        context,
        STYLE_SEQUENCE,
    )


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

ICON_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"href": make_property_setter(read_uri_node)},
    make_structure_ns(
        GX_NAMESPACE_URIS,
        {
            "x": make_property_setter(text_reader(read_decimal)),
            "y": make_property_setter(text_reader(read_decimal)),
            "w": make_property_setter(text_reader(read_decimal)),
            "h": make_property_setter(text_reader(read_decimal)),
        },
    ),
)

ICON_STYLE_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Icon": make_property_setter(read_icon),
        "heading": make_property_setter(text_reader(read_decimal)),
        "hotSpot": make_property_setter(read_vec2_node),
        "scale": make_property_setter(text_reader(read_decimal)),
    },
)

LABEL_STYLE_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "color": make_property_setter(read_color_node),
        "scale": make_property_setter(text_reader(read_decimal)),
    },
)

LINE_STYLE_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "color": make_property_setter(read_color_node),
        "width": make_property_setter(text_reader(read_decimal)),
    },
)

POLY_STYLE_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "color": make_property_setter(read_color_node),
        "fill": make_property_setter(text_reader(read_boolean)),
        "outline": make_property_setter(text_reader(read_boolean)),
    },
)

STYLE_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "IconStyle": _icon_style_parser,
        "LabelStyle": _label_style_parser,
        "LineStyle": _line_style_parser,
        "PolyStyle": _poly_style_parser,
    },
)

PAIR_PARSERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Style": make_property_setter(read_style),
        "key": make_property_setter(text_reader(read_string)),
        "styleUrl": make_property_setter(read_uri_node),
    },
)

STYLE_MAP_PARSERS = make_structure_ns(KML_NAMESPACE_URIS, {"Pair": _pair_parser})

ICON_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"href": _write_string_text},
    make_structure_ns(
        GX_NAMESPACE_URIS,
        {
            "x": _write_number_text,
            "y": _write_number_text,
            "w": _write_number_text,
            "h": _write_number_text,
        },
    ),
)

ICON_STYLE_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "Icon": write_icon,
        "heading": _write_number_text,
        "hotSpot": _write_vec2,
        "scale": _write_scale_text,
    },
)

LABEL_STYLE_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"color": _write_color_text, "scale": _write_scale_text},
)

LINE_STYLE_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {"color": _write_color_text, "width": _write_number_text},
)

POLY_STYLE_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS, {"color": _write_color_text}
)

STYLE_SERIALIZERS = make_structure_ns(
    KML_NAMESPACE_URIS,
    {
        "IconStyle": write_icon_style,
        "LabelStyle": write_label_style,
        "LineStyle": write_line_style,
        "PolyStyle": write_poly_style,
    },
)

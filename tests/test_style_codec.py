"""
Tests for style decoding, shared-style resolution and style encoding.

Tests cover:
- Default sub-styles and PolyStyle fill/outline flags
- IconStyle anchor, size and scale rules
- StyleMap normal pairs
- Shared style registry lookups and reference cycles
- Style functions and point name labels
- Writing Style elements
"""

import math
import xml.etree.ElementTree as ET

import pytest

from waymark.core.parsers.context import ParseContext, SharedStyleRegistry, WriteContext
from waymark.core.parsers.style import (
    create_feature_style_function,
    create_name_style,
    find_style,
    read_style,
    read_style_map_value,
    register_shared_style,
    shared_style_uri,
    write_style,
)
from waymark.core.parsers.xml_structure import KML_NS
from waymark.models import DEFAULT_STYLES, Feature, LineString, Point
from waymark.models.style import Fill, Icon, IconAnchorUnits, IconOrigin, Stroke, Style, Text

NS = f' xmlns="{KML_NS}" xmlns:gx="http://www.google.com/kml/ext/2.2"'


def parse(fragment: str) -> ET.Element:
    """Parse a fragment whose root tag gets the KML and gx namespaces."""
    tag_end = fragment.index(">")
    if fragment[tag_end - 1] == "/":
        tag_end -= 1
    return ET.fromstring(fragment[:tag_end] + NS + fragment[tag_end:])


def style_of(fragment: str, context: ParseContext = None) -> Style:
    styles = read_style(parse(fragment), context or ParseContext())
    assert len(styles) == 1
    return styles[0]


class TestReadStyle:
    """Tests for Style elements."""

    def test_empty_style_uses_defaults(self):
        """Test that every sub-style falls back to the default."""
        style = style_of("<Style/>")
        assert style.fill == DEFAULT_STYLES.fill
        assert style.stroke == DEFAULT_STYLES.stroke
        assert style.image == DEFAULT_STYLES.image
        assert style.text == DEFAULT_STYLES.text

    def test_line_style(self):
        """Test stroke color and width."""
        style = style_of("<Style><LineStyle><color>ff0000ff</color><width>3</width></LineStyle></Style>")
        assert style.stroke == Stroke(color=(255, 0, 0, 1.0), width=3.0)

    def test_line_style_defaults(self):
        """Test a LineStyle without children."""
        style = style_of("<Style><LineStyle/></Style>")
        assert style.stroke == Stroke(color=DEFAULT_STYLES.color, width=1)

    def test_malformed_color_uses_default(self):
        """Test that an unreadable color is treated as absent."""
        style = style_of("<Style><PolyStyle><color>not-a-color</color></PolyStyle></Style>")
        assert style.fill == Fill(color=(255, 255, 255, 1))

    def test_fill_flag_removes_fill(self):
        """Test PolyStyle fill 0."""
        style = style_of("<Style><PolyStyle><fill>0</fill></PolyStyle></Style>")
        assert style.fill is None
        assert style.stroke is not None

    def test_outline_flag_removes_stroke(self):
        """Test PolyStyle outline 0, even with a LineStyle."""
        style = style_of(
            "<Style><LineStyle><width>4</width></LineStyle>"
            "<PolyStyle><outline>0</outline></PolyStyle></Style>"
        )
        assert style.stroke is None
        assert style.fill is not None

    def test_label_style(self):
        """Test label color and scale."""
        style = style_of("<Style><LabelStyle><color>ff00ffff</color><scale>2</scale></LabelStyle></Style>")
        assert style.text == Text(fill=Fill(color=(255, 255, 0, 1.0)), scale=2.0)


class TestIconStyle:
    """Tests for IconStyle decoding."""

    def test_icon_style_without_icon_draws_default(self):
        """Test the default pushpin with its anchor, size and scale."""
        image = style_of("<Style><IconStyle/></Style>").image
        assert image.src == DEFAULT_STYLES.image_src
        assert image.anchor == (20.0, 2.0)
        assert image.anchor_x_units == IconAnchorUnits.PIXELS
        assert image.size == (64.0, 64.0)
        assert image.scale == 0.5

    def test_empty_icon_draws_nothing(self):
        """Test that an Icon without href means no image."""
        style = style_of("<Style><IconStyle><Icon/></IconStyle></Style>")
        assert style.image is None
        assert style.fill is not None

    def test_google_maps_icon(self):
        """Test the bottom-center anchor of Google Maps icons."""
        image = style_of(
            "<Style><IconStyle><scale>1.5</scale><heading>90</heading>"
            "<Icon><href>http://maps.google.com/mapfiles/kml/paddle/red-circle.png</href></Icon>"
            "</IconStyle></Style>"
        ).image
        assert image.src == "http://maps.google.com/mapfiles/kml/paddle/red-circle.png"
        assert image.anchor == (0.5, 0.0)
        assert image.anchor_x_units == IconAnchorUnits.FRACTION
        assert image.size is None
        assert image.scale == 1.5
        assert image.rotation == pytest.approx(math.pi / 2)

    def test_other_icon_has_no_anchor(self):
        """Test an icon from any other host."""
        image = style_of(
            "<Style><IconStyle><Icon><href>http://example.com/icon.png</href></Icon>"
            "</IconStyle></Style>"
        ).image
        assert image.anchor is None
        assert image.scale is None

    def test_hot_spot_overrides_anchor(self):
        """Test hotSpot units and origin."""
        image = style_of(
            "<Style><IconStyle>"
            "<Icon><href>http://maps.google.com/mapfiles/kml/shapes/star.png</href></Icon>"
            '<hotSpot x="10" y="4" xunits="insetPixels" yunits="pixels"/>'
            "</IconStyle></Style>"
        ).image
        assert image.anchor == (10.0, 4.0)
        assert image.anchor_x_units == IconAnchorUnits.PIXELS
        assert image.anchor_origin == IconOrigin.BOTTOM_RIGHT

    def test_sprite_offset_and_size(self):
        """Test the gx:x, gx:y, gx:w and gx:h sprite rectangle."""
        image = style_of(
            "<Style><IconStyle><Icon><href>sprites.png</href>"
            "<gx:x>32</gx:x><gx:y>64</gx:y><gx:w>32</gx:w><gx:h>16</gx:h>"
            "</Icon></IconStyle></Style>"
        ).image
        assert image.offset == (32.0, 64.0)
        assert image.size == (32.0, 16.0)

    def test_relative_href_resolved(self):
        """Test icon href resolution against the document base."""
        context = ParseContext(base_uri="http://example.com/maps/doc.kml")
        image = style_of(
            "<Style><IconStyle><Icon><href>icons/a.png</href></Icon></IconStyle></Style>",
            context,
        ).image
        assert image.src == "http://example.com/maps/icons/a.png"


class TestStyleMap:
    """Tests for StyleMap decoding."""

    def test_normal_pair_url(self):
        """Test that only the normal pair is used."""
        value = read_style_map_value(
            parse(
                "<StyleMap>"
                "<Pair><key>highlight</key><styleUrl>#pin</styleUrl></Pair>"
                "<Pair><key>normal</key><styleUrl>#road</styleUrl></Pair>"
                "</StyleMap>"
            ),
            ParseContext(),
        )
        assert value == "#road"

    def test_inline_style_beats_url(self):
        """Test a pair holding both a Style and a styleUrl."""
        value = read_style_map_value(
            parse(
                "<StyleMap><Pair><key>normal</key><styleUrl>#road</styleUrl>"
                "<Style><LineStyle><width>7</width></LineStyle></Style></Pair></StyleMap>"
            ),
            ParseContext(),
        )
        assert isinstance(value, list)
        assert value[0].stroke.width == 7.0

    def test_no_normal_pair(self):
        """Test a map without a normal pair."""
        value = read_style_map_value(
            parse("<StyleMap><Pair><key>highlight</key><styleUrl>#a</styleUrl></Pair></StyleMap>"),
            ParseContext(),
        )
        assert value is None


class TestSharedStyles:
    """Tests for the shared style registry."""

    RED = [Style(stroke=Stroke(color=(255, 0, 0, 1), width=2))]

    def test_shared_style_uri(self):
        """Test registry keys with and without a base URI."""
        assert shared_style_uri("pin", ParseContext()) == "#pin"
        assert (
            shared_style_uri("pin", ParseContext(base_uri="http://example.com/doc.kml"))
            == "http://example.com/doc.kml#pin"
        )
        assert (
            shared_style_uri(
                "pin", ParseContext(base_uri="about:blank", default_base_uri="http://x.org/a.kml")
            )
            == "http://x.org/a.kml#pin"
        )

    def test_register_shared_style(self):
        """Test that only styles with an id are registered."""
        context = ParseContext()
        register_shared_style(parse('<Style id="pin"/>'), None, context)
        register_shared_style(parse("<Style/>"), None, context)
        assert len(context.registry) == 1
        assert "#pin" in context.registry

    def test_lookup_retries_with_hash(self):
        """Test that 'pin' finds a style registered as '#pin'."""
        registry = SharedStyleRegistry()
        registry.register("#pin", self.RED)
        assert find_style("pin", DEFAULT_STYLES.style_array, registry) == self.RED
        assert find_style("#pin", DEFAULT_STYLES.style_array, registry) == self.RED

    def test_url_chain(self):
        """Test a style map URL pointing to a style."""
        registry = SharedStyleRegistry()
        registry.register("#road", self.RED)
        registry.register("#road-map", "#road")
        assert find_style("#road-map", DEFAULT_STYLES.style_array, registry) == self.RED

    def test_unresolved_url_uses_default(self):
        """Test an unknown URL."""
        registry = SharedStyleRegistry()
        assert find_style("#missing", DEFAULT_STYLES.style_array, registry) == [DEFAULT_STYLES.style]

    def test_reference_cycle_uses_default(self):
        """Test that a cycle terminates with the default style."""
        registry = SharedStyleRegistry()
        registry.register("#a", "#b")
        registry.register("#b", "#a")
        assert find_style("#a", DEFAULT_STYLES.style_array, registry) == [DEFAULT_STYLES.style]

    def test_none_and_inline_values(self):
        """Test missing and inline style values."""
        registry = SharedStyleRegistry()
        assert find_style(None, DEFAULT_STYLES.style_array, registry) == [DEFAULT_STYLES.style]
        assert find_style(self.RED, DEFAULT_STYLES.style_array, registry) == self.RED


class TestStyleFunctions:
    """Tests for placemark style functions."""

    RED = [Style(stroke=Stroke(color=(255, 0, 0, 1), width=2))]
    BLUE = [Style(stroke=Stroke(color=(0, 0, 255, 1), width=2))]

    def test_inline_beats_url(self):
        """Test style precedence."""
        context = ParseContext(show_point_names=False)
        context.registry.register("#blue", self.BLUE)
        style_function = create_feature_style_function(self.RED, "#blue", context)
        assert style_function(Feature(), 0) == self.RED

    def test_url_beats_default(self):
        """Test styleUrl resolution."""
        context = ParseContext(show_point_names=False)
        context.registry.register("#blue", self.BLUE)
        style_function = create_feature_style_function(None, "#blue", context)
        assert style_function(Feature(), 0) == self.BLUE

    def test_default_style(self):
        """Test a placemark without any style."""
        style_function = create_feature_style_function(None, None, ParseContext())
        assert style_function(Feature(), 0) == [DEFAULT_STYLES.style]

    def test_named_point_gets_label(self):
        """Test the synthesized name label for a point."""
        style_function = create_feature_style_function(None, None, ParseContext())
        feature = Feature(geometry=Point([0, 0, 0]), properties={"name": "Depot"})
        styles = style_function(feature, 0)
        assert len(styles) == 2
        assert styles[1].text.text == "Depot"

    def test_label_follows_current_name(self):
        """Test that the label reads the name at call time."""
        style_function = create_feature_style_function(None, None, ParseContext())
        feature = Feature(geometry=Point([0, 0, 0]), properties={"name": "Depot"})
        feature.properties["name"] = "Yard"
        assert style_function(feature, 0)[1].text.text == "Yard"

    def test_no_label_when_disabled(self):
        """Test show_point_names off."""
        style_function = create_feature_style_function(
            None, None, ParseContext(show_point_names=False)
        )
        feature = Feature(geometry=Point([0, 0, 0]), properties={"name": "Depot"})
        assert style_function(feature, 0) == [DEFAULT_STYLES.style]

    def test_no_label_for_lines_or_unnamed_points(self):
        """Test that only named points get a label."""
        style_function = create_feature_style_function(None, None, ParseContext())
        line = Feature(geometry=LineString([0, 0, 0, 1, 1, 1]), properties={"name": "Road"})
        unnamed = Feature(geometry=Point([0, 0, 0]), properties={"name": ""})
        assert len(style_function(line, 0)) == 1
        assert len(style_function(unnamed, 0)) == 1


class TestNameStyle:
    """Tests for name label styles."""

    def test_label_next_to_icon(self):
        """Test offsets from half the scaled icon size."""
        style = create_name_style(DEFAULT_STYLES.style, "Depot", DEFAULT_STYLES)
        assert style.text.text == "Depot"
        assert style.text.text_align == "left"
        assert style.text.offset_x == 16.0
        assert style.text.offset_y == -16.0
        assert style.text.font == "bold 16px Helvetica"

    def test_centered_label_without_icon(self):
        """Test a style without an image."""
        style = create_name_style(Style(), "Lot 1", DEFAULT_STYLES)
        assert style.text.text_align == "center"
        assert (style.text.offset_x, style.text.offset_y) == (0.0, 0.0)
        assert style.text.stroke == DEFAULT_STYLES.text_stroke

    def test_label_keeps_found_text_color(self):
        """Test that the found label color is kept and gaps are filled."""
        found = Style(text=Text(fill=Fill(color=(255, 255, 0, 1))))
        style = create_name_style(found, "Depot", DEFAULT_STYLES)
        assert style.text.fill.color == (255, 255, 0, 1)
        assert style.text.scale == 0.8
        assert style.text.stroke == DEFAULT_STYLES.text_stroke


class TestWriteStyle:
    """Tests for Style encoding."""

    @staticmethod
    def _write(style: Style) -> ET.Element:
        node = ET.Element(f"{{{KML_NS}}}Style")
        write_style(node, style, WriteContext())
        return node

    def test_sub_styles_in_schema_order(self):
        """Test element order and colors."""
        node = self._write(
            Style(
                fill=Fill(color=(0, 255, 0, 0.5)),
                stroke=Stroke(color=(255, 0, 0, 1), width=3),
                text=Text(fill=Fill(color=(255, 255, 0, 1))),
            )
        )
        assert [child.tag.split("}")[1] for child in node] == [
            "LabelStyle",
            "LineStyle",
            "PolyStyle",
        ]
        ns = {"k": KML_NS}
        assert node.find("k:LineStyle/k:color", ns).text == "ff0000ff"
        assert node.find("k:LineStyle/k:width", ns).text == "3"
        assert node.find("k:PolyStyle/k:color", ns).text == "8000ff00"
        assert node.find("k:LabelStyle/k:scale", ns) is None

    def test_icon_style(self):
        """Test scale, heading, Icon and hotSpot."""
        node = self._write(
            Style(
                image=Icon(
                    src="http://example.com/a.png",
                    anchor=(20.0, 2.0),
                    anchor_x_units=IconAnchorUnits.PIXELS,
                    anchor_y_units=IconAnchorUnits.PIXELS,
                    scale=0.5,
                    rotation=math.pi,
                )
            )
        )
        ns = {"k": KML_NS}
        icon_style = node.find("k:IconStyle", ns)
        assert [child.tag.split("}")[1] for child in icon_style] == [
            "scale",
            "heading",
            "Icon",
            "hotSpot",
        ]
        assert icon_style.find("k:scale", ns).text == "0.5"
        assert icon_style.find("k:heading", ns).text == "180"
        assert icon_style.find("k:Icon/k:href", ns).text == "http://example.com/a.png"
        hot_spot = icon_style.find("k:hotSpot", ns)
        assert hot_spot.attrib == {"x": "20", "y": "2", "xunits": "pixels", "yunits": "pixels"}

    def test_read_back(self):
        """Test that a written style decodes to the same sub-styles."""
        original = Style(
            fill=Fill(color=(0, 255, 0, 1)),
            stroke=Stroke(color=(255, 0, 0, 1), width=3),
            image=Icon(src="http://example.com/a.png"),
            text=Text(fill=Fill(color=(255, 255, 0, 1))),
        )
        decoded = read_style(self._write(original), ParseContext())[0]
        assert decoded.fill == original.fill
        assert decoded.stroke == original.stroke
        assert decoded.image.src == original.image.src
        assert decoded.text.fill == original.text.fill

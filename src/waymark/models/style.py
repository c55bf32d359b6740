"""
Style value objects.

A Style combines up to four independent sub-styles: fill, stroke, image
(an icon) and text. A missing sub-style means that aspect is not drawn.
All objects are frozen; use ``dataclasses.replace`` to derive variants.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# Colors are (red, green, blue, alpha) with channels 0-255 and alpha 0-1.
Color = Tuple[int, int, int, float]
Size = Tuple[float, float]


class IconAnchorUnits(str, Enum):
    """Units of an icon anchor component."""

    FRACTION = "fraction"
    PIXELS = "pixels"


class IconOrigin(str, Enum):
    """Corner an icon anchor or sprite offset is measured from."""

    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"


@dataclass(frozen=True)
class Fill:
    color: Optional[Color] = None


@dataclass(frozen=True)
class Stroke:
    color: Optional[Color] = None
    width: Optional[float] = None


@dataclass(frozen=True)
class Icon:
    """
    Icon image style.

    Attributes:
        src: Absolute image URI
        anchor: Anchor point, interpreted with the units and origin below
        anchor_x_units: Units of anchor[0]
        anchor_y_units: Units of anchor[1]
        anchor_origin: Corner the anchor is measured from
        size: Size in pixels of the sprite region to draw
        scale: Scale factor
        rotation: Rotation in radians
        offset: Sprite-sheet offset in pixels
        offset_origin: Corner the offset is measured from
    """

    src: Optional[str] = None
    anchor: Optional[Tuple[float, float]] = None
    anchor_x_units: IconAnchorUnits = IconAnchorUnits.FRACTION
    anchor_y_units: IconAnchorUnits = IconAnchorUnits.FRACTION
    anchor_origin: IconOrigin = IconOrigin.BOTTOM_LEFT
    size: Optional[Size] = None
    scale: Optional[float] = None
    rotation: Optional[float] = None
    offset: Optional[Tuple[float, float]] = None
    offset_origin: IconOrigin = IconOrigin.BOTTOM_LEFT


@dataclass(frozen=True)
class Text:
    """
    Text (label) style.

    Attributes:
        font: CSS font shorthand
        fill: Text fill
        stroke: Text halo
        scale: Scale factor
        text_align: Horizontal alignment
        offset_x: Horizontal pixel offset
        offset_y: Vertical pixel offset
        text: Literal label
    """

    font: Optional[str] = None
    fill: Optional[Fill] = None
    stroke: Optional[Stroke] = None
    scale: Optional[float] = None
    text_align: Optional[str] = None
    offset_x: float = 0.0
    offset_y: float = 0.0
    text: Optional[str] = None


@dataclass(frozen=True)
class Style:
    fill: Optional[Fill] = None
    stroke: Optional[Stroke] = None
    image: Optional[Icon] = None
    text: Optional[Text] = None
    z_index: Optional[int] = None


@dataclass(frozen=True)
class DefaultStyles:
    """
    The immutable set of fallback styles the codec decodes against.

    Built once by ``build_default_styles`` and shared by every codec that
    does not supply its own default style.
    """

    color: Color
    fill: Fill
    stroke: Stroke
    image_src: str
    image_anchor: Tuple[float, float]
    image_anchor_x_units: IconAnchorUnits
    image_anchor_y_units: IconAnchorUnits
    image_size: Size
    image_scale: float
    image: Icon
    text_stroke: Stroke
    text: Text
    style: Style

    @property
    def style_array(self) -> Tuple[Style, ...]:
        return (self.style,)


def build_default_styles() -> DefaultStyles:
    """
    Build the default style bundle, matching common map-viewer conventions:
    a white fill and 1px white stroke, a yellow pushpin icon at half scale,
    and bold 16px Helvetica labels with a dark halo.
    """
    color: Color = (255, 255, 255, 1)
    fill = Fill(color=color)
    stroke = Stroke(color=color, width=1)

    image_src = "https://maps.google.com/mapfiles/kml/pushpin/ylw-pushpin.png"
    image_anchor = (20.0, 2.0)
    image_size = (64.0, 64.0)
    image_scale = 0.5
    image = Icon(
        src=image_src,
        anchor=image_anchor,
        anchor_x_units=IconAnchorUnits.PIXELS,
        anchor_y_units=IconAnchorUnits.PIXELS,
        anchor_origin=IconOrigin.BOTTOM_LEFT,
        size=image_size,
        scale=image_scale,
        rotation=0.0,
    )

    text_stroke = Stroke(color=(51, 51, 51, 1), width=2)
    text = Text(font="bold 16px Helvetica", fill=fill, stroke=text_stroke, scale=0.8)

    style = Style(fill=fill, stroke=stroke, image=image, text=text, z_index=0)

    return DefaultStyles(
        color=color,
        fill=fill,
        stroke=stroke,
        image_src=image_src,
        image_anchor=image_anchor,
        image_anchor_x_units=IconAnchorUnits.PIXELS,
        image_anchor_y_units=IconAnchorUnits.PIXELS,
        image_size=image_size,
        image_scale=image_scale,
        image=image,
        text_stroke=text_stroke,
        text=text,
        style=style,
    )


DEFAULT_STYLES = build_default_styles()

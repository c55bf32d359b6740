"""
KML codec facade.

``KML`` holds the codec options and exposes the public read and write
operations. Each call builds its own parse context, so one instance can be
shared between threads.
"""

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Sequence, Union

from waymark.core.config import Settings, settings as default_settings
from waymark.core.errors import ConfigurationError, ParseError
from waymark.models.feature import Feature
from waymark.models.region import NetworkLink, Region
from waymark.models.style import DEFAULT_STYLES, DefaultStyles, Style
from waymark.utils.logging import log_performance

from .context import ParseContext, WriteContext
from .kml_parser import (
    read_feature_from_node,
    read_features_from_node,
    read_name_from_node,
    read_network_links_from_node,
    read_regions_from_node,
)
from .kml_writer import write_features, write_features_node

logger = logging.getLogger(__name__)

Source = Union[str, bytes, ET.ElementTree, ET.Element]


def _check_bool_option(name: str, value: Optional[bool], fallback: bool) -> bool:
    if value is None:
        return fallback
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"Option {name} must be a boolean, got {type(value).__name__}",
            config_key=name,
        )
    return value


def load_root(source: Source) -> ET.Element:
    """
    Get the root element of a source.

    Args:
        source: KML text, bytes, a parsed ElementTree or an Element

    Returns:
        The root element

    Raises:
        ParseError: If text or bytes are not well-formed XML
        TypeError: For any other kind of source
    """
    if isinstance(source, ET.ElementTree):
        return source.getroot()
    if isinstance(source, ET.Element):
        return source
    if isinstance(source, (str, bytes)):
        try:
            return ET.fromstring(source)
        except ET.ParseError as e:
            line_number = e.position[0] if e.position else None
            logger.error(f"Failed to parse KML: {e}")
            raise ParseError(
                f"Malformed XML: {e}",
                line_number=line_number,
            ) from e
    raise TypeError(f"Unsupported KML source type: {type(source).__name__}")


class KML:
    """
    Read and write KML features.

    Handles:
    - Document, Folder and kml containers, nested to any depth
    - Point, LineString, LinearRing, Polygon, MultiGeometry and gx tracks
    - Inline styles, shared styles and style maps
    - Extended data, regions and network links
    """

    def __init__(
        self,
        extract_styles: Optional[bool] = None,
        show_point_names: Optional[bool] = None,
        default_style: Optional[Sequence[Style]] = None,
        write_styles: Optional[bool] = None,
        default_base_uri: Optional[str] = None,
        settings: Optional[Settings] = None,
        defaults: Optional[DefaultStyles] = None,
    ) -> None:
        """
        Initialize the codec.

        Options left as None take their value from settings.

        Args:
            extract_styles: Decode styles and attach style functions to features
            show_point_names: Append a name label style to named point features
            default_style: Styles used for placemarks without a style
            write_styles: Write each feature's first resolved style
            default_base_uri: Base for relative references when a call gives none
            settings: Settings to read defaults from (module settings if omitted)
            defaults: Fallback sub-styles (the built-in bundle if omitted)

        Raises:
            ConfigurationError: If an option has the wrong type
        """
        config = settings or default_settings
        self.extract_styles = _check_bool_option(
            "extract_styles", extract_styles, config.extract_styles
        )
        self.show_point_names = _check_bool_option(
            "show_point_names", show_point_names, config.show_point_names
        )
        self.write_styles = _check_bool_option(
            "write_styles", write_styles, config.write_styles
        )
        self.default_base_uri = (
            default_base_uri if default_base_uri is not None else config.default_base_uri
        )
        self.defaults = defaults or DEFAULT_STYLES

        if default_style is None:
            self.default_style = self.defaults.style_array
        else:
            if isinstance(default_style, Style) or not all(
                isinstance(style, Style) for style in default_style
            ):
                raise ConfigurationError(
                    "Option default_style must be a sequence of Style objects",
                    config_key="default_style",
                )
            self.default_style = tuple(default_style)

    def _parse_context(self, base_uri: Optional[str]) -> ParseContext:
        return ParseContext(
            base_uri=base_uri,
            default_base_uri=self.default_base_uri,
            extract_styles=self.extract_styles,
            show_point_names=self.show_point_names,
            default_style=self.default_style,
            defaults=self.defaults,
        )

    def read_feature(self, source: Source, base_uri: Optional[str] = None) -> Optional[Feature]:
        """
        Read a single feature.

        Args:
            source: A Placemark, or a document whose first feature is wanted
            base_uri: Base URI of the document

        Returns:
            The feature, or None if there is none
        """
        return read_feature_from_node(load_root(source), self._parse_context(base_uri))

    @log_performance()
    def read_features(self, source: Source, base_uri: Optional[str] = None) -> List[Feature]:
        """
        Read all features of a document.

        Args:
            source: A kml, Document, Folder or Placemark element, or its text
            base_uri: Base URI of the document, for styleUrl and href resolution

        Returns:
            Features in document order
        """
        features = read_features_from_node(load_root(source), self._parse_context(base_uri))
        logger.debug(f"Decoded {len(features)} features")
        return features

    def read_name(self, source: Source) -> Optional[str]:
        """Read the first name of the document, searching depth first."""
        return read_name_from_node(load_root(source))

    def read_network_links(
        self, source: Source, base_uri: Optional[str] = None
    ) -> List[NetworkLink]:
        """Read every NetworkLink of the document without following it."""
        return read_network_links_from_node(load_root(source), self._parse_context(base_uri))

    def read_regions(self, source: Source) -> List[Region]:
        """Read every Region of the document."""
        return read_regions_from_node(load_root(source), self._parse_context(None))

    def write_features_node(self, features: Sequence[Feature]) -> ET.Element:
        """Encode features to a ``kml`` element."""
        return write_features_node(features, WriteContext(write_styles=self.write_styles))

    @log_performance()
    def write_features(self, features: Sequence[Feature]) -> str:
        """Encode features to KML text."""
        return write_features(features, WriteContext(write_styles=self.write_styles))


def parse_kml_string(kml_content: Union[str, bytes], base_uri: Optional[str] = None) -> List[Feature]:
    """
    Convenience function to read features from KML content.

    Args:
        kml_content: KML text or bytes
        base_uri: Base URI of the document

    Returns:
        Features in document order
    """
    return KML().read_features(kml_content, base_uri=base_uri)


def write_kml_string(features: Sequence[Feature]) -> str:
    """
    Convenience function to encode features to KML text.

    Args:
        features: Features to write

    Returns:
        KML text without an XML declaration
    """
    return KML().write_features(features)

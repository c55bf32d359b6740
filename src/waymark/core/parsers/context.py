"""
Per-call state shared by the readers of one decode call.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from waymark.models.style import DEFAULT_STYLES, DefaultStyles, Style

logger = logging.getLogger(__name__)

# A shared style is either a resolved style list or a URL naming another one.
SharedStyle = Union[List[Style], str]


class SharedStyleRegistry:
    """
    Shared styles of one decode call, keyed by absolute ``base#id`` URI.

    Entries are written as containers are traversed and read when a
    placemark references a style by URL.
    """

    def __init__(self) -> None:
        self._styles: Dict[str, SharedStyle] = {}

    def register(self, uri: str, value: SharedStyle) -> None:
        self._styles[uri] = value

    def __contains__(self, uri: object) -> bool:
        return uri in self._styles

    def __len__(self) -> int:
        return len(self._styles)

    def get(self, uri: str) -> Optional[SharedStyle]:
        """Look a URI up, retrying with a leading '#' when it has none."""
        if uri in self._styles:
            return self._styles[uri]
        if not uri.startswith("#") and f"#{uri}" in self._styles:
            return self._styles[f"#{uri}"]
        return None

    def resolve(
        self, style_value: Optional[SharedStyle], default_style: Sequence[Style]
    ) -> List[Style]:
        """
        Follow URL indirections until a style list is reached.

        Args:
            style_value: A style list, or a URL into this registry
            default_style: Returned for missing values, unknown URLs and cycles

        Returns:
            The resolved style list
        """
        visited = set()
        while isinstance(style_value, str):
            if style_value in visited:
                logger.warning(f"Style reference cycle through {style_value}")
                return list(default_style)
            visited.add(style_value)
            target = self.get(style_value)
            if target is None:
                logger.debug(f"Unresolved style reference {style_value}")
            style_value = target
        if style_value is None:
            return list(default_style)
        return list(style_value)


@dataclass
class ParseContext:
    """
    Options and shared state of one decode call.

    Attributes:
        base_uri: Base URI of the document being read
        default_base_uri: Used when base_uri is missing or ``about:blank``
        extract_styles: Decode styles and attach style functions
        show_point_names: Add a name label style to named points
        default_style: Style list used when a placemark has none
        defaults: Fallback sub-styles
        registry: Shared styles seen so far
    """

    base_uri: Optional[str] = None
    default_base_uri: Optional[str] = None
    extract_styles: bool = True
    show_point_names: bool = True
    default_style: Sequence[Style] = DEFAULT_STYLES.style_array
    defaults: DefaultStyles = DEFAULT_STYLES
    registry: SharedStyleRegistry = field(default_factory=SharedStyleRegistry)

    @property
    def effective_base_uri(self) -> Optional[str]:
        """The base URI relative references and style ids resolve against."""
        if not self.base_uri or self.base_uri == "about:blank":
            return self.default_base_uri or None
        return self.base_uri


@dataclass
class WriteContext:
    """Options of one encode call."""

    write_styles: bool = True

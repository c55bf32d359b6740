"""
Feature model returned by the decoder and accepted by the encoder.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .geometry import Geometry
from .style import Style

# (feature, resolution) -> ordered styles to draw
StyleFunction = Callable[["Feature", float], List[Style]]


@dataclass
class Feature:
    """
    A placemark: optional id, optional geometry, an open property mapping
    and an optional style function.

    Attributes:
        id: Opaque identifier from the placemark's id attribute
        geometry: Decoded geometry, or None
        properties: Scalar metadata and extended data keyed by name
        style_function: Resolves the styles to draw at a given resolution
    """

    id: Optional[str] = None
    geometry: Optional[Geometry] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    style_function: Optional[StyleFunction] = None

    def get(self, name: str, default: Any = None) -> Any:
        """Get a property value."""
        return self.properties.get(name, default)

    def get_styles(self, resolution: float = 0) -> Optional[List[Style]]:
        """Evaluate the style function, or return None when there is none."""
        if self.style_function is None:
            return None
        return self.style_function(self, resolution)

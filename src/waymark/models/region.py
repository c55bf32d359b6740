"""
Pydantic models for region and network-link descriptors.

These are read from a document on request and are not part of a
feature's primary fields.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class LevelOfDetail(BaseModel):
    """
    Level-of-detail limits of a region.

    Attributes:
        min_lod_pixels: Minimum projected size in pixels for the region to be active
        max_lod_pixels: Maximum projected size in pixels (-1 means unbounded)
        min_fade_extent: Fade-in distance in pixels
        max_fade_extent: Fade-out distance in pixels
    """

    min_lod_pixels: Optional[float] = Field(None, description="Minimum LOD size in pixels")
    max_lod_pixels: Optional[float] = Field(None, description="Maximum LOD size in pixels")
    min_fade_extent: Optional[float] = Field(None, description="Fade-in extent in pixels")
    max_fade_extent: Optional[float] = Field(None, description="Fade-out extent in pixels")


class Region(BaseModel):
    """
    A bounding box with altitude limits and level of detail.

    Attributes:
        extent: (west, south, east, north); components missing in the source are None
        altitude_mode: Altitude mode tag of the box
        min_altitude: Minimum altitude in meters
        max_altitude: Maximum altitude in meters
        lod: Level-of-detail descriptor, when present
    """

    extent: Optional[
        Tuple[Optional[float], Optional[float], Optional[float], Optional[float]]
    ] = Field(None, description="(west, south, east, north)")
    altitude_mode: Optional[str] = Field(None, description="Altitude mode")
    min_altitude: Optional[float] = Field(None, description="Minimum altitude")
    max_altitude: Optional[float] = Field(None, description="Maximum altitude")
    lod: Optional[LevelOfDetail] = Field(None, description="Level of detail")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "extent": (-122.1, 37.4, -122.0, 37.5),
                "altitude_mode": "clampToGround",
                "min_altitude": 0,
                "max_altitude": 0,
                "lod": {"min_lod_pixels": 128, "max_lod_pixels": -1},
            }
        }
    )


class NetworkLink(BaseModel):
    """
    A link to another document, captured without following it.

    Attributes:
        href: Absolute link target
        name: Display name
        description: Description
        address: Street address
        phone_number: Phone number
        open: Whether the link is expanded in a tree view
        visibility: Whether the linked content is visible
        region: Region limiting when the link is active
        properties: Extended data entries
    """

    href: Optional[str] = Field(None, description="Link target")
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    open: Optional[bool] = None
    visibility: Optional[bool] = None
    region: Optional[Region] = None
    properties: Dict[str, Any] = Field(
        default_factory=dict, description="Extended data entries"
    )

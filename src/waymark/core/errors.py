"""
Custom exception hierarchy for Waymark.

Malformed input is recovered locally by the codec and never raises. The
exceptions below cover the remaining cases: unreadable source documents,
geometries constructed in an invalid state, internal invariant violations,
and bad configuration.
"""

from typing import Any, Dict, List, Optional


class WaymarkException(Exception):
    """
    Base exception for all Waymark-specific errors.

    Attributes:
        error_code: String identifier for the error type
        message: User-friendly error message
        details: Technical details for logging/debugging
        suggestions: Optional list of resolution suggestions
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize WaymarkException.

        Args:
            message: User-friendly error message
            error_code: String identifier for the error type
            details: Technical details for logging
            suggestions: List of suggestions for resolution
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}')"
        )


class ParseError(WaymarkException):
    """
    Raised when a source document cannot be read as XML at all.

    Malformed sub-trees inside a well-formed document are never reported
    this way; they degrade to missing values instead.
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ParseError.

        Args:
            message: User-friendly error message
            line_number: Line number where parsing failed (if known)
            details: Technical details about the parsing failure
            suggestions: List of suggestions for fixing the document
        """
        error_details = details or {}
        if line_number:
            error_details["line_number"] = line_number

        default_suggestions = [
            "Check for XML syntax errors",
            "Verify the document is KML and not KMZ (zipped) data",
        ]

        super().__init__(
            message=message,
            error_code="PARSE_ERROR",
            details=error_details,
            suggestions=suggestions or default_suggestions,
        )


class GeometryError(WaymarkException):
    """
    Raised when a geometry is constructed in an invalid state.

    Examples are a flat coordinate sequence whose length is not a multiple
    of the layout stride, or polygon ring ends that are not strictly
    increasing.
    """

    def __init__(
        self,
        message: str,
        geometry_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize GeometryError.

        Args:
            message: User-friendly error message
            geometry_type: Type of geometry that caused the error
            details: Technical details about the geometry error
            suggestions: List of suggestions for fixing the geometry
        """
        error_details = details or {}
        if geometry_type:
            error_details["geometry_type"] = geometry_type

        default_suggestions = [
            "Check that the coordinate count matches the layout",
            "Verify polygon ring ends are increasing and end at the last coordinate",
        ]

        super().__init__(
            message=message,
            error_code="GEOMETRY_ERROR",
            details=error_details,
            suggestions=suggestions or default_suggestions,
        )


class InvariantError(WaymarkException):
    """
    Raised when the codec meets a value outside a closed set it switches on.

    This signals a programming error (for example a geometry type the codec
    does not know) rather than malformed input.
    """

    def __init__(
        self,
        message: str,
        value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize InvariantError.

        Args:
            message: Description of the violated invariant
            value: The offending value
            details: Technical details
        """
        error_details = details or {}
        if value is not None:
            error_details["value"] = repr(value)

        super().__init__(
            message=message,
            error_code="INVARIANT_VIOLATION",
            details=error_details,
            suggestions=["Report this as a bug"],
        )


class ConfigurationError(WaymarkException):
    """
    Raised when codec configuration is invalid.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: User-friendly error message
            config_key: Configuration key that is invalid
            details: Technical details about the configuration error
            suggestions: List of suggestions for resolution
        """
        error_details = details or {}
        if config_key:
            error_details["config_key"] = config_key

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=error_details,
            suggestions=suggestions or ["Check WAYMARK_* environment variables"],
        )

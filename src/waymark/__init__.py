"""
Waymark - a bidirectional KML codec.

This package reads KML documents into features with geometries, properties
and resolved styles, and writes features back out as KML.
"""

__version__ = "0.1.0"

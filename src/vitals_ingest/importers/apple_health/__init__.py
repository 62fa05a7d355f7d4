"""Apple Health export.xml parsing."""

from .reconciler import reconcile_workout
from .xml_parser import AppleHealthXMLParser, ParserState, parse_apple_health_xml

__all__ = [
    "AppleHealthXMLParser",
    "ParserState",
    "parse_apple_health_xml",
    "reconcile_workout",
]

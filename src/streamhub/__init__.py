"""Streamhub - resilient streaming chat session core."""

from .locations import Extraction, LocationExtractor
from .session import ChatSession
from .types import ChatTurn, ConnectionState, GeoPoint, Marker, ParsedLocation, Sender

__version__ = "0.1.0"

__all__ = [
    "ChatSession",
    "ChatTurn",
    "ConnectionState",
    "Extraction",
    "GeoPoint",
    "LocationExtractor",
    "Marker",
    "ParsedLocation",
    "Sender",
]

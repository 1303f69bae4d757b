"""Extract places from assistant replies.

Replies are model-generated and only sometimes valid JSON, so extraction
degrades through decreasingly structured readings of the same text:

1. a fenced or bare JSON object with ``spoken_response`` and ``map_data``;
2. an ordered list of text patterns, where every match of one pattern is kept
   before the next pattern runs and later patterns never repeat an address.

Nothing found is a normal outcome, not an error.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, field_validator

from .errors import StructuredParseError
from .types import ParsedLocation

UNKNOWN_NAME = "Unknown Name"
NO_ADDRESS = "No address provided"

ExtractionSource = Literal["structured", "text", "none"]


class MapEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = UNKNOWN_NAME
    address: str = NO_ADDRESS
    rating: float = 0.0

    @field_validator("name", mode="before")
    @classmethod
    def _name_or_default(cls, value: Any) -> str:
        return value if isinstance(value, str) else UNKNOWN_NAME

    @field_validator("address", mode="before")
    @classmethod
    def _address_or_default(cls, value: Any) -> str:
        return value if isinstance(value, str) else NO_ADDRESS

    @field_validator("rating", mode="before")
    @classmethod
    def _numeric_rating(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 0.0
        return max(float(value), 0.0)

    def to_location(self) -> ParsedLocation:
        return ParsedLocation(name=self.name, address=self.address, rating=self.rating)


class StructuredReply(BaseModel):
    model_config = ConfigDict(extra="ignore")

    spoken_response: StrictStr
    map_data: list[MapEntry]


@dataclass(frozen=True)
class Extraction:
    visible_text: str
    locations: list[ParsedLocation] = field(default_factory=list)
    source: ExtractionSource = "none"


def strip_code_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()


def parse_structured(text: str) -> StructuredReply:
    sanitized = strip_code_fences(text)
    if not sanitized.startswith("{"):
        raise StructuredParseError("reply is not a json object")
    try:
        return StructuredReply.model_validate_json(sanitized)
    except ValidationError as exc:
        raise StructuredParseError(f"not a structured location reply: {exc.error_count()} errors") from exc


def parse_rating(raw: str | None) -> float:
    if not raw:
        return 0.0
    try:
        return max(float(raw.rstrip(".")), 0.0)
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class LocationPattern:
    """One text shape a reply may describe a place in."""

    name: str
    regex: re.Pattern[str]
    build: Callable[[re.Match[str]], ParsedLocation]

    def find(self, text: str) -> Iterable[ParsedLocation]:
        for match in self.regex.finditer(text):
            yield self.build(match)


BOLD_NAME = LocationPattern(
    name="bold_name",
    regex=re.compile(r"\*\*(.*?):\*\* Located at (.*?)\. It has a rating of ([\d.]+?) stars", re.MULTILINE),
    build=lambda m: ParsedLocation(
        name=m.group(1).strip(),
        address=m.group(2).strip(),
        rating=parse_rating(m.group(3)),
    ),
)

CONVERSATIONAL = LocationPattern(
    name="conversational",
    regex=re.compile(r"([Tt]he closest seems to be|Here is|Another option is) (.*?) at (.*?)\.", re.MULTILINE),
    build=lambda m: ParsedLocation(name=m.group(2).strip(), address=m.group(3).strip()),
)

BULLETED = LocationPattern(
    name="bulleted",
    regex=re.compile(r"^\s*\*\s*(.*?):\s*(.*?)\.\s*Rating:\s*([\d.]+)", re.MULTILINE),
    build=lambda m: ParsedLocation(
        name=m.group(1).strip(),
        address=m.group(2).strip(),
        rating=parse_rating(m.group(3)),
    ),
)

DEFAULT_PATTERNS: tuple[LocationPattern, ...] = (BOLD_NAME, CONVERSATIONAL, BULLETED)


def dedupe_by_address(locations: Iterable[ParsedLocation]) -> list[ParsedLocation]:
    seen: set[str] = set()
    unique: list[ParsedLocation] = []
    for location in locations:
        key = location.address.strip()
        if key in seen:
            continue
        seen.add(key)
        unique.append(location)
    return unique


class LocationExtractor:
    """Structured parse first, then the text patterns in priority order."""

    def __init__(self, patterns: Sequence[LocationPattern] = DEFAULT_PATTERNS) -> None:
        self.patterns = tuple(patterns)

    def extract(self, text: str) -> Extraction:
        try:
            reply = parse_structured(text)
        except StructuredParseError as exc:
            logger.debug("locations.structured.skip reason={}", exc)
        else:
            locations = dedupe_by_address(entry.to_location() for entry in reply.map_data)
            logger.info("locations.structured count={}", len(locations))
            return Extraction(visible_text=reply.spoken_response, locations=locations, source="structured")

        locations = self.match_patterns(text)
        if locations:
            logger.info("locations.text count={}", len(locations))
            return Extraction(visible_text=text, locations=locations, source="text")
        return Extraction(visible_text=text)

    def match_patterns(self, text: str) -> list[ParsedLocation]:
        found: list[ParsedLocation] = []
        for pattern in self.patterns:
            found.extend(pattern.find(text))
        return dedupe_by_address(found)

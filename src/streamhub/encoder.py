"""Serialize user messages into outbound wire frames."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from .types import GeoPoint, OutboundPayload


def exclude_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


class OutboundEncoder:
    """Build a payload per send, attaching the user position only when known."""

    def build(self, text: str, position: GeoPoint | None = None) -> OutboundPayload:
        if position is None:
            return OutboundPayload(data=text)
        return OutboundPayload(data=text, lat=position.latitude, lon=position.longitude)

    def encode(self, payload: OutboundPayload) -> str:
        return json.dumps(self.to_wire(payload), ensure_ascii=False)

    @staticmethod
    def to_wire(payload: OutboundPayload) -> dict[str, Any]:
        body = exclude_none(asdict(payload))
        return {"mime_type": body.pop("mime_type"), **body}

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class BusEnvelope(BaseModel):
    """What travels over the Pub/Sub channel.

    ``origin`` is the publishing instance's id; UUIDs and datetimes in
    ``data`` are serialized as strings.
    """

    event: str
    origin: str | None = None
    data: dict[str, Any]


def serialize_event(event_type: str, payload: dict[str, Any], origin: str) -> str:
    return BusEnvelope(event=event_type, origin=origin, data=payload).model_dump_json()


def deserialize_event(raw: str | bytes) -> BusEnvelope:
    return BusEnvelope.model_validate_json(raw)

"""Outbox event model and payload serialization."""

import json
import math
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Matches the varchar(100) topic column
MAX_TOPIC_LENGTH = 100


class OutboxEvent(BaseModel):
    """Immutable record of something that happened, awaiting delivery.

    Events are created by the store on insert and only ever read back by the
    worker. They are:
    - Immutable (frozen after creation)
    - Ordered (``id`` is assigned monotonically by the store)
    - Opaque (``payload`` is never interpreted by the store or the worker)

    Attributes:
        id: Positive integer assigned by the event store.
        topic: Non-empty dotted event kind, e.g. ``enrollment.created``.
        payload: JSON document supplied by the publisher.
        created_at: UTC insertion time, for ordering and diagnostics.
        processed: True once the batch that delivered the event committed.
        processed_at: When ``processed`` became True.
    """

    id: int = Field(gt=0)
    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processed: bool = False
    processed_at: datetime | None = None

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        """Ensure topic is non-empty after whitespace stripping."""
        v = v.strip()
        if not v:
            raise ValueError("topic must not be empty")
        if len(v) > MAX_TOPIC_LENGTH:
            raise ValueError(f"topic must be at most {MAX_TOPIC_LENGTH} characters, got {len(v)}")
        return v

    @field_validator("created_at", "processed_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps (SQLite, Redis) as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


def _to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_jsonable(v) for v in value]
    # Anything else cannot round-trip through JSON
    return None


def serialize_payload(payload: Mapping[str, Any]) -> str:
    """Serialize a payload mapping to the JSON text stored in the outbox.

    Values that cannot survive a JSON round-trip are nulled rather than
    rejected. Dates become ISO-8601 strings.

    Raises:
        TypeError: If payload is not a mapping.
    """
    if not isinstance(payload, Mapping):
        raise TypeError(f"payload must be a mapping, got {type(payload).__name__}")
    return json.dumps(_to_jsonable(payload), allow_nan=False)


def deserialize_payload(text: str | None) -> dict[str, Any]:
    """Parse stored payload text back into a dict (empty for missing/non-object data)."""
    if not text:
        return {}
    data = json.loads(text)
    return data if isinstance(data, dict) else {"value": data}

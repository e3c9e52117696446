"""Tests for the OutboxEvent model and payload serialization."""

import json
import math
from datetime import UTC, date, datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from pydantic import ValidationError

from learnlite_notifications.core.event import (
    MAX_TOPIC_LENGTH,
    OutboxEvent,
    deserialize_payload,
    serialize_payload,
)

valid_topic = st.from_regex(r"[a-z]+(\.[a-z_]+){0,3}", fullmatch=True).filter(
    lambda t: len(t) <= MAX_TOPIC_LENGTH
)
json_payload = st.dictionaries(
    st.text(max_size=10),
    st.none() | st.booleans() | st.integers() | st.text(max_size=20),
    max_size=8,
)


@given(topic=valid_topic, payload=json_payload)
@settings(max_examples=100)
def test_payload_survives_store_round_trip(topic: str, payload: dict):
    """JSON-native payloads come back unchanged after serialize/deserialize."""
    text = serialize_payload(payload)
    event = OutboxEvent(id=1, topic=topic, payload=deserialize_payload(text))

    assert event.payload == payload
    assert event.topic == topic


@given(whitespace=st.sampled_from(["", " ", "\t", "\n", "  \t\n"]))
def test_blank_topic_rejected(whitespace: str):
    with pytest.raises(ValidationError) as exc_info:
        OutboxEvent(id=1, topic=whitespace)
    assert "topic must not be empty" in str(exc_info.value)


class TestOutboxEvent:
    def test_defaults(self):
        event = OutboxEvent(id=7, topic="enrollment.created")

        assert event.payload == {}
        assert event.processed is False
        assert event.processed_at is None
        assert event.created_at.tzinfo is not None

    def test_topic_is_stripped(self):
        assert OutboxEvent(id=1, topic="  certificate.issued ").topic == "certificate.issued"

    def test_topic_length_limit(self):
        OutboxEvent(id=1, topic="t" * MAX_TOPIC_LENGTH)
        with pytest.raises(ValidationError):
            OutboxEvent(id=1, topic="t" * (MAX_TOPIC_LENGTH + 1))

    @pytest.mark.parametrize("bad_id", [0, -1])
    def test_id_must_be_positive(self, bad_id):
        with pytest.raises(ValidationError):
            OutboxEvent(id=bad_id, topic="x")

    def test_frozen(self):
        event = OutboxEvent(id=1, topic="x")
        with pytest.raises(ValidationError):
            event.processed = True

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            OutboxEvent(id=1, topic="x", attempts=3)

    def test_naive_timestamps_become_utc(self):
        naive = datetime(2024, 5, 1, 12, 30)
        event = OutboxEvent(id=1, topic="x", created_at=naive, processed_at=naive)

        assert event.created_at == naive.replace(tzinfo=UTC)
        assert event.processed_at.tzinfo is UTC


class TestSerializePayload:
    def test_camel_case_keys_preserved(self):
        text = serialize_payload({"enrollmentId": 1, "userId": 2, "courseId": 3})
        assert json.loads(text) == {"enrollmentId": 1, "userId": 2, "courseId": 3}

    def test_dates_become_iso_strings(self):
        stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        data = json.loads(serialize_payload({"at": stamp, "day": date(2024, 1, 2)}))

        assert data == {"at": stamp.isoformat(), "day": "2024-01-02"}

    def test_unrepresentable_values_become_null(self):
        data = json.loads(
            serialize_payload(
                {
                    "nan": math.nan,
                    "inf": math.inf,
                    "obj": object(),
                    "nested": {"fn": print, "ok": 1},
                }
            )
        )

        assert data == {"nan": None, "inf": None, "obj": None, "nested": {"fn": None, "ok": 1}}

    def test_collections_become_lists(self):
        data = json.loads(serialize_payload({"tags": ("a", "b"), "ids": {5}}))
        assert data == {"tags": ["a", "b"], "ids": [5]}

    def test_non_string_keys_are_stringified(self):
        assert json.loads(serialize_payload({1: "one"})) == {"1": "one"}

    @pytest.mark.parametrize("payload", [None, [1, 2], "text", 42])
    def test_non_mapping_rejected(self, payload):
        with pytest.raises(TypeError):
            serialize_payload(payload)


class TestDeserializePayload:
    @pytest.mark.parametrize("text", ["", None])
    def test_empty_text(self, text):
        assert deserialize_payload(text) == {}

    def test_non_object_json_is_wrapped(self):
        assert deserialize_payload("[1, 2]") == {"value": [1, 2]}

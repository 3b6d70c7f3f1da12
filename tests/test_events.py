"""Tests for event decoding."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from martianpay.errors import DecodeError
from martianpay.events import Event, EventType, decode_event


def envelope(**overrides) -> bytes:
    event = {
        "id": "evt_1",
        "object": "event",
        "api_version": "2024-01-01",
        "created": 1700000000,
        "type": "refund.succeeded",
        "livemode": False,
        "pending_webhooks": 1,
        "data": {"object": {"id": "re_1", "status": "succeeded"}},
    }
    event.update(overrides)
    return json.dumps(event).encode()


class TestDecodeEvent:
    """Test decoding of well-formed events."""

    def test_fields(self):
        event = decode_event(envelope())

        assert event.id == "evt_1"
        assert event.object == "event"
        assert event.api_version == "2024-01-01"
        assert event.created == 1700000000
        assert event.type == "refund.succeeded"
        assert event.livemode is False
        assert event.pending_webhooks == 1
        assert event.event_type is EventType.REFUND_SUCCEEDED

    def test_object_in_both_forms(self):
        event = decode_event(envelope())

        assert event.data.object == {"id": "re_1", "status": "succeeded"}
        assert json.loads(event.data.raw) == event.data.object

    def test_raw_bytes_are_exact(self):
        payload = (
            b'{"type":"refund.created","object":"event",'
            b'"data": {"object" : { "id" : "re_1",\n "amount": 1.50 } } }'
        )
        event = decode_event(payload)

        assert event.data.raw == b'{ "id" : "re_1",\n "amount": 1.50 }'

    def test_raw_bytes_keep_non_ascii_and_escapes(self):
        payload = '{"type":"x.y","data":{"object":{"name":"Zoë","alias":"Zo\\u00eb"}}}'.encode()
        event = decode_event(payload)

        assert event.data.raw == '{"name":"Zoë","alias":"Zo\\u00eb"}'.encode()
        assert event.data.object == {"name": "Zoë", "alias": "Zoë"}

    def test_previous_attributes(self):
        payload = envelope(
            type="payout.updated",
            data={"object": {"id": "po_1"}, "previous_attributes": {"status": "created"}},
        )
        event = decode_event(payload)

        assert event.data.previous_attributes == {"status": "created"}
        assert event.is_update

    def test_defaults_for_missing_metadata(self):
        event = decode_event(b'{"type":"payroll.created","data":{"object":{}}}')

        assert event.id == ""
        assert event.object == "event"
        assert event.created == 0
        assert event.data.previous_attributes is None

    def test_unknown_type(self):
        event = decode_event(envelope(type="something.new"))

        assert event.type == "something.new"
        assert event.event_type is None

    def test_extra_fields_ignored(self):
        event = decode_event(envelope(request={"id": "req_1"}))
        assert event.id == "evt_1"

    def test_event_is_immutable(self):
        event = decode_event(envelope())
        with pytest.raises(ValidationError):
            event.type = "refund.failed"

    def test_raw_hidden_from_repr(self):
        event = decode_event(envelope())
        assert "raw=" not in repr(event.data)


class TestDecodeErrors:
    """Test rejection of malformed bodies."""

    @pytest.mark.parametrize(
        "payload",
        [
            b"",
            b"not json",
            b"[]",
            b'"event"',
            b"\xff\xfe",
            b'{"type":"a.b","data":{"object":{}}',
            b'{"type":"a.b","data":{"object":{}}} trailing',
            b'{"type":"a.b" "data":{"object":{}}}',
        ],
    )
    def test_not_an_event_object(self, payload):
        with pytest.raises(DecodeError):
            decode_event(payload)

    def test_missing_data(self):
        with pytest.raises(DecodeError):
            decode_event(b'{"type":"a.b"}')

    @pytest.mark.parametrize("data", [None, [], "x", {}, {"object": [1]}, {"object": None}])
    def test_data_without_object(self, data):
        with pytest.raises(DecodeError):
            decode_event(envelope(data=data))

    def test_missing_type(self):
        with pytest.raises(DecodeError):
            decode_event(b'{"data":{"object":{}}}')

    def test_empty_type(self):
        with pytest.raises(DecodeError):
            decode_event(envelope(type=""))

    def test_wrong_object_kind(self):
        with pytest.raises(DecodeError):
            decode_event(envelope(object="payment_intent"))

    def test_negative_created(self):
        with pytest.raises(DecodeError):
            decode_event(envelope(created=-1))

    @pytest.mark.parametrize(
        "payload",
        [
            b'{"type":"a.b","data":{"object":{"a":' + b"[" * 200000 + b"]" * 200000 + b"}}}",
            b'{"type":"a.b","data":{"object":{},"extra":' + b"[" * 200000 + b"]" * 200000 + b"}}",
            b'{"type":"a.b","data":' + b"[" * 200000 + b"]" * 200000 + b"}",
        ],
    )
    def test_nesting_too_deep(self, payload):
        with pytest.raises(DecodeError):
            decode_event(payload)

    def test_error_is_chained(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_event(b"{")
        assert exc_info.value.__cause__ is not None


class TestEventModel:
    """Test the Event model directly."""

    def test_validate(self):
        event = Event.model_validate(
            {"type": "refund.created", "data": {"object": {}, "raw": b"{}"}}
        )
        assert event.data.raw == b"{}"

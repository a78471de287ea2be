"""
Tests for callorders/services/event_normalizer.py - payload field resolution.
"""
import pytest

from callorders.services.errors import MissingIdentifierError
from callorders.services.event_normalizer import (
    EVENT_STATUS_TABLE,
    NormalizedEvent,
    canonical_event_name,
    extract_order_payload,
    extract_provider_call_id,
    extract_status_hint,
    first_present,
    normalize_event,
    CALL_ID_ACCESSORS,
)


# ---------------------------------------------------------------------------
# Call id resolution
# ---------------------------------------------------------------------------


class TestProviderCallId:
    @pytest.mark.parametrize(
        "payload",
        [
            {"call": {"id": "c1"}},
            {"callId": "c1"},
            {"id": "c1"},
            {"data": {"call": {"id": "c1"}}},
            {"data": {"callId": "c1"}},
            {"message": {"call": {"id": "c1"}}},
        ],
    )
    def test_each_location_is_recognised(self, payload):
        """Every supported call-id location is found."""
        assert extract_provider_call_id(payload) == "c1"

    def test_precedence_call_id_over_top_level_id(self):
        """call.id is preferred over a top-level id."""
        payload = {"id": "evt_1", "call": {"id": "c1"}, "callId": "c2"}
        assert extract_provider_call_id(payload) == "c1"

    def test_callid_beats_id(self):
        assert extract_provider_call_id({"id": "evt_1", "callId": "c2"}) == "c2"

    def test_null_value_falls_through(self):
        """A null at an earlier location falls through to the next one."""
        payload = {"call": {"id": None}, "callId": "c2"}
        assert extract_provider_call_id(payload) == "c2"

    def test_non_dict_intermediate_is_tolerated(self):
        """A string where an object is expected does not raise."""
        payload = {"call": "not-an-object", "data": {"callId": "c3"}}
        assert extract_provider_call_id(payload) == "c3"

    def test_numeric_id_coerced_to_string(self):
        """Numeric call ids are coerced to str."""
        assert extract_provider_call_id({"callId": 12345}) == "12345"

    def test_object_id_rejected(self):
        """Object-valued call ids count as missing."""
        assert extract_provider_call_id({"id": {"nested": True}}) is None

    def test_blank_id_rejected(self):
        """Blank call ids count as missing."""
        assert extract_provider_call_id({"callId": "   "}) is None

    def test_non_dict_payload(self):
        assert extract_provider_call_id(["c1"]) is None
        assert extract_provider_call_id(None) is None


# ---------------------------------------------------------------------------
# Status hint
# ---------------------------------------------------------------------------


class TestCanonicalEventName:
    @pytest.mark.parametrize(
        "name",
        ["call.started", "call-started", "call_started", "Call Started", "CALL__STARTED"],
    )
    def test_separator_styles_collapse(self, name):
        """Dots, dashes and underscores canonicalise to the same key."""
        assert canonical_event_name(name) == "call_started"

    def test_leading_trailing_separators_stripped(self):
        assert canonical_event_name(" .connected- ") == "connected"


class TestStatusHint:
    def test_explicit_status_used_verbatim(self):
        """A known status token is used as-is."""
        assert extract_status_hint({"status": "processing", "type": "call.started"}) == "processing"

    def test_nested_explicit_status(self):
        """Status nested under call is recognised."""
        assert extract_status_hint({"message": {"status": "failed"}}) == "failed"

    def test_unknown_explicit_status_falls_back_to_event_name(self):
        """Unknown status tokens defer to the event-name table."""
        assert extract_status_hint({"status": "ringing", "type": "call.connected"}) == "in_progress"

    @pytest.mark.parametrize(
        "event_type,expected",
        [
            ("call.connected", "in_progress"),
            ("connected", "in_progress"),
            ("call-started", "dialing"),
            ("call ended", "processing"),
            ("call_failed", "failed"),
            ("end-of-call-report", "processing"),
        ],
    )
    def test_event_table(self, event_type, expected):
        """Event names map to their status hints."""
        assert extract_status_hint({"type": event_type}) == expected

    def test_message_type_location(self):
        """message.type is used as the event name."""
        assert extract_status_hint({"message": {"type": "end-of-call-report"}}) == "processing"

    def test_event_field_location(self):
        assert extract_status_hint({"event": "call.failed"}) == "failed"

    def test_unknown_event_yields_none(self):
        """Events outside the table carry no status hint."""
        assert extract_status_hint({"type": "transcript"}) is None

    def test_no_fields_yields_none(self):
        assert extract_status_hint({"callId": "c1"}) is None

    def test_table_only_maps_to_known_tokens(self):
        """Every table value is a valid status token."""
        from callorders.services.event_normalizer import STATUS_TOKENS
        assert set(EVENT_STATUS_TABLE.values()) <= STATUS_TOKENS


# ---------------------------------------------------------------------------
# Order payload
# ---------------------------------------------------------------------------


class TestOrderPayload:
    def test_top_level_order(self):
        assert extract_order_payload({"order": {"total_cents": 1}}) == {"total_cents": 1}

    def test_data_wrapper(self):
        """Order nested under data is found."""
        assert extract_order_payload({"data": {"order": {"a": 1}}}) == {"a": 1}

    def test_artifact_wrapper(self):
        """Order nested under artifact is found."""
        assert extract_order_payload({"artifact": {"order": {"b": 2}}}) == {"b": 2}

    def test_top_level_wins(self):
        """Top-level order takes precedence over wrapped ones."""
        payload = {"order": {"a": 1}, "artifact": {"order": {"b": 2}}}
        assert extract_order_payload(payload) == {"a": 1}

    def test_non_object_order_ignored(self):
        """Non-object orders are ignored, not rejected."""
        assert extract_order_payload({"order": "pizza"}) is None

    def test_absent(self):
        assert extract_order_payload({"callId": "c1"}) is None


# ---------------------------------------------------------------------------
# normalize_event
# ---------------------------------------------------------------------------


class TestNormalizeEvent:
    def test_full_event(self):
        """A complete end-of-call report normalises every field."""
        payload = {
            "message": {"type": "end-of-call-report", "call": {"id": "c9"}},
            "artifact": {"order": {"total_cents": 500}},
        }
        event = normalize_event(payload)
        assert event == NormalizedEvent(
            provider_call_id="c9",
            status_hint="processing",
            order_payload={"total_cents": 500},
        )

    def test_missing_identifier_raises(self):
        """No call id anywhere raises MissingIdentifierError."""
        with pytest.raises(MissingIdentifierError):
            normalize_event({"type": "call.started"})

    def test_non_dict_payload_raises(self):
        """Non-object payloads raise MissingIdentifierError."""
        with pytest.raises(MissingIdentifierError):
            normalize_event("garbage")

    def test_event_without_status_or_order(self):
        event = normalize_event({"callId": "c1", "type": "transcript"})
        assert event.status_hint is None
        assert event.order_payload is None


class TestFirstPresent:
    def test_returns_none_when_nothing_matches(self):
        assert first_present({}, CALL_ID_ACCESSORS) is None

    def test_falsy_but_present_value_wins(self):
        """Zero and empty strings are still present values."""
        assert first_present({"callId": 0, "id": "x"}, CALL_ID_ACCESSORS) == 0

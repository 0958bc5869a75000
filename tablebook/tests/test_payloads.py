import json

import pytest

from tablebook.app.core.errors import InvalidRequest
from tablebook.app.routers.payloads import extract_phone, parse_booking_request, unwrap_arguments


def _tool_call_envelope(arguments, *, number="+49 171 5550100", call_id="call_abc"):
    return {
        "message": {
            "type": "tool-calls",
            "call": {"customer": {"number": number}},
            "toolCalls": [
                {"id": call_id, "type": "function", "function": {"name": "create", "arguments": arguments}},
            ],
        }
    }


def test_plain_body_is_used_as_is():
    request = parse_booking_request({"date": "2025-06-01", "time": "19:00", "partySize": "4"})
    assert (request.date, request.time, request.guests) == ("2025-06-01", "19:00", 4)
    assert request.request_key is None


def test_tool_call_arguments_as_object_or_json_string():
    arguments = {"date": "tomorrow", "time": "19:00", "guests": 2, "name": "Anna"}
    for payload in (arguments, json.dumps(arguments)):
        request = parse_booking_request(_tool_call_envelope(payload))
        assert request.date == "tomorrow"
        assert request.guests == 2
        assert request.name == "Anna"
        assert request.request_key == "call_abc"


def test_tool_call_list_envelope():
    body = {"message": {"toolCallList": [{"id": "x1", "function": {"arguments": {"reservationId": "rec9"}}}]}}
    assert parse_booking_request(body).reservation_id == "rec9"


def test_phone_prefers_call_metadata():
    body = _tool_call_envelope({"phone": "+49 30 1234567"}, number="+49 171 5550100")
    assert extract_phone(body, unwrap_arguments(body)) == "+49 171 5550100"


def test_phone_ignores_templates_and_short_values():
    body = _tool_call_envelope({"phone": "{{customer.number}}"}, number="{{call.number}}")
    assert extract_phone(body, unwrap_arguments(body)) is None

    body = _tool_call_envelope({"phone": "+49 30 1234567"}, number="123")
    assert extract_phone(body, unwrap_arguments(body)) == "+49 30 1234567"


def test_phone_from_top_level_customer():
    body = {"customer": {"number": "+4915112345678"}, "date": "today"}
    assert parse_booking_request(body).phone == "+4915112345678"


@pytest.mark.parametrize("body", [[], "text", _tool_call_envelope("{not json"), _tool_call_envelope([1, 2])])
def test_malformed_envelopes_are_rejected(body):
    with pytest.raises(InvalidRequest):
        parse_booking_request(body)


def test_non_numeric_guests_is_an_invalid_request():
    with pytest.raises(InvalidRequest) as info:
        parse_booking_request({"date": "today", "time": "19:00", "guests": "a few"})
    assert info.value.extra["errors"][0]["field"] == "guests"

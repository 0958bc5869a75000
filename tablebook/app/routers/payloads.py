"""Unwrap voice-assistant webhook envelopes into one BookingRequest.

Callers post either the plain arguments or a tool-call envelope such as
``{"message": {"toolCalls": [{"id": ..., "function": {"arguments": {...}}}],
"call": {"customer": {"number": ...}}}}``. Nothing past this module looks at
envelope paths.
"""
import json
from typing import Any

from pydantic import ValidationError

from tablebook.app.core.errors import InvalidRequest
from tablebook.app.routers.schemas import BookingRequest


def _dig(data: Any, *path: str | int) -> Any:
    for key in path:
        if isinstance(key, int):
            if not isinstance(data, list) or len(data) <= key:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[key] if isinstance(key, int) else data.get(key)
    return data


def _tool_call(body: dict[str, Any]) -> dict[str, Any] | None:
    for path in (("message", "toolCalls", 0), ("message", "toolCallList", 0), ("toolCall",)):
        call = _dig(body, *path)
        if isinstance(call, dict):
            return call
    return None


def unwrap_arguments(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")

    call = _tool_call(body)
    if call is None:
        return body

    arguments = _dig(call, "function", "arguments")
    if arguments is None:
        arguments = call.get("arguments")
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as exc:
            raise InvalidRequest("Tool call arguments are not valid JSON") from exc
    if not isinstance(arguments, dict):
        raise InvalidRequest("Tool call arguments must be an object")
    return arguments


def tool_call_id(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    call = _tool_call(body)
    call_id = call.get("id") if call else None
    return str(call_id) if call_id else None


def _usable_phone(value: Any) -> str | None:
    # unrendered templates like "{{customer.number}}" and junk are ignored
    if not isinstance(value, str):
        return None
    value = value.strip()
    if len(value) <= 5 or "{" in value:
        return None
    return value


def extract_phone(body: Any, arguments: dict[str, Any]) -> str | None:
    """Caller number from call metadata first, then from the tool arguments."""
    for path in (("message", "call", "customer", "number"), ("call", "customer", "number"), ("customer", "number")):
        phone = _usable_phone(_dig(body, *path))
        if phone:
            return phone
    return _usable_phone(arguments.get("phone"))


def parse_booking_request(body: Any) -> BookingRequest:
    arguments = unwrap_arguments(body)
    try:
        request = BookingRequest.model_validate(arguments)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise InvalidRequest("Invalid request fields", errors=errors) from exc

    updates: dict[str, Any] = {"phone": extract_phone(body, arguments)}
    if not request.request_key:
        updates["request_key"] = tool_call_id(body)
    return request.model_copy(update=updates)

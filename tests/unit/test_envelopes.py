"""Tests for wire envelopes and the error hierarchy."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from influxdb_gateway.protocol import (
    ErrorCode,
    ErrorObject,
    InvalidRequest,
    MethodNotFound,
    RequestEnvelope,
    ResponseEnvelope,
    decode_envelope,
    recover_id,
    recover_id_from_text,
)

# =============================================================================
# Request envelopes
# =============================================================================


class TestRequestEnvelope:
    """Validation of inbound envelopes."""

    def test_minimal_request(self) -> None:
        envelope = decode_envelope({"protocol": "2.0", "id": 1, "method": "ping"})

        assert envelope.id == 1
        assert envelope.method == "ping"
        assert envelope.params == {}
        assert not envelope.is_notification

    def test_missing_id_is_notification(self) -> None:
        envelope = decode_envelope({"protocol": "2.0", "method": "notifications/initialized"})
        assert envelope.is_notification

    def test_null_id_is_notification(self) -> None:
        envelope = decode_envelope({"protocol": "2.0", "id": None, "method": "ping"})
        assert envelope.is_notification

    def test_string_id_preserved(self) -> None:
        envelope = decode_envelope({"protocol": "2.0", "id": "req-7", "method": "ping"})
        assert envelope.id == "req-7"

    def test_jsonrpc_alias_accepted(self) -> None:
        envelope = decode_envelope({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        assert envelope.protocol == "2.0"

    def test_null_params_become_empty(self) -> None:
        envelope = decode_envelope({"protocol": "2.0", "id": 1, "method": "ping", "params": None})
        assert envelope.params == {}

    def test_wrong_protocol_rejected(self) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            decode_envelope({"protocol": "1.0", "id": 3, "method": "ping"})

        assert exc_info.value.code == ErrorCode.INVALID_REQUEST
        assert exc_info.value.request_id == 3

    def test_missing_protocol_rejected(self) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            decode_envelope({"id": 1, "method": "ping"})

        assert exc_info.value.request_id == 1
        assert exc_info.value.expects_reply
        assert any("protocol" in problem for problem in exc_info.value.data["errors"])

    def test_missing_protocol_without_id_expects_no_reply(self) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            decode_envelope({"method": "notifications/initialized"})

        assert exc_info.value.request_id is None
        assert not exc_info.value.expects_reply

    def test_empty_method_rejected(self) -> None:
        with pytest.raises(InvalidRequest):
            decode_envelope({"protocol": "2.0", "id": 1, "method": ""})

    def test_non_string_method_rejected(self) -> None:
        with pytest.raises(InvalidRequest):
            decode_envelope({"protocol": "2.0", "id": 1, "method": 42})

    def test_boolean_id_rejected_and_not_recovered(self) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            decode_envelope({"protocol": "2.0", "id": True, "method": "ping"})
        assert exc_info.value.request_id is None
        assert exc_info.value.expects_reply

    def test_array_params_rejected(self) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            decode_envelope({"protocol": "2.0", "id": 1, "method": "ping", "params": [1]})
        assert exc_info.value.data["errors"]

    def test_non_object_rejected(self) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            decode_envelope(["not", "an", "object"])
        assert exc_info.value.request_id is None

    def test_already_decoded_envelope_passes_through(self) -> None:
        envelope = RequestEnvelope(protocol="2.0", id=1, method="ping")
        assert decode_envelope(envelope) is envelope


# =============================================================================
# Response envelopes
# =============================================================================


class TestResponseEnvelope:
    """Result/error exclusivity and encoding."""

    def test_success_has_no_error_key(self) -> None:
        data = json.loads(ResponseEnvelope.success(1, {"ok": True}).encode())

        assert data == {"protocol": "2.0", "id": 1, "result": {"ok": True}}

    def test_null_result_is_still_present(self) -> None:
        data = json.loads(ResponseEnvelope.success("a", None).encode())

        assert "result" in data
        assert data["result"] is None
        assert "error" not in data

    def test_failure_has_no_result_key(self) -> None:
        error = MethodNotFound("Method not found: nope", data={"method": "nope"})
        data = json.loads(ResponseEnvelope.failure(2, error).encode())

        assert "result" not in data
        assert data["error"] == {
            "code": -32601,
            "message": "Method not found: nope",
            "data": {"method": "nope"},
        }

    def test_error_without_data_omits_key(self) -> None:
        response = ResponseEnvelope.failure(1, ErrorObject(code=-32603, message="Internal error"))
        data = json.loads(response.encode())

        assert "data" not in data["error"]

    def test_both_result_and_error_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResponseEnvelope(id=1, result={}, error=ErrorObject(code=-1, message="x"))

    def test_neither_result_nor_error_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResponseEnvelope(id=1)

    def test_encode_is_single_line(self) -> None:
        response = ResponseEnvelope.success(1, {"text": "line one\nline two"})
        assert "\n" not in response.encode()

    def test_nested_values_survive_decoding(self) -> None:
        result = {
            "content": [{"type": "text", "text": "ünïcödé"}],
            "numbers": [1, 2.5, -3, 12345678901234567890],
            "nested": {"deep": {"list": [None, True, False]}},
        }
        original = ResponseEnvelope.success("q-1", result)

        decoded = ResponseEnvelope.model_validate_json(original.encode())

        assert decoded.model_dump() == original.model_dump()
        assert decoded.result == result

    def test_error_survives_decoding(self) -> None:
        original = ResponseEnvelope.failure(
            5, ErrorObject(code=-32603, message="boom", data={"detail": "boom"})
        )

        decoded = ResponseEnvelope.model_validate_json(original.encode())

        assert decoded.error == original.error
        assert decoded.is_error


# =============================================================================
# Id recovery
# =============================================================================


class TestIdRecovery:
    """Best-effort id recovery for malformed input."""

    def test_recover_id_from_mapping(self) -> None:
        assert recover_id({"id": 4}) == 4
        assert recover_id({"id": "x"}) == "x"
        assert recover_id({"id": 1.5}) is None
        assert recover_id({}) is None

    def test_recover_integer_id_from_text(self) -> None:
        assert recover_id_from_text('{"protocol":"2.0","id": 12, "method": ') == 12

    def test_recover_string_id_from_text(self) -> None:
        assert recover_id_from_text('{"id":"abc","method":"ping"') == "abc"

    def test_no_id_in_text(self) -> None:
        assert recover_id_from_text("not json at all") is None

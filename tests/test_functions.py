"""Tests for response normalization and status classification."""

from __future__ import annotations

import json
from contextlib import ExitStack
from pathlib import Path

import pytest

from api_request_helper.errors import DecodeError, ServiceException
from api_request_helper.functions import (
    STATUS_EXCEPTIONS,
    SUCCESS_CODES,
    build_multipart,
    display_message_key,
    encode_form_fields,
    get_exception,
    get_response,
    resolve_status,
)
from api_request_helper.status import StatusStream

URI = "https://api.example.com/things"


@pytest.fixture()
def stream() -> StatusStream:
    return StatusStream(strict=True)


@pytest.fixture()
def published(stream: StatusStream) -> list[int]:
    received: list[int] = []
    stream.subscribe(received.append)
    return received


# ── get_exception ─────────────────────────────────────────────────────


class TestGetException:
    @pytest.mark.parametrize(("status", "expected"), sorted(STATUS_EXCEPTIONS.items()))
    def test_without_display_message_key(self, status: int, expected: tuple[str, str]):
        exc = get_exception(status)
        assert (exc.code, exc.message) == expected
        assert exc.display_message_key is None
        assert exc.status_code == status

    @pytest.mark.parametrize(("status", "expected"), sorted(STATUS_EXCEPTIONS.items()))
    def test_with_display_message_key(self, status: int, expected: tuple[str, str]):
        exc = get_exception(status, display_message_key="display-message-key")
        assert (exc.code, exc.message) == expected
        assert exc.display_message_key == "display-message-key"

    def test_mapped_status_ignores_error_message(self):
        exc = get_exception(404, error_message="server says no")
        assert exc.message == "Could not retrieve resource"

    def test_unmapped_status_uses_error_message(self):
        exc = get_exception(999, error_message="unknown error")
        assert exc.code == "999"
        assert exc.message == "unknown error"

    def test_unmapped_status_without_message(self):
        exc = get_exception(418)
        assert exc.code == "418"
        assert exc.message is None

    def test_security_rejections_is_428(self):
        assert STATUS_EXCEPTIONS[428] == ("security-rejections", "Security Rejections")
        assert 430 not in STATUS_EXCEPTIONS

    def test_table_has_no_success_codes(self):
        assert not SUCCESS_CODES & STATUS_EXCEPTIONS.keys()


# ── resolve_status / display_message_key ──────────────────────────────


class TestResolveStatus:
    def test_envelope_overrides_200(self):
        assert resolve_status(200, {"status": 404}) == 404

    def test_envelope_200_keeps_200(self):
        assert resolve_status(200, {"status": 200}) == 200

    def test_missing_envelope_status(self):
        assert resolve_status(200, {"result": {}}) == 200

    def test_non_200_transport_wins(self):
        assert resolve_status(500, {"status": 200}) == 500

    def test_numeric_string_status(self):
        assert resolve_status(200, {"status": "422"}) == 422

    def test_float_status(self):
        assert resolve_status(200, {"status": 401.0}) == 401

    def test_fractional_status_kept(self):
        assert resolve_status(200, {"status": 200.7}) == 200.7
        assert resolve_status(200, {"status": "204.5"}) == 204.5

    @pytest.mark.parametrize("value", [None, "ok", True, [401], {"code": 401}])
    def test_non_numeric_status_ignored(self, value: object):
        assert resolve_status(200, {"status": value}) == 200


class TestDisplayMessageKey:
    def test_present(self):
        assert display_message_key({"result": {"display_message_key": "x"}}) == "x"

    def test_absent(self):
        assert display_message_key({"result": {}}) is None

    @pytest.mark.parametrize("result", [None, "text", [1, 2], 3])
    def test_non_object_result(self, result: object):
        assert display_message_key({"result": result}) is None

    def test_non_string_key(self):
        assert display_message_key({"result": {"display_message_key": 12}}) is None


# ── get_response ──────────────────────────────────────────────────────


class TestGetResponse:
    def test_result_only(self, stream: StatusStream):
        body = {"status": 200, "result": {"id": 1, "name": "alice"}}
        assert get_response(json.dumps(body), 200, URI, stream) == {"id": 1, "name": "alice"}

    def test_full_envelope(self, stream: StatusStream):
        body = {"status": 200, "result": {"id": 1}, "message": "ok"}
        assert get_response(json.dumps(body), 200, URI, stream, is_result=False) == body

    @pytest.mark.parametrize("status", sorted(SUCCESS_CODES))
    def test_success_codes(self, stream: StatusStream, status: int):
        body = {"status": status, "result": [1, 2]}
        assert get_response(json.dumps(body), 200, URI, stream) == [1, 2]

    def test_missing_result_is_none(self, stream: StatusStream):
        assert get_response(json.dumps({"status": 200}), 200, URI, stream) is None

    @pytest.mark.parametrize(("status", "expected"), sorted(STATUS_EXCEPTIONS.items()))
    def test_envelope_status_raises(self, stream: StatusStream, status: int, expected: tuple[str, str]):
        body = {"status": status, "message": "m"}
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps(body), 200, URI, stream)
        assert (exc_info.value.code, exc_info.value.message) == expected
        assert exc_info.value.display_message_key is None
        assert exc_info.value.uri == URI

    @pytest.mark.parametrize("status", sorted(STATUS_EXCEPTIONS))
    def test_envelope_status_carries_display_key(self, stream: StatusStream, status: int):
        body = {"status": status, "message": "m", "result": {"display_message_key": "x"}}
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps(body), 200, URI, stream)
        assert exc_info.value.display_message_key == "x"

    def test_effective_status_300(self, stream: StatusStream, published: list[int]):
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps({"status": 300, "message": "moved"}), 200, URI, stream)
        assert exc_info.value.code == "300"
        assert exc_info.value.message == "moved"
        stream.drain()
        assert published == [300]

    def test_unmapped_status_uses_envelope_message(self, stream: StatusStream):
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps({"status": 999, "message": "unknown error"}), 200, URI, stream)
        assert exc_info.value.code == "999"
        assert exc_info.value.message == "unknown error"

    def test_fractional_status_is_not_success(self, stream: StatusStream, published: list[float]):
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps({"status": 200.7, "message": "odd", "result": {"id": 1}}), 200, URI, stream)
        assert exc_info.value.code == "200.7"
        assert exc_info.value.message == "odd"
        stream.drain()
        assert published == [200.7]

    def test_error_with_string_result(self, stream: StatusStream):
        body = {"status": 400, "message": "bad", "result": "nope"}
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps(body), 200, URI, stream)
        assert exc_info.value.code == "bad-request"
        assert exc_info.value.display_message_key is None

    def test_transport_error_status(self, stream: StatusStream, published: list[int]):
        with pytest.raises(ServiceException) as exc_info:
            get_response(json.dumps({"message": "boom"}), 500, URI, stream)
        assert exc_info.value.code == "internal-server-error"
        stream.drain()
        assert published == [500]

    def test_publishes_on_success(self, stream: StatusStream, published: list[int]):
        get_response(json.dumps({"status": 200, "result": {}}), 200, URI, stream)
        stream.drain()
        assert published == [200]

    def test_invalid_json(self, stream: StatusStream, published: list[int]):
        with pytest.raises(DecodeError) as exc_info:
            get_response("<html>oops</html>", 200, URI, stream)
        assert exc_info.value.status_code == 200
        assert exc_info.value.body == "<html>oops</html>"
        stream.drain()
        assert published == []

    @pytest.mark.parametrize("body", ["[1, 2]", '"text"', "null", "3"])
    def test_non_object_json(self, stream: StatusStream, body: str):
        with pytest.raises(DecodeError, match="expected JSON object"):
            get_response(body, 200, URI, stream)


# ── build_multipart ───────────────────────────────────────────────────


class TestBuildMultipart:
    def test_fields_stringified(self, tmp_path: Path):
        with ExitStack() as stack:
            fields, files = build_multipart({"name": "alice", "age": 30, "admin": True, "tags": ["a"]}, {}, stack)
        assert fields == {"name": "alice", "age": "30", "admin": "true", "tags": '["a"]'}
        assert files == []

    def test_files_attached_under_field_name(self, tmp_path: Path):
        avatar = tmp_path / "avatar.png"
        avatar.write_bytes(b"\x89PNG")
        with ExitStack() as stack:
            _, files = build_multipart(None, {"avatar": str(avatar)}, stack)
            name, (filename, handle) = files[0]
            assert name == "avatar"
            assert filename == "avatar.png"
            assert handle.read() == b"\x89PNG"
        assert handle.closed

    def test_missing_file(self, tmp_path: Path):
        with ExitStack() as stack, pytest.raises(FileNotFoundError):
            build_multipart({}, {"doc": tmp_path / "missing.pdf"}, stack)


class TestEncodeFormFields:
    def test_boundary_in_content_type(self):
        body, content_type = encode_form_fields({"name": "alice", "age": "30"})
        boundary = content_type.removeprefix("multipart/form-data; boundary=")
        assert boundary != content_type
        assert body == (
            f'--{boundary}\r\nContent-Disposition: form-data; name="name"\r\n\r\nalice\r\n'
            f'--{boundary}\r\nContent-Disposition: form-data; name="age"\r\n\r\n30\r\n'
            f"--{boundary}--\r\n"
        ).encode()

    def test_no_fields(self):
        body, content_type = encode_form_fields({})
        boundary = content_type.split("boundary=", 1)[1]
        assert body == f"--{boundary}--\r\n".encode()

    def test_field_name_quoted(self):
        body, _ = encode_form_fields({'a"b\r\nc': "v"})
        assert b'name="a%22b%0D%0Ac"' in body

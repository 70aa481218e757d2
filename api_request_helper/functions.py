"""Response normalization, status classification and multipart building."""

from __future__ import annotations

import json
import logging
import secrets
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO

from api_request_helper.errors import DecodeError, ServiceException

if TYPE_CHECKING:
    from contextlib import ExitStack

    from api_request_helper.status import StatusStream

logger = logging.getLogger(__name__)

SUCCESS_CODES = frozenset({200, 203, 204, 214})

STATUS_EXCEPTIONS: dict[int, tuple[str, str]] = {
    301: ("invalid-credentials", "Credentials are invalid"),
    400: ("bad-request", "The server could not process the request"),
    401: ("unauthorized", "Could not authorize user"),
    403: ("insufficient-permission", "User do not have permission"),
    404: ("not-found", "Could not retrieve resource"),
    405: ("method-not-allowed", "Could not perform action"),
    406: ("not-acceptable", "Could not perform action"),
    408: ("request-timeout", "Request has timed out"),
    422: ("unprocessable-entity", "Could not process due to possible semantic errors"),
    428: ("security-rejections", "Security Rejections"),
    429: ("too-many-requests", "Too many requests"),
    500: ("internal-server-error", "Server has encountered issue"),
    502: ("bad-gateway", "Server received invalid response"),
    503: ("server-unavailable", "Server is not available"),
    504: ("gateway-timeout", "Server has timed out"),
}


def _as_status(value: Any) -> int | float | None:
    """Coerce an envelope status field to a number, or None if it isn't numeric.

    Integral values become ints; a fractional status is kept as-is so it can
    never compare equal to a success code.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip()) if isinstance(value, str) else value
        return int(number) if number == int(number) else number
    except (ValueError, OverflowError):
        return None


def resolve_status(status_code: int, envelope: dict[str, Any]) -> int | float:
    """Return the effective status: a 200 response defers to the envelope's own status."""
    if status_code == 200:
        embedded = _as_status(envelope.get("status"))
        if embedded is not None and embedded != 200:
            return embedded
    return status_code


def display_message_key(envelope: dict[str, Any]) -> str | None:
    """Pull ``result.display_message_key`` out of an error envelope, if it has one."""
    result = envelope.get("result")
    if not isinstance(result, dict):
        return None
    key = result.get("display_message_key")
    return key if isinstance(key, str) else None


def get_exception(
    status_code: int | float,
    error_message: str | None = None,
    display_message_key: str | None = None,
    uri: str | None = None,
) -> ServiceException:
    """Build the :class:`ServiceException` for a non-success status.

    Mapped statuses use the fixed code/message pair; anything else uses the
    status itself as the code and ``error_message`` as the message.
    """
    code, message = STATUS_EXCEPTIONS.get(status_code, (str(status_code), error_message))
    return ServiceException(
        code=code,
        message=message if message is not None else error_message,
        display_message_key=display_message_key,
        status_code=status_code,
        uri=uri,
    )


def decode_envelope(response_body: str, uri: str | None = None, status_code: int | None = None) -> dict[str, Any]:
    """Parse a response body that must be a JSON object."""
    try:
        envelope = json.loads(response_body)
    except ValueError as e:
        raise DecodeError(f"invalid JSON from {uri}: {e}", uri=uri, status_code=status_code, body=response_body) from e
    if not isinstance(envelope, dict):
        raise DecodeError(
            f"expected JSON object from {uri}, got {type(envelope).__name__}",
            uri=uri,
            status_code=status_code,
            body=response_body,
        )
    return envelope


def _log_response(status: int | float, uri: str, data: dict[str, Any] | None, envelope: dict[str, Any]) -> None:
    if 200 <= status < 300:
        level = logging.INFO
    elif 300 <= status < 400:
        level = logging.WARNING
    else:
        level = logging.ERROR
    logger.log(level, "%s -- %s, data: %s", status, uri, data)
    logger.debug("body -- json: %s, status: %s", envelope, envelope.get("status"))


def get_response(
    response_body: str,
    status_code: int,
    uri: str,
    status_stream: StatusStream,
    is_result: bool = True,
    data: dict[str, Any] | None = None,
) -> Any:
    """Decode a response, publish its effective status, then return or raise.

    Returns ``envelope["result"]`` when ``is_result`` is set, otherwise the
    whole envelope. Raises :class:`DecodeError` for a non-object body and
    :class:`ServiceException` for every non-success effective status.
    """
    envelope = decode_envelope(response_body, uri=uri, status_code=status_code)
    status = resolve_status(status_code, envelope)

    status_stream.publish(status)
    _log_response(status, uri, data, envelope)

    if status in SUCCESS_CODES:
        return envelope.get("result") if is_result else envelope

    message = envelope.get("message")
    raise get_exception(
        status,
        error_message=None if message is None else str(message),
        display_message_key=display_message_key(envelope),
        uri=uri,
    )


def _stringify(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def build_multipart(
    data: dict[str, Any] | None,
    file_data: dict[str, str | Path],
    stack: ExitStack,
) -> tuple[dict[str, str], list[tuple[str, tuple[str, BinaryIO]]]]:
    """Split a request into multipart form fields and opened file parts.

    Files are opened on ``stack`` so the caller closes them once the request
    has been sent.
    """
    fields = {key: _stringify(value) for key, value in (data or {}).items()}
    files: list[tuple[str, tuple[str, BinaryIO]]] = []
    for name, file_path in file_data.items():
        path = Path(file_path)
        logger.debug("attaching %s as %s", path, name)
        handle = stack.enter_context(path.open("rb"))
        files.append((name, (path.name, handle)))
    return fields, files


def _quote_param(value: str) -> str:
    return value.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


def encode_form_fields(fields: dict[str, str]) -> tuple[bytes, str]:
    """Encode text fields as a multipart/form-data body with no file parts.

    Returns ``(body, content_type)``; the content type carries the boundary.
    """
    boundary = secrets.token_hex(16)
    parts = [
        f'--{boundary}\r\nContent-Disposition: form-data; name="{_quote_param(name)}"\r\n\r\n{value}\r\n'
        for name, value in fields.items()
    ]
    body = "".join(parts) + f"--{boundary}--\r\n"
    return body.encode(), f"multipart/form-data; boundary={boundary}"

"""Request dispatcher: builds headers, sends requests, normalizes responses."""

from __future__ import annotations

import json
import logging
from contextlib import ExitStack
from typing import TYPE_CHECKING, Any

from api_request_helper._http import HttpTransport
from api_request_helper.config import HelperConfig
from api_request_helper.content_type import ContentType
from api_request_helper.errors import ApiRequestError
from api_request_helper.functions import build_multipart, encode_form_fields, get_response
from api_request_helper.status import StatusStream

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class ApiRequestHelper:
    """Send GET/POST/PUT/PATCH/DELETE calls against an enveloped JSON API.

    Every response is decoded, its effective status is published on
    :attr:`status_codes`, and the ``result`` (or whole envelope) is returned.
    Non-success statuses raise :class:`~api_request_helper.errors.ServiceException`.

    Usage::

        with ApiRequestHelper(HelperConfig(api_key="k", token_secret="s")) as api:
            api.status_codes.subscribe(print)
            user = api.get("https://example.com/users/1", user_token="Bearer ...")
    """

    def __init__(self, config: HelperConfig | None = None, transport: HttpTransport | None = None) -> None:
        self.config = config if config is not None else HelperConfig.from_env()
        self._http = transport or HttpTransport(self.config.base_url, timeout=self.config.timeout)
        self._status = StatusStream(strict=self.config.debug)
        self._disposed = False

    @property
    def status_codes(self) -> StatusStream:
        """Effective status of every processed response."""
        return self._status

    @property
    def x_api_token(self) -> str:
        """A freshly signed request token."""
        return self.config.create_token()

    def build_headers(self, content_type: ContentType = ContentType.json, user_token: str | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": content_type.value,
            self.config.token_header: self.x_api_token,
            self.config.api_key_header: self.config.api_key,
        }
        if user_token is not None:
            headers[self.config.auth_header] = user_token
        return headers

    def _dispatch(
        self,
        method: str,
        uri: str,
        *,
        data: dict[str, Any] | None,
        file_data: dict[str, str | Path] | None,
        user_token: str | None,
        is_result: bool,
        content_type: ContentType,
        timeout: float | None,
        send_body: bool = True,
    ) -> Any:
        if self._disposed:
            raise ApiRequestError(f"cannot {method} {uri}: helper has been disposed")
        headers = self.build_headers(content_type, user_token)

        with ExitStack() as stack:
            if content_type is ContentType.form_data and send_body:
                fields, files = build_multipart(data, file_data or {}, stack)
                if files:
                    # httpx sets multipart/form-data with the boundary
                    del headers["Content-Type"]
                    status_code, body = self._http.send(
                        method, uri, headers, data=fields, files=files, timeout=timeout
                    )
                else:
                    content, headers["Content-Type"] = encode_form_fields(fields)
                    status_code, body = self._http.send(method, uri, headers, content=content, timeout=timeout)
            else:
                content = json.dumps(data if data is not None else {}) if send_body else None
                status_code, body = self._http.send(method, uri, headers, content=content, timeout=timeout)

        logger.debug("finished %s %s", method, uri)
        return get_response(
            response_body=body,
            status_code=status_code,
            uri=uri,
            status_stream=self._status,
            is_result=is_result,
            data=data,
        )

    def get(
        self,
        uri: str,
        user_token: str | None = None,
        is_result: bool = True,
        content_type: ContentType = ContentType.json,
        timeout: float | None = None,
    ) -> Any:
        """GET ``uri``. Raises ServiceException if the effective status is not a success."""
        return self._dispatch(
            "GET",
            uri,
            data=None,
            file_data=None,
            user_token=user_token,
            is_result=is_result,
            content_type=content_type,
            timeout=timeout,
            send_body=False,
        )

    def post(
        self,
        uri: str,
        data: dict[str, Any] | None = None,
        file_data: dict[str, str | Path] | None = None,
        user_token: str | None = None,
        is_result: bool = True,
        content_type: ContentType = ContentType.json,
        timeout: float | None = None,
    ) -> Any:
        """POST ``data`` as JSON, or as multipart/form-data when ``content_type`` is form_data."""
        return self._dispatch(
            "POST",
            uri,
            data=data,
            file_data=file_data,
            user_token=user_token,
            is_result=is_result,
            content_type=content_type,
            timeout=timeout,
        )

    def put(
        self,
        uri: str,
        data: dict[str, Any] | None = None,
        file_data: dict[str, str | Path] | None = None,
        user_token: str | None = None,
        is_result: bool = True,
        content_type: ContentType = ContentType.json,
        timeout: float | None = None,
    ) -> Any:
        return self._dispatch(
            "PUT",
            uri,
            data=data,
            file_data=file_data,
            user_token=user_token,
            is_result=is_result,
            content_type=content_type,
            timeout=timeout,
        )

    def patch(
        self,
        uri: str,
        data: dict[str, Any] | None = None,
        file_data: dict[str, str | Path] | None = None,
        user_token: str | None = None,
        is_result: bool = True,
        content_type: ContentType = ContentType.json,
        timeout: float | None = None,
    ) -> Any:
        return self._dispatch(
            "PATCH",
            uri,
            data=data,
            file_data=file_data,
            user_token=user_token,
            is_result=is_result,
            content_type=content_type,
            timeout=timeout,
        )

    def delete(
        self,
        uri: str,
        data: dict[str, Any] | None = None,
        user_token: str | None = None,
        is_result: bool = True,
        content_type: ContentType = ContentType.json,
        timeout: float | None = None,
    ) -> Any:
        """DELETE ``uri``; a JSON body is sent only when ``data`` is given."""
        return self._dispatch(
            "DELETE",
            uri,
            data=data,
            file_data=None,
            user_token=user_token,
            is_result=is_result,
            content_type=content_type,
            timeout=timeout,
            send_body=data is not None,
        )

    def download_bytes(self, uri: str, user_token: str | None = None, timeout: float | None = None) -> bytes:
        """Fetch raw bytes with no envelope processing and no status event."""
        if self._disposed:
            raise ApiRequestError(f"cannot download {uri}: helper has been disposed")
        headers = {self.config.auth_header: user_token} if user_token is not None else None
        data = self._http.read_bytes(uri, headers=headers, timeout=timeout)
        logger.info("downloaded %d byte(s) from %s", len(data), uri)
        return data

    def dispose(self) -> None:
        """Close the status stream and the underlying transport."""
        if self._disposed:
            return
        self._disposed = True
        self._status.close()
        self._http.close()

    close = dispose

    def __enter__(self) -> ApiRequestHelper:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()

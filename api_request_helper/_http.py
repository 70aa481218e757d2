"""HTTP transport layer wrapping httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from api_request_helper.errors import RequestTimeoutError, TransportError
from api_request_helper.functions import get_exception

logger = logging.getLogger(__name__)


class HttpTransport:
    def __init__(self, base_url: str = "", timeout: float = 60.0) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout)
        self.timeout = timeout
        logger.debug("transport ready: %s", base_url or "<absolute uris>")

    def send(
        self,
        method: str,
        uri: str,
        headers: dict[str, str],
        *,
        content: str | bytes | None = None,
        data: dict[str, str] | None = None,
        files: list[tuple[str, Any]] | None = None,
        timeout: float | None = None,
    ) -> tuple[int, str]:
        """Send one request and return ``(status_code, body_text)``.

        HTTP error statuses are returned, not raised; classifying them is the
        caller's job.
        """
        logger.debug("%s %s", method, uri)
        try:
            r = self._client.request(
                method,
                uri,
                headers=headers,
                content=content,
                data=data,
                files=files,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error("%s %s timed out: %s", method, uri, e)
            raise RequestTimeoutError(f"{method} {uri} timed out: {e}", uri=uri) from e
        except httpx.RequestError as e:
            logger.error("%s %s connection failed: %s", method, uri, e)
            raise TransportError(f"{method} {uri} failed: {e}", uri=uri) from e
        return r.status_code, r.text

    def read_bytes(self, uri: str, headers: dict[str, str] | None = None, timeout: float | None = None) -> bytes:
        """GET raw bytes, raising ServiceException for an error status."""
        logger.debug("GET bytes %s", uri)
        try:
            r = self._client.get(
                uri,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
                follow_redirects=True,
            )
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("GET %s → %d: %s", uri, e.response.status_code, e.response.text[:200])
            raise get_exception(e.response.status_code, error_message=e.response.text[:200] or None, uri=uri) from e
        except httpx.TimeoutException as e:
            logger.error("GET %s timed out: %s", uri, e)
            raise RequestTimeoutError(f"GET {uri} timed out: {e}", uri=uri) from e
        except httpx.RequestError as e:
            logger.error("GET %s connection failed: %s", uri, e)
            raise TransportError(f"GET {uri} failed: {e}", uri=uri) from e
        return r.content

    def close(self) -> None:
        self._client.close()
        logger.debug("transport closed")

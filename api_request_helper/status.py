"""Broadcast channel for effective response status codes."""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING

from api_request_helper.errors import StatusStreamClosedError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Queued after close() so the delivery thread exits once pending events are out
_STOP = object()


class Subscription:
    def __init__(self, stream: StatusStream, listener: Callable[[int], None]) -> None:
        self._stream = stream
        self.listener = listener
        self.active = True

    def cancel(self) -> None:
        """Stop receiving status codes. Safe to call more than once."""
        if self.active:
            self.active = False
            self._stream._remove(self)


class StatusStream:
    """One-to-many status code notifications.

    ``publish`` only enqueues; a daemon thread delivers codes to listeners in
    publish order, so a slow listener never holds up the request that
    produced the code. Listeners only see codes published after they
    subscribe. A failing listener is logged and does not stop delivery to
    the others.

    Usage::

        sub = stream.subscribe(lambda code: print(code))
        ...
        stream.drain()  # wait until queued codes are delivered
        sub.cancel()
    """

    def __init__(self, strict: bool = False) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self._queue: queue.Queue[object] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._closed = False
        self.strict = strict

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, listener: Callable[[int], None]) -> Subscription:
        if self._closed:
            raise StatusStreamClosedError("cannot subscribe to a closed status stream")
        sub = Subscription(self, listener)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is None:
                self._worker = threading.Thread(target=self._deliver, name="status-stream", daemon=True)
                self._worker.start()

    def _deliver(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                code, snapshot = item  # type: ignore[misc]
                for sub in snapshot:
                    if not sub.active:
                        continue
                    try:
                        sub.listener(code)
                    except Exception:
                        logger.exception("status listener %r failed on %s", sub.listener, code)
            finally:
                self._queue.task_done()

    def publish(self, code: int) -> None:
        """Queue ``code`` for every current listener and return immediately."""
        if self._closed:
            if self.strict:
                raise StatusStreamClosedError(f"status {code} published after close")
            logger.debug("dropping status %s: stream closed", code)
            return
        with self._lock:
            snapshot = list(self._subscriptions)
        if not snapshot:
            return
        self._ensure_worker()
        self._queue.put((code, snapshot))

    def drain(self) -> None:
        """Block until every code published so far has been delivered."""
        self._queue.join()

    def close(self) -> None:
        """Stop accepting codes. Codes already published are still delivered."""
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._subscriptions.clear()
            worker = self._worker
        if worker is not None:
            self._queue.put(_STOP)
        logger.debug("status stream closed")

"""
transport.py — Delivery of metadata and event batches to the ingestion API.

Two paths:
  send()         non-blocking; messages are queued and POSTed in order by one
                 asyncio worker with httpx.AsyncClient. Failures are logged at
                 DEBUG and dropped: no retry, no backoff.
  send_beacon()  teardown path; hands the message to a daemon thread that
                 POSTs it with a synchronous httpx.Client, and returns at once
                 whether the message was accepted for sending.
"""
import asyncio
import json
import logging
import queue
import threading
from typing import Any, Optional, Tuple

import httpx

from recorder.client.config import RecorderConfig

logger = logging.getLogger(__name__)

METADATA = "metadata"
EVENTS = "events"

_STOP = object()


class BeaconSender(threading.Thread):
    """Background sender that keeps working while the caller goes away."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 5.0) -> None:
        super().__init__(name="recorder-beacon", daemon=True)
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = False

    def enqueue(self, url: str, body: bytes) -> bool:
        if self._closed:
            return False
        if not self.is_alive():
            self.start()
        self._queue.put((url, body))
        return True

    def run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                url, body = item
                self._post(url, body)
            finally:
                self._queue.task_done()

    def _post(self, url: str, body: bytes) -> None:
        try:
            self._client.post(url, content=body, headers={"Content-Type": "application/json"})
        except Exception as exc:
            # the thread outlives any single message
            logger.debug("Beacon to %s dropped: %r", url, exc)

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop accepting messages, finish the queued ones, release the client."""
        if self._closed:
            return
        self._closed = True
        if self.is_alive():
            self._queue.put(_STOP)
            self.join(timeout)
        if self._owns_client:
            self._client.close()


class Transport:
    def __init__(
        self,
        config: RecorderConfig,
        client: Optional[httpx.AsyncClient] = None,
        beacon: Optional[BeaconSender] = None,
    ) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout_s)
        self._owns_client = client is None
        self._beacon = beacon
        self._outbox: Optional["asyncio.Queue[Tuple[str, Any]]"] = None
        self._worker: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Normal path
    # ------------------------------------------------------------------

    def send(self, kind: str, payload: Any) -> None:
        """Queue a message for asynchronous delivery; never blocks, never raises on network errors."""
        if self._outbox is None:
            self._outbox = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._deliver_forever())
        self._outbox.put_nowait((self.config.url_for(kind), payload))

    async def _deliver_forever(self) -> None:
        while True:
            url, payload = await self._outbox.get()
            try:
                await self._post(url, payload)
            except Exception as exc:
                # e.g. a payload httpx cannot encode; later messages still go out
                logger.debug("Delivery to %s dropped: %r", url, exc)
            finally:
                self._outbox.task_done()

    async def _post(self, url: str, payload: Any) -> None:
        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.debug("Delivery to %s dropped: %s", url, exc)
            return
        if response.is_error:
            logger.debug("Delivery to %s rejected: HTTP %d", url, response.status_code)

    async def drain(self) -> None:
        """Wait until every queued message has been attempted."""
        if self._outbox is not None:
            await self._outbox.join()

    # ------------------------------------------------------------------
    # Teardown path
    # ------------------------------------------------------------------

    def send_beacon(self, kind: str, payload: Any) -> bool:
        if self._beacon is None:
            self._beacon = BeaconSender(timeout=self.config.request_timeout_s)
        try:
            body = json.dumps(payload, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            logger.debug("Beacon %s message dropped, not JSON-encodable: %s", kind, exc)
            return False
        return self._beacon.enqueue(self.config.url_for(kind), body)

    async def aclose(self) -> None:
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        if self._owns_client:
            await self._client.aclose()
        if self._beacon is not None:
            await asyncio.to_thread(self._beacon.close, self.config.request_timeout_s)

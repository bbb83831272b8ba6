"""
buffer.py — Client-side batching of capture-engine events.

Flush policy, checked on every pushed event:
  - pending count reaches batch_size  → flush now
  - otherwise, if no timer is armed   → arm one for batch_timeout_ms
A flush empties the buffer and disarms the timer before the batch is handed
to the transport. Flushing an empty buffer does nothing.

Page hidden → immediate flush on the normal path.
Page teardown → immediate flush on the beacon path; the buffer then drops its
lifecycle subscriptions and stops accepting events.

Single-threaded: push/flush/timer all run on the event loop that owns the buffer.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from recorder.client.config import RecorderConfig
from recorder.client.engines import generate_session_id
from recorder.client.lifecycle import TEARDOWN, VISIBILITY_CHANGE, PageLifecycle, Subscription
from recorder.client.transport import EVENTS, Transport

logger = logging.getLogger(__name__)


class BatchBuffer:
    def __init__(
        self,
        config: RecorderConfig,
        transport: Transport,
        session_id: Optional[str] = None,
        lifecycle: Optional[PageLifecycle] = None,
    ) -> None:
        self.config = config
        self.transport = transport
        # one id per page instance, fixed for its lifetime
        self.session_id = session_id or generate_session_id()
        self._events: List[Any] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._subscriptions: List[Subscription] = []
        self.closed = False
        if lifecycle is not None:
            self.attach(lifecycle)

    @property
    def pending(self) -> int:
        return len(self._events)

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Lifecycle subscriptions
    # ------------------------------------------------------------------

    def attach(self, lifecycle: PageLifecycle) -> None:
        self._subscriptions.append(lifecycle.subscribe(VISIBILITY_CHANGE, self._on_visibility_change))
        self._subscriptions.append(lifecycle.subscribe(TEARDOWN, self._on_teardown))

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

    def _on_visibility_change(self, hidden: bool) -> None:
        if hidden:
            self.flush()

    def _on_teardown(self) -> None:
        self.flush(teardown=True)
        self.close()

    # ------------------------------------------------------------------
    # Buffering
    # ------------------------------------------------------------------

    def push(self, event: Any) -> None:
        """Capture-engine callback."""
        if self.closed:
            logger.debug("Dropping event after teardown session_id=%s", self.session_id)
            return
        self._events.append(event)
        if len(self._events) >= self.config.batch_size:
            self.flush()
        elif self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.config.batch_timeout_s, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def flush(self, teardown: bool = False) -> bool:
        """Hand pending events to the transport. Returns False when there was nothing to send."""
        if not self._events:
            return False
        batch = {
            "sessionId": self.session_id,
            "events": self._events,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self._events = []
        self._cancel_timer()
        if teardown:
            self.transport.send_beacon(EVENTS, batch)
        else:
            self.transport.send(EVENTS, batch)
        logger.debug(
            "Flushed %d events session_id=%s teardown=%s",
            len(batch["events"]), self.session_id, teardown,
        )
        return True

    def close(self) -> None:
        """Stop buffering: cancel the timer and every lifecycle subscription."""
        self.closed = True
        self._cancel_timer()
        self.detach()

"""
recorder.py — SessionRecorder: capture engine → BatchBuffer → Transport.

start() queues the metadata message and then registers the buffer as the
capture engine's callback. The transport delivers its normal-path queue in
order, so the session exists on the server before the first batch arrives.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from recorder.client.buffer import BatchBuffer
from recorder.client.config import RecorderConfig
from recorder.client.engines import CaptureEngine, Disposer, PageInfo
from recorder.client.lifecycle import PageLifecycle
from recorder.client.transport import METADATA, Transport
from recorder.ingest.schemas import SessionMetadata

logger = logging.getLogger(__name__)


class SessionRecorder:
    def __init__(
        self,
        config: RecorderConfig,
        engine: CaptureEngine,
        page: PageInfo,
        lifecycle: Optional[PageLifecycle] = None,
        transport: Optional[Transport] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.config = config
        self.engine = engine
        self.page = page
        self.transport = transport or Transport(config)
        self.buffer = BatchBuffer(config, self.transport, session_id=session_id, lifecycle=lifecycle)
        self._dispose: Optional[Disposer] = None

    @property
    def session_id(self) -> str:
        return self.buffer.session_id

    @property
    def recording(self) -> bool:
        return self._dispose is not None

    def metadata(self) -> dict:
        message = SessionMetadata(
            session_id=self.session_id,
            url=self.page.url,
            title=self.page.title,
            user_agent=self.page.user_agent,
            timestamp=datetime.now(timezone.utc).isoformat(),
            viewport=self.page.viewport,
        )
        return message.model_dump(by_alias=True)

    def start(self) -> None:
        if self.recording:
            return
        self.transport.send(METADATA, self.metadata())
        self._dispose = self.engine.on_event(self.buffer.push)
        logger.info("Recording started session_id=%s", self.session_id)

    def stop(self) -> None:
        """Unregister from the capture engine and send whatever is still buffered."""
        if not self.recording:
            return
        self._dispose()
        self._dispose = None
        self.buffer.flush()
        self.buffer.close()
        logger.info("Recording stopped session_id=%s", self.session_id)

    async def aclose(self) -> None:
        self.stop()
        await self.transport.aclose()

"""
engines.py — Boundaries to the third-party capture and replay engines.

The recorder core never looks inside an event record; it only needs
  CaptureEngine.on_event(callback) -> disposer
  ReplayEngine.render(target, events, dimensions) -> handle
"""
import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence

from recorder.ingest.schemas import Viewport

EventCallback = Callable[[Any], None]
Disposer = Callable[[], None]

# Opt-out markers understood by the capture engine
BLOCK_CLASS = "sr-block"    # element is replaced by a placeholder
IGNORE_CLASS = "sr-ignore"  # element's input content is not recorded

_BASE36 = string.digits + string.ascii_lowercase
SESSION_SUFFIX_LENGTH = 9


class CaptureEngine(Protocol):
    def on_event(self, callback: EventCallback) -> Disposer:
        """Register the emit callback; events arrive in capture order. Returns a disposer."""
        ...


class ReplayEngine(Protocol):
    def render(self, target: Any, events: Sequence[Any], dimensions: Viewport) -> Any:
        ...


@dataclass
class PageInfo:
    """What the metadata message reports about the recorded page."""
    url: str
    title: str = ""
    user_agent: str = ""
    viewport: Viewport = field(default_factory=Viewport)


def generate_session_id(now_ms: Optional[int] = None) -> str:
    """session_<creation time in epoch ms>_<9 random base-36 chars>"""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36) for _ in range(SESSION_SUFFIX_LENGTH))
    return f"session_{now_ms}_{suffix}"

"""
lifecycle.py — Page lifecycle signals as explicit subscriptions.

Two signals exist:
  "visibilitychange"  callback(hidden: bool)
  "teardown"          callback()

Whoever subscribes owns the returned Subscription and cancels it when done;
nothing is registered globally.
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

VISIBILITY_CHANGE = "visibilitychange"
TEARDOWN = "teardown"
SIGNALS = (VISIBILITY_CHANGE, TEARDOWN)


class Subscription:
    def __init__(self, lifecycle: "PageLifecycle", signal: str, callback: Callable[..., None]) -> None:
        self._lifecycle = lifecycle
        self.signal = signal
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._lifecycle._remove(self)


class PageLifecycle:
    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscription]] = {signal: [] for signal in SIGNALS}

    def subscribe(self, signal: str, callback: Callable[..., None]) -> Subscription:
        if signal not in self._subscribers:
            raise ValueError(f"Unknown lifecycle signal: {signal}")
        subscription = Subscription(self, signal, callback)
        self._subscribers[signal].append(subscription)
        return subscription

    def subscriber_count(self, signal: str) -> int:
        return len(self._subscribers[signal])

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers[subscription.signal]
        if subscription in subscribers:
            subscribers.remove(subscription)

    def _emit(self, signal: str, *args) -> None:
        # copy: callbacks may cancel their own subscription
        for subscription in list(self._subscribers[signal]):
            subscription.callback(*args)

    def set_hidden(self, hidden: bool) -> None:
        logger.debug("Page visibility changed hidden=%s", hidden)
        self._emit(VISIBILITY_CHANGE, hidden)

    def teardown(self) -> None:
        logger.debug("Page teardown")
        self._emit(TEARDOWN)

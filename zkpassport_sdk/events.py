"""Per-session lifecycle callbacks."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


class EventKind(Enum):
    """Lifecycle notifications a requester can subscribe to."""

    QR_CODE_SCANNED = "qr_code_scanned"
    GENERATING_PROOF = "generating_proof"
    PROOF_GENERATED = "proof_generated"
    REJECT = "reject"
    ERROR = "error"


class EventDispatcher:
    """Ordered callback lists for one session.

    Callbacks run synchronously in registration order.  A callback that raises
    is logged and skipped so its siblings still run.
    """

    def __init__(self, topic: str) -> None:
        self.topic = topic
        self._callbacks: Dict[EventKind, List[Callback]] = {kind: [] for kind in EventKind}

    def register(self, kind: EventKind, callback: Callback) -> None:
        if not callable(callback):
            raise TypeError(f"Callback for {kind.value} must be callable")
        self._callbacks[kind].append(callback)

    def has_callbacks(self, kind: EventKind) -> bool:
        return bool(self._callbacks[kind])

    def fire(self, kind: EventKind, *args: Any) -> int:
        """Invoke every callback registered for *kind*; return how many completed."""

        completed = 0
        for callback in list(self._callbacks[kind]):
            try:
                callback(*args)
            except Exception:
                logger.exception(
                    "Callback for %s raised",
                    kind.value,
                    extra={"topic": self.topic},
                )
                continue
            completed += 1
        return completed

    def clear(self) -> None:
        for callbacks in self._callbacks.values():
            callbacks.clear()

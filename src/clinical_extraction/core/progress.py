# ============================================================================
# src/clinical_extraction/core/progress.py
# ============================================================================
"""
Progress Channel

Best-effort, non-blocking progress reporting for a conversion.

- Stage transitions are always recorded.
- Token updates from the streaming path are coalesced: at most one per
  min_interval seconds reaches the buffer or the callback.
- The buffer is bounded; when full the oldest event is dropped.
- A failing callback is logged and never interrupts extraction.
"""

import time
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 256

TOKEN_STAGE = "tokens"


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    message: str
    timestamp: float = field(default_factory=time.time)
    chars_received: int = 0


class ProgressChannel:
    """
    Bounded progress event sequence with optional callback delivery.

    Usage:
        channel = ProgressChannel(callback=lambda e: print(e.message))
        result = await convert_document(text, client, progress=channel)
        for event in channel.events():
            ...
    """

    def __init__(
        self,
        callback: Optional[Callable[[ProgressEvent], None]] = None,
        min_interval: float = 0.5,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.min_interval = min_interval
        self._clock = clock
        self._events: Deque[ProgressEvent] = deque(maxlen=capacity)
        self._last_token_emit: Optional[float] = None
        self.dropped = 0

    def emit(self, stage: str, message: str) -> None:
        """Record a stage transition. Never throttled."""
        self._push(ProgressEvent(stage=stage, message=message))

    def token(self, chars_received: int) -> bool:
        """
        Record streaming progress, coalesced to min_interval.

        Returns:
            True if the update was delivered, False if it was coalesced
        """
        now = self._clock()
        if self._last_token_emit is not None and now - self._last_token_emit < self.min_interval:
            return False
        self._last_token_emit = now
        self._push(ProgressEvent(
            stage=TOKEN_STAGE,
            message=f"Received {chars_received} characters",
            chars_received=chars_received,
        ))
        return True

    def events(self) -> List[ProgressEvent]:
        """Snapshot of buffered events, oldest first."""
        return list(self._events)

    @property
    def last(self) -> Optional[ProgressEvent]:
        return self._events[-1] if self._events else None

    def _push(self, event: ProgressEvent) -> None:
        if len(self._events) == self._events.maxlen:
            self.dropped += 1
        self._events.append(event)

        if self.callback:
            try:
                self.callback(event)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

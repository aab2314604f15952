"""In-process broadcast channel for capture lifecycle events."""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

STATE_CHANGED = "stateChanged"
TRANSCRIPT_CHANGED = "transcriptChanged"
PROCESSING_START = "voiceProcessingStart"
PROCESSING_END = "voiceProcessingEnd"
REFRESH_PROCESSED_ITEMS = "refreshProcessedItems"

Listener = Callable[..., None]

class CaptureEventBus:
    """Minimal observer registry. A failing listener never breaks the controller."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def on(self, event_name: str, listener: Listener) -> Callable[[], None]:
        """Registers a listener and returns a function that removes it."""
        self._listeners[event_name].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event_name]:
                self._listeners[event_name].remove(listener)

        return unsubscribe

    def emit(self, event_name: str, **payload: Any) -> None:
        for listener in list(self._listeners[event_name]):
            try:
                listener(**payload)
            except Exception as e:
                logger.error(f"Listener for '{event_name}' failed: {e}", exc_info=True)

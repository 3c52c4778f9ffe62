"""Registry of in-flight chat relays.

Every relay registers under a key (its conversation id, or the caller's
user id when no conversation exists yet) and receives a stop event. A new
relay on the same key supersedes the old one by setting its stop event;
relays check the event between chunks.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Any

logger = logging.getLogger(__name__)


@dataclass
class StreamState:
    """State of an active stream."""
    stream_id: str
    stop_event: asyncio.Event
    user_id: Optional[str] = None
    started_at: float = field(default_factory=time.time)


class StreamingService:
    """Tracks one active relay per key."""

    def __init__(self):
        self._streams: Dict[str, StreamState] = {}

    def start_stream(self, key: str, user_id: Optional[str] = None) -> StreamState:
        """Register a new stream, superseding any stream already running on key."""
        previous = self._streams.get(key)
        if previous is not None:
            logger.info("[STREAMING] Superseding stream %s on %s", previous.stream_id, key)
            previous.stop_event.set()

        state = StreamState(
            stream_id=str(uuid.uuid4()),
            stop_event=asyncio.Event(),
            user_id=user_id,
        )
        self._streams[key] = state
        return state

    def end_stream(self, key: str, stream_id: Optional[str] = None) -> bool:
        """Unregister a stream.

        With stream_id, the entry is only removed if it still belongs to that
        stream, so a superseded relay never unregisters its successor.
        """
        state = self._streams.get(key)
        if state is None:
            return False
        if stream_id is not None and state.stream_id != stream_id:
            return False
        del self._streams[key]
        return True

    def is_streaming(self, key: str) -> bool:
        return key in self._streams

    def get_status(self, key: str) -> Dict[str, Any]:
        """Get the streaming status for a key."""
        state = self._streams.get(key)
        if state is None:
            return {"streaming": False, "stream_id": None, "elapsed_seconds": 0}
        return {
            "streaming": True,
            "stream_id": state.stream_id,
            "elapsed_seconds": time.time() - state.started_at,
        }

    def stop_stream(self, key: str) -> bool:
        """Signal the stream on key to stop. Returns False if none is running."""
        state = self._streams.get(key)
        if state is None:
            return False
        state.stop_event.set()
        return True

    def get_all_streaming(self) -> Dict[str, Dict[str, Any]]:
        return {key: self.get_status(key) for key in self._streams}


# Singleton instance
_streaming_service: Optional[StreamingService] = None


def get_streaming_service() -> StreamingService:
    """Get the singleton StreamingService instance."""
    global _streaming_service
    if _streaming_service is None:
        _streaming_service = StreamingService()
    return _streaming_service

"""
Session Progress Channel Module
===============================
Best-effort, at-most-once delivery of progress events to one subscriber
per session.

The registry is an injected service (the Flask app keeps one instance in
app.extensions) rather than a module-level map. All registry mutation goes
through a single lock because Flask serves requests on threads.

Usage:
    registry = SessionRegistry()

    # Consumer (SSE route)
    channel = registry.subscribe(session_id)
    for message in channel.listen(timeout=15):
        ...
    registry.unsubscribe(session_id, channel)

    # Producer (pipeline)
    registry.push(session_id, ProgressEvent(step=0, message="...", progress=5))
"""

import logging
import queue
import threading
from typing import Any, Dict, Iterator, List, Optional, Union

from ..models import CONNECTED_MESSAGE, ProgressEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class ProgressChannel:
    """
    A single subscriber's queue of pending messages.

    Push never blocks: the queue is unbounded and only drained by the
    consumer.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, message: Dict[str, Any]) -> bool:
        """Queue a message; returns False if the channel is already closed."""
        if self.closed:
            return False
        self._queue.put(message)
        return True

    def close(self) -> None:
        """Close the channel. Messages queued before closing are still delivered."""
        if not self.closed:
            self._closed.set()
            self._queue.put(_CLOSED)

    def listen(self, timeout: Optional[float] = None) -> Iterator[Optional[Dict[str, Any]]]:
        """
        Yield queued messages until the channel is closed.

        Yields None whenever `timeout` seconds pass without a message, so the
        caller can emit a keep-alive.
        """
        while True:
            try:
                message = self._queue.get(timeout=timeout)
            except queue.Empty:
                yield None
                continue
            if message is _CLOSED:
                return
            yield message

    def drain(self) -> List[Dict[str, Any]]:
        """Return every message queued so far without blocking."""
        messages = []
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                return messages
            if message is not _CLOSED:
                messages.append(message)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<ProgressChannel {self.session_id} ({state})>"


class SessionRegistry:
    """Maps session ids to their single open ProgressChannel."""

    def __init__(self):
        self._channels: Dict[str, ProgressChannel] = {}
        self._lock = threading.Lock()

    def subscribe(self, session_id: str) -> ProgressChannel:
        """
        Register a new channel for a session.

        The channel starts with a {"type": "connected"} message. A previous
        channel for the same id is replaced and closed (last writer wins).
        """
        channel = ProgressChannel(session_id)
        channel.send(dict(CONNECTED_MESSAGE))

        with self._lock:
            previous = self._channels.get(session_id)
            self._channels[session_id] = channel

        if previous is not None:
            logger.info(f"Replacing progress channel for session {session_id}")
            previous.close()

        logger.debug(f"Client subscribed to session {session_id}")
        return channel

    def push(self, session_id: Optional[str], event: Union[ProgressEvent, Dict[str, Any]]) -> bool:
        """
        Deliver an event to the session's channel if one is registered.

        Returns:
            True if the event was queued, False if it was dropped
        """
        if not session_id:
            return False

        with self._lock:
            channel = self._channels.get(session_id)

        if channel is None:
            return False

        message = event.to_message() if isinstance(event, ProgressEvent) else event
        return channel.send(message)

    def unsubscribe(self, session_id: str, channel: Optional[ProgressChannel] = None) -> bool:
        """
        Remove a session's channel.

        When `channel` is given, only that exact channel is removed; a stale
        handle never removes a newer registration.
        """
        with self._lock:
            current = self._channels.get(session_id)
            if current is None or (channel is not None and current is not channel):
                return False
            del self._channels[session_id]

        current.close()
        logger.debug(f"Client unsubscribed from session {session_id}")
        return True

    def close(self, session_id: Optional[str]) -> bool:
        """Close and remove a session's channel once processing has finished."""
        if not session_id:
            return False
        with self._lock:
            channel = self._channels.pop(session_id, None)
        if channel is None:
            return False
        channel.close()
        return True

    def active_sessions(self) -> List[str]:
        with self._lock:
            return sorted(self._channels)

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._channels

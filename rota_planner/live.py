# -*- coding: utf-8 -*-
"""
Live snapshot subscriptions.

A feed pushes the full current contents of a collection to every subscriber
whenever it changes. Each subscription returns a handle whose unsubscribe()
releases the listener; calling it twice is harmless.
"""

import threading
import logging
from typing import Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SnapshotCallback = Callable[[List[T]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """Cancellation handle returned by every subscribe call."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self._active = True
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._cancel()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unsubscribe()


class _Listener(Generic[T]):
    def __init__(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback]):
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.last_version = -1


class SnapshotFeed(Generic[T]):
    """
    In-process observable over one collection.

    `loader` produces the current snapshot. publish() reloads it and delivers it
    tagged with an increasing version; a listener never receives a version older
    than one it has already seen.
    """

    def __init__(self, name: str, loader: Callable[[], List[T]]):
        self.name = name
        self._loader = loader
        self._listeners: Dict[int, _Listener[T]] = {}
        self._next_id = 0
        self._version = 0
        self._lock = threading.RLock()

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Subscription:
        """Register a listener and immediately deliver the current snapshot."""
        with self._lock:
            listener_id = self._next_id
            self._next_id += 1
            listener = _Listener(on_snapshot, on_error)
            self._listeners[listener_id] = listener

        subscription = Subscription(lambda: self._remove(listener_id))
        self._deliver_to(listener, *self._load())
        return subscription

    def publish(self) -> None:
        """Reload the snapshot and push it to every listener."""
        version, snapshot, error = self._load()
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            self._deliver_to(listener, version, snapshot, error)

    def close(self) -> None:
        with self._lock:
            self._listeners.clear()

    def _remove(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)

    def _load(self):
        with self._lock:
            self._version += 1
            version = self._version
            try:
                return version, self._loader(), None
            except Exception as e:
                return version, None, e

    def _deliver_to(self, listener: _Listener[T], version: int, snapshot, error) -> None:
        if version <= listener.last_version:
            return
        listener.last_version = version
        try:
            if error is not None:
                logger.error(f"Snapshot load failed for '{self.name}': {error}")
                if listener.on_error:
                    listener.on_error(error)
                return
            listener.on_snapshot(snapshot)
        except Exception:
            # A broken listener must not fail the write that triggered it
            logger.exception(f"Listener on '{self.name}' raised while handling version {version}")

"""Cancellation tokens, bounded channels and stage groups for the backup pipeline.

Stages run on OS threads. Every blocking channel operation polls its token at
``POLL_INTERVAL`` so that, once cancellation is signalled, no stage waits on a
full or empty channel for longer than one interval.
"""

from __future__ import annotations

import contextvars
import threading
import time
from queue import Empty, Full, Queue
from typing import Any, Callable, Generic, Iterator, List, Optional, TypeVar

from clusterbackup.core.exceptions import PipelineCancelled

T = TypeVar("T")

POLL_INTERVAL = 0.05


class CancelToken:
    """A cancellation signal with an optional deadline and an optional parent.

    A token is cancelled when ``cancel()`` was called on it or on any ancestor,
    or when its own (or an ancestor's) deadline has passed. Deadline expiry is
    reported like any other cancellation.
    """

    def __init__(self, *, parent: Optional["CancelToken"] = None, deadline: Optional[float] = None):
        self._parent = parent
        self._deadline = deadline
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    @classmethod
    def with_timeout(cls, seconds: float, *, parent: Optional["CancelToken"] = None) -> "CancelToken":
        return cls(parent=parent, deadline=time.monotonic() + seconds)

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> Optional[str]:
        if not self.cancelled:
            return None
        if self._event.is_set():
            return self._reason
        return self._parent.reason if self._parent is not None else None

    def raise_if_cancelled(self, stage: str) -> None:
        if self.cancelled:
            raise PipelineCancelled(stage, self.reason)

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early (True) on cancellation."""
        end = time.monotonic() + timeout
        while not self.cancelled:
            remaining = end - time.monotonic()
            if remaining <= 0:
                return False
            self._event.wait(min(remaining, POLL_INTERVAL))
        return True


class ChannelClosed(Exception):
    """Raised by ``Channel.receive`` once the channel is closed and drained."""


class Channel(Generic[T]):
    """Bounded multi-producer/multi-consumer channel with close semantics.

    Producers must call ``close()`` after their last ``send``; receivers then
    drain what is buffered and get ``ChannelClosed``.
    """

    def __init__(self, capacity: int, *, name: str = "channel"):
        self.name = name
        self._q: Queue[T] = Queue(maxsize=max(1, capacity))
        self._closed = threading.Event()

    @property
    def capacity(self) -> int:
        return self._q.maxsize

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, item: T, token: CancelToken, *, stage: str = "send") -> None:
        if self._closed.is_set():
            raise RuntimeError(f"send on closed channel {self.name}")
        while True:
            token.raise_if_cancelled(stage)
            try:
                self._q.put(item, timeout=POLL_INTERVAL)
                return
            except Full:
                continue

    def receive(self, token: CancelToken, *, stage: str = "receive") -> T:
        while True:
            token.raise_if_cancelled(stage)
            try:
                return self._q.get(timeout=POLL_INTERVAL)
            except Empty:
                if not self._closed.is_set():
                    continue
            # Closed: everything sent before close() is already buffered.
            try:
                return self._q.get_nowait()
            except Empty:
                raise ChannelClosed(self.name) from None

    def iterate(self, token: CancelToken, *, stage: str = "receive") -> Iterator[T]:
        """Yield items until the channel is closed and drained; raises on cancellation."""
        while True:
            try:
                yield self.receive(token, stage=stage)
            except ChannelClosed:
                return


class StageGroup:
    """Run callables on threads under one child cancellation token.

    The first exception raised by any member cancels the token (and so every
    sibling) and is re-raised by ``wait()``. Members receive the group token
    as their first argument.
    """

    def __init__(self, token: CancelToken, *, name: str = "stage-group"):
        self.name = name
        self.token = token.child()
        self._threads: List[threading.Thread] = []
        self._first_error: Optional[BaseException] = None
        self._lock = threading.Lock()

    def go(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ctx = contextvars.copy_context()

        def _target() -> None:
            try:
                ctx.run(fn, self.token, *args, **kwargs)
            except BaseException as exc:
                with self._lock:
                    if self._first_error is None:
                        self._first_error = exc
                self.token.cancel(f"{name} failed: {exc}")

        thread = threading.Thread(target=_target, name=f"{self.name}:{name}", daemon=True)
        self._threads.append(thread)
        thread.start()

    def wait(self) -> None:
        for thread in self._threads:
            thread.join()
        if self._first_error is not None:
            raise self._first_error

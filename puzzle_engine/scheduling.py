"""Frame scheduling and pointer subscription collaborators.

The controller never reaches for a global animation-frame or listener registry.
A frame scheduler and an optional pointer source are handed to it and owned by
the session.
"""

import itertools
from typing import Callable, Dict, Iterator, Protocol

FrameCallback = Callable[[], None]
PointerMoveHandler = Callable[[float, float], None]
PointerEndHandler = Callable[[], None]


class FrameScheduler(Protocol):
    """Runs callbacks once before the next display refresh."""

    def request(self, callback: FrameCallback) -> int:
        """Schedule ``callback`` for the next frame and return a handle."""
        ...

    def cancel(self, handle: int) -> None:
        """Drop a scheduled callback; unknown handles are ignored."""
        ...


class PointerSource(Protocol):
    """Stream of pointer updates delivered while a drag is active."""

    def subscribe(self, on_move: PointerMoveHandler, on_end: PointerEndHandler) -> Callable[[], None]:
        """Start delivering pointer events and return a function that stops delivery."""
        ...


class ManualFrameScheduler:
    """Frame scheduler driven by an explicit game loop.

    Call :meth:`run_pending` once per display refresh, e.g. after
    ``clock.tick(FPS)`` in a pygame loop.
    """

    def __init__(self) -> None:
        self._counter: Iterator[int] = itertools.count(1)
        self._pending: Dict[int, FrameCallback] = {}

    def request(self, callback: FrameCallback) -> int:
        handle = next(self._counter)
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: int) -> None:
        self._pending.pop(handle, None)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def run_pending(self) -> int:
        """Run every callback scheduled before this call; return how many ran."""
        callbacks = list(self._pending.values())
        self._pending.clear()
        for callback in callbacks:
            callback()
        return len(callbacks)


class ImmediateFrameScheduler:
    """Runs each callback as soon as it is requested; useful without a render loop."""

    def __init__(self) -> None:
        self._counter: Iterator[int] = itertools.count(1)

    def request(self, callback: FrameCallback) -> int:
        callback()
        return next(self._counter)

    def cancel(self, handle: int) -> None:
        return None

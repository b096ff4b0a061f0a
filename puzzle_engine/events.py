"""Notifications published by the interaction controller."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional, Type, TypeVar

from .models import Cell, Piece

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PiecePlaced:
    """A piece snapped into its home cell."""

    piece: Piece
    row: int
    col: int


@dataclass(frozen=True)
class PuzzleCompleted:
    """Every cell of the board is filled."""


@dataclass(frozen=True)
class DragMoved:
    """The dragged piece moved; emitted at most once per frame."""

    piece: Piece
    x: float
    y: float
    highlight_cell: Optional[Cell]


E = TypeVar("E")
Handler = Callable[[Any], None]


class EventBus:
    """Synchronous publish/subscribe for controller events.

    Handlers run in subscription order on the caller's thread. Exceptions raised
    by a handler propagate to the code that triggered the event.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register ``handler`` for ``event_type`` and return a function that removes it."""
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers[event_type]
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: object) -> None:
        handlers = list(self._handlers[type(event)])
        logger.debug("Publishing %s to %d handler(s)", type(event).__name__, len(handlers))
        for handler in handlers:
            handler(event)

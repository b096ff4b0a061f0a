"""Drag, snap, tray replenishment and win detection for one puzzle session."""

import logging
import random
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from .edge_grid import RandomSource
from .events import DragMoved, EventBus, PiecePlaced, PuzzleCompleted
from .models import BoardRect, Cell, InteractionState, Piece, PieceDescriptor, Point
from .scheduling import FrameScheduler, ManualFrameScheduler, PointerSource
from .schemas import CellModel, EdgesModel, PieceModel, PuzzleSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

SNAP_THRESHOLD_RATIO = 0.4
TRAY_SLOT_COUNT = 4


def shuffle_pieces(items: Sequence[T], random_source: RandomSource) -> List[T]:
    """Return a uniformly shuffled copy of ``items`` (Fisher-Yates)."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(random_source() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def fill_empty_slots(
    pool: Sequence[Piece],
    slots: Sequence[Optional[int]],
    random_source: RandomSource,
) -> List[Optional[int]]:
    """Fill every empty tray slot with a random piece not shown in another slot.

    Pieces are drawn without replacement. When fewer pieces remain than empty
    slots, the surplus slots stay ``None``.
    """
    new_slots = list(slots)
    available = [piece for piece in pool if piece.id not in slots]

    for i, slot in enumerate(new_slots):
        if slot is None and available:
            index = int(random_source() * len(available))
            new_slots[i] = available.pop(index).id
    return new_slots


def _piece_model(piece: Piece) -> PieceModel:
    edges = EdgesModel(
        top=int(piece.edges.top),
        right=int(piece.edges.right),
        bottom=int(piece.edges.bottom),
        left=int(piece.edges.left),
    )
    return PieceModel(id=piece.id, row=piece.row, col=piece.col, edges=edges)


class InteractionController:
    """State machine driving pieces from the pool through the tray onto the board.

    A piece is pooled, shown in a tray slot, optionally dragged, then placed.
    While dragged it still occupies its tray slot until the drop resolves. Only
    one piece can be dragged at a time.
    """

    def __init__(
        self,
        descriptors: Sequence[PieceDescriptor],
        rows: int,
        cols: int,
        *,
        measure_board: Optional[Callable[[], Optional[BoardRect]]] = None,
        scheduler: Optional[FrameScheduler] = None,
        pointer_source: Optional[PointerSource] = None,
        events: Optional[EventBus] = None,
        random_source: Optional[RandomSource] = None,
        snap_threshold_ratio: float = SNAP_THRESHOLD_RATIO,
        tray_slot_count: int = TRAY_SLOT_COUNT,
    ):
        """Initialize the controller and deal the first tray.

        Args:
            descriptors: Piece descriptors in row-major order.
            rows: Number of piece rows.
            cols: Number of piece columns.
            measure_board: Returns the board's screen rectangle, or None while the
                board is not mounted. The result is cached until invalidated.
            scheduler: Frame scheduler used to coalesce drag moves.
            pointer_source: Optional pointer stream subscribed for each drag.
            events: Event bus receiving placement, completion and drag events.
            random_source: Callable returning floats in [0, 1).
            snap_threshold_ratio: Per-axis snap distance relative to piece size.
            tray_slot_count: Number of visible tray slots.
        """
        if len(descriptors) != rows * cols:
            raise ValueError(f"expected {rows * cols} descriptors for a {rows}x{cols} puzzle, got {len(descriptors)}")

        self.descriptors = tuple(descriptors)
        self.rows = rows
        self.cols = cols
        self.snap_threshold_ratio = snap_threshold_ratio
        self.tray_slot_count = tray_slot_count
        self.events = events if events is not None else EventBus()

        self._measure_board = measure_board
        self._scheduler: FrameScheduler = scheduler if scheduler is not None else ManualFrameScheduler()
        self._pointer_source = pointer_source
        self._random = random_source if random_source is not None else random.random

        self._board_rect: Optional[BoardRect] = None
        self._pending_position: Optional[Point] = None
        self._frame_pending = False
        self._frame_handle: Optional[int] = None
        self._release_pointer: Optional[Callable[[], None]] = None

        self.state = InteractionState()
        self.reset()

    @property
    def total_pieces(self) -> int:
        return self.rows * self.cols

    def reset(self) -> None:
        """Reshuffle every piece into the pool and deal a fresh tray."""
        self._release_drag()
        pieces = [Piece.from_descriptor(index, descriptor) for index, descriptor in enumerate(self.descriptors)]
        shuffled = shuffle_pieces(pieces, self._random)

        slots: List[Optional[int]] = [piece.id for piece in shuffled[: self.tray_slot_count]]
        slots.extend([None] * (self.tray_slot_count - len(slots)))

        self.state = InteractionState(pool=shuffled, tray_slots=slots)
        logger.info("Dealt %dx%d puzzle, tray %s", self.rows, self.cols, slots)

    # Board measurement

    def board_rect(self) -> Optional[BoardRect]:
        """Board rectangle, measured lazily and cached until invalidated."""
        if self._board_rect is None and self._measure_board is not None:
            self._board_rect = self._measure_board()
        return self._board_rect

    def invalidate_board_rect(self) -> None:
        """Forget the cached board rectangle (call on resize or scroll)."""
        self._board_rect = None

    def piece_size(self) -> Optional[float]:
        rect = self.board_rect()
        if rect is None:
            return None
        return rect.width / self.cols

    def snap_target(self, piece: Piece, x: float, y: float) -> Optional[Cell]:
        """Return the piece's home cell if the pointer is close enough to it.

        Only the home cell is considered. Both axis distances between the pointer
        and the cell centre must be strictly below the snap threshold, and the
        cell must still be free. An unmeasurable board never matches.
        """
        rect = self.board_rect()
        if rect is None:
            return None

        size = rect.width / self.cols
        threshold = size * self.snap_threshold_ratio
        dist_x = abs(x - rect.left - (piece.col * size + size / 2))
        dist_y = abs(y - rect.top - (piece.row * size + size / 2))

        if dist_x < threshold and dist_y < threshold and piece.cell_key not in self.state.placed:
            return piece.cell
        return None

    # Drag protocol

    def drag_start(self, piece_id: int, x: float, y: float, piece_center: Optional[Point] = None) -> bool:
        """Begin dragging a tray piece.

        Args:
            piece_id: Id of a piece currently shown in a tray slot.
            x: Pointer x in screen coordinates.
            y: Pointer y in screen coordinates.
            piece_center: Visual centre of the piece on screen; the pointer offset
                from it is kept for rendering.

        Returns:
            True if the drag started; False if another drag is active or the piece
            is not in the tray.
        """
        if self.state.dragging is not None:
            logger.debug("Ignoring drag start of piece %d: piece %d is being dragged", piece_id, self.state.dragging.id)
            return False

        piece = self._tray_piece(piece_id)
        if piece is None:
            logger.debug("Ignoring drag start of piece %d: not in tray", piece_id)
            return False

        center = piece_center if piece_center is not None else (x, y)
        self.invalidate_board_rect()
        self.state.dragging = piece
        self.state.drag_position = (x, y)
        self.state.drag_offset = (x - center[0], y - center[1])
        self.state.highlight_cell = None

        if self._pointer_source is not None:
            self._release_pointer = self._pointer_source.subscribe(self.drag_move, self._on_pointer_end)
        return True

    def drag_move(self, x: float, y: float) -> None:
        """Record a pointer move; only the latest position is processed per frame."""
        if self.state.dragging is None:
            return

        self._pending_position = (x, y)
        if not self._frame_pending:
            self._frame_pending = True
            handle = self._scheduler.request(self._process_frame)
            if self._frame_pending:
                self._frame_handle = handle

    def drag_end(self, x: Optional[float] = None, y: Optional[float] = None) -> bool:
        """Drop the dragged piece.

        The snap test runs against the given position, else the latest pointer
        position. Dropping without an active drag is a no-op.

        Returns:
            True if the piece was placed.
        """
        piece = self.state.dragging
        if piece is None:
            return False

        if x is not None and y is not None:
            position: Optional[Point] = (x, y)
        elif self._pending_position is not None:
            position = self._pending_position
        else:
            position = self.state.drag_position

        target = self.snap_target(piece, *position) if position is not None else None
        self._release_drag()

        if target is None:
            logger.debug("Piece %d returned to tray", piece.id)
            return False

        self._place(piece)
        return True

    def drag_cancel(self) -> None:
        """Abort the active drag; the piece stays in its tray slot."""
        self._release_drag()

    # Queries

    @property
    def remaining_count(self) -> int:
        return len(self.state.pool)

    @property
    def placed_count(self) -> int:
        return len(self.state.placed)

    @property
    def complete(self) -> bool:
        return self.state.complete

    def tray_pieces(self) -> List[Optional[Piece]]:
        """Pieces shown in the tray, with None for empty slots."""
        by_id = {piece.id: piece for piece in self.state.pool}
        return [by_id.get(piece_id) if piece_id is not None else None for piece_id in self.state.tray_slots]

    def placed_pieces(self) -> Dict[str, Piece]:
        return dict(self.state.placed)

    def snapshot(self) -> PuzzleSnapshot:
        state = self.state
        return PuzzleSnapshot(
            rows=self.rows,
            cols=self.cols,
            total_pieces=self.total_pieces,
            placed_count=self.placed_count,
            remaining_count=self.remaining_count,
            tray=[_piece_model(piece) if piece is not None else None for piece in self.tray_pieces()],
            placed={key: _piece_model(piece) for key, piece in state.placed.items()},
            dragging=_piece_model(state.dragging) if state.dragging is not None else None,
            highlight_cell=(
                CellModel(row=state.highlight_cell[0], col=state.highlight_cell[1])
                if state.highlight_cell is not None
                else None
            ),
            complete=state.complete,
        )

    # Internals

    def _tray_piece(self, piece_id: int) -> Optional[Piece]:
        if piece_id not in self.state.tray_slots:
            return None
        for piece in self.state.pool:
            if piece.id == piece_id:
                return piece
        return None

    def _process_frame(self) -> None:
        self._frame_pending = False
        self._frame_handle = None
        position = self._pending_position
        self._pending_position = None
        piece = self.state.dragging
        if piece is None or position is None:
            return

        self.state.drag_position = position
        highlight = self.snap_target(piece, *position)
        self.state.highlight_cell = highlight
        self.events.publish(DragMoved(piece=piece, x=position[0], y=position[1], highlight_cell=highlight))

    def _on_pointer_end(self) -> None:
        self.drag_end()

    def _release_drag(self) -> None:
        self.state.dragging = None
        self.state.highlight_cell = None
        self._pending_position = None
        if self._frame_handle is not None:
            self._scheduler.cancel(self._frame_handle)
        self._frame_handle = None
        self._frame_pending = False
        if self._release_pointer is not None:
            release, self._release_pointer = self._release_pointer, None
            release()

    def _place(self, piece: Piece) -> None:
        state = self.state
        state.placed[piece.cell_key] = piece
        state.pool = [p for p in state.pool if p.id != piece.id]
        slots = [None if slot == piece.id else slot for slot in state.tray_slots]
        state.tray_slots = fill_empty_slots(state.pool, slots, self._random)
        was_complete = state.complete
        state.complete = len(state.placed) == self.total_pieces
        logger.debug("Placed piece %d at %s, tray now %s", piece.id, piece.cell_key, state.tray_slots)
        if state.complete and not was_complete:
            logger.info("Puzzle %dx%d complete", self.rows, self.cols)

        # Handlers may restart the puzzle; completion belongs to the state that was filled
        self.events.publish(PiecePlaced(piece=piece, row=piece.row, col=piece.col))
        if state.complete and not was_complete and self.state is state:
            self.events.publish(PuzzleCompleted())

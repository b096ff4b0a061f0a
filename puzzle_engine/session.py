"""One puzzle's lifetime: edges, cached geometry and interaction state."""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from .config import Settings, get_settings
from .controller import InteractionController
from .edge_grid import RandomSource, generate_puzzle_edges
from .events import EventBus
from .geometry import PathCache, generate_grid_lines_path
from .models import BoardRect, PathData, Piece, Point
from .scheduling import FrameScheduler, ManualFrameScheduler, PointerSource

logger = logging.getLogger(__name__)


def compute_board_size(viewport_width: float, viewport_height: float, settings: Optional[Settings] = None) -> float:
    """Largest square board that fits the viewport next to the header and tray."""
    settings = settings or get_settings()
    available_width = viewport_width - settings.BOARD_MARGIN
    available_height = viewport_height - settings.HEADER_ALLOWANCE
    return max(0.0, min(available_width, available_height, settings.MAX_BOARD_SIZE))


def tray_slot_size(piece_size: float, knob_ratio: float) -> float:
    """Side of a tray slot large enough for a piece with knobs on both sides."""
    return piece_size * (1 + 2 * knob_ratio) + 4


class PuzzleSession:
    """Owns everything tied to one active puzzle.

    The session generates the edge layout, memoizes piece outlines and the hint
    overlay, and holds the interaction controller together with the collaborators
    it drives (frame scheduler, pointer source, event bus).
    """

    def __init__(
        self,
        grid_size: Optional[int] = None,
        image: Any = None,
        show_hint: bool = True,
        board_size: Optional[float] = None,
        *,
        settings: Optional[Settings] = None,
        random_source: Optional[RandomSource] = None,
        measure_board: Optional[Callable[[], Optional[BoardRect]]] = None,
        scheduler: Optional[FrameScheduler] = None,
        pointer_source: Optional[PointerSource] = None,
        events: Optional[EventBus] = None,
    ):
        """Initialize a session.

        Args:
            grid_size: Pieces per side; defaults to ``settings.DEFAULT_GRID_SIZE``.
            image: Opaque image handle passed through to the renderer.
            show_hint: Whether the renderer shows the hint image and overlay.
            board_size: Board side in pixels; defaults to ``settings.MAX_BOARD_SIZE``.
            settings: Engine settings; defaults to the cached environment settings.
            random_source: Callable returning floats in [0, 1).
            measure_board: Returns the board's screen rectangle. Defaults to a
                board-local rectangle at the origin, so pointer positions are
                then taken relative to the board.
            scheduler: Frame scheduler for drag moves.
            pointer_source: Pointer stream subscribed while dragging.
            events: Event bus shared with the renderer.

        Raises:
            ValueError: If ``grid_size`` is not a supported size.
        """
        self.settings = settings or get_settings()
        logging.getLogger("puzzle_engine").setLevel(self.settings.LOG_LEVEL)

        grid_size = grid_size if grid_size is not None else self.settings.DEFAULT_GRID_SIZE
        if grid_size not in self.settings.SUPPORTED_GRID_SIZES:
            raise ValueError(f"grid size {grid_size} is not one of {self.settings.SUPPORTED_GRID_SIZES}")

        self.grid_size = grid_size
        self.image = image
        self.show_hint = show_hint
        self.board_size = float(board_size if board_size is not None else self.settings.MAX_BOARD_SIZE)
        self.events = events if events is not None else EventBus()
        self.scheduler: FrameScheduler = scheduler if scheduler is not None else ManualFrameScheduler()

        self._random_source = random_source
        self._measure_board = measure_board
        self._pointer_source = pointer_source
        self._path_cache = PathCache(knob_ratio=self.settings.KNOB_RATIO)
        self._grid_lines: Dict[float, str] = {}

        self.descriptors = generate_puzzle_edges(grid_size, grid_size, random_source)
        self.controller = self._new_controller()

    def _new_controller(self) -> InteractionController:
        return InteractionController(
            self.descriptors,
            self.grid_size,
            self.grid_size,
            measure_board=self._measure_board or self._board_local_rect,
            scheduler=self.scheduler,
            pointer_source=self._pointer_source,
            events=self.events,
            random_source=self._random_source,
            snap_threshold_ratio=self.settings.SNAP_THRESHOLD_RATIO,
            tray_slot_count=self.settings.TRAY_SLOT_COUNT,
        )

    def _board_local_rect(self) -> BoardRect:
        return BoardRect(0.0, 0.0, self.board_size, self.board_size)

    @property
    def piece_size(self) -> float:
        return self.board_size / self.grid_size

    @property
    def slot_size(self) -> float:
        return tray_slot_size(self.piece_size, self.settings.KNOB_RATIO)

    @property
    def progress(self) -> Tuple[int, int]:
        """(placed pieces, total pieces)."""
        return self.controller.placed_count, self.controller.total_pieces

    def resize(self, viewport_width: float, viewport_height: float) -> float:
        """Fit the board to a new viewport and drop the cached board rectangle."""
        self.board_size = compute_board_size(viewport_width, viewport_height, self.settings)
        self.controller.invalidate_board_rect()
        return self.board_size

    def piece_path(self, piece: Piece) -> PathData:
        return self._path_cache.get(self.piece_size, piece.edges)

    def grid_lines(self) -> str:
        """Hint overlay path for the current board size."""
        path = self._grid_lines.get(self.board_size)
        if path is None:
            path = generate_grid_lines_path(self.board_size, self.grid_size, self.descriptors, self.settings.KNOB_RATIO)
            self._grid_lines[self.board_size] = path
        return path

    def image_origin(self, piece: Piece) -> Point:
        """Where the full image goes inside the piece's bounding box."""
        path_data = self.piece_path(piece)
        size = self.piece_size
        return (-piece.col * size + path_data.offset_x, -piece.row * size + path_data.offset_y)

    def placed_position(self, piece: Piece) -> Point:
        """Board-local top-left of a placed piece's bounding box."""
        path_data = self.piece_path(piece)
        size = self.piece_size
        return (piece.col * size - path_data.offset_x, piece.row * size - path_data.offset_y)

    def play_again(self) -> None:
        """Reshuffle the same puzzle."""
        logger.info("Restarting %dx%d puzzle", self.grid_size, self.grid_size)
        self.controller.reset()

    def next_puzzle(self, image: Any = None) -> None:
        """Start a new puzzle with fresh edges, optionally on a new image."""
        if image is not None:
            self.image = image
        self.descriptors = generate_puzzle_edges(self.grid_size, self.grid_size, self._random_source)
        self._path_cache.clear()
        self._grid_lines.clear()
        self.controller.drag_cancel()
        self.controller = self._new_controller()
        logger.info("Started new %dx%d puzzle", self.grid_size, self.grid_size)

"""Puzzle engine - geometry and interaction core of a drag-and-drop jigsaw game.

This package generates interlocking edge layouts, turns them into piece outlines
and a matching hint overlay, and runs the drag/snap/tray state machine.
"""

from .config import Settings, get_settings
from .controller import InteractionController, fill_empty_slots, shuffle_pieces
from .edge_grid import (
    SeamGrid,
    build_descriptors,
    descriptor_at,
    generate_puzzle_edges,
    generate_seams,
    get_edge_type_for_piece,
    get_opposite_edge_type,
)
from .events import DragMoved, EventBus, PiecePlaced, PuzzleCompleted
from .geometry import (
    KNOB_RATIO,
    PathCache,
    edge_curve,
    generate_grid_lines_path,
    generate_piece_path,
    grid_line_segments,
    piece_edge_segments,
)
from .models import (
    BezierCurve,
    BoardRect,
    EdgeType,
    InteractionState,
    PathData,
    PathSegment,
    Piece,
    PieceDescriptor,
    PieceEdges,
    cell_key,
)
from .raster import create_piece_mask, cut_piece, outline_to_polylines, render_grid_overlay
from .scheduling import FrameScheduler, ImmediateFrameScheduler, ManualFrameScheduler, PointerSource
from .schemas import PuzzleSnapshot
from .session import PuzzleSession, compute_board_size, tray_slot_size

__all__ = [
    # Models
    "EdgeType",
    "PieceEdges",
    "PieceDescriptor",
    "Piece",
    "PathSegment",
    "PathData",
    "BoardRect",
    "InteractionState",
    "BezierCurve",
    "cell_key",
    # Edge grid
    "SeamGrid",
    "generate_seams",
    "build_descriptors",
    "generate_puzzle_edges",
    "descriptor_at",
    "get_edge_type_for_piece",
    "get_opposite_edge_type",
    # Geometry
    "KNOB_RATIO",
    "edge_curve",
    "piece_edge_segments",
    "generate_piece_path",
    "grid_line_segments",
    "generate_grid_lines_path",
    "PathCache",
    # Interaction
    "InteractionController",
    "shuffle_pieces",
    "fill_empty_slots",
    "EventBus",
    "PiecePlaced",
    "PuzzleCompleted",
    "DragMoved",
    "FrameScheduler",
    "ManualFrameScheduler",
    "ImmediateFrameScheduler",
    "PointerSource",
    "PuzzleSnapshot",
    # Session
    "PuzzleSession",
    "compute_board_size",
    "tray_slot_size",
    # Rasterization
    "outline_to_polylines",
    "create_piece_mask",
    "cut_piece",
    "render_grid_overlay",
    # Configuration
    "Settings",
    "get_settings",
]

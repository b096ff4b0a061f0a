"""Edge grid generation for interlocking puzzle pieces.

Each interior seam is decided once and shared between the two adjacent pieces,
which see it with opposite types. Border edges are flat.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from .models import EdgeType, PieceDescriptor, PieceEdges

logger = logging.getLogger(__name__)

RandomSource = Callable[[], float]


@dataclass(frozen=True)
class SeamGrid:
    """Decided tab/blank values of every interior seam.

    The grid stores seams in two 2D tuples:
    - horizontal: (rows-1) x cols - horizontal[r][c] lies below piece (r, c)
    - vertical: rows x (cols-1) - vertical[r][c] lies right of piece (r, c)

    A stored value is the edge type seen by the piece above / to the left.
    """

    rows: int
    cols: int
    horizontal: Tuple[Tuple[EdgeType, ...], ...]
    vertical: Tuple[Tuple[EdgeType, ...], ...]

    @property
    def seam_count(self) -> int:
        return sum(len(row) for row in self.horizontal) + sum(len(row) for row in self.vertical)


def _draw_seam(random_source: RandomSource) -> EdgeType:
    return EdgeType.TAB if random_source() > 0.5 else EdgeType.BLANK


def generate_seams(rows: int, cols: int, random_source: Optional[RandomSource] = None) -> SeamGrid:
    """Draw an independent 50/50 tab/blank choice for every interior seam.

    Args:
        rows: Number of piece rows.
        cols: Number of piece columns.
        random_source: Callable returning floats in [0, 1). Defaults to ``random.random``.

    Returns:
        The decided seam grid.

    Raises:
        ValueError: If ``rows`` or ``cols`` is not a positive integer.
    """
    if rows <= 0 or cols <= 0:
        raise ValueError("rows and cols must be positive integers")
    if random_source is None:
        random_source = random.random

    horizontal = tuple(tuple(_draw_seam(random_source) for _c in range(cols)) for _r in range(rows - 1))
    vertical = tuple(tuple(_draw_seam(random_source) for _c in range(cols - 1)) for _r in range(rows))
    return SeamGrid(rows=rows, cols=cols, horizontal=horizontal, vertical=vertical)


def get_edge_type_for_piece(
    seams: SeamGrid,
    row: int,
    col: int,
    position: Literal["top", "right", "bottom", "left"],
) -> EdgeType:
    """Get the effective edge type of one side of a piece.

    Bottom and right sides read the stored seam directly. Top and left sides are
    derived from the seam of the piece above / to the left, so they see the
    opposite type.
    """
    if position == "top":
        return EdgeType.FLAT if row == 0 else seams.horizontal[row - 1][col].opposite()
    if position == "left":
        return EdgeType.FLAT if col == 0 else seams.vertical[row][col - 1].opposite()
    if position == "bottom":
        return EdgeType.FLAT if row == seams.rows - 1 else seams.horizontal[row][col]
    return EdgeType.FLAT if col == seams.cols - 1 else seams.vertical[row][col]


def build_descriptors(seams: SeamGrid) -> Tuple[PieceDescriptor, ...]:
    """Build one descriptor per piece in row-major order."""
    descriptors: List[PieceDescriptor] = []
    for row in range(seams.rows):
        for col in range(seams.cols):
            edges = PieceEdges(
                top=get_edge_type_for_piece(seams, row, col, "top"),
                right=get_edge_type_for_piece(seams, row, col, "right"),
                bottom=get_edge_type_for_piece(seams, row, col, "bottom"),
                left=get_edge_type_for_piece(seams, row, col, "left"),
            )
            descriptors.append(PieceDescriptor(row=row, col=col, edges=edges))
    return tuple(descriptors)


def generate_puzzle_edges(
    rows: int,
    cols: int,
    random_source: Optional[RandomSource] = None,
) -> Tuple[PieceDescriptor, ...]:
    """Generate the edge configuration of every piece of a rows x cols puzzle.

    Adjacent pieces always interlock: for every interior boundary the two facing
    edges are exact opposites, because both are derived from the same seam.

    Args:
        rows: Number of piece rows.
        cols: Number of piece columns.
        random_source: Callable returning floats in [0, 1). Pass a seeded
            ``random.Random(seed).random`` for reproducible puzzles.

    Returns:
        Immutable tuple of descriptors in row-major order.
    """
    seams = generate_seams(rows, cols, random_source)
    descriptors = build_descriptors(seams)
    logger.debug("Generated %dx%d puzzle edges with %d interior seams", rows, cols, seams.seam_count)
    return descriptors


def descriptor_at(descriptors: Sequence[PieceDescriptor], cols: int, row: int, col: int) -> PieceDescriptor:
    """Look up the descriptor of cell (row, col) in a row-major descriptor list."""
    return descriptors[row * cols + col]


def get_opposite_edge_type(edge_type: EdgeType) -> EdgeType:
    """Get the opposite edge type for interlocking (tab<->blank, flat stays flat)."""
    return EdgeType(edge_type).opposite()

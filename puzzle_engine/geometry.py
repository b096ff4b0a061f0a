"""Geometric logic for generating puzzle piece outlines and grid overlays."""

import logging
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .edge_grid import descriptor_at
from .models import EdgeType, PathData, PathSegment, PieceDescriptor, PieceEdges, Point, segments_to_svg

logger = logging.getLogger(__name__)

KNOB_RATIO = 0.28

# Knob profile in edge-local coordinates: the first value runs along the edge
# (0 = start, 1 = end), the second is the displacement in units of the knob size.
# The profile is mirror-symmetric about 0.5, so traversing an edge in either
# direction yields the same control points.
_KNOB_PROFILE: List[Tuple[str, List[Tuple[float, float]]]] = [
    ("L", [(0.35, 0.0)]),  # shoulder
    ("Q", [(0.42, 0.25), (0.36, 0.55)]),  # neck
    ("C", [(0.30, 1.15), (0.70, 1.15), (0.64, 0.55)]),  # head, apex at exactly 1.0
    ("Q", [(0.58, 0.25), (0.65, 0.0)]),  # neck
    ("L", [(1.0, 0.0)]),  # shoulder
]


def knob_size(width: float, height: float, knob_ratio: float = KNOB_RATIO) -> float:
    """Knob protrusion for a piece of the given nominal size."""
    return min(width, height) * knob_ratio


def edge_curve(
    start: Point,
    end: Point,
    sign: int,
    knob: float,
    vertical: bool = False,
) -> List[PathSegment]:
    """Generate the segments of one edge, from ``start`` (the current point) to ``end``.

    A flat edge (``sign == 0``) is a single straight segment. Otherwise the edge is a
    shoulder-neck-head-neck-shoulder knob. The head is displaced by ``knob`` along
    the perpendicular axis: along x when ``vertical`` is set, along y otherwise.

    The displacement direction depends on the travel direction so that, in a
    clockwise walk around a piece, ``sign=1`` always bulges out of the piece and
    ``sign=-1`` always indents into it.

    Args:
        start: Start point of the edge.
        end: End point of the edge.
        sign: Edge type value (1 = tab, -1 = blank, 0 = flat).
        knob: Knob protrusion in pixels.
        vertical: True if the edge runs along the y axis.

    Returns:
        List of PathSegment objects, not including a leading move.
    """
    if sign == 0:
        return [PathSegment("L", (end,))]

    if vertical:
        along_start, along_end, base = start[1], end[1], start[0]
        step = 1.0 if along_end >= along_start else -1.0
        bump = sign * knob * step
    else:
        along_start, along_end, base = start[0], end[0], start[1]
        step = 1.0 if along_end >= along_start else -1.0
        bump = -sign * knob * step

    segments = []
    for command, profile_points in _KNOB_PROFILE:
        local = np.asarray(profile_points, dtype=float)
        along = along_start + local[:, 0] * (along_end - along_start)
        across = base + local[:, 1] * bump
        xy = np.column_stack((across, along)) if vertical else np.column_stack((along, across))
        points = tuple((float(x), float(y)) for x, y in xy)
        segments.append(PathSegment(command, points))

    # Pin the final point so consecutive edges share exact corner coordinates
    last = segments[-1]
    segments[-1] = PathSegment(last.command, (end,))
    return segments


def _side_allowance(edge: EdgeType, knob: float, padding: float) -> float:
    return knob + padding if edge != EdgeType.FLAT else padding


def piece_edge_segments(
    width: float,
    height: float,
    edges: PieceEdges,
    padding: float = 0.0,
    knob_ratio: float = KNOB_RATIO,
) -> Dict[str, List[PathSegment]]:
    """Build the segments of each side of a piece outline.

    Sides are walked clockwise from the nominal top-left corner: top (left to
    right), right (top to bottom), bottom (right to left), left (bottom to top).
    Coordinates are local to the piece's inflated bounding box.
    """
    knob = knob_size(width, height, knob_ratio)
    x0 = _side_allowance(edges.left, knob, padding)
    y0 = _side_allowance(edges.top, knob, padding)
    x1 = x0 + width
    y1 = y0 + height

    return {
        "top": edge_curve((x0, y0), (x1, y0), edges.top, knob),
        "right": edge_curve((x1, y0), (x1, y1), edges.right, knob, vertical=True),
        "bottom": edge_curve((x1, y1), (x0, y1), edges.bottom, knob),
        "left": edge_curve((x0, y1), (x0, y0), edges.left, knob, vertical=True),
    }


def generate_piece_path(
    width: float,
    height: float,
    edges: PieceEdges,
    padding: float = 0.0,
    knob_ratio: float = KNOB_RATIO,
) -> PathData:
    """Generate the closed outline of a piece and its inflated bounding box.

    The nominal ``width`` x ``height`` rectangle is inflated by the knob size on
    every side that has a tab or blank; flat sides only get ``padding``.

    Args:
        width: Nominal piece width in pixels.
        height: Nominal piece height in pixels.
        edges: Edge types of the piece.
        padding: Extra room added on every side.
        knob_ratio: Knob protrusion relative to the minor dimension.

    Returns:
        PathData with the SVG path, bounding box and image offset.
    """
    knob = knob_size(width, height, knob_ratio)
    offset_x = _side_allowance(edges.left, knob, padding)
    offset_y = _side_allowance(edges.top, knob, padding)

    sides = piece_edge_segments(width, height, edges, padding, knob_ratio)
    segments = [PathSegment("M", ((offset_x, offset_y),))]
    for side in ("top", "right", "bottom", "left"):
        segments.extend(sides[side])
    segments.append(PathSegment("Z"))

    return PathData(
        path=segments_to_svg(segments),
        width=width + offset_x + _side_allowance(edges.right, knob, padding),
        height=height + offset_y + _side_allowance(edges.bottom, knob, padding),
        offset_x=offset_x,
        offset_y=offset_y,
        segments=tuple(segments),
    )


def grid_line_segments(
    board_size: float,
    grid_size: int,
    descriptors: Sequence[PieceDescriptor],
    knob_ratio: float = KNOB_RATIO,
) -> List[List[PathSegment]]:
    """Build one sub-path per interior seam of a square board.

    Horizontal seams are drawn left to right with the top edge of the piece below.
    Vertical seams are drawn top to bottom with the negated left edge of the piece
    to the right: a piece walks its left edge bottom to top, so the same physical
    knob needs the opposite sign when drawn downward.
    """
    size = board_size / grid_size
    knob = knob_size(size, size, knob_ratio)
    sub_paths: List[List[PathSegment]] = []

    for row in range(1, grid_size):
        y = row * size
        for col in range(grid_size):
            below = descriptor_at(descriptors, grid_size, row, col)
            start = (col * size, y)
            end = ((col + 1) * size, y)
            sub_paths.append([PathSegment("M", (start,))] + edge_curve(start, end, below.edges.top, knob))

    for col in range(1, grid_size):
        x = col * size
        for row in range(grid_size):
            right = descriptor_at(descriptors, grid_size, row, col)
            start = (x, row * size)
            end = (x, (row + 1) * size)
            sub_paths.append(
                [PathSegment("M", (start,))] + edge_curve(start, end, -right.edges.left, knob, vertical=True)
            )

    return sub_paths


def generate_grid_lines_path(
    board_size: float,
    grid_size: int,
    descriptors: Sequence[PieceDescriptor],
    knob_ratio: float = KNOB_RATIO,
) -> str:
    """Combined SVG path of every interior seam, omitting the outer border."""
    sub_paths = grid_line_segments(board_size, grid_size, descriptors, knob_ratio)
    return " ".join(segments_to_svg(segments) for segments in sub_paths)


class PathCache:
    """Memoized piece outlines for one puzzle session.

    Many pieces share identical edge shapes, so outlines are keyed by
    ``(size, top, right, bottom, left)``. The key space is bounded by the grid,
    so nothing is evicted; the cache lives as long as its session.
    """

    def __init__(self, knob_ratio: float = KNOB_RATIO):
        self.knob_ratio = knob_ratio
        self._paths: Dict[Tuple[float, int, int, int, int], PathData] = {}

    def get(self, size: float, edges: PieceEdges) -> PathData:
        key = (size, int(edges.top), int(edges.right), int(edges.bottom), int(edges.left))
        path_data = self._paths.get(key)
        if path_data is None:
            logger.debug("Path cache miss for %s", key)
            path_data = generate_piece_path(size, size, edges, knob_ratio=self.knob_ratio)
            self._paths[key] = path_data
        return path_data

    def clear(self) -> None:
        self._paths.clear()

    def __len__(self) -> int:
        return len(self._paths)

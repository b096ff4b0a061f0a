"""Data models for puzzle pieces, outlines and interaction state."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

import numpy as np

Point = Tuple[float, float]
Cell = Tuple[int, int]


class EdgeType(IntEnum):
    """Interlock state of one side of a piece."""

    BLANK = -1
    FLAT = 0
    TAB = 1

    def opposite(self) -> "EdgeType":
        """Return the edge type the neighbouring piece sees across the same seam."""
        return EdgeType(-int(self))


@dataclass(frozen=True)
class PieceEdges:
    """Edge types of the four sides of a piece."""

    top: EdgeType = EdgeType.FLAT
    right: EdgeType = EdgeType.FLAT
    bottom: EdgeType = EdgeType.FLAT
    left: EdgeType = EdgeType.FLAT

    def as_tuple(self) -> Tuple[EdgeType, EdgeType, EdgeType, EdgeType]:
        """Edges in clockwise order starting at the top."""
        return (self.top, self.right, self.bottom, self.left)


def cell_key(row: int, col: int) -> str:
    """Key of a board cell in the placed-piece map."""
    return f"{row}-{col}"


@dataclass(frozen=True)
class PieceDescriptor:
    """Grid position and edge configuration of one piece."""

    row: int
    col: int
    edges: PieceEdges


@dataclass(frozen=True)
class Piece:
    """Runtime piece carried through the pool, tray and placed map.

    ``id`` is the index of the piece's descriptor in generation order.
    """

    id: int
    row: int
    col: int
    edges: PieceEdges

    @classmethod
    def from_descriptor(cls, index: int, descriptor: PieceDescriptor) -> "Piece":
        return cls(id=index, row=descriptor.row, col=descriptor.col, edges=descriptor.edges)

    @property
    def cell(self) -> Cell:
        return (self.row, self.col)

    @property
    def cell_key(self) -> str:
        return cell_key(self.row, self.col)


@dataclass(frozen=True)
class PathSegment:
    """One command of a vector outline.

    ``command`` is one of ``M``, ``L``, ``Q``, ``C`` or ``Z``. ``points`` holds the
    control points followed by the end point (empty for ``Z``).
    """

    command: str
    points: Tuple[Point, ...] = ()

    @property
    def end(self) -> Optional[Point]:
        return self.points[-1] if self.points else None

    def to_svg(self) -> str:
        if not self.points:
            return self.command
        coords = ", ".join(f"{_fmt(x)} {_fmt(y)}" for x, y in self.points)
        return f"{self.command} {coords}"


def _fmt(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def segments_to_svg(segments: List[PathSegment]) -> str:
    """Serialize outline segments into an SVG path string."""
    return " ".join(segment.to_svg() for segment in segments)


@dataclass(frozen=True)
class PathData:
    """Closed outline of a piece plus its inflated bounding box.

    ``offset_x``/``offset_y`` locate the nominal square's top-left corner inside the
    bounding box, so the source image can be registered under the clip shape.
    """

    path: str
    width: float
    height: float
    offset_x: float
    offset_y: float
    segments: Tuple[PathSegment, ...] = field(default=(), repr=False, compare=False)


@dataclass(frozen=True)
class BoardRect:
    """Screen rectangle of the board."""

    left: float
    top: float
    width: float
    height: float


@dataclass
class InteractionState:
    """Mutable state of one puzzle session.

    ``pool`` holds every unplaced piece, including the ones shown in the tray.
    """

    pool: List[Piece] = field(default_factory=list)
    tray_slots: List[Optional[int]] = field(default_factory=list)
    placed: Dict[str, Piece] = field(default_factory=dict)
    dragging: Optional[Piece] = None
    drag_position: Optional[Point] = None
    drag_offset: Point = (0.0, 0.0)
    highlight_cell: Optional[Cell] = None
    complete: bool = False

    def reserve(self) -> List[Piece]:
        """Unplaced pieces that are not shown in any tray slot."""
        shown = {piece_id for piece_id in self.tray_slots if piece_id is not None}
        return [piece for piece in self.pool if piece.id not in shown]


@dataclass
class BezierCurve:
    """A cubic Bezier curve defined by 4 control points."""

    p0: Point  # Start point
    p1: Point  # Control point 1
    p2: Point  # Control point 2
    p3: Point  # End point

    @classmethod
    def from_quadratic(cls, p0: Point, control: Point, p3: Point) -> "BezierCurve":
        """Degree-elevate a quadratic curve to the equivalent cubic."""
        p1 = (p0[0] + 2.0 / 3.0 * (control[0] - p0[0]), p0[1] + 2.0 / 3.0 * (control[1] - p0[1]))
        p2 = (p3[0] + 2.0 / 3.0 * (control[0] - p3[0]), p3[1] + 2.0 / 3.0 * (control[1] - p3[1]))
        return cls(p0, p1, p2, p3)

    @classmethod
    def line(cls, p0: Point, p3: Point) -> "BezierCurve":
        return cls(p0, p0, p3, p3)

    def evaluate(self, t: float) -> Point:
        """Evaluate the curve at parameter t (0 to 1)."""
        t2 = t * t
        t3 = t2 * t
        mt = 1 - t
        mt2 = mt * mt
        mt3 = mt2 * mt

        x = mt3 * self.p0[0] + 3 * mt2 * t * self.p1[0] + 3 * mt * t2 * self.p2[0] + t3 * self.p3[0]
        y = mt3 * self.p0[1] + 3 * mt2 * t * self.p1[1] + 3 * mt * t2 * self.p2[1] + t3 * self.p3[1]
        return (x, y)

    def get_points(self, num_points: int = 50) -> np.ndarray:
        """Generate points along the curve."""
        t_values = np.linspace(0, 1, num_points)
        points = [self.evaluate(t) for t in t_values]
        return np.array(points)

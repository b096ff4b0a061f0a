"""View-facing snapshot models of the interaction state."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class EdgesModel(BaseModel):
    """Edge types of a piece (1 = tab, -1 = blank, 0 = flat)."""

    top: int = Field(..., ge=-1, le=1)
    right: int = Field(..., ge=-1, le=1)
    bottom: int = Field(..., ge=-1, le=1)
    left: int = Field(..., ge=-1, le=1)


class PieceModel(BaseModel):
    """Model representing a runtime piece."""

    id: int
    row: int
    col: int
    edges: EdgesModel


class CellModel(BaseModel):
    """Model representing a board cell."""

    row: int
    col: int


class PuzzleSnapshot(BaseModel):
    """Everything a view needs to render the board and tray."""

    rows: int
    cols: int
    total_pieces: int
    placed_count: int
    remaining_count: int
    tray: List[Optional[PieceModel]] = Field(..., description="Tray slots in order; None for an empty slot")
    placed: Dict[str, PieceModel] = Field(..., description="Placed pieces keyed by 'row-col'")
    dragging: Optional[PieceModel] = None
    highlight_cell: Optional[CellModel] = None
    complete: bool = False

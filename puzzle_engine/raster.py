"""Pillow rendering of piece images and the hint overlay.

Outlines are sampled into polygons through cubic Bezier curves, then filled
into anti-aliased masks.
"""

import math
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw

from .geometry import KNOB_RATIO, grid_line_segments
from .models import BezierCurve, PathData, PathSegment, Piece, PieceDescriptor, Point

OVERLAY_COLOR = (99, 102, 241, 128)


def outline_to_polylines(segments: Sequence[PathSegment], points_per_curve: int = 20) -> List[List[Point]]:
    """Sample outline segments into polylines, one per move command.

    Args:
        segments: Outline segments, each sub-path starting with ``M``.
        points_per_curve: Number of points to sample from each curve.

    Returns:
        List of polylines in the outline's coordinate space.
    """
    polylines: List[List[Point]] = []
    current: Optional[Point] = None

    for segment in segments:
        if segment.command == "M":
            current = segment.points[0]
            polylines.append([current])
            continue
        if segment.command == "Z":
            if polylines and polylines[-1]:
                polylines[-1].append(polylines[-1][0])
            continue
        if current is None:
            raise ValueError("outline must start with a move command")

        if segment.command == "L":
            polylines[-1].append(segment.points[0])
        else:
            if segment.command == "Q":
                curve = BezierCurve.from_quadratic(current, segment.points[0], segment.points[1])
            else:
                curve = BezierCurve(current, segment.points[0], segment.points[1], segment.points[2])
            points = curve.get_points(points_per_curve)
            # Skip first point to avoid duplication
            polylines[-1].extend((float(x), float(y)) for x, y in points[1:])
        current = segment.end

    return polylines


def create_piece_mask(
    path_data: PathData,
    antialias_scale: int = 4,
    points_per_curve: int = 20,
    shift: Point = (0.0, 0.0),
) -> Image.Image:
    """Create a mask image for a puzzle piece with anti-aliased edges.

    Uses supersampling for anti-aliasing: renders at higher resolution
    then downsamples.

    Args:
        path_data: Outline of the piece.
        antialias_scale: Supersampling factor (4 = render at 4x, then downsample).
        points_per_curve: Number of points to sample from each curve.
        shift: Offset of the outline inside the mask, for sub-pixel placement.

    Returns:
        Grayscale PIL Image of the piece's bounding box, white inside the outline.
    """
    shift_x, shift_y = shift
    width = max(1, math.ceil(round(path_data.width + shift_x, 6)))
    height = max(1, math.ceil(round(path_data.height + shift_y, 6)))

    hi_res_mask = Image.new("L", (width * antialias_scale, height * antialias_scale), 0)
    draw = ImageDraw.Draw(hi_res_mask)

    for polygon in outline_to_polylines(path_data.segments, points_per_curve):
        scaled_polygon = [((x + shift_x) * antialias_scale, (y + shift_y) * antialias_scale) for x, y in polygon]
        if len(scaled_polygon) >= 3:
            draw.polygon(scaled_polygon, fill=255)

    return hi_res_mask.resize((width, height), Image.Resampling.LANCZOS)


def board_image(source_image: Image.Image, board_size: float) -> Image.Image:
    """Scale a square source image to the board size in RGBA."""
    side = max(1, int(round(board_size)))
    image = source_image.convert("RGBA")
    if image.size != (side, side):
        image = image.resize((side, side), Image.Resampling.LANCZOS)
    return image


def cut_piece(
    source_image: Image.Image,
    piece: Piece,
    piece_size: float,
    grid_size: int,
    path_data: PathData,
) -> Tuple[Image.Image, Point]:
    """Cut a puzzle piece from the source image.

    The crop starts ``offset_x``/``offset_y`` before the piece's nominal cell so the
    image stays registered under the clip shape. The crop origin is snapped to
    whole pixels and the outline is shifted by the remainder. Areas outside the
    image are transparent.

    Args:
        source_image: The full puzzle image (square).
        piece: The piece to cut.
        piece_size: Nominal piece size in pixels.
        grid_size: Pieces per side.
        path_data: Outline of the piece at ``piece_size``.

    Returns:
        Tuple of:
        - RGBA image of the piece's bounding box with transparent background
        - (x, y) board-local pixel position of that image
    """
    image = board_image(source_image, piece_size * grid_size)
    left = piece.col * piece_size - path_data.offset_x
    top = piece.row * piece_size - path_data.offset_y

    origin_x = int(round(left))
    origin_y = int(round(top))
    mask = create_piece_mask(path_data, shift=(left - origin_x, top - origin_y))
    cropped = image.crop((origin_x, origin_y, origin_x + mask.width, origin_y + mask.height))

    result = Image.new("RGBA", mask.size, (0, 0, 0, 0))
    result.paste(cropped, mask=mask)
    return result, (origin_x, origin_y)


def render_grid_overlay(
    board_size: float,
    grid_size: int,
    descriptors: Sequence[PieceDescriptor],
    image: Optional[Image.Image] = None,
    color: Tuple[int, int, int, int] = OVERLAY_COLOR,
    line_width: int = 3,
    knob_ratio: float = KNOB_RATIO,
) -> Image.Image:
    """Draw the interior seam lines, optionally over the hint image.

    Args:
        board_size: Board side in pixels.
        grid_size: Pieces per side.
        descriptors: Piece descriptors in row-major order.
        image: Optional hint image, scaled to the board.
        color: RGBA line color.
        line_width: Line width in pixels.
        knob_ratio: Knob protrusion relative to piece size.

    Returns:
        RGBA image of the board.
    """
    side = max(1, int(round(board_size)))
    if image is not None:
        canvas = board_image(image, board_size)
    else:
        canvas = Image.new("RGBA", (side, side), (0, 0, 0, 0))

    lines = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(lines)
    for segments in grid_line_segments(board_size, grid_size, descriptors, knob_ratio):
        for polyline in outline_to_polylines(segments):
            draw.line(polyline, fill=color, width=line_width, joint="curve")

    canvas.alpha_composite(lines)
    return canvas

"""Bounding-box and collision primitives shared by the packer and the editor.

Collision is always box based, whatever the part's outline. Kerf is added to
the right and bottom edge of every box, so two parts packed with the same
kerf always keep one blade width between them.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from slabnest.nesting.errors import ShapeDataError
from slabnest.nesting.models import (
    ArcData,
    CircleData,
    Part,
    PlacedPart,
    ShapeType,
    Slab,
    is_quarter_turn,
)

# Grid step used when there is no kerf to derive one from
DEFAULT_GRID_STEP = 10


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in slab coordinates."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def from_placement(cls, placement: PlacedPart) -> "Box":
        return cls(placement.x, placement.y, placement.width, placement.height)


def effective_box(part: Part, rotated: bool) -> Tuple[float, float]:
    """Get the (width, height) bounding box of a part in one orientation.

    Circles and arcs are boxed as 2r x 2r and ignore ``rotated``. Rectangles
    and L-shapes use the nominal width/height, swapped when rotated.

    Raises:
        ShapeDataError: if a circle or arc part carries no radius.
    """
    if part.shape_type in (ShapeType.CIRCLE, ShapeType.ARC):
        data = part.shape_data
        if not isinstance(data, (CircleData, ArcData)):
            raise ShapeDataError(part.id, f"{part.shape_type.value} part has no radius")
        diameter = data.radius * 2
        return diameter, diameter

    if rotated:
        return part.height, part.width
    return part.width, part.height


def effective_box_for_rotation(part: Part, rotation: int) -> Tuple[float, float]:
    """Bounding box at a rotation in degrees; 180/270 box like 0/90."""
    return effective_box(part, is_quarter_turn(rotation))


def overlaps(a: Box, b: Box, kerf: float) -> bool:
    """Check whether two kerf-inflated boxes intersect.

    Each box covers ``[x, x + w + kerf) x [y, y + h + kerf)``.
    """
    return (
        a.x < b.x + b.width + kerf
        and a.x + a.width + kerf > b.x
        and a.y < b.y + b.height + kerf
        and a.y + a.height + kerf > b.y
    )


def collides(box: Box, occupied: Iterable[Box], kerf: float) -> bool:
    """Check a box against every occupied box."""
    return any(overlaps(box, other, kerf) for other in occupied)


def fits_on_slab(width: float, height: float, slab: Slab) -> bool:
    """Check that a box could fit on an empty slab."""
    return width <= slab.width and height <= slab.height


def within_slab(box: Box, slab: Slab) -> bool:
    """Check that a positioned box lies inside the slab."""
    return (
        box.x >= 0
        and box.y >= 0
        and box.right <= slab.width
        and box.bottom <= slab.height
    )


def grid_step(kerf: float) -> int:
    """Coarse search step: half the kerf (at least 1mm), or 10mm without kerf."""
    if kerf == 0:
        return DEFAULT_GRID_STEP
    return max(1, math.floor(kerf / 2))


def _blocking_edge(box: Box, occupied: Sequence[Box], kerf: float) -> Optional[float]:
    """Rightmost inflated edge among the boxes a candidate collides with."""
    edge = None
    for other in occupied:
        if overlaps(box, other, kerf):
            right = other.x + other.width + kerf
            if edge is None or right > edge:
                edge = right
    return edge


def find_bottom_left_position(
    width: float,
    height: float,
    slab_width: float,
    slab_height: float,
    occupied: Sequence[Box],
    kerf: float,
    slide: bool = True,
) -> Optional[Tuple[int, int]]:
    """Find a position for a box using the bottom-left heuristic.

    Grid cells are scanned row by row from y=0, and left to right from x=0
    within a row. With ``slide``, the first free cell is then slid left one
    unit at a time while it stays free, then down one unit at a time.
    Without it, the grid cell itself is returned.

    Cells in a row that still collide with the box blocking the current cell
    are skipped, which returns the same cell as a full scan.

    Args:
        width: Effective box width
        height: Effective box height
        slab_width: Slab width
        slab_height: Slab height
        occupied: Boxes already seated on the slab
        kerf: Blade width margin
        slide: Tighten the grid cell towards the top-left corner

    Returns:
        (x, y) of the box's top-left corner, or None if nothing is free
    """
    if width > slab_width or height > slab_height:
        return None

    step = grid_step(kerf)
    max_x = slab_width - width
    max_y = slab_height - height

    for y in range(0, int(max_y) + 1, step):
        x = 0
        while x <= max_x:
            edge = _blocking_edge(Box(x, y, width, height), occupied, kerf)
            if edge is None:
                if not slide:
                    return x, y
                return _slide_left_down(x, y, width, height, occupied, kerf)
            # Every grid cell left of the blocker's inflated edge collides too
            x = max(x + step, math.ceil(edge / step) * step)

    return None


def _slide_left_down(
    x: int,
    y: int,
    width: float,
    height: float,
    occupied: Sequence[Box],
    kerf: float,
) -> Tuple[int, int]:
    while x > 0 and not collides(Box(x - 1, y, width, height), occupied, kerf):
        x -= 1
    while y > 0 and not collides(Box(x, y - 1, width, height), occupied, kerf):
        y -= 1
    return x, y

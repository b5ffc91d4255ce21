"""Nesting module for laying out cut parts on stone slabs.

Provides the batch packer and the incremental placement editor.
"""

from slabnest.nesting.errors import (
    EngineFault,
    InvalidRequest,
    NestingError,
    OptimizationTimeout,
    ShapeDataError,
)
from slabnest.nesting.models import (
    ArcData,
    CircleData,
    CutoutPosition,
    LShapeData,
    LockedPosition,
    NestingResult,
    Part,
    PlacedPart,
    ShapeType,
    Slab,
    SlabUsage,
)
from slabnest.nesting.geometry import (
    Box,
    effective_box,
    effective_box_for_rotation,
    find_bottom_left_position,
    fits_on_slab,
    overlaps,
)
from slabnest.nesting.packer import (
    NestingConfig,
    SlabPacker,
    create_packer,
    export_layout,
    optimize,
)
from slabnest.nesting.editor import (
    EditResult,
    PlacementEditor,
    PlacementStatus,
    PlacementUpdate,
    drag_part,
    rotate_part,
    set_locked,
    update_placement,
)

__all__ = [
    # Errors
    "EngineFault",
    "InvalidRequest",
    "NestingError",
    "OptimizationTimeout",
    "ShapeDataError",
    # Models
    "ArcData",
    "CircleData",
    "CutoutPosition",
    "LShapeData",
    "LockedPosition",
    "NestingResult",
    "Part",
    "PlacedPart",
    "ShapeType",
    "Slab",
    "SlabUsage",
    # Geometry
    "Box",
    "effective_box",
    "effective_box_for_rotation",
    "find_bottom_left_position",
    "fits_on_slab",
    "overlaps",
    # Packer
    "NestingConfig",
    "SlabPacker",
    "create_packer",
    "export_layout",
    "optimize",
    # Editor
    "EditResult",
    "PlacementEditor",
    "PlacementStatus",
    "PlacementUpdate",
    "drag_part",
    "rotate_part",
    "set_locked",
    "update_placement",
]

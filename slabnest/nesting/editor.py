"""Incremental re-layout after a single interactive edit.

When one part is dragged, rotated or (un)locked, only the unlocked parts
sharing its slab are re-seated. Locked parts and other slabs stay as they
are, and no full optimization is run.

Functions here never mutate their inputs. They return new placement and
part lists; callers that share one placement set must serialize edits.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from slabnest.nesting.geometry import Box, effective_box_for_rotation, find_bottom_left_position
from slabnest.nesting.models import (
    LockedPosition,
    Part,
    PlacedPart,
    Slab,
    as_number,
    is_quarter_turn,
    normalize_rotation,
)
from slabnest.nesting.packer import validate_kerf
from slabnest.observability.metrics import placement_edits_total
from slabnest.utils import get_logger

logger = get_logger("nesting.editor")

# Drag targets snap to this grid, in mm
DRAG_SNAP_MM = 10


class PlacementStatus(str, Enum):
    """Where a part stands in the interactive workflow."""
    UNPLACED = "unplaced"
    PLACED = "placed"
    LOCKED = "locked"


@dataclass
class PlacementUpdate:
    """Partial change to one placement."""
    x: Optional[float] = None
    y: Optional[float] = None
    rotation: Optional[int] = None
    slab_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = {}
        if self.x is not None:
            data["x"] = self.x
        if self.y is not None:
            data["y"] = self.y
        if self.rotation is not None:
            data["rotation"] = self.rotation
        if self.slab_id is not None:
            data["slabId"] = self.slab_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PlacementUpdate":
        rotation = data.get("rotation")
        x = data.get("x")
        y = data.get("y")
        return cls(
            x=as_number(x, "x") if x is not None else None,
            y=as_number(y, "y") if y is not None else None,
            rotation=normalize_rotation(rotation) if rotation is not None else None,
            slab_id=data.get("slabId"),
        )


@dataclass
class EditResult:
    """Outcome of an interactive edit."""
    placements: List[PlacedPart]
    parts: List[Part]
    reseated: List[str] = field(default_factory=list)  # Re-flowed to a new position
    stuck: List[str] = field(default_factory=list)  # No room, previous position kept

    def placement_for(self, part_id: str) -> Optional[PlacedPart]:
        for placement in self.placements:
            if placement.part_id == part_id:
                return placement
        return None

    def to_dict(self) -> dict:
        return {
            "placements": [p.to_dict() for p in self.placements],
            "parts": [p.to_dict() for p in self.parts],
        }


def _coerce_update(updates: Union[PlacementUpdate, dict]) -> PlacementUpdate:
    if isinstance(updates, PlacementUpdate):
        return updates
    return PlacementUpdate.from_dict(updates)


def _merge(target: PlacedPart, update: PlacementUpdate, slab_id: str, part: Optional[Part]) -> PlacedPart:
    """Apply an update, keeping width/height the effective box."""
    rotation = target.rotation if update.rotation is None else normalize_rotation(update.rotation)
    width, height = target.width, target.height

    if is_quarter_turn(rotation) != is_quarter_turn(target.rotation):
        if part is not None:
            width, height = effective_box_for_rotation(part, rotation)
        else:
            width, height = height, width

    return replace(
        target,
        slab_id=slab_id,
        x=target.x if update.x is None else update.x,
        y=target.y if update.y is None else update.y,
        rotation=rotation,
        width=width,
        height=height,
    )


def _mirror_lock(parts: Sequence[Part], placement: PlacedPart) -> List[Part]:
    """Copy a locked part's new placement into its locked position."""
    updated = []
    for part in parts:
        if part.id == placement.part_id and part.is_locked:
            part = replace(
                part,
                locked_position=LockedPosition(
                    slab_id=placement.slab_id,
                    x=placement.x,
                    y=placement.y,
                    rotation=placement.rotation,
                ),
            )
        updated.append(part)
    return updated


def update_placement(
    current: Sequence[PlacedPart],
    parts: Sequence[Part],
    slabs: Sequence[Slab],
    part_id: str,
    updates: Union[PlacementUpdate, dict],
    kerf_width: float,
) -> EditResult:
    """
    Move one part and re-flow the movable parts on its slab.

    Locked parts are anchors. The moved part is an anchor too, unless it is
    itself locked. Movable parts are re-seated largest first on the first
    free bottom-left grid cell, without the slide, keeping their
    orientation; a part that finds no room keeps its previous placement.

    Args:
        current: Current placements, all slabs
        parts: Part records, used for lock state and box lookups
        slabs: Known slabs
        part_id: Part being edited
        updates: New x, y, rotation and/or slab
        kerf_width: Saw blade width in mm

    Returns:
        New placements and parts; inputs are left untouched

    Raises:
        InvalidRequest: if the kerf is missing, negative or not finite
    """
    validate_kerf(kerf_width)
    update = _coerce_update(updates)
    target = next((p for p in current if p.part_id == part_id), None)
    if target is None:
        logger.debug(f"No placement for part {part_id}, nothing to update")
        return EditResult(placements=list(current), parts=list(parts))

    part_lookup: Dict[str, Part] = {p.id: p for p in parts}
    slab_lookup: Dict[str, Slab] = {s.id: s for s in slabs}
    slab_id = update.slab_id or target.slab_id
    slab = slab_lookup.get(slab_id)
    moved = _merge(target, update, slab_id, part_lookup.get(part_id))
    moved_locked = part_id in part_lookup and part_lookup[part_id].is_locked
    new_parts = _mirror_lock(parts, moved) if moved_locked else list(parts)

    if slab is None:
        logger.warning(f"Unknown slab {slab_id}, applying update to {part_id} without re-flow")
        return EditResult(
            placements=[moved if p.part_id == part_id else p for p in current],
            parts=new_parts,
        )

    locked_ids = {p.id for p in parts if p.is_locked}
    unchanged = [p for p in current if p.slab_id != slab.id and p.part_id != part_id]
    on_slab = [p for p in current if p.slab_id == slab.id and p.part_id != part_id]
    locked = [p for p in on_slab if p.part_id in locked_ids]
    movable = sorted(
        (p for p in on_slab if p.part_id not in locked_ids),
        key=lambda p: p.width * p.height,
        reverse=True,
    )

    anchors = [Box.from_placement(p) for p in locked]
    if not moved_locked:
        anchors.insert(0, Box.from_placement(moved))

    rearranged = []
    reseated = []
    stuck = []
    for placement in movable:
        position = find_bottom_left_position(
            placement.width, placement.height, slab.width, slab.height, anchors, kerf_width,
            slide=False,
        )
        if position is None:
            stuck.append(placement.part_id)
            rearranged.append(placement)
        else:
            x, y = position
            if (x, y) != (placement.x, placement.y):
                reseated.append(placement.part_id)
            placement = placement.moved(x=x, y=y)
            rearranged.append(placement)
        # Parts that kept their old spot still occupy it
        anchors.append(Box.from_placement(placement))

    if stuck:
        logger.info(f"No room to re-seat {', '.join(stuck)} on slab {slab.id}; kept previous positions")

    return EditResult(
        placements=unchanged + [moved] + locked + rearranged,
        parts=new_parts,
        reseated=reseated,
        stuck=stuck,
    )


def _snap(value: float, upper: float) -> float:
    """Clamp into [0, upper], then snap to the drag grid without leaving it."""
    upper = max(0.0, upper)
    value = min(max(0.0, value), upper)
    # Halves round up
    snapped = math.floor(value / DRAG_SNAP_MM + 0.5) * DRAG_SNAP_MM
    if snapped > upper:
        snapped = math.floor(upper / DRAG_SNAP_MM) * DRAG_SNAP_MM
    return snapped


def drag_part(
    current: Sequence[PlacedPart],
    parts: Sequence[Part],
    slabs: Sequence[Slab],
    part_id: str,
    x: float,
    y: float,
    kerf_width: float,
) -> EditResult:
    """
    Drop a dragged part at (x, y), clamped to its slab and snapped to the grid.

    Locked parts cannot be dragged; the edit is ignored.
    """
    part = next((p for p in parts if p.id == part_id), None)
    target = next((p for p in current if p.part_id == part_id), None)
    if target is None or (part is not None and part.is_locked):
        logger.debug(f"Ignoring drag of part {part_id}")
        return EditResult(placements=list(current), parts=list(parts))

    slab = next((s for s in slabs if s.id == target.slab_id), None)
    if slab is not None:
        x = _snap(x, slab.width - target.width)
        y = _snap(y, slab.height - target.height)

    placement_edits_total.labels(operation="drag").inc()
    return update_placement(current, parts, slabs, part_id, PlacementUpdate(x=x, y=y), kerf_width)


def rotate_part(
    current: Sequence[PlacedPart],
    parts: Sequence[Part],
    slabs: Sequence[Slab],
    part_id: str,
    kerf_width: float,
) -> EditResult:
    """Turn a part a further 90 degrees clockwise and re-flow its slab."""
    target = next((p for p in current if p.part_id == part_id), None)
    if target is None:
        return EditResult(placements=list(current), parts=list(parts))

    placement_edits_total.labels(operation="rotate").inc()
    rotation = (target.rotation + 90) % 360
    return update_placement(
        current, parts, slabs, part_id, PlacementUpdate(rotation=rotation), kerf_width
    )


def set_locked(
    current: Sequence[PlacedPart],
    parts: Sequence[Part],
    slabs: Sequence[Slab],
    part_id: str,
    locked: bool,
) -> List[Part]:
    """
    Lock or unlock a part.

    Locking pins the part where it currently sits; a part without a
    placement is pinned at the origin of the first slab. Unlocking clears
    the pinned position. Placements do not change.
    """
    placement = next((p for p in current if p.part_id == part_id), None)
    updated = []
    for part in parts:
        if part.id == part_id:
            if locked:
                if placement is not None:
                    pinned = LockedPosition(
                        slab_id=placement.slab_id,
                        x=placement.x,
                        y=placement.y,
                        rotation=placement.rotation,
                    )
                else:
                    pinned = LockedPosition(slab_id=slabs[0].id if slabs else None, x=0, y=0)
                part = replace(part, is_locked=True, locked_position=pinned)
            else:
                part = replace(part, is_locked=False, locked_position=None)
        updated.append(part)

    placement_edits_total.labels(operation="lock" if locked else "unlock").inc()
    return updated


class PlacementEditor:
    """
    Interactive editing session over one nesting result.

    Holds the current placements and parts and applies one edit at a time.
    """

    def __init__(
        self,
        placements: Sequence[PlacedPart],
        parts: Sequence[Part],
        slabs: Sequence[Slab],
        kerf_width: float,
    ):
        validate_kerf(kerf_width)
        self.placements: List[PlacedPart] = list(placements)
        self.parts: List[Part] = list(parts)
        self.slabs: List[Slab] = list(slabs)
        self.kerf_width = kerf_width

    def _apply(self, result: EditResult) -> EditResult:
        self.placements = result.placements
        self.parts = result.parts
        return result

    def get_part(self, part_id: str) -> Optional[Part]:
        return next((p for p in self.parts if p.id == part_id), None)

    def get_placement(self, part_id: str) -> Optional[PlacedPart]:
        return next((p for p in self.placements if p.part_id == part_id), None)

    def status(self, part_id: str) -> PlacementStatus:
        """Get a part's placement status."""
        part = self.get_part(part_id)
        if part is not None and part.is_locked:
            return PlacementStatus.LOCKED
        if self.get_placement(part_id) is not None:
            return PlacementStatus.PLACED
        return PlacementStatus.UNPLACED

    def move(self, part_id: str, **updates) -> EditResult:
        """Apply x/y/rotation/slab_id updates to one part."""
        placement_edits_total.labels(operation="move").inc()
        result = update_placement(
            self.placements, self.parts, self.slabs, part_id,
            PlacementUpdate(**updates), self.kerf_width,
        )
        return self._apply(result)

    def drag(self, part_id: str, x: float, y: float) -> EditResult:
        return self._apply(drag_part(
            self.placements, self.parts, self.slabs, part_id, x, y, self.kerf_width
        ))

    def rotate(self, part_id: str) -> EditResult:
        return self._apply(rotate_part(
            self.placements, self.parts, self.slabs, part_id, self.kerf_width
        ))

    def lock(self, part_id: str) -> None:
        self.parts = set_locked(self.placements, self.parts, self.slabs, part_id, True)

    def unlock(self, part_id: str) -> None:
        self.parts = set_locked(self.placements, self.parts, self.slabs, part_id, False)

    def toggle_lock(self, part_id: str) -> PlacementStatus:
        """Flip a part's lock and return its new status."""
        part = self.get_part(part_id)
        if part is None:
            return self.status(part_id)
        if part.is_locked:
            self.unlock(part_id)
        else:
            self.lock(part_id)
        return self.status(part_id)

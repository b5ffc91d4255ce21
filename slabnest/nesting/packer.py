"""Batch nesting of parts onto stone slabs.

Greedy placement: locked parts go to their pinned positions first, then
free parts are seated largest first with the bottom-left heuristic, trying
every slab in the caller's order.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from slabnest.config import get_settings
from slabnest.nesting.errors import EngineFault, InvalidRequest, NestingError, OptimizationTimeout
from slabnest.nesting.geometry import (
    Box,
    collides,
    effective_box,
    effective_box_for_rotation,
    find_bottom_left_position,
    within_slab,
)
from slabnest.nesting.models import NestingResult, Part, PlacedPart, Slab, SlabUsage
from slabnest.observability.logging import LogContext
from slabnest.observability.metrics import (
    nesting_parts_total,
    nesting_run_duration,
    nesting_runs_total,
)
from slabnest.utils import format_area, format_mm, get_logger

logger = get_logger("nesting.packer")


@dataclass
class NestingConfig:
    """Configuration for batch nesting."""
    # Abort after this many seconds; None disables the check
    timeout_seconds: Optional[float] = 30.0

    # Global switch; parts still need allow_rotation to be turned
    allow_rotation: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timeout_seconds": self.timeout_seconds,
            "allow_rotation": self.allow_rotation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NestingConfig":
        """Create from dictionary."""
        return cls(
            timeout_seconds=data.get("timeout_seconds", 30.0),
            allow_rotation=data.get("allow_rotation", True),
        )

    @classmethod
    def from_settings(cls) -> "NestingConfig":
        """Create from application settings."""
        settings = get_settings()
        return cls(timeout_seconds=settings.optimize_timeout_seconds)


@dataclass
class PackingSurface:
    """Placement state for one slab during a single optimize call."""
    slab: Slab
    kerf: float
    boxes: List[Box] = field(default_factory=list)
    placements: List[PlacedPart] = field(default_factory=list)

    def place_locked(self, part: Part) -> Optional[PlacedPart]:
        """Seat a locked part at its pinned position, without search.

        Returns None when the position is out of bounds or collides with a
        part already on this slab.
        """
        pinned = part.locked_position
        width, height = effective_box_for_rotation(part, pinned.rotation)
        box = Box(pinned.x, pinned.y, width, height)

        if not within_slab(box, self.slab):
            logger.warning(
                f"Locked part {part.id} at ({pinned.x}, {pinned.y}) "
                f"is outside slab {self.slab.id}"
            )
            return None
        if collides(box, self.boxes, self.kerf):
            logger.warning(
                f"Locked part {part.id} at ({pinned.x}, {pinned.y}) "
                f"collides with another locked part on slab {self.slab.id}"
            )
            return None

        return self._add(part.id, box, pinned.rotation)

    def try_place(self, part: Part, allow_rotation: bool = True) -> Optional[PlacedPart]:
        """Search a position for a free part, upright first, then rotated."""
        orientations = [False, True] if (allow_rotation and part.allow_rotation) else [False]
        tried = set()

        for rotated in orientations:
            width, height = effective_box(part, rotated)
            # A square box gives the same answer in both orientations
            if (width, height) in tried:
                continue
            tried.add((width, height))

            position = find_bottom_left_position(
                width, height, self.slab.width, self.slab.height, self.boxes, self.kerf
            )
            if position is not None:
                x, y = position
                return self._add(part.id, Box(x, y, width, height), 90 if rotated else 0)

        return None

    def _add(self, part_id: str, box: Box, rotation: int) -> PlacedPart:
        placed = PlacedPart(
            part_id=part_id,
            slab_id=self.slab.id,
            x=box.x,
            y=box.y,
            rotation=rotation,
            width=box.width,
            height=box.height,
        )
        self.boxes.append(box)
        self.placements.append(placed)
        return placed

    def used_area(self) -> float:
        return sum(p.width * p.height for p in self.placements)

    def usage(self) -> SlabUsage:
        """Area accounting for this slab."""
        used = self.used_area()
        total = self.slab.area
        return SlabUsage(
            slab_id=self.slab.id,
            used_area=used,
            total_area=total,
            waste_percentage=(total - used) / total * 100,
        )


def validate_kerf(kerf_width: Optional[float]) -> None:
    """Reject a kerf that is missing, non-numeric, negative or non-finite.

    Raises:
        InvalidRequest: if the kerf cannot be used for collision checks.
    """
    if kerf_width is None:
        raise InvalidRequest("Missing required fields: kerfWidth")
    if isinstance(kerf_width, bool) or not isinstance(kerf_width, (int, float)):
        raise InvalidRequest(f"kerfWidth must be a number, got {kerf_width!r}")
    if not math.isfinite(kerf_width) or kerf_width < 0:
        raise InvalidRequest(f"kerfWidth must be a non-negative number, got {kerf_width}")


def validate_request(
    parts: Optional[Sequence[Part]],
    slabs: Optional[Sequence[Slab]],
    kerf_width: Optional[float],
) -> None:
    """Reject malformed requests before any computation.

    Raises:
        InvalidRequest: on missing fields, zero slabs, bad dimensions or
            duplicate ids.
    """
    if parts is None or slabs is None or kerf_width is None:
        raise InvalidRequest("Missing required fields: parts, slabs, kerfWidth")
    if len(slabs) == 0:
        raise InvalidRequest("At least one slab is required")
    validate_kerf(kerf_width)

    slab_ids = set()
    for slab in slabs:
        if slab.width <= 0 or slab.height <= 0:
            raise InvalidRequest(f"Slab {slab.id} must have positive dimensions")
        if slab.id in slab_ids:
            raise InvalidRequest(f"Duplicate slab id {slab.id}")
        slab_ids.add(slab.id)

    part_ids = set()
    for part in parts:
        if part.id in part_ids:
            raise InvalidRequest(f"Duplicate part id {part.id}")
        part_ids.add(part.id)
        if part.width < 0 or part.height < 0:
            raise InvalidRequest(f"Part {part.id} has negative dimensions")


class SlabPacker:
    """
    Greedy bin packer for slab nesting.

    Each optimize call owns its packing surfaces, so one packer can serve
    concurrent calls.
    """

    def __init__(self, config: Optional[NestingConfig] = None):
        """
        Initialize the packer.

        Args:
            config: Nesting configuration
        """
        self.config = config or NestingConfig.from_settings()

    def optimize(
        self,
        parts: Sequence[Part],
        slabs: Sequence[Slab],
        kerf_width: float,
    ) -> NestingResult:
        """
        Lay out parts on slabs.

        Args:
            parts: Parts to place
            slabs: Available slabs, tried in this order
            kerf_width: Saw blade width in mm

        Returns:
            Placements, unplaced part ids and per-slab usage

        Raises:
            InvalidRequest: if the request is malformed
            EngineFault: on an internal failure, including timeout
        """
        start_time = time.monotonic()

        try:
            validate_request(parts, slabs, kerf_width)
        except InvalidRequest:
            nesting_runs_total.labels(status="invalid").inc()
            raise

        with LogContext(run_id=uuid4().hex[:8]):
            try:
                result = self._run(parts, slabs, kerf_width, start_time)
            except NestingError:
                nesting_runs_total.labels(status="fault").inc()
                raise
            except Exception as e:
                nesting_runs_total.labels(status="fault").inc()
                logger.error(f"Nesting error: {e}", exc_info=True)
                raise EngineFault(f"Optimization failed: {e}") from e

            elapsed = time.monotonic() - start_time
            nesting_run_duration.observe(elapsed)
            nesting_runs_total.labels(status="ok").inc()
            nesting_parts_total.labels(outcome="placed").inc(len(result.placements))
            nesting_parts_total.labels(outcome="unplaced").inc(len(result.unplaced_parts))
            logger.info(
                f"Placed {len(result.placements)}/{len(parts)} parts on "
                f"{len(slabs)} slab(s) in {elapsed:.3f}s"
            )

        return result

    def _run(
        self,
        parts: Sequence[Part],
        slabs: Sequence[Slab],
        kerf_width: float,
        start_time: float,
    ) -> NestingResult:
        surfaces: Dict[str, PackingSurface] = {
            slab.id: PackingSurface(slab=slab, kerf=kerf_width) for slab in slabs
        }
        placements: List[PlacedPart] = []
        unplaced: List[str] = []

        locked = [p for p in parts if p.has_pinned_position]
        free = [p for p in parts if not p.has_pinned_position]

        for part in locked:
            slab_id = part.locked_position.slab_id or slabs[0].id
            surface = surfaces.get(slab_id)
            placed = surface.place_locked(part) if surface else None
            if placed is None:
                if surface is None:
                    logger.warning(f"Locked part {part.id} references unknown slab {slab_id}")
                unplaced.append(part.id)
            else:
                placements.append(placed)

        # sorted() is stable, so equal areas keep their input order
        ordered = sorted(free, key=lambda p: p.nominal_area, reverse=True)

        for index, part in enumerate(ordered):
            self._check_deadline(start_time, len(locked) + index, len(ordered) - index)

            placed = None
            for slab in slabs:
                placed = surfaces[slab.id].try_place(part, self.config.allow_rotation)
                if placed is not None:
                    break

            if placed is None:
                logger.info(f"No slab has room for part {part.id} ({part.name})")
                unplaced.append(part.id)
            else:
                placements.append(placed)

        return NestingResult(
            placements=placements,
            unplaced_parts=unplaced,
            slab_usage=[surfaces[slab.id].usage() for slab in slabs],
        )

    def _check_deadline(self, start_time: float, processed: int, remaining: int) -> None:
        timeout = self.config.timeout_seconds
        if timeout is None:
            return
        if time.monotonic() - start_time > timeout:
            raise OptimizationTimeout(timeout, processed, remaining)


def export_layout(result: NestingResult, slabs: Sequence[Slab]) -> str:
    """Export a layout as a text cut sheet."""
    lines = [
        "; Slab layout",
        f"; Parts placed: {len(result.placements)}",
        f"; Average waste: {result.average_waste:.1f}%",
        "",
    ]

    for slab in slabs:
        usage = result.usage_for(slab.id)
        slab_parts = result.placements_for_slab(slab.id)
        lines.append(f"; Slab {slab.name} ({format_mm(slab.width)} x {format_mm(slab.height)})")
        if usage is not None:
            lines.append(
                f";   Used: {format_area(usage.used_area)} of {format_area(usage.total_area)}"
                f" ({usage.utilization:.1f}%)"
            )
        for placement in slab_parts:
            lines.append(
                f";   {placement.part_id}: ({placement.x}, {placement.y}) "
                f"{format_mm(placement.width)} x {format_mm(placement.height)} "
                f"@ {placement.rotation}°"
            )
        lines.append("")

    if result.unplaced_parts:
        lines.append(f"; Unplaced parts ({len(result.unplaced_parts)}):")
        for part_id in result.unplaced_parts:
            lines.append(f";   - {part_id}")

    return "\n".join(lines)


# Convenience functions
def create_packer(timeout_seconds: Optional[float] = 30.0, allow_rotation: bool = True) -> SlabPacker:
    """Create a packer with specified settings."""
    return SlabPacker(NestingConfig(timeout_seconds=timeout_seconds, allow_rotation=allow_rotation))


def optimize(parts: Sequence[Part], slabs: Sequence[Slab], kerf_width: float) -> NestingResult:
    """
    Lay out parts on slabs with the configured defaults.

    Args:
        parts: Parts to place
        slabs: Available slabs
        kerf_width: Saw blade width in mm

    Returns:
        Nesting result
    """
    return SlabPacker().optimize(parts, slabs, kerf_width)

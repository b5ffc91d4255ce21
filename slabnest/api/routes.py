"""Nesting routes."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body
from pydantic import BaseModel

from slabnest.nesting.editor import update_placement
from slabnest.nesting.packer import SlabPacker
from slabnest.nesting.serialization import parse_edit_request, parse_request
from slabnest.observability.logging import LogContext
from slabnest.observability.metrics import placement_edits_total
from slabnest.utils import get_logger

logger = get_logger("api.routes")

router = APIRouter()


class PlacementResponse(BaseModel):
    partId: str
    slabId: str
    x: float
    y: float
    rotation: int
    width: float
    height: float


class SlabUsageResponse(BaseModel):
    slabId: str
    usedArea: float
    totalArea: float
    wastePercentage: float


class NestingResponse(BaseModel):
    placements: List[PlacementResponse]
    unplacedParts: List[str]
    slabUsage: List[SlabUsageResponse]


class PlacementEditResponse(BaseModel):
    placements: List[PlacementResponse]
    parts: List[Dict[str, Any]]


# Sync handlers: FastAPI runs them in its threadpool, off the event loop
@router.post("/optimize", response_model=NestingResponse)
def optimize_nesting(payload: Optional[Dict[str, Any]] = Body(default=None)):
    """Lay out parts on slabs."""
    request = parse_request(payload)
    with LogContext(parts=len(request.parts), slabs=len(request.slabs)):
        result = SlabPacker().optimize(request.parts, request.slabs, request.kerf_width)
    if result.unplaced_parts:
        logger.warning(f"{len(result.unplaced_parts)} part(s) could not be placed")
    return result.to_dict()


@router.post("/placement", response_model=PlacementEditResponse)
def edit_placement(payload: Optional[Dict[str, Any]] = Body(default=None)):
    """Move one part and re-flow the movable parts on its slab."""
    request = parse_edit_request(payload)
    placement_edits_total.labels(operation="move").inc()
    result = update_placement(
        request.placements,
        request.parts,
        request.slabs,
        request.part_id,
        request.updates,
        request.kerf_width,
    )
    return result.to_dict()

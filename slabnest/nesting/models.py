"""Data model for slab nesting.

Parts, slabs and placements use millimeters and slab-local coordinates with
the origin at the slab's top-left corner. ``to_dict`` / ``from_dict`` use the
camelCase field names shared with the inventory UI.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from slabnest.nesting.errors import InvalidRequest, ShapeDataError

Number = Union[int, float]


def as_number(value: Any, name: str) -> Number:
    """Validate a numeric field, keeping ints as ints.

    Raises:
        InvalidRequest: if the value is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidRequest(f"{name} must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidRequest(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise InvalidRequest(f"{name} must be finite, got {value!r}")
    return number


class ShapeType(str, Enum):
    """Outline of a cut part."""
    RECTANGLE = "rectangle"
    L_SHAPE = "l_shape"
    CIRCLE = "circle"
    ARC = "arc"


class CutoutPosition(str, Enum):
    """Corner of an L-shape that is cut away."""
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


@dataclass(frozen=True)
class LShapeData:
    """L-shape outline. Informational only, the box is the part's width/height."""
    main_width: float
    main_height: float
    cutout_width: float
    cutout_height: float
    cutout_position: CutoutPosition = CutoutPosition.TOP_RIGHT

    def to_dict(self) -> dict:
        return {
            "mainWidth": self.main_width,
            "mainHeight": self.main_height,
            "cutoutWidth": self.cutout_width,
            "cutoutHeight": self.cutout_height,
            "cutoutPosition": self.cutout_position.value,
        }


@dataclass(frozen=True)
class CircleData:
    """Full circle; the bounding box is 2r square."""
    radius: float

    def to_dict(self) -> dict:
        return {"radius": self.radius}


@dataclass(frozen=True)
class ArcData:
    """Circular arc segment; boxed like the full circle."""
    radius: float
    start_angle: float = 0.0
    end_angle: float = 0.0

    def to_dict(self) -> dict:
        return {
            "radius": self.radius,
            "startAngle": self.start_angle,
            "endAngle": self.end_angle,
        }


ShapeData = Union[LShapeData, CircleData, ArcData]


def _positive_radius(part_id: str, data: Any) -> float:
    if not isinstance(data, dict) or "radius" not in data:
        raise ShapeDataError(part_id, "shapeData.radius is required")
    try:
        radius = float(data["radius"])
    except (TypeError, ValueError):
        raise ShapeDataError(part_id, f"invalid radius {data['radius']!r}")
    if not math.isfinite(radius) or radius <= 0:
        raise ShapeDataError(part_id, f"radius must be positive, got {radius}")
    return radius


def parse_shape_data(part_id: str, shape_type: ShapeType, data: Any) -> Optional[ShapeData]:
    """Decode a shapeData payload according to its shapeType tag.

    Rectangles carry no payload. An L-shape payload is optional since it does
    not change the bounding box. Circles and arcs must carry a positive radius.

    Raises:
        ShapeDataError: if the payload does not match the tag.
    """
    if shape_type == ShapeType.RECTANGLE:
        return None

    if shape_type == ShapeType.L_SHAPE:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ShapeDataError(part_id, "l_shape shapeData must be an object")
        try:
            return LShapeData(
                main_width=float(data["mainWidth"]),
                main_height=float(data["mainHeight"]),
                cutout_width=float(data["cutoutWidth"]),
                cutout_height=float(data["cutoutHeight"]),
                cutout_position=CutoutPosition(data.get("cutoutPosition", "top-right")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ShapeDataError(part_id, f"malformed l_shape data: {e}")

    if shape_type == ShapeType.CIRCLE:
        return CircleData(radius=_positive_radius(part_id, data))

    # ARC
    radius = _positive_radius(part_id, data)
    try:
        return ArcData(
            radius=radius,
            start_angle=float(data.get("startAngle", 0.0)),
            end_angle=float(data.get("endAngle", 0.0)),
        )
    except (TypeError, ValueError) as e:
        raise ShapeDataError(part_id, f"malformed arc angles: {e}")


def normalize_rotation(value: Any) -> int:
    """Map a rotation in degrees onto 0/90/180/270.

    Raises:
        InvalidRequest: if the value is not a multiple of 90.
    """
    try:
        degrees = float(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"Invalid rotation {value!r}")
    if not math.isfinite(degrees) or degrees % 90 != 0:
        raise InvalidRequest(f"Rotation must be a multiple of 90 degrees, got {value!r}")
    return int(degrees) % 360


def is_quarter_turn(rotation: int) -> bool:
    """True when a rotation swaps the box's width and height."""
    return rotation in (90, 270)


@dataclass
class LockedPosition:
    """A user-pinned placement."""
    x: float
    y: float
    rotation: int = 0
    slab_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "slabId": self.slab_id,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LockedPosition":
        return cls(
            slab_id=data.get("slabId"),
            x=as_number(data.get("x", 0), "lockedPosition.x"),
            y=as_number(data.get("y", 0), "lockedPosition.y"),
            rotation=normalize_rotation(data.get("rotation", 0)),
        )


@dataclass
class Part:
    """A piece requested for placement."""
    id: str
    name: str
    width: float  # Nominal box width before rotation
    height: float  # Nominal box height before rotation
    shape_type: ShapeType = ShapeType.RECTANGLE
    shape_data: Optional[ShapeData] = None
    allow_rotation: bool = True
    is_locked: bool = False
    locked_position: Optional[LockedPosition] = None

    @property
    def nominal_area(self) -> float:
        """Area of the pre-rotation box, used to order the packing."""
        return self.width * self.height

    @property
    def has_pinned_position(self) -> bool:
        return self.is_locked and self.locked_position is not None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "id": self.id,
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "shapeType": self.shape_type.value,
            "allowRotation": self.allow_rotation,
            "isLocked": self.is_locked,
        }
        if self.shape_data is not None:
            data["shapeData"] = self.shape_data.to_dict()
        if self.locked_position is not None:
            data["lockedPosition"] = self.locked_position.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Part":
        """Create from dictionary."""
        part_id = str(data["id"])
        shape_type = ShapeType(data.get("shapeType", "rectangle"))
        locked = data.get("lockedPosition")
        # Circles and arcs are boxed from their radius
        if shape_type in (ShapeType.RECTANGLE, ShapeType.L_SHAPE):
            missing = [k for k in ("width", "height") if data.get(k) is None]
            if missing:
                raise InvalidRequest(f"Part {part_id}: missing {', '.join(missing)}")
        return cls(
            id=part_id,
            name=data.get("name", part_id),
            width=as_number(data.get("width", 0), "width"),
            height=as_number(data.get("height", 0), "height"),
            shape_type=shape_type,
            shape_data=parse_shape_data(part_id, shape_type, data.get("shapeData")),
            allow_rotation=bool(data.get("allowRotation", True)),
            is_locked=bool(data.get("isLocked", False)),
            locked_position=LockedPosition.from_dict(locked) if locked else None,
        )


@dataclass
class Slab:
    """A rectangular stock sheet."""
    id: str
    name: str
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Slab":
        slab_id = str(data["id"])
        return cls(
            id=slab_id,
            name=data.get("name", slab_id),
            width=as_number(data["width"], "width"),
            height=as_number(data["height"], "height"),
        )


@dataclass
class PlacedPart:
    """A part seated on a slab.

    ``width`` and ``height`` are the effective box after rotation.
    """
    part_id: str
    slab_id: str
    x: float
    y: float
    rotation: int
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def moved(self, **changes) -> "PlacedPart":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "partId": self.part_id,
            "slabId": self.slab_id,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlacedPart":
        """Create from dictionary."""
        return cls(
            part_id=str(data["partId"]),
            slab_id=str(data["slabId"]),
            x=as_number(data["x"], "x"),
            y=as_number(data["y"], "y"),
            rotation=normalize_rotation(data.get("rotation", 0)),
            width=as_number(data["width"], "width"),
            height=as_number(data["height"], "height"),
        )


@dataclass
class SlabUsage:
    """Area accounting for one slab."""
    slab_id: str
    used_area: float
    total_area: float
    waste_percentage: float

    @property
    def utilization(self) -> float:
        """Percentage of the slab covered by parts."""
        return 100.0 - self.waste_percentage

    def to_dict(self) -> dict:
        return {
            "slabId": self.slab_id,
            "usedArea": self.used_area,
            "totalArea": self.total_area,
            "wastePercentage": self.waste_percentage,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SlabUsage":
        return cls(
            slab_id=str(data["slabId"]),
            used_area=data["usedArea"],
            total_area=data["totalArea"],
            waste_percentage=data["wastePercentage"],
        )


@dataclass
class NestingResult:
    """Result of a batch optimization."""
    placements: List[PlacedPart] = field(default_factory=list)
    unplaced_parts: List[str] = field(default_factory=list)
    slab_usage: List[SlabUsage] = field(default_factory=list)

    @property
    def has_unplaced(self) -> bool:
        return bool(self.unplaced_parts)

    @property
    def average_waste(self) -> float:
        """Mean waste percentage across all slabs."""
        if not self.slab_usage:
            return 0.0
        return sum(u.waste_percentage for u in self.slab_usage) / len(self.slab_usage)

    def placements_for_slab(self, slab_id: str) -> List[PlacedPart]:
        return [p for p in self.placements if p.slab_id == slab_id]

    def placement_for(self, part_id: str) -> Optional[PlacedPart]:
        for placement in self.placements:
            if placement.part_id == part_id:
                return placement
        return None

    def usage_for(self, slab_id: str) -> Optional[SlabUsage]:
        for usage in self.slab_usage:
            if usage.slab_id == slab_id:
                return usage
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "placements": [p.to_dict() for p in self.placements],
            "unplacedParts": list(self.unplaced_parts),
            "slabUsage": [u.to_dict() for u in self.slab_usage],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NestingResult":
        return cls(
            placements=[PlacedPart.from_dict(p) for p in data.get("placements", [])],
            unplaced_parts=[str(p) for p in data.get("unplacedParts", [])],
            slab_usage=[SlabUsage.from_dict(u) for u in data.get("slabUsage", [])],
        )

"""JSON request/response codec for the nesting engine.

Requests use the field names shared with the inventory UI:
``{parts, slabs, kerfWidth}`` in, ``{placements, unplacedParts, slabUsage}``
out. Lengths are millimeters, rotations are degrees in {0, 90, 180, 270}.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, TypeVar, Union

from slabnest.nesting.editor import PlacementUpdate
from slabnest.nesting.errors import InvalidRequest, NestingError
from slabnest.nesting.models import NestingResult, Part, PlacedPart, Slab, as_number

T = TypeVar("T")


@dataclass
class NestingRequest:
    """Input to a batch optimization."""
    parts: List[Part]
    slabs: List[Slab]
    kerf_width: float

    def to_dict(self) -> dict:
        return {
            "parts": [p.to_dict() for p in self.parts],
            "slabs": [s.to_dict() for s in self.slabs],
            "kerfWidth": self.kerf_width,
        }


@dataclass
class EditRequest:
    """Input to an incremental placement edit."""
    placements: List[PlacedPart]
    parts: List[Part]
    slabs: List[Slab]
    kerf_width: float
    part_id: str
    updates: PlacementUpdate


def _parse_list(payload: Dict[str, Any], key: str, parse: Callable[[dict], T]) -> List[T]:
    items = payload[key]
    if not isinstance(items, list):
        raise InvalidRequest(f"{key} must be a list")
    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidRequest(f"{key}[{index}] must be an object")
        try:
            parsed.append(parse(item))
        except NestingError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRequest(f"Invalid {key}[{index}]: {e}") from e
    return parsed


def _require(payload: Any, *keys: str) -> None:
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    missing = [k for k in keys if payload.get(k) is None]
    if missing:
        raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")


def parse_request(payload: Any) -> NestingRequest:
    """
    Decode an optimize request.

    Raises:
        InvalidRequest: on missing fields, an empty slab list or bad values
        ShapeDataError: if a part's shapeData does not match its shapeType
    """
    _require(payload, "parts", "slabs", "kerfWidth")
    slabs = _parse_list(payload, "slabs", Slab.from_dict)
    if not slabs:
        raise InvalidRequest("At least one slab is required")
    return NestingRequest(
        parts=_parse_list(payload, "parts", Part.from_dict),
        slabs=slabs,
        kerf_width=as_number(payload["kerfWidth"], "kerfWidth"),
    )


def parse_edit_request(payload: Any) -> EditRequest:
    """Decode an incremental placement edit request."""
    _require(payload, "placements", "parts", "slabs", "kerfWidth", "partId")
    updates = payload.get("updates") or {}
    if not isinstance(updates, dict):
        raise InvalidRequest("updates must be an object")
    return EditRequest(
        placements=_parse_list(payload, "placements", PlacedPart.from_dict),
        parts=_parse_list(payload, "parts", Part.from_dict),
        slabs=_parse_list(payload, "slabs", Slab.from_dict),
        kerf_width=as_number(payload["kerfWidth"], "kerfWidth"),
        part_id=str(payload["partId"]),
        updates=PlacementUpdate.from_dict(updates),
    )


def result_to_json(result: NestingResult, indent: int = 2) -> str:
    """Serialize a result; identical results give identical text."""
    return json.dumps(result.to_dict(), indent=indent)


def load_json_file(path: Union[str, Path]) -> Any:
    """Read a JSON document from disk.

    Raises:
        InvalidRequest: if the file is missing or not valid JSON.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise InvalidRequest(f"File not found: {path}")
    except json.JSONDecodeError as e:
        raise InvalidRequest(f"{path} is not valid JSON: {e}") from e


def load_request_file(path: Union[str, Path]) -> NestingRequest:
    """Read and decode an optimize request file."""
    return parse_request(load_json_file(path))

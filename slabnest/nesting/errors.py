"""Error taxonomy for the nesting engine.

Parts that cannot be seated (a locked part whose pinned position conflicts,
or a free part with no room on any slab) are not errors: they are reported
through ``NestingResult.unplaced_parts``. Exceptions are reserved for bad
requests and for internal faults.
"""


class NestingError(Exception):
    """Base class for nesting engine errors."""


class InvalidRequest(NestingError):
    """The request is missing data or is malformed.

    Raised before any computation starts.
    """


class EngineFault(NestingError):
    """Unexpected internal failure while computing a layout."""


class ShapeDataError(EngineFault):
    """A part's shapeData payload does not match its shapeType."""

    def __init__(self, part_id: str, message: str):
        self.part_id = part_id
        super().__init__(f"Part {part_id}: {message}")


class OptimizationTimeout(EngineFault):
    """Batch optimization exceeded its time budget."""

    def __init__(self, timeout_seconds: float, placed: int, remaining: int):
        self.timeout_seconds = timeout_seconds
        self.placed = placed
        self.remaining = remaining
        super().__init__(
            f"Optimization exceeded {timeout_seconds:.1f}s "
            f"({placed} parts processed, {remaining} remaining)"
        )

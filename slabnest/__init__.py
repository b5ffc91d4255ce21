"""SlabNest - stone slab nesting engine.

Lays out cut parts on fixed-size slabs to minimize waste, with kerf
margins, user-locked placements and incremental re-layout.
"""

__version__ = "0.1.0"

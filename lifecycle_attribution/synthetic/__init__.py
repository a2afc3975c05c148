"""Synthetic lifecycle metric generation.

Produces realistic-but-fake metric datasets so the dashboard core can be
exercised end to end without a lifecycle analytics backend.
"""

from .generator import (
    SEGMENT_VOLUME,
    SYNTHETIC_GENERATORS,
    generate_metric,
    seeded_rng,
)

__all__ = [
    "SEGMENT_VOLUME",
    "SYNTHETIC_GENERATORS",
    "generate_metric",
    "seeded_rng",
]

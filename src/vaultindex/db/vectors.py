"""Vector encoding for sqlite-vec float32 blobs."""

from __future__ import annotations

import math
from collections.abc import Sequence

from sqlite_vec import serialize_float32


def serialize_vector(vector: Sequence[float]) -> bytes:
    """Encode *vector* as the compact float32 blob sqlite-vec functions accept."""
    return serialize_float32(list(vector))


def validate_vector(vector: Sequence[float], dimension: int) -> None:
    """Raise ValueError unless *vector* has *dimension* finite components.

    Examples:
        validate_vector([0.1, 0.2], 2)      # ok
        validate_vector([0.1], 2)           # ValueError: dimension mismatch
    """
    if dimension < 1:
        raise ValueError(f"dimension must be >= 1, got {dimension}")
    if len(vector) != dimension:
        raise ValueError(
            f"Vector dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    if not all(math.isfinite(v) for v in vector):
        raise ValueError("Vector contains NaN or infinite components")

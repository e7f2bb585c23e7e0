"""
3D joint geometry on hand landmarks.

Angles are computed from full (x, y, z) coordinates. Degenerate input
(coincident points) yields None instead of raising, so callers can drop
the sample for that frame.
"""

import math
from typing import Optional

import numpy as np


def _as_vector(p) -> np.ndarray:
    """Point3D, tuple, or array -> float64 (3,) vector; missing z is 0."""
    v = np.asarray(p, dtype=np.float64).reshape(-1)
    if v.shape[0] == 2:
        v = np.append(v, 0.0)
    return v[:3]


def interior_angle(a, b, c) -> Optional[float]:
    """Angle at vertex b formed by points a-b-c, in degrees.

    Returns:
        Angle in (0, 180], or None if a or c coincides with b. A folded
        triple (a and c on the same ray from b) is the one case that gives 0.
    """
    ab = _as_vector(a) - _as_vector(b)
    cb = _as_vector(c) - _as_vector(b)
    mag = float(np.linalg.norm(ab) * np.linalg.norm(cb))
    if mag == 0.0:
        return None
    ratio = float(np.dot(ab, cb)) / mag
    if not math.isfinite(ratio):
        return None
    # Rounding can push collinear triples just outside acos' domain
    ratio = max(-1.0, min(1.0, ratio))
    return math.degrees(math.acos(ratio))


def distance(p, q) -> float:
    """Euclidean distance between two 3D points."""
    return float(np.linalg.norm(_as_vector(p) - _as_vector(q)))


def normalized_distance(p, q, ref_a, ref_b) -> Optional[float]:
    """Distance p-q divided by the reference length ref_a-ref_b.

    Returns None when the reference length is zero.
    """
    ref = distance(ref_a, ref_b)
    if ref == 0.0:
        return None
    value = distance(p, q) / ref
    return value if math.isfinite(value) else None

"""
Shared domain types for the finger ROM analyzer.

Centralizes enums, data classes, and type definitions used across modules
to eliminate circular imports and ensure type consistency.
"""

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

LANDMARK_COUNT = 21


# =============================================================================
# Landmarks
# =============================================================================

class LandmarkIndex(IntEnum):
    """Hand landmark indices following MediaPipe convention."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


class Point3D(NamedTuple):
    """A landmark position or derived vector."""
    x: float
    y: float
    z: float = 0.0  # detector may omit depth

    def __sub__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def dot(self, other: "Point3D") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    @property
    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)


class LandmarkFrame:
    """The 21 hand landmarks returned by the detector for one sampled frame."""

    __slots__ = ("_points",)

    def __init__(self, points: Sequence[Point3D]):
        if len(points) != LANDMARK_COUNT:
            raise ValueError(
                f"expected {LANDMARK_COUNT} landmarks, got {len(points)}"
            )
        self._points = tuple(points)

    def __getitem__(self, index: int) -> Point3D:
        return self._points[index]

    def __len__(self) -> int:
        return LANDMARK_COUNT

    def __iter__(self):
        return iter(self._points)


# =============================================================================
# Chain Configuration
# =============================================================================

class ExtensionConvention(Enum):
    """How extension is derived from the maximum observed joint angle."""
    RESIDUAL = "residual"  # 180 - max
    SIGNED = "signed"      # max - 180

    @classmethod
    def from_string(cls, name: str) -> "ExtensionConvention":
        try:
            return cls(str(name).lower())
        except ValueError:
            raise ValueError(
                f"unknown extension convention {name!r} "
                f"(expected one of: {', '.join(c.value for c in cls)})"
            ) from None


@dataclass(frozen=True)
class JointSpec:
    """Angle at `vertex` between the proximal and distal landmarks."""
    name: str
    proximal: int
    vertex: int
    distal: int

    @property
    def indices(self) -> Tuple[int, int, int]:
        return (self.proximal, self.vertex, self.distal)


@dataclass(frozen=True)
class DistanceSpec:
    """Distance source->target, normalized by the ref_a->ref_b length."""
    name: str
    source: int
    target: int
    ref_a: int
    ref_b: int


@dataclass(frozen=True)
class QualityPolicy:
    """Detection-rate requirement attached to a joint chain."""
    min_ratio: float = 0.6
    min_detected: int = 1


@dataclass(frozen=True)
class JointChain:
    """Joints measured by one analysis mode and how they are reduced."""
    name: str
    joints: Tuple[JointSpec, ...]
    convention: ExtensionConvention = ExtensionConvention.RESIDUAL
    quality: QualityPolicy = field(default_factory=QualityPolicy)
    distances: Tuple[DistanceSpec, ...] = ()
    description: str = ""

    @property
    def joint_names(self) -> List[str]:
        return [j.name for j in self.joints]


# =============================================================================
# Per-run Containers
# =============================================================================

class AngleSequence:
    """Per-joint angle samples (degrees) collected over a run.

    Grows during collection; aggregation only reads it. Undefined samples
    are dropped on insert, so every stored value is finite.
    """

    def __init__(self, joint_names: Sequence[str] = (), distance_names: Sequence[str] = ()):
        self._angles: Dict[str, List[float]] = {name: [] for name in joint_names}
        self._distances: Dict[str, List[float]] = {name: [] for name in distance_names}

    def add(self, joint: str, angle: Optional[float]) -> bool:
        """Append an angle sample. Returns False if it was dropped."""
        if angle is None or not math.isfinite(angle):
            return False
        self._angles.setdefault(joint, []).append(float(angle))
        return True

    def add_distance(self, name: str, value: Optional[float]) -> bool:
        if value is None or not math.isfinite(value):
            return False
        self._distances.setdefault(name, []).append(float(value))
        return True

    def samples(self, joint: str) -> Tuple[float, ...]:
        return tuple(self._angles.get(joint, ()))

    def distance_samples(self, name: str) -> Tuple[float, ...]:
        return tuple(self._distances.get(name, ()))

    @property
    def joints(self) -> List[str]:
        return list(self._angles.keys())

    @property
    def distances(self) -> List[str]:
        return list(self._distances.keys())

    def __len__(self) -> int:
        return len(self._angles)

    def __repr__(self):
        counts = ", ".join(f"{k}={len(v)}" for k, v in self._angles.items())
        return f"AngleSequence({counts})"


@dataclass(frozen=True)
class QualityVerdict:
    total_frames: int
    detected_frames: int
    passed: bool = False

    @property
    def detection_ratio(self) -> float:
        if self.total_frames == 0:
            return 0.0
        return self.detected_frames / self.total_frames


@dataclass(frozen=True)
class JointROM:
    flexion: float
    extension: float


@dataclass
class ROMResult:
    """Terminal artifact of a successful analysis."""
    joints: Dict[str, JointROM]
    convention: ExtensionConvention
    unavailable: List[str] = field(default_factory=list)
    distances: Dict[str, float] = field(default_factory=dict)

    def __getitem__(self, joint: str) -> JointROM:
        return self.joints[joint]

    def to_dict(self) -> dict:
        return {
            "joints": {
                name: {"flexion": rom.flexion, "extension": rom.extension}
                for name, rom in self.joints.items()
            },
            "convention": self.convention.value,
            "unavailable": list(self.unavailable),
            "distances": dict(self.distances),
        }


# =============================================================================
# Pipeline Outcome
# =============================================================================

class PipelineState(Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    COLLECTING = "collecting"
    QUALITY_CHECK = "quality_check"
    AGGREGATING = "aggregating"
    DONE = "done"
    REJECTED = "rejected"


class RejectReason:
    """User-facing rejection reasons."""
    NO_INPUT = "no input"
    INSUFFICIENT_VISIBILITY = "insufficient hand visibility"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Rejection:
    reason: str
    total_frames: int = 0
    detected_frames: int = 0


class SampledFrame:
    """One step of the sampling sweep. `image` is None if the seek timed out."""

    __slots__ = ("index", "timestamp", "image")

    def __init__(self, index: int, timestamp: float, image: Optional[np.ndarray]):
        self.index = index
        self.timestamp = timestamp
        self.image = image

    def __repr__(self):
        return f"SampledFrame(#{self.index}, t={self.timestamp:.2f}s)"

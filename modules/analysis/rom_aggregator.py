"""
Reduction of per-joint angle samples to flexion / extension values.

    flexion   = 180 - min(S)
    extension = 180 - max(S)   (RESIDUAL)
              = max(S) - 180   (SIGNED, negative unless hyperextended)

The convention is fixed per joint chain, so every joint in one report uses
the same sign. Joints without samples are listed as unavailable.
"""

import logging
from typing import Sequence

from core.types import AngleSequence, ExtensionConvention, JointROM, ROMResult
from modules.utils.logger import log_timing

logger = logging.getLogger(__name__)

STRAIGHT_DEG = 180.0


def flexion(samples: Sequence[float]) -> float:
    return STRAIGHT_DEG - min(samples)


def extension(samples: Sequence[float], convention: ExtensionConvention) -> float:
    if convention is ExtensionConvention.SIGNED:
        return max(samples) - STRAIGHT_DEG
    return STRAIGHT_DEG - max(samples)


@log_timing
def aggregate(sequence: AngleSequence,
              convention: ExtensionConvention = ExtensionConvention.RESIDUAL) -> ROMResult:
    """Reduce every joint of `sequence` to a JointROM.

    Pure: `sequence` is only read, and repeated calls give equal results.
    Distance series are reduced to their minimum.
    """
    joints = {}
    unavailable = []
    for name in sequence.joints:
        samples = sequence.samples(name)
        if not samples:
            logger.warning("No valid angle samples for joint %s", name)
            unavailable.append(name)
            continue
        joints[name] = JointROM(
            flexion=flexion(samples),
            extension=extension(samples, convention),
        )

    distances = {}
    for name in sequence.distances:
        samples = sequence.distance_samples(name)
        if not samples:
            logger.warning("No valid distance samples for %s", name)
            unavailable.append(name)
            continue
        distances[name] = min(samples)

    return ROMResult(
        joints=joints,
        convention=convention,
        unavailable=unavailable,
        distances=distances,
    )

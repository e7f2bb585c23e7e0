"""
Detection-quality gate.

A run is only aggregated if enough sampled frames contained a hand.
"""

import logging
from typing import Optional

from core.types import QualityPolicy, QualityVerdict

logger = logging.getLogger(__name__)


def check_quality(verdict: QualityVerdict, min_ratio: float, min_detected: int = 1) -> bool:
    """True if detected/total >= min_ratio and at least `min_detected` hands were seen.

    A run with no sampled frames never passes.
    """
    if verdict.total_frames <= 0:
        return False
    if verdict.detected_frames < min_detected:
        return False
    return verdict.detected_frames / verdict.total_frames >= min_ratio


class QualityGate:
    """Applies a chain's QualityPolicy to collection counts."""

    def __init__(self, policy: Optional[QualityPolicy] = None):
        self._policy = policy or QualityPolicy()

    @property
    def policy(self) -> QualityPolicy:
        return self._policy

    def evaluate(self, total_frames: int, detected_frames: int) -> QualityVerdict:
        """Build the verdict for a finished collection."""
        counts = QualityVerdict(total_frames, detected_frames)
        passed = check_quality(counts, self._policy.min_ratio, self._policy.min_detected)
        logger.debug(
            "Quality gate: %d/%d detected (ratio %.2f, required %.2f) -> %s",
            detected_frames, total_frames, counts.detection_ratio,
            self._policy.min_ratio, "pass" if passed else "fail",
        )
        return QualityVerdict(total_frames, detected_frames, passed)

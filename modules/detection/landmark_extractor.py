"""
Landmark conversion and per-frame joint measurement.

Turns detector output into LandmarkFrame objects and computes the joint
angles and normalized distances a JointChain asks for.
"""

import logging
from typing import Dict, Optional

from core.types import JointChain, LANDMARK_COUNT, LandmarkFrame, Point3D
from modules.geometry.angles import interior_angle, normalized_distance

logger = logging.getLogger(__name__)


class LandmarkExtractor:
    """Extracts joint measurements from hand landmarks."""

    def extract_landmarks(self, hand_landmarks) -> LandmarkFrame:
        """Convert a sequence of 21 MediaPipe landmarks to a LandmarkFrame.

        Landmarks without a depth value get z = 0.
        """
        points = []
        for lm in hand_landmarks:
            z = getattr(lm, "z", None)
            points.append(Point3D(float(lm.x), float(lm.y), float(z) if z is not None else 0.0))
        if len(points) != LANDMARK_COUNT:
            logger.warning("Detector returned %d landmarks, expected %d",
                           len(points), LANDMARK_COUNT)
        return LandmarkFrame(points)

    def joint_angles(self, landmarks: LandmarkFrame, chain: JointChain) -> Dict[str, Optional[float]]:
        """Angle per joint of the chain; None where the geometry is degenerate.

        Returns:
            dict {joint_name: degrees or None}
        """
        angles = {}
        for joint in chain.joints:
            angles[joint.name] = interior_angle(
                landmarks[joint.proximal], landmarks[joint.vertex], landmarks[joint.distal]
            )
        return angles

    def distances(self, landmarks: LandmarkFrame, chain: JointChain) -> Dict[str, Optional[float]]:
        """Normalized distance per DistanceSpec of the chain."""
        values = {}
        for spec in chain.distances:
            values[spec.name] = normalized_distance(
                landmarks[spec.source], landmarks[spec.target],
                landmarks[spec.ref_a], landmarks[spec.ref_b],
            )
        return values

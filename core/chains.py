"""
Joint chain definitions for each analysis mode.

A mode names the joints to measure (landmark triples), the extension sign
convention, the detection-rate requirement, and optional distance metrics.
Built-in modes cover the thumb, each finger, and thumb opposition; YAML
config can override fields or add new modes.

Quality thresholds:
    - thumb_mp_ip, thumb, index, middle, ring: >= 60% of sampled frames
      must contain a hand.
    - pinky, opposition: at least one detected frame.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from core.errors import ConfigurationError
from core.types import (
    DistanceSpec,
    ExtensionConvention,
    JointChain,
    JointSpec,
    LandmarkIndex as L,
    LANDMARK_COUNT,
    QualityPolicy,
)

logger = logging.getLogger(__name__)

RATIO_POLICY = QualityPolicy(min_ratio=0.6, min_detected=1)
ANY_DETECTION_POLICY = QualityPolicy(min_ratio=0.0, min_detected=1)

# (MCP, PIP, DIP, TIP) per finger
FINGER_LANDMARKS = {
    "index":  (L.INDEX_MCP, L.INDEX_PIP, L.INDEX_DIP, L.INDEX_TIP),
    "middle": (L.MIDDLE_MCP, L.MIDDLE_PIP, L.MIDDLE_DIP, L.MIDDLE_TIP),
    "ring":   (L.RING_MCP, L.RING_PIP, L.RING_DIP, L.RING_TIP),
    "pinky":  (L.PINKY_MCP, L.PINKY_PIP, L.PINKY_DIP, L.PINKY_TIP),
}


def finger_chain(finger: str, convention=ExtensionConvention.RESIDUAL,
                 quality: QualityPolicy = RATIO_POLICY) -> JointChain:
    """MCP/PIP/DIP chain for a long finger, with the wrist as MCP reference."""
    mcp, pip, dip, tip = FINGER_LANDMARKS[finger]
    return JointChain(
        name=finger,
        joints=(
            JointSpec("MCP", L.WRIST, mcp, pip),
            JointSpec("PIP", mcp, pip, dip),
            JointSpec("DIP", pip, dip, tip),
        ),
        convention=convention,
        quality=quality,
        description=f"{finger} finger MCP / PIP / DIP",
    )


BUILTIN_CHAINS: Dict[str, JointChain] = {
    "thumb_mp_ip": JointChain(
        name="thumb_mp_ip",
        joints=(
            JointSpec("MP", L.WRIST, L.THUMB_MCP, L.THUMB_IP),
            JointSpec("IP", L.THUMB_MCP, L.THUMB_IP, L.THUMB_TIP),
        ),
        convention=ExtensionConvention.RESIDUAL,
        quality=RATIO_POLICY,
        description="thumb MP / IP",
    ),
    "thumb": JointChain(
        name="thumb",
        joints=(
            JointSpec("CMC", L.WRIST, L.THUMB_CMC, L.THUMB_MCP),
            JointSpec("MCP", L.THUMB_CMC, L.THUMB_MCP, L.THUMB_IP),
            JointSpec("IP", L.THUMB_MCP, L.THUMB_IP, L.THUMB_TIP),
        ),
        convention=ExtensionConvention.RESIDUAL,
        quality=RATIO_POLICY,
        description="thumb CMC / MCP / IP",
    ),
    "index": finger_chain("index"),
    "middle": finger_chain("middle"),
    "ring": finger_chain("ring"),
    # Pinky reports hyperextension as a signed deviation past straight.
    "pinky": finger_chain("pinky", ExtensionConvention.SIGNED, ANY_DETECTION_POLICY),
    "opposition": JointChain(
        name="opposition",
        joints=(),
        convention=ExtensionConvention.RESIDUAL,
        quality=ANY_DETECTION_POLICY,
        distances=(
            DistanceSpec("thumb_middle_tip", L.THUMB_TIP, L.MIDDLE_TIP,
                         L.WRIST, L.THUMB_MCP),
        ),
        description="thumb opposition (normalized tip distance)",
    ),
}


# =============================================================================
# Config Parsing
# =============================================================================

def _check_index(value, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{where}: landmark index must be int, got {value!r}")
    if not 0 <= value < LANDMARK_COUNT:
        raise ConfigurationError(f"{where}: landmark index {value} out of range 0-20")
    return value


def _parse_joints(mode: str, joints: dict) -> tuple:
    specs = []
    for name, triple in joints.items():
        if not isinstance(triple, (list, tuple)) or len(triple) != 3:
            raise ConfigurationError(
                f"modes.{mode}.joints.{name}: expected [proximal, vertex, distal]"
            )
        p, v, d = (_check_index(i, f"modes.{mode}.joints.{name}") for i in triple)
        if v in (p, d):
            raise ConfigurationError(
                f"modes.{mode}.joints.{name}: vertex must differ from its neighbours"
            )
        specs.append(JointSpec(str(name), p, v, d))
    return tuple(specs)


def _parse_distances(mode: str, distances: dict) -> tuple:
    specs = []
    for name, entry in distances.items():
        where = f"modes.{mode}.distances.{name}"
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{where}: expected mapping with points/reference")
        points = entry.get("points")
        reference = entry.get("reference")
        if not (isinstance(points, (list, tuple)) and len(points) == 2
                and isinstance(reference, (list, tuple)) and len(reference) == 2):
            raise ConfigurationError(f"{where}: points and reference need two indices each")
        src, dst = (_check_index(i, where) for i in points)
        ref_a, ref_b = (_check_index(i, where) for i in reference)
        specs.append(DistanceSpec(str(name), src, dst, ref_a, ref_b))
    return tuple(specs)


def chain_from_dict(name: str, data: dict, base: Optional[JointChain] = None,
                    default_convention: Optional[ExtensionConvention] = None) -> JointChain:
    """Build a JointChain from a config mapping, filling gaps from `base`."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"modes.{name}: expected a mapping")

    if "joints" in data:
        joints = _parse_joints(name, data["joints"] or {})
    elif base is not None:
        joints = base.joints
    else:
        joints = ()

    if "distances" in data:
        distances = _parse_distances(name, data["distances"] or {})
    elif base is not None:
        distances = base.distances
    else:
        distances = ()

    if not joints and not distances:
        raise ConfigurationError(f"modes.{name}: no joints or distances defined")

    if "convention" in data:
        try:
            convention = ExtensionConvention.from_string(data["convention"])
        except ValueError as e:
            raise ConfigurationError(f"modes.{name}.convention: {e}") from None
    elif base is not None:
        convention = base.convention
    else:
        convention = default_convention or ExtensionConvention.RESIDUAL

    quality = base.quality if base is not None else RATIO_POLICY
    min_ratio = data.get("min_detection_ratio", quality.min_ratio)
    min_detected = data.get("min_detected_frames", quality.min_detected)
    if (isinstance(min_ratio, bool) or not isinstance(min_ratio, (int, float))
            or not 0.0 <= min_ratio <= 1.0):
        raise ConfigurationError(
            f"modes.{name}.min_detection_ratio: expected 0.0-1.0, got {min_ratio!r}"
        )
    if isinstance(min_detected, bool) or not isinstance(min_detected, int) or min_detected < 1:
        raise ConfigurationError(
            f"modes.{name}.min_detected_frames: expected int >= 1, got {min_detected!r}"
        )

    return JointChain(
        name=name,
        joints=joints,
        convention=convention,
        quality=QualityPolicy(min_ratio=float(min_ratio), min_detected=min_detected),
        distances=distances,
        description=data.get("description", base.description if base else ""),
    )


def load_chains(modes_config: Optional[dict] = None,
                default_convention: Optional[ExtensionConvention] = None) -> Dict[str, JointChain]:
    """Merge built-in chains with YAML `modes` overrides."""
    chains = dict(BUILTIN_CHAINS)
    for name, data in (modes_config or {}).items():
        chains[name] = chain_from_dict(name, data, base=chains.get(name),
                                       default_convention=default_convention)
        logger.debug("Mode '%s' configured from config file", name)
    return chains


def with_convention(chain: JointChain, convention: ExtensionConvention) -> JointChain:
    """Copy of `chain` reporting extension with another sign convention."""
    return replace(chain, convention=convention)


def get_chain(mode: str, chains: Optional[Dict[str, JointChain]] = None) -> JointChain:
    chains = chains if chains is not None else BUILTIN_CHAINS
    try:
        return chains[mode]
    except KeyError:
        raise ConfigurationError(
            f"unknown analysis mode {mode!r} (available: {', '.join(sorted(chains))})"
        ) from None


def list_modes(chains: Optional[Dict[str, JointChain]] = None) -> List[str]:
    return sorted((chains if chains is not None else BUILTIN_CHAINS).keys())

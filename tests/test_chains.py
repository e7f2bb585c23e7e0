"""
Tests for Joint Chain Definitions
==================================
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.chains import (
    ANY_DETECTION_POLICY,
    BUILTIN_CHAINS,
    RATIO_POLICY,
    chain_from_dict,
    get_chain,
    list_modes,
    load_chains,
    with_convention,
)
from core.errors import ConfigurationError
from core.types import ExtensionConvention, LandmarkIndex as L


class TestBuiltinChains:
    """Test suite for the built-in analysis modes."""

    def test_modes(self):
        assert list_modes() == [
            "index", "middle", "opposition", "pinky", "ring", "thumb", "thumb_mp_ip",
        ]

    def test_pinky_chain(self):
        pinky = BUILTIN_CHAINS["pinky"]
        assert pinky.joint_names == ["MCP", "PIP", "DIP"]
        assert pinky.joints[1].indices == (L.PINKY_MCP, L.PINKY_PIP, L.PINKY_DIP)
        assert pinky.convention is ExtensionConvention.SIGNED
        assert pinky.quality == ANY_DETECTION_POLICY

    def test_thumb_mp_ip_chain(self):
        thumb = BUILTIN_CHAINS["thumb_mp_ip"]
        assert [j.indices for j in thumb.joints] == [(0, 2, 3), (2, 3, 4)]
        assert thumb.convention is ExtensionConvention.RESIDUAL
        assert thumb.quality == RATIO_POLICY

    def test_finger_mcp_uses_wrist(self):
        for finger in ("index", "middle", "ring", "pinky"):
            mcp = BUILTIN_CHAINS[finger].joints[0]
            assert mcp.proximal == L.WRIST

    def test_every_vertex_is_distinct(self):
        for chain in BUILTIN_CHAINS.values():
            for joint in chain.joints:
                assert joint.vertex not in (joint.proximal, joint.distal)

    def test_opposition_is_distance_only(self):
        opposition = BUILTIN_CHAINS["opposition"]
        assert opposition.joints == ()
        assert opposition.distances[0].source == L.THUMB_TIP
        assert opposition.distances[0].target == L.MIDDLE_TIP


class TestChainFromDict:
    """Test suite for YAML mode definitions."""

    def test_new_mode(self):
        chain = chain_from_dict("ring_pip", {
            "joints": {"PIP": [13, 14, 15]},
            "min_detection_ratio": 0.5,
            "description": "ring PIP",
        })
        assert chain.joint_names == ["PIP"]
        assert chain.joints[0].indices == (13, 14, 15)
        assert chain.quality.min_ratio == 0.5
        assert chain.description == "ring PIP"
        assert chain.convention is ExtensionConvention.RESIDUAL

    def test_default_convention(self):
        chain = chain_from_dict("x", {"joints": {"J": [0, 1, 2]}},
                                default_convention=ExtensionConvention.SIGNED)
        assert chain.convention is ExtensionConvention.SIGNED

    def test_override_keeps_base_joints(self):
        chain = chain_from_dict("index", {"convention": "signed"}, base=BUILTIN_CHAINS["index"])
        assert chain.joints == BUILTIN_CHAINS["index"].joints
        assert chain.convention is ExtensionConvention.SIGNED
        assert chain.quality == RATIO_POLICY

    def test_distance_mode(self):
        chain = chain_from_dict("pinch", {
            "distances": {"pinch": {"points": [4, 8], "reference": [0, 5]}},
        })
        assert chain.joints == ()
        assert chain.distances[0].ref_b == 5

    @pytest.mark.parametrize("data", [
        {},
        {"joints": {"J": [0, 1]}},
        {"joints": {"J": [0, 1, 21]}},
        {"joints": {"J": [0, 1, "2"]}},
        {"joints": {"J": [1, 1, 2]}},
        {"joints": {"J": [0, 1, 2]}, "convention": "sideways"},
        {"joints": {"J": [0, 1, 2]}, "min_detection_ratio": 1.5},
        {"joints": {"J": [0, 1, 2]}, "min_detected_frames": 0},
        {"joints": {"J": [0, 1, 2]}, "min_detection_ratio": True},
        {"joints": {"J": [0, 1, 2]}, "min_detected_frames": True},
        {"distances": {"d": {"points": [4]}}},
    ])
    def test_invalid(self, data):
        with pytest.raises(ConfigurationError):
            chain_from_dict("bad", data)


class TestChainLookup:
    """Test suite for mode resolution."""

    def test_load_chains_merges(self):
        chains = load_chains({"pinky": {"convention": "residual"}, "extra": {"joints": {"J": [0, 1, 2]}}})
        assert chains["pinky"].convention is ExtensionConvention.RESIDUAL
        assert "extra" in chains
        assert BUILTIN_CHAINS["pinky"].convention is ExtensionConvention.SIGNED

    def test_get_chain_unknown(self):
        with pytest.raises(ConfigurationError, match="elbow"):
            get_chain("elbow")

    def test_with_convention(self):
        chain = with_convention(BUILTIN_CHAINS["index"], ExtensionConvention.SIGNED)
        assert chain.convention is ExtensionConvention.SIGNED
        assert BUILTIN_CHAINS["index"].convention is ExtensionConvention.RESIDUAL

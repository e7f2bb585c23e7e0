"""
Tests for the Command-Line Entry Point
=======================================
"""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import main
from core.diagnostics import Diagnostics
from core.pipeline import AnalysisOutcome
from core.types import (
    ExtensionConvention,
    JointROM,
    PipelineState,
    QualityVerdict,
    Rejection,
    RejectReason,
    ROMResult,
)
from modules.utils.config import Config


@pytest.fixture(autouse=True)
def quiet_cli():
    Config.reset()
    with patch("main.setup_logging"):
        yield
    Config.reset()


def done_outcome():
    outcome = AnalysisOutcome("pinky", Diagnostics("pinky"))
    outcome.state = PipelineState.DONE
    outcome.verdict = QualityVerdict(10, 9, True)
    outcome.result = ROMResult(
        joints={"PIP": JointROM(flexion=85.0, extension=-3.5)},
        convention=ExtensionConvention.SIGNED,
        unavailable=["DIP"],
    )
    return outcome


class TestFormatOutcome:
    """Test suite for the text report."""

    def test_done(self):
        text = main.format_outcome(done_outcome())

        assert "[pinky] measurement complete (9/10 frames with a hand, extension: signed)" in text
        assert "PIP   flexion   85.0 deg / extension   -3.5 deg" in text
        assert "DIP   no valid samples" in text

    def test_rejected(self):
        outcome = AnalysisOutcome("index", Diagnostics("index"))
        outcome.state = PipelineState.REJECTED
        outcome.rejection = Rejection(RejectReason.INSUFFICIENT_VISIBILITY, 10, 3)

        text = main.format_outcome(outcome)

        assert text.splitlines() == [
            "[index] rejected: insufficient hand visibility",
            "  detected 3 of 10 sampled frames",
        ]


class TestMain:
    """Test suite for CLI exit codes."""

    def test_list_modes(self, capsys):
        assert main.main(["--list-modes"]) == main.EXIT_DONE
        out = capsys.readouterr().out
        assert "thumb_mp_ip" in out
        assert "opposition" in out

    def test_no_video_is_rejected(self, capsys):
        assert main.main([]) == main.EXIT_REJECTED
        assert "rejected: no input" in capsys.readouterr().out

    def test_missing_file_json(self, capsys, tmp_path):
        code = main.main([str(tmp_path / "missing.mp4"), "--mode", "index", "--json"])

        data = json.loads(capsys.readouterr().out)
        assert code == main.EXIT_REJECTED
        assert data["mode"] == "index"
        assert data["rejection"]["reason"] == "no input"

    def test_unknown_mode(self):
        assert main.main(["hand.mp4", "--mode", "elbow"]) == main.EXIT_ERROR

    def test_export_log(self, tmp_path, capsys):
        log_path = tmp_path / "run.log"

        main.main(["--export-log", str(log_path)])

        assert "state -> rejected" in log_path.read_text(encoding="utf-8")

    def test_convention_override(self, capsys):
        with patch.object(main.ROMAnalyzer, "analyze_sync", return_value=done_outcome()) as run:
            assert main.main(["hand.mp4", "--convention", "residual"]) == main.EXIT_DONE

        chain = run.call_args.args[1]
        assert chain.name == "pinky"
        assert chain.convention is ExtensionConvention.RESIDUAL

    def test_step_override(self):
        with patch.object(main.ROMAnalyzer, "analyze_sync", return_value=done_outcome()):
            main.main(["hand.mp4", "--step", "0.25"])
        assert Config().get("sampling.step_seconds") == 0.25

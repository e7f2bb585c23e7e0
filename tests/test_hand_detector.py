"""
Tests for Hand Detector
========================
MediaPipe is replaced with mocks; frames are synthetic.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import DetectionError
from core.types import LandmarkFrame
from modules.detection.hand_detector import (
    HandDetector,
    HandDetectorConfig,
    download_model,
)
from modules.detection.landmark_extractor import LandmarkExtractor


def fake_landmarks(with_z=True):
    if with_z:
        return [SimpleNamespace(x=i / 20, y=0.5, z=-0.01 * i) for i in range(21)]
    return [SimpleNamespace(x=i / 20, y=0.5) for i in range(21)]


@pytest.fixture
def frame():
    return np.zeros((48, 64, 3), dtype=np.uint8)


@pytest.fixture
def mock_mp():
    with patch("modules.detection.hand_detector.mp") as mp:
        yield mp


class TestHandDetectorConfig:
    """Test suite for detector configuration."""

    def test_from_dict(self):
        config = HandDetectorConfig.from_dict({
            "backend": "solutions", "model_path": None, "max_num_hands": 2,
            "min_detection_confidence": 0.7,
        })
        assert config.backend == "solutions"
        assert config.model_path == ""
        assert config.max_num_hands == 2
        assert config.min_detection_confidence == 0.7
        assert config.min_presence_confidence == 0.5


class TestSolutionsBackend:
    """Test suite for the mp.solutions.hands backend."""

    def test_detects_first_hand(self, mock_mp, frame):
        hands = mock_mp.solutions.hands.Hands.return_value
        hands.process.return_value = SimpleNamespace(
            multi_hand_landmarks=[SimpleNamespace(landmark=fake_landmarks())]
        )

        with HandDetector(HandDetectorConfig(backend="solutions")) as detector:
            result = detector.detect(frame)

        assert isinstance(result, LandmarkFrame)
        assert result[5].x == pytest.approx(0.25)
        assert result[5].z == pytest.approx(-0.05)
        assert mock_mp.solutions.hands.Hands.call_args.kwargs["static_image_mode"] is True
        hands.close.assert_called_once()

    def test_no_hand(self, mock_mp, frame):
        mock_mp.solutions.hands.Hands.return_value.process.return_value = SimpleNamespace(
            multi_hand_landmarks=None
        )
        detector = HandDetector(HandDetectorConfig(backend="solutions"))

        assert detector.detect(frame) is None
        assert detector.is_started

    def test_backend_failure(self, mock_mp, frame):
        mock_mp.solutions.hands.Hands.return_value.process.side_effect = RuntimeError("graph error")
        detector = HandDetector(HandDetectorConfig(backend="solutions"))

        with pytest.raises(DetectionError, match="graph error"):
            detector.detect(frame)

    def test_empty_image(self, mock_mp):
        detector = HandDetector(HandDetectorConfig(backend="solutions"))
        with pytest.raises(DetectionError):
            detector.detect(np.zeros((0, 0, 3), dtype=np.uint8))


class TestTasksBackend:
    """Test suite for the HandLandmarker backend."""

    def test_detect(self, mock_mp, frame):
        detector = HandDetector()
        detector._landmarker = MagicMock()
        detector._landmarker.detect.return_value = SimpleNamespace(hand_landmarks=[fake_landmarks()])

        result = detector.detect(frame)

        assert result[20].x == pytest.approx(1.0)
        mock_mp.Image.assert_called_once()
        detector.close()
        assert not detector.is_started

    def test_missing_model(self, tmp_path):
        config = HandDetectorConfig(model_path=str(tmp_path / "absent.task"))
        with patch("modules.detection.hand_detector.download_model", return_value=False):
            with pytest.raises(DetectionError, match="unavailable"):
                HandDetector(config).start()


class TestDownloadModel:
    """Test suite for the model bundle download."""

    def test_existing_file(self, tmp_path):
        path = tmp_path / "model.task"
        path.write_bytes(b"model")
        with patch("modules.detection.hand_detector.urllib.request.urlretrieve") as fetch:
            assert download_model("http://example/model.task", path)
        fetch.assert_not_called()

    def test_network_failure(self, tmp_path):
        with patch("modules.detection.hand_detector.urllib.request.urlretrieve",
                   side_effect=OSError("offline")):
            assert not download_model("http://example/model.task", tmp_path / "m.task")


class TestLandmarkExtractor:
    """Test suite for landmark conversion."""

    def test_missing_depth_defaults_to_zero(self):
        result = LandmarkExtractor().extract_landmarks(fake_landmarks(with_z=False))
        assert all(p.z == 0.0 for p in result)

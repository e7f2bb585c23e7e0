"""
Tests for the OpenCV Frame Source
==================================
cv2 is replaced with a mock; no real video is decoded.
"""

import sys
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import FrameSourceError, InputMissingError
from modules.capture.frame_source import VideoFrameSource


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "hand.mp4"
    path.write_bytes(b"\x00")
    return str(path)


@pytest.fixture
def mock_cv2():
    with patch("modules.capture.frame_source.cv2") as cv2:
        props = {
            cv2.CAP_PROP_FPS: 30.0,
            cv2.CAP_PROP_FRAME_COUNT: 150,
            cv2.CAP_PROP_FRAME_WIDTH: 640,
            cv2.CAP_PROP_FRAME_HEIGHT: 480,
        }
        cap = cv2.VideoCapture.return_value
        cap.isOpened.return_value = True
        cap.get.side_effect = lambda prop: props[prop]
        cap.read.return_value = (True, np.zeros((480, 640, 3), dtype=np.uint8))
        yield cv2


class TestVideoFrameSource:
    """Test suite for VideoFrameSource."""

    def test_metadata(self, mock_cv2, video_file):
        source = VideoFrameSource(video_file).open()

        assert source.duration == pytest.approx(5.0)
        assert (source.width, source.height) == (640, 480)
        assert source.is_open

    def test_seek_sets_position_in_ms(self, mock_cv2, video_file):
        source = VideoFrameSource(video_file).open()
        cap = mock_cv2.VideoCapture.return_value

        assert source.seek_to(1.5)
        cap.set.assert_called_with(mock_cv2.CAP_PROP_POS_MSEC, 1500.0)
        assert source.current_frame().shape == (480, 640, 3)

    def test_reuses_decode_buffer(self, mock_cv2, video_file):
        source = VideoFrameSource(video_file).open()
        cap = mock_cv2.VideoCapture.return_value

        source.seek_to(0.0)
        first = source.current_frame()
        source.seek_to(0.5)

        assert cap.read.call_args.args == (first,)

    def test_failed_decode(self, mock_cv2, video_file):
        mock_cv2.VideoCapture.return_value.read.return_value = (False, None)
        source = VideoFrameSource(video_file).open()

        assert not source.seek_to(4.9)
        assert source.current_frame() is None

    def test_unknown_duration(self, mock_cv2, video_file):
        mock_cv2.VideoCapture.return_value.get.side_effect = lambda prop: 0
        assert VideoFrameSource(video_file).open().duration == 0.0

    @pytest.mark.parametrize("path", ["", "/no/such/video.mp4"])
    def test_missing_input(self, mock_cv2, path):
        with pytest.raises(InputMissingError):
            VideoFrameSource(path).open()
        mock_cv2.VideoCapture.assert_not_called()

    def test_undecodable_file(self, mock_cv2, video_file):
        mock_cv2.VideoCapture.return_value.isOpened.return_value = False
        with pytest.raises(InputMissingError):
            VideoFrameSource(video_file).open()

    def test_seek_before_open(self, mock_cv2, video_file):
        with pytest.raises(FrameSourceError):
            VideoFrameSource(video_file).seek_to(0.0)

    def test_close_releases(self, mock_cv2, video_file):
        cap = mock_cv2.VideoCapture.return_value
        with VideoFrameSource(video_file) as source:
            source.seek_to(0.0)

        cap.release.assert_called_once()
        assert not source.is_open
        assert source.current_frame() is None

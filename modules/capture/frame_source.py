"""
Seekable video frame source backed by OpenCV.

Reports duration and frame size once opened, seeks to arbitrary timestamps,
and exposes the decoded frame at the current position. A single decode
buffer is reused across seeks.
"""

import os
import logging
import threading
from typing import Optional

import cv2
import numpy as np

from core.errors import FrameSourceError, InputMissingError

logger = logging.getLogger(__name__)


class VideoFrameSource:
    """Random-access frame reader for a recorded video file."""

    def __init__(self, path: str, config: Optional[dict] = None):
        config = config or {}
        self._path = path
        self._backend = config.get("backend", "auto")
        self._cap = None
        self._buffer: Optional[np.ndarray] = None
        self._has_frame = False
        self._lock = threading.Lock()

        self._fps = 0.0
        self._frame_count = 0
        self._width = 0
        self._height = 0

    def open(self) -> "VideoFrameSource":
        """Open the file and read its metadata.

        Raises:
            InputMissingError: path is empty, missing, or not decodable
        """
        if not self._path:
            raise InputMissingError("no video file provided")
        if not os.path.isfile(self._path):
            raise InputMissingError(f"video file not found: {self._path}")

        backend_map = {
            "ffmpeg": cv2.CAP_FFMPEG,
            "gstreamer": cv2.CAP_GSTREAMER,
            "auto": cv2.CAP_ANY,
        }
        self._cap = cv2.VideoCapture(self._path, backend_map.get(self._backend, cv2.CAP_ANY))
        if not self._cap.isOpened():
            self._cap = None
            raise InputMissingError(f"cannot open video: {self._path}")

        self._fps = float(self._cap.get(cv2.CAP_PROP_FPS) or 0.0)
        self._frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        self._width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

        logger.info(
            "Video opened: %s (%dx%d, %.2f FPS, %d frames, %.2fs)",
            self._path, self._width, self._height,
            self._fps, self._frame_count, self.duration,
        )
        return self

    @property
    def duration(self) -> float:
        """Total duration in seconds (0.0 if unknown)."""
        if self._fps <= 0 or self._frame_count <= 0:
            return 0.0
        return self._frame_count / self._fps

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def seek_to(self, t: float) -> bool:
        """Seek to `t` seconds and decode the frame at that instant.

        Blocks until the decoder delivers a frame.

        Returns:
            True if a frame was decoded at `t`
        """
        with self._lock:
            if self._cap is None:
                raise FrameSourceError("frame source is not open")
            self._cap.set(cv2.CAP_PROP_POS_MSEC, t * 1000.0)
            if self._buffer is not None:
                ret, frame = self._cap.read(self._buffer)
            else:
                ret, frame = self._cap.read()
            if ret and frame is not None:
                self._buffer = frame
                self._has_frame = True
                return True
            self._has_frame = False
            logger.debug("No frame decoded at %.2fs", t)
            return False

    def current_frame(self) -> Optional[np.ndarray]:
        """BGR image at the last seek position, or None."""
        with self._lock:
            if not self._has_frame:
                return None
            return self._buffer

    def close(self):
        """Release the decoder."""
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.debug("Video closed: %s", self._path)
            self._buffer = None
            self._has_frame = False

    def __enter__(self):
        return self.open()

    def __exit__(self, *args):
        self.close()

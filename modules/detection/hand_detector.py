"""
MediaPipe hand landmark detection for single still frames.

Two backends:
    - "tasks": MediaPipe Tasks HandLandmarker in IMAGE mode (default).
      Downloads the model bundle on first use.
    - "solutions": legacy mp.solutions.hands, which honours model_complexity.

Each analysis run constructs its own detector and closes it afterwards;
instances are stateful and must be called sequentially.
"""

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
import mediapipe as mp

from core.errors import DetectionError
from core.types import LandmarkFrame
from modules.detection.landmark_extractor import LandmarkExtractor

logger = logging.getLogger(__name__)

HAND_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent / "models" / "hand_landmarker.task"


@dataclass
class HandDetectorConfig:
    """Configuration for hand detector."""
    backend: str = "tasks"
    model_path: str = ""
    max_num_hands: int = 1
    model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from dictionary."""
        return cls(
            backend=d.get("backend", "tasks"),
            model_path=d.get("model_path", "") or "",
            max_num_hands=d.get("max_num_hands", 1),
            model_complexity=d.get("model_complexity", 1),
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
        )


def download_model(url: str, save_path: Path) -> bool:
    """Download the hand landmarker model if not present."""
    if save_path.exists():
        return True
    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading hand landmarker model to %s...", save_path)
        urllib.request.urlretrieve(url, save_path)
        logger.info("Model download complete")
        return True
    except OSError as e:
        logger.error("Failed to download model: %s", e)
        return False


class HandDetector:
    """Single-hand landmark detector over BGR frames.

    Example:
        >>> with HandDetector(HandDetectorConfig()) as detector:
        ...     frame = detector.detect(bgr_image)  # LandmarkFrame or None
    """

    def __init__(self, config: Optional[HandDetectorConfig] = None):
        self.config = config or HandDetectorConfig()
        self._extractor = LandmarkExtractor()
        self._landmarker = None
        self._hands = None

    @property
    def is_started(self) -> bool:
        return self._landmarker is not None or self._hands is not None

    def start(self):
        """Initialize the configured MediaPipe backend.

        Raises:
            DetectionError: the model cannot be loaded
        """
        if self.is_started:
            return
        if self.config.backend == "solutions":
            self._start_solutions()
        else:
            self._start_tasks()

    def _start_tasks(self):
        from mediapipe.tasks import python
        from mediapipe.tasks.python import vision

        model_path = Path(self.config.model_path or DEFAULT_MODEL_PATH)
        if not model_path.exists():
            if not download_model(HAND_LANDMARKER_MODEL_URL, model_path):
                raise DetectionError(f"hand landmarker model unavailable: {model_path}")

        options = vision.HandLandmarkerOptions(
            base_options=python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.IMAGE,
            num_hands=self.config.max_num_hands,
            min_hand_detection_confidence=self.config.min_detection_confidence,
            min_hand_presence_confidence=self.config.min_presence_confidence,
        )
        try:
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise DetectionError(f"failed to initialize HandLandmarker: {e}") from e
        logger.info(
            "HandLandmarker initialized (model=%s, max_hands=%d)",
            model_path, self.config.max_num_hands,
        )

    def _start_solutions(self):
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=True,
            model_complexity=self.config.model_complexity,
            max_num_hands=self.config.max_num_hands,
            min_detection_confidence=self.config.min_detection_confidence,
        )
        logger.info(
            "MediaPipe Hands initialized (complexity=%d, max_hands=%d, detect_conf=%.2f)",
            self.config.model_complexity, self.config.max_num_hands,
            self.config.min_detection_confidence,
        )

    def detect(self, bgr_image: np.ndarray) -> Optional[LandmarkFrame]:
        """Locate one hand in a BGR frame.

        Returns:
            LandmarkFrame of the first hand, or None if no hand was found

        Raises:
            DetectionError: the backend failed on this frame
        """
        if not self.is_started:
            self.start()
        if bgr_image is None or bgr_image.size == 0:
            raise DetectionError("empty image")

        try:
            rgb = cv2.cvtColor(bgr_image, cv2.COLOR_BGR2RGB)
            if self._landmarker is not None:
                mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
                result = self._landmarker.detect(mp_image)
                hands = result.hand_landmarks
            else:
                rgb.flags.writeable = False
                result = self._hands.process(rgb)
                hands = [h.landmark for h in (result.multi_hand_landmarks or [])]
        except (cv2.error, RuntimeError, ValueError) as e:
            raise DetectionError(str(e)) from e

        if not hands:
            return None
        return self._extractor.extract_landmarks(hands[0])

    def close(self):
        """Release MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
            logger.info("HandLandmarker closed")
        if self._hands is not None:
            self._hands.close()
            self._hands = None
            logger.info("MediaPipe Hands closed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.close()

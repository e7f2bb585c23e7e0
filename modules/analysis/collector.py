"""
Landmark collection over a stream of sampled frames.

Feeds each frame to the detector, strictly one at a time, and appends the
chain's joint angles to an AngleSequence. Per-frame failures (no image,
detector error, detector timeout) count as frames without a hand; they are
noted in the diagnostics log and never abort the run.
"""

import asyncio
import inspect
import logging
from concurrent.futures import Executor
from contextlib import nullcontext
from typing import AsyncIterable, Optional, Tuple

from core.diagnostics import Diagnostics
from core.types import AngleSequence, JointChain, QualityPolicy, QualityVerdict, SampledFrame
from modules.analysis.quality_gate import QualityGate
from modules.capture.frame_sampler import run_blocking
from modules.detection.landmark_extractor import LandmarkExtractor

logger = logging.getLogger(__name__)


class LandmarkCollector:
    """Accumulates angle samples and detection counts for one run.

    Counters stay readable after an interrupted collection, so a cancelled
    run can still report how far it got.
    """

    def __init__(
        self,
        chain: JointChain,
        detector,
        *,
        detect_timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
        diagnostics: Optional[Diagnostics] = None,
        monitor=None,
        extractor: Optional[LandmarkExtractor] = None,
    ):
        self._chain = chain
        self._detector = detector
        self._detect_timeout = detect_timeout
        self._executor = executor
        self._diag = diagnostics if diagnostics is not None else Diagnostics(chain.name)
        self._monitor = monitor
        self._extractor = extractor or LandmarkExtractor()

        self.sequence = AngleSequence(
            chain.joint_names, [d.name for d in chain.distances]
        )
        self.total_frames = 0
        self.detected_frames = 0

    async def _detect(self, image):
        detect = self._detector.detect
        if inspect.iscoroutinefunction(detect):
            if self._detect_timeout:
                return await asyncio.wait_for(detect(image), self._detect_timeout)
            return await detect(image)
        return await run_blocking(self._executor, self._detect_timeout, detect, image)

    async def process(self, frame: SampledFrame) -> bool:
        """Run detection on one frame. Returns True if a hand was found."""
        self.total_frames += 1

        if frame.image is None:
            self._diag.log(f"frame {frame.index} ({frame.timestamp:.2f}s): no image, skip")
            return False

        measure = self._monitor.measure("detection") if self._monitor else nullcontext()
        try:
            with measure:
                landmarks = await self._detect(frame.image)
        except asyncio.TimeoutError:
            self._diag.warn(
                f"detect timed out at {frame.timestamp:.2f}s after {self._detect_timeout}s, skip frame"
            )
            if self._monitor:
                self._monitor.record_drop()
            return False
        except Exception as e:
            self._diag.warn(f"detect failed at {frame.timestamp:.2f}s ({e}), skip frame")
            return False

        if landmarks is None:
            self._diag.log("no hand detected")
            return False

        self.detected_frames += 1
        for name, angle in self._extractor.joint_angles(landmarks, self._chain).items():
            if not self.sequence.add(name, angle):
                self._diag.log(f"{name}: degenerate landmarks at {frame.timestamp:.2f}s, sample dropped")
        for name, value in self._extractor.distances(landmarks, self._chain).items():
            if not self.sequence.add_distance(name, value):
                self._diag.log(f"{name}: zero reference length at {frame.timestamp:.2f}s, sample dropped")
        return True

    async def collect(self, frames: AsyncIterable[SampledFrame]) -> Tuple[AngleSequence, QualityVerdict]:
        """Consume `frames` in order and return the samples and the gate verdict."""
        async for frame in frames:
            await self.process(frame)

        self._diag.log(f"frames done total={self.total_frames} detected={self.detected_frames}")
        return self.sequence, self.verdict()

    def verdict(self, policy: Optional[QualityPolicy] = None) -> QualityVerdict:
        gate = QualityGate(policy or self._chain.quality)
        return gate.evaluate(self.total_frames, self.detected_frames)


async def collect(frames: AsyncIterable[SampledFrame], chain: JointChain, detector,
                  **kwargs) -> Tuple[AngleSequence, QualityVerdict]:
    """Functional form of LandmarkCollector.collect()."""
    return await LandmarkCollector(chain, detector, **kwargs).collect(frames)

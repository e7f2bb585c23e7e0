"""
Analysis orchestrator for video-based finger ROM measurement.

State machine:
    IDLE -> SAMPLING -> COLLECTING -> QUALITY_CHECK -> AGGREGATING -> DONE
                                                   \\-> REJECTED

Sampling and collection interleave frame by frame: the sampler seeks one
timestamp, the collector runs the detector on it, then the sampler moves
on. Blocking calls (open, seek, detect, close) run on a single worker
thread owned by the run, so they never overlap. Every run gets a fresh
detector, its own diagnostics log and its own cancellation token.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional, Union

from core.cancellation import CancellationToken
from core.chains import BUILTIN_CHAINS, get_chain, load_chains
from core.diagnostics import Diagnostics
from core.errors import AnalysisCancelledError, InputMissingError
from core.types import (
    ExtensionConvention,
    JointChain,
    PipelineState,
    QualityVerdict,
    Rejection,
    RejectReason,
    ROMResult,
)
from modules.analysis.collector import LandmarkCollector
from modules.analysis.rom_aggregator import aggregate
from modules.capture.frame_sampler import DEFAULT_STEP_SECONDS, run_blocking, sample_frames
from modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class AnalysisOutcome:
    """Terminal result of one analysis: a ROMResult or a Rejection."""

    __slots__ = (
        "mode", "state", "result", "rejection", "verdict",
        "diagnostics", "performance",
    )

    def __init__(self, mode: str, diagnostics: Diagnostics):
        self.mode = mode
        self.state = PipelineState.IDLE
        self.result: Optional[ROMResult] = None
        self.rejection: Optional[Rejection] = None
        self.verdict: Optional[QualityVerdict] = None
        self.diagnostics = diagnostics
        self.performance: dict = {}

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE

    def __repr__(self):
        if self.ok:
            return f"AnalysisOutcome({self.mode}, done, joints={list(self.result.joints)})"
        reason = self.rejection.reason if self.rejection else "-"
        return f"AnalysisOutcome({self.mode}, {self.state.value}, reason={reason!r})"

    def to_dict(self) -> dict:
        data = {
            "mode": self.mode,
            "state": self.state.value,
            "result": self.result.to_dict() if self.result else None,
            "rejection": None,
            "total_frames": self.verdict.total_frames if self.verdict else 0,
            "detected_frames": self.verdict.detected_frames if self.verdict else 0,
        }
        if self.rejection is not None:
            data["rejection"] = {
                "reason": self.rejection.reason,
                "total_frames": self.rejection.total_frames,
                "detected_frames": self.rejection.detected_frames,
            }
        return data


def _default_source_factory(path: str):
    from modules.capture.frame_source import VideoFrameSource
    return VideoFrameSource(path)


class ROMAnalyzer:
    """Runs the sampling -> detection -> gating -> aggregation pipeline.

    Starting a new analysis cancels the one still in flight on the same
    analyzer; the stale run ends as REJECTED("cancelled").

    Example:
        >>> analyzer = ROMAnalyzer(detector_factory=lambda: HandDetector())
        >>> outcome = asyncio.run(analyzer.analyze("hand.mp4", "pinky"))
        >>> outcome.result["PIP"].flexion
    """

    def __init__(
        self,
        detector_factory: Callable[[], object],
        source_factory: Callable[[str], object] = _default_source_factory,
        chains: Optional[Dict[str, JointChain]] = None,
        step_seconds: float = DEFAULT_STEP_SECONDS,
        seek_timeout: Optional[float] = 5.0,
        detect_timeout: Optional[float] = 10.0,
    ):
        if step_seconds <= 0:
            raise ValueError(f"step_seconds must be positive, got {step_seconds}")
        self._detector_factory = detector_factory
        self._source_factory = source_factory
        self._chains = chains if chains is not None else dict(BUILTIN_CHAINS)
        self._step = step_seconds
        self._seek_timeout = seek_timeout
        self._detect_timeout = detect_timeout

        self._state = PipelineState.IDLE
        self._active_token: Optional[CancellationToken] = None

    @classmethod
    def from_config(cls, config, detector_factory: Optional[Callable[[], object]] = None,
                    source_factory: Optional[Callable[[str], object]] = None) -> "ROMAnalyzer":
        """Build an analyzer from a loaded Config."""
        if detector_factory is None:
            from modules.detection.hand_detector import HandDetector, HandDetectorConfig
            detector_config = HandDetectorConfig.from_dict(config.detector)

            def detector_factory():
                return HandDetector(detector_config)

        default_convention = ExtensionConvention.from_string(
            config.get("analysis.extension_convention", "residual")
        )
        return cls(
            detector_factory=detector_factory,
            source_factory=source_factory or _default_source_factory,
            chains=load_chains(config.modes, default_convention),
            step_seconds=config.get("sampling.step_seconds", DEFAULT_STEP_SECONDS),
            seek_timeout=config.get("sampling.seek_timeout_s", 5.0),
            detect_timeout=config.get("detector.detect_timeout_s", 10.0),
        )

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def chains(self) -> Dict[str, JointChain]:
        return dict(self._chains)

    def cancel(self, reason: str = "cancelled by caller"):
        """Abort the in-flight analysis at its next frame boundary."""
        if self._active_token is not None:
            self._active_token.cancel(reason)

    def _transition(self, outcome: AnalysisOutcome, state: PipelineState):
        self._state = state
        outcome.state = state
        outcome.diagnostics.log(f"state -> {state.value}")

    def _reject(self, outcome: AnalysisOutcome, reason: str,
                total: int = 0, detected: int = 0) -> AnalysisOutcome:
        outcome.rejection = Rejection(reason, total, detected)
        self._transition(outcome, PipelineState.REJECTED)
        outcome.diagnostics.warn(f"rejected: {reason} (total={total}, detected={detected})")
        return outcome

    async def analyze(self, path: Optional[str],
                      mode: Union[str, JointChain]) -> AnalysisOutcome:
        """Analyze one video for the joints of `mode`.

        Raises:
            ConfigurationError: `mode` is not a known analysis mode
            DetectionError: the detector cannot be initialized
        """
        chain = mode if isinstance(mode, JointChain) else get_chain(mode, self._chains)
        diagnostics = Diagnostics(chain.name)
        outcome = AnalysisOutcome(chain.name, diagnostics)

        self._transition(outcome, PipelineState.IDLE)
        diagnostics.log(f"analyze({chain.name}) start")

        if not path:
            diagnostics.log("no video file")
            return self._reject(outcome, RejectReason.NO_INPUT)

        if self._active_token is not None:
            self._active_token.cancel("superseded by a new analysis")
        token = CancellationToken()
        self._active_token = token

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rom-analysis")
        source = None
        detector = None
        monitor = PerformanceMonitor()
        try:
            try:
                source = self._source_factory(path)
                await run_blocking(executor, None, source.open)
            except InputMissingError as e:
                diagnostics.log(f"no video file ({e})")
                return self._reject(outcome, RejectReason.NO_INPUT)
            diagnostics.log(
                f"video loaded ({source.duration:.2f}s, {source.width}x{source.height})"
            )

            detector = self._detector_factory()
            if hasattr(detector, "start"):
                await run_blocking(executor, None, detector.start)

            collector = LandmarkCollector(
                chain, detector,
                detect_timeout=self._detect_timeout,
                executor=executor,
                diagnostics=diagnostics,
                monitor=monitor,
            )
            self._transition(outcome, PipelineState.SAMPLING)
            frames = sample_frames(
                source, self._step,
                seek_timeout=self._seek_timeout,
                executor=executor,
                cancel_token=token,
                diagnostics=diagnostics,
                monitor=monitor,
            )
            self._transition(outcome, PipelineState.COLLECTING)
            try:
                sequence, verdict = await collector.collect(_ticking(frames, monitor))
            except AnalysisCancelledError as e:
                diagnostics.warn(f"analysis cancelled: {e}")
                outcome.verdict = collector.verdict()
                return self._reject(outcome, RejectReason.CANCELLED,
                                    collector.total_frames, collector.detected_frames)

            self._transition(outcome, PipelineState.QUALITY_CHECK)
            outcome.verdict = verdict
            if not verdict.passed:
                diagnostics.log("no valid frames" if verdict.detected_frames == 0
                                else "detection ratio below threshold")
                return self._reject(outcome, RejectReason.INSUFFICIENT_VISIBILITY,
                                    verdict.total_frames, verdict.detected_frames)

            self._transition(outcome, PipelineState.AGGREGATING)
            with monitor.measure("aggregation"):
                result = aggregate(sequence, chain.convention)
            if not result.joints and not result.distances:
                return self._reject(outcome, RejectReason.INSUFFICIENT_VISIBILITY,
                                    verdict.total_frames, verdict.detected_frames)
            if result.unavailable:
                diagnostics.warn(f"no valid samples for: {', '.join(result.unavailable)}")

            outcome.result = result
            self._transition(outcome, PipelineState.DONE)
            diagnostics.log("analysis finished")
            return outcome
        finally:
            await self._release(executor, detector, source, diagnostics)
            monitor.print_report()
            outcome.performance = monitor.get_report()
            if self._active_token is token:
                self._active_token = None

    async def _release(self, executor, detector, source, diagnostics: Diagnostics):
        """Close detector and source on the run's worker, then drop the worker.

        A failing close is logged and never hides the run's outcome.
        """
        try:
            for resource in (detector, source):
                if resource is None or not hasattr(resource, "close"):
                    continue
                name = type(resource).__name__
                try:
                    await run_blocking(executor, self._detect_timeout, resource.close)
                except asyncio.TimeoutError:
                    diagnostics.warn(f"{name}.close() timed out")
                except Exception as e:
                    diagnostics.warn(f"{name}.close() failed ({e!r})")
        finally:
            executor.shutdown(wait=False)

    def analyze_sync(self, path: Optional[str], mode: Union[str, JointChain]) -> AnalysisOutcome:
        """Blocking wrapper around analyze() for scripts and the CLI."""
        return asyncio.run(self.analyze(path, mode))


async def _ticking(frames, monitor: PerformanceMonitor):
    async for frame in frames:
        monitor.tick()
        yield frame

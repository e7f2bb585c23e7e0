"""
Fixed-step frame sampling over a seekable frame source.

Timestamps start at 0 and advance by `step` while strictly below the
source duration, so the final boundary instant is never sampled. Each seek
is a blocking decoder call, run on a worker thread and bounded by a timeout;
a seek that does not finish in time yields a frame without an image.
"""

import asyncio
import logging
from contextlib import nullcontext
from concurrent.futures import Executor
from typing import AsyncIterator, Iterator, Optional

import cv2

from core.cancellation import CancellationToken
from core.diagnostics import Diagnostics
from core.errors import FrameSourceError, SeekTimeoutError
from core.types import SampledFrame

logger = logging.getLogger(__name__)

DEFAULT_STEP_SECONDS = 0.5  # 2 samples per second


def sample_times(duration: float, step: float) -> Iterator[float]:
    """Timestamps 0, step, 2*step, ... strictly below `duration`.

    Computed as index * step, not a running sum.
    """
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    index = 0
    while True:
        t = index * step
        if t >= duration:
            return
        yield t
        index += 1


def _measure(monitor, stage: str):
    return monitor.measure(stage) if monitor is not None else nullcontext()


def _seek_and_grab(source, t: float):
    if not source.seek_to(t):
        return None
    return source.current_frame()


async def run_blocking(executor: Optional[Executor], timeout: Optional[float], func, *args):
    """Run a blocking call on `executor`, bounded by `timeout` seconds.

    Raises:
        asyncio.TimeoutError: the call did not finish in time. The worker
            thread is not interrupted.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(executor, func, *args)
    if timeout is None or timeout <= 0:
        return await future
    return await asyncio.wait_for(future, timeout)


async def _timed_seek(executor: Optional[Executor], timeout: Optional[float], source, t: float):
    try:
        return await run_blocking(executor, timeout, _seek_and_grab, source, t)
    except asyncio.TimeoutError:
        raise SeekTimeoutError(f"seek {t:.2f}s timed out after {timeout}s") from None


async def sample_frames(
    source,
    step_seconds: float = DEFAULT_STEP_SECONDS,
    *,
    seek_timeout: Optional[float] = None,
    executor: Optional[Executor] = None,
    cancel_token: Optional[CancellationToken] = None,
    diagnostics: Optional[Diagnostics] = None,
    monitor=None,
) -> AsyncIterator[SampledFrame]:
    """Yield one SampledFrame per step across the source's duration.

    The caller must consume each frame before the next seek is issued;
    the source's decode buffer is overwritten on every step.

    Raises:
        AnalysisCancelledError: `cancel_token` fired between two frames
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics("sampler")
    duration = source.duration

    for index, t in enumerate(sample_times(duration, step_seconds)):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        diagnostics.log(f"seek {t:.2f}s")
        image = None
        try:
            with _measure(monitor, "seek"):
                image = await _timed_seek(executor, seek_timeout, source, t)
        except SeekTimeoutError as e:
            diagnostics.warn(f"{e}, skip frame")
            if monitor is not None:
                monitor.record_drop()
        except (FrameSourceError, cv2.error) as e:
            diagnostics.warn(f"seek {t:.2f}s failed ({e}), skip frame")
            if monitor is not None:
                monitor.record_drop()
        else:
            if image is None:
                diagnostics.log(f"no frame decoded at {t:.2f}s")

        yield SampledFrame(index, t, image)

    logger.debug("Sampling finished (duration=%.2fs, step=%.2fs)", duration, step_seconds)

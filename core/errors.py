"""
Exception hierarchy for the ROM analyzer.

Per-frame faults (DetectionError, SeekTimeoutError) are absorbed inside the
pipeline; InputMissingError turns into a rejected outcome; ConfigurationError
reaches the caller.
"""


class ROMError(Exception):
    """Base exception for analyzer errors."""


class ConfigurationError(ROMError):
    """Raised when an analysis mode or joint chain definition is invalid."""


class InputMissingError(ROMError):
    """Raised when no video was provided or it cannot be opened."""


class FrameSourceError(ROMError):
    """Raised when the frame source cannot deliver a decoded frame."""


class SeekTimeoutError(FrameSourceError):
    """Raised when a seek does not complete within the step timeout."""


class DetectionError(ROMError):
    """Raised when the landmark detector fails on a single frame."""


class AnalysisCancelledError(ROMError):
    """Raised inside the pipeline when the run's cancellation token fires."""

"""
Sharpness analysis module using Laplacian variance.

Decides whether a captured frame is too blurry to submit. The frame is
downscaled, converted to grayscale, and the variance of a 4-neighbour
discrete Laplacian over its interior pixels is compared to a threshold.
Any failure while measuring degrades to "not blurry" so that a detector
malfunction never blocks a capture.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

DEFAULT_BLUR_THRESHOLD = 30.0
DEFAULT_DOWNSCALE_FACTOR = 0.2

# ITU-R BT.601 luma weights, in R, G, B order
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

CHANNEL_ORDERS = ('rgb', 'bgr')


class DetectionError(Exception):
    """Base class for failures while measuring frame sharpness."""


class InvalidFrameError(DetectionError):
    """The frame buffer cannot be interpreted as pixel data."""


class InsufficientSamplesError(DetectionError):
    """The downscaled frame has no interior pixels to measure."""


@dataclass
class BlurCheck:
    """Outcome of a single blur check.

    Either ``variance`` is set (the frame was measured) or ``error`` is set
    (the detector failed open and ``is_blurry`` is False).
    """
    is_blurry: bool
    variance: Optional[float]
    threshold: float
    scale: float
    sample_count: int = 0
    downscaled_size: Optional[Tuple[int, int]] = None  # (width, height)
    error: Optional[str] = None

    @property
    def measured(self) -> bool:
        return self.error is None


def downscaled_size(width: int, height: int,
                    scale: float = DEFAULT_DOWNSCALE_FACTOR) -> Tuple[int, int]:
    """
    Compute the scratch buffer size for a source frame.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        scale: Downscale factor

    Returns:
        Tuple of (width, height), each at least 1
    """
    return (max(1, math.floor(width * scale)),
            max(1, math.floor(height * scale)))


def _validate_frame(frame) -> np.ndarray:
    if not isinstance(frame, np.ndarray):
        raise InvalidFrameError(f"Expected numpy array, got {type(frame).__name__}")

    if frame.ndim not in (2, 3):
        raise InvalidFrameError(f"Expected 2-D or 3-D frame, got shape {frame.shape}")

    if frame.ndim == 3 and frame.shape[2] < 3:
        raise InvalidFrameError(
            f"Frame needs at least 3 channels, got {frame.shape[2]}"
        )

    if frame.shape[0] < 1 or frame.shape[1] < 1:
        raise InvalidFrameError(f"Frame is empty: {frame.shape}")

    if not (np.issubdtype(frame.dtype, np.integer) or
            np.issubdtype(frame.dtype, np.floating)):
        raise InvalidFrameError(f"Unsupported pixel type: {frame.dtype}")

    return frame


def downscale(frame: np.ndarray,
              scale: float = DEFAULT_DOWNSCALE_FACTOR) -> np.ndarray:
    """
    Resample a frame into a fresh, smaller buffer.

    Uses area averaging, which behaves like a box filter when shrinking.

    Args:
        frame: Source frame (H x W or H x W x C)
        scale: Downscale factor in (0, 1]

    Returns:
        New array of size downscaled_size(W, H, scale)
    """
    frame = _validate_frame(frame)

    if not 0 < scale <= 1:
        raise InvalidFrameError(f"Downscale factor must be in (0, 1], got {scale}")

    height, width = frame.shape[:2]
    target = downscaled_size(width, height, scale)

    try:
        small = cv2.resize(frame, target, interpolation=cv2.INTER_AREA)
    except cv2.error as e:
        raise InvalidFrameError(f"Resampling failed: {e}") from e

    if small is None or small.size == 0:
        raise InvalidFrameError("Resampling produced an empty buffer")

    return small


def to_grayscale(frame: np.ndarray, channel_order: str = 'rgb') -> np.ndarray:
    """
    Convert a frame to float64 luminance.

    Args:
        frame: H x W x C frame (alpha, if any, is ignored) or H x W gray frame
        channel_order: 'rgb' or 'bgr'

    Returns:
        H x W float64 array
    """
    if channel_order not in CHANNEL_ORDERS:
        raise InvalidFrameError(f"Unknown channel order: {channel_order}")

    if frame.ndim == 2:
        return frame.astype(np.float64)

    weights = np.array(LUMA_WEIGHTS, dtype=np.float64)
    if channel_order == 'bgr':
        weights = weights[::-1]

    return frame[..., :3].astype(np.float64) @ weights


def laplacian_statistics(gray: np.ndarray) -> Tuple[float, float, int]:
    """
    Accumulate Laplacian sums over the interior of a grayscale buffer.

    The outermost 1-pixel border is never a stencil centre, so every
    neighbour access stays inside the buffer.

    Args:
        gray: H x W grayscale buffer

    Returns:
        Tuple of (sum, sum of squares, sample count)
    """
    height, width = gray.shape
    if width < 3 or height < 3:
        return 0.0, 0.0, 0

    center = gray[1:-1, 1:-1]
    laplacian = (4.0 * center
                 - gray[:-2, 1:-1]   # up
                 - gray[2:, 1:-1]    # down
                 - gray[1:-1, :-2]   # left
                 - gray[1:-1, 2:])   # right

    return (float(laplacian.sum()),
            float(np.square(laplacian).sum()),
            int(laplacian.size))


def laplacian_variance(frame: np.ndarray,
                       scale: float = DEFAULT_DOWNSCALE_FACTOR,
                       channel_order: str = 'rgb') -> Tuple[float, int, Tuple[int, int]]:
    """
    Measure the variance of the Laplacian on a downscaled copy of a frame.

    Args:
        frame: Source frame
        scale: Downscale factor
        channel_order: 'rgb' or 'bgr'

    Returns:
        Tuple of (variance, sample count, downscaled (width, height))

    Raises:
        InvalidFrameError: If the frame cannot be processed
        InsufficientSamplesError: If the downscaled frame has no interior pixels
    """
    small = downscale(frame, scale)
    gray = to_grayscale(small, channel_order)

    total, total_sq, count = laplacian_statistics(gray)
    size = (gray.shape[1], gray.shape[0])

    if count == 0:
        raise InsufficientSamplesError(
            f"Downscaled frame {size[0]}x{size[1]} has no interior pixels"
        )

    mean = total / count
    variance = total_sq / count - mean * mean
    if not math.isfinite(variance):
        raise InvalidFrameError("Frame produced a non-finite variance")

    return variance, count, size


def check_frame(frame: np.ndarray,
                threshold: float = DEFAULT_BLUR_THRESHOLD,
                scale: float = DEFAULT_DOWNSCALE_FACTOR,
                channel_order: str = 'rgb',
                logger: Optional[logging.Logger] = None) -> BlurCheck:
    """
    Check a frame for blur without ever raising.

    Args:
        frame: Source frame
        threshold: Variance below which the frame counts as blurry
        scale: Downscale factor
        channel_order: 'rgb' or 'bgr'
        logger: Optional logger for fail-open diagnostics

    Returns:
        BlurCheck; on any failure is_blurry is False and error is set
    """
    try:
        variance, count, size = laplacian_variance(frame, scale, channel_order)
    except Exception as e:
        (logger or logging.getLogger('BlurGate.Sharpness')).debug(
            f"Blur check failed open: {e}"
        )
        return BlurCheck(
            is_blurry=False,
            variance=None,
            threshold=threshold,
            scale=scale,
            error=str(e) or type(e).__name__
        )

    return BlurCheck(
        is_blurry=variance < threshold,
        variance=variance,
        threshold=threshold,
        scale=scale,
        sample_count=count,
        downscaled_size=size
    )


def is_image_blurry(frame: np.ndarray,
                    threshold: float = DEFAULT_BLUR_THRESHOLD,
                    scale: float = DEFAULT_DOWNSCALE_FACTOR,
                    channel_order: str = 'rgb') -> bool:
    """Return True if the frame should be rejected as blurry."""
    return check_frame(frame, threshold, scale, channel_order).is_blurry


class BlurDetector:
    """Config-driven blur detector."""

    def __init__(self, config: Optional[dict] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize blur detector.

        Args:
            config: Configuration dictionary (defaults are used when omitted)
            logger: Optional logger instance
        """
        detection = (config or {}).get('detection', {})
        self.logger = logger or logging.getLogger('BlurGate.Sharpness')

        self.threshold = detection.get('threshold', DEFAULT_BLUR_THRESHOLD)
        self.scale = detection.get('downscale_factor', DEFAULT_DOWNSCALE_FACTOR)
        self.channel_order = detection.get('channel_order', 'rgb')

        self.logger.debug(
            f"Blur detector initialized - Threshold: {self.threshold}, "
            f"Scale: {self.scale}, Channels: {self.channel_order}"
        )

    def check(self, frame: np.ndarray, channel_order: Optional[str] = None) -> BlurCheck:
        """
        Run a blur check on a frame.

        Args:
            frame: Source frame
            channel_order: Overrides the configured channel order

        Returns:
            BlurCheck result
        """
        return check_frame(
            frame,
            threshold=self.threshold,
            scale=self.scale,
            channel_order=channel_order or self.channel_order,
            logger=self.logger
        )

    def is_blurry(self, frame: np.ndarray, channel_order: Optional[str] = None) -> bool:
        return self.check(frame, channel_order).is_blurry

    def get_sharpness_category(self, variance: float) -> str:
        """
        Categorize sharpness level based on variance.

        Args:
            variance: Laplacian variance

        Returns:
            Category string: 'very_sharp', 'sharp', 'acceptable', 'soft', 'blurry', 'very_blurry'
        """
        threshold = self.threshold

        if variance >= threshold * 2:
            return 'very_sharp'
        elif variance >= threshold * 1.3:
            return 'sharp'
        elif variance >= threshold:
            return 'acceptable'
        elif variance >= threshold * 0.7:
            return 'soft'
        elif variance >= threshold * 0.4:
            return 'blurry'
        else:
            return 'very_blurry'

    def get_result_summary(self, check: BlurCheck) -> str:
        """
        Get human-readable summary of a blur check.

        Args:
            check: BlurCheck object

        Returns:
            Summary string
        """
        if not check.measured:
            return f"UNCHECKED - {check.error}"

        category = self.get_sharpness_category(check.variance)
        classification = "BLURRY" if check.is_blurry else "SHARP"

        return (
            f"{classification} ({category}) - "
            f"Variance: {check.variance:.1f} "
            f"(threshold: {check.threshold})"
        )

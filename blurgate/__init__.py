"""
Laplacian-variance capture gate for photo-driven waste scanning.

Rejects blurry camera captures before they are uploaded for classification,
by measuring the variance of the Laplacian on a downscaled grayscale copy
of each frame.
"""

__version__ = "1.0.0"

from .sharpness import (
    DEFAULT_BLUR_THRESHOLD,
    DEFAULT_DOWNSCALE_FACTOR,
    BlurCheck,
    BlurDetector,
    DetectionError,
    check_frame,
    is_image_blurry,
)
from .capture import CaptureGate, CaptureMode, CaptureOutcome

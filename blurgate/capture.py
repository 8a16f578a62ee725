"""
Capture gating.

Applies the caller's capture mode to a freshly grabbed frame: strict
captures are blur-checked and rejected with a retry message when blurry,
lenient captures are always accepted. Accepted frames are encoded as JPEG
data URLs ready for upload.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from .sharpness import BlurCheck, BlurDetector

BLURRY_RETRY_MESSAGE = "The image looks blurry. Please hold your phone steady and try again."
ENCODE_FAILED_MESSAGE = "Could not process the captured image. Please try again."

DEFAULT_JPEG_QUALITY = 60


class CaptureMode(Enum):
    """How strictly a capture flow gates its frames."""
    STRICT = 'strict'
    LENIENT_SKIP_CHECK = 'lenient'


class CaptureError(Exception):
    """Raised when a frame cannot be turned into an uploadable image."""


@dataclass
class CaptureOutcome:
    """Result of submitting a frame to the capture gate."""
    accepted: bool
    data_url: Optional[str] = None
    message: Optional[str] = None
    check: Optional[BlurCheck] = None


def encode_data_url(frame: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> str:
    """
    Encode a BGR frame as a base64 JPEG data URL.

    Args:
        frame: BGR (or gray) frame
        quality: JPEG quality, 1-100

    Returns:
        String of the form "data:image/jpeg;base64,..."

    Raises:
        CaptureError: If the encoder rejects the frame
    """
    if not isinstance(frame, np.ndarray) or frame.size == 0:
        raise CaptureError("Nothing to encode")

    if frame.ndim == 3 and frame.shape[2] == 4:
        frame = np.ascontiguousarray(frame[..., :3])

    try:
        ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    except cv2.error as e:
        raise CaptureError(f"JPEG encoding failed: {e}") from e

    if not ok:
        raise CaptureError("JPEG encoding failed")

    return "data:image/jpeg;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


def decode_data_url(data_url: str) -> bytes:
    """Return the raw image bytes carried by a base64 data URL."""
    header, sep, payload = data_url.partition(',')
    if not sep or not header.startswith('data:') or ';base64' not in header:
        raise CaptureError("Not a base64 data URL")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise CaptureError(f"Malformed base64 payload: {e}") from e


class CaptureGate:
    """Gates frames by capture mode before they are uploaded."""

    def __init__(self, config: Optional[dict] = None,
                 detector: Optional[BlurDetector] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize capture gate.

        Args:
            config: Configuration dictionary
            detector: Blur detector (built from config when omitted)
            logger: Optional logger instance
        """
        config = config or {}
        capture = config.get('capture', {})

        self.logger = logger or logging.getLogger('BlurGate.Capture')
        self.detector = detector or BlurDetector(config, self.logger)
        self.jpeg_quality = capture.get('jpeg_quality', DEFAULT_JPEG_QUALITY)
        self.default_mode = CaptureMode(capture.get('mode', CaptureMode.STRICT.value))

    def submit(self, frame: np.ndarray, mode: Optional[CaptureMode] = None,
               channel_order: Optional[str] = None) -> CaptureOutcome:
        """
        Submit a captured frame.

        Args:
            frame: Frame grabbed from the camera
            mode: Capture mode (default: configured mode)
            channel_order: Channel order of the frame (default: the
                detector's configured channel order)

        Returns:
            CaptureOutcome; rejected outcomes carry a user-facing message
        """
        mode = mode or self.default_mode
        channel_order = channel_order or self.detector.channel_order
        check = None

        if mode is CaptureMode.STRICT:
            check = self.detector.check(frame, channel_order=channel_order)
            self.logger.debug(self.detector.get_result_summary(check))

            if check.is_blurry:
                self.logger.info(
                    f"Capture rejected as blurry (variance: {check.variance:.1f})"
                )
                return CaptureOutcome(accepted=False, message=BLURRY_RETRY_MESSAGE,
                                      check=check)

        try:
            if channel_order == 'rgb' and getattr(frame, 'ndim', 0) == 3:
                frame = np.ascontiguousarray(frame[..., 2::-1])
            data_url = encode_data_url(frame, self.jpeg_quality)
        except CaptureError as e:
            self.logger.warning(f"Failed to encode capture: {e}")
            return CaptureOutcome(accepted=False, message=ENCODE_FAILED_MESSAGE,
                                  check=check)

        self.logger.info(f"Capture accepted ({mode.value} mode)")
        return CaptureOutcome(accepted=True, data_url=data_url, check=check)

"""
OpenCV camera frame source.

Opens a local video device and grabs single frames for capture. Resolution
requests are tried in order, from the preferred HD size down to whatever
the device offers by default.
"""

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

CAMERA_UNAVAILABLE_MESSAGE = (
    "Could not start video source. Please ensure camera permissions are "
    "allowed and no other app is using the camera."
)

DEFAULT_RESOLUTIONS = [(1280, 720), None]


class CameraError(Exception):
    """Raised when no frame can be obtained from the camera."""


class CameraSource:
    """Single-frame capture from an OpenCV video device."""

    def __init__(self, config: Optional[dict] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize camera source.

        Args:
            config: Configuration dictionary
            logger: Optional logger instance
        """
        capture = (config or {}).get('capture', {})
        self.logger = logger or logging.getLogger('BlurGate.Camera')

        self.index = capture.get('camera_index', 0)
        self.resolutions = self._parse_resolutions(
            capture.get('resolutions', DEFAULT_RESOLUTIONS)
        )
        self._cap = None

    @staticmethod
    def _parse_resolutions(entries) -> List[Optional[Tuple[int, int]]]:
        resolutions = []
        for entry in entries:
            if entry is None:
                resolutions.append(None)
            else:
                width, height = entry
                resolutions.append((int(width), int(height)))
        return resolutions or [None]

    def open(self) -> None:
        """
        Open the device, trying each resolution strategy in turn.

        Raises:
            CameraError: If no strategy yields a readable device
        """
        if self._cap is not None and self._cap.isOpened():
            return

        for resolution in self.resolutions:
            cap = cv2.VideoCapture(self.index)
            if not cap.isOpened():
                self.logger.warning(f"Camera strategy failed: device {self.index}, {resolution}")
                cap.release()
                continue

            if resolution is not None:
                width, height = resolution
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

            ret, _ = cap.read()
            if ret:
                self.logger.info(f"Camera {self.index} opened ({resolution or 'default'})")
                self._cap = cap
                return

            self.logger.warning(f"Camera strategy failed: no frame at {resolution}")
            cap.release()

        raise CameraError(CAMERA_UNAVAILABLE_MESSAGE)

    def read_frame(self) -> np.ndarray:
        """
        Grab one BGR frame.

        Returns:
            Frame as an H x W x 3 array

        Raises:
            CameraError: If the device cannot be opened or returns no frame
        """
        self.open()

        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise CameraError("Frame capture failed")

        return frame

    def release(self) -> None:
        """Close the device."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

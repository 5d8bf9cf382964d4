"""
Frame acquisition and JPEG encoding helpers built on OpenCV.

Frames travel through the pipeline as RGB uint8 arrays (H, W, 3); OpenCV works
in BGR, so conversions happen only at the edges of this module.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

import config

logger = logging.getLogger(__name__)


def compress_rgb(frame_rgb: np.ndarray, quality: int = config.JPEG_QUALITY) -> bytes:
    """Encode an RGB frame as JPEG bytes."""
    frame_bgr = cv2.cvtColor(np.ascontiguousarray(frame_rgb, dtype=np.uint8), cv2.COLOR_RGB2BGR)
    ok, buf = cv2.imencode(".jpg", frame_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("Failed to encode frame")
    return buf.tobytes()


def decompress_jpeg(jpeg: bytes) -> np.ndarray:
    """Decode JPEG bytes back into an RGB frame."""
    arr = np.frombuffer(jpeg, np.uint8)
    frame_bgr = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if frame_bgr is None:
        raise ValueError("Cannot decode image")
    return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)


class Camera:
    """OpenCV capture device delivering RGB frames."""

    def __init__(
        self,
        index: int = config.CAMERA_INDEX,
        width: int = config.CAMERA_WIDTH,
        height: int = config.CAMERA_HEIGHT,
        fps: int = config.CAMERA_FPS,
    ):
        self.index = index
        self.requested = (width, height, fps)
        self.cap: Optional[cv2.VideoCapture] = None

    def open(self) -> "Camera":
        width, height, fps = self.requested
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            raise RuntimeError(f"Unable to open camera {self.index}")
        cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG"))
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        cap.set(cv2.CAP_PROP_FPS, fps)
        self.cap = cap
        logger.info("camera resolution: %dx%d", *self.resolution)
        logger.info("camera framerate: %d", self.frame_rate)
        return self

    @property
    def resolution(self) -> Tuple[int, int]:
        if self.cap is None:
            return self.requested[0], self.requested[1]
        return int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

    @property
    def frame_rate(self) -> int:
        fps = int(round(self.cap.get(cv2.CAP_PROP_FPS))) if self.cap is not None else 0
        # Some drivers report 0; fall back to what was requested.
        return fps if fps > 0 else self.requested[2]

    def read_rgb(self) -> np.ndarray:
        if self.cap is None:
            raise RuntimeError("Camera is not open")
        ok, frame_bgr = self.cap.read()
        if not ok or frame_bgr is None:
            raise RuntimeError(f"Failed to read a frame from camera {self.index}")
        return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    def close(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None

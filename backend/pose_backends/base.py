"""Common types and interfaces for ActionQ pose-processing backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

# Body-part name -> (x, y) in image pixels.
Skeleton = Dict[str, Tuple[float, float]]


@dataclass(frozen=True)
class Keypoint:
    """A single anatomical landmark in image pixel coordinates."""

    x: float
    y: float
    confidence: float


@dataclass(frozen=True)
class BoundingBox:
    """Top-left anchored, axis-aligned box around one candidate subject."""

    xmin: float
    ymin: float
    width: float
    height: float
    confidence: float
    index: int = 0  # candidate position in the raw model output

    @property
    def area(self) -> float:
        return self.width * self.height

    def intersection_area(self, other: "BoundingBox") -> float:
        # Inclusive pixel convention: touching edges still overlap by one pixel.
        right = min(self.xmin + self.width, other.xmin + other.width)
        bottom = min(self.ymin + self.height, other.ymin + other.height)
        left = max(self.xmin, other.xmin)
        top = max(self.ymin, other.ymin)
        return max(0.0, right - left + 1.0) * max(0.0, bottom - top + 1.0)

    def union_area(self, other: "BoundingBox") -> float:
        return self.area + other.area - self.intersection_area(other)

    def iou(self, other: "BoundingBox") -> float:
        """Intersection over union; degenerate boxes never overlap."""
        union = self.union_area(other)
        if union <= 0.0:
            return 0.0
        return self.intersection_area(other) / union


@dataclass(frozen=True)
class Detection:
    """One candidate subject: its box and the ordered COCO-17 keypoints."""

    box: BoundingBox
    keypoints: Tuple[Keypoint, ...]

    @property
    def confidence(self) -> float:
        return self.box.confidence


class PoseModel(ABC):
    """Model-execution collaborator: preprocessed tensor in, raw output tensor out."""

    name: str = "base"

    @abstractmethod
    def run(self, input_tensor: np.ndarray) -> np.ndarray:
        """Run inference on a (1, 3, S, S) float32 tensor."""

    def close(self) -> None:
        """Release resources."""
        return None


class PoseBackend(ABC):
    """Abstract base class for frame -> single skeleton pipelines."""

    name: str = "base"

    @abstractmethod
    def process_frame(self, frame_rgb: np.ndarray) -> Skeleton:
        """Return the skeleton of the most confident subject in the frame."""

    def close(self) -> None:
        """Release resources."""
        return None

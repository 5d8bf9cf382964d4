"""YOLOv8-pose output decoding, suppression and skeleton naming.

The model emits a single ``(1, 56, N)`` tensor: for each of the ``N`` candidate
positions there are 4 box parameters (cx, cy, w, h), one box confidence and
17 keypoint triplets (x, y, confidence) in COCO order.

Pipeline per frame::

    raw tensor -> decode_output -> non_max_suppression -> top detection
               -> skeleton_from_keypoints
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

import config
from errors import PoseContractError
from .base import BoundingBox, Detection, Keypoint, PoseBackend, PoseModel, Skeleton

BBOX_FIELDS = 5  # cx, cy, w, h, confidence
KEYPOINT_FIELDS = 3  # x, y, confidence

COCO17_NAMES = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)
KEYPOINT_COUNT = len(COCO17_NAMES)

logger = logging.getLogger(__name__)


def keypoint_name(index: int) -> str:
    """Return the COCO-17 body-part name for a keypoint index."""
    if not 0 <= index < KEYPOINT_COUNT:
        raise PoseContractError(f"Keypoint index {index} outside 0..{KEYPOINT_COUNT - 1}")
    return COCO17_NAMES[index]


def decode_output(
    output: np.ndarray,
    candidate_count: Optional[int] = config.CANDIDATE_COUNT,
    keypoint_count: int = KEYPOINT_COUNT,
    confidence_threshold: float = config.BOX_CONFIDENCE,
) -> List[Detection]:
    """
    Read candidate (box, keypoints) pairs out of a raw model output tensor.

    Candidates whose box confidence is below ``confidence_threshold`` are
    dropped; the rest are returned in their original candidate order.
    A tensor whose shape does not match the expected layout raises
    PoseContractError. Pass ``candidate_count=None`` to accept any N.
    """
    data = np.asarray(output, dtype=np.float32)
    channels = BBOX_FIELDS + KEYPOINT_FIELDS * keypoint_count

    if data.ndim != 3 or data.shape[0] != 1:
        raise PoseContractError(f"Expected output of shape (1, {channels}, N), got {data.shape}")
    if data.shape[1] != channels:
        raise PoseContractError(
            f"Expected {channels} channels for {keypoint_count} keypoints, got {data.shape[1]}"
        )
    if candidate_count is not None and data.shape[2] != candidate_count:
        raise PoseContractError(f"Expected {candidate_count} candidates, got {data.shape[2]}")

    # (1, C, N) -> (N, C)
    rows = data[0].T
    detections: List[Detection] = []
    for i in np.flatnonzero(rows[:, 4] >= confidence_threshold):
        row = rows[i]
        cx, cy, bw, bh, bc = row[:BBOX_FIELDS]
        box = BoundingBox(
            xmin=float(cx - bw / 2.0),
            ymin=float(cy - bh / 2.0),
            width=float(bw),
            height=float(bh),
            confidence=float(bc),
            index=int(i),
        )
        kpts = row[BBOX_FIELDS:].reshape(keypoint_count, KEYPOINT_FIELDS)
        keypoints = tuple(Keypoint(float(x), float(y), float(c)) for x, y, c in kpts)
        detections.append(Detection(box=box, keypoints=keypoints))
    return detections


def non_max_suppression(
    detections: Sequence[Detection],
    iou_threshold: float = config.IOU_THRESHOLD,
) -> List[Detection]:
    """
    Greedy NMS: keep the most confident boxes that do not overlap a kept one.

    Ties in confidence keep their input order. The input is not modified.
    """
    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    kept: List[Detection] = []
    for candidate in ordered:
        if any(k.box.iou(candidate.box) > iou_threshold for k in kept):
            continue
        kept.append(candidate)
    return kept


def skeleton_from_keypoints(
    keypoints: Sequence[Keypoint],
    confidence_threshold: float = config.KEYPOINT_CONFIDENCE,
) -> Skeleton:
    """Name the 17 COCO keypoints, keeping only the confident ones."""
    if len(keypoints) != KEYPOINT_COUNT:
        raise PoseContractError(f"Expected {KEYPOINT_COUNT} keypoints, got {len(keypoints)}")
    skeleton: Skeleton = {}
    for i, kp in enumerate(keypoints):
        if kp.confidence > confidence_threshold:
            skeleton[keypoint_name(i)] = (kp.x, kp.y)
    return skeleton


def preprocess_rgb(frame_rgb: np.ndarray, input_size: int = config.MODEL_INPUT_SIZE) -> np.ndarray:
    """
    Build the (1, 3, S, S) float32 model input from an RGB uint8 frame.

    The frame is placed at the top-left corner and the remainder zero padded,
    so model coordinates are frame pixel coordinates.
    """
    if frame_rgb.ndim != 3 or frame_rgb.shape[2] != 3:
        raise PoseContractError(f"Expected an HxWx3 RGB frame, got {frame_rgb.shape}")
    h, w = frame_rgb.shape[:2]
    if h > input_size or w > input_size:
        raise PoseContractError(f"Frame {w}x{h} does not fit the {input_size}x{input_size} model input")

    tensor = np.zeros((1, 3, input_size, input_size), dtype=np.float32)
    tensor[0, :, :h, :w] = frame_rgb.transpose(2, 0, 1).astype(np.float32) / 255.0
    return tensor


class YoloPoseBackend(PoseBackend):
    """Single-subject pose pipeline over a YOLOv8-pose model."""

    name = "yolov8_pose"

    def __init__(
        self,
        model: PoseModel,
        input_size: int = config.MODEL_INPUT_SIZE,
        candidate_count: Optional[int] = config.CANDIDATE_COUNT,
        box_confidence: float = config.BOX_CONFIDENCE,
        iou_threshold: float = config.IOU_THRESHOLD,
        keypoint_confidence: float = config.KEYPOINT_CONFIDENCE,
    ):
        self.logger = logging.getLogger(__name__)
        self.model = model
        self.input_size = input_size
        self.candidate_count = candidate_count
        self.box_confidence = box_confidence
        self.iou_threshold = iou_threshold
        self.keypoint_confidence = keypoint_confidence

    def detections_from_output(self, output: np.ndarray) -> List[Detection]:
        detections = decode_output(
            output,
            candidate_count=self.candidate_count,
            confidence_threshold=self.box_confidence,
        )
        return non_max_suppression(detections, self.iou_threshold)

    def top_skeleton(self, detections: Sequence[Detection]) -> Skeleton:
        """Skeleton of the first (most confident) detection, empty when there is none."""
        if not detections:
            return {}
        return skeleton_from_keypoints(detections[0].keypoints, self.keypoint_confidence)

    def skeleton_from_output(self, output: np.ndarray) -> Skeleton:
        return self.top_skeleton(self.detections_from_output(output))

    def detect(self, frame_rgb: np.ndarray) -> List[Detection]:
        """Surviving detections for a frame, most confident first."""
        output = self.model.run(preprocess_rgb(frame_rgb, self.input_size))
        return self.detections_from_output(output)

    def process_frame(self, frame_rgb: np.ndarray) -> Skeleton:
        return self.top_skeleton(self.detect(frame_rgb))

    def close(self) -> None:
        self.model.close()

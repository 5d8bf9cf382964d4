"""Pose backend registry for ActionQ.

Lets the recorder swap the frame -> skeleton pipeline without touching the
recording or replay code.
"""

from typing import Callable, Dict

from .base import BoundingBox, Detection, Keypoint, PoseBackend, PoseModel, Skeleton
from .onnx_model import OnnxPoseModel
from .yolo_pose import COCO17_NAMES, YoloPoseBackend


def _build_yolov8_onnx(**kwargs) -> PoseBackend:
    model_path = kwargs.pop("model_path", None)
    model = OnnxPoseModel(model_path) if model_path else OnnxPoseModel()
    return YoloPoseBackend(model, **kwargs)


BACKEND_REGISTRY: Dict[str, Callable[..., PoseBackend]] = {
    YoloPoseBackend.name: _build_yolov8_onnx,
}


def get_available_backends():
    """Return the list of registered backend names."""
    return list(BACKEND_REGISTRY.keys())


def build_pose_backend(name: str, **kwargs) -> PoseBackend:
    """Instantiate a pose backend by registry name."""
    factory = BACKEND_REGISTRY.get(name)
    if not factory:
        raise ValueError(
            f"Unknown pose backend '{name}'. "
            f"Available options: {', '.join(get_available_backends())}"
        )
    return factory(**kwargs)


__all__ = [
    "BoundingBox",
    "COCO17_NAMES",
    "Detection",
    "Keypoint",
    "OnnxPoseModel",
    "PoseBackend",
    "PoseModel",
    "Skeleton",
    "YoloPoseBackend",
    "build_pose_backend",
    "get_available_backends",
]

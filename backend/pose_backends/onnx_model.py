"""ONNX Runtime execution of the YOLOv8-pose model.

The exported model takes an ``images`` input of shape (1, 3, 640, 640) and
produces ``output0`` of shape (1, 56, 8400).
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional

import numpy as np

import config
from .base import PoseModel

DEFAULT_PROVIDERS = ["CUDAExecutionProvider", "CPUExecutionProvider"]


class OnnxPoseModel(PoseModel):
    """Runs a pose model file through an onnxruntime InferenceSession."""

    name = "onnxruntime"

    def __init__(
        self,
        model_path: str = config.MODEL_PATH,
        providers: Optional[List[str]] = None,
        input_name: Optional[str] = "images",
        output_name: Optional[str] = "output0",
    ) -> None:
        self.logger = logging.getLogger(__name__)

        try:
            import onnxruntime  # type: ignore
        except Exception as exc:  # pragma: no cover - missing optional runtime
            raise RuntimeError(
                "OnnxPoseModel requires onnxruntime. Install it with: pip install onnxruntime"
            ) from exc

        if not os.path.exists(model_path):
            raise FileNotFoundError(f"Model file not found: {model_path}")

        available = onnxruntime.get_available_providers()
        wanted = providers or DEFAULT_PROVIDERS
        chosen = [p for p in wanted if p in available] or available

        options = onnxruntime.SessionOptions()
        options.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_BASIC
        self.session = onnxruntime.InferenceSession(model_path, sess_options=options, providers=chosen)

        inputs = [i.name for i in self.session.get_inputs()]
        outputs = [o.name for o in self.session.get_outputs()]
        self.input_name = input_name if input_name in inputs else inputs[0]
        self.output_name = output_name if output_name in outputs else outputs[0]

        self.logger.info(
            "Loaded pose model %s (providers=%s, input=%s, output=%s)",
            model_path,
            self.session.get_providers(),
            self.input_name,
            self.output_name,
        )

    def run(self, input_tensor: np.ndarray) -> np.ndarray:
        feed = {self.input_name: np.ascontiguousarray(input_tensor, dtype=np.float32)}
        (output,) = self.session.run([self.output_name], feed)
        return output

    def close(self) -> None:
        self.session = None

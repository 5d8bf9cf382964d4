"""
Recorded session model for ActionQ.

A session holds several exercises in the order they were performed; each
exercise holds every captured frame with its skeleton, the exercise logic
metadata and the running repetition count. Sessions are built by
SessionRecorder, persisted with storage_codec and replayed read-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

import config
from camera import compress_rgb
from exercises.base import ExerciseResult
from pose_backends.base import Skeleton

logger = logging.getLogger(__name__)


@dataclass
class StorageFrame:
    """One processed camera frame."""

    frame: bytes  # JPEG
    skeleton: Skeleton = field(default_factory=dict)
    metadata: Any = None  # opaque JSON value
    repetitions: int = 0


@dataclass
class Exercise:
    """All frames captured while performing one exercise."""

    id: str
    repetitions_target: int
    frames: List[StorageFrame] = field(default_factory=list)

    @property
    def repetitions(self) -> int:
        """Repetitions reached by the last recorded frame."""
        return self.frames[-1].repetitions if self.frames else 0

    @property
    def is_complete(self) -> bool:
        return self.repetitions >= self.repetitions_target

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "repetitions_target": self.repetitions_target,
            "repetitions": self.repetitions,
            "frames": len(self.frames),
        }


@dataclass
class Storage:
    """
    A complete recording run.

    Usage:
        recorder = SessionRecorder(resolution=(640, 480), frame_rate=30)
        recorder.start_exercise("squats", 10)
        recorder.add_frame(frame_rgb, skeleton, result)
        ...
        recorder.finish_exercise()
        storage = recorder.finish()
    """

    exercises: List[Exercise] = field(default_factory=list)
    resolution: Tuple[int, int] = (640, 480)
    frame_rate: int = 30

    @property
    def exercise_ids(self) -> List[str]:
        return [e.id for e in self.exercises]

    @property
    def frame_count(self) -> int:
        return sum(len(e.frames) for e in self.exercises)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercises": [e.to_dict() for e in self.exercises],
            "resolution": list(self.resolution),
            "frame_rate": self.frame_rate,
            "frames": self.frame_count,
        }


class SessionRecorder:
    """Accumulates processed frames into exercises and exercises into a Storage."""

    def __init__(
        self,
        resolution: Tuple[int, int],
        frame_rate: int,
        jpeg_quality: int = config.JPEG_QUALITY,
    ):
        if frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")
        self.storage = Storage(resolution=(int(resolution[0]), int(resolution[1])), frame_rate=int(frame_rate))
        self.jpeg_quality = jpeg_quality
        self.current: Optional[Exercise] = None
        self._repetitions = 0

    @property
    def repetitions(self) -> int:
        return self._repetitions

    def start_exercise(self, exercise_id: str, repetitions_target: int) -> Exercise:
        if self.current is not None:
            raise RuntimeError(f"Exercise '{self.current.id}' is still being recorded.")
        if repetitions_target < 0:
            raise ValueError(f"repetitions_target must be non-negative, got {repetitions_target}")
        self.current = Exercise(id=exercise_id, repetitions_target=int(repetitions_target))
        self._repetitions = 0
        logger.info("Recording exercise %s (target %d reps)", exercise_id, repetitions_target)
        return self.current

    def add_encoded_frame(
        self,
        jpeg: bytes,
        skeleton: Skeleton,
        result: Optional[ExerciseResult] = None,
    ) -> StorageFrame:
        """Append an already compressed frame to the active exercise."""
        if self.current is None:
            raise RuntimeError("No exercise is being recorded.")
        if result is not None and result.is_repetition:
            self._repetitions += 1
        frame = StorageFrame(
            frame=bytes(jpeg),
            skeleton=dict(skeleton),
            metadata=result.metadata if result is not None else None,
            repetitions=self._repetitions,
        )
        self.current.frames.append(frame)
        return frame

    def add_frame(
        self,
        frame_rgb: np.ndarray,
        skeleton: Skeleton,
        result: Optional[ExerciseResult] = None,
    ) -> StorageFrame:
        """Compress a raw RGB frame and append it to the active exercise."""
        return self.add_encoded_frame(compress_rgb(frame_rgb, self.jpeg_quality), skeleton, result)

    def finish_exercise(self) -> Exercise:
        if self.current is None:
            raise RuntimeError("No exercise is being recorded.")
        exercise = self.current
        self.storage.exercises.append(exercise)
        self.current = None
        logger.info(
            "Exercise %s complete: %d/%d reps over %d frames",
            exercise.id,
            exercise.repetitions,
            exercise.repetitions_target,
            len(exercise.frames),
        )
        return exercise

    def finish(self) -> Storage:
        """Seal any exercise still open and return the session."""
        if self.current is not None:
            logger.warning("Sealing interrupted exercise %s", self.current.id)
            self.finish_exercise()
        return self.storage

    def save(self, name: str, samples_dir: Optional[str] = None) -> Path:
        from storage_codec import save_storage, sample_path

        return save_storage(self.finish(), sample_path(name, samples_dir))

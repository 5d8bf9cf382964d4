"""
Recording run: camera -> pose backend -> exercise logic -> session file.

Exercises are recorded one after the other; each one keeps capturing frames
until its logic reports completion. The session is written to disk only once
every exercise is done, so a failure anywhere aborts the whole run without
leaving a partial file behind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import config
from camera import Camera
from exercises import ExerciseLogic, build_exercise_logic
from pose_backends import PoseBackend, build_pose_backend
from session import Exercise, SessionRecorder
from storage_codec import sample_path, save_storage

logger = logging.getLogger(__name__)

LogicFactory = Callable[[str, int], ExerciseLogic]


def record_exercise(
    recorder: SessionRecorder,
    camera: Camera,
    backend: PoseBackend,
    logic: ExerciseLogic,
    exercise_id: str,
    repetitions_target: int,
    max_frames: Optional[int] = None,
) -> Exercise:
    """Capture frames into a new exercise until ``logic`` reports completion."""
    recorder.start_exercise(exercise_id, repetitions_target)
    count = 0
    while True:
        frame_rgb = camera.read_rgb()
        skeleton = backend.process_frame(frame_rgb)
        completed, result = logic.evaluate(skeleton)
        stored = recorder.add_frame(frame_rgb, skeleton, result)
        count += 1
        if result is not None and result.is_repetition:
            logger.info("%s: repetition %d/%d", exercise_id, stored.repetitions, repetitions_target)
        if completed:
            break
        if max_frames is not None and count >= max_frames:
            logger.warning("%s: stopped after %d frames without completing", exercise_id, count)
            break
    return recorder.finish_exercise()


def register(
    exercises: Sequence[Tuple[str, int]],
    output: str,
    camera: Optional[Camera] = None,
    backend: Optional[PoseBackend] = None,
    logic_factory: LogicFactory = build_exercise_logic,
    backend_factory: Optional[Callable[[], PoseBackend]] = None,
    samples_dir: Optional[str] = None,
    max_frames: Optional[int] = None,
) -> Path:
    """
    Record a session of ``(exercise_id, repetitions_target)`` pairs and save it as ``output``.

    When no ``backend`` is given, ``backend_factory`` builds one (the YOLOv8-pose
    ONNX backend by default) once every exercise id has been resolved.
    """
    # Resolve every exercise before loading the model or touching the camera.
    logics: List[ExerciseLogic] = [logic_factory(eid, reps) for eid, reps in exercises]
    path = sample_path(output, samples_dir)

    if backend is None:
        if backend_factory is None:
            backend = build_pose_backend("yolov8_pose", model_path=config.MODEL_PATH)
        else:
            backend = backend_factory()
    camera = camera or Camera()

    try:
        camera.open()
        recorder = SessionRecorder(resolution=camera.resolution, frame_rate=camera.frame_rate)
        for (exercise_id, repetitions_target), logic in zip(exercises, logics):
            record_exercise(
                recorder,
                camera,
                backend,
                logic,
                exercise_id,
                repetitions_target,
                max_frames=max_frames,
            )
    except Exception:
        logger.exception("Recording aborted, nothing was saved")
        raise
    finally:
        camera.close()
        backend.close()

    return save_storage(recorder.finish(), path)

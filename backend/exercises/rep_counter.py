"""
Joint-angle repetition counting.

Each exercise is described by a joint triplet (e.g. shoulder-elbow-wrist) and
two reference angles: the resting angle and the fully contracted one. The
measured angle is normalized to a 0.0 (rest) .. 1.0 (contracted) progress and
driven through a BOTTOM -> UP_PHASE -> TOP -> DOWN_PHASE cycle; returning to
BOTTOM after reaching TOP counts one repetition.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pose_backends.base import Skeleton
from .base import REPETITION_EVENT, ExerciseLogic, ExerciseResult

Point = Tuple[float, float]


def _sign(x: float, eps: float = 1e-3) -> int:
    if x > eps: return 1
    if x < -eps: return -1
    return 0


def calculate_angle(a: Point, b: Point, c: Point) -> float:
    """Calculate the angle at point b formed by points a-b-c, in degrees."""
    radians = math.atan2(c[1] - b[1], c[0] - b[0]) - math.atan2(a[1] - b[1], a[0] - b[0])
    angle = abs(math.degrees(radians))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def _screen_direction(origin: Point, target: Point) -> float:
    # Degrees counter-clockwise from +x with the image y axis pointing down.
    return math.degrees(math.atan2(origin[1] - target[1], target[0] - origin[0])) % 360.0


@dataclass
class RepCounterState:
    rep_count: int = 0
    phase: str = "BOTTOM"  # BOTTOM, UP_PHASE, TOP, DOWN_PHASE
    reached_top: bool = False
    last_progress: Optional[float] = None
    progress: float = 0.0


class JointAngleRepCounter(ExerciseLogic):
    """Counts repetitions of a single-joint movement from 2D skeletons."""

    BOTTOM_THRESHOLD = 0.10
    TOP_THRESHOLD = 0.90
    ARC_RADIUS = 30.0

    exercise_id = "joint_angle"
    # (proximal, joint, distal) without the left_/right_ prefix
    joints: Tuple[str, str, str] = ("shoulder", "elbow", "wrist")
    rest_angle: float = 160.0
    active_angle: float = 65.0
    help_texts: Dict[str, str] = {}

    def __init__(self, repetitions_target: int):
        super().__init__(repetitions_target)
        self.state = RepCounterState()

    def reset(self) -> None:
        self.state = RepCounterState()

    def _joint_points(self, skeleton: Skeleton) -> Optional[Tuple[Point, Point, Point]]:
        for side in ("left", "right"):
            names = [f"{side}_{j}" for j in self.joints]
            if all(n in skeleton for n in names):
                return tuple(tuple(skeleton[n]) for n in names)  # type: ignore[return-value]
        return None

    def _progress(self, angle: float) -> float:
        span = self.rest_angle - self.active_angle
        denom = span if abs(span) > 1e-6 else 1e-6
        return (self.rest_angle - angle) / denom

    def _advance(self, p: float) -> bool:
        """Feed one progress sample; return True when a repetition completes."""
        last = self.state.last_progress if self.state.last_progress is not None else p
        direction = _sign(p - last)
        self.state.progress = p
        counted = False

        phase = self.state.phase
        if phase == "BOTTOM":
            if p > self.BOTTOM_THRESHOLD and direction > 0:
                self.state.phase = "UP_PHASE"
                self.state.reached_top = False

        elif phase == "UP_PHASE":
            if p >= self.TOP_THRESHOLD:
                self.state.phase = "TOP"
                self.state.reached_top = True
            elif p <= self.BOTTOM_THRESHOLD / 2 and direction < 0:
                self.state.phase = "BOTTOM"

        elif phase == "TOP":
            if p < self.TOP_THRESHOLD and direction < 0:
                self.state.phase = "DOWN_PHASE"

        elif phase == "DOWN_PHASE":
            if p <= self.BOTTOM_THRESHOLD:
                if self.state.reached_top:
                    self.state.rep_count += 1
                    counted = True
                self.state.phase = "BOTTOM"
                self.state.reached_top = False

        self.state.last_progress = p
        return counted

    def evaluate(self, skeleton: Skeleton) -> Tuple[bool, Optional[ExerciseResult]]:
        points = self._joint_points(skeleton)
        if points is None:
            return False, None
        a, b, c = points

        counted = self._advance(self._progress(calculate_angle(a, b, c)))

        events: List[str] = [REPETITION_EVENT] if counted else []
        widgets: List[Dict[str, Any]] = [
            {
                "Arc": {
                    "center": [b[0], b[1]],
                    "radius": self.ARC_RADIUS,
                    "from": _screen_direction(b, a),
                    "to": _screen_direction(b, c),
                }
            }
        ]
        metadata = {
            "state": self.state.phase,
            "events": events,
            "widgets": widgets,
            "help": self.help_texts.get(self.state.phase, ""),
        }
        completed = self.state.rep_count >= self.repetitions_target
        return completed, ExerciseResult(metadata=metadata)


class BicepCurlCounter(JointAngleRepCounter):
    exercise_id = "bicep_curls"
    joints = ("shoulder", "elbow", "wrist")
    rest_angle = 160.0
    active_angle = 65.0
    help_texts = {
        "BOTTOM": "Curl the weight up",
        "UP_PHASE": "Keep your elbow pinned",
        "TOP": "Squeeze at the top",
        "DOWN_PHASE": "Lower slowly",
    }


class SquatCounter(JointAngleRepCounter):
    exercise_id = "squats"
    joints = ("hip", "knee", "ankle")
    rest_angle = 165.0
    active_angle = 85.0
    help_texts = {
        "BOTTOM": "Sit back and go down",
        "UP_PHASE": "Keep your chest up",
        "TOP": "Push through your heels",
        "DOWN_PHASE": "Stand up tall",
    }

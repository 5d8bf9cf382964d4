"""Interface between the recorder and per-exercise completion logic."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pose_backends.base import Skeleton

REPETITION_EVENT = "Repetition"


@dataclass
class ExerciseResult:
    """
    Per-frame output of an exercise logic.

    ``metadata`` is opaque to the recorder and replay server; it is stored and
    streamed as-is. By convention it holds ``state``, ``events``, ``widgets``
    and ``help`` keys, and a ``"Repetition"`` entry in ``events`` marks the
    frame on which a repetition was completed.
    """

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def events(self):
        return self.metadata.get("events") or []

    @property
    def is_repetition(self) -> bool:
        return REPETITION_EVENT in self.events


class ExerciseLogic(ABC):
    """Decides, one skeleton at a time, whether an exercise has been completed."""

    exercise_id: str = "base"

    def __init__(self, repetitions_target: int):
        self.repetitions_target = int(repetitions_target)

    @abstractmethod
    def evaluate(self, skeleton: Skeleton) -> Tuple[bool, Optional[ExerciseResult]]:
        """Return (completed, result) for the current frame's skeleton."""

    def reset(self) -> None:
        """Forget all progress."""
        return None

"""Exercise logic registry for ActionQ.

Maps exercise ids (as given on the command line and stored in sessions) to
the strategy that decides when the exercise is complete.
"""

from typing import Callable, Dict

from errors import UnknownExerciseError
from .base import REPETITION_EVENT, ExerciseLogic, ExerciseResult
from .rep_counter import BicepCurlCounter, JointAngleRepCounter, SquatCounter

ExerciseFactory = Callable[[int], ExerciseLogic]

EXERCISE_REGISTRY: Dict[str, ExerciseFactory] = {
    BicepCurlCounter.exercise_id: BicepCurlCounter,
    SquatCounter.exercise_id: SquatCounter,
}


def register_exercise(exercise_id: str, factory: ExerciseFactory) -> None:
    """Make a custom exercise logic available under ``exercise_id``."""
    EXERCISE_REGISTRY[exercise_id] = factory


def get_available_exercises():
    """Return the list of registered exercise ids."""
    return list(EXERCISE_REGISTRY.keys())


def build_exercise_logic(exercise_id: str, repetitions_target: int) -> ExerciseLogic:
    """Instantiate the exercise logic registered under ``exercise_id``."""
    factory = EXERCISE_REGISTRY.get(exercise_id)
    if not factory:
        raise UnknownExerciseError(
            f"Unknown exercise '{exercise_id}'. "
            f"Available options: {', '.join(get_available_exercises())}"
        )
    return factory(repetitions_target)


__all__ = [
    "EXERCISE_REGISTRY",
    "REPETITION_EVENT",
    "BicepCurlCounter",
    "ExerciseLogic",
    "ExerciseResult",
    "JointAngleRepCounter",
    "SquatCounter",
    "build_exercise_logic",
    "get_available_exercises",
    "register_exercise",
]

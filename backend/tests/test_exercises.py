import math

import pytest

import exercises
from errors import UnknownExerciseError
from exercises import (
    EXERCISE_REGISTRY,
    BicepCurlCounter,
    ExerciseResult,
    SquatCounter,
    build_exercise_logic,
    get_available_exercises,
    register_exercise,
)
from exercises.rep_counter import calculate_angle

ELBOW = (300.0, 300.0)


def _limb(angle, side="left", names=("shoulder", "elbow", "wrist"), center=ELBOW):
    """Three joints forming ``angle`` degrees at the middle one."""
    cx, cy = center
    theta = math.radians(angle)
    proximal, joint, distal = (f"{side}_{n}" for n in names)
    return {
        proximal: (cx, cy - 100.0),
        joint: (cx, cy),
        distal: (cx + 100.0 * math.sin(theta), cy - 100.0 * math.cos(theta)),
    }


def _run(logic, angles, **kwargs):
    return [logic.evaluate(_limb(a, **kwargs)) for a in angles]


def test_calculate_angle():
    assert calculate_angle((0, 1), (0, 0), (1, 0)) == pytest.approx(90.0)
    assert calculate_angle((-1, 0), (0, 0), (1, 0)) == pytest.approx(180.0)
    assert calculate_angle(*_limb(65.0).values()) == pytest.approx(65.0)


def test_bicep_curl_counts_one_repetition():
    logic = BicepCurlCounter(repetitions_target=1)

    outputs = _run(logic, [160, 120, 90, 60, 100, 150, 160])

    assert [r.metadata["state"] for _, r in outputs] == [
        "BOTTOM", "UP_PHASE", "UP_PHASE", "TOP", "DOWN_PHASE", "DOWN_PHASE", "BOTTOM",
    ]
    assert [r.is_repetition for _, r in outputs] == [False] * 6 + [True]
    assert [done for done, _ in outputs] == [False] * 6 + [True]
    assert logic.state.rep_count == 1


def test_partial_movement_is_not_a_repetition():
    logic = BicepCurlCounter(repetitions_target=1)

    outputs = _run(logic, [160, 130, 110, 130, 160])

    assert not any(r.is_repetition for _, r in outputs)
    assert logic.state.rep_count == 0


def test_squat_counts_until_target():
    logic = SquatCounter(repetitions_target=2)
    cycle = [165, 120, 80, 125, 165]
    names = ("hip", "knee", "ankle")

    first = _run(logic, cycle, names=names)
    second = _run(logic, cycle, names=names)

    done, result = first[-1]
    assert done is False and result.is_repetition
    assert second[-1][0] is True
    assert logic.state.rep_count == 2


def test_metadata_describes_joint_arc():
    logic = BicepCurlCounter(repetitions_target=5)

    _, result = logic.evaluate(_limb(90.0))

    assert set(result.metadata) == {"state", "events", "widgets", "help"}
    (widget,) = result.metadata["widgets"]
    arc = widget["Arc"]
    assert arc["center"] == [300.0, 300.0]
    assert arc["radius"] == BicepCurlCounter.ARC_RADIUS
    # Shoulder straight above the elbow on screen.
    assert arc["from"] == pytest.approx(90.0)
    assert arc["to"] == pytest.approx(0.0, abs=1e-6)
    assert result.metadata["help"] == BicepCurlCounter.help_texts["BOTTOM"]


def test_missing_joints_yield_no_result():
    logic = BicepCurlCounter(repetitions_target=1)
    skeleton = _limb(90.0)
    del skeleton["left_wrist"]

    assert logic.evaluate(skeleton) == (False, None)
    assert logic.evaluate({}) == (False, None)


def test_right_side_is_used_when_left_is_missing():
    logic = BicepCurlCounter(repetitions_target=1)

    outputs = _run(logic, [160, 120, 60, 100, 160], side="right")

    assert outputs[-1][0] is True
    assert outputs[-1][1].is_repetition


def test_zero_target_is_complete_immediately():
    done, result = BicepCurlCounter(repetitions_target=0).evaluate(_limb(160.0))
    assert done is True
    assert not result.is_repetition


def test_reset_forgets_progress():
    logic = BicepCurlCounter(repetitions_target=3)
    _run(logic, [160, 120, 60, 100, 160])
    assert logic.state.rep_count == 1

    logic.reset()

    assert logic.state.rep_count == 0
    assert logic.state.phase == "BOTTOM"


def test_exercise_result_events():
    assert ExerciseResult(metadata={"events": ["Repetition"]}).is_repetition
    assert not ExerciseResult(metadata={"events": None}).is_repetition
    assert ExerciseResult().events == []


def test_registry_builds_known_exercises():
    assert {"bicep_curls", "squats"} <= set(get_available_exercises())
    logic = build_exercise_logic("squats", 7)
    assert isinstance(logic, SquatCounter)
    assert logic.repetitions_target == 7


def test_registry_rejects_unknown_exercise():
    with pytest.raises(UnknownExerciseError, match="jumping_jacks"):
        build_exercise_logic("jumping_jacks", 3)


def test_custom_exercise_can_be_registered(monkeypatch):
    monkeypatch.setitem(EXERCISE_REGISTRY, "placeholder", BicepCurlCounter)
    assert isinstance(build_exercise_logic("placeholder", 1), BicepCurlCounter)


def test_register_exercise_adds_to_registry(monkeypatch):
    monkeypatch.setattr(exercises, "EXERCISE_REGISTRY", dict(EXERCISE_REGISTRY))

    register_exercise("lunges", SquatCounter)

    assert "lunges" in exercises.get_available_exercises()

import json

import pytest
from pydantic import ValidationError

from protocol import (
    ExerciseEnd,
    ExerciseStart,
    ExerciseUpdate,
    SessionEnd,
    SessionStart,
    decode_command,
    encode_command,
)


def test_session_start_wire_format():
    cmd = SessionStart(exercises_count=2, exercise_ids=["squats", "bicep_curls"], resolution=(640, 480), frame_rate=30)

    message = json.loads(encode_command(cmd))

    assert message == {
        "type": "SessionStart",
        "exercises_count": 2,
        "exercise_ids": ["squats", "bicep_curls"],
        "resolution": [640, 480],
        "frame_rate": 30,
    }
    assert list(message)[0] == "type"


def test_exercise_update_sends_frame_as_byte_array():
    cmd = ExerciseUpdate(
        metadata=None,
        skeleton={"nose": (100.0, 80.0)},
        repetitions=2,
        frame=b"\xff\xd8\x00",
    )

    message = json.loads(encode_command(cmd))

    assert message["type"] == "ExerciseUpdate"
    assert message["frame"] == [255, 216, 0]
    assert message["skeleton"] == {"nose": [100.0, 80.0]}
    assert message["metadata"] is None
    assert decode_command(encode_command(cmd)) == cmd


@pytest.mark.parametrize("cmd", [ExerciseEnd(), SessionEnd(), ExerciseStart(exercise_id="squats", repetitions_target=10)])
def test_commands_decode_to_their_variant(cmd):
    decoded = decode_command(encode_command(cmd))
    assert type(decoded) is type(cmd)
    assert decoded == cmd


def test_unit_commands_carry_only_their_tag():
    assert json.loads(encode_command(ExerciseEnd())) == {"type": "ExerciseEnd"}
    assert json.loads(encode_command(SessionEnd())) == {"type": "SessionEnd"}


def test_unknown_command_type_is_rejected():
    with pytest.raises(ValidationError):
        decode_command('{"type": "Pause"}')


def test_invalid_byte_values_are_rejected():
    with pytest.raises(ValidationError):
        decode_command('{"type": "ExerciseUpdate", "skeleton": {}, "repetitions": 0, "frame": [256]}')

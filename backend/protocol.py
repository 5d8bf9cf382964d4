"""
Replay wire protocol.

Every message is one JSON object per websocket text frame, discriminated by
its ``type`` field. The set of commands is closed: decoding rejects any other
``type`` value.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter, field_serializer, field_validator


class SessionStart(BaseModel):
    type: Literal["SessionStart"] = "SessionStart"
    exercises_count: int = Field(..., ge=0, description="Number of exercises")
    exercise_ids: List[str] = Field(..., description="Ids of the exercises in the session")
    resolution: Tuple[int, int] = Field(..., description="Resolution of the recorded frames")
    frame_rate: int = Field(..., gt=0, description="Frame rate of the camera")


class ExerciseStart(BaseModel):
    type: Literal["ExerciseStart"] = "ExerciseStart"
    exercise_id: str = Field(..., description="Id of the current exercise")
    repetitions_target: int = Field(..., ge=0, description="Repetitions number to reach")


class ExerciseUpdate(BaseModel):
    type: Literal["ExerciseUpdate"] = "ExerciseUpdate"
    metadata: Optional[Any] = Field(None, description="Exercise logic metadata, opaque")
    skeleton: Dict[str, Tuple[float, float]] = Field(default_factory=dict, description="Current 2D skeleton")
    repetitions: int = Field(..., ge=0, description="Current number of repetitions")
    frame: bytes = Field(..., description="Current JPEG frame")

    @field_validator("frame", mode="before")
    @classmethod
    def _frame_from_ints(cls, value):
        # On the wire the frame is an array of byte values.
        if isinstance(value, (list, tuple)):
            return bytes(value)
        return value

    @field_serializer("frame")
    def _frame_to_ints(self, frame: bytes) -> List[int]:
        return list(frame)


class ExerciseEnd(BaseModel):
    type: Literal["ExerciseEnd"] = "ExerciseEnd"


class SessionEnd(BaseModel):
    type: Literal["SessionEnd"] = "SessionEnd"


ProtocolCommand = Annotated[
    Union[SessionStart, ExerciseStart, ExerciseUpdate, ExerciseEnd, SessionEnd],
    Field(discriminator="type"),
]

_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(ProtocolCommand)


def encode_command(command: BaseModel) -> str:
    """Serialize a command to its JSON text frame."""
    return command.model_dump_json()


def decode_command(text: Union[str, bytes]) -> BaseModel:
    """Parse a JSON text frame into the matching command model."""
    return _COMMAND_ADAPTER.validate_json(text)

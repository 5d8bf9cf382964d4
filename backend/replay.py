"""
Paced replay of a recorded session over a websocket.

Each connection receives the full session from the start, in this order::

    SessionStart
    for each exercise:
        ExerciseStart
        for each frame: ExerciseUpdate, then wait 1000 / frame_rate ms
        ExerciseEnd, then wait the exercise gap
    SessionEnd

Pacing does not compensate for time spent sending, so long sessions drift
slightly behind real time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple

from fastapi import WebSocketDisconnect
from pydantic import BaseModel

import config
from errors import ReplayAborted
from protocol import (
    ExerciseEnd,
    ExerciseStart,
    ExerciseUpdate,
    SessionEnd,
    SessionStart,
    encode_command,
)
from session import Storage

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

# Errors raised by the websocket stack when the peer is gone.
TRANSPORT_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


def frame_delay_seconds(frame_rate: int) -> float:
    """Delay between two ExerciseUpdate commands, in whole milliseconds."""
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")
    return int(1000.0 / frame_rate) / 1000.0


def iter_commands(
    storage: Storage,
    exercise_gap: float = config.EXERCISE_GAP_SECONDS,
) -> Iterator[Tuple[BaseModel, float]]:
    """Yield every command of a replay with the pause that follows it."""
    frame_delay = frame_delay_seconds(storage.frame_rate)

    yield SessionStart(
        exercises_count=len(storage.exercises),
        exercise_ids=storage.exercise_ids,
        resolution=storage.resolution,
        frame_rate=storage.frame_rate,
    ), 0.0

    for exercise in storage.exercises:
        yield ExerciseStart(
            exercise_id=exercise.id,
            repetitions_target=exercise.repetitions_target,
        ), 0.0

        for frame in exercise.frames:
            yield ExerciseUpdate(
                metadata=frame.metadata,
                skeleton=frame.skeleton,
                repetitions=frame.repetitions,
                frame=frame.frame,
            ), frame_delay

        yield ExerciseEnd(), exercise_gap

    yield SessionEnd(), 0.0


class ReplayServer:
    """Streams one persisted session to each connecting client, one client at a time."""

    def __init__(
        self,
        storage: Storage,
        exercise_gap: float = config.EXERCISE_GAP_SECONDS,
        sleep: Optional[Sleep] = None,
    ):
        self.storage = storage
        self.exercise_gap = exercise_gap
        self.sleep: Sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()
        self.replays_completed = 0
        self.replays_aborted = 0

    async def accept(self, websocket) -> None:
        try:
            await websocket.accept()
        except TRANSPORT_ERRORS as exc:
            raise ReplayAborted(f"unable to accept connection: {exc!r}") from exc

    async def send_command(self, websocket, command: BaseModel) -> None:
        payload = encode_command(command)
        try:
            await websocket.send_text(payload)
        except TRANSPORT_ERRORS as exc:
            raise ReplayAborted(f"unable to send {command.type}: {exc!r}") from exc

    async def replay(self, websocket) -> int:
        """Send the whole session on an accepted websocket; return the number of commands sent."""
        sent = 0
        current = None
        for command, delay in iter_commands(self.storage, self.exercise_gap):
            if isinstance(command, ExerciseStart):
                current = command.exercise_id
                logger.info("streaming of exercise %s in progress", current)
            await self.send_command(websocket, command)
            sent += 1
            if isinstance(command, ExerciseEnd):
                logger.info("streaming of exercise %s complete!", current)
                logger.info("waiting between exercises...")
            if delay > 0:
                await self.sleep(delay)
        logger.info("streaming complete!")
        return sent

    async def serve(self, websocket) -> bool:
        """
        Accept and fully serve one connection.

        Transport failures abort only this connection: they are logged and
        reported as False so the caller keeps accepting new clients.
        """
        async with self._lock:
            try:
                await self.accept(websocket)
                logger.info("connection accepted! streaming data...")
                await self.replay(websocket)
            except ReplayAborted as exc:
                self.replays_aborted += 1
                logger.warning("Replay aborted, client dropped: %s", exc)
                return False
            finally:
                await self._close(websocket)
            self.replays_completed += 1
            return True

    @staticmethod
    async def _close(websocket) -> None:
        try:
            await websocket.close()
        except Exception:
            pass

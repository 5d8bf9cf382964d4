import asyncio
import json
import time

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from main import create_app
from protocol import decode_command
from replay import ReplayServer, frame_delay_seconds, iter_commands

EXPECTED_ORDER = [
    "SessionStart",
    "ExerciseStart",
    "ExerciseUpdate",
    "ExerciseUpdate",
    "ExerciseEnd",
    "ExerciseStart",
    "ExerciseUpdate",
    "ExerciseUpdate",
    "ExerciseEnd",
    "SessionEnd",
]


class FakeWebSocket:
    """Records what the server sends; optionally fails on the n-th send."""

    def __init__(self, fail_on=None, error=None):
        self.accepted = False
        self.closed = False
        self.sent = []
        self.fail_on = fail_on
        self.error = error or WebSocketDisconnect(code=1006)

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail_on is not None and len(self.sent) + 1 >= self.fail_on:
            raise self.error
        self.sent.append(json.loads(text))

    async def close(self):
        self.closed = True

    @property
    def types(self):
        return [m["type"] for m in self.sent]


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


async def _no_sleep(_seconds):
    return None


def test_iter_commands_follows_session_structure(make_storage):
    commands = [cmd for cmd, _ in iter_commands(make_storage(exercises=2, frames=2))]
    assert [c.type for c in commands] == EXPECTED_ORDER


def test_session_start_describes_session(make_storage):
    storage = make_storage(exercises=2, frames=1, frame_rate=30)
    start, _ = next(iter_commands(storage))

    assert start.exercises_count == 2
    assert start.exercise_ids == ["exercise_0", "exercise_1"]
    assert start.resolution == (640, 480)
    assert start.frame_rate == 30


def test_replay_sends_commands_in_order(make_storage):
    storage = make_storage(exercises=2, frames=2)
    ws = FakeWebSocket()
    server = ReplayServer(storage, sleep=RecordingSleep())

    assert asyncio.run(server.serve(ws)) is True

    assert ws.accepted and ws.closed
    assert ws.types == EXPECTED_ORDER
    updates = [m for m in ws.sent if m["type"] == "ExerciseUpdate"]
    first = storage.exercises[0].frames[0]
    assert updates[0]["frame"] == list(first.frame)
    assert updates[0]["skeleton"] == {k: list(v) for k, v in first.skeleton.items()}
    assert updates[0]["repetitions"] == first.repetitions
    assert updates[1]["metadata"] == storage.exercises[0].frames[1].metadata


def test_replay_paces_updates_from_frame_rate(make_storage):
    sleep = RecordingSleep()
    server = ReplayServer(make_storage(exercises=2, frames=2, frame_rate=25), exercise_gap=2.0, sleep=sleep)

    asyncio.run(server.serve(FakeWebSocket()))

    assert sleep.delays == [0.04, 0.04, 2.0, 0.04, 0.04, 2.0]


@pytest.mark.parametrize("frame_rate,expected", [(25, 0.040), (30, 0.033), (60, 0.016), (1, 1.0)])
def test_frame_delay(frame_rate, expected):
    assert frame_delay_seconds(frame_rate) == pytest.approx(expected)


def test_frame_delay_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        frame_delay_seconds(0)


@pytest.mark.parametrize("error", [WebSocketDisconnect(code=1006), OSError("broken pipe"), RuntimeError("closed")])
def test_disconnect_aborts_only_that_connection(make_storage, error):
    server = ReplayServer(make_storage(exercises=2, frames=2), sleep=_no_sleep)
    dropped = FakeWebSocket(fail_on=3, error=error)
    healthy = FakeWebSocket()

    async def scenario():
        return await server.serve(dropped), await server.serve(healthy)

    first, second = asyncio.run(scenario())

    assert first is False
    assert dropped.types == ["SessionStart", "ExerciseStart"]
    assert dropped.closed
    assert second is True
    assert healthy.types == EXPECTED_ORDER
    assert (server.replays_aborted, server.replays_completed) == (1, 1)


def test_failed_accept_is_counted_as_aborted(make_storage):
    class RefusingWebSocket(FakeWebSocket):
        async def accept(self):
            raise OSError("connection reset")

    server = ReplayServer(make_storage(), sleep=_no_sleep)
    ws = RefusingWebSocket()

    assert asyncio.run(server.serve(ws)) is False
    assert ws.sent == []
    assert (server.replays_aborted, server.replays_completed) == (1, 0)


def test_errors_outside_the_transport_propagate(make_storage):
    async def broken_sleep(_seconds):
        raise RuntimeError("scheduler bug")

    server = ReplayServer(make_storage(), sleep=broken_sleep)
    ws = FakeWebSocket()

    with pytest.raises(RuntimeError, match="scheduler bug"):
        asyncio.run(server.serve(ws))

    assert ws.closed
    assert (server.replays_aborted, server.replays_completed) == (0, 0)


def test_metadata_is_streamed_as_is(make_storage):
    storage = make_storage(exercises=1, frames=3)
    storage.exercises[0].frames[0].metadata = ["Repetition", 3]
    storage.exercises[0].frames[1].metadata = "TOP"
    ws = FakeWebSocket()

    asyncio.run(ReplayServer(storage, sleep=_no_sleep).serve(ws))

    updates = [m["metadata"] for m in ws.sent if m["type"] == "ExerciseUpdate"]
    assert updates == [["Repetition", 3], "TOP", storage.exercises[0].frames[2].metadata]


def test_connections_are_served_one_at_a_time(make_storage):
    server = ReplayServer(make_storage(exercises=1, frames=3), sleep=lambda s: asyncio.sleep(0))
    log = []

    class Tracking(FakeWebSocket):
        def __init__(self, name):
            super().__init__()
            self.name = name

        async def send_text(self, text):
            log.append(self.name)
            await super().send_text(text)

    a, b = Tracking("a"), Tracking("b")

    async def scenario():
        await asyncio.gather(server.serve(a), server.serve(b))

    asyncio.run(scenario())

    assert log == ["a"] * 7 + ["b"] * 7


def _receive_all(ws):
    messages = []
    while True:
        message = ws.receive_json()
        messages.append(message)
        if message["type"] == "SessionEnd":
            return messages


def test_websocket_replay_end_to_end(make_storage):
    storage = make_storage(exercises=2, frames=2)
    client = TestClient(create_app(storage, exercise_gap=0.0, sleep=_no_sleep))

    with client.websocket_connect("/") as ws:
        messages = _receive_all(ws)

    assert [m["type"] for m in messages] == EXPECTED_ORDER
    decoded = decode_command(json.dumps(messages[2]))
    assert decoded.frame == storage.exercises[0].frames[0].frame


def test_new_connection_after_early_disconnect_starts_from_session_start(make_storage):
    client = TestClient(create_app(make_storage(exercises=2, frames=2), exercise_gap=0.0, sleep=_no_sleep))

    with client.websocket_connect("/") as ws:
        assert ws.receive_json()["type"] == "SessionStart"
        assert ws.receive_json()["type"] == "ExerciseStart"

    with client.websocket_connect("/") as ws:
        messages = _receive_all(ws)

    assert [m["type"] for m in messages] == EXPECTED_ORDER
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["session"]["frames"] == 4


def test_websocket_updates_arrive_at_frame_rate(make_storage):
    storage = make_storage(exercises=1, frames=5, frame_rate=25)
    client = TestClient(create_app(storage, exercise_gap=0.0))

    arrivals = []
    with client.websocket_connect("/") as ws:
        while True:
            message = ws.receive_json()
            if message["type"] == "ExerciseUpdate":
                arrivals.append(time.perf_counter())
            if message["type"] == "SessionEnd":
                break

    intervals = [b - a for a, b in zip(arrivals, arrivals[1:])]
    mean = sum(intervals) / len(intervals)
    assert 0.020 <= mean <= 0.080


def test_root_describes_loaded_session(make_storage):
    client = TestClient(create_app(make_storage(exercises=2, frames=3), exercise_gap=0.0))

    info = client.get("/").json()["session"]

    assert [e["id"] for e in info["exercises"]] == ["exercise_0", "exercise_1"]
    assert info["frames"] == 6
    assert info["frame_rate"] == 25

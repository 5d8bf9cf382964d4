"""
Binary persistence of recorded sessions.

Layout (little-endian, no header or version, fields in declaration order)::

    Storage      := seq<Exercise> u32:width u32:height u32:frame_rate
    Exercise     := seq<StorageFrame> u32:repetitions_target str:id
    StorageFrame := bytes:frame map<str, (f32, f32)>:skeleton
                    option<str>:metadata u32:repetitions

    seq<T> / map / bytes / str := u64 length followed by the items / raw bytes
    option<T>                  := u8 0 (absent) | u8 1 followed by T

Strings are UTF-8; metadata is stored as a compact JSON string. Skeleton
coordinates are f32, so only f32-representable values survive a round trip
exactly (which is what the pose pipeline produces).
"""

from __future__ import annotations

import json
import logging
import os
import struct
from pathlib import Path
from typing import Any, Optional, Union

import config
from errors import StorageFormatError
from pose_backends.base import Skeleton
from session import Exercise, Storage, StorageFrame

logger = logging.getLogger(__name__)

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_POINT = struct.Struct("<ff")

U32_MAX = 0xFFFFFFFF


class _Writer:
    def __init__(self) -> None:
        self.buf = bytearray()

    def u8(self, value: int) -> None:
        self.buf += _U8.pack(value)

    def u32(self, value: int, what: str) -> None:
        if not isinstance(value, int) or not 0 <= value <= U32_MAX:
            raise StorageFormatError(f"{what} must be an integer in 0..{U32_MAX}, got {value!r}")
        self.buf += _U32.pack(value)

    def length(self, n: int) -> None:
        self.buf += _U64.pack(n)

    def raw(self, data: bytes) -> None:
        self.length(len(data))
        self.buf += data

    def string(self, value: str) -> None:
        self.raw(value.encode("utf-8"))

    def point(self, xy) -> None:
        x, y = xy
        self.buf += _POINT.pack(float(x), float(y))


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = memoryview(data)
        self.pos = 0

    def _take(self, n: int) -> memoryview:
        end = self.pos + n
        if n < 0 or end > len(self.data):
            raise StorageFormatError(
                f"Unexpected end of data: need {n} bytes at offset {self.pos}, have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def _unpack(self, fmt: struct.Struct):
        return fmt.unpack(self._take(fmt.size))

    def u8(self) -> int:
        return self._unpack(_U8)[0]

    def u32(self) -> int:
        return self._unpack(_U32)[0]

    def length(self) -> int:
        return self._unpack(_U64)[0]

    def raw(self) -> bytes:
        return bytes(self._take(self.length()))

    def string(self) -> str:
        try:
            return self.raw().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StorageFormatError(f"Invalid UTF-8 string before offset {self.pos}") from exc

    def point(self):
        x, y = self._unpack(_POINT)
        return (x, y)

    def done(self) -> None:
        if self.pos != len(self.data):
            raise StorageFormatError(f"{len(self.data) - self.pos} trailing bytes after session data")


def _write_metadata(w: _Writer, metadata: Any) -> None:
    if metadata is None:
        w.u8(0)
        return
    try:
        text = json.dumps(metadata, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise StorageFormatError(f"Frame metadata is not JSON serializable: {exc}") from exc
    w.u8(1)
    w.string(text)


def _read_metadata(r: _Reader) -> Any:
    tag = r.u8()
    if tag == 0:
        return None
    if tag != 1:
        raise StorageFormatError(f"Invalid option tag {tag} at offset {r.pos - 1}")
    text = r.string()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise StorageFormatError(f"Invalid frame metadata JSON: {exc}") from exc


def _write_frame(w: _Writer, frame: StorageFrame) -> None:
    w.raw(bytes(frame.frame))
    w.length(len(frame.skeleton))
    for name, xy in frame.skeleton.items():
        w.string(name)
        w.point(xy)
    _write_metadata(w, frame.metadata)
    w.u32(frame.repetitions, "repetitions")


def _read_frame(r: _Reader) -> StorageFrame:
    jpeg = r.raw()
    skeleton: Skeleton = {}
    for _ in range(r.length()):
        name = r.string()
        skeleton[name] = r.point()
    metadata = _read_metadata(r)
    repetitions = r.u32()
    return StorageFrame(frame=jpeg, skeleton=skeleton, metadata=metadata, repetitions=repetitions)


def encode_storage(storage: Storage) -> bytes:
    """Serialize a session to its binary form."""
    w = _Writer()
    w.length(len(storage.exercises))
    for exercise in storage.exercises:
        w.length(len(exercise.frames))
        for frame in exercise.frames:
            _write_frame(w, frame)
        w.u32(exercise.repetitions_target, "repetitions_target")
        w.string(exercise.id)
    width, height = storage.resolution
    w.u32(width, "resolution width")
    w.u32(height, "resolution height")
    if not isinstance(storage.frame_rate, int) or storage.frame_rate <= 0:
        raise StorageFormatError(f"frame_rate must be a positive integer, got {storage.frame_rate!r}")
    w.u32(storage.frame_rate, "frame_rate")
    return bytes(w.buf)


def decode_storage(data: bytes) -> Storage:
    """Parse the binary form produced by encode_storage."""
    r = _Reader(data)
    exercises = []
    for _ in range(r.length()):
        frames = [_read_frame(r) for _ in range(r.length())]
        repetitions_target = r.u32()
        exercise_id = r.string()
        exercises.append(Exercise(id=exercise_id, repetitions_target=repetitions_target, frames=frames))
    resolution = (r.u32(), r.u32())
    frame_rate = r.u32()
    r.done()
    if frame_rate == 0:
        raise StorageFormatError("frame_rate must be positive, got 0")
    return Storage(exercises=exercises, resolution=resolution, frame_rate=frame_rate)


def sample_path(name: str, samples_dir: Optional[Union[str, Path]] = None) -> Path:
    """Location of the session recorded under ``name``."""
    return Path(samples_dir or config.SAMPLES_DIR) / f"{name}.bin"


def save_storage(storage: Storage, path: Union[str, Path]) -> Path:
    """Write a whole session to ``path``. Failures propagate to the caller."""
    path = Path(path)
    data = encode_storage(storage)
    path.parent.mkdir(parents=True, exist_ok=True)
    # Only a complete file ever appears at path.
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.info(
        "Session saved to %s (%d exercises, %d frames, %.1f MB)",
        path,
        len(storage.exercises),
        storage.frame_count,
        len(data) / 1e6,
    )
    return path


def load_storage(path: Union[str, Path]) -> Storage:
    """Read a session written by save_storage."""
    path = Path(path)
    logger.info("reading %s", path)
    storage = decode_storage(path.read_bytes())
    logger.info(
        "Loaded session %s: exercises=%s resolution=%dx%d frame_rate=%d",
        path.name,
        storage.exercise_ids,
        storage.resolution[0],
        storage.resolution[1],
        storage.frame_rate,
    )
    return storage

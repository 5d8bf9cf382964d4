from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pytest

from session import Exercise, Storage, StorageFrame

CHANNELS = 5 + 3 * 17


def _output_tensor(candidates: Sequence[Dict], n: int = 8400) -> np.ndarray:
    """Build a (1, 56, n) YOLOv8-pose output with the given candidates in the first columns."""
    out = np.zeros((1, CHANNELS, n), dtype=np.float32)
    for i, cand in enumerate(candidates):
        out[0, 0:5, i] = [cand["cx"], cand["cy"], cand["bw"], cand["bh"], cand["bc"]]
        for k, (x, y, c) in enumerate(cand.get("keypoints", [])):
            out[0, 5 + 3 * k: 8 + 3 * k, i] = [x, y, c]
    return out


def _keypoints(overrides: Optional[Dict[int, Tuple[float, float, float]]] = None) -> List[Tuple[float, float, float]]:
    kpts = [(0.0, 0.0, 0.0)] * 17
    for idx, value in (overrides or {}).items():
        kpts[idx] = value
    return kpts


@pytest.fixture
def make_output():
    return _output_tensor


@pytest.fixture
def make_keypoints():
    return _keypoints


def _storage(exercises: int = 2, frames: int = 2, frame_rate: int = 25) -> Storage:
    out = []
    for e in range(exercises):
        ex = Exercise(id=f"exercise_{e}", repetitions_target=frames)
        for f in range(frames):
            ex.frames.append(
                StorageFrame(
                    frame=bytes([0xFF, 0xD8, e, f, 0xFF, 0xD9]),
                    skeleton={"nose": (100.5 + f, 80.25), "left_wrist": (12.0, 300.75)},
                    metadata={"state": "TOP", "events": ["Repetition"], "help": "Lower slowly"} if f % 2 else None,
                    repetitions=f,
                )
            )
        out.append(ex)
    return Storage(exercises=out, resolution=(640, 480), frame_rate=frame_rate)


@pytest.fixture
def make_storage():
    return _storage

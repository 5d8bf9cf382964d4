"""
ActionQ command line.

    actionq register squats:10 bicep_curls:12 monday
    actionq stream monday.bin 127.0.0.1:8080
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import config


def parse_exercise(value: str) -> Tuple[str, int]:
    """Parse an ``ID:REPS`` pair."""
    pos = value.find(":")
    if pos < 0:
        raise argparse.ArgumentTypeError(f"invalid ID:REPS, no `:` found in `{value}`")
    exercise_id, reps = value[:pos], value[pos + 1:]
    if not exercise_id:
        raise argparse.ArgumentTypeError(f"invalid ID:REPS, empty id in `{value}`")
    try:
        repetitions = int(reps)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ID:REPS, `{reps}` is not an integer") from None
    if repetitions < 0:
        raise argparse.ArgumentTypeError(f"invalid ID:REPS, negative repetitions in `{value}`")
    return exercise_id, repetitions


def parse_address(value: str) -> Tuple[str, int]:
    """Parse ``HOST:PORT`` (an optional ``ws://`` prefix is ignored)."""
    if value.startswith("ws://"):
        value = value[len("ws://"):]
    host, sep, port = value.rstrip("/").rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"invalid address `{value}`, expected HOST:PORT")
    try:
        return host, int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port `{port}`") from None


def resolve_sample(binary: str, samples_dir: Optional[str] = None) -> Path:
    path = Path(binary)
    if path.exists():
        return path
    return Path(samples_dir or config.SAMPLES_DIR) / binary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="actionq", description="Record and replay exercise sessions")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    parser.add_argument("--samples-dir", default=config.SAMPLES_DIR, help="Where sessions are stored")
    sub = parser.add_subparsers(dest="command", required=True)

    reg = sub.add_parser("register", help="Register a new exercise sample")
    reg.add_argument(
        "exercises",
        nargs="+",
        type=parse_exercise,
        help="Ids and repetitions target of the exercises to be registered (ID:REPS)",
    )
    reg.add_argument("output", help="Output name (saved as <samples-dir>/<output>.bin)")
    reg.add_argument("--model", default=config.MODEL_PATH, help="Path to the YOLOv8-pose ONNX model")
    reg.add_argument("--camera", type=int, default=config.CAMERA_INDEX, help="Camera index")

    stream = sub.add_parser("stream", help="Stream a registered exercise")
    stream.add_argument("binary", help="Filepath to the registered exercise")
    stream.add_argument(
        "url",
        nargs="?",
        type=parse_address,
        default=f"{config.HOST}:{config.PORT}",
        help="Address to listen on (HOST:PORT)",
    )
    stream.add_argument(
        "--exercise-gap",
        type=float,
        default=config.EXERCISE_GAP_SECONDS,
        help="Seconds to wait between exercises",
    )
    return parser


def run_register(args) -> None:
    from camera import Camera
    from pose_backends import build_pose_backend
    from recorder import register

    register(
        args.exercises,
        args.output,
        camera=Camera(index=args.camera),
        backend_factory=lambda: build_pose_backend("yolov8_pose", model_path=args.model),
        samples_dir=args.samples_dir,
    )


def run_stream(args) -> None:
    import uvicorn

    from main import create_app_from_file

    app = create_app_from_file(resolve_sample(args.binary, args.samples_dir), exercise_gap=args.exercise_gap)
    host, port = args.url
    logging.getLogger(__name__).info("webSocket server listening on ws://%s:%d ...", host, port)
    uvicorn.run(app, host=host, port=port, loop="uvloop", log_level=args.log_level.lower())


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    if args.command == "register":
        run_register(args)
    elif args.command == "stream":
        run_stream(args)


if __name__ == "__main__":
    main()

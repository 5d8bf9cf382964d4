import logging
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

import config
from replay import ReplayServer, Sleep
from session import Storage
from storage_codec import load_storage

logger = logging.getLogger(__name__)


def create_app(
    storage: Storage,
    exercise_gap: float = config.EXERCISE_GAP_SECONDS,
    sleep: Optional[Sleep] = None,
) -> FastAPI:
    """Build the replay application for one recorded session."""
    app = FastAPI(title="ActionQ Replay Server")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    replay_server = ReplayServer(storage, exercise_gap=exercise_gap, sleep=sleep)
    app.state.replay_server = replay_server

    @app.get("/")
    def read_root():
        return {
            "message": "ActionQ - recorded exercise session replay",
            "session": storage.to_dict(),
        }

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "session": storage.to_dict(),
            "replays_completed": replay_server.replays_completed,
            "replays_aborted": replay_server.replays_aborted,
        }

    @app.websocket("/")
    async def websocket_endpoint(websocket: WebSocket):
        logger.info("WebSocket connection attempt received.")
        await replay_server.serve(websocket)
        logger.info("Client connection closed")

    return app


def create_app_from_file(path: str, exercise_gap: float = config.EXERCISE_GAP_SECONDS) -> FastAPI:
    return create_app(load_storage(path), exercise_gap=exercise_gap)

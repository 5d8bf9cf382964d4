"""
Runtime settings for ActionQ.

Every value can be overridden through an environment variable; explicit
arguments passed to functions and constructors take precedence over these.
"""

import os

SAMPLES_DIR = os.getenv("ACTIONQ_SAMPLES_DIR", "samples")
MODEL_PATH = os.getenv("ACTIONQ_MODEL_PATH", os.path.join("models", "yolov8m-pose.onnx"))

# Camera
CAMERA_INDEX = int(os.getenv("ACTIONQ_CAMERA_INDEX", "0"))
CAMERA_WIDTH = int(os.getenv("ACTIONQ_CAMERA_WIDTH", "640"))
CAMERA_HEIGHT = int(os.getenv("ACTIONQ_CAMERA_HEIGHT", "480"))
CAMERA_FPS = int(os.getenv("ACTIONQ_CAMERA_FPS", "30"))

# YOLOv8-pose output layout and thresholds
MODEL_INPUT_SIZE = int(os.getenv("ACTIONQ_MODEL_INPUT_SIZE", "640"))
CANDIDATE_COUNT = int(os.getenv("ACTIONQ_CANDIDATE_COUNT", "8400"))
BOX_CONFIDENCE = float(os.getenv("ACTIONQ_BOX_CONFIDENCE", "0.5"))
IOU_THRESHOLD = float(os.getenv("ACTIONQ_IOU_THRESHOLD", "0.45"))
KEYPOINT_CONFIDENCE = float(os.getenv("ACTIONQ_KEYPOINT_CONFIDENCE", "0.5"))

JPEG_QUALITY = int(os.getenv("ACTIONQ_JPEG_QUALITY", "80"))

# Replay
EXERCISE_GAP_SECONDS = float(os.getenv("ACTIONQ_EXERCISE_GAP_SECONDS", "2.0"))
HOST = os.getenv("ACTIONQ_HOST", "127.0.0.1")
PORT = int(os.getenv("ACTIONQ_PORT", "8080"))
LOG_LEVEL = os.getenv("ACTIONQ_LOG_LEVEL", "INFO")

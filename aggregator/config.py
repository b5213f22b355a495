"""Central defaults for the aggregator.

Sections are grouped by feature for easier editing. Values marked with an
environment variable can be overridden without touching the run config.
"""

import os
from pathlib import Path

# Logs
LOG_LEVEL = os.environ.get("AGGREGATOR_LOG_LEVEL", "INFO")

# ---------------------------------------
# Working storage
# ---------------------------------------
# Downloads and intermediate transform outputs live here
WORK_DIR = Path(os.environ.get("AGGREGATOR_WORK_DIR", "work"))
# Container extension used for downloaded clips
CLIP_EXTENSION = ".mp4"

# ---------------------------------------
# External processes
# ---------------------------------------
FFMPEG_PATH = os.environ.get("FFMPEG_PATH", "ffmpeg")
FFPROBE_PATH = os.environ.get("FFPROBE_PATH", "ffprobe")
# Wall-clock limit for a single ffmpeg invocation, in seconds
PROCESS_TIMEOUT_SECONDS: float = float(os.environ.get("AGGREGATOR_PROCESS_TIMEOUT", "180"))

# Encode tail shared by every transform step
VIDEO_CODEC = "libx264"
PIXEL_FORMAT = "yuv420p"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "128k"
AUDIO_SAMPLE_RATE = 48000

# ---------------------------------------
# Retrieval
# ---------------------------------------
TWITCH_API_URL = "https://api.twitch.tv/helix"
TWITCH_PAGE_SIZE = 100
HTTP_TIMEOUT_SECONDS: float = 30.0

# ---------------------------------------
# Staging
# ---------------------------------------
STAGE_UPLOAD_ATTEMPTS = 3
STAGE_UPLOAD_BACKOFF_SECONDS = 2.0

# ---------------------------------------
# Publishing
# ---------------------------------------
GRAPH_API_URL = os.environ.get("INSTAGRAM_GRAPH_URL", "https://graph.instagram.com")
GRAPH_API_VERSION = os.environ.get("INSTAGRAM_GRAPH_VERSION", "v23.0")
# Container readiness polling: interval and overall ceiling, in seconds
CONTAINER_POLL_INTERVAL_SECONDS: float = 30.0
CONTAINER_POLL_TIMEOUT_SECONDS: float = 300.0

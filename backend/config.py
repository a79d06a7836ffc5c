# backend/config.py
"""
Application configuration.

All settings are read from the environment (a local .env file is loaded
first) and exposed as module-level constants.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from this file's directory without overriding real env vars
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


# ==================== OPENAI ====================
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# ==================== ANALYSIS ====================
ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", "gpt-4o-mini")
ANALYSIS_TEMPERATURE = _float_env("ANALYSIS_TEMPERATURE", 0.4)
ANALYSIS_TIMEOUT_SECONDS = _float_env("ANALYSIS_TIMEOUT_SECONDS", 120.0)
ANALYSIS_MAX_ATTEMPTS = _int_env("ANALYSIS_MAX_ATTEMPTS", 2)

# ==================== NARRATION ====================
NARRATION_MODEL = os.getenv("NARRATION_MODEL", "gpt-4o-mini-tts")
NARRATION_VOICE = os.getenv("NARRATION_VOICE", "alloy")
MP3_BITRATE_KBPS = _int_env("MP3_BITRATE_KBPS", 128)

# ==================== REALTIME VOICE ====================
REALTIME_MODEL = os.getenv("REALTIME_MODEL", "gpt-realtime")
REALTIME_VOICE = os.getenv("REALTIME_VOICE", "alloy")
SESSION_OPEN_TIMEOUT_SECONDS = _float_env("SESSION_OPEN_TIMEOUT_SECONDS", 15.0)

# ==================== HTTP ====================
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

# ==================== LOGGING ====================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

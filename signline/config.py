# ============================================================
# config.py — Central Configuration & Gemini API Key Rotation
# ============================================================
# Uses a round-robin key pool to distribute requests across
# multiple Gemini API keys, preventing 429 rate limits.
# ============================================================

import os
import itertools
from dataclasses import dataclass, field
from threading import Lock
from google import genai
from dotenv import load_dotenv

from signline.costs import GEMINI_2_5_FLASH, GEMINI_2_5_FLASH_TTS, GEMINI_3_FLASH

# Load environment variables from .env file
load_dotenv()

# ── API Key Pool ──────────────────────────────────────────────
# GEMINI_API_KEYS is a comma-separated pool; a lone GEMINI_API_KEY
# also works for single-key setups.
_keys_env = os.environ.get("GEMINI_API_KEYS") or os.environ.get("GEMINI_API_KEY", "")
GEMINI_API_KEYS = [k.strip() for k in _keys_env.split(",") if k.strip()]

if not GEMINI_API_KEYS:
    print("⚠️ WARNING: No GEMINI_API_KEYS found in environment. Please set them in .env")
    GEMINI_API_KEYS = ["dummy_key"]


@dataclass
class KeyRotator:
    """Thread-safe round-robin API key rotator."""
    keys: list[str] = field(default_factory=lambda: list(GEMINI_API_KEYS))
    _cycle: itertools.cycle = field(init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def __post_init__(self):
        if not self.keys:
            raise ValueError("KeyRotator needs at least one API key")
        self._cycle = itertools.cycle(self.keys)

    def next_key(self) -> str:
        with self._lock:
            return next(self._cycle)

    def get_client(self) -> genai.Client:
        """Returns a new Gemini client with the next rotated API key."""
        return genai.Client(api_key=self.next_key())


# ── Model Configuration ───────────────────────────────────────
# Validation / scoring / feedback agents: text in, short JSON out
MODEL_VALIDATION = os.getenv("SIGNLINE_MODEL_VALIDATION", GEMINI_3_FLASH)

# Single-snapshot letter recognition: image in, one letter out
MODEL_RECOGNITION = os.getenv("SIGNLINE_MODEL_RECOGNITION", GEMINI_3_FLASH)

# Phonetic respelling for the "delayed" announcement
MODEL_PHONETIC = os.getenv("SIGNLINE_MODEL_PHONETIC", GEMINI_2_5_FLASH)

# Announcement audio
MODEL_TTS = os.getenv("SIGNLINE_MODEL_TTS", GEMINI_2_5_FLASH_TTS)
TTS_VOICE_NAME = os.getenv("SIGNLINE_TTS_VOICE", "Kore")

# Low temperature, bounded output: agents reply with short JSON
GENERATION_TEMPERATURE = 0.1
GENERATION_MAX_OUTPUT_TOKENS = 3000

# ── Rate Limits ───────────────────────────────────────────────
MAX_RATE_LIMIT_RETRIES = 4

# ── Validation Strategy ───────────────────────────────────────
# "consolidated": one validation+feedback call, deterministic scoring
# "multi_agent":  validation call, then scoring + feedback in parallel
VALIDATION_STRATEGY = os.getenv("SIGNLINE_VALIDATION_STRATEGY", "consolidated")

# ── Agent Debug Logs ──────────────────────────────────────────
# When set, every agent writes input/output/error logs here
AGENT_LOG_DIR = os.getenv("SIGNLINE_AGENT_LOG_DIR") or None

# ── Backend ───────────────────────────────────────────────────
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("SIGNLINE_CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# ── Scoring Thresholds ────────────────────────────────────────
CRASH_MATCH_THRESHOLD = 30   # below this the train "crashes"
SAFE_MATCH_THRESHOLD = 100   # exact match after normalization

"""
asthma_bot/config.py — runtime configuration read from the environment / .env
"""

import os

from dotenv import load_dotenv

load_dotenv()


# ─────────────────────────────────────────────
# Groq
# ─────────────────────────────────────────────

GROQ_API_KEY   = os.getenv("GROQ_API_KEY")
QUESTION_MODEL = os.getenv("QUESTION_MODEL", "llama-3.1-8b-instant")
ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", "openai/gpt-oss-120b")
VISION_MODEL   = os.getenv("VISION_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")

# Question wording must come back faster than the wait message.
QUESTION_TIMEOUT_SECONDS     = float(os.getenv("QUESTION_TIMEOUT_SECONDS", "4"))
WAIT_MESSAGE_TIMEOUT_SECONDS = float(os.getenv("WAIT_MESSAGE_TIMEOUT_SECONDS", "6"))
IMAGE_TIMEOUT_SECONDS        = float(os.getenv("IMAGE_TIMEOUT_SECONDS", "55"))
CALLBACK_TIMEOUT_SECONDS     = float(os.getenv("CALLBACK_TIMEOUT_SECONDS", "10"))


# ─────────────────────────────────────────────
# Sessions / tasks / archive
# ─────────────────────────────────────────────

SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(10 * 60)))  # 10 minutes idle

ARCHIVE_PATH = os.getenv("ARCHIVE_PATH", "data/archive.jsonl")

# "local" runs deferred analysis as an in-process background task,
# "http" posts it to TASK_TARGET_URL (a queue front or this service itself).
TASK_MODE       = os.getenv("TASK_MODE", "local").strip().lower()
TASK_TARGET_URL = os.getenv("TASK_TARGET_URL", "http://localhost:8000/process-analysis-callback")


# ─────────────────────────────────────────────
# Chat platform
# ─────────────────────────────────────────────

BOOKING_URL         = os.getenv("BOOKING_URL", "https://pf.kakao.com/_wEhwxj")
IMAGE_URL_HIGH_RISK = os.getenv(
    "IMAGE_URL_HIGH_RISK",
    "https://github.com/brown-sung/drlike5-GCP-ver2/blob/main/asthma_high2.png?raw=true",
)
IMAGE_URL_LOW_RISK = os.getenv(
    "IMAGE_URL_LOW_RISK",
    "https://github.com/brown-sung/drlike5-GCP-ver2/blob/main/asthma_low2.png?raw=true",
)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").strip()

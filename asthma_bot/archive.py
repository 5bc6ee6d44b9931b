"""
asthma_bot/archive.py — one JSON line per closed session
"""

import json
import logging
import os
import time
from typing import Dict, List, Optional

from asthma_bot.models import Verdict

logger = logging.getLogger(__name__)


class JsonlArchive:

    def __init__(self, path: str):
        self.path = path

    def write(
        self,
        session_key: str,
        transcript: List[str],
        slots: Dict[str, Optional[str]],
        verdict: Verdict,
    ):
        row = {
            "session_key": session_key,
            "transcript":  transcript,
            "slots":       slots,
            "verdict":     verdict.model_dump(mode="json"),
            "archived_at": time.time(),
        }
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
        logger.info(f"Archived session {session_key}: {verdict.possibility.value}")

"""
asthma_bot/responses.py — KakaoTalk skill response envelopes (version 2.0)

  simple_text()     plain text, optional quick replies
  callback_wait()   interim acknowledgement; the real answer follows on the callback URL
  basic_card()      title / description / thumbnail / buttons
"""

import json
import re
from typing import Dict, List, Optional

from asthma_bot import config
from asthma_bot.models import Possibility

BOOKING_LABEL = "병원 진료 예약하기"
RESTART_LABEL = "다시 검사하기"

MAX_QUICK_REPLIES = 10

# Envelope keys a generative model tends to wrap its answer in, in lookup order.
_TEXT_KEYS = ("text", "message", "question", "content", "response", "answer", "wait_text")
_EMBEDDED_JSON = re.compile(
    r"\{[^{}]*\"(?:response|text|message|question|content|answer|wait_text)\"[^{}]*\}"
)


# ─────────────────────────────────────────────
# Text cleanup
# ─────────────────────────────────────────────

def strip_json_fences(text: str) -> str:
    text = re.sub(r"^```(?:json)?\s*", "", text.strip())
    text = re.sub(r"\s*```$", "", text.strip())
    return text.strip()


def _text_from_json(raw: str) -> Optional[str]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    if isinstance(parsed, str):
        return parsed
    if isinstance(parsed, dict):
        for key in _TEXT_KEYS:
            value = parsed.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


def unwrap_text(raw) -> str:
    """
    Best-effort plain text out of a model reply.

    Handles code fences, a whole-reply JSON object, a JSON object embedded in
    prose, and stray surrounding quotes. Anything unparseable is returned as
    cleaned literal text.
    """
    if raw is None:
        return ""
    text = strip_json_fences(str(raw))

    if text.startswith("{") or text.startswith("["):
        inner = _text_from_json(text)
        if inner is not None:
            text = inner
    else:
        match = _EMBEDDED_JSON.search(text)
        if match:
            inner = _text_from_json(match.group(0))
            if inner is not None:
                text = inner

    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1]
    text = text.replace('\\"', '"')
    text = re.sub(r"\n\s*\n", "\n", text)
    return text.strip()


# ─────────────────────────────────────────────
# Buttons
# ─────────────────────────────────────────────

def _button(label: str) -> Dict:
    if label == BOOKING_LABEL:
        return {"label": label, "action": "webLink", "webLinkUrl": config.BOOKING_URL}
    return {"label": label, "action": "message", "messageText": label}


def _thumbnail_for(possibility) -> str:
    if possibility in (Possibility.PRESENT, Possibility.PRESENT.value):
        return config.IMAGE_URL_HIGH_RISK
    return config.IMAGE_URL_LOW_RISK


# ══════════════════════════════════════════════════════════════════════════════
#  ENVELOPES
# ══════════════════════════════════════════════════════════════════════════════

def simple_text(text: str, quick_replies: Optional[List[str]] = None) -> Dict:
    response = {
        "version": "2.0",
        "template": {"outputs": [{"simpleText": {"text": unwrap_text(text)}}]},
    }
    replies = list(quick_replies or [])[:MAX_QUICK_REPLIES]
    if replies:
        response["template"]["quickReplies"] = [_button(q) for q in replies]
    return response


def callback_wait(text: str) -> Dict:
    return {"version": "2.0", "useCallback": True, "data": {"text": text}}


def basic_card(
    description: str,
    title: Optional[str] = None,
    buttons: Optional[List[str]] = None,
    possibility=None,
    quick_replies: Optional[List[str]] = None,
) -> Dict:
    card: Dict = {}
    if title:
        card["title"] = title
    card["description"] = description
    if possibility is not None:
        card["thumbnail"] = {"imageUrl": _thumbnail_for(possibility)}
    if buttons:
        card["buttons"] = [_button(b) for b in buttons]

    response = {"version": "2.0", "template": {"outputs": [{"basicCard": card}]}}
    if quick_replies:
        response["template"]["quickReplies"] = [_button(q) for q in quick_replies]
    return response


def text_of(envelope: Dict) -> str:
    """The user-visible text of an envelope (CLI and logs)."""
    if envelope.get("useCallback"):
        return envelope.get("data", {}).get("text", "")
    parts = []
    for output in envelope.get("template", {}).get("outputs", []):
        if "simpleText" in output:
            parts.append(output["simpleText"].get("text", ""))
        elif "basicCard" in output:
            card = output["basicCard"]
            parts.append("\n\n".join(p for p in (card.get("title"), card.get("description")) if p))
    return "\n".join(parts)

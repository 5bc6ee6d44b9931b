"""
asthma_bot/services.py — Groq-backed generative collaborators

  GroqQuestionService        phrases the next question from a StagePlan
  GroqWaitMessageService     one-line "please wait" acknowledgement
  GroqAllergyReportAnalyzer  allergy report image → text → AllergyReport

Each wraps a ChatGroq client; tests hand in a fake `llm` instead.
"""

import base64
import json
import logging
from typing import List, Optional, Tuple

import httpx
from groq import APITimeoutError
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_groq import ChatGroq

from asthma_bot import config
from asthma_bot.models import AllergyReport
from asthma_bot.prompts import (
    ALLERGY_PARSE_SYSTEM_PROMPT, IMAGE_TEXT_EXTRACTION_PROMPT,
    QUESTION_SYSTEM_PROMPT, WAIT_MESSAGE_SYSTEM_PROMPT, render_question_context,
)
from asthma_bot.responses import strip_json_fences, unwrap_text

logger = logging.getLogger(__name__)


DEFAULT_WAIT_MESSAGE = "네, 말씀해주신 내용을 분석하고 있어요. 잠시만 기다려주세요! 🤖"
ALLERGY_WAIT_MESSAGE = "📊 네, 보내주신 알레르기 검사결과 내용을 살펴보고 있어요. 잠시만 기다려주세요."

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}
MAX_IMAGE_BYTES = 15 * 1024 * 1024


class ServiceTimeout(Exception):
    """A generative or download call ran past its deadline."""


class UnsupportedMediaType(Exception):
    """The uploaded file is not an image type the vision model accepts."""


def _chat_model(model: str, temperature: float, timeout: float) -> ChatGroq:
    return ChatGroq(
        model=model,
        temperature=temperature,
        api_key=config.GROQ_API_KEY,
        timeout=timeout,
        max_retries=0,
    )


# ══════════════════════════════════════════════════════════════════════════════
#  QUESTION
# ══════════════════════════════════════════════════════════════════════════════

class GroqQuestionService:

    def __init__(self, llm=None, timeout: float = config.QUESTION_TIMEOUT_SECONDS):
        self.llm = llm or _chat_model(config.QUESTION_MODEL, 0.7, timeout)

    def generate(self, recent_history: List[str], plan) -> str:
        messages = [
            SystemMessage(content=QUESTION_SYSTEM_PROMPT),
            HumanMessage(content=render_question_context(recent_history, plan)),
        ]
        try:
            raw = self.llm.invoke(messages).content
        except APITimeoutError as e:
            raise ServiceTimeout(f"question generation timed out: {e}") from e

        question = unwrap_text(raw)
        if not question:
            raise ValueError("question model returned no text")
        logger.info(f"Generated question: {question}")
        return question


# ══════════════════════════════════════════════════════════════════════════════
#  WAIT MESSAGE
# ══════════════════════════════════════════════════════════════════════════════

class GroqWaitMessageService:

    def __init__(self, llm=None, timeout: float = config.WAIT_MESSAGE_TIMEOUT_SECONDS):
        self.llm = llm or _chat_model(config.QUESTION_MODEL, 0.7, timeout)

    def generate(self, history: List[str]) -> str:
        context = "---대화 기록---\n" + "\n".join(history)
        try:
            raw = self.llm.invoke([
                SystemMessage(content=WAIT_MESSAGE_SYSTEM_PROMPT),
                HumanMessage(content=context),
            ]).content
            text = unwrap_text(raw)
        except Exception as e:
            logger.warning(f"Wait message generation failed, using default: {e}")
            return DEFAULT_WAIT_MESSAGE
        return text or DEFAULT_WAIT_MESSAGE


# ══════════════════════════════════════════════════════════════════════════════
#  ALLERGY REPORT
# ══════════════════════════════════════════════════════════════════════════════

def normalize_mime_type(raw: Optional[str], url: str = "") -> str:
    mime = (raw or "").split(";")[0].strip().lower()
    if mime in ("image/jpg", "image/pjpeg", "image/pjpg"):
        return "image/jpeg"
    if mime == "image/x-png":
        return "image/png"
    if mime in ("", "application/octet-stream"):
        lower = (url or "").lower().split("?")[0]
        if lower.endswith(".png"):
            return "image/png"
        if lower.endswith(".webp"):
            return "image/webp"
        return "image/jpeg"
    return mime


class GroqAllergyReportAnalyzer:
    """Two steps: transcribe the report image, then parse the transcript."""

    def __init__(
        self,
        vision_llm=None,
        parse_llm=None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = config.IMAGE_TIMEOUT_SECONDS,
    ):
        self.timeout     = timeout
        self.vision_llm  = vision_llm or _chat_model(config.VISION_MODEL, 0.1, timeout)
        self.parse_llm   = parse_llm or _chat_model(config.ANALYSIS_MODEL, 0.0, timeout)
        self.http_client = http_client

    def _download(self, url: str) -> Tuple[bytes, str]:
        headers = {"Accept": "image/*,*/*;q=0.8", "User-Agent": "asthma-bot/1.0 (+server)"}
        client = self.http_client or httpx.Client(timeout=self.timeout, follow_redirects=True)
        try:
            resp = client.get(url, headers=headers)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ServiceTimeout(f"image download timed out: {e}") from e
        finally:
            if self.http_client is None:
                client.close()

        mime = normalize_mime_type(resp.headers.get("content-type"), url)
        declared = int(resp.headers.get("content-length") or 0)
        if max(declared, len(resp.content)) > MAX_IMAGE_BYTES:
            raise ValueError(f"Image too large: {max(declared, len(resp.content))} bytes (>15MB)")

        logger.info(f"Image fetched: content-type={mime}, bytes={len(resp.content)}")
        return resp.content, mime

    def extract_text(self, image_url: str) -> str:
        data, mime = self._download(image_url)
        if mime not in ALLOWED_IMAGE_TYPES:
            raise UnsupportedMediaType(
                f"Unsupported MIME type: {mime}. Please upload JPEG, PNG, or WEBP images."
            )

        data_uri = f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
        message = HumanMessage(content=[
            {"type": "text", "text": IMAGE_TEXT_EXTRACTION_PROMPT},
            {"type": "image_url", "image_url": {"url": data_uri}},
        ])
        try:
            raw = self.vision_llm.invoke([message]).content
        except APITimeoutError as e:
            raise ServiceTimeout(f"text extraction timed out: {e}") from e

        cleaned = strip_json_fences(raw or "")
        try:
            text = json.loads(cleaned).get("extracted_text") or ""
        except (ValueError, AttributeError):
            logger.warning("Text extraction returned non-JSON, using raw text")
            text = cleaned
        if not text.strip():
            raise ValueError("No text extracted from image")

        logger.info(f"Text extraction completed, {len(text)} chars")
        return text

    def parse_structured(self, text: str) -> AllergyReport:
        try:
            raw = self.parse_llm.invoke([
                SystemMessage(content=ALLERGY_PARSE_SYSTEM_PROMPT),
                HumanMessage(content=text),
            ]).content
        except APITimeoutError as e:
            raise ServiceTimeout(f"allergy report parsing timed out: {e}") from e

        try:
            parsed = json.loads(strip_json_fences(raw or ""))
        except ValueError as e:
            logger.warning(f"Allergy report parse returned non-JSON: {(raw or '')[:200]}")
            raise ValueError("Failed to parse allergy test results") from e

        if not isinstance(parsed, dict):
            raise ValueError("Failed to parse allergy test results")
        report = AllergyReport(**parsed)
        logger.info(
            f"Allergy report parsed: type={report.test_type}, total_ige={report.total_ige}, "
            f"airborne={len(report.airborne_allergens)}, food={len(report.food_allergens)}, "
            f"risk={report.risk_level}"
        )
        return report

    def analyze(self, image_url: str) -> AllergyReport:
        return self.parse_structured(self.extract_text(image_url))

"""
asthma_bot/dialogue.py — the consultation state machine

    INIT ──first utterance──▶ COLLECTING ──offer accepted──▶ CONFIRM_ANALYSIS
                                 ▲    │                          │
                                 │    └── "분석해" / "결과" ────▶│
                                 │                               │ yes → task queued,
                                 └────── no / more symptoms ─────┤       callback-wait reply
                                                                 ▼
                                                          POST_ANALYSIS (set by the task)

Before dispatching on state, every turn checks for an end-of-conversation
phrase (judge, archive, delete) and for a reset phrase (delete, then INIT
with the same utterance).
"""

import logging
from typing import Callable, Dict, List, Optional

from asthma_bot.allergy import UPLOAD_TURN_TEXT, merge_report, summary_text
from asthma_bot.extractor import AGENT_PREFIX, USER_PREFIX, extract
from asthma_bot.fields import LAST_QUESTION, empty_slots
from asthma_bot.models import AnalysisTask, DialogueState, SessionRecord
from asthma_bot.report import WHY_LOW, WHY_PRESENT, format_detailed_result
from asthma_bot.responses import BOOKING_LABEL, RESTART_LABEL, callback_wait, simple_text
from asthma_bot.rules import judge
from asthma_bot.services import ServiceTimeout
from asthma_bot.stages import plan_next_question
from asthma_bot.tasks import deliver_callback
from asthma_bot.vocabulary import expand_shorthand, is_affirmative, matches

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
#  FIXED TEXTS
# ══════════════════════════════════════════════════════════════════════════════

FALLBACK_QUESTION     = "혹시 아이에게 다른 증상이 있으신가요?"
ANALYSIS_OFFER        = "알겠습니다. 그럼 지금까지 말씀해주신 내용을 바탕으로 분석을 진행해볼까요?"
DECLINED_TEXT         = "알겠습니다. 더 말씀하고 싶은 증상이 있으신가요?"
MISSING_CALLBACK_TEXT = "오류: 콜백 URL이 없습니다. 다시 시도해주세요."
SESSION_CLOSED_TEXT   = "상담이 종료되었습니다. 이용해주셔서 감사합니다!"

ALLERGY_TIMEOUT_TEXT = "분석 시간이 초과되었습니다. 다시 시도해주세요."
ALLERGY_ERROR_TEXT   = "알레르기 검사결과지 분석 중 오류가 발생했어요. 다시 시도해주세요."

HELP_PHRASES = ("천식 도움되는 정보", "천식에 도움되는 정보")

HELP_TEXT = """🏥 천식 관리 도움 정보

일상 관리:
• 실내 공기질 개선 (공기청정기, 정기적 환기)
• 알레르기 유발 물질 제거 (먼지, 꽃가루, 애완동물 털)
• 적절한 습도 유지 (40-60%)

응급 상황 대처:
• 기관지확장제 사용법 숙지
• 증상 악화 시 즉시 병원 방문
• 응급상황 연락처 준비

예방 방법:
• 규칙적인 운동 (실내 운동 권장)
• 금연 및 간접흡연 피하기
• 감기 예방 (손씻기, 마스크 착용)

정기 관리:
• 소아청소년과 정기 검진
• 알레르기 검사 및 관리
• 약물 복용법 준수

⚠️ 개인별 상황에 따라 다를 수 있으니 전문의와 상담하세요."""

BOOKING_TEXT = """🏥 병원 진료 예약 안내

소아청소년과 전문의 상담 권장:
• 정확한 진단을 위한 전문의 상담
• 개인별 맞춤 치료 계획 수립
• 정기적인 경과 관찰

진료 준비사항:
• 증상 기록 (언제, 어떤 상황에서 발생)
• 가족력 정보 정리
• 기존 복용 약물 목록
• 알레르기 검사 결과 (있는 경우)

응급상황 시:
• 호흡곤란이 심한 경우 즉시 응급실 방문
• 기관지확장제 사용 후에도 증상 지속 시 병원 방문

예약 방법:
• 가까운 소아청소년과 또는 호흡기내과
• 온라인 예약 또는 전화 예약
• 응급상황 시 119 신고

⚠️ 증상이 심하거나 지속될 경우 즉시 의료진과 상담하세요."""


# ══════════════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════════════

class DialogueEngine:
    """
    One instance serves every user; all per-user state lives in `store`.

    handle() returns a KakaoTalk response envelope (dict).
    """

    def __init__(
        self,
        store,
        question_service,
        wait_service,
        task_queue=None,
        archive=None,
        analyzer=None,
    ):
        self.store            = store
        self.question_service = question_service
        self.wait_service     = wait_service
        self.task_queue       = task_queue
        self.archive          = archive
        self.analyzer         = analyzer

    # ── Public API ────────────────────────────────────────────────────────────

    def handle(
        self,
        user_key: str,
        utterance: str,
        callback_url: Optional[str] = None,
        task_queue=None,
    ) -> Dict:
        logger.info(f"[{user_key}] utterance: '{utterance}'")

        if matches("end_session", utterance):
            return self._close_session(user_key)

        if matches("reset", utterance):
            logger.info(f"[{user_key}] reset requested: '{utterance}'")
            self.store.reset(user_key)
            return self._handle_init(user_key, utterance)

        record = self.store.get(user_key)
        if record is None or record.state == DialogueState.INIT:
            return self._handle_init(user_key, utterance)

        logger.info(f"[{user_key}] state: {record.state.value}")
        queue = task_queue or self.task_queue

        if record.state == DialogueState.COLLECTING:
            return self._handle_collecting(user_key, record, utterance, callback_url, queue)
        if record.state == DialogueState.CONFIRM_ANALYSIS:
            return self._handle_confirm(user_key, record, utterance, callback_url, queue)
        return self._handle_post_analysis(user_key, record, utterance, callback_url, queue)

    def handle_allergy_report(
        self,
        user_key: str,
        image_url: str,
        callback_url: str,
        deliver: Callable[[str, Dict], bool] = deliver_callback,
    ) -> Dict:
        """
        Background half of an allergy report upload: analyze, fold into the
        session, ask the next question over the callback. The stored session
        is only written once the analysis has succeeded.
        """
        try:
            report = self.analyzer.analyze(image_url)

            record  = self.store.get(user_key)
            history = list(record.history) if record else []
            slots   = merge_report(record.extracted_data if record else None, report)
            state   = (
                record.state
                if record is not None and record.state != DialogueState.INIT
                else DialogueState.COLLECTING
            )

            summary = summary_text(report)
            history.append(USER_PREFIX + UPLOAD_TURN_TEXT)
            history.append(AGENT_PREFIX + summary)

            question = self._question_or_fallback(user_key, history, slots)
            slots[LAST_QUESTION] = question
            history.append(AGENT_PREFIX + question)

            self.store.set(user_key, state=state, history=history, extracted_data=slots)
            envelope = simple_text(f"{summary}\n\n{question}")
            logger.info(f"[{user_key}] allergy report merged")
        except ServiceTimeout as e:
            logger.error(f"[{user_key}] allergy report analysis timed out: {e}")
            envelope = simple_text(ALLERGY_TIMEOUT_TEXT)
        except Exception as e:
            logger.error(f"[{user_key}] allergy report analysis failed: {e}", exc_info=True)
            envelope = simple_text(ALLERGY_ERROR_TEXT)

        deliver(callback_url, envelope)
        return envelope

    # ── Question composition ──────────────────────────────────────────────────

    def _next_question(self, history: List[str], slots: Dict) -> str:
        plan = plan_next_question(history, slots)
        if not plan.needs_question_service:
            return plan.fixed_text
        return self.question_service.generate(plan.recent_history, plan)

    def _question_or_fallback(self, user_key: str, history: List[str], slots: Dict) -> str:
        try:
            return self._next_question(history, slots)
        except Exception as e:
            logger.warning(f"[{user_key}] question generation failed, using fallback: {e}")
            return FALLBACK_QUESTION

    # ── INIT ──────────────────────────────────────────────────────────────────

    def _handle_init(self, user_key: str, utterance: str) -> Dict:
        slots   = empty_slots()
        history = [USER_PREFIX + expand_shorthand(utterance)]

        question = self._question_or_fallback(user_key, history, slots)
        slots[LAST_QUESTION] = question
        history.append(AGENT_PREFIX + question)

        self.store.set(
            user_key,
            state=DialogueState.COLLECTING,
            history=history,
            extracted_data=slots,
        )
        return simple_text(question)

    # ── COLLECTING ────────────────────────────────────────────────────────────

    def _handle_collecting(
        self, user_key: str, record: SessionRecord, utterance: str,
        callback_url: Optional[str], queue,
    ) -> Dict:
        text    = expand_shorthand(utterance)
        history = list(record.history)
        slots   = dict(record.extracted_data)

        if matches("analyze_request", text):
            history.append(USER_PREFIX + text)
            history.append(AGENT_PREFIX + ANALYSIS_OFFER)
            self.store.set(user_key, state=DialogueState.CONFIRM_ANALYSIS, history=history)
            return simple_text(ANALYSIS_OFFER)

        if is_affirmative(text) and history and matches("analysis_offer", history[-1]):
            return self._handle_confirm(user_key, record, utterance, callback_url, queue)

        history.append(USER_PREFIX + text)
        slots = extract(text, slots)

        try:
            question = self._next_question(history, slots)
        except Exception as e:
            logger.warning(f"[{user_key}] question generation failed, using fallback: {e}")
            slots[LAST_QUESTION] = FALLBACK_QUESTION
            history.append(AGENT_PREFIX + FALLBACK_QUESTION)
            self.store.set(
                user_key,
                state=DialogueState.COLLECTING,
                history=history,
                extracted_data=slots,
            )
            return simple_text(FALLBACK_QUESTION)

        slots[LAST_QUESTION] = question
        history.append(AGENT_PREFIX + question)

        if matches("analysis_offer", question):
            logger.info(f"[{user_key}] analysis offered, moving to CONFIRM_ANALYSIS")
            state = DialogueState.CONFIRM_ANALYSIS
        else:
            state = DialogueState.COLLECTING

        self.store.set(user_key, state=state, history=history, extracted_data=slots)
        return simple_text(question)

    # ── CONFIRM_ANALYSIS ──────────────────────────────────────────────────────

    def _handle_confirm(
        self, user_key: str, record: SessionRecord, utterance: str,
        callback_url: Optional[str], queue,
    ) -> Dict:
        if not callback_url:
            return simple_text(MISSING_CALLBACK_TEXT)

        text    = expand_shorthand(utterance)
        history = list(record.history)
        history.append(USER_PREFIX + text)

        if is_affirmative(text):
            logger.info(f"[{user_key}] analysis confirmed")
            wait_text = self.wait_service.generate(history)
            queue.enqueue(AnalysisTask(
                userKey=user_key,
                history=history,
                extracted_data=record.extracted_data,
                callbackUrl=callback_url,
            ))
            self.store.set(user_key, history=history)
            return callback_wait(wait_text)

        history.append(AGENT_PREFIX + DECLINED_TEXT)
        self.store.set(user_key, state=DialogueState.COLLECTING, history=history)
        return simple_text(DECLINED_TEXT)

    # ── POST_ANALYSIS ─────────────────────────────────────────────────────────

    def _handle_post_analysis(
        self, user_key: str, record: SessionRecord, utterance: str,
        callback_url: Optional[str], queue,
    ) -> Dict:
        text = utterance.strip()

        if text in (WHY_PRESENT, WHY_LOW):
            return format_detailed_result(record.extracted_data)
        if text in HELP_PHRASES:
            return simple_text(HELP_TEXT, [RESTART_LABEL])
        if text == BOOKING_LABEL:
            return simple_text(BOOKING_TEXT, [RESTART_LABEL])

        return self._handle_collecting(user_key, record, utterance, callback_url, queue)

    # ── Session close ─────────────────────────────────────────────────────────

    def _close_session(self, user_key: str) -> Dict:
        record  = self.store.get(user_key)
        history = record.history if record else []
        slots   = record.extracted_data if record else empty_slots()

        verdict = judge(slots)
        if self.archive is not None:
            self.archive.write(user_key, history, slots, verdict)
        self.store.delete(user_key)

        logger.info(f"[{user_key}] session closed: {verdict.possibility.value}")
        return simple_text(SESSION_CLOSED_TEXT)

"""
asthma_bot/stages.py — question stage policy

Three ordered information stages must be covered before analysis is offered:

  core       wheeze / breathlessness / chest tightness / night   (≥1 asked)
  frequency  duration / bronchodilator use                       (≥1 asked)
  risk       family history / atopy / airborne / food allergen   (≥2 asked)

"Asked" prefers the slot value and falls back to asked_in_transcript(), which
looks for the field's keywords inside agent turns. The policy only decides the
topic and constraints of the next question; wording comes from the question
service, except for the fixed transition sentence.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from asthma_bot.extractor import AGENT_PREFIX, USER_PREFIX
from asthma_bot.fields import (
    CORE_SYMPTOMS, FIELD_BY_KEY, FREQUENCY, NO, RISK_FACTORS, YES, filled,
)
from asthma_bot.vocabulary import contains_any, expand_shorthand, is_negative

logger = logging.getLogger(__name__)


RECENT_TURNS = 10

TRANSITION_TEXT = (
    "네, 알겠습니다. 지금까지 말씀해주신 내용을 종합하여 아이의 천식 가능성을 안내드릴까요? 🩺"
)

# The question service ends with this phrase when nothing is left to ask.
NO_MORE_QUESTIONS_MARKER = "말씀하고 싶은 다른 증상"

STALLED   = "stalled"
CORE      = "core"
FREQUENCY_STAGE = "frequency"
RISK      = "risk"
COMPLETE  = "complete"

STAGE_GROUPS: Dict[str, tuple] = {
    CORE:            CORE_SYMPTOMS,
    FREQUENCY_STAGE: FREQUENCY,
    RISK:            RISK_FACTORS,
}

STAGE_MINIMUM: Dict[str, int] = {
    CORE:            1,
    FREQUENCY_STAGE: 1,
    RISK:            2,
}


class StagePlan(BaseModel):
    stage:          str
    fixed_text:     Optional[str]             = None
    asked:          Dict[str, List[str]]      = Field(default_factory=dict)
    unasked:        Dict[str, List[str]]      = Field(default_factory=dict)
    collected:      Dict[str, str]            = Field(default_factory=dict)
    instructions:   List[str]                 = Field(default_factory=list)
    recent_history: List[str]                 = Field(default_factory=list)

    @property
    def needs_question_service(self) -> bool:
        return self.fixed_text is None


# ─────────────────────────────────────────────
# Transcript helpers
# ─────────────────────────────────────────────

def _agent_turns(history: List[str]) -> List[str]:
    return [h[len(AGENT_PREFIX):] for h in history if h.startswith(AGENT_PREFIX)]


def _user_turns(history: List[str]) -> List[str]:
    return [h[len(USER_PREFIX):] for h in history if h.startswith(USER_PREFIX)]


def asked_in_transcript(field: str, history: List[str]) -> bool:
    """True if any agent turn in `history` contains one of the field's keywords."""
    spec = FIELD_BY_KEY.get(field)
    if spec is None:
        return False
    keywords = spec.topic + spec.asked
    return any(contains_any(turn, keywords) for turn in _agent_turns(history))


def is_asked(field: str, slots: Dict[str, Optional[str]], history: List[str]) -> bool:
    value = slots.get(field)
    if field in FREQUENCY:
        if value not in (None, ""):
            return True
    elif value in (YES, NO):
        return True
    return asked_in_transcript(field, history)


def asked_fields(group: tuple, slots: Dict[str, Optional[str]], history: List[str]) -> List[str]:
    return [f for f in group if is_asked(f, slots, history)]


def is_stalled(history: List[str]) -> bool:
    """The last two agent turns within the recent window are identical."""
    questions = _agent_turns(history[-RECENT_TURNS:])
    return len(questions) >= 2 and questions[-1].strip() == questions[-2].strip()


def recent_negative(history: List[str]) -> bool:
    """One of the last two user turns within the recent window was a no."""
    answers = [expand_shorthand(a) for a in _user_turns(history[-RECENT_TURNS:])[-2:]]
    return any(is_negative(a) for a in answers)


def recent_context(history: List[str]) -> List[str]:
    """The last RECENT_TURNS turns with user shorthand expanded."""
    out = []
    for entry in history[-RECENT_TURNS:]:
        if entry.startswith(USER_PREFIX):
            entry = USER_PREFIX + expand_shorthand(entry[len(USER_PREFIX):])
        out.append(entry)
    return out


# ══════════════════════════════════════════════════════════════════════════════
#  POLICY
# ══════════════════════════════════════════════════════════════════════════════

_BASE_INSTRUCTIONS = [
    "사용자가 \"아니요\", \"없어요\", \"ㄴㄴ\" 등으로 답변한 질문은 절대 다시 묻지 마세요.",
    "이미 질문한 내용은 반복하지 마세요.",
    "한 번에 한 가지만 질문하세요.",
]

_STAGE_INSTRUCTIONS = {
    CORE: "아직 질문하지 않은 천식 핵심 증상 중 하나를 질문하세요. "
          "부정적인 답변이 있었더라도 다른 핵심 증상은 계속 확인해야 합니다.",
    FREQUENCY_STAGE: "증상이 얼마나 오래 지속되었는지(3개월 이상인지) 또는 "
                     "기관지확장제를 얼마나 오래 사용했는지 질문하세요.",
    RISK: "아직 질문하지 않은 위험인자(가족력, 아토피 병력, 공중 항원, 식품 항원) 중 하나를 질문하세요.",
    COMPLETE: "필요한 정보가 모두 확인되었습니다. 질문 대신 "
              "\"혹시 더 말씀하고 싶은 다른 증상이 있으신가요?\"라고 물어보세요.",
}


def plan_next_question(history: List[str], slots: Dict[str, Optional[str]]) -> StagePlan:
    """
    Decide what the next question should be about.

    Returns a plan carrying either a fixed sentence (stalled conversation, or
    every stage covered and the user has started saying no) or the context
    the question service needs to phrase a question.
    """
    asked   = {stage: asked_fields(group, slots, history) for stage, group in STAGE_GROUPS.items()}
    unasked = {
        stage: [f for f in group if f not in asked[stage]]
        for stage, group in STAGE_GROUPS.items()
    }
    counts = {stage: len(fields) for stage, fields in asked.items()}

    logger.info(
        f"Stage counts: core {counts[CORE]}/4, "
        f"frequency {counts[FREQUENCY_STAGE]}/2, risk {counts[RISK]}/4"
    )

    def _plan(stage: str, fixed_text: Optional[str] = None) -> StagePlan:
        instructions = [] if fixed_text else [_STAGE_INSTRUCTIONS[stage]] + _BASE_INSTRUCTIONS
        return StagePlan(
            stage=stage,
            fixed_text=fixed_text,
            asked=asked,
            unasked=unasked,
            collected=filled(slots),
            instructions=instructions,
            recent_history=recent_context(history),
        )

    # (a) the same question twice in a row
    if is_stalled(history):
        logger.info("Stage policy: repeated question, proposing analysis.")
        return _plan(STALLED, TRANSITION_TEXT)

    # (b) no core symptom yet, regardless of recent no-answers
    if counts[CORE] < STAGE_MINIMUM[CORE]:
        return _plan(CORE)

    # (c)
    if counts[FREQUENCY_STAGE] < STAGE_MINIMUM[FREQUENCY_STAGE]:
        return _plan(FREQUENCY_STAGE)

    # (d)
    if counts[RISK] < STAGE_MINIMUM[RISK]:
        return _plan(RISK)

    # (e) every stage covered
    if recent_negative(history) and len(_agent_turns(history[-RECENT_TURNS:])) >= 2:
        logger.info("Stage policy: all stages covered and user answered no, proposing analysis.")
        return _plan(COMPLETE, TRANSITION_TEXT)

    if unasked[CORE]:
        return _plan(CORE)
    return _plan(COMPLETE)

"""
asthma_bot/report.py — turning a verdict and a slot set into user-facing cards
"""

import logging
from typing import Dict, List, Optional

from asthma_bot.fields import YES, NO, filled, label
from asthma_bot.models import Possibility, Verdict
from asthma_bot.responses import BOOKING_LABEL, RESTART_LABEL, basic_card

logger = logging.getLogger(__name__)


DISCLAIMER = (
    "⚠️ 제공하는 결과는 참고용이며, 의학적 진단을 대신할 수 없습니다. "
    "서비스 내용만으로 취한 조치에 대해서는 책임을 지지 않습니다."
)
DETAIL_DISCLAIMER = "⚠️ 제공하는 결과는 참고용이며, 의학적인 진단을 대신할 수 없습니다."

WHY_PRESENT = "왜 천식 가능성이 있나요?"
WHY_LOW     = "왜 천식 가능성이 낮은가요?"
HELP_LABEL  = "천식 도움되는 정보"

DETAIL_TITLE = "상세 분석 결과"

_SYMPTOM_FIELDS = (
    "cough", "wheeze", "breathlessness", "chest_tightness", "night", "sputum",
    "fever", "runny_nose", "nasal_congestion", "itchy_nose", "conjunctivitis",
    "headache", "sore_throat", "sneezing", "postnasal_drip", "duration",
    "bronchodilator_use", "symptom_relief", "exercise_trigger", "season",
    "temperature_trigger",
)
_HISTORY_FIELDS = (
    "family_history", "asthma_history", "allergic_rhinitis_history",
    "bronchiolitis_history", "atopy_history", "prior_diagnosis", "past_history",
)

_HISTORY_YES = {
    "family_history":            "•가족 중 천식 진단 받은 분 있음",
    "asthma_history":            "•아이가 천식 진단 받음",
    "atopy_history":             "•아이가 아토피 진단 받음",
    "bronchiolitis_history":     "•모세기관지염 진단 받은 적 있음",
    "allergic_rhinitis_history": "•알레르기 비염 진단 받은 적 있음",
}
_HISTORY_NO = {
    "atopy_history":  "•아이는 아토피 진단 없음",
    "asthma_history": "•아이는 천식 진단 없음",
}


# ══════════════════════════════════════════════════════════════════════════════
#  RESULT CARD
# ══════════════════════════════════════════════════════════════════════════════

def format_result(verdict: Verdict) -> Dict:
    """Title, description and follow-up choices for the final result card."""
    if verdict.possibility == Possibility.PRESENT:
        title = "상담 결과, 현재 증상이 천식으로 인한 가능성이 높아 보입니다."
        description = (
            "정확한 진단과 적절한 치료를 위해 소아청소년과 전문의 상담을 권장드립니다.\n\n"
            + DISCLAIMER
        )
        quick_replies = [WHY_PRESENT, HELP_LABEL, BOOKING_LABEL]
    else:
        title = "상담 결과, 현재 증상이 천식으로 인한 가능성은 높지 않은 것으로 보입니다."
        description = (
            "다만, 정확한 진단과 안심을 위해 소아청소년과 전문의 상담을 추천드립니다. "
            "아이의 건강을 위한 예방 관리가 중요하지만, 지나치게 걱정하지 않으셔도 됩니다.\n\n"
            + DISCLAIMER
        )
        quick_replies = [WHY_LOW, HELP_LABEL, BOOKING_LABEL]

    return {"title": title, "description": description, "quick_replies": quick_replies}


def result_card(verdict: Verdict) -> Dict:
    result = format_result(verdict)
    return basic_card(
        result["description"],
        title=result["title"],
        buttons=result["quick_replies"],
        possibility=verdict.possibility,
    )


# ══════════════════════════════════════════════════════════════════════════════
#  DETAILED RESULT
# ══════════════════════════════════════════════════════════════════════════════

def _symptom_lines(slots: Dict[str, str]) -> List[str]:
    lines = []
    for key in _SYMPTOM_FIELDS:
        value = slots.get(key)
        if value is None:
            continue
        if value == YES:
            if key == "cough":
                lines.append(f"•기침이 {slots.get('duration') or '지속'}")
            elif key == "wheeze":
                night = "밤에 " if slots.get("night") == YES else ""
                lines.append(f"•{night}쌕쌕거림과 함께 기침이 심해짐")
            elif key == "night":
                continue
            elif key == "fever":
                lines.append("•열이 있음")
            elif key == "runny_nose":
                lines.append("•콧물이 있음")
            elif key == "season":
                lines.append("•계절이 바뀔 때(특정 계절) 증상 심해짐")
            else:
                lines.append(f"•{label(key)} 증상 있음")
        elif value == NO:
            if key == "fever":
                lines.append("•열이나 콧물은 없음, 주로 마른 기침")
        elif key == "duration":
            lines.append(f"•기침이 {value}")
        elif key == "bronchodilator_use":
            lines.append(f"•기관지확장제 사용 {value}")
        elif key == "season":
            lines.append(f"•계절이 바뀔 때({value}) 증상 심해짐")
    return lines


def _history_lines(slots: Dict[str, str]) -> List[str]:
    lines = []
    for key in _HISTORY_FIELDS:
        value = slots.get(key)
        if value is None:
            continue
        if value == YES:
            if key in _HISTORY_YES:
                lines.append(_HISTORY_YES[key])
        elif value == NO:
            if key in _HISTORY_NO:
                lines.append(_HISTORY_NO[key])
        elif key == "prior_diagnosis":
            lines.append(f"•{value} 진단 받음")
        elif key == "past_history":
            lines.append(f"•{value} 경험 있음")
    return lines


def _allergy_lines(slots: Dict[str, str]) -> List[str]:
    lines = []
    if slots.get("airborne_allergen") == YES or slots.get("airborne_allergen_detail"):
        detail = slots.get("airborne_allergen_detail") or "집먼지, 곰팡이, 꽃가루"
        lines.append(f"•공기 ({detail}) 양성")
    if slots.get("food_allergen") == YES or slots.get("food_allergen_detail"):
        detail = slots.get("food_allergen_detail") or "우유, 계란, 땅콩"
        lines.append(f"•음식 ({detail}) 양성")
    if slots.get("total_ige"):
        lines.append(f"•총 IgE: {slots['total_ige']}")
    return lines


def format_detailed_result(extracted_data: Optional[Dict]) -> Dict:
    """The "상세 분석 결과" card: what was collected, grouped by section."""
    if not isinstance(extracted_data, dict):
        return basic_card(
            "상세 정보를 불러올 수 없습니다.",
            title=DETAIL_TITLE,
            quick_replies=[RESTART_LABEL],
        )

    slots = filled(extracted_data)
    logger.info(f"Detailed result from {len(slots)} filled fields: {sorted(slots)}")

    sections = [
        ("🩺 증상 관련", _symptom_lines(slots)),
        ("👨‍👩‍👧 가족/과거력", _history_lines(slots)),
        ("🦠 알레르기 검사결과", _allergy_lines(slots)),
    ]

    description = ""
    for heading, lines in sections:
        if lines:
            description += heading + "\n" + "\n".join(lines) + "\n\n"

    if not description:
        description += "📝 수집된 증상 정보가 없습니다.\n\n"
        description += "더 정확한 분석을 위해 증상에 대해 자세히 말씀해 주세요.\n\n"

    description += DETAIL_DISCLAIMER

    return basic_card(description, title=DETAIL_TITLE, quick_replies=[RESTART_LABEL])

"""
asthma_bot/rules.py — asthma predictive index (API) evaluation

    cold-like signs (relief / fever / sore throat)  →  낮음, before anything else
    no core symptom, or no 3-month frequency        →  낮음
    ≥1 major criterion or ≥2 minor criteria         →  있음
    otherwise                                       →  낮음
"""

import logging
from collections.abc import Mapping

from asthma_bot.fields import (
    COLD_LIKE, CORE_SYMPTOMS, FREQUENCY, LAST_QUESTION, MAJOR_CRITERIA,
    MINOR_CRITERIA, THREE_MONTH_MARKER, YES,
)
from asthma_bot.models import Possibility, Verdict

logger = logging.getLogger(__name__)


REASON_INSUFFICIENT = "분석할 증상 정보가 충분하지 않습니다."
REASON_COLD_LIKE    = "증상이 완화되고 있거나, 감기를 시사하는 증상(발열, 인후통)이 동반됩니다."
REASON_NOT_TYPICAL  = "천식을 의심할 만한 특징적인 증상이나 발생 빈도가 확인되지 않았습니다."
REASON_API_MET      = "천식 예측지수(API) 평가 결과, 주요 인자 또는 부가 인자 조건을 충족합니다."
REASON_API_UNMET    = "천식 의심 증상은 있으나, 천식 예측지수(API)의 위험인자 조건을 충족하지 않습니다."


def _count_yes(slots: Mapping, keys) -> int:
    return sum(1 for k in keys if slots.get(k) == YES)


def _is_frequent(slots: Mapping) -> bool:
    for key in FREQUENCY:
        value = slots.get(key)
        if isinstance(value, str) and THREE_MONTH_MARKER in value:
            return True
    return False


def judge(slots) -> Verdict:
    """Pure and total: any input, including None, yields a verdict."""
    if not isinstance(slots, Mapping) or not any(
        v is not None and k != LAST_QUESTION for k, v in slots.items()
    ):
        return Verdict(possibility=Possibility.INSUFFICIENT, reason=REASON_INSUFFICIENT)

    if _count_yes(slots, COLD_LIKE):
        return Verdict(possibility=Possibility.LOW, reason=REASON_COLD_LIKE)

    if not _count_yes(slots, CORE_SYMPTOMS) or not _is_frequent(slots):
        return Verdict(possibility=Possibility.LOW, reason=REASON_NOT_TYPICAL)

    majors = _count_yes(slots, MAJOR_CRITERIA)
    minors = _count_yes(slots, MINOR_CRITERIA)
    logger.debug(f"judge: majors={majors} minors={minors}")

    if majors >= 1 or minors >= 2:
        return Verdict(possibility=Possibility.PRESENT, reason=REASON_API_MET)
    return Verdict(possibility=Possibility.LOW, reason=REASON_API_UNMET)

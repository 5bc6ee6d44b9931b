"""
asthma_bot/vocabulary.py — fixed keyword vocabulary and the containment test

Every keyword classifier in the bot (meta-conversation yes/no, slot-level
yes/no, trigger phrases, analysis-offer markers) reads from VOCABULARY and
goes through contains_any(), so the call sites cannot drift apart.
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple


VOCABULARY: Dict[str, Tuple[str, ...]] = {
    # Meta-conversation: agreeing to an analysis offer, declining, etc.
    "affirmative": (
        "네", "예", "응", "응응", "오케이", "그래", "괜찮아", "좋아", "알겠",
        "해줘", "해 줘", "해주세요", "부탁", "진행",
        "ㅇ", "ㅇㅇ", "ㅇㅋ", "ㄱㄹ", "ㄱㅊ",
    ),
    "negative": (
        "아니", "아니오", "아니요", "아니야", "아니에요", "아닙니다",
        "없어", "그렇지 않", "ㄴㄴ",
    ),
    # Slot-level: answering a symptom question.
    "answer_positive": (
        "네", "예", "맞아", "맞습니다", "있어", "있습니다", "있었", "있는데", "있지만",
        "해요", "했어", "하는데", "됩니다", "그래", "응", "ㅇㅇ", "ㅇ",
    ),
    # Longest forms first: they are masked out before yes-tokens are looked for.
    "answer_negative": (
        "아니에요", "아닙니다", "아니", "없습니다", "없는데", "없지만", "없어", "없었",
        "없네", "없고", "없음", "안 했", "안했", "안 해", "안해", "안 하",
        "않아", "않았", "전혀", "ㄴㄴ", "ㄴ",
    ),
    # Trigger phrases.
    "analyze_request": ("분석해", "결과"),
    "analysis_offer":  ("분석을 진행해볼까요", "말씀하고 싶은 다른 증상", "천식 가능성을 안내드릴까요"),
    "reset":           ("다시 검사하기", "처음으로", "천식일까요"),
    "end_session":     ("상담 종료", "대화 종료", "상담 끝"),
    # Answer-side context words used when re-deriving slots from a transcript.
    "family_member": (
        "아버지", "아빠", "어머니", "엄마", "할머니", "할아버지", "외할",
        "형", "누나", "언니", "오빠", "동생", "삼촌", "이모", "고모",
        "가족", "부모", "친척",
    ),
    "family_condition": ("천식", "알레르기", "아토피", "비염"),
}


def contains_any(text: Optional[str], tokens: Iterable[str]) -> bool:
    """True if any token occurs in text (plain substring containment)."""
    if not text:
        return False
    lowered = text.lower()
    return any(token and token.lower() in lowered for token in tokens)


def matches(category: str, text: Optional[str]) -> bool:
    return contains_any(text, VOCABULARY[category])


def is_affirmative(text: Optional[str]) -> bool:
    return matches("affirmative", text)


def is_negative(text: Optional[str]) -> bool:
    return matches("negative", text)


# ─────────────────────────────────────────────
# Shorthand (초성체) expansion
# ─────────────────────────────────────────────

_SHORTHAND_PAIRS = [
    ("ㅇㅇ", "응응"),
    ("ㅇㅋ", "오케이"),
    ("ㄱㄹ", "그래"),
    ("ㄱㅊ", "괜찮아"),
    ("ㄴㄴ", "아니아니"),
    ("ㄱㅅ", "감사합니다"),
    ("ㅅㄱ", "수고하세요"),
    ("ㅈㅅ", "죄송합니다"),
    ("ㅁㄹ", "몰라"),
]

# A lone jamo only expands when it is not part of a longer jamo run (ㅋㅋㅇ stays).
_SINGLE_JAMO = [
    (re.compile(r"(?<![ㄱ-ㅎㅏ-ㅣ])ㅇ(?![ㄱ-ㅎㅏ-ㅣ])"), "응"),
    (re.compile(r"(?<![ㄱ-ㅎㅏ-ㅣ])ㄴ(?![ㄱ-ㅎㅏ-ㅣ])"), "아니"),
]


def expand_shorthand(text: Optional[str]) -> str:
    """Expand common Korean initial-consonant shorthand into full words."""
    if not text:
        return ""
    out = text
    for short, full in _SHORTHAND_PAIRS:
        out = out.replace(short, full)
    for pattern, full in _SINGLE_JAMO:
        out = pattern.sub(full, out)
    return out


# ─────────────────────────────────────────────
# Clauses and yes/no reading
# ─────────────────────────────────────────────

_CLAUSE_BREAK = re.compile(r"[.,!?~;\n]+|그런데|근데|하지만|그리고")
_CLAUSE_ENDINGS = ("는데", "지만")


def split_clauses(text: Optional[str]) -> List[str]:
    """
    "열은 없는데 밤마다 쌕쌕거려요, 3개월 넘었어요"
        → ["열은 없는데", "밤마다 쌕쌕거려요", "3개월 넘었어요"]
    """
    if not text:
        return []
    for ending in _CLAUSE_ENDINGS:
        text = text.replace(ending, ending + ".")
    return [c.strip() for c in _CLAUSE_BREAK.split(text) if c.strip()]


def yes_no(text: Optional[str]) -> Optional[bool]:
    """
    Slot-level reading of an answer: True, False, or None if neither.

    No-phrases are masked out first, so "안 해요" is not read as "해요";
    a yes-token that survives the mask wins over the no-phrase.
    """
    if not text:
        return None
    masked = text
    for token in VOCABULARY["answer_negative"]:
        masked = masked.replace(token, " ")
    if matches("answer_positive", masked):
        return True
    if masked != text:
        return False
    return None


# ─────────────────────────────────────────────
# Month quantities ("3개월", "세 달", "1년", "반년")
# ─────────────────────────────────────────────

_NATIVE_NUMBERS = {
    "한": 1, "두": 2, "세": 3, "석": 3, "네": 4, "넉": 4, "다섯": 5,
    "여섯": 6, "일곱": 7, "여덟": 8, "아홉": 9, "열": 10,
}

_DIGIT_MONTHS = re.compile(r"(\d+)\s*(?:개월|달)")
_DIGIT_YEARS  = re.compile(r"(?<!\d)(\d{1,2})\s*년")
_NATIVE_MONTHS = re.compile(r"(다섯|여섯|일곱|여덟|아홉|한|두|세|석|네|넉|열)\s*달")


def months_mentioned(text: Optional[str]) -> Optional[int]:
    """Largest duration in months mentioned in text, or None."""
    if not text:
        return None
    found = []
    found += [int(n) for n in _DIGIT_MONTHS.findall(text)]
    found += [int(n) * 12 for n in _DIGIT_YEARS.findall(text)]
    found += [_NATIVE_NUMBERS[w] for w in _NATIVE_MONTHS.findall(text)]
    if "반년" in text:
        found.append(6)
    if any(w in text for w in ("일년", "일 년", "몇 년", "몇년", "수년")):
        found.append(12)
    return max(found) if found else None


def mentions_three_months(text: Optional[str]) -> bool:
    months = months_mentioned(text)
    return months is not None and months >= 3

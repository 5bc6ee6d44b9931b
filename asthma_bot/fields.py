"""
asthma_bot/fields.py — the closed slot vocabulary

Each FieldSpec carries:
  topic    → keywords that, found in the previous question, mean the user's
             answer is about this field (incremental extractor, stage checks)
  mention  → keywords that, found in an answer, mean the user volunteered
             this field (transcript re-derivation)
  asked    → extra keywords that, with topic, show an agent turn raised the
             field (stage checks)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


LAST_QUESTION = "last_question"

YES, NO = "Y", "N"
DURATION_LONG    = "3개월 이상"
DURATION_PRESENT = "있음"
DURATION_ABSENT  = "없음"
THREE_MONTH_MARKER = "3개월"


@dataclass(frozen=True)
class FieldSpec:
    key:      str
    label:    str
    group:    str                       # symptom | history | allergy
    topic:    Tuple[str, ...] = ()
    mention:  Tuple[str, ...] = ()
    duration: bool            = False
    asked:    Tuple[str, ...] = ()


FIELDS: Tuple[FieldSpec, ...] = (
    # ── Symptoms ─────────────────────────────────────────────────────────────
    FieldSpec("cough", "기침", "symptom",
              topic=("기침",), mention=("기침",)),
    FieldSpec("wheeze", "쌕쌕거림", "symptom",
              topic=("쌕쌕", "휘파람", "wheez"),
              mention=("쌕쌕", "휘파람", "그르렁")),
    FieldSpec("breathlessness", "호흡곤란", "symptom",
              topic=("호흡", "숨쉬", "숨 쉬", "숨이", "숨차"),
              mention=("호흡곤란", "숨쉬기", "숨 쉬기", "숨이 차", "숨차", "숨이 가빠", "숨을 헐떡"),
              asked=("숨",)),
    FieldSpec("chest_tightness", "가슴 답답", "symptom",
              topic=("가슴", "답답"),
              mention=("가슴이 답답", "가슴 답답", "답답하", "가슴이 조여")),
    FieldSpec("night", "야간", "symptom",
              topic=("밤", "야간", "잠잘", "잠들", "잠을", "자다가", "잘 때", "새벽", "수면"),
              mention=("밤에", "밤마다", "밤중", "야간", "새벽", "자다가", "잘 때", "잠들")),
    FieldSpec("sputum", "가래", "symptom",
              topic=("가래",), mention=("가래",)),
    FieldSpec("fever", "발열", "symptom",
              topic=("열이", "열은", "열도", "발열", "고열"),
              mention=("열이", "발열", "고열", "열나")),
    FieldSpec("runny_nose", "콧물", "symptom",
              topic=("콧물",), mention=("콧물",)),
    FieldSpec("nasal_congestion", "코막힘", "symptom",
              topic=("코막힘", "코가 막"), mention=("코막힘", "코가 막")),
    FieldSpec("itchy_nose", "코 가려움", "symptom",
              topic=("코가 가렵", "코 가려"), mention=("코가 가렵", "코 가려")),
    FieldSpec("conjunctivitis", "결막염", "symptom",
              topic=("결막염", "눈이 가렵", "눈이 충혈"), mention=("결막염", "눈이 가렵", "눈이 충혈")),
    FieldSpec("headache", "두통", "symptom",
              topic=("두통", "머리가 아"), mention=("두통", "머리가 아")),
    FieldSpec("sore_throat", "인후통", "symptom",
              topic=("인후통", "목이 아", "목 아프", "목이 붓"),
              mention=("인후통", "목이 아", "목 아프", "목이 부었")),
    FieldSpec("sneezing", "재채기", "symptom",
              topic=("재채기",), mention=("재채기",)),
    FieldSpec("postnasal_drip", "후비루", "symptom",
              topic=("후비루", "목 뒤로"), mention=("후비루", "목 뒤로 넘어")),
    FieldSpec("duration", "증상 지속", "symptom",
              topic=("얼마나", "오래", "지속", "기간"),
              mention=("지속", "계속", "넘게", "동안", "이상"),
              duration=True, asked=("3개월",)),
    FieldSpec("bronchodilator_use", "기관지확장제 사용", "symptom",
              topic=("기관지", "확장제", "흡입기"),
              mention=("기관지확장제", "확장제", "흡입기", "벤토린"),
              duration=True, asked=("약물",)),
    FieldSpec("symptom_relief", "증상 완화 여부", "symptom",
              topic=("좋아지고 있", "좋아졌", "나아지고 있", "나아졌", "완화"),
              mention=("좋아졌", "좋아지고", "나아졌", "나아지고", "완화", "줄었", "줄어들")),
    FieldSpec("exercise_trigger", "운동시 이상", "symptom",
              topic=("운동", "뛰"), mention=("운동", "뛰면", "뛰고", "뛸 때")),
    FieldSpec("season", "계절", "symptom",
              topic=("계절", "환절기"), mention=("환절기", "계절", "봄철", "가을철")),
    FieldSpec("temperature_trigger", "기온", "symptom",
              topic=("기온", "찬 공기", "차가운 공기"), mention=("기온", "찬 공기", "차가운 공기", "추우면")),

    # ── Family / past history ────────────────────────────────────────────────
    FieldSpec("family_history", "가족력", "history",
              topic=("가족", "부모", "형제", "유전")),
    FieldSpec("asthma_history", "천식 병력", "history",
              topic=("천식 진단", "천식으로 진단"), mention=("천식 진단", "천식으로 진단")),
    FieldSpec("allergic_rhinitis_history", "알레르기 비염 병력", "history",
              topic=("비염",), mention=("비염",)),
    FieldSpec("bronchiolitis_history", "모세기관지염 병력", "history",
              topic=("모세기관지염",), mention=("모세기관지염",)),
    FieldSpec("atopy_history", "아토피 병력", "history",
              topic=("아토피", "피부염"), mention=("아토피", "피부염"),
              asked=("알레르기 비염",)),
    FieldSpec("prior_diagnosis", "기존 진단명", "history"),
    FieldSpec("past_history", "과거 병력", "history"),

    # ── Allergy test ─────────────────────────────────────────────────────────
    FieldSpec("airborne_allergen", "공중 항원", "allergy",
              topic=("집먼지", "꽃가루", "곰팡이", "진드기", "공중"),
              mention=("집먼지", "꽃가루", "곰팡이", "진드기", "먼지", "동물 털", "털 알레르기")),
    FieldSpec("airborne_allergen_detail", "공중 항원 상세", "allergy"),
    FieldSpec("food_allergen", "식품 항원", "allergy",
              topic=("우유", "계란", "달걀", "땅콩", "견과", "음식", "식품"),
              mention=("우유", "계란", "달걀", "땅콩", "견과", "밀가루", "새우", "음식 알레르기", "식품 알레르기")),
    FieldSpec("food_allergen_detail", "식품 항원 상세", "allergy"),
    FieldSpec("total_ige", "총 IgE", "allergy"),
    FieldSpec("allergy_test_result", "알레르기 검사 결과", "allergy"),
)

FIELD_BY_KEY: Dict[str, FieldSpec] = {f.key: f for f in FIELDS}
ALL_FIELD_KEYS: List[str] = [f.key for f in FIELDS]

CORE_SYMPTOMS  = ("wheeze", "breathlessness", "chest_tightness", "night")
FREQUENCY      = ("duration", "bronchodilator_use")
RISK_FACTORS   = ("family_history", "atopy_history", "airborne_allergen", "food_allergen")
MAJOR_CRITERIA = ("family_history", "atopy_history")
MINOR_CRITERIA = ("airborne_allergen", "food_allergen")
COLD_LIKE      = ("symptom_relief", "fever", "sore_throat")

# Filled from an uploaded allergy report, never from the transcript.
ALLERGY_REPORT_FIELDS = (
    "airborne_allergen", "airborne_allergen_detail", "food_allergen",
    "food_allergen_detail", "total_ige", "allergy_test_result",
)


def empty_slots() -> Dict[str, Optional[str]]:
    """Every field key present and None, plus an empty last-question slot."""
    slots: Dict[str, Optional[str]] = {key: None for key in ALL_FIELD_KEYS}
    slots[LAST_QUESTION] = ""
    return slots


def label(key: str) -> str:
    spec = FIELD_BY_KEY.get(key)
    return spec.label if spec else key


def filled(slots: Dict[str, Optional[str]]) -> Dict[str, str]:
    """Only the fields holding a value (bookkeeping excluded)."""
    return {
        k: v for k, v in slots.items()
        if k != LAST_QUESTION and v not in (None, "", "null")
    }

"""
asthma_bot/extractor.py — turn free-text answers into slot values

Two independent passes:

  extract()       incremental, one answer at a time, keyed on the question the
                  user is answering (slots[LAST_QUESTION]). Runs every turn.

  derive_slots()  authoritative re-derivation over the whole transcript,
                  run once by the deferred analysis. Pairs every agent
                  question with the user answer that follows it and also
                  credits symptoms the user volunteered unprompted.

Yes/no is read per clause: "열은 없어요. 그런데 밤마다 쌕쌕거려요" answers the
fever question with no and still credits the wheeze and the night symptom.
"""

import logging
from typing import Dict, List, Optional, Tuple

from asthma_bot.fields import (
    ALLERGY_REPORT_FIELDS, DURATION_ABSENT, DURATION_LONG, DURATION_PRESENT,
    FIELD_BY_KEY, FIELDS, LAST_QUESTION, NO, YES, FieldSpec, empty_slots,
)
from asthma_bot.vocabulary import (
    VOCABULARY, contains_any, expand_shorthand, matches, mentions_three_months,
    split_clauses, yes_no,
)

logger = logging.getLogger(__name__)

USER_PREFIX  = "사용자: "
AGENT_PREFIX = "챗봇: "

Slots = Dict[str, Optional[str]]

BRONCHODILATOR_WORDS = ("기관지확장제", "확장제", "흡입기")


def answer_polarity(answer: str) -> Optional[bool]:
    """True for a yes-answer, False for a no-answer, None if neither. Yes wins ties."""
    return yes_no(answer)


def _keywords(spec: FieldSpec) -> Tuple[str, ...]:
    if spec.key == "family_history":
        return spec.topic + VOCABULARY["family_condition"]
    return spec.topic + spec.mention


def _clause_polarity(clauses: List[str], keywords: Tuple[str, ...]) -> Optional[bool]:
    """Polarity of the first clause naming one of keywords that reads as yes or no."""
    for clause in clauses:
        if contains_any(clause, keywords):
            polarity = yes_no(clause)
            if polarity is not None:
                return polarity
    return None


def _leading_polarity(clauses: List[str]) -> Optional[bool]:
    for clause in clauses:
        polarity = yes_no(clause)
        if polarity is not None:
            return polarity
    return None


def _answer_to(spec: FieldSpec, clauses: List[str]) -> Optional[bool]:
    """
    How an answer replies to a question about spec: the clause that names
    the field decides, otherwise the first clause holding a yes or a no.
    """
    polarity = _clause_polarity(clauses, _keywords(spec))
    return polarity if polarity is not None else _leading_polarity(clauses)


def _value_for(spec: FieldSpec, positive: bool, answer: str) -> str:
    if spec.duration:
        if not positive:
            return DURATION_ABSENT
        return DURATION_LONG if mentions_three_months(answer) else DURATION_PRESENT
    return YES if positive else NO


def _asked_about(question: str) -> List[FieldSpec]:
    return [spec for spec in FIELDS if spec.topic and contains_any(question, spec.topic)]


def extract(utterance: str, current_slots: Slots) -> Slots:
    """
    Update the fields the previous question was about from the user's answer.

    Fields the previous question did not touch are copied unchanged, and
    LAST_QUESTION is left for the caller to set.
    """
    updated = dict(current_slots)
    if not updated.get(LAST_QUESTION):
        updated[LAST_QUESTION] = ""

    question = current_slots.get(LAST_QUESTION) or ""
    answer   = expand_shorthand(utterance)

    logger.debug(f"extract: question='{question}' answer='{answer}'")

    if not question:
        return updated

    clauses = split_clauses(answer)
    for spec in _asked_about(question):
        polarity = _answer_to(spec, clauses)
        if polarity is not None:
            updated[spec.key] = _value_for(spec, polarity, answer)
    return updated


# ══════════════════════════════════════════════════════════════════════════════
#  TRANSCRIPT RE-DERIVATION
# ══════════════════════════════════════════════════════════════════════════════

def pair_turns(history: List[str]) -> List[Tuple[str, str]]:
    """
    (question, answer) for every user turn, in order.
    A user turn with no agent turn right before it pairs with "".
    """
    pairs: List[Tuple[str, str]] = []
    previous = ""
    for entry in history:
        if entry.startswith(USER_PREFIX):
            answer   = expand_shorthand(entry[len(USER_PREFIX):])
            question = previous[len(AGENT_PREFIX):] if previous.startswith(AGENT_PREFIX) else ""
            pairs.append((question, answer))
        previous = entry
    return pairs


def _volunteered(spec: FieldSpec, answer: str) -> bool:
    if spec.key == "family_history":
        return matches("family_member", answer) and matches("family_condition", answer)
    if not spec.mention or not contains_any(answer, spec.mention):
        return False
    if spec.key == "atopy_history" and matches("family_member", answer):
        return False
    if spec.key == "duration" and contains_any(answer, BRONCHODILATOR_WORDS):
        return False
    return True


def _mention_polarity(spec: FieldSpec, clauses: List[str]) -> bool:
    """A volunteered mention counts unless its own clause says no."""
    words = VOCABULARY["family_condition"] if spec.key == "family_history" else spec.mention
    return _clause_polarity(clauses, words) is not False


def _dates_symptoms(clauses: List[str]) -> bool:
    return any(mentions_three_months(c) and yes_no(c) is not False for c in clauses)


def derive_slots(history: List[str], base: Optional[Slots] = None) -> Slots:
    """
    Rebuild every slot from the transcript alone.

    Allergy-report fields have no transcript evidence, so values from `base`
    fill those keys when the transcript left them empty.
    """
    slots = empty_slots()

    for question, answer in pair_turns(history):
        clauses = split_clauses(answer)
        touched = set()

        if question:
            for spec in _asked_about(question):
                polarity = _answer_to(spec, clauses)
                if polarity is not None:
                    slots[spec.key] = _value_for(spec, polarity, answer)
                    touched.add(spec.key)

        for spec in FIELDS:
            if spec.key in touched or not _volunteered(spec, answer):
                continue
            slots[spec.key] = _value_for(spec, _mention_polarity(spec, clauses), answer)

        # A bare "3개월이요" answering an unrelated question still dates the symptoms.
        if ("duration" not in touched and _dates_symptoms(clauses)
                and not _volunteered(FIELD_BY_KEY["bronchodilator_use"], answer)):
            slots["duration"] = DURATION_LONG

    if base:
        for key in ALLERGY_REPORT_FIELDS:
            if slots.get(key) in (None, "") and base.get(key) not in (None, ""):
                slots[key] = base[key]

    logger.info(
        f"derive_slots: {len(history)} turns → "
        f"{sum(1 for k, v in slots.items() if v and k != LAST_QUESTION)} filled fields"
    )
    return slots

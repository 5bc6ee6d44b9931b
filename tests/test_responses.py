"""
Unit tests for response envelopes, model-reply cleanup and result cards
"""

from asthma_bot import config
from asthma_bot.fields import empty_slots
from asthma_bot.models import Possibility, Verdict
from asthma_bot.report import (
    DETAIL_TITLE, HELP_LABEL, WHY_LOW, WHY_PRESENT, format_detailed_result,
    format_result, result_card,
)
from asthma_bot.responses import (
    BOOKING_LABEL, RESTART_LABEL, basic_card, callback_wait, simple_text,
    text_of, unwrap_text,
)


# ========================
# unwrap_text
# ========================

def test_unwrap_plain_text():
    assert unwrap_text("  밤에 기침을 하나요?  ") == "밤에 기침을 하나요?"


def test_unwrap_code_fenced_json():
    raw = '```json\n{"question": "밤에 기침을 하나요?"}\n```'
    assert unwrap_text(raw) == "밤에 기침을 하나요?"


def test_unwrap_embedded_json():
    raw = '다음 질문입니다: {"response": "가래가 있나요?"}'
    assert unwrap_text(raw) == "가래가 있나요?"


def test_unwrap_quotes_and_blank_lines():
    assert unwrap_text('"열이 나나요?"') == "열이 나나요?"
    assert unwrap_text("첫 줄\n\n\n둘째 줄") == "첫 줄\n둘째 줄"


def test_unwrap_unparseable_json_is_kept():
    assert unwrap_text('{"question": ') == '{"question":'


def test_unwrap_none():
    assert unwrap_text(None) == ""


# ========================
# Envelopes
# ========================

def test_simple_text_envelope():
    env = simple_text("안녕하세요")
    assert env == {
        "version": "2.0",
        "template": {"outputs": [{"simpleText": {"text": "안녕하세요"}}]},
    }


def test_quick_replies_are_capped():
    env = simple_text("고르세요", [f"선택 {i}" for i in range(12)])
    assert len(env["template"]["quickReplies"]) == 10
    assert env["template"]["quickReplies"][0] == {
        "label": "선택 0", "action": "message", "messageText": "선택 0",
    }


def test_booking_button_is_a_web_link():
    env = simple_text("안내", [BOOKING_LABEL])
    button = env["template"]["quickReplies"][0]
    assert button["action"] == "webLink"
    assert button["webLinkUrl"] == config.BOOKING_URL


def test_callback_wait_envelope():
    assert callback_wait("잠시만요") == {
        "version": "2.0", "useCallback": True, "data": {"text": "잠시만요"},
    }


def test_basic_card_and_text_of():
    env = basic_card("설명", title="제목", buttons=[RESTART_LABEL], possibility=Possibility.LOW)
    card = env["template"]["outputs"][0]["basicCard"]
    assert card["thumbnail"]["imageUrl"] == config.IMAGE_URL_LOW_RISK
    assert card["buttons"][0]["messageText"] == RESTART_LABEL
    assert text_of(env) == "제목\n\n설명"


# ========================
# Result cards
# ========================

def test_format_result_present():
    result = format_result(Verdict(possibility=Possibility.PRESENT, reason="r"))
    assert result["quick_replies"] == [WHY_PRESENT, HELP_LABEL, BOOKING_LABEL]
    assert "의학적 진단을 대신할 수 없습니다" in result["description"]


def test_format_result_insufficient_reads_as_low():
    result = format_result(Verdict(possibility=Possibility.INSUFFICIENT, reason="r"))
    assert result["quick_replies"][0] == WHY_LOW


def test_result_card_thumbnail():
    env = result_card(Verdict(possibility=Possibility.PRESENT, reason="r"))
    card = env["template"]["outputs"][0]["basicCard"]
    assert card["thumbnail"]["imageUrl"] == config.IMAGE_URL_HIGH_RISK


def test_detailed_result_sections():
    slots = empty_slots()
    slots.update(
        cough="Y", duration="3개월 이상", wheeze="Y", night="Y",
        atopy_history="N", airborne_allergen="Y", airborne_allergen_detail="집먼지진드기",
    )
    env = format_detailed_result(slots)

    card = env["template"]["outputs"][0]["basicCard"]
    assert card["title"] == DETAIL_TITLE
    description = card["description"]
    assert "•기침이 3개월 이상" in description
    assert "•밤에 쌕쌕거림과 함께 기침이 심해짐" in description
    assert "•아이는 아토피 진단 없음" in description
    assert "•공기 (집먼지진드기) 양성" in description
    assert env["template"]["quickReplies"][0]["label"] == RESTART_LABEL


def test_detailed_result_without_data():
    env = format_detailed_result(empty_slots())
    assert "수집된 증상 정보가 없습니다" in text_of(env)


def test_detailed_result_bad_input():
    env = format_detailed_result(None)
    assert "상세 정보를 불러올 수 없습니다." in text_of(env)

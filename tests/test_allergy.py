"""
Unit tests for allergy report merging, the report model and the session archive
"""

import json

from asthma_bot.allergy import merge_report, summary_text
from asthma_bot.archive import JsonlArchive
from asthma_bot.fields import empty_slots
from asthma_bot.models import AllergyReport, Possibility, Verdict


def test_report_model_coerces_loose_values():
    report = AllergyReport(
        total_ige=120, airborne_allergens="집먼지진드기, 꽃가루",
        food_allergens=None, total_positive="x", asthma_related="2",
    )
    assert report.total_ige == "120"
    assert report.airborne_allergens == ["집먼지진드기", "꽃가루"]
    assert report.food_allergens == []
    assert report.total_positive == 0
    assert report.asthma_related == 2


def test_merge_report_sets_allergen_fields():
    slots = empty_slots()
    slots["wheeze"] = "Y"
    report = AllergyReport(
        airborne_allergens=["집먼지진드기"], food_allergens=["우유", "계란"], total_ige="200",
    )

    merged = merge_report(slots, report)

    assert merged["wheeze"] == "Y"
    assert merged["airborne_allergen"] == "Y"
    assert merged["food_allergen_detail"] == "우유, 계란"
    assert merged["total_ige"] == "200"
    assert json.loads(merged["allergy_test_result"])["food_allergens"] == ["우유", "계란"]
    assert slots["airborne_allergen"] is None


def test_merge_report_without_positives():
    merged = merge_report(None, AllergyReport(test_type="MAST"))
    assert merged["airborne_allergen"] is None
    assert merged["allergy_test_result"]


def test_summary_text():
    report = AllergyReport(
        test_type="MAST", total_ige="350 IU/mL", total_positive=3, asthma_related=2,
        asthma_high_risk=["집먼지진드기"], asthma_medium_risk=["고양이털"], risk_level="높음",
    )
    text = summary_text(report)
    assert text.startswith("📋 MAST 결과 분석 완료")
    assert "• 양성 반응: 3개" in text
    assert "🔴 고위험:" in text
    assert "• 고양이털" in text
    assert "💡 천식 위험도: 높음" in text


def test_summary_text_without_risk_items():
    text = summary_text(AllergyReport())
    assert text.startswith("📋 알레르기 검사 결과 분석 완료")
    assert "천식 관련 알레르기 항목" not in text


def test_archive_appends_json_lines(tmp_path):
    path = tmp_path / "nested" / "archive.jsonl"
    archive = JsonlArchive(str(path))
    verdict = Verdict(possibility=Possibility.LOW, reason="r")

    archive.write("u1", ["사용자: 기침해요"], {"cough": "Y"}, verdict)
    archive.write("u2", [], {}, verdict)

    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["session_key"] for r in rows] == ["u1", "u2"]
    assert rows[0]["verdict"] == {"possibility": "낮음", "reason": "r"}
    assert rows[0]["slots"] == {"cough": "Y"}

"""
asthma_bot/allergy.py — folding a parsed allergy report into the session
"""

import json
from typing import Dict, Optional

from asthma_bot.fields import YES, empty_slots
from asthma_bot.models import AllergyReport

UPLOAD_TURN_TEXT = "[알레르기 검사결과지 업로드]"


def merge_report(slots: Optional[Dict[str, Optional[str]]], report: AllergyReport) -> Dict[str, Optional[str]]:
    """A copy of `slots` with the report's allergen and IgE results written in."""
    merged = dict(slots) if isinstance(slots, dict) else empty_slots()

    if report.airborne_allergens:
        merged["airborne_allergen"] = YES
        merged["airborne_allergen_detail"] = ", ".join(report.airborne_allergens)
    if report.food_allergens:
        merged["food_allergen"] = YES
        merged["food_allergen_detail"] = ", ".join(report.food_allergens)
    if report.total_ige:
        merged["total_ige"] = report.total_ige

    merged["allergy_test_result"] = json.dumps(report.model_dump(), ensure_ascii=False)
    return merged


def summary_text(report: AllergyReport) -> str:
    lines = [f"📋 {report.test_type or '알레르기 검사'} 결과 분석 완료", ""]
    lines.append("🔍 검사 개요:")
    lines.append(f"• 양성 반응: {report.total_positive}개")
    if report.asthma_related > 0:
        lines.append(f"• 천식 관련 항목: {report.asthma_related}개")
    if report.total_ige:
        lines.append(f"• 총 IgE: {report.total_ige}")

    if report.asthma_high_risk or report.asthma_medium_risk:
        lines += ["", "⚠️ 천식 관련 알레르기 항목:"]
        if report.asthma_high_risk:
            lines += ["", "🔴 고위험:"] + [f"• {item}" for item in report.asthma_high_risk]
        if report.asthma_medium_risk:
            lines += ["", "🟡 중위험:"] + [f"• {item}" for item in report.asthma_medium_risk]
        lines += ["", f"💡 천식 위험도: {report.risk_level}"]

    lines += ["", "이 정보가 증상 분석에 반영됩니다. 다른 증상에 대해서도 말씀해 주세요."]
    return "\n".join(lines)

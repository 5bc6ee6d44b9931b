"""
asthma_bot/models.py — session, verdict, report and task models
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from asthma_bot.fields import empty_slots


# ══════════════════════════════════════════════════════════════════════════════
#  DIALOGUE STATE
# ══════════════════════════════════════════════════════════════════════════════

class DialogueState(str, Enum):
    INIT             = "INIT"
    COLLECTING       = "COLLECTING"
    CONFIRM_ANALYSIS = "CONFIRM_ANALYSIS"
    POST_ANALYSIS    = "POST_ANALYSIS"


class SessionRecord(BaseModel):
    state:          DialogueState              = DialogueState.INIT
    history:        List[str]                  = Field(default_factory=list)
    extracted_data: Dict[str, Optional[str]]   = Field(default_factory=empty_slots)
    last_activity:  float                      = 0.0


# ══════════════════════════════════════════════════════════════════════════════
#  VERDICT
# ══════════════════════════════════════════════════════════════════════════════

class Possibility(str, Enum):
    PRESENT      = "있음"
    LOW          = "낮음"
    INSUFFICIENT = "정보 부족"


class Verdict(BaseModel):
    possibility: Possibility
    reason:      str


# ══════════════════════════════════════════════════════════════════════════════
#  ALLERGY REPORT
# ══════════════════════════════════════════════════════════════════════════════

class AllergyReport(BaseModel):
    test_type:          Optional[str] = None
    total_ige:          Optional[str] = None
    airborne_allergens: List[str]     = Field(default_factory=list)
    food_allergens:     List[str]     = Field(default_factory=list)
    asthma_high_risk:   List[str]     = Field(default_factory=list)
    asthma_medium_risk: List[str]     = Field(default_factory=list)
    total_positive:     int           = 0
    asthma_related:     int           = 0
    risk_level:         Optional[str] = None

    @field_validator("total_ige", "test_type", "risk_level", mode="before")
    @classmethod
    def _as_text(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("airborne_allergens", "food_allergens", "asthma_high_risk",
                     "asthma_medium_risk", mode="before")
    @classmethod
    def _as_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return [str(s) for s in v]

    @field_validator("total_positive", "asthma_related", mode="before")
    @classmethod
    def _as_count(cls, v):
        try:
            return int(v or 0)
        except (TypeError, ValueError):
            return 0


# ══════════════════════════════════════════════════════════════════════════════
#  DEFERRED ANALYSIS TASK
# ══════════════════════════════════════════════════════════════════════════════

class AnalysisTask(BaseModel):
    """Payload of one deferred analysis; field names match the task endpoint body."""
    userKey:        str
    history:        List[str]
    extracted_data: Dict[str, Optional[str]] = Field(default_factory=dict)
    callbackUrl:    str

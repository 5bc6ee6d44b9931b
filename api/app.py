"""
api/app.py — FastAPI server for the pediatric asthma consultation skill
Run: uvicorn api.app:app --reload --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict

from asthma_bot import config
from asthma_bot.archive import JsonlArchive
from asthma_bot.dialogue import DialogueEngine
from asthma_bot.models import AnalysisTask
from asthma_bot.responses import callback_wait, simple_text
from asthma_bot.services import (
    ALLERGY_WAIT_MESSAGE, GroqAllergyReportAnalyzer, GroqQuestionService,
    GroqWaitMessageService,
)
from asthma_bot.store import InMemorySessionStore
from asthma_bot.tasks import HttpTaskQueue, LocalTaskQueue, deliver_callback, run_analysis_task

logger = logging.getLogger("asthma_bot.api")

INVALID_REQUEST_TEXT  = "잘못된 요청입니다."
NO_CALLBACK_TEXT      = "콜백 URL이 없습니다. 다시 시도해주세요."
SYSTEM_ERROR_TEXT     = "시스템에 오류가 발생했어요. 잠시 후 다시 시도해주세요."

# ─────────────────────────────────────────────
# State
# ─────────────────────────────────────────────

engine: Optional[DialogueEngine] = None


def build_engine() -> DialogueEngine:
    task_queue = HttpTaskQueue(config.TASK_TARGET_URL) if config.TASK_MODE == "http" else None
    return DialogueEngine(
        store=InMemorySessionStore(ttl_seconds=config.SESSION_TTL_SECONDS),
        question_service=GroqQuestionService(),
        wait_service=GroqWaitMessageService(),
        task_queue=task_queue,
        archive=JsonlArchive(config.ARCHIVE_PATH),
        analyzer=GroqAllergyReportAnalyzer(),
    )


# ─────────────────────────────────────────────
# Lifespan
# ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    global engine

    if not config.GROQ_API_KEY:
        raise RuntimeError(
            "GROQ_API_KEY is not set. "
            "Add it to your environment or .env file."
        )

    engine = build_engine()
    logger.info(f"✅ Dialogue engine ready (task mode: {config.TASK_MODE}).")

    yield

    engine.store.clear()
    logger.info("Sessions cleared on shutdown.")


# ─────────────────────────────────────────────
# FastAPI app
# ─────────────────────────────────────────────

app = FastAPI(title="Asthma Consultation Bot", version="1.0.0", lifespan=lifespan)

allow_origins = (
    ["*"]
    if config.ALLOWED_ORIGINS in {"*", ""}
    else [o.strip() for o in config.ALLOWED_ORIGINS.split(",") if o.strip()]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────
# Request Models
# ─────────────────────────────────────────────

class KakaoUser(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: Optional[str] = None


class KakaoMedia(BaseModel):
    model_config = ConfigDict(extra="allow")
    url:  Optional[str] = None
    type: Optional[str] = None


class KakaoParams(BaseModel):
    model_config = ConfigDict(extra="allow")
    media: Optional[KakaoMedia] = None


class KakaoUserRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    user:        Optional[KakaoUser]   = None
    utterance:   Optional[str]         = None
    callbackUrl: Optional[str]         = None
    params:      Optional[KakaoParams] = None


class SkillRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    userRequest: Optional[KakaoUserRequest] = None


class AnalysisTaskRequest(BaseModel):
    userKey:        Optional[str]                      = None
    history:        Optional[List[str]]                = None
    extracted_data: Optional[Dict[str, Optional[str]]] = None
    callbackUrl:    Optional[str]                      = None


# ─────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────

def _run_analysis(task: AnalysisTask):
    run_analysis_task(task, engine.store, deliver=deliver_callback)


def _active_sessions() -> int:
    if engine is None:
        return 0
    engine.store.evict_expired()
    return len(engine.store)


def _error(status_code: int, text: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=simple_text(text))


# ─────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────

@app.get("/")
def health():
    return {
        "status": "ok",
        "service": "Asthma Consultation Bot",
        "active_sessions": _active_sessions(),
    }


@app.post("/skill")
def skill(req: SkillRequest, background_tasks: BackgroundTasks):
    user_request = req.userRequest or KakaoUserRequest()
    user_key     = user_request.user.id if user_request.user else None
    if not user_key:
        return _error(400, INVALID_REQUEST_TEXT)

    media = user_request.params.media if user_request.params else None
    logger.info(
        f"[Request] user: {user_key}, utterance: '{user_request.utterance or ''}', "
        f"mediaType: {media.type if media else 'none'}"
    )

    try:
        if media and media.url and media.type == "image":
            if not user_request.callbackUrl:
                return _error(400, NO_CALLBACK_TEXT)
            background_tasks.add_task(
                engine.handle_allergy_report,
                user_key, media.url, user_request.callbackUrl, deliver_callback,
            )
            return callback_wait(ALLERGY_WAIT_MESSAGE)

        if not user_request.utterance:
            return _error(400, INVALID_REQUEST_TEXT)

        task_queue = (
            LocalTaskQueue(background_tasks.add_task, _run_analysis)
            if config.TASK_MODE != "http" else None
        )
        return engine.handle(
            user_key,
            user_request.utterance,
            callback_url=user_request.callbackUrl,
            task_queue=task_queue,
        )
    except Exception as e:
        logger.error(f"/skill error for user {user_key}: {e}", exc_info=True)
        return _error(500, SYSTEM_ERROR_TEXT)


@app.post("/process-analysis-callback", response_class=PlainTextResponse)
def process_analysis_callback(req: AnalysisTaskRequest):
    if not req.userKey or not req.history or not req.callbackUrl:
        logger.error(
            f"Invalid analysis task: userKey={bool(req.userKey)}, "
            f"history={bool(req.history)}, callbackUrl={bool(req.callbackUrl)}"
        )
        return PlainTextResponse("Bad Request: Missing required fields.", status_code=400)

    task = AnalysisTask(
        userKey=req.userKey,
        history=req.history,
        extracted_data=req.extracted_data or {},
        callbackUrl=req.callbackUrl,
    )
    _run_analysis(task)
    return PlainTextResponse("Callback job processed.")

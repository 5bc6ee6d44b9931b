"""
Integration tests for the FastAPI skill server

The lifespan is not entered; a DialogueEngine wired with fakes is patched
into the module instead, and outbound callbacks are recorded.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAnalyzer, FakeQuestionService, FakeWaitService, RecordingDelivery, user

from api import app as app_module
from asthma_bot import config
from asthma_bot.dialogue import DialogueEngine
from asthma_bot.models import AllergyReport, DialogueState
from asthma_bot.services import ALLERGY_WAIT_MESSAGE

CALLBACK = "https://callback.example/u1"


def _skill(utterance=None, user_id="u1", callback=None, media=None):
    user_request = {"user": {"id": user_id, "type": "botUserKey"}, "utterance": utterance}
    if callback:
        user_request["callbackUrl"] = callback
    if media:
        user_request["params"] = {"media": media}
    return {"intent": {"id": "fallback"}, "userRequest": user_request}


@pytest.fixture
def delivery(monkeypatch):
    recorder = RecordingDelivery()
    monkeypatch.setattr(app_module, "deliver_callback", recorder)
    return recorder


@pytest.fixture
def api_engine(monkeypatch, store):
    engine = DialogueEngine(
        store=store,
        question_service=FakeQuestionService(),
        wait_service=FakeWaitService(),
        analyzer=FakeAnalyzer(report=AllergyReport(test_type="MAST", airborne_allergens=["집먼지진드기"])),
    )
    monkeypatch.setattr(app_module, "engine", engine)
    monkeypatch.setattr(config, "TASK_MODE", "local")
    return engine


@pytest.fixture
def client(api_engine, delivery):
    return TestClient(app_module.app)


def _text(body):
    return body["template"]["outputs"][0]["simpleText"]["text"]


# ========================
# Health
# ========================

def test_health(client):
    client.post("/skill", json=_skill("기침해요"))
    body = client.get("/").json()
    assert body["status"] == "ok"
    assert body["active_sessions"] == 1


def test_health_does_not_count_idle_sessions(client, clock):
    client.post("/skill", json=_skill("기침해요"))
    clock.advance(601)
    assert client.get("/").json()["active_sessions"] == 0


# ========================
# /skill
# ========================

def test_missing_user_is_rejected(client):
    resp = client.post("/skill", json={"userRequest": {"utterance": "기침해요"}})
    assert resp.status_code == 400
    assert _text(resp.json()) == app_module.INVALID_REQUEST_TEXT


def test_missing_utterance_is_rejected(client):
    resp = client.post("/skill", json=_skill(None))
    assert resp.status_code == 400


def test_first_utterance_gets_a_question(client, store):
    resp = client.post("/skill", json=_skill("아이가 밤에 기침을 해요"))

    assert resp.status_code == 200
    assert _text(resp.json()) == FakeQuestionService.DEFAULT
    assert store.get("u1").state == DialogueState.COLLECTING


def test_confirmed_analysis_is_delivered_by_callback(client, store, delivery):
    client.post("/skill", json=_skill("아이가 밤에 자꾸 쌕쌕거려요"))
    client.post("/skill", json=_skill("분석해주세요"))

    resp = client.post("/skill", json=_skill("네", callback=CALLBACK))

    assert resp.status_code == 200
    assert resp.json()["useCallback"] is True
    assert resp.json()["data"]["text"] == FakeWaitService.TEXT

    url, payload = delivery.calls[0]
    assert url == CALLBACK
    assert "basicCard" in payload["template"]["outputs"][0]
    assert store.get("u1").state == DialogueState.POST_ANALYSIS


def test_confirm_without_callback_url(client, delivery):
    client.post("/skill", json=_skill("쌕쌕거려요"))
    client.post("/skill", json=_skill("분석해주세요"))

    resp = client.post("/skill", json=_skill("네"))

    assert resp.status_code == 200
    assert "콜백 URL" in _text(resp.json())
    assert delivery.calls == []


def test_image_upload_without_callback(client):
    resp = client.post("/skill", json=_skill(media={"type": "image", "url": "https://img.example/r.png"}))
    assert resp.status_code == 400


def test_image_upload_is_analyzed_in_background(client, store, delivery, api_engine):
    resp = client.post(
        "/skill",
        json=_skill(callback=CALLBACK, media={"type": "image", "url": "https://img.example/r.png"}),
    )

    assert resp.json() == {"version": "2.0", "useCallback": True, "data": {"text": ALLERGY_WAIT_MESSAGE}}
    assert api_engine.analyzer.urls == ["https://img.example/r.png"]
    assert delivery.calls[0][0] == CALLBACK
    assert store.get("u1").extracted_data["airborne_allergen"] == "Y"


def test_engine_failure_is_a_500(client, api_engine, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(api_engine, "handle", broken)
    resp = client.post("/skill", json=_skill("기침해요"))

    assert resp.status_code == 500
    assert _text(resp.json()) == app_module.SYSTEM_ERROR_TEXT


# ========================
# /process-analysis-callback
# ========================

def test_task_endpoint_rejects_incomplete_task(client):
    resp = client.post("/process-analysis-callback", json={"userKey": "u1"})
    assert resp.status_code == 400
    assert resp.text == "Bad Request: Missing required fields."


def test_task_endpoint_runs_analysis(client, store, delivery):
    task = {
        "userKey": "u1",
        "history": [user("기침해요"), user("네")],
        "extracted_data": {},
        "callbackUrl": CALLBACK,
    }
    resp = client.post("/process-analysis-callback", json=task)

    assert resp.status_code == 200
    assert resp.text == "Callback job processed."
    assert delivery.calls[0][0] == CALLBACK
    assert store.get("u1").state == DialogueState.POST_ANALYSIS

"""
Unit tests for the deferred analysis consumer, task channels and callbacks
"""

import json

import httpx
import pytest

from conftest import RecordingDelivery, agent, user

from asthma_bot import config
from asthma_bot import tasks
from asthma_bot.models import AnalysisTask, DialogueState
from asthma_bot.responses import RESTART_LABEL
from asthma_bot.tasks import (
    ANALYSIS_ERROR_TEXT, HttpTaskQueue, LocalTaskQueue, deliver_callback,
    run_analysis_task,
)

CALLBACK = "https://callback.example/u1"

HIGH_RISK_HISTORY = [
    user("아이가 밤에 자꾸 쌕쌕거려요"),
    agent("증상이 얼마나 오래 지속되었나요?"),
    user("3개월 정도 계속 그래요"),
    agent("가족 중에 천식이 있는 분이 있나요?"),
    user("아버지가 천식이 있어요"),
    agent("지금까지 말씀해주신 내용을 종합하여 아이의 천식 가능성을 안내드릴까요?"),
    user("네"),
]


def _task(history=HIGH_RISK_HISTORY, extracted_data=None):
    return AnalysisTask(
        userKey="u1",
        history=history,
        extracted_data=extracted_data or {},
        callbackUrl=CALLBACK,
    )


# ========================
# run_analysis_task
# ========================

def test_analysis_delivers_result_card(store):
    deliver = RecordingDelivery()

    envelope = run_analysis_task(_task(), store, deliver=deliver)

    assert deliver.calls == [(CALLBACK, envelope)]
    card = envelope["template"]["outputs"][0]["basicCard"]
    assert "가능성이 높아" in card["title"]
    assert card["thumbnail"]["imageUrl"] == config.IMAGE_URL_HIGH_RISK
    assert [b["label"] for b in card["buttons"]][-1] == "병원 진료 예약하기"

    record = store.get("u1")
    assert record.state == DialogueState.POST_ANALYSIS
    assert record.extracted_data["family_history"] == "Y"
    assert record.history == HIGH_RISK_HISTORY


def test_analysis_low_risk_card(store):
    history = [user("기침을 해요"), agent("열이 나나요?"), user("네 열이 나요")]
    envelope = run_analysis_task(_task(history), store, deliver=RecordingDelivery())

    card = envelope["template"]["outputs"][0]["basicCard"]
    assert "높지 않은" in card["title"]
    assert card["thumbnail"]["imageUrl"] == config.IMAGE_URL_LOW_RISK


def test_analysis_failure_resets_and_reports(store, monkeypatch):
    def broken(history, base=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(tasks, "derive_slots", broken)
    store.set("u1", state=DialogueState.CONFIRM_ANALYSIS)
    deliver = RecordingDelivery()

    envelope = run_analysis_task(_task(), store, deliver=deliver)

    assert len(deliver.calls) == 1
    assert envelope["template"]["outputs"][0]["simpleText"]["text"] == ANALYSIS_ERROR_TEXT
    assert envelope["template"]["quickReplies"][0]["label"] == RESTART_LABEL
    assert store.get("u1") is None


def test_analysis_delivers_once_even_if_callback_fails(store):
    deliver = RecordingDelivery(ok=False)
    run_analysis_task(_task(), store, deliver=deliver)
    assert len(deliver.calls) == 1
    assert store.get("u1").state == DialogueState.POST_ANALYSIS


# ========================
# deliver_callback
# ========================

def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_deliver_callback_posts_json():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"status": "SUCCESS"})

    assert deliver_callback(CALLBACK, {"version": "2.0"}, client=_client(handler))
    assert seen == [{"version": "2.0"}]


def test_deliver_callback_error_status():
    handler = lambda request: httpx.Response(500, text="nope")
    assert not deliver_callback(CALLBACK, {"version": "2.0"}, client=_client(handler))


def test_deliver_callback_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert not deliver_callback(CALLBACK, {"version": "2.0"}, client=_client(handler))


# ========================
# Task channels
# ========================

def test_local_queue_schedules_consumer():
    scheduled = []
    consumer = object()
    queue = LocalTaskQueue(lambda fn, task: scheduled.append((fn, task)), consumer)

    task = _task()
    queue.enqueue(task)

    assert scheduled == [(consumer, task)]


def test_http_queue_posts_task():
    seen = []

    def handler(request):
        seen.append((str(request.url), json.loads(request.content)))
        return httpx.Response(200, text="Callback job processed.")

    HttpTaskQueue("http://worker.local/process-analysis-callback", client=_client(handler)).enqueue(_task())

    url, body = seen[0]
    assert url == "http://worker.local/process-analysis-callback"
    assert body["userKey"] == "u1"
    assert body["callbackUrl"] == CALLBACK
    assert body["history"] == HIGH_RISK_HISTORY


def test_http_queue_failure_raises():
    handler = lambda request: httpx.Response(503)
    queue = HttpTaskQueue("http://worker.local/task", client=_client(handler))
    with pytest.raises(httpx.HTTPStatusError):
        queue.enqueue(_task())

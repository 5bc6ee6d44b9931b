"""
asthma_bot/tasks.py — deferred analysis and outbound callbacks

The confirming turn only enqueues an AnalysisTask and answers with a
callback-wait envelope. The task consumer re-derives every slot from the
transcript, judges, stores POST_ANALYSIS and makes exactly one delivery
attempt to the caller's callback URL.

  LocalTaskQueue   hands the task to an in-process scheduler (FastAPI BackgroundTasks)
  HttpTaskQueue    POSTs the task to the /process-analysis-callback endpoint
"""

import logging
from typing import Callable, Dict, Optional

import httpx

from asthma_bot import config
from asthma_bot.extractor import derive_slots
from asthma_bot.models import AnalysisTask, DialogueState
from asthma_bot.report import result_card
from asthma_bot.responses import RESTART_LABEL, simple_text
from asthma_bot.rules import judge

logger = logging.getLogger(__name__)


ANALYSIS_ERROR_TEXT = "죄송합니다, 답변을 분석하는 중 오류가 발생했어요. 잠시 후 다시 시도해주세요. 😥"


# ─────────────────────────────────────────────
# Outbound callback
# ─────────────────────────────────────────────

def deliver_callback(url: str, payload: Dict, client: Optional[httpx.Client] = None) -> bool:
    """
    POST `payload` to `url` once. Failures are logged and reported as False,
    never retried.
    """
    try:
        if client is not None:
            resp = client.post(url, json=payload)
        else:
            resp = httpx.post(url, json=payload, timeout=config.CALLBACK_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        logger.error(f"Callback to {url} failed: {e}")
        return False

    if resp.status_code >= 400:
        logger.error(f"Callback to {url} failed: status={resp.status_code}, body={resp.text[:200]}")
        return False
    logger.info(f"Callback to {url} delivered.")
    return True


# ─────────────────────────────────────────────
# Task channels
# ─────────────────────────────────────────────

class LocalTaskQueue:
    """`schedule(consumer, task)` runs the consumer after the current response."""

    def __init__(self, schedule: Callable, consumer: Callable[[AnalysisTask], object]):
        self.schedule = schedule
        self.consumer = consumer

    def enqueue(self, task: AnalysisTask):
        logger.info(f"Scheduling local analysis task for user {task.userKey}")
        self.schedule(self.consumer, task)


class HttpTaskQueue:
    """Delivers the task to the task endpoint; a failed delivery fails the turn."""

    def __init__(self, url: str = config.TASK_TARGET_URL, client: Optional[httpx.Client] = None):
        self.url    = url
        self.client = client

    def enqueue(self, task: AnalysisTask):
        logger.info(f"Posting analysis task for user {task.userKey} to {self.url}")
        payload = task.model_dump()
        if self.client is not None:
            resp = self.client.post(self.url, json=payload)
        else:
            resp = httpx.post(self.url, json=payload, timeout=config.CALLBACK_TIMEOUT_SECONDS)
        resp.raise_for_status()


# ══════════════════════════════════════════════════════════════════════════════
#  CONSUMER
# ══════════════════════════════════════════════════════════════════════════════

def run_analysis_task(
    task: AnalysisTask,
    store,
    deliver: Callable[[str, Dict], bool] = deliver_callback,
) -> Dict:
    """
    Full analysis for one confirmed session. Whatever happens, one envelope
    goes to the callback URL: the result card, or an error with a restart
    button after the session has been reset.
    """
    logger.info(f"Analysis task started for user {task.userKey}, {len(task.history)} turns")
    try:
        slots   = derive_slots(task.history, base=task.extracted_data)
        verdict = judge(slots)
        logger.info(f"Verdict for user {task.userKey}: {verdict.possibility.value} ({verdict.reason})")

        envelope = result_card(verdict)
        store.set(
            task.userKey,
            state=DialogueState.POST_ANALYSIS,
            history=task.history,
            extracted_data=slots,
        )
    except Exception as e:
        logger.error(f"Analysis task failed for user {task.userKey}: {e}", exc_info=True)
        store.reset(task.userKey)
        envelope = simple_text(ANALYSIS_ERROR_TEXT, [RESTART_LABEL])

    deliver(task.callbackUrl, envelope)
    return envelope

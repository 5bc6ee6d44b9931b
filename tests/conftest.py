"""
Shared fakes for the asthma bot tests.

The generative services, the task queue and the archive are replaced by
small in-memory doubles so the dialogue flow can be exercised offline.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from asthma_bot.dialogue import DialogueEngine
from asthma_bot.extractor import AGENT_PREFIX, USER_PREFIX
from asthma_bot.store import InMemorySessionStore


# ========================
# Mock Modules
# ========================

class FakeClock:
    """Manually advanced clock for TTL tests"""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeQuestionService:
    """Returns scripted questions in order, then a default one"""

    DEFAULT = "아이가 쌕쌕거리는 소리를 내나요?"

    def __init__(self, questions=None, error=None):
        self.questions = list(questions or [])
        self.error = error
        self.calls = []

    def generate(self, recent_history, plan):
        self.calls.append((list(recent_history), plan))
        if self.error is not None:
            raise self.error
        if self.questions:
            return self.questions.pop(0)
        return self.DEFAULT


class FakeWaitService:
    TEXT = "네, 잠시만 기다려주세요."

    def __init__(self):
        self.calls = []

    def generate(self, history):
        self.calls.append(list(history))
        return self.TEXT


class RecordingQueue:
    """Collects enqueued tasks instead of running them"""

    def __init__(self):
        self.tasks = []

    def enqueue(self, task):
        self.tasks.append(task)


class FakeArchive:
    def __init__(self):
        self.rows = []

    def write(self, session_key, transcript, slots, verdict):
        self.rows.append({
            "session_key": session_key,
            "transcript": list(transcript),
            "slots": dict(slots),
            "verdict": verdict,
        })


class FakeAnalyzer:
    """Returns a fixed report or raises a fixed error"""

    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.urls = []

    def analyze(self, image_url):
        self.urls.append(image_url)
        if self.error is not None:
            raise self.error
        return self.report


class RecordingDelivery:
    """Stands in for deliver_callback"""

    def __init__(self, ok=True):
        self.ok = ok
        self.calls = []

    def __call__(self, url, payload):
        self.calls.append((url, payload))
        return self.ok


# ========================
# Helpers
# ========================

def user(text):
    return USER_PREFIX + text


def agent(text):
    return AGENT_PREFIX + text


# ========================
# Fixtures
# ========================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(ttl_seconds=600, clock=clock)


@pytest.fixture
def question_service():
    return FakeQuestionService()


@pytest.fixture
def wait_service():
    return FakeWaitService()


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def archive():
    return FakeArchive()


@pytest.fixture
def engine(store, question_service, wait_service, queue, archive):
    return DialogueEngine(
        store=store,
        question_service=question_service,
        wait_service=wait_service,
        task_queue=queue,
        archive=archive,
    )

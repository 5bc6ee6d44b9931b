"""
Unit tests for the in-memory session store
"""

from asthma_bot.models import DialogueState


def test_get_missing_returns_none(store):
    assert store.get("nobody") is None


def test_set_creates_and_merges(store):
    store.set("u1", state=DialogueState.COLLECTING, history=["사용자: 기침해요"])
    store.set("u1", history=["사용자: 기침해요", "챗봇: 밤에도 하나요?"])

    record = store.get("u1")
    assert record.state == DialogueState.COLLECTING
    assert len(record.history) == 2
    assert record.extracted_data["wheeze"] is None


def test_set_stamps_last_activity(store, clock):
    store.set("u1", state=DialogueState.COLLECTING)
    assert store.get("u1").last_activity == clock.now


def test_get_returns_a_copy(store):
    store.set("u1", history=["사용자: 기침해요"])
    record = store.get("u1")
    record.history.append("changed")
    assert store.get("u1").history == ["사용자: 기침해요"]


def test_idle_session_expires(store, clock):
    store.set("u1", state=DialogueState.CONFIRM_ANALYSIS)
    clock.advance(601)
    assert store.get("u1") is None
    assert len(store) == 0


def test_activity_keeps_session_alive(store, clock):
    store.set("u1", state=DialogueState.COLLECTING)
    clock.advance(500)
    store.set("u1", history=["사용자: 네"])
    clock.advance(500)
    assert store.get("u1") is not None


def test_set_after_expiry_starts_fresh(store, clock):
    """Stale fields from an expired record are not merged in"""
    store.set("u1", state=DialogueState.POST_ANALYSIS, history=["old"])
    clock.advance(601)
    store.set("u1", history=["new"])
    record = store.get("u1")
    assert record.state == DialogueState.INIT
    assert record.history == ["new"]


def test_reset_and_delete(store):
    store.set("u1", state=DialogueState.COLLECTING)
    assert store.reset("u1")
    assert store.get("u1") is None
    assert not store.delete("u1")


def test_evict_expired(store, clock):
    store.set("old", state=DialogueState.COLLECTING)
    clock.advance(400)
    store.set("fresh", state=DialogueState.COLLECTING)
    clock.advance(300)
    assert store.evict_expired() == 1
    assert store.get("fresh") is not None


def test_new_session_sweeps_idle_ones(store, clock):
    for i in range(100):
        store.set(f"u{i}", state=DialogueState.COLLECTING)
    clock.advance(601)

    store.set("late", state=DialogueState.COLLECTING)

    assert len(store) == 1


def test_updating_a_live_session_does_not_sweep(store, clock):
    store.set("old", state=DialogueState.COLLECTING)
    store.set("live", state=DialogueState.COLLECTING)
    clock.advance(601)
    store.set("live", history=["x"])
    assert len(store) == 2

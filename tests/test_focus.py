import asyncio
import random

import pytest

from priority_crm import config, focus
from priority_crm.errors import EmptyFocusQueueError, FocusSessionError
from priority_crm.focus import FocusSession
from priority_crm.schemas import FocusState
from priority_crm.timers import AsyncioTimerService


@pytest.fixture
def refreshes():
    return []


@pytest.fixture
def session(store, timers, refreshes):
    return FocusSession(store, timers, rng=random.Random(7), on_refresh=lambda: refreshes.append(True))


@pytest.fixture
def contacts(store):
    return {
        "low": store.add({"name": "Lena", "priority": "low"}),
        "high_b": store.add({"name": "Bea", "priority": "high"}),
        "medium": store.add({"name": "Mo", "priority": "medium"}),
        "high_a": store.add({"name": "Abe", "priority": "high"}),
    }


def test_start_with_no_contacts_stays_idle(session):
    with pytest.raises(EmptyFocusQueueError):
        session.start()
    assert session.state == FocusState.IDLE


def test_start_with_only_cleared_contacts_stays_idle(store, session):
    contact = store.add({"name": "Done", "priority": "high"})
    store.mark_cleared(contact.id)
    with pytest.raises(EmptyFocusQueueError):
        session.start()
    assert session.state == FocusState.IDLE


def test_start_builds_priority_snapshot(session, contacts):
    view = session.start()

    assert view.state == FocusState.ACTIVE
    assert view.position == 1
    assert view.total == 4
    assert [c.name for c in session.queue] == ["Abe", "Bea", "Mo", "Lena"]
    assert session.current.name == "Abe"


def test_snapshot_is_not_a_live_view(store, session, contacts):
    session.start()
    store.add({"name": "Aaron", "priority": "high"})
    store.delete(contacts["medium"].id)

    assert [c.name for c in session.queue] == ["Abe", "Bea", "Mo", "Lena"]


def test_clear_marks_store_and_starts_countdown(store, session, timers, contacts):
    session.start()
    view = session.clear_current()

    assert view.state == FocusState.COUNTDOWN
    assert 10 <= view.seconds_remaining <= 15
    assert view.contact.cleared_today is True
    stored = store.get(contacts["high_a"].id)
    assert stored.cleared_today is True
    assert stored.last_cleared is not None
    assert len(timers.active) == 1
    assert timers.active[0].interval == 1.0


def test_countdown_advances_when_it_reaches_zero(session, timers, contacts):
    session.start()
    seconds = session.clear_current().seconds_remaining

    timers.fire(seconds - 1)
    assert session.state == FocusState.COUNTDOWN
    assert session.seconds_remaining == 1
    assert session.index == 0

    timers.fire()
    assert session.state == FocusState.ACTIVE
    assert session.index == 1
    assert session.current.name == "Bea"
    assert timers.active == []


def test_countdown_seed_covers_full_range(store, timers):
    seen = set()
    store.add({"name": "Solo", "priority": "high"})
    for seed in range(200):
        session = FocusSession(store, timers, rng=random.Random(seed))
        session.start()
        seen.add(session.clear_current().seconds_remaining)
        session.exit()
        store.reactivate(store.all()[0].id)
    assert seen == set(range(10, 16))


def test_reclear_cancels_previous_timer(session, timers, contacts):
    session.start()
    session.clear_current()
    first = timers.active[0]
    session.clear_current()

    assert first.cancelled
    assert len(timers.active) == 1

    timers.fire(15)
    assert session.index == 1


def test_skip_cancels_countdown_and_does_not_clear(store, session, timers, contacts):
    session.start()
    session.skip()
    assert session.index == 1
    assert store.get(contacts["high_a"].id).cleared_today is False

    session.clear_current()
    session.skip()
    assert timers.active == []
    assert session.index == 2
    assert session.state == FocusState.ACTIVE


def test_clearing_last_contact_reaches_exhausted(store, session, timers):
    only = store.add({"name": "Solo", "priority": "low"})
    session.start()
    session.clear_current()
    timers.fire(15)

    assert session.state == FocusState.EXHAUSTED
    view = session.view()
    assert view.contact is None
    assert view.position == 1
    assert store.get(only.id).cleared_today is True
    with pytest.raises(FocusSessionError):
        session.clear_current()


def test_skip_when_exhausted_stays_exhausted(store, session):
    store.add({"name": "Solo", "priority": "low"})
    session.start()
    session.skip()
    session.skip()
    assert session.index == 1
    assert session.state == FocusState.EXHAUSTED


def test_restart_resets_index_on_same_snapshot(store, session, contacts):
    session.start()
    session.skip()
    session.skip()
    store.add({"name": "Aaron", "priority": "high"})

    view = session.restart()
    assert view.position == 1
    assert session.current.name == "Abe"
    assert len(session.queue) == 4


def test_exit_cancels_timer_and_notifies(session, timers, refreshes, contacts):
    session.start()
    session.clear_current()
    session.exit()

    assert session.state == FocusState.IDLE
    assert timers.active == []
    assert refreshes
    with pytest.raises(FocusSessionError):
        session.skip()


def test_stale_tick_after_exit_is_ignored(session, timers, contacts):
    session.start()
    session.clear_current()
    timer = timers.active[0]
    session.exit()

    timer.callback()
    assert session.state == FocusState.IDLE


def test_advance_notifies_refresh(session, refreshes, contacts):
    session.start()
    session.skip()
    assert len(refreshes) == 1


def test_edit_exits_and_returns_contact(session, contacts):
    session.start()
    contact = session.edit(contacts["medium"].id)

    assert contact.name == "Mo"
    assert session.state == FocusState.IDLE
    assert session.edit("contact_missing") is None


def test_clear_deleted_contact_still_counts_down(store, session, timers, contacts):
    session.start()
    store.delete(contacts["high_a"].id)
    view = session.clear_current()

    assert view.state == FocusState.COUNTDOWN
    assert store.get(contacts["high_a"].id) is None


def test_actions_require_active_session(session):
    for action in (session.clear_current, session.skip, session.restart):
        with pytest.raises(FocusSessionError):
            action()


def test_asyncio_timer_service_drives_countdown(store, monkeypatch, contacts):
    monkeypatch.setattr(focus, "TICK_INTERVAL_SECONDS", 0.01)
    monkeypatch.setattr(config, "COUNTDOWN_MIN_SECONDS", 2)
    monkeypatch.setattr(config, "COUNTDOWN_MAX_SECONDS", 2)
    refreshes = []

    async def run():
        session = FocusSession(store, AsyncioTimerService(), on_refresh=lambda: refreshes.append(True))
        session.start()
        session.clear_current()
        first = session._timer
        session.clear_current()
        second = session._timer
        assert first.cancelled
        assert first._handle is None

        await asyncio.sleep(0.2)
        return session, second

    session, second = asyncio.run(run())

    assert session.index == 1
    assert len(refreshes) == 1
    assert session.state == FocusState.ACTIVE
    assert session.seconds_remaining is None
    assert second.cancelled
    assert second._handle is None


def test_repeating_call_cancelled_inside_callback_stops():
    calls = []

    async def run():
        handle = None

        def callback():
            calls.append(True)
            if len(calls) == 3:
                handle.cancel()

        handle = AsyncioTimerService().start(0.01, callback)
        await asyncio.sleep(0.1)
        return handle

    handle = asyncio.run(run())
    assert len(calls) == 3
    assert handle._handle is None

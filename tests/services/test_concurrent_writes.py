"""Concurrent writers on a file-backed SQLite database"""

import threading

import pytest
from sqlalchemy import func, select

from src.core.event_bus import EventBus
from src.core.request import (
    AlreadyClaimed,
    DuplicateSubmission,
    InvalidTransition,
    NewRequest,
    RequestStatus,
)
from src.db.database import build_engine, build_session_factory
from src.db.models import Base, SessionModel
from src.services.request_service import RequestStore
from src.services.session_service import SessionStore

CRAFTERS = 8
HAND_OVER_ROUNDS = 15


@pytest.fixture()
def file_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def file_store(file_factory):
    return RequestStore(file_factory, EventBus())


def _submission(item_id="ench-1"):
    return NewRequest(
        requester_id="user-1",
        character_name="Thalia",
        profession="enchanting",
        gear_slot="weapon",
        item_id=item_id,
        item_label="Crusader",
    )


def _open_request(store, item_id="ench-1"):
    return store.create(_submission(item_id)).value


def _race(action, workers=CRAFTERS):
    barrier = threading.Barrier(workers)
    results = [None] * workers

    def worker(index):
        barrier.wait()
        results[index] = action(index)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_exactly_one_concurrent_claim_wins(file_store):
    req = _open_request(file_store)

    results = _race(lambda i: file_store.claim(req.id, f"crafter-{i}", f"Crafter {i}"))

    winners = [r for r in results if r.ok]
    losers = [r for r in results if not r.ok]
    assert len(winners) == 1
    assert len(losers) == CRAFTERS - 1

    winner_id = winners[0].value.claimed_by
    for loser in losers:
        assert loser.error == AlreadyClaimed(req.id, winner_id)

    stored = file_store.find_by_id(req.id)
    assert stored.status == RequestStatus.CLAIMED
    assert stored.claimed_by == winner_id
    assert [e.action for e in stored.audit_trail] == ["created", "claimed"]


def test_concurrent_progress_never_exceeds_requested(file_store):
    req = _open_request(file_store)
    file_store.claim(req.id, "crafter-1")
    file_store.start_work(req.id, "crafter-1")

    _race(lambda i: file_store.apply_completion(req.id, "crafter-1", 1))

    stored = file_store.find_by_id(req.id)
    assert stored.quantity_completed == 1
    assert stored.status == RequestStatus.COMPLETE
    completions = [e for e in stored.audit_trail if e.action == "completed"]
    assert len(completions) == 1
    assert completions[0].details["amount"] == 1


def test_concurrent_identical_submissions_create_one_request(file_store):
    results = _race(lambda i: file_store.create(_submission()))

    created = [r for r in results if r.ok]
    rejected = [r for r in results if not r.ok]
    assert len(created) == 1
    assert all(
        r.error == DuplicateSubmission("user-1", "ench-1", 5000) for r in rejected
    )
    stored = file_store.list_all()
    assert [r.id for r in stored] == [created[0].value.id]
    assert [e.action for e in stored[0].audit_trail] == ["created"]


def test_start_work_racing_a_hand_over_never_steals_the_claim(file_store):
    def hand_over(request_id):
        released = file_store.release(request_id, "crafter-A")
        claimed = file_store.claim(request_id, "crafter-B", "Wren")
        return released, claimed

    for round_no in range(HAND_OVER_ROUNDS):
        req = _open_request(file_store, item_id=f"ench-{round_no}")
        file_store.claim(req.id, "crafter-A", "Bram")

        started, (released, claimed) = _race(
            lambda i: file_store.start_work(req.id, "crafter-A")
            if i == 0
            else hand_over(req.id),
            workers=2,
        )

        assert released.ok
        assert claimed.ok
        stored = file_store.find_by_id(req.id)
        assert stored.claimed_by == "crafter-B"
        assert stored.claimed_by_display_name == "Wren"

        actions = [e.action for e in stored.audit_trail]
        if not started.ok:
            assert started.error in (
                AlreadyClaimed(req.id, "crafter-B"),
                InvalidTransition("open", "in_progress"),
            )
            assert actions == ["created", "claimed", "released", "claimed"]
            assert stored.status == RequestStatus.CLAIMED
        elif actions[2] == "status_changed":
            # started A's claim, which was then handed over
            assert actions == ["created", "claimed", "status_changed", "released", "claimed"]
            assert stored.status == RequestStatus.CLAIMED
        else:
            # started after B already held it; B keeps the claim
            assert actions == ["created", "claimed", "released", "claimed", "status_changed"]
            assert stored.status == RequestStatus.IN_PROGRESS


def test_concurrent_first_puts_of_one_session_key(file_factory):
    sessions = SessionStore(file_factory)

    results = _race(
        lambda i: sessions.put("compose:user-1", f"user-{i}", {"step": i})
    )

    assert results == [None] * CRAFTERS
    with file_factory() as db:
        rows = db.scalar(select(func.count()).select_from(SessionModel))
    assert rows == 1
    stored = sessions.load("compose:user-1")
    assert stored.data == {"step": int(stored.owner_id.split("-")[1])}

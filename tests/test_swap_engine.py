"""Tests for the swap negotiation engine.

Covers the initiate/respond state machine, every precondition failure, the
pending-request invariant, and two sessions racing for the same slot.
"""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from app.domain.slots.repository import SlotRepository
from app.domain.slots.schemas import EventCreate
from app.domain.slots.service import SlotService
from app.domain.swaps.repository import SwapRequestRepository
from app.domain.swaps.service import SwapService
from app.models import Event, EventStatus, SwapRequest, SwapStatus, User, utcnow
from app.shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
)

from tests.conftest import at

pytestmark = pytest.mark.unit


@pytest.fixture
def pair(db, make_user, make_slot):
    """Alice and Bob, each with one SWAPPABLE slot"""
    alice = make_user("Alice")
    bob = make_user("Bob")
    alice_slot = make_slot(alice, title="Standup", start=at(9))
    bob_slot = make_slot(bob, title="Review", start=at(14))
    return alice, bob, alice_slot, bob_slot


def _statuses(db, *slots: Event) -> list[str]:
    for slot in slots:
        db.refresh(slot)
    return [slot.status for slot in slots]


# ---------------------------------------------------------------------------
# initiate_swap
# ---------------------------------------------------------------------------


def test_initiate_swap_marks_both_slots_pending(db, pair):
    alice, bob, alice_slot, bob_slot = pair

    request = SwapService(db).initiate_swap(bob, bob_slot.id, alice_slot.id)

    assert request.status == SwapStatus.PENDING
    assert request.requester_user_id == bob.id
    assert request.target_user_id == alice.id
    assert request.requester_slot_id == bob_slot.id
    assert request.target_slot_id == alice_slot.id
    assert request.responded_at is None
    assert request.requester.full_name == "Bob"
    assert request.target_slot.title == "Standup"
    assert _statuses(db, alice_slot, bob_slot) == [EventStatus.SWAP_PENDING] * 2


def test_initiate_with_busy_slot_is_invalid_state(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    bob_slot.status = EventStatus.BUSY.value
    db.commit()

    with pytest.raises(InvalidStateError, match="Your slot is not available"):
        SwapService(db).initiate_swap(bob, bob_slot.id, alice_slot.id)

    assert db.query(SwapRequest).count() == 0
    assert _statuses(db, alice_slot, bob_slot) == [EventStatus.SWAPPABLE, EventStatus.BUSY]


def test_initiate_with_someone_elses_slot_as_mine_is_invalid_state(db, pair, make_user, make_slot):
    alice, bob, alice_slot, bob_slot = pair
    carol = make_user("Carol")
    carol_slot = make_slot(carol)

    with pytest.raises(InvalidStateError, match="Your slot is not available"):
        SwapService(db).initiate_swap(bob, carol_slot.id, alice_slot.id)


def test_initiate_with_missing_slot_is_invalid_state(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)

    with pytest.raises(InvalidStateError, match="Your slot is not available"):
        service.initiate_swap(bob, 9999, alice_slot.id)
    with pytest.raises(InvalidStateError, match="Target slot is not available"):
        service.initiate_swap(bob, bob_slot.id, 9999)

    assert _statuses(db, alice_slot, bob_slot) == [EventStatus.SWAPPABLE] * 2


def test_initiate_with_non_swappable_target_is_invalid_state(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    alice_slot.status = EventStatus.BUSY.value
    db.commit()

    with pytest.raises(InvalidStateError, match="Target slot is not available"):
        SwapService(db).initiate_swap(bob, bob_slot.id, alice_slot.id)

    assert _statuses(db, bob_slot) == [EventStatus.SWAPPABLE]


def test_initiate_against_own_slot_is_invalid_operation(db, pair, make_slot):
    alice, bob, alice_slot, bob_slot = pair
    second_bob_slot = make_slot(bob, title="Retro", start=at(16))

    with pytest.raises(InvalidOperationError, match="Cannot swap with your own slot"):
        SwapService(db).initiate_swap(bob, bob_slot.id, second_bob_slot.id)
    with pytest.raises(InvalidOperationError):
        SwapService(db).initiate_swap(bob, bob_slot.id, bob_slot.id)

    assert db.query(SwapRequest).count() == 0
    assert _statuses(db, bob_slot, second_bob_slot) == [EventStatus.SWAPPABLE] * 2


def test_initiate_when_slot_already_has_pending_request_is_conflict(db, pair, make_user, make_slot):
    alice, bob, alice_slot, bob_slot = pair
    carol = make_user("Carol")
    carol_slot = make_slot(carol)
    service = SwapService(db)
    service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    # The pending-request guard is what protects the slot if its status is
    # ever flipped back by hand
    alice_slot.status = EventStatus.SWAPPABLE.value
    db.commit()

    with pytest.raises(ConflictError, match="already has a pending swap request"):
        service.initiate_swap(carol, carol_slot.id, alice_slot.id)

    assert db.query(SwapRequest).count() == 1
    assert _statuses(db, carol_slot) == [EventStatus.SWAPPABLE]


def test_initiate_when_slot_is_already_pending_is_invalid_state(db, pair, make_user, make_slot):
    alice, bob, alice_slot, bob_slot = pair
    carol = make_user("Carol")
    carol_slot = make_slot(carol)
    service = SwapService(db)
    service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    with pytest.raises(InvalidStateError, match="Target slot is not available"):
        service.initiate_swap(carol, carol_slot.id, alice_slot.id)

    assert db.query(SwapRequest).count() == 1


def test_unexpected_storage_error_rolls_back_and_surfaces_as_server_error(db, pair, monkeypatch):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)

    def broken_create_request(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(service.repo, "create_request", broken_create_request)

    with pytest.raises(HTTPException) as exc_info:
        service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Server error"
    assert _statuses(db, alice_slot, bob_slot) == [EventStatus.SWAPPABLE] * 2


# ---------------------------------------------------------------------------
# respond_to_swap
# ---------------------------------------------------------------------------


def test_accept_exchanges_ownership_and_marks_both_busy(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    answered = service.respond_to_swap(alice, request.id, accept=True)

    assert answered.status == SwapStatus.ACCEPTED
    assert answered.responded_at is not None
    db.refresh(alice_slot)
    db.refresh(bob_slot)
    assert (alice_slot.user_id, alice_slot.status) == (bob.id, EventStatus.BUSY)
    assert (bob_slot.user_id, bob_slot.status) == (alice.id, EventStatus.BUSY)


def test_reject_releases_both_slots_with_owners_unchanged(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    answered = service.respond_to_swap(alice, request.id, accept=False)

    assert answered.status == SwapStatus.REJECTED
    assert answered.responded_at is not None
    db.refresh(alice_slot)
    db.refresh(bob_slot)
    assert (alice_slot.user_id, alice_slot.status) == (alice.id, EventStatus.SWAPPABLE)
    assert (bob_slot.user_id, bob_slot.status) == (bob.id, EventStatus.SWAPPABLE)


def test_respond_to_missing_request_is_not_found(db, pair):
    alice, *_ = pair

    with pytest.raises(NotFoundError):
        SwapService(db).respond_to_swap(alice, 12345, accept=True)


@pytest.mark.parametrize("who", ["requester", "outsider"])
def test_only_the_target_user_may_respond(db, pair, make_user, who):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)
    responder = bob if who == "requester" else make_user("Mallory")

    with pytest.raises(ForbiddenError, match="Not authorized"):
        service.respond_to_swap(responder, request.id, accept=True)

    db.refresh(request)
    assert request.status == SwapStatus.PENDING
    assert _statuses(db, alice_slot, bob_slot) == [EventStatus.SWAP_PENDING] * 2


@pytest.mark.parametrize("first_answer", [True, False])
@pytest.mark.parametrize("second_answer", [True, False])
def test_second_response_is_invalid_state_and_changes_nothing(db, pair, first_answer, second_answer):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)
    first = service.respond_to_swap(alice, request.id, accept=first_answer)
    snapshot = (
        first.status,
        first.responded_at,
        _statuses(db, alice_slot, bob_slot),
        (alice_slot.user_id, bob_slot.user_id),
    )

    with pytest.raises(InvalidStateError, match="no longer pending"):
        service.respond_to_swap(alice, request.id, accept=second_answer)

    again = SwapRequestRepository.get_request_by_id(db, request.id)
    assert (
        again.status,
        again.responded_at,
        _statuses(db, alice_slot, bob_slot),
        (alice_slot.user_id, bob_slot.user_id),
    ) == snapshot


def test_accept_after_slot_vanished_is_invalid_state_without_side_effects(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    # Bypass the delete guard to simulate a slot removed mid-flight
    db.delete(db.get(Event, bob_slot.id))
    db.commit()

    with pytest.raises(InvalidStateError, match="no longer exist"):
        service.respond_to_swap(alice, request.id, accept=True)

    again = SwapRequestRepository.get_request_by_id(db, request.id)
    assert again.status == SwapStatus.PENDING
    assert again.responded_at is None
    db.refresh(alice_slot)
    assert (alice_slot.user_id, alice_slot.status) == (alice.id, EventStatus.SWAP_PENDING)


def test_set_outcome_on_answered_request_is_conflict(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)
    service.respond_to_swap(alice, request.id, accept=False)

    with pytest.raises(ConflictError):
        SwapRequestRepository.set_outcome(db, request.id, SwapStatus.ACCEPTED, utcnow())
    db.rollback()


# ---------------------------------------------------------------------------
# invariants and scenarios
# ---------------------------------------------------------------------------


def test_pending_request_slots_are_pending_and_terminal_request_slots_are_not(db, pair):
    alice, bob, alice_slot, bob_slot = pair
    service = SwapService(db)
    request = service.initiate_swap(bob, bob_slot.id, alice_slot.id)

    for swap in db.query(SwapRequest).filter(SwapRequest.status == SwapStatus.PENDING.value):
        assert swap.requester_slot.status == EventStatus.SWAP_PENDING
        assert swap.target_slot.status == EventStatus.SWAP_PENDING

    service.respond_to_swap(alice, request.id, accept=True)

    assert EventStatus.SWAP_PENDING not in _statuses(db, alice_slot, bob_slot)


def test_standup_review_scenario(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    slots = SlotService(db)
    swaps = SwapService(db)

    standup = slots.create_event(
        EventCreate(title="Standup", startTime=at(9), endTime=at(9, 30)), alice
    )
    assert standup.status == EventStatus.BUSY
    slots.update_status(standup.id, "SWAPPABLE", alice)

    review = slots.create_event(
        EventCreate(title="Review", startTime=at(14), endTime=at(14, 30)), bob
    )
    slots.update_status(review.id, "SWAPPABLE", bob)

    request = swaps.initiate_swap(bob, review.id, standup.id)
    assert request.status == SwapStatus.PENDING
    assert _statuses(db, standup, review) == [EventStatus.SWAP_PENDING] * 2

    accepted = swaps.respond_to_swap(alice, request.id, accept=True)
    assert accepted.status == SwapStatus.ACCEPTED

    db.refresh(standup)
    db.refresh(review)
    assert (standup.user_id, standup.status) == (bob.id, EventStatus.BUSY)
    assert (review.user_id, review.status) == (alice.id, EventStatus.BUSY)
    assert [e.title for e in slots.get_events(alice)] == ["Review"]
    assert [e.title for e in slots.get_events(bob)] == ["Standup"]


# ---------------------------------------------------------------------------
# racing initiations
# ---------------------------------------------------------------------------


@pytest.fixture
def contested(db, make_user, make_slot):
    """Bob and Carol both want Alice's slot"""
    alice = make_user("Alice")
    bob = make_user("Bob")
    carol = make_user("Carol")
    return {
        "alice_slot": make_slot(alice, title="Contested").id,
        "bob": bob.id,
        "bob_slot": make_slot(bob, title="Bob offer").id,
        "carol": carol.id,
        "carol_slot": make_slot(carol, title="Carol offer").id,
    }


def _race(session_factory, contested, monkeypatch, competitor_first: bool):
    """Let Carol's request commit while Bob's request is between its checks and its writes"""
    bob_session = session_factory()
    carol_session = session_factory()
    try:
        bob_service = SwapService(bob_session)
        real_find = SwapRequestRepository.find_pending_touching

        def racing_find(db, slot_ids):
            if competitor_first:
                carol = carol_session.get(User, contested["carol"])
                SwapService(carol_session).initiate_swap(
                    carol, contested["carol_slot"], contested["alice_slot"]
                )
                return real_find(db, slot_ids)
            found = real_find(db, slot_ids)
            carol = carol_session.get(User, contested["carol"])
            SwapService(carol_session).initiate_swap(
                carol, contested["carol_slot"], contested["alice_slot"]
            )
            return found

        monkeypatch.setattr(bob_service.repo, "find_pending_touching", racing_find)

        bob = bob_session.get(User, contested["bob"])
        with pytest.raises(ConflictError):
            bob_service.initiate_swap(bob, contested["bob_slot"], contested["alice_slot"])
    finally:
        bob_session.close()
        carol_session.close()


@pytest.mark.parametrize("competitor_first", [True, False], ids=["before-pending-check", "before-claim"])
def test_racing_initiations_for_same_slot_have_one_winner(
    db, session_factory, contested, monkeypatch, competitor_first
):
    _race(session_factory, contested, monkeypatch, competitor_first)

    requests = db.query(SwapRequest).all()
    assert len(requests) == 1
    assert requests[0].requester_user_id == contested["carol"]
    assert requests[0].status == SwapStatus.PENDING

    statuses = {
        slot.id: slot.status
        for slot in db.query(Event).populate_existing().all()
    }
    assert statuses[contested["alice_slot"]] == EventStatus.SWAP_PENDING
    assert statuses[contested["carol_slot"]] == EventStatus.SWAP_PENDING
    assert statuses[contested["bob_slot"]] == EventStatus.SWAPPABLE


# ---------------------------------------------------------------------------
# owner writes racing a swap claim
# ---------------------------------------------------------------------------


def _claim_alice_slot(session_factory, contested):
    carol_session = session_factory()
    try:
        carol = carol_session.get(User, contested["carol"])
        SwapService(carol_session).initiate_swap(
            carol, contested["carol_slot"], contested["alice_slot"]
        )
    finally:
        carol_session.close()


def _assert_claim_survived(db, contested):
    request = db.query(SwapRequest).one()
    assert request.status == SwapStatus.PENDING
    assert request.target_slot_id == contested["alice_slot"]
    slot = db.query(Event).populate_existing().filter(Event.id == contested["alice_slot"]).one()
    assert slot.status == EventStatus.SWAP_PENDING


@pytest.mark.parametrize("new_status", ["BUSY", "SWAPPABLE"])
def test_owner_status_write_does_not_overwrite_a_concurrent_claim(
    db, session_factory, contested, monkeypatch, new_status
):
    owner_session = session_factory()
    try:
        service = SlotService(owner_session)
        real_get = SlotRepository.get_owned_event

        def racing_get(db, event_id, user_id, for_update=False):
            event = real_get(db, event_id, user_id, for_update)
            _claim_alice_slot(session_factory, contested)
            return event

        monkeypatch.setattr(service.repo, "get_owned_event", racing_get)

        alice = owner_session.get(Event, contested["alice_slot"]).owner
        with pytest.raises(InvalidStateError, match="pending swap request"):
            service.update_status(contested["alice_slot"], new_status, alice)
    finally:
        owner_session.close()

    _assert_claim_survived(db, contested)


def test_owner_delete_does_not_remove_a_concurrently_claimed_slot(
    db, session_factory, contested, monkeypatch
):
    owner_session = session_factory()
    try:
        service = SlotService(owner_session)
        real_find = SwapRequestRepository.find_pending_touching

        def racing_find(db, slot_ids):
            found = real_find(db, slot_ids)
            _claim_alice_slot(session_factory, contested)
            return found

        monkeypatch.setattr(service.swap_repo, "find_pending_touching", racing_find)

        alice = owner_session.get(Event, contested["alice_slot"]).owner
        with pytest.raises(ConflictError):
            service.delete_event(contested["alice_slot"], alice)
    finally:
        owner_session.close()

    _assert_claim_survived(db, contested)

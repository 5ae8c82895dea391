import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from datee.entities import Match, Proposal
from datee.errors import ConflictError, NotFoundError, ValidationError
from datee.services.proposals import accept_date, propose_date

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(match_store):
    match_store.matches["m"] = Match(user_a="a", user_b="b", created_at=NOW - timedelta(hours=1), id="m")
    return match_store


def _propose(store, user_id="a", days=2, location="Cafe Luna", match_id="m"):
    return asyncio.run(
        propose_date(store, match_id, user_id, proposed_at=NOW + timedelta(days=days), location=location, now=NOW)
    )


def test_propose_records_position_of_proposer(store):
    _propose(store, "a")
    match = _propose(store, "b", days=3, location="Park")
    assert [(p.proposed_by, p.location) for p in match.proposals] == [(1, "Cafe Luna"), (2, "Park")]
    assert all(p.agreed is False for p in match.proposals)


def test_propose_rejects_past_and_far_dates(store):
    with pytest.raises(ValidationError):
        _propose(store, days=-1)
    with pytest.raises(ValidationError):
        _propose(store, days=15)
    assert store.matches["m"].proposals == []


def test_propose_accepts_last_day_of_window(store):
    match = _propose(store, days=14)
    assert len(match.proposals) == 1


def test_propose_requires_participant_and_location(store):
    with pytest.raises(ValidationError):
        _propose(store, "stranger")
    with pytest.raises(ValidationError):
        _propose(store, location="   ")
    with pytest.raises(NotFoundError):
        _propose(store, match_id="nope")


def test_propose_on_inactive_match(store):
    store.matches["m"].active = False
    with pytest.raises(ConflictError):
        _propose(store)


def test_accept_by_other_party(store):
    _propose(store, "a")
    match = asyncio.run(accept_date(store, "m", "b", 0, now=NOW))
    assert match.proposals[0].agreed is True


def test_cannot_accept_own_proposal(store):
    _propose(store, "a")
    with pytest.raises(ValidationError):
        asyncio.run(accept_date(store, "m", "a", 0, now=NOW))


def test_only_one_proposal_can_be_agreed(store):
    _propose(store, "a")
    _propose(store, "a", days=4, location="Museum")
    asyncio.run(accept_date(store, "m", "b", 0, now=NOW))

    with pytest.raises(ConflictError):
        asyncio.run(accept_date(store, "m", "b", 1, now=NOW))
    with pytest.raises(ConflictError):
        _propose(store, "b", days=5)
    assert [p.agreed for p in store.matches["m"].proposals] == [True, False]


def test_accept_unknown_or_expired_proposal(store):
    with pytest.raises(NotFoundError):
        asyncio.run(accept_date(store, "m", "b", 0, now=NOW))
    store.matches["m"].proposals.append(Proposal(proposed_by=1, proposed_at=NOW - timedelta(hours=1), location="Bar"))
    with pytest.raises(ValidationError):
        asyncio.run(accept_date(store, "m", "b", 0, now=NOW))

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..config import PROPOSAL_WINDOW_DAYS
from ..entities import Match, Proposal
from ..errors import ConflictError, NotFoundError, ValidationError
from ..stores import MatchStore

logger = logging.getLogger(__name__)


async def _load_active_match(match_store: MatchStore, match_id: str, user_id: str) -> Match:
    match = await match_store.get_match(match_id)
    if not match:
        raise NotFoundError("Match not found")
    if not match.involves(user_id):
        raise ValidationError("User is not part of this match")
    if not match.active:
        raise ConflictError("Match is no longer active")
    return match


def _check_date_window(proposed_at: datetime, now: datetime) -> None:
    if proposed_at <= now:
        raise ValidationError("Proposed date must be in the future")
    if proposed_at > now + timedelta(days=PROPOSAL_WINDOW_DAYS):
        raise ValidationError(f"Proposed date must be within {PROPOSAL_WINDOW_DAYS} days")


async def propose_date(
    match_store: MatchStore,
    match_id: str,
    user_id: str,
    proposed_at: datetime,
    location: str,
    now: datetime,
) -> Match:
    match = await _load_active_match(match_store, match_id, user_id)
    _check_date_window(proposed_at, now)
    location = (location or "").strip()
    if not location:
        raise ValidationError("Location is required")
    if match.agreed_proposal():
        raise ConflictError("A date has already been agreed on for this match")

    proposal = Proposal(proposed_by=match.position_of(user_id), proposed_at=proposed_at, location=location)
    updated = await match_store.append_proposal(match.id, proposal)
    logger.info("[PROPOSAL] user %s proposed a date for match %s", user_id, match.id)
    return updated


async def accept_date(match_store: MatchStore, match_id: str, user_id: str, index: int, now: datetime) -> Match:
    match = await _load_active_match(match_store, match_id, user_id)
    if index < 0 or index >= len(match.proposals):
        raise NotFoundError("Proposal not found")
    if match.agreed_proposal():
        raise ConflictError("A date has already been agreed on for this match")
    proposal = match.proposals[index]
    if proposal.proposed_by == match.position_of(user_id):
        raise ValidationError("You cannot accept your own proposal")
    if proposal.proposed_at <= now:
        raise ValidationError("Proposed date has already passed")

    updated = await match_store.accept_proposal(match.id, index)
    logger.info("[PROPOSAL] user %s accepted proposal %s of match %s", user_id, index, match.id)
    return updated

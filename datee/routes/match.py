from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from ..deps import get_match_engine, get_match_store, require_actor
from ..entities import Match
from ..errors import DateeError
from ..http_helpers import json_payload, to_http_exception
from ..schemas import MatchResponse, ProposalInput
from ..services.engine import MatchEngine
from ..services.proposals import accept_date, propose_date

router = APIRouter()
scaffold_router = APIRouter()


def _match_payload(match: Match, viewer_id: str) -> dict[str, Any]:
    # Never expose the raw record; the viewer only sees their partner's id.
    return {
        "id": match.id,
        "partner_id": match.partner_of(viewer_id),
        "created_at": match.created_at,
        "active": match.active,
        "proposals": [
            {
                "index": i,
                "proposed_by": p.proposed_by,
                "proposed_at": p.proposed_at,
                "location": p.location,
                "agreed": p.agreed,
            }
            for i, p in enumerate(match.proposals)
        ],
    }


@scaffold_router.get("/health")
def match_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "match"}


@router.get("/matches/current")
async def get_current_match(actor_id: str = Depends(require_actor), match_store=Depends(get_match_store)) -> dict[str, Any]:
    try:
        match = await match_store.find_match_for_user(actor_id)
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    if not match:
        return {"match": None, "message": "No match has been assigned yet"}
    return json_payload({"match": _match_payload(match, actor_id)})


@router.post("/matches/current/unmatch", response_model=MatchResponse)
async def unmatch_current(actor_id: str = Depends(require_actor), engine: MatchEngine = Depends(get_match_engine)):
    try:
        match = await engine.unmatch(actor_id)
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    return json_payload(_match_payload(match, actor_id))


@router.post("/matches/{match_id}/proposals", response_model=MatchResponse)
async def create_proposal(
    match_id: str,
    payload: ProposalInput,
    actor_id: str = Depends(require_actor),
    match_store=Depends(get_match_store),
):
    proposed_at = payload.proposed_at
    if proposed_at.tzinfo is None:
        proposed_at = proposed_at.replace(tzinfo=timezone.utc)
    try:
        match = await propose_date(
            match_store,
            match_id,
            actor_id,
            proposed_at=proposed_at,
            location=payload.location,
            now=datetime.now(timezone.utc),
        )
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    return json_payload(_match_payload(match, actor_id))


@router.post("/matches/{match_id}/proposals/{index}/accept", response_model=MatchResponse)
async def accept_proposal(
    match_id: str,
    index: int,
    actor_id: str = Depends(require_actor),
    match_store=Depends(get_match_store),
):
    try:
        match = await accept_date(match_store, match_id, actor_id, index, now=datetime.now(timezone.utc))
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    return json_payload(_match_payload(match, actor_id))

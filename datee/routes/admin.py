import logging

from fastapi import APIRouter, Depends, Query

from ..deps import get_match_engine, get_user_store, require_admin
from ..errors import DateeError
from ..http_helpers import json_payload, to_http_exception
from ..schemas import ActivateResponse, ExpiryResponse, MatchPassResponse, SeedResponse
from ..services.engine import MatchEngine
from ..services.seeding import seed_random_users
from ..services.state_machine import activate_user

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])
scaffold_router = APIRouter()


@scaffold_router.get("/health")
def admin_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "admin"}


@router.post("/admin/matches/run", response_model=MatchPassResponse)
async def run_matching(engine: MatchEngine = Depends(get_match_engine)):
    try:
        report = await engine.run_pass()
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    if not report.ok:
        logger.warning("[ADMIN] matching pass finished with failures: %s", [c.cohort for c in report.cohorts if c.error])
    return json_payload(report.as_dict())


@router.post("/admin/matches/expire", response_model=ExpiryResponse)
async def expire_matches(
    ttl_hours: float | None = Query(default=None, gt=0),
    engine: MatchEngine = Depends(get_match_engine),
):
    ttl_seconds = ttl_hours * 3600 if ttl_hours is not None else None
    try:
        expired = await engine.expire_stale_matches(ttl_seconds)
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    return {"expired": len(expired), "match_ids": [m.id for m in expired]}


@router.post("/admin/users/{user_id}/activate", response_model=ActivateResponse)
async def activate(user_id: str, user_store=Depends(get_user_store)):
    try:
        user = await activate_user(user_store, user_id)
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    return {"user_id": user.id, "status": user.status.name}


@router.post("/admin/seed", response_model=SeedResponse)
async def seed(
    count: int = Query(default=10, ge=1, le=500),
    seed_value: int | None = Query(default=None, alias="seed"),
    user_store=Depends(get_user_store),
):
    try:
        users = await seed_random_users(user_store, count, seed=seed_value)
    except DateeError as exc:
        raise to_http_exception(exc) from exc
    return {"created": len(users), "user_ids": [u.id for u in users]}

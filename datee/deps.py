import uuid
from functools import lru_cache

from fastapi import Header, HTTPException

from .config import ADMIN_TOKEN
from .repo import SqlMatchStore, SqlUserStore
from .services.engine import MatchEngine


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def parse_actor_user_id(raw_actor_user_id: str | None) -> str | None:
    if not raw_actor_user_id:
        return None
    value = raw_actor_user_id.strip()
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Actor-User-Id must be a valid UUID")


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)


def require_actor(x_actor_user_id: str | None = Header(default=None)) -> str:
    actor = parse_actor_user_id(x_actor_user_id)
    if not actor:
        raise HTTPException(status_code=401, detail="Missing X-Actor-User-Id header")
    return actor


@lru_cache(maxsize=1)
def get_user_store() -> SqlUserStore:
    return SqlUserStore()


@lru_cache(maxsize=1)
def get_match_store() -> SqlMatchStore:
    return SqlMatchStore()


@lru_cache(maxsize=1)
def get_match_engine() -> MatchEngine:
    # One engine per process so the single-flight lock is shared by all requests.
    return MatchEngine(get_user_store(), get_match_store())

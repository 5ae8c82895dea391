"""
Matching pass orchestration.

A pass expires stale matches, then walks the MM, FF and MF cohorts in order:
select idle users, build the compatibility graph, resolve it greedily. Each
cohort is isolated; one failing cohort is reported and the others still run.
Only one pass or expiry sweep may run at a time per engine.

Store calls are bounded by ``STORE_TIMEOUT_SECONDS``. A timed-out call is not
cancelled in the store's worker thread and may still commit; a match inserted
that way leaves its users IDLE until a later pass picks one of them and marks
both MATCHED.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from ..config import MATCH_TTL_HOURS, STORE_TIMEOUT_SECONDS
from ..entities import COHORTS, Cohort, Edge, Match, User, UserStatus
from ..errors import DateeError, MatchPassInProgress, NotFoundError, StorageError, ValidationError
from ..stores import MatchStore, UserStore
from .matching import build_graph, resolve_matches, select_idle_cohort, validate_user
from .state_machine import can_transition, transition_status

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CohortResult:
    cohort: str
    selected: int = 0
    invalid: int = 0
    edges: int = 0
    matched: int = 0
    skipped: int = 0
    match_ids: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class MatchPassReport:
    started_at: datetime
    finished_at: datetime | None = None
    expired: int = 0
    expiry_error: str | None = None
    cohorts: list[CohortResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.expiry_error is None and all(c.error is None for c in self.cohorts)

    @property
    def matched(self) -> int:
        return sum(c.matched for c in self.cohorts)

    def as_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["ok"] = self.ok
        out["matched"] = self.matched
        return out


class MatchEngine:
    def __init__(
        self,
        user_store: UserStore,
        match_store: MatchStore,
        *,
        ttl_seconds: float = MATCH_TTL_HOURS * 3600,
        store_timeout: float | None = STORE_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _now_utc,
    ) -> None:
        self.user_store = user_store
        self.match_store = match_store
        self.ttl_seconds = ttl_seconds
        self.store_timeout = store_timeout
        self.clock = clock
        self._pass_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._pass_lock.locked()

    async def _call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("[STORE] %s timed out after %ss", op, self.store_timeout)
            raise StorageError(f"Store operation {op} timed out") from exc

    async def _set_status(self, user_id: str, status: UserStatus) -> None:
        await self._call("set_user_status", self.user_store.set_user_status(user_id, status))

    async def _get_user(self, user_id: str) -> User | None:
        return await self._call("get_user", self.user_store.get_user(user_id))

    async def _release(self, user_id: str) -> None:
        user = await self._get_user(user_id)
        if not user:
            logger.warning("[EXPIRY] user %s no longer exists, nothing to release", user_id)
            return
        if not can_transition(user.status, "release"):
            logger.warning("[EXPIRY] user %s is %s, not releasing", user_id, user.status.name)
            return
        try:
            await self._set_status(user_id, transition_status(user.status, "release"))
        except NotFoundError:
            logger.warning("[EXPIRY] user %s no longer exists, nothing to release", user_id)

    async def _deactivate(self, match: Match) -> bool:
        """Deactivate ``match`` and free its users, unless another writer already did."""
        if not await self._call("deactivate_match", self.match_store.deactivate_match(match.id)):
            logger.info("[EXPIRY] match %s is already inactive", match.id)
            return False
        match.active = False
        await self._release(match.user_a)
        await self._release(match.user_b)
        return True

    @contextmanager
    def _single_flight(self) -> Iterator[None]:
        if not self._pass_lock.acquire(blocking=False):
            raise MatchPassInProgress()
        try:
            yield
        finally:
            self._pass_lock.release()

    async def _expire(self, ttl_seconds: float | None) -> list[Match]:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self.clock()
        active = await self._call("find_active_matches", self.match_store.find_active_matches())
        expired: list[Match] = []
        for match in active:
            if not match.active or (now - match.created_at).total_seconds() <= ttl:
                continue
            if await self._deactivate(match):
                expired.append(match)
                logger.info("[EXPIRY] match %s (%s, %s) expired", match.id, match.user_a, match.user_b)
        return expired

    async def expire_stale_matches(self, ttl_seconds: float | None = None) -> list[Match]:
        """Deactivate every active match older than the TTL and free its users.

        Shares the single-flight guard with ``run_pass``.
        """
        with self._single_flight():
            return await self._expire(ttl_seconds)

    async def unmatch(self, user_id: str) -> Match:
        match = await self._call("find_match_for_user", self.match_store.find_match_for_user(user_id))
        if not match or not await self._deactivate(match):
            raise NotFoundError(f"User {user_id} has no active match")
        logger.info("[MATCH] user %s left match %s", user_id, match.id)
        return match

    async def _heal(self, match: Match) -> None:
        # An insert that timed out may still have committed; its users are left IDLE.
        for user_id in (match.user_a, match.user_b):
            user = await self._get_user(user_id)
            if user and can_transition(user.status, "match"):
                logger.warning("[MATCH] user %s is idle but holds active match %s, marking matched", user_id, match.id)
                await self._set_status(user_id, transition_status(user.status, "match"))

    async def _available(self, user_id: str) -> User | None:
        user = await self._get_user(user_id)
        if not user or not can_transition(user.status, "match"):
            return None
        existing = await self._call("find_match_for_user", self.match_store.find_match_for_user(user_id))
        if existing is not None:
            await self._heal(existing)
            return None
        return user

    async def _commit(self, edge: Edge, result: CohortResult) -> bool:
        user_a = await self._available(edge.user_a)
        user_b = await self._available(edge.user_b) if user_a else None
        if not user_a or not user_b:
            result.skipped += 1
            return False
        match = Match(user_a=edge.user_a, user_b=edge.user_b, created_at=self.clock())
        await self._call("insert_match", self.match_store.insert_match(match))
        await self._set_status(user_a.id, transition_status(user_a.status, "match"))
        await self._set_status(user_b.id, transition_status(user_b.status, "match"))
        result.matched += 1
        result.match_ids.append(match.id)
        logger.info("[MATCH] %s matched %s with %s (weight=%.3f)", result.cohort, edge.user_a, edge.user_b, edge.weight)
        return True

    def _valid_users(self, users: list[User], result: CohortResult) -> list[User]:
        out: list[User] = []
        for user in users:
            try:
                validate_user(user)
            except ValidationError as exc:
                result.invalid += 1
                logger.warning("[MATCH] %s dropping user: %s", result.cohort, exc.message)
                continue
            out.append(user)
        return out

    async def run_cohort(self, cohort: Cohort, result: CohortResult | None = None) -> CohortResult:
        result = result or CohortResult(cohort=cohort.name)
        side_a = await self._call("list_idle_users", select_idle_cohort(self.user_store, *cohort.side_a))
        if cohort.symmetric:
            side_b = side_a
        else:
            side_b = await self._call("list_idle_users", select_idle_cohort(self.user_store, *cohort.side_b))
        result.selected = len(side_a) if cohort.symmetric else len(side_a) + len(side_b)

        side_a = self._valid_users(side_a, result)
        side_b = side_a if cohort.symmetric else self._valid_users(side_b, result)
        edges = build_graph(side_a, side_b)
        result.edges = len(edges)

        async def commit(edge: Edge) -> bool:
            return await self._commit(edge, result)

        await resolve_matches(edges, commit)
        return result

    async def run_pass(self) -> MatchPassReport:
        with self._single_flight():
            report = MatchPassReport(started_at=self.clock())
            try:
                report.expired = len(await self._expire(None))
            except DateeError as exc:
                report.expiry_error = exc.message
                logger.error("[EXPIRY] sweep failed: %s", exc.message)

            for cohort in COHORTS:
                result = CohortResult(cohort=cohort.name)
                try:
                    await self.run_cohort(cohort, result)
                except DateeError as exc:
                    result.error = exc.message
                    logger.error("[MATCH] cohort %s failed, remaining edges abandoned: %s", cohort.name, exc.message)
                report.cohorts.append(result)

            report.finished_at = self.clock()
            logger.info(
                "[MATCH] pass finished expired=%s matched=%s ok=%s",
                report.expired,
                report.matched,
                report.ok,
            )
            return report

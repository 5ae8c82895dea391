import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .database import SessionLocal
from .entities import Gender, Match, MatchingPreference, Proposal, Traits, User, UserStatus
from .errors import ConflictError, NotFoundError, StorageError

logger = logging.getLogger(__name__)


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: Any) -> datetime:
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _row_to_user(row: dict[str, Any]) -> User:
    self_assessment = None
    if row.get("self_romance") is not None:
        self_assessment = Traits(
            romance=int(row["self_romance"]),
            openness=int(row["self_openness"]),
            warmheartedness=int(row["self_warmheartedness"]),
        )
    preference = None
    if row.get("pref_gender") is not None:
        preference = MatchingPreference(
            gender=Gender(int(row["pref_gender"])),
            min_age=int(row["pref_min_age"]),
            max_age=int(row["pref_max_age"]),
            traits=Traits(
                romance=int(row["pref_romance"]),
                openness=int(row["pref_openness"]),
                warmheartedness=int(row["pref_warmheartedness"]),
            ),
        )
    return User(
        id=str(row["id"]),
        gender=Gender(int(row["gender"])),
        age=int(row["age"]),
        status=UserStatus(int(row["status"])),
        self_assessment=self_assessment,
        preference=preference,
        email=row.get("email"),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
    )


def _user_params(user: User) -> dict[str, Any]:
    sa = user.self_assessment
    pref = user.preference
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "age": user.age,
        "gender": int(user.gender),
        "status": int(user.status),
        "self_romance": sa.romance if sa else None,
        "self_openness": sa.openness if sa else None,
        "self_warmheartedness": sa.warmheartedness if sa else None,
        "pref_gender": int(pref.gender) if pref else None,
        "pref_min_age": pref.min_age if pref else None,
        "pref_max_age": pref.max_age if pref else None,
        "pref_romance": pref.traits.romance if pref else None,
        "pref_openness": pref.traits.openness if pref else None,
        "pref_warmheartedness": pref.traits.warmheartedness if pref else None,
    }


class _SqlStore:
    def __init__(self, session_factory=SessionLocal) -> None:
        self.session_factory = session_factory

    async def _run(self, op: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.error("[STORE] %s failed: %s", op, exc)
            raise StorageError(f"Store operation {op} failed") from exc


class SqlUserStore(_SqlStore):
    def _list_idle(self, gender: Gender, desired_gender: Gender) -> list[User]:
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT * FROM user_account
                    WHERE status = :status AND gender = :gender AND pref_gender = :pref_gender
                    """
                ),
                {"status": int(UserStatus.IDLE), "gender": int(gender), "pref_gender": int(desired_gender)},
            ).mappings().all()
        return [_row_to_user(dict(r)) for r in rows]

    def _get(self, user_id: str) -> User | None:
        with self.session_factory() as db:
            row = db.execute(text("SELECT * FROM user_account WHERE id = :id"), {"id": user_id}).mappings().first()
        return _row_to_user(dict(row)) if row else None

    def _set_status(self, user_id: str, status: UserStatus) -> None:
        with self.session_factory() as db:
            res = db.execute(
                text("UPDATE user_account SET status = :status WHERE id = :id"),
                {"id": user_id, "status": int(status)},
            )
            db.commit()
        if not res.rowcount:
            raise NotFoundError(f"User {user_id} not found")

    def _create(self, user: User) -> User:
        try:
            with self.session_factory() as db:
                db.execute(
                    text(
                        """
                        INSERT INTO user_account
                        (id, email, first_name, last_name, age, gender, status,
                         self_romance, self_openness, self_warmheartedness,
                         pref_gender, pref_min_age, pref_max_age, pref_romance, pref_openness, pref_warmheartedness)
                        VALUES
                        (:id, :email, :first_name, :last_name, :age, :gender, :status,
                         :self_romance, :self_openness, :self_warmheartedness,
                         :pref_gender, :pref_min_age, :pref_max_age, :pref_romance, :pref_openness, :pref_warmheartedness)
                        """
                    ),
                    _user_params(user),
                )
                db.commit()
        except IntegrityError as exc:
            raise ConflictError("User already exists") from exc
        return user

    async def list_idle_users_by_gender_pair(self, gender: Gender, desired_gender: Gender) -> list[User]:
        return await self._run("list_idle_users_by_gender_pair", self._list_idle, gender, desired_gender)

    async def get_user(self, user_id: str) -> User | None:
        return await self._run("get_user", self._get, user_id)

    async def set_user_status(self, user_id: str, status: UserStatus) -> None:
        await self._run("set_user_status", self._set_status, user_id, status)

    async def create_user(self, user: User) -> User:
        return await self._run("create_user", self._create, user)


class SqlMatchStore(_SqlStore):
    def _load_proposals(self, db, match_ids: list[str]) -> dict[str, list[Proposal]]:
        out: dict[str, list[Proposal]] = {mid: [] for mid in match_ids}
        for mid in match_ids:
            rows = db.execute(
                text(
                    """
                    SELECT proposed_by, proposed_at, location, agreed
                    FROM match_proposal
                    WHERE match_id = :match_id
                    ORDER BY position ASC
                    """
                ),
                {"match_id": mid},
            ).mappings().all()
            out[mid] = [
                Proposal(
                    proposed_by=int(r["proposed_by"]),
                    proposed_at=_from_epoch(r["proposed_at"]),
                    location=str(r["location"]),
                    agreed=bool(r["agreed"]),
                )
                for r in rows
            ]
        return out

    def _hydrate(self, db, rows) -> list[Match]:
        proposals = self._load_proposals(db, [str(r["id"]) for r in rows])
        return [
            Match(
                id=str(r["id"]),
                user_a=str(r["user_a"]),
                user_b=str(r["user_b"]),
                created_at=_from_epoch(r["created_at"]),
                active=bool(r["active"]),
                proposals=proposals[str(r["id"])],
            )
            for r in rows
        ]

    def _fetch(self, db, match_id: str) -> Match | None:
        row = db.execute(text("SELECT * FROM user_match WHERE id = :id"), {"id": match_id}).mappings().first()
        if not row:
            return None
        return self._hydrate(db, [row])[0]

    def _insert_proposal(self, db, match_id: str, position: int, proposal: Proposal) -> None:
        db.execute(
            text(
                """
                INSERT INTO match_proposal (match_id, position, proposed_by, proposed_at, location, agreed)
                VALUES (:match_id, :position, :proposed_by, :proposed_at, :location, :agreed)
                """
            ),
            {
                "match_id": match_id,
                "position": position,
                "proposed_by": proposal.proposed_by,
                "proposed_at": _to_epoch(proposal.proposed_at),
                "location": proposal.location,
                "agreed": proposal.agreed,
            },
        )

    def _insert(self, match: Match) -> Match:
        params = {
            "id": match.id,
            "user_a": match.user_a,
            "user_b": match.user_b,
            "created_at": _to_epoch(match.created_at),
            "active": match.active,
        }
        try:
            with self.session_factory() as db:
                db.execute(
                    text(
                        """
                        INSERT INTO user_match (id, user_a, user_b, created_at, active)
                        VALUES (:id, :user_a, :user_b, :created_at, :active)
                        """
                    ),
                    params,
                )
                for position, proposal in enumerate(match.proposals):
                    self._insert_proposal(db, match.id, position, proposal)
                db.commit()
        except IntegrityError as exc:
            raise ConflictError(f"Match {match.id} already exists") from exc
        return match

    def _deactivate(self, match_id: str) -> bool:
        with self.session_factory() as db:
            res = db.execute(
                text("UPDATE user_match SET active = :inactive WHERE id = :id AND active = :active"),
                {"id": match_id, "active": True, "inactive": False},
            )
            db.commit()
        return bool(res.rowcount)

    def _find_active(self) -> list[Match]:
        with self.session_factory() as db:
            rows = db.execute(
                text("SELECT * FROM user_match WHERE active = :active ORDER BY created_at ASC"),
                {"active": True},
            ).mappings().all()
            return self._hydrate(db, rows)

    def _find_for_user(self, user_id: str) -> Match | None:
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT * FROM user_match
                    WHERE active = :active AND (user_a = :user_id OR user_b = :user_id)
                    ORDER BY created_at DESC
                    """
                ),
                {"active": True, "user_id": user_id},
            ).mappings().all()
            matches = self._hydrate(db, rows[:1])
        return matches[0] if matches else None

    def _get(self, match_id: str) -> Match | None:
        with self.session_factory() as db:
            return self._fetch(db, match_id)

    def _append_proposal(self, match_id: str, proposal: Proposal) -> Match:
        with self.session_factory() as db:
            if not db.execute(text("SELECT 1 FROM user_match WHERE id = :id"), {"id": match_id}).first():
                raise NotFoundError("Match not found")
            row = db.execute(
                text("SELECT COUNT(1) AS c FROM match_proposal WHERE match_id = :match_id"),
                {"match_id": match_id},
            ).mappings().first()
            self._insert_proposal(db, match_id, int(row["c"] or 0), proposal)
            db.commit()
            return self._fetch(db, match_id)

    def _accept_proposal(self, match_id: str, index: int) -> Match:
        with self.session_factory() as db:
            try:
                res = db.execute(
                    text(
                        """
                        UPDATE match_proposal
                        SET agreed = :agreed
                        WHERE match_id = :match_id
                          AND position = :position
                          AND NOT EXISTS (
                            SELECT 1 FROM match_proposal other
                            WHERE other.match_id = :match_id AND other.agreed = :agreed
                          )
                        """
                    ),
                    {"agreed": True, "match_id": match_id, "position": index},
                )
                db.commit()
            except IntegrityError as exc:
                # uq_match_proposal_agreed: at most one agreed proposal per match.
                db.rollback()
                raise ConflictError("A date has already been agreed on for this match") from exc
            if not res.rowcount:
                found = db.execute(
                    text("SELECT 1 FROM match_proposal WHERE match_id = :match_id AND position = :position"),
                    {"match_id": match_id, "position": index},
                ).first()
                if not found:
                    raise NotFoundError("Proposal not found")
                raise ConflictError("A date has already been agreed on for this match")
            return self._fetch(db, match_id)

    async def insert_match(self, match: Match) -> Match:
        return await self._run("insert_match", self._insert, match)

    async def deactivate_match(self, match_id: str) -> bool:
        return await self._run("deactivate_match", self._deactivate, match_id)

    async def find_active_matches(self) -> list[Match]:
        return await self._run("find_active_matches", self._find_active)

    async def find_match_for_user(self, user_id: str) -> Match | None:
        return await self._run("find_match_for_user", self._find_for_user, user_id)

    async def get_match(self, match_id: str) -> Match | None:
        return await self._run("get_match", self._get, match_id)

    async def append_proposal(self, match_id: str, proposal: Proposal) -> Match:
        return await self._run("append_proposal", self._append_proposal, match_id, proposal)

    async def accept_proposal(self, match_id: str, index: int) -> Match:
        return await self._run("accept_proposal", self._accept_proposal, match_id, index)

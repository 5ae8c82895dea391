"""
Store interfaces consumed by the matching engine.

The engine never reaches a database directly; it is handed a user store and a
match store at construction. ``datee.repo`` holds the SQL implementations.
"""

from __future__ import annotations

from typing import Protocol

from .entities import Gender, Match, Proposal, User, UserStatus


class UserStore(Protocol):
    async def list_idle_users_by_gender_pair(self, gender: Gender, desired_gender: Gender) -> list[User]:
        ...

    async def set_user_status(self, user_id: str, status: UserStatus) -> None:
        ...

    async def get_user(self, user_id: str) -> User | None:
        ...

    async def create_user(self, user: User) -> User:
        ...


class MatchStore(Protocol):
    async def insert_match(self, match: Match) -> Match:
        ...

    async def deactivate_match(self, match_id: str) -> bool:
        """Flip an active match to inactive. False if it was already inactive or missing."""
        ...

    async def find_active_matches(self) -> list[Match]:
        ...

    async def find_match_for_user(self, user_id: str) -> Match | None:
        ...

    async def get_match(self, match_id: str) -> Match | None:
        ...

    async def append_proposal(self, match_id: str, proposal: Proposal) -> Match:
        ...

    async def accept_proposal(self, match_id: str, index: int) -> Match:
        ...

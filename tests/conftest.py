import copy

import pytest

from datee.entities import Gender, Match, Proposal, User, UserStatus
from datee.errors import ConflictError, NotFoundError


class InMemoryUserStore:
    def __init__(self, users=None):
        self.users: dict[str, User] = {}
        for user in users or []:
            self.users[user.id] = copy.deepcopy(user)

    async def list_idle_users_by_gender_pair(self, gender: Gender, desired_gender: Gender) -> list[User]:
        return [
            copy.deepcopy(u)
            for u in self.users.values()
            if u.status == UserStatus.IDLE and u.gender == gender and u.preference and u.preference.gender == desired_gender
        ]

    async def get_user(self, user_id: str) -> User | None:
        user = self.users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def set_user_status(self, user_id: str, status: UserStatus) -> None:
        if user_id not in self.users:
            raise NotFoundError(f"User {user_id} not found")
        self.users[user_id].status = status

    async def create_user(self, user: User) -> User:
        if user.id in self.users:
            raise ConflictError("User already exists")
        self.users[user.id] = copy.deepcopy(user)
        return user

    def status_of(self, user_id: str) -> UserStatus:
        return self.users[user_id].status


class InMemoryMatchStore:
    def __init__(self, matches=None):
        self.matches: dict[str, Match] = {}
        self.insert_calls = 0
        self.deactivate_calls = 0
        for match in matches or []:
            self.matches[match.id] = copy.deepcopy(match)

    async def insert_match(self, match: Match) -> Match:
        self.insert_calls += 1
        if match.id in self.matches:
            raise ConflictError(f"Match {match.id} already exists")
        self.matches[match.id] = copy.deepcopy(match)
        return match

    async def deactivate_match(self, match_id: str) -> bool:
        self.deactivate_calls += 1
        match = self.matches.get(match_id)
        if not match or not match.active:
            return False
        match.active = False
        return True

    async def find_active_matches(self) -> list[Match]:
        return [copy.deepcopy(m) for m in self.matches.values() if m.active]

    async def find_match_for_user(self, user_id: str) -> Match | None:
        for m in self.matches.values():
            if m.active and m.involves(user_id):
                return copy.deepcopy(m)
        return None

    async def get_match(self, match_id: str) -> Match | None:
        match = self.matches.get(match_id)
        return copy.deepcopy(match) if match else None

    async def append_proposal(self, match_id: str, proposal: Proposal) -> Match:
        if match_id not in self.matches:
            raise NotFoundError("Match not found")
        self.matches[match_id].proposals.append(copy.deepcopy(proposal))
        return copy.deepcopy(self.matches[match_id])

    async def accept_proposal(self, match_id: str, index: int) -> Match:
        match = self.matches.get(match_id)
        if not match or index >= len(match.proposals):
            raise NotFoundError("Proposal not found")
        if match.agreed_proposal():
            raise ConflictError("A date has already been agreed on for this match")
        match.proposals[index].agreed = True
        return copy.deepcopy(match)

    def active_for(self, user_id: str) -> list[Match]:
        return [m for m in self.matches.values() if m.active and m.involves(user_id)]


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def match_store():
    return InMemoryMatchStore()

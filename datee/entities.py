from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


class Gender(IntEnum):
    MALE = 0
    FEMALE = 1


class UserStatus(IntEnum):
    """Lifecycle of a user. Only IDLE users are considered for matching."""

    REGISTERED = 0
    PHOTO_UPLOADED = 1
    SELF_ASSESSMENT_DONE = 2
    MATCHING_PREFERENCES_SET = 3
    IDLE = 4
    MATCHED = 5


@dataclass(frozen=True)
class Traits:
    romance: int
    openness: int
    warmheartedness: int


@dataclass(frozen=True)
class MatchingPreference:
    gender: Gender
    min_age: int
    max_age: int
    traits: Traits

    def accepts_age(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


@dataclass
class User:
    id: str
    gender: Gender
    age: int
    status: UserStatus = UserStatus.REGISTERED
    self_assessment: Traits | None = None
    preference: MatchingPreference | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


@dataclass
class Proposal:
    # 1 or 2: position of the proposer in the match
    proposed_by: int
    proposed_at: datetime
    location: str
    agreed: bool = False


@dataclass
class Match:
    user_a: str
    user_b: str
    created_at: datetime
    active: bool = True
    proposals: list[Proposal] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_a, self.user_b)

    def position_of(self, user_id: str) -> int:
        if user_id == self.user_a:
            return 1
        if user_id == self.user_b:
            return 2
        raise ValueError(f"user {user_id} is not part of match {self.id}")

    def partner_of(self, user_id: str) -> str:
        return self.user_b if self.position_of(user_id) == 1 else self.user_a

    def agreed_proposal(self) -> Proposal | None:
        for proposal in self.proposals:
            if proposal.agreed:
                return proposal
        return None


@dataclass(frozen=True)
class Edge:
    user_a: str
    user_b: str
    weight: float

    def touches(self, user_id: str) -> bool:
        return user_id == self.user_a or user_id == self.user_b


@dataclass(frozen=True)
class Cohort:
    """A matching pool: side A users are paired with side B users.

    Symmetric cohorts (MM, FF) use the same gender pair on both sides.
    """

    name: str
    side_a: tuple[Gender, Gender]
    side_b: tuple[Gender, Gender]

    @property
    def symmetric(self) -> bool:
        return self.side_a == self.side_b


COHORTS: tuple[Cohort, ...] = (
    Cohort("MM", (Gender.MALE, Gender.MALE), (Gender.MALE, Gender.MALE)),
    Cohort("FF", (Gender.FEMALE, Gender.FEMALE), (Gender.FEMALE, Gender.FEMALE)),
    Cohort("MF", (Gender.MALE, Gender.FEMALE), (Gender.FEMALE, Gender.MALE)),
)

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable, Sequence

from ..config import TRAIT_MAX, TRAIT_MIN
from ..entities import Edge, Gender, User, UserStatus
from ..errors import ValidationError
from ..stores import UserStore

logger = logging.getLogger(__name__)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return tuple(sorted((user_a, user_b)))


def is_onboarded(user: User) -> bool:
    return user.self_assessment is not None and user.preference is not None


def _check_trait(user_id: str, label: str, value: int) -> None:
    if not isinstance(value, int) or value < TRAIT_MIN or value > TRAIT_MAX:
        raise ValidationError(f"User {user_id} has {label}={value!r}, expected an integer within [{TRAIT_MIN}, {TRAIT_MAX}]")


def validate_user(user: User) -> None:
    """Reject users that cannot take part in graph construction."""
    if not is_onboarded(user):
        raise ValidationError(f"User {user.id} has not finished onboarding")
    pref = user.preference
    if pref.min_age > pref.max_age:
        raise ValidationError(
            f"User {user.id} has an empty age range [{pref.min_age}, {pref.max_age}]",
            hint="min_age must not exceed max_age",
        )
    for label, traits in (("self", user.self_assessment), ("pref", pref.traits)):
        _check_trait(user.id, f"{label}.romance", traits.romance)
        _check_trait(user.id, f"{label}.openness", traits.openness)
        _check_trait(user.id, f"{label}.warmheartedness", traits.warmheartedness)


def age_compatible(u: User, v: User) -> bool:
    # Both sides must accept the other's age.
    return u.preference.accepts_age(v.age) and v.preference.accepts_age(u.age)


def compute_distance(u: User, v: User) -> float:
    """Euclidean distance between what each user is and what the other wants.

    Lower is better. Combines how well ``u`` fits ``v``'s stated preference
    with how well ``v`` fits ``u``'s.
    """
    u_self, v_self = u.self_assessment, v.self_assessment
    u_pref, v_pref = u.preference.traits, v.preference.traits
    sq = (
        (u_self.openness - v_pref.openness) ** 2
        + (u_self.romance - v_pref.romance) ** 2
        + (u_self.warmheartedness - v_pref.warmheartedness) ** 2
        + (v_self.openness - u_pref.openness) ** 2
        + (v_self.romance - u_pref.romance) ** 2
        + (v_self.warmheartedness - u_pref.warmheartedness) ** 2
    )
    return math.sqrt(sq)


def build_graph(group_a: Sequence[User], group_b: Sequence[User]) -> list[Edge]:
    """Weighted edges for every age-compatible pair, ascending by weight.

    Each unordered pair yields at most one edge, so passing the same cohort
    twice (MM, FF) does not produce (u, v) and (v, u). Ties keep input order.
    """
    seen: set[tuple[str, str]] = set()
    edges: list[Edge] = []
    for u in group_a:
        for v in group_b:
            if u.id == v.id:
                continue
            pair_key = canonical_pair(u.id, v.id)
            if pair_key in seen:
                continue
            seen.add(pair_key)
            if not age_compatible(u, v):
                continue
            edges.append(Edge(user_a=u.id, user_b=v.id, weight=compute_distance(u, v)))
    edges.sort(key=lambda e: e.weight)
    return edges


def _eliminate(edges: list[Edge], user_a: str, user_b: str) -> list[Edge]:
    return [e for e in edges if not (e.touches(user_a) or e.touches(user_b))]


async def resolve_matches(edges: list[Edge], commit: Callable[[Edge], Awaitable[bool]]) -> list[Edge]:
    """Commit matches greedily, best edge first.

    Not a maximum-weight matching; the lowest-weight edge always wins and
    there is no backtracking.

    ``commit`` returns False when the pair can no longer be matched (one side
    was taken in the meantime); only that edge is dropped. Exceptions from
    ``commit`` propagate and abandon the remaining edges. ``edges`` is not
    mutated.
    """
    remaining = list(edges)
    committed: list[Edge] = []
    while remaining:
        best = remaining[0]
        if not await commit(best):
            logger.info("[MATCH] skipped stale edge %s-%s", best.user_a, best.user_b)
            remaining = remaining[1:]
            continue
        committed.append(best)
        remaining = _eliminate(remaining[1:], best.user_a, best.user_b)
    return committed


async def select_idle_cohort(user_store: UserStore, gender: Gender, desired_gender: Gender) -> list[User]:
    users = await user_store.list_idle_users_by_gender_pair(gender, desired_gender)
    out: list[User] = []
    for user in users:
        if user.status != UserStatus.IDLE or user.gender != gender:
            continue
        if not is_onboarded(user) or user.preference.gender != desired_gender:
            continue
        out.append(user)
    return out

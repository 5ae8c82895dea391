import asyncio
import math

import pytest

from datee.entities import Edge, Gender, MatchingPreference, Traits, User, UserStatus
from datee.errors import ValidationError
from datee.services.matching import (
    age_compatible,
    build_graph,
    canonical_pair,
    compute_distance,
    resolve_matches,
    select_idle_cohort,
    validate_user,
)


def _user(
    user_id: str,
    age: int = 30,
    min_age: int = 18,
    max_age: int = 59,
    gender: Gender = Gender.MALE,
    wants: Gender = Gender.MALE,
    self_traits: tuple[int, int, int] = (3, 3, 3),
    pref_traits: tuple[int, int, int] = (3, 3, 3),
    status: UserStatus = UserStatus.IDLE,
) -> User:
    """Traits tuples are (openness, romance, warmheartedness)."""
    so, sr, sw = self_traits
    po, pr, pw = pref_traits
    return User(
        id=user_id,
        gender=gender,
        age=age,
        status=status,
        self_assessment=Traits(romance=sr, openness=so, warmheartedness=sw),
        preference=MatchingPreference(
            gender=wants,
            min_age=min_age,
            max_age=max_age,
            traits=Traits(romance=pr, openness=po, warmheartedness=pw),
        ),
    )


def _resolve_all(edges: list[Edge]) -> list[Edge]:
    async def accept(edge):
        return True

    return asyncio.run(resolve_matches(sorted(edges, key=lambda e: e.weight), accept))


def test_distance_example_is_two():
    u = _user("u", self_traits=(3, 2, 4), pref_traits=(2, 2, 2))
    v = _user("v", self_traits=(2, 2, 2), pref_traits=(3, 2, 4))
    assert compute_distance(u, v) == pytest.approx(2.0)
    assert compute_distance(v, u) == pytest.approx(2.0)


def test_distance_perfect_fit_is_zero():
    u = _user("u", self_traits=(1, 5, 2), pref_traits=(4, 4, 4))
    v = _user("v", self_traits=(4, 4, 4), pref_traits=(1, 5, 2))
    assert compute_distance(u, v) == 0.0


def test_distance_uses_all_six_dimensions():
    u = _user("u", self_traits=(1, 1, 1), pref_traits=(1, 1, 1))
    v = _user("v", self_traits=(5, 5, 5), pref_traits=(5, 5, 5))
    assert compute_distance(u, v) == pytest.approx(math.sqrt(6 * 16))


def test_age_gate_requires_both_sides():
    u = _user("u", age=25, min_age=20, max_age=30)
    v = _user("v", age=28, min_age=30, max_age=40)
    # u accepts v, v does not accept u
    assert u.preference.accepts_age(v.age)
    assert age_compatible(u, v) is False
    assert age_compatible(v, u) is False


def test_age_gate_bounds_are_inclusive():
    u = _user("u", age=20, min_age=30, max_age=30)
    v = _user("v", age=30, min_age=20, max_age=20)
    assert age_compatible(u, v) is True


def test_build_graph_never_pairs_user_with_itself():
    users = [_user("a"), _user("b"), _user("c")]
    edges = build_graph(users, users)
    assert all(e.user_a != e.user_b for e in edges)


def test_build_graph_symmetric_cohort_has_one_edge_per_pair():
    users = [_user("a"), _user("b"), _user("c"), _user("d")]
    edges = build_graph(users, users)
    pairs = [canonical_pair(e.user_a, e.user_b) for e in edges]
    assert len(pairs) == len(set(pairs)) == 6


def test_build_graph_sorted_ascending():
    users = [
        _user("a", self_traits=(1, 1, 1), pref_traits=(5, 5, 5)),
        _user("b", self_traits=(5, 5, 5), pref_traits=(1, 1, 1)),
        _user("c", self_traits=(3, 3, 3), pref_traits=(3, 3, 3)),
    ]
    edges = build_graph(users, users)
    weights = [e.weight for e in edges]
    assert weights == sorted(weights)
    assert canonical_pair(edges[0].user_a, edges[0].user_b) == ("a", "b")


def test_mm_scenario_only_age_compatible_pair_gets_an_edge():
    a = _user("A", age=25, min_age=20, max_age=30)
    b = _user("B", age=28, min_age=22, max_age=35)
    c = _user("C", age=40, min_age=35, max_age=45)
    edges = build_graph([a, b, c], [a, b, c])
    assert [(e.user_a, e.user_b) for e in edges] == [("A", "B")]


def test_bipartite_graph_pairs_across_sides_only():
    men = [_user("m1", wants=Gender.FEMALE), _user("m2", wants=Gender.FEMALE)]
    women = [_user("w1", gender=Gender.FEMALE), _user("w2", gender=Gender.FEMALE)]
    edges = build_graph(men, women)
    assert len(edges) == 4
    assert all(e.user_a.startswith("m") and e.user_b.startswith("w") for e in edges)


def test_greedy_never_reuses_a_user():
    edges = [
        Edge("a", "b", 1.0),
        Edge("a", "c", 0.5),
        Edge("b", "d", 2.0),
        Edge("c", "d", 0.7),
        Edge("b", "c", 3.0),
    ]
    chosen = _resolve_all(edges)
    seen: list[str] = []
    for e in chosen:
        seen.extend([e.user_a, e.user_b])
    assert len(seen) == len(set(seen))
    assert [(e.user_a, e.user_b) for e in chosen] == [("a", "c"), ("b", "d")]


def test_greedy_is_not_globally_optimal():
    # Taking the single best edge blocks two decent ones; greedy keeps it anyway.
    edges = [Edge("a", "b", 0.1), Edge("a", "c", 0.2), Edge("b", "d", 0.2)]
    chosen = _resolve_all(edges)
    assert [(e.user_a, e.user_b) for e in chosen] == [("a", "b")]


def test_resolve_on_empty_list_is_noop():
    assert asyncio.run(resolve_matches([], commit=None)) == []


def test_resolve_matches_commits_in_ascending_order():
    edges = [Edge("a", "b", 0.5), Edge("c", "d", 1.5), Edge("e", "f", 1.0)]
    order: list[tuple[str, str]] = []

    async def commit(edge):
        order.append((edge.user_a, edge.user_b))
        return True

    committed = asyncio.run(resolve_matches(sorted(edges, key=lambda e: e.weight), commit))
    assert order == [("a", "b"), ("e", "f"), ("c", "d")]
    assert len(committed) == 3


def test_resolve_matches_skips_rejected_edge_only():
    edges = [Edge("a", "b", 0.1), Edge("a", "c", 0.2), Edge("b", "c", 0.3)]

    async def commit(edge):
        return (edge.user_a, edge.user_b) != ("a", "b")

    committed = asyncio.run(resolve_matches(edges, commit))
    assert [(e.user_a, e.user_b) for e in committed] == [("a", "c")]


def test_resolve_matches_propagates_commit_errors():
    edges = [Edge("a", "b", 0.1), Edge("c", "d", 0.2)]
    seen: list[str] = []

    async def commit(edge):
        seen.append(edge.user_a)
        raise RuntimeError("insert failed")

    with pytest.raises(RuntimeError):
        asyncio.run(resolve_matches(edges, commit))
    assert seen == ["a"]
    assert len(edges) == 2


def test_validate_user_rejects_empty_age_range():
    with pytest.raises(ValidationError):
        validate_user(_user("x", min_age=40, max_age=30))


def test_validate_user_rejects_out_of_range_traits():
    with pytest.raises(ValidationError):
        validate_user(_user("x", self_traits=(0, 3, 3)))
    with pytest.raises(ValidationError):
        validate_user(_user("x", pref_traits=(3, 6, 3)))


def test_validate_user_requires_onboarding():
    user = User(id="x", gender=Gender.MALE, age=30, status=UserStatus.IDLE)
    with pytest.raises(ValidationError):
        validate_user(user)


def test_select_idle_cohort_filters_exact_gender_pair():
    class _Store:
        async def list_idle_users_by_gender_pair(self, gender, desired_gender):
            return [
                _user("ok", gender=Gender.FEMALE, wants=Gender.MALE),
                _user("wrong_pref", gender=Gender.FEMALE, wants=Gender.FEMALE),
                _user("matched", gender=Gender.FEMALE, wants=Gender.MALE, status=UserStatus.MATCHED),
                User(id="incomplete", gender=Gender.FEMALE, age=30, status=UserStatus.IDLE),
            ]

    users = asyncio.run(select_idle_cohort(_Store(), Gender.FEMALE, Gender.MALE))
    assert [u.id for u in users] == ["ok"]

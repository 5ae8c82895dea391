import random
import uuid

from ..config import MAX_AGE, MIN_AGE, TRAIT_MAX, TRAIT_MIN
from ..entities import Gender, MatchingPreference, Traits, User, UserStatus
from ..stores import UserStore

FIRST_NAMES = ["Alex", "Sam", "Robin", "Kim", "Jordan", "Taylor", "Morgan", "Casey", "Jamie", "Riley"]


def _likert(rng: random.Random) -> int:
    return rng.randint(TRAIT_MIN, TRAIT_MAX)


def _traits(rng: random.Random) -> Traits:
    return Traits(romance=_likert(rng), openness=_likert(rng), warmheartedness=_likert(rng))


def random_user(rng: random.Random) -> User:
    token = uuid.UUID(int=rng.getrandbits(128)).hex[:10]
    min_age = rng.randrange(MIN_AGE, MAX_AGE)
    max_age = min_age + rng.randrange(0, MAX_AGE - min_age)
    return User(
        id=str(uuid.UUID(int=rng.getrandbits(128))),
        email=f"{token}@example.com",
        first_name=rng.choice(FIRST_NAMES),
        last_name="Example",
        age=rng.randrange(MIN_AGE, MAX_AGE),
        gender=rng.choice([Gender.MALE, Gender.FEMALE]),
        status=UserStatus.IDLE,
        self_assessment=_traits(rng),
        preference=MatchingPreference(
            gender=rng.choice([Gender.MALE, Gender.FEMALE]),
            min_age=min_age,
            max_age=max_age,
            traits=_traits(rng),
        ),
    )


async def seed_random_users(user_store: UserStore, count: int, seed: int | None = None) -> list[User]:
    """Insert ``count`` fully onboarded idle users with random traits."""
    rng = random.Random(seed)
    created: list[User] = []
    for _ in range(max(0, int(count))):
        created.append(await user_store.create_user(random_user(rng)))
    return created

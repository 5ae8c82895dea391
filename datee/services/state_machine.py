import logging

from ..entities import User, UserStatus
from ..errors import NotFoundError, ValidationError
from ..stores import UserStore

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[str, tuple[UserStatus, UserStatus]] = {
    "photo_uploaded": (UserStatus.REGISTERED, UserStatus.PHOTO_UPLOADED),
    "self_assessment_done": (UserStatus.PHOTO_UPLOADED, UserStatus.SELF_ASSESSMENT_DONE),
    "preferences_set": (UserStatus.SELF_ASSESSMENT_DONE, UserStatus.MATCHING_PREFERENCES_SET),
    "activate": (UserStatus.MATCHING_PREFERENCES_SET, UserStatus.IDLE),
    "match": (UserStatus.IDLE, UserStatus.MATCHED),
    "release": (UserStatus.MATCHED, UserStatus.IDLE),
}


def transition_status(current: UserStatus, action: str) -> UserStatus:
    edge = _TRANSITIONS.get(action)
    if edge is None:
        return current
    source, target = edge
    if current in (source, target):
        return target
    return current


def can_transition(current: UserStatus, action: str) -> bool:
    edge = _TRANSITIONS.get(action)
    return edge is not None and current == edge[0]


async def activate_user(user_store: UserStore, user_id: str) -> User:
    """Admin approval: a user who finished onboarding becomes matchable."""
    user = await user_store.get_user(user_id)
    if not user:
        raise NotFoundError("User not found")
    if not can_transition(user.status, "activate"):
        raise ValidationError(f"Invalid state for approval: {user.status.name}")
    await user_store.set_user_status(user.id, UserStatus.IDLE)
    user.status = UserStatus.IDLE
    logger.info("[ADMIN] activated user %s", user.id)
    return user

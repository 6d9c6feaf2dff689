"""
Identity provider backed by the users listed in the configuration file.
"""

from typing import Dict, Iterable, List, Optional

from ..config import UserEntry
from ..domain.models import UserProfile


class ConfiguredUserDirectory:
    """
    Resolves user ids to display profiles.

    Read-only; profiles only decorate listings and never influence the
    swap rules themselves.
    """

    def __init__(self, users: Iterable[UserEntry]):
        self._profiles: Dict[str, UserProfile] = {
            user.id: UserProfile(id=user.id, name=user.name, email=user.email)
            for user in users
        }

    def resolve_user(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    def all_users(self) -> List[UserProfile]:
        return sorted(self._profiles.values(), key=lambda profile: profile.name.lower())

"""Directory Service - User lookups for display and assignment"""
from typing import Any, Dict, Iterable

from ..repositories.directory_repo import DirectoryRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryService:
    """Service for directory operations backed by the users/departments collections"""

    def __init__(self):
        self.repo = DirectoryRepository()

    def get_display_info(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Display info for a set of users, keyed by user_id

        Users missing from the directory still get an entry so views can
        render them.
        """
        ids = list(dict.fromkeys(u for u in user_ids if u))
        found = {u.user_id: u for u in self.repo.get_users(ids)}

        info = {}
        for user_id in ids:
            user = found.get(user_id)
            info[user_id] = {
                "user_id": user_id,
                "display_name": user.display_name if user else user_id,
                "email": user.email if user else None,
                "is_active": user.is_active if user else False,
            }
        return info

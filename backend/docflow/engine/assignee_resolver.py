"""Assignee Resolver - Expands a step's assignee specs into user IDs"""
from typing import List, Optional, Sequence

from ..domain.models import AssigneeSpec, UserAssignee, RoleAssignee, DynamicAssignee
from ..domain.enums import DynamicRule
from ..repositories.directory_repo import DirectoryRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AssigneeResolver:
    """
    Resolve assignee specs against the user directory

    Membership is looked up fresh on every call. Unknown or inactive users
    are dropped, and the result keeps order of first appearance with
    duplicates removed. An empty result is valid.
    """

    def __init__(self, directory_repo: Optional[DirectoryRepository] = None):
        self.directory_repo = directory_repo or DirectoryRepository()

    def resolve(self, specs: Sequence[AssigneeSpec]) -> List[str]:
        resolved: List[str] = []
        for spec in specs:
            for user_id in self._resolve_one(spec):
                if user_id not in resolved:
                    resolved.append(user_id)
        return resolved

    def _resolve_one(self, spec: AssigneeSpec) -> List[str]:
        if isinstance(spec, UserAssignee):
            return self._active_user(spec.user_id)

        if isinstance(spec, RoleAssignee):
            return [u.user_id for u in self.directory_repo.list_active_users_by_role(spec.role)]

        if isinstance(spec, DynamicAssignee):
            if spec.rule == DynamicRule.DEPARTMENT:
                return [u.user_id for u in self.directory_repo.list_active_users_by_department(spec.value)]

            if spec.rule == DynamicRule.DEPARTMENT_HEAD:
                department = self.directory_repo.get_department(spec.value)
                if not department or not department.head_user_id:
                    logger.warning(f"Department '{spec.value}' has no head configured")
                    return []
                return self._active_user(department.head_user_id)

        logger.warning(f"Unsupported assignee spec: {spec!r}")
        return []

    def _active_user(self, user_id: str) -> List[str]:
        user = self.directory_repo.get_user(user_id)
        if not user or not user.is_active:
            logger.info(f"Dropping unknown or inactive assignee {user_id}", extra={"user_id": user_id})
            return []
        return [user.user_id]

"""Directory Repository - Users and departments"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import DirectoryUser, Department
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryRepository:
    """Repository for the user/role directory"""

    def __init__(self):
        self._users: Collection = get_collection("users")
        self._departments: Collection = get_collection("departments")

    # =========================================================================
    # Users
    # =========================================================================

    def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        """Get user by ID, active or not"""
        doc = self._users.find_one({"user_id": user_id})
        if doc:
            doc.pop("_id", None)
            return DirectoryUser.model_validate(doc)
        return None

    def get_users(self, user_ids: List[str]) -> List[DirectoryUser]:
        """Get several users by ID"""
        if not user_ids:
            return []
        users = []
        for doc in self._users.find({"user_id": {"$in": list(user_ids)}}):
            doc.pop("_id", None)
            users.append(DirectoryUser.model_validate(doc))
        return users

    def list_active_users_by_role(self, role: str) -> List[DirectoryUser]:
        """Active users holding a role, in a stable order"""
        cursor = self._users.find({"role": role, "is_active": True}).sort("user_id", ASCENDING)
        users = []
        for doc in cursor:
            doc.pop("_id", None)
            users.append(DirectoryUser.model_validate(doc))
        return users

    def list_active_users_by_department(self, department: str) -> List[DirectoryUser]:
        """Active members of a department, in a stable order"""
        cursor = self._users.find({"department": department, "is_active": True}).sort("user_id", ASCENDING)
        users = []
        for doc in cursor:
            doc.pop("_id", None)
            users.append(DirectoryUser.model_validate(doc))
        return users

    def save_user(self, user: DirectoryUser) -> DirectoryUser:
        """Insert or replace a user"""
        doc = user.model_dump(mode="json")
        doc["_id"] = user.user_id
        self._users.replace_one({"_id": user.user_id}, doc, upsert=True)
        return user

    # =========================================================================
    # Departments
    # =========================================================================

    def get_department(self, name: str) -> Optional[Department]:
        """Get department by name"""
        doc = self._departments.find_one({"name": name})
        if doc:
            doc.pop("_id", None)
            return Department.model_validate(doc)
        return None

    def save_department(self, department: Department) -> Department:
        """Insert or replace a department"""
        doc = department.model_dump(mode="json")
        doc["_id"] = department.name
        self._departments.replace_one({"_id": department.name}, doc, upsert=True)
        return department

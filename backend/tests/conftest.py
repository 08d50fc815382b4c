"""
Pytest Configuration and Fixtures

MongoDB is replaced by mongomock for every test, and the directory,
documents and workflows are seeded through the repositories.
"""

import os
import tempfile

# Settings are read once at import time, so the test environment must be
# in place before anything from docflow is imported.
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_AUDIENCE"] = ""
os.environ["MONGO_DB"] = "docflow_test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOGS_PATH"] = os.path.join(tempfile.gettempdir(), "docflow-test-logs")

import mongomock
import pytest
from typing import Any, Dict, List, Optional

from docflow.config.settings import settings
from docflow.repositories import mongo_client
from docflow.repositories.directory_repo import DirectoryRepository
from docflow.repositories.document_repo import DocumentRepository
from docflow.repositories.workflow_repo import WorkflowRepository
from docflow.domain.models import (
    DirectoryUser, Department, Document, WorkflowTemplate
)
from docflow.engine.engine import WorkflowEngine
from docflow.utils.time import utc_now


# user_id, role, department, is_active
DIRECTORY_USERS = [
    ("u-alice", "admin", "Legal", True),
    ("u-lena", "legal", "Legal", True),
    ("u-liam", "legal", "Legal", True),
    ("u-ivy", "legal", "Legal", False),
    ("u-fiona", "finance", "Finance", True),
    ("u-frank", "finance", "Finance", True),
    ("u-fred", "finance", "Finance", True),
    ("u-sam", "sales", "Sales", True),
    ("u-olga", "sales", "Sales", True),
]

DEPARTMENTS = [
    ("Legal", "u-lena"),
    ("Finance", "u-fiona"),
    ("Sales", "u-ivy"),
    ("Marketing", None),
]


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Fresh in-memory database per test"""
    client = mongomock.MongoClient()
    monkeypatch.setattr(mongo_client, "_client", client)
    monkeypatch.setattr(mongo_client, "_database", None)
    mongo_client.create_indexes()
    return client[settings.mongo_db]


@pytest.fixture
def directory(db):
    repo = DirectoryRepository()
    for user_id, role, department, is_active in DIRECTORY_USERS:
        repo.save_user(DirectoryUser(
            user_id=user_id,
            display_name=user_id[2:].title(),
            email=f"{user_id[2:]}@example.com",
            role=role,
            department=department,
            is_active=is_active,
        ))
    for name, head in DEPARTMENTS:
        repo.save_department(Department(name=name, head_user_id=head))
    return repo


@pytest.fixture
def make_document(db):
    def _make(
        document_id: str = "DOC-1",
        classification: Optional[str] = None,
        submitted_by: Optional[str] = "u-sam",
        title: str = "Supplier Contract"
    ) -> Document:
        now = utc_now()
        return DocumentRepository().save_document(Document(
            document_id=document_id,
            title=title,
            classification=classification,
            submitted_by=submitted_by,
            created_at=now,
            updated_at=now,
        ))
    return _make


@pytest.fixture
def make_workflow(db):
    def _make(
        steps: List[Dict[str, Any]],
        workflow_id: str = "WF-test",
        trigger_value: Optional[str] = None,
        priority: int = 0,
        is_active: bool = True
    ) -> WorkflowTemplate:
        now = utc_now()
        template = WorkflowTemplate.model_validate({
            "workflow_id": workflow_id,
            "name": f"Workflow {workflow_id}",
            "trigger_type": "classification" if trigger_value else "manual",
            "trigger_value": trigger_value,
            "priority": priority,
            "is_active": is_active,
            "steps": steps,
            "created_at": now,
            "updated_at": now,
        })
        return WorkflowRepository().save_workflow(template)
    return _make


@pytest.fixture
def engine(directory):
    return WorkflowEngine()

"""
Seed Data Script - Creates a sample directory, document and workflow
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from docflow.repositories.mongo_client import get_collection, create_indexes
from docflow.repositories.directory_repo import DirectoryRepository
from docflow.repositories.document_repo import DocumentRepository
from docflow.domain.models import DirectoryUser, Department, Document
from docflow.domain.errors import WorkflowValidationError
from docflow.services.workflow_service import WorkflowService
from docflow.utils.time import utc_now

SAMPLE_WORKFLOW_ID = "WF-contract-review"
SAMPLE_DOCUMENT_ID = "DOC-sample-contract"

USERS = [
    ("u-alice", "Alice Admin", "admin", "Legal"),
    ("u-lena", "Lena Lawyer", "legal", "Legal"),
    ("u-liam", "Liam Lawyer", "legal", "Legal"),
    ("u-fiona", "Fiona Finance", "finance", "Finance"),
    ("u-frank", "Frank Finance", "finance", "Finance"),
    ("u-sam", "Sam Submitter", "staff", "Sales"),
]

DEPARTMENTS = [
    ("Legal", "u-lena"),
    ("Finance", "u-fiona"),
    ("Sales", "u-sam"),
]


def seed_directory():
    repo = DirectoryRepository()
    for user_id, name, role, department in USERS:
        repo.save_user(DirectoryUser(
            user_id=user_id,
            display_name=name,
            email=f"{user_id[2:]}@example.com",
            role=role,
            department=department,
        ))
    for name, head in DEPARTMENTS:
        repo.save_department(Department(name=name, head_user_id=head))
    print(f"Seeded {len(USERS)} users and {len(DEPARTMENTS)} departments")


def seed_workflow():
    now = utc_now()
    definition = {
        "workflow_id": SAMPLE_WORKFLOW_ID,
        "name": "Contract Review",
        "description": "Legal review followed by finance sign-off.",
        "type": "approval",
        "trigger_type": "classification",
        "trigger_value": "contract",
        "priority": 10,
        "steps": [
            {
                "step_id": "legal_review",
                "name": "Legal Review",
                "step_order": 1,
                "step_type": "review",
                "is_required": True,
                "requires_all_assignees": False,
                "timeout_hours": 48,
                "assignees": [{"kind": "role", "role": "legal"}],
            },
            {
                "step_id": "finance_signoff",
                "name": "Finance Sign-off",
                "step_order": 2,
                "is_required": True,
                "requires_all_assignees": True,
                "timeout_hours": 24,
                "assignees": [
                    {"kind": "dynamic", "rule": "department_head", "value": "Finance"},
                    {"kind": "user", "user_id": "u-frank"},
                ],
            },
        ],
        "created_at": now,
        "updated_at": now,
    }

    try:
        workflow = WorkflowService().save_workflow(definition)
    except WorkflowValidationError as e:
        print(f"[ERROR] Sample workflow is invalid: {e.details}")
        raise
    print(f"Saved workflow: {workflow.workflow_id}")


def seed_document():
    repo = DocumentRepository()
    if repo.get_document(SAMPLE_DOCUMENT_ID):
        print("Sample document already exists. Skipping.")
        return
    now = utc_now()
    repo.save_document(Document(
        document_id=SAMPLE_DOCUMENT_ID,
        title="Master Services Agreement",
        classification="contract",
        submitted_by="u-sam",
        created_at=now,
        updated_at=now,
    ))
    print(f"Created document: {SAMPLE_DOCUMENT_ID}")


def main():
    print("=== Seeding database ===")
    print("-" * 40)

    create_indexes()

    if get_collection("users").count_documents({}) > 0:
        print("Directory already has data. Skipping users.")
    else:
        seed_directory()
    seed_workflow()
    seed_document()

    print("-" * 40)
    print("Done!")


if __name__ == "__main__":
    main()

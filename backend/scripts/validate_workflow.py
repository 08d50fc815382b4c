"""Script to validate a stored workflow template

Usage:
    python -m scripts.validate_workflow WF-contract-review
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from docflow.repositories.mongo_client import get_collection
from docflow.engine.assignee_resolver import AssigneeResolver
from docflow.services.workflow_service import WorkflowService


def validate_workflow(workflow_id: str) -> bool:
    doc = get_collection("workflows").find_one({"workflow_id": workflow_id})
    if not doc:
        print(f"[ERROR] Workflow {workflow_id} not found")
        return False
    doc.pop("_id", None)

    print(f"Found workflow: {doc.get('name')}")
    print(f"   Active: {doc.get('is_active', True)}")
    print(f"   Trigger: {doc.get('trigger_type')} {doc.get('trigger_value') or ''}")
    print()

    result = WorkflowService().validate_definition(doc)

    print("=" * 60)
    print("VALIDATION")
    print("=" * 60)
    for error in result["errors"]:
        print(f"   [ERROR] {error['path']}: {error['message']}")
    for warning in result["warnings"]:
        print(f"   [WARN]  {warning['path']}: {warning['message']}")
    if not result["errors"] and not result["warnings"]:
        print("   No problems found")

    if not result["is_valid"]:
        return False

    print()
    print("=" * 60)
    print("RESOLVED ASSIGNEES")
    print("=" * 60)
    template = WorkflowService().repo.get_workflow(workflow_id)
    resolver = AssigneeResolver()
    for step in template.ordered_steps():
        assignees = resolver.resolve(step.assignees)
        mode = "all" if step.requires_all_assignees else "any"
        required = "required" if step.is_required else "optional"
        print(f"\n   {step.step_order}. {step.name} ({step.step_id}) [{mode}, {required}]")
        if assignees:
            for user_id in assignees:
                print(f"      - {user_id}")
        else:
            print("      (no assignees, step will be skipped)")

    return True


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m scripts.validate_workflow <workflow_id>")
        sys.exit(2)
    sys.exit(0 if validate_workflow(sys.argv[1]) else 1)

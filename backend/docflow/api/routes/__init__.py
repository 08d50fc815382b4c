"""API Routes module"""
from fastapi import APIRouter

from .workflows import router as workflows_router
from .documents import router as documents_router
from .workflow_runs import router as workflow_runs_router
from .notifications import router as notifications_router

# Main API router
api_router = APIRouter()

api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(documents_router, prefix="/documents", tags=["Documents"])
api_router.include_router(workflow_runs_router, prefix="/workflow-runs", tags=["Workflow Runs"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

__all__ = ["api_router"]

"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        # Test connection
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Workflows collection
    workflows = db["workflows"]
    workflows.create_index("workflow_id", unique=True)
    workflows.create_index([("trigger_type", ASCENDING), ("trigger_value", ASCENDING), ("is_active", ASCENDING)])
    workflows.create_index([("priority", DESCENDING), ("created_at", ASCENDING)])

    # Workflow runs collection (step executions and outbox are embedded)
    workflow_runs = db["workflow_runs"]
    workflow_runs.create_index("run_id", unique=True)
    workflow_runs.create_index([("document_id", ASCENDING), ("created_at", DESCENDING)])
    workflow_runs.create_index("status")
    workflow_runs.create_index("step_executions.step_execution_id")
    workflow_runs.create_index([("step_executions.assignee_id", ASCENDING), ("status", ASCENDING)])
    workflow_runs.create_index("outbox.event_id", sparse=True)

    # Active run claims, keyed by document_id via _id
    active_runs = db["active_runs"]
    active_runs.create_index("run_id")

    # Documents collection
    documents = db["documents"]
    documents.create_index("document_id", unique=True)
    documents.create_index("classification")

    # Directory collections
    users = db["users"]
    users.create_index("user_id", unique=True)
    users.create_index([("role", ASCENDING), ("is_active", ASCENDING)])
    users.create_index([("department", ASCENDING), ("is_active", ASCENDING)])
    departments = db["departments"]
    departments.create_index("name", unique=True)

    # Audit events collection
    audit_events = db["audit_events"]
    audit_events.create_index("audit_event_id", unique=True)
    audit_events.create_index([("document_id", ASCENDING), ("timestamp", DESCENDING)])
    audit_events.create_index("run_id")
    audit_events.create_index("correlation_id")

    # In-app notifications collection
    inapp_notifications = db["inapp_notifications"]
    inapp_notifications.create_index("notification_id", unique=True)
    inapp_notifications.create_index([("recipient_user_id", ASCENDING), ("created_at", DESCENDING)])
    inapp_notifications.create_index([("recipient_user_id", ASCENDING), ("is_read", ASCENDING)])

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }



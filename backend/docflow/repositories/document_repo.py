"""Document Repository - Access to documents owned by the document service"""
from typing import Any, Dict, Optional
from pymongo.collection import Collection

from .mongo_client import get_collection
from ..domain.models import Document
from ..domain.errors import DocumentNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now, format_iso

logger = get_logger(__name__)


class DocumentRepository:
    """Repository for the document fields the workflow engine reads and mirrors"""

    def __init__(self):
        self._documents: Collection = get_collection("documents")

    def get_document(self, document_id: str) -> Optional[Document]:
        """Get document by ID"""
        doc = self._documents.find_one({"document_id": document_id})
        if doc:
            doc.pop("_id", None)
            return Document.model_validate(doc)
        return None

    def get_document_or_raise(self, document_id: str) -> Document:
        """Get document by ID or raise error"""
        document = self.get_document(document_id)
        if not document:
            raise DocumentNotFoundError(
                f"Document {document_id} not found",
                details={"document_id": document_id}
            )
        return document

    def save_document(self, document: Document) -> Document:
        """Insert or replace a document (seeding and tests)"""
        now = utc_now()
        document.created_at = document.created_at or now
        document.updated_at = now
        doc = document.model_dump(mode="json")
        doc["_id"] = document.document_id

        self._documents.replace_one({"_id": document.document_id}, doc, upsert=True)
        return document

    def update_workflow_fields(self, document_id: str, updates: Dict[str, Any]) -> None:
        """
        Mirror workflow state onto a document

        Args:
            document_id: Document ID
            updates: Any of workflow_run_id, workflow_status, status
        """
        updates = dict(updates)
        updates["updated_at"] = format_iso(utc_now())

        result = self._documents.update_one({"document_id": document_id}, {"$set": updates})
        if result.matched_count == 0:
            raise DocumentNotFoundError(
                f"Document {document_id} not found",
                details={"document_id": document_id}
            )
        logger.info(
            f"Mirrored workflow state onto document {document_id}",
            extra={"document_id": document_id, "status": updates.get("workflow_status")}
        )

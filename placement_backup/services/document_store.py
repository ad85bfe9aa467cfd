"""
Document Store Adapter
Minimal enumerate/read/upsert access to the portal's document database
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId
from datetime import datetime
from typing import Any, Dict, List, Protocol
import logging

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Operations the backup subsystem needs from the document database"""

    async def list_collections(self) -> List[str]:
        ...

    async def read_all_documents(self, collection: str) -> List[Dict[str, Any]]:
        """Return ``[{id, fields, created_at, updated_at}, ...]``"""
        ...

    async def upsert_document(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        ...


class MongoDocumentStore:
    """DocumentStore backed by a motor database"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def list_collections(self) -> List[str]:
        return await self.db.list_collection_names()

    async def read_all_documents(self, collection: str) -> List[Dict[str, Any]]:
        documents = []

        cursor = self.db[collection].find({})
        async for doc in cursor:
            fields = dict(doc)
            doc_id = fields.pop("_id")
            documents.append({
                "id": str(doc_id),
                "fields": fields,
                "created_at": self._timestamp(doc.get("created_at")),
                "updated_at": self._timestamp(doc.get("updated_at"))
            })

        logger.debug(f"Read {len(documents)} documents from {collection}")
        return documents

    async def upsert_document(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        key = ObjectId(document_id) if ObjectId.is_valid(document_id) else document_id
        await self.db[collection].replace_one({"_id": key}, fields, upsert=True)

    @staticmethod
    def _timestamp(value: Any):
        if isinstance(value, datetime):
            return value.isoformat()
        return value

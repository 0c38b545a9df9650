"""Key-value document store backed by the config_documents table."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import ConfigDocument

logger = logging.getLogger(__name__)


class DocumentStore:
    """Get/set whole JSON documents addressed by (collection, document id)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find(self, collection: str, document_id: str) -> ConfigDocument | None:
        # Other sessions may have overwritten the row since it was loaded here.
        result = await self.db.execute(
            select(ConfigDocument)
            .where(
                ConfigDocument.collection == collection,
                ConfigDocument.document_id == document_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Return the document data, or None if it does not exist."""
        document = await self._find(collection, document_id)
        return dict(document.data) if document else None

    async def set(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """Create or fully overwrite a document. Fields absent from data are dropped."""
        document = await self._find(collection, document_id)
        if document is None:
            self.db.add(
                ConfigDocument(collection=collection, document_id=document_id, data=data)
            )
        else:
            document.data = data
        await self.db.commit()
        logger.info(f"Document {collection}/{document_id} written")

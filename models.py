"""SQLAlchemy ORM models for stored configuration documents."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from database import Base


class ConfigDocument(Base):
    """A single JSON document addressed by collection and document id."""

    __tablename__ = "config_documents"
    __table_args__ = (
        UniqueConstraint("collection", "document_id", name="uq_config_documents_path"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    collection: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import Base, IdMixin


class ResponseMetaMixin:
    """Provider bookkeeping kept with every stored answer."""

    response_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    input_tokens: Mapped[int | None] = mapped_column(nullable=True)
    output_tokens: Mapped[int | None] = mapped_column(nullable=True)
    total_tokens: Mapped[int | None] = mapped_column(nullable=True)
    processing_time_ms: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class DocumentQuery(Base, IdMixin):
    __tablename__ = "document_queries"

    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    query: Mapped[str] = mapped_column(Text)
    response: Mapped[str] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CrossDocumentQuery(Base, IdMixin, ResponseMetaMixin):
    __tablename__ = "cross_document_queries"

    request_type: Mapped[str] = mapped_column(String(32))
    request_id: Mapped[int]
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    query: Mapped[str] = mapped_column(Text)
    response: Mapped[str] = mapped_column(Text)
    document_count: Mapped[int] = mapped_column(default=0)

    __table_args__ = (Index("ix_cross_document_queries_request", "request_type", "request_id"),)


class WebSearchQuery(Base, IdMixin, ResponseMetaMixin):
    __tablename__ = "web_search_queries"

    request_type: Mapped[str] = mapped_column(String(32))
    request_id: Mapped[int]
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    query: Mapped[str] = mapped_column(Text)
    response: Mapped[str] = mapped_column(Text)
    search_type: Mapped[str] = mapped_column(String(32), default="web_search")

    __table_args__ = (Index("ix_web_search_queries_request", "request_type", "request_id"),)

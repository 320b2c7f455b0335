from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import AuditMetaMixin, Base, IdMixin
from investment_portal.shared.enums import AnalysisStatus


class Document(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "documents"

    file_name: Mapped[str] = mapped_column(String(200))
    original_name: Mapped[str] = mapped_column(String(500))
    file_size: Mapped[int]
    mime_type: Mapped[str] = mapped_column(String(200))
    file_path: Mapped[str] = mapped_column(String(1000))
    content_hash: Mapped[str] = mapped_column(String(64), index=True)
    uploader_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    request_type: Mapped[str] = mapped_column(String(32))
    request_id: Mapped[int]

    external_file_id: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    analysis_status: Mapped[str] = mapped_column(String(16), default=AnalysisStatus.pending.value, index=True)
    analysis_result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    analyzed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("ix_documents_request", "request_type", "request_id"),)

from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import Base, IdMixin


class _Timestamps:
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Template(Base, IdMixin, _Timestamps):
    __tablename__ = "templates"

    name: Mapped[str] = mapped_column(String(200))
    type: Mapped[str] = mapped_column(String(32), index=True)
    investment_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # {"sections": [{"name": ..., "description": ..., "word_limit": ...}]}
    template_data: Mapped[dict] = mapped_column(JSON)
    creator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)


class InvestmentRationale(Base, IdMixin, _Timestamps):
    __tablename__ = "investment_rationales"

    investment_id: Mapped[int] = mapped_column(ForeignKey("investment_requests.id"), index=True)
    content: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(16))
    template_id: Mapped[int | None] = mapped_column(ForeignKey("templates.id"), nullable=True)
    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

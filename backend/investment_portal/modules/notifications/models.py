from __future__ import annotations

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import AuditMetaMixin, Base, IdMixin


class Notification(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "notifications"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(300))
    message: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(32))
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    related_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    related_id: Mapped[int | None] = mapped_column(nullable=True)

    # Set when a later stage rejects or sends back a request this user already approved.
    previous_approver_stage: Mapped[int | None] = mapped_column(nullable=True)
    higher_stage_action: Mapped[str | None] = mapped_column(String(32), nullable=True)
    higher_stage_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    higher_stage_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    investment_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)

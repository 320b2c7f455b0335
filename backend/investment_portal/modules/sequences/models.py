from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from investment_portal.core.db.base import AuditMetaMixin, Base, IdMixin


class Sequence(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "sequences"

    sequence_name: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    current_value: Mapped[int] = mapped_column(default=0, nullable=False)
    year: Mapped[int]

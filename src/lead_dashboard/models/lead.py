"""Lead model for customer registrations handled by brokers."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from lead_dashboard.models.base import Base

LEADS_TABLE = "leads"


class Lead(Base):
    """A customer lead with its responsible broker and scheduling count."""

    __tablename__ = LEADS_TABLE

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    development: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    broker: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    schedule_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Stored as naive UTC
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), index=True
    )

    def as_row(self) -> dict:
        """Plain column mapping, the shape used by change notifications."""
        return {column.key: getattr(self, column.key) for column in self.__table__.columns}

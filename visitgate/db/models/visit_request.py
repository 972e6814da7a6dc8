import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from visitgate.db.base import Base


class VisitStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    rescheduled = "rescheduled"
    cancelled = "cancelled"


class VisitRequest(Base):
    __tablename__ = "visit_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    client_name: Mapped[str] = mapped_column(String(120), nullable=False)
    client_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    inmate_name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    visit_date: Mapped[str] = mapped_column(String(10), nullable=False)
    visit_time: Mapped[str] = mapped_column(String(8), nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    relationship: Mapped[str | None] = mapped_column(String(60), nullable=True)
    facility: Mapped[str | None] = mapped_column(String(120), nullable=True)
    status: Mapped[VisitStatus] = mapped_column(
        SqlEnum(VisitStatus), nullable=False, default=VisitStatus.pending, index=True
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(120), nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    qr_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    qr_invalidated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    invalidated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    invalidation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

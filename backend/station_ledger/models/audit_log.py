from sqlalchemy import Integer, DateTime, func, String, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from station_ledger.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now(), index=True)

    actor: Mapped[str] = mapped_column(String(64), index=True)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    station_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(64), index=True)
    # entity ids are ints for accounts/loans and codes for petty cash stations
    entity_type: Mapped[str] = mapped_column(String(32))
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)


Index("ix_audit_logs_entity", AuditLog.entity_type, AuditLog.entity_id)

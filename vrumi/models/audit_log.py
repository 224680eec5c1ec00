# vrumi/models/audit_log.py
"""
Audit logging model to capture ledger overrides and reconciliations.

Provides a simple helper for building rows from change events.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import JSON, Column, DateTime, Index, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """Persistence model for audit trail entries."""

    __tablename__ = "audit_log"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    action = Column(String(30), nullable=False)
    actor_id = Column(String(26), nullable=True)
    actor_role = Column(String(30), nullable=True)
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)

    __table_args__ = (Index("idx_audit_log_entity", "entity_type", "entity_id"),)

    @classmethod
    def from_change(
        cls,
        entity_type: str,
        entity_id: str,
        action: str,
        *,
        actor_id: Optional[str],
        actor_role: Optional[str],
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
    ) -> "AuditLog":
        """Factory helper to build an AuditLog instance from change metadata."""
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            before=_jsonable(before),
            after=_jsonable(after),
        )

    def __repr__(self) -> str:
        return f"<AuditLog {self.entity_type}:{self.entity_id} {self.action}>"


def _jsonable(payload: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if payload is None:
        return None
    return {key: _jsonable_value(value) for key, value in payload.items()}


def _jsonable_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return _jsonable(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)

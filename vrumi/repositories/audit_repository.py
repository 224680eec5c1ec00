# vrumi/repositories/audit_repository.py
"""
Repository helpers for audit_log persistence and querying.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.audit_log import AuditLog
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class AuditRepository:
    """Persist and query audit trail entries."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, audit: AuditLog) -> None:
        """Persist a new audit row inside the active transaction."""
        self.db.add(audit)
        self.db.flush()
        prometheus_metrics.record_audit_write(audit.entity_type, audit.action)

    def list_for_entity(
        self, entity_type: str, entity_id: str, *, action: Optional[str] = None
    ) -> list[AuditLog]:
        """Audit rows for one entity, oldest first."""
        query = self.db.query(AuditLog).filter(
            AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id
        )
        if action is not None:
            query = query.filter(AuditLog.action == action)
        return query.order_by(AuditLog.occurred_at.asc(), AuditLog.id.asc()).all()

"""Audit trail service.

Audit entries are a secondary record. Writing one must never undo or block
the ledger change it describes, so persistence failures are logged and
swallowed here.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

import structlog

from pocketledger.database.base import Database
from pocketledger.domain.constants import AuditAction, AuditEntityType
from pocketledger.domain.entities import AuditEntry

logger = structlog.get_logger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert Decimals, datetimes and enums nested in ``value`` to JSON types."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


class AuditService:
    """Service for writing and reading the audit trail."""

    def __init__(self, db: Database):
        """Initialize audit service.

        Args:
            db: Database instance
        """
        self.db = db

    def log(
        self,
        entity_type: AuditEntityType | str,
        entity_id: int,
        action: AuditAction,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Record an audit entry.

        Always logs locally. Returns True if the entry was persisted.
        """
        entity_type = AuditEntityType(entity_type).value
        payload = to_jsonable(changes or {})
        logger.info(
            "audit_event",
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction(action).value,
        )
        try:
            self.db.create_audit_entry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=AuditAction(action),
                changes=payload,
            )
        except Exception as e:
            # Log failure but don't raise
            logger.error(
                "audit_storage_failed",
                error=str(e),
                entity_type=entity_type,
                entity_id=entity_id,
            )
            return False
        return True

    def find(self, entity_type: AuditEntityType | str, entity_id: int) -> list[AuditEntry]:
        """Return the audit trail of one entity, oldest first."""
        return self.db.list_audit_entries(AuditEntityType(entity_type).value, entity_id)

    get_audit_trail = find

    def get_recent_logs(self, limit: int = 100) -> list[AuditEntry]:
        return self.db.list_recent_audit_entries(limit)

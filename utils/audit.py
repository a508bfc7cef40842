"""
Audit trail for authentication events.

record() is fire-and-forget: a failed write is logged and swallowed so the
request that triggered it still completes. Callers commit their own work
before recording, so a rollback here only ever discards the audit row.
"""
from __future__ import annotations

import logging
from typing import Optional

from models import storage
from models.audit_log import AuditEvent, AuditLog

logger = logging.getLogger(__name__)

MAX_USER_AGENT = 512


class AuditLogger:
    def record(
        self,
        event_type: AuditEvent,
        *,
        ip: str,
        user_agent: str,
        success: bool,
        user_id: Optional[int] = None,
        email: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        entry = AuditLog(
            event_type=AuditEvent(event_type),
            user_id=user_id,
            email=email,
            ip_address=ip,
            user_agent=(user_agent or "")[:MAX_USER_AGENT],
            success=bool(success),
            details=details,
        )
        try:
            storage.new(entry)
            storage.save()
        except Exception:
            logger.exception("Failed to write audit log entry %s", event_type)
            try:
                storage.rollback()
            except Exception:
                logger.exception("Rollback after audit failure also failed")

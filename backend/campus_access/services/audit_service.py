"""Writes to the general audit trail."""
import logging
from typing import Any, Dict, Optional

from campus_access import db
from campus_access.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

class AuditService:
    """Appends audit events."""

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        user_id: Optional[int] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_values=old_values,
            new_values=new_values
        )
        db.session.add(entry)
        db.session.commit()
        logger.debug("Audit %s on %s %s", action, resource_type, resource_id)
        return entry

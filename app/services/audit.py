from typing import Optional

from app.services.base import BaseService
from app.models.audit_log import AuditLog


class AuditService(BaseService):
    def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        details: Optional[dict] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ) -> AuditLog:
        """
        Create a centralized audit log entry.
        Strictly append-only. Not committed here: the entry rides the caller's
        transaction so it is persisted exactly when the audited change is.
        """
        db_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            details=details or {},
            before_state=before_state,
            after_state=after_state
        )
        self.db.add(db_log)
        self.db.flush()
        return db_log

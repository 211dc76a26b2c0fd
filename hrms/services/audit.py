import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrms.core.exceptions import NotFoundError
from hrms.models.audit_log import AuditLog
from hrms.services.base import BaseService

audit_logger = logging.getLogger("hrms.audit")


def _sanitize(obj: Any) -> Any:
    """Make nested pydantic models, enums and dates JSON-column safe."""
    if hasattr(obj, "model_dump"):
        return _sanitize(obj.model_dump())
    if isinstance(obj, dict):
        return {str(k): _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


def _entity_key(entity_id: Union[int, str, Iterable[int], None]) -> Optional[str]:
    if entity_id is None:
        return None
    if isinstance(entity_id, (list, tuple, set)):
        return ",".join(str(i) for i in entity_id)
    return str(entity_id)


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Union[int, str, Iterable[int], None],
        user_id: Optional[int],
        user_role: Optional[str],
        details: Optional[dict] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None,
        status: str = "SUCCESS",
        error_message: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Append an audit row to the caller's session.

        Does not commit: the row belongs to the caller's transaction, so a
        rolled-back mutation leaves no audit trail claiming it happened.
        """
        try:
            db_log = AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=_entity_key(entity_id),
                user_id=user_id,
                user_role=user_role,
                details=_sanitize(details),
                before_state=_sanitize(before_state),
                after_state=_sanitize(after_state),
                status=status,
                error_message=error_message,
            )
            self.db.add(db_log)
            self.db.flush()
        except (SQLAlchemyError, TypeError) as e:
            self._logger.error(f"FAILED TO AUDIT LOG: {e}", exc_info=True)
            return None

        audit_logger.info(
            f"{action} on {entity_type}",
            extra={
                "event_type": action,
                "actor_id": user_id,
                "event_details": {"entity_type": entity_type, "entity_id": db_log.entity_id, "status": status},
            },
        )
        return db_log

    # Static wrapper so engines can audit without instantiating the service
    @staticmethod
    def log(db: Session, *args, **kwargs) -> Optional[AuditLog]:
        service = AuditService(db)
        return service.log_action(*args, **kwargs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_logs(
        self,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        user_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        query = self.db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if date_from:
            query = query.filter(AuditLog.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(AuditLog.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

        total = query.count()
        rows: List[AuditLog] = (
            query.order_by(AuditLog.id.desc()).offset((page - 1) * limit).limit(limit).all()
        )
        return {
            "data": [self.serialize(row) for row in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
            },
        }

    def get_log(self, log_id: int) -> Dict[str, Any]:
        row = self.db.get(AuditLog, log_id)
        if row is None:
            raise NotFoundError("Audit log not found", details={"id": log_id})
        return self.serialize(row)

    @staticmethod
    def serialize(row: AuditLog) -> Dict[str, Any]:
        return {
            "id": row.id,
            "action": row.action,
            "entity_type": row.entity_type,
            "entity_id": row.entity_id,
            "user_id": row.user_id,
            "user_role": row.user_role,
            "details": row.details,
            "before_state": row.before_state,
            "after_state": row.after_state,
            "status": row.status,
            "error_message": row.error_message,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hrms.core.schemas import ApiResponse
from hrms.database import get_db
from hrms.dependencies import require_hr
from hrms.schemas.auth import Actor
from hrms.services.audit import AuditService

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("")
def list_audit_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    user_id: Optional[int] = None,
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_hr()),
):
    result = AuditService(db, actor.id).list_logs(
        action=action,
        entity_type=entity_type,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ApiResponse.ok(result["data"], metadata={"pagination": result["pagination"]})


@router.get("/{log_id}")
def get_audit_log(log_id: int, db: Session = Depends(get_db), actor: Actor = Depends(require_hr())):
    return ApiResponse.ok(AuditService(db, actor.id).get_log(log_id))

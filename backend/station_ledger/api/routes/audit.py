from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import select
from station_ledger.api.deps import db, require_admin
from station_ledger.models.audit_log import AuditLog
from station_ledger.schemas.audit import AuditOut
from station_ledger.schemas.common import Envelope, ok

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=Envelope[list[AuditOut]])
def list_audit(
    s: Session = Depends(db),
    admin=Depends(require_admin),
    actor: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
):
    q = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())

    if actor:
        q = q.where(AuditLog.actor == actor)
    if entity_type:
        q = q.where(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.where(AuditLog.entity_id == entity_id)
    if action:
        q = q.where(AuditLog.action == action)

    return ok(s.execute(q.limit(limit)).scalars().all())

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shopcore.models.log import AuditEntry


# Audit rows join the caller's transaction, so a rolled-back unit leaves no trace
def write_log(db: Session, *, user_id, action, resource, resource_id=None, status="SUCCESS", meta=None):
    entry = AuditEntry(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        status=status,
        meta=meta or {},
    )
    db.add(entry)
    db.flush()
    return entry


def find_entries(
    db: Session,
    *,
    action: Optional[str] = None,
    resource: Optional[str] = None,
    resource_id: Optional[int] = None,
    user_id: Optional[int] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[AuditEntry], int]:
    """Newest-first audit trail, filtered by any combination of fields."""
    query = select(AuditEntry)
    if action:
        query = query.where(AuditEntry.action.ilike(f"%{action}%"))
    if resource:
        query = query.where(AuditEntry.resource == resource)
    if resource_id is not None:
        query = query.where(AuditEntry.resource_id == resource_id)
    if user_id is not None:
        query = query.where(AuditEntry.user_id == user_id)
    if since is not None:
        query = query.where(AuditEntry.ts >= since)
    if until is not None:
        query = query.where(AuditEntry.ts <= until)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
    rows = db.execute(
        query.order_by(AuditEntry.id.desc()).offset((page - 1) * page_size).limit(page_size)
    ).scalars().all()
    return list(rows), total

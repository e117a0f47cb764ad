# shopcore/routes/audit.py
from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shopcore.database import get_db
from shopcore.schemas.audit import AuditPage
from shopcore.utils.audit import find_entries
from shopcore.utils.tokenJWT import Identity, role_required

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=AuditPage)
def get_audit_trail(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Substring of the action name"),
    resource: Optional[str] = Query(None, description="e.g. products, orders"),
    resource_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[date] = Query(None, description="YYYY-MM-DD, inclusive"),
    db: Session = Depends(get_db),
    current_user: Identity = Depends(role_required("admin")),
):
    items, total = find_entries(
        db,
        action=action,
        resource=resource,
        resource_id=resource_id,
        user_id=user_id,
        since=datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None,
        # Whole end day
        until=datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None,
        page=page,
        page_size=page_size,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}

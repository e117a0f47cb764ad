from datetime import datetime
from typing import Any, List, Optional

from shopcore.schemas.base import ORMBase


class AuditEntryOut(ORMBase):
    id: int
    ts: Optional[datetime] = None
    user_id: Optional[int] = None
    action: str
    resource: str
    resource_id: Optional[int] = None
    status: str
    meta: Optional[Any] = None


class AuditPage(ORMBase):
    items: List[AuditEntryOut]
    total: int
    page: int
    page_size: int

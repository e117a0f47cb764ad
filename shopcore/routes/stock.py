# shopcore/routes/stock.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shopcore.database import get_db, unit_of_work
from shopcore.schemas.stock import StockLevel, StockMovementPage, StockRestock, StockSet
from shopcore.services.inventory import InventoryLedger
from shopcore.utils.audit import write_log
from shopcore.utils.tokenJWT import Identity, role_required

router = APIRouter(prefix="/stock", tags=["Stock"])

admin_only = role_required("admin")


@router.get("/{product_id}", response_model=StockLevel)
def stock_level(product_id: int, db: Session = Depends(get_db)):
    return StockLevel(product_id=product_id, stock=InventoryLedger(db).available(product_id))


@router.get("/{product_id}/movements", response_model=StockMovementPage)
def list_movements(
    product_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Identity = Depends(admin_only),
):
    items, total = InventoryLedger(db).movements(product_id, page=page, page_size=page_size)
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.put("/{product_id}", response_model=StockLevel)
def set_stock(product_id: int, payload: StockSet, db: Session = Depends(get_db),
              current_user: Identity = Depends(admin_only)):
    with unit_of_work(db):
        balance = InventoryLedger(db).set_stock(product_id, payload.qty, user_id=current_user.user_id,
                                                reason=payload.reason)
        write_log(db, user_id=current_user.user_id, action="STOCK_ADJUSTMENT", resource="products",
                  resource_id=product_id, meta={"stock": balance, "reason": payload.reason})
    return StockLevel(product_id=product_id, stock=balance)


@router.post("/{product_id}/restock", response_model=StockLevel)
def restock(product_id: int, payload: StockRestock, db: Session = Depends(get_db),
            current_user: Identity = Depends(admin_only)):
    with unit_of_work(db):
        balance = InventoryLedger(db).restock(product_id, payload.qty, user_id=current_user.user_id,
                                              reason=payload.reason or "Delivery")
        write_log(db, user_id=current_user.user_id, action="STOCK_DELIVERY", resource="products",
                  resource_id=product_id, meta={"qty": payload.qty, "stock": balance})
    return StockLevel(product_id=product_id, stock=balance)

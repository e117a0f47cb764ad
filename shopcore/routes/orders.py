# shopcore/routes/orders.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from shopcore.database import get_db
from shopcore.models.order import Order, OrderStatus
from shopcore.schemas.order import BestSeller, CheckoutPayload, OrderItemOut, OrderResponse, OrdersPage, OrderStatusPatch
from shopcore.services.checkout import CheckoutTransaction
from shopcore.services.orders import OrderLifecycle
from shopcore.utils.clock import Clock, get_clock
from shopcore.utils.tokenJWT import Identity, get_current_user, role_required

router = APIRouter(prefix="/orders", tags=["Orders"])


def _lifecycle(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> OrderLifecycle:
    return OrderLifecycle(db, clock=clock)


# Map Order model to OrderResponse schema
def _order_to_out(lifecycle: OrderLifecycle, order: Order) -> OrderResponse:
    items = [
        OrderItemOut(
            product_id=it.product_id,
            product_name=it.product.name if it.product else "",
            quantity=it.quantity,
            unit_price=it.unit_price_snapshot,
            subtotal=it.subtotal,
        )
        for it in order.items
    ]
    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        status=order.status,
        total=order.total,
        shipping_address=order.shipping_address,
        contact_phone=order.contact_phone,
        notes=order.notes,
        created_at=order.created_at,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        items=items,
        allowed_transitions=lifecycle.allowed_transitions(order),
    )


# Convert the caller's cart into a pending order
@router.post("/checkout", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutPayload,
    db: Session = Depends(get_db),
    lifecycle: OrderLifecycle = Depends(_lifecycle),
    current_user: Identity = Depends(get_current_user),
):
    order = CheckoutTransaction(db).checkout(
        current_user.user_id, payload.shipping_address, payload.contact_phone, payload.notes
    )
    return _order_to_out(lifecycle, lifecycle.get_order(order.id))


# Own order history; admins may list everybody's, filtered by status
@router.get("", response_model=OrdersPage)
def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    all_users: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    lifecycle: OrderLifecycle = Depends(_lifecycle),
    current_user: Identity = Depends(get_current_user),
):
    user_id = None if (all_users and current_user.is_admin) else current_user.user_id
    rows, total = lifecycle.list_orders(user_id=user_id, status=status_filter, page=page, page_size=page_size)
    return {"items": [_order_to_out(lifecycle, o) for o in rows], "total": total, "page": page, "page_size": page_size}


@router.get("/best-sellers", response_model=List[BestSeller])
def best_sellers(
    limit: int = Query(10, ge=1, le=100),
    lifecycle: OrderLifecycle = Depends(_lifecycle),
    current_user: Identity = Depends(role_required("admin")),
):
    return lifecycle.best_sellers(limit)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(order_id: int, lifecycle: OrderLifecycle = Depends(_lifecycle),
                     current_user: Identity = Depends(get_current_user)):
    owner = None if current_user.is_admin else current_user.user_id
    return _order_to_out(lifecycle, lifecycle.get_order(order_id, user_id=owner))


# Status changes are admin work; owners may only cancel their own orders
@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    lifecycle: OrderLifecycle = Depends(_lifecycle),
    current_user: Identity = Depends(get_current_user),
):
    if not current_user.is_admin:
        if payload.status is not OrderStatus.CANCELLED:
            raise HTTPException(status_code=403, detail="Forbidden")
        lifecycle.get_order(order_id, user_id=current_user.user_id)

    lifecycle.transition(order_id, payload.status, actor_id=current_user.user_id)
    return _order_to_out(lifecycle, lifecycle.get_order(order_id))


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(order_id: int, lifecycle: OrderLifecycle = Depends(_lifecycle),
                 current_user: Identity = Depends(get_current_user)):
    if not current_user.is_admin:
        lifecycle.get_order(order_id, user_id=current_user.user_id)
    lifecycle.cancel(order_id, actor_id=current_user.user_id)
    return _order_to_out(lifecycle, lifecycle.get_order(order_id))


# Orders are never deleted
@router.delete("/{order_id}")
def delete_order(order_id: int, lifecycle: OrderLifecycle = Depends(_lifecycle),
                 current_user: Identity = Depends(get_current_user)):
    lifecycle.delete(order_id)

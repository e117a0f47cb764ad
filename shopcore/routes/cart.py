# shopcore/routes/cart.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shopcore.database import get_db
from shopcore.schemas.cart import CartAddItem, CartOut, CartUpdateItem
from shopcore.services.cart import Cart
from shopcore.utils.tokenJWT import Identity, get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])


def _cart(db: Session = Depends(get_db)) -> Cart:
    return Cart(db)


@router.get("", response_model=CartOut)
def get_cart(cart: Cart = Depends(_cart), current_user: Identity = Depends(get_current_user)):
    return cart.get_cart(current_user.user_id)


@router.post("/items", response_model=CartOut, status_code=status.HTTP_200_OK)
def add_to_cart(payload: CartAddItem, cart: Cart = Depends(_cart), current_user: Identity = Depends(get_current_user)):
    cart.add_item(current_user.user_id, payload.product_id, payload.qty, refresh_price=payload.refresh_price)
    return cart.get_cart(current_user.user_id)


@router.put("/items/{product_id}", response_model=CartOut)
def update_cart_item(product_id: int, payload: CartUpdateItem, cart: Cart = Depends(_cart),
                     current_user: Identity = Depends(get_current_user)):
    cart.update_quantity(current_user.user_id, product_id, payload.qty)
    return cart.get_cart(current_user.user_id)


@router.delete("/items/{product_id}", response_model=CartOut)
def delete_cart_item(product_id: int, cart: Cart = Depends(_cart), current_user: Identity = Depends(get_current_user)):
    cart.remove_item(current_user.user_id, product_id)
    return cart.get_cart(current_user.user_id)


@router.delete("", response_model=CartOut)
def clear_cart(cart: Cart = Depends(_cart), current_user: Identity = Depends(get_current_user)):
    cart.clear(current_user.user_id)
    return cart.get_cart(current_user.user_id)

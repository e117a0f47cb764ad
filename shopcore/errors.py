"""Typed, recoverable errors raised by the shopcore services."""

from typing import Dict, List, Optional


class ShopError(Exception):
    """Base exception for all shopcore errors."""

    code = "shop_error"

    def to_dict(self) -> dict:
        return {"error_type": type(self).__name__, "code": self.code, "detail": str(self)}


class NotFound(ShopError):
    """Raised when a referenced record doesn't exist."""

    code = "not_found"

    def __init__(self, resource: str, ident):
        self.resource = resource
        self.ident = ident
        super().__init__(f"{resource} not found: {ident}")


class ParentInactive(ShopError):
    """Raised when creating a child under an inactive Category or Subcategory."""

    code = "parent_inactive"

    def __init__(self, resource: str, ident):
        self.resource = resource
        self.ident = ident
        super().__init__(f"{resource} {ident} is inactive")


class HierarchyMismatch(ShopError):
    """Raised when a Subcategory does not belong to the given Category."""

    code = "hierarchy_mismatch"

    def __init__(self, subcategory_id: int, category_id: int, actual_category_id: int):
        self.subcategory_id = subcategory_id
        self.category_id = category_id
        self.actual_category_id = actual_category_id
        super().__init__(
            f"Subcategory {subcategory_id} belongs to category {actual_category_id}, not {category_id}"
        )


class HasDependents(ShopError):
    """Raised when deleting a node that still has children or history."""

    code = "has_dependents"

    def __init__(self, resource: str, ident, dependents: Dict[str, int]):
        self.resource = resource
        self.ident = ident
        self.dependents = dependents
        parts = ", ".join(f"{n} {name}" for name, n in dependents.items())
        super().__init__(f"{resource} {ident} still has {parts}; deactivate it instead")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["dependents"] = self.dependents
        return data


class InsufficientStock(ShopError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, requested {requested}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(product_id=self.product_id, available=self.available, requested=self.requested)
        return data


class ProductInactive(ShopError):
    code = "product_inactive"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is inactive")


class EmptyCart(ShopError):
    code = "empty_cart"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"Cart of user {user_id} is empty")


class CheckoutFailed(ShopError):
    """Raised when one or more cart lines cannot be ordered.

    ``failures`` holds the per-line errors (InsufficientStock, ProductInactive,
    NotFound). Nothing was written when this is raised.
    """

    code = "checkout_failed"

    def __init__(self, failures: List[ShopError]):
        self.failures = list(failures)
        super().__init__("Checkout failed: " + "; ".join(str(f) for f in self.failures))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["failures"] = [f.to_dict() for f in self.failures]
        return data


class IllegalTransition(ShopError):
    code = "illegal_transition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from '{current}' to '{requested}'")


class UseCancelInstead(ShopError):
    code = "use_cancel_instead"

    def __init__(self, order_id: Optional[int] = None):
        self.order_id = order_id
        super().__init__("Orders cannot be deleted; cancel the order instead")


class ValidationError(ShopError):
    """Field-level constraint violations, collected per field."""

    code = "validation_error"

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        summary = "; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in errors.items())
        super().__init__(f"Validation failed ({summary})")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        errors: Dict[str, List[str]] = {}
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ())) or "__root__"
            errors.setdefault(field, []).append(err.get("msg", "invalid value"))
        return cls(errors)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data

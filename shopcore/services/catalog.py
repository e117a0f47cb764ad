"""Category -> Subcategory -> Product tree and its activation cascade.

Deactivating a node switches off everything beneath it inside the same
transaction. Activating a node touches only that node: children that were
switched off by a cascade stay off until someone reactivates them.
"""
import logging
from contextlib import contextmanager
from typing import List, Optional, Tuple, Union

from sqlalchemy import delete as sql_delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopcore.database import unit_of_work
from shopcore.errors import HasDependents, HierarchyMismatch, NotFound, ParentInactive, ValidationError
from shopcore.models.cart import CartItem
from shopcore.models.category import Category, Subcategory
from shopcore.models.order import OrderItem
from shopcore.models.product import Product
from shopcore.models.stock import StockMovement
from shopcore.schemas.base import parse
from shopcore.schemas.category import (
    CategoryCreate, CategoryUpdate, NodeStats, SubcategoryCreate, SubcategoryUpdate, ToggleResult,
)
from shopcore.schemas.product import ProductCreate, ProductUpdate
from shopcore.utils.audit import write_log
from shopcore.utils.money import to_money
from shopcore.utils.storage import FileStorage, LocalFileStorage

logger = logging.getLogger(__name__)

Node = Union[Category, Subcategory, Product]


class CatalogHierarchy:
    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage or LocalFileStorage()

    # =========================
    # LOOKUPS
    # =========================

    def get_category(self, category_id: int) -> Category:
        category = self.db.get(Category, category_id)
        if category is None:
            raise NotFound("Category", category_id)
        return category

    def get_subcategory(self, subcategory_id: int) -> Subcategory:
        subcategory = self.db.get(Subcategory, subcategory_id)
        if subcategory is None:
            raise NotFound("Subcategory", subcategory_id)
        return subcategory

    def get_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFound("Product", product_id)
        return product

    def list_categories(self, active: Optional[bool] = None) -> List[Category]:
        query = select(Category).order_by(Category.name.asc())
        if active is not None:
            query = query.where(Category.active == active)
        return list(self.db.execute(query).scalars())

    def list_subcategories(self, category_id: Optional[int] = None, active: Optional[bool] = None) -> List[Subcategory]:
        query = select(Subcategory).order_by(Subcategory.name.asc())
        if category_id is not None:
            query = query.where(Subcategory.category_id == category_id)
        if active is not None:
            query = query.where(Subcategory.active == active)
        return list(self.db.execute(query).scalars())

    def list_products(
        self,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
        active: Optional[bool] = None,
        in_stock: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Product], int]:
        query = select(Product)
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if subcategory_id is not None:
            query = query.where(Product.subcategory_id == subcategory_id)
        if active is not None:
            query = query.where(Product.active == active)
        if in_stock is True:
            query = query.where(Product.stock > 0)
        elif in_stock is False:
            query = query.where(Product.stock == 0)

        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        items = self.db.execute(
            query.order_by(Product.name.asc(), Product.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return list(items), total

    def image_url(self, product: Product) -> Optional[str]:
        return self.storage.url_for(product.image_ref)

    def category_stats(self, category_id: int) -> NodeStats:
        category = self.get_category(category_id)
        subcategories = self.db.execute(
            select(func.count(Subcategory.id)).where(Subcategory.category_id == category_id)
        ).scalar_one()
        return self._product_stats(category, Product.category_id == category_id, subcategories)

    def subcategory_stats(self, subcategory_id: int) -> NodeStats:
        subcategory = self.get_subcategory(subcategory_id)
        return self._product_stats(subcategory, Product.subcategory_id == subcategory_id, 0)

    def _product_stats(self, node, criterion, subcategories: int) -> NodeStats:
        total, active, stock, value = self.db.execute(
            select(
                func.count(Product.id),
                func.count(Product.id).filter(Product.active.is_(True)),
                func.coalesce(func.sum(Product.stock), 0),
                func.coalesce(func.sum(Product.price * Product.stock), 0),
            ).where(criterion)
        ).one()
        return NodeStats(
            id=node.id, name=node.name, active=node.active,
            subcategories=subcategories, products=total,
            active_products=active, inactive_products=total - active, total_stock=stock,
            inventory_value=to_money(value),
        )

    # =========================
    # CREATE / UPDATE
    # =========================

    def create_category(self, data, actor_id: Optional[int] = None) -> Category:
        payload = parse(CategoryCreate, data)
        self._ensure_category_name_free(payload.name)

        category = Category(name=payload.name, description=payload.description, active=True)
        with _unique_name_guard():
            with unit_of_work(self.db):
                self.db.add(category)
                self.db.flush()
                write_log(self.db, user_id=actor_id, action="CATEGORY_CREATE", resource="categories",
                          resource_id=category.id, meta={"name": category.name})
        logger.info("Category %s created (%s)", category.id, category.name)
        return category

    def update_category(self, category_id: int, data, actor_id: Optional[int] = None) -> Category:
        payload = parse(CategoryUpdate, data)
        category = self.get_category(category_id)
        changes = _changes(payload)

        if "name" in changes and changes["name"] != category.name:
            self._ensure_category_name_free(changes["name"])

        with _unique_name_guard():
            with unit_of_work(self.db):
                for key, value in changes.items():
                    setattr(category, key, value)
                self.db.flush()
                write_log(self.db, user_id=actor_id, action="CATEGORY_UPDATE", resource="categories",
                          resource_id=category.id, meta={"fields": sorted(changes)})
        return category

    def create_subcategory(self, category_id: int, data, actor_id: Optional[int] = None) -> Subcategory:
        payload = parse(SubcategoryCreate, data)
        category = self.get_category(category_id)
        if not category.active:
            raise ParentInactive("Category", category_id)
        self._ensure_subcategory_name_free(category_id, payload.name)

        subcategory = Subcategory(
            name=payload.name, description=payload.description, category_id=category_id, active=True
        )
        with _unique_name_guard():
            with unit_of_work(self.db):
                self.db.add(subcategory)
                self.db.flush()
                write_log(self.db, user_id=actor_id, action="SUBCATEGORY_CREATE", resource="subcategories",
                          resource_id=subcategory.id, meta={"category_id": category_id})
        return subcategory

    def update_subcategory(self, subcategory_id: int, data, actor_id: Optional[int] = None) -> Subcategory:
        payload = parse(SubcategoryUpdate, data)
        subcategory = self.get_subcategory(subcategory_id)
        changes = _changes(payload)

        target_category_id = changes.get("category_id", subcategory.category_id)
        moving = target_category_id != subcategory.category_id
        if moving:
            target = self.get_category(target_category_id)
            if not target.active:
                raise ParentInactive("Category", target_category_id)

        name = changes.get("name", subcategory.name)
        if moving or name != subcategory.name:
            self._ensure_subcategory_name_free(target_category_id, name, exclude_id=subcategory.id)

        with _unique_name_guard():
            with unit_of_work(self.db):
                for key, value in changes.items():
                    setattr(subcategory, key, value)
                if moving:
                    # Products follow their subcategory so product.category_id stays consistent
                    self.db.execute(
                        update(Product)
                        .where(Product.subcategory_id == subcategory.id)
                        .values(category_id=target_category_id)
                    )
                self.db.flush()
                write_log(self.db, user_id=actor_id, action="SUBCATEGORY_UPDATE", resource="subcategories",
                          resource_id=subcategory.id, meta={"fields": sorted(changes)})
        return subcategory

    def create_product(self, subcategory_id: int, category_id: int, data, actor_id: Optional[int] = None) -> Product:
        payload = parse(ProductCreate, data)
        self._check_parents(subcategory_id, category_id)

        product = Product(
            name=payload.name,
            description=payload.description,
            price=payload.price,
            stock=payload.stock,
            image_ref=payload.image_ref,
            subcategory_id=subcategory_id,
            category_id=category_id,
            active=True,
        )
        with unit_of_work(self.db):
            self.db.add(product)
            self.db.flush()
            write_log(self.db, user_id=actor_id, action="PRODUCT_CREATE", resource="products",
                      resource_id=product.id, meta={"subcategory_id": subcategory_id})
        logger.info("Product %s created under subcategory %s", product.id, subcategory_id)
        return product

    def update_product(self, product_id: int, data, actor_id: Optional[int] = None) -> Product:
        payload = parse(ProductUpdate, data)
        product = self.get_product(product_id)
        changes = _changes(payload)

        subcategory_id = changes.get("subcategory_id", product.subcategory_id)
        category_id = changes.get("category_id", product.category_id)
        if (subcategory_id, category_id) != (product.subcategory_id, product.category_id):
            self._check_parents(subcategory_id, category_id)

        old_image = product.image_ref
        with unit_of_work(self.db):
            for key, value in changes.items():
                setattr(product, key, value)
            self.db.flush()
            write_log(self.db, user_id=actor_id, action="PRODUCT_UPDATE", resource="products",
                      resource_id=product.id, meta={"fields": sorted(changes)})

        if "image_ref" in changes and old_image and old_image != product.image_ref:
            self._discard_image(old_image)
        return product

    # =========================
    # ACTIVATION
    # =========================

    def toggle_active(self, node: Node, actor_id: Optional[int] = None) -> ToggleResult:
        if isinstance(node, Category):
            return self.toggle_category(node.id, actor_id)
        if isinstance(node, Subcategory):
            return self.toggle_subcategory(node.id, actor_id)
        if isinstance(node, Product):
            return self.toggle_product(node.id, actor_id)
        raise TypeError(f"Cannot toggle {type(node).__name__}")

    def toggle_category(self, category_id: int, actor_id: Optional[int] = None) -> ToggleResult:
        with unit_of_work(self.db):
            category = self._locked(Category, category_id)
            category.active = not category.active
            result = ToggleResult(id=category.id, active=category.active)

            if not category.active:
                subcategory_ids = select(Subcategory.id).where(Subcategory.category_id == category_id)
                result.affected_products = self._deactivate(Product, Product.subcategory_id.in_(subcategory_ids))
                result.affected_subcategories = self._deactivate(Subcategory, Subcategory.category_id == category_id)

            self.db.flush()
            write_log(self.db, user_id=actor_id, action="CATEGORY_TOGGLE", resource="categories",
                      resource_id=category_id, meta=result.model_dump())

        logger.info(
            "Category %s %s (%s subcategories, %s products switched off)",
            category_id, "activated" if result.active else "deactivated",
            result.affected_subcategories, result.affected_products,
        )
        return result

    def toggle_subcategory(self, subcategory_id: int, actor_id: Optional[int] = None) -> ToggleResult:
        with unit_of_work(self.db):
            subcategory = self._locked(Subcategory, subcategory_id)
            subcategory.active = not subcategory.active
            result = ToggleResult(id=subcategory.id, active=subcategory.active)

            if not subcategory.active:
                result.affected_products = self._deactivate(Product, Product.subcategory_id == subcategory_id)

            self.db.flush()
            write_log(self.db, user_id=actor_id, action="SUBCATEGORY_TOGGLE", resource="subcategories",
                      resource_id=subcategory_id, meta=result.model_dump())
        return result

    def toggle_product(self, product_id: int, actor_id: Optional[int] = None) -> ToggleResult:
        with unit_of_work(self.db):
            product = self._locked(Product, product_id)
            product.active = not product.active
            self.db.flush()
            write_log(self.db, user_id=actor_id, action="PRODUCT_TOGGLE", resource="products",
                      resource_id=product.id, meta={"active": product.active})
        return ToggleResult(id=product.id, active=product.active)

    def _locked(self, model, ident: int):
        # Fresh row under FOR UPDATE
        node = self.db.execute(
            select(model)
            .where(model.id == ident)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if node is None:
            raise NotFound(model.__name__, ident)
        return node

    def _deactivate(self, model, criterion) -> int:
        result = self.db.execute(
            update(model)
            .where(criterion, model.active.is_(True))
            .values(active=False)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    # =========================
    # DELETE
    # =========================

    def delete(self, node: Node, actor_id: Optional[int] = None) -> None:
        if isinstance(node, Category):
            return self.delete_category(node.id, actor_id)
        if isinstance(node, Subcategory):
            return self.delete_subcategory(node.id, actor_id)
        if isinstance(node, Product):
            return self.delete_product(node.id, actor_id)
        raise TypeError(f"Cannot delete {type(node).__name__}")

    def delete_category(self, category_id: int, actor_id: Optional[int] = None) -> None:
        with unit_of_work(self.db):
            category = self.get_category(category_id)
            subcategories = self._count(Subcategory.id, Subcategory.category_id == category_id)
            products = self._count(Product.id, Product.category_id == category_id)
            if subcategories or products:
                raise HasDependents("Category", category_id, {"subcategories": subcategories, "products": products})

            self.db.delete(category)
            write_log(self.db, user_id=actor_id, action="CATEGORY_DELETE", resource="categories",
                      resource_id=category_id)

    def delete_subcategory(self, subcategory_id: int, actor_id: Optional[int] = None) -> None:
        with unit_of_work(self.db):
            subcategory = self.get_subcategory(subcategory_id)
            products = self._count(Product.id, Product.subcategory_id == subcategory_id)
            if products:
                raise HasDependents("Subcategory", subcategory_id, {"products": products})

            self.db.delete(subcategory)
            write_log(self.db, user_id=actor_id, action="SUBCATEGORY_DELETE", resource="subcategories",
                      resource_id=subcategory_id)

    def delete_product(self, product_id: int, actor_id: Optional[int] = None) -> None:
        with unit_of_work(self.db):
            product = self.get_product(product_id)
            order_lines = self._count(OrderItem.id, OrderItem.product_id == product_id)
            if order_lines:
                raise HasDependents("Product", product_id, {"order lines": order_lines})

            image_ref = product.image_ref
            self.db.execute(sql_delete(CartItem).where(CartItem.product_id == product_id))
            self.db.execute(sql_delete(StockMovement).where(StockMovement.product_id == product_id))
            self.db.delete(product)
            write_log(self.db, user_id=actor_id, action="PRODUCT_DELETE", resource="products",
                      resource_id=product_id)

        # Only once the row is really gone
        self._discard_image(image_ref)

    # =========================
    # HELPERS
    # =========================

    def _count(self, column, criterion) -> int:
        return self.db.execute(select(func.count(column)).where(criterion)).scalar_one()

    def _check_parents(self, subcategory_id: int, category_id: int) -> None:
        subcategory = self.get_subcategory(subcategory_id)
        category = self.get_category(category_id)
        if not subcategory.active:
            raise ParentInactive("Subcategory", subcategory_id)
        if not category.active:
            raise ParentInactive("Category", category_id)
        if subcategory.category_id != category_id:
            raise HierarchyMismatch(subcategory_id, category_id, subcategory.category_id)

    def _ensure_category_name_free(self, name: str) -> None:
        if self._count(Category.id, Category.name == name):
            raise ValidationError.single("name", f"A category named '{name}' already exists")

    def _ensure_subcategory_name_free(self, category_id: int, name: str, exclude_id: Optional[int] = None) -> None:
        criterion = (Subcategory.category_id == category_id) & (Subcategory.name == name)
        if exclude_id is not None:
            criterion = criterion & (Subcategory.id != exclude_id)
        if self._count(Subcategory.id, criterion):
            raise ValidationError.single("name", f"A subcategory named '{name}' already exists in this category")

    def _discard_image(self, image_ref: Optional[str]) -> None:
        if not image_ref:
            return
        try:
            self.storage.delete(image_ref)
        except Exception as e:
            # Storage is best-effort; the product row is already gone
            logger.warning("Failed to delete image %s: %s", image_ref, e)


@contextmanager
def _unique_name_guard():
    # A concurrent insert can still beat the pre-check; report it the same way
    try:
        yield
    except IntegrityError as exc:
        raise ValidationError.single("name", "already exists") from exc


def _changes(payload, nullable=("description", "image_ref")) -> dict:
    return {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in nullable
    }

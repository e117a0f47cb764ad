# shopcore/routes/catalog.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from shopcore.database import get_db
from shopcore.models.product import Product
from shopcore.schemas.category import (
    CategoryCreate, CategoryDetail, CategoryOut, CategoryUpdate, NodeStats,
    SubcategoryCreate, SubcategoryOut, SubcategoryUpdate, ToggleResult,
)
from shopcore.schemas.product import ProductCreate, ProductListPage, ProductOut, ProductUpdate
from shopcore.services.catalog import CatalogHierarchy
from shopcore.utils.storage import ALLOWED_IMAGE_TYPES, FileStorage, get_storage
from shopcore.utils.tokenJWT import Identity, role_required

router = APIRouter(tags=["Catalog"])

admin_only = role_required("admin")


def _catalog(db: Session = Depends(get_db), storage: FileStorage = Depends(get_storage)) -> CatalogHierarchy:
    return CatalogHierarchy(db, storage)


def _product_out(catalog: CatalogHierarchy, product: Product) -> ProductOut:
    out = ProductOut.model_validate(product)
    out.image_url = catalog.image_url(product)
    return out


# ==========================================
#  CATEGORIES
# ==========================================
@router.get("/categories", response_model=List[CategoryOut])
def list_categories(
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    catalog: CatalogHierarchy = Depends(_catalog),
):
    return catalog.list_categories(active=active)


@router.get("/categories/{category_id}", response_model=CategoryDetail)
def get_category(category_id: int, catalog: CatalogHierarchy = Depends(_catalog)):
    return catalog.get_category(category_id)


@router.get("/categories/{category_id}/stats", response_model=NodeStats)
def category_stats(category_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                   current_user: Identity = Depends(admin_only)):
    return catalog.category_stats(category_id)


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, catalog: CatalogHierarchy = Depends(_catalog),
                    current_user: Identity = Depends(admin_only)):
    return catalog.create_category(payload, actor_id=current_user.user_id)


@router.patch("/categories/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, payload: CategoryUpdate, catalog: CatalogHierarchy = Depends(_catalog),
                    current_user: Identity = Depends(admin_only)):
    return catalog.update_category(category_id, payload, actor_id=current_user.user_id)


@router.patch("/categories/{category_id}/toggle", response_model=ToggleResult)
def toggle_category(category_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                    current_user: Identity = Depends(admin_only)):
    return catalog.toggle_category(category_id, actor_id=current_user.user_id)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                    current_user: Identity = Depends(admin_only)):
    catalog.delete_category(category_id, actor_id=current_user.user_id)


# ==========================================
#  SUBCATEGORIES
# ==========================================
@router.get("/subcategories", response_model=List[SubcategoryOut])
def list_subcategories(
    category_id: Optional[int] = Query(None),
    active: Optional[bool] = Query(None),
    catalog: CatalogHierarchy = Depends(_catalog),
):
    return catalog.list_subcategories(category_id=category_id, active=active)


@router.get("/subcategories/{subcategory_id}/stats", response_model=NodeStats)
def subcategory_stats(subcategory_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                      current_user: Identity = Depends(admin_only)):
    return catalog.subcategory_stats(subcategory_id)


@router.post("/categories/{category_id}/subcategories", response_model=SubcategoryOut,
             status_code=status.HTTP_201_CREATED)
def create_subcategory(category_id: int, payload: SubcategoryCreate, catalog: CatalogHierarchy = Depends(_catalog),
                       current_user: Identity = Depends(admin_only)):
    return catalog.create_subcategory(category_id, payload, actor_id=current_user.user_id)


@router.patch("/subcategories/{subcategory_id}", response_model=SubcategoryOut)
def update_subcategory(subcategory_id: int, payload: SubcategoryUpdate,
                       catalog: CatalogHierarchy = Depends(_catalog), current_user: Identity = Depends(admin_only)):
    return catalog.update_subcategory(subcategory_id, payload, actor_id=current_user.user_id)


@router.patch("/subcategories/{subcategory_id}/toggle", response_model=ToggleResult)
def toggle_subcategory(subcategory_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                       current_user: Identity = Depends(admin_only)):
    return catalog.toggle_subcategory(subcategory_id, actor_id=current_user.user_id)


@router.delete("/subcategories/{subcategory_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subcategory(subcategory_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                       current_user: Identity = Depends(admin_only)):
    catalog.delete_subcategory(subcategory_id, actor_id=current_user.user_id)


# ==========================================
#  PRODUCTS
# ==========================================
@router.get("/products", response_model=ProductListPage)
def list_products(
    category_id: Optional[int] = Query(None),
    subcategory_id: Optional[int] = Query(None),
    active: Optional[bool] = Query(None),
    in_stock: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    catalog: CatalogHierarchy = Depends(_catalog),
):
    items, total = catalog.list_products(
        category_id=category_id, subcategory_id=subcategory_id, active=active,
        in_stock=in_stock, page=page, page_size=page_size,
    )
    return {"items": [_product_out(catalog, p) for p in items], "total": total, "page": page, "page_size": page_size}


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, catalog: CatalogHierarchy = Depends(_catalog)):
    return _product_out(catalog, catalog.get_product(product_id))


@router.post("/subcategories/{subcategory_id}/products", response_model=ProductOut,
             status_code=status.HTTP_201_CREATED)
def create_product(
    subcategory_id: int,
    payload: ProductCreate,
    category_id: int = Query(..., description="Must own the subcategory"),
    catalog: CatalogHierarchy = Depends(_catalog),
    current_user: Identity = Depends(admin_only),
):
    product = catalog.create_product(subcategory_id, category_id, payload, actor_id=current_user.user_id)
    return _product_out(catalog, product)


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: int, payload: ProductUpdate, catalog: CatalogHierarchy = Depends(_catalog),
                   current_user: Identity = Depends(admin_only)):
    return _product_out(catalog, catalog.update_product(product_id, payload, actor_id=current_user.user_id))


@router.post("/products/{product_id}/image", response_model=ProductOut)
def upload_product_image(
    product_id: int,
    file: UploadFile = File(...),
    catalog: CatalogHierarchy = Depends(_catalog),
    current_user: Identity = Depends(admin_only),
):
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type")
    catalog.get_product(product_id)
    try:
        ref = catalog.storage.save(file.file, file.content_type)
    finally:
        file.file.close()
    product = catalog.update_product(product_id, {"image_ref": ref}, actor_id=current_user.user_id)
    return _product_out(catalog, product)


@router.patch("/products/{product_id}/toggle", response_model=ToggleResult)
def toggle_product(product_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                   current_user: Identity = Depends(admin_only)):
    return catalog.toggle_product(product_id, actor_id=current_user.user_id)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, catalog: CatalogHierarchy = Depends(_catalog),
                   current_user: Identity = Depends(admin_only)):
    catalog.delete_product(product_id, actor_id=current_user.user_id)

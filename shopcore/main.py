# shopcore/main.py
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from shopcore.config import settings, setup_logging
from shopcore.database import init_db
from shopcore.errors import (
    CheckoutFailed, EmptyCart, HasDependents, HierarchyMismatch, IllegalTransition, InsufficientStock,
    NotFound, ParentInactive, ProductInactive, ShopError, UseCancelInstead, ValidationError,
)

# Routers
from shopcore.routes.catalog import router as catalog_router
from shopcore.routes.cart import router as cart_router
from shopcore.routes.orders import router as orders_router
from shopcore.routes.stock import router as stock_router
from shopcore.routes.audit import router as audit_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    yield


app = FastAPI(title="Shopcore API", version="1.0.0", lifespan=lifespan)

# Uploaded product images
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict = {
    NotFound: 404,
    ValidationError: 422,
    ParentInactive: 409,
    HierarchyMismatch: 400,
    HasDependents: 409,
    InsufficientStock: 409,
    ProductInactive: 409,
    EmptyCart: 400,
    CheckoutFailed: 409,
    IllegalTransition: 409,
    UseCancelInstead: 405,
}


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """Map ShopError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Router registration
app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(stock_router)
app.include_router(audit_router)


@app.get("/")
def read_root():
    return {"message": "Shopcore API is running"}

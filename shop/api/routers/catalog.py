# shop/api/routers/catalog.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shop.data.database import get_db
from shop.domain.schemas import (
    CategoryCreateIn,
    CategoryListResponse,
    CategoryOut,
    CategoryResponse,
    ProductCreateIn,
    ProductListResponse,
    ProductResponse,
)
from shop.services.catalog_service import CatalogService

router = APIRouter(prefix="/api", tags=["catalog"])


def get_service(db: Session):
    return CatalogService(db)


@router.get("/products", response_model=ProductListResponse)
def list_products(
    category_id: Optional[int] = Query(None, gt=0),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return {"success": True, **svc.list_products(category_id, page, per_page)}


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "product": svc.get_product(product_id)}


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreateIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "product": svc.create_product(payload)}


@router.get("/categories", response_model=CategoryListResponse)
def list_categories(db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "categories": [CategoryOut.model_validate(c) for c in svc.list_categories()]}


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(payload: CategoryCreateIn, db: Session = Depends(get_db)):
    svc = get_service(db)
    return {"success": True, "category": CategoryOut.model_validate(svc.create_category(payload))}

# shop/services/catalog_service.py
from math import ceil
from typing import Any, Dict

from sqlalchemy.orm import Session

from shop.data.models.catalog import CategoryModel, ProductModel
from shop.domain.errors import NotFoundError
from shop.domain.schemas import CategoryCreateIn, ProductCreateIn
from shop.repos.product_repo import ProductRepo
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def product_view(product: ProductModel) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "description": product.description,
        "price": product.price,
        "current_price": product.current_price(),
        "has_discount": product.has_active_discount(),
        "stock": product.stock,
        "in_stock": product.in_stock,
        "category_id": product.category_id,
    }


class CatalogService:
    """Read-mostly product catalog; writes are admin-only."""

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def list_products(self, category_id: int | None = None, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
        products, total = self.repo.list_products(category_id, (page - 1) * per_page, per_page)
        return {
            "products": [product_view(p) for p in products],
            "pagination": {
                "current_page": page,
                "last_page": max(1, ceil(total / per_page)),
                "per_page": per_page,
                "total": total,
            },
        }

    def get_product(self, product_id: int) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product", product_id)
        return product_view(product)

    def create_product(self, payload: ProductCreateIn) -> Dict[str, Any]:
        if payload.category_id is not None and not self.repo.get_category(payload.category_id):
            raise NotFoundError("Category", payload.category_id)

        product = ProductModel(
            name=payload.name,
            slug=payload.slug,
            description=payload.description,
            price=payload.price,
            discount_price=payload.discount_price,
            discount_from=payload.discount_from,
            discount_to=payload.discount_to,
            stock=payload.stock,
            in_stock=payload.stock > 0,
            is_active=payload.is_active,
            category_id=payload.category_id,
        )
        created = self.repo.create_product(product)
        logger.info(f"Product {created.id} ({created.slug}) created")
        return product_view(created)

    def list_categories(self) -> list[CategoryModel]:
        return self.repo.list_categories()

    def create_category(self, payload: CategoryCreateIn) -> CategoryModel:
        category = self.repo.create_category(CategoryModel(name=payload.name, slug=payload.slug))
        logger.info(f"Category {category.id} ({category.slug}) created")
        return category

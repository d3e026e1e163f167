# shop/repos/product_repo.py
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from shop.data.models.catalog import CategoryModel, ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_products_for_update(self, product_ids: list[int]) -> dict[int, ProductModel]:
        # SELECT ... FOR UPDATE in id order, so concurrent checkouts lock rows the same way
        stmt = (
            select(ProductModel)
            .where(ProductModel.id.in_(product_ids))
            .order_by(ProductModel.id)
            .with_for_update()
        )
        return {p.id: p for p in self.db.execute(stmt).scalars().all()}

    def list_products(self, category_id: int | None, offset: int, limit: int) -> tuple[list[ProductModel], int]:
        stmt = select(ProductModel).where(ProductModel.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(ProductModel.category_id == category_id)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.db.execute(stmt.order_by(ProductModel.id).offset(offset).limit(limit)).scalars().all()
        return list(rows), total

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        """UPDATE products SET stock = stock - :qty WHERE id = :id AND stock >= :qty"""
        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity, in_stock=ProductModel.stock > quantity)
        )
        return self.db.execute(stmt).rowcount

    def restore_stock(self, product_id: int, quantity: int) -> int:
        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock=ProductModel.stock + quantity, in_stock=True)
        )
        return self.db.execute(stmt).rowcount

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def get_category(self, category_id: int) -> CategoryModel | None:
        return self.db.get(CategoryModel, category_id)

    def list_categories(self) -> list[CategoryModel]:
        return list(self.db.execute(select(CategoryModel).order_by(CategoryModel.name)).scalars().all())

    def create_category(self, category: CategoryModel) -> CategoryModel:
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        return category

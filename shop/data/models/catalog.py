# shop/data/models/catalog.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from shop.data.database import Base
from shop.utils.clock import as_utc, utcnow

product_colors = Table(
    "product_colors",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("color_id", Integer, ForeignKey("colors.id", ondelete="CASCADE"), primary_key=True),
)

product_sizes = Table(
    "product_sizes",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("size_id", Integer, ForeignKey("sizes.id", ondelete="CASCADE"), primary_key=True),
)


class CategoryModel(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)

    products = relationship("ProductModel", back_populates="category")


class ColorModel(Base):
    __tablename__ = "colors"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    hex_code = Column(String(7), nullable=True)


class SizeModel(Base):
    __tablename__ = "sizes"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    price = Column(Numeric(10, 2), nullable=False)
    discount_price = Column(Numeric(10, 2), nullable=True)
    discount_from = Column(DateTime(timezone=True), nullable=True)
    discount_to = Column(DateTime(timezone=True), nullable=True)

    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    in_stock = Column(Boolean, nullable=False, default=True)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    category = relationship("CategoryModel", back_populates="products")
    colors = relationship("ColorModel", secondary=product_colors)
    sizes = relationship("SizeModel", secondary=product_sizes)

    def has_active_discount(self, now=None) -> bool:
        if self.discount_price is None or not self.discount_from or not self.discount_to:
            return False
        now = now or utcnow()
        return as_utc(self.discount_from) <= now <= as_utc(self.discount_to)

    def current_price(self, now=None):
        if self.has_active_discount(now):
            return self.discount_price
        return self.price

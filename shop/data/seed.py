# shop/data/seed.py
from decimal import Decimal

from shop.data.database import SessionLocal, init_db
from shop.data.models import CategoryModel, ColorModel, DiscountModel, ProductModel, SizeModel
from shop.data.models.discount import TYPE_FIXED_AMOUNT, TYPE_PERCENTAGE
from shop.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    ("Linen shirt", "linen-shirt", "100.00", 25),
    ("Cotton thobe", "cotton-thobe", "250.00", 10),
    ("Leather sandals", "leather-sandals", "50.00", 40),
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return

        category = CategoryModel(name="Clothing", slug="clothing")
        colors = [ColorModel(name="White", hex_code="#FFFFFF"), ColorModel(name="Black", hex_code="#000000")]
        sizes = [SizeModel(name=s) for s in ("S", "M", "L")]
        db.add(category)

        for name, slug, price, stock in PRODUCTS:
            db.add(
                ProductModel(
                    name=name,
                    slug=slug,
                    price=Decimal(price),
                    stock=stock,
                    in_stock=stock > 0,
                    category=category,
                    colors=colors,
                    sizes=sizes,
                )
            )

        db.add(DiscountModel(code="WELCOME10", name="Welcome 10%", type=TYPE_PERCENTAGE, value=Decimal("10")))
        db.add(
            DiscountModel(
                code="SAVE50",
                name="50 off orders over 300",
                type=TYPE_FIXED_AMOUNT,
                value=Decimal("50"),
                minimum_amount=Decimal("300"),
            )
        )
        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()

#all models imported here so SQLAlchemy registers them in Base.metadata

from shop.data.models.catalog import CategoryModel, ColorModel, SizeModel, ProductModel
from shop.data.models.customer import CustomerModel, CustomerAddressModel
from shop.data.models.cart import CartModel
from shop.data.models.cart_item import CartItemModel
from shop.data.models.discount import DiscountModel, DiscountUsageModel
from shop.data.models.order import OrderModel
from shop.data.models.order_item import OrderItemModel
from shop.data.models.payment import PaymentModel

__all__ = [
    "CategoryModel",
    "ColorModel",
    "SizeModel",
    "ProductModel",
    "CustomerModel",
    "CustomerAddressModel",
    "CartModel",
    "CartItemModel",
    "DiscountModel",
    "DiscountUsageModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentModel",
]

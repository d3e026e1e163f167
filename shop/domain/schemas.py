# shop/domain/schemas.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shop.domain.order_status import OrderStatus

PaymentMethod = Literal["card", "cash_on_delivery", "bank_transfer"]
DiscountType = Literal["percentage", "fixed_amount"]


# =====================================================
# INPUT
# =====================================================
class CartAddIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1, le=100)


class CartUpdateIn(BaseModel):
    """Quantity 0 removes the line."""

    item_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=0, le=100)


class CartRemoveIn(BaseModel):
    item_id: int = Field(..., gt=0)


class DiscountCodeIn(BaseModel):
    discount_code: str = Field(..., min_length=1, max_length=50)


class CartMergeIn(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)


class AddressIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=20)
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class OrderCreateIn(BaseModel):
    """Checkout request: an existing address id or a new address, never neither."""

    shipping_address_id: Optional[int] = Field(None, gt=0)
    shipping_address: Optional[AddressIn] = None
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _address_required(self):
        if self.shipping_address_id is None and self.shipping_address is None:
            raise ValueError("shipping_address is required when shipping_address_id is not given")
        return self


class OrderStatusIn(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)
    tracking_number: Optional[str] = Field(None, max_length=100)


class CardDetailsIn(BaseModel):
    number: str = Field(..., min_length=13, max_length=23)
    expiry_month: int = Field(..., ge=1, le=12)
    expiry_year: int
    cvv: str = Field(..., min_length=3, max_length=4, pattern=r"^\d+$")
    holder_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("number")
    @classmethod
    def _digits(cls, v: str) -> str:
        v = "".join(v.split())
        if not v.isdigit() or not 13 <= len(v) <= 19:
            raise ValueError("Invalid card number")
        return v

    @field_validator("expiry_year")
    @classmethod
    def _not_expired(cls, v: int) -> int:
        if v < datetime.now(timezone.utc).year:
            raise ValueError("Card is expired")
        return v


class PaymentProcessIn(BaseModel):
    order_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    card_details: Optional[CardDetailsIn] = None

    @model_validator(mode="after")
    def _card_needs_details(self):
        if self.payment_method == "card" and self.card_details is None:
            raise ValueError("card_details are required for card payments")
        return self


class RefundIn(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=500)


class PaymentCompleteIn(BaseModel):
    transaction_id: Optional[str] = Field(None, max_length=255)
    gateway_response: Optional[dict] = None


class PaymentFailIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    gateway_response: Optional[dict] = None


class DiscountCreateIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: DiscountType
    value: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    minimum_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    usage_limit_per_customer: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check(self):
        if self.type == "percentage" and self.value > 100:
            raise ValueError("percentage value cannot exceed 100")
        if self.starts_at and self.expires_at and self.expires_at <= self.starts_at:
            raise ValueError("expires_at must be after starts_at")
        return self


class CustomerCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone_number: str = Field(..., min_length=6, max_length=20)


class CategoryCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$")


class ProductCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    discount_price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    discount_from: Optional[datetime] = None
    discount_to: Optional[datetime] = None
    stock: int = Field(0, ge=0)
    is_active: bool = True
    category_id: Optional[int] = Field(None, gt=0)


# =====================================================
# OUTPUT
# =====================================================
class CartItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class CartOut(BaseModel):
    id: int
    customer_id: Optional[int] = None
    items: List[CartItemOut]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    discount_code: Optional[str] = None
    total: Decimal
    item_count: int
    is_empty: bool
    expires_at: Optional[datetime] = None


class CartResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    cart: CartOut


class AddressOut(BaseModel):
    id: int
    name: str
    phone: str
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str

    model_config = ConfigDict(from_attributes=True)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    status: str
    payment_method: str
    transaction_id: Optional[str] = None
    gateway: Optional[str] = None
    failure_reason: Optional[str] = None
    refund_reason: Optional[str] = None
    refunded_payment_id: Optional[int] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderSummaryOut(BaseModel):
    id: int
    order_number: str
    total: Decimal
    status: str
    payment_method: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    order_number: str
    status: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    payment_method: Optional[str] = None
    payment_status: str
    is_paid: bool
    can_be_cancelled: bool
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    items: List[OrderItemOut]
    payments: List[PaymentOut]
    shipping_address: Optional[AddressOut] = None


class OrderCreatedResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    order: OrderSummaryOut
    payment: Optional[PaymentOut] = None


class OrderResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    order: OrderOut


class PaginationOut(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int


class OrderListResponse(BaseModel):
    success: bool = True
    orders: List[OrderOut]
    pagination: PaginationOut


class TrackingOut(BaseModel):
    order_number: str
    status: str
    tracking_number: Optional[str] = None
    created_at: datetime
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    estimated_delivery: Optional[str] = None


class TrackingResponse(BaseModel):
    success: bool = True
    tracking: TrackingOut


class OrderStateOut(BaseModel):
    id: int
    status: str


class PaymentProcessResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    payment: PaymentOut
    order: OrderStateOut


class PaymentStatusOut(BaseModel):
    order_id: int
    order_number: str
    total_amount: Decimal
    is_paid: bool
    payment_status: str
    payments: List[PaymentOut]


class PaymentStatusResponse(BaseModel):
    success: bool = True
    payment_status: PaymentStatusOut


class RefundOut(BaseModel):
    id: int
    amount: Decimal
    reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    refundable_balance: Decimal
    payment_status: str
    order_status: str


class RefundResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    refund: RefundOut


class PaymentResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    payment: PaymentOut
    order: OrderStateOut


class PaymentMethodOut(BaseModel):
    id: str
    name: str
    description: str
    enabled: bool


class PaymentMethodsResponse(BaseModel):
    success: bool = True
    payment_methods: List[PaymentMethodOut]


class DiscountOut(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    type: str
    value: Decimal
    minimum_amount: Optional[Decimal] = None
    maximum_discount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    usage_limit_per_customer: Optional[int] = None
    used_count: int
    is_active: bool
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DiscountResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    discount: DiscountOut


class DiscountValidationResponse(BaseModel):
    success: bool = True
    code: str
    valid: bool
    discount_amount: Decimal
    message: Optional[str] = None


class CustomerOut(BaseModel):
    id: int
    name: str
    phone_number: str
    phone_verified_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CustomerResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    customer: CustomerOut


class AddressResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    address: AddressOut


class AddressListResponse(BaseModel):
    success: bool = True
    addresses: List[AddressOut]


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class CategoryResponse(BaseModel):
    success: bool = True
    category: CategoryOut


class CategoryListResponse(BaseModel):
    success: bool = True
    categories: List[CategoryOut]


class ProductOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Decimal
    current_price: Decimal
    has_discount: bool
    stock: int
    in_stock: bool
    category_id: Optional[int] = None


class ProductResponse(BaseModel):
    success: bool = True
    product: ProductOut


class ProductListResponse(BaseModel):
    success: bool = True
    products: List[ProductOut]
    pagination: PaginationOut

"""Data models for storefront entities."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from .pricing import effective_price


class Variation(BaseModel):
    """A selectable size/type option for a product."""

    id: str
    name: str
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Price delta added to the product price")
    image_url: Optional[str] = None
    sku: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0, description="Overrides the product stock for this variation")
    sort_order: int = 0


class AddOn(BaseModel):
    """An optional extra attached to a line item."""

    id: str
    name: str
    price: Decimal = Decimal("0")
    category: str = Field(default="", description="Grouping label, no pricing effect")
    quantity: Optional[int] = Field(None, ge=1)
    image: Optional[str] = None
    description: Optional[str] = None


class Product(BaseModel):
    """Represents a product from the catalog."""

    id: str = Field(description="Product ID")
    name: str = Field(description="Product name")
    description: str = ""
    base_price: Decimal = Field(description="Regular price")
    discounted_price: Optional[Decimal] = Field(None, description="Sale price, used when lower than base_price")
    category: str = ""
    subcategory: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    popular: bool = False
    available: bool = True
    variations: list[Variation] = Field(default_factory=list)
    add_ons: list[AddOn] = Field(default_factory=list)
    brand: Optional[str] = None
    sku: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0, description="Stock on hand; missing means unknown")

    def get_variation(self, variation_id: str) -> Optional[Variation]:
        for variation in self.variations:
            if variation.id == variation_id:
                return variation
        return None

    def get_add_on(self, add_on_id: str) -> Optional[AddOn]:
        for add_on in self.add_ons:
            if add_on.id == add_on_id:
                return add_on
        return None


class CartItem(BaseModel):
    """Represents one line in the shopping cart."""

    id: str = Field(description="Line item ID")
    product: Product
    quantity: int = Field(gt=0)
    selected_variation: Optional[Variation] = None
    selected_add_ons: list[AddOn] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def unit_price(self) -> Decimal:
        return effective_price(self.product, self.selected_variation, self.selected_add_ons)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def available_stock(self) -> int:
        """Stock ceiling for this line (variation stock wins over product stock)."""
        if self.selected_variation is not None and self.selected_variation.stock is not None:
            return self.selected_variation.stock
        return self.product.stock or 0


class Cart(BaseModel):
    """Snapshot of the shopping cart."""

    items: list[CartItem] = Field(default_factory=list, description="Cart items")
    total: Decimal = Field(default=Decimal("0"), description="Total cart value")
    item_count: int = Field(default=0, description="Total number of items")
    savings: Decimal = Field(default=Decimal("0"), description="Amount saved through discounted prices")


class PercentageDiscount(BaseModel):
    type: Literal["percentage"] = "percentage"
    value: Decimal = Field(ge=0, le=100)


class FixedDiscount(BaseModel):
    type: Literal["fixed"] = "fixed"
    value: Decimal = Field(ge=0)


Discount = Annotated[Union[PercentageDiscount, FixedDiscount], Field(discriminator="type")]


class Voucher(BaseModel):
    """A discount code with eligibility rules and a redemption ceiling."""

    id: str
    code: str
    discount: Discount
    min_order_amount: Decimal = Decimal("0")
    max_uses: Optional[int] = None
    used_count: int = 0
    is_active: bool = True
    expires_at: Optional[datetime] = None
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _nest_discount_columns(cls, data: Any) -> Any:
        # Backend rows store the discount as two flat columns
        if isinstance(data, dict) and "discount" not in data and "discount_type" in data:
            data = dict(data)
            data["discount"] = {
                "type": data.pop("discount_type"),
                "value": data.pop("discount_value", 0),
            }
        return data

    @field_validator("code")
    @classmethod
    def _canonical_code(cls, value: str) -> str:
        return value.strip().upper()


class ShippingMethod(BaseModel):
    """Represents a shipping option offered at checkout."""

    id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    estimated_days: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0


class PaymentMethod(BaseModel):
    """Represents a payment method (e-wallet, bank account, COD)."""

    id: str
    name: str
    account_number: str = ""
    account_name: str = ""
    qr_code_url: str = ""
    active: bool = True
    sort_order: int = 0


class Category(BaseModel):
    """Represents a product category, optionally nested under a parent."""

    id: str
    name: str
    icon: str = ""
    sort_order: int = 0
    active: bool = True
    parent_id: Optional[str] = None
    subcategories: list["Category"] = Field(default_factory=list)
    level: int = 0
    path: str = ""


class ShippingAddress(BaseModel):
    street: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    country: str = "Philippines"

    def format(self) -> str:
        return (
            f"{self.street}\n"
            f"{self.city}, {self.province} {self.postal_code}\n"
            f"{self.country}"
        )


class CustomerDetails(BaseModel):
    """Contact and delivery details entered at checkout."""

    customer_name: str = ""
    contact_number: str = ""
    email: Optional[str] = None
    shipping_address: ShippingAddress = Field(default_factory=ShippingAddress)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """Represents an item in an order."""

    product_id: str
    product_name: str
    product_description: Optional[str] = None
    base_price: Decimal
    discounted_price: Optional[Decimal] = None
    quantity: int
    variation_id: Optional[str] = None
    variation_name: Optional[str] = None
    variation_price: Decimal = Decimal("0")
    add_ons: list[AddOn] = Field(default_factory=list)
    item_total: Decimal


class Order(BaseModel):
    """Represents an order."""

    id: Optional[str] = Field(None, description="Order ID assigned by the backend")
    order_number: str = Field(description="Human-readable order number")
    customer_name: str
    contact_number: str
    email: Optional[str] = None
    shipping_address: ShippingAddress
    shipping_method: str
    shipping_fee: Decimal = Decimal("0")
    subtotal: Decimal
    voucher_discount: Decimal = Decimal("0")
    total_amount: Decimal
    payment_method: str
    notes: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    voucher_id: Optional[str] = None
    voucher_code: Optional[str] = None
    items: list[OrderItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class AdminSession(BaseModel):
    """Persisted admin gate state."""

    is_authenticated: bool = False
    logged_in_at: Optional[datetime] = None

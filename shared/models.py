from __future__ import annotations
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import List, Optional, Dict, Any

class AuthMode(str, Enum):
    USER_POOL = "userPool"
    API_KEY = "apiKey"
    IAM = "iam"

    @classmethod
    def parse(cls, value: "AuthMode | str") -> "AuthMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"unknown auth mode {value!r} (expected one of: {allowed})") from None

class ListingStatus(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    UNCONFIRMED = "unconfirmed"
    SHIPPING_TO_SCENTRA = "shipping_to_scentra"
    VERIFYING = "verifying"
    SHIPPING_TO_BUYER = "shipping_to_buyer"
    COMPLETED = "completed"
    SOLD = "sold"
    REMOVED = "removed"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    REFUNDED = "refunded"

# Allowed order status moves, as the admin console offers them.
ORDER_TRANSITIONS: Dict[OrderStatus, List[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [OrderStatus.CANCELLED],
    OrderStatus.CANCELLED: [OrderStatus.PENDING],
}

def allowed_transitions(current: str) -> List[ListingStatus]:
    """Any listing status may move to any other one."""
    return [s for s in ListingStatus if s.value != current]

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)

class _Record:
    """camelCase <-> snake_case mapping shared by every data API record."""

    def to_record(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if v is None:
                continue
            out[_camel(f.name)] = v.value if isinstance(v, Enum) else v
        return out

    @classmethod
    def from_record(cls, item: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key in item:
                kwargs[f.name] = item[key]
        return cls(**kwargs)

@dataclass
class Listing(_Record):
    id: str
    seller_id: str
    fragrance_id: str
    bottle_size: str
    condition: str
    asking_price: float
    image_key: str
    status: str = ListingStatus.ACTIVE.value
    percent_remaining: Optional[int] = None
    has_original_box: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

@dataclass
class OrderItem(_Record):
    id: str
    order_id: str
    listing_id: str
    status: str
    seller_id: Optional[str] = None
    price: Optional[float] = None

@dataclass
class Order(_Record):
    id: str
    buyer_id: str
    order_status: str = OrderStatus.PENDING.value
    payment_status: str = PaymentStatus.AWAITING_PAYMENT.value
    created_at: Optional[str] = None

@dataclass
class Todo(_Record):
    id: str
    content: Optional[str] = None

@dataclass
class Page:
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_token: Optional[str] = None

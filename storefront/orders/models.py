"""
Types de la feature 'orders'.
- OrderStatus: cycle de vie created -> pending -> completed | cancelled (pas de retour depuis un état terminal)
- ShippingDetails: livraison ('shipping') ou retrait ('pickup'); adresse exigée pour la livraison
- Order: enregistrement immuable une fois créé, clé = reference
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from storefront.cart.models import CartItem, to_decimal

ANONYMOUS_USER = "anonymous"


class OrderStatus(Enum):
    CREATED = "created"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    OrderStatus.CREATED: {OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class DeliveryMethod(Enum):
    SHIPPING = "shipping"
    PICKUP = "pickup"


@dataclass
class ShippingDetails:
    method: DeliveryMethod = DeliveryMethod.SHIPPING
    name: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    email: str = ""
    phone: str = ""

    def missing_fields(self) -> List[str]:
        """Champs d'adresse requis manquants (uniquement pour une livraison)."""
        if self.method is not DeliveryMethod.SHIPPING:
            return []
        return [n for n in ("address", "city", "postal_code") if not (getattr(self, n) or "").strip()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "postalCode": self.postal_code,
            "email": self.email,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShippingDetails":
        data = data or {}
        return cls(
            method=DeliveryMethod(data.get("method") or "shipping"),
            name=data.get("name") or "",
            address=data.get("address") or "",
            city=data.get("city") or "",
            postal_code=data.get("postalCode") or data.get("postal_code") or "",
            email=data.get("email") or "",
            phone=data.get("phone") or "",
        )


@dataclass(frozen=True)
class OrderItem:
    id: str
    name: str
    price: Decimal
    quantity: int

    @classmethod
    def from_cart_item(cls, item: CartItem) -> "OrderItem":
        return cls(id=item.id, name=item.name, price=item.price, quantity=item.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": float(self.price), "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            price=to_decimal(data.get("price")),
            quantity=int(data.get("quantity") or 1),
        )


@dataclass
class Order:
    reference: str
    email: str
    items: List[OrderItem]
    total: Decimal
    shipping: ShippingDetails
    user_id: str = ANONYMOUS_USER
    status: OrderStatus = OrderStatus.CREATED
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        """Ligne Supabase (table 'orders')."""
        record = {
            "reference": self.reference,
            "user_id": self.user_id or ANONYMOUS_USER,
            "email": self.email,
            "items": [i.to_dict() for i in self.items],
            "total": float(self.total),
            "shipping": self.shipping.to_dict(),
            "status": self.status.value,
        }
        if self.created_at:
            record["created_at"] = self.created_at
        if self.updated_at:
            record["updated_at"] = self.updated_at
        return record

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            reference=str(data.get("reference") or ""),
            email=data.get("email") or "",
            items=[OrderItem.from_dict(d) for d in data.get("items") or []],
            total=to_decimal(data.get("total")),
            shipping=ShippingDetails.from_dict(data.get("shipping") or {}),
            user_id=data.get("user_id") or ANONYMOUS_USER,
            status=OrderStatus(data.get("status") or "created"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

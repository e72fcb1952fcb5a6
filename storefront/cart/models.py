"""
Types du panier.
- LineKey: identité composite (produit, taille, couleur) d'une ligne de panier
- CartItem: ligne de panier (prix Decimal, devise implicite EUR)
- Product: référence produit pour la liste de souhaits
Sérialisation "document" (clés camelCase) partagée par le stockage local et le document Supabase.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple


def to_decimal(value: Any) -> Decimal:
    """Convertit un prix (str|int|float|Decimal) en Decimal; 0 si illisible."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _opt(value: Any) -> Optional[str]:
    # "" et None désignent la même absence de variante
    return str(value) if value not in (None, "") else None


@dataclass(frozen=True)
class LineKey:
    product_id: str
    size: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def of(cls, product_id: Any, size: Any = None, color: Any = None) -> "LineKey":
        return cls(str(product_id), _opt(size), _opt(color))


@dataclass(frozen=True)
class Product:
    id: str
    name: str = ""
    image: str = ""
    price: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "image": self.image, "price": float(self.price)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            image=data.get("image") or "",
            price=to_decimal(data.get("price")),
        )


@dataclass(frozen=True)
class CartItem:
    id: str
    name: str = ""
    image: str = ""
    price: Decimal = Decimal("0")
    quantity: int = 1
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None

    def __post_init__(self):
        if self.price < 0:
            raise ValueError("Le prix ne peut pas être négatif")
        if self.quantity < 1:
            raise ValueError("La quantité doit être supérieure ou égale à 1")

    @property
    def key(self) -> LineKey:
        return LineKey.of(self.id, self.selected_size, self.selected_color)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def with_quantity(self, quantity: int) -> "CartItem":
        return replace(self, quantity=quantity)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "price": float(self.price),
            "quantity": self.quantity,
        }
        if self.selected_size is not None:
            data["selectedSize"] = self.selected_size
        if self.selected_color is not None:
            data["selectedColor"] = self.selected_color
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            image=data.get("image") or "",
            price=to_decimal(data.get("price")),
            quantity=int(data.get("quantity") or 1),
            selected_size=_opt(data.get("selectedSize", data.get("selected_size"))),
            selected_color=_opt(data.get("selectedColor", data.get("selected_color"))),
        )


@dataclass(frozen=True)
class CartState:
    items: Tuple[CartItem, ...] = ()
    wishlist: Tuple[Product, ...] = ()
    updated_at: str = field(default="")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cart": [i.to_dict() for i in self.items],
            "wishlist": [p.to_dict() for p in self.wishlist],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartState":
        data = data or {}
        return cls(
            items=tuple(CartItem.from_dict(d) for d in data.get("cart") or []),
            wishlist=tuple(Product.from_dict(d) for d in data.get("wishlist") or []),
            updated_at=data.get("updatedAt") or "",
        )

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, NamedTuple, Tuple

from pos.domain import LineItem, Product

Money = Decimal


def D(x: Any) -> Money:
    if isinstance(x, Decimal):
        return x if x.is_finite() else Decimal("0")
    try:
        d = Decimal(str(x if x is not None else "0"))
    except InvalidOperation:
        return Decimal("0")
    return d if d.is_finite() else Decimal("0")


def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def clamp_discount(value: Any) -> float:
    """Discount percent limited to 0..100; anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pct != pct:  # NaN
        return 0.0
    return max(0.0, min(100.0, pct))


class Totals(NamedTuple):
    subtotal: float
    discount_percent: float
    discount_amount: float
    total: float


def compute_totals(prices: Iterable[Any], discount_percent: Any = 0) -> Totals:
    subtotal = sum((D(p) for p in prices), Decimal("0"))
    pct = clamp_discount(discount_percent)
    discount_amount = round_money(subtotal * D(pct) / Decimal(100))
    total = round_money(subtotal - discount_amount)
    return Totals(float(subtotal), pct, float(discount_amount), float(total))


# One cart row; the same product may be added several times
@dataclass(frozen=True)
class CartEntry:
    key: str
    product_id: str
    title: str
    price: float
    details: str = ""
    category: str = ""

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_id=self.product_id,
            product_name=self.title,
            details=self.details,
            price=self.price,
        )


Cart = Tuple[CartEntry, ...]


def add_to_cart(cart: Cart, product: Product, key: str) -> Cart:
    entry = CartEntry(
        key=key,
        product_id=product.id,
        title=product.title,
        price=product.price,
        details=product.details,
        category=product.category or "",
    )
    return cart + (entry,)


def remove_from_cart(cart: Cart, key: str) -> Cart:
    return tuple(e for e in cart if e.key != key)


def cart_totals(cart: Cart, discount_percent: Any = 0) -> Totals:
    return compute_totals((e.price for e in cart), discount_percent)


def search_products(products: Iterable[Product], query: str) -> Tuple[Product, ...]:
    needle = (query or "").strip().lower()
    if not needle:
        return tuple(products)
    return tuple(
        p for p in products
        if needle in p.title.lower() or needle in p.details.lower()
    )

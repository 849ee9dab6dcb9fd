from dataclasses import dataclass
from datetime import datetime
from typing import Optional

UNKNOWN_PRODUCT = "Unknown Product"


@dataclass(frozen=True)
class Product:
    id: str
    title: str                    # falls back to the legacy "name" field
    price: float
    stock: int
    details: str = ""
    category: Optional[str] = None
    barcode: Optional[str] = None  # not unique, first match wins on lookup
    available: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.title or UNKNOWN_PRODUCT


# A product snapshot embedded in a transaction at checkout
@dataclass(frozen=True)
class LineItem:
    product_id: Optional[str]
    product_name: str             # productName, then title, then UNKNOWN_PRODUCT
    price: float
    details: str = ""


@dataclass(frozen=True)
class Transaction:
    id: str
    customer_name: str
    items: tuple[LineItem, ...]
    finished_at: Optional[datetime]
    subtotal: float = 0.0
    discount_percent: float = 0.0
    discount_amount: float = 0.0
    total: Optional[float] = None  # missing on legacy records

    @property
    def items_total(self) -> float:
        return sum(i.price for i in self.items)

    @property
    def effective_total(self) -> float:
        if self.total is not None:
            return self.total
        return self.items_total


@dataclass(frozen=True)
class Expense:
    id: str
    amount: float
    date: Optional[datetime]
    note: str = "No details"

import json
import math
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pos.dates import parse_timestamp
from pos.domain import UNKNOWN_PRODUCT, Expense, LineItem, Product, Transaction

COLLECTIONS = ("products", "transactions", "expenses")

Records = Dict[str, Dict[str, Any]]


def to_number(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Coerce finite numbers and numeric strings; anything else becomes ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return default
    else:
        return default
    # "NaN" and "inf" parse as floats
    return number if math.isfinite(number) else default


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _sequence(value: Any) -> Iterable[Any]:
    # the realtime database returns sparse arrays as {"0": ..., "2": ...}
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        def index(key):
            return (0, int(key)) if str(key).isdigit() else (1, str(key))
        return [value[k] for k in sorted(value, key=index)]
    return ()


def product_from_record(key: str, rec: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Product:
    barcode = rec.get("barcode")
    return Product(
        id=key,
        title=_text(rec.get("title") or rec.get("name")),
        details=_text(rec.get("details") or rec.get("detail")),
        price=to_number(rec.get("price")),
        category=rec.get("category") or None,
        stock=int(to_number(rec.get("stock"))),
        barcode=str(barcode) if barcode not in (None, "") else None,
        available=bool(rec.get("available", True)),
        created_at=parse_timestamp(rec.get("createdAt"), tz),
        updated_at=parse_timestamp(rec.get("updatedAt"), tz),
    )


def line_item_from_record(rec: Mapping[str, Any]) -> LineItem:
    return LineItem(
        product_id=rec.get("productId") or rec.get("id"),
        product_name=_text(rec.get("productName") or rec.get("title"), UNKNOWN_PRODUCT),
        details=_text(rec.get("details") or rec.get("detail")),
        price=to_number(rec.get("price")),
    )


def transaction_from_record(key: str, rec: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Transaction:
    items = tuple(
        line_item_from_record(item) for item in _sequence(rec.get("products")) if isinstance(item, Mapping)
    )
    return Transaction(
        id=key,
        customer_name=_text(rec.get("customerName")),
        items=items,
        finished_at=parse_timestamp(rec.get("finishedAt"), tz),
        subtotal=to_number(rec.get("subtotal"), sum(i.price for i in items)),
        discount_percent=to_number(rec.get("discountPercent")),
        discount_amount=to_number(rec.get("discountAmount")),
        total=to_number(rec.get("total"), None),
    )


def expense_from_record(key: str, rec: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Expense:
    return Expense(
        id=key,
        amount=to_number(rec.get("amount")),
        note=_text(rec.get("note")) or "No details",
        date=parse_timestamp(rec.get("date"), tz),
    )


def products_from_records(records: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Tuple[Product, ...]:
    return tuple(product_from_record(k, v, tz) for k, v in records.items() if isinstance(v, Mapping))


def transactions_from_records(records: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Tuple[Transaction, ...]:
    return tuple(transaction_from_record(k, v, tz) for k, v in records.items() if isinstance(v, Mapping))


def expenses_from_records(records: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Tuple[Expense, ...]:
    return tuple(expense_from_record(k, v, tz) for k, v in records.items() if isinstance(v, Mapping))


def isoformat(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds")


def line_item_record(item: LineItem) -> Dict[str, Any]:
    return {
        "productId": item.product_id,
        "productName": item.product_name,
        "details": item.details,
        "price": item.price,
    }


def transaction_record(tx: Transaction) -> Dict[str, Any]:
    rec: Dict[str, Any] = {
        "customerName": tx.customer_name,
        "products": [line_item_record(i) for i in tx.items],
        "subtotal": tx.subtotal,
        "discountPercent": tx.discount_percent,
        "discountAmount": tx.discount_amount,
        "finishedAt": isoformat(tx.finished_at) if tx.finished_at else None,
    }
    if tx.total is not None:
        rec["total"] = tx.total
    return rec


def expense_record(expense: Expense) -> Dict[str, Any]:
    return {
        "amount": expense.amount,
        "note": expense.note,
        "date": isoformat(expense.date) if expense.date else None,
    }


def load_seed(path: str) -> Dict[str, Records]:
    """Read a seed file shaped like a realtime database export."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {name: dict(data.get(name) or {}) for name in COLLECTIONS}


def available_products(products: Tuple[Product, ...]) -> Tuple[Product, ...]:
    return tuple(filter(lambda p: p.available, products))

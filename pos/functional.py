import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, TypeVar

from pos.domain import Product

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    def is_left(self) -> bool:
        return not self.is_right()

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def find_product_by_barcode(products: Iterable[Product], code: str) -> Maybe[Product]:
    # exact, case-sensitive; the first of several products sharing a code wins
    for p in products:
        if p.barcode is not None and p.barcode == code:
            return Some(p)
    return Nothing()


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_product_form(form: Mapping[str, Any]) -> Either[dict, dict]:
    """Check the product form and return the fields to store."""
    missing = [f for f in ("title", "price", "stock") if _blank(form.get(f))]
    if missing:
        return Left({
            "error": "missing_field",
            "message": "Please fill required fields",
            "fields": missing,
        })

    price = _parse_number(form.get("price"))
    if price is None or price < 0:
        return Left({
            "error": "invalid_number",
            "message": f"Price must be a non-negative number, got {form.get('price')!r}",
            "fields": ["price"],
        })

    stock = _parse_number(form.get("stock"))
    if stock is None or stock < 0 or stock != int(stock):
        return Left({
            "error": "invalid_number",
            "message": f"Stock must be a whole number of at least 0, got {form.get('stock')!r}",
            "fields": ["stock"],
        })

    barcode = form.get("barcode")
    return Right({
        "title": str(form["title"]).strip(),
        "details": str(form.get("details") or ""),
        "price": price,
        "category": str(form.get("category") or ""),
        "stock": int(stock),
        "barcode": "" if _blank(barcode) else str(barcode).strip(),
    })


def validate_expense(amount: Any, note: Any = "") -> Either[dict, dict]:
    if _blank(amount):
        return Left({
            "error": "missing_field",
            "message": "Amount is required",
            "fields": ["amount"],
        })

    value = _parse_number(amount)
    if value is None or value <= 0:
        return Left({
            "error": "invalid_number",
            "message": f"Amount must be a positive number, got {amount!r}",
            "fields": ["amount"],
        })

    return Right({"amount": value, "note": "No details" if _blank(note) else str(note).strip()})


def validate_checkout(customer_name: Any, cart: tuple) -> Either[dict, str]:
    if _blank(customer_name):
        return Left({
            "error": "missing_field",
            "message": "Please enter customer name",
            "fields": ["customer_name"],
        })

    if not cart:
        return Left({
            "error": "empty_cart",
            "message": "Please add at least one product",
            "fields": ["cart"],
        })

    return Right(str(customer_name).strip())

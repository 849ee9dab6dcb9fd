from dataclasses import replace
from datetime import datetime, tzinfo
from typing import Any, Mapping, Optional, Tuple

from pos.checkout import Cart, cart_totals
from pos.dates import now_local
from pos.domain import Expense, Product, Transaction
from pos.functional import (
    Either, Left, Maybe, Right, find_product_by_barcode,
    validate_checkout, validate_expense, validate_product_form,
)
from pos.logging import get_logger
from pos.store import Store
from pos.transforms import (
    expense_record, expenses_from_records, isoformat, products_from_records,
    transaction_record, transactions_from_records,
)

log = get_logger("services")


class ProductService:
    """Catalog reads and writes against the ``products`` collection."""

    path = "products"

    def __init__(self, store: Store, tz: Optional[tzinfo] = None):
        self.store = store
        self.tz = tz

    def list_products(self) -> Tuple[Product, ...]:
        return products_from_records(self.store.list(self.path), self.tz)

    def save_product(
        self, form: Mapping[str, Any], editing_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Either[dict, str]:
        """Create a product, or overwrite the form fields of ``editing_id``.

        Returns the product key, or the validation error without writing.
        """
        checked = validate_product_form(form)
        if checked.is_left():
            return checked

        stamp = isoformat(now or now_local(self.tz))
        fields = dict(checked.get_or_else({}), available=True, updatedAt=stamp)
        if editing_id:
            self.store.update(self.path, editing_id, fields)
            log.info(f"Product {editing_id} updated")
            return Right(editing_id)

        key = self.store.push(self.path, dict(fields, createdAt=stamp))
        log.info(f"Product {key} added: {fields['title']!r}")
        return Right(key)

    def set_availability(self, product_id: str, available: bool) -> None:
        self.store.update(self.path, product_id, {"available": bool(available)})

    def delete_product(self, product_id: str) -> None:
        self.store.remove(self.path, product_id)
        log.info(f"Product {product_id} deleted")

    def find_by_barcode(self, code: str) -> Maybe[Product]:
        return find_product_by_barcode(self.list_products(), code)


class TransactionService:
    path = "transactions"

    def __init__(self, store: Store, tz: Optional[tzinfo] = None):
        self.store = store
        self.tz = tz

    def list_transactions(self) -> Tuple[Transaction, ...]:
        return transactions_from_records(self.store.list(self.path), self.tz)

    def checkout(
        self, customer_name: Any, cart: Cart, discount_percent: Any = 0, now: Optional[datetime] = None
    ) -> Either[dict, Transaction]:
        """Validate the cart and write one immutable transaction record."""
        finished_at = now or now_local(self.tz)

        def _write(name: str) -> Either[dict, Transaction]:
            totals = cart_totals(cart, discount_percent)
            draft = Transaction(
                id="",
                customer_name=name,
                items=tuple(e.to_line_item() for e in cart),
                finished_at=finished_at,
                subtotal=totals.subtotal,
                discount_percent=totals.discount_percent,
                discount_amount=totals.discount_amount,
                total=totals.total,
            )
            key = self.store.push(self.path, transaction_record(draft))
            log.info(f"Transaction {key} for {name!r}: {len(draft.items)} item(s), total {draft.total}")
            return Right(replace(draft, id=key))

        return validate_checkout(customer_name, cart).bind(_write)


class ExpenseService:
    path = "expenses"

    def __init__(self, store: Store, tz: Optional[tzinfo] = None):
        self.store = store
        self.tz = tz

    def list_expenses(self) -> Tuple[Expense, ...]:
        """Newest first; undated expenses last."""
        expenses = expenses_from_records(self.store.list(self.path), self.tz)
        dated = sorted((e for e in expenses if e.date is not None), key=lambda e: e.date, reverse=True)
        return tuple(dated) + tuple(e for e in expenses if e.date is None)

    def add_expense(self, amount: Any, note: Any = "", now: Optional[datetime] = None) -> Either[dict, Expense]:
        checked = validate_expense(amount, note)
        if checked.is_left():
            return Left(checked.get_error())

        fields = checked.get_or_else({})
        expense = Expense(id="", amount=fields["amount"], note=fields["note"], date=now or now_local(self.tz))
        key = self.store.push(self.path, expense_record(expense))
        log.info(f"Expense {key} recorded: {expense.amount}")
        return Right(replace(expense, id=key))

    def delete_expense(self, expense_id: str) -> None:
        self.store.remove(self.path, expense_id)
        log.info(f"Expense {expense_id} deleted")

    def total(self) -> float:
        return sum((e.amount for e in self.list_expenses()), 0.0)

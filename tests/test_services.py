from datetime import datetime, timedelta, timezone

from pos.checkout import add_to_cart
from pos.domain import Product
from pos.services import ExpenseService, ProductService, TransactionService
from pos.store import MemoryStore

TZ = timezone(timedelta(hours=8))
NOW = datetime(2025, 1, 5, 10, 0, tzinfo=TZ)


def make_form(**overrides):
    form = {"title": "Soap", "details": "", "price": "10", "category": "", "stock": "3", "barcode": "123"}
    form.update(overrides)
    return form


def test_save_product_creates_available_product():
    store = MemoryStore()
    svc = ProductService(store, TZ)
    result = svc.save_product(make_form(), now=NOW)
    assert result.is_right()
    key = result.get_or_else(None)
    rec = store.list("products")[key]
    assert rec["available"] is True
    assert rec["createdAt"] == rec["updatedAt"] == "2025-01-05T10:00:00.000+08:00"
    assert svc.find_by_barcode("123").map(lambda p: p.title).get_or_else(None) == "Soap"


def test_save_product_rejects_missing_fields_without_writing():
    store = MemoryStore()
    result = ProductService(store, TZ).save_product(make_form(title="", price=""))
    assert result.is_left()
    assert result.get_error()["message"] == "Please fill required fields"
    assert result.get_error()["fields"] == ["title", "price"]
    assert store.list("products") == {}


def test_edit_keeps_created_at():
    store = MemoryStore({"products": {"p1": {"title": "Old", "price": 1, "stock": 1, "createdAt": "2024-01-01"}}})
    svc = ProductService(store, TZ)
    assert svc.save_product(make_form(title="New"), editing_id="p1", now=NOW).get_or_else(None) == "p1"
    rec = store.list("products")["p1"]
    assert rec["title"] == "New"
    assert rec["createdAt"] == "2024-01-01"


def test_availability_and_delete():
    store = MemoryStore({"products": {"p1": {"title": "A", "price": 1, "stock": 1}}})
    svc = ProductService(store, TZ)
    svc.set_availability("p1", False)
    assert svc.list_products()[0].available is False
    svc.delete_product("p1")
    assert svc.list_products() == ()
    assert svc.find_by_barcode("123").is_none()


def test_checkout_validation():
    svc = TransactionService(MemoryStore(), TZ)
    soap = Product(id="p1", title="Soap", price=200, stock=1)
    assert svc.checkout("  ", add_to_cart((), soap, "k1")).get_error()["message"] == "Please enter customer name"
    empty = svc.checkout("Ana", ())
    assert empty.get_error()["error"] == "empty_cart"
    assert svc.list_transactions() == ()


def test_checkout_writes_transaction():
    store = MemoryStore()
    svc = TransactionService(store, TZ)
    soap = Product(id="p1", title="Soap", price=200, stock=1, details="bar")
    result = svc.checkout(" Ana ", add_to_cart((), soap, "k1"), 10, now=NOW)
    tx = result.get_or_else(None)
    assert tx.id in store.list("transactions")
    assert tx.customer_name == "Ana"
    assert (tx.subtotal, tx.discount_amount, tx.total) == (200.0, 20.0, 180.0)

    rec = store.list("transactions")[tx.id]
    assert rec["customerName"] == "Ana"
    assert rec["products"][0]["productName"] == "Soap"
    assert rec["discountPercent"] == 10.0
    assert svc.list_transactions()[0] == tx


def test_expenses_add_list_delete():
    store = MemoryStore()
    svc = ExpenseService(store, TZ)
    assert svc.add_expense("").get_error()["message"] == "Amount is required"
    assert svc.add_expense("-5").is_left()

    first = svc.add_expense("100", "", now=NOW).get_or_else(None)
    second = svc.add_expense(50, "Water", now=NOW + timedelta(days=1)).get_or_else(None)
    assert first.note == "No details"
    assert [e.id for e in svc.list_expenses()] == [second.id, first.id]
    assert svc.total() == 150.0

    svc.delete_expense(first.id)
    assert [e.id for e in svc.list_expenses()] == [second.id]


def test_undated_expenses_listed_last():
    store = MemoryStore({"expenses": {"old": {"amount": 5}, "new": {"amount": 7, "date": "2025-01-05T10:00:00"}}})
    assert [e.id for e in ExpenseService(store, TZ).list_expenses()] == ["new", "old"]

import json
from datetime import datetime, timedelta, timezone

from pos.domain import UNKNOWN_PRODUCT, Transaction, LineItem
from pos.transforms import (
    available_products, expense_from_record, line_item_from_record, load_seed,
    product_from_record, products_from_records, to_number, transaction_from_record, transaction_record,
)

TZ = timezone(timedelta(hours=8))


def test_to_number():
    assert to_number(5) == 5.0
    assert to_number("12.5") == 12.5
    assert to_number("abc") == 0.0
    assert to_number(None, None) is None
    assert to_number(True) == 0.0


def test_product_title_falls_back_to_name():
    p = product_from_record("k1", {"name": "Soap", "price": "10", "stock": 3, "barcode": 123})
    assert p.title == "Soap"
    assert p.price == 10.0
    assert p.barcode == "123"
    assert p.available is True


def test_product_without_title_shows_unknown():
    p = product_from_record("k1", {"price": 1})
    assert p.display_name == UNKNOWN_PRODUCT
    assert p.barcode is None


def test_line_item_name_fallbacks():
    assert line_item_from_record({"productName": "A", "title": "B"}).product_name == "A"
    assert line_item_from_record({"title": "B"}).product_name == "B"
    assert line_item_from_record({"price": 5}).product_name == UNKNOWN_PRODUCT


def test_transaction_total_variants():
    rec = {"customerName": "Ana", "products": [{"price": 75}, {"price": 50}], "finishedAt": "2025-01-05T10:00:00"}
    legacy = transaction_from_record("t1", rec, TZ)
    assert legacy.total is None
    assert legacy.effective_total == 125

    as_text = transaction_from_record("t2", dict(rec, total="150"), TZ)
    assert as_text.effective_total == 150.0

    junk = transaction_from_record("t3", dict(rec, total="n/a"), TZ)
    assert junk.effective_total == 125


def test_transaction_products_as_index_keyed_dict():
    rec = {"products": {"2": {"title": "C"}, "0": {"title": "A"}, "1": {"title": "B"}}}
    tx = transaction_from_record("t1", rec, TZ)
    assert [i.product_name for i in tx.items] == ["A", "B", "C"]
    assert tx.finished_at is None


def test_expense_note_default():
    e = expense_from_record("e1", {"amount": "100", "date": "2025-01-05T10:00:00"}, TZ)
    assert e.note == "No details"
    assert e.amount == 100.0
    assert e.date == datetime(2025, 1, 5, 10, 0, tzinfo=TZ)


def test_non_mapping_records_are_skipped():
    products = products_from_records({"a": {"title": "A"}, "b": None, "c": "junk"})
    assert [p.id for p in products] == ["a"]


def test_transaction_record_uses_stored_field_names():
    tx = Transaction(
        id="t1", customer_name="Ana",
        items=(LineItem(product_id="p1", product_name="A", price=200.0),),
        finished_at=datetime(2025, 1, 5, 10, 0, tzinfo=TZ),
        subtotal=200.0, discount_percent=10.0, discount_amount=20.0, total=180.0,
    )
    rec = transaction_record(tx)
    assert rec["customerName"] == "Ana"
    assert rec["products"][0] == {"productId": "p1", "productName": "A", "details": "", "price": 200.0}
    assert rec["finishedAt"] == "2025-01-05T10:00:00.000+08:00"
    assert rec["total"] == 180.0
    assert transaction_from_record("t1", rec, TZ) == tx


def test_load_seed_fills_missing_collections(tmp_path):
    path = tmp_path / "seed.json"
    path.write_text(json.dumps({"products": {"p1": {"title": "A", "available": False}}}), encoding="utf-8")
    data = load_seed(str(path))
    assert set(data) == {"products", "transactions", "expenses"}
    assert data["expenses"] == {}
    assert available_products(products_from_records(data["products"])) == ()


def test_to_number_rejects_non_finite():
    assert to_number("NaN") == 0.0
    assert to_number("inf") == 0.0
    assert to_number(float("nan"), None) is None
    assert to_number(float("-inf"), 7.0) == 7.0


def test_nan_total_uses_item_prices():
    rec = {"total": "NaN", "products": [{"price": 50}, {"price": 75}]}
    assert transaction_from_record("t1", rec, TZ).effective_total == 125

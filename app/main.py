import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import time
from datetime import datetime, time as dtime
from uuid import uuid4

import requests
import streamlit as st
import pandas as pd
import numpy as np
import plotly.graph_objects as go
import plotly.express as px

from pos.async_reports import monthly_overview
from pos.barcodes import barcode_image_url, fetch_barcode_image, generate_barcode
from pos.checkout import add_to_cart, cart_totals, remove_from_cart, search_products
from pos.config import load_settings
from pos.dashboard import DashboardView
from pos.dates import last_months, now_local, preset_window
from pos.filters import by_customer, iter_matching
from pos.invoice import invoice_filename, invoice_rows, render_invoice_pdf
from pos.lazy import lazy_top_products
from pos.logging import configure_logging, get_logger
from pos.reports import buckets_frame, points_frame
from pos.scanner import DeadlineScheduler, ScanState, Scanner
from pos.services import ExpenseService, ProductService, TransactionService
from pos.store import StoreError, open_store

log = get_logger("app")

st.set_page_config(page_title="POS Dashboard", layout="wide")

if "settings" not in st.session_state:
    st.session_state.settings = load_settings()
    configure_logging(st.session_state.settings.log_level, st.session_state.settings.log_file)
settings = st.session_state.settings
tz = settings.tz
cur = settings.currency

if "store" not in st.session_state:
    st.session_state.store = open_store(settings)
store = st.session_state.store

products_svc = ProductService(store, tz)
transactions_svc = TransactionService(store, tz)
expenses_svc = ExpenseService(store, tz)

if "cart" not in st.session_state:
    st.session_state.cart = ()
if "dash_window" not in st.session_state:
    st.session_state.dash_window = preset_window("last_30_days", now_local(tz))
if "scan_scheduler" not in st.session_state:
    st.session_state.scan_scheduler = DeadlineScheduler()
if "scanner" not in st.session_state:
    st.session_state.scanner = Scanner(
        products_svc.list_products,
        st.session_state.scan_scheduler,
        retry_delay=settings.scan_retry_seconds,
    )
if "editing_product" not in st.session_state:
    st.session_state.editing_product = None
if "last_invoice" not in st.session_state:
    st.session_state.last_invoice = None


def fmt(amount):
    return f"{cur}{amount:,.2f}"


def safe_list(loader, what):
    try:
        return loader()
    except StoreError as e:
        st.error(f"Error fetching {what}: {e}")
        return ()


menu = st.sidebar.radio(
    "Menu",
    ["🏠 Dashboard", "🧾 Point of Sale", "📦 Products", "💸 Expenses", "📷 Scanner"]
)
st.sidebar.caption("Realtime database" if settings.uses_remote_store else f"Local data: {settings.seed_path}")

if menu == "🏠 Dashboard":
    st.title("🏠 Dashboard")

    try:
        view = DashboardView(store, st.session_state.dash_window, tz=tz).open()
    except StoreError as e:
        st.error(f"Could not load dashboard data: {e}")
        st.stop()

    with view:
        st.subheader("📅 Income Summary")
        b1, b2, b3, b4 = st.columns(4)
        if b1.button("Today", key="rng_daily"):
            view.set_preset("daily")
        if b2.button("This Week", key="rng_weekly"):
            view.set_preset("weekly")
        if b3.button("This Month", key="rng_monthly"):
            view.set_preset("monthly")
        if b4.button("Last 30 Days", key="rng_30"):
            view.set_preset("last_30_days")

        c_from, c_to = st.columns(2)
        with c_from:
            start_date = st.date_input("From", value=view.window.start.date(), max_value=now_local(tz).date())
        with c_to:
            end_date = st.date_input("To", value=view.window.end.date(), max_value=now_local(tz).date())
        if start_date != view.window.start.date():
            view.set_start(datetime.combine(start_date, dtime()))
        if end_date != view.window.end.date():
            view.set_end(datetime.combine(end_date, dtime()))
        st.session_state.dash_window = view.window

        summary = view.summary
        k1, k2, k3 = st.columns(3)
        k1.metric("Total Products", summary.total_products)
        k2.metric("Available Products", summary.available_products)
        k3.metric("Products Today", summary.today.total)
        k4, k5, k6 = st.columns(3)
        k4.metric("Total Revenue", fmt(summary.revenue))
        k5.metric("Total Expenses", fmt(summary.expenses))
        k6.metric("Net Income", fmt(summary.net_income))

        st.caption(
            f"Income from **{summary.window.start:%b %d, %Y}** to **{summary.window.end:%b %d, %Y}**: "
            f"**{fmt(summary.revenue)}**"
        )

        with st.expander(f"🛒 Products sold today ({summary.today.total})"):
            if summary.today.counts:
                top = pd.DataFrame(
                    list(lazy_top_products(summary.today.counts, len(summary.today.counts))),
                    columns=["Product", "Count"],
                )
                st.table(top)
            else:
                st.info("No products sold today.")

        st.subheader("📈 Transaction History")
        frame = points_frame(summary.points)
        if not frame.empty:
            fig_tx = px.line(
                frame, x="date", y="revenue", markers=True,
                hover_data=["customer", "service"],
                labels={"date": "Finished", "revenue": f"Revenue ({cur})"},
                template="plotly_dark",
            )
            st.plotly_chart(fig_tx, use_container_width=True)

            granularity = st.radio("Group by", ["day", "week", "month"], horizontal=True)
            buckets = buckets_frame(summary.buckets(granularity, tz))
            fig_b = px.bar(buckets, x="period", y="revenue", title=f"Revenue by {granularity}", template="plotly_dark")
            st.plotly_chart(fig_b, use_container_width=True)

            disp = frame[["label", "customer", "service", "revenue"]].rename(columns={
                "label": "Date", "customer": "Customer", "service": "Products", "revenue": "Revenue"
            })
            st.dataframe(disp, use_container_width=True)
            st.download_button("⬇ Download CSV", disp.to_csv(index=False), file_name="transactions.csv")
        else:
            st.info("No transactions in the selected range.")

        st.subheader("🗓 Last 12 Months")
        months = last_months(now_local(tz), 12)
        overview = asyncio.run(monthly_overview(view.transactions, view.expenses, months, tz))
        revenue = np.array([overview[m]["revenue"] for m in months])
        spent = np.array([overview[m]["expenses"] for m in months])
        labels = [pd.Period(m, freq="M").strftime("%b %y") for m in months]
        fig_ts = go.Figure()
        fig_ts.add_trace(go.Scatter(x=labels, y=revenue, mode="lines+markers", name="Revenue"))
        fig_ts.add_trace(go.Scatter(x=labels, y=spent, mode="lines+markers", name="Expenses"))
        fig_ts.add_trace(go.Bar(x=labels, y=revenue - spent, name="Net income", opacity=0.4))
        fig_ts.update_layout(template="plotly_dark", margin=dict(t=30, b=10, l=10, r=10))
        st.plotly_chart(fig_ts, use_container_width=True)

elif menu == "🧾 Point of Sale":
    st.title("🧾 Point of Sale")

    products = [p for p in safe_list(products_svc.list_products, "products") if p.available]

    col_left, col_right = st.columns([3, 2])
    with col_left:
        st.subheader("Products")
        with st.form("scan_to_cart", clear_on_submit=True):
            code = st.text_input("Scan barcode")
            if st.form_submit_button("Add scanned product") and code:
                found = products_svc.find_by_barcode(code.strip())
                if found.is_some():
                    product = found.get_or_else(None)
                    st.session_state.cart = add_to_cart(st.session_state.cart, product, uuid4().hex)
                    st.success(f"Added {product.display_name}")
                else:
                    st.warning(f"Product not found for barcode: {code}")

        query = st.text_input("Search products", placeholder="Title or details")
        for p in search_products(products, query):
            c1, c2, c3 = st.columns([4, 2, 1])
            c1.write(f"**{p.display_name}**" + (f"  \n{p.details}" if p.details else ""))
            c2.write(fmt(p.price))
            if c3.button("Add", key=f"add_{p.id}"):
                st.session_state.cart = add_to_cart(st.session_state.cart, p, uuid4().hex)
                st.rerun()

    with col_right:
        st.subheader("🛒 Cart")
        cart = st.session_state.cart
        if cart:
            for entry in cart:
                c1, c2, c3 = st.columns([4, 2, 1])
                c1.write(entry.title)
                c2.write(fmt(entry.price))
                if c3.button("✖", key=f"rm_{entry.key}"):
                    st.session_state.cart = remove_from_cart(cart, entry.key)
                    st.rerun()
        else:
            st.info("Cart is empty")

        customer = st.text_input("Customer name")
        discount = st.number_input("Discount (%)", min_value=0.0, max_value=100.0, value=0.0, step=5.0)
        totals = cart_totals(cart, discount)
        st.write(f"Subtotal: **{fmt(totals.subtotal)}**")
        if totals.discount_percent > 0:
            st.write(f"Discount ({totals.discount_percent:g}%): **-{fmt(totals.discount_amount)}**")
        st.metric("Total", fmt(totals.total))

        if st.button("✅ Finish Transaction", key="btn_checkout"):
            try:
                result = transactions_svc.checkout(customer, cart, discount)
            except StoreError as e:
                st.error(f"Error creating transaction: {e}")
            else:
                if result.is_left():
                    st.warning(result.get_error()["message"])
                else:
                    tx = result.get_or_else(None)
                    st.session_state.cart = ()
                    st.session_state.last_invoice = tx
                    st.success("Invoice created successfully!")

        tx = st.session_state.last_invoice
        if tx is not None:
            st.divider()
            st.write(f"**Last invoice** #{tx.id} for {tx.customer_name}")
            st.table(pd.DataFrame(invoice_rows(tx)).rename(columns={"label": "Item", "amount": "Price"})[["Item", "Price"]])
            try:
                pdf = render_invoice_pdf(tx, settings)
            except RuntimeError as e:
                log.error(f"PDF generation failed for {tx.id}: {e}")
                st.warning("Invoice saved, but the PDF could not be generated.")
            else:
                st.download_button(
                    "⬇ Download Invoice PDF", pdf,
                    file_name=invoice_filename(tx, now_local(tz)),
                    mime="application/pdf",
                )

    st.divider()
    st.subheader("📜 Recent Transactions")
    history = safe_list(transactions_svc.list_transactions, "transactions")
    who = st.text_input("Filter by customer")
    rows = [
        {
            "Date": t.finished_at.strftime("%Y-%m-%d %H:%M") if t.finished_at else "-",
            "Customer": t.customer_name,
            "Items": len(t.items),
            "Total": fmt(t.effective_total),
        }
        for t in sorted(
            iter_matching(history, by_customer(who) if who else None),
            key=lambda t: t.finished_at.timestamp() if t.finished_at else float("-inf"),
            reverse=True,
        )
    ]
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True)
    else:
        st.info("No transactions yet")

elif menu == "📦 Products":
    st.title("📦 Product Manager")

    products = safe_list(products_svc.list_products, "products")
    editing = st.session_state.editing_product
    current = next((p for p in products if p.id == editing), None)

    if "barcode_field" not in st.session_state:
        st.session_state.barcode_field = ""
    if st.button("⚡ Generate barcode"):
        st.session_state.barcode_field = generate_barcode()

    with st.form("product_form", clear_on_submit=True):
        st.subheader("Edit product" if current else "Add product")
        title = st.text_input("Product Title *", value=current.title if current else "")
        details = st.text_area("Product Details", value=current.details if current else "")
        c1, c2 = st.columns(2)
        with c1:
            price = st.text_input("Price *", value=f"{current.price:g}" if current else "")
            category = st.text_input("Category", value=(current.category or "") if current else "")
        with c2:
            stock = st.text_input("Stock *", value=str(current.stock) if current else "")
            barcode = st.text_input(
                "Barcode",
                value=(current.barcode or "") if current and not st.session_state.barcode_field
                else st.session_state.barcode_field,
            )
        submitted = st.form_submit_button("Update Product" if current else "Add Product")

    if submitted:
        form = {"title": title, "details": details, "price": price, "category": category,
                "stock": stock, "barcode": barcode}
        try:
            result = products_svc.save_product(form, editing)
        except StoreError as e:
            st.error(f"Error saving product: {e}")
        else:
            if result.is_left():
                st.warning(result.get_error()["message"])
            else:
                st.session_state.editing_product = None
                st.session_state.barcode_field = ""
                st.success("Product updated!" if editing else "Product added!")
                st.rerun()

    if current and st.button("Cancel editing"):
        st.session_state.editing_product = None
        st.rerun()

    st.divider()
    st.subheader("Catalog")
    if not products:
        st.info("No products yet")
    for p in sorted(products, key=lambda p: p.title.lower()):
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([4, 2, 2, 3])
            c1.write(f"**{p.display_name}**  \n{p.details or ''}")
            c1.caption(f"{p.category or 'Uncategorized'} · stock {p.stock}")
            c2.write(fmt(p.price))
            available = c2.toggle("Available", value=p.available, key=f"av_{p.id}")
            if available != p.available:
                try:
                    products_svc.set_availability(p.id, available)
                except StoreError as e:
                    st.error(f"Error updating availability: {e}")
                st.rerun()
            if c3.button("✏ Edit", key=f"edit_{p.id}"):
                st.session_state.editing_product = p.id
                st.session_state.barcode_field = ""
                st.rerun()
            if c3.button("🗑 Delete", key=f"del_{p.id}"):
                try:
                    products_svc.delete_product(p.id)
                except StoreError as e:
                    st.error(f"Error deleting product: {e}")
                st.rerun()
            if p.barcode:
                c4.image(barcode_image_url(p.barcode), caption=p.barcode)
                if c4.button("Prepare download", key=f"bc_{p.id}"):
                    try:
                        png = fetch_barcode_image(p.barcode, timeout=settings.request_timeout)
                    except requests.RequestException as e:
                        log.warning(f"Barcode image for {p.barcode} failed: {e}")
                        st.error("Could not fetch barcode image")
                    else:
                        c4.download_button("⬇ PNG", png, file_name=f"{p.barcode}.png", mime="image/png",
                                           key=f"dl_{p.id}")

elif menu == "💸 Expenses":
    st.title("💸 Expenses")

    with st.form("expense_form", clear_on_submit=True):
        amount = st.text_input("Expense Amount")
        note = st.text_area("Expense Note (optional)")
        if st.form_submit_button("Add Expense"):
            try:
                result = expenses_svc.add_expense(amount, note)
            except StoreError as e:
                st.error(f"Error saving expense: {e}")
            else:
                if result.is_left():
                    st.warning(result.get_error()["message"])
                else:
                    st.success("Expense added")

    expenses = safe_list(expenses_svc.list_expenses, "expenses")
    st.metric("Total Expenses", fmt(sum(e.amount for e in expenses)))
    st.subheader("Expense History")
    if not expenses:
        st.info("No expenses recorded")
    for e in expenses:
        c1, c2, c3, c4 = st.columns([2, 4, 3, 1])
        c1.write(fmt(e.amount))
        c2.write(e.note)
        c3.write(e.date.strftime("%Y-%m-%d %H:%M:%S") if e.date else "-")
        if c4.button("🗑", key=f"del_exp_{e.id}"):
            try:
                expenses_svc.delete_expense(e.id)
            except StoreError as err:
                st.error(f"Error deleting expense: {err}")
            st.rerun()

elif menu == "📷 Scanner":
    st.title("📷 Barcode Scanner")

    scheduler = st.session_state.scan_scheduler
    scanner = st.session_state.scanner
    scheduler.run_due()

    with st.form("scan_form", clear_on_submit=True):
        code = st.text_input("Scan or type a barcode", disabled=not scanner.is_scanning)
        if st.form_submit_button("Look up") and code:
            scanner.feed(code.strip())

    status = {
        ScanState.SCANNING: "🟢 Scanning...",
        ScanState.MATCHED: "🟡 Product found",
        ScanState.NOT_FOUND: "🔴 Retrying...",
    }[scanner.state]
    st.write(status)
    if scanner.error:
        st.error(scanner.error)
    if scanner.last_scanned:
        st.caption(f"Last scanned: {scanner.last_scanned}")
    if scanner.scan_count:
        st.caption(f"Scans attempted: {scanner.scan_count}")

    if scanner.product is not None:
        p = scanner.product
        st.success("✅ Product Found!")
        st.write(f"**Name:** {p.display_name}")
        st.write(f"**Barcode:** {p.barcode}")
        st.write(f"**Price:** {fmt(p.price)}")
        if p.category:
            st.write(f"**Category:** {p.category}")
        st.code(p.barcode or "", language=None)
        if p.available and st.button("🛒 Add to cart"):
            st.session_state.cart = add_to_cart(st.session_state.cart, p, uuid4().hex)
            st.success(f"Added {p.display_name} to the cart")

    if not scanner.is_scanning and st.button("🔄 Start New Scan"):
        scanner.restart()
        st.rerun()

    st.divider()
    st.subheader("Scan History")
    if scanner.history:
        st.table(pd.DataFrame([
            {
                "Code": r.code,
                "Product": r.product.display_name if r.product else "Not found",
                "Time": r.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            }
            for r in scanner.history
        ]))
        if st.button("🗑 Clear", key="btn_clear_scans"):
            scanner.clear_history()
            st.rerun()
    else:
        st.info("No scans yet")

    wait = scheduler.next_due_in()
    if wait is not None:
        time.sleep(wait)
        st.rerun()

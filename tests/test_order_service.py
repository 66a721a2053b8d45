"""
Tests for placing sales and pre-orders, compensation and status changes.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from retail_backend.core.config import INVOICE_SERIES
from retail_backend.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PartialApplicationError,
    ValidationError,
)
from retail_backend.models.customer_models import Customer
from retail_backend.models.order_models import OrderStatus, Sale
from retail_backend.models.product_models import ProductPurchase
from retail_backend.schemas.billing_schemas.order_schemas import OrderCreate
from retail_backend.services.billing_services import order_service
from retail_backend.services.billing_services.order_service import (
    get_order,
    get_order_by_invoice,
    place_order,
    update_order_status,
)
from retail_backend.services.inventory_services.stock_ledger_service import get_product
from retail_backend.services.order_services import compensation
from retail_backend.services.order_services.sequence_service import current_value


def order_payload(*lines, phone="01800000000", **extra):
    data = {
        "products": [
            {"product_id": pid, "sold_quantity": qty, "sale_price": price}
            for pid, qty, price in lines
        ],
        **extra,
    }
    if phone is not None:
        data["customer"] = {"name": "Rahim", "phone": phone}
    return OrderCreate(**data)


async def _ledger_reasons(db, product_id):
    result = await db.execute(
        select(ProductPurchase.reason)
        .where(ProductPurchase.product_id == product_id)
        .order_by(ProductPurchase.id)
    )
    return list(result.scalars().all())


class TestPlaceSale:
    async def test_sale_moves_stock_and_snapshots(self, db, make_product, salesman):
        widget = await make_product(name="Widget", quantity=10, purchase_price=5.0)
        gadget = await make_product(name="Gadget", quantity=4, purchase_price=2.0)

        sale = await place_order(
            db, "sale", order_payload((widget.id, 3, 8.0), (gadget.id, 1, 3.0)), salesman.id
        )

        assert sale.invoice_no == "0001"
        assert sale.status == OrderStatus.PENDING
        assert (await get_product(db, widget.id)).quantity == 7
        assert (await get_product(db, widget.id)).sold_quantity == 3
        assert (await get_product(db, gadget.id)).quantity == 3

        assert sale.salesman == {"id": salesman.id, "name": salesman.name, "phone": salesman.phone}
        assert sale.customer["phone"] == "01800000000"
        assert sale.customer_id is not None
        assert sale.products[0]["name"] == "Widget"
        assert sale.products[0]["purchase_price"] == 5.0
        assert sale.sub_total == 27.0
        assert sale.total == 27.0
        assert sale.total_purchase_price == 17.0

    async def test_sale_ledger_entries_reference_invoice(self, db, make_product, salesman):
        widget = await make_product(quantity=10)
        sale = await place_order(db, "sale", order_payload((widget.id, 2, 8.0)), salesman.id)

        result = await db.execute(
            select(ProductPurchase).where(ProductPurchase.product_id == widget.id).order_by(ProductPurchase.id)
        )
        entries = list(result.scalars().all())
        assert [e.reason for e in entries] == ["opening", "sale"]
        assert entries[-1].reference == sale.invoice_no
        assert (entries[-1].previous_quantity, entries[-1].updated_quantity) == (10, 8)

    async def test_dates_and_period_from_sold_date(self, db, make_product, salesman):
        widget = await make_product()
        sold_date = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)

        sale = await place_order(
            db, "sale", order_payload((widget.id, 1, 8.0), sold_date=sold_date), salesman.id
        )

        assert sale.sold_date_string == "2024-01-31"
        assert (sale.month, sale.year) == (1, 2024)

    async def test_totals_from_discount_and_shipping(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(
            db,
            "sale",
            order_payload(
                (widget.id, 2, 50.0),
                discount_type="percent",
                discount_percent=10,
                shipping_charge=5,
            ),
            salesman.id,
        )
        assert sale.sub_total == 100.0
        assert sale.total == 95.0

    async def test_submitted_totals_are_kept(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(
            db, "sale", order_payload((widget.id, 1, 8.0), sub_total=8.0, total=7.5), salesman.id
        )
        assert sale.total == 7.5

    async def test_anonymous_sale(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0), phone=None), salesman.id)
        assert sale.customer is None
        assert sale.customer_id is None

    async def test_repeat_phone_reuses_customer(self, db, make_product, salesman):
        widget = await make_product(quantity=10)

        first = await place_order(
            db, "sale", order_payload((widget.id, 1, 8.0), phone="01755555555"), salesman.id
        )
        second = await place_order(
            db,
            "sale",
            OrderCreate(
                products=[{"product_id": widget.id, "sold_quantity": 1, "sale_price": 8.0}],
                customer={"name": "Someone Else", "phone": "01755555555"},
            ),
            salesman.id,
        )

        result = await db.execute(select(Customer).where(Customer.phone == "01755555555"))
        customers = list(result.scalars().all())
        assert len(customers) == 1
        assert first.customer_id == second.customer_id == customers[0].id
        assert first.customer == second.customer
        assert second.customer["name"] == "Rahim"

    async def test_snapshot_survives_catalog_edit(self, db, make_product, salesman):
        widget = await make_product(name="Widget")
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), salesman.id)

        product = await get_product(db, widget.id)
        product.name = "Renamed"
        await db.commit()

        reloaded = await get_order(db, "sale", sale.id)
        assert reloaded.products[0]["name"] == "Widget"

    async def test_invoice_numbers_shared_with_pre_orders(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), salesman.id)
        pre_order = await place_order(db, "pre_order", order_payload((widget.id, 1, 8.0)), salesman.id)
        assert (sale.invoice_no, pre_order.invoice_no) == ("0001", "0002")

    async def test_order_placed_is_logged(self, db, make_product, salesman, captured_logs):
        widget = await make_product()
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), salesman.id)

        record = next(r for r in captured_logs() if r["message"] == "order_placed")
        assert record["invoice_no"] == sale.invoice_no
        assert record["kind"] == "sale"


class TestPreOrder:
    async def test_pre_order_leaves_stock_alone(self, db, make_product, salesman):
        widget = await make_product(quantity=10)

        pre_order = await place_order(db, "pre_order", order_payload((widget.id, 4, 8.0)), salesman.id)

        assert pre_order.invoice_no == "0001"
        refreshed = await get_product(db, widget.id)
        assert refreshed.quantity == 10
        assert refreshed.sold_quantity == 0
        assert await _ledger_reasons(db, widget.id) == ["opening"]


class TestValidationBeforeMutation:
    async def test_unknown_product(self, db, make_product, salesman):
        widget = await make_product(quantity=10)

        with pytest.raises(NotFoundError):
            await place_order(db, "sale", order_payload((widget.id, 1, 8.0), (999, 1, 8.0)), salesman.id)

        assert await current_value(db, INVOICE_SERIES) == 0
        assert (await get_product(db, widget.id)).quantity == 10

    async def test_unknown_salesman(self, db, make_product):
        widget = await make_product()
        with pytest.raises(NotFoundError):
            await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), 999)

    async def test_unknown_kind(self, db, make_product, salesman):
        widget = await make_product()
        with pytest.raises(ValidationError):
            await place_order(db, "quote", order_payload((widget.id, 1, 8.0)), salesman.id)

    def test_non_positive_quantity_rejected_by_schema(self):
        with pytest.raises(ValueError):
            order_payload((1, 0, 8.0))

    def test_empty_order_rejected_by_schema(self):
        with pytest.raises(ValueError):
            OrderCreate(products=[])


class TestCompensation:
    async def test_insufficient_stock_reverses_earlier_lines(
        self, db, make_product, salesman, strict_stock, captured_logs
    ):
        widget = await make_product(name="Widget", quantity=10)
        gadget = await make_product(name="Gadget", quantity=1)

        with pytest.raises(InsufficientStockError):
            await place_order(
                db, "sale", order_payload((widget.id, 3, 8.0), (gadget.id, 2, 3.0)), salesman.id
            )

        assert (await get_product(db, widget.id)).quantity == 10
        assert (await get_product(db, widget.id)).sold_quantity == 0
        assert (await get_product(db, gadget.id)).quantity == 1
        assert await _ledger_reasons(db, widget.id) == ["opening", "sale", "compensation"]
        # The number was issued and is not reused
        assert await current_value(db, INVOICE_SERIES) == 1
        assert any(r["message"] == "compensation_executed" for r in captured_logs())

    async def test_persist_failure_reverses_all_lines(self, db, make_product, salesman, monkeypatch):
        widget = await make_product(quantity=10)

        async def broken_resolver(*args, **kwargs):
            raise RuntimeError("customer store unavailable")

        monkeypatch.setattr(order_service, "resolve_customer", broken_resolver)

        with pytest.raises(RuntimeError):
            await place_order(db, "sale", order_payload((widget.id, 4, 8.0)), salesman.id)

        assert (await get_product(db, widget.id)).quantity == 10
        assert (await db.execute(select(Sale))).scalars().first() is None

    async def test_duplicate_invoice_becomes_conflict(self, db, make_product, salesman):
        widget = await make_product(quantity=10)
        db.add(Sale(
            invoice_no="0001",
            products=[],
            sold_date=datetime.now(timezone.utc),
            sold_date_string="2024-01-01",
            month=1,
            year=2024,
        ))
        await db.commit()

        with pytest.raises(ConflictError):
            await place_order(db, "sale", order_payload((widget.id, 2, 8.0)), salesman.id)

        assert (await get_product(db, widget.id)).quantity == 10

    async def test_failed_compensation_raises_partial_application(
        self, db, make_product, salesman, monkeypatch, captured_logs
    ):
        widget = await make_product(quantity=10)

        async def broken_resolver(*args, **kwargs):
            raise RuntimeError("customer store unavailable")

        async def broken_adjust(*args, **kwargs):
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))

        monkeypatch.setattr(order_service, "resolve_customer", broken_resolver)
        monkeypatch.setattr(compensation, "adjust_stock", broken_adjust)

        with pytest.raises(PartialApplicationError) as exc_info:
            await place_order(db, "sale", order_payload((widget.id, 4, 8.0)), salesman.id)

        error = exc_info.value
        assert error.reference == "0001"
        assert error.unreconciled == [{
            "product_id": widget.id,
            "delta": -4,
            "previous_quantity": 10,
            "updated_quantity": 6,
            "entry_id": error.unreconciled[0]["entry_id"],
            "sold_delta": 4,
        }]
        assert (await get_product(db, widget.id)).quantity == 6
        partial = [r for r in captured_logs() if r["message"] == "partial_application"]
        assert partial and partial[0]["level"] == "ERROR"


class TestReadOrders:
    async def test_get_by_id_and_invoice(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), salesman.id)

        assert (await get_order(db, "sale", sale.id)).invoice_no == sale.invoice_no
        assert (await get_order_by_invoice(db, "sale", sale.invoice_no)).id == sale.id

    async def test_missing_order(self, db):
        with pytest.raises(NotFoundError):
            await get_order(db, "sale", 999)
        with pytest.raises(NotFoundError):
            await get_order_by_invoice(db, "pre_order", "9999")


class TestStatusTransitions:
    async def test_allowed_transition(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), salesman.id)

        updated = await update_order_status(db, "sale", sale.id, OrderStatus.READY_FOR_SHIPPING)
        assert updated.status == OrderStatus.READY_FOR_SHIPPING
        updated = await update_order_status(db, "sale", sale.id, OrderStatus.COMPLETED)
        assert updated.status == OrderStatus.COMPLETED

    async def test_returned_cannot_be_set_directly(self, db, make_product, salesman):
        widget = await make_product()
        sale = await place_order(db, "sale", order_payload((widget.id, 1, 8.0)), salesman.id)
        with pytest.raises(ValidationError):
            await update_order_status(db, "sale", sale.id, OrderStatus.RETURNED)

    async def test_canceled_is_terminal_and_does_not_restock(self, db, make_product, salesman):
        widget = await make_product(quantity=10)
        sale = await place_order(db, "sale", order_payload((widget.id, 2, 8.0)), salesman.id)

        await update_order_status(db, "sale", sale.id, OrderStatus.CANCELED)

        assert (await get_product(db, widget.id)).quantity == 8
        with pytest.raises(ValidationError):
            await update_order_status(db, "sale", sale.id, OrderStatus.PENDING)

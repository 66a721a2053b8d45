"""
Tests for filing returns against sales.
"""

import asyncio

import pytest
from sqlalchemy import select

from retail_backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from retail_backend.models.order_models import OrderStatus
from retail_backend.models.product_models import ProductPurchase
from retail_backend.schemas.billing_schemas.order_schemas import OrderCreate, ReturnLineIn
from retail_backend.services.billing_services.order_service import (
    get_order,
    place_order,
    update_order_status,
)
from retail_backend.services.billing_services import return_service
from retail_backend.services.billing_services.return_service import (
    file_return,
    list_returns_for_invoice,
)
from retail_backend.services.inventory_services.stock_ledger_service import get_product


def lines(*pairs):
    return [ReturnLineIn(product_id=pid, returned_quantity=qty) for pid, qty in pairs]


@pytest.fixture
async def sold(db, make_product, salesman):
    """A sale of 5 widgets and 2 gadgets; widget stock 20 -> 15, gadget 10 -> 8."""
    widget = await make_product(name="Widget", quantity=20)
    gadget = await make_product(name="Gadget", quantity=10)
    sale = await place_order(
        db,
        "sale",
        OrderCreate(
            products=[
                {"product_id": widget.id, "sold_quantity": 5, "sale_price": 10.0},
                {"product_id": gadget.id, "sold_quantity": 2, "sale_price": 4.0},
            ],
            customer={"name": "Rahim", "phone": "0180"},
        ),
        salesman.id,
    )
    return sale, widget, gadget


class TestFileReturn:
    async def test_partial_return_restocks_returned_units(self, db, sold):
        sale, widget, gadget = sold

        sales_return = await file_return(db, sale.invoice_no, lines((widget.id, 2)))

        refreshed = await get_product(db, widget.id)
        assert refreshed.quantity == 17
        assert refreshed.sold_quantity == 3
        assert (await get_product(db, gadget.id)).quantity == 8

        assert sales_return.invoice_no == sale.invoice_no
        assert sales_return.sale_id == sale.id
        assert sales_return.customer == sale.customer
        assert sales_return.salesman == sale.salesman
        assert sales_return.products == [{
            "product_id": widget.id,
            "name": "Widget",
            "sold_quantity": 5,
            "returned_quantity": 2,
            "sale_price": 10.0,
        }]
        assert sales_return.total == 20.0

    async def test_whole_order_flagged_returned(self, db, sold):
        sale, widget, _ = sold
        await file_return(db, sale.invoice_no, lines((widget.id, 1)))
        assert (await get_order(db, "sale", sale.id)).status == OrderStatus.RETURNED

    async def test_return_ledger_entry(self, db, sold):
        sale, widget, _ = sold
        await file_return(db, sale.invoice_no, lines((widget.id, 2)))

        result = await db.execute(
            select(ProductPurchase)
            .where(ProductPurchase.product_id == widget.id)
            .order_by(ProductPurchase.id.desc())
        )
        last = result.scalars().first()
        assert last.reason == "return"
        assert last.reference == sale.invoice_no
        assert (last.previous_quantity, last.updated_quantity) == (15, 17)

    async def test_earlier_returns_count_towards_limit(self, db, sold):
        sale, widget, _ = sold
        await file_return(db, sale.invoice_no, lines((widget.id, 3)))

        with pytest.raises(ValidationError):
            await file_return(db, sale.invoice_no, lines((widget.id, 3)))

        await file_return(db, sale.invoice_no, lines((widget.id, 2)))
        assert (await get_product(db, widget.id)).quantity == 20
        assert len(await list_returns_for_invoice(db, sale.invoice_no)) == 2

    async def test_duplicate_lines_are_summed(self, db, sold):
        sale, widget, _ = sold
        with pytest.raises(ValidationError):
            await file_return(db, sale.invoice_no, lines((widget.id, 3), (widget.id, 3)))

    async def test_unmatched_line_rejected_before_any_stock_moves(self, db, sold, make_product):
        sale, widget, _ = sold
        stranger = await make_product(name="Stranger", quantity=3)

        with pytest.raises(ValidationError):
            await file_return(db, sale.invoice_no, lines((widget.id, 1), (stranger.id, 1)))

        assert (await get_product(db, widget.id)).quantity == 15
        assert (await get_product(db, stranger.id)).quantity == 3
        assert (await get_order(db, "sale", sale.id)).status == OrderStatus.PENDING

    async def test_unknown_invoice(self, db):
        with pytest.raises(NotFoundError):
            await file_return(db, "9999", lines((1, 1)))

    async def test_pre_order_invoice_is_not_a_sale(self, db, make_product, salesman):
        widget = await make_product()
        pre_order = await place_order(
            db,
            "pre_order",
            OrderCreate(products=[{"product_id": widget.id, "sold_quantity": 1, "sale_price": 1.0}]),
            salesman.id,
        )
        with pytest.raises(NotFoundError):
            await file_return(db, pre_order.invoice_no, lines((widget.id, 1)))

    async def test_canceled_sale_rejects_returns(self, db, sold):
        sale, widget, _ = sold
        await update_order_status(db, "sale", sale.id, OrderStatus.CANCELED)
        with pytest.raises(ValidationError):
            await file_return(db, sale.invoice_no, lines((widget.id, 1)))

    async def test_returned_sale_is_terminal_for_status_updates(self, db, sold):
        sale, widget, _ = sold
        await file_return(db, sale.invoice_no, lines((widget.id, 1)))
        with pytest.raises(ValidationError):
            await update_order_status(db, "sale", sale.id, OrderStatus.COMPLETED)

    def test_non_positive_quantity_rejected_by_schema(self):
        with pytest.raises(ValueError):
            ReturnLineIn(product_id=1, returned_quantity=0)

    async def test_return_is_logged(self, db, sold, captured_logs):
        sale, widget, _ = sold
        await file_return(db, sale.invoice_no, lines((widget.id, 2)))
        record = next(r for r in captured_logs() if r["message"] == "return_filed")
        assert record["invoice_no"] == sale.invoice_no
        assert record["units"] == 2


class TestConcurrentReturns:
    """Returns racing on one invoice cannot give back more than was sold."""

    async def test_one_invoice_cannot_be_over_returned(
        self, db, session_factory, make_product, salesman
    ):
        widget = await make_product(quantity=10)
        sale = await place_order(
            db,
            "sale",
            OrderCreate(products=[{"product_id": widget.id, "sold_quantity": 3, "sale_price": 5.0}]),
            salesman.id,
        )
        invoice_no, product_id = sale.invoice_no, widget.id

        async def return_all():
            async with session_factory() as session:
                try:
                    await file_return(session, invoice_no, lines((product_id, 3)))
                except ValidationError:
                    return "rejected"
                return "filed"

        outcomes = await asyncio.gather(return_all(), return_all())

        assert sorted(outcomes) == ["filed", "rejected"]
        async with session_factory() as session:
            refreshed = await get_product(session, product_id)
            assert refreshed.quantity == 10
            assert refreshed.sold_quantity == 0
            assert len(await list_returns_for_invoice(session, invoice_no)) == 1
            assert (await get_order(session, "sale", sale.id)).return_version == 1

    async def test_partial_returns_racing_both_fit(
        self, db, session_factory, make_product, salesman
    ):
        widget = await make_product(quantity=10)
        sale = await place_order(
            db,
            "sale",
            OrderCreate(products=[{"product_id": widget.id, "sold_quantity": 4, "sale_price": 5.0}]),
            salesman.id,
        )
        invoice_no, product_id = sale.invoice_no, widget.id

        async def return_two():
            async with session_factory() as session:
                return await file_return(session, invoice_no, lines((product_id, 2)))

        await asyncio.gather(return_two(), return_two())

        async with session_factory() as session:
            assert (await get_product(session, product_id)).quantity == 10
            assert len(await list_returns_for_invoice(session, invoice_no)) == 2
            assert (await get_order(session, "sale", sale.id)).return_version == 2

    async def test_lost_claim_is_retried(self, db, sold, monkeypatch, captured_logs):
        sale, widget, _ = sold
        claims = []
        real_claim = return_service._claim_sale

        async def first_claim_loses(session, target):
            claims.append(target.id)
            if len(claims) == 1:
                return False
            return await real_claim(session, target)

        monkeypatch.setattr(return_service, "_claim_sale", first_claim_loses)

        await file_return(db, sale.invoice_no, lines((widget.id, 1)))

        assert len(claims) == 2
        assert any(r["message"] == "return_claim_retry" for r in captured_logs())
        assert (await get_product(db, widget.id)).quantity == 16

    async def test_gives_up_after_repeated_lost_claims(self, db, sold, monkeypatch):
        sale, widget, _ = sold
        invoice_no, product_id = sale.invoice_no, widget.id

        async def always_loses(session, target):
            return False

        monkeypatch.setattr(return_service, "_claim_sale", always_loses)

        with pytest.raises(ConflictError):
            await file_return(db, invoice_no, lines((product_id, 1)))

        assert (await get_product(db, product_id)).quantity == 15

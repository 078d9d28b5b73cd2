"""
Tests for sales order cancellation (``ledger_modules.sales``).

Cancellation commits the return, invoice cancellation and pending refund
together; inventory is restored afterwards line by line, and a failing
line becomes a warning instead of undoing the cancellation.
"""

from decimal import Decimal

import pytest

from ledger_kernel.exceptions import InvalidTransitionError, RecordNotFoundError
from ledger_modules.inventory.service import InventoryService
from ledger_modules.sales.models import OrderItemSpec
from ledger_modules.sales.service import SalesOrderService


@pytest.fixture
def products(inventory, chart, test_actor_id):
    widget = inventory.create_product("SKU-WID", "Widget", test_actor_id, quantity_on_hand=Decimal("10"))
    gadget = inventory.create_product("SKU-GAD", "Gadget", test_actor_id, quantity_on_hand=Decimal("4"))
    return widget, gadget


@pytest.fixture
def order(sales, products, test_actor_id):
    widget, gadget = products
    return sales.create_order(
        "SO-1001",
        [
            OrderItemSpec(Decimal("2"), Decimal("150.00"), Decimal("90.00"), product_id=widget.id),
            OrderItemSpec(Decimal("1"), Decimal("400.00"), Decimal("250.00"), product_id=gadget.id),
            OrderItemSpec(Decimal("1"), Decimal("75.00"), description="Gift wrapping", is_custom=True),
        ],
        test_actor_id,
        customer_name="Jane Buyer",
    )


@pytest.fixture
def order_invoice(refunds, order, test_actor_id):
    return refunds.create_invoice("INV-1001", order.total_amount, test_actor_id, sales_order_id=order.id)


class TestOrderItemSpec:

    def test_stocked_line_needs_product(self):
        with pytest.raises(ValueError, match="product_id"):
            OrderItemSpec(Decimal("1"), Decimal("10"))

    def test_quantity_positive(self):
        with pytest.raises(ValueError, match="positive"):
            OrderItemSpec(Decimal("0"), Decimal("10"), is_custom=True)


class TestCancelOrder:

    def test_full_cancellation(self, sales, order, order_invoice, inventory, refunds, products, test_actor_id):
        outcome = sales.cancel_order(order.id, test_actor_id, reason="Customer changed mind")

        assert outcome.status == "cancelled"
        assert outcome.warnings == ()
        assert sales.get_order(order.id).status == "cancelled"

        sales_return = sales.get_return(outcome.data["return_id"])
        assert sales_return.return_number.startswith("RET-")
        assert sales_return.return_value == Decimal("775.00")
        assert sales_return.cost_value == Decimal("430.00")
        assert len(sales_return.items) == 3

        widget, gadget = products
        assert inventory.get_product(widget.id).quantity_on_hand == Decimal("12")
        assert inventory.get_product(gadget.id).quantity_on_hand == Decimal("5")
        assert len(outcome.data["restored_item_ids"]) == 2

        assert outcome.data["cancelled_invoice_ids"] == [order_invoice.id]
        assert refunds.get_invoice(order_invoice.id).status == "cancelled"

        [refund_id] = outcome.data["refund_ids"]
        refund = refunds.get_refund(refund_id)
        assert refund.status == "pending"
        assert refund.refund_type == "full"
        assert refund.amount == Decimal("775.00")
        assert refund.method == "original_payment"

    def test_cancel_without_invoice(self, sales, order, test_actor_id):
        outcome = sales.cancel_order(order.id, test_actor_id)
        assert outcome.data["cancelled_invoice_ids"] == []
        assert outcome.data["refund_ids"] == []

    def test_cancel_twice_rejected(self, sales, order, test_actor_id):
        sales.cancel_order(order.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            sales.cancel_order(order.id, test_actor_id)
        assert len(sales.returns_for_order(order.id)) == 1

    def test_unknown_order(self, sales, chart, test_actor_id):
        from uuid import uuid4

        with pytest.raises(RecordNotFoundError):
            sales.cancel_order(uuid4(), test_actor_id)

    def test_discontinued_product_becomes_warning(
        self, sales, order, order_invoice, inventory, refunds, products, test_actor_id, captured_logs
    ):
        widget, gadget = products
        inventory.set_active(gadget.id, False, test_actor_id)

        outcome = sales.cancel_order(order.id, test_actor_id)

        assert outcome.status == "cancelled"
        assert sales.get_order(order.id).status == "cancelled"
        assert len(outcome.warnings) == 1
        warning = outcome.warnings[0].as_warning()
        assert warning["kind"] == "dependency_failure"
        assert warning["step"] == "restore_inventory"
        assert "discontinued" in warning["message"]

        assert inventory.get_product(widget.id).quantity_on_hand == Decimal("12")
        assert inventory.get_product(gadget.id).quantity_on_hand == Decimal("4")
        assert len(outcome.data["restored_item_ids"]) == 1

        sales_return = sales.get_return(outcome.data["return_id"])
        restored = {item.product_id: item.restored for item in sales_return.items}
        assert restored[widget.id] is True
        assert restored[gadget.id] is False
        assert len(outcome.data["refund_ids"]) == 1

        assert any(r["message"] == "downstream_update_failed" for r in captured_logs())

    def test_injected_inventory_failure(
        self, session, deterministic_clock, workflow_executor, refunds, order, products, test_actor_id
    ):
        widget, _ = products

        class FailingInventory(InventoryService):
            def restore_quantity(self, product_id, quantity, actor_id, reference=None):
                if product_id == widget.id:
                    raise RuntimeError("warehouse offline")
                return super().restore_quantity(product_id, quantity, actor_id, reference)

        service = SalesOrderService(
            session,
            deterministic_clock,
            workflow_executor,
            inventory=FailingInventory(session, deterministic_clock),
            refunds=refunds,
        )
        outcome = service.cancel_order(order.id, test_actor_id)

        assert outcome.status == "cancelled"
        assert [w.entity_type for w in outcome.warnings] == ["sales_return_item"]
        assert "warehouse offline" in str(outcome.warnings[0])
        assert len(outcome.data["restored_item_ids"]) == 1

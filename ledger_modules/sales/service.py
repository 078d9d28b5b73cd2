"""
Sales Module Service (``ledger_modules.sales.service``).

Responsibility
--------------
Sales orders and their cancellation.  Cancelling an order is a composite
handler:

1. Fatal core, one transaction: lock the order and check it can be
   cancelled; write a SalesReturn with one item per order line; cancel
   every open invoice of the order and open a pending full refund for
   what is still refundable on it; mark the order cancelled; commit.
2. Best-effort, one transaction per line: put stocked quantities back on
   hand through ``InventoryService`` and flag the return item
   ``restored``.  Custom lines are skipped.  A failing line is logged and
   reported as a warning; the cancellation stays committed.

Architecture position
---------------------
**Modules layer**.  Composes ``RefundService`` (staging methods only, no
commits) and an injectable ``InventoryService``.

Failure modes
-------------
* InvalidTransitionError: order already cancelled.
* RecordNotFoundError: unknown order.
* Anything raised while writing the return, invoices, or refunds aborts
  the whole cancellation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import RecordNotFoundError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.ar.models import InvoiceStatus, RefundType
from ledger_modules.ar.service import RefundService
from ledger_modules.inventory.service import InventoryService
from ledger_modules.sales.models import OrderItemSpec, SalesOrder, SalesReturn
from ledger_modules.sales.orm import (
    SalesOrderItemModel,
    SalesOrderModel,
    SalesReturnItemModel,
    SalesReturnModel,
)
from ledger_modules.sales.workflows import SALES_ORDER_WORKFLOW
from ledger_services.outcomes import ProcessOutcome, run_best_effort
from ledger_services.settlement import PaymentMethod
from ledger_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.sales.service")

_ZERO = Decimal("0")
_ENTITY = "sales_order"


class SalesOrderService:
    """
    Sales order handler.

    Contract:
        ``cancel_order`` returns a ProcessOutcome whose ``data`` holds the
        return id, cancelled invoice ids, refund ids and restored item ids.
        Inventory failures appear in ``warnings``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        workflow_executor: WorkflowExecutor | None = None,
        inventory: InventoryService | None = None,
        refunds: RefundService | None = None,
        return_prefix: str = "RET",
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._workflow = workflow_executor or WorkflowExecutor()
        self._inventory = inventory or InventoryService(session, self._clock)
        self._refunds = refunds or RefundService(
            session, self._clock, workflow_executor=self._workflow
        )
        self._return_prefix = return_prefix
        self._sequences = SequenceService(session)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_order(self, order_id: UUID) -> SalesOrder:
        order = self._session.get(SalesOrderModel, order_id)
        if order is None:
            raise RecordNotFoundError(_ENTITY, str(order_id))
        return order.to_dto()

    def get_return(self, return_id: UUID) -> SalesReturn:
        sales_return = self._session.get(SalesReturnModel, return_id)
        if sales_return is None:
            raise RecordNotFoundError("sales_return", str(return_id))
        return sales_return.to_dto()

    def returns_for_order(self, order_id: UUID) -> list[SalesReturn]:
        rows = self._session.execute(
            select(SalesReturnModel).where(SalesReturnModel.order_id == order_id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def _lock_order(self, order_id: UUID) -> SalesOrderModel:
        order = self._session.execute(
            select(SalesOrderModel)
            .where(SalesOrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise RecordNotFoundError(_ENTITY, str(order_id))
        return order

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(
        self,
        order_number: str,
        items: Sequence[OrderItemSpec],
        actor_id: UUID,
        customer_name: str | None = None,
        order_date: date | None = None,
    ) -> SalesOrder:
        if not items:
            raise ValidationError("An order needs at least one line", field="items")
        try:
            order = SalesOrderModel(
                order_number=order_number,
                customer_name=customer_name,
                order_date=order_date or self._clock.today(),
                status=SALES_ORDER_WORKFLOW.initial_state,
                total_amount=sum((i.quantity * i.unit_price for i in items), _ZERO),
                created_by_id=actor_id,
            )
            order.items = [
                SalesOrderItemModel(
                    line_number=number,
                    product_id=None if spec.is_custom else spec.product_id,
                    is_custom=spec.is_custom,
                    description=spec.description,
                    quantity=spec.quantity,
                    unit_price=spec.unit_price,
                    unit_cost=spec.unit_cost,
                    created_by_id=actor_id,
                )
                for number, spec in enumerate(items, start=1)
            ]
            self._session.add(order)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "sales_order_created",
            extra={"order_id": str(order.id), "order_number": order_number, "line_count": len(items)},
        )
        return order.to_dto()

    def mark_delivered(self, order_id: UUID, actor_id: UUID) -> SalesOrder:
        try:
            order = self._lock_order(order_id)
            result = self._workflow.execute_transition(
                SALES_ORDER_WORKFLOW, _ENTITY, order.id, order.status, "deliver"
            )
            order.status = result.to_state
            order.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return order.to_dto()

    # =========================================================================
    # Cancellation
    # =========================================================================

    def _write_return(
        self, order: SalesOrderModel, actor_id: UUID, reason: str | None
    ) -> SalesReturnModel:
        items = [
            SalesReturnItemModel(
                order_item_id=line.id,
                product_id=line.product_id,
                quantity=line.quantity,
                return_value=line.quantity * line.unit_price,
                cost_value=line.quantity * line.unit_cost,
                restored=False,
                created_by_id=actor_id,
            )
            for line in order.items
        ]
        sales_return = SalesReturnModel(
            return_number=self._sequences.next_number(
                SequenceService.SALES_RETURN, self._return_prefix
            ),
            order_id=order.id,
            return_date=self._clock.today(),
            reason=reason,
            return_value=sum((i.return_value for i in items), _ZERO),
            cost_value=sum((i.cost_value for i in items), _ZERO),
            created_by_id=actor_id,
        )
        sales_return.items = items
        self._session.add(sales_return)
        self._session.flush()
        logger.info(
            "sales_return_created",
            extra={
                "return_id": str(sales_return.id),
                "return_number": sales_return.return_number,
                "order_id": str(order.id),
                "return_value": str(sales_return.return_value),
            },
        )
        return sales_return

    def _restore_item(self, item_id: UUID, actor_id: UUID, reference: str) -> None:
        item = self._session.get(SalesReturnItemModel, item_id)
        self._inventory.restore_quantity(item.product_id, item.quantity, actor_id, reference=reference)
        item.restored = True
        item.updated_by_id = actor_id
        self._session.flush()

    def cancel_order(
        self,
        order_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ProcessOutcome:
        logger.info("sales_order_cancel_started", extra={"order_id": str(order_id)})
        try:
            order = self._lock_order(order_id)
            result = self._workflow.execute_transition(
                SALES_ORDER_WORKFLOW, _ENTITY, order.id, order.status, "cancel"
            )
            sales_return = self._write_return(order, actor_id, reason)

            cancelled_invoice_ids: list[UUID] = []
            refund_ids: list[UUID] = []
            for invoice in self._refunds.invoices_for_order(order.id):
                if invoice.status == InvoiceStatus.CANCELLED.value:
                    continue
                self._refunds.stage_invoice_cancellation(invoice, actor_id)
                cancelled_invoice_ids.append(invoice.id)
                refundable = self._refunds.refundable_amount(invoice.id)
                if refundable > _ZERO:
                    refund = self._refunds.stage_refund(
                        invoice.id,
                        refundable,
                        actor_id,
                        reason=reason or f"Cancellation of order {order.order_number}",
                        method=PaymentMethod.ORIGINAL_PAYMENT,
                        refund_type=RefundType.FULL,
                    )
                    refund_ids.append(refund.id)

            order.status = result.to_state
            order.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning("sales_order_cancel_failed", extra={"order_id": str(order_id)}, exc_info=True)
            raise

        logger.info(
            "sales_order_cancelled",
            extra={
                "order_id": str(order_id),
                "return_id": str(sales_return.id),
                "invoices_cancelled": len(cancelled_invoice_ids),
                "refunds_created": len(refund_ids),
            },
        )

        return_number = sales_return.return_number
        returned = [(item.id, item.product_id) for item in sales_return.items]
        custom_lines = {line.id for line in order.items if line.is_custom}
        order_item_of = {item.id: item.order_item_id for item in sales_return.items}

        warnings = []
        restored_ids: list[UUID] = []
        for item_id, product_id in returned:
            if product_id is None or order_item_of[item_id] in custom_lines:
                logger.info("inventory_restore_skipped", extra={"return_item_id": str(item_id)})
                continue
            failure = run_best_effort(
                self._session,
                "restore_inventory",
                "sales_return_item",
                item_id,
                lambda item_id=item_id: self._restore_item(item_id, actor_id, return_number),
            )
            if failure is None:
                restored_ids.append(item_id)
            else:
                warnings.append(failure)

        return ProcessOutcome(
            record_id=order_id,
            status=result.to_state,
            warnings=tuple(warnings),
            data={
                "return_id": sales_return.id,
                "return_number": return_number,
                "cancelled_invoice_ids": cancelled_invoice_ids,
                "refund_ids": refund_ids,
                "restored_item_ids": restored_ids,
            },
        )

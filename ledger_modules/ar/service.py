"""
Accounts Receivable Module Service (``ledger_modules.ar.service``).

Responsibility
--------------
Invoices and the invoice refund lifecycle: request, approve, process,
reverse, cancel.  Processing pays the customer out of a liquid account
(outflow) and posts Dr Sales Returns / Cr the account's cash GL code.
Reversing puts the money back (inflow) and posts the mirror entry.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``RefundService`` owns the
transaction boundary of its public methods.  The ``stage_*`` methods do
NOT commit; ``SalesOrderService`` calls them inside its own cancellation
transaction.

Invariants enforced
-------------------
* Refundable amount = invoice total - processed refunds - other refunds
  still pending or approved.  Requests, approvals and processing never
  exceed it.
* A refund is processed at most once: its row is locked and its status
  checked by the workflow executor before any money moves.
* The invoice's ``total_refunded`` is refreshed after commit as a
  best-effort step.

Failure modes
-------------
* AmountExceedsRemainingError, ValidationError on request.
* InvalidTransitionError (e.g. processing a pending or processed refund),
  GuardFailedError.
* BankAccountRequiredError, InsufficientBalanceError from settlement.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_config.schema import AccountCodes
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AmountExceedsRemainingError,
    RecordNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.liquid_account import LiquidTransactionType
from ledger_modules.ar.models import (
    Invoice,
    InvoiceRefund,
    InvoiceStatus,
    RefundStatus,
    RefundType,
)
from ledger_modules.ar.orm import InvoiceModel, InvoiceRefundModel
from ledger_modules.ar.workflows import INVOICE_WORKFLOW, REFUND_WORKFLOW
from ledger_services.outcomes import ProcessOutcome, run_best_effort
from ledger_services.settlement import PaymentMethod, SettlementService
from ledger_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.ar.service")

_ZERO = Decimal("0")
_ENTITY = "invoice_refund"
_OUTSTANDING = (RefundStatus.PENDING.value, RefundStatus.APPROVED.value)


class RefundService:
    """
    Invoice refund handler.

    Contract:
        Public methods commit their own work.  ``process_refund`` and
        ``reverse_refund`` return a ProcessOutcome with best-effort
        warnings.

    Non-goals:
        - Invoice issuance workflows beyond issue / pay / cancel.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        workflow_executor: WorkflowExecutor | None = None,
        account_codes: AccountCodes | None = None,
        settlement: SettlementService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._workflow = workflow_executor or WorkflowExecutor()
        self._codes = account_codes or AccountCodes()
        self._settlement = settlement or SettlementService(session, self._clock)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._invoice(invoice_id).to_dto()

    def get_refund(self, refund_id: UUID) -> InvoiceRefund:
        refund = self._session.get(InvoiceRefundModel, refund_id)
        if refund is None:
            raise RecordNotFoundError(_ENTITY, str(refund_id))
        return refund.to_dto()

    def invoices_for_order(self, sales_order_id: UUID) -> list[InvoiceModel]:
        return list(
            self._session.execute(
                select(InvoiceModel)
                .where(InvoiceModel.sales_order_id == sales_order_id)
                .order_by(InvoiceModel.invoice_number)
            ).scalars().all()
        )

    def _invoice(self, invoice_id: UUID, lock: bool = False) -> InvoiceModel:
        query = select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        invoice = self._session.execute(query).scalar_one_or_none()
        if invoice is None:
            raise RecordNotFoundError("invoice", str(invoice_id))
        return invoice

    def _lock_refund(self, refund_id: UUID) -> InvoiceRefundModel:
        refund = self._session.execute(
            select(InvoiceRefundModel)
            .where(InvoiceRefundModel.id == refund_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if refund is None:
            raise RecordNotFoundError(_ENTITY, str(refund_id))
        return refund

    def _refund_total(
        self,
        invoice_id: UUID,
        statuses: tuple[str, ...],
        exclude_refund_id: UUID | None = None,
    ) -> Decimal:
        query = select(func.coalesce(func.sum(InvoiceRefundModel.amount), _ZERO)).where(
            InvoiceRefundModel.invoice_id == invoice_id,
            InvoiceRefundModel.status.in_(statuses),
        )
        if exclude_refund_id is not None:
            query = query.where(InvoiceRefundModel.id != exclude_refund_id)
        return Decimal(self._session.execute(query).scalar_one())

    def refundable_amount(self, invoice_id: UUID, exclude_refund_id: UUID | None = None) -> Decimal:
        """What can still be refunded on an invoice, counting outstanding requests."""
        invoice = self._invoice(invoice_id)
        committed = self._refund_total(
            invoice_id,
            (RefundStatus.PROCESSED.value, *_OUTSTANDING),
            exclude_refund_id,
        )
        return invoice.total_amount - committed

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        invoice_number: str,
        total_amount: Decimal,
        actor_id: UUID,
        sales_order_id: UUID | None = None,
        customer_name: str | None = None,
        invoice_date: date | None = None,
    ) -> Invoice:
        if total_amount <= _ZERO:
            raise ValidationError("Invoice total must be positive", field="total_amount")
        try:
            invoice = InvoiceModel(
                invoice_number=invoice_number,
                sales_order_id=sales_order_id,
                customer_name=customer_name,
                invoice_date=invoice_date or self._clock.today(),
                total_amount=total_amount,
                total_refunded=_ZERO,
                status=INVOICE_WORKFLOW.initial_state,
                created_by_id=actor_id,
            )
            self._session.add(invoice)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "invoice_created",
            extra={"invoice_id": str(invoice.id), "invoice_number": invoice_number},
        )
        return invoice.to_dto()

    def mark_invoice_paid(self, invoice_id: UUID, actor_id: UUID) -> Invoice:
        try:
            invoice = self._invoice(invoice_id, lock=True)
            result = self._workflow.execute_transition(
                INVOICE_WORKFLOW, "invoice", invoice.id, invoice.status, "pay"
            )
            invoice.status = result.to_state
            invoice.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return invoice.to_dto()

    def stage_invoice_cancellation(self, invoice: InvoiceModel, actor_id: UUID) -> None:
        """Cancel an invoice in the caller's transaction.  Does not commit."""
        result = self._workflow.execute_transition(
            INVOICE_WORKFLOW, "invoice", invoice.id, invoice.status, "cancel"
        )
        invoice.status = result.to_state
        invoice.updated_by_id = actor_id
        self._session.flush()
        logger.info("invoice_cancelled", extra={"invoice_id": str(invoice.id)})

    def refresh_invoice(self, invoice_id: UUID, actor_id: UUID) -> Invoice:
        """Recompute total_refunded from processed refunds.  Does not commit."""
        invoice = self._invoice(invoice_id, lock=True)
        refunded = self._refund_total(invoice_id, (RefundStatus.PROCESSED.value,))
        invoice.total_refunded = refunded
        invoice.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "invoice_refund_total_refreshed",
            extra={"invoice_id": str(invoice_id), "total_refunded": str(refunded)},
        )
        return invoice.to_dto()

    # =========================================================================
    # Refunds
    # =========================================================================

    def stage_refund(
        self,
        invoice_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        reason: str | None = None,
        method: PaymentMethod | str = PaymentMethod.ORIGINAL_PAYMENT,
        liquid_account_id: UUID | None = None,
        refund_type: RefundType | str | None = None,
        refund_date: date | None = None,
    ) -> InvoiceRefundModel:
        """Validate and add a PENDING refund in the caller's transaction.  Does not commit."""
        if amount <= _ZERO:
            raise ValidationError("Refund amount must be positive", field="amount")
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError(f"Unknown refund method: {method}", field="method") from exc

        refundable = self.refundable_amount(invoice_id)
        if amount > refundable:
            raise AmountExceedsRemainingError(str(amount), str(refundable), record_id=str(invoice_id))
        if refund_type is None:
            refund_type = RefundType.FULL if amount == refundable else RefundType.PARTIAL

        refund = InvoiceRefundModel(
            invoice_id=invoice_id,
            amount=amount,
            reason=reason,
            refund_type=RefundType(refund_type).value,
            method=method.value,
            liquid_account_id=liquid_account_id,
            status=REFUND_WORKFLOW.initial_state,
            refund_date=refund_date or self._clock.today(),
            created_by_id=actor_id,
        )
        self._session.add(refund)
        self._session.flush()
        logger.info(
            "refund_requested",
            extra={
                "refund_id": str(refund.id),
                "invoice_id": str(invoice_id),
                "amount": str(amount),
                "refund_type": refund.refund_type,
            },
        )
        return refund

    def request_refund(
        self,
        invoice_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        reason: str | None = None,
        method: PaymentMethod | str = PaymentMethod.ORIGINAL_PAYMENT,
        liquid_account_id: UUID | None = None,
        refund_type: RefundType | str | None = None,
    ) -> InvoiceRefund:
        try:
            refund = self.stage_refund(
                invoice_id, amount, actor_id, reason, method, liquid_account_id, refund_type
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return refund.to_dto()

    def _guard_context(self, refund: InvoiceRefundModel) -> dict[str, Decimal]:
        return {
            "amount": refund.amount,
            "remaining": self.refundable_amount(refund.invoice_id, exclude_refund_id=refund.id),
        }

    def approve_refund(self, refund_id: UUID, actor_id: UUID) -> InvoiceRefund:
        try:
            refund = self._lock_refund(refund_id)
            result = self._workflow.execute_transition(
                REFUND_WORKFLOW, _ENTITY, refund.id, refund.status, "approve",
                context=self._guard_context(refund),
            )
            refund.status = result.to_state
            refund.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("refund_approved", extra={"refund_id": str(refund_id)})
        return refund.to_dto()

    def cancel_refund(self, refund_id: UUID, actor_id: UUID) -> InvoiceRefund:
        try:
            refund = self._lock_refund(refund_id)
            result = self._workflow.execute_transition(
                REFUND_WORKFLOW, _ENTITY, refund.id, refund.status, "cancel"
            )
            refund.status = result.to_state
            refund.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("refund_cancelled", extra={"refund_id": str(refund_id)})
        return refund.to_dto()

    def process_refund(
        self,
        refund_id: UUID,
        actor_id: UUID,
        method: PaymentMethod | str | None = None,
        liquid_account_id: UUID | None = None,
        refund_date: date | None = None,
    ) -> ProcessOutcome:
        """
        Pay the refund out.

        Only an APPROVED refund can be processed.  A second call finds the
        refund PROCESSED and raises InvalidTransitionError before touching
        any balance.
        """
        logger.info("refund_process_started", extra={"refund_id": str(refund_id)})
        try:
            refund = self._lock_refund(refund_id)
            result = self._workflow.execute_transition(
                REFUND_WORKFLOW, _ENTITY, refund.id, refund.status, "process",
                context=self._guard_context(refund),
            )

            if method is not None:
                refund.method = method.value if isinstance(method, PaymentMethod) else str(method)
            if liquid_account_id is not None:
                refund.liquid_account_id = liquid_account_id
            if refund_date is not None:
                refund.refund_date = refund_date

            account = self._settlement.resolve_account(
                refund.method, refund.liquid_account_id, record_id=refund.id
            )
            invoice = self._invoice(refund.invoice_id)
            settled = self._settlement.settle_outflow(
                account=account,
                amount=refund.amount,
                debit_code=self._codes.sales_returns,
                transaction_type=LiquidTransactionType.REFUND,
                description=f"Refund on invoice {invoice.invoice_number}",
                actor_id=actor_id,
                source_type=_ENTITY,
                source_id=refund.id,
                settlement_date=refund.refund_date,
                reference=invoice.invoice_number,
            )

            refund.status = result.to_state
            refund.liquid_account_id = account.id
            refund.journal_entry_id = settled.journal_entry_id
            refund.transaction_id = settled.transaction_id
            refund.processed_at = self._clock.now()
            refund.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning("refund_process_failed", extra={"refund_id": str(refund_id)}, exc_info=True)
            raise

        logger.info(
            "refund_processed",
            extra={
                "refund_id": str(refund_id),
                "amount": str(refund.amount),
                "liquid_account_id": str(account.id),
                "journal_entry_id": str(settled.journal_entry_id),
            },
        )

        invoice_id = refund.invoice_id
        failure = run_best_effort(
            self._session,
            "refresh_invoice_total_refunded",
            "invoice",
            invoice_id,
            lambda: self.refresh_invoice(invoice_id, actor_id),
        )
        return ProcessOutcome(
            record_id=refund_id,
            status=result.to_state,
            settlement=settled,
            warnings=(failure,) if failure else (),
        )

    def reverse_refund(
        self,
        refund_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        reversal_date: date | None = None,
    ) -> ProcessOutcome:
        """Undo a processed refund: money comes back in, mirror entry is posted."""
        logger.info("refund_reverse_started", extra={"refund_id": str(refund_id)})
        try:
            refund = self._lock_refund(refund_id)
            result = self._workflow.execute_transition(
                REFUND_WORKFLOW, _ENTITY, refund.id, refund.status, "reverse"
            )
            reversed_ = self._settlement.reverse(
                journal_entry_id=refund.journal_entry_id,
                transaction_id=refund.transaction_id,
                transaction_type=LiquidTransactionType.REFUND_REVERSAL,
                description=reason or f"Reversal of refund {refund.id}",
                actor_id=actor_id,
                source_type=_ENTITY,
                source_id=refund.id,
                reversal_date=reversal_date,
            )
            refund.status = result.to_state
            refund.reversal_journal_entry_id = reversed_.journal_entry_id
            refund.reversal_transaction_id = reversed_.transaction_id
            refund.reversed_at = self._clock.now()
            refund.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning("refund_reverse_failed", extra={"refund_id": str(refund_id)}, exc_info=True)
            raise

        logger.info(
            "refund_reversed",
            extra={
                "refund_id": str(refund_id),
                "reversal_journal_entry_id": str(reversed_.journal_entry_id),
            },
        )

        invoice_id = refund.invoice_id
        failure = run_best_effort(
            self._session,
            "refresh_invoice_total_refunded",
            "invoice",
            invoice_id,
            lambda: self.refresh_invoice(invoice_id, actor_id),
        )
        return ProcessOutcome(
            record_id=refund_id,
            status=result.to_state,
            settlement=reversed_,
            warnings=(failure,) if failure else (),
        )

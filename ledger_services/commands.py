"""
ledger_services.commands -- Command facade for collaborators.

Responsibility:
    The one surface other systems call.  Inbound commands take a plain
    dict payload, run one unit of work on a fresh session, and return a
    ``CommandResult``.  Outbound reads return statements and ledger pages
    as plain dicts.

Architecture position:
    Services -- top of the stack.  Wires kernel services, module services
    and the reporting service onto one session per attempt.

Invariants enforced:
    - Every unit of work opens its own session; an optimistic-lock conflict
      reruns the whole unit (``run_with_retry``).
    - A vendor payment created from a bill is created and processed in
      one unit, so a failed attempt leaves no pending payment.
    - Collaborators never see a raw exception: ``LedgerError`` maps to its
      ``kind``; anything else is logged and reported as ``internal_error``.

Failure modes:
    - Carried on ``CommandResult.error``, never raised, for inbound commands.
    - Outbound reads raise ``ValidationError`` for bad dates or an unknown
      summary entity type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from ledger_config import LedgerConfig, get_active_config
from ledger_kernel.db.types import money_from_value
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.entry_rules import LineSpec
from ledger_kernel.exceptions import LedgerError, ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.liquid_account_service import LiquidAccountService
from ledger_modules.ap.service import VendorPaymentService
from ledger_modules.ar.service import RefundService
from ledger_modules.inventory.service import InventoryService
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_to_dict
from ledger_modules.sales.service import SalesOrderService
from ledger_services.outcomes import ProcessOutcome
from ledger_services.retry import run_with_retry
from ledger_services.settlement import SettlementService
from ledger_services.workflow_executor import WorkflowExecutor

logger = get_logger("services.commands")

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "An internal error occurred; the operation was not completed"


@dataclass(frozen=True)
class CommandError:
    kind: str
    message: str
    record_id: str | None = None


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one inbound command."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: CommandError | None = None
    warnings: tuple[dict[str, str], ...] = ()

    @classmethod
    def ok(cls, data: dict[str, Any], warnings: tuple[dict[str, str], ...] = ()) -> CommandResult:
        return cls(success=True, data=data, warnings=warnings)

    @classmethod
    def failed(cls, error: CommandError) -> CommandResult:
        return cls(success=False, error=error)


# =========================================================================
# Payload parsing
# =========================================================================


def _require(payload: dict[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise ValidationError(f"'{key}' is required", field=key)
    return value


def _uuid(payload: dict[str, Any], key: str, required: bool = True) -> UUID | None:
    value = _require(payload, key) if required else payload.get(key)
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"'{key}' is not a valid id: {value!r}", field=key) from exc


def _amount(payload: dict[str, Any], key: str = "amount") -> Decimal:
    try:
        return money_from_value(_require(payload, key), field=key)
    except ValueError as exc:
        raise ValidationError(str(exc), field=key) from exc


def _optional_amount(payload: dict[str, Any], key: str) -> Decimal:
    if payload.get(key) in (None, ""):
        return Decimal("0")
    return _amount(payload, key)


def parse_date(value: Any, field_name: str = "date") -> date | None:
    """Accept a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(f"'{field_name}' is not an ISO date: {value!r}", field=field_name) from exc


def _period(start: Any, end: Any) -> tuple[date, date]:
    """Both bounds are required for period statements."""
    bounds = {"start": parse_date(start, "start"), "end": parse_date(end, "end")}
    for name, value in bounds.items():
        if value is None:
            raise ValidationError(f"'{name}' is required", field=name)
    return bounds["start"], bounds["end"]


def _line_specs(payload: dict[str, Any]) -> list[LineSpec]:
    raw_lines = _require(payload, "lines")
    if not isinstance(raw_lines, (list, tuple)):
        raise ValidationError("'lines' must be a list", field="lines")
    specs = []
    for raw in raw_lines:
        specs.append(
            LineSpec(
                debit=_optional_amount(raw, "debit"),
                credit=_optional_amount(raw, "credit"),
                account_code=raw.get("account_code"),
                account_id=_uuid(raw, "account_id", required=False),
                memo=raw.get("memo"),
            )
        )
    return specs


def _outcome_data(outcome: ProcessOutcome) -> dict[str, Any]:
    data = {"record_id": str(outcome.record_id), "status": outcome.status}
    if outcome.settlement is not None:
        data["settlement"] = render_to_dict(outcome.settlement)
    data.update(render_to_dict(outcome.data))
    return data


def _warnings(outcome: ProcessOutcome) -> tuple[dict[str, str], ...]:
    return tuple(w.as_warning() for w in outcome.warnings)


# =========================================================================
# Facade
# =========================================================================


class _Services:
    """Every service wired onto one session."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        config: LedgerConfig,
        workflow: WorkflowExecutor,
        inventory_factory: Callable[[Session, Clock], InventoryService],
    ):
        self.session = session
        self.journal = JournalService(session, clock, entry_prefix=config.journal_prefix)
        self.liquid = LiquidAccountService(session, clock)
        self.settlement = SettlementService(session, clock, journal=self.journal, liquid=self.liquid)
        self.payments = VendorPaymentService(
            session, clock, workflow, account_codes=config.account_codes, settlement=self.settlement
        )
        self.refunds = RefundService(
            session, clock, workflow, account_codes=config.account_codes, settlement=self.settlement
        )
        self.sales = SalesOrderService(
            session,
            clock,
            workflow,
            inventory=inventory_factory(session, clock),
            refunds=self.refunds,
            return_prefix=config.return_prefix,
        )


class LedgerCommands:
    """
    Command facade.

    Contract:
        Inbound methods never raise for ledger conditions; read the
        ``CommandResult``.  Each call commits at most one fatal core (plus
        its best-effort steps).

    Guarantees:
        - ``error.message`` for an unexpected exception is generic; the
          exception itself goes to the log with its traceback.

    Non-goals:
        - Authentication and authorization of ``actor_id``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        inventory_factory: Callable[[Session, Clock], InventoryService] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._workflow = WorkflowExecutor()
        self._inventory_factory = inventory_factory or InventoryService
        self._sleep = sleep

    # ---------------------------------------------------------------------
    # Plumbing
    # ---------------------------------------------------------------------

    def _unit(self, work: Callable[[_Services], T]) -> Callable[[], T]:
        def run() -> T:
            session = self._session_factory()
            try:
                return work(
                    _Services(session, self._clock, self._config, self._workflow, self._inventory_factory)
                )
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        return run

    def _retrying(self, name: str, work: Callable[[_Services], T], record_id: str | None = None) -> T:
        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        return run_with_retry(self._unit(work), self._config.retry, name, record_id=record_id, **kwargs)

    def _execute(
        self,
        name: str,
        payload: dict[str, Any],
        handler: Callable[[dict[str, Any]], CommandResult],
    ) -> CommandResult:
        payload = dict(payload or {})
        record_hint = next(
            (str(payload[k]) for k in ("payment_id", "refund_id", "order_id", "entry_id") if payload.get(k)),
            None,
        )
        with LogContext.bind(
            correlation_id=str(uuid4()),
            command=name,
            actor_id=payload.get("actor_id"),
            record_id=record_hint,
        ):
            logger.info("command_started", extra={"command_name": name})
            try:
                result = handler(payload)
            except LedgerError as exc:
                record_id = exc.record_id or record_hint
                logger.warning(
                    "command_failed",
                    extra={"command_name": name, "kind": exc.kind, "error_code": exc.code},
                )
                return CommandResult.failed(
                    CommandError(kind=exc.kind, message=str(exc), record_id=record_id)
                )
            except Exception:
                logger.exception("command_internal_error", extra={"command_name": name})
                return CommandResult.failed(
                    CommandError(kind="internal_error", message=INTERNAL_ERROR_MESSAGE, record_id=record_hint)
                )
            logger.info(
                "command_completed",
                extra={"command_name": name, "warning_count": len(result.warnings)},
            )
            return result

    def _entry_data(self, services: _Services, entry_id: UUID) -> dict[str, Any]:
        return render_to_dict(JournalSelector(services.session).get(entry_id))

    # ---------------------------------------------------------------------
    # Journal
    # ---------------------------------------------------------------------

    def create_journal_entry(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            lines = _line_specs(p)
            entry_date = parse_date(p.get("entry_date"), "entry_date") or self._clock.today()

            def work(s: _Services) -> dict[str, Any]:
                entry = s.journal.create_entry(
                    lines,
                    entry_date,
                    _require(p, "description"),
                    actor_id,
                    reference=p.get("reference"),
                )
                s.session.commit()
                return self._entry_data(s, entry.id)

            return CommandResult.ok(self._retrying("create_journal_entry", work))

        return self._execute("create_journal_entry", payload, handle)

    def post_journal_entry(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            entry_id = _uuid(p, "entry_id")

            def work(s: _Services) -> dict[str, Any]:
                s.journal.post_entry(entry_id, actor_id)
                s.session.commit()
                return self._entry_data(s, entry_id)

            return CommandResult.ok(self._retrying("post_journal_entry", work, str(entry_id)))

        return self._execute("post_journal_entry", payload, handle)

    def reverse_journal_entry(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            entry_id = _uuid(p, "entry_id")
            reversal_date = parse_date(p.get("reversal_date"), "reversal_date")

            def work(s: _Services) -> dict[str, Any]:
                reversal = s.journal.reverse_entry(
                    entry_id, actor_id, reversal_date=reversal_date, description=p.get("description")
                )
                s.session.commit()
                return self._entry_data(s, reversal.id)

            return CommandResult.ok(self._retrying("reverse_journal_entry", work, str(entry_id)))

        return self._execute("reverse_journal_entry", payload, handle)

    # ---------------------------------------------------------------------
    # Vendor payments
    # ---------------------------------------------------------------------

    def process_vendor_payment(self, payload: dict[str, Any]) -> CommandResult:
        """
        Pay a vendor.

        Payload carries either ``payment_id`` (an existing pending or
        approved payment) or ``bill_id`` + ``amount`` + ``method`` to create
        and process a payment in one transaction.  ``liquid_account_id`` and
        ``payment_date`` are optional.
        """

        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            liquid_account_id = _uuid(p, "liquid_account_id", required=False)
            payment_date = parse_date(p.get("payment_date"), "payment_date")
            payment_id = _uuid(p, "payment_id", required=False)

            if payment_id is None:
                bill_id = _uuid(p, "bill_id")
                amount = _amount(p)
                method = _require(p, "method")

                def pay(s: _Services) -> ProcessOutcome:
                    return s.payments.pay_bill(
                        bill_id,
                        amount,
                        method,
                        actor_id,
                        liquid_account_id=liquid_account_id,
                        payment_date=payment_date,
                        reference=p.get("reference"),
                        notes=p.get("notes"),
                    )

                outcome = self._retrying("process_vendor_payment", pay, str(bill_id))
                return CommandResult.ok(_outcome_data(outcome), _warnings(outcome))

            def work(s: _Services) -> ProcessOutcome:
                return s.payments.process_payment(
                    payment_id,
                    actor_id,
                    method=p.get("method"),
                    liquid_account_id=liquid_account_id,
                    payment_date=payment_date,
                )

            outcome = self._retrying("process_vendor_payment", work, str(payment_id))
            return CommandResult.ok(_outcome_data(outcome), _warnings(outcome))

        return self._execute("process_vendor_payment", payload, handle)

    def reverse_vendor_payment(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            payment_id = _uuid(p, "payment_id")
            reversal_date = parse_date(p.get("reversal_date"), "reversal_date")

            def work(s: _Services) -> ProcessOutcome:
                return s.payments.reverse_payment(
                    payment_id, actor_id, reason=p.get("reason"), reversal_date=reversal_date
                )

            outcome = self._retrying("reverse_vendor_payment", work, str(payment_id))
            return CommandResult.ok(_outcome_data(outcome), _warnings(outcome))

        return self._execute("reverse_vendor_payment", payload, handle)

    # ---------------------------------------------------------------------
    # Refunds
    # ---------------------------------------------------------------------

    def process_refund(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            refund_id = _uuid(p, "refund_id")
            liquid_account_id = _uuid(p, "liquid_account_id", required=False)
            refund_date = parse_date(p.get("refund_date"), "refund_date")

            def work(s: _Services) -> ProcessOutcome:
                return s.refunds.process_refund(
                    refund_id,
                    actor_id,
                    method=p.get("method"),
                    liquid_account_id=liquid_account_id,
                    refund_date=refund_date,
                )

            outcome = self._retrying("process_refund", work, str(refund_id))
            return CommandResult.ok(_outcome_data(outcome), _warnings(outcome))

        return self._execute("process_refund", payload, handle)

    def reverse_refund(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            refund_id = _uuid(p, "refund_id")
            reversal_date = parse_date(p.get("reversal_date"), "reversal_date")

            def work(s: _Services) -> ProcessOutcome:
                return s.refunds.reverse_refund(
                    refund_id, actor_id, reason=p.get("reason"), reversal_date=reversal_date
                )

            outcome = self._retrying("reverse_refund", work, str(refund_id))
            return CommandResult.ok(_outcome_data(outcome), _warnings(outcome))

        return self._execute("reverse_refund", payload, handle)

    # ---------------------------------------------------------------------
    # Sales orders
    # ---------------------------------------------------------------------

    def cancel_sales_order(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            order_id = _uuid(p, "order_id")

            def work(s: _Services) -> ProcessOutcome:
                return s.sales.cancel_order(order_id, actor_id, reason=p.get("reason"))

            outcome = self._retrying("cancel_sales_order", work, str(order_id))
            return CommandResult.ok(_outcome_data(outcome), _warnings(outcome))

        return self._execute("cancel_sales_order", payload, handle)

    # ---------------------------------------------------------------------
    # Transfers
    # ---------------------------------------------------------------------

    def transfer_funds(self, payload: dict[str, Any]) -> CommandResult:
        def handle(p: dict[str, Any]) -> CommandResult:
            actor_id = _uuid(p, "actor_id")
            from_id = _uuid(p, "from_account_id")
            to_id = _uuid(p, "to_account_id")
            amount = _amount(p)
            transfer_date = parse_date(p.get("transfer_date"), "transfer_date")

            def work(s: _Services) -> dict[str, Any]:
                result = s.liquid.transfer(
                    from_id,
                    to_id,
                    amount,
                    actor_id,
                    transfer_date=transfer_date,
                    description=p.get("description"),
                    journal=s.journal,
                )
                s.session.commit()
                return {
                    "transfer_id": str(result.transfer_id),
                    "outflow_transaction_id": str(result.outflow.id),
                    "inflow_transaction_id": str(result.inflow.id),
                    "journal_entry_id": str(result.journal_entry_id) if result.journal_entry_id else None,
                    "from_balance_after": str(result.outflow.balance_after),
                    "to_balance_after": str(result.inflow.balance_after),
                }

            return CommandResult.ok(self._retrying("transfer_funds", work, str(from_id)))

        return self._execute("transfer_funds", payload, handle)

    # ---------------------------------------------------------------------
    # Outbound reads
    # ---------------------------------------------------------------------

    def _read(self, work: Callable[[ReportingService], Any]) -> dict[str, Any]:
        session = self._session_factory()
        try:
            return render_to_dict(
                work(ReportingService(session, self._clock, tolerance=self._config.balance_tolerance))
            )
        finally:
            session.close()

    def get_balance_sheet(self, as_of: date | str | None = None) -> dict[str, Any]:
        as_of = parse_date(as_of, "as_of")
        return self._read(lambda reports: reports.balance_sheet(as_of))

    def get_cash_flow(self, start: date | str, end: date | str) -> dict[str, Any]:
        start, end = _period(start, end)
        return self._read(lambda reports: reports.cash_flow(start, end))

    def get_profit_and_loss(self, start: date | str, end: date | str) -> dict[str, Any]:
        start, end = _period(start, end)
        return self._read(lambda reports: reports.profit_and_loss(start, end))

    def get_trial_balance(self, as_of: date | str | None = None) -> dict[str, Any]:
        as_of = parse_date(as_of, "as_of")
        return self._read(lambda reports: reports.trial_balance(as_of))

    def get_ledger_summary(
        self,
        entity_type: str,
        filters: dict[str, Any] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        filters = dict(filters or {})
        for key in ("start", "end"):
            if key in filters:
                filters[key] = parse_date(filters[key], key)
        if filters.get("account_id") is not None:
            filters["account_id"] = _uuid(filters, "account_id")
        return self._read(lambda reports: reports.ledger_summary(entity_type, filters, limit, offset))

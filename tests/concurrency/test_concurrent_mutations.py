"""
Concurrent balance mutations from real threads.

Each worker opens its own session from the shared factory and runs its
unit of work through ``run_with_retry``.  After all workers finish, the
stored balance must equal the sum of the account's transaction rows.

Runs on the default SQLite file database (writers serialized by BEGIN
IMMEDIATE) and on PostgreSQL when DATABASE_URL is set (row locks plus the
version column).
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from ledger_config.schema import RetryPolicy
from ledger_kernel.exceptions import InsufficientBalanceError
from ledger_kernel.models.liquid_account import LiquidTransactionType
from ledger_kernel.services.liquid_account_service import LiquidAccountService, MutationRecord
from ledger_services.commands import LedgerCommands
from ledger_services.retry import run_with_retry

THREADS = 6
POLICY = RetryPolicy(max_attempts=5, backoff_seconds=0.01)


def _mutate(session_factory, clock, account_id, amount, actor_id):
    def unit():
        session = session_factory()
        try:
            txn = LiquidAccountService(session, clock).apply_mutation(
                account_id,
                amount,
                MutationRecord(
                    transaction_type=(
                        LiquidTransactionType.DEPOSIT if amount > 0 else LiquidTransactionType.WITHDRAWAL
                    ),
                    description="Concurrent mutation",
                    transaction_date=clock.today(),
                ),
                actor_id,
            )
            session.commit()
            return txn.id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return run_with_retry(unit, POLICY, "concurrent_mutation", record_id=str(account_id))


def _verify(session_factory, account_id):
    session = session_factory()
    try:
        return LiquidAccountService(session).verify_balance(account_id)
    finally:
        session.close()


@pytest.fixture
def released_cash(session, cash_account):
    session.close()
    return cash_account


class TestConcurrentMutations:

    def test_parallel_deposits_all_land(self, session_factory, deterministic_clock, released_cash, test_actor_id):
        barrier = Barrier(THREADS)

        def worker(_):
            barrier.wait()
            return [
                _mutate(session_factory, deterministic_clock, released_cash.id, Decimal("10.00"), test_actor_id)
                for _ in range(5)
            ]

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            results = list(pool.map(worker, range(THREADS)))

        assert sum(len(ids) for ids in results) == THREADS * 5
        check = _verify(session_factory, released_cash.id)
        assert check.stored_balance == Decimal("10300.00")
        assert check.is_consistent

    def test_withdrawals_never_overdraw(self, session_factory, deterministic_clock, released_cash, test_actor_id):
        # 10,000 drawer; ten withdrawals of 1,500 fit six times
        barrier = Barrier(10)

        def worker(_):
            barrier.wait()
            try:
                _mutate(session_factory, deterministic_clock, released_cash.id, Decimal("-1500"), test_actor_id)
                return "ok"
            except InsufficientBalanceError:
                return "refused"

        with ThreadPoolExecutor(max_workers=10) as pool:
            outcomes = list(pool.map(worker, range(10)))

        assert outcomes.count("ok") == 6
        assert outcomes.count("refused") == 4
        check = _verify(session_factory, released_cash.id)
        assert check.stored_balance == Decimal("1000.00")
        assert check.is_consistent


class TestConcurrentPayments:

    def test_one_bill_two_payers(
        self, session, session_factory, deterministic_clock, ledger_config, payments, released_cash, test_actor_id
    ):
        bill = payments.create_bill("BILL-RACE", "Acme", Decimal("5000"), test_actor_id)
        first = payments.create_payment(bill.id, Decimal("4000"), "cash", test_actor_id)
        second = payments.create_payment(bill.id, Decimal("4000"), "cash", test_actor_id)
        session.close()

        commands = LedgerCommands(session_factory, deterministic_clock, ledger_config)
        barrier = Barrier(2)

        def worker(payment_id):
            barrier.wait()
            return commands.process_vendor_payment(
                {"actor_id": str(test_actor_id), "payment_id": str(payment_id)}
            )

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(worker, [first.id, second.id]))

        assert sorted(r.success for r in results) == [False, True]
        [failed] = [r for r in results if not r.success]
        assert failed.error.kind == "state_conflict"

        check = _verify(session_factory, released_cash.id)
        assert check.stored_balance == Decimal("6000.00")
        assert check.is_consistent

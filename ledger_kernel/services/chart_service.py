"""
ChartOfAccountsService -- creation, lookup, and guarded updates of accounts.

Responsibility:
    Owns writes to the ``accounts`` table.  Derives normal_balance from the
    account type, checks that subtypes belong to their type, and refuses to
    reclassify an account once posted lines reference it.

Architecture position:
    Kernel > Services.  Does not commit; callers own the transaction.

Failure modes:
    - ValidationError on an unknown type or a subtype outside its type.
    - AccountNotFoundError on lookup of an unknown code.
    - AccountReferencedError when reclassifying a referenced account.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.chart import (
    AccountSubtype,
    AccountType,
    is_valid_subtype,
    normal_balance_for,
)
from ledger_kernel.exceptions import AccountNotFoundError, AccountReferencedError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine

logger = get_logger("services.chart")


class AccountSpec(Protocol):
    code: str
    name: str
    account_type: str
    subtype: str


@dataclass(frozen=True)
class SeedResult:
    created: tuple[str, ...]
    existing: tuple[str, ...]


class ChartOfAccountsService:
    """
    Service for chart-of-accounts maintenance.

    Contract:
        Every account it creates has a normal_balance consistent with its
        type and a subtype that belongs to that type.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT compute balances (LedgerSelector does).
    """

    def __init__(self, session: Session):
        self._session = session

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        subtype: str,
        actor_id: UUID,
        parent_id: UUID | None = None,
        description: str | None = None,
    ) -> Account:
        try:
            account_type = AccountType(account_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown account type: {account_type}", field="account_type"
            ) from exc
        if not is_valid_subtype(account_type, subtype):
            raise ValidationError(
                f"Subtype '{subtype}' does not belong to type '{account_type.value}'",
                field="subtype",
            )

        account = Account(
            code=code,
            name=name,
            account_type=account_type.value,
            subtype=AccountSubtype(subtype).value,
            normal_balance=normal_balance_for(account_type).value,
            is_active=True,
            parent_id=parent_id,
            description=description,
            created_by_id=actor_id,
        )
        self._session.add(account)
        self._session.flush()
        logger.info(
            "account_created",
            extra={"code": code, "account_type": account_type.value, "subtype": account.subtype},
        )
        return account

    def ensure_defaults(self, definitions: Iterable[AccountSpec], actor_id: UUID) -> SeedResult:
        """Create every definition whose code does not exist yet."""
        created: list[str] = []
        existing: list[str] = []
        for definition in definitions:
            if self.find_by_code(definition.code) is not None:
                existing.append(definition.code)
                continue
            self.create_account(
                code=definition.code,
                name=definition.name,
                account_type=definition.account_type,
                subtype=definition.subtype,
                actor_id=actor_id,
            )
            created.append(definition.code)
        logger.info(
            "chart_seeded",
            extra={"created_count": len(created), "existing_count": len(existing)},
        )
        return SeedResult(created=tuple(created), existing=tuple(existing))

    def find_by_code(self, code: str) -> Account | None:
        return self._session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get_by_code(self, code: str) -> Account:
        account = self.find_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get(self, account_id: UUID) -> Account:
        account = self._session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def is_referenced(self, account_id: UUID) -> bool:
        """True when any POSTED journal line references the account."""
        return bool(self._session.execute(
            select(
                exists()
                .where(JournalLine.account_id == account_id)
                .where(JournalLine.entry_id == JournalEntry.id)
                .where(JournalEntry.status == JournalEntryStatus.POSTED.value)
            )
        ).scalar())

    def update_account(
        self,
        account_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        subtype: str | None = None,
        code: str | None = None,
        is_active: bool | None = None,
    ) -> Account:
        """
        Update an account.  Names and the active flag may always change;
        code and subtype only while no posted line references the account.
        """
        account = self.get(account_id)
        reclassifying = (
            (code is not None and code != account.code)
            or (subtype is not None and subtype != account.subtype)
        )
        if reclassifying and self.is_referenced(account_id):
            raise AccountReferencedError(str(account_id))
        if subtype is not None and not is_valid_subtype(account.account_type, subtype):
            raise ValidationError(
                f"Subtype '{subtype}' does not belong to type '{account.account_type}'",
                field="subtype",
            )

        if name is not None:
            account.name = name
        if subtype is not None:
            account.subtype = AccountSubtype(subtype).value
        if code is not None:
            account.code = code
        if is_active is not None:
            account.is_active = is_active
        account.updated_by_id = actor_id
        self._session.flush()
        logger.info("account_updated", extra={"account_id": str(account_id)})
        return account

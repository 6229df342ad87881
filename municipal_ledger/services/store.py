"""
Read-only access to the charge (bill) and settlement (payment) streams.

Two explicit implementations exist and the one in use is chosen by the
LEDGER_STORE setting. Nothing falls back from one to the other: a failing
database surfaces as StoreUnavailable.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from municipal_ledger.config import settings
from municipal_ledger.database import engine
from municipal_ledger.errors import StoreUnavailable
from municipal_ledger.models import Account, Bill, BillStatus, Payment, PaymentStatus
from municipal_ledger.services.ledger import (
    AccountDetails,
    Charge,
    ChargeStatus,
    Settlement,
    SettlementStatus,
)
from municipal_ledger.utils import ensure_utc, to_cents

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    def get_account(self, account_id: str) -> Optional[AccountDetails]: ...

    def fetch_charges(
        self,
        account_id: str,
        service: Optional[str],
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[Charge]: ...

    def fetch_settlements(
        self,
        account_id: str,
        service: Optional[str],
        start: Optional[datetime],
        end: Optional[datetime],
        status: SettlementStatus = SettlementStatus.SUCCESS,
    ) -> List[Settlement]: ...


def _in_window(moment: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


class InMemoryLedgerStore:
    """
    Holds facts in lists. Used for the offline/demo mode and for each
    stream of a ScopedSnapshot.
    """

    def __init__(
        self,
        accounts: Iterable[AccountDetails] = (),
        charges: Iterable[Charge] = (),
        settlements: Iterable[Settlement] = (),
    ):
        self.accounts = {account.account_id: account for account in accounts}
        self.charges: List[Charge] = list(charges)
        self.settlements: List[Settlement] = list(settlements)

    def add_account(self, account: AccountDetails) -> None:
        self.accounts[account.account_id] = account

    def add_charge(self, charge: Charge) -> None:
        self.charges.append(charge)

    def add_settlement(self, settlement: Settlement) -> None:
        self.settlements.append(settlement)

    def get_account(self, account_id: str) -> Optional[AccountDetails]:
        return self.accounts.get(account_id)

    def fetch_charges(self, account_id, service, start, end) -> List[Charge]:
        matches = [
            charge for charge in self.charges
            if charge.account_id == account_id
            and charge.status != ChargeStatus.VOID
            and (service is None or charge.service == service)
            and _in_window(charge.created_at, start, end)
        ]
        return sorted(matches, key=lambda charge: (charge.created_at, charge.id))

    def fetch_settlements(self, account_id, service, start, end, status=SettlementStatus.SUCCESS) -> List[Settlement]:
        matches = [
            settlement for settlement in self.settlements
            if settlement.account_id == account_id
            and settlement.status == status
            and (service is None or settlement.service == service)
            and _in_window(settlement.created_at, start, end)
        ]
        return sorted(matches, key=lambda settlement: (settlement.created_at, settlement.id))

    @classmethod
    def demo(cls) -> "InMemoryLedgerStore":
        """
        December sample account used by the portal's offline demo mode.
        """
        account = AccountDetails(
            account_id="0920226340",
            holder_name="John Doe",
            email="john.doe@example.com",
            address="P.O. BOX 286, OKAHANDJA",
        )
        created = datetime(2025, 12, 1, 8, 0, tzinfo=timezone.utc)
        samples = [
            ("Water", "1245.00", created),
            ("Electricity", "1785.50", created),
            ("Refuse Collection", "548.00", created),
            ("Property Rates", "1275.00", created + timedelta(days=14)),
        ]
        charges = [
            Charge(
                id=index,
                account_id=account.account_id,
                service=service,
                amount=to_cents(amount),
                billing_period_start=date(2025, 12, 1),
                billing_period_end=date(2025, 12, 31),
                due_date=date(2026, 1, 15),
                status=ChargeStatus.PENDING,
                created_at=created_at,
            )
            for index, (service, amount, created_at) in enumerate(samples, start=1)
        ]
        return cls(accounts=[account], charges=charges)


class ScopedSnapshot:
    """
    Facts of one account read once per scope: the all-services stream under
    None and each service's own stream under its name. A query is answered
    from the stream read for the same scope, so per-service balances and
    the consolidated balance come from separate reads of the real store and
    can be cross-checked against each other.
    """

    def __init__(
        self,
        account: AccountDetails,
        streams: Dict[Optional[str], Tuple[Sequence[Charge], Sequence[Settlement]]],
    ):
        self.account = account
        self.streams = {
            scope: InMemoryLedgerStore(accounts=[account], charges=charges, settlements=settlements)
            for scope, (charges, settlements) in streams.items()
        }

    @classmethod
    def read(
        cls,
        store: LedgerStore,
        account: AccountDetails,
        scopes: Sequence[Optional[str]],
        end: Optional[datetime],
    ) -> "ScopedSnapshot":
        streams = {
            scope: (
                store.fetch_charges(account.account_id, scope, None, end),
                store.fetch_settlements(account.account_id, scope, None, end),
            )
            for scope in scopes
        }
        return cls(account, streams)

    def get_account(self, account_id: str) -> Optional[AccountDetails]:
        return self.account if account_id == self.account.account_id else None

    def fetch_charges(self, account_id, service, start, end) -> List[Charge]:
        return self._stream(service).fetch_charges(account_id, service, start, end)

    def fetch_settlements(self, account_id, service, start, end, status=SettlementStatus.SUCCESS) -> List[Settlement]:
        return self._stream(service).fetch_settlements(account_id, service, start, end, status)

    def _stream(self, service: Optional[str]) -> InMemoryLedgerStore:
        try:
            return self.streams[service]
        except KeyError:
            raise ValueError(f"No stream was read for service '{service}'")


class SqlLedgerStore:
    """
    Reads the bill and payment tables. Each call checks out its own pooled
    session so concurrent statements never share a connection.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_account(self, account_id: str) -> Optional[AccountDetails]:
        statement = select(Account).where(Account.account_number == account_id)
        account = self._first(statement)
        if account is None:
            return None

        return AccountDetails(
            account_id=account.account_number,
            holder_name=account.holder_name,
            email=account.email,
            address=account.address,
        )

    def fetch_charges(self, account_id, service, start, end) -> List[Charge]:
        statement = select(Bill).where(
            Bill.account_number == account_id,
            Bill.status != BillStatus.VOID,
        )
        if service is not None:
            statement = statement.where(Bill.service == service)
        if start is not None:
            statement = statement.where(Bill.created_at >= _db_time(start))
        if end is not None:
            statement = statement.where(Bill.created_at <= _db_time(end))
        statement = statement.order_by(Bill.created_at, Bill.id)

        return [_charge_from_bill(bill) for bill in self._all(statement)]

    def fetch_settlements(self, account_id, service, start, end, status=SettlementStatus.SUCCESS) -> List[Settlement]:
        statement = select(Payment).where(
            Payment.account_number == account_id,
            Payment.status == PaymentStatus(status.value),
        )
        if service is not None:
            statement = statement.where(Payment.service == service)
        if start is not None:
            statement = statement.where(Payment.created_at >= _db_time(start))
        if end is not None:
            statement = statement.where(Payment.created_at <= _db_time(end))
        statement = statement.order_by(Payment.created_at, Payment.id)

        return [_settlement_from_payment(payment) for payment in self._all(statement)]

    def _all(self, statement) -> Sequence:
        try:
            with Session(self.engine) as session:
                return session.exec(statement).all()
        except SQLAlchemyError as e:
            logger.error(f"Ledger store query failed: {str(e)}")
            raise StoreUnavailable("Ledger store is unavailable") from e

    def _first(self, statement):
        try:
            with Session(self.engine) as session:
                return session.exec(statement).first()
        except SQLAlchemyError as e:
            logger.error(f"Ledger store query failed: {str(e)}")
            raise StoreUnavailable("Ledger store is unavailable") from e


def _db_time(moment: datetime) -> datetime:
    # Timestamps are stored as UTC; SQLite drops the offset when binding.
    return moment.astimezone(timezone.utc)

def _charge_from_bill(bill: Bill) -> Charge:
    return Charge(
        id=bill.id,
        account_id=bill.account_number,
        service=bill.service,
        amount=bill.amount,
        billing_period_start=bill.billing_period_start,
        billing_period_end=bill.billing_period_end,
        due_date=bill.due_date,
        status=ChargeStatus(bill.status.value),
        created_at=ensure_utc(bill.created_at),
        paid_at=ensure_utc(bill.paid_at) if bill.paid_at else None,
    )

def _settlement_from_payment(payment: Payment) -> Settlement:
    return Settlement(
        id=payment.id,
        account_id=payment.account_number,
        service=payment.service,
        amount=payment.amount,
        method=payment.payment_method,
        reference=payment.payment_reference,
        status=SettlementStatus(payment.status.value),
        created_at=ensure_utc(payment.created_at),
        related_charge_id=payment.bill_id,
    )


_memory_store: Optional[InMemoryLedgerStore] = None

def get_ledger_store() -> LedgerStore:
    """
    FastAPI dependency returning the configured store. Settings only admit
    "sql" and "memory".
    """
    if settings.LEDGER_STORE == "memory":
        global _memory_store
        if _memory_store is None:
            logger.info("Using the in-memory demo ledger store")
            _memory_store = InMemoryLedgerStore.demo()
        return _memory_store

    return SqlLedgerStore(engine)

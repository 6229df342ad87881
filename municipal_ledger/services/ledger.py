from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

from municipal_ledger.services.periods import Period

if TYPE_CHECKING:
    from municipal_ledger.services.store import LedgerStore


class ChargeStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"

class SettlementStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

OUTSTANDING_STATUSES = (ChargeStatus.PENDING, ChargeStatus.OVERDUE)


@dataclass(frozen=True)
class AccountDetails:
    account_id: str
    holder_name: str
    email: str
    address: Optional[str] = None

@dataclass(frozen=True)
class Charge:
    id: int
    account_id: str
    service: Optional[str]
    amount: int
    billing_period_start: date
    billing_period_end: date
    due_date: date
    status: ChargeStatus
    created_at: datetime
    paid_at: Optional[datetime] = None

    @property
    def is_outstanding(self) -> bool:
        return self.status in OUTSTANDING_STATUSES

@dataclass(frozen=True)
class Settlement:
    id: int
    account_id: str
    service: Optional[str]
    amount: int
    method: str
    reference: str
    status: SettlementStatus
    created_at: datetime
    related_charge_id: Optional[int] = None

@dataclass(frozen=True)
class Balance:
    """
    Amounts are integer cents. closing_balance is derived, never stored,
    so opening + charges - settlements == closing always holds.
    """
    opening_balance: int = 0
    total_charges: int = 0
    total_settlements: int = 0
    closing_balance: int = field(init=False)

    def __post_init__(self):
        closing = self.opening_balance + self.total_charges - self.total_settlements
        object.__setattr__(self, "closing_balance", closing)


class BalanceCalculator:
    """
    Folds the charge and settlement streams of one account into balances.

    `service=None` means every service, including facts with no service tag.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    def compute_opening(self, account_id: str, service: Optional[str], period_start: datetime) -> Balance:
        before = period_start - timedelta(microseconds=1)
        charges = self.store.fetch_charges(account_id, service, None, before)
        settlements = self.store.fetch_settlements(account_id, service, None, before)

        opening = _total(charges) - _total(settlements)
        return Balance(opening_balance=opening)

    def compute_balance(self, account_id: str, service: Optional[str], period: Period) -> Balance:
        opening = self.compute_opening(account_id, service, period.start)

        if period.is_degenerate:
            return opening

        charges = self.store.fetch_charges(account_id, service, period.start, period.end)
        settlements = self.store.fetch_settlements(account_id, service, period.start, period.end)

        return Balance(
            opening_balance=opening.opening_balance,
            total_charges=_total(charges),
            total_settlements=_total(settlements),
        )


def _total(facts: Sequence[Charge] | Sequence[Settlement]) -> int:
    return sum(fact.amount for fact in facts)

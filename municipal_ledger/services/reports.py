from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from municipal_ledger.errors import AccountNotFound
from municipal_ledger.services.aggregator import ServiceAggregator
from municipal_ledger.services.ledger import AccountDetails, Balance, BalanceCalculator
from municipal_ledger.services.periods import Period, billing_timezone
from municipal_ledger.services.store import LedgerStore, ScopedSnapshot


@dataclass(frozen=True)
class MethodTotal:
    method: str
    count: int
    total: int

@dataclass(frozen=True)
class AnnualSummary:
    account: AccountDetails
    year: int
    per_service: Dict[str, Balance]
    consolidated: Balance
    unallocated: int
    payment_methods: Tuple[MethodTotal, ...]

@dataclass(frozen=True)
class ServiceOutstanding:
    service: Optional[str]
    amount: int
    next_due_date: Optional[date]
    is_overdue: bool

@dataclass(frozen=True)
class OutstandingSummary:
    account: AccountDetails
    as_of: datetime
    total_outstanding: int
    overdue_amount: int
    overdue_count: int
    bill_count: int
    next_due_date: Optional[date]
    services: Tuple[ServiceOutstanding, ...]


def _span(balances: Sequence[Balance]) -> Balance:
    # Twelve consecutive months: opening of the first, totals of all.
    return Balance(
        opening_balance=balances[0].opening_balance,
        total_charges=sum(balance.total_charges for balance in balances),
        total_settlements=sum(balance.total_settlements for balance in balances),
    )

def _require_account(store: LedgerStore, account_id: str) -> AccountDetails:
    account = store.get_account(account_id)
    if account is None:
        raise AccountNotFound(account_id)
    return account


def annual_summary(store: LedgerStore, account_id: str, year: int, services: Sequence[str]) -> AnnualSummary:
    """
    Billed, paid and balance per service for a calendar year, built from the
    twelve monthly aggregates, plus successful payments grouped by method.
    """
    account = _require_account(store, account_id)
    tz = billing_timezone()
    months = [Period.month(year, month, tz) for month in range(1, 13)]

    services = list(dict.fromkeys(services))
    snapshot = ScopedSnapshot.read(store, account, [None, *services], months[-1].end)
    settlements = snapshot.fetch_settlements(account_id, None, None, None)
    aggregator = ServiceAggregator(BalanceCalculator(snapshot))

    monthly = [aggregator.aggregate(account_id, services, month) for month in months]
    per_service = {
        service: _span([aggregate.per_service[service] for aggregate in monthly])
        for service in monthly[0].per_service
    }
    consolidated = _span([aggregate.consolidated for aggregate in monthly])

    by_method: Dict[str, List[int]] = {}
    for settlement in settlements:
        if settlement.created_at >= months[0].start:
            by_method.setdefault(settlement.method, []).append(settlement.amount)
    payment_methods = sorted(
        (MethodTotal(method=method, count=len(amounts), total=sum(amounts)) for method, amounts in by_method.items()),
        key=lambda item: (-item.total, item.method),
    )

    return AnnualSummary(
        account=account,
        year=year,
        per_service=per_service,
        consolidated=consolidated,
        unallocated=monthly[-1].unallocated,
        payment_methods=tuple(payment_methods),
    )


def outstanding_summary(
    store: LedgerStore,
    account_id: str,
    services: Sequence[str],
    as_of: datetime,
) -> OutstandingSummary:
    """
    Unpaid bills (pending or overdue) as of `as_of`, grouped by service in the
    configured order; bills with other service tags are listed after them.
    """
    account = _require_account(store, account_id)
    today = as_of.astimezone(billing_timezone()).date()

    outstanding = [charge for charge in store.fetch_charges(account_id, None, None, as_of) if charge.is_outstanding]

    order = list(services) + sorted(
        {charge.service for charge in outstanding if charge.service not in services},
        key=lambda service: service or "",
    )
    rows = []
    for service in order:
        bills = [charge for charge in outstanding if charge.service == service]
        if not bills and service not in services:
            continue
        upcoming = [charge.due_date for charge in bills if charge.due_date >= today]
        rows.append(ServiceOutstanding(
            service=service,
            amount=sum(charge.amount for charge in bills),
            next_due_date=min(upcoming) if upcoming else None,
            is_overdue=any(charge.due_date < today for charge in bills),
        ))

    overdue = [charge for charge in outstanding if charge.due_date < today]
    upcoming = [charge.due_date for charge in outstanding if charge.due_date >= today]

    return OutstandingSummary(
        account=account,
        as_of=as_of,
        total_outstanding=sum(charge.amount for charge in outstanding),
        overdue_amount=sum(charge.amount for charge in overdue),
        overdue_count=len(overdue),
        bill_count=len(outstanding),
        next_due_date=min(upcoming) if upcoming else None,
        services=tuple(rows),
    )

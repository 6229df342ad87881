"""
Statement assembly.

A statement is rebuilt from the fact streams on every request and never
stored. The all-services streams and each service's own streams are read
concurrently, once, into a snapshot. Every balance, line list and aging
bucket is then computed from that snapshot, and the per-service reads are
cross-checked against the all-services read.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from municipal_ledger.config import settings
from municipal_ledger.errors import AccountNotFound, StatementTimeout
from municipal_ledger.services.aggregator import ServiceAggregator
from municipal_ledger.services.ledger import (
    AccountDetails,
    Balance,
    BalanceCalculator,
    Charge,
    Settlement,
)
from municipal_ledger.services.periods import Period, billing_timezone
from municipal_ledger.services.store import LedgerStore, ScopedSnapshot
from municipal_ledger.utils import days_between, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgingSnapshot:
    current: int = 0
    days30: int = 0
    days60: int = 0
    days90: int = 0
    days120_plus: int = 0

    @property
    def total(self) -> int:
        return self.current + self.days30 + self.days60 + self.days90 + self.days120_plus

@dataclass(frozen=True)
class Statement:
    account: AccountDetails
    service: Optional[str]
    period: Period
    as_of: datetime
    per_service: Mapping[str, Balance]
    consolidated: Balance
    unallocated: int
    charges: Tuple[Charge, ...]
    settlements: Tuple[Settlement, ...]
    aging: AgingSnapshot
    credit_balance: int
    generated_at: datetime


def aging_bucket(days_overdue: int) -> str:
    """
    Bucket for a charge `days_overdue` days past its due date. Boundaries are
    closed: 30 days is still days30, 120 days is still days90.
    """
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "days30"
    if days_overdue <= 60:
        return "days60"
    if days_overdue <= 120:
        return "days90"
    return "days120_plus"

def build_aging(
    charges: Sequence[Charge],
    closing_balance: int,
    as_of: datetime,
    cutoff: datetime,
    tz: ZoneInfo,
) -> Tuple[AgingSnapshot, int]:
    """
    Spreads a positive closing balance over the outstanding charges, newest
    first, each charge taking at most its own amount. Returns the snapshot
    and the credit balance.
    """
    if closing_balance <= 0:
        return AgingSnapshot(), -closing_balance

    as_of_day = as_of.astimezone(tz).date()
    outstanding = [
        charge for charge in charges
        if charge.is_outstanding and charge.amount > 0 and charge.created_at <= cutoff
    ]
    outstanding.sort(key=lambda charge: (charge.created_at, charge.id), reverse=True)

    buckets = dict.fromkeys(("current", "days30", "days60", "days90", "days120_plus"), 0)
    remaining = closing_balance
    for charge in outstanding:
        if remaining == 0:
            break
        portion = min(charge.amount, remaining)
        buckets[aging_bucket(days_between(charge.due_date, as_of_day))] += portion
        remaining -= portion

    if remaining:
        logger.warning(f"{remaining} cents of balance not covered by outstanding bills; aged as current")
        buckets["current"] += remaining

    return AgingSnapshot(**buckets), 0


class StatementAssembler:
    def __init__(
        self,
        store: LedgerStore,
        services: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        tz: Optional[ZoneInfo] = None,
    ):
        self.store = store
        self.services: List[str] = list(services if services is not None else settings.SERVICES)
        self.timeout = timeout if timeout is not None else settings.STATEMENT_TIMEOUT_SECONDS
        self.tz = tz

    async def assemble(
        self,
        account_id: str,
        period: Period,
        as_of: datetime,
        service: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Statement:
        """
        Builds the statement for one account and period, optionally scoped to
        a single service. Either the whole statement is returned or an error
        is raised; a timeout never yields a partial result.
        """
        limit = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(self._assemble(account_id, period, ensure_utc(as_of), service), limit)
        except asyncio.TimeoutError:
            logger.error(f"Statement for account {account_id} ({period.token}) timed out after {limit}s")
            raise StatementTimeout(f"Statement generation exceeded {limit} seconds")

    async def _assemble(self, account_id: str, period: Period, as_of: datetime, service: Optional[str]) -> Statement:
        account = await asyncio.to_thread(self.store.get_account, account_id)
        if account is None:
            raise AccountNotFound(account_id)

        horizon = max(period.end, as_of)
        services = [service] if service is not None else list(dict.fromkeys(self.services))
        scopes = [service] if service is not None else [None, *services]
        snapshot = await self._read(account, scopes, horizon)
        if service is not None:
            # A single-service statement is consolidated over that service alone.
            snapshot.streams[None] = snapshot.streams[service]

        aggregate = ServiceAggregator(BalanceCalculator(snapshot)).aggregate(account_id, services, period)

        charges = snapshot.fetch_charges(account_id, None, None, None)
        settlements = snapshot.fetch_settlements(account_id, None, None, None)
        aging, credit = build_aging(
            charges,
            aggregate.consolidated.closing_balance,
            as_of,
            min(as_of, period.end),
            self.tz or billing_timezone(),
        )

        logger.info(
            f"Assembled statement for account {account_id} ({period.token}, "
            f"{service or 'all services'}): closing={aggregate.consolidated.closing_balance}"
        )

        return Statement(
            account=account,
            service=service,
            period=period,
            as_of=as_of,
            per_service=MappingProxyType(dict(aggregate.per_service)),
            consolidated=aggregate.consolidated,
            unallocated=aggregate.unallocated,
            charges=tuple(charge for charge in charges if period.contains(charge.created_at)),
            settlements=tuple(settlement for settlement in settlements if period.contains(settlement.created_at)),
            aging=aging,
            credit_balance=credit,
            generated_at=datetime.now(timezone.utc),
        )

    async def _read(self, account: AccountDetails, scopes: Sequence[Optional[str]], end: datetime) -> ScopedSnapshot:
        """
        Reads the charge and settlement streams for every scope concurrently,
        each through the store's own filtered query.
        """
        reads = []
        for scope in scopes:
            reads.append(asyncio.to_thread(self.store.fetch_charges, account.account_id, scope, None, end))
            reads.append(asyncio.to_thread(self.store.fetch_settlements, account.account_id, scope, None, end))
        results = await asyncio.gather(*reads)

        streams = {scope: (results[2 * index], results[2 * index + 1]) for index, scope in enumerate(scopes)}
        return ScopedSnapshot(account, streams)

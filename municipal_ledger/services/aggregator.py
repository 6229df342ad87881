import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from municipal_ledger.errors import InconsistentLedger
from municipal_ledger.services.ledger import Balance, BalanceCalculator
from municipal_ledger.services.periods import Period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Aggregate:
    per_service: Dict[str, Balance]
    consolidated: Balance
    unallocated: int = 0


class ServiceAggregator:
    """
    Computes one balance per service and a consolidated balance through the
    all-services path, then checks that the two views agree.

    They may differ only by the net amount of facts whose service tag is
    missing or outside the requested list; that amount is reported as
    `unallocated`. Any other difference raises InconsistentLedger.
    """

    def __init__(self, calculator: BalanceCalculator):
        self.calculator = calculator

    def aggregate(self, account_id: str, services: Sequence[str], period: Period) -> Aggregate:
        services = _unique(services)

        consolidated = self.calculator.compute_balance(account_id, None, period)
        per_service = {
            service: self.calculator.compute_balance(account_id, service, period)
            for service in services
        }

        allocated = sum(balance.closing_balance for balance in per_service.values())
        unallocated = consolidated.closing_balance - allocated
        untagged = self._untagged_net(account_id, services, period)

        if unallocated != untagged:
            logger.error(
                f"Ledger mismatch for account {account_id} in {period.token}: "
                f"consolidated={consolidated.closing_balance} per-service={allocated} "
                f"untagged={untagged}"
            )
            raise InconsistentLedger(
                f"Per-service balances for account {account_id} do not reconcile "
                f"with the consolidated balance for {period.token}"
            )

        if unallocated:
            logger.warning(
                f"Account {account_id} has facts outside {list(services)}; "
                f"{unallocated} cents left unallocated"
            )

        return Aggregate(per_service=per_service, consolidated=consolidated, unallocated=unallocated)

    def _untagged_net(self, account_id: str, services: Sequence[str], period: Period) -> int:
        """
        Charges minus settlements, up to the closing instant, whose service
        is not one of `services`.
        """
        store = self.calculator.store
        end = period.start - timedelta(microseconds=1) if period.is_degenerate else period.end
        known = set(services)

        charges = store.fetch_charges(account_id, None, None, end)
        settlements = store.fetch_settlements(account_id, None, None, end)
        return (
            sum(charge.amount for charge in charges if charge.service not in known)
            - sum(settlement.amount for settlement in settlements if settlement.service not in known)
        )


def _unique(services: Sequence[Optional[str]]) -> List[str]:
    seen: List[str] = []
    for service in services:
        if service is not None and service not in seen:
            seen.append(service)
    return seen

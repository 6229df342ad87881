from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from municipal_ledger.services.ledger import Balance, BalanceCalculator, ChargeStatus, SettlementStatus
from municipal_ledger.services.periods import Period

DECEMBER = Period.from_token("2025-12", ZoneInfo("UTC"))


def test_single_charge_in_december(memory_store, add_charge):
    add_charge("1245.00", "2025-12-01", service="Water")

    balance = BalanceCalculator(memory_store).compute_balance("A1", "Water", DECEMBER)

    assert balance == Balance(opening_balance=0, total_charges=124500, total_settlements=0)
    assert balance.closing_balance == 124500

def test_settlement_clears_december_and_january_opens_at_zero(memory_store, add_charge, add_settlement):
    charge = add_charge("1245.00", "2025-12-01", service="Water")
    add_settlement("1245.00", "2025-12-10", service="Water", related_charge_id=charge.id)
    calculator = BalanceCalculator(memory_store)

    december = calculator.compute_balance("A1", "Water", DECEMBER)
    january = calculator.compute_opening("A1", "Water", DECEMBER.next().start)

    assert december.closing_balance == 0
    assert december.total_settlements == 124500
    assert january.opening_balance == 0
    assert january.closing_balance == 0

def test_no_history_opens_at_exactly_zero(memory_store):
    balance = BalanceCalculator(memory_store).compute_opening("A1", None, DECEMBER.start)

    assert balance == Balance()
    assert balance.closing_balance == 0

def test_opening_balance_counts_only_facts_before_the_period(memory_store, add_charge, add_settlement):
    add_charge("100.00", DECEMBER.start - timedelta(microseconds=1))
    add_settlement("40.00", "2025-11-15")
    add_charge("10.00", DECEMBER.start)
    add_charge("5.00", DECEMBER.end)
    add_charge("99.00", DECEMBER.end + timedelta(microseconds=1))

    balance = BalanceCalculator(memory_store).compute_balance("A1", "Water", DECEMBER)

    assert balance.opening_balance == 6000
    assert balance.total_charges == 1500
    assert balance.closing_balance == 7500

def test_only_successful_settlements_count(memory_store, add_charge, add_settlement):
    add_charge("500.00", "2025-12-01")
    add_settlement("100.00", "2025-12-02", status=SettlementStatus.SUCCESS)
    add_settlement("200.00", "2025-12-03", status=SettlementStatus.PENDING)
    add_settlement("300.00", "2025-12-04", status=SettlementStatus.FAILED)

    balance = BalanceCalculator(memory_store).compute_balance("A1", "Water", DECEMBER)

    assert balance.total_settlements == 10000
    assert balance.closing_balance == 40000

def test_void_charges_are_ignored(memory_store, add_charge):
    add_charge("500.00", "2025-12-01")
    add_charge("250.00", "2025-12-02", status=ChargeStatus.VOID)

    balance = BalanceCalculator(memory_store).compute_balance("A1", "Water", DECEMBER)

    assert balance.total_charges == 50000

def test_service_scope(memory_store, add_charge):
    add_charge("1245.00", "2025-12-01", service="Water")
    add_charge("1785.50", "2025-12-01", service="Electricity")
    add_charge("12.00", "2025-12-01", service=None)
    calculator = BalanceCalculator(memory_store)

    assert calculator.compute_balance("A1", "Water", DECEMBER).total_charges == 124500
    assert calculator.compute_balance("A1", "Electricity", DECEMBER).total_charges == 178550
    assert calculator.compute_balance("A1", None, DECEMBER).total_charges == 304250

def test_other_accounts_are_not_mixed_in(memory_store, add_charge):
    add_charge("1245.00", "2025-12-01", account_id="A1")
    add_charge("999.00", "2025-12-01", account_id="B2")

    balance = BalanceCalculator(memory_store).compute_balance("A1", None, DECEMBER)

    assert balance.total_charges == 124500

def test_degenerate_period_has_no_activity(memory_store, add_charge, add_settlement):
    add_charge("300.00", "2025-11-20")
    add_charge("45.00", "2025-12-01")
    add_settlement("45.00", "2025-12-01")
    start = datetime(2025, 12, 1, tzinfo=timezone.utc)

    balance = BalanceCalculator(memory_store).compute_balance("A1", "Water", Period(start=start, end=start))

    assert balance.total_charges == 0
    assert balance.total_settlements == 0
    assert balance.closing_balance == balance.opening_balance == 30000

def test_cent_amounts_sum_exactly(memory_store, add_charge, add_settlement):
    for index in range(10):
        add_charge("0.10", datetime(2025, 12, 1 + index, tzinfo=timezone.utc))
    for index in range(3):
        add_settlement("0.30", datetime(2025, 12, 20 + index, tzinfo=timezone.utc))

    balance = BalanceCalculator(memory_store).compute_balance("A1", "Water", DECEMBER)

    assert balance.total_charges == 100
    assert balance.total_settlements == 90
    assert balance.closing_balance == 10


@pytest.fixture(name="busy_year")
def busy_year_fixture(add_charge, add_settlement):
    for month in range(1, 13):
        add_charge(f"{100 + month}.15", f"2025-{month:02d}-01", service="Water")
        add_charge(f"{200 + month}.35", f"2025-{month:02d}-03", service="Electricity")
        if month % 2:
            add_settlement(f"{250 + month}.05", f"2025-{month:02d}-20", service="Water")
        if month % 3 == 0:
            add_settlement("600.00", f"2025-{month:02d}-28", service="Electricity")

@pytest.mark.parametrize("service", ["Water", "Electricity", None])
def test_balance_invariant_and_continuity(memory_store, busy_year, service):
    calculator = BalanceCalculator(memory_store)
    period = Period.from_token("2025-01", ZoneInfo("UTC"))
    previous = None

    for _ in range(13):
        balance = calculator.compute_balance("A1", service, period)
        assert balance.closing_balance == balance.opening_balance + balance.total_charges - balance.total_settlements
        if previous is not None:
            assert balance.opening_balance == previous.closing_balance
        previous = balance
        period = period.next()

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BILLING_TIMEZONE", "UTC")
os.environ.setdefault("LEDGER_STORE", "sql")

import itertools
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from municipal_ledger.main import app
from municipal_ledger.models import Account, Bill, BillStatus, Payment, PaymentStatus
from municipal_ledger.services.ledger import (
    AccountDetails,
    Charge,
    ChargeStatus,
    Settlement,
    SettlementStatus,
)
from municipal_ledger.services.store import InMemoryLedgerStore, SqlLedgerStore, get_ledger_store
from municipal_ledger.utils import to_cents


def moment(value) -> datetime:
    """
    "2025-12-01" or "2025-12-10T09:30" as an aware UTC datetime.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)

def day(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


@pytest.fixture(name="engine")
def engine_fixture(tmp_path):
    # A file database so concurrent fetches get their own connections.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()

@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session

@pytest.fixture(name="store")
def store_fixture(engine):
    return SqlLedgerStore(engine)

@pytest.fixture(name="client")
def client_fixture(store):
    app.dependency_overrides[get_ledger_store] = lambda: store
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

@pytest.fixture(name="resident")
def resident_fixture(session: Session):
    account = Account(
        account_number="A1",
        holder_name="Test Resident",
        email="resident@example.com",
        address="Erf 1234, Okahandja",
    )
    session.add(account)
    session.commit()
    session.refresh(account)
    return account

@pytest.fixture(name="add_bill")
def add_bill_fixture(session: Session):
    def add_bill(amount, created_at, service="Water", due_date=None, status=BillStatus.PENDING, account_number="A1"):
        created = moment(created_at)
        bill = Bill(
            service=service,
            amount=to_cents(amount),
            billing_period_start=created.date().replace(day=1),
            billing_period_end=created.date(),
            due_date=day(due_date) if due_date else created.date() + timedelta(days=15),
            status=status,
            created_at=created,
            account_number=account_number,
        )
        session.add(bill)
        session.commit()
        session.refresh(bill)
        return bill
    return add_bill

@pytest.fixture(name="add_payment")
def add_payment_fixture(session: Session):
    references = itertools.count(1)

    def add_payment(amount, created_at, service="Water", status=PaymentStatus.SUCCESS,
                    method="Card Payment", bill_id=None, account_number="A1"):
        payment = Payment(
            service=service,
            amount=to_cents(amount),
            payment_method=method,
            payment_reference=f"PAY-{next(references):04d}",
            status=status,
            created_at=moment(created_at),
            bill_id=bill_id,
            account_number=account_number,
        )
        session.add(payment)
        session.commit()
        session.refresh(payment)
        return payment
    return add_payment


@pytest.fixture(name="memory_store")
def memory_store_fixture():
    return InMemoryLedgerStore(accounts=[
        AccountDetails(
            account_id="A1",
            holder_name="Test Resident",
            email="resident@example.com",
            address="Erf 1234, Okahandja",
        )
    ])

@pytest.fixture(name="add_charge")
def add_charge_fixture(memory_store):
    ids = itertools.count(1)

    def add_charge(amount, created_at, service="Water", due_date=None, status=ChargeStatus.PENDING,
                   account_id="A1", charge_id=None):
        created = moment(created_at)
        charge = Charge(
            id=charge_id if charge_id is not None else next(ids),
            account_id=account_id,
            service=service,
            amount=to_cents(amount),
            billing_period_start=created.date().replace(day=1),
            billing_period_end=created.date(),
            due_date=day(due_date) if due_date else created.date() + timedelta(days=15),
            status=status,
            created_at=created,
        )
        memory_store.add_charge(charge)
        return charge
    return add_charge

@pytest.fixture(name="add_settlement")
def add_settlement_fixture(memory_store):
    ids = itertools.count(1)

    def add_settlement(amount, created_at, service="Water", status=SettlementStatus.SUCCESS,
                       method="Card Payment", related_charge_id=None, account_id="A1"):
        settlement_id = next(ids)
        settlement = Settlement(
            id=settlement_id,
            account_id=account_id,
            service=service,
            amount=to_cents(amount),
            method=method,
            reference=f"PAY-{settlement_id:04d}",
            status=status,
            created_at=moment(created_at),
            related_charge_id=related_charge_id,
        )
        memory_store.add_settlement(settlement)
        return settlement
    return add_settlement

"""
JSON shapes returned by the API.

This is the single place where ledger records become wire data: field names
are camelCase and money leaves integer cents as two-decimal strings.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from municipal_ledger.services.ledger import AccountDetails, Balance, Charge, Settlement
from municipal_ledger.services.reports import AnnualSummary, OutstandingSummary
from municipal_ledger.services.statement import AgingSnapshot, Statement
from municipal_ledger.utils import format_cents

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class AccountOut(CamelModel):
    account_number: str
    account_holder: str
    email: str
    address: Optional[str] = None

    @classmethod
    def from_details(cls, account: AccountDetails) -> "AccountOut":
        return cls(
            account_number=account.account_id,
            account_holder=account.holder_name,
            email=account.email,
            address=account.address,
        )

class BalanceOut(CamelModel):
    opening_balance: str
    total_charges: str
    total_settlements: str
    closing_balance: str

    @classmethod
    def from_balance(cls, balance: Balance) -> "BalanceOut":
        return cls(
            opening_balance=format_cents(balance.opening_balance),
            total_charges=format_cents(balance.total_charges),
            total_settlements=format_cents(balance.total_settlements),
            closing_balance=format_cents(balance.closing_balance),
        )

class ServiceBalanceOut(BalanceOut):
    service: str

class ChargeOut(CamelModel):
    id: int
    service: Optional[str]
    amount: str
    billing_period_start: date
    billing_period_end: date
    due_date: date
    status: str
    created_at: datetime
    paid_at: Optional[datetime] = None

    @classmethod
    def from_charge(cls, charge: Charge) -> "ChargeOut":
        return cls(
            id=charge.id,
            service=charge.service,
            amount=format_cents(charge.amount),
            billing_period_start=charge.billing_period_start,
            billing_period_end=charge.billing_period_end,
            due_date=charge.due_date,
            status=charge.status.value,
            created_at=charge.created_at,
            paid_at=charge.paid_at,
        )

class SettlementOut(CamelModel):
    id: int
    service: Optional[str]
    amount: str
    method: str
    reference: str
    status: str
    related_charge_id: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_settlement(cls, settlement: Settlement) -> "SettlementOut":
        return cls(
            id=settlement.id,
            service=settlement.service,
            amount=format_cents(settlement.amount),
            method=settlement.method,
            reference=settlement.reference,
            status=settlement.status.value,
            related_charge_id=settlement.related_charge_id,
            created_at=settlement.created_at,
        )

class AgingOut(CamelModel):
    current: str
    days30: str
    days60: str
    days90: str
    days120_plus: str

    @classmethod
    def from_snapshot(cls, aging: AgingSnapshot) -> "AgingOut":
        return cls(
            current=format_cents(aging.current),
            days30=format_cents(aging.days30),
            days60=format_cents(aging.days60),
            days90=format_cents(aging.days90),
            days120_plus=format_cents(aging.days120_plus),
        )

class PeriodOut(CamelModel):
    period: str
    period_start: datetime
    period_end: datetime
    as_of: datetime
    service: str

class TransactionsOut(CamelModel):
    charges: List[ChargeOut]
    settlements: List[SettlementOut]

class StatementOut(CamelModel):
    account_details: AccountOut
    period_information: PeriodOut
    currency: str
    financial_summary: BalanceOut
    service_breakdown: List[ServiceBalanceOut]
    unallocated: str
    aging: AgingOut
    credit_balance: str
    transactions: TransactionsOut
    generated_at: datetime

    @classmethod
    def from_statement(cls, statement: Statement, currency: str) -> "StatementOut":
        return cls(
            account_details=AccountOut.from_details(statement.account),
            period_information=PeriodOut(
                period=statement.period.token,
                period_start=statement.period.start,
                period_end=statement.period.end,
                as_of=statement.as_of,
                service=statement.service or "all",
            ),
            currency=currency,
            financial_summary=BalanceOut.from_balance(statement.consolidated),
            service_breakdown=[
                ServiceBalanceOut(service=service, **BalanceOut.from_balance(balance).model_dump())
                for service, balance in statement.per_service.items()
            ],
            unallocated=format_cents(statement.unallocated),
            aging=AgingOut.from_snapshot(statement.aging),
            credit_balance=format_cents(statement.credit_balance),
            transactions=TransactionsOut(
                charges=[ChargeOut.from_charge(charge) for charge in statement.charges],
                settlements=[SettlementOut.from_settlement(settlement) for settlement in statement.settlements],
            ),
            generated_at=statement.generated_at,
        )

class MethodTotalOut(CamelModel):
    method: str
    count: int
    total: str

class AnnualSummaryOut(CamelModel):
    account_details: AccountOut
    year: int
    currency: str
    summary: BalanceOut
    by_service: List[ServiceBalanceOut]
    unallocated: str
    payment_methods: List[MethodTotalOut]

    @classmethod
    def from_summary(cls, summary: AnnualSummary, currency: str) -> "AnnualSummaryOut":
        return cls(
            account_details=AccountOut.from_details(summary.account),
            year=summary.year,
            currency=currency,
            summary=BalanceOut.from_balance(summary.consolidated),
            by_service=[
                ServiceBalanceOut(service=service, **BalanceOut.from_balance(balance).model_dump())
                for service, balance in summary.per_service.items()
            ],
            unallocated=format_cents(summary.unallocated),
            payment_methods=[
                MethodTotalOut(method=item.method, count=item.count, total=format_cents(item.total))
                for item in summary.payment_methods
            ],
        )

class ServiceOutstandingOut(CamelModel):
    service: Optional[str]
    amount: str
    next_due_date: Optional[date] = None
    is_overdue: bool

class OutstandingSummaryOut(CamelModel):
    account_number: str
    as_of: datetime
    currency: str
    total_outstanding: str
    overdue_amount: str
    overdue_bills: int
    total_bills: int
    next_due_date: Optional[date] = None
    services: List[ServiceOutstandingOut]

    @classmethod
    def from_summary(cls, summary: OutstandingSummary, currency: str) -> "OutstandingSummaryOut":
        return cls(
            account_number=summary.account.account_id,
            as_of=summary.as_of,
            currency=currency,
            total_outstanding=format_cents(summary.total_outstanding),
            overdue_amount=format_cents(summary.overdue_amount),
            overdue_bills=summary.overdue_count,
            total_bills=summary.bill_count,
            next_due_date=summary.next_due_date,
            services=[
                ServiceOutstandingOut(
                    service=row.service,
                    amount=format_cents(row.amount),
                    next_due_date=row.next_due_date,
                    is_overdue=row.is_overdue,
                )
                for row in summary.services
            ],
        )

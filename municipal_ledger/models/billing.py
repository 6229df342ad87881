from typing import Optional
from datetime import date, datetime, timezone
from enum import Enum

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, BigInteger

class BillStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

class Bill(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    service: Optional[str] = Field(default=None, index=True)
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    billing_period_start: date
    billing_period_end: date
    due_date: date
    status: BillStatus = Field(default=BillStatus.PENDING)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    paid_at: Optional[datetime] = Field(default=None)

    account_number: str = Field(foreign_key="account.account_number", index=True)

class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    service: Optional[str] = Field(default=None, index=True)
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    payment_method: str
    payment_reference: str = Field(unique=True, index=True)
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    bill_id: Optional[int] = Field(default=None, foreign_key="bill.id")
    account_number: str = Field(foreign_key="account.account_number", index=True)

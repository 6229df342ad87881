from typing import Optional
from datetime import datetime, timezone
from enum import Enum

from sqlmodel import SQLModel, Field

class AccountRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"

class Account(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    account_number: str = Field(unique=True, index=True)
    holder_name: str
    email: str = Field(index=True)
    address: Optional[str] = Field(default=None)
    role: AccountRole = Field(default=AccountRole.CUSTOMER)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

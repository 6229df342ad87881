from .core import Account, AccountRole

from .billing import Bill, BillStatus, Payment, PaymentStatus

__all__ = ["Account", "AccountRole", "Bill", "BillStatus", "Payment", "PaymentStatus"]

from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from dataclasses import dataclass
from jose import jwt, JWTError

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from municipal_ledger.config import settings
from municipal_ledger.models import AccountRole

security_scheme = HTTPBearer(auto_error=False)

@dataclass
class AuthContext:
    account_number: str
    role: AccountRole = AccountRole.CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role in (AccountRole.STAFF, AccountRole.ADMIN)

    def can_view(self, account_number: str) -> bool:
        return self.is_staff or self.account_number == account_number


def create_access_token(
    subject: str,
    role: AccountRole = AccountRole.CUSTOMER,
    expires_delta: Union[timedelta, None] = None,
) -> str:
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject), "role": role.value}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def get_context_from_jwt(token: str) -> Optional[AuthContext]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        account_number: str | None = payload.get("sub")
        if account_number is None:
            return None
        role = AccountRole(payload.get("role", AccountRole.CUSTOMER.value))
    except (JWTError, ValueError):
        return None

    return AuthContext(account_number=account_number, role=role)


def get_auth_context(
    auth_creds: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> AuthContext:
    """
    Resolves the caller from the Bearer token. Who may see which account is
    decided by require_account_access, never inside the ledger itself.
    """
    if auth_creds:
        context = get_context_from_jwt(auth_creds.credentials)
        if context:
            return context

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated. Provide a valid Bearer token.",
    )

def require_account_access(
    account_id: str,
    context: AuthContext = Depends(get_auth_context),
) -> str:
    """
    Capability check for routes with an `{account_id}` path parameter.
    Returns the account id the caller is allowed to read.
    """
    if not context.can_view(account_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this account",
        )
    return account_id

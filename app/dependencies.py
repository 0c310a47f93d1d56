"""
FastAPI dependencies for authentication and external collaborators.

Dependencies are reusable functions that FastAPI injects into route
handlers:

  get_current_user (JWT -> User)
      └── get_owner_id (User -> owner UUID passed to every vault call)

  get_payment_gateway  — the process-wide gateway client
  get_wallet_client    — the process-wide wallet client (fallback payments)

Tests swap the gateway and wallet with app.dependency_overrides, the same
way they swap get_db.
"""

import uuid
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.gateway import PaymentGateway, create_gateway
from app.models.user import User
from app.security import decode_access_token
from app.wallet import InMemoryWallet, WalletClient


# OAuth2PasswordBearer tells FastAPI where to look for the token:
# the "Authorization: Bearer <token>" header. The tokenUrl points to
# the login endpoint (used by Swagger UI's "Authorize" button).
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid or the user doesn't exist.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise credentials_exception
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def get_owner_id(user: User = Depends(get_current_user)) -> uuid.UUID:
    """The authenticated user's id, used as owner_id for card operations."""
    return user.id


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Gateway client shared by all requests (built once from settings)."""
    return create_gateway()


@lru_cache
def get_wallet_client() -> WalletClient:
    """Wallet client shared by all requests."""
    return InMemoryWallet()

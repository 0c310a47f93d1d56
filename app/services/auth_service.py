"""
Authentication service — signup and login business logic.

The vault scopes every operation to an owner id; this module is how that
id comes to exist. The router calls these functions and translates the
results into HTTP responses, so the logic can be tested without spinning
up a web server.

Signup flow:
  1. Check if email is already registered
  2. Hash the password with Argon2id
  3. Create the User
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT token

Security notes:
  - Passwords are hashed before storage (never stored in plaintext)
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration attacks
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateEmailError, InvalidCredentialsError
from app.logging_config import get_logger
from app.models.user import User
from app.security import hash_password, verify_password, create_access_token

logger = get_logger(__name__)


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Register a new user.

    Args:
        db: Database session.
        email: User's email (must be unique).
        password: Plaintext password (will be hashed before storage).

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
    )
    db.add(user)
    # Flush to get the user.id assigned (it goes into the token)
    await db.flush()

    logger.info("user_signed_up", user_id=str(user.id))

    # "sub" (subject) is the standard claim for user identity
    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, the password is
            wrong, or the user is deactivated.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    # Same error for every case — prevents user enumeration
    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token

"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The vault and payment services raise domain-specific errors (like
  CannotDeletePrimaryError) without importing HTTP concepts. The handler
  layer then translates these into proper HTTP responses.

  This separation means:
    - Service code is testable without HTTP
    - Error responses are consistent across all endpoints
    - Adding new error types is straightforward

Exception hierarchy:
    VaultAPIError (base)
    ├── NotAuthenticatedError      — no resolvable owner for the request
    ├── InvalidInputError          — bad PAN/expiry/CVV/card type/amount
    ├── TokenizationFailedError    — gateway rejected the raw card
    ├── StoreWriteFailedError      — persistence failed after tokenization
    ├── CardNotFoundError          — card id doesn't resolve for this owner
    ├── CannotDeletePrimaryError   — primary card while others exist
    ├── CannotDeleteOnlyCardError  — the owner's last remaining card
    ├── DuplicateEmailError        — signup with a registered email
    └── InvalidCredentialsError    — bad login

Charge declines and gateway outages are NOT exceptions. They come back
as a PaymentOutcome with retry_with_different_method set accordingly.
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class VaultAPIError(Exception):
    """Base exception for all Card Vault API domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class NotAuthenticatedError(VaultAPIError):
    """Raised when an operation is called without a resolvable owner."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail)


class InvalidInputError(VaultAPIError):
    """
    Raised when card or payment input fails validation.

    Always raised before any call leaves the process, so a rejected card
    never reaches the gateway.

    Attributes:
        field: The offending input field.
    """

    def __init__(self, field: str, detail: str):
        self.field = field
        super().__init__(detail)


class TokenizationFailedError(VaultAPIError):
    """Raised when the gateway refuses to tokenize a card. Nothing is stored."""

    def __init__(self, detail: str = "Card could not be tokenized by the payment gateway"):
        super().__init__(detail)


class StoreWriteFailedError(VaultAPIError):
    """
    Raised when the card record can't be persisted after tokenization.

    The gateway token issued for the card is left at the gateway.
    """

    def __init__(self, detail: str = "Could not save card details, please try again"):
        super().__init__(detail)


class CardNotFoundError(VaultAPIError):
    """Raised when a card id does not exist or belongs to someone else."""

    def __init__(self, card_id: uuid.UUID):
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class CannotDeletePrimaryError(VaultAPIError):
    """Raised when deleting the primary card while other cards exist."""

    def __init__(self, card_id: uuid.UUID):
        self.card_id = card_id
        super().__init__(
            "Cannot delete the primary card. Set another card as primary first."
        )


class CannotDeleteOnlyCardError(VaultAPIError):
    """Raised when deleting the owner's only saved card."""

    def __init__(self, card_id: uuid.UUID):
        self.card_id = card_id
        super().__init__("Cannot delete the only saved card.")


class DuplicateEmailError(VaultAPIError):
    """Raised when attempting to register with an email that's already in use."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(VaultAPIError):
    """Raised when login credentials are incorrect."""

    def __init__(self):
        super().__init__("Invalid email or password")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and
    consistent JSON response format: {"detail": ..., "error_type": ...}

    This is called once during app startup in main.py.
    """

    @app.exception_handler(NotAuthenticatedError)
    async def not_authenticated_handler(
        request: Request, exc: NotAuthenticatedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "not_authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(
        request: Request, exc: InvalidInputError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": exc.detail,
                "error_type": "invalid_input",
                "field": exc.field,
            },
        )

    @app.exception_handler(TokenizationFailedError)
    async def tokenization_failed_handler(
        request: Request, exc: TokenizationFailedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=402,  # Payment Required: the card itself was refused
            content={"detail": exc.detail, "error_type": "tokenization_failed"},
        )

    @app.exception_handler(StoreWriteFailedError)
    async def store_write_failed_handler(
        request: Request, exc: StoreWriteFailedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,  # Retriable server-side failure
            content={"detail": exc.detail, "error_type": "store_write_failed"},
        )

    @app.exception_handler(CardNotFoundError)
    async def card_not_found_handler(
        request: Request, exc: CardNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "card_not_found"},
        )

    @app.exception_handler(CannotDeletePrimaryError)
    async def cannot_delete_primary_handler(
        request: Request, exc: CannotDeletePrimaryError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "cannot_delete_primary"},
        )

    @app.exception_handler(CannotDeleteOnlyCardError)
    async def cannot_delete_only_card_handler(
        request: Request, exc: CannotDeleteOnlyCardError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "cannot_delete_only_card"},
        )

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email_handler(
        request: Request, exc: DuplicateEmailError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "duplicate_email"},
        )

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "invalid_credentials"},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Pydantic echoes the offending input back; on POST /cards that
        # would include the card number and CVV.
        errors = [
            {"type": err["type"], "loc": list(err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={"detail": errors, "error_type": "invalid_input"},
        )

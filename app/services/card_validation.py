"""
Raw card input validation.

Runs before anything leaves the process: a card that fails here is never
sent to the gateway. Error messages name the field but never echo the
submitted card number or CVV back.

Also home to the expiry helpers the API uses to flag cards about to lapse.
"""

import calendar
from datetime import date, datetime, timedelta, timezone

from app.exceptions import InvalidInputError
from app.models.card import CardType


def luhn_valid(digits: str) -> bool:
    """Check a digit string against the Luhn (mod 10) checksum."""
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def normalize_card_number(card_number: str) -> str:
    """
    Strip spaces and dashes and validate the PAN.

    Returns:
        The bare digit string.

    Raises:
        InvalidInputError: If the number isn't 12-19 digits or fails Luhn.
    """
    digits = card_number.replace(" ", "").replace("-", "")
    if not (digits.isascii() and digits.isdigit()) or not 12 <= len(digits) <= 19:
        raise InvalidInputError("card_number", "Card number must be 12 to 19 digits")
    if not luhn_valid(digits):
        raise InvalidInputError("card_number", "Card number is not valid")
    return digits


def validate_expiry(expiry_month: int, expiry_year: int, today: date | None = None) -> None:
    """
    Validate the expiry date. A card is usable through its expiry month,
    so the current month is still accepted.
    """
    today = today or datetime.now(timezone.utc).date()

    if not 1 <= expiry_month <= 12:
        raise InvalidInputError("expiry_month", "Expiry month must be between 1 and 12")
    if not 1000 <= expiry_year <= 9999:
        raise InvalidInputError("expiry_year", "Expiry year must be a four-digit year")
    if (expiry_year, expiry_month) < (today.year, today.month):
        raise InvalidInputError("expiry_year", "Card has expired")


def validate_cvv(cvv: str) -> None:
    if not (cvv.isascii() and cvv.isdigit() and 3 <= len(cvv) <= 4):
        raise InvalidInputError("cvv", "CVV must be 3 or 4 digits")


def parse_card_type(card_type: str | CardType) -> CardType:
    try:
        return CardType(card_type)
    except ValueError:
        raise InvalidInputError("card_type", "Card type must be 'Credit' or 'Debit'") from None


def valid_through(expiry_month: int, expiry_year: int) -> date:
    """Last calendar day a card can be used (end of its expiry month)."""
    last_day = calendar.monthrange(expiry_year, expiry_month)[1]
    return date(expiry_year, expiry_month, last_day)


def expires_within(
    expiry_month: int,
    expiry_year: int,
    days: int,
    today: date | None = None,
) -> bool:
    """True if a card lapses within `days` days, or already has."""
    today = today or datetime.now(timezone.utc).date()
    return valid_through(expiry_month, expiry_year) <= today + timedelta(days=days)

"""Price parsing for minor-unit integers and locale-formatted strings."""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

CENT = Decimal("0.01")
_NON_NUMERIC = re.compile(r"[^\d.,]")


class PriceParseError(ValueError):
    """Raised when a value cannot be read as a price."""
    pass


@dataclass(frozen=True)
class Price:
    """A price as shown by the retailer plus its value in major units."""

    amount: Decimal
    display: str


def format_price(amount: Decimal, currency: str) -> str:
    return f"{amount.quantize(CENT)} {currency}".strip()


def from_minor_units(value: Union[int, str], currency: str) -> Price:
    """
    Convert an integer amount in minor units (e.g. kuruş, cents).

    Args:
        value: 29995 or "29995"

    Returns:
        Price(amount=Decimal("299.95"), display="299.95 TL")
    """
    try:
        minor = int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise PriceParseError(f"not a minor-unit amount: {value!r}") from e
    amount = (Decimal(minor) / 100).quantize(CENT)
    return Price(amount=amount, display=format_price(amount, currency))


def parse_amount(text: str) -> Decimal:
    """
    Parse a formatted number, guessing decimal and thousands separators.

    "1.299,95 TL" -> 1299.95, "1,299.95" -> 1299.95, "299,95" -> 299.95,
    "1.299" -> 1299 (a single separator followed by three digits is a
    thousands separator).
    """
    cleaned = _NON_NUMERIC.sub("", text or "").strip(".,")
    if not any(ch.isdigit() for ch in cleaned):
        raise PriceParseError(f"no digits in price: {text!r}")

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")
    if last_comma != -1 and last_dot != -1:
        decimal_sep = "," if last_comma > last_dot else "."
    elif last_comma != -1 or last_dot != -1:
        sep = "," if last_comma != -1 else "."
        tail = cleaned.rsplit(sep, 1)[1]
        decimal_sep = None if cleaned.count(sep) > 1 or len(tail) == 3 else sep
    else:
        decimal_sep = None

    if decimal_sep:
        integer, fraction = cleaned.rsplit(decimal_sep, 1)
    else:
        integer, fraction = cleaned, "0"
    integer = integer.replace(",", "").replace(".", "") or "0"

    try:
        return Decimal(f"{integer}.{fraction}").quantize(CENT)
    except InvalidOperation as e:
        raise PriceParseError(f"unparseable price: {text!r}") from e


def parse_price_text(text: str, currency: str) -> Price:
    """Parse a display string, keeping it verbatim as the display value."""
    amount = parse_amount(text)
    display = " ".join((text or "").split()) or format_price(amount, currency)
    return Price(amount=amount, display=display)


def optional_minor_units(value: Optional[Union[int, str]], currency: str) -> Optional[Price]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return from_minor_units(value, currency)
    except PriceParseError:
        return None

import secrets
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert a number to Decimal without picking up binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def generate_line_id() -> str:
    """Generate a unique cart line ID (millisecond clock plus random suffix)."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def round_price(amount) -> Decimal:
    """Round a monetary amount to cents."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_price(amount, currency_symbol: str = "$") -> str:
    """Format a monetary amount for display."""
    rounded = round_price(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{currency_symbol}{abs(rounded):,.2f}"

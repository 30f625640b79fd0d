"""
Display formatting (Brazilian Real, pt-BR dates)
"""
from datetime import datetime, timezone, tzinfo
from typing import Optional

from salesdash.core.config import settings

# pt-BR currency text uses a non-breaking space after the symbol
CURRENCY_PREFIX = "R$\u00a0"


def format_currency(amount_in_cents: int) -> str:
    """1234567 -> 'R$ 12.345,67'"""
    negative = amount_in_cents < 0
    whole, cents = divmod(abs(int(amount_in_cents)), 100)
    grouped = f"{whole:,}".replace(",", ".")
    text = f"{CURRENCY_PREFIX}{grouped},{cents:02d}"
    return f"-{text}" if negative else text


def _local(moment: datetime, tz: Optional[tzinfo]) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or settings.tz)


def format_date(moment: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
    """dd/mm/yyyy in the dashboard timezone"""
    if moment is None:
        return ""
    return _local(moment, tz).strftime("%d/%m/%Y")


def format_datetime(moment: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
    """dd/mm/yyyy, HH:MM in the dashboard timezone"""
    if moment is None:
        return ""
    return _local(moment, tz).strftime("%d/%m/%Y, %H:%M")


def format_percentage(value: float) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}%"


def truncate_token(token: Optional[str], visible: int = 8) -> Optional[str]:
    """Show only the first characters of a client token"""
    if not token:
        return None
    if len(token) <= visible:
        return token
    return f"{token[:visible]}..."

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Horodatage UTC naïf, format stocké en base."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def content_range(resource: str, offset: int, count: int, total: int) -> str:
    end_range = offset + count - 1 if count else offset
    return f"{resource} {offset}-{end_range}/{total}"

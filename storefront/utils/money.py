# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def finite_money(x) -> Money:
    """``D`` for untrusted input: NaN and infinities raise ``InvalidOperation``."""
    d = D(x)
    if not d.is_finite():
        raise InvalidOperation(f"not a finite amount: {x!r}")
    return d


def round_money(x) -> Money:
    # ROUND_HALF_UP on Decimal rounds ties away from zero: 2.345 -> 2.35, -2.345 -> -2.35
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


round2 = round_money


def clamp_money(x) -> Money:
    return round_money(max(ZERO, D(x)))


def percent_of(amount, percentage) -> Money:
    """Unrounded share of ``amount``; callers round once at the end."""
    return D(amount) * D(percentage) / Decimal("100")


def to_string_money(x) -> str:
    return str(round_money(x))


def format_money(x) -> str:
    return f"${round_money(x):,.2f}"

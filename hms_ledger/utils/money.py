# hms_ledger/utils/money.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

Q2 = Decimal("0.01")


def to_decimal(x) -> Decimal:
    """
    Coerce ints, strings and Decimals to Decimal.

    Floats go through str() so 0.1 stays 0.1; anything unparsable is a
    caller bug and raises.
    """
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x if x is not None else 0))
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {x!r}") from exc


def money2(x) -> Decimal:
    return to_decimal(x).quantize(Q2, rounding=ROUND_HALF_UP)


def line_amounts(quantity, unit_price, discount_amount=0) -> tuple[Decimal, Decimal]:
    """
    Return (amount, net_amount) for a billing line.

    amount = quantity x unit_price; net = amount - discount, floored at 0.
    """
    amount = money2(to_decimal(quantity) * to_decimal(unit_price))
    net = max(Decimal("0.00"), amount - money2(discount_amount))
    return amount, money2(net)

from decimal import Decimal, ROUND_HALF_UP

Q2 = Decimal("0.01")
ZERO = Decimal("0")


def d2(x: Decimal) -> Decimal:
    return x.quantize(Q2, rounding=ROUND_HALF_UP)


def to_dec(v) -> Decimal:
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def money(v) -> Decimal:
    return d2(to_dec(v))

from decimal import Decimal, ROUND_HALF_UP

# Stripe charges these in whole units, with no minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})


def minor_unit_factor(currency: str) -> Decimal:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(1)
    return Decimal(100)


def to_minor_units(amount, currency: str) -> int:
    minor = Decimal(str(amount)) * minor_unit_factor(currency)
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> Decimal:
    return Decimal(amount) / minor_unit_factor(currency)

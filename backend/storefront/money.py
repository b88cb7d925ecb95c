# Overview: Integer-cents arithmetic shared by pricing, discounts and reports.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

BPS_DENOMINATOR = 10_000


def percent_of(amount_cents: int, rate_bps: int) -> int:
    """Apply a basis-point rate to a cent amount, rounding half up to the cent."""
    if amount_cents == 0 or rate_bps == 0:
        return 0
    exact = Decimal(amount_cents) * Decimal(rate_bps) / Decimal(BPS_DENOMINATOR)
    return int(exact.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(amount_cents: int | None) -> str:
    """Render cents as a 2-decimal currency string ("1234.50")."""
    value = Decimal(amount_cents or 0) / Decimal(100)
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"


def with_tax(amount_cents: int, tax_rate_bps: int) -> dict:
    """
    Display-only tax breakdown for summaries.

    Recorded totals never include tax; this only decorates them.
    """
    tax_cents = percent_of(amount_cents, tax_rate_bps)
    return {
        "subtotal_cents": amount_cents,
        "tax_cents": tax_cents,
        "total_with_tax_cents": amount_cents + tax_cents,
        "subtotal": format_cents(amount_cents),
        "tax": format_cents(tax_cents),
        "total_with_tax": format_cents(amount_cents + tax_cents),
    }

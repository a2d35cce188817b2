"""Price breakdown snapshot taken when a booking is created."""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from reservation_engine.config import settings
from reservation_engine.errors import ValidationError
from reservation_engine.schemas.booking_schema import AddOn, Discount, Pricing
from reservation_engine.utils import quantize_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def build_pricing(
    base_price: Decimal,
    add_ons: Iterable[AddOn] = (),
    discounts: Iterable[Discount] = (),
    tax_rate: Optional[Decimal] = None,
    currency: Optional[str] = None,
    supported_currencies: Optional[Iterable[str]] = None,
) -> Pricing:
    """
    Compute subtotal, tax and total for a service and its add-ons.

        subtotal = base + sum(add_ons)
        tax      = subtotal * tax_rate
        total    = subtotal + tax - sum(discounts)

    Each figure is rounded half-up to the currency minor unit.

    Raises:
        ValidationError: If the currency is unsupported or discounts
            exceed the taxed subtotal.
    """
    policy = settings.policy
    tax_rate = policy.tax_rate if tax_rate is None else Decimal(tax_rate)
    currency = (currency or policy.default_currency).upper()
    supported = tuple(supported_currencies or policy.supported_currencies)
    if currency not in supported:
        raise ValidationError(
            f"Unsupported currency {currency!r}",
            details={"currency": currency, "supported": list(supported)},
        )

    add_ons = list(add_ons)
    discounts = list(discounts)
    base = quantize_money(Decimal(base_price))
    subtotal = quantize_money(base + sum((a.price for a in add_ons), ZERO))
    tax = quantize_money(subtotal * tax_rate)
    discount_total = quantize_money(sum((d.amount for d in discounts), ZERO))
    total = subtotal + tax - discount_total
    if total < ZERO:
        raise ValidationError(
            f"Discounts ({discount_total}) exceed the price ({subtotal + tax})"
        )

    logger.debug("Priced %s %s (tax %s, discounts %s)", total, currency, tax, discount_total)
    return Pricing(
        base_price=base,
        add_ons=add_ons,
        discounts=discounts,
        subtotal=subtotal,
        tax=tax,
        total_amount=total,
        currency=currency,
    )

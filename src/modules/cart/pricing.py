"""Storefront pricing policy.

One policy object computes shipping, tax and grand total for both the
cart preview and order placement, so the two can never disagree.
Amounts are ``Decimal`` rupees; tax is rounded to a whole rupee.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings

from shared.domain.money import ZERO, Number, percentage_of, to_decimal

CASH_ON_DELIVERY = "cod"


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {key: str(value) for key, value in asdict(self).items()}


EMPTY_TOTALS = Totals(ZERO, ZERO, ZERO, ZERO, ZERO)


@dataclass(frozen=True)
class PricingPolicy:
    free_shipping_threshold: Decimal
    shipping_fee: Decimal
    tax_rate_percent: Decimal
    cod_fee: Decimal = ZERO

    @classmethod
    def from_settings(cls) -> PricingPolicy:
        policy = settings.STOREFRONT
        return cls(
            free_shipping_threshold=to_decimal(policy["FREE_SHIPPING_THRESHOLD"]),
            shipping_fee=to_decimal(policy["SHIPPING_FEE"]),
            tax_rate_percent=to_decimal(policy["TAX_RATE_PERCENT"]),
            cod_fee=to_decimal(policy["COD_FEE"]),
        )

    def shipping_for(
        self, subtotal: Number, payment_method: Optional[str] = None
    ) -> Decimal:
        """Flat fee below the free-shipping threshold, plus the COD fee for ``cod``."""
        subtotal = to_decimal(subtotal)
        shipping = ZERO if subtotal >= self.free_shipping_threshold else self.shipping_fee
        if payment_method == CASH_ON_DELIVERY:
            shipping += self.cod_fee
        return shipping

    def tax_for(self, subtotal: Number) -> Decimal:
        return percentage_of(subtotal, self.tax_rate_percent)

    def totals(
        self,
        subtotal: Number,
        discount: Number = ZERO,
        payment_method: Optional[str] = None,
    ) -> Totals:
        """``total = subtotal - discount + shipping + tax``.

        Tax is charged on the pre-discount subtotal.
        """
        subtotal = to_decimal(subtotal)
        discount = to_decimal(discount)
        shipping = self.shipping_for(subtotal, payment_method)
        tax = self.tax_for(subtotal)
        return Totals(
            subtotal=subtotal,
            discount=discount,
            shipping=shipping,
            tax=tax,
            total=subtotal - discount + shipping + tax,
        )

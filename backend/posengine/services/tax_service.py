# Overview: Inclusive/exclusive tax on a transaction's net subtotal.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from posengine.money import HUNDRED, ZERO, floor_zero, quantize, to_decimal


@dataclass(frozen=True)
class TaxResult:
    tax_amount: Decimal
    total: Decimal


def compute_tax(net_subtotal, tax_percentage, inclusive: bool, *, decimal_places: int = 2) -> TaxResult:
    """
    Tax for a net subtotal (subtotal minus every discount, floored at 0).

    Exclusive: tax is added on top.
    Inclusive: tax is carved out of the net; the total is the net itself.

    Rounding to the currency's decimal places happens here and only here, so
    per-line rounding never compounds.
    """
    net = floor_zero(net_subtotal)
    rate = to_decimal(tax_percentage)

    if rate <= ZERO:
        return TaxResult(tax_amount=quantize(ZERO, decimal_places), total=quantize(net, decimal_places))

    if inclusive:
        total = quantize(net, decimal_places)
        tax_amount = quantize(net - net / (1 + rate / HUNDRED), decimal_places)
    else:
        tax_amount = quantize(net * rate / HUNDRED, decimal_places)
        total = quantize(net + tax_amount, decimal_places)

    return TaxResult(tax_amount=tax_amount, total=total)

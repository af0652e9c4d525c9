# domain/landed_cost.py
"""
Landed-cost calculation: customs value per Incoterm, duty, VAT and total.

Every intermediate amount is rounded half-up to 2 places with
round_to_decimal(), so results match customs declarations line by line.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.errors import InvalidInput
from domain.models import LandedCostInput, LandedCostResult

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_to_decimal(value: Any, places: int = 2) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


class IncotermGroup(str, Enum):
    E = "E"  # departure
    F = "F"  # main carriage unpaid
    C = "C"  # main carriage paid
    D = "D"  # arrival


@dataclass(frozen=True)
class IncotermRule:
    """How the invoice value of one Incoterm is turned into the taxable base."""

    code: str
    name: str
    group: IncotermGroup
    add_freight: bool = False
    add_insurance: bool = False
    deduct_post_border: bool = False

    def taxable_base(self, value: Decimal, freight: Decimal, insurance: Decimal, post_border: Decimal) -> Decimal:
        base = value
        if self.add_freight:
            base += freight
        if self.add_insurance:
            base += insurance
        if self.deduct_post_border:
            base -= post_border
        return base

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "group": self.group.value,
            "add_freight": self.add_freight,
            "add_insurance": self.add_insurance,
            "deduct_post_border": self.deduct_post_border,
        }


def _rules(*rules: IncotermRule) -> Dict[str, IncotermRule]:
    return {r.code: r for r in rules}


# Incoterms 2020 (+ DDU, still common on invoices).
# CFR/CPT exclude insurance, so a separately stated premium is added back;
# CIF/CIP already contain it.
INCOTERM_RULES: Dict[str, IncotermRule] = _rules(
    IncotermRule("EXW", "Ex Works", IncotermGroup.E, add_freight=True, add_insurance=True),
    IncotermRule("FCA", "Free Carrier", IncotermGroup.F, add_freight=True, add_insurance=True),
    IncotermRule("FAS", "Free Alongside Ship", IncotermGroup.F, add_freight=True, add_insurance=True),
    IncotermRule("FOB", "Free on Board", IncotermGroup.F, add_freight=True, add_insurance=True),
    IncotermRule("CFR", "Cost and Freight", IncotermGroup.C, add_insurance=True),
    IncotermRule("CPT", "Carriage Paid To", IncotermGroup.C, add_insurance=True),
    IncotermRule("CIF", "Cost, Insurance and Freight", IncotermGroup.C),
    IncotermRule("CIP", "Carriage and Insurance Paid To", IncotermGroup.C),
    IncotermRule("DAP", "Delivered at Place", IncotermGroup.D, deduct_post_border=True),
    IncotermRule("DPU", "Delivered at Place Unloaded", IncotermGroup.D, deduct_post_border=True),
    IncotermRule("DDP", "Delivered Duty Paid", IncotermGroup.D, deduct_post_border=True),
    IncotermRule("DDU", "Delivered Duty Unpaid", IncotermGroup.D, deduct_post_border=True),
)


def get_incoterms(rules: Optional[Mapping[str, IncotermRule]] = None) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in (rules or INCOTERM_RULES).values()]


def _amount(name: str, value: Any, required: bool = False) -> Decimal:
    if value is None or value == "":
        if required:
            raise InvalidInput(f"{name} is required")
        return ZERO
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None
    if not amount.is_finite():
        raise InvalidInput(f"{name} must be finite, got {value!r}")
    if amount < 0:
        raise InvalidInput(f"{name} must not be negative, got {value!r}")
    return amount


def _currency(value: Any) -> str:
    currency = str(value or "").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise InvalidInput(f"currency must be an ISO 4217 code, got {value!r}")
    return currency


def calculate(data: LandedCostInput, rules: Optional[Mapping[str, IncotermRule]] = None) -> LandedCostResult:
    """
    Duty and import VAT payable for one consignment line.

    Input is validated in full before anything is computed. 0% rates are
    legitimate (duty free / VAT exempt); a missing rate is not.
    """
    rules = rules or INCOTERM_RULES
    value = _amount("customs_value", data.customs_value, required=True)
    duty_rate = _amount("duty_rate_percent", data.duty_rate_percent, required=True)
    vat_rate = _amount("vat_rate_percent", data.vat_rate_percent, required=True)
    freight = _amount("freight_cost", data.freight_cost)
    insurance = _amount("insurance_cost", data.insurance_cost)
    post_border = _amount("post_border_costs", data.post_border_costs)
    anti_dumping_rate = _amount("anti_dumping_rate_percent", data.anti_dumping_rate_percent)
    countervailing_rate = _amount("countervailing_rate_percent", data.countervailing_rate_percent)
    currency = _currency(data.currency)

    incoterm = str(data.incoterm or "").strip().upper()
    rule = rules.get(incoterm)
    if rule is None:
        raise InvalidInput(f"Unknown Incoterm {data.incoterm!r}")

    base = rule.taxable_base(value, freight, insurance, post_border)
    if base < 0:
        logger.warning(
            "Post-border charges %s exceed %s value %s; customs value clamped to 0",
            post_border, incoterm, value,
        )
        base = ZERO
    base = round_to_decimal(base)

    duty_amount = round_to_decimal(base * duty_rate / HUNDRED)
    anti_dumping_amount = round_to_decimal(base * anti_dumping_rate / HUNDRED)
    countervailing_amount = round_to_decimal(base * countervailing_rate / HUNDRED)

    # import VAT is charged on the duty-inclusive value
    vat_base = round_to_decimal(base + duty_amount + anti_dumping_amount + countervailing_amount)
    vat_amount = round_to_decimal(vat_base * vat_rate / HUNDRED)
    total = round_to_decimal(duty_amount + anti_dumping_amount + countervailing_amount + vat_amount)

    return LandedCostResult(
        declared_value=round_to_decimal(value),
        customs_value=base,
        duty_amount=duty_amount,
        anti_dumping_amount=anti_dumping_amount,
        countervailing_amount=countervailing_amount,
        vat_base=vat_base,
        vat_amount=vat_amount,
        total_payable=total,
        applied_duty_rate=duty_rate,
        applied_vat_rate=vat_rate,
        currency=currency,
        incoterm=incoterm,
        applied_agreement=data.agreement,
    )

# domain/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

# TARIC geographical area "Erga Omnes" (all third countries)
ERGA_OMNES = "1011"
ALL_ORIGINS = "ALL"
REGIONS = ("eu", "uk", "xi")


class MeasureType(str, Enum):
    THIRD_COUNTRY = "third_country"
    PREFERENTIAL = "preferential"
    ANTI_DUMPING = "anti_dumping"
    COUNTERVAILING = "countervailing"
    VAT = "vat"
    OTHER = "other"


class AgreementType(str, Enum):
    GSP_PLUS = "GSP+"
    GSP = "GSP"
    EBA = "EBA"
    EPA = "EPA"
    FTA = "FTA"
    CUSTOMS_UNION = "CU"
    OTHER = "OTHER"


def parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class DutyRate:
    percent: Optional[float] = None
    amount: Optional[float] = None
    unit: Optional[str] = None
    expression: str = ""

    @property
    def is_empty(self) -> bool:
        return self.percent is None and self.amount is None

    def to_dict(self) -> Dict[str, Any]:
        return {"percent": self.percent, "amount": self.amount, "unit": self.unit, "expression": self.expression}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DutyRate":
        data = data or {}
        return cls(
            percent=data.get("percent"),
            amount=data.get("amount"),
            unit=data.get("unit"),
            expression=data.get("expression") or "",
        )


@dataclass(frozen=True)
class TariffMeasure:
    code: str
    origin_country: str
    geographical_area: str
    measure_type: MeasureType
    duty_rate: DutyRate = field(default_factory=DutyRate)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    measure_type_id: Optional[str] = None
    measure_type_description: Optional[str] = None
    geographical_area_description: Optional[str] = None

    def is_active(self, on: Optional[date] = None) -> bool:
        on = on or date.today()
        if self.valid_from and self.valid_from > on:
            return False
        if self.valid_to and self.valid_to < on:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "origin_country": self.origin_country,
            "geographical_area": self.geographical_area,
            "geographical_area_description": self.geographical_area_description,
            "measure_type": self.measure_type.value,
            "measure_type_id": self.measure_type_id,
            "measure_type_description": self.measure_type_description,
            "duty_rate": self.duty_rate.to_dict(),
            "valid_from": _iso(self.valid_from),
            "valid_to": _iso(self.valid_to),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TariffMeasure":
        return cls(
            code=data["code"],
            origin_country=data.get("origin_country") or ALL_ORIGINS,
            geographical_area=data.get("geographical_area") or "",
            measure_type=MeasureType(data.get("measure_type") or MeasureType.OTHER.value),
            duty_rate=DutyRate.from_dict(data.get("duty_rate")),
            valid_from=parse_date(data.get("valid_from")),
            valid_to=parse_date(data.get("valid_to")),
            measure_type_id=data.get("measure_type_id"),
            measure_type_description=data.get("measure_type_description"),
            geographical_area_description=data.get("geographical_area_description"),
        )


@dataclass(frozen=True)
class TradeAgreement:
    agreement_code: str
    agreement_type: AgreementType
    agreement_name: str
    country_code: Optional[str] = None
    preferential_rate: Optional[float] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agreement_code": self.agreement_code,
            "agreement_type": self.agreement_type.value,
            "agreement_name": self.agreement_name,
            "country_code": self.country_code,
            "preferential_rate": self.preferential_rate,
            "valid_from": _iso(self.valid_from),
            "valid_to": _iso(self.valid_to),
        }


@dataclass
class CacheEntry:
    key: Any
    data: Any
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now > self.expiry


@dataclass(frozen=True)
class RateResult:
    code: str
    matched_code: str
    origin_country: str
    region: str
    source: str
    duty_rate: Optional[float]
    third_country_duty: Optional[float] = None
    preferential_rate: Optional[float] = None
    vat_rate: Optional[float] = None
    anti_dumping_rate: Optional[float] = None
    countervailing_rate: Optional[float] = None
    applied_measure: Optional[TariffMeasure] = None
    measures: List[TariffMeasure] = field(default_factory=list)
    description: Optional[str] = None
    from_cache: bool = False

    found = True

    @property
    def exact_match(self) -> bool:
        return self.code == self.matched_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "matched_code": self.matched_code,
            "exact_match": self.exact_match,
            "origin_country": self.origin_country,
            "region": self.region,
            "source": self.source,
            "duty_rate": self.duty_rate,
            "third_country_duty": self.third_country_duty,
            "preferential_rate": self.preferential_rate,
            "vat_rate": self.vat_rate,
            "anti_dumping_rate": self.anti_dumping_rate,
            "countervailing_rate": self.countervailing_rate,
            "applied_measure": self.applied_measure.to_dict() if self.applied_measure else None,
            "measures": [m.to_dict() for m in self.measures],
            "description": self.description,
            "from_cache": self.from_cache,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateResult":
        applied = data.get("applied_measure")
        return cls(
            code=data["code"],
            matched_code=data.get("matched_code") or data["code"],
            origin_country=data.get("origin_country") or ALL_ORIGINS,
            region=data["region"],
            source=data.get("source") or "",
            duty_rate=data.get("duty_rate"),
            third_country_duty=data.get("third_country_duty"),
            preferential_rate=data.get("preferential_rate"),
            vat_rate=data.get("vat_rate"),
            anti_dumping_rate=data.get("anti_dumping_rate"),
            countervailing_rate=data.get("countervailing_rate"),
            applied_measure=TariffMeasure.from_dict(applied) if applied else None,
            measures=[TariffMeasure.from_dict(m) for m in data.get("measures") or []],
            description=data.get("description"),
            from_cache=bool(data.get("from_cache", False)),
        )


@dataclass(frozen=True)
class NotFound:
    """No applicable measure located. A normal result, never raised."""

    code: Optional[str]
    origin_country: str
    region: str
    reason: str
    error: Optional[str] = None

    found = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "origin_country": self.origin_country,
            "region": self.region,
            "found": False,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass(frozen=True)
class LandedCostInput:
    customs_value: Any
    currency: str
    duty_rate_percent: Any
    vat_rate_percent: Any
    incoterm: str
    freight_cost: Any = 0
    insurance_cost: Any = 0
    post_border_costs: Any = 0
    anti_dumping_rate_percent: Any = 0
    countervailing_rate_percent: Any = 0
    agreement: Optional[TradeAgreement] = None


@dataclass(frozen=True)
class LandedCostResult:
    declared_value: Decimal
    customs_value: Decimal
    duty_amount: Decimal
    vat_base: Decimal
    vat_amount: Decimal
    total_payable: Decimal
    applied_duty_rate: Decimal
    applied_vat_rate: Decimal
    currency: str
    incoterm: str
    anti_dumping_amount: Decimal = Decimal("0.00")
    countervailing_amount: Decimal = Decimal("0.00")
    applied_agreement: Optional[TradeAgreement] = None

    def to_dict(self) -> Dict[str, Any]:
        money = (
            "declared_value", "customs_value", "duty_amount", "anti_dumping_amount",
            "countervailing_amount", "vat_base", "vat_amount", "total_payable",
        )
        payload: Dict[str, Any] = {name: float(getattr(self, name)) for name in money}
        payload.update({
            "applied_duty_rate": float(self.applied_duty_rate),
            "applied_vat_rate": float(self.applied_vat_rate),
            "currency": self.currency,
            "incoterm": self.incoterm,
            "applied_agreement": self.applied_agreement.to_dict() if self.applied_agreement else None,
        })
        return payload

# application/landed_cost_service.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from domain.agreements import extract_agreements, find_agreement
from domain.landed_cost import calculate, get_incoterms
from domain.models import (
    ALL_ORIGINS,
    LandedCostInput,
    LandedCostResult,
    MeasureType,
    NotFound,
    RateResult,
    TradeAgreement,
)
from domain.normalizer import normalize
from application.rate_resolver import RateResolver, Resolution, ResolveOptions

logger = logging.getLogger(__name__)


@dataclass
class Quote:
    rate: Optional[Resolution]
    agreements: List[TradeAgreement] = field(default_factory=list)
    landed_cost: Optional[LandedCostResult] = None

    @property
    def found(self) -> bool:
        return self.landed_cost is not None


class LandedCostService:
    """
    normalize -> resolve -> extract agreements -> calculate.
    Renders the JSON payloads served by interface/api.py.
    """

    def __init__(self, resolver: Optional[RateResolver] = None) -> None:
        self.resolver = resolver or RateResolver()

    # ---------------- Rates ----------------

    @staticmethod
    def applied_agreement(result: RateResult, agreements: Iterable[TradeAgreement]) -> Optional[TradeAgreement]:
        applied = result.applied_measure
        if applied is None or applied.measure_type != MeasureType.PREFERENTIAL:
            return None
        return find_agreement(agreements, applied.geographical_area)

    def lookup_payload(
        self,
        code: str,
        origin_country: Optional[str] = ALL_ORIGINS,
        region: str = "eu",
        options: Optional[ResolveOptions] = None,
    ) -> Dict[str, Any]:
        result = self.resolver.resolve(code, origin_country, region, options)
        if isinstance(result, NotFound):
            return result.to_dict()
        agreements = extract_agreements(result.measures)
        applied = self.applied_agreement(result, agreements)
        payload = result.to_dict()
        payload["found"] = True
        payload["agreements"] = [a.to_dict() for a in agreements]
        payload["applied_agreement"] = applied.to_dict() if applied else None
        return payload

    def batch_payload(
        self,
        codes: Iterable[str],
        origin_country: Optional[str] = ALL_ORIGINS,
        region: str = "eu",
        options: Optional[ResolveOptions] = None,
    ) -> Dict[str, Any]:
        results = self.resolver.resolve_batch(codes, origin_country, region, options)
        found = sum(1 for r in results.values() if r.found)
        items = []
        for raw, result in results.items():
            item = result.to_dict()
            item["found"] = result.found
            item["input"] = raw
            items.append(item)
        return {
            "region": region,
            "origin_country": origin_country or ALL_ORIGINS,
            "total": len(results),
            "found": found,
            "not_found": len(results) - found,
            "results": items,
        }

    # ---------------- Landed cost ----------------

    def quote(
        self,
        customs_value: Any,
        currency: str,
        incoterm: str,
        code: Optional[str] = None,
        origin_country: Optional[str] = ALL_ORIGINS,
        region: str = "eu",
        freight_cost: Any = 0,
        insurance_cost: Any = 0,
        post_border_costs: Any = 0,
        duty_rate_percent: Any = None,
        vat_rate_percent: Any = None,
        options: Optional[ResolveOptions] = None,
    ) -> Quote:
        """
        Landed cost for one line. Rates given by the caller win over resolved ones;
        with a code, missing rates are resolved. Without a resolvable rate the
        quote carries the NotFound and no landed cost.
        """
        rate: Optional[Resolution] = None
        agreements: List[TradeAgreement] = []
        agreement: Optional[TradeAgreement] = None
        anti_dumping = countervailing = 0

        if code and (duty_rate_percent in (None, "") or vat_rate_percent in (None, "")):
            rate = self.resolver.resolve(code, origin_country, region, options)
            if isinstance(rate, NotFound):
                logger.info("No rate for %s/%s/%s: %s", rate.code, rate.origin_country, region, rate.reason)
                return Quote(rate=rate)
            agreements = extract_agreements(rate.measures)
            agreement = self.applied_agreement(rate, agreements)
            if duty_rate_percent in (None, ""):
                duty_rate_percent = rate.duty_rate
            if vat_rate_percent in (None, ""):
                vat_rate_percent = rate.vat_rate
            anti_dumping = rate.anti_dumping_rate or 0
            countervailing = rate.countervailing_rate or 0

        landed = calculate(LandedCostInput(
            customs_value=customs_value,
            currency=currency,
            duty_rate_percent=duty_rate_percent,
            vat_rate_percent=vat_rate_percent,
            incoterm=incoterm,
            freight_cost=freight_cost,
            insurance_cost=insurance_cost,
            post_border_costs=post_border_costs,
            anti_dumping_rate_percent=anti_dumping,
            countervailing_rate_percent=countervailing,
            agreement=agreement,
        ))
        return Quote(rate=rate, agreements=agreements, landed_cost=landed)

    def quote_payload(self, payload: Dict[str, Any], options: Optional[ResolveOptions] = None) -> Dict[str, Any]:
        code = payload.get("hs_code") or payload.get("code")
        quote = self.quote(
            customs_value=payload.get("customs_value"),
            currency=payload.get("currency") or "EUR",
            incoterm=payload.get("incoterm") or "",
            code=code,
            origin_country=payload.get("origin_country") or ALL_ORIGINS,
            region=payload.get("region") or "eu",
            freight_cost=payload.get("freight_cost", 0),
            insurance_cost=payload.get("insurance_cost", 0),
            post_border_costs=payload.get("post_border_costs", 0),
            duty_rate_percent=payload.get("duty_rate_percent"),
            vat_rate_percent=payload.get("vat_rate_percent"),
            options=options,
        )
        if not quote.found:
            return quote.rate.to_dict() if quote.rate else {"found": False, "reason": "no_rate"}

        out: Dict[str, Any] = {"found": True, "hs_code": normalize(code) if code else None}
        out.update(quote.landed_cost.to_dict())
        out["agreements"] = [a.to_dict() for a in quote.agreements]
        out["rate"] = quote.rate.to_dict() if quote.rate else None
        return out

    # ---------------- Reference / admin ----------------

    def incoterms(self) -> List[Dict[str, Any]]:
        return get_incoterms()

    def cache_stats(self) -> Dict[str, int]:
        return self.resolver.get_cache_stats()

    def clear_cache(self) -> Dict[str, int]:
        return {"cleared": self.resolver.clear_cache()}

    def health(self, region: str = "eu") -> Dict[str, Any]:
        return self.resolver.check_health(region)

# domain/agreements.py
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from domain.models import ERGA_OMNES, AgreementType, TariffMeasure, TradeAgreement


@dataclass(frozen=True)
class AgreementRule:
    agreement_type: AgreementType
    name: str
    pattern: "re.Pattern[str]"

    def matches(self, haystacks: Iterable[str]) -> bool:
        return any(self.pattern.search(text) for text in haystacks)


def _rule(agreement_type: AgreementType, name: str, pattern: str) -> AgreementRule:
    return AgreementRule(agreement_type, name, re.compile(pattern, re.I))


# Evaluated top to bottom, first match wins; GSP+ and EBA must precede GSP.
AGREEMENT_RULES: Tuple[AgreementRule, ...] = (
    _rule(AgreementType.GSP_PLUS, "GSP+ (Special Incentive)", r"\bGSP\s*\+|special incentive"),
    _rule(AgreementType.EBA, "Everything But Arms", r"\bEBA\b|everything but arms"),
    _rule(AgreementType.GSP, "Generalised Scheme of Preferences", r"\bGSP\b|generali[sz]ed (scheme|system)"),
    _rule(AgreementType.EPA, "Economic Partnership Agreement", r"\bEPA\b|economic partnership"),
    _rule(AgreementType.FTA, "Free Trade Agreement", r"\bFTA\b|free trade"),
    _rule(AgreementType.CUSTOMS_UNION, "Customs Union", r"customs union"),
)


def classify_agreement(measure: TariffMeasure) -> Tuple[AgreementType, str]:
    area = measure.geographical_area
    haystacks = (
        area,
        measure.geographical_area_description or "",
        measure.measure_type_description or "",
    )
    for rule in AGREEMENT_RULES:
        if rule.matches(haystacks):
            return rule.agreement_type, rule.name
    return AgreementType.OTHER, f"Preferential Rate - {area}"


def extract_agreements(measures: Iterable[TariffMeasure]) -> List[TradeAgreement]:
    """
    One agreement per geographical area, in order of first appearance.
    Erga Omnes is the default rate, not a preference, and is skipped.
    Unknown areas are kept as OTHER.
    """
    agreements: Dict[str, TradeAgreement] = {}
    for measure in measures:
        area = (measure.geographical_area or "").strip()
        if not area or area == ERGA_OMNES or area in agreements:
            continue
        agreement_type, name = classify_agreement(measure)
        origin = measure.origin_country or ""
        agreements[area] = TradeAgreement(
            agreement_code=area,
            agreement_type=agreement_type,
            agreement_name=name,
            country_code=origin if len(origin) == 2 and origin.isalpha() else None,
            preferential_rate=measure.duty_rate.percent,
            valid_from=measure.valid_from,
            valid_to=measure.valid_to,
        )
    return list(agreements.values())


def find_agreement(agreements: Iterable[TradeAgreement], area: Optional[str]) -> Optional[TradeAgreement]:
    if not area:
        return None
    return next((a for a in agreements if a.agreement_code == area), None)

# domain/measures.py
"""
Measure interpretation: duty expressions, measure types and the
most-specific-match-wins selection used by the rate resolver.
"""
from __future__ import annotations
import re
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from domain.models import (
    ALL_ORIGINS,
    ERGA_OMNES,
    DutyRate,
    MeasureType,
    RateResult,
    TariffMeasure,
)

# TARIC measure type ids
_TYPE_IDS = {
    MeasureType.THIRD_COUNTRY: {"103", "105"},
    MeasureType.PREFERENTIAL: {"106", "142", "143", "145", "146"},
    MeasureType.ANTI_DUMPING: {"551", "552", "553"},
    MeasureType.COUNTERVAILING: {"554", "555", "556"},
    MeasureType.VAT: {"305"},
}

# fallback when the id is unknown – checked in this order
_TYPE_PATTERNS: Sequence[Tuple[MeasureType, "re.Pattern[str]"]] = (
    (MeasureType.ANTI_DUMPING, re.compile(r"anti-?dumping", re.I)),
    (MeasureType.COUNTERVAILING, re.compile(r"countervailing", re.I)),
    (MeasureType.VAT, re.compile(r"value added tax|\bvat\b", re.I)),
    (MeasureType.PREFERENTIAL, re.compile(r"tariff preference|preferential|customs union", re.I)),
    (MeasureType.THIRD_COUNTRY, re.compile(r"third country duty", re.I)),
)

DUTY_TYPES = (MeasureType.THIRD_COUNTRY, MeasureType.PREFERENTIAL)

_TAGS = re.compile(r"<[^>]*>")
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_SPECIFIC = re.compile(r"(\d+(?:\.\d+)?)\s*([A-Z]{3}\s*(?:/\s*[^+%]+)?)")
_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")


def classify_measure_type(type_id: Optional[str], description: Optional[str] = None) -> MeasureType:
    type_id = str(type_id or "").strip()
    for measure_type, ids in _TYPE_IDS.items():
        if type_id in ids:
            return measure_type
    text = description or ""
    for measure_type, pattern in _TYPE_PATTERNS:
        if pattern.search(text):
            return measure_type
    return MeasureType.OTHER


def parse_duty_expression(expression: Optional[str]) -> DutyRate:
    """
    '<span>6.00</span> %'            -> percent=6.0
    '12.80 EUR / 100 kg'             -> amount=12.8, unit='EUR / 100 kg'
    '8.00 % + 12.00 EUR / 100 kg'    -> both
    A bare number is read as a percentage.
    """
    text = _TAGS.sub("", expression or "").replace("\xa0", " ").strip()
    if not text:
        return DutyRate()

    percent: Optional[float] = None
    amount: Optional[float] = None
    unit: Optional[str] = None

    m = _PERCENT.search(text)
    if m:
        percent = float(m.group(1))
    for part in text.split("+"):
        if "%" in part:
            continue
        s = _SPECIFIC.search(part)
        if s:
            amount = float(s.group(1))
            unit = re.sub(r"\s+", " ", s.group(2)).strip()
            break
    if percent is None and amount is None:
        n = _NUMBER.search(text)
        if n:
            percent = float(n.group(1))
    return DutyRate(percent=percent, amount=amount, unit=unit, expression=text)


def origin_for_area(area_id: Optional[str], requested_origin: str) -> str:
    """
    Country a measure applies to. Two-letter areas are countries; Erga Omnes is
    ALL. Group areas (GSP, third countries...) only come back from the authority
    when the requested origin belongs to them, so they take the requested origin.
    Without a requested origin a group area keeps its own id and applies to no
    origin.
    """
    area = (area_id or "").strip().upper()
    if not area or area == ERGA_OMNES:
        return ALL_ORIGINS
    if len(area) == 2 and area.isalpha():
        return area
    if not requested_origin or requested_origin == ALL_ORIGINS:
        return area
    return requested_origin


def _specificity(measure: TariffMeasure, origin: str) -> int:
    if origin != ALL_ORIGINS and measure.origin_country == origin:
        # country area beats a group area the origin belongs to
        return 2 if measure.geographical_area.upper() == origin else 1
    return 0


def _applies_to(measure: TariffMeasure, origin: str) -> bool:
    if measure.measure_type == MeasureType.PREFERENTIAL:
        # preferences need a qualifying origin
        return origin != ALL_ORIGINS and measure.origin_country == origin
    return measure.origin_country in (origin, ALL_ORIGINS)


def selection_key(measure: TariffMeasure, origin: str, today: Optional[date] = None) -> Tuple[int, int, int]:
    preferential = int(
        measure.measure_type == MeasureType.PREFERENTIAL
        and origin != ALL_ORIGINS
        and measure.origin_country == origin
    )
    return (_specificity(measure, origin), int(measure.is_active(today)), preferential)


def select_measure(
    measures: Iterable[TariffMeasure],
    origin: str,
    types: Sequence[MeasureType] = DUTY_TYPES,
    today: Optional[date] = None,
) -> Optional[TariffMeasure]:
    """Most specific applicable measure of the given types; ties keep source order."""
    best: Optional[TariffMeasure] = None
    best_key: Optional[Tuple[int, int, int]] = None
    for measure in measures:
        if measure.measure_type not in types or not _applies_to(measure, origin):
            continue
        key = selection_key(measure, origin, today)
        if best_key is None or key > best_key:
            best, best_key = measure, key
    return best


def select_vat_rate(measures: Iterable[TariffMeasure], standard_rate: Optional[float]) -> Optional[float]:
    """
    The authority may publish several VAT measures (e.g. 0% relief next to the
    standard rate). Prefer the standard rate, then the highest non-zero one.
    Returns None when no VAT measure carries a rate.
    """
    rates = [
        m.duty_rate.percent
        for m in measures
        if m.measure_type == MeasureType.VAT and m.duty_rate.percent is not None
    ]
    if not rates:
        return None
    if standard_rate is not None and standard_rate in rates:
        return standard_rate
    non_zero = [r for r in rates if r > 0]
    return max(non_zero) if non_zero else 0.0


def _rate_of(measure: Optional[TariffMeasure]) -> Optional[float]:
    if measure is None:
        return None
    if measure.duty_rate.is_empty and measure.measure_type == MeasureType.THIRD_COUNTRY:
        # third-country duty without an expression = duty free
        return 0.0
    return measure.duty_rate.percent


def summarize_measures(
    measures: List[TariffMeasure],
    code: str,
    matched_code: str,
    origin: str,
    region: str,
    source: str,
    description: Optional[str] = None,
    default_vat_rate: Optional[float] = None,
    today: Optional[date] = None,
) -> RateResult:
    applied = select_measure(measures, origin, DUTY_TYPES, today)
    third_country = select_measure(measures, origin, (MeasureType.THIRD_COUNTRY,), today)
    preferential = select_measure(measures, origin, (MeasureType.PREFERENTIAL,), today)
    if preferential is not None and (origin == ALL_ORIGINS or preferential.origin_country != origin):
        preferential = None
    anti_dumping = select_measure(measures, origin, (MeasureType.ANTI_DUMPING,), today)
    countervailing = select_measure(measures, origin, (MeasureType.COUNTERVAILING,), today)

    vat_rate = select_vat_rate(measures, default_vat_rate)
    if vat_rate is None:
        vat_rate = default_vat_rate

    return RateResult(
        code=code,
        matched_code=matched_code,
        origin_country=origin,
        region=region,
        source=source,
        duty_rate=_rate_of(applied),
        third_country_duty=_rate_of(third_country),
        preferential_rate=_rate_of(preferential),
        vat_rate=vat_rate,
        anti_dumping_rate=_rate_of(anti_dumping),
        countervailing_rate=_rate_of(countervailing),
        applied_measure=applied,
        measures=list(measures),
        description=description,
    )

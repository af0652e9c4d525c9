# domain/reference_rates.py
"""
Bundled reference rates for EU imports, used when the tariff authority
cannot be reached.

THIRD_COUNTRY_RATES holds MFN duties keyed by CN8 subheading or HS4 heading.
CN_TRADE_DEFENCE_RATES holds EU anti-dumping duties on Chinese-origin goods,
keyed by CN8 only. Rates are indicative; a live lookup always wins.
"""
from __future__ import annotations
from typing import Dict, List, NamedTuple, Optional

from domain.models import ALL_ORIGINS, ERGA_OMNES, DutyRate, MeasureType, TariffMeasure, parse_date

REFERENCE_SOURCE = "local_reference"
REFERENCE_REGIONS = ("eu", "xi")


class ReferenceRate(NamedTuple):
    duty: float
    description: str
    anti_dumping: float = 0.0
    countervailing: float = 0.0
    regulation: Optional[str] = None
    valid_from: Optional[str] = None


class ReferenceMatch(NamedTuple):
    matched_code: str
    description: str
    measures: List[TariffMeasure]


THIRD_COUNTRY_RATES: Dict[str, ReferenceRate] = {
    # electrical equipment
    "8471": ReferenceRate(0.0, "Automatic data-processing machines (computers)"),
    "84713000": ReferenceRate(0.0, "Portable automatic data-processing machines (laptops)"),
    "84714900": ReferenceRate(0.0, "Other digital automatic data-processing machines"),
    "8473": ReferenceRate(0.0, "Parts and accessories for computers"),
    "8504": ReferenceRate(1.7, "Electrical transformers, static converters"),
    "85044090": ReferenceRate(1.7, "Other static converters (power adapters)"),
    "8507": ReferenceRate(2.7, "Electric accumulators"),
    "85076000": ReferenceRate(2.7, "Lithium-ion accumulators"),
    "8517": ReferenceRate(0.0, "Telephone sets; other apparatus for transmission or reception"),
    "85171200": ReferenceRate(0.0, "Telephones for cellular networks (smartphones)"),
    "8518": ReferenceRate(2.0, "Microphones, loudspeakers, headphones"),
    "85183000": ReferenceRate(2.0, "Headphones and earphones"),
    "8523": ReferenceRate(0.0, "Recording media"),
    "8528": ReferenceRate(14.0, "Monitors and projectors; TV receivers"),
    "85285100": ReferenceRate(0.0, "Monitors for use with computers"),
    "85287100": ReferenceRate(14.0, "TV receivers not incorporating video apparatus"),
    "8544": ReferenceRate(3.3, "Insulated wire, cable"),
    # household appliances
    "8414": ReferenceRate(2.2, "Air or vacuum pumps, compressors, fans"),
    "8415": ReferenceRate(2.5, "Air conditioning machines"),
    "8418": ReferenceRate(2.5, "Refrigerators, freezers"),
    "8450": ReferenceRate(2.7, "Washing machines"),
    "8516": ReferenceRate(2.7, "Electric heating apparatus"),
    # apparel and footwear
    "6109": ReferenceRate(12.0, "T-shirts, singlets and other vests, knitted"),
    "6110": ReferenceRate(12.0, "Sweaters, pullovers, cardigans, knitted"),
    "6104": ReferenceRate(12.0, "Women's suits, dresses, skirts, knitted"),
    "6203": ReferenceRate(12.0, "Men's suits, trousers, shorts"),
    "6402": ReferenceRate(16.9, "Other footwear with outer soles of rubber or plastics"),
    "6403": ReferenceRate(8.0, "Footwear with uppers of leather"),
    "6404": ReferenceRate(16.9, "Footwear with uppers of textile materials"),
    "64042000": ReferenceRate(8.0, "Footwear with outer soles of leather, uppers of textile"),
    "4202": ReferenceRate(3.0, "Trunks, suitcases, handbags"),
    # ceramics and metals
    "6911": ReferenceRate(12.0, "Porcelain or china tableware, kitchenware"),
    "6912": ReferenceRate(12.0, "Ceramic tableware, kitchenware, other household articles"),
    "7318": ReferenceRate(3.7, "Screws, bolts, nuts, washers of iron or steel"),
    "7326": ReferenceRate(2.7, "Other articles of iron or steel"),
    "7604": ReferenceRate(7.5, "Aluminium bars, rods and profiles"),
    # furniture, toys, plastics
    "9401": ReferenceRate(0.0, "Seats"),
    "9403": ReferenceRate(0.0, "Other furniture"),
    "9405": ReferenceRate(2.7, "Lamps and lighting fittings"),
    "9503": ReferenceRate(0.0, "Toys"),
    "9504": ReferenceRate(0.0, "Video game consoles"),
    "3901": ReferenceRate(6.5, "Polymers of ethylene, in primary forms"),
    "3923": ReferenceRate(6.5, "Articles for the conveyance or packing of goods, of plastics"),
    "3924": ReferenceRate(6.5, "Tableware, kitchenware, toilet articles of plastics"),
    "3926": ReferenceRate(6.5, "Other articles of plastics"),
    # vehicles, instruments
    "8703": ReferenceRate(10.0, "Motor cars"),
    "8711": ReferenceRate(6.0, "Motorcycles"),
    "8712": ReferenceRate(14.0, "Bicycles"),
    "9018": ReferenceRate(0.0, "Medical instruments"),
}

CN_TRADE_DEFENCE_RATES: Dict[str, ReferenceRate] = {
    "69111000": ReferenceRate(12.0, "Porcelain or china tableware", 36.1, 0.0, "R(EU) 2019/1198", "2019-07-18"),
    "69119000": ReferenceRate(12.0, "Other ceramic tableware", 36.1, 0.0, "R(EU) 2019/1198", "2019-07-18"),
    "69120010": ReferenceRate(12.0, "Ceramic tableware of common pottery", 36.1, 0.0, "R(EU) 2019/1198", "2019-07-18"),
    "69120090": ReferenceRate(12.0, "Other ceramic household articles", 17.6, 0.0, "R(EU) 2019/1198", "2019-07-18"),
    "64029900": ReferenceRate(16.9, "Other footwear, rubber or plastic soles", 16.5, 0.0, "R(EU) 2006/1472", "2006-10-07"),
    "64039900": ReferenceRate(8.0, "Other footwear, leather uppers", 16.5, 0.0, "R(EU) 2006/1472", "2006-10-07"),
    "73181200": ReferenceRate(3.7, "Other wood screws", 85.0, 0.0, "R(EU) 2009/91", "2009-01-31"),
    "73181500": ReferenceRate(3.7, "Other screws and bolts", 85.0, 0.0, "R(EU) 2009/91", "2009-01-31"),
    "73181600": ReferenceRate(3.7, "Nuts", 85.0, 0.0, "R(EU) 2009/91", "2009-01-31"),
    "76042100": ReferenceRate(7.5, "Hollow aluminium profiles", 30.4, 0.0, "R(EU) 2021/546", "2021-04-01"),
    "87120030": ReferenceRate(14.0, "Bicycles", 48.5, 0.0, "R(EU) 2019/1379", "2019-08-20"),
}


def _measure(code: str, percent: float, measure_type: MeasureType, origin: str = ALL_ORIGINS,
             description: Optional[str] = None, valid_from: Optional[str] = None) -> TariffMeasure:
    return TariffMeasure(
        code=code,
        origin_country=origin,
        geographical_area=ERGA_OMNES if origin == ALL_ORIGINS else origin,
        measure_type=measure_type,
        duty_rate=DutyRate(percent=percent, expression=f"{percent:.2f} %"),
        valid_from=parse_date(valid_from),
        measure_type_description=description,
    )


def find_third_country_rate(code: str) -> Optional[ReferenceMatch]:
    """CN8 subheading first, then the HS4 heading."""
    for prefix in (code[:8], code[:4]):
        rate = THIRD_COUNTRY_RATES.get(prefix)
        if rate is not None:
            return ReferenceMatch(prefix.ljust(10, "0"), rate.description, [_measure(code, rate.duty, MeasureType.THIRD_COUNTRY)])
    return None


def find_reference_rate(code: str, origin: str = ALL_ORIGINS) -> Optional[ReferenceMatch]:
    """
    Reference measures for a normalized 10-digit code.

    For Chinese origin a trade-defence entry on the CN8 line supplies the
    third-country duty together with its anti-dumping and countervailing
    duties. Returns None when neither table knows the code.
    """
    defence = CN_TRADE_DEFENCE_RATES.get(code[:8]) if origin == "CN" else None
    if defence is None:
        return find_third_country_rate(code)

    measures = [_measure(code, defence.duty, MeasureType.THIRD_COUNTRY)]
    if defence.anti_dumping:
        measures.append(_measure(code, defence.anti_dumping, MeasureType.ANTI_DUMPING, "CN",
                                 f"Definitive anti-dumping duty ({defence.regulation})", defence.valid_from))
    if defence.countervailing:
        measures.append(_measure(code, defence.countervailing, MeasureType.COUNTERVAILING, "CN",
                                 f"Definitive countervailing duty ({defence.regulation})", defence.valid_from))
    return ReferenceMatch(code[:8].ljust(10, "0"), defence.description, measures)

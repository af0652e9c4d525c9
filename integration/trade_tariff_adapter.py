# integration/trade_tariff_adapter.py
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests

from core.config import Config
from core.errors import InvalidInput, UpstreamError, UpstreamParseError, UpstreamTimeout
from domain.measures import classify_measure_type, origin_for_area, parse_duty_expression
from domain.models import ALL_ORIGINS, REGIONS, TariffMeasure, parse_date
from domain.normalizer import heading_of, normalize, parent_codes

logger = logging.getLogger(__name__)

REGION_SOURCES = {"eu": "eu_taric", "uk": "uk_api", "xi": "xi_api"}


@dataclass
class CommodityLookup:
    requested_code: str
    matched_code: str
    description: Optional[str]
    measures: List[TariffMeasure] = field(default_factory=list)


class TradeTariffAdapter:
    """
    Trade Tariff API v2 (JSON:API) – commodity measures for one region.
      uk: UK Global Tariff
      xi: Northern Ireland, applies EU TARIC rules
      eu: EU TARIC realtime endpoint (defaults to the XI mirror)

    GET /commodities/{10 digits}?filter[geographical_area_id]={origin}
    404 on the exact line -> parent lines (CN8, HS6) -> best declarable line of the heading.
    """

    def __init__(
        self,
        region: str,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if region not in REGIONS:
            raise InvalidInput(f"Unknown tariff region {region!r}, expected one of {', '.join(REGIONS)}")
        self.region = region
        self.base_url = (base_url or Config.api_bases()[region]).rstrip("/")
        self.s = session or requests.Session()
        self.timeout = timeout if timeout is not None else Config.TARIFF_API_TIMEOUT

        # debug/diag
        self.last_request: Optional[Tuple[str, Dict]] = None
        self.last_status: Optional[int] = None

    @property
    def source(self) -> str:
        return REGION_SOURCES[self.region]

    # ---------------- HTTP ----------------

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "User-Agent": Config.TARIFF_API_USER_AGENT}

    def _send(self, url: str, params: Dict) -> requests.Response:
        # a timeout gets exactly one retry; redirects are followed by requests
        for attempt in (1, 2):
            try:
                return self.s.get(url, headers=self._headers(), params=params, timeout=self.timeout)
            except requests.Timeout:
                if attempt == 2:
                    raise UpstreamTimeout(url, self.timeout) from None
                logger.warning("Timeout after %ss on %s, retrying once", self.timeout, url)
            except requests.RequestException as e:
                raise UpstreamError(url, None, str(e)) from e
        raise UpstreamTimeout(url, self.timeout)

    def _get_json(self, path: str, params: Optional[Dict] = None) -> Optional[Dict[str, Any]]:
        """Parsed body, or None when the authority has no such resource (404)."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        params = params or {}
        self.last_request = (url, dict(params))
        r = self._send(url, params)
        self.last_status = r.status_code
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise UpstreamError(url, r.status_code)
        try:
            payload = r.json()
        except ValueError as e:
            raise UpstreamParseError(url, str(e)) from e
        if not isinstance(payload, dict):
            raise UpstreamParseError(url, f"expected a JSON object, got {type(payload).__name__}")
        return payload

    # ---------------- Parsing ----------------

    @staticmethod
    def parse_measures(payload: Dict[str, Any], code: str, origin: str) -> List[TariffMeasure]:
        """Resolve JSON:API relationships of every included 'measure'."""
        included = payload.get("included") or []
        by_ref: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for item in included:
            if isinstance(item, dict):
                by_ref[(str(item.get("type")), str(item.get("id")))] = item

        def _related(measure: Dict[str, Any], name: str) -> Tuple[Optional[str], Dict[str, Any]]:
            rel = ((measure.get("relationships") or {}).get(name) or {}).get("data") or {}
            rel_id = rel.get("id")
            if rel_id is None:
                return None, {}
            obj = by_ref.get((str(rel.get("type") or name), str(rel_id))) or {}
            return str(rel_id), obj.get("attributes") or {}

        measures: List[TariffMeasure] = []
        for item in included:
            if not isinstance(item, dict) or item.get("type") != "measure":
                continue
            attrs = item.get("attributes") or {}
            type_id, type_attrs = _related(item, "measure_type")
            area_id, area_attrs = _related(item, "geographical_area")
            _, duty_attrs = _related(item, "duty_expression")
            type_description = type_attrs.get("description")
            area_id = area_id or attrs.get("geographical_area_id")

            measures.append(TariffMeasure(
                code=code,
                origin_country=origin_for_area(area_id, origin if origin != ALL_ORIGINS else ""),
                geographical_area=area_id or "",
                geographical_area_description=area_attrs.get("description"),
                measure_type=classify_measure_type(type_id, type_description),
                measure_type_id=type_id,
                measure_type_description=type_description,
                duty_rate=parse_duty_expression(duty_attrs.get("formatted_base") or duty_attrs.get("base")),
                valid_from=parse_date(attrs.get("effective_start_date")),
                valid_to=parse_date(attrs.get("effective_end_date")),
            ))
        return measures

    @staticmethod
    def _best_declarable(payload: Dict[str, Any], code: str) -> Optional[str]:
        """
        Best stand-in for a code that does not exist in the nomenclature:
        'other' lines (…90/…99 or described as 'Other') first, then lines of
        the same HS6 subheading, then lowest code.
        """
        candidates = []
        for item in payload.get("included") or []:
            attrs = (item or {}).get("attributes") or {}
            if item.get("type") != "commodity" or attrs.get("declarable") is not True:
                continue
            item_code = str(attrs.get("goods_nomenclature_item_id") or "")
            if not item_code:
                continue
            desc = str(attrs.get("description") or "").strip().lower()
            is_other_code = 0 if item_code.endswith(("90", "99")) else 1
            is_other_desc = 0 if desc == "other" or desc.startswith("other ") else 1
            same_subheading = 0 if item_code.startswith(code[:6]) else 1
            candidates.append(((is_other_code, is_other_desc, same_subheading, item_code), item_code))
        if not candidates:
            return None
        return min(candidates)[1]

    # ---------------- Data ----------------

    def fetch_commodity(self, code: str, origin: str = ALL_ORIGINS) -> Optional[Dict[str, Any]]:
        params = {}
        if origin and origin != ALL_ORIGINS:
            params["filter[geographical_area_id]"] = origin
        return self._get_json(f"commodities/{code}", params)

    def _to_lookup(self, payload: Dict[str, Any], requested: str, matched: str, origin: str) -> Optional[CommodityLookup]:
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        attrs = data.get("attributes") or {}
        measures = self.parse_measures(payload, requested, origin)
        return CommodityLookup(
            requested_code=requested,
            matched_code=str(attrs.get("goods_nomenclature_item_id") or matched),
            description=attrs.get("description") or attrs.get("formatted_description"),
            measures=measures,
        )

    def lookup(self, code: str, origin: str = ALL_ORIGINS) -> Optional[CommodityLookup]:
        """
        Measures for the commodity line, falling back up the HS hierarchy.
        None when neither the line, its parents nor its heading exist.
        Upstream failures other than 404 propagate.
        """
        code = normalize(code)
        for candidate in parent_codes(code):
            payload = self.fetch_commodity(candidate, origin)
            if payload is None:
                continue
            found = self._to_lookup(payload, code, candidate, origin)
            if found is not None:
                if candidate != code:
                    logger.info("%s: %s not in nomenclature, using parent line %s", self.source, code, candidate)
                return found

        heading = self._get_json(f"headings/{heading_of(code)}")
        if not heading:
            return None
        suggested = self._best_declarable(heading, code)
        if not suggested:
            return None
        payload = self.fetch_commodity(suggested, origin)
        if payload is None:
            return None
        logger.info("%s: %s not in nomenclature, using declarable line %s of heading", self.source, code, suggested)
        return self._to_lookup(payload, code, suggested, origin)

    def check_health(self) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            self._get_json("chapters/01")
        except (UpstreamError, UpstreamTimeout, UpstreamParseError) as e:
            return {"available": False, "source": self.source, "error": str(e)}
        return {
            "available": True,
            "source": self.source,
            "response_time_ms": round((time.perf_counter() - started) * 1000),
        }

    # --- debug/diag ---

    def get_last_request_info(self) -> Optional[Tuple[str, Dict, Optional[int]]]:
        if self.last_request is None:
            return None
        url, params = self.last_request
        return (url, params, self.last_status)

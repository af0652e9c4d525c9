# application/rate_resolver.py
"""
Duty/VAT rate resolution behind a layered cache.

  1. in-memory TTL cache      (RateCache)
  2. local persisted store    (MeasureStore), only when prefer_cache
  3. remote tariff authority  (TradeTariffAdapter for the region)

When the authority fails, EU/XI lookups fall back to the bundled reference
rates (source "local_reference"). Those answers are never cached.

The first tier with a hit answers and populates every tier above it.
A remote answer is written through to tier 1, and to tier 2 only on persist.
The resolver is the only reader/writer of the cache.
"""
from __future__ import annotations
import logging
import threading
from abc import ABC, abstractmethod
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Union

import requests

from application.cache import RateCache
from core.config import Config
from core.errors import CacheWriteFailure, InvalidInput, UpstreamError, UpstreamParseError, UpstreamTimeout
from domain.measures import summarize_measures
from domain.models import ALL_ORIGINS, REGIONS, NotFound, RateResult
from domain.normalizer import normalize, normalize_origin
from domain.reference_rates import REFERENCE_REGIONS, REFERENCE_SOURCE, find_reference_rate
from integration.measure_store import MeasureStore
from integration.trade_tariff_adapter import TradeTariffAdapter

logger = logging.getLogger(__name__)

Resolution = Union[RateResult, NotFound]
RateKey = namedtuple("RateKey", ["code", "origin", "region", "source"])

_UPSTREAM_REASONS = {
    UpstreamTimeout: "upstream_timeout",
    UpstreamError: "upstream_error",
    UpstreamParseError: "upstream_parse_error",
}


@dataclass(frozen=True)
class ResolveOptions:
    prefer_cache: bool = True
    persist: bool = False


# ---------------- Tiers ----------------

class CacheTier(ABC):
    name: str = ""

    @abstractmethod
    def get(self, key: RateKey, options: ResolveOptions) -> Optional[RateResult]:
        pass

    @abstractmethod
    def set(self, key: RateKey, result: RateResult, options: ResolveOptions) -> None:
        pass


class MemoryTier(CacheTier):
    name = "memory"

    def __init__(self, cache: RateCache) -> None:
        self.cache = cache

    def get(self, key: RateKey, options: ResolveOptions) -> Optional[RateResult]:
        return self.cache.get(key)

    def set(self, key: RateKey, result: RateResult, options: ResolveOptions) -> None:
        self.cache.set(key, result)


class StoreTier(CacheTier):
    name = "store"

    def __init__(self, store: MeasureStore) -> None:
        self.store = store

    def get(self, key: RateKey, options: ResolveOptions) -> Optional[RateResult]:
        if not options.prefer_cache:
            return None
        result = self.store.load_cached_measure(key.code, key.origin, key.region)
        if result is not None and result.source != key.source:
            return None
        return result

    def set(self, key: RateKey, result: RateResult, options: ResolveOptions) -> None:
        if options.persist:
            self.store.save_measure(result)


# ---------------- Resolver ----------------

class RateResolver:
    def __init__(
        self,
        adapters: Optional[Mapping[str, TradeTariffAdapter]] = None,
        cache: Optional[RateCache] = None,
        store: Optional[MeasureStore] = None,
        max_concurrency: Optional[int] = None,
        default_vat_rates: Optional[Mapping[str, float]] = None,
        session: Optional[requests.Session] = None,
        reference_fallback: Optional[bool] = None,
    ) -> None:
        if adapters is None:
            session = session or requests.Session()
            adapters = {region: TradeTariffAdapter(region, session=session) for region in REGIONS}
        self.adapters: Dict[str, TradeTariffAdapter] = dict(adapters)
        self.cache = cache if cache is not None else RateCache()
        self.store = store
        self.max_concurrency = max_concurrency or Config.TARIFF_MAX_CONCURRENT_UPSTREAM
        self.default_vat_rates = dict(default_vat_rates or Config.default_vat_rates())
        self.reference_fallback = Config.TARIFF_REFERENCE_FALLBACK if reference_fallback is None else reference_fallback

        # caps in-flight upstream calls across concurrent batches
        self._upstream = threading.BoundedSemaphore(self.max_concurrency)

        self.tiers: List[CacheTier] = [MemoryTier(self.cache)]
        if store is not None:
            self.tiers.append(StoreTier(store))

    def _adapter(self, region: str) -> TradeTariffAdapter:
        region = (region or "").strip().lower()
        if region not in REGIONS:
            raise InvalidInput(f"Unknown tariff region {region!r}, expected one of {', '.join(REGIONS)}")
        adapter = self.adapters.get(region)
        if adapter is None:
            raise InvalidInput(f"No tariff authority configured for region {region!r}")
        return adapter

    def _write(self, tier: CacheTier, key: RateKey, result: RateResult, options: ResolveOptions) -> None:
        try:
            tier.set(key, result, options)
        except CacheWriteFailure as e:
            logger.warning("Cache tier %s not updated for %s: %s", tier.name, key, e)

    def _reference(self, code: str, origin: str, region: str) -> Optional[RateResult]:
        if not self.reference_fallback or region not in REFERENCE_REGIONS:
            return None
        match = find_reference_rate(code, origin)
        if match is None:
            return None
        return summarize_measures(
            match.measures,
            code=code,
            matched_code=match.matched_code,
            origin=origin,
            region=region,
            source=REFERENCE_SOURCE,
            description=match.description,
            default_vat_rate=self.default_vat_rates.get(region),
        )

    def resolve(
        self,
        code: Optional[str],
        origin_country: Optional[str] = ALL_ORIGINS,
        region: str = "eu",
        options: Optional[ResolveOptions] = None,
    ) -> Resolution:
        """
        Rate for one commodity code and origin.

        Raises InvalidInput for an unknown region or origin. Every other
        failure, upstream ones included, comes back as NotFound.
        """
        options = options or ResolveOptions()
        adapter = self._adapter(region)
        region = adapter.region
        origin = normalize_origin(origin_country)
        normalized = normalize(code)
        if not normalized or not normalized.strip("0"):
            return NotFound(code, origin, region, reason="invalid_code")

        key = RateKey(normalized, origin, region, adapter.source)
        for depth, tier in enumerate(self.tiers):
            hit = tier.get(key, options)
            if hit is None:
                continue
            logger.debug("Rate %s served from %s tier", key, tier.name)
            for upper in self.tiers[:depth]:
                self._write(upper, key, hit, options)
            return replace(hit, from_cache=True)

        try:
            with self._upstream:
                lookup = adapter.lookup(normalized, origin)
        except (UpstreamTimeout, UpstreamError, UpstreamParseError) as e:
            logger.warning("Rate lookup %s failed: %s", key, e)
            fallback = self._reference(normalized, origin, region)
            if fallback is not None:
                logger.info("Rate %s served from local reference rates", key)
                return fallback
            return NotFound(normalized, origin, region, reason=_UPSTREAM_REASONS[type(e)], error=str(e))

        if lookup is None:
            logger.info("%s: no commodity line for %s", adapter.source, normalized)
            return NotFound(normalized, origin, region, reason="unknown_code")
        if not lookup.measures:
            return NotFound(normalized, origin, region, reason="no_measure")

        result = summarize_measures(
            lookup.measures,
            code=normalized,
            matched_code=lookup.matched_code,
            origin=origin,
            region=region,
            source=adapter.source,
            description=lookup.description,
            default_vat_rate=self.default_vat_rates.get(region),
        )
        if result.duty_rate is None:
            return NotFound(normalized, origin, region, reason="no_measure")

        for tier in self.tiers:
            self._write(tier, key, result, options)
        return result

    def resolve_batch(
        self,
        codes: Iterable[str],
        origin_country: Optional[str] = ALL_ORIGINS,
        region: str = "eu",
        options: Optional[ResolveOptions] = None,
    ) -> Dict[str, Resolution]:
        """
        {input code: result} in input order. Codes are resolved independently
        on a bounded pool, so a failing or slow code only affects its own entry.
        """
        codes = list(codes)
        # fail fast on caller errors shared by every item
        self._adapter(region)
        origin = normalize_origin(origin_country)
        if not codes:
            return {}

        def _one(raw: str) -> Resolution:
            try:
                return self.resolve(raw, origin_country, region, options)
            except Exception as e:
                logger.exception("Batch item %r failed", raw)
                return NotFound(raw, origin, region, reason="error", error=str(e))

        with ThreadPoolExecutor(max_workers=min(self.max_concurrency, len(codes))) as executor:
            futures = [(raw, executor.submit(_one, raw)) for raw in codes]
            return {raw: future.result() for raw, future in futures}

    # ---------------- Cache admin ----------------

    def clear_cache(self) -> int:
        cleared = self.cache.clear()
        logger.info("Rate cache cleared (%d entries)", cleared)
        return cleared

    def get_cache_stats(self) -> Dict[str, int]:
        return self.cache.stats()

    def check_health(self, region: str = "eu") -> Dict:
        adapter = self._adapter(region)
        status = adapter.check_health()
        status["region"] = adapter.region
        status["cache"] = self.get_cache_stats()
        return status

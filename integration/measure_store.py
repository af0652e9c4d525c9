# integration/measure_store.py
"""
Local persisted store of resolved rate lookups.

Second cache tier of the rate resolver: consulted before the remote authority
when the caller prefers cached data, written only on explicit persist.
"""
from __future__ import annotations
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

from core.config import Config
from core.errors import CacheWriteFailure
from domain.models import RateResult

logger = logging.getLogger(__name__)


class MeasureStore(ABC):
    """Abstract base class for persisted measure stores."""

    @abstractmethod
    def save_measure(self, result: RateResult) -> None:
        """
        Persist a resolved lookup, replacing any previous one for the same
        (code, origin_country, region).

        Raises:
            CacheWriteFailure: If the result could not be stored
        """
        pass

    @abstractmethod
    def load_cached_measure(self, code: str, origin_country: str, region: str) -> Optional[RateResult]:
        """
        Previously persisted lookup.

        Returns:
            The stored RateResult, or None if nothing was persisted for the key
        """
        pass


class InMemoryMeasureStore(MeasureStore):
    """Dict-backed store, used by tests and short-lived tools."""

    def __init__(self) -> None:
        self._items: Dict[Tuple[str, str, str], RateResult] = {}

    def save_measure(self, result: RateResult) -> None:
        self._items[(result.code, result.origin_country, result.region)] = result

    def load_cached_measure(self, code: str, origin_country: str, region: str) -> Optional[RateResult]:
        return self._items.get((code, origin_country, region))

    def __len__(self) -> int:
        return len(self._items)


class JsonFileMeasureStore(MeasureStore):
    """
    One JSON document: {region: {code: {origin: RateResult dict}}}.
    Writes rewrite the whole file via a temp file and are serialized by a lock.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path or Config.MEASURE_STORE_PATH)
        self._lock = threading.Lock()

    def _read(self) -> Dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Measure store %s unreadable, ignoring: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load_cached_measure(self, code: str, origin_country: str, region: str) -> Optional[RateResult]:
        entry = self._read().get(region, {}).get(code, {}).get(origin_country)
        if not entry:
            return None
        try:
            return RateResult.from_dict(entry)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Skipping corrupt store entry %s/%s/%s: %s", region, code, origin_country, e)
            return None

    def save_measure(self, result: RateResult) -> None:
        with self._lock:
            data = self._read()
            data.setdefault(result.region, {}).setdefault(result.code, {})[result.origin_country] = result.to_dict()
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with tmp.open("w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                tmp.replace(self.path)
            except OSError as e:
                raise CacheWriteFailure(f"Could not write measure store {self.path}: {e}") from e

# tools/warm_tariff_cache.py
"""
Pre-loads the local measure store with rates for a list of commodity codes,
so later lookups with prefer_cache are answered without the tariff authority.

Input:
    - CSV or Excel (.xlsx/.xls) with a column of codes (default "hs_code")

Output:
    - data/tariffs/measure_cache.json (MEASURE_STORE_PATH)
    - summary printed to stdout; codes without a rate listed with their reason

Usage:
    python -m tools.warm_tariff_cache codes.xlsx --origin CN --region eu
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from application.rate_resolver import RateResolver, ResolveOptions
from core.config import Config
from domain.normalizer import normalize
from integration.measure_store import JsonFileMeasureStore

DEFAULT_COLUMN = "hs_code"


def read_codes(path: Path, column: str = DEFAULT_COLUMN) -> List[str]:
    """Distinct non-empty codes from the column, in file order."""
    if not path.exists():
        raise FileNotFoundError(f"Input file {path} does not exist")

    # dtype=str keeps leading zeros (chapters 01-09)
    if path.suffix.lower() in (".xlsx", ".xls"):
        df = pd.read_excel(path, dtype=str)
    else:
        df = pd.read_csv(path, dtype=str)

    if column not in df.columns:
        raise ValueError(f"Missing column {column!r}. Available columns: {list(df.columns)}")

    codes = df[column].dropna().astype(str).str.strip()
    codes = codes[codes != ""]
    return list(dict.fromkeys(codes))


def warm(
    codes: Sequence[str],
    origin: str,
    region: str,
    resolver: RateResolver,
) -> Dict:
    results = resolver.resolve_batch(codes, origin, region, ResolveOptions(prefer_cache=True, persist=True))
    missing = {raw: r.reason for raw, r in results.items() if not r.found}
    return {
        "total": len(results),
        "resolved": len(results) - len(missing),
        "from_cache": sum(1 for r in results.values() if r.found and r.from_cache),
        "missing": missing,
    }


def main(argv: Optional[Sequence[str]] = None, resolver: Optional[RateResolver] = None) -> int:
    parser = argparse.ArgumentParser(description="Warm the local tariff measure store")
    parser.add_argument("input", type=Path, help="CSV/XLSX file with commodity codes")
    parser.add_argument("--column", default=DEFAULT_COLUMN)
    parser.add_argument("--origin", default="ALL", help="ISO2/ISO3 origin country")
    parser.add_argument("--region", default="eu", choices=["eu", "uk", "xi"])
    parser.add_argument("--store", default=Config.MEASURE_STORE_PATH, help="measure store JSON path")
    args = parser.parse_args(argv)

    print(f"[INFO] Reading codes from: {args.input}")
    codes = read_codes(args.input, args.column)
    print(f"[INFO] Distinct codes: {len(codes)}")
    if not codes:
        return 0

    if resolver is None:
        resolver = RateResolver(store=JsonFileMeasureStore(args.store))

    summary = warm(codes, args.origin, args.region, resolver)
    print(
        f"[INFO] Resolved {summary['resolved']}/{summary['total']} "
        f"({summary['from_cache']} already cached) for origin={args.origin} region={args.region}"
    )
    for raw, reason in summary["missing"].items():
        print(f"[WARN] {raw} ({normalize(raw)}): {reason}")

    return 0 if not summary["missing"] else 1


if __name__ == "__main__":
    raise SystemExit(main())

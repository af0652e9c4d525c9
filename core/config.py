# core/config.py
import os

from dotenv import load_dotenv

# .env for local development; .env.local only fills values that are still missing
load_dotenv()
load_dotenv(dotenv_path=".env.local", override=False)


class Config:
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Trade Tariff API (UK service); XI = Northern Ireland, follows EU TARIC rules
    UK_TARIFF_API_BASE = os.environ.get(
        "UK_TARIFF_API_BASE", "https://www.trade-tariff.service.gov.uk/api/v2"
    )
    XI_TARIFF_API_BASE = os.environ.get(
        "XI_TARIFF_API_BASE", "https://www.trade-tariff.service.gov.uk/xi/api/v2"
    )
    # EU TARIC realtime lookups go through the XI mirror unless a dedicated endpoint is set
    EU_TARIC_API_BASE = os.environ.get("EU_TARIC_API_BASE", XI_TARIFF_API_BASE)

    TARIFF_API_TIMEOUT = float(os.environ.get("TARIFF_API_TIMEOUT", "30"))
    TARIFF_API_USER_AGENT = os.environ.get("TARIFF_API_USER_AGENT", "taric-landed-cost/0.1")
    TARIFF_MAX_CONCURRENT_UPSTREAM = int(os.environ.get("TARIFF_MAX_CONCURRENT_UPSTREAM", "5"))

    # Cache + local store of resolved lookups
    RATE_CACHE_TTL_SECONDS = int(os.environ.get("RATE_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
    MEASURE_STORE_PATH = os.environ.get("MEASURE_STORE_PATH", "data/tariffs/measure_cache.json")
    # bundled reference rates answer EU/XI lookups while the authority is down
    TARIFF_REFERENCE_FALLBACK = os.environ.get("TARIFF_REFERENCE_FALLBACK", "true").lower() in ("1", "true", "yes")

    # VAT used when the authority publishes no VAT measure for a commodity
    DEFAULT_VAT_RATE_EU = float(os.environ.get("DEFAULT_VAT_RATE_EU", "19"))
    DEFAULT_VAT_RATE_UK = float(os.environ.get("DEFAULT_VAT_RATE_UK", "20"))

    @classmethod
    def default_vat_rates(cls):
        return {
            "eu": cls.DEFAULT_VAT_RATE_EU,
            "xi": cls.DEFAULT_VAT_RATE_UK,
            "uk": cls.DEFAULT_VAT_RATE_UK,
        }

    @classmethod
    def api_bases(cls):
        return {
            "eu": cls.EU_TARIC_API_BASE,
            "uk": cls.UK_TARIFF_API_BASE,
            "xi": cls.XI_TARIFF_API_BASE,
        }

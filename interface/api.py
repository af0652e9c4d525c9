# interface/api.py
import logging

from flask import Blueprint, current_app, jsonify, request

from application.landed_cost_service import LandedCostService
from application.rate_resolver import ResolveOptions
from core.errors import InvalidInput
from domain.models import ALL_ORIGINS
from domain.normalizer import normalize

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

EXTENSION_KEY = "tariff_engine"


def _service() -> LandedCostService:
    service = current_app.extensions.get(EXTENSION_KEY)
    if service is None:
        service = LandedCostService()
        current_app.extensions[EXTENSION_KEY] = service
    return service


def _flag(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _options(source) -> ResolveOptions:
    return ResolveOptions(
        prefer_cache=_flag(source.get("prefer_cache"), True),
        persist=_flag(source.get("persist"), False),
    )


@api_bp.errorhandler(InvalidInput)
def handle_invalid_input(e):
    logger.info("Rejected %s %s: %s", request.method, request.path, e)
    return jsonify({"error": str(e)}), 400


@api_bp.route("/tariff/normalize")
def normalize_code():
    """
    Query:
      ?code=8471.30 (any separators)
    """
    raw = request.args.get("code")
    if not raw:
        return jsonify({"error": "Missing 'code' parameter"}), 400
    return jsonify({"input": raw, "code": normalize(raw)})


@api_bp.route("/tariff/lookup/<code>")
def lookup_rate(code):
    """
    Duty/VAT rate for one commodity code.

    Query:
      ?origin=CN (ISO2/ISO3, default ALL)
      ?region=eu|uk|xi (default eu)
      ?prefer_cache=true ?persist=false
    """
    payload = _service().lookup_payload(
        code,
        origin_country=request.args.get("origin") or ALL_ORIGINS,
        region=request.args.get("region", "eu"),
        options=_options(request.args),
    )
    if not payload.get("found"):
        return jsonify(payload), 404
    return jsonify(payload)


@api_bp.route("/tariff/batch", methods=["POST"])
def lookup_batch():
    """
    Body JSON:
      - codes (list of codes) [required]
      - origin_country, region, prefer_cache, persist (optional)
    """
    body = request.get_json(silent=True) or {}
    codes = body.get("codes")
    if not isinstance(codes, list) or not codes:
        return jsonify({"error": "Provide 'codes' as a non-empty list"}), 400

    return jsonify(_service().batch_payload(
        [str(c) for c in codes],
        origin_country=body.get("origin_country") or ALL_ORIGINS,
        region=body.get("region") or "eu",
        options=_options(body),
    ))


@api_bp.route("/landed-cost", methods=["POST"])
def landed_cost():
    """
    Body JSON:
      - customs_value, currency, incoterm [required]
      - hs_code + origin_country + region, or duty_rate_percent + vat_rate_percent
      - freight_cost, insurance_cost, post_border_costs (optional)
      - prefer_cache, persist (optional)
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    payload = _service().quote_payload(body, options=_options(body))
    if not payload.get("found"):
        return jsonify(payload), 404
    return jsonify(payload)


@api_bp.route("/incoterms")
def list_incoterms():
    return jsonify({"incoterms": _service().incoterms()})


@api_bp.route("/tariff/cache/stats")
def cache_stats():
    return jsonify(_service().cache_stats())


@api_bp.route("/tariff/cache", methods=["DELETE"])
def clear_cache():
    return jsonify(_service().clear_cache())


@api_bp.route("/tariff/health")
def health():
    status = _service().health(request.args.get("region", "eu"))
    return jsonify(status), (200 if status.get("available") else 503)

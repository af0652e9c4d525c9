"""
Tests for the /api blueprint (Flask test client)
"""

import pytest

from core.errors import UpstreamError
from domain.models import MeasureType


class TestNormalizeEndpoint:
    def test_normalize(self, client):
        resp = client.get("/api/tariff/normalize?code=8471.30")
        assert resp.status_code == 200
        assert resp.get_json() == {"input": "8471.30", "code": "8471300000"}

    def test_missing_code(self, client):
        assert client.get("/api/tariff/normalize").status_code == 400


class TestLookupEndpoint:
    def test_found(self, client, eu_adapter, lookup, measure):
        eu_adapter.lookup.return_value = lookup(measures=[
            measure(percent=12.0),
            measure(MeasureType.PREFERENTIAL, 0.0, origin="CH", area="CH", area_description="Switzerland"),
        ])
        resp = client.get("/api/tariff/lookup/8471300000?origin=CH&region=eu")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["duty_rate"] == 0.0
        assert data["origin_country"] == "CH"
        assert data["applied_agreement"]["agreement_code"] == "CH"

    def test_not_found(self, client, eu_adapter):
        eu_adapter.lookup.side_effect = UpstreamError("https://tariff.example", 503)
        resp = client.get("/api/tariff/lookup/8471300000")
        assert resp.status_code == 404
        assert resp.get_json()["reason"] == "upstream_error"

    def test_unknown_region_is_400(self, client):
        resp = client.get("/api/tariff/lookup/8471300000?region=us")
        assert resp.status_code == 400
        assert "region" in resp.get_json()["error"]

    def test_unknown_origin_is_400(self, client):
        assert client.get("/api/tariff/lookup/8471300000?origin=ZZ").status_code == 400

    def test_persist_flag_parsed(self, client, store):
        client.get("/api/tariff/lookup/8471300000?persist=true")
        assert len(store) == 1


class TestBatchEndpoint:
    def test_batch(self, client, eu_adapter, lookup):
        eu_adapter.lookup.side_effect = lambda code, origin: None if code.startswith("99") else lookup(code=code)
        resp = client.post("/api/tariff/batch", json={"codes": ["8471", "9999"], "region": "eu"})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["found"] == 1
        assert data["results"][1]["reason"] == "unknown_code"

    def test_codes_required(self, client):
        assert client.post("/api/tariff/batch", json={"codes": []}).status_code == 400
        assert client.post("/api/tariff/batch", json={}).status_code == 400


class TestLandedCostEndpoint:
    def test_explicit_rates(self, client):
        resp = client.post("/api/landed-cost", json={
            "customs_value": 1000, "currency": "EUR", "incoterm": "FOB",
            "freight_cost": 100, "insurance_cost": 20,
            "duty_rate_percent": 5, "vat_rate_percent": 20,
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["customs_value"] == 1120.0
        assert data["duty_amount"] == 56.0
        assert data["vat_amount"] == 235.2
        assert data["total_payable"] == 291.2

    def test_resolved_rates(self, client, eu_adapter, lookup, measure):
        eu_adapter.lookup.return_value = lookup(measures=[measure(percent=10.0)])
        resp = client.post("/api/landed-cost", json={
            "hs_code": "8471.30", "origin_country": "US", "customs_value": 500,
            "currency": "EUR", "incoterm": "CIF",
        })
        data = resp.get_json()
        assert resp.status_code == 200
        assert data["hs_code"] == "8471300000"
        assert data["duty_amount"] == 50.0
        assert data["applied_vat_rate"] == 19.0
        assert data["rate"]["source"] == "eu_taric"

    @pytest.mark.parametrize("flags", [{"persist": "false"}, {"persist": "0", "prefer_cache": "no"}])
    def test_string_false_flags_do_not_persist(self, client, store, flags):
        body = {"hs_code": "8471300000", "customs_value": 500, "currency": "EUR", "incoterm": "CIF"}
        body.update(flags)
        resp = client.post("/api/landed-cost", json=body)
        assert resp.status_code == 200
        assert len(store) == 0

    def test_persist_flag_honoured(self, client, store):
        resp = client.post("/api/landed-cost", json={
            "hs_code": "8471300000", "customs_value": 500, "currency": "EUR",
            "incoterm": "CIF", "persist": "true",
        })
        assert resp.status_code == 200
        assert len(store) == 1

    def test_negative_value_is_400(self, client):
        resp = client.post("/api/landed-cost", json={
            "customs_value": -1, "currency": "EUR", "incoterm": "FOB",
            "duty_rate_percent": 5, "vat_rate_percent": 20,
        })
        assert resp.status_code == 400

    def test_unknown_incoterm_is_400(self, client):
        resp = client.post("/api/landed-cost", json={
            "customs_value": 100, "currency": "EUR", "incoterm": "ABC",
            "duty_rate_percent": 5, "vat_rate_percent": 20,
        })
        assert resp.status_code == 400

    def test_rate_not_found_is_404(self, client, eu_adapter):
        eu_adapter.lookup.return_value = None
        resp = client.post("/api/landed-cost", json={
            "hs_code": "9999", "customs_value": 100, "currency": "EUR", "incoterm": "CIF",
        })
        assert resp.status_code == 404
        assert resp.get_json()["reason"] == "unknown_code"

    def test_body_required(self, client):
        assert client.post("/api/landed-cost", data="nope").status_code == 400


class TestReferenceAndAdmin:
    def test_incoterms(self, client):
        data = client.get("/api/incoterms").get_json()
        assert len(data["incoterms"]) == 12

    def test_cache_stats_and_clear(self, client):
        client.get("/api/tariff/lookup/8471300000")
        assert client.get("/api/tariff/cache/stats").get_json()["valid_count"] == 1
        assert client.delete("/api/tariff/cache").get_json() == {"cleared": 1}
        assert client.get("/api/tariff/cache/stats").get_json()["total_count"] == 0

    def test_health(self, client, eu_adapter):
        eu_adapter.check_health.return_value = {"available": True, "source": "eu_taric", "response_time_ms": 3}
        resp = client.get("/api/tariff/health?region=eu")
        assert resp.status_code == 200
        assert resp.get_json()["region"] == "eu"

    def test_health_unavailable(self, client, eu_adapter):
        eu_adapter.check_health.return_value = {"available": False, "source": "eu_taric", "error": "HTTP 502"}
        assert client.get("/api/tariff/health").status_code == 503

"""
Tests for the landed-cost service (resolve -> agreements -> calculate)
"""

from decimal import Decimal

import pytest

from core.errors import InvalidInput, UpstreamTimeout
from domain.models import AgreementType, MeasureType


@pytest.fixture
def gsp_lookup(lookup, measure):
    return lookup(measures=[
        measure(percent=12.0),
        measure(
            MeasureType.PREFERENTIAL, 3.5, origin="IN", area="2020",
            area_description="GSP (R 12/978) - General arrangements",
        ),
        measure(MeasureType.VAT, 19.0),
    ])


class TestQuote:
    def test_resolved_rate_and_applied_agreement(self, service, eu_adapter, gsp_lookup):
        eu_adapter.lookup.return_value = gsp_lookup
        quote = service.quote(customs_value=1000, currency="EUR", incoterm="CIF", code="8471.30", origin_country="IN")

        assert quote.found
        landed = quote.landed_cost
        assert landed.applied_duty_rate == Decimal("3.5")
        assert landed.duty_amount == Decimal("35.00")
        assert landed.vat_base == Decimal("1035.00")
        assert landed.vat_amount == Decimal("196.65")
        assert landed.total_payable == Decimal("231.65")
        assert landed.applied_agreement.agreement_type == AgreementType.GSP
        assert [a.agreement_code for a in quote.agreements] == ["2020"]

    def test_third_country_rate_has_no_agreement(self, service, eu_adapter, gsp_lookup):
        eu_adapter.lookup.return_value = gsp_lookup
        quote = service.quote(customs_value=1000, currency="EUR", incoterm="CIF", code="8471.30", origin_country="US")
        assert quote.landed_cost.applied_duty_rate == Decimal("12.0")
        assert quote.landed_cost.applied_agreement is None

    def test_anti_dumping_included(self, service, eu_adapter, lookup, measure):
        eu_adapter.lookup.return_value = lookup(measures=[
            measure(percent=5.0),
            measure(MeasureType.ANTI_DUMPING, 20.0, origin="CN", area="CN"),
        ])
        landed = service.quote(customs_value=1000, currency="EUR", incoterm="CIF", code="7318", origin_country="CN").landed_cost
        assert landed.anti_dumping_amount == Decimal("200.00")
        assert landed.vat_base == Decimal("1250.00")

    def test_explicit_rates_skip_resolution(self, service, eu_adapter):
        quote = service.quote(
            customs_value=1000, currency="EUR", incoterm="FOB", code="8471",
            freight_cost=100, insurance_cost=20, duty_rate_percent=5, vat_rate_percent=20,
        )
        assert quote.landed_cost.total_payable == Decimal("291.20")
        assert quote.rate is None
        assert eu_adapter.lookup.call_count == 0

    def test_missing_rate_is_not_found(self, service, eu_adapter):
        eu_adapter.lookup.side_effect = UpstreamTimeout("https://tariff.example", 30)
        quote = service.quote(customs_value=1000, currency="EUR", incoterm="CIF", code="8471")
        assert not quote.found
        assert quote.rate.reason == "upstream_timeout"

    def test_no_code_and_no_rate_is_invalid(self, service):
        with pytest.raises(InvalidInput):
            service.quote(customs_value=1000, currency="EUR", incoterm="CIF")


class TestPayloads:
    def test_lookup_payload(self, service, eu_adapter, gsp_lookup):
        eu_adapter.lookup.return_value = gsp_lookup
        payload = service.lookup_payload("8471300000", "IN", "eu")
        assert payload["found"] is True
        assert payload["duty_rate"] == 3.5
        assert payload["vat_rate"] == 19.0
        assert payload["applied_agreement"]["agreement_type"] == "GSP"
        assert payload["agreements"][0]["agreement_code"] == "2020"

    def test_lookup_payload_not_found(self, service, eu_adapter):
        eu_adapter.lookup.return_value = None
        payload = service.lookup_payload("9999999999", "ALL", "eu")
        assert payload["found"] is False
        assert payload["reason"] == "unknown_code"

    def test_batch_payload(self, service, eu_adapter, lookup):
        eu_adapter.lookup.side_effect = lambda code, origin: None if code.startswith("99") else lookup(code=code)
        payload = service.batch_payload(["8471", "9999", "0901"], "ALL", "eu")
        assert payload["total"] == 3
        assert payload["found"] == 2
        assert payload["not_found"] == 1
        assert [r["input"] for r in payload["results"]] == ["8471", "9999", "0901"]

    def test_quote_payload(self, service):
        payload = service.quote_payload({
            "customs_value": 1000, "currency": "eur", "incoterm": "FOB",
            "freight_cost": 100, "insurance_cost": 20,
            "duty_rate_percent": 5, "vat_rate_percent": 20,
        })
        assert payload["found"] is True
        assert payload["currency"] == "EUR"
        assert payload["total_payable"] == 291.2
        assert payload["rate"] is None

    def test_admin_passthroughs(self, service, eu_adapter):
        service.lookup_payload("8471300000")
        assert service.cache_stats()["valid_count"] == 1
        assert service.clear_cache() == {"cleared": 1}
        assert len(service.incoterms()) == 12

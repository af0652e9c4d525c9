"""
Tests for trade agreement extraction from preferential measures
"""

from datetime import date

from domain.agreements import classify_agreement, extract_agreements, find_agreement
from domain.models import AgreementType, MeasureType


def _preference(measure, area, area_description, origin="ALL", percent=0.0, type_description="Tariff preference"):
    return measure(
        MeasureType.PREFERENTIAL, percent, origin=origin, area=area,
        area_description=area_description, type_description=type_description,
    )


class TestClassifyAgreement:
    def test_gsp(self, measure):
        m = _preference(measure, "2020", "GSP (R 12/978) - General arrangements")
        assert classify_agreement(m)[0] == AgreementType.GSP

    def test_gsp_plus_before_gsp(self, measure):
        m = _preference(measure, "2027", "GSP+ (incentive arrangement for sustainable development)")
        assert classify_agreement(m)[0] == AgreementType.GSP_PLUS

    def test_eba(self, measure):
        m = _preference(measure, "2032", "Everything But Arms (EBA)")
        assert classify_agreement(m) == (AgreementType.EBA, "Everything But Arms")

    def test_epa(self, measure):
        m = _preference(measure, "1034", "Economic Partnership Agreements (EPA) - Cariforum")
        assert classify_agreement(m)[0] == AgreementType.EPA

    def test_fta(self, measure):
        m = _preference(measure, "CA", "Canada (CETA free trade agreement)", origin="CA")
        assert classify_agreement(m)[0] == AgreementType.FTA

    def test_customs_union_from_measure_type(self, measure):
        m = _preference(measure, "TR", "Türkiye", origin="TR", type_description="Customs Union Duty")
        assert classify_agreement(m)[0] == AgreementType.CUSTOMS_UNION

    def test_country_names_do_not_match_inside_words(self, measure):
        # Lebanon contains "EBA", Nepal "EPA", Ecuador "CU"
        for area, name in (("LB", "Lebanon"), ("NP", "Nepal"), ("EC", "Ecuador")):
            m = _preference(measure, area, name, origin=area)
            assert classify_agreement(m) == (AgreementType.OTHER, f"Preferential Rate - {area}")


class TestExtractAgreements:
    def test_erga_omnes_skipped(self, measure):
        agreements = extract_agreements([
            measure(percent=12.0),
            _preference(measure, "2020", "GSP (R 12/978) - General arrangements", origin="CN", percent=3.5),
        ])
        assert [a.agreement_code for a in agreements] == ["2020"]

    def test_unknown_area_kept_as_other(self, measure):
        agreements = extract_agreements([_preference(measure, "CH", "Switzerland", origin="CH")])
        assert len(agreements) == 1
        assert agreements[0].agreement_type == AgreementType.OTHER
        assert agreements[0].agreement_name == "Preferential Rate - CH"
        assert agreements[0].country_code == "CH"

    def test_first_occurrence_wins(self, measure):
        first = measure(
            MeasureType.PREFERENTIAL, 0.0, origin="CH", area="CH",
            valid_from=date(2021, 1, 1), area_description="Switzerland",
        )
        second = measure(MeasureType.PREFERENTIAL, 2.0, origin="CH", area="CH", valid_from=date(2023, 1, 1))
        agreements = extract_agreements([first, second])
        assert len(agreements) == 1
        assert agreements[0].preferential_rate == 0.0
        assert agreements[0].valid_from == date(2021, 1, 1)

    def test_source_order_kept(self, measure):
        agreements = extract_agreements([
            _preference(measure, "TR", "Türkiye", origin="TR", type_description="Customs Union Duty"),
            _preference(measure, "2020", "GSP (R 12/978) - General arrangements"),
            _preference(measure, "CH", "Switzerland", origin="CH"),
        ])
        assert [a.agreement_code for a in agreements] == ["TR", "2020", "CH"]

    def test_measures_without_area_skipped(self, measure):
        assert extract_agreements([measure(percent=1.0, area="")]) == []

    def test_group_area_has_no_country(self, measure):
        agreements = extract_agreements([_preference(measure, "2020", "GSP (R 12/978) - General arrangements")])
        assert agreements[0].country_code is None


class TestFindAgreement:
    def test_found(self, measure):
        agreements = extract_agreements([_preference(measure, "CH", "Switzerland", origin="CH")])
        assert find_agreement(agreements, "CH") is agreements[0]

    def test_missing(self):
        assert find_agreement([], "CH") is None
        assert find_agreement([], None) is None

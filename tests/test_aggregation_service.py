"""
tests/test_aggregation_service.py

Unit tests for AggregationService. Pure in-memory content, no database.

Coverage
--------
- Provider code taken from the first FURIPS1 line, cut to 10 characters
- Invoice counts, frequency tables, percentages and ordering
- FURIPS2 value totals with unparsable and out-of-range amounts
- FURTRAN totals
- Order independence
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.services.aggregation_service import AggregationService, extract_habilitacion_code
from tests.builders import furips1_line, furips2_line, furtran_line, join_lines


@pytest.fixture()
def svc() -> AggregationService:
    return AggregationService()


# ---------------------------------------------------------------------------
# FURIPS1
# ---------------------------------------------------------------------------


class TestFurips1:
    def test_provider_code_is_cut_from_first_line(self, svc: AggregationService) -> None:
        content = join_lines(
            [
                furips1_line(code="1234567890EXTRA"),
                furips1_line(code="9999999999"),
            ]
        )

        result = svc.aggregate_furips1(content)

        assert result.habilitacion_code == "1234567890"

    def test_invoice_count_and_split(self, svc: AggregationService) -> None:
        content = join_lines(
            [
                furips1_line(estado="1", condicion="2"),
                furips1_line(estado="1", condicion="2"),
                furips1_line(estado="2", condicion="3"),
            ]
        )

        result = svc.aggregate_furips1(content)

        assert result.invoice_count == 3
        assert [(e.code, e.count, e.percentage) for e in result.insurance_status] == [
            ("1", 2, 66.67),
            ("2", 1, 33.33),
        ]
        assert result.insurance_status[0].label == "Asegurado"
        assert [e.label for e in result.victim_condition] == ["Peatón", "Ocupante"]

    def test_ties_are_ordered_by_code(self, svc: AggregationService) -> None:
        content = join_lines([furips1_line(estado="3"), furips1_line(estado="1")])

        result = svc.aggregate_furips1(content)

        assert [e.code for e in result.insurance_status] == ["1", "3"]

    def test_blank_codes_are_excluded_from_tables(self, svc: AggregationService) -> None:
        content = join_lines([furips1_line(estado=""), furips1_line(estado="1")])

        result = svc.aggregate_furips1(content)

        assert result.invoice_count == 2
        assert [(e.code, e.count, e.percentage) for e in result.insurance_status] == [("1", 1, 50.0)]

    def test_empty_file(self, svc: AggregationService) -> None:
        result = svc.aggregate_furips1("")

        assert result.invoice_count == 0
        assert result.habilitacion_code == ""
        assert result.insurance_status == []


# ---------------------------------------------------------------------------
# FURIPS2
# ---------------------------------------------------------------------------


class TestFurips2:
    def test_totals_and_value_ordering(self, svc: AggregationService) -> None:
        content = join_lines(
            [
                furips2_line(tipo="1", amount="100.50"),
                furips2_line(tipo="2", amount="300"),
                furips2_line(tipo="1", amount="99.50"),
            ]
        )

        result = svc.aggregate_furips2(content)

        assert result.item_count == 3
        assert result.total_value == Decimal("500.00")
        assert [(e.code, e.count, e.monetary_total) for e in result.service_type] == [
            ("2", 1, Decimal("300")),
            ("1", 2, Decimal("200.00")),
        ]
        assert [e.percentage for e in result.service_type] == [60.0, 40.0]

    def test_non_numeric_amounts_count_as_zero(self, svc: AggregationService) -> None:
        content = join_lines(
            [
                furips2_line(tipo="1", amount="abc"),
                furips2_line(tipo="1", amount=""),
                furips2_line(tipo="5", amount="40"),
            ]
        )

        result = svc.aggregate_furips2(content)

        assert result.item_count == 3
        assert result.total_value == Decimal("40")
        assert [(e.code, e.count) for e in result.service_type] == [("5", 1), ("1", 2)]

    def test_extreme_amounts_count_as_zero(self, svc: AggregationService) -> None:
        content = join_lines(
            [
                furips2_line(tipo="1", amount="1e999999999"),
                furips2_line(tipo="1", amount="-1E+999999"),
                furips2_line(tipo="2", amount="10000000000000"),
                furips2_line(tipo="2", amount="5"),
            ]
        )

        result = svc.aggregate_furips2(content)

        assert result.item_count == 4
        assert result.total_value == Decimal("5")
        assert [(e.code, e.monetary_total) for e in result.service_type] == [
            ("2", Decimal("5")),
            ("1", Decimal("0")),
        ]

    def test_unknown_service_code_gets_fallback_label(self, svc: AggregationService) -> None:
        result = svc.aggregate_furips2(join_lines([furips2_line(tipo="9", amount="10")]))

        assert result.service_type[0].label == "Código 9"
        assert result.service_type[0].percentage == 100.0

    def test_zero_total_gives_zero_percentages(self, svc: AggregationService) -> None:
        result = svc.aggregate_furips2(join_lines([furips2_line(tipo="1", amount="0")]))

        assert result.service_type[0].percentage == 0.0

    def test_percentages_sum_to_about_100(self, svc: AggregationService) -> None:
        content = join_lines(
            [furips2_line(tipo=str(code), amount=str(code * 7)) for code in range(1, 9)]
        )

        result = svc.aggregate_furips2(content)

        assert sum(e.percentage for e in result.service_type) == pytest.approx(100.0, abs=0.05)

    def test_result_does_not_depend_on_line_order(self, svc: AggregationService) -> None:
        lines = [
            furips2_line(tipo="1", amount="10"),
            furips2_line(tipo="2", amount="25"),
            furips2_line(tipo="3", amount="5"),
        ]

        forward = svc.aggregate_furips2(join_lines(lines))
        backward = svc.aggregate_furips2(join_lines(list(reversed(lines))))

        assert forward == backward


# ---------------------------------------------------------------------------
# FURTRAN
# ---------------------------------------------------------------------------


class TestFurtran:
    def test_counts_and_totals(self, svc: AggregationService) -> None:
        content = join_lines(
            [
                furtran_line(code="1234567890XYZ", amount="50"),
                furtran_line(amount="25.25"),
                furtran_line(amount="n/a"),
            ]
        )

        result = svc.aggregate_furtran(content)

        assert result.habilitacion_code == "1234567890"
        assert result.record_count == 3
        assert result.total_value == Decimal("75.25")

    def test_extreme_amount_is_ignored(self, svc: AggregationService) -> None:
        content = join_lines([furtran_line(amount="9e999999999"), furtran_line(amount="12")])

        result = svc.aggregate_furtran(content)

        assert result.record_count == 2
        assert result.total_value == Decimal("12")


def test_extract_habilitacion_code_keeps_short_values() -> None:
    assert extract_habilitacion_code("12345") == "12345"

"""
Parsing helper tests: numeric values, dates, reference ranges,
abnormal flags, confidence mapping and JSON recovery from LLM output.
"""
from datetime import datetime

import pytest

from pixelpharm.utils.parsing import (
    confidence_to_score,
    extract_json_block,
    is_abnormal,
    parse_numeric_value,
    parse_reference_range,
    parse_test_date,
)


class TestParseNumericValue:
    """Values coming out of OCR are messy strings."""

    def test_plain_numbers(self):
        assert parse_numeric_value(95) == 95.0
        assert parse_numeric_value(5.4) == 5.4

    def test_strips_units(self):
        assert parse_numeric_value("5.4 mmol/L") == 5.4
        assert parse_numeric_value(" 120mg/dL ") == 120.0

    def test_rejects_unparseable(self):
        assert parse_numeric_value("N/A") is None
        assert parse_numeric_value("") is None
        assert parse_numeric_value(None) is None

    def test_rejects_booleans(self):
        assert parse_numeric_value(True) is None

    def test_rejects_negative_and_huge(self):
        assert parse_numeric_value(-1) is None
        assert parse_numeric_value("-3.2") is None
        assert parse_numeric_value(1000000) is None

    def test_rejects_nan_and_inf(self):
        assert parse_numeric_value(float("nan")) is None
        assert parse_numeric_value(float("inf")) is None

    def test_bounds_are_inclusive(self):
        assert parse_numeric_value(0) == 0.0
        assert parse_numeric_value(999999) == 999999.0


class TestParseTestDate:
    """Lab dates are day-first unless clearly year-first."""

    def test_day_first(self):
        assert parse_test_date("15/03/2024") == datetime(2024, 3, 15)

    def test_day_first_two_digit_year(self):
        assert parse_test_date("01/02/24") == datetime(2024, 2, 1)

    def test_iso_date(self):
        assert parse_test_date("2024-03-15") == datetime(2024, 3, 15)

    def test_iso_timestamp_drops_timezone(self):
        parsed = parse_test_date("2024-07-25T09:30:00Z")
        assert parsed == datetime(2024, 7, 25, 9, 30)
        assert parsed.tzinfo is None

    def test_month_name_formats(self):
        assert parse_test_date("March 5, 2024") == datetime(2024, 3, 5)
        assert parse_test_date("5 Mar 2024") == datetime(2024, 3, 5)

    def test_embedded_in_text(self):
        assert parse_test_date("Collected 03/11/2023 08:15") == datetime(2023, 11, 3)

    def test_fallback_to_default(self):
        default = datetime(2020, 1, 1)
        assert parse_test_date("not a date", default=default) == default
        assert parse_test_date(None, default=default) == default

    def test_invalid_day_month_falls_back(self):
        default = datetime(2020, 1, 1)
        assert parse_test_date("45/45/2024", default=default) == default


class TestParseReferenceRange:
    def test_dash_range(self):
        assert parse_reference_range("70-100") == (70.0, 100.0)
        assert parse_reference_range("3.5 – 5.1") == (3.5, 5.1)

    def test_to_range(self):
        assert parse_reference_range("0.4 to 4.0") == (0.4, 4.0)

    def test_upper_bound(self):
        assert parse_reference_range("< 200") == (None, 200.0)
        assert parse_reference_range("up to 5") == (None, 5.0)

    def test_lower_bound(self):
        assert parse_reference_range("> 40") == (40.0, None)

    def test_empty(self):
        assert parse_reference_range(None) == (None, None)
        assert parse_reference_range("see comment") == (None, None)


class TestIsAbnormal:
    """Explicit status wins; otherwise the reference range decides."""

    @pytest.mark.parametrize("status", ["high", "LOW", "critical", "H", "l", "Abnormal"])
    def test_abnormal_statuses(self, status):
        assert is_abnormal(status) is True

    def test_normal_status_overrides_range(self):
        assert is_abnormal("normal", 150, "70-100") is False

    def test_range_without_status(self):
        assert is_abnormal(None, 150, "70-100") is True
        assert is_abnormal(None, 85, "70-100") is False
        assert is_abnormal("", 30, "> 40") is True

    def test_no_information(self):
        assert is_abnormal(None, 85) is False
        assert is_abnormal(None, "n/a", "70-100") is False


class TestConfidenceToScore:
    def test_labels(self):
        assert confidence_to_score("high") == 0.95
        assert confidence_to_score("Medium") == 0.75
        assert confidence_to_score("low") == 0.5

    def test_numbers_are_clamped(self):
        assert confidence_to_score(0.42) == 0.42
        assert confidence_to_score(3) == 1.0
        assert confidence_to_score(-1) == 0.0

    def test_missing(self):
        assert confidence_to_score(None) == 0.5


class TestExtractJsonBlock:
    def test_fenced_json(self):
        text = 'Here you go:\n```json\n{"biomarkers": []}\n```'
        assert extract_json_block(text) == {"biomarkers": []}

    def test_prose_around_object(self):
        text = 'Sure. {"healthScore": 80, "riskLevel": "LOW"} Hope this helps.'
        assert extract_json_block(text)["healthScore"] == 80

    def test_no_object(self):
        with pytest.raises(ValueError):
            extract_json_block("I could not read the document.")

    def test_array_is_not_accepted(self):
        with pytest.raises(ValueError):
            extract_json_block("[1, 2, 3]")

"""
Tests for quota parsing and estimation.
"""

import pytest
from datetime import datetime

from serptrack.keys.quota import (
    QuotaTier,
    estimate_remaining,
    extract_remaining,
    month_start,
    parse_numeric_like,
)


class TestParseNumericLike:
    """Test parse_numeric_like()."""

    @pytest.mark.parametrize("value,expected", [
        (42, 42),
        (12.5, 12.5),
        ("987", 987),
        ("  1500 requests left", 1500),
        ("-3", -3),
        ("2.75", 2.75),
        ("remaining=10;limit=2500", 10),
    ])
    def test_numbers(self, value, expected):
        assert parse_numeric_like(value) == expected

    @pytest.mark.parametrize("value", [None, "", "n/a", True, float("nan"), float("inf")])
    def test_not_numbers(self, value):
        assert parse_numeric_like(value) is None

    def test_integral_strings_become_int(self):
        assert isinstance(parse_numeric_like("100.0"), int)


class TestExtractRemaining:
    """Test extract_remaining()."""

    def test_header_priority(self):
        headers = {
            "X-RateLimit-Remaining": "50",
            "X-RateLimit-Remaining-Month": "1200",
        }
        assert extract_remaining(headers) == 1200

    def test_headers_case_insensitive(self):
        assert extract_remaining({"X-CREDITS-REMAINING": "77"}) == 77

    def test_body_fallback(self):
        assert extract_remaining({"content-type": "application/json"}, {"credits": 3}) == 3

    def test_body_field_priority(self):
        assert extract_remaining({}, {"credits": 3, "remainingCredits": "90"}) == 90

    def test_unparseable_header_falls_through(self):
        headers = {"x-ratelimit-remaining-month": "unknown", "x-ratelimit-remaining": "12"}
        assert extract_remaining(headers) == 12

    @pytest.mark.parametrize("headers,body", [
        (None, None),
        ({}, {}),
        ({"x-other": "5"}, ["not", "a", "dict"]),
        ({}, "plain text body"),
    ])
    def test_nothing_recognized(self, headers, body):
        assert extract_remaining(headers, body) is None


class TestEstimateRemaining:
    """Three-tier estimate."""

    def test_baseline_first(self):
        estimate = estimate_remaining(
            baseline_remaining=1000,
            requests_since_baseline=40,
            monthly_limit=2500,
            requests_this_month=900,
            reported_remaining=5,
        )
        assert estimate.remaining == 960
        assert estimate.tier is QuotaTier.BASELINE

    def test_monthly_second(self):
        estimate = estimate_remaining(monthly_limit=2500, requests_this_month=100, reported_remaining=5)
        assert estimate.remaining == 2400
        assert estimate.tier is QuotaTier.MONTHLY

    def test_reported_third(self):
        estimate = estimate_remaining(monthly_limit=0, requests_this_month=10, reported_remaining=321)
        assert estimate.remaining == 321
        assert estimate.tier is QuotaTier.REPORTED

    def test_unknown(self):
        estimate = estimate_remaining()
        assert estimate.remaining is None
        assert estimate.tier is QuotaTier.UNKNOWN

    def test_never_negative(self):
        assert estimate_remaining(baseline_remaining=5, requests_since_baseline=9).remaining == 0
        assert estimate_remaining(monthly_limit=10, requests_this_month=25).remaining == 0


def test_month_start():
    assert month_start(datetime(2026, 2, 17, 13, 45, 12, 999)) == datetime(2026, 2, 1)

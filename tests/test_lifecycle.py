"""Tests for lifecycle rule mapping."""

from datetime import datetime, timezone

import pytest

from storagegrid_provider.errors import DecodeError
from storagegrid_provider.lifecycle import (
    Expiration,
    LifecycleConfiguration,
    LifecycleRule,
    format_date,
    parse_date,
)


class TestDates:
    def test_parse_date(self):
        assert parse_date("2025-06-01T00:00:00.000Z") == datetime(2025, 6, 1, tzinfo=timezone.utc)

    def test_format_date(self):
        assert format_date(datetime(2025, 6, 1, 12, 30, tzinfo=timezone.utc)) == "2025-06-01T12:30:00.000Z"

    def test_invalid_date(self):
        with pytest.raises(DecodeError, match="invalid expiration date"):
            parse_date("June 1st")


class TestToBoto:
    """Tests for the boto3 request shape."""

    def test_full_rule(self):
        rule = LifecycleRule(
            id="r1",
            prefix="logs/",
            expiration=Expiration(date="2025-06-01T00:00:00.000Z"),
            noncurrent_days=7,
        )

        assert rule.to_boto() == {
            "ID": "r1",
            "Status": "Enabled",
            "Filter": {"Prefix": "logs/"},
            "Expiration": {"Date": datetime(2025, 6, 1, tzinfo=timezone.utc)},
            "NoncurrentVersionExpiration": {"NoncurrentDays": 7},
        }

    def test_rule_without_prefix_matches_all(self):
        rule = LifecycleRule(id="r1", status="Disabled", expiration=Expiration(days=30))

        boto_rule = rule.to_boto()

        assert boto_rule["Filter"] == {"Prefix": ""}
        assert boto_rule["Expiration"] == {"Days": 30}
        assert "NoncurrentVersionExpiration" not in boto_rule

    def test_invalid_date_rejected(self):
        configuration = LifecycleConfiguration(rules=[LifecycleRule(id="r", expiration=Expiration(date="tomorrow"))])
        with pytest.raises(DecodeError):
            configuration.to_boto()


class TestFromBoto:
    def test_response_mapping(self):
        response = {"Rules": [{
            "ID": "r1",
            "Status": "Enabled",
            "Filter": {"Prefix": "tmp/"},
            "Expiration": {"Date": datetime(2025, 6, 1, tzinfo=timezone.utc)},
            "NoncurrentVersionExpiration": {"NoncurrentDays": 3},
        }]}

        rule = LifecycleConfiguration.from_boto(response).rules[0]

        assert rule.prefix == "tmp/"
        assert rule.expiration == Expiration(days=None, date="2025-06-01T00:00:00.000Z")
        assert rule.noncurrent_days == 3

    def test_empty_filter(self):
        rule = LifecycleRule.from_boto({"ID": "r", "Status": "Enabled", "Filter": {}})
        assert rule.prefix is None
        assert rule.expiration is None

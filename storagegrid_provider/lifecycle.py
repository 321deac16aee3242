"""Bucket lifecycle configuration.

Lifecycle rules are managed over the S3 protocol. This module maps the
provider's rule model to and from the shapes boto3 uses for
``put_bucket_lifecycle_configuration`` and ``get_bucket_lifecycle_configuration``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from storagegrid_provider.errors import DecodeError

# Expiration dates are exchanged with millisecond precision in UTC
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"


def format_date(value: datetime) -> str:
    """Format an expiration date in the provider's canonical form."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(DATE_FORMAT)


def parse_date(value: str) -> datetime:
    """Parse a canonical expiration date.

    Raises:
        DecodeError: If the string is not in ``DATE_FORMAT``.
    """
    try:
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise DecodeError(f"invalid expiration date {value!r}, expected {DATE_FORMAT}") from e


@dataclass
class Expiration:
    """Expiration of current object versions, by age or on a date."""

    days: Optional[int] = None
    date: Optional[str] = None


@dataclass
class LifecycleRule:
    """A single lifecycle rule."""

    id: str
    status: str = "Enabled"
    prefix: Optional[str] = None
    expiration: Optional[Expiration] = None
    noncurrent_days: Optional[int] = None

    def to_boto(self) -> dict:
        rule: dict[str, Any] = {
            "ID": self.id,
            "Status": self.status,
            "Filter": {"Prefix": self.prefix or ""},
        }
        if self.expiration is not None:
            expiration: dict[str, Any] = {}
            if self.expiration.days:
                expiration["Days"] = self.expiration.days
            if self.expiration.date:
                expiration["Date"] = parse_date(self.expiration.date)
            if expiration:
                rule["Expiration"] = expiration
        if self.noncurrent_days is not None:
            rule["NoncurrentVersionExpiration"] = {"NoncurrentDays": self.noncurrent_days}
        return rule

    @classmethod
    def from_boto(cls, rule: dict) -> "LifecycleRule":
        prefix = (rule.get("Filter") or {}).get("Prefix") or rule.get("Prefix") or None

        expiration = None
        raw_expiration = rule.get("Expiration") or {}
        days = raw_expiration.get("Days") or None
        date = raw_expiration.get("Date")
        if days or date:
            if isinstance(date, datetime):
                date = format_date(date)
            expiration = Expiration(days=days, date=date or None)

        noncurrent = (rule.get("NoncurrentVersionExpiration") or {}).get("NoncurrentDays") or None

        return cls(
            id=rule.get("ID", ""),
            status=rule.get("Status", ""),
            prefix=prefix,
            expiration=expiration,
            noncurrent_days=noncurrent,
        )


@dataclass
class LifecycleConfiguration:
    """All lifecycle rules of a bucket."""

    rules: list[LifecycleRule] = field(default_factory=list)

    def to_boto(self) -> dict:
        return {"Rules": [rule.to_boto() for rule in self.rules]}

    @classmethod
    def from_boto(cls, response: dict) -> "LifecycleConfiguration":
        return cls(rules=[LifecycleRule.from_boto(r) for r in response.get("Rules", [])])

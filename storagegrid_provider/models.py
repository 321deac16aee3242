"""Data models for the StorageGRID provider.

Each record mirrors one management API payload. ``from_dict`` decodes the
API's camelCase JSON and ``to_dict`` produces request bodies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from storagegrid_provider.errors import DecodeError
from storagegrid_provider.policy import S3Policy

DEFAULT_REGION = "us-east-1"


@dataclass
class ProviderConfig:
    """Connection settings for a StorageGRID tenant account."""

    endpoint: str
    account_id: str
    username: str
    password: str
    s3_endpoint: Optional[str] = None


def _coerce_int(value: Any) -> int:
    """Decode a count the API may send as a number or a numeric string.

    Empty or non-numeric strings decode to 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    raise DecodeError(f"expected a number or numeric string, got {type(value).__name__}")


@dataclass
class RetentionSetting:
    """Default object-lock retention.

    Only one of ``days`` and ``years`` is meaningful. ``years`` wins when
    encoding, and ``days`` is sent otherwise, even when it is 0.
    """

    mode: str
    days: int = 0
    years: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "RetentionSetting":
        if not isinstance(data, dict):
            raise DecodeError("defaultRetentionSetting must be an object")
        return cls(
            mode=data.get("mode", ""),
            days=_coerce_int(data.get("days")),
            years=_coerce_int(data.get("years")),
        )

    def to_dict(self) -> dict:
        if self.years > 0:
            return {"mode": self.mode, "years": self.years}
        return {"mode": self.mode, "days": self.days}


@dataclass
class ComplianceConfig:
    """Legacy compliance settings of a bucket."""

    auto_delete: bool = False
    legal_hold: bool = False
    retention_period_minutes: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "ComplianceConfig":
        return cls(
            auto_delete=bool(data.get("autoDelete", False)),
            legal_hold=bool(data.get("legalHold", False)),
            retention_period_minutes=_coerce_int(data.get("retentionPeriodMinutes")),
        )


@dataclass
class ObjectLockConfig:
    """S3 object lock state of a bucket."""

    enabled: bool = False
    default_retention_setting: Optional[RetentionSetting] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ObjectLockConfig":
        retention = data.get("defaultRetentionSetting")
        return cls(
            enabled=bool(data.get("enabled", False)),
            default_retention_setting=(
                RetentionSetting.from_dict(retention) if retention else None
            ),
        )

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"enabled": self.enabled}
        if self.default_retention_setting is not None:
            body["defaultRetentionSetting"] = self.default_retention_setting.to_dict()
        return body


@dataclass
class DeleteStatus:
    """Progress of a background "delete all objects" job."""

    is_deleting_objects: bool = False
    initial_object_count: str = ""
    initial_object_bytes: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "DeleteStatus":
        return cls(
            is_deleting_objects=bool(data.get("isDeletingObjects", False)),
            initial_object_count=str(data.get("initialObjectCount", "")),
            initial_object_bytes=str(data.get("initialObjectBytes", "")),
        )


@dataclass
class BucketRecord:
    """A bucket as listed by ``GET /org/containers``."""

    name: str
    creation_time: str = ""
    region: str = ""
    compliance: Optional[ComplianceConfig] = None
    object_lock: Optional[ObjectLockConfig] = None
    delete_status: Optional[DeleteStatus] = None
    replication_rules: Optional[list] = None

    @classmethod
    def from_dict(cls, data: dict) -> "BucketRecord":
        if not isinstance(data, dict) or "name" not in data:
            raise DecodeError("bucket record must be an object with a name")
        compliance = data.get("compliance")
        object_lock = data.get("s3ObjectLock")
        delete_status = data.get("deleteObjectStatus")
        replication = data.get("crossGridReplication")
        return cls(
            name=data["name"],
            creation_time=data.get("creationTime", ""),
            region=data.get("region", ""),
            compliance=ComplianceConfig.from_dict(compliance) if compliance else None,
            object_lock=ObjectLockConfig.from_dict(object_lock) if object_lock else None,
            delete_status=DeleteStatus.from_dict(delete_status) if delete_status else None,
            replication_rules=list(replication.get("rules") or []) if replication else None,
        )

    @property
    def effective_region(self) -> str:
        return self.region or DEFAULT_REGION

    @property
    def object_lock_enabled(self) -> bool:
        return self.object_lock is not None and self.object_lock.enabled


class VersioningStatus(Enum):
    """Bucket versioning state.

    The API models versioning as two booleans; a bucket that never had
    versioning enabled reports both as false.
    """

    ENABLED = "Enabled"
    SUSPENDED = "Suspended"
    DISABLED = "Disabled"

    @classmethod
    def from_api_flags(cls, enabled: bool, suspended: bool) -> "VersioningStatus":
        if enabled:
            return cls.ENABLED
        if suspended:
            return cls.SUSPENDED
        return cls.DISABLED

    @classmethod
    def parse(cls, value: Optional[str]) -> "VersioningStatus":
        """Parse a configured status. An unset status means ENABLED.

        Raises:
            DecodeError: For anything but "Enabled" or "Suspended"; a
                bucket cannot be switched back to never-versioned.
        """
        if not value:
            return cls.ENABLED
        if value in (cls.ENABLED.value, cls.SUSPENDED.value):
            return cls(value)
        raise DecodeError(f"invalid versioning status {value!r}, expected Enabled or Suspended")

    def to_api_flags(self) -> tuple[bool, bool]:
        """Return ``(versioningEnabled, versioningSuspended)`` for a write.

        ``parse`` never yields DISABLED, which the API cannot write.
        """
        if self is VersioningStatus.SUSPENDED:
            return False, True
        return True, False


@dataclass
class ManagementPolicy:
    """Management (tenant manager) permissions of a group."""

    manage_all_containers: bool = False
    manage_endpoints: bool = False
    manage_own_container_objects: bool = False
    manage_own_s3_credentials: bool = False
    root_access: bool = False
    view_all_containers: bool = False

    _API_NAMES = {
        "manage_all_containers": "manageAllContainers",
        "manage_endpoints": "manageEndpoints",
        "manage_own_container_objects": "manageOwnContainerObjects",
        "manage_own_s3_credentials": "manageOwnS3Credentials",
        "root_access": "rootAccess",
        "view_all_containers": "viewAllContainers",
    }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ManagementPolicy":
        data = data or {}
        return cls(**{attr: bool(data.get(api, False)) for attr, api in cls._API_NAMES.items()})

    def to_dict(self) -> dict:
        return {api: getattr(self, attr) for attr, api in self._API_NAMES.items()}


@dataclass
class GroupRecord:
    """A tenant group with its management and S3 policies."""

    id: str
    unique_name: str
    display_name: str = ""
    account_id: str = ""
    group_urn: str = ""
    federated: bool = False
    management_read_only: bool = False
    management: ManagementPolicy = field(default_factory=ManagementPolicy)
    s3_policy: S3Policy = field(default_factory=S3Policy)

    @classmethod
    def from_dict(cls, data: dict) -> "GroupRecord":
        if not isinstance(data, dict) or "id" not in data:
            raise DecodeError("group record must be an object with an id")
        policies = data.get("policies") or {}
        s3 = policies.get("s3")
        return cls(
            id=data["id"],
            unique_name=data.get("uniqueName", ""),
            display_name=data.get("displayName", ""),
            account_id=data.get("accountId", ""),
            group_urn=data.get("groupURN", ""),
            federated=bool(data.get("federated", False)),
            management_read_only=bool(data.get("managementReadOnly", False)),
            management=ManagementPolicy.from_dict(policies.get("management")),
            s3_policy=S3Policy.from_dict(s3) if s3 else S3Policy(),
        )

    @property
    def name(self) -> str:
        """Group name without the ``group/`` prefix."""
        return self.unique_name.removeprefix("group/")


@dataclass
class GroupPayload:
    """Request body for creating or updating a group."""

    unique_name: str
    display_name: str
    s3_policy: S3Policy
    management: ManagementPolicy = field(default_factory=ManagementPolicy)
    management_read_only: bool = False

    def to_dict(self) -> dict:
        return {
            "uniqueName": self.unique_name,
            "displayName": self.display_name,
            "managementReadOnly": self.management_read_only,
            "policies": {
                "management": self.management.to_dict(),
                "s3": self.s3_policy.to_dict(),
            },
        }


@dataclass
class UserRecord:
    """A local or federated tenant user."""

    id: str
    unique_name: str
    full_name: str = ""
    account_id: str = ""
    user_urn: str = ""
    federated: bool = False
    member_of: list[str] = field(default_factory=list)
    disable: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "UserRecord":
        if not isinstance(data, dict) or "id" not in data:
            raise DecodeError("user record must be an object with an id")
        return cls(
            id=data["id"],
            unique_name=data.get("uniqueName", ""),
            full_name=data.get("fullName", ""),
            account_id=data.get("accountId", ""),
            user_urn=data.get("userURN", ""),
            federated=bool(data.get("federated", False)),
            member_of=list(data.get("memberOf") or []),
            disable=bool(data.get("disable", False)),
        )

    @property
    def name(self) -> str:
        """User name without the ``user/`` prefix."""
        return self.unique_name.removeprefix("user/")


@dataclass
class UserPayload:
    """Request body for creating or updating a user."""

    unique_name: str
    full_name: str
    member_of: list[str] = field(default_factory=list)
    disable: bool = False

    def to_dict(self) -> dict:
        return {
            "uniqueName": self.unique_name,
            "fullName": self.full_name,
            "memberOf": list(self.member_of),
            "disable": self.disable,
        }


@dataclass
class AccessKeyRecord:
    """An S3 access key of a user.

    ``access_key`` and ``secret_access_key`` are only returned when the
    key is created.
    """

    id: str
    account_id: str = ""
    display_name: str = ""
    user_urn: str = ""
    user_uuid: str = ""
    expires: Optional[str] = None
    access_key: Optional[str] = None
    secret_access_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "AccessKeyRecord":
        if not isinstance(data, dict) or "id" not in data:
            raise DecodeError("access key record must be an object with an id")
        return cls(
            id=data["id"],
            account_id=data.get("accountId", ""),
            display_name=data.get("displayName", ""),
            user_urn=data.get("userURN", ""),
            user_uuid=data.get("userUUID", ""),
            expires=data.get("expires") or None,
            access_key=data.get("accessKey"),
            # Older API revisions name the secret "secretKey".
            secret_access_key=data.get("secretAccessKey") or data.get("secretKey"),
        )


@dataclass
class TemporaryS3Credential:
    """Short-lived access key minted for S3-protocol calls."""

    access_key: str
    secret_key: str
    credential_id: str
    expires_at: datetime


class OutcomeStatus(Enum):
    """Status of a CLI command."""

    OK = "ok"
    DIFFERS = "differs"
    ERROR = "error"


@dataclass
class CommandOutcome:
    """Result of one CLI command, as handed to reporters."""

    command: str
    target: Optional[str]
    status: OutcomeStatus
    data: Any = None
    diagnostics: list = field(default_factory=list)
    error_message: Optional[str] = None

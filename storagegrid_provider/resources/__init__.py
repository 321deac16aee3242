"""Resource and data source handlers."""

from .access_key import AccessKeyResource
from .base import DataSource, Resource
from .bucket import S3BucketResource
from .data_sources import (
    BucketVersioningDataSource,
    GroupDataSource,
    LifecycleConfigurationDataSource,
    ObjectLockConfigurationDataSource,
    S3BucketDataSource,
    UserDataSource,
)
from .group import GroupResource
from .lifecycle import LifecycleConfigurationResource
from .object_lock import ObjectLockConfigurationResource
from .user import UserResource
from .versioning import BucketVersioningResource

__all__ = [
    "Resource",
    "DataSource",
    "GroupResource",
    "UserResource",
    "AccessKeyResource",
    "S3BucketResource",
    "BucketVersioningResource",
    "ObjectLockConfigurationResource",
    "LifecycleConfigurationResource",
    "GroupDataSource",
    "UserDataSource",
    "S3BucketDataSource",
    "BucketVersioningDataSource",
    "ObjectLockConfigurationDataSource",
    "LifecycleConfigurationDataSource",
]

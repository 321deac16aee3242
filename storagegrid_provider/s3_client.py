"""S3 client factory for the StorageGRID S3 endpoint.

Creates boto3 S3 clients from a temporary access key. StorageGRID serves
the management API and the S3 API on the same host, on different ports.
"""

from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import boto3
from botocore.client import Config

from storagegrid_provider.models import DEFAULT_REGION, TemporaryS3Credential

# Default ports of the tenant management API and the S3 endpoint
MANAGEMENT_PORT = 9443
S3_PORT = 10443


def derive_s3_endpoint(management_endpoint: str, s3_endpoint: Optional[str] = None) -> str:
    """Work out the S3 endpoint URL for a management endpoint.

    Args:
        management_endpoint: URL of the management API.
        s3_endpoint: Explicitly configured S3 endpoint, used as-is if set.

    Returns:
        The S3 endpoint URL: the management URL with the management port
        rewritten to the S3 port. URLs on any other port are returned
        unchanged.
    """
    if s3_endpoint:
        return s3_endpoint.rstrip("/")

    parts = urlsplit(management_endpoint.rstrip("/"))
    if parts.port != MANAGEMENT_PORT:
        return urlunsplit(parts)

    netloc = parts.netloc.rsplit(":", 1)[0] + f":{S3_PORT}"
    return urlunsplit(parts._replace(netloc=netloc))


def build_s3_client(
    credential: TemporaryS3Credential,
    endpoint_url: str,
    region_name: str = DEFAULT_REGION,
):
    """Build a boto3 S3 client authenticated with a temporary credential.

    Args:
        credential: Temporary access key issued by the management API.
        endpoint_url: StorageGRID S3 endpoint.
        region_name: Region used for request signing.

    Returns:
        A boto3 S3 client.

    Note:
        StorageGRID buckets are addressed path-style, and signature
        version 's3v4' is required by its S3 endpoint.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": "path"},
    )

    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=credential.access_key,
        aws_secret_access_key=credential.secret_key,
        region_name=region_name,
        config=boto_config,
    )

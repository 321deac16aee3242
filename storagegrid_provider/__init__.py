"""
StorageGRID provider core.

Management API client, temporary S3 credential handling and the
resource handlers of the StorageGRID tenant provider.
"""

__version__ = "0.4.0"

from storagegrid_provider.cli import main

__all__ = ["main", "__version__"]

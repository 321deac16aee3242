#!/usr/bin/env python3
"""
StorageGRID provider command-line tool

Run this script to inspect a StorageGRID tenant with the provider's
client and handlers.

Usage:
    python run.py buckets                  # List buckets (config.json / env)
    python run.py -c custom.json buckets   # Use custom config
    python run.py bucket photos            # Show one bucket
    python run.py versioning photos        # Show versioning status
    python run.py group admins             # Show a group and its policies
    python run.py policy-diff a.json b.json
    python run.py -j out.json lifecycle photos
    python run.py --debug buckets          # Log every API request
"""

import sys
from storagegrid_provider.cli import main

if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Streaming S3 Multipart Uploader

Run this script to upload a file or standard input to an S3-compatible
bucket using a multipart upload.

Usage:
    python run.py big.iso -k backups/big.iso             # Use config.json
    python run.py big.iso -k big.iso -c custom.json -p b2  # Pick a profile
    tar c dir | python run.py - -k dir.tar                # Upload stdin
    python run.py big.iso -k big.iso --concurrency 8 -j upload.json
"""

import sys
from s3mpu.cli import main

if __name__ == "__main__":
    sys.exit(main())

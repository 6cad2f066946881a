"""
Imagesign CLI

Command-line interface for signing container images.

Usage:
    python -m imagesign_cli sign --key imagesign.key ghcr.io/org/app:v1
    python -m imagesign_cli generate-key-pair
    python -m imagesign_cli triangulate ghcr.io/org/app:v1
"""

__version__ = "0.1.0"

"""Data models for kmainline.

This module exports the catalog data structures used throughout the application.
"""

from kmainline.models.catalog import (
    ALL_VARIANT,
    ArchitectureInfo,
    BuildSummary,
    CatalogEntry,
    PackageInfo,
    PackageKind,
    Variant,
    VariantFiles,
    VariantStatus,
    version_sort_key,
)

__all__ = [
    "ALL_VARIANT",
    "ArchitectureInfo",
    "BuildSummary",
    "CatalogEntry",
    "PackageInfo",
    "PackageKind",
    "Variant",
    "VariantFiles",
    "VariantStatus",
    "version_sort_key",
]

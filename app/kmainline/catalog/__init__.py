"""Catalog of mainline kernel builds.

Parsers for the root listing, build summaries and checksum manifests, and
the resolver that combines them.
"""

from kmainline.catalog.resolver import CatalogResolver, RemoteTextCache

__all__ = ["CatalogResolver", "RemoteTextCache"]

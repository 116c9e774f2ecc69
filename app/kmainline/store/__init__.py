"""Persistent content-addressed storage for downloaded packages."""

from kmainline.store.content import ContentStore, ContentWriter, StoreEntry, VerifyReport

__all__ = ["ContentStore", "ContentWriter", "StoreEntry", "VerifyReport"]

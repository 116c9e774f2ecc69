"""Persistent content-addressed store.

Artifacts are stored once per SHA-256 digest under ``content/`` and looked
up by key (the source URL) through an append-only index::

    <root>/
        index/ab/cd/<rest of sha256(key)>      # JSON lines, last line wins
        content/sha256/ab/cd/<rest of digest>  # artifact bytes
        tmp/<uuid>.tmp                         # writes in progress

Integrity values use the Subresource Integrity notation
(``sha256-<base64 digest>``), several values separated by spaces.
"""

import base64
import hashlib
import json
import logging
import os
import shutil
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Self

from kmainline.core.errors import (
    IntegrityMismatchError,
    NotFoundError,
    StoreCorruptionError,
)

logger = logging.getLogger(__name__)

# Algorithm every artifact is addressed by
CONTENT_ALGORITHM = "sha256"
SUPPORTED_ALGORITHMS = ("sha1", "sha256", "sha384", "sha512")
# Temp files older than this are considered abandoned by verify(), and
# unreferenced content younger than this may still be waiting for its index line
STALE_TMP_SECONDS = 3600
_CHUNK_SIZE = 1024 * 1024

VerifyLog = Callable[[str, str], None]


def parse_integrity(integrity: str | None) -> dict[str, str]:
    """Split an integrity string into algorithm -> base64 digest.

    Unsupported algorithms are ignored.

    Args:
        integrity: e.g. 'sha256-n4bQgYhMfWWaL+qgxVrQFaO/TxsrC4Is0V1sFbDwCgg='.

    Returns:
        Mapping of algorithm name to base64 digest.
    """
    digests: dict[str, str] = {}
    for token in (integrity or "").split():
        algorithm, sep, value = token.partition("-")
        if sep and algorithm in SUPPORTED_ALGORITHMS and value:
            digests[algorithm] = value
    return digests


def integrity_matches(expected: str | None, actual: str | None) -> bool:
    """Check whether two integrity strings agree.

    Every algorithm present in both must have equal digests, and at least
    one algorithm must be shared. A missing expectation always matches.
    """
    wanted = parse_integrity(expected)
    if not wanted:
        return True
    have = parse_integrity(actual)
    shared = wanted.keys() & have.keys()
    return bool(shared) and all(wanted[algo] == have[algo] for algo in shared)


def _format_integrity(hashers: dict[str, Any]) -> str:
    return " ".join(
        f"{algo}-{base64.b64encode(hasher.digest()).decode('ascii')}"
        for algo, hasher in hashers.items()
    )


def hash_file(path: Path, algorithms: Iterable[str]) -> str:
    """Compute the integrity string of a file for the given algorithms."""
    hashers = {algo: hashlib.new(algo) for algo in dict.fromkeys(algorithms)}
    with path.open("rb") as f:
        while chunk := f.read(_CHUNK_SIZE):
            for hasher in hashers.values():
                hasher.update(chunk)
    return _format_integrity(hashers)


@dataclass(frozen=True, slots=True)
class StoreEntry:
    """Index record for one stored artifact.

    Attributes:
        key: Lookup key (source URL).
        integrity: Integrity string of the stored bytes.
        path: Location of the content file.
        size: Content size in bytes.
        time: Unix timestamp of insertion.
    """

    key: str
    integrity: str
    path: Path
    size: int
    time: float

    @property
    def digest_hex(self) -> str:
        """Hex SHA-256 digest the content is addressed by."""
        return self.path.parent.parent.name + self.path.parent.name + self.path.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for the index file."""
        return {
            "key": self.key,
            "integrity": self.integrity,
            "content": self.digest_hex,
            "size": self.size,
            "time": self.time,
        }


@dataclass(slots=True)
class VerifyReport:
    """Outcome of a store verification sweep.

    Attributes:
        verified: Number of entries whose content matched.
        corrupted: Keys whose content fails the recorded digest.
        missing: Keys whose content file is gone.
        reclaimed_count: Unreferenced content files removed.
        reclaimed_bytes: Size of the removed content files.
        tmp_removed: Abandoned temp files removed.
    """

    verified: int = 0
    corrupted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    reclaimed_count: int = 0
    reclaimed_bytes: int = 0
    tmp_removed: int = 0

    @property
    def ok(self) -> bool:
        return not self.corrupted and not self.missing

    def raise_for_corruption(self) -> None:
        """Raise StoreCorruptionError if any entry failed verification."""
        if self.corrupted:
            msg = f"{len(self.corrupted)} cache entries failed verification"
            raise StoreCorruptionError(msg, keys=list(self.corrupted))

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified": self.verified,
            "corrupted": list(self.corrupted),
            "missing": list(self.missing),
            "reclaimed_count": self.reclaimed_count,
            "reclaimed_bytes": self.reclaimed_bytes,
            "tmp_removed": self.tmp_removed,
        }


class ContentWriter:
    """Streams one artifact into the store.

    Bytes go to a private temp file and only become visible under the key
    once commit() succeeds. Leaving the context manager without a commit
    discards them.
    """

    def __init__(
        self,
        store: "ContentStore",
        key: str,
        integrity: str | None = None,
        algorithms: Iterable[str] = (CONTENT_ALGORITHM,),
    ) -> None:
        self._store = store
        self.key = key
        self.integrity = integrity
        names = [*algorithms, CONTENT_ALGORITHM, *parse_integrity(integrity)]
        self._hashers = {algo: hashlib.new(algo) for algo in dict.fromkeys(names)}
        store.tmp_dir.mkdir(parents=True, exist_ok=True)
        self._tmp_path = store.tmp_dir / f"{uuid.uuid4().hex}.tmp"
        self._file: BinaryIO | None = self._tmp_path.open("wb")
        self.size = 0
        self.entry: StoreEntry | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.entry is None:
            self.abort()

    def write(self, chunk: bytes) -> None:
        """Append a chunk of content."""
        if self._file is None:
            msg = f"Writer for {self.key} is closed"
            raise RuntimeError(msg)
        self._file.write(chunk)
        for hasher in self._hashers.values():
            hasher.update(chunk)
        self.size += len(chunk)

    def commit(self) -> StoreEntry:
        """Move the content into place and index it under the key.

        Returns:
            The new store entry.

        Raises:
            IntegrityMismatchError: If the content does not match the
                required integrity; nothing is stored in that case.
        """
        if self._file is None:
            msg = f"Writer for {self.key} is closed"
            raise RuntimeError(msg)
        self._file.close()
        self._file = None

        integrity = _format_integrity(self._hashers)
        if not integrity_matches(self.integrity, integrity):
            self._tmp_path.unlink(missing_ok=True)
            msg = f"Integrity mismatch for {self.key}: expected {self.integrity}, got {integrity}"
            raise IntegrityMismatchError(msg)

        content_path = self._store.content_path(self._hashers[CONTENT_ALGORITHM].hexdigest())
        content_path.parent.mkdir(parents=True, exist_ok=True)
        # Fresh mtime keeps a concurrent verify() from reclaiming it before indexing
        os.utime(self._tmp_path)
        os.replace(self._tmp_path, content_path)

        entry = StoreEntry(
            key=self.key,
            integrity=integrity,
            path=content_path,
            size=self.size,
            time=time.time(),
        )
        self._store.append_index(entry.to_dict())
        self.entry = entry
        logger.debug("Stored %s (%d bytes) as %s", self.key, self.size, content_path.name)
        return entry

    def abort(self) -> None:
        """Discard everything written so far."""
        if self._file is not None:
            self._file.close()
            self._file = None
        self._tmp_path.unlink(missing_ok=True)


class ContentStore:
    """Content-addressed artifact store keyed by source URL.

    Safe for concurrent use with different keys: every write goes to its
    own temp file, content is moved into place with os.replace() and index
    updates are single-line appends.

    Attributes:
        root: Store directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def index_dir(self) -> Path:
        return self.root / "index"

    @property
    def content_dir(self) -> Path:
        return self.root / "content" / CONTENT_ALGORITHM

    @property
    def tmp_dir(self) -> Path:
        return self.root / "tmp"

    def content_path(self, digest_hex: str) -> Path:
        """Location of the content file for a SHA-256 hex digest."""
        return self.content_dir / digest_hex[:2] / digest_hex[2:4] / digest_hex[4:]

    def _bucket_path(self, key: str) -> Path:
        hashed = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.index_dir / hashed[:2] / hashed[2:4] / hashed[4:]

    def append_index(self, record: dict[str, Any]) -> None:
        """Append an index record for record['key']."""
        bucket = self._bucket_path(record["key"])
        bucket.parent.mkdir(parents=True, exist_ok=True)
        with bucket.open(mode="a", encoding="utf-8") as f:
            f.write(json.dumps(record, separators=(",", ":")) + "\n")
            f.flush()

    def _read_bucket(self, bucket: Path) -> dict[str, dict[str, Any]]:
        """Read the latest record per key from one index bucket."""
        latest: dict[str, dict[str, Any]] = {}
        try:
            lines = bucket.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return latest
        for line_num, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
                latest[record["key"]] = record
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                logger.warning("Skipping corrupt index line %d in %s: %s", line_num, bucket, e)
        return latest

    def _to_entry(self, record: dict[str, Any]) -> StoreEntry | None:
        if not record.get("integrity") or not record.get("content"):
            return None
        return StoreEntry(
            key=record["key"],
            integrity=record["integrity"],
            path=self.content_path(record["content"]),
            size=int(record.get("size", 0)),
            time=float(record.get("time", 0.0)),
        )

    def _lookup(self, key: str) -> StoreEntry | None:
        record = self._read_bucket(self._bucket_path(key)).get(key)
        return self._to_entry(record) if record is not None else None

    def get_info(self, key: str) -> StoreEntry | None:
        """Look up the entry stored under a key.

        Returns:
            StoreEntry, or None if the key is unknown or its content is gone.
        """
        entry = self._lookup(key)
        if entry is None:
            return None
        if not entry.path.is_file():
            logger.warning("Content for %s is missing from the store", key)
            return None
        return entry

    def open(self, key: str, integrity: str | None = None) -> BinaryIO:
        """Open the content stored under a key for reading.

        Args:
            key: Lookup key.
            integrity: Required integrity of the entry, if any.

        Raises:
            NotFoundError: If nothing is stored under the key.
            IntegrityMismatchError: If the entry does not match ``integrity``.
        """
        entry = self.get_info(key)
        if entry is None:
            raise NotFoundError(f"No cache entry for {key}")
        if not integrity_matches(integrity, entry.integrity):
            msg = f"Integrity mismatch for {key}: expected {integrity}, stored {entry.integrity}"
            raise IntegrityMismatchError(msg)
        return entry.path.open("rb")

    def writer(
        self,
        key: str,
        integrity: str | None = None,
        algorithms: Iterable[str] = (CONTENT_ALGORITHM,),
    ) -> ContentWriter:
        """Start writing an artifact under a key.

        Args:
            key: Lookup key.
            integrity: Integrity the content must match to be committed.
            algorithms: Digest algorithms recorded for the content.
        """
        return ContentWriter(self, key, integrity=integrity, algorithms=algorithms)

    def check(self, entry: StoreEntry, integrity: str | None = None) -> bool:
        """Re-hash an entry's content and compare it with its digests.

        Args:
            entry: Entry to check.
            integrity: Additional integrity the content must match.

        Returns:
            True if the content matches both the recorded and the given integrity.
        """
        if not entry.path.is_file():
            return False
        algorithms = [*parse_integrity(entry.integrity), *parse_integrity(integrity)]
        actual = hash_file(entry.path, algorithms or [CONTENT_ALGORITHM])
        return integrity_matches(entry.integrity, actual) and integrity_matches(integrity, actual)

    def remove(self, key: str) -> None:
        """Drop a key from the index; its content is reclaimed by verify()."""
        self.append_index({"key": key, "integrity": None, "time": time.time()})

    def ls(self) -> dict[str, StoreEntry]:
        """List every live entry by key."""
        entries: dict[str, StoreEntry] = {}
        if not self.index_dir.exists():
            return entries
        for bucket in sorted(p for p in self.index_dir.rglob("*") if p.is_file()):
            for key, record in self._read_bucket(bucket).items():
                entry = self._to_entry(record)
                if entry is not None:
                    entries[key] = entry
        return entries

    def rm_all(self) -> None:
        """Remove every entry and all content."""
        for path in (self.index_dir, self.root / "content", self.tmp_dir):
            if path.exists():
                shutil.rmtree(path)
        logger.info("Cleared content store at %s", self.root)

    def verify(self, log: VerifyLog | None = None) -> VerifyReport:
        """Check every entry against its digest and reclaim unused files.

        Corrupted entries are reported, not repaired. Temp files and
        unreferenced content are only removed once older than
        STALE_TMP_SECONDS, so writes committing in another process survive.

        Args:
            log: Optional callback receiving (stage, message) progress lines.

        Returns:
            VerifyReport describing the sweep.
        """

        def emit(stage: str, message: str) -> None:
            logger.debug("verify %s: %s", stage, message)
            if log is not None:
                log(stage, message)

        report = VerifyReport()

        cutoff = time.time() - STALE_TMP_SECONDS
        emit("tmp", "cleaning abandoned temp files")
        if self.tmp_dir.exists():
            for tmp in self.tmp_dir.iterdir():
                if tmp.is_file() and tmp.stat().st_mtime < cutoff:
                    tmp.unlink(missing_ok=True)
                    report.tmp_removed += 1

        entries = self.ls()
        referenced: set[Path] = set()
        for key, entry in entries.items():
            emit("content", f"checking {key}")
            referenced.add(entry.path)
            if not entry.path.is_file():
                report.missing.append(key)
                logger.warning("Missing content for %s", key)
            elif not self.check(entry):
                report.corrupted.append(key)
                logger.warning("Corrupted content for %s", key)
            else:
                report.verified += 1

        emit("gc", "removing unreferenced content")
        if self.content_dir.exists():
            for path in self.content_dir.rglob("*"):
                if path.is_file() and path not in referenced and path.stat().st_mtime < cutoff:
                    report.reclaimed_bytes += path.stat().st_size
                    report.reclaimed_count += 1
                    path.unlink(missing_ok=True)

        emit("finished", f"verified {report.verified} entries")
        return report

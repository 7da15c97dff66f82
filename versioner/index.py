"""In-memory index of versioned assets."""
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class VersionedAssetRecord:
    """A versioned asset.

    ``data`` is None once buffers have been released.
    """

    key: str
    data: bytes | None
    file_name: str
    mtime: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.data) if self.data is not None else 0


class VersionedAssetIndex:
    """Maps index paths to keys and keys to records.

    Mutated only by the build that owns it; every mutation is synchronous so
    readers on the same event loop never see a half-committed asset.
    """

    def __init__(self):
        self._records: dict[str, VersionedAssetRecord] = {}
        self._path_to_key: dict[str, str] = {}
        self._manifest: dict[str, dict[str, str]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def commit(
        self,
        key: str,
        path: str,
        data: bytes | None,
        asset_class: str,
        logical_path: str,
    ) -> VersionedAssetRecord:
        """Insert a versioned asset.

        Args:
            key: Versioned key derived from the asset bytes
            path: Index path, already carrying the versioned extension
            data: Asset bytes
            asset_class: Asset class the file was built as
            logical_path: Caller-facing path, recorded in the manifest

        Returns:
            The committed record
        """
        record = VersionedAssetRecord(key=key, data=data, file_name=posixpath.basename(path))
        self._records[key] = record
        self._path_to_key[path] = key
        self._manifest.setdefault(asset_class, {})[logical_path] = key
        return record

    def get(self, key: str) -> VersionedAssetRecord | None:
        """Return the record for a key, or None."""
        return self._records.get(key)

    def key_for_path(self, path: str) -> str | None:
        """Return the key committed for an index path, or None."""
        return self._path_to_key.get(path)

    def keys(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[VersionedAssetRecord]:
        return list(self._records.values())

    def release_buffers(self) -> None:
        """Drop every record's bytes, keeping the path and key mappings."""
        for record in self._records.values():
            record.data = None

    def manifest(self) -> dict[str, dict[str, str]]:
        """Return ``{asset class: {logical path: key}}`` for every committed asset."""
        return {
            asset_class: dict(sorted(entries.items()))
            for asset_class, entries in sorted(self._manifest.items())
        }

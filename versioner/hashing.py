"""Content-addressed key derivation."""
import hashlib
import posixpath


def content_hash(data: bytes) -> str:
    """Compute the hex digest of content."""
    return hashlib.md5(data).hexdigest()


def derive_key(logical_path: str, data: bytes, extension_override: str | None = None) -> str:
    """Derive the versioned key for an asset.

    The key is ``<basename without extension>.<md5 hex><extension>``, where the
    extension is ``extension_override`` when given, else the original one.
    Directory components of ``logical_path`` are discarded.

    Args:
        logical_path: Path the asset is known by
        data: Asset bytes after processing
        extension_override: Optional extension for the versioned name, e.g. ".css"

    Returns:
        Versioned key such as ``abc.629f545a3f7cea350715263cd5ef3012.jpg``
    """
    stem, extension = posixpath.splitext(posixpath.basename(logical_path))
    return f"{stem}.{content_hash(data)}{extension_override or extension}"


def replace_extension(path: str, extension: str | None) -> str:
    """Return ``path`` with its extension swapped for ``extension`` if given."""
    if not extension:
        return path
    stem, _ = posixpath.splitext(path)
    return stem + extension

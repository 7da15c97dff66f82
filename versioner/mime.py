"""MIME type lookup for versioned assets."""
import mimetypes
import posixpath

DEFAULT_MIME_TYPE = "application/octet-stream"

# Extension -> MIME type entries consulted before the platform table.
# Add to this if an asset type is missing or resolves differently per platform.
MIME_OVERRIDES: dict[str, str] = {
    ".js": "application/javascript",
    ".css": "text/css",
    ".svg": "image/svg+xml",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".webp": "image/webp",
}

_UTF8_TYPES = ("application/javascript", "application/json", "image/svg+xml")


def mime_type_for(filename: str) -> str:
    """Return the MIME type for a filename, defaulting to octet-stream."""
    extension = posixpath.splitext(filename)[1].lower()
    if extension in MIME_OVERRIDES:
        return MIME_OVERRIDES[extension]
    mime_type, _ = mimetypes.guess_type(filename, strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def content_type_for(filename: str) -> str:
    """Return a Content-Type header value, with a charset for textual types."""
    mime_type = mime_type_for(filename)
    if mime_type.startswith("text/") or mime_type in _UTF8_TYPES:
        return f"{mime_type}; charset=utf-8"
    return mime_type

"""HTTP delivery of versioned assets held in memory."""
import posixpath

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from versioner.config import ConfigurationError
from versioner.core import Versioner
from versioner.index import VersionedAssetRecord
from versioner.mime import content_type_for

# Versioned names change with their content, so they can be cached for a year
MAX_AGE_SECONDS = 31536000


def asset_response(record: VersionedAssetRecord, head: bool = False) -> Response:
    """Build the response for a versioned asset.

    Args:
        record: Versioned asset with its bytes loaded
        head: Omit the body, keeping Content-Length

    Returns:
        Response with far-future caching headers
    """
    headers = {
        "Cache-Control": f"public, max-age={MAX_AGE_SECONDS}",
        "Content-Length": str(len(record.data)),
        "Last-Modified": record.mtime.strftime("%a, %d %b %Y %H:%M:%S GMT"),
    }
    return Response(
        content=b"" if head else record.data,
        headers=headers,
        media_type=content_type_for(record.file_name),
    )


class VersionedAssetMiddleware(BaseHTTPMiddleware):
    """Serves versioned assets by the last segment of the request path.

    Requests that do not name a versioned asset are passed to the next handler.
    """

    def __init__(self, app: ASGIApp, versioner: Versioner):
        if not versioner.is_caching_files:
            raise ConfigurationError("set cache_files to true to serve versioned assets")
        super().__init__(app)
        self.versioner = versioner

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method not in ("GET", "HEAD"):
            return await call_next(request)

        pathname = request.url.path
        record = self.versioner.get(posixpath.basename(pathname))
        if record is None or record.data is None:
            self.versioner.log.verbose(f"Version miss: {pathname}")
            return await call_next(request)

        return asset_response(record, head=request.method == "HEAD")

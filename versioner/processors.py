"""Processor chains applied to asset bytes before they are versioned."""
from collections.abc import Awaitable, Callable, Sequence

import rcssmin
import rjsmin

from versioner.errors import AssetProcessingError, VersionerError

Processor = Callable[[bytes, str], Awaitable[bytes]]


class ProcessorChain:
    """Ordered asynchronous transforms, stopping at the first failure."""

    def __init__(self, steps: Sequence[Processor] = ()):
        self.steps = tuple(steps)

    def __len__(self) -> int:
        return len(self.steps)

    async def apply(self, data: bytes, path: str) -> bytes:
        """Run every step over ``data``, each receiving the previous output.

        Args:
            data: Loaded asset bytes
            path: Index path of the asset, for diagnostics

        Returns:
            Transformed bytes (``data`` unchanged for an empty chain)

        Raises:
            AssetProcessingError: If a step fails; remaining steps are skipped
        """
        for step in self.steps:
            try:
                data = await step(data, path)
            except VersionerError:
                raise
            except Exception as e:
                raise AssetProcessingError(path, str(e)) from e
        return data


async def minify_javascript(data: bytes, path: str) -> bytes:
    """Minify JavaScript content."""
    return rjsmin.jsmin(data.decode("utf-8")).encode("utf-8")


async def minify_stylesheet(data: bytes, path: str) -> bytes:
    """Minify CSS content."""
    return rcssmin.cssmin(data.decode("utf-8")).encode("utf-8")

"""Asset discovery and loading."""
import asyncio
import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from versioner.concurrency import for_each_limit
from versioner.config import AssetTypeConfig
from versioner.errors import AssetLoadError
from versioner.log import BuildLog

# Explicit files may have no real location (e.g. in-memory buffers), so they
# are indexed under this placeholder root, one sub-directory per asset class.
EXPLICIT_FILE_ROOT = "/__buffer_root__"


@dataclass
class FileDescriptor:
    """A single asset on its way into the index."""

    path: str
    logical_path: str
    source: Path | None = None
    data: bytes | None = None


@dataclass
class LoadResult:
    """Loaded descriptors plus the files that could not be read."""

    descriptors: list[FileDescriptor] = field(default_factory=list)
    failures: list[AssetLoadError] = field(default_factory=list)


def normalize_logical_path(path: str) -> str:
    """Strip one leading separator from a logical path."""
    path = path.replace("\\", "/")
    if path.startswith("/"):
        path = path[1:]
    return path


def root_path(root: Path, logical_path: str) -> str:
    """Index path of a file found under a type's root directory."""
    base = Path(os.path.abspath(root)).as_posix()
    return posixpath.normpath(posixpath.join(base, normalize_logical_path(logical_path)))


def explicit_path(asset_class: str, logical_path: str) -> str:
    """Index path of an explicitly listed file."""
    return posixpath.normpath(
        posixpath.join(EXPLICIT_FILE_ROOT, asset_class, normalize_logical_path(logical_path))
    )


def candidate_paths(type_config: AssetTypeConfig, logical_path: str) -> list[str]:
    """Index paths a logical path may be stored under, in lookup order."""
    candidates = []
    if type_config.root is not None:
        candidates.append(root_path(type_config.root, logical_path))
    candidates.append(explicit_path(type_config.asset_class, logical_path))
    return candidates


class AssetLoader:
    """Resolves an asset type configuration into loaded file descriptors."""

    def __init__(self, log: BuildLog, concurrency: int = 50):
        """Initialize loader.

        Args:
            log: Build log capability
            concurrency: Maximum number of files read at once
        """
        self.log = log
        self.concurrency = concurrency

    def discover(self, type_config: AssetTypeConfig) -> list[FileDescriptor]:
        """List every asset of a type without reading it.

        Files under ``root`` come first (hidden names are skipped), followed by
        the explicitly listed files.

        Args:
            type_config: Asset type configuration

        Returns:
            Descriptors, explicit buffers already carrying their data
        """
        descriptors = []

        if type_config.root is not None:
            root = Path(type_config.root)
            for source in sorted(root.rglob("*")):
                relative = source.relative_to(root)
                if any(part.startswith(".") for part in relative.parts):
                    continue
                if source.is_dir():
                    continue
                logical_path = relative.as_posix()
                descriptors.append(FileDescriptor(
                    path=root_path(root, logical_path),
                    logical_path=logical_path,
                    source=source,
                ))
            self.log.verbose(f"Loading: {root}, files: {len(descriptors)}")

        for entry in type_config.files:
            logical_path = normalize_logical_path(entry.path)
            descriptors.append(FileDescriptor(
                path=explicit_path(type_config.asset_class, logical_path),
                logical_path=logical_path,
                source=entry.source,
                data=entry.data,
            ))

        return descriptors

    async def load(self, type_config: AssetTypeConfig) -> LoadResult:
        """Discover and read every asset of a type.

        A read failure is recorded and does not stop sibling files.

        Args:
            type_config: Asset type configuration

        Returns:
            LoadResult with loaded descriptors and read failures
        """
        result = LoadResult()

        async def read(descriptor: FileDescriptor) -> None:
            try:
                loaded = await self.read(descriptor)
            except AssetLoadError as e:
                result.failures.append(e)
                return
            if loaded is not None:
                result.descriptors.append(loaded)

        descriptors = await asyncio.to_thread(self.discover, type_config)
        await for_each_limit(descriptors, self.concurrency, read)
        return result

    async def read(self, descriptor: FileDescriptor) -> FileDescriptor | None:
        """Fill in a descriptor's bytes from its source.

        Returns:
            The descriptor, or None if the source turned out to be a directory

        Raises:
            AssetLoadError: If the source cannot be read
        """
        if descriptor.data is not None:
            return descriptor

        try:
            descriptor.data = await asyncio.to_thread(Path(descriptor.source).read_bytes)
        except IsADirectoryError:
            return None
        except OSError as e:
            self.log.error(f"Failed to add file: {descriptor.source}", e)
            raise AssetLoadError(str(descriptor.source), e.strerror or str(e)) from e
        return descriptor

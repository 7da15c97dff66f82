"""Public entry point for versioning static assets."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from versioner.builder import BuildOrchestrator, BuildResult
from versioner.concurrency import for_each_limit
from versioner.config import (
    ASSET_CLASSES,
    IMAGE,
    JAVASCRIPT,
    STYLE,
    ConfigurationError,
    VersionerConfig,
)
from versioner.index import VersionedAssetIndex, VersionedAssetRecord
from versioner.loader import candidate_paths, explicit_path
from versioner.log import resolve_build_log

logger = logging.getLogger(__name__)


class Versioner:
    """Versions images, scripts and styles and resolves their URLs.

    Example:
        versioner = Versioner({
            "url_root": "http://localhost/static",
            "types": {"image": {"root": "public/images"}},
        })
        await versioner.build()
        versioner.image_url("dir1/abc.jpg")
    """

    def __init__(self, config: VersionerConfig | dict[str, Any] | None = None, log: Any = None):
        """Initialize versioner.

        Args:
            config: VersionerConfig or the equivalent options dict
            log: Optional BuildLog-like object or logger; overrides the ``log`` option
        """
        if not isinstance(config, VersionerConfig):
            config = VersionerConfig(config or {})
        self.config = config
        self.log = resolve_build_log(log if log is not None else config.log)
        self.index = VersionedAssetIndex()

    @property
    def is_caching_files(self) -> bool:
        """Whether asset bytes stay in memory after a build."""
        return self.config.cache_files

    async def build(self) -> BuildResult:
        """Load and version every configured asset.

        Each build starts from an empty index. On failure the index keeps
        whatever was committed before the failing stage stopped.

        Returns:
            BuildResult summary

        Raises:
            BuildError: If any stage fails
        """
        self.index = VersionedAssetIndex()
        orchestrator = BuildOrchestrator(self.config, self.index, self, self.log)
        return await orchestrator.run()

    def get(self, key: str) -> VersionedAssetRecord | None:
        """Return the versioned asset for a key (e.g. ``abc.<hash>.jpg``)."""
        return self.index.get(key)

    def key_for(self, path: str, asset_class: str) -> str | None:
        """Return the versioned key of an asset path, or None if not built.

        Raises:
            ConfigurationError: If the asset class is not configured
        """
        type_config = self.config.type_config(asset_class)
        for candidate in candidate_paths(type_config, path):
            key = self.index.key_for_path(candidate)
            if key is not None:
                return key
        return None

    def record_for_path(self, path: str, asset_class: str) -> VersionedAssetRecord | None:
        """Return the versioned asset stored for an asset path, or None."""
        key = self.key_for(path, asset_class)
        return self.index.get(key) if key is not None else None

    def url(self, path: str, asset_class: str) -> str | None:
        """Return the versioned URL of an asset path.

        Args:
            path: Path relative to the type root, e.g. ``dir1/foo.jpg``
            asset_class: 'image', 'javascript' or 'style'

        Returns:
            Versioned URL, or None if the asset was not built

        Raises:
            ConfigurationError: If the asset class is not configured
        """
        key = self.key_for(path, asset_class)
        if key is None:
            return None
        return self.config.url_root_for(asset_class) + key

    def image_url(self, path: str) -> str | None:
        return self.url(path, IMAGE)

    def js_url(self, path: str) -> str | None:
        return self.url(path, JAVASCRIPT)

    def css_url(self, path: str) -> str | None:
        return self.url(path, STYLE)

    async def save(self, output_dir: str | Path) -> list[Path]:
        """Write every versioned asset to ``output_dir/<key>``.

        Records without bytes in memory (e.g. restored from a manifest) are
        skipped.

        Args:
            output_dir: Directory to write into, created if missing

        Returns:
            Paths written

        Raises:
            ConfigurationError: If cache_files is disabled
        """
        if not self.config.cache_files:
            raise ConfigurationError("set cache_files to true to save versioned assets")

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        self.log.verbose(f"Saving versioned files to: {output_dir}")

        async def write(record: VersionedAssetRecord) -> Path:
            output_path = output_dir / record.key
            await asyncio.to_thread(output_path.write_bytes, record.data)
            self.log.verbose(f"Saved: {output_path}")
            return output_path

        retained = [record for record in self.index.records() if record.data is not None]
        skipped = len(self.index) - len(retained)
        if skipped:
            self.log.warn(f"Skipping {skipped} versioned files with no data in memory")

        try:
            return await for_each_limit(
                retained, self.config.build.save_concurrency, write
            )
        except OSError as e:
            self.log.error("Failed to save versioned assets", e)
            raise

    def manifest(self) -> dict[str, dict[str, str]]:
        """Return ``{asset class: {path: key}}`` for every built asset."""
        return self.index.manifest()

    def save_manifest(self, path: str | Path) -> Path:
        """Write the manifest as JSON."""
        path = Path(path)
        path.write_text(json.dumps(self.manifest(), indent=2), encoding="utf-8")
        logger.info(f"Manifest written to {path}")
        return path

    def load_manifest(self, path: str | Path) -> None:
        """Replace the index with the keys recorded in a manifest.

        URLs resolve afterwards without a build; asset bytes are not available.

        Raises:
            ConfigurationError: If the manifest names an unknown asset class
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        index = VersionedAssetIndex()
        for asset_class, entries in data.items():
            if asset_class not in ASSET_CLASSES:
                raise ConfigurationError(f"Unknown asset class in manifest: {asset_class}")
            for logical_path, key in entries.items():
                index.commit(
                    key=key,
                    path=explicit_path(asset_class, logical_path),
                    data=None,
                    asset_class=asset_class,
                    logical_path=logical_path,
                )
        self.index = index

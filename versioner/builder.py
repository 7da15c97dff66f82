"""Staged build of versioned assets."""
import time
from dataclasses import dataclass, field
from enum import Enum

from versioner.concurrency import for_each_limit
from versioner.config import IMAGE, JAVASCRIPT, STYLE, AssetTypeConfig, VersionerConfig
from versioner.errors import BuildError, VersionerError
from versioner.hashing import derive_key, replace_extension
from versioner.index import VersionedAssetIndex, VersionedAssetRecord
from versioner.loader import AssetLoader, FileDescriptor
from versioner.log import BuildLog
from versioner.processors import ProcessorChain, minify_javascript, minify_stylesheet
from versioner.styles import ImageResolver, StyleReferenceRewriter


class Stage(Enum):
    """Build stages, run strictly in declaration order.

    Styles come last because they embed references to built images.
    """

    IMAGES = IMAGE
    SCRIPTS = JAVASCRIPT
    STYLES = STYLE
    DONE = "done"

    @property
    def asset_class(self) -> str | None:
        return None if self is Stage.DONE else self.value

    def next(self) -> "Stage":
        members = list(Stage)
        return members[min(members.index(self) + 1, len(members) - 1)]


@dataclass
class BuildResult:
    """Summary of a successful build."""

    file_count: int = 0
    total_size: int = 0
    duration_ms: float = 0.0
    stages: list[str] = field(default_factory=list)


class BuildOrchestrator:
    """Drives each asset class through loading, processing and commit."""

    def __init__(
        self,
        config: VersionerConfig,
        index: VersionedAssetIndex,
        resolver: ImageResolver,
        log: BuildLog,
    ):
        """Initialize orchestrator.

        Args:
            config: Versioner configuration
            index: Fresh index owned by this build
            resolver: Image lookups used while rewriting styles
            log: Build log capability
        """
        self.config = config
        self.index = index
        self.resolver = resolver
        self.log = log
        self.loader = AssetLoader(log, concurrency=config.build.load_concurrency)
        self.stage = Stage.IMAGES

    async def run(self) -> BuildResult:
        """Run every stage in order.

        Buffers are released afterwards when ``cache_files`` is off, whether
        or not the build succeeded.

        Returns:
            BuildResult summary

        Raises:
            BuildError: For the first stage that fails; later stages are not run
        """
        started = time.perf_counter()
        result = BuildResult()

        try:
            while self.stage is not Stage.DONE:
                type_config = self.config.types.get(self.stage.asset_class)
                if type_config is not None:
                    await self._run_stage(type_config, result)
                    result.stages.append(self.stage.value)
                self.stage = self.stage.next()
        finally:
            if not self.config.cache_files:
                self.index.release_buffers()

        result.duration_ms = (time.perf_counter() - started) * 1000
        self.log.verbose(
            f"Build duration: {result.duration_ms:.0f}ms, size: {result.total_size} bytes"
        )
        return result

    def chain_for(self, type_config: AssetTypeConfig) -> ProcessorChain:
        """Build the processor chain for an asset class."""
        steps = []
        if type_config.asset_class == STYLE:
            steps.append(StyleReferenceRewriter(
                self.resolver,
                type_config,
                self.log,
                on_missing_reference=self.config.build.on_missing_reference,
                compiler_timeout=self.config.build.compiler_timeout,
                lessc=self.config.build.lessc,
            ))
        if type_config.minify:
            steps.append(minify_stylesheet if type_config.asset_class == STYLE else minify_javascript)
        return ProcessorChain(steps)

    async def _run_stage(self, type_config: AssetTypeConfig, result: BuildResult) -> None:
        stage = self.stage.value
        loaded = await self.loader.load(type_config)
        if loaded.failures:
            first = loaded.failures[0]
            raise BuildError(stage, str(first)) from first

        chain = self.chain_for(type_config)

        async def process(descriptor: FileDescriptor) -> None:
            try:
                data = await chain.apply(descriptor.data, descriptor.path)
            except VersionerError as e:
                self.log.error(f"Versioning file: {descriptor.path} failed", e)
                raise
            self.commit(descriptor, data, type_config)
            result.file_count += 1
            result.total_size += len(data)

        try:
            await for_each_limit(
                loaded.descriptors, self.config.build.process_concurrency, process
            )
        except VersionerError as e:
            raise BuildError(stage, str(e)) from e

    def commit(
        self,
        descriptor: FileDescriptor,
        data: bytes,
        type_config: AssetTypeConfig,
    ) -> VersionedAssetRecord:
        """Version processed bytes and insert them into the index.

        The index path takes the versioned extension, so a ``.less`` source
        is looked up by its ``.css`` name.
        """
        extension = type_config.versioned_extension
        key = derive_key(descriptor.logical_path, data, extension)
        record = self.index.commit(
            key=key,
            path=replace_extension(descriptor.path, extension),
            data=data,
            asset_class=type_config.asset_class,
            logical_path=replace_extension(descriptor.logical_path, extension),
        )
        self.log.verbose(
            f"Added source: {descriptor.source or descriptor.logical_path}, key: {key}, size: {len(data)}"
        )
        return record

"""Configuration loader and validator for the asset versioner."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml

from versioner.errors import VersionerError

# Fixed asset classes, in build order
IMAGE = "image"
JAVASCRIPT = "javascript"
STYLE = "style"
ASSET_CLASSES = (IMAGE, JAVASCRIPT, STYLE)

BUILTIN_COMPILERS = ("less",)
MISSING_REFERENCE_POLICIES = ("marker", "empty", "fail")


class ConfigurationError(VersionerError):
    """Raised when configuration is invalid or the versioner is misused."""
    pass


@dataclass(frozen=True)
class BuiltinCompiler:
    """A style compiler shipped with the versioner, selected by name."""

    name: str


@dataclass(frozen=True)
class CustomCompiler:
    """A caller-supplied style compiler.

    ``transform`` receives the rewritten stylesheet text and returns ``str``,
    ``bytes`` or an awaitable resolving to either.
    """

    transform: Callable[[str], Any]


CompilerSpec = BuiltinCompiler | CustomCompiler


def parse_compiler(value: Any) -> CompilerSpec | None:
    """Convert a raw ``compiler`` option into a compiler spec.

    Args:
        value: Built-in compiler name, callable, existing spec or None

    Returns:
        Compiler spec, or None for plain CSS passthrough

    Raises:
        ConfigurationError: If the value names an unknown compiler
    """
    if value is None or isinstance(value, (BuiltinCompiler, CustomCompiler)):
        return value
    if isinstance(value, str):
        if value not in BUILTIN_COMPILERS:
            raise ConfigurationError(
                f"Unsupported compiler type: {value}. Supported: {', '.join(BUILTIN_COMPILERS)}"
            )
        return BuiltinCompiler(value)
    if callable(value):
        return CustomCompiler(value)
    raise ConfigurationError(f"compiler must be a name or a callable, got: {value!r}")


@dataclass(frozen=True)
class ExplicitFile:
    """An explicitly listed asset, read from ``source`` unless ``data`` is given."""

    path: str
    source: Path | None = None
    data: bytes | None = None


class AssetTypeConfig:
    """Per asset class configuration."""

    def __init__(self, asset_class: str, data: dict[str, Any]):
        if asset_class not in ASSET_CLASSES:
            raise ConfigurationError(
                f"Unknown asset class: {asset_class}. Expected one of: {', '.join(ASSET_CLASSES)}"
            )
        self.asset_class = asset_class

        root = data.get("root")
        self.root: Path | None = Path(root) if root else None
        self.url_root: str | None = data.get("url_root")

        # Compiled styles are served as css unless told otherwise
        default_extension = ".css" if asset_class == STYLE else None
        self.versioned_extension: str | None = data.get("versioned_extension", default_extension)
        if self.versioned_extension and not self.versioned_extension.startswith("."):
            self.versioned_extension = "." + self.versioned_extension

        self.compiler: CompilerSpec | None = parse_compiler(data.get("compiler"))
        if self.compiler is not None and asset_class != STYLE:
            raise ConfigurationError(f"compiler is only supported for '{STYLE}' assets")

        self.minify: bool = data.get("minify", False)
        if self.minify and asset_class == IMAGE:
            raise ConfigurationError(f"minify is not supported for '{IMAGE}' assets")

        self.files: tuple[ExplicitFile, ...] = tuple(
            self._parse_file(entry) for entry in data.get("files", [])
        )

    def _parse_file(self, entry: Any) -> ExplicitFile:
        if isinstance(entry, ExplicitFile):
            return entry
        if not isinstance(entry, dict) or not entry.get("path"):
            raise ConfigurationError(
                f"Each '{self.asset_class}' file entry needs a 'path', got: {entry!r}"
            )
        source = entry.get("source")
        data = entry.get("data")
        if source is None and data is None:
            raise ConfigurationError(
                f"File entry {entry['path']} needs either 'source' or 'data'"
            )
        if isinstance(data, str):
            data = data.encode("utf-8")
        return ExplicitFile(
            path=entry["path"],
            source=Path(source) if source is not None else None,
            data=data,
        )


class BuildConfig:
    """Build pipeline tuning."""

    def __init__(self, data: dict[str, Any]):
        self.load_concurrency: int = data.get("load_concurrency", 50)
        self.process_concurrency: int = data.get("process_concurrency", 50)
        self.save_concurrency: int = data.get("save_concurrency", 100)
        self.compiler_timeout: float | None = data.get("compiler_timeout", 60.0)
        self.lessc: str = data.get("lessc", "lessc")

        self.on_missing_reference: str = data.get("on_missing_reference", "marker")
        if self.on_missing_reference not in MISSING_REFERENCE_POLICIES:
            raise ConfigurationError(
                f"on_missing_reference must be one of {', '.join(MISSING_REFERENCE_POLICIES)}, "
                f"got: {self.on_missing_reference}"
            )

        for name in ("load_concurrency", "process_concurrency", "save_concurrency"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1")


class ServerConfig:
    """Server configuration."""

    def __init__(self, data: dict[str, Any]):
        self.host: str = data.get("host", "0.0.0.0")
        self.port: int = data.get("port", 8080)


class VersionerConfig:
    """Versioner options, usable without a config file."""

    def __init__(self, data: dict[str, Any]):
        self.url_root: str = data.get("url_root", "/")
        self.cache_files: bool = data.get("cache_files", False)
        self.log: Any = data.get("log")

        self.build = BuildConfig(data.get("build", {}))
        self.server = ServerConfig(data.get("server", {}))

        types_data = data.get("types") or {}
        self.types: dict[str, AssetTypeConfig] = {
            asset_class: AssetTypeConfig(asset_class, type_data or {})
            for asset_class, type_data in types_data.items()
        }

    def type_config(self, asset_class: str) -> AssetTypeConfig:
        """Return the configuration for an asset class.

        Raises:
            ConfigurationError: If the class is unknown or not configured
        """
        type_config = self.types.get(asset_class)
        if type_config is None:
            raise ConfigurationError(f"Asset type not configured: {asset_class}")
        return type_config

    def url_root_for(self, asset_class: str) -> str:
        """Return the URL root for an asset class with exactly one trailing slash."""
        url_root = self.type_config(asset_class).url_root or self.url_root
        return url_root.rstrip("/") + "/"


class Config(VersionerConfig):
    """Versioner configuration loaded from a YAML file."""

    def __init__(self, config_path: str | None = None):
        """Load configuration from YAML file.

        Args:
            config_path: Path to config file. Defaults to ./config.yaml
        """
        if config_path is None:
            config_path = os.getenv("CONFIG_PATH", "./config.yaml")

        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        with open(self.config_path, "r") as f:
            data = yaml.safe_load(f)

        if not data:
            raise ConfigurationError("Config file is empty")

        super().__init__(data)
        self.validate()

    def validate(self) -> None:
        """Validate that configured asset roots exist."""
        if not self.types:
            raise ConfigurationError("At least one asset type must be configured")

        for type_config in self.types.values():
            if type_config.root is not None and not type_config.root.is_dir():
                raise ConfigurationError(
                    f"{type_config.asset_class} root directory not found: {type_config.root}"
                )


def load_config(config_path: str | None = None) -> Config:
    """Load and return configuration.

    Args:
        config_path: Optional path to config file

    Returns:
        Config object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    return Config(config_path)

"""Stylesheet reference rewriting and compilation.

Stylesheets reference images through two placeholders, written with their
surrounding double quotes::

    .logo { background-image: url("versionerUrl(dir1/logo.png)"); }
    .icon { background-image: url("versionerDataUri(icons/ok.png)"); }

The first is replaced with the image's versioned URL, the second with a
base64 data URI of the image bytes. The rewritten text is then handed to the
configured compiler, if any.
"""
import asyncio
import base64
import inspect
import os
import re
from typing import Protocol

from versioner.config import (
    IMAGE,
    AssetTypeConfig,
    BuiltinCompiler,
    CustomCompiler,
)
from versioner.errors import StyleCompileError, UnresolvedReferenceError
from versioner.index import VersionedAssetRecord
from versioner.log import BuildLog
from versioner.mime import mime_type_for

PLACEHOLDER_PATTERN = re.compile(
    r'"versionerUrl\(([\s\S]+?)\)"|"versionerDataUri\(([\s\S]+?)\)"'
)

MISSING_MARKER = "versioner-missing:"


class ImageResolver(Protocol):
    """Read access to the already-built image assets."""

    def url(self, path: str, asset_class: str) -> str | None: ...

    def record_for_path(self, path: str, asset_class: str) -> VersionedAssetRecord | None: ...


async def compile_less(
    text: str,
    include_paths: list[str],
    path: str,
    lessc: str = "lessc",
    timeout: float | None = None,
) -> bytes:
    """Compile LESS source by piping it through the ``lessc`` executable.

    Args:
        text: LESS source
        include_paths: Directories searched for ``@import``
        path: Index path of the stylesheet, for diagnostics
        lessc: Compiler executable
        timeout: Seconds to wait for the compiler, None to wait forever

    Returns:
        Compiled CSS bytes

    Raises:
        StyleCompileError: If the compiler is missing, fails or times out
    """
    args = [lessc, "--no-color"]
    if include_paths:
        args.append(f"--include-path={os.pathsep.join(include_paths)}")
    args.append("-")

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise StyleCompileError(path, f"cannot run {lessc}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(text.encode("utf-8")), timeout
        )
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise StyleCompileError(path, f"{lessc} timed out after {timeout}s") from e

    if process.returncode != 0:
        raise StyleCompileError(path, stderr.decode("utf-8", errors="replace").strip())
    return stdout


class StyleReferenceRewriter:
    """Processor step that resolves image placeholders and compiles styles."""

    def __init__(
        self,
        resolver: ImageResolver,
        type_config: AssetTypeConfig,
        log: BuildLog,
        on_missing_reference: str = "marker",
        compiler_timeout: float | None = None,
        lessc: str = "lessc",
    ):
        """Initialize rewriter.

        Args:
            resolver: Resolves image paths against the built index
            type_config: Style type configuration
            log: Build log capability
            on_missing_reference: 'marker', 'empty' or 'fail'
            compiler_timeout: Seconds allowed for the built-in compiler
            lessc: Executable used for the built-in LESS compiler
        """
        self.resolver = resolver
        self.type_config = type_config
        self.log = log
        self.on_missing_reference = on_missing_reference
        self.compiler_timeout = compiler_timeout
        self.lessc = lessc

    async def __call__(self, data: bytes, path: str) -> bytes:
        text = self.rewrite(data.decode("utf-8"), path)
        return await self.compile(text, path)

    def rewrite(self, text: str, path: str) -> str:
        """Replace every placeholder in ``text``.

        Args:
            text: Stylesheet source
            path: Index path of the stylesheet, for diagnostics

        Returns:
            Text with placeholders substituted; everything else is unchanged

        Raises:
            UnresolvedReferenceError: If a reference is missing and the policy is 'fail'
        """

        def replace(match: re.Match) -> str:
            url_path, data_uri_path = match.groups()
            if url_path is not None:
                return self._image_url(url_path, path)
            return self._data_uri(data_uri_path, path)

        return PLACEHOLDER_PATTERN.sub(replace, text)

    def _image_url(self, image_path: str, style_path: str) -> str:
        url = self.resolver.url(image_path, IMAGE)
        if url is None:
            self.log.error(f"Missing image: {image_path} (referenced from {style_path})")
            return self._missing(image_path, style_path)
        return url

    def _data_uri(self, image_path: str, style_path: str) -> str:
        record = self.resolver.record_for_path(image_path, IMAGE)
        if record is None or record.data is None:
            self.log.error(f"Missing datauri image: {image_path} (referenced from {style_path})")
            return self._missing(image_path, style_path)
        encoded = base64.b64encode(record.data).decode("ascii")
        return f"data:{mime_type_for(image_path)};base64,{encoded}"

    def _missing(self, image_path: str, style_path: str) -> str:
        if self.on_missing_reference == "fail":
            raise UnresolvedReferenceError(style_path, image_path)
        if self.on_missing_reference == "empty":
            return ""
        return MISSING_MARKER + image_path

    async def compile(self, text: str, path: str) -> bytes:
        """Run the configured compiler over rewritten text.

        Args:
            text: Rewritten stylesheet source
            path: Index path of the stylesheet, for diagnostics

        Returns:
            Final stylesheet bytes
        """
        compiler = self.type_config.compiler

        match compiler:
            case BuiltinCompiler(name="less"):
                include_paths = [str(self.type_config.root)] if self.type_config.root else []
                try:
                    return await compile_less(
                        text,
                        include_paths,
                        path,
                        lessc=self.lessc,
                        timeout=self.compiler_timeout,
                    )
                except StyleCompileError as e:
                    self.log.error(f"LESS compilation failed: {path}", e)
                    raise
            case CustomCompiler(transform=transform):
                result = transform(text)
                if inspect.isawaitable(result):
                    result = await result
                if isinstance(result, str):
                    result = result.encode("utf-8")
                if not isinstance(result, (bytes, bytearray)):
                    raise StyleCompileError(
                        path, f"custom compiler returned {type(result).__name__}, expected str or bytes"
                    )
                return bytes(result)
            case None:
                return text.encode("utf-8")
            case _:
                raise StyleCompileError(path, f"Unsupported compiler: {compiler}")

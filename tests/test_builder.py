"""Tests for builder module."""
import base64

import pytest
import rjsmin

from versioner.builder import BuildOrchestrator, Stage
from versioner.core import Versioner
from versioner.errors import AssetLoadError, BuildError, UnresolvedReferenceError
from versioner.index import VersionedAssetIndex

from conftest import IMAGES, SCRIPTS, STYLES, URL_ROOT, md5


def image_url(path):
    stem, ext = path.rsplit("/", 1)[-1].rsplit(".", 1)
    return f"{URL_ROOT}/{stem}.{md5(IMAGES[path])}.{ext}"


class TestStage:
    """Tests for Stage enum."""

    def test_order(self):
        assert Stage.IMAGES.next() is Stage.SCRIPTS
        assert Stage.SCRIPTS.next() is Stage.STYLES
        assert Stage.STYLES.next() is Stage.DONE
        assert Stage.DONE.next() is Stage.DONE

    def test_asset_class(self):
        assert Stage.IMAGES.asset_class == "image"
        assert Stage.STYLES.asset_class == "style"
        assert Stage.DONE.asset_class is None


class TestBuild:
    """Tests for BuildOrchestrator.run through Versioner.build."""

    @pytest.mark.asyncio
    async def test_builds_every_stage(self, versioner_options, recording_log):
        versioner = Versioner(versioner_options, log=recording_log)

        result = await versioner.build()

        assert result.stages == ["image", "javascript", "style"]
        assert result.file_count == len(IMAGES) + len(SCRIPTS) + len(STYLES)
        assert len(versioner.index) == result.file_count
        assert versioner.get(f"abc.{md5(IMAGES['dir1/abc.jpg'])}.jpg") is not None
        assert versioner.get(f"baz.{md5(SCRIPTS['dir1/baz.js'])}.js") is not None

    @pytest.mark.asyncio
    async def test_unconfigured_stages_skipped(self, asset_dirs, recording_log):
        versioner = Versioner(
            {"types": {"javascript": {"root": str(asset_dirs["javascript"])}}},
            log=recording_log,
        )

        result = await versioner.build()

        assert result.stages == ["javascript"]
        assert len(versioner.index) == len(SCRIPTS)

    @pytest.mark.asyncio
    async def test_empty_configuration(self, recording_log):
        result = await Versioner({}, log=recording_log).build()
        assert result.stages == []
        assert result.file_count == 0

    @pytest.mark.asyncio
    async def test_styles_see_built_images(self, cached_options, recording_log):
        """Test style placeholders resolve to the image keys of the same build."""
        versioner = Versioner(cached_options, log=recording_log)
        await versioner.build()

        expected = (
            f'.foo {{ background-image: url({image_url("img1.jpg")}); }}\n'
            f'.bar {{ background-image: url({image_url("img2.jpg")}); }}\n'
            f'.foobar {{ background-image: url({image_url("dir1/abc.jpg")}); }}\n'
        ).encode("utf-8")
        record = versioner.get(f"url-replace.{md5(expected)}.css")

        assert record is not None
        assert record.data == expected
        recording_log.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_data_uri_embeds_image(self, cached_options, recording_log):
        versioner = Versioner(cached_options, log=recording_log)
        await versioner.build()

        encoded = base64.b64encode(IMAGES["icons/ok.png"]).decode("ascii")
        expected = (
            f".icon {{ background-image: url(data:image/png;base64,{encoded}); }}\n"
        ).encode("utf-8")

        assert versioner.get(f"datauri-replace.{md5(expected)}.css").data == expected

    @pytest.mark.asyncio
    async def test_mixed_placeholders_round_trip(self, asset_dirs, tmp_path, recording_log):
        """Test URL and data URI placeholders in one file resolve and nothing else changes."""
        styles = tmp_path / "mixed"
        styles.mkdir()
        source = (
            '/* site */\n'
            '@media print { .hide { display: none; } }\n'
            '.a { background: url("versionerUrl(img1.jpg)"); }\n'
            '.b { background: url("versionerUrl(/dir1/abc.jpg)"); color: #fff; }\n'
            '.c { background: url("versionerDataUri(icons/ok.png)"); }\n'
            '.d { background: url("versionerDataUri(img2.jpg)"), url("plain.png"); }\n'
        )
        (styles / "site.css").write_text(source)
        versioner = Versioner({
            "url_root": URL_ROOT,
            "cache_files": True,
            "types": {
                "image": {"root": str(asset_dirs["image"])},
                "style": {"root": str(styles)},
            },
        }, log=recording_log)

        await versioner.build()

        ok_png = base64.b64encode(IMAGES["icons/ok.png"]).decode("ascii")
        img2 = base64.b64encode(IMAGES["img2.jpg"]).decode("ascii")
        expected = (
            '/* site */\n'
            '@media print { .hide { display: none; } }\n'
            f'.a {{ background: url({image_url("img1.jpg")}); }}\n'
            f'.b {{ background: url({image_url("dir1/abc.jpg")}); color: #fff; }}\n'
            f'.c {{ background: url(data:image/png;base64,{ok_png}); }}\n'
            f'.d {{ background: url(data:image/jpeg;base64,{img2}), url("plain.png"); }}\n'
        )
        data = versioner.record_for_path("site.css", "style").data.decode("utf-8")

        assert data == expected
        assert data.count(f"{URL_ROOT}/") == 2
        assert data.count(";base64,") == 2
        assert "versioner" not in data
        recording_log.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_less_source_indexed_as_css(self, tmp_path, recording_log, fake_lessc):
        """Test a .less source is versioned and looked up under its .css name."""
        (tmp_path / "site.less").write_bytes(b"@c: red; a { color: @c; }")
        versioner = Versioner(
            {"cache_files": True, "types": {"style": {"root": str(tmp_path), "compiler": "less"}}},
            log=recording_log,
        )

        await versioner.build()

        compiled = b"compiled:@c: red; a { color: @c; }"
        key = f"site.{md5(compiled)}.css"
        assert versioner.key_for("site.css", "style") == key
        assert versioner.key_for("site.less", "style") is None
        assert versioner.get(key).data == compiled
        assert versioner.manifest() == {"style": {"site.css": key}}

    @pytest.mark.asyncio
    async def test_minify_changes_key(self, asset_dirs, recording_log):
        versioner = Versioner(
            {"cache_files": True, "types": {
                "javascript": {"root": str(asset_dirs["javascript"]), "minify": True},
            }},
            log=recording_log,
        )

        await versioner.build()

        minified = rjsmin.jsmin(SCRIPTS["dir1/baz.js"].decode("utf-8")).encode("utf-8")
        assert versioner.key_for("dir1/baz.js", "javascript") == f"baz.{md5(minified)}.js"

    @pytest.mark.asyncio
    async def test_identical_content_shares_key(self, tmp_path, recording_log):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "logo.png").write_bytes(b"same")
        (tmp_path / "b" / "logo.png").write_bytes(b"same")
        versioner = Versioner({"types": {"image": {"root": str(tmp_path)}}}, log=recording_log)

        result = await versioner.build()

        assert result.file_count == 2
        assert len(versioner.index) == 1
        assert versioner.key_for("a/logo.png", "image") == versioner.key_for("b/logo.png", "image")


class TestBuffers:
    """Tests for buffer release after a build."""

    @pytest.mark.asyncio
    async def test_buffers_released_without_cache(self, versioner_options, recording_log):
        versioner = Versioner(versioner_options, log=recording_log)
        await versioner.build()

        assert all(record.data is None for record in versioner.index.records())
        assert versioner.image_url("img1.jpg") == image_url("img1.jpg")

    @pytest.mark.asyncio
    async def test_buffers_kept_with_cache(self, cached_options, recording_log):
        versioner = Versioner(cached_options, log=recording_log)
        await versioner.build()

        assert versioner.record_for_path("img1.jpg", "image").data == IMAGES["img1.jpg"]


class TestBuildFailures:
    """Tests for fail-fast build behavior."""

    @pytest.mark.asyncio
    async def test_load_failure_stops_later_stages(self, asset_dirs, tmp_path, recording_log):
        versioner = Versioner({
            "url_root": URL_ROOT,
            "cache_files": True,
            "types": {
                "image": {"root": str(asset_dirs["image"])},
                "javascript": {"files": [
                    {"source": str(tmp_path / "missing.js"), "path": "missing.js"},
                ]},
                "style": {"root": str(asset_dirs["style"])},
            },
        }, log=recording_log)

        with pytest.raises(BuildError) as exc_info:
            await versioner.build()

        assert exc_info.value.stage == "javascript"
        assert isinstance(exc_info.value.__cause__, AssetLoadError)
        # Images committed before the failure remain
        assert versioner.image_url("img1.jpg") == image_url("img1.jpg")
        assert versioner.key_for("dir1/baz.css", "style") is None

    @pytest.mark.asyncio
    async def test_unresolved_reference_fails_style_stage(self, asset_dirs, tmp_path, recording_log):
        styles = tmp_path / "broken"
        styles.mkdir()
        (styles / "a.css").write_bytes(b'a { background: url("versionerUrl(gone.png)"); }')
        versioner = Versioner({
            "build": {"on_missing_reference": "fail"},
            "types": {
                "image": {"root": str(asset_dirs["image"])},
                "style": {"root": str(styles)},
            },
        }, log=recording_log)

        with pytest.raises(BuildError) as exc_info:
            await versioner.build()

        assert exc_info.value.stage == "style"
        assert isinstance(exc_info.value.__cause__, UnresolvedReferenceError)
        assert any(
            "Versioning file:" in call.args[0] for call in recording_log.error.call_args_list
        )

    @pytest.mark.asyncio
    async def test_buffers_released_after_failure(self, asset_dirs, tmp_path, recording_log):
        versioner = Versioner({
            "types": {
                "image": {"root": str(asset_dirs["image"])},
                "javascript": {"files": [
                    {"source": str(tmp_path / "missing.js"), "path": "missing.js"},
                ]},
            },
        }, log=recording_log)

        with pytest.raises(BuildError):
            await versioner.build()

        assert len(versioner.index) == len(IMAGES)
        assert all(record.data is None for record in versioner.index.records())


class TestChainFor:
    """Tests for BuildOrchestrator.chain_for method."""

    def test_chain_lengths(self, versioner_options, recording_log):
        versioner = Versioner(versioner_options, log=recording_log)
        orchestrator = BuildOrchestrator(
            versioner.config, VersionedAssetIndex(), versioner, recording_log
        )
        types = versioner.config.types

        assert len(orchestrator.chain_for(types["image"])) == 0
        assert len(orchestrator.chain_for(types["javascript"])) == 0
        assert len(orchestrator.chain_for(types["style"])) == 1

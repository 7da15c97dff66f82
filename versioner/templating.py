"""Jinja2 helpers for emitting versioned asset URLs from templates."""
from jinja2 import Environment

from versioner.core import Versioner


def install_template_helpers(env: Environment, versioner: Versioner) -> None:
    """Register versioned URL helpers as template globals.

    Templates can then write ``{{ css_url('site.css') }}`` or
    ``{{ asset_url('logo.png', 'image') }}``. Unbuilt assets render as an
    empty string.

    Args:
        env: Jinja2 environment (e.g. ``Jinja2Templates(...).env``)
        versioner: Built versioner
    """

    def asset_url(path: str, asset_class: str) -> str:
        return versioner.url(path, asset_class) or ""

    env.globals["asset_url"] = asset_url
    env.globals["image_url"] = lambda path: versioner.image_url(path) or ""
    env.globals["js_url"] = lambda path: versioner.js_url(path) or ""
    env.globals["css_url"] = lambda path: versioner.css_url(path) or ""

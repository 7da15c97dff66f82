"""
Example: Serving versioned assets from a FastAPI app

Install dependencies:
    pip install -e .

Usage:
    uvicorn examples.fastapi_app:app --port 8080

Expects public/images, public/javascripts and public/stylesheets next to
the working directory.
"""
from contextlib import asynccontextmanager

from jinja2 import DictLoader, Environment, select_autoescape
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from versioner.core import Versioner
from versioner.delivery import VersionedAssetMiddleware
from versioner.templating import install_template_helpers

versioner = Versioner({
    "url_root": "http://localhost:8080/assets",
    "cache_files": True,
    "types": {
        "image": {"root": "public/images"},
        "javascript": {"root": "public/javascripts", "minify": True},
        "style": {"root": "public/stylesheets", "compiler": "less"},
    },
})

env = Environment(
    loader=DictLoader({
        "index.html": (
            "<html><head>"
            '<link rel="stylesheet" href="{{ css_url(\'site.css\') }}">'
            "</head><body>"
            '<img src="{{ image_url(\'logo.png\') }}">'
            '<script src="{{ js_url(\'app.js\') }}"></script>'
            "</body></html>"
        ),
    }),
    autoescape=select_autoescape(),
)
install_template_helpers(env, versioner)


@asynccontextmanager
async def lifespan(app: FastAPI):
    result = await versioner.build()
    print(f"Versioned {result.file_count} files in {result.duration_ms:.0f}ms")
    yield


app = FastAPI(lifespan=lifespan)
app.add_middleware(VersionedAssetMiddleware, versioner=versioner)


@app.get("/", response_class=HTMLResponse)
async def index():
    return env.get_template("index.html").render()

"""
Pytest configuration and shared fixtures for CertEngine tests.
"""

import io

import pytest
import requests
from PIL import Image, ImageFont

import pipeline
from app import create_app
from config import Settings
from errors import RenderError


def make_png(width=320, height=200, color=(250, 245, 230)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, status_code=200, content=b"", payload=None):
        self.status_code = status_code
        self.content = content
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeRasterizer:
    """Stands in for the Pillow rasterizer; fails for any overlay whose name is in fail_on."""

    def __init__(self):
        self.fail_on = set()
        self.overlays = []
        self.documents = []

    def __call__(self, overlay, typeface):
        self.overlays.append(overlay)
        self.documents.append(overlay.to_svg())
        if overlay.name in self.fail_on:
            raise RenderError(f"Could not rasterize certificate: {overlay.name}")
        return make_png(4, 4)


@pytest.fixture
def settings():
    return Settings(
        google_fonts_api_key="test-key",
        allowed_origins=("http://localhost:3000",),
        font_fetch_timeout=1.0,
        catalog_timeout=1.0,
        zip_compression_level=6,
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def template_png():
    return make_png(320, 200)


@pytest.fixture
def fake_rasterizer(monkeypatch):
    fake = FakeRasterizer()
    monkeypatch.setattr(pipeline, "rasterize", fake)
    return fake


@pytest.fixture
def font_bytes():
    """TrueType bytes of the face Pillow bundles with its FreeType build."""
    data = getattr(ImageFont.load_default(size=24), "font_bytes", None)
    if not data:
        pytest.skip("Pillow was built without FreeType")
    return data


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def fake_response():
    return FakeResponse

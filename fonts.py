"""
Font resolution for certificate rendering.

A request names its font in one of three ways: an uploaded font file, a
remote font URL (usually a Google Fonts file link), or just a family name.
The choice is made once per request by choose_font_source() and turned into
a ResolvedFont by resolve_font(); the composer only ever sees the
ResolvedFont.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlparse

import requests
from PIL import ImageFont

from errors import CertEngineError, FontEmbedError, ValidationError

logger = logging.getLogger(__name__)

CUSTOM_FONT_FAMILY = "CustomCertFont"
DEFAULT_FAMILY = "Arial"
GENERIC_FALLBACK = "sans-serif"

# Renderers without WOFF2 support still read the TTF sibling Google Fonts serves
COMPRESSED_FONT_TOKEN = "woff2"
UNCOMPRESSED_FONT_TOKEN = "ttf"


@dataclass(frozen=True)
class CustomFont:
    data: bytes
    filename: str


@dataclass(frozen=True)
class RemoteFont:
    url: str
    family: str


@dataclass(frozen=True)
class SystemFont:
    family: str


FontSource = Union[CustomFont, RemoteFont, SystemFont]


@dataclass(frozen=True)
class FontPayload:
    data: bytes
    mime: str
    format: str


@dataclass(frozen=True)
class ResolvedFont:
    # style reference, e.g. "'Roboto', sans-serif"
    family: str
    # bare face name: @font-face identifier or system lookup name
    name: str
    payload: Optional[FontPayload] = None

    @property
    def embedded(self) -> bool:
        return self.payload is not None


def _format_for(name: str):
    if name.lower().endswith(".otf"):
        return "font/otf", "opentype"
    return "font/ttf", "truetype"


def _clean_family(family: Optional[str]) -> str:
    family = (family or "").strip().replace("'", "").replace('"', "")
    return family or DEFAULT_FAMILY


def choose_font_source(custom_font: Optional[CustomFont], font_url: Optional[str], family: Optional[str]) -> FontSource:
    """Pick the font source: uploaded file, then remote URL, then family name."""
    if custom_font is not None:
        return custom_font
    if font_url and font_url.strip():
        return RemoteFont(url=font_url.strip(), family=_clean_family(family))
    return SystemFont(family=_clean_family(family))


def rewrite_font_url(url: str) -> str:
    return url.replace(COMPRESSED_FONT_TOKEN, UNCOMPRESSED_FONT_TOKEN)


def fetch_remote_font(url: str, settings) -> Optional[FontPayload]:
    """
    Download a font file for embedding.

    The URL is rewritten from WOFF2 to TTF first. Returns None on any
    network or HTTP failure so the caller can fall back to a system font.
    """
    font_url = rewrite_font_url(url)
    try:
        response = requests.get(font_url, timeout=settings.font_fetch_timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning(f"Failed to download font from {font_url}: {exc}")
        return None

    if not response.content:
        logger.warning(f"Font download from {font_url} returned an empty body")
        return None

    mime, fmt = _format_for(urlparse(font_url).path)
    return FontPayload(data=response.content, mime=mime, format=fmt)


def _is_readable_font(data: bytes) -> bool:
    try:
        ImageFont.truetype(io.BytesIO(data), 12)
    except OSError:
        return False
    return True


def _system_font(family: str) -> ResolvedFont:
    logger.info(f"Using system font: {family}")
    return ResolvedFont(family=f"'{family}', {GENERIC_FALLBACK}", name=family)


def _resolve(source: FontSource, settings) -> ResolvedFont:
    if isinstance(source, CustomFont):
        data = bytes(source.data)
        if not _is_readable_font(data):
            raise ValidationError("Uploaded font could not be read.")
        mime, fmt = _format_for(source.filename or "")
        logger.info(f"Using custom uploaded font: {source.filename}")
        return ResolvedFont(
            family=f"'{CUSTOM_FONT_FAMILY}'",
            name=CUSTOM_FONT_FAMILY,
            payload=FontPayload(data=data, mime=mime, format=fmt),
        )

    if isinstance(source, RemoteFont):
        payload = fetch_remote_font(source.url, settings)
        if payload is not None and not _is_readable_font(payload.data):
            logger.warning(f"Downloaded font for {source.family} is not a readable TrueType/OpenType file")
            payload = None
        if payload is None:
            logger.warning(f"Font download failed for {source.family}, using system font instead")
            return _system_font(source.family)
        logger.info(f"Using downloaded font: {source.family}")
        return ResolvedFont(family=f"'{source.family}'", name=source.family, payload=payload)

    return _system_font(source.family)


def resolve_font(source: FontSource, settings) -> ResolvedFont:
    """Resolve once per request; a failed remote fetch degrades to the system font."""
    try:
        return _resolve(source, settings)
    except CertEngineError:
        raise
    except Exception as exc:
        logger.exception("Critical error during font handling")
        raise FontEmbedError("Font embedding failed on the server.") from exc

import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

DEFAULT_ORIGINS = ("http://localhost:3000", "https://certfyme.netlify.app")


def _split_origins(raw):
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and never mutated."""

    google_fonts_api_key: str = ""
    port: int = 5001
    allowed_origins: Tuple[str, ...] = field(default=DEFAULT_ORIGINS)
    font_fetch_timeout: float = 15.0
    catalog_timeout: float = 10.0
    zip_compression_level: int = 9
    max_upload_mb: int = 50
    log_level: str = "INFO"
    archive_filename: str = "Certificates_Batch.zip"

    @classmethod
    def from_env(cls, dotenv_path=None):
        # .env values never override variables already set in the environment
        load_dotenv(dotenv_path)

        origins_env = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
        return cls(
            google_fonts_api_key=os.getenv("GOOGLE_FONTS_API_KEY", "").strip(),
            port=int(os.getenv("PORT", "5001")),
            allowed_origins=_split_origins(origins_env) if origins_env else DEFAULT_ORIGINS,
            font_fetch_timeout=float(os.getenv("FONT_FETCH_TIMEOUT_S", "15")),
            catalog_timeout=float(os.getenv("CATALOG_TIMEOUT_S", "10")),
            zip_compression_level=int(os.getenv("ZIP_COMPRESSION_LEVEL", "9")),
            max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "50")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

import logging

import requests

from errors import UpstreamFetchError

logger = logging.getLogger(__name__)

FONT_LIST_URL = "https://www.googleapis.com/webfonts/v1/webfonts"


def fetch_font_catalog(settings):
    """Return Google Fonts families as [{family, files, category}], most popular first."""
    try:
        response = requests.get(
            FONT_LIST_URL,
            params={"key": settings.google_fonts_api_key, "sort": "popularity"},
            timeout=settings.catalog_timeout,
        )
        response.raise_for_status()
        items = response.json()["items"]
        return [
            {"family": item["family"], "files": item.get("files", {}), "category": item.get("category")}
            for item in items
        ]
    except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
        logger.exception("Error fetching Google Fonts")
        raise UpstreamFetchError("Failed to fetch font list from Google API.") from exc

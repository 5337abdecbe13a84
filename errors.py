"""
Exceptions raised by the certificate pipeline.

Each exception carries the HTTP status the web layer answers with when it
escapes a request handler. RenderError never reaches the web layer: the
batch loop catches it per name.
"""


class CertEngineError(Exception):
    """Base exception for all CertEngine errors."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(CertEngineError):
    """Missing or unusable request input."""

    status_code = 400


class UpstreamFetchError(CertEngineError):
    """The font catalog service could not be reached or answered badly."""

    status_code = 502


class FontEmbedError(CertEngineError):
    """Unexpected failure while turning the requested font into an embeddable payload."""

    status_code = 500


class RenderError(CertEngineError):
    """A single certificate could not be rasterized."""

    status_code = 500

"""
Batch generation: one request in, one streamed ZIP of certificates out.

prepare_batch() does all the work that can fail the whole request (name
list, template, font) before a single byte is sent. stream_certificates()
then renders names one at a time and yields archive bytes as each entry is
added; a name that fails to render is skipped and recorded.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from archive import BatchArchiver
from errors import FontEmbedError, RenderError, ValidationError
from fonts import CustomFont, ResolvedFont, choose_font_source, resolve_font
from names import extract_names, sanitize_entry_name
from overlay import Placement, TemplateImage, TextStyle, compose_overlay, load_typeface, rasterize, read_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    data: bytes
    filename: str = ""
    mimetype: Optional[str] = None


@dataclass(frozen=True)
class GenerationRequest:
    template: Optional[UploadedFile]
    name_list: Optional[UploadedFile]
    placement: Placement
    style: TextStyle
    font_family: str = ""
    custom_font: Optional[UploadedFile] = None
    font_url: Optional[str] = None


@dataclass
class SkippedName:
    name: str
    reason: str


@dataclass
class BatchReport:
    rendered: List[str] = field(default_factory=list)
    skipped: List[SkippedName] = field(default_factory=list)

    @property
    def total(self):
        return len(self.rendered) + len(self.skipped)


@dataclass(frozen=True)
class RenderedCertificate:
    entry_name: str
    png: bytes


@dataclass
class PreparedBatch:
    names: List[str]
    template: TemplateImage
    font: ResolvedFont
    placement: Placement
    style: TextStyle
    typeface: Any = None
    compresslevel: int = 9
    report: BatchReport = field(default_factory=BatchReport)


def prepare_batch(gen_request: GenerationRequest, settings) -> PreparedBatch:
    if gen_request.template is None or gen_request.name_list is None:
        raise ValidationError("Missing template image or CSV file.")

    names = extract_names(gen_request.name_list.data, gen_request.name_list.filename)

    custom_font = None
    if gen_request.custom_font is not None:
        custom_font = CustomFont(data=gen_request.custom_font.data, filename=gen_request.custom_font.filename)
    source = choose_font_source(custom_font, gen_request.font_url, gen_request.font_family)
    font = resolve_font(source, settings)

    template = read_template(gen_request.template.data, gen_request.template.mimetype)
    logger.info(f"Template is {template.width}x{template.height} ({template.mime}), {len(names)} names queued")

    try:
        typeface = load_typeface(font, gen_request.style.font_size)
    except (OSError, ValueError) as exc:
        logger.exception("Could not load the resolved font")
        raise FontEmbedError("Font embedding failed on the server.") from exc

    return PreparedBatch(
        names=names,
        template=template,
        font=font,
        placement=gen_request.placement,
        style=gen_request.style,
        typeface=typeface,
        compresslevel=settings.zip_compression_level,
    )


def render_certificate(batch: PreparedBatch, name: str) -> RenderedCertificate:
    overlay = compose_overlay(batch.template, name, batch.placement, batch.style, batch.font)
    png = rasterize(overlay, batch.typeface)
    return RenderedCertificate(entry_name=f"{sanitize_entry_name(name)}.png", png=png)


def stream_certificates(batch: PreparedBatch) -> Iterator[bytes]:
    """Yield the ZIP archive in chunks, one rendered certificate at a time."""
    archiver = BatchArchiver(compresslevel=batch.compresslevel)
    report = batch.report
    try:
        for name in batch.names:
            try:
                certificate = render_certificate(batch, name)
            except RenderError as exc:
                logger.warning(f"Error processing certificate for {name!r}: {exc}")
                report.skipped.append(SkippedName(name=name, reason=str(exc)))
                continue

            stored_as = archiver.append(certificate.entry_name, certificate.png)
            report.rendered.append(stored_as)
            chunk = archiver.drain()
            if chunk:
                yield chunk

        archiver.finalize()
        tail = archiver.drain()
        if tail:
            yield tail
    except GeneratorExit:
        logger.warning(f"Client disconnected after {len(report.rendered)} of {len(batch.names)} certificates")
        raise
    finally:
        archiver.close()

    logger.info(f"Batch complete: {len(report.rendered)} rendered, {len(report.skipped)} skipped")
    if report.skipped:
        logger.warning(f"Skipped names: {', '.join(s.name for s in report.skipped)}")

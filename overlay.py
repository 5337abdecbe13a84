import base64
import io
import logging
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from PIL import Image, ImageColor, ImageDraw, ImageFont, UnidentifiedImageError

from errors import RenderError, ValidationError

logger = logging.getLogger(__name__)

# tried after the requested family when no font payload was embedded
FALLBACK_FONT_FILES = ("DejaVuSans.ttf", "LiberationSans-Regular.ttf")


@dataclass(frozen=True)
class TemplateImage:
    data: bytes
    mime: str
    width: int
    height: int
    data_uri: str = field(repr=False)
    image: Image.Image = field(repr=False, compare=False)


@dataclass(frozen=True)
class Placement:
    x: float
    y: float


@dataclass(frozen=True)
class TextStyle:
    font_size: float
    color: str = "#000000"


def check_color(color):
    try:
        ImageColor.getrgb(color)
    except ValueError:
        raise ValidationError(f"Unknown font colour: {color!r}") from None
    return color


def read_template(data, declared_mime=None):
    """Decode the template once; placement is always in its intrinsic pixels."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            detected_mime = Image.MIME.get(img.format, "image/png")
            canvas = img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ValidationError("Template is not a readable image.") from exc

    mime = declared_mime if declared_mime and declared_mime.startswith("image/") else detected_mime
    return TemplateImage(
        data=data,
        mime=mime,
        width=canvas.width,
        height=canvas.height,
        data_uri=f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}",
        image=canvas,
    )


def load_typeface(font, size):
    """
    Load the face used for every name in a batch.

    An embedded payload is always used as-is. Otherwise the family is looked
    up among installed fonts, then the common fallbacks, then Pillow's
    bundled default face.
    """
    if font.payload is not None:
        return ImageFont.truetype(io.BytesIO(font.payload.data), size)

    for candidate in (font.name, *FALLBACK_FONT_FILES):
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    logger.warning(f"No installed font found for {font.name}, using Pillow's default face")
    return ImageFont.load_default(size=size)


@dataclass(frozen=True)
class Overlay:
    """One composed certificate: the template with a single centred name on top."""

    template: TemplateImage
    name: str
    placement: Placement
    style: TextStyle
    font: object

    @property
    def size(self):
        return self.template.width, self.template.height

    def _font_face_rule(self):
        payload = self.font.payload
        encoded = base64.b64encode(payload.data).decode("ascii")
        return (
            "@font-face {"
            f" font-family: '{self.font.name}';"
            f' src: url("data:{payload.mime};base64,{encoded}") format("{payload.format}");'
            " font-weight: normal; font-style: normal; }"
        )

    def to_svg(self):
        width, height = self.size
        rules = []
        if self.font.payload is not None:
            rules.append(self._font_face_rule())
        rules.append(
            ".name {"
            f" font-family: {self.font.family};"
            f" font-size: {self.style.font_size}px;"
            f" fill: {self.style.color};"
            " text-anchor: middle; dominant-baseline: middle; }"
        )

        return (
            f'<svg width="{width}" height="{height}" viewBox="0 0 {width} {height}" '
            'xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink">'
            f"<style>{escape(' '.join(rules))}</style>"
            f'<image x="0" y="0" width="{width}" height="{height}" xlink:href="{self.template.data_uri}"/>'
            f'<text x="{self.placement.x}" y="{self.placement.y}" class="name" '
            'text-anchor="middle" dominant-baseline="middle">'
            f"{escape(self.name)}</text>"
            "</svg>"
        )


def compose_overlay(template, name, placement, style, font):
    return Overlay(template=template, name=name, placement=placement, style=style, font=font)


def rasterize(overlay, typeface):
    """Draw the overlay onto a copy of the template and return PNG bytes."""
    canvas = overlay.template.image.copy()
    draw = ImageDraw.Draw(canvas)
    try:
        # "mm": the text box is centred on (x, y) in both axes
        draw.text(
            (overlay.placement.x, overlay.placement.y),
            overlay.name,
            fill=overlay.style.color,
            font=typeface,
            anchor="mm",
        )
        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
    except (OSError, ValueError) as exc:
        raise RenderError(f"Could not rasterize certificate: {exc}") from exc
    return buffer.getvalue()

#!/usr/bin/env python3
"""
Catalog card compositor.

Builds one card per product:
1. White canvas with the template stretched to the full canvas
2. Product photo scaled to the record's photo height, centered
   horizontally and cover-fitted into its box
3. Upper-cased "TITLE PRICE" caption wrapped at the bottom, with the
   widest word on a highlight box
4. Encoded as JPEG

Layout decisions live in geometry.py and text_layout.py; this module only
decodes, draws and encodes with Pillow.
"""

import io
import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import lru_cache
from typing import Optional, Union

from PIL import Image, ImageDraw, ImageFont

from config import (
    BACKGROUND_COLOR,
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    HIGHLIGHT_FILL,
    HIGHLIGHT_OUTLINE,
    JPEG_QUALITY,
    SIDE_MARGIN,
    TEXT_COLOR,
    TEXT_STROKE_WIDTH,
    font_paths,
)
from errors import DecodeFailure, MeasurementUnavailable
from geometry import cover_fit, derived_width, horizontal_center_offset
from records import CompositionResult, LayoutSettings, ProductRecord, output_name_for
from text_layout import MODE_HIGHLIGHT, Measure, TextLayout, layout_text

Canvas = tuple[int, int]
DEFAULT_CANVAS: Canvas = (CANVAS_WIDTH, CANVAS_HEIGHT)


def format_price(value: Union[str, int, float, Decimal, None]) -> str:
    """
    Colombian peso formatting with no decimals, e.g. 3500 -> "$ 3.500".

    Strings keep only their digits ("3.500" and "$3,500" both read as
    3500). Non-finite numbers and strings without digits give "".
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float, Decimal)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return ""
        if not number.is_finite():
            return ""
    else:
        digits = re.sub(r"[^\d]", "", str(value))
        if not digits:
            return ""
        number = Decimal(digits)

    rounded = int(number.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    amount = f"{abs(rounded):,}".replace(",", ".")
    sign = "-" if rounded < 0 else ""
    return f"{sign}$ {amount}"


def card_text(record: ProductRecord) -> str:
    """Caption drawn on the card: title and price, upper-cased."""
    return f"{record.title} {format_price(record.price)}".upper()


@lru_cache(maxsize=32)
def load_font(size: int) -> ImageFont.FreeTypeFont:
    """
    Load the card font at `size` px.

    Tries CATALOG_FONT_PATH and the known heavy sans fonts, then Pillow's
    bundled scalable font.

    Raises:
        MeasurementUnavailable: no scalable font could be loaded
    """
    for path in font_paths():
        try:
            return ImageFont.truetype(path, size=size)
        except OSError:
            continue

    try:
        font = ImageFont.load_default(size=size)
    except (ImportError, OSError, TypeError) as e:
        raise MeasurementUnavailable("No scalable font available for text measurement", cause=e)
    if not isinstance(font, ImageFont.FreeTypeFont):
        raise MeasurementUnavailable("Pillow was built without FreeType; cannot measure text")
    logging.warning("No card font found, using Pillow's default font at %spx", size)
    return font


def font_for(settings: LayoutSettings) -> ImageFont.FreeTypeFont:
    return load_font(max(1, int(round(settings.font_size))))


def measure_with(font: ImageFont.FreeTypeFont) -> Measure:
    """Advance width of a string in the given font."""
    def measure(text: str) -> float:
        return font.getlength(text)
    return measure


def decode_image(data: bytes, what: str) -> Image.Image:
    """
    Decode image bytes into an RGBA image.

    Raises:
        DecodeFailure: bytes are not a readable image
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Cannot decode {what}", cause=e)

    # Colour management is out of scope
    img.info.pop("icc_profile", None)
    if img.width <= 0 or img.height <= 0:
        raise DecodeFailure(f"Cannot decode {what}: empty image")
    return img.convert("RGBA")


def load_template(data: bytes, canvas: Canvas = DEFAULT_CANVAS) -> Image.Image:
    """Decode the template and stretch it to the canvas (aspect ratio is not kept)."""
    template = decode_image(data, "template")
    if template.size != canvas:
        template = template.resize(canvas, Image.Resampling.LANCZOS)
    return template


def _place_photo(card: Image.Image, photo: Image.Image, settings: LayoutSettings) -> None:
    photo_w = derived_width(settings.photo_h, photo.width, photo.height)
    center_x = horizontal_center_offset(card.width, photo_w)
    fit = cover_fit(photo.width, photo.height, photo_w, settings.photo_h)

    size = (max(1, round(fit.width)), max(1, round(fit.height)))
    scaled = photo.resize(size, Image.Resampling.LANCZOS)
    position = (round(fit.offset_x + center_x), round(fit.offset_y + settings.photo_y))
    card.paste(scaled, position, scaled)


def render_text(draw: ImageDraw.ImageDraw, layout: TextLayout, font: ImageFont.FreeTypeFont) -> None:
    """Draw a computed layout; highlight boxes go under their word."""
    for line in layout.lines:
        if line.mode != MODE_HIGHLIGHT:
            draw.text(
                (line.anchor_x, line.baseline_y),
                line.text,
                font=font,
                fill=TEXT_COLOR,
                anchor="ms",
                stroke_width=TEXT_STROKE_WIDTH,
                stroke_fill=TEXT_COLOR,
            )
            continue

        boxes = iter(line.highlights)
        for word in line.words:
            if word.highlighted:
                box = next(boxes)
                draw.rectangle(box.bounds, fill=HIGHLIGHT_FILL, outline=HIGHLIGHT_OUTLINE, width=1)
            draw.text(
                (word.x, line.baseline_y),
                word.text,
                font=font,
                fill=TEXT_COLOR,
                anchor="ls",
                stroke_width=TEXT_STROKE_WIDTH,
                stroke_fill=TEXT_COLOR,
            )


def compute_layout(record: ProductRecord, settings: LayoutSettings, canvas: Canvas = DEFAULT_CANVAS) -> TextLayout:
    """Text layout of a record's caption, without drawing anything."""
    width, height = canvas
    font = font_for(settings)
    return layout_text(
        card_text(record),
        measure=measure_with(font),
        max_width=width - 2 * SIDE_MARGIN,
        start_y=settings.text_y,
        line_height=settings.line_height,
        canvas_height=height,
        anchor_x=settings.text_x,
        max_text_adjustment=settings.max_text_adjustment,
    )


def encode_jpeg(card: Image.Image) -> bytes:
    buf = io.BytesIO()
    card.convert("RGB").save(buf, format="JPEG", quality=JPEG_QUALITY)
    return buf.getvalue()


def compose(
    template: Image.Image,
    photo_bytes: Optional[bytes],
    record: ProductRecord,
    settings: Optional[LayoutSettings] = None,
    canvas: Canvas = DEFAULT_CANVAS,
) -> CompositionResult:
    """
    Compose one catalog card.

    Args:
        template: Decoded template from load_template (read only)
        photo_bytes: Product photo, or None to render a text-only card
        record: Product record
        settings: Layout to use; defaults to the record's own settings
        canvas: Output size in px

    Raises:
        DecodeFailure: photo bytes are not an image
        MeasurementUnavailable: no font backend for the caption
    """
    settings = settings or record.settings

    card = Image.new("RGBA", canvas, BACKGROUND_COLOR + (255,))
    stretched = template if template.size == canvas else template.resize(canvas, Image.Resampling.LANCZOS)
    card.alpha_composite(stretched.convert("RGBA"))

    if photo_bytes is not None:
        photo = decode_image(photo_bytes, f"photo {record.filename!r}")
        _place_photo(card, photo, settings)
    elif record.filename:
        logging.debug("No photo for %s (%s), composing text only", record.sku, record.filename)

    layout = compute_layout(record, settings, canvas)
    render_text(ImageDraw.Draw(card), layout, font_for(settings))

    return CompositionResult(data=encode_jpeg(card), name=output_name_for(record.sku))


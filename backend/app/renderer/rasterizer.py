"""
SVG -> PNG rasterizer.

The prepared document is encoded by the first strategy that succeeds:
  A. cairosvg decode into an in-memory PNG, reopened with Pillow
  B. svglib + reportlab renderPM, drawing the vector tree directly

Strategies return a fresh image and never touch the output surface, so a
failed attempt leaves nothing behind. The surface is padded, scaled at least
2x and filled with the background color before the winning image is pasted.
"""

import asyncio
import base64
import io
import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageFont

from app.config import RASTER_PADDING, RASTER_PIXEL_RATIO
from app.ir.diagram import ImageArtifact
from app.ir.errors import RasterizationError
from app.renderer.svg_document import PreparedSvg, prepare_svg
from app.visual.visual_style import BACKGROUND_COLOR, FONT_FAMILY

logger = logging.getLogger(__name__)

# (svg markup, pixel width, pixel height) -> RGBA image of that size
EncodeStrategy = Callable[[str, int, int], Image.Image]

FALLBACK_FONTS = ("DejaVuSans.ttf", "LiberationSans-Regular.ttf")


def encode_with_cairosvg(markup: str, width: int, height: int) -> Image.Image:
    # Imported here: cairosvg binds the native cairo library at import time
    import cairosvg

    with io.BytesIO() as buffer:
        cairosvg.svg2png(
            bytestring=markup.encode("utf-8"),
            write_to=buffer,
            output_width=width,
            output_height=height,
        )
        buffer.seek(0)
        with Image.open(buffer) as decoded:
            return decoded.convert("RGBA")


def encode_with_svglib(markup: str, width: int, height: int) -> Image.Image:
    from reportlab.graphics import renderPM
    from svglib.svglib import svg2rlg

    # svglib does not understand the !important priority
    drawing = svg2rlg(io.BytesIO(markup.replace("!important", "").encode("utf-8")))
    if drawing is None:
        raise RasterizationError("svglib could not build a drawing from the SVG")

    scale_x = width / drawing.width if drawing.width else 1
    scale_y = height / drawing.height if drawing.height else 1
    drawing.scale(scale_x, scale_y)
    drawing.width = width
    drawing.height = height

    image = renderPM.drawToPIL(
        drawing,
        dpi=72,
        bg=int(BACKGROUND_COLOR.lstrip("#"), 16),
        backend="_renderPM",
    )
    return image.convert("RGBA")


DEFAULT_STRATEGIES: Tuple[EncodeStrategy, ...] = (encode_with_cairosvg, encode_with_svglib)


def _strategy_name(strategy: EncodeStrategy) -> str:
    return getattr(strategy, "__name__", repr(strategy))


def raster_scale(pixel_ratio: float = RASTER_PIXEL_RATIO) -> int:
    return max(2, math.ceil(pixel_ratio))


async def ensure_fonts_ready():
    """Best effort: make sure a TrueType face can be loaded before encoding."""
    candidates = [f"{FONT_FAMILY.split(',')[0].strip()}.ttf", *FALLBACK_FONTS]
    for candidate in candidates:
        try:
            await asyncio.to_thread(ImageFont.truetype, candidate, 14)
            return
        except Exception as e:
            logger.debug("[RASTER] font %s not available: %s", candidate, e)
    logger.debug("[RASTER] no TrueType font found, renderer defaults apply")


def encode_png(
    prepared: PreparedSvg,
    strategies: Sequence[EncodeStrategy],
    padding: int,
    scale: int,
) -> ImageArtifact:
    content_width = max(1, round(prepared.width * scale))
    content_height = max(1, round(prepared.height * scale))

    errors: List[str] = []
    last_error: Optional[Exception] = None
    content = None

    for strategy in strategies:
        name = _strategy_name(strategy)
        try:
            content = strategy(prepared.markup, content_width, content_height)
            logger.info("[RASTER] encoded with %s", name)
            break
        except Exception as e:
            errors.append(f"{name}: {e}")
            last_error = e
            logger.warning("[RASTER] %s failed: %s", name, e)

    if content is None:
        raise RasterizationError(
            "Could not rasterize the diagram: every encode strategy failed",
            errors=errors,
        ) from last_error

    if content.size != (content_width, content_height):
        content = content.resize((content_width, content_height))

    surface = Image.new(
        "RGB",
        (round((prepared.width + padding) * scale), round((prepared.height + padding) * scale)),
        ImageColor.getrgb(BACKGROUND_COLOR),
    )
    offset = round(padding / 2 * scale)
    surface.paste(content, (offset, offset), content)

    with io.BytesIO() as buffer:
        surface.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")

    return ImageArtifact(
        base64=encoded,
        data_url=f"data:image/png;base64,{encoded}",
        width=surface.width,
        height=surface.height,
        scale=scale,
        content_width=prepared.width,
        content_height=prepared.height,
    )


async def rasterize_svg(
    svg_markup: str,
    strategies: Optional[Sequence[EncodeStrategy]] = None,
    padding: int = RASTER_PADDING,
    pixel_ratio: float = RASTER_PIXEL_RATIO,
) -> ImageArtifact:
    """
    Turn renderer SVG into a PNG ImageArtifact.

    Raises:
        RasterizationError: malformed markup, or every strategy failed
    """
    prepared = prepare_svg(svg_markup)
    scale = raster_scale(pixel_ratio)
    logger.info(
        "[RASTER] %sx%s content, padding %s, scale %sx",
        prepared.width, prepared.height, padding, scale,
    )

    await ensure_fonts_ready()

    return await asyncio.to_thread(
        encode_png,
        prepared,
        strategies or DEFAULT_STRATEGIES,
        padding,
        scale,
    )

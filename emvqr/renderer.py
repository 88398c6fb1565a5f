"""QR image renderer backed by the ``qrcode`` library."""
from __future__ import annotations

import asyncio
import base64
import io
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Literal

import qrcode
import qrcode.image.svg
from PIL import Image, ImageColor
from qrcode.exceptions import DataOverflowError

logger = logging.getLogger("emvqr.render")

ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

MEDIA_TYPES = {"png": "image/png", "svg": "image/svg+xml"}


class RenderFailure(Exception):
    """The QR renderer could not produce an image for a payload."""


@dataclass(frozen=True)
class RenderOptions:
    target_pixel_width: int = 400
    margin_modules: int = 2
    foreground_color: str = "#000000"
    background_color: str = "#FFFFFF"
    error_correction: Literal["L", "M", "Q", "H"] = "M"
    image_format: Literal["png", "svg"] = "png"


@dataclass(frozen=True)
class RenderedQR:
    data: bytes
    media_type: str

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.base64}"


def _build_qr(text: str, options: RenderOptions) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECTION_LEVELS[options.error_correction],
        box_size=1,
        border=options.margin_modules,
    )
    qr.add_data(text)
    qr.make(fit=True)
    total_modules = qr.modules_count + options.margin_modules * 2
    qr.box_size = max(1, options.target_pixel_width // total_modules)
    return qr


def generate_qr_image(text: str, options: RenderOptions) -> Image.Image:
    """Generate a square raster QR image scaled to the target pixel width."""

    qr = _build_qr(text, options)
    qr_img = qr.make_image(fill_color=options.foreground_color, back_color=options.background_color).convert("RGB")
    width = options.target_pixel_width
    if qr_img.size != (width, width):
        qr_img = qr_img.resize((width, width), Image.NEAREST)
    return qr_img


def qr_image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _svg_bytes(text: str, options: RenderOptions) -> bytes:
    """Render SVG sized to the target width, with both colours applied."""

    foreground = _hex_color(options.foreground_color)
    background = _hex_color(options.background_color)
    qr = _build_qr(text, options)
    image = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)

    root = ET.fromstring(buffer.getvalue())
    width = str(options.target_pixel_width)
    root.set("width", width)
    root.set("height", width)
    for path in root.iter(f"{{{SVG_NS}}}path"):
        path.set("fill", foreground)
    root.insert(0, ET.Element(f"{{{SVG_NS}}}rect", {"width": "100%", "height": "100%", "fill": background}))
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _hex_color(color: str) -> str:
    red, green, blue = ImageColor.getrgb(color)[:3]
    return f"#{red:02X}{green:02X}{blue:02X}"


def render_qr(text: str, options: RenderOptions | None = None) -> RenderedQR:
    """Render ``text`` as a QR symbol, raising ``RenderFailure`` on any renderer error."""

    options = options or RenderOptions()
    try:
        if options.image_format == "svg":
            data = _svg_bytes(text, options)
        else:
            data = qr_image_to_png_bytes(generate_qr_image(text, options))
    except (DataOverflowError, ValueError, OSError) as exc:
        logger.warning(
            "qr render failed",
            extra={"error": str(exc), "payload_length": len(text), "image_format": options.image_format},
        )
        raise RenderFailure(str(exc) or exc.__class__.__name__) from exc
    return RenderedQR(data=data, media_type=MEDIA_TYPES[options.image_format])


async def render_qr_async(text: str, options: RenderOptions | None = None) -> RenderedQR:
    """Run ``render_qr`` in a worker thread."""

    return await asyncio.to_thread(render_qr, text, options)

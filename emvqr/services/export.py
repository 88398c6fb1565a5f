"""Export rendered QR images to disk."""
from __future__ import annotations

import logging
import re
from pathlib import Path

from ..renderer import RenderedQR

logger = logging.getLogger("emvqr.export")

_EXTENSIONS = {"image/png": "png", "image/svg+xml": "svg"}


class ExportFailure(Exception):
    """Writing a rendered image to its destination failed."""


def download_filename(merchant_name: str, media_type: str = "image/png") -> str:
    slug = re.sub(r"\s+", "-", merchant_name)
    return f"emv-qr-{slug}.{_EXTENSIONS[media_type]}"


def export_qr_image(image: RenderedQR, directory: Path, merchant_name: str) -> Path:
    target = Path(directory) / download_filename(merchant_name, image.media_type)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(image.data)
    except OSError as exc:
        logger.error("qr export failed", extra={"target": str(target), "error": str(exc)})
        raise ExportFailure(str(exc)) from exc
    logger.info("qr exported", extra={"target": str(target), "bytes": len(image.data)})
    return target

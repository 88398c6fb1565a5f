"""Payload encoding and QR building services."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from ..emv_encoder import EncodedPayload, encode_record
from ..models import AdditionalDataMode, MerchantRecord
from ..monitoring import record_payload_generated, record_render_failure
from ..renderer import RenderedQR, RenderFailure, RenderOptions, render_qr_async

logger = logging.getLogger("emvqr.generator")

# Every payload is rendered at this level regardless of caller options.
PAYLOAD_ERROR_CORRECTION = "M"


@dataclass(slots=True)
class GenerateResult:
    record: MerchantRecord
    encoded: EncodedPayload
    image: RenderedQR | None = None
    render_error: RenderFailure | None = None


class PaymentQRGenerator:
    def __init__(self, *, mode: AdditionalDataMode = AdditionalDataMode.PLACEHOLDER, render_options: RenderOptions | None = None):
        self.mode = mode
        self.render_options = replace(render_options or RenderOptions(), error_correction=PAYLOAD_ERROR_CORRECTION)

    def encode(self, record: MerchantRecord) -> EncodedPayload:
        """Encode ``record``; ``ValueTooLong`` propagates before any rendering."""

        encoded = encode_record(record, self.mode)
        record_payload_generated(self.mode.value)
        logger.info(
            "payload encoded",
            extra={"crc": encoded.crc, "payload_length": len(encoded.payload), "mode": self.mode.value},
        )
        return encoded

    async def render(self, encoded: EncodedPayload, *, image_format: str | None = None) -> RenderedQR:
        options = self.render_options
        if image_format and image_format != options.image_format:
            options = replace(options, image_format=image_format)
        try:
            return await render_qr_async(encoded.payload, options)
        except RenderFailure:
            record_render_failure()
            raise

    async def generate(self, record: MerchantRecord) -> GenerateResult:
        """Encode then render; a render failure keeps the valid payload."""

        encoded = self.encode(record)
        try:
            image = await self.render(encoded)
        except RenderFailure as exc:
            return GenerateResult(record=record, encoded=encoded, render_error=exc)
        return GenerateResult(record=record, encoded=encoded, image=image)

"""Live regeneration of a payload and its QR image as the record changes.

Served over HTTP by ``PUT /v1/emv/live``; usable directly as a library entry point.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from ..emv_encoder import EncodedPayload
from ..models import MerchantRecord
from ..renderer import RenderedQR, RenderFailure
from .generator import PaymentQRGenerator

logger = logging.getLogger("emvqr.session")


@dataclass(frozen=True, slots=True)
class SessionState:
    generation: int
    record: MerchantRecord | None
    encoded: EncodedPayload | None
    image: RenderedQR | None
    render_error: RenderFailure | None

    @property
    def payload(self) -> str | None:
        return self.encoded.payload if self.encoded else None


class QRSession:
    """Recompute-on-change command for a single editable merchant record.

    ``update`` encodes synchronously, so an invalid record raises before
    anything changes. Rendering is awaited afterwards; when a newer update
    has started in the meantime, the older render result is dropped.
    """

    def __init__(self, generator: PaymentQRGenerator):
        self.generator = generator
        self._generation = 0
        self._record: MerchantRecord | None = None
        self._encoded: EncodedPayload | None = None
        self._image: RenderedQR | None = None
        self._render_error: RenderFailure | None = None

    @property
    def state(self) -> SessionState:
        return SessionState(
            generation=self._generation,
            record=self._record,
            encoded=self._encoded,
            image=self._image,
            render_error=self._render_error,
        )

    async def update(self, record: MerchantRecord) -> SessionState:
        encoded = self.generator.encode(record)

        self._generation += 1
        generation = self._generation
        self._record = record
        self._encoded = encoded
        self._image = None
        self._render_error = None

        try:
            image = await self.generator.render(encoded)
        except RenderFailure as exc:
            if generation == self._generation:
                self._render_error = exc
            return self.state

        if generation != self._generation:
            logger.debug("discarding stale render", extra={"generation": generation, "current": self._generation})
            return self.state
        self._image = image
        return self.state

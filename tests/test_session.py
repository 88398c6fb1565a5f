"""Recompute-on-change session behaviour."""
import asyncio
from dataclasses import replace

import pytest

from emvqr.emv_encoder import encode_record
from emvqr.models import SAMPLE_RECORD
from emvqr.renderer import RenderedQR, RenderFailure
from emvqr.services.generator import PaymentQRGenerator
from emvqr.services.session import QRSession
from emvqr.tlv import ValueTooLong


class GatedGenerator(PaymentQRGenerator):
    """Renders only once the test releases the matching payload."""

    def __init__(self):
        super().__init__()
        self.gates: dict[str, asyncio.Event] = {}

    async def render(self, encoded, *, image_format=None):
        gate = self.gates.setdefault(encoded.payload, asyncio.Event())
        await gate.wait()
        return RenderedQR(data=encoded.payload.encode("ascii"), media_type="image/png")

    def release(self, payload):
        self.gates.setdefault(payload, asyncio.Event()).set()


class FailingGenerator(PaymentQRGenerator):
    async def render(self, encoded, *, image_format=None):
        raise RenderFailure("renderer offline")


def test_update_encodes_and_renders():
    session = QRSession(PaymentQRGenerator())
    state = asyncio.run(session.update(SAMPLE_RECORD))
    assert state.generation == 1
    assert state.payload == encode_record(SAMPLE_RECORD).payload
    assert state.image is not None
    assert state.render_error is None


def test_newer_update_supersedes_in_flight_render():
    first_record = SAMPLE_RECORD
    second_record = replace(SAMPLE_RECORD, merchant_city="POKHARA")
    first_payload = encode_record(first_record).payload
    second_payload = encode_record(second_record).payload

    async def scenario():
        generator = GatedGenerator()
        session = QRSession(generator)
        first = asyncio.create_task(session.update(first_record))
        await asyncio.sleep(0)
        second = asyncio.create_task(session.update(second_record))
        await asyncio.sleep(0)

        generator.release(second_payload)
        await second
        generator.release(first_payload)
        await first
        return session.state

    state = asyncio.run(scenario())
    assert state.generation == 2
    assert state.payload == second_payload
    assert state.image.data == second_payload.encode("ascii")


def test_render_failure_keeps_payload_and_clears_image():
    session = QRSession(FailingGenerator())
    state = asyncio.run(session.update(SAMPLE_RECORD))
    assert state.payload == encode_record(SAMPLE_RECORD).payload
    assert state.image is None
    assert str(state.render_error) == "renderer offline"


def test_encoding_error_leaves_state_untouched():
    session = QRSession(PaymentQRGenerator())
    before = asyncio.run(session.update(SAMPLE_RECORD))
    with pytest.raises(ValueTooLong):
        asyncio.run(session.update(replace(SAMPLE_RECORD, merchant_city="C" * 100)))
    assert session.state == before

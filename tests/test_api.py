"""HTTP surface exercised through FastAPI's TestClient."""
import base64
from dataclasses import asdict

import pytest
from fastapi.testclient import TestClient

from emvqr.api import app, get_generator, get_live_session
from emvqr.config import settings
from emvqr.models import SAMPLE_RECORD
from emvqr.renderer import RenderOptions
from emvqr.services.generator import PaymentQRGenerator
from emvqr.services.session import QRSession

SAMPLE_PAYLOAD = (
    "00020101021129340030NCHL000000024501COP-1195-APP-1520448295303524540105802NP"
    "5918Hari Sankar Pandey6009KATHMANDU"
    "6254010201020202030203040204050205060206070207080208090209"
    "6304CEC9"
)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"x-api-key": settings.api_key}


@pytest.fixture
def sample_body():
    return asdict(SAMPLE_RECORD)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_metrics_exposes_counters(client, headers, sample_body):
    client.post("/v1/emv", json=sample_body, headers=headers)
    body = client.get("/metrics").text
    assert "emvqr_payloads_generated_total" in body
    assert "emvqr_http_requests_total" in body


def test_sample_record(client):
    assert client.get("/v1/emv/sample").json() == asdict(SAMPLE_RECORD)


def test_missing_api_key_is_rejected(client, sample_body):
    response = client.post("/v1/emv", json=sample_body, headers={"x-api-key": "wrong"})
    assert response.status_code == 401


def test_generate_returns_payload_and_png(client, headers, sample_body):
    response = client.post("/v1/emv", json=sample_body, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["payload"] == SAMPLE_PAYLOAD
    assert data["crc"] == "CEC9"
    assert data["render_error"] is None
    assert base64.b64decode(data["qr_png_base64"]).startswith(b"\x89PNG")
    assert "X-Request-ID" in response.headers


def test_value_too_long_is_reported_before_rendering(client, headers, sample_body):
    sample_body["merchant_guid"] = "G" * 97
    response = client.post("/v1/emv", json=sample_body, headers=headers)
    assert response.status_code == 422
    assert response.json()["code"] == "ERR_VALUE_TOO_LONG"


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("merchant_category_code", "48A9"),
        ("transaction_currency", "NPR"),
        ("merchant_category_code", "४८२९"),
        ("transaction_currency", "५२४"),
        ("tip_amount", "१"),
        ("country_code", "NPL"),
        ("tip_amount", "-1"),
        ("tip_amount", "1.005"),
        ("merchant_name", "N" * 100),
        ("merchant_city", "Kathmandué"),
    ],
)
def test_boundary_validation(client, headers, sample_body, field, value):
    sample_body[field] = value
    response = client.post("/v1/emv", json=sample_body, headers=headers)
    assert response.status_code == 422


def test_lowercase_country_is_normalised(client, headers, sample_body):
    sample_body["country_code"] = "np"
    response = client.post("/v1/emv", json=sample_body, headers=headers)
    assert response.json()["payload"] == SAMPLE_PAYLOAD


def test_render_failure_keeps_payload(client, headers, sample_body):
    app.dependency_overrides[get_generator] = lambda: PaymentQRGenerator(
        render_options=RenderOptions(background_color="bogus")
    )
    response = client.post("/v1/emv", json=sample_body, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["payload"] == SAMPLE_PAYLOAD
    assert data["qr_png_base64"] is None
    assert data["render_error"]


def test_image_download(client, headers, sample_body):
    response = client.post("/v1/emv/image", json=sample_body, headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["content-disposition"] == 'attachment; filename="emv-qr-Hari-Sankar-Pandey.png"'
    assert response.headers["x-emv-crc"] == "CEC9"


def test_image_download_svg(client, headers, sample_body):
    response = client.post("/v1/emv/image", params={"format": "svg"}, json=sample_body, headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("image/svg+xml")
    assert b"<svg" in response.content


def test_image_download_render_failure(client, headers, sample_body):
    app.dependency_overrides[get_generator] = lambda: PaymentQRGenerator(
        render_options=RenderOptions(background_color="bogus")
    )
    response = client.post("/v1/emv/image", json=sample_body, headers=headers)
    assert response.status_code == 502
    assert response.json()["code"] == "ERR_RENDER_FAILED"


def test_export_writes_png(client, headers, sample_body, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "export_dir", tmp_path)
    response = client.post("/v1/emv/export", json=sample_body, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "emv-qr-Hari-Sankar-Pandey.png"
    assert (tmp_path / data["filename"]).read_bytes().startswith(b"\x89PNG")


def test_export_failure(client, headers, sample_body, tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("x")
    monkeypatch.setattr(settings, "export_dir", blocker)
    response = client.post("/v1/emv/export", json=sample_body, headers=headers)
    assert response.status_code == 500
    assert response.json()["code"] == "ERR_EXPORT_FAILED"


def test_decode(client, headers):
    response = client.post("/v1/emv/decode", json={"payload": SAMPLE_PAYLOAD}, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["crc"] == "CEC9"
    assert data["merchant_account"] == {"00": SAMPLE_RECORD.merchant_guid}
    assert data["fields"]["60"] == "KATHMANDU"
    assert data["additional_data"]["09"] == "09"


def test_decode_crc_mismatch(client, headers):
    response = client.post("/v1/emv/decode", json={"payload": SAMPLE_PAYLOAD[:-4] + "0000"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "ERR_CRC_MISMATCH"


def test_decode_rejects_crc_inside_another_value(client, headers):
    # "6304" belongs to tag 59's value, so there is no Tag 63 item
    response = client.post("/v1/emv/decode", json={"payload": "5912abcd63045AE4"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "ERR_BAD_PAYLOAD"


@pytest.fixture
def live_session():
    session = QRSession(PaymentQRGenerator())
    app.dependency_overrides[get_live_session] = lambda: session
    return session


def test_live_session_starts_empty(client, headers, live_session):
    data = client.get("/v1/emv/live", headers=headers).json()
    assert data == {"generation": 0, "payload": None, "crc": None, "qr_png_base64": None, "render_error": None}


def test_live_update_supersedes_previous_record(client, headers, sample_body, live_session):
    client.put("/v1/emv/live", json=sample_body, headers=headers)
    sample_body["merchant_city"] = "POKHARA"
    response = client.put("/v1/emv/live", json=sample_body, headers=headers)
    assert response.status_code == 200
    data = client.get("/v1/emv/live", headers=headers).json()
    assert data["generation"] == 2
    assert "6007POKHARA" in data["payload"]
    assert data["qr_png_base64"]


def test_live_update_value_too_long_keeps_state(client, headers, sample_body, live_session):
    client.put("/v1/emv/live", json=sample_body, headers=headers)
    too_long = dict(sample_body, merchant_guid="G" * 97)
    response = client.put("/v1/emv/live", json=too_long, headers=headers)
    assert response.status_code == 422
    assert response.json()["code"] == "ERR_VALUE_TOO_LONG"
    data = client.get("/v1/emv/live", headers=headers).json()
    assert data["generation"] == 1
    assert data["payload"] == SAMPLE_PAYLOAD

"""Shared service error definitions."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ServiceError(Exception):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:  # noqa: D401 override
        return f"{self.code}: {self.message}"


def err_value_too_long(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_VALUE_TOO_LONG", message=message or "Field value exceeds 99 characters", status_code=422)


def err_render_failed(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_RENDER_FAILED", message=message or "QR image could not be rendered", status_code=502)


def err_export_failed(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_EXPORT_FAILED", message=message or "QR image could not be exported", status_code=500)


def err_crc_mismatch(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_CRC_MISMATCH", message=message or "Payload checksum does not match", status_code=400)


def err_bad_payload(message: str | None = None) -> ServiceError:
    return ServiceError(code="ERR_BAD_PAYLOAD", message=message or "Invalid request payload", status_code=400)

"""Pydantic schemas for API contracts."""
from __future__ import annotations

import re
from dataclasses import asdict
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, field_validator

from .models import MerchantRecord

# Printable ASCII, at most the two-digit TLV length budget
EmvText = Annotated[str, StringConstraints(max_length=99, pattern=r"^[\x20-\x7E]*$")]

_TIP_AMOUNT = re.compile(r"^([0-9]+(\.[0-9]{1,2})?)?$")


class ImageFormatEnum(str, Enum):
    PNG = "png"
    SVG = "svg"


class MerchantRecordIn(BaseModel):
    merchant_guid: EmvText
    merchant_name: EmvText
    merchant_city: EmvText
    merchant_category_code: str = Field(pattern=r"^[0-9]{4}$", description="ISO 18245 merchant category code")
    transaction_currency: str = Field(pattern=r"^[0-9]{3}$", description="ISO 4217 numeric currency code")
    country_code: str = Field(description="ISO 3166-1 alpha-2 country code")
    tip_amount: EmvText = "0"
    bill_reference: EmvText = ""
    terminal_id: EmvText = ""
    additional_info: EmvText = ""

    @field_validator("country_code")
    @classmethod
    def _country_alpha2(cls, value: str) -> str:
        value = value.upper()
        if not re.fullmatch(r"[A-Z]{2}", value):
            raise ValueError("country_code must be two letters")
        return value

    @field_validator("tip_amount")
    @classmethod
    def _tip_decimal(cls, value: str) -> str:
        if not _TIP_AMOUNT.match(value):
            raise ValueError("tip_amount must be a non-negative decimal with at most two fraction digits")
        return value

    def to_record(self) -> MerchantRecord:
        return MerchantRecord(**self.model_dump())

    @classmethod
    def from_record(cls, record: MerchantRecord) -> MerchantRecordIn:
        return cls(**asdict(record))


class GenerateQRResponse(BaseModel):
    payload: str
    crc: str
    qr_png_base64: str | None = None
    render_error: str | None = None


class ExportResponse(BaseModel):
    path: str
    filename: str
    crc: str


class DecodeRequest(BaseModel):
    payload: str = Field(min_length=8, pattern=r"^[\x20-\x7E]*$")


class DecodeResponse(BaseModel):
    crc: str
    fields: dict[str, str]
    merchant_account: dict[str, str]
    additional_data: dict[str, str]


class LiveStateResponse(BaseModel):
    generation: int
    payload: str | None = None
    crc: str | None = None
    qr_png_base64: str | None = None
    render_error: str | None = None

"""EMV merchant-presented QR payload encoder."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .crc import compute_checksum
from .models import AdditionalDataMode, MerchantRecord
from .tlv import TLVItem, build_tlv, encode_composite, encode_field, parse_tlv

PAYLOAD_FORMAT_INDICATOR = "01"
POINT_OF_INITIATION_STATIC = "11"

TAG_PAYLOAD_FORMAT = "00"
TAG_POINT_OF_INITIATION = "01"
TAG_MERCHANT_ACCOUNT = "29"
TAG_MERCHANT_CATEGORY = "52"
TAG_CURRENCY = "53"
TAG_TIP_AMOUNT = "54"
TAG_COUNTRY = "58"
TAG_MERCHANT_NAME = "59"
TAG_MERCHANT_CITY = "60"
TAG_ADDITIONAL_DATA = "62"
TAG_CRC = "63"
CRC_LENGTH = "04"

# Additional data template subtags
SUBTAG_GUID = "00"
SUBTAG_BILL_NUMBER = "01"
SUBTAG_TERMINAL_LABEL = "07"
SUBTAG_PURPOSE = "08"
PLACEHOLDER_SUBTAGS = tuple(f"{n:02d}" for n in range(1, 10))


class CRCMismatch(ValueError):
    """Raised when a payload's trailing checksum does not match its content."""


@dataclass(frozen=True)
class EncodedPayload:
    payload: str
    crc: str


def merchant_account_info(record: MerchantRecord) -> str:
    return encode_composite(TAG_MERCHANT_ACCOUNT, [encode_field(SUBTAG_GUID, record.merchant_guid)])


def additional_data_items(record: MerchantRecord, mode: AdditionalDataMode) -> Iterable[TLVItem]:
    if mode is AdditionalDataMode.RECORD:
        yield TLVItem(tag=SUBTAG_BILL_NUMBER, value=record.bill_reference)
        yield TLVItem(tag=SUBTAG_TERMINAL_LABEL, value=record.terminal_id)
        yield TLVItem(tag=SUBTAG_PURPOSE, value=record.additional_info)
        return
    for subtag in PLACEHOLDER_SUBTAGS:
        yield TLVItem(tag=subtag, value=subtag)


def additional_data(record: MerchantRecord, mode: AdditionalDataMode) -> str:
    return encode_composite(TAG_ADDITIONAL_DATA, [item.serialize() for item in additional_data_items(record, mode)])


def assemble_payload(record: MerchantRecord, mode: AdditionalDataMode = AdditionalDataMode.PLACEHOLDER) -> str:
    """Build the payload without CRC, in the fixed top-level field order."""

    fields = [
        encode_field(TAG_PAYLOAD_FORMAT, PAYLOAD_FORMAT_INDICATOR),
        encode_field(TAG_POINT_OF_INITIATION, POINT_OF_INITIATION_STATIC),
        merchant_account_info(record),
        encode_field(TAG_MERCHANT_CATEGORY, record.merchant_category_code),
        encode_field(TAG_CURRENCY, record.transaction_currency),
        encode_field(TAG_TIP_AMOUNT, record.tip_amount),
        encode_field(TAG_COUNTRY, record.country_code),
        encode_field(TAG_MERCHANT_NAME, record.merchant_name),
        encode_field(TAG_MERCHANT_CITY, record.merchant_city),
        additional_data(record, mode),
    ]
    return "".join(fields)


def finalize(payload: str) -> EncodedPayload:
    """Append Tag 63 with the CRC16 computed over ``payload + "6304"``."""

    crc_input = f"{payload}{TAG_CRC}{CRC_LENGTH}"
    crc = compute_checksum(crc_input)
    return EncodedPayload(payload=f"{crc_input}{crc}", crc=crc)


def encode_record(record: MerchantRecord, mode: AdditionalDataMode = AdditionalDataMode.PLACEHOLDER) -> EncodedPayload:
    return finalize(assemble_payload(record, mode))


def strip_crc(payload: str) -> str:
    """Remove Tag 63 (CRC) from an EMV payload if present."""

    items = [item for item in parse_tlv(payload)]
    filtered = [item for item in items if item.tag != TAG_CRC]
    return build_tlv(filtered)


def verify_crc(payload: str) -> bool:
    """Check that the payload ends with a Tag 63 matching its content."""

    tail = payload[-8:]
    if len(tail) != 8 or tail[:4] != f"{TAG_CRC}{CRC_LENGTH}":
        return False
    return compute_checksum(payload[:-4]) == tail[4:].upper()


def decode_payload(payload: str) -> dict[str, str]:
    """Split a checksummed payload into its top-level tag/value pairs."""

    if not verify_crc(payload):
        raise CRCMismatch("Payload CRC is missing or does not match")
    items = list(parse_tlv(payload))
    # the trailing 6304 must open its own item, not sit inside another value
    last = items[-1] if items else None
    if last is None or last.tag != TAG_CRC or len(last.value) != int(CRC_LENGTH):
        raise ValueError("Payload does not end with a Tag 63 CRC item")
    return {item.tag: item.value for item in items}


def decode_composite(value: str) -> dict[str, str]:
    return {item.tag: item.value for item in parse_tlv(value)}

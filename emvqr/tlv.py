"""Utility helpers to build and parse EMV-style TLV payloads."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

MAX_VALUE_LENGTH = 99


class ValueTooLong(ValueError):
    """Raised when a value does not fit the two-digit length field."""

    def __init__(self, tag: str, length: int):
        self.tag = tag
        self.length = length
        super().__init__(f"Value for tag {tag} is {length} characters long, maximum is {MAX_VALUE_LENGTH}")


def _check_tag(tag: str) -> None:
    if len(tag) != 2 or not (tag.isascii() and tag.isdigit()):
        raise ValueError(f"Invalid TLV tag {tag!r}, expected two decimal digits")


@dataclass(frozen=True)
class TLVItem:
    tag: str
    value: str

    def serialize(self) -> str:
        _check_tag(self.tag)
        if len(self.value) > MAX_VALUE_LENGTH:
            raise ValueTooLong(self.tag, len(self.value))
        length = f"{len(self.value):02d}"
        return f"{self.tag}{length}{self.value}"


def encode_field(tag: str, value: str) -> str:
    """Encode a single tag/value pair as ``tag + length + value``."""

    return TLVItem(tag=tag, value=value).serialize()


def encode_composite(tag: str, subfields: Iterable[str]) -> str:
    """Wrap already encoded subfields, in the given order, under ``tag``."""

    return encode_field(tag, "".join(subfields))


def build_tlv(items: Iterable[TLVItem]) -> str:
    """Serialize iterable of TLV items into EMV string."""

    return "".join(item.serialize() for item in items)


def parse_tlv(payload: str) -> Iterator[TLVItem]:
    """Parse TLV payload string into TLV items."""

    idx = 0
    total = len(payload)
    while idx + 4 <= total:
        tag = payload[idx : idx + 2]
        raw_length = payload[idx + 2 : idx + 4]
        if not (raw_length.isascii() and raw_length.isdigit()):
            raise ValueError(f"Invalid TLV length {raw_length!r} for tag {tag}")
        length = int(raw_length)
        value_start = idx + 4
        value_end = value_start + length
        if value_end > total:
            raise ValueError("Invalid TLV length exceeds payload")
        value = payload[value_start:value_end]
        yield TLVItem(tag=tag, value=value)
        idx = value_end
    if idx != total:
        raise ValueError("Dangling TLV data detected")

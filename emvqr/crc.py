"""CRC-16/CCITT-FALSE implementation."""
from __future__ import annotations

CRC16_POLY = 0x1021
CRC16_INIT = 0xFFFF


def compute_checksum(data: str) -> str:
    """Compute CRC-16/CCITT-FALSE for EMV payload strings.

    One byte per character, so the input must be ASCII. Returns four
    uppercase hex digits.
    """

    checksum = CRC16_INIT
    for ch in data.encode("ascii"):
        checksum ^= ch << 8
        for _ in range(8):
            if checksum & 0x8000:
                checksum = (checksum << 1) ^ CRC16_POLY
            else:
                checksum <<= 1
            checksum &= 0xFFFF
    return f"{checksum:04X}"

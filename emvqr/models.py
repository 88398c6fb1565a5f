"""Domain models for merchant payment records."""
from __future__ import annotations

import enum
from dataclasses import dataclass


class AdditionalDataMode(str, enum.Enum):
    """How the additional data template (tag 62) is populated."""

    PLACEHOLDER = "PLACEHOLDER"
    RECORD = "RECORD"


@dataclass(frozen=True)
class MerchantRecord:
    merchant_guid: str
    merchant_name: str
    merchant_city: str
    merchant_category_code: str
    transaction_currency: str
    country_code: str
    tip_amount: str
    bill_reference: str
    terminal_id: str
    additional_info: str


SAMPLE_RECORD = MerchantRecord(
    merchant_guid="NCHL000000024501COP-1195-APP-1",
    merchant_name="Hari Sankar Pandey",
    merchant_city="KATHMANDU",
    merchant_category_code="4829",
    transaction_currency="524",
    country_code="NP",
    tip_amount="0",
    bill_reference="001011160000072",
    terminal_id="1",
    additional_info="Demo Transaction",
)

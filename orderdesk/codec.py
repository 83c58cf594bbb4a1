"""
Location Metadata Codec

The remote orders table only has a free-text `table_number` column. Dine-in
and delivery metadata are packed into it with a versioned prefix:

    DINEIN_V1|||<table>|||<verification code>
    DELIVERY_V1|||<phone>|||<address>

Anything else is a legacy plain table number.

Author: Khalil Bannouri
Version: 3.0.0
"""

from dataclasses import dataclass
from typing import Optional, Union

from orderdesk.models import FulfillmentType

SEP = "|||"
DINEIN_TAG = "DINEIN_V1"
DELIVERY_TAG = "DELIVERY_V1"


@dataclass(frozen=True)
class DineIn:
    """Table service: table number plus the anti-fraud code shown at the table."""
    table: str = ""
    code: str = ""

    @property
    def fulfillment_type(self) -> FulfillmentType:
        return FulfillmentType.DINE_IN

    def fields(self) -> dict[str, str]:
        return {"table_number": self.table, "verification_code": self.code}


@dataclass(frozen=True)
class Delivery:
    """Delivery: contact phone and drop-off address."""
    phone: str = ""
    address: str = ""

    @property
    def fulfillment_type(self) -> FulfillmentType:
        return FulfillmentType.DELIVERY

    def fields(self) -> dict[str, str]:
        return {"phone": self.phone, "address": self.address}


LocationMeta = Union[DineIn, Delivery]


def sanitize(value: Optional[str]) -> str:
    """Replace delimiter occurrences so a field can never split in two."""
    return (value or "").replace(SEP, " ")


def encode(meta: LocationMeta) -> str:
    """Pack location metadata into the legacy column format."""
    if isinstance(meta, Delivery):
        parts = (DELIVERY_TAG, sanitize(meta.phone), sanitize(meta.address))
    elif isinstance(meta, DineIn):
        parts = (DINEIN_TAG, sanitize(meta.table), sanitize(meta.code))
    else:
        raise TypeError(f"Unsupported location metadata: {meta!r}")
    return SEP.join(parts)


def decode(raw: Optional[str]) -> LocationMeta:
    """
    Unpack the legacy column.

    Never raises: unknown formats (including NULL) are read as a plain
    dine-in table number without a verification code.
    """
    if isinstance(raw, str):
        parts = raw.split(SEP)
        if raw.startswith(DELIVERY_TAG + SEP):
            return Delivery(
                phone=_part(parts, 1) or "",
                address=_part(parts, 2) or "",
            )
        if raw.startswith(DINEIN_TAG + SEP):
            return DineIn(
                table=_part(parts, 1) or "?",
                code=_part(parts, 2) or "",
            )
        return DineIn(table=raw, code="")
    return DineIn(table="", code="")


def _part(parts: list[str], index: int) -> Optional[str]:
    return parts[index] if len(parts) > index else None


# =============================================================================
# DICT-BASED HELPERS
# =============================================================================

def from_fields(fulfillment_type: FulfillmentType, fields: dict) -> LocationMeta:
    """Build the union variant matching `fulfillment_type` from plain fields."""
    if FulfillmentType(fulfillment_type) == FulfillmentType.DELIVERY:
        return Delivery(phone=fields.get("phone") or "", address=fields.get("address") or "")
    return DineIn(
        table=fields.get("table_number") or "",
        code=fields.get("verification_code") or "",
    )


def pack(fulfillment_type: FulfillmentType, fields: dict) -> str:
    return encode(from_fields(fulfillment_type, fields))


def unpack(raw: Optional[str]) -> tuple[FulfillmentType, dict[str, str]]:
    meta = decode(raw)
    return meta.fulfillment_type, meta.fields()

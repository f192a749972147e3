"""Address resolution for fulfillment event snapshots.

Pure functions: the same inputs always produce the same string.
"""

from __future__ import annotations

from typing import Literal

from src.models.counterparty import Counterparty

AddressKind = Literal["billing", "shipping"]


def _line(address: dict) -> str:
    return address.get("address_line") or address.get("line1") or ""


def has_populated_field(address: dict | str | None) -> bool:
    if not address:
        return False
    if isinstance(address, str):
        return bool(address.strip())
    return any(
        str(value).strip()
        for value in (_line(address), address.get("city"), address.get("country"))
        if value
    )


def format_address(address: dict | str | None) -> str:
    """Join the populated parts of a structured address with ', '."""
    if not address:
        return ""
    if isinstance(address, str):
        return address.strip()
    parts = [_line(address), address.get("city") or "", address.get("country") or ""]
    return ", ".join(str(p).strip() for p in parts if p and str(p).strip())


def _counterparty_default(counterparty: Counterparty | None, kind: AddressKind) -> dict | str | None:
    if counterparty is None:
        return None
    if kind == "shipping":
        candidates = (
            counterparty.shipping_address,
            counterparty.billing_address,
            counterparty.address,
        )
    else:
        candidates = (counterparty.billing_address, counterparty.address)
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def resolve_address(
    explicit: str | None,
    structured: dict | str | None,
    counterparty: Counterparty | None,
    kind: AddressKind = "billing",
) -> str:
    """Pick the snapshot address by priority.

    1. explicit non-empty override
    2. structured address on the referenced document, if any field is populated
    3. the counterparty's default address for ``kind``
    4. empty string
    """
    if explicit and explicit.strip():
        return explicit.strip()
    if has_populated_field(structured):
        return format_address(structured)
    return format_address(_counterparty_default(counterparty, kind))
